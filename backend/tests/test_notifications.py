"""
Order email tests.

Verifies:
- A confirmation is sent only when the order names a customer email
- Sending flags email_sent without moving updated_at
- Delivery and queueing failures never fail the sale
- Manual resend reports delivery failure
"""

from types import SimpleNamespace

import pytest

from conftest import order_payload
from drinkquick.models import Order
from drinkquick.services import notification_service, pricing_service
from drinkquick.services.mail_service import Mailer, MailerError


def place(client, headers, payload):
    resp = client.post("/api/orders", json=payload, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json["data"]["order"]


class TestOrderConfirmation:
    def test_sent_when_customer_email_given(self, client, db_session, staff_headers, lager, outbox):
        order = place(client, staff_headers, order_payload(
            (lager, 1), amount_paid=800, customerEmail="Guest@Example.com", customerName="Guest",
        ))

        assert len(outbox) == 1
        message = outbox[0]
        assert message["to"] == "guest@example.com"
        assert message["subject"] == f"Your order {order['orderNumber']}"
        assert "Lager" in message["html"]
        assert "Hello Guest" in message["html"]

        db_session.expire_all()
        stored = db_session.get(Order, order["id"])
        assert stored.email_sent is True

    def test_flagging_keeps_updated_at(self, db_session, staff, lager):
        order = pricing_service.assemble_order(staff, order_payload((lager, 1), amount_paid=800))
        before = (order.updated_at, order.version_id)

        notification_service.send_order_email(order)

        db_session.expire_all()
        stored = db_session.get(Order, order.id)
        assert stored.email_sent is True
        assert (stored.updated_at, stored.version_id) == before

    def test_not_sent_without_explicit_email(self, client, staff, staff_headers, lager, outbox):
        order = place(client, staff_headers, order_payload((lager, 1), amount_paid=800))

        assert outbox == []
        assert order["customerEmail"] == staff.email
        assert order["emailSent"] is False

    def test_delivery_failure_does_not_fail_the_sale(self, app, client, monkeypatch, db_session, staff_headers, lager):
        monkeypatch.setitem(app.config, "MAIL_SUPPRESS_SEND", False)
        monkeypatch.setitem(app.config, "SENDGRID_API_KEY", "")

        order = place(client, staff_headers, order_payload((lager, 1), amount_paid=800, customerEmail="guest@example.com"))

        db_session.expire_all()
        assert db_session.get(Order, order["id"]).email_sent is False

    def test_queue_failure_is_swallowed(self, monkeypatch, client, staff_headers, lager):
        def broken_delay(*args, **kwargs):
            raise ConnectionError("broker down")

        monkeypatch.setattr(notification_service, "send_order_confirmation", SimpleNamespace(delay=broken_delay))

        place(client, staff_headers, order_payload((lager, 1), amount_paid=800, customerEmail="guest@example.com"))

    def test_task_ignores_unknown_order(self):
        assert notification_service.send_order_confirmation(999999) is False


class TestManualResend:
    @pytest.fixture
    def order_id(self, client, staff_headers, lager):
        return place(client, staff_headers, order_payload((lager, 1), amount_paid=800))["id"]

    def test_resend(self, client, staff_headers, order_id, outbox):
        resp = client.post(f"/api/orders/{order_id}/send-email", headers=staff_headers)

        assert resp.status_code == 200
        assert outbox[0]["template"] == "order_confirmation"

    def test_resend_failure_is_503(self, app, client, monkeypatch, staff_headers, order_id):
        monkeypatch.setitem(app.config, "MAIL_SUPPRESS_SEND", False)
        monkeypatch.setitem(app.config, "SENDGRID_API_KEY", "")

        resp = client.post(f"/api/orders/{order_id}/send-email", headers=staff_headers)
        assert resp.status_code == 503

    def test_resend_without_email(self, client, db_session, staff_headers, order_id):
        db_session.get(Order, order_id).customer_email = None
        db_session.commit()

        resp = client.post(f"/api/orders/{order_id}/send-email", headers=staff_headers)
        assert resp.status_code == 400


class TestMailer:
    def test_missing_recipient(self, app):
        with pytest.raises(MailerError):
            Mailer().send("", "welcome", {})

    def test_render_subject(self, app):
        subject, html = Mailer().render("order_confirmation", {
            "order": Order(order_number="ORD-20240301-1234", receipt_number="REC-1-1"),
            "currency": "Frs",
            "subject_args": {"order_number": "ORD-20240301-1234"},
        })
        assert subject == "Your order ORD-20240301-1234"
        assert "REC-1-1" in html
