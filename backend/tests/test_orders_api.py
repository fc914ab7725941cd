"""
Orders API tests.

Verifies:
- Create returns 201 with server-computed totals; underpayment is a 400
- Visibility: owner and Administrators only
- Hard delete is Administrator-only
- Listing, filters, invoice
"""

import pytest

from conftest import order_payload
from drinkquick.models import Order


def place(client, headers, payload):
    return client.post("/api/orders", json=payload, headers=headers)


@pytest.fixture
def order_id(client, staff_headers, lager):
    resp = place(client, staff_headers, order_payload((lager, 2), amount_paid=2000))
    assert resp.status_code == 201, resp.json
    return resp.json["data"]["order"]["id"]


class TestCreateOrder:
    def test_create(self, client, staff_headers, staff, lager, merlot):
        resp = place(client, staff_headers, order_payload(
            (lager, 2), (merlot, 1),
            amount_paid=5000,
            discount=100,
            tax=50,
            paymentMethod="card",
            totalAmount=1,
        ))

        assert resp.status_code == 201
        order = resp.json["data"]["order"]
        assert order["subtotal"] == 4600
        assert order["totalAmount"] == 4550
        assert order["balance"] == 450
        assert order["paymentMethod"] == "card"
        assert order["status"] == "completed"
        assert order["ownerId"] == staff.id
        assert [i["drinkName"] for i in order["items"]] == ["Lager", "Merlot"]

    def test_underpayment(self, client, db_session, staff_headers, lager):
        resp = place(client, staff_headers, order_payload((lager, 2), amount_paid=1000))

        assert resp.status_code == 400
        assert resp.json["code"] == "insufficient_payment"
        assert resp.json["message"] == "Insufficient payment. Required: 1600, Paid: 1000"
        assert (resp.json["required"], resp.json["paid"]) == (1600, 1000)
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize("customer", [
        {"customerName": None, "customerEmail": ""},
        {"customerName": "   ", "customerEmail": None},
    ])
    def test_blank_customer_falls_back_to_owner(self, client, staff_headers, staff, lager, outbox, customer):
        resp = place(client, staff_headers, order_payload((lager, 1), amount_paid=800, **customer))

        assert resp.status_code == 201
        order = resp.json["data"]["order"]
        assert order["customerName"] == staff.username
        assert order["customerEmail"] == staff.email
        assert outbox == []

    def test_unknown_drink_is_404(self, client, staff_headers):
        resp = place(client, staff_headers, {"items": [{"drink": 424242, "quantity": 1}], "amountPaid": 10})
        assert resp.status_code == 404
        assert resp.json["message"] == "Drink with ID 424242 not found"

    def test_invalid_body(self, client, staff_headers):
        resp = client.post("/api/orders", data="not json", headers=staff_headers)
        assert resp.status_code == 400

    def test_requires_auth(self, client):
        assert client.post("/api/orders", json={}).status_code == 401


class TestOrderAccess:
    def test_owner_and_admin_can_read(self, client, staff_headers, admin_headers, order_id):
        assert client.get(f"/api/orders/{order_id}", headers=staff_headers).status_code == 200
        assert client.get(f"/api/orders/{order_id}", headers=admin_headers).status_code == 200

    def test_other_user_is_forbidden(self, client, other_headers, order_id):
        resp = client.get(f"/api/orders/{order_id}", headers=other_headers)
        assert resp.status_code == 403

    def test_missing_order(self, client, staff_headers):
        assert client.get("/api/orders/999999", headers=staff_headers).status_code == 404

    def test_staff_cannot_delete(self, client, staff_headers, order_id):
        resp = client.delete(f"/api/orders/{order_id}", headers=staff_headers)
        assert resp.status_code == 403

    def test_admin_deletes(self, client, admin_headers, order_id):
        assert client.delete(f"/api/orders/{order_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/orders/{order_id}", headers=admin_headers).status_code == 404

    def test_update_status(self, client, staff_headers, order_id):
        resp = client.put(f"/api/orders/{order_id}", json={"status": "refunded"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["order"]["status"] == "refunded"

    def test_update_immutable_field(self, client, admin_headers, order_id):
        resp = client.put(f"/api/orders/{order_id}", json={"orderNumber": "ORD-1"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_staff_cannot_touch_payment(self, client, staff_headers, order_id):
        resp = client.put(f"/api/orders/{order_id}", json={"amountPaid": 5000}, headers=staff_headers)
        assert resp.status_code == 403


class TestListing:
    @pytest.fixture
    def orders(self, client, staff_headers, lager):
        ids = []
        for quantity in (1, 2, 3):
            resp = place(client, staff_headers, order_payload((lager, quantity), amount_paid=800 * quantity))
            ids.append(resp.json["data"]["order"]["id"])
        client.put(f"/api/orders/{ids[0]}", json={"status": "cancelled"}, headers=staff_headers)
        return ids

    def test_list_with_pagination_and_stats(self, client, staff_headers, orders):
        data = client.get("/api/orders?limit=2", headers=staff_headers).json["data"]

        assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert [o["id"] for o in data["orders"]] == [orders[2], orders[1]]
        assert data["stats"]["totalRevenue"] == 800 * 5
        assert data["stats"]["totalOrders"] == 2

    def test_sort_by_total(self, client, staff_headers, orders):
        data = client.get("/api/orders?sort=totalAmount", headers=staff_headers).json["data"]
        assert [o["totalAmount"] for o in data["orders"]] == [800, 1600, 2400]

    def test_status_filter(self, client, staff_headers, orders):
        data = client.get("/api/orders/filter/status/cancelled", headers=staff_headers).json["data"]
        assert data["count"] == 1
        assert data["orders"][0]["id"] == orders[0]

        assert client.get("/api/orders/filter/status/lost", headers=staff_headers).status_code == 400

    def test_date_filter(self, client, staff_headers, orders):
        resp = client.get("/api/orders/filter/date?startDate=2000-01-01&endDate=2999-12-31", headers=staff_headers)
        data = resp.json["data"]
        assert len(data["orders"]) == 3
        assert data["summary"]["totalRevenue"] == 4000

        empty = client.get("/api/orders/filter/date?startDate=2000-01-01&endDate=2000-01-02", headers=staff_headers)
        assert empty.json["data"]["orders"] == []

        assert client.get("/api/orders/filter/date", headers=staff_headers).status_code == 400

    def test_admin_can_list_all_owners(self, client, admin_headers, orders):
        own = client.get("/api/orders", headers=admin_headers).json["data"]
        assert own["pagination"]["total"] == 0

        everything = client.get("/api/orders?all=true", headers=admin_headers).json["data"]
        assert everything["pagination"]["total"] == 3

    def test_bad_page(self, client, staff_headers):
        assert client.get("/api/orders?page=abc", headers=staff_headers).status_code == 400


def test_invoice_marks_receipt_printed(client, staff_headers, order_id):
    resp = client.post(f"/api/orders/{order_id}/invoice", headers=staff_headers)

    assert resp.status_code == 200
    data = resp.json["data"]
    assert data["order"]["receiptPrinted"] is True
    invoice = data["invoiceData"]
    assert invoice["invoiceNumber"] == data["order"]["receiptNumber"]
    assert invoice["itemCount"] == 2
    assert invoice["total"] == 1600
    assert invoice["balance"] == 400
    assert invoice["currency"] == "Frs"
    assert invoice["customer"] == "staff_a"
