"""
Offline sync tests.

Verifies:
- Every record of a batch lands in exactly one bucket
- Resubmitting an unchanged record is idempotent
- A newer server copy is reported as a conflict and left untouched
- Conflict resolution: keep_server, use_client, merge
"""

from datetime import datetime, timedelta

import pytest

from drinkquick.enums import SyncStatus
from drinkquick.models import Order
from drinkquick.services import order_service
from drinkquick.services.order_service import LineSnapshot
from drinkquick.time_utils import to_utc_z


T0 = datetime(2024, 3, 1, 12, 0, 0)

_numbers: dict[str, int] = {}


def _number_for(local_id: str) -> int:
    return _numbers.setdefault(local_id, 1000 + len(_numbers))


def offline_record(drink, *, local_id="local_1767225600000_abc123xyz", quantity=2, updated_at=T0, **extra):
    record = {
        "localId": local_id,
        "orderNumber": f"ORD-20240301-{_number_for(local_id)}",
        "receiptNumber": f"REC-1709294400000-{_number_for(local_id)}",
        "items": [{
            "drink": drink.id,
            "drinkName": drink.name,
            "quantity": quantity,
            "unitPrice": drink.price,
        }],
        "amountPaid": drink.price * quantity,
        "paymentMethod": "cash",
        "createdAt": to_utc_z(T0),
        "updatedAt": to_utc_z(updated_at),
    }
    record.update(extra)
    return record


def bulk(client, headers, records):
    resp = client.post("/api/orders/sync/bulk", json={"orders": records}, headers=headers)
    assert resp.status_code == 200, resp.json
    return resp.json["data"]


class TestBulkSync:
    def test_new_record_is_created_with_client_numbers(self, client, staff_headers, lager):
        record = offline_record(lager)
        data = bulk(client, staff_headers, [record])

        assert len(data["created"]) == 1
        created = data["created"][0]
        assert created["localId"] == record["localId"]
        assert created["orderNumber"] == record["orderNumber"]

        order = client.get(f"/api/orders/{created['serverId']}", headers=staff_headers).json["data"]["order"]
        assert order["receiptNumber"] == record["receiptNumber"]
        assert order["createdAt"] == record["createdAt"]
        assert order["updatedAt"] == record["updatedAt"]
        assert order["syncStatus"] == "synced"
        assert order["totalAmount"] == 1600

    def test_resubmission_is_idempotent(self, client, staff_headers, db_session, lager):
        record = offline_record(lager)

        first = bulk(client, staff_headers, [record])
        second = bulk(client, staff_headers, [record])

        assert len(first["created"]) == 1
        assert second["created"] == []
        assert second["conflicts"] == []
        assert second["updated"][0]["serverId"] == first["created"][0]["serverId"]
        assert db_session.query(Order).count() == 1

    def test_newer_server_copy_is_a_conflict(self, client, staff_headers, db_session, lager):
        newer = offline_record(lager, updated_at=T0 + timedelta(hours=1))
        bulk(client, staff_headers, [newer])

        stale = offline_record(lager, updated_at=T0, quantity=5, amountPaid=4000)
        data = bulk(client, staff_headers, [stale])

        assert data["updated"] == []
        conflict = data["conflicts"][0]
        assert conflict["conflict"] == "server_newer"
        assert conflict["serverData"]["items"][0]["quantity"] == 2

        db_session.expire_all()
        order = db_session.get(Order, conflict["serverId"])
        assert order.items[0].quantity == 2
        assert order.updated_at == T0 + timedelta(hours=1)

    def test_newer_client_copy_overwrites(self, client, staff_headers, db_session, lager):
        bulk(client, staff_headers, [offline_record(lager)])

        later = T0 + timedelta(minutes=30)
        data = bulk(client, staff_headers, [
            offline_record(lager, updated_at=later, quantity=3, amountPaid=3000, notes="refill"),
        ])

        updated = data["updated"][0]
        db_session.expire_all()
        order = db_session.get(Order, updated["serverId"])
        assert order.items[0].quantity == 3
        assert order.total_amount == 2400
        assert order.balance == 600
        assert order.notes == "refill"
        assert order.updated_at == later

    def test_match_by_order_number_echoes_submitted_local_id(self, client, staff_headers, lager):
        first = offline_record(lager, local_id="local_A")
        bulk(client, staff_headers, [first])

        resubmitted = offline_record(
            lager, local_id="local_B", orderNumber=first["orderNumber"], updated_at=T0 + timedelta(minutes=5),
        )
        data = bulk(client, staff_headers, [resubmitted])

        updated = data["updated"][0]
        assert updated["localId"] == "local_B"
        assert updated["serverLocalId"] == "local_A"
        assert updated["orderNumber"] == first["orderNumber"]

    def test_blank_customer_fields_fall_back_to_owner(self, client, staff_headers, db_session, staff, lager):
        bulk(client, staff_headers, [offline_record(lager, customerName="Walk-in")])

        data = bulk(client, staff_headers, [
            offline_record(lager, updated_at=T0 + timedelta(minutes=5), customerName=None, customerEmail=""),
        ])

        db_session.expire_all()
        order = db_session.get(Order, data["updated"][0]["serverId"])
        assert order.customer_name == staff.username
        assert order.customer_email == staff.email

    def test_every_record_lands_in_exactly_one_bucket(self, client, staff_headers, lager):
        bulk(client, staff_headers, [offline_record(lager, local_id="local_1_server", updated_at=T0 + timedelta(days=1))])

        records = [
            offline_record(lager, local_id="local_2_new"),
            offline_record(lager, local_id="local_1_server", updated_at=T0),
            offline_record(lager, local_id="local_3_empty", items=[]),
            offline_record(lager, local_id="local_4_underpaid", amountPaid=10),
            "not an object",
        ]
        data = bulk(client, staff_headers, records)

        assert len(data["created"]) == 1
        assert len(data["conflicts"]) == 1
        assert len(data["errors"]) == 3
        total = sum(len(data[bucket]) for bucket in ("created", "updated", "conflicts", "errors"))
        assert total == len(records)

        codes = {e["localId"]: e["code"] for e in data["errors"] if e["localId"]}
        assert codes == {"local_3_empty": "validation_error", "local_4_underpaid": "insufficient_payment"}

    def test_someone_elses_order_is_an_error(self, client, staff_headers, other_headers, lager, other_staff, make_drink):
        cola = make_drink(other_staff, "Cola", 700, "Soft Drink")
        bulk(client, other_headers, [offline_record(cola, local_id="local_theirs")])

        data = bulk(client, staff_headers, [offline_record(lager, local_id="local_theirs", updated_at=T0 + timedelta(days=1))])

        assert data["errors"][0]["code"] == "forbidden"

    def test_deactivated_drink_still_syncs(self, client, staff_headers, db_session, lager):
        lager.is_active = False
        db_session.commit()

        data = bulk(client, staff_headers, [offline_record(lager)])
        assert len(data["created"]) == 1

    def test_orders_must_be_a_list(self, client, staff_headers):
        resp = client.post("/api/orders/sync/bulk", json={"orders": {}}, headers=staff_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("path", ["/bulk", "/mark-synced", "/resolve-conflicts"])
    @pytest.mark.parametrize("body", [[{"x": 1}], "orders", 42])
    def test_body_must_be_an_object(self, client, staff_headers, path, body):
        resp = client.post(f"/api/orders/sync{path}", json=body, headers=staff_headers)

        assert resp.status_code == 400
        assert resp.json["message"] == "Invalid JSON payload"

    def test_requires_auth(self, client):
        assert client.post("/api/orders/sync/bulk", json={"orders": []}).status_code == 401


class TestResolveConflicts:
    @pytest.fixture
    def server_order_id(self, client, staff_headers, lager):
        data = bulk(client, staff_headers, [offline_record(lager, updated_at=T0 + timedelta(hours=1))])
        return data["created"][0]["serverId"]

    def resolve(self, client, headers, resolutions):
        resp = client.post("/api/orders/sync/resolve-conflicts", json={"resolutions": resolutions}, headers=headers)
        assert resp.status_code == 200, resp.json
        return resp.json["data"]

    def test_keep_server(self, client, staff_headers, server_order_id):
        results = self.resolve(client, staff_headers, [{"orderId": server_order_id, "resolution": "keep_server"}])
        assert results == [{"orderId": server_order_id, "status": "kept_server_version", "serverId": server_order_id}]

    def test_use_client_overwrites_everything(self, client, staff_headers, db_session, lager, server_order_id):
        data = offline_record(lager, quantity=4, amountPaid=3200, paymentMethod="card")
        results = self.resolve(client, staff_headers, [
            {"orderId": server_order_id, "resolution": "use_client", "data": data},
        ])

        assert results[0]["status"] == "updated_with_client_data"
        db_session.expire_all()
        order = db_session.get(Order, server_order_id)
        assert order.items[0].quantity == 4
        assert order.total_amount == 3200
        assert order.payment_method == "card"
        assert order.updated_at > T0 + timedelta(hours=1)

    def test_merge_patches_named_fields_only(self, client, staff_headers, db_session, server_order_id):
        results = self.resolve(client, staff_headers, [
            {"orderId": server_order_id, "resolution": "merge", "data": {"notes": "merged note"}},
        ])

        assert results[0]["status"] == "merged"
        db_session.expire_all()
        order = db_session.get(Order, server_order_id)
        assert order.notes == "merged note"
        assert order.items[0].quantity == 2

    def test_unknown_and_invalid_entries(self, client, staff_headers, other_headers, server_order_id):
        results = self.resolve(client, other_headers, [
            {"orderId": server_order_id, "resolution": "keep_server"},
            {"orderId": server_order_id, "resolution": "flip_a_coin"},
        ])

        assert results[0]["status"] == "not_found"
        assert results[1]["status"] == "error"


class TestPendingAndMarkSynced:
    def test_mark_synced_endpoint(self, client, staff_headers, staff, lager):
        order = order_service.create_order(
            staff, {"amount_paid": 800}, [LineSnapshot(lager.id, lager.name, 1, 800)],
            sync_status=SyncStatus.PENDING.value,
        )

        pending = client.get("/api/orders/sync/pending", headers=staff_headers).json["data"]
        assert pending["count"] == 1

        resp = client.post("/api/orders/sync/mark-synced", json={"orderIds": [order.id]}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["data"] == {"matched": 1, "modified": 1}

        pending = client.get("/api/orders/sync/pending", headers=staff_headers).json["data"]
        assert pending["count"] == 0
