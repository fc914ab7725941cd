"""
Order Store tests.

Verifies:
- Order / receipt number formats and write-once numbers
- Number collisions are retried once with fresh numbers
- Version counter rejects stale writes; run_with_retry re-runs them
- Patch rules: open fields, administrator-only fields, immutable fields
- Hard delete and pending-sync bookkeeping
"""

import re

import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from drinkquick.enums import SyncStatus
from drinkquick.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientPaymentError,
    NotFoundError,
    ValidationError,
)
from drinkquick.models import Order
from drinkquick.services import order_service
from drinkquick.services.concurrency import run_with_retry
from drinkquick.services.order_service import LineSnapshot


def _lines(drink, quantity=1):
    return [LineSnapshot(drink.id, drink.name, quantity, drink.price)]


@pytest.fixture
def order(staff, lager):
    return order_service.create_order(staff, {"amount_paid": 2000}, _lines(lager, 2))


class TestNumbering:
    def test_generated_numbers_have_expected_shape(self, order):
        assert re.fullmatch(r"ORD-\d{8}-\d{4}", order.order_number)
        assert re.fullmatch(r"REC-\d{13}-\d{1,3}", order.receipt_number)

    def test_numbers_are_write_once(self, order):
        with pytest.raises(ValueError):
            order.order_number = "ORD-20200101-1000"
        with pytest.raises(ValueError):
            order.receipt_number = "REC-1-1"

    def test_reassigning_same_number_is_allowed(self, db_session, order):
        order.order_number = order.order_number
        db_session.commit()

    def test_collision_is_retried_with_fresh_number(self, monkeypatch, staff, lager, order):
        taken = order.order_number
        numbers = iter([taken, "ORD-20260101-2222"])
        monkeypatch.setattr(order_service, "generate_order_number", lambda prefix: next(numbers))

        second = order_service.create_order(staff, {"amount_paid": 800}, _lines(lager))

        assert second.order_number == "ORD-20260101-2222"

    def test_explicit_duplicate_number_conflicts(self, staff, lager, order):
        with pytest.raises(ConflictError):
            order_service.create_order(
                staff, {"amount_paid": 800}, _lines(lager), order_number=order.order_number,
            )


class TestConcurrency:
    def test_stale_write_is_rejected(self, db_session, order):
        assert order.notes is None  # load current row

        db_session.execute(
            text("UPDATE orders SET version_id = version_id + 1 WHERE id = :id"),
            {"id": order.id},
        )
        order.notes = "late edit"

        with pytest.raises(StaleDataError):
            db_session.flush()
        db_session.rollback()

    def test_run_with_retry_reruns_after_stale_data(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            return "ok"

        assert run_with_retry(flaky, backoff_base=0) == "ok"
        assert len(calls) == 2

    def test_run_with_retry_gives_up(self):
        def always_stale():
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(always_stale, attempts=2, backoff_base=0)

    def test_version_advances_on_update(self, staff, order):
        before = order.version_id
        updated = order_service.update_order(order.id, {"notes": "table 4"}, staff)
        assert updated.version_id == before + 1


class TestUpdateOrder:
    def test_owner_can_change_open_fields(self, staff, order):
        updated = order_service.update_order(
            order.id, {"status": "cancelled", "notes": "spilled", "receiptPrinted": True}, staff,
        )
        assert (updated.status, updated.notes, updated.receipt_printed) == ("cancelled", "spilled", True)

    def test_staff_cannot_change_money_fields(self, staff, order):
        with pytest.raises(ForbiddenError):
            order_service.update_order(order.id, {"discount": 100}, staff)

    def test_admin_change_recomputes_totals(self, admin, order):
        updated = order_service.update_order(order.id, {"discount": 100, "tax": 40}, admin)
        assert updated.subtotal == 1600
        assert updated.total_amount == 1540
        assert updated.balance == 460

    def test_admin_cannot_break_payment_invariant(self, db_session, admin, order):
        with pytest.raises(InsufficientPaymentError):
            order_service.update_order(order.id, {"amountPaid": 100}, admin)

        db_session.expire_all()
        assert db_session.get(Order, order.id).amount_paid == 2000

    @pytest.mark.parametrize("field", ["orderNumber", "receiptNumber", "totalAmount", "items", "ownerId"])
    def test_immutable_fields_are_rejected(self, admin, order, field):
        with pytest.raises(ValidationError) as exc_info:
            order_service.update_order(order.id, {field: "x"}, admin)
        assert exc_info.value.errors[0]["field"] == field

    def test_other_user_is_forbidden(self, other_staff, order):
        with pytest.raises(ForbiddenError):
            order_service.update_order(order.id, {"notes": "mine now"}, other_staff)

    def test_invalid_status_is_rejected(self, staff, order):
        with pytest.raises(ValidationError):
            order_service.update_order(order.id, {"status": "lost"}, staff)


class TestPurgeAndSyncFlags:
    def test_purge_requires_admin(self, staff, order):
        with pytest.raises(ForbiddenError):
            order_service.purge_order(order.id, staff)

    def test_purge_deletes_order_and_items(self, db_session, admin, order):
        order_id = order.id
        order_service.purge_order(order_id, admin)

        assert db_session.get(Order, order_id) is None
        assert db_session.execute(
            text("SELECT COUNT(*) FROM order_items WHERE order_id = :id"), {"id": order_id}
        ).scalar() == 0
        with pytest.raises(NotFoundError):
            order_service.purge_order(order_id, admin)

    def test_mark_synced_only_touches_own_orders(self, staff, other_staff, lager, make_drink):
        pending = order_service.create_order(
            staff, {"amount_paid": 800}, _lines(lager), sync_status=SyncStatus.PENDING.value,
        )
        theirs_drink = make_drink(other_staff, "Cola", 700, "Soft Drink")
        theirs = order_service.create_order(
            other_staff, {"amount_paid": 700}, _lines(theirs_drink), sync_status=SyncStatus.PENDING.value,
        )

        assert [o.id for o in order_service.list_pending_sync(staff)] == [pending.id]

        result = order_service.mark_synced([pending.id, theirs.id, 999999], staff)

        assert result == {"matched": 1, "modified": 1}
        assert order_service.list_pending_sync(staff) == []
        assert [o.id for o in order_service.list_pending_sync(other_staff)] == [theirs.id]

    def test_mark_synced_requires_a_list(self, staff):
        with pytest.raises(ValidationError):
            order_service.mark_synced("1,2", staff)


class TestDateRange:
    def test_date_only_end_includes_whole_day(self):
        start, end = order_service.parse_date_range("2026-03-01", "2026-03-01")
        assert (end - start).days == 1

    def test_bad_dates_are_rejected(self):
        with pytest.raises(ValidationError):
            order_service.parse_date_range("yesterday", None)
