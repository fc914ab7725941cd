# Overview: Service-layer operations for orders (the Order Store); encapsulates business logic and database work.

"""
Order Store

Owns the Order aggregate and its invariants:

- subtotal / total_amount / balance are derived from the item snapshot plus
  discount, tax and amount_paid on every write; client totals are ignored.
- balance never goes negative (amount_paid >= total_amount) and discount
  never exceeds subtotal + tax.
- order_number and receipt_number are unique and never change once set.
- an order is visible to its owner and to Administrators; anyone else gets
  ForbiddenError.
- deletion is a hard delete and Administrator-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..enums import NON_REVENUE_STATUSES, OrderStatus, SyncStatus
from ..errors import (
    ConflictError,
    DrinkQuickError,
    ForbiddenError,
    InsufficientPaymentError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Order, OrderItem, User
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow
from ..validation import ORDER_UPDATE_POLICY, validate_payload
from .concurrency import run_with_retry
from .numbering_service import generate_local_id, generate_order_number, generate_receipt_number
from .pagination import paginate, parse_sort


logger = logging.getLogger(__name__)

# Any permitted actor may patch these
OPEN_UPDATE_ATTRS = frozenset({"status", "notes", "receipt_printed"})

# Fall back to the owner's own name and email when left blank
OWNER_DEFAULT_ATTRS = frozenset({"customer_name", "customer_email"})

# Never patchable through update_order
IMMUTABLE_ORDER_FIELDS = frozenset({
    "items", "orderNumber", "receiptNumber", "owner", "ownerId", "user",
    "subtotal", "totalAmount", "balance",
})

SORTABLE_COLUMNS = {
    "createdAt": Order.created_at,
    "updatedAt": Order.updated_at,
    "totalAmount": Order.total_amount,
    "orderNumber": Order.order_number,
    "status": Order.status,
    "customerName": Order.customer_name,
}


@dataclass
class LineSnapshot:
    """A priced cart line, frozen into an OrderItem."""
    drink_id: int
    drink_name: str
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


def can_access(order: Order, actor: User) -> bool:
    return order.owner_id == actor.id or actor.is_admin


def get_order(order_id: int, actor: User) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found", details={"orderId": order_id})
    if not can_access(order, actor):
        raise ForbiddenError("Not authorized to access this order")
    return order


def build_items(lines: list[LineSnapshot]) -> list[OrderItem]:
    return [
        OrderItem(
            position=position,
            drink_id=line.drink_id,
            drink_name=line.drink_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total,
        )
        for position, line in enumerate(lines)
    ]


def replace_items(order: Order, lines: list[LineSnapshot]) -> None:
    """Swap the item snapshot, keeping the existing rows when nothing changed."""
    current = [(i.drink_id, i.drink_name, i.quantity, i.unit_price) for i in order.items]
    incoming = [(l.drink_id, l.drink_name, l.quantity, l.unit_price) for l in lines]
    if current != incoming:
        order.items = build_items(lines)


def check_amounts(order: Order) -> None:
    """Enforce the money invariants on a recomputed order."""
    if (order.discount or 0) > order.subtotal + (order.tax or 0):
        raise ValidationError.for_field("discount", "Discount cannot exceed subtotal plus tax")
    if order.balance < 0:
        raise InsufficientPaymentError(required=order.total_amount, paid=order.amount_paid or 0)


def apply_order_fields(order: Order, fields: dict) -> None:
    for attr, value in fields.items():
        if attr in ("order_number", "receipt_number", "owner_id", "id"):
            continue
        setattr(order, attr, value)


def without_blank_customer(fields: dict) -> dict:
    return {k: v for k, v in fields.items() if not (k in OWNER_DEFAULT_ATTRS and v is None)}


def _is_number_collision(exc: IntegrityError) -> bool:
    text = str(exc.orig).lower()
    return "order_number" in text or "receipt_number" in text


def create_order(
    owner: User,
    fields: dict,
    lines: list[LineSnapshot],
    *,
    order_number: str | None = None,
    receipt_number: str | None = None,
    sync_status: str = SyncStatus.SYNCED.value,
) -> Order:
    """
    Persist a new order in one transaction.

    Numbers the caller does not supply are generated here. If the insert
    trips the uniqueness constraint on a generated number, fresh numbers
    are drawn and the insert is retried exactly once.

    Raises:
        InsufficientPaymentError: amount_paid < total_amount
        ValidationError: discount exceeds subtotal + tax
        ConflictError: number or localId already taken
    """
    if not lines:
        raise ValidationError.for_field("items", "Order must have at least one item")

    config = current_app.config
    generated = order_number is None or receipt_number is None

    for attempt in range(2):
        order = Order(
            owner_id=owner.id,
            order_number=order_number or generate_order_number(config["ORDER_NUMBER_PREFIX"]),
            receipt_number=receipt_number or generate_receipt_number(config["RECEIPT_NUMBER_PREFIX"]),
            customer_name=owner.username,
            customer_email=owner.email,
            sync_status=sync_status,
            last_synced_at=utcnow(),
        )
        apply_order_fields(order, without_blank_customer(fields))
        if not order.client_local_id:
            order.client_local_id = generate_local_id()

        order.items = build_items(lines)
        order.recompute_totals()
        check_amounts(order)

        db.session.add(order)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if attempt == 0 and generated and _is_number_collision(exc):
                logger.warning("Order number collision for user %s, regenerating", owner.id)
                continue
            if _is_number_collision(exc):
                raise ConflictError("Order number or receipt number already exists")
            if "client_local_id" in str(exc.orig).lower():
                raise ConflictError("Order with this localId already exists")
            raise
        return order

    raise ConflictError("Could not allocate a unique order number")


def update_order(order_id: int, payload, actor: User) -> Order:
    """
    Patch an order.

    status, notes and receiptPrinted are open to the owner and to
    Administrators. Other mutable fields require the Administrator role.
    Immutable fields are rejected outright. Totals are recomputed after
    the patch and must still satisfy the payment invariant.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    immutable = sorted(k for k in payload if k in IMMUTABLE_ORDER_FIELDS)
    if immutable:
        raise ValidationError(
            "Cannot modify immutable order fields",
            errors=[{"field": k, "message": f"{k} cannot be modified"} for k in immutable],
        )

    patch = validate_payload(payload, ORDER_UPDATE_POLICY, partial=True)

    def _op():
        order = get_order(order_id, actor)
        restricted = sorted(set(patch) - OPEN_UPDATE_ATTRS)
        if restricted and not actor.is_admin:
            raise ForbiddenError(
                "Only administrators can modify these fields",
                details={"fields": restricted},
            )

        try:
            apply_order_fields(order, patch)
            order.recompute_totals()
            check_amounts(order)
        except DrinkQuickError:
            db.session.rollback()
            raise
        db.session.commit()
        return order

    return run_with_retry(_op)


def purge_order(order_id: int, actor: User) -> None:
    """Hard delete; Administrator only."""
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found", details={"orderId": order_id})
    if not actor.is_admin:
        raise ForbiddenError("Not authorized to delete orders")

    order_number = order.order_number
    db.session.delete(order)
    db.session.commit()
    logger.info("Order %s (%s) deleted by user %s", order_id, order_number, actor.id)


def scoped_orders(actor: User, *, all_owners: bool = False):
    """Orders visible to the actor: own orders, or everything for admins asking for it."""
    q = db.session.query(Order)
    if actor.is_admin and all_owners:
        return q
    return q.filter(Order.owner_id == actor.id)


def revenue_summary(query) -> dict:
    """
    Order count, revenue and average order value over an Order query.

    Cancelled and refunded orders are left out.
    """
    row = (
        query.filter(Order.status.notin_(NON_REVENUE_STATUSES))
        .order_by(None)
        .with_entities(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
        .one()
    )
    count, revenue = int(row[0]), int(row[1])
    return {
        "totalOrders": count,
        "totalRevenue": revenue,
        "avgOrderValue": round(revenue / count, 2) if count else 0,
    }


def parse_date_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    """
    Parse startDate/endDate query values into [start, end) UTC bounds.

    A date-only endDate (YYYY-MM-DD) includes that whole day.
    """
    try:
        start_dt = parse_iso_datetime(start)
        end_dt = parse_iso_datetime(end)
    except ValueError:
        raise ValidationError("startDate and endDate must be ISO-8601 dates")

    if end_dt is not None and end and len(end.strip()) == 10:
        end_dt = end_dt + timedelta(days=1)
    elif end_dt is not None:
        end_dt = end_dt + timedelta(microseconds=1)
    return start_dt, end_dt


def _validate_status(status: str) -> str:
    if status not in OrderStatus.values():
        raise ValidationError.for_field(
            "status", f"Invalid status. Must be one of: {', '.join(OrderStatus.values())}"
        )
    return status


def list_orders(
    actor: User,
    *,
    page: int,
    limit: int,
    status: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    sort: str | None = None,
    all_owners: bool = False,
) -> dict:
    q = scoped_orders(actor, all_owners=all_owners)
    if status:
        q = q.filter(Order.status == _validate_status(status))

    start_dt, end_dt = parse_date_range(start_date, end_date)
    if start_dt is not None:
        q = q.filter(Order.created_at >= start_dt)
    if end_dt is not None:
        q = q.filter(Order.created_at < end_dt)

    stats = revenue_summary(q)
    q = q.order_by(parse_sort(sort, SORTABLE_COLUMNS, "-createdAt"), Order.id.desc())
    orders, pagination = paginate(q, page, limit)

    return {
        "orders": [o.to_dict() for o in orders],
        "pagination": pagination,
        "stats": stats,
    }


def orders_by_date_range(actor: User, start: str | None, end: str | None) -> dict:
    if not start or not end:
        raise ValidationError("startDate and endDate are required")

    start_dt, end_dt = parse_date_range(start, end)
    q = scoped_orders(actor).filter(Order.created_at >= start_dt, Order.created_at < end_dt)
    orders = q.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return {
        "orders": [o.to_dict() for o in orders],
        "summary": revenue_summary(q),
    }


def orders_by_status(actor: User, status: str) -> dict:
    q = scoped_orders(actor).filter(Order.status == _validate_status(status))
    orders = q.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return {"orders": [o.to_dict() for o in orders], "count": len(orders)}


def list_pending_sync(actor: User) -> list[Order]:
    return (
        db.session.query(Order)
        .filter(Order.owner_id == actor.id, Order.sync_status == SyncStatus.PENDING.value)
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )


def mark_synced(order_ids, actor: User) -> dict:
    """
    Flag the actor's own orders as synced.

    Ids that are unknown or belong to someone else are ignored. Returns
    matched/modified counts.
    """
    if not isinstance(order_ids, list):
        raise ValidationError.for_field("orderIds", "orderIds must be an array")
    ids = []
    for raw in order_ids:
        if isinstance(raw, bool) or not isinstance(raw, (int, str)) or not str(raw).isdigit():
            raise ValidationError.for_field("orderIds", "orderIds must contain integer ids")
        ids.append(int(raw))

    def _op():
        orders = []
        if ids:
            orders = (
                db.session.query(Order)
                .filter(Order.owner_id == actor.id, Order.id.in_(ids))
                .all()
            )
        now = utcnow()
        modified = 0
        for order in orders:
            if order.sync_status != SyncStatus.SYNCED.value:
                order.sync_status = SyncStatus.SYNCED.value
                modified += 1
            order.last_synced_at = now
        db.session.commit()
        return {"matched": len(orders), "modified": modified}

    return run_with_retry(_op)


def generate_invoice(order_id: int, actor: User) -> dict:
    """Mark the receipt as printed and return the data an invoice is drawn from."""
    def _op():
        order = get_order(order_id, actor)
        if not order.receipt_printed:
            order.receipt_printed = True
            db.session.commit()
        return order

    order = run_with_retry(_op)
    return {
        "order": order.to_dict(),
        "invoiceData": {
            "invoiceNumber": order.receipt_number,
            "orderNumber": order.order_number,
            "date": to_utc_z(order.created_at),
            "customer": order.customer_name or order.owner.username,
            "items": [item.to_dict() for item in order.items],
            "itemCount": order.total_quantity,
            "subtotal": order.subtotal,
            "discount": order.discount,
            "tax": order.tax,
            "total": order.total_amount,
            "amountPaid": order.amount_paid,
            "balance": order.balance,
            "paymentMethod": order.payment_method,
            "currency": current_app.config.get("CURRENCY", "Frs"),
        },
    }
