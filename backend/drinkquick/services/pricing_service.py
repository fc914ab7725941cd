# Overview: Pricing and order assembly; turns a raw cart into a persisted, paid Order.

"""
Pricing & Order Assembler

assemble_order validates the cart, prices every line from the owner's
catalog, applies discount and tax, and refuses underpayment before anything
is written. The Order Store then persists the result in a single commit.

    line_total = unit_price * quantity
    subtotal   = sum(line_total)
    total      = subtotal - discount + tax
    balance    = amount_paid - total      (must be >= 0)
"""

from __future__ import annotations

import logging

from ..errors import InsufficientPaymentError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Drink, Order, User
from ..validation import ORDER_CREATE_POLICY, ItemRequest, parse_items, validate_payload
from . import notification_service, order_service
from .order_service import LineSnapshot


logger = logging.getLogger(__name__)


def resolve_lines(
    owner: User,
    requests: list[ItemRequest],
    *,
    trust_snapshot: bool = False,
    allow_inactive: bool = False,
) -> list[LineSnapshot]:
    """
    Price each requested line against the owner's catalog.

    trust_snapshot keeps a client-captured unit price and name (records
    built offline); otherwise the current catalog price is used. Inactive
    drinks cannot be sold unless allow_inactive is set.

    Raises NotFoundError for the first drink that is missing or not sellable.
    """
    ids = {r.drink_id for r in requests}
    drinks = {
        d.id: d
        for d in db.session.query(Drink).filter(Drink.owner_id == owner.id, Drink.id.in_(ids))
    }

    lines = []
    for req in requests:
        drink = drinks.get(req.drink_id)
        if drink is None or (not drink.is_active and not allow_inactive):
            raise NotFoundError(
                f"Drink with ID {req.drink_id} not found",
                details={"drinkId": req.drink_id},
            )

        unit_price = drink.price
        name = drink.name
        if trust_snapshot:
            if req.unit_price is not None:
                unit_price = req.unit_price
            if req.drink_name:
                name = req.drink_name

        lines.append(LineSnapshot(drink.id, name, req.quantity, unit_price))
    return lines


def compute_totals(lines: list[LineSnapshot], discount: int = 0, tax: int = 0) -> tuple[int, int]:
    """Return (subtotal, total_amount)."""
    subtotal = sum(line.line_total for line in lines)
    if discount > subtotal + tax:
        raise ValidationError.for_field("discount", "Discount cannot exceed subtotal plus tax")
    return subtotal, subtotal - discount + tax


def assemble_order(owner: User, payload) -> Order:
    """
    Validate, price and persist a new order for owner.

    Raises:
        ValidationError: malformed payload or cart
        NotFoundError: unknown or inactive drink
        InsufficientPaymentError: amountPaid below the computed total
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []
    fields: dict = {}
    requests: list[ItemRequest] = []
    try:
        fields = validate_payload(payload, ORDER_CREATE_POLICY, partial=False)
    except ValidationError as exc:
        errors.extend(exc.errors)
    try:
        requests = parse_items(payload.get("items"))
    except ValidationError as exc:
        errors.extend(exc.errors)
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    lines = resolve_lines(owner, requests)
    _, total = compute_totals(lines, fields.get("discount", 0), fields.get("tax", 0))

    paid = fields["amount_paid"]
    if paid < total:
        raise InsufficientPaymentError(required=total, paid=paid)

    order = order_service.create_order(owner, fields, lines)
    logger.info("Order %s created for user %s (total=%s)", order.order_number, owner.id, order.total_amount)

    # Only an explicitly given customer email triggers a confirmation
    if fields.get("customer_email"):
        notification_service.queue_order_confirmation(order.id)

    return order
