# Overview: Offline order sync; reconciles client batches against the Order Store.

"""
Sync Reconciler

Each record of a batch is reconciled on its own, in its own transaction:

1. look up an existing order by localId, then by orderNumber
2. nothing found            -> create it                       -> created
3. server updatedAt is newer -> leave it, return server copy   -> conflicts
4. otherwise                -> overwrite with the client copy  -> updated
5. anything raised          -> report it for that record only  -> errors

Every input record lands in exactly one bucket. Writes go through the
Order's version counter; a stale write is retried from a fresh read, so the
timestamp comparison is always made against the row actually overwritten.

Conflicts left for the operator are settled through resolve_conflicts
(keep_server / use_client / merge).
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm.attributes import flag_modified

from ..enums import OrderStatus, PaymentMethod, SyncResolution, SyncStatus
from ..errors import DrinkQuickError, ForbiddenError, ValidationError
from ..extensions import db
from ..models import Order, User
from ..time_utils import utcnow
from ..validation import (
    ORDER_MERGE_POLICY,
    ORDER_SYNC_POLICY,
    coerce_positive_int,
    parse_items,
    validate_payload,
)
from . import order_service, pricing_service
from .concurrency import run_with_retry


logger = logging.getLogger(__name__)

# Attributes the server keeps when a client copy overwrites an order
SERVER_OWNED_ATTRS = frozenset({"order_number", "receipt_number", "created_at", "updated_at", "client_local_id"})


def _find_existing(local_id: str | None, order_number: str | None) -> Order | None:
    order = None
    if local_id:
        order = db.session.query(Order).filter(Order.client_local_id == local_id).first()
    if order is None and order_number:
        order = db.session.query(Order).filter(Order.order_number == order_number).first()
    return order


def _client_lines(owner: User, raw_items):
    requests = parse_items(raw_items, allow_snapshot=True)
    return pricing_service.resolve_lines(owner, requests, trust_snapshot=True, allow_inactive=True)


def _validate_record(record, policy) -> dict:
    """Validate fields and items together so all problems are reported at once."""
    if not isinstance(record, dict):
        raise ValidationError("Order record must be an object")

    errors: list[dict] = []
    fields: dict = {}
    try:
        fields = validate_payload(record, policy, partial=False)
    except ValidationError as exc:
        errors.extend(exc.errors)
    try:
        parse_items(record.get("items"), allow_snapshot=True)
    except ValidationError as exc:
        errors.extend(exc.errors)
    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return fields


def _stamp_synced(order: Order, updated_at: datetime) -> None:
    order.sync_status = SyncStatus.SYNCED.value
    order.last_synced_at = utcnow()
    order.updated_at = updated_at
    # An equal timestamp must still be written, or onupdate would replace it
    flag_modified(order, "updated_at")


def overwrite_order(order: Order, fields: dict, lines, *, updated_at: datetime) -> None:
    """
    Replace the client-editable state of order with a client copy.

    Fields the copy leaves out fall back to their creation defaults. Numbers,
    createdAt and the owner stay as they are.
    """
    owner = order.owner
    data = {
        "customer_name": owner.username,
        "customer_email": owner.email,
        "discount": 0,
        "tax": 0,
        "notes": None,
        "status": OrderStatus.COMPLETED.value,
        "payment_method": PaymentMethod.CASH.value,
    }
    data.update({
        k: v for k, v in order_service.without_blank_customer(fields).items() if k not in SERVER_OWNED_ATTRS
    })

    order_service.apply_order_fields(order, data)
    if fields.get("client_local_id") and not order.client_local_id:
        order.client_local_id = fields["client_local_id"]
    order_service.replace_items(order, lines)
    order.recompute_totals()
    order_service.check_amounts(order)
    _stamp_synced(order, updated_at)


def _outcome(local_id: str | None, order: Order) -> dict:
    """Echo the submitted localId next to the server's identifiers for the record."""
    return {
        "localId": local_id,
        "serverLocalId": order.client_local_id,
        "serverId": order.id,
        "orderNumber": order.order_number,
    }


def _sync_one(actor: User, record) -> tuple[str, dict]:
    fields = _validate_record(record, ORDER_SYNC_POLICY)
    local_id = fields.get("client_local_id")
    existing = _find_existing(local_id, fields.get("order_number"))

    if existing is None:
        lines = _client_lines(actor, record["items"])
        order = order_service.create_order(
            actor,
            {k: v for k, v in fields.items() if k not in ("order_number", "receipt_number")},
            lines,
            order_number=fields.get("order_number"),
            receipt_number=fields.get("receipt_number"),
        )
        return "created", _outcome(local_id, order)

    if not order_service.can_access(existing, actor):
        raise ForbiddenError("Order belongs to another user")

    incoming_updated_at = fields.get("updated_at")
    if incoming_updated_at is None:
        raise ValidationError.for_field("updatedAt", "updatedAt is required to sync an existing order")

    if existing.updated_at > incoming_updated_at:
        return "conflicts", {
            **_outcome(local_id, existing),
            "conflict": "server_newer",
            "serverData": existing.to_dict(),
        }

    try:
        overwrite_order(existing, fields, _client_lines(existing.owner, record["items"]), updated_at=incoming_updated_at)
    except DrinkQuickError:
        db.session.rollback()
        raise
    db.session.commit()
    return "updated", _outcome(local_id, existing)


def sync_orders(actor: User, records) -> dict:
    """
    Reconcile a batch of offline order records.

    Returns {"created": [...], "updated": [...], "conflicts": [...], "errors": [...]}
    with exactly one entry per input record.
    """
    if not isinstance(records, list):
        raise ValidationError.for_field("orders", "orders must be an array")

    results = {"created": [], "updated": [], "conflicts": [], "errors": []}

    for record in records:
        ref = {
            "localId": record.get("localId") if isinstance(record, dict) else None,
            "orderNumber": record.get("orderNumber") if isinstance(record, dict) else None,
        }
        try:
            bucket, entry = run_with_retry(lambda: _sync_one(actor, record))
        except DrinkQuickError as exc:
            db.session.rollback()
            results["errors"].append({**ref, "error": exc.message, "code": exc.code})
            continue
        except Exception:
            db.session.rollback()
            logger.exception("Unexpected error syncing order record %s", ref)
            results["errors"].append({**ref, "error": "Internal server error", "code": "error"})
            continue
        results[bucket].append(entry)

    logger.info(
        "Sync batch for user %s: %d created, %d updated, %d conflicts, %d errors",
        actor.id, len(results["created"]), len(results["updated"]),
        len(results["conflicts"]), len(results["errors"]),
    )
    return results


def _resolve_one(actor: User, entry) -> dict:
    if not isinstance(entry, dict):
        raise ValidationError("Resolution must be an object")

    order_id = coerce_positive_int("orderId", entry.get("orderId"))
    action = entry.get("resolution")
    if action not in SyncResolution.values():
        raise ValidationError.for_field(
            "resolution", f"Invalid resolution. Must be one of: {', '.join(SyncResolution.values())}"
        )

    order = db.session.get(Order, order_id)
    if not order or not order_service.can_access(order, actor):
        return {"orderId": order_id, "status": "not_found", "error": "Order not found"}

    if action == SyncResolution.KEEP_SERVER:
        return {"orderId": order_id, "status": "kept_server_version", "serverId": order.id}

    data = entry.get("data") or {}
    if not isinstance(data, dict):
        raise ValidationError.for_field("data", "data must be an object")

    try:
        if action == SyncResolution.USE_CLIENT:
            fields = _validate_record(data, ORDER_SYNC_POLICY)
            overwrite_order(order, fields, _client_lines(order.owner, data["items"]), updated_at=utcnow())
            status = "updated_with_client_data"
        else:
            fields = validate_payload(data, ORDER_MERGE_POLICY, partial=True)
            order_service.apply_order_fields(order, fields)
            if "items" in data:
                order_service.replace_items(order, _client_lines(order.owner, data["items"]))
            order.recompute_totals()
            order_service.check_amounts(order)
            _stamp_synced(order, utcnow())
            status = "merged"
    except DrinkQuickError:
        db.session.rollback()
        raise

    db.session.commit()
    return {"orderId": order_id, "status": status, "serverId": order.id}


def resolve_conflicts(actor: User, resolutions) -> list[dict]:
    """
    Apply operator decisions to conflicted orders, one entry at a time.

    Each entry yields {orderId, status} with status one of
    kept_server_version, updated_with_client_data, merged, not_found, error.
    """
    if not isinstance(resolutions, list):
        raise ValidationError.for_field("resolutions", "resolutions must be an array")

    results = []
    for entry in resolutions:
        order_id = entry.get("orderId") if isinstance(entry, dict) else None
        try:
            results.append(run_with_retry(lambda: _resolve_one(actor, entry)))
        except DrinkQuickError as exc:
            db.session.rollback()
            results.append({"orderId": order_id, "status": "error", "error": exc.message})
        except Exception:
            db.session.rollback()
            logger.exception("Unexpected error resolving conflict for order %s", order_id)
            results.append({"orderId": order_id, "status": "error", "error": "Internal server error"})
    return results
