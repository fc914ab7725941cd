# Overview: Service-layer operations for the drink catalog; encapsulates business logic and database work.

"""
Drink Catalog Service

Every drink belongs to exactly one owner and is only visible to and mutable
by that owner. Names are unique per owner. Drinks are never hard-deleted:
past orders reference them, so removal is deactivation.
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, DrinkQuickError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Drink, User
from ..time_utils import utcnow
from ..validation import DRINK_POLICY, coerce_positive_int, validate_payload
from .concurrency import run_with_retry
from .numbering_service import generate_local_id
from .pagination import paginate, parse_sort


logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "name": Drink.name,
    "price": Drink.price,
    "category": Drink.category,
    "createdAt": Drink.created_at,
    "updatedAt": Drink.updated_at,
}


def _owned_query(owner: User):
    return db.session.query(Drink).filter(Drink.owner_id == owner.id)


def _require_unique_name(owner: User, name: str, exclude_id: int | None = None) -> None:
    q = _owned_query(owner).filter(func.lower(Drink.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Drink.id != exclude_id)
    if db.session.query(q.exists()).scalar():
        raise ConflictError("Drink with this name already exists")


def _require_unique_local_id(local_id: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Drink).filter(Drink.client_local_id == local_id)
    if exclude_id is not None:
        q = q.filter(Drink.id != exclude_id)
    if db.session.query(q.exists()).scalar():
        raise ConflictError("A drink with this localId already exists")


def _commit_or_conflict() -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Drink with this name already exists")


def get_drink(owner: User, drink_id: int) -> Drink:
    drink = _owned_query(owner).filter(Drink.id == drink_id).first()
    if not drink:
        raise NotFoundError("Drink not found", details={"drinkId": drink_id})
    return drink


def create_drink(owner: User, payload: dict) -> Drink:
    """
    Create a drink from a raw JSON payload.

    Raises:
        ValidationError: payload fails DRINK_POLICY
        ConflictError: the owner already has a drink with this name
    """
    patch = validate_payload(payload, DRINK_POLICY, partial=False)
    _require_unique_name(owner, patch["name"])

    local_id = patch.pop("client_local_id", None) or generate_local_id()
    _require_unique_local_id(local_id)

    drink = Drink(owner_id=owner.id, client_local_id=local_id, last_synced_at=utcnow())
    for attr, value in patch.items():
        setattr(drink, attr, value)

    db.session.add(drink)
    _commit_or_conflict()
    return drink


def update_drink(owner: User, drink_id: int, payload: dict) -> Drink:
    drink = get_drink(owner, drink_id)
    patch = validate_payload(payload, DRINK_POLICY, partial=True)

    if "name" in patch and patch["name"].lower() != drink.name.lower():
        _require_unique_name(owner, patch["name"], exclude_id=drink.id)
    if patch.get("client_local_id") and patch["client_local_id"] != drink.client_local_id:
        _require_unique_local_id(patch["client_local_id"], exclude_id=drink.id)
    elif "client_local_id" in patch:
        patch.pop("client_local_id")

    for attr, value in patch.items():
        setattr(drink, attr, value)
    drink.last_synced_at = utcnow()

    _commit_or_conflict()
    return drink


def deactivate_drink(owner: User, drink_id: int) -> Drink:
    """Soft delete: the row stays so existing orders keep their reference."""
    drink = get_drink(owner, drink_id)
    drink.is_active = False
    db.session.commit()
    logger.info("Drink %s deactivated by user %s", drink.id, owner.id)
    return drink


def list_drinks(
    owner: User,
    *,
    page: int,
    limit: int,
    category: str | None = None,
    search: str | None = None,
    sort: str | None = None,
    include_inactive: bool = False,
) -> dict:
    q = _owned_query(owner)
    if category:
        q = q.filter(Drink.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(Drink.name.ilike(pattern), Drink.description.ilike(pattern)))
    if not include_inactive:
        q = q.filter(Drink.is_active.is_(True))

    q = q.order_by(parse_sort(sort, SORTABLE_COLUMNS, "-createdAt"), Drink.id.desc())
    drinks, pagination = paginate(q, page, limit)

    return {
        "drinks": [d.to_dict() for d in drinks],
        "pagination": pagination,
        "stats": calculate_drink_stats(_active_drinks(owner)),
    }


def _active_drinks(owner: User) -> list[Drink]:
    return _owned_query(owner).filter(Drink.is_active.is_(True)).all()


def calculate_drink_stats(drinks: list[Drink]) -> dict | None:
    """Catalog overview for a list of drinks; None when the list is empty."""
    if not drinks:
        return None

    prices = [d.price for d in drinks]
    categories: dict[str, int] = {}
    for d in drinks:
        categories[d.category] = categories.get(d.category, 0) + 1

    total_value = sum(prices)
    return {
        "total": len(drinks),
        "totalValue": total_value,
        "avgPrice": round(total_value / len(drinks), 2),
        "maxPrice": max(prices),
        "minPrice": min(prices),
        "categories": categories,
    }


def list_categories(owner: User) -> list[str]:
    rows = (
        db.session.query(Drink.category)
        .filter(Drink.owner_id == owner.id, Drink.is_active.is_(True))
        .distinct()
        .order_by(Drink.category.asc())
        .all()
    )
    return [row[0] for row in rows]


def drink_stats(owner: User) -> dict:
    """Overview, per-category distribution and the five newest active drinks."""
    count = func.count(Drink.id)
    rows = (
        db.session.query(
            Drink.category,
            count,
            func.coalesce(func.sum(Drink.price), 0),
            func.avg(Drink.price),
        )
        .filter(Drink.owner_id == owner.id, Drink.is_active.is_(True))
        .group_by(Drink.category)
        .order_by(count.desc(), Drink.category.asc())
        .all()
    )

    recent = (
        _owned_query(owner)
        .filter(Drink.is_active.is_(True))
        .order_by(Drink.created_at.desc(), Drink.id.desc())
        .limit(5)
        .all()
    )

    return {
        "overview": calculate_drink_stats(_active_drinks(owner)),
        "categories": [
            {
                "category": category,
                "count": int(n),
                "totalValue": int(total),
                "avgPrice": round(float(avg or 0), 2),
            }
            for category, n, total, avg in rows
        ],
        "recentDrinks": [d.to_dict() for d in recent],
    }


def _sync_drink(owner: User, record) -> tuple[str, int]:
    if not isinstance(record, dict):
        raise ValidationError("Drink record must be an object")

    ref = record.get("id")
    data = {k: v for k, v in record.items() if k != "id"}
    target = None
    if ref is not None:
        target = get_drink(owner, coerce_positive_int("id", ref))
    elif data.get("localId"):
        target = _owned_query(owner).filter(Drink.client_local_id == data["localId"]).first()

    if target is not None:
        return "updated", update_drink(owner, target.id, data).id
    return "created", create_drink(owner, data).id


def bulk_sync_drinks(owner: User, records) -> dict:
    """
    Upsert a batch of drinks captured offline.

    Records with an "id" update that drink (it must belong to the owner);
    records whose localId is already known update the matching drink;
    anything else is created. Every record lands in exactly one of
    created / updated / failed, and one failure never aborts the batch.
    """
    if not isinstance(records, list):
        raise ValidationError.for_field("drinks", "drinks must be an array")

    results = {"created": [], "updated": [], "failed": []}

    for record in records:
        ref = record.get("id") if isinstance(record, dict) else None
        label = ref if ref is not None else (record.get("localId") if isinstance(record, dict) else None) or "new"
        try:
            bucket, drink_id = run_with_retry(lambda: _sync_drink(owner, record))
        except DrinkQuickError as exc:
            db.session.rollback()
            results["failed"].append({"id": label, "error": exc.message})
            continue
        except Exception:
            db.session.rollback()
            logger.exception("Unexpected error syncing drink record %s", label)
            results["failed"].append({"id": label, "error": "Internal server error"})
            continue
        results[bucket].append(drink_id)

    return results
