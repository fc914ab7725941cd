# Overview: Read-only order statistics; recomputed from the Order Store on every call.

"""
Statistics Aggregator

Scope is the caller's own orders, or every order for Administrators.
Cancelled and refunded orders never count toward revenue. Day, week
(starting Sunday) and month boundaries are taken in the caller's timezone.
"""

from __future__ import annotations

from sqlalchemy import func

from ..enums import NON_REVENUE_STATUSES
from ..extensions import db
from ..models import Order, OrderItem, User
from ..time_utils import local_period_starts
from .order_service import revenue_summary, scoped_orders


def _stats_scope(actor: User):
    return scoped_orders(actor, all_owners=actor.is_admin)


def total_items(query) -> int:
    order_ids = (
        query.filter(Order.status.notin_(NON_REVENUE_STATUSES))
        .order_by(None)
        .with_entities(Order.id)
    )
    value = (
        db.session.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .filter(OrderItem.order_id.in_(order_ids.scalar_subquery()))
        .scalar()
    )
    return int(value or 0)


def top_drinks(actor: User, limit: int = 10, since=None) -> list[dict]:
    """Best sellers by quantity, grouped by drink id, named from the item snapshot."""
    quantity = func.sum(OrderItem.quantity)
    q = (
        db.session.query(
            OrderItem.drink_id,
            func.max(OrderItem.drink_name),
            quantity,
            func.sum(OrderItem.line_total),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status.notin_(NON_REVENUE_STATUSES))
    )
    if not actor.is_admin:
        q = q.filter(Order.owner_id == actor.id)
    if since is not None:
        q = q.filter(Order.created_at >= since)

    rows = (
        q.group_by(OrderItem.drink_id)
        .order_by(quantity.desc(), OrderItem.drink_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"drinkId": drink_id, "name": name, "quantity": int(qty), "revenue": int(revenue)}
        for drink_id, name, qty, revenue in rows
    ]


def recent_orders(actor: User, limit: int = 5) -> list[dict]:
    orders = (
        _stats_scope(actor)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    return [o.to_summary_dict() for o in orders]


def _window(actor: User, start) -> dict:
    summary = revenue_summary(_stats_scope(actor).filter(Order.created_at >= start))
    return {"totalOrders": summary["totalOrders"], "totalRevenue": summary["totalRevenue"]}


def order_stats(actor: User, tz) -> dict:
    """Overall, today, weekly and monthly rollups plus best sellers and recent orders."""
    starts = local_period_starts(tz)
    scope = _stats_scope(actor)

    overall = revenue_summary(scope)
    overall["totalItems"] = total_items(scope)

    return {
        "overall": overall,
        "today": _window(actor, starts["today"]),
        "weekly": _window(actor, starts["week"]),
        "monthly": _window(actor, starts["month"]),
        "popularDrinks": top_drinks(actor, limit=10),
        "recentOrders": recent_orders(actor),
    }


def dashboard_summary(actor: User, tz) -> dict:
    starts = local_period_starts(tz)

    def _counts(start) -> dict:
        window = _window(actor, start)
        return {"orders": window["totalOrders"], "revenue": window["totalRevenue"]}

    return {
        "today": _counts(starts["today"]),
        "last7Days": _counts(starts["last7Days"]),
        "thisMonth": _counts(starts["month"]),
        "topDrinks": top_drinks(actor, limit=5),
        "recentOrders": recent_orders(actor),
    }
