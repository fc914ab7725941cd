# Overview: Flask API routes for offline order sync; parses input and returns JSON responses.

# backend/drinkquick/routes/sync.py
"""
Offline sync API routes

A batch always answers 200 with a per-record disposition; only a malformed
envelope (e.g. "orders" not being a list) is rejected as a whole.
"""

from flask import Blueprint, g, request

from .. import responses
from ..decorators import require_auth
from ..errors import DrinkQuickError
from ..services import order_service, sync_service
from ..validation import require_object


sync_bp = Blueprint("sync", __name__, url_prefix="/api/orders/sync")


@sync_bp.post("/bulk")
@require_auth
def bulk_sync_route():
    """Body: {"orders": [...]} -> {created, updated, conflicts, errors}."""
    try:
        data = require_object(request.get_json(silent=True))
        results = sync_service.sync_orders(g.current_user, data.get("orders"))
        return responses.success(results, message="Orders synced successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to sync orders")


@sync_bp.get("/pending")
@require_auth
def pending_sync_route():
    try:
        orders = order_service.list_pending_sync(g.current_user)
        return responses.success({"orders": [o.to_dict() for o in orders], "count": len(orders)})
    except Exception:
        return responses.server_error("Failed to list pending orders")


@sync_bp.post("/mark-synced")
@require_auth
def mark_synced_route():
    try:
        data = require_object(request.get_json(silent=True))
        result = order_service.mark_synced(data.get("orderIds"), g.current_user)
        return responses.success(result, message=f"{result['modified']} orders marked as synced")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to mark orders as synced")


@sync_bp.post("/resolve-conflicts")
@require_auth
def resolve_conflicts_route():
    """Body: {"resolutions": [{orderId, resolution, data}]}."""
    try:
        data = require_object(request.get_json(silent=True))
        results = sync_service.resolve_conflicts(g.current_user, data.get("resolutions"))
        return responses.success(results, message="Conflicts resolved")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to resolve conflicts")
