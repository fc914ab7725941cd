# Overview: Flask API routes for the drink catalog; parses input and returns JSON responses.

# backend/drinkquick/routes/drinks.py
"""Drink catalog API routes. Every route is scoped to the authenticated owner."""

from flask import Blueprint, g, request

from .. import responses
from ..decorators import require_auth
from ..errors import DrinkQuickError
from ..services import drink_service
from ..services.pagination import parse_page_args
from ..validation import require_object


drinks_bp = Blueprint("drinks", __name__, url_prefix="/api/drinks")


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


@drinks_bp.get("")
@require_auth
def list_drinks_route():
    """
    List drinks with pagination and catalog stats.

    Query: page, limit, category, search, sort (e.g. "-createdAt", "price"),
    includeInactive.
    """
    try:
        page, limit = parse_page_args(request.args)
        result = drink_service.list_drinks(
            g.current_user,
            page=page,
            limit=limit,
            category=request.args.get("category"),
            search=request.args.get("search"),
            sort=request.args.get("sort"),
            include_inactive=_flag(request.args.get("includeInactive")),
        )
        return responses.success(result)
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to list drinks")


@drinks_bp.get("/categories")
@require_auth
def categories_route():
    try:
        return responses.success({"categories": drink_service.list_categories(g.current_user)})
    except Exception:
        return responses.server_error("Failed to list drink categories")


@drinks_bp.get("/stats")
@require_auth
def drink_stats_route():
    try:
        return responses.success(drink_service.drink_stats(g.current_user))
    except Exception:
        return responses.server_error("Failed to compute drink stats")


@drinks_bp.post("/sync")
@require_auth
def sync_drinks_route():
    """Bulk upsert of offline drinks: {"drinks": [...]} -> {created, updated, failed}."""
    try:
        data = require_object(request.get_json(silent=True))
        results = drink_service.bulk_sync_drinks(g.current_user, data.get("drinks"))
        return responses.success(results, message="Bulk operation completed")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to sync drinks")


@drinks_bp.get("/<int:drink_id>")
@require_auth
def get_drink_route(drink_id: int):
    try:
        drink = drink_service.get_drink(g.current_user, drink_id)
        return responses.success({"drink": drink.to_dict()})
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to get drink")


@drinks_bp.post("")
@require_auth
def create_drink_route():
    try:
        drink = drink_service.create_drink(g.current_user, request.get_json(silent=True))
        return responses.success(
            {"drink": drink.to_dict()},
            message="Drink created successfully",
            status_code=201,
        )
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to create drink")


@drinks_bp.put("/<int:drink_id>")
@require_auth
def update_drink_route(drink_id: int):
    try:
        drink = drink_service.update_drink(g.current_user, drink_id, request.get_json(silent=True))
        return responses.success({"drink": drink.to_dict()}, message="Drink updated successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to update drink")


@drinks_bp.delete("/<int:drink_id>")
@require_auth
def delete_drink_route(drink_id: int):
    """Soft delete (deactivation)."""
    try:
        drink_service.deactivate_drink(g.current_user, drink_id)
        return responses.success(message="Drink deleted successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to delete drink")
