# Overview: Flask API routes for user accounts; parses input and returns JSON responses.

# backend/drinkquick/routes/users.py
"""
User account API routes

- /profile and /change-password act on the authenticated user.
- Everything else is Administrator-only account management.
"""

from flask import Blueprint, g, request

from .. import responses
from ..decorators import bearer_token, require_auth, require_role
from ..enums import Role
from ..errors import DrinkQuickError
from ..services import session_service, user_service
from ..services.pagination import parse_page_args
from ..validation import require_object


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/profile")
@require_auth
def get_profile_route():
    return responses.success({"user": g.current_user.to_dict()})


@users_bp.put("/profile")
@require_auth
def update_profile_route():
    try:
        user = user_service.update_profile(g.current_user, request.get_json(silent=True))
        return responses.success({"user": user.to_dict()}, message="Profile updated successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to update profile")


@users_bp.put("/change-password")
@require_auth
def change_password_route():
    """
    Body: {currentPassword, newPassword, confirmPassword?}

    The calling session stays valid; all other sessions are revoked.
    """
    try:
        data = require_object(request.get_json(silent=True))
        current = session_service.find_active_session(bearer_token())
        revoked = user_service.change_password(
            g.current_user,
            data.get("currentPassword"),
            data.get("newPassword"),
            data.get("confirmPassword"),
            keep_session_id=current.id if current else None,
        )
        return responses.success({"sessionsRevoked": revoked}, message="Password changed successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to change password")


@users_bp.get("")
@require_auth
@require_role(Role.ADMIN.value)
def list_users_route():
    """Query: page, limit, role, search. Returns users, pagination and per-role counts."""
    try:
        page, limit = parse_page_args(request.args)
        result = user_service.list_users(
            page=page,
            limit=limit,
            role=request.args.get("role"),
            search=request.args.get("search"),
        )
        return responses.success(result)
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to list users")


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(Role.ADMIN.value)
def get_user_route(user_id: int):
    try:
        return responses.success({"user": user_service.get_user(user_id).to_dict()})
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to get user")


@users_bp.put("/<int:user_id>")
@require_auth
@require_role(Role.ADMIN.value)
def update_user_route(user_id: int):
    try:
        user = user_service.admin_update_user(g.current_user, user_id, request.get_json(silent=True))
        return responses.success({"user": user.to_dict()}, message="User updated successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to update user")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_role(Role.ADMIN.value)
def deactivate_user_route(user_id: int):
    """Soft delete: the account is deactivated and logged out everywhere."""
    try:
        revoked = user_service.deactivate_user(g.current_user, user_id)
        return responses.success({"sessionsRevoked": revoked}, message="User deactivated successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to deactivate user")


@users_bp.post("/<int:user_id>/reactivate")
@require_auth
@require_role(Role.ADMIN.value)
def reactivate_user_route(user_id: int):
    try:
        user = user_service.reactivate_user(user_id)
        return responses.success({"user": user.to_dict()}, message="User reactivated successfully")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to reactivate user")
