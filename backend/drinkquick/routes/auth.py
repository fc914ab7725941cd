# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/drinkquick/routes/auth.py
"""
Authentication API routes

- Self-registration creates a Staff account; roles are assigned by an
  administrator (PUT /api/users/<id> or flask users set-role).
- Login returns an opaque bearer token for the Authorization header.
- refresh-token rotates a still-valid token before its absolute timeout.
"""

from flask import Blueprint, g, request

from .. import responses
from ..decorators import bearer_token, require_auth
from ..errors import DrinkQuickError
from ..services import auth_service, notification_service, session_service
from ..validation import require_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token) -> dict:
    return {
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    try:
        data = require_object(request.get_json(silent=True))
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password"),
        )
        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        notification_service.queue_welcome_email(user.id)
        return responses.success(
            _session_payload(user, session, token),
            message="User registered successfully",
            status_code=201,
        )
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to register user")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by username or email and create a session token.
    """
    try:
        data = require_object(request.get_json(silent=True))
        identifier = data.get("username") or data.get("email") or data.get("identifier")
        password = data.get("password")

        if not all([identifier, password]):
            return responses.error("username/email and password required", 400)

        user = auth_service.authenticate(identifier, password)
        if not user:
            return responses.error("Invalid credentials", 401)

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return responses.success(_session_payload(user, session, token), message="Login successful")

    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to login user")


@auth_bp.post("/logout")
def logout_route():
    try:
        token = bearer_token()
        if not token:
            return responses.error("Authorization header required", 401)

        if not session_service.revoke_session(token, reason="User logout"):
            return responses.error("Invalid or expired token", 401)

        return responses.success(message="Logout successful")

    except Exception:
        return responses.server_error("Failed to logout user")


@auth_bp.post("/refresh-token")
def refresh_token_route():
    """Exchange a valid bearer token for a fresh one; the old token is revoked."""
    try:
        session, token = session_service.rotate_session(
            bearer_token(),
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return responses.success(_session_payload(session.user, session, token), message="Token refreshed")
    except DrinkQuickError as e:
        return responses.error_from_exception(e)
    except Exception:
        return responses.server_error("Failed to refresh token")


@auth_bp.get("/me")
@require_auth
def me_route():
    return responses.success({"user": g.current_user.to_dict()})
