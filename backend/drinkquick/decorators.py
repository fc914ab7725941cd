# Overview: Request decorators for API routes (authentication and role checks).

from functools import wraps

from flask import g, request

from . import responses
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user to the authenticated User. Returns 401 if the
    Authorization header is missing or the token is invalid, expired or
    revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return responses.error("Authentication required", 401)

        user = session_service.validate_session(token)
        if not user:
            return responses.error("Invalid or expired token", 401)

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated user to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return responses.error("Authentication required", 401)
            if g.current_user.role not in roles:
                return responses.error(
                    f"Requires role: {', '.join(roles)}",
                    403,
                    code="forbidden",
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator
