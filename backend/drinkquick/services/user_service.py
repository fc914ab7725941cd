# Overview: Service-layer operations for user accounts; encapsulates business logic and database work.

"""
User account management.

- Every user can read and edit their own profile and change their password.
- Administrators list, edit, deactivate and reactivate other accounts.
- Deactivation is a soft delete: the row stays (orders reference it) and
  every open session is revoked so the user is logged out at once.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..validation import PROFILE_POLICY, USER_ADMIN_POLICY, validate_payload
from . import session_service
from .auth_service import USERNAME_RE, PasswordValidationError, hash_password, verify_password
from .pagination import paginate


logger = logging.getLogger(__name__)


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", details={"userId": user_id})
    return user


def _check_identity(user: User, patch: dict) -> None:
    username = patch.get("username")
    if username is not None and not USERNAME_RE.match(username):
        raise ValidationError.for_field("username", "Username must be 3-30 letters, digits, '.', '_' or '-'")

    clauses = []
    if username is not None:
        clauses.append(User.username == username)
    if patch.get("email") is not None:
        clauses.append(User.email == patch["email"])
    if not clauses:
        return

    taken = db.session.query(User).filter(db.or_(*clauses), User.id != user.id).first()
    if taken:
        raise ConflictError("Username or email already exists")


def update_profile(user: User, payload) -> User:
    """Patch the caller's own username/email. role and isActive are ignored."""
    patch = validate_payload(payload, PROFILE_POLICY, partial=True)
    _check_identity(user, patch)

    for attr, value in patch.items():
        setattr(user, attr, value)
    db.session.commit()
    return user


def change_password(
    user: User,
    current_password: str | None,
    new_password: str | None,
    confirm_password: str | None = None,
    keep_session_id: int | None = None,
) -> int:
    """
    Replace the caller's password after checking the current one.

    Every other session of the user is revoked; keep_session_id stays
    logged in. Returns the number of sessions revoked.

    Raises:
        ValidationError: missing fields, mismatch, reuse or weak password
        AuthenticationError: current password is wrong
    """
    errors = []
    if not current_password:
        errors.append({"field": "currentPassword", "message": "Current password is required"})
    if not new_password:
        errors.append({"field": "newPassword", "message": "New password is required"})
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    if confirm_password is not None and confirm_password != new_password:
        raise ValidationError.for_field("confirmPassword", "Passwords do not match")
    if new_password == current_password:
        raise ValidationError.for_field("newPassword", "New password must be different from current password")

    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")

    try:
        user.password_hash = hash_password(new_password)
    except PasswordValidationError as exc:
        raise ValidationError.for_field("newPassword", exc.message)
    db.session.commit()

    revoked = session_service.revoke_all_user_sessions(
        user.id, reason="Password changed", keep_session_id=keep_session_id,
    )
    logger.info("User %s changed password; %d other sessions revoked", user.id, revoked)
    return revoked


def list_users(*, page: int, limit: int, role: str | None = None, search: str | None = None) -> dict:
    """
    Page through accounts, newest first.

    stats counts every account per role, independent of the filters.
    """
    q = db.session.query(User)
    if role:
        q = q.filter(User.role == role)
    if search:
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(db.or_(func.lower(User.username).like(pattern), func.lower(User.email).like(pattern)))

    users, pagination = paginate(q.order_by(User.created_at.desc(), User.id.desc()), page, limit)

    rows = db.session.query(User.role, func.count(User.id)).group_by(User.role).all()
    return {
        "users": [u.to_dict() for u in users],
        "pagination": pagination,
        "stats": {r: int(n) for r, n in rows},
    }


def deactivate_user(actor: User, user_id: int) -> int:
    """Soft-delete an account and log it out everywhere. Returns sessions revoked."""
    user = get_user(user_id)
    if user.id == actor.id:
        raise ValidationError("Cannot deactivate your own account")
    if not user.is_active:
        raise ValidationError("User is already deactivated")

    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="Account deactivated by admin")
    logger.info("User %s deactivated by %s; %d sessions revoked", user.id, actor.id, revoked)
    return revoked


def reactivate_user(user_id: int) -> User:
    user = get_user(user_id)
    if user.is_active:
        raise ValidationError("User is already active")
    user.is_active = True
    db.session.commit()
    return user


def admin_update_user(actor: User, user_id: int, payload) -> User:
    """
    Administrator edit of username, email, role and isActive.

    Administrators cannot demote or deactivate themselves. Turning isActive
    off revokes the user's sessions.
    """
    patch = validate_payload(payload, USER_ADMIN_POLICY, partial=True)
    user = get_user(user_id)

    if user.id == actor.id:
        if patch.get("is_active") is False:
            raise ValidationError("Cannot deactivate your own account")
        if "role" in patch and patch["role"] != user.role:
            raise ValidationError("Cannot change your own role")

    _check_identity(user, patch)

    deactivating = user.is_active and patch.get("is_active") is False
    for attr, value in patch.items():
        setattr(user, attr, value)
    db.session.commit()

    if deactivating:
        session_service.revoke_all_user_sessions(user.id, reason="Account deactivated by admin")
    return user
