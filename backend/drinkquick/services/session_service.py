# Overview: Service-layer operations for session tokens; encapsulates business logic and database work.

"""
Session Token Management Service

Tokens are opaque random strings handed to the client once; the database
keeps only their SHA-256 hash.

- 32 bytes of entropy per token (secrets.token_hex)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout or when the account is deactivated
"""

import hashlib
import secrets
from datetime import timedelta

from ..errors import AuthenticationError
from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


def generate_token() -> str:
    """Return a 64-character hex token (plaintext, never stored)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create a session for an authenticated user.

    Returns (session_record, plaintext_token).
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> User | None:
    """
    Resolve a bearer token to its active User.

    Returns None when the token is unknown, revoked, expired, idle for too
    long, or belongs to a deactivated account. Idle and deactivated sessions
    are revoked on the spot. Updates last_used_at on success.
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session. Returns False if the token is unknown or already revoked."""
    session = find_active_session(token)

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(
    user_id: int,
    reason: str = "Revoke all sessions",
    keep_session_id: int | None = None,
) -> int:
    """
    Revoke every active session of a user, except keep_session_id if given.

    Returns the number of sessions revoked.
    """
    now = utcnow()
    q = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False)
    if keep_session_id is not None:
        q = q.filter(SessionToken.id != keep_session_id)

    count = 0
    for session in q.all():
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
        count += 1

    db.session.commit()
    return count


def find_active_session(token: str) -> SessionToken | None:
    if not token:
        return None
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()


def rotate_session(
    token: str,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Swap a valid token for a fresh one with a new absolute timeout.

    The old token is revoked. Raises AuthenticationError when the token does
    not resolve to an active user.
    """
    user = validate_session(token)
    if user is None:
        raise AuthenticationError("Invalid or expired token")

    _revoke(find_active_session(token), "Token refreshed")
    return create_session(user, user_agent=user_agent, ip_address=ip_address)
