# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication service.

Passwords are hashed with bcrypt (salted, one-way) and only ever compared
through bcrypt.checkpw. Session tokens are handled in session_service.py.
"""

import re

import bcrypt

from ..enums import Role
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..time_utils import utcnow


USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,30}$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, errors=[{"field": "password", "message": message}])


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.?'":{}|<>)
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.?'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe)."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def create_user(username: str, email: str, password: str, role: str = Role.STAFF.value) -> User:
    """
    Create new user with a bcrypt password hash.

    Raises:
        ValidationError: bad username/email/role or weak password
        ConflictError: username or email already taken
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()

    errors = []
    if not USERNAME_RE.match(username):
        errors.append({"field": "username", "message": "Username must be 3-30 letters, digits, '.', '_' or '-'"})
    if "@" not in email or "." not in email.split("@")[-1]:
        errors.append({"field": "email", "message": "Please provide a valid email"})
    if role not in Role.values():
        errors.append({"field": "role", "message": f"Role must be one of: {', '.join(Role.values())}"})
    if errors:
        raise ValidationError("Validation failed", errors=errors)

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("User already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate user by username or email.

    Returns User if credentials are valid and the account is active, None
    otherwise. Updates last_login_at on success.
    """
    identifier = (identifier or "").strip()
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def set_role(user_id: int, role: str) -> User:
    if role not in Role.values():
        raise ValidationError.for_field("role", f"Role must be one of: {', '.join(Role.values())}")
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    user.role = role
    db.session.commit()
    return user
