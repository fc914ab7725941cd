from __future__ import annotations

from ..extensions import db
from ..enums import Role
from ..time_utils import to_utc_z, utcnow


class User(db.Model):
    """
    User accounts for authentication and attribution.

    A user is the tenant boundary: drinks and orders belong to exactly one
    owning user. Administrators may read across owners.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(30), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, default=Role.STAFF.value)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "lastLoginAt": to_utc_z(self.last_login_at),
        }


class SessionToken(db.Model):
    """
    Bearer session token. Only the SHA-256 hash of the token is stored.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "createdAt": to_utc_z(self.created_at),
            "lastUsedAt": to_utc_z(self.last_used_at),
            "expiresAt": to_utc_z(self.expires_at),
            "isRevoked": self.is_revoked,
        }
