from __future__ import annotations

from ..extensions import db
from ..enums import SyncStatus, VolumeUnit
from ..time_utils import to_utc_z, utcnow


class Drink(db.Model):
    """
    Catalog entry owned by a single user.

    Drinks are never hard-deleted: orders keep referencing them, so removal
    is a deactivation (is_active=False).
    """
    __tablename__ = "drinks"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "name", name="uq_drinks_owner_name"),
        db.Index("ix_drinks_owner_active", "owner_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    # Whole currency units (see Config.CURRENCY)
    price = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(32), nullable=False, index=True)

    description = db.Column(db.String(500), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    alcohol_content = db.Column(db.Float, nullable=False, default=0)
    volume = db.Column(db.Float, nullable=True)
    unit = db.Column(db.String(4), nullable=False, default=VolumeUnit.ML.value)
    is_custom = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Offline sync metadata
    client_local_id = db.Column(db.String(64), nullable=True, unique=True)
    last_synced_at = db.Column(db.DateTime, nullable=True)
    sync_status = db.Column(db.String(16), nullable=False, default=SyncStatus.SYNCED.value, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = db.relationship("User", backref=db.backref("drinks", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Drink id={self.id} name={self.name!r} price={self.price} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "name": self.name,
            "price": self.price,
            "category": self.category,
            "description": self.description,
            "tags": list(self.tags or []),
            "alcoholContent": self.alcohol_content,
            "volume": self.volume,
            "unit": self.unit,
            "isCustom": self.is_custom,
            "isActive": self.is_active,
            "localId": self.client_local_id,
            "lastSyncedAt": to_utc_z(self.last_synced_at),
            "syncStatus": self.sync_status,
            "version": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
