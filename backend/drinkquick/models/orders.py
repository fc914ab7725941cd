from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, validates

from ..extensions import db
from ..enums import OrderStatus, PaymentMethod, SyncStatus
from ..time_utils import to_utc_z, utcnow


class Order(db.Model):
    """
    Order / invoice document.

    Money columns hold whole currency units. subtotal, total_amount and
    balance are derived: they are recomputed on every flush from the item
    snapshot plus discount, tax and amount_paid (see _recompute_order_totals).
    order_number and receipt_number are write-once.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_owner_created", "owner_id", "created_at"),
        db.Index("ix_orders_owner_status", "owner_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable numbers (e.g., "ORD-20260101-4821", "REC-1767225600000-42")
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    receipt_number = db.Column(db.String(64), nullable=False, unique=True)

    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    customer_name = db.Column(db.String(100), nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    amount_paid = db.Column(db.Integer, nullable=False, default=0)
    balance = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=OrderStatus.COMPLETED.value, index=True)
    payment_method = db.Column(db.String(16), nullable=False, default=PaymentMethod.CASH.value)
    notes = db.Column(db.String(500), nullable=True)

    receipt_printed = db.Column(db.Boolean, nullable=False, default=False)
    email_sent = db.Column(db.Boolean, nullable=False, default=False)

    # Offline sync metadata
    client_local_id = db.Column(db.String(64), nullable=True, unique=True)
    last_synced_at = db.Column(db.DateTime, nullable=True)
    sync_status = db.Column(db.String(16), nullable=False, default=SyncStatus.SYNCED.value, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    # Authority for sync conflict comparison
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    owner = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @validates("order_number", "receipt_number")
    def _write_once(self, key, value):
        current = getattr(self, key)
        if current is not None and value != current:
            raise ValueError(f"{key} is immutable once assigned")
        return value

    def recompute_totals(self) -> None:
        self.subtotal = sum(item.line_total or 0 for item in self.items)
        self.total_amount = self.subtotal - (self.discount or 0) + (self.tax or 0)
        self.balance = (self.amount_paid or 0) - self.total_amount

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} total={self.total_amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "receiptNumber": self.receipt_number,
            "ownerId": self.owner_id,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "totalAmount": self.total_amount,
            "amountPaid": self.amount_paid,
            "balance": self.balance,
            "status": self.status,
            "paymentMethod": self.payment_method,
            "notes": self.notes,
            "receiptPrinted": self.receipt_printed,
            "emailSent": self.email_sent,
            "localId": self.client_local_id,
            "lastSyncedAt": to_utc_z(self.last_synced_at),
            "syncStatus": self.sync_status,
            "version": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "totalAmount": self.total_amount,
            "status": self.status,
            "createdAt": to_utc_z(self.created_at),
        }


class OrderItem(db.Model):
    """
    Frozen snapshot of one ordered drink.

    drink_name and unit_price are copied when the order is built; later
    catalog edits never touch them.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    drink_id = db.Column(db.Integer, db.ForeignKey("drinks.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    drink_name = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="items")
    drink = db.relationship("Drink")

    def to_dict(self) -> dict:
        return {
            "drink": self.drink_id,
            "drinkName": self.drink_name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "lineTotal": self.line_total,
        }


@event.listens_for(Session, "before_flush")
def _recompute_order_totals(session, flush_context, instances):
    """Derive line totals and order totals from stored inputs on every persist."""
    orders = set()
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, OrderItem):
            obj.line_total = (obj.unit_price or 0) * (obj.quantity or 0)
            if obj.order is not None:
                orders.add(obj.order)
        elif isinstance(obj, Order):
            orders.add(obj)
    for order in orders:
        for item in order.items:
            item.line_total = (item.unit_price or 0) * (item.quantity or 0)
        order.recompute_totals()
