# Overview: Closed value sets shared by models, validation and services.

from __future__ import annotations

from enum import Enum


class StrEnum(str, Enum):
    """String-valued enum that serializes as its value."""

    def __str__(self) -> str:
        return self.value

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class Role(StrEnum):
    ADMIN = "Administrator"
    MANAGER = "Manager"
    STAFF = "Staff"
    CUSTOMER = "Customer"


class DrinkCategory(StrEnum):
    BEER = "Beer"
    WINE = "Wine"
    COCKTAIL = "Cocktail"
    SOFT_DRINK = "Soft Drink"
    OTHER = "Other"


class VolumeUnit(StrEnum):
    ML = "ml"
    CL = "cl"
    L = "l"
    OZ = "oz"


class OrderStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(StrEnum):
    CASH = "cash"
    CARD = "card"
    MOBILE = "mobile"
    OTHER = "other"


class SyncStatus(StrEnum):
    SYNCED = "synced"
    PENDING = "pending"
    CONFLICT = "conflict"


class SyncResolution(StrEnum):
    KEEP_SERVER = "keep_server"
    USE_CLIENT = "use_client"
    MERGE = "merge"


class MailTemplate(StrEnum):
    WELCOME = "welcome"
    ORDER_CONFIRMATION = "order_confirmation"


# Orders in these states do not count toward revenue rollups
NON_REVENUE_STATUSES = (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)

# Seed prices used by `flask drinks seed-defaults`
DEFAULT_PRICES = {
    DrinkCategory.BEER: 800,
    DrinkCategory.WINE: 3000,
    DrinkCategory.COCKTAIL: 3500,
    DrinkCategory.SOFT_DRINK: 700,
    DrinkCategory.OTHER: 1000,
}
