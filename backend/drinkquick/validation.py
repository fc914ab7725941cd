from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from .enums import DrinkCategory, OrderStatus, PaymentMethod, Role, VolumeUnit
from .errors import ValidationError
from .time_utils import parse_iso_datetime


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

# Largest amount accepted for any money field (whole currency units)
MAX_AMOUNT = 999_999_999


@dataclass(frozen=True)
class FieldSpec:
    """
    How one JSON field maps onto a model attribute.

    kind is one of: amount, int, float, str, email, enum, bool, datetime, tags.
    """
    attr: str
    kind: str
    required: bool = False
    nullable: bool = True
    max_length: int | None = None
    choices: tuple[str, ...] | None = None
    min_value: float | None = None
    max_value: float | None = None


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer:
    - fields: what clients are allowed to set, keyed by JSON name (security boundary)
    - ignored: keys accepted but discarded (server-derived values such as totals)
    """
    fields: dict[str, FieldSpec]
    ignored: frozenset[str] = field(default_factory=frozenset)


@dataclass
class ItemRequest:
    """One requested cart line before pricing."""
    drink_id: int
    quantity: int
    unit_price: int | None = None
    drink_name: str | None = None


def coerce_amount(name: str, value: Any) -> int:
    """Money in whole currency units; integral floats and digit strings are accepted."""
    if isinstance(value, bool):
        raise ValidationError.for_field(name, f"{name} must be a number")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError.for_field(name, f"{name} must be a whole amount")
        value = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if stripped.endswith(".0"):
            stripped = stripped[:-2]
        if not stripped.lstrip("-").isdigit():
            raise ValidationError.for_field(name, f"{name} must be a number")
        value = int(stripped)
    elif not isinstance(value, int):
        raise ValidationError.for_field(name, f"{name} must be a number")

    if value < 0:
        raise ValidationError.for_field(name, f"{name} cannot be negative")
    if value > MAX_AMOUNT:
        raise ValidationError.for_field(name, f"{name} cannot exceed {MAX_AMOUNT}")
    return value


def coerce_positive_int(name: str, value: Any) -> int:
    """Strict integer >= 1; floats, bools and scientific notation are rejected."""
    if isinstance(value, bool):
        raise ValidationError.for_field(name, f"{name} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.isdigit():
            raise ValidationError.for_field(name, f"{name} must be a positive integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError.for_field(name, f"{name} must be a positive integer")
    if value < 1:
        raise ValidationError.for_field(name, f"{name} must be at least 1")
    return value


def _coerce_value(name: str, field_spec: FieldSpec, value: Any):
    kind = field_spec.kind

    if kind == "amount":
        return coerce_amount(name, value)

    if kind == "int":
        return coerce_positive_int(name, value)

    if kind == "float":
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValidationError.for_field(name, f"{name} must be a number")
        try:
            number = float(value)
        except ValueError:
            raise ValidationError.for_field(name, f"{name} must be a number")
        if field_spec.min_value is not None and number < field_spec.min_value:
            raise ValidationError.for_field(name, f"{name} must be >= {field_spec.min_value:g}")
        if field_spec.max_value is not None and number > field_spec.max_value:
            raise ValidationError.for_field(name, f"{name} must be <= {field_spec.max_value:g}")
        return number

    if kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in {"true", "false"}:
            return value.lower() == "true"
        raise ValidationError.for_field(name, f"{name} must be a boolean")

    if kind == "datetime":
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError.for_field(name, f"{name} must be an ISO-8601 datetime")
            if dt is not None:
                return dt
        raise ValidationError.for_field(name, f"{name} must be an ISO-8601 datetime")

    if kind == "tags":
        if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
            raise ValidationError.for_field(name, f"{name} must be a list of strings")
        return [t.strip() for t in value if t.strip()]

    # Strings
    text = str(value).strip()
    if not field_spec.nullable and text == "":
        raise ValidationError.for_field(name, f"{name} cannot be blank")
    if field_spec.max_length and len(text) > field_spec.max_length:
        raise ValidationError.for_field(name, f"{name} cannot exceed {field_spec.max_length} characters")

    if kind == "email":
        text = text.lower()
        if text and not EMAIL_RE.match(text):
            raise ValidationError.for_field(name, "Please provide a valid email")
        return text or None

    if kind == "enum":
        if text not in (field_spec.choices or ()):
            raise ValidationError.for_field(
                name, f"Invalid {name}. Must be one of: {', '.join(field_spec.choices or ())}"
            )
        return text

    return text if text or not field_spec.nullable else None


def require_object(payload: Any) -> dict:
    """A request body must be a JSON object; a missing body reads as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def validate_payload(payload: Any, policy: PayloadPolicy, *, partial: bool) -> dict:
    """
    Validates + normalizes incoming JSON against a policy.

    Returns a patch dict keyed by model attribute. All field problems are
    collected and raised together as one ValidationError.

    partial=False: create semantics (enforce required fields)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []
    patch: dict = {}

    for key in payload:
        if key not in policy.fields and key not in policy.ignored:
            errors.append({"field": key, "message": f"Field not allowed: {key}"})

    if not partial:
        for name, field_spec in policy.fields.items():
            if field_spec.required and payload.get(name) is None:
                errors.append({"field": name, "message": f"{name} is required"})

    for name, raw in payload.items():
        field_spec = policy.fields.get(name)
        if field_spec is None:
            continue
        if raw is None:
            if field_spec.required or not field_spec.nullable:
                if not any(e["field"] == name for e in errors):
                    errors.append({"field": name, "message": f"{name} cannot be null"})
                continue
            patch[field_spec.attr] = None
            continue
        try:
            patch[field_spec.attr] = _coerce_value(name, field_spec, raw)
        except ValidationError as exc:
            errors.extend(exc.errors)

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return patch


def parse_items(raw_items: Any, *, allow_snapshot: bool = False) -> list[ItemRequest]:
    """
    Parse the cart: [{drink, quantity}] (plus unitPrice/drinkName snapshots
    when allow_snapshot is set, for records built offline).
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError.for_field("items", "Order must have at least one item")

    errors: list[dict] = []
    items: list[ItemRequest] = []
    for index, raw in enumerate(raw_items):
        prefix = f"items[{index}]"
        if not isinstance(raw, dict):
            errors.append({"field": prefix, "message": "Item must be an object"})
            continue

        drink_ref = raw.get("drink", raw.get("drinkId"))
        if isinstance(drink_ref, dict):
            drink_ref = drink_ref.get("id")
        try:
            drink_id = coerce_positive_int(f"{prefix}.drink", drink_ref)
        except ValidationError:
            errors.append({"field": f"{prefix}.drink", "message": "Drink ID is required"})
            continue

        try:
            quantity = coerce_positive_int(f"{prefix}.quantity", raw.get("quantity"))
        except ValidationError as exc:
            errors.extend(exc.errors)
            continue

        unit_price = None
        drink_name = None
        if allow_snapshot:
            raw_price = raw.get("unitPrice", raw.get("pricePerUnit"))
            if raw_price is not None:
                try:
                    unit_price = coerce_amount(f"{prefix}.unitPrice", raw_price)
                except ValidationError as exc:
                    errors.extend(exc.errors)
                    continue
            if raw.get("drinkName"):
                drink_name = str(raw["drinkName"]).strip()[:100]

        items.append(ItemRequest(drink_id, quantity, unit_price, drink_name))

    if errors:
        raise ValidationError("Validation failed", errors=errors)
    return items


# Server-derived keys clients may echo back; accepted and dropped
DERIVED_ORDER_FIELDS = frozenset({
    "subtotal", "totalAmount", "balance", "id", "_id", "user", "ownerId",
    "syncStatus", "lastSyncedAt", "lastSynced", "version", "items",
})

_ORDER_COMMON = {
    "amountPaid": FieldSpec("amount_paid", "amount", required=True, nullable=False),
    "customerName": FieldSpec("customer_name", "str", max_length=100),
    "customerEmail": FieldSpec("customer_email", "email", max_length=255),
    "paymentMethod": FieldSpec("payment_method", "enum", nullable=False, choices=tuple(PaymentMethod.values())),
    "discount": FieldSpec("discount", "amount", nullable=False),
    "tax": FieldSpec("tax", "amount", nullable=False),
    "notes": FieldSpec("notes", "str", max_length=500),
    "status": FieldSpec("status", "enum", nullable=False, choices=tuple(OrderStatus.values())),
}

ORDER_CREATE_POLICY = PayloadPolicy(
    fields=dict(_ORDER_COMMON),
    ignored=DERIVED_ORDER_FIELDS,
)

ORDER_SYNC_POLICY = PayloadPolicy(
    fields={
        **_ORDER_COMMON,
        "localId": FieldSpec("client_local_id", "str", max_length=64),
        "orderNumber": FieldSpec("order_number", "str", max_length=64),
        "receiptNumber": FieldSpec("receipt_number", "str", max_length=64),
        "receiptPrinted": FieldSpec("receipt_printed", "bool", nullable=False),
        "emailSent": FieldSpec("email_sent", "bool", nullable=False),
        "createdAt": FieldSpec("created_at", "datetime", nullable=False),
        "updatedAt": FieldSpec("updated_at", "datetime", nullable=False),
    },
    ignored=DERIVED_ORDER_FIELDS | {"formattedDate", "profit", "__v"},
)

# Merge resolutions patch only what they name, so nothing is required
ORDER_MERGE_POLICY = PayloadPolicy(
    fields={
        name: replace(field_spec, required=False)
        for name, field_spec in ORDER_SYNC_POLICY.fields.items()
        if name not in {"localId", "orderNumber", "receiptNumber", "createdAt", "updatedAt"}
    },
    ignored=ORDER_SYNC_POLICY.ignored | {"localId", "orderNumber", "receiptNumber", "createdAt", "updatedAt"},
)

ORDER_UPDATE_POLICY = PayloadPolicy(
    fields={
        name: replace(field_spec, required=False)
        for name, field_spec in _ORDER_COMMON.items()
    } | {"receiptPrinted": FieldSpec("receipt_printed", "bool", nullable=False)},
)

DRINK_POLICY = PayloadPolicy(
    fields={
        "name": FieldSpec("name", "str", required=True, nullable=False, max_length=100),
        "price": FieldSpec("price", "amount", required=True, nullable=False),
        "category": FieldSpec("category", "enum", required=True, nullable=False, choices=tuple(DrinkCategory.values())),
        "description": FieldSpec("description", "str", max_length=500),
        "tags": FieldSpec("tags", "tags", nullable=False),
        "alcoholContent": FieldSpec("alcohol_content", "float", nullable=False, min_value=0, max_value=100),
        "volume": FieldSpec("volume", "float", min_value=0),
        "unit": FieldSpec("unit", "enum", nullable=False, choices=tuple(VolumeUnit.values())),
        "isCustom": FieldSpec("is_custom", "bool", nullable=False),
        "isActive": FieldSpec("is_active", "bool", nullable=False),
        "localId": FieldSpec("client_local_id", "str", max_length=64),
    },
    ignored=frozenset({
        "id", "_id", "ownerId", "userId", "createdAt", "updatedAt", "lastSyncedAt",
        "syncStatus", "version", "imageUrl", "formattedPrice", "displayName", "__v",
    }),
)

_USER_READ_ONLY = frozenset({"id", "_id", "createdAt", "lastLoginAt", "__v"})

PROFILE_POLICY = PayloadPolicy(
    fields={
        "username": FieldSpec("username", "str", nullable=False, max_length=30),
        "email": FieldSpec("email", "email", nullable=False, max_length=255),
    },
    ignored=_USER_READ_ONLY | {"role", "isActive"},
)

USER_ADMIN_POLICY = PayloadPolicy(
    fields={
        **PROFILE_POLICY.fields,
        "role": FieldSpec("role", "enum", nullable=False, choices=tuple(Role.values())),
        "isActive": FieldSpec("is_active", "bool", nullable=False),
    },
    ignored=_USER_READ_ONLY,
)
