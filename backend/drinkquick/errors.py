# Overview: Domain error taxonomy; each error knows its HTTP status.

from __future__ import annotations


class DrinkQuickError(Exception):
    """Base class for errors rendered as an error envelope."""
    status_code = 500
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"code": self.code}
        payload.update(self.details)
        return payload


class ValidationError(DrinkQuickError):
    """400-level input problem, with a field-level error list."""
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, errors: list[dict] | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class AuthenticationError(DrinkQuickError):
    status_code = 401
    code = "authentication_required"


class ForbiddenError(DrinkQuickError):
    status_code = 403
    code = "forbidden"


class NotFoundError(DrinkQuickError):
    status_code = 404
    code = "not_found"


class ConflictError(DrinkQuickError):
    """409-level uniqueness or state conflict (e.g., duplicate drink name)."""
    status_code = 409
    code = "conflict"


class InsufficientPaymentError(DrinkQuickError):
    status_code = 400
    code = "insufficient_payment"

    def __init__(self, required: int, paid: int):
        super().__init__(
            f"Insufficient payment. Required: {required}, Paid: {paid}",
            details={"required": required, "paid": paid},
        )
        self.required = required
        self.paid = paid


class UnavailableError(DrinkQuickError):
    """A collaborator (mailer, store) could not serve the request."""
    status_code = 503
    code = "unavailable"
