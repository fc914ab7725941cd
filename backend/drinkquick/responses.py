# Overview: JSON envelope helpers shared by every blueprint.

from __future__ import annotations

from flask import current_app, jsonify

from .errors import DrinkQuickError


def _envelope(status: str, message: str | None = None, data=None, **extra) -> dict:
    body: dict = {"status": status}
    if current_app.config.get("ENVELOPE_SUCCESS_FLAG", True):
        body["success"] = status == "success"
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def success(data=None, message: str | None = None, status_code: int = 200):
    return jsonify(_envelope("success", message, data)), status_code


def error(message: str, status_code: int, **extra):
    return jsonify(_envelope("error", message, **extra)), status_code


def error_from_exception(exc: DrinkQuickError):
    return error(exc.message, exc.status_code, **exc.to_dict())


def server_error(log_message: str):
    """Log the active exception and hide its details from the client."""
    current_app.logger.exception(log_message)
    return error("Internal server error", 500)
