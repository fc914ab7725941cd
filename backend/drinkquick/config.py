# backend/drinkquick/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Persistence backend is chosen by URL: sqlite for local/dev,
    # postgresql+psycopg2://... for deployments.
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///drinkquick.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Order / receipt numbering
    ORDER_NUMBER_PREFIX = os.environ.get("ORDER_NUMBER_PREFIX", "ORD")
    RECEIPT_NUMBER_PREFIX = os.environ.get("RECEIPT_NUMBER_PREFIX", "REC")

    # Amounts are whole units of this currency (no minor unit)
    CURRENCY = os.environ.get("CURRENCY", "Frs")

    # Day boundaries for statistics when the caller does not send ?tz=
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")

    PAGINATION_DEFAULT_LIMIT = int(os.environ.get("PAGINATION_DEFAULT_LIMIT", "10"))
    PAGINATION_MAX_LIMIT = int(os.environ.get("PAGINATION_MAX_LIMIT", "100"))

    # Mailer (SendGrid). With MAIL_SUPPRESS_SEND the mailer only records
    # messages in its outbox.
    SENDGRID_API_KEY = os.environ.get("SENDGRID_API_KEY", "")
    MAIL_FROM = os.environ.get("MAIL_FROM", "no-reply@drinkquick.local")
    MAIL_SUPPRESS_SEND = _env_flag("MAIL_SUPPRESS_SEND", "true")

    CELERY = {
        "broker_url": os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        "result_backend": os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
        "task_ignore_result": True,
        "task_always_eager": _env_flag("CELERY_TASK_ALWAYS_EAGER"),
    }

    # Also emit {"success": bool} next to {"status": ...} for clients that
    # still read the older envelope.
    ENVELOPE_SUCCESS_FLAG = _env_flag("ENVELOPE_SUCCESS_FLAG", "true")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }
