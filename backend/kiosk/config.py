# backend/kiosk/config.py
from __future__ import annotations
import os


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kiosk.sqlite3 unless overridden
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///kiosk.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer token forwarded by the identity-aware proxy for admin calls.
    # Unset means every admin endpoint answers 401.
    ADMIN_API_TOKEN = os.environ.get("ADMIN_API_TOKEN")

    # Single-currency shop; amounts are displayed without decimals
    CURRENCY = os.environ.get("CURRENCY", "USD")

    # Sale price = weighted purchase price * markup, applied on restock
    DEFAULT_MARKUP_FACTOR = _float_env("DEFAULT_MARKUP_FACTOR", 1.1)

    # Slack (optional)
    SLACK_AUTH_TOKEN = os.environ.get("SLACK_AUTH_TOKEN")
    SLACK_KIOSK_CHANNEL = os.environ.get("SLACK_KIOSK_CHANNEL")
    SLACK_API_BASE_URL = os.environ.get("SLACK_API_BASE_URL", "https://slack.com/api")

    # SMTP (optional, all five must be set)
    EMAIL_SERVER_HOST = os.environ.get("EMAIL_SERVER_HOST")
    EMAIL_SERVER_PORT = os.environ.get("EMAIL_SERVER_PORT")
    EMAIL_SERVER_USER = os.environ.get("EMAIL_SERVER_USER")
    EMAIL_SERVER_PASSWORD = os.environ.get("EMAIL_SERVER_PASSWORD")
    EMAIL_FROM_EMAIL = os.environ.get("EMAIL_FROM_EMAIL")
    EMAIL_FROM_NAME = os.environ.get("EMAIL_FROM_NAME", "KioskPOS")

    # ";"-separated list of admins notified about product requests
    ADMIN_EMAILS = os.environ.get("ADMIN_EMAILS", "")

    # Payment link template, "{AMOUNT}" is replaced with the invoiced amount
    PAYMENT_LINK = os.environ.get("PAYMENT_LINK", "")

    NOTIFICATION_TIMEOUT = _float_env("NOTIFICATION_TIMEOUT", 10.0)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
