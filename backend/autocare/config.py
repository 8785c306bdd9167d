# backend/autocare/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/autocare.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///autocare.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    APP_VERSION = os.environ.get("APP_VERSION", "1.0.0")

    # Refuse to start without a reachable database
    VERIFY_DB_ON_STARTUP = _env_bool("VERIFY_DB_ON_STARTUP", True)

    # Invoice numbers look like "GM-001"
    INVOICE_NUMBER_PREFIX = os.environ.get("INVOICE_NUMBER_PREFIX", "GM")

    # Tax policy per line class, in basis points (1400 = 14%).
    # Tyres/materials carry 28% GST split evenly; services are exempt.
    TAX_RATES_BPS = {
        "item": {
            "cgst": _env_int("ITEM_CGST_BPS", 1400),
            "sgst": _env_int("ITEM_SGST_BPS", 1400),
        },
        "service": {
            "cgst": _env_int("SERVICE_CGST_BPS", 0),
            "sgst": _env_int("SERVICE_SGST_BPS", 0),
        },
    }

    REGULAR_CUSTOMER_MIN_INVOICES = _env_int("REGULAR_CUSTOMER_MIN_INVOICES", 3)

    SESSION_TTL_HOURS = _env_int("SESSION_TTL_HOURS", 24)

    # Deleting an invoice leaves stock untouched unless this is enabled
    RESTOCK_ON_INVOICE_DELETE = _env_bool("RESTOCK_ON_INVOICE_DELETE", False)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if origin.strip()
    ]
