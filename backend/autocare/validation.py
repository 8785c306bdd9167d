from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from autocare.time_utils import parse_iso_datetime


# Largest amount accepted anywhere: Rs 9,99,99,999.99
MAX_AMOUNT_PAISE = 9_999_999_999

# 2 digits, 5 letters, 4 digits, 1 letter, 1 alnum (no zero), literal Z, 1 alnum
GST_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")

PAYMENT_METHODS = ("cash", "online", "both")
STAFF_PAYMENT_TYPES = ("salary", "advance", "deposit")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate invoice number)."""


class NotFoundError(LookupError):
    """404-level missing entity."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - nested_fields: writable keys that are not columns (line items, payment
      details); passed through untouched for the service to validate
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    nested_fields: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
            raise ValidationError(f"{col.key} must be a boolean")
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols and k not in policy.nested_fields:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in policy.nested_fields:
            patch[k] = raw
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str, *, allow_zero: bool = True) -> None:
    if key not in patch or patch[key] is None:
        return
    amount = patch[key]
    if amount < 0 or (not allow_zero and amount == 0):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_AMOUNT_PAISE:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_PAISE}")


def normalize_gst(value: str | None) -> str | None:
    """Empty GST ids are stored as NULL; anything else must match GST_PATTERN exactly."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not GST_PATTERN.match(value):
        raise ValidationError(
            "Invalid GST format. GST should be 15 characters (e.g., 22AAAAA0000A1Z5)"
        )
    return value


def enforce_rules_invoice(patch: dict) -> None:
    if "customer_gst" in patch:
        patch["customer_gst"] = normalize_gst(patch["customer_gst"])

    if patch.get("customer_phone") == "":
        patch["customer_phone"] = None

    if "usage_reading" in patch and patch["usage_reading"] is not None:
        if patch["usage_reading"] < 0:
            raise ValidationError("usage_reading must be >= 0")

    if "payment_method" in patch and patch["payment_method"] not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")

    if "invoice_number_sequence" in patch and patch["invoice_number_sequence"] is not None:
        if patch["invoice_number_sequence"] < 1:
            raise ValidationError("invoice_number_sequence must be >= 1")


def enforce_rules_invoice_item(patch: dict) -> None:
    if patch.get("quantity") is None or patch["quantity"] < 1:
        raise ValidationError("item quantity must be >= 1")
    _check_amount(patch, "price_paise")


def enforce_rules_service_item(patch: dict) -> None:
    if patch.get("quantity") is None or patch["quantity"] < 1:
        raise ValidationError("service quantity must be >= 1")
    _check_amount(patch, "rate_paise")


def enforce_rules_tire(patch: dict) -> None:
    for key in ("billing_price_paise", "our_price_paise", "customer_price_paise"):
        _check_amount(patch, key)


def enforce_rules_tyre_purchase(patch: dict) -> None:
    if "quantity" in patch:
        if patch["quantity"] is None or patch["quantity"] < 1:
            raise ValidationError("quantity must be >= 1")


def enforce_rules_expense(patch: dict) -> None:
    _check_amount(patch, "value_paise")


def enforce_rules_staff_payment(patch: dict) -> None:
    _check_amount(patch, "amount_paise", allow_zero=False)
    if "type" in patch and patch["type"] not in STAFF_PAYMENT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(STAFF_PAYMENT_TYPES)}")
