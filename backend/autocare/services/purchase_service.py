# Overview: Service-layer operations for tyre purchases; every write moves tyre stock.

"""
Tyre Purchases

- create: stock += quantity (tire created on first purchase, brand recorded)
- update: stock moves by (new quantity - stored quantity); if the tyre size
  or pattern changed, the old key loses the stored quantity and the new key
  gains the new one
- delete: stock -= quantity (clamped at zero by the stock ledger)

TRUST BOUNDARY: the stored quantity is authoritative. A client-supplied
original_quantity is only compared and logged, never used for the delta.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import TyrePurchase
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_tyre_purchase,
    validate_payload,
)
from ..time_utils import utcnow, parse_date_range
from .concurrency import lock_for_update, run_with_retry
from .pagination import LIKE_ESCAPE, contains_pattern, normalize_page, page_meta
from .stock_service import StockAdjustment, apply_delta


PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"date", "bill_no", "tyre_size", "pattern", "brand", "quantity", "original_quantity"},
    required_on_create={"bill_no", "tyre_size", "pattern", "quantity"},
    nested_fields={"original_quantity"},
)


def _write(op):
    try:
        return run_with_retry(op)
    except Exception:
        db.session.rollback()
        raise


def create_purchase(payload: dict) -> tuple[TyrePurchase, StockAdjustment]:
    patch = validate_payload(model=TyrePurchase, payload=payload, policy=PURCHASE_POLICY, partial=False)
    enforce_rules_tyre_purchase(patch)
    patch.pop("original_quantity", None)
    if patch.get("date") is None:
        patch["date"] = utcnow()

    def _op():
        purchase = TyrePurchase(**patch)
        db.session.add(purchase)
        db.session.flush()
        adjustment = apply_delta(purchase.tyre_size, purchase.pattern, purchase.quantity, brand_hint=purchase.brand)
        db.session.commit()
        return purchase, adjustment

    return _write(_op)


def update_purchase(purchase_id: int, payload: dict) -> tuple[TyrePurchase, list[StockAdjustment]]:
    patch = validate_payload(model=TyrePurchase, payload=payload, policy=PURCHASE_POLICY, partial=True)
    enforce_rules_tyre_purchase(patch)
    client_original = patch.pop("original_quantity", None)
    if "date" in patch and patch["date"] is None:
        raise ValidationError("date cannot be null")

    def _op():
        purchase = lock_for_update(db.session.query(TyrePurchase).filter_by(id=purchase_id)).first()
        if purchase is None:
            raise NotFoundError("Purchase not found")

        old_key = (purchase.tyre_size, purchase.pattern)
        old_quantity = purchase.quantity
        if client_original is not None and client_original != old_quantity:
            current_app.logger.warning(
                "Purchase %s: client original_quantity %r ignored, stored quantity is %s",
                purchase_id, client_original, old_quantity,
            )

        for key, value in patch.items():
            setattr(purchase, key, value)

        new_key = (purchase.tyre_size, purchase.pattern)
        adjustments = []
        if new_key != old_key:
            adjustments.append(apply_delta(old_key[0], old_key[1], -old_quantity))
            adjustments.append(apply_delta(new_key[0], new_key[1], purchase.quantity, brand_hint=purchase.brand))
        elif purchase.quantity != old_quantity:
            adjustments.append(
                apply_delta(new_key[0], new_key[1], purchase.quantity - old_quantity, brand_hint=purchase.brand)
            )

        db.session.commit()
        return purchase, adjustments

    return _write(_op)


def delete_purchase(purchase_id: int) -> StockAdjustment:
    def _op():
        purchase = lock_for_update(db.session.query(TyrePurchase).filter_by(id=purchase_id)).first()
        if purchase is None:
            raise NotFoundError("Purchase not found")
        adjustment = apply_delta(purchase.tyre_size, purchase.pattern, -purchase.quantity)
        db.session.delete(purchase)
        db.session.commit()
        return adjustment

    return _write(_op)


def list_recent_purchases(
    *,
    page=None,
    limit=None,
    search: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> tuple[list[TyrePurchase], dict]:
    page, limit = normalize_page(page, limit, default_limit=20)
    try:
        start_dt, end_dt = parse_date_range(start, end)
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")

    query = db.session.query(TyrePurchase)
    if search:
        like = contains_pattern(search)
        query = query.filter(
            or_(
                TyrePurchase.bill_no.ilike(like, escape=LIKE_ESCAPE),
                TyrePurchase.tyre_size.ilike(like, escape=LIKE_ESCAPE),
                TyrePurchase.pattern.ilike(like, escape=LIKE_ESCAPE),
            )
        )
    if start_dt:
        query = query.filter(TyrePurchase.date >= start_dt)
    if end_dt:
        query = query.filter(TyrePurchase.date <= end_dt)

    total = query.count()
    rows = (
        query.order_by(TyrePurchase.created_at.desc(), TyrePurchase.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, page_meta(page, limit, total)
