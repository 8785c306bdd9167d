# Overview: Service-layer operations for tyre stock; encapsulates business logic and database work.

"""
Tyre Stock Ledger (authoritative)

Stock is a mutable quantity on Tire, keyed by (dimension, pattern).

Delta semantics:
- delta >= 0 on an existing tire: stock += delta
- delta < 0 on an existing tire with stock > 0: stock = max(0, stock + delta)
- delta < 0 on a tire whose stock is already 0: no-op (a brand hint is
  still written)
- delta > 0 on a missing tire: the tire is created with stock = delta and
  all prices 0, unless the caller passes create_missing=False (restocks
  coming back from invoices), in which case it is reported as NOT_FOUND
- delta <= 0 on a missing tire: no-op, reported as NOT_FOUND (a negative
  record is never fabricated)

applied_quantity on the result is how many units actually moved, so callers
can remember what a sale really took out.

Concurrency:
- Every delta is one UPDATE statement evaluated by the database
  (stock = stock + :delta), never a read-modify-write in Python, so a
  concurrent purchase and sale on the same tire cannot lose an update.
- Tire creation relies on the (dimension, pattern) unique constraint; the
  loser of an insert race falls back to the increment.

Batches:
- apply_deltas() commits each entry on its own. A failing entry never rolls
  back the others; the result lists every entry's outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Tire
from ..validation import ValidationError
from .concurrency import lock_for_update, run_with_retry


STATUS_ADJUSTED = "ADJUSTED"
STATUS_CREATED = "CREATED"
STATUS_SKIPPED_ZERO_STOCK = "SKIPPED_ZERO_STOCK"
STATUS_NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class StockAdjustment:
    dimension: str
    pattern: str
    quantity_delta: int
    status: str
    stock: int | None
    tire_id: int | None = None
    applied_quantity: int = 0

    @property
    def applied(self) -> bool:
        return self.status in (STATUS_ADJUSTED, STATUS_CREATED)

    def to_dict(self) -> dict:
        return {
            "dimension": self.dimension,
            "pattern": self.pattern,
            "quantity_delta": self.quantity_delta,
            "applied_quantity": self.applied_quantity,
            "status": self.status,
            "stock": self.stock,
            "tire_id": self.tire_id,
        }


@dataclass
class BatchStockResult:
    results: list[dict] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r["success"])

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def is_partial(self) -> bool:
        return self.failed > 0

    def to_dict(self) -> dict:
        return {
            "results": self.results,
            "summary": {
                "total": len(self.results),
                "succeeded": self.succeeded,
                "failed": self.failed,
            },
        }


def _key_filter(dimension: str, pattern: str):
    return (Tire.dimension == dimension, Tire.pattern == pattern)


def find_tire(dimension: str, pattern: str) -> Tire | None:
    stmt = (
        select(Tire)
        .where(*_key_filter(dimension, pattern))
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _locked_tire(dimension: str, pattern: str) -> Tire | None:
    query = db.session.query(Tire).filter(*_key_filter(dimension, pattern)).populate_existing()
    return lock_for_update(query).one_or_none()


def _set_brand(dimension: str, pattern: str, brand_hint: str) -> None:
    stmt = (
        update(Tire)
        .where(*_key_filter(dimension, pattern))
        .values(material_code=brand_hint)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)


def _increment(dimension: str, pattern: str, delta: int, brand_hint: str | None) -> int:
    values = {"stock": Tire.stock + delta}
    if brand_hint:
        values["material_code"] = brand_hint
    stmt = (
        update(Tire)
        .where(*_key_filter(dimension, pattern))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def _decrement(dimension: str, pattern: str, delta: int, brand_hint: str | None) -> int:
    new_stock = Tire.stock + delta
    values = {"stock": case((new_stock < 0, 0), else_=new_stock)}
    if brand_hint:
        values["material_code"] = brand_hint
    stmt = (
        update(Tire)
        .where(*_key_filter(dimension, pattern), Tire.stock > 0)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def _create(dimension: str, pattern: str, quantity: int, brand_hint: str | None) -> Tire | None:
    tire = Tire(
        dimension=dimension,
        pattern=pattern,
        stock=quantity,
        material_code=brand_hint or "",
        lisi="",
        billing_price_paise=0,
        our_price_paise=0,
        customer_price_paise=0,
    )
    try:
        with db.session.begin_nested():
            db.session.add(tire)
        return tire
    except IntegrityError:
        return None


def _adjustment(dimension, pattern, delta, status, tire: Tire | None, applied: int = 0) -> StockAdjustment:
    return StockAdjustment(
        dimension=dimension,
        pattern=pattern,
        quantity_delta=delta,
        status=status,
        stock=tire.stock if tire is not None else None,
        tire_id=tire.id if tire is not None else None,
        applied_quantity=applied,
    )


def apply_delta(
    dimension: str,
    pattern: str,
    delta: int,
    brand_hint: str | None = None,
    *,
    create_missing: bool = True,
) -> StockAdjustment:
    """
    Apply a signed quantity change to the tire keyed by (dimension, pattern).

    Runs inside the caller's transaction; the caller commits.
    """
    if not dimension or not pattern:
        raise ValidationError("dimension and pattern are required")
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("quantity_delta must be an integer")
    brand_hint = brand_hint.strip() if brand_hint else None

    if delta >= 0:
        if _increment(dimension, pattern, delta, brand_hint):
            return _adjustment(dimension, pattern, delta, STATUS_ADJUSTED, find_tire(dimension, pattern), delta)

        if delta == 0:
            return _adjustment(dimension, pattern, delta, STATUS_NOT_FOUND, None)

        if not create_missing:
            current_app.logger.warning(
                "Restock of %s skipped: no tire %s / %s", delta, dimension, pattern
            )
            return _adjustment(dimension, pattern, delta, STATUS_NOT_FOUND, None)

        tire = _create(dimension, pattern, delta, brand_hint)
        if tire is not None:
            return _adjustment(dimension, pattern, delta, STATUS_CREATED, tire, delta)

        # Someone else created it between our UPDATE and INSERT
        _increment(dimension, pattern, delta, brand_hint)
        return _adjustment(dimension, pattern, delta, STATUS_ADJUSTED, find_tire(dimension, pattern), delta)

    tire = _locked_tire(dimension, pattern)
    if tire is None:
        current_app.logger.warning(
            "Stock decrement of %s skipped: no tire %s / %s", -delta, dimension, pattern
        )
        return _adjustment(dimension, pattern, delta, STATUS_NOT_FOUND, None)

    on_hand = max(tire.stock, 0)
    if _decrement(dimension, pattern, delta, brand_hint):
        return _adjustment(
            dimension, pattern, delta, STATUS_ADJUSTED, find_tire(dimension, pattern), min(on_hand, -delta)
        )

    if brand_hint:
        _set_brand(dimension, pattern, brand_hint)
    current_app.logger.info(
        "Stock decrement of %s skipped: tire %s / %s has no stock", -delta, dimension, pattern
    )
    return _adjustment(dimension, pattern, delta, STATUS_SKIPPED_ZERO_STOCK, find_tire(dimension, pattern))


def _parse_batch_entry(entry) -> tuple[str, str, int, str | None]:
    if not isinstance(entry, dict):
        raise ValidationError("each entry must be an object")
    dimension = str(entry.get("dimension") or "").strip()
    pattern = str(entry.get("pattern") or "").strip()
    delta = entry.get("quantity_delta")
    brand = entry.get("brand")
    if not dimension or not pattern:
        raise ValidationError("dimension and pattern are required")
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("quantity_delta must be an integer")
    if delta == 0:
        raise ValidationError("quantity_delta must be non-zero")
    return dimension, pattern, delta, brand


def apply_deltas(entries: list) -> BatchStockResult:
    """
    Apply independent stock deltas, committing each one separately.

    Partial success is a valid outcome: failures are collected per entry and
    nothing that already succeeded is rolled back.
    """
    if not isinstance(entries, list) or not entries:
        raise ValidationError("entries must be a non-empty list")

    batch = BatchStockResult()
    for index, entry in enumerate(entries):
        try:
            dimension, pattern, delta, brand = _parse_batch_entry(entry)

            def _op():
                adjustment = apply_delta(dimension, pattern, delta, brand_hint=brand)
                db.session.commit()
                return adjustment

            adjustment = run_with_retry(_op)
        except ValidationError as exc:
            batch.results.append({"index": index, "success": False, "error": str(exc)})
            continue
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Stock batch entry %s failed", index)
            batch.results.append({"index": index, "success": False, "error": "database error"})
            continue

        result = {"index": index, **adjustment.to_dict()}
        if adjustment.applied:
            result["success"] = True
        else:
            result["success"] = False
            result["error"] = (
                "tire not found" if adjustment.status == STATUS_NOT_FOUND else "tire has no stock"
            )
        batch.results.append(result)

    return batch
