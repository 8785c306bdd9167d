# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Lifecycle

Created -> Updated* -> Deleted (hard delete, no void state).

CREATE:
- Client-supplied totals are ignored; lines, subtotals, taxes and the grand
  total are recomputed here.
- Payment allocation is reconciled against the recomputed grand total.
- The sequence comes from the atomic counter unless the client supplies one,
  either explicitly or encoded in a PREFIX-N invoice_number. Supplied
  sequences are reserved; counter values whose formatted number is already
  taken are skipped.
- Every item line decrements stock for its (dimension, pattern) in the same
  transaction as the invoice insert. Each line remembers how many units it
  actually took (stock_deducted).
- The invoice_number pre-check is only a fast path; the unique constraints
  are authoritative (IntegrityError -> ConflictError).

UPDATE:
- Only the fields in INVOICE_UPDATE_POLICY are mutable. invoice_number and
  invoice_number_sequence never change.
- Changing items/services recomputes totals. Selling more of a tyre takes
  only the extra units; selling fewer returns units the old lines actually
  took, never ones whose decrement was skipped.
- Any change to the grand total or payment fields re-runs reconciliation.
- UNPAID invoices keep owing the whole (new) grand total; PARTIALLY_PAID
  keep their owed amount, which must still fit the new total.
- bulk_update=true copies customer_phone/customer_gst to every other invoice
  of the same customer_name and reports how many were touched.

DELETE:
- Stock is not restored unless RESTOCK_ON_INVOICE_DELETE is enabled, and
  then only the units the lines actually took.

Restocks from invoices never create a tire record.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Invoice, InvoiceItem, ServiceItem
from ..models.invoices import PAYMENT_STATUS_UNPAID
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_invoice,
    enforce_rules_invoice_item,
    enforce_rules_service_item,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .pagination import LIKE_ESCAPE, contains_pattern, normalize_page, page_meta
from .payment_service import payment_status_for, reconcile_payment, resolve_pending
from .sequence_service import (
    format_invoice_number,
    next_invoice_sequence,
    parse_invoice_number,
    peek_next_sequence,
    reserve_sequence,
)
from .stock_service import StockAdjustment, apply_delta
from .totals_service import TaxRateTable, breakdown, compute_totals, line_total


# Computed server-side; silently dropped when clients send them
CLIENT_COMPUTED_FIELDS = {
    "items_subtotal_paise",
    "services_subtotal_paise",
    "total_amount_paise",
    "cgst_paise",
    "sgst_paise",
    "grand_total_paise",
}

INVOICE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "invoice_number",
        "invoice_number_sequence",
        "customer_name",
        "customer_phone",
        "customer_gst",
        "car_model",
        "car_number",
        "usage_reading",
        "invoice_date",
        "payment_method",
        "payment_details",
        "items",
        "services",
        "is_pending",
        "pending_amount_paise",
    },
    required_on_create={"customer_name", "invoice_date", "payment_method"},
    nested_fields={"payment_details", "items", "services", "is_pending"},
)

INVOICE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "customer_phone",
        "customer_gst",
        "car_model",
        "car_number",
        "usage_reading",
        "invoice_date",
        "payment_method",
        "payment_details",
        "items",
        "services",
        "bulk_update",
    },
    nested_fields={"payment_details", "items", "services", "bulk_update"},
)

INVOICE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"material_code", "dimension", "pattern", "price_paise", "quantity", "total_paise"},
    required_on_create={"material_code", "dimension", "pattern", "price_paise", "quantity"},
)

SERVICE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"service_type", "quantity", "rate_paise", "total_paise"},
    required_on_create={"service_type", "quantity", "rate_paise"},
)

# Customer fields that bulk_update may propagate
BULK_PROPAGATED_FIELDS = ("customer_phone", "customer_gst")


@dataclass
class InvoiceWriteResult:
    invoice: Invoice
    stock_adjustments: list[StockAdjustment] = field(default_factory=list)
    bulk_update: dict | None = None

    def to_dict(self) -> dict:
        data = {
            "invoice": self.invoice.to_dict(),
            "stock_adjustments": [a.to_dict() for a in self.stock_adjustments],
        }
        if self.bulk_update is not None:
            data["bulk_update"] = self.bulk_update
        return data


def get_tax_rates() -> TaxRateTable:
    return TaxRateTable.from_config(current_app.config["TAX_RATES_BPS"])


def _strip_client_totals(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return {k: v for k, v in payload.items() if k not in CLIENT_COMPUTED_FIELDS}


def _validated_items(raw) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")
    items = []
    for index, entry in enumerate(raw):
        try:
            patch = validate_payload(model=InvoiceItem, payload=entry, policy=INVOICE_ITEM_POLICY, partial=False)
            enforce_rules_invoice_item(patch)
        except ValidationError as exc:
            raise ValidationError(f"items[{index}]: {exc}")
        patch["total_paise"] = line_total(patch["price_paise"], patch["quantity"])
        items.append(patch)
    return items


def _validated_services(raw) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("services must be a list")
    services = []
    for index, entry in enumerate(raw):
        try:
            patch = validate_payload(model=ServiceItem, payload=entry, policy=SERVICE_ITEM_POLICY, partial=False)
            enforce_rules_service_item(patch)
        except ValidationError as exc:
            raise ValidationError(f"services[{index}]: {exc}")
        patch["total_paise"] = line_total(patch["rate_paise"], patch["quantity"])
        services.append(patch)
    return services


def _apply_totals(invoice: Invoice) -> None:
    totals = compute_totals(
        [item.total_paise for item in invoice.items],
        [service.total_paise for service in invoice.services],
        get_tax_rates(),
    )
    for key, value in totals.as_columns().items():
        setattr(invoice, key, value)


def _current_payment_details(invoice: Invoice) -> dict:
    return {
        "cash_amount_paise": invoice.cash_amount_paise,
        "online_amount_paise": invoice.online_amount_paise,
        "online_reference": invoice.online_reference,
    }


def _apply_payment(invoice: Invoice, method: str, details: dict | None) -> None:
    payment = reconcile_payment(method, invoice.grand_total_paise, details)
    invoice.payment_method = method
    for key, value in payment.as_columns().items():
        setattr(invoice, key, value)


def _bool_flag(value, name: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{name} must be a boolean")


def _load_for_update(invoice_number: str) -> Invoice:
    invoice = lock_for_update(
        db.session.query(Invoice).filter_by(invoice_number=invoice_number)
    ).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_number} not found")
    return invoice


def _write(op):
    """Run a write op with retry; unique-constraint failures become conflicts."""
    try:
        return run_with_retry(op)
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Invoice number or sequence already exists") from exc
    except Exception:
        db.session.rollback()
        raise


# =============================================================================
# STOCK
# =============================================================================

def _line_totals(lines, attr: str) -> Counter:
    counts: Counter = Counter()
    for line in lines:
        counts[(line.dimension, line.pattern)] += getattr(line, attr) or 0
    return counts


def _sync_item_stock(old_quantities: Counter, old_taken: Counter, lines) -> list[StockAdjustment]:
    """
    Move stock from the invoice's previous item lines to `lines`.

    Selling more of a tyre takes only the extra units out of stock. Selling
    fewer returns what the old lines actually took (old_taken), so a skipped
    decrement is never reversed. Sets stock_deducted on every new line.
    """
    new_quantities = _line_totals(lines, "quantity")
    adjustments = []
    held: Counter = Counter()

    for key in sorted(set(old_quantities) | set(new_quantities)):
        held[key] = min(new_quantities[key], old_taken[key])
        extra = new_quantities[key] - old_quantities[key]
        if extra > 0:
            adjustment = apply_delta(key[0], key[1], -extra)
            held[key] += adjustment.applied_quantity
            adjustments.append(adjustment)
        elif old_taken[key] > held[key]:
            adjustments.append(
                apply_delta(key[0], key[1], old_taken[key] - held[key], create_missing=False)
            )

    for line in lines:
        key = (line.dimension, line.pattern)
        line.stock_deducted = min(line.quantity, held[key])
        held[key] -= line.stock_deducted
    return adjustments


# =============================================================================
# CREATE
# =============================================================================

def _allocate_sequence(prefix: str) -> int:
    """Next counter value whose formatted number is not already in use."""
    while True:
        sequence = next_invoice_sequence()
        number = format_invoice_number(sequence, prefix)
        if db.session.query(Invoice.id).filter_by(invoice_number=number).first() is None:
            return sequence
        current_app.logger.info("Invoice number %s already taken; skipping sequence %s", number, sequence)


def create_invoice(payload: dict) -> InvoiceWriteResult:
    """
    Create an invoice, allocate its number and take its items out of stock.

    Raises ValidationError (incl. InvalidPaymentError) or ConflictError.
    """
    payload = _strip_client_totals(payload)
    for optional_key in ("invoice_number", "invoice_number_sequence"):
        if payload.get(optional_key) in ("", None):
            payload.pop(optional_key, None)

    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_CREATE_POLICY, partial=False)
    enforce_rules_invoice(patch)

    items = _validated_items(patch.pop("items", None))
    services = _validated_services(patch.pop("services", None))
    if not items and not services:
        raise ValidationError("invoice must have at least one item or service")

    details = patch.pop("payment_details", None)
    is_pending = _bool_flag(patch.pop("is_pending", False), "is_pending")
    pending_amount = patch.pop("pending_amount_paise", None)
    method = patch.pop("payment_method")

    def _op() -> InvoiceWriteResult:
        prefix = current_app.config["INVOICE_NUMBER_PREFIX"]
        number = patch.get("invoice_number")
        if number and db.session.query(Invoice.id).filter_by(invoice_number=number).first():
            raise ConflictError("Invoice number already exists")

        invoice = Invoice(**patch)
        invoice.items = [InvoiceItem(position=i, **item) for i, item in enumerate(items)]
        invoice.services = [ServiceItem(position=i, **service) for i, service in enumerate(services)]
        _apply_totals(invoice)
        _apply_payment(invoice, method, details)
        invoice.payment_status, invoice.pending_amount_paise = resolve_pending(
            is_pending, pending_amount, invoice.grand_total_paise
        )

        sequence = patch.get("invoice_number_sequence")
        if not sequence and number:
            sequence = parse_invoice_number(number, prefix)
        if sequence:
            if db.session.query(Invoice.id).filter_by(invoice_number_sequence=sequence).first():
                raise ConflictError("Invoice sequence already exists")
            reserve_sequence(sequence)
        else:
            sequence = _allocate_sequence(prefix)
        invoice.invoice_number_sequence = sequence
        if not number:
            invoice.invoice_number = format_invoice_number(sequence, prefix)

        db.session.add(invoice)
        db.session.flush()

        adjustments = _sync_item_stock(Counter(), Counter(), invoice.items)
        db.session.commit()
        current_app.logger.info(
            "Invoice %s created (grand total %s paise)", invoice.invoice_number, invoice.grand_total_paise
        )
        return InvoiceWriteResult(invoice=invoice, stock_adjustments=adjustments)

    return _write(_op)


# =============================================================================
# UPDATE
# =============================================================================

def _propagate_customer_fields(invoice: Invoice, patch: dict) -> dict:
    fields = {k: patch[k] for k in BULK_PROPAGATED_FIELDS if k in patch}
    if not fields:
        raise ValidationError("bulk_update requires customer_phone or customer_gst")

    updated = (
        db.session.query(Invoice)
        .filter(Invoice.customer_name == invoice.customer_name, Invoice.id != invoice.id)
        .update(fields, synchronize_session=False)
    )
    current_app.logger.info(
        "Propagated %s to %s other invoices of %r", ", ".join(sorted(fields)), updated, invoice.customer_name
    )
    return {
        "customer_name": invoice.customer_name,
        "fields": sorted(fields),
        "updated_invoices": updated,
    }


def update_invoice(invoice_number: str, payload: dict) -> InvoiceWriteResult:
    """
    Partial update of a stored invoice.

    Raises NotFoundError, ValidationError (incl. InvalidPaymentError).
    """
    payload = _strip_client_totals(payload)
    patch = validate_payload(model=Invoice, payload=payload, policy=INVOICE_UPDATE_POLICY, partial=True)
    enforce_rules_invoice(patch)

    bulk = _bool_flag(patch.pop("bulk_update", False), "bulk_update")
    items = _validated_items(patch["items"]) if "items" in patch else None
    services = _validated_services(patch["services"]) if "services" in patch else None
    patch.pop("items", None)
    patch.pop("services", None)
    details = patch.pop("payment_details", None)
    method = patch.pop("payment_method", None)

    def _op() -> InvoiceWriteResult:
        invoice = _load_for_update(invoice_number)

        for key, value in patch.items():
            setattr(invoice, key, value)

        adjustments: list[StockAdjustment] = []
        previous_grand_total = invoice.grand_total_paise

        if items is not None or services is not None:
            old_quantities = _line_totals(invoice.items, "quantity")
            old_taken = _line_totals(invoice.items, "stock_deducted")
            if items is not None:
                invoice.items = [InvoiceItem(position=i, **item) for i, item in enumerate(items)]
            if services is not None:
                invoice.services = [ServiceItem(position=i, **service) for i, service in enumerate(services)]
            if not invoice.items and not invoice.services:
                raise ValidationError("invoice must have at least one item or service")
            _apply_totals(invoice)
            if items is not None:
                db.session.flush()
                adjustments = _sync_item_stock(old_quantities, old_taken, invoice.items)

        grand_total_changed = invoice.grand_total_paise != previous_grand_total
        if grand_total_changed or method is not None or details is not None:
            _apply_payment(
                invoice,
                method or invoice.payment_method,
                details if details is not None else _current_payment_details(invoice),
            )

        if grand_total_changed and invoice.payment_status == PAYMENT_STATUS_UNPAID:
            invoice.pending_amount_paise = invoice.grand_total_paise
            invoice.payment_status = payment_status_for(invoice.grand_total_paise, invoice.grand_total_paise)
        elif grand_total_changed and invoice.pending_amount_paise:
            invoice.payment_status = payment_status_for(invoice.pending_amount_paise, invoice.grand_total_paise)

        bulk_summary = _propagate_customer_fields(invoice, patch) if bulk else None

        db.session.commit()
        return InvoiceWriteResult(invoice=invoice, stock_adjustments=adjustments, bulk_update=bulk_summary)

    return _write(_op)


def update_pending(invoice_number: str, payload: dict) -> Invoice:
    """Set the pending balance (is_pending + optional pending_amount_paise)."""
    if not isinstance(payload, dict) or "is_pending" not in payload:
        raise ValidationError("is_pending is required")
    is_pending = _bool_flag(payload["is_pending"], "is_pending")
    amount = payload.get("pending_amount_paise")
    if amount is not None and (isinstance(amount, bool) or not isinstance(amount, int)):
        raise ValidationError("pending_amount_paise must be an integer")

    def _op() -> Invoice:
        invoice = _load_for_update(invoice_number)
        invoice.payment_status, invoice.pending_amount_paise = resolve_pending(
            is_pending, amount, invoice.grand_total_paise
        )
        db.session.commit()
        return invoice

    return _write(_op)


def update_payment(invoice_number: str, payload: dict) -> Invoice:
    """Change method/allocation without touching the lines."""
    if not isinstance(payload, dict) or not payload.get("payment_method"):
        raise ValidationError("payment_method is required")
    method = payload["payment_method"]
    details = payload.get("payment_details")

    def _op() -> Invoice:
        invoice = _load_for_update(invoice_number)
        _apply_payment(invoice, method, details)
        db.session.commit()
        return invoice

    return _write(_op)


def update_usage_reading(invoice_number: str, payload: dict) -> Invoice:
    if not isinstance(payload, dict) or "usage_reading" not in payload:
        raise ValidationError("usage_reading is required")
    patch = validate_payload(
        model=Invoice,
        payload={"usage_reading": payload["usage_reading"]},
        policy=ModelValidationPolicy(writable_fields={"usage_reading"}),
        partial=True,
    )
    enforce_rules_invoice(patch)

    def _op() -> Invoice:
        invoice = _load_for_update(invoice_number)
        invoice.usage_reading = patch["usage_reading"]
        db.session.commit()
        return invoice

    return _write(_op)


# =============================================================================
# DELETE
# =============================================================================

def delete_invoice(invoice_number: str) -> list[StockAdjustment]:
    """
    Hard-delete an invoice. Returns the stock adjustments made (empty unless
    RESTOCK_ON_INVOICE_DELETE is on).
    """
    def _op() -> list[StockAdjustment]:
        invoice = _load_for_update(invoice_number)
        adjustments = []
        if current_app.config.get("RESTOCK_ON_INVOICE_DELETE"):
            for key, taken in sorted(_line_totals(invoice.items, "stock_deducted").items()):
                if taken:
                    adjustments.append(apply_delta(key[0], key[1], taken, create_missing=False))
        db.session.delete(invoice)
        db.session.commit()
        current_app.logger.info("Invoice %s deleted", invoice_number)
        return adjustments

    return _write(_op)


# =============================================================================
# READS
# =============================================================================

def get_invoice(invoice_number: str) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(invoice_number=invoice_number).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_number} not found")
    return invoice


def list_invoices(page=None, limit=None) -> tuple[list[Invoice], dict]:
    page, limit = normalize_page(page, limit)
    query = db.session.query(Invoice)
    total = query.count()
    invoices = (
        query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return invoices, page_meta(page, limit, total)


def search_invoices(term: str, limit: int = 200) -> list[Invoice]:
    """Case-insensitive substring match on number, name, phone and GST id."""
    term = (term or "").strip()
    if not term:
        raise ValidationError("search term is required")
    like = contains_pattern(term)
    return (
        db.session.query(Invoice)
        .filter(
            or_(
                Invoice.invoice_number.ilike(like, escape=LIKE_ESCAPE),
                Invoice.customer_name.ilike(like, escape=LIKE_ESCAPE),
                Invoice.customer_phone.ilike(like, escape=LIKE_ESCAPE),
                Invoice.customer_gst.ilike(like, escape=LIKE_ESCAPE),
            )
        )
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .limit(limit)
        .all()
    )


def invoice_breakdown(invoice_number: str) -> dict:
    return breakdown(get_invoice(invoice_number), get_tax_rates())


def next_invoice_number() -> dict:
    """Preview of the number the next create would get. Nothing is reserved."""
    prefix = current_app.config["INVOICE_NUMBER_PREFIX"]
    sequence = peek_next_sequence()
    while db.session.query(Invoice.id).filter_by(invoice_number=format_invoice_number(sequence, prefix)).first():
        sequence += 1
    return {
        "invoice_number": format_invoice_number(sequence, prefix),
        "next_number": sequence,
    }
