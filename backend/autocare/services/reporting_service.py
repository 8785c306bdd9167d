# Overview: Read-only aggregations over invoices and tyres.

from __future__ import annotations

from collections import OrderedDict

from flask import current_app
from sqlalchemy import and_, func, or_

from ..extensions import db
from ..models import Invoice, InvoiceItem, Tire
from ..validation import ValidationError
from ..time_utils import month_bounds, parse_date_range, to_utc_z, utcnow
from .pagination import LIKE_ESCAPE, contains_pattern, normalize_page, page_meta


def _parse_range(start: str | None, end: str | None):
    try:
        return parse_date_range(start, end)
    except ValueError:
        raise ValidationError("startDate and endDate must be ISO-8601 dates")


def payment_summary(start: str | None = None, end: str | None = None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(
        Invoice.payment_method.label("method"),
        func.count(Invoice.id).label("count"),
        func.coalesce(func.sum(Invoice.grand_total_paise), 0).label("grand_total"),
        func.coalesce(func.sum(Invoice.cash_amount_paise), 0).label("cash"),
        func.coalesce(func.sum(Invoice.online_amount_paise), 0).label("online"),
    )
    if start_dt:
        query = query.filter(Invoice.invoice_date >= start_dt)
    if end_dt:
        query = query.filter(Invoice.invoice_date <= end_dt)

    rows = []
    totals = {"count": 0, "grand_total_paise": 0, "cash_amount_paise": 0, "online_amount_paise": 0}
    for row in query.group_by(Invoice.payment_method).order_by(Invoice.payment_method.asc()).all():
        entry = {
            "payment_method": row.method,
            "count": int(row.count or 0),
            "grand_total_paise": int(row.grand_total or 0),
            "cash_amount_paise": int(row.cash or 0),
            "online_amount_paise": int(row.online or 0),
        }
        rows.append(entry)
        for key in totals:
            totals[key] += entry[key]

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "rows": rows,
        "totals": totals,
    }


def _sold_subquery(start=None, end=None, name: str = "sold"):
    query = db.session.query(
        InvoiceItem.dimension.label("dimension"),
        InvoiceItem.pattern.label("pattern"),
        func.sum(InvoiceItem.quantity).label("quantity"),
    )
    if start is not None:
        query = query.join(Invoice, Invoice.id == InvoiceItem.invoice_id).filter(
            Invoice.invoice_date >= start, Invoice.invoice_date < end
        )
    return query.group_by(InvoiceItem.dimension, InvoiceItem.pattern).subquery(name)


def stock_levels(page=None, limit=None, month=None, search: str | None = None) -> dict:
    """
    Tyres currently in stock or ever sold, with monthly and all-time sales.

    `month` is 1-12 of the current year and defaults to the current month.
    Totals cover every matched tyre, not just the returned page.
    """
    page, limit = normalize_page(page, limit, default_limit=10)
    if month in (None, ""):
        month = utcnow().month
    try:
        month_start, month_end = month_bounds(int(month))
    except (TypeError, ValueError):
        raise ValidationError("month must be an integer between 1 and 12")

    monthly = _sold_subquery(month_start, month_end, name="monthly_sold")
    all_time = _sold_subquery(name="all_time_sold")

    monthly_qty = func.coalesce(monthly.c.quantity, 0)
    all_time_qty = func.coalesce(all_time.c.quantity, 0)

    base = (
        db.session.query(Tire)
        .outerjoin(monthly, and_(monthly.c.dimension == Tire.dimension, monthly.c.pattern == Tire.pattern))
        .outerjoin(all_time, and_(all_time.c.dimension == Tire.dimension, all_time.c.pattern == Tire.pattern))
        .filter(or_(Tire.stock > 0, all_time_qty > 0))
    )
    if search:
        like = contains_pattern(search)
        base = base.filter(
            or_(
                Tire.dimension.ilike(like, escape=LIKE_ESCAPE),
                Tire.pattern.ilike(like, escape=LIKE_ESCAPE),
                Tire.material_code.ilike(like, escape=LIKE_ESCAPE),
            )
        )

    totals_row = base.with_entities(
        func.count(Tire.id).label("tires"),
        func.coalesce(func.sum(Tire.stock), 0).label("stock"),
        func.coalesce(func.sum(monthly_qty), 0).label("monthly_sold"),
        func.coalesce(func.sum(all_time_qty), 0).label("all_time_sold"),
    ).one()

    rows = (
        base.with_entities(Tire, monthly_qty.label("monthly_sold"), all_time_qty.label("all_time_sold"))
        .order_by(Tire.dimension.asc(), Tire.pattern.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items = []
    for tire, monthly_sold, all_time_sold in rows:
        entry = tire.to_dict()
        entry["monthly_sold"] = int(monthly_sold or 0)
        entry["all_time_sold"] = int(all_time_sold or 0)
        items.append(entry)

    total = int(totals_row.tires or 0)
    return {
        "month": int(month),
        "items": items,
        "pagination": page_meta(page, limit, total),
        "totals": {
            "tires": total,
            "stock": int(totals_row.stock or 0),
            "monthly_sold": int(totals_row.monthly_sold or 0),
            "all_time_sold": int(totals_row.all_time_sold or 0),
        },
    }


def regular_customers(min_invoices: int | None = None) -> list[dict]:
    if min_invoices is None:
        min_invoices = current_app.config.get("REGULAR_CUSTOMER_MIN_INVOICES", 3)
    try:
        min_invoices = int(min_invoices)
    except (TypeError, ValueError):
        raise ValidationError("minInvoices must be an integer")
    if min_invoices < 1:
        raise ValidationError("minInvoices must be >= 1")

    names = (
        db.session.query(Invoice.customer_name)
        .group_by(Invoice.customer_name)
        .having(func.count(Invoice.id) >= min_invoices)
        .subquery()
    )
    invoices = (
        db.session.query(Invoice)
        .filter(Invoice.customer_name.in_(db.session.query(names.c.customer_name)))
        .order_by(Invoice.customer_name.asc(), Invoice.invoice_date.desc(), Invoice.id.desc())
        .all()
    )

    groups: OrderedDict[str, list[Invoice]] = OrderedDict()
    for invoice in invoices:
        groups.setdefault(invoice.customer_name, []).append(invoice)

    customers = []
    for name, rows in groups.items():
        dates = [inv.invoice_date for inv in rows]
        customers.append({
            "customer_name": name,
            "invoices": [inv.to_dict(include_lines=False) for inv in rows],
            "stats": {
                "invoice_count": len(rows),
                "total_spent_paise": sum(inv.grand_total_paise for inv in rows),
                "pending_amount_paise": sum(inv.pending_amount_paise for inv in rows),
                "first_invoice_date": to_utc_z(min(dates)),
                "last_invoice_date": to_utc_z(max(dates)),
            },
        })
    customers.sort(key=lambda c: c["stats"]["invoice_count"], reverse=True)
    return customers


def usage_reading_history(car_number: str) -> dict:
    car_number = (car_number or "").strip()
    if not car_number:
        raise ValidationError("car_number is required")

    rows = (
        db.session.query(Invoice)
        .filter(func.upper(Invoice.car_number) == car_number.upper(), Invoice.usage_reading.isnot(None))
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .all()
    )
    readings = [
        {
            "invoice_number": inv.invoice_number,
            "invoice_date": to_utc_z(inv.invoice_date),
            "usage_reading": inv.usage_reading,
        }
        for inv in rows
    ]
    return {
        "car_number": car_number,
        "latest": readings[0] if readings else None,
        "readings": readings,
    }
