# Overview: Expenses and staff payments; standalone records with no stock or invoice effects.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Expense, StaffPayment
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_expense,
    enforce_rules_staff_payment,
    validate_payload,
)
from ..time_utils import utcnow, parse_date_range, day_bounds
from .pagination import LIKE_ESCAPE, contains_pattern


EXPENSE_LIST_LIMIT = 100

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"key", "value_paise", "date"},
    required_on_create={"key", "value_paise"},
)

STAFF_PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "amount_paise", "type", "date"},
    required_on_create={"name", "amount_paise", "type", "date"},
)


def _date_range(start: str | None, end: str | None):
    try:
        return parse_date_range(start, end)
    except ValueError:
        raise ValidationError("startDate and endDate must be ISO-8601 dates")


def _no_null_date(patch: dict) -> None:
    if "date" in patch and patch["date"] is None:
        raise ValidationError("date cannot be null")


# =============================================================================
# EXPENSES
# =============================================================================

def _expense_query(start: str | None, end: str | None):
    start_dt, end_dt = _date_range(start, end)
    query = db.session.query(Expense)
    if start_dt:
        query = query.filter(Expense.date >= start_dt)
    if end_dt:
        query = query.filter(Expense.date <= end_dt)
    return query


def list_expenses(start: str | None = None, end: str | None = None, search: str | None = None) -> list[Expense]:
    """Newest first, capped at EXPENSE_LIST_LIMIT. `end` includes the whole day."""
    query = _expense_query(start, end)
    if search:
        query = query.filter(Expense.key.ilike(contains_pattern(search), escape=LIKE_ESCAPE))
    return (
        query.order_by(Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc())
        .limit(EXPENSE_LIST_LIMIT)
        .all()
    )


def create_expense(payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)
    if patch.get("date") is None:
        patch["date"] = utcnow()

    expense = Expense(**patch)
    db.session.add(expense)
    db.session.commit()
    return expense


def update_expense(expense_id: int, payload: dict) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    enforce_rules_expense(patch)
    _no_null_date(patch)

    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("Expense not found")
    for key, value in patch.items():
        setattr(expense, key, value)
    db.session.commit()
    return expense


def delete_expense(expense_id: int) -> None:
    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("Expense not found")
    db.session.delete(expense)
    db.session.commit()


def expense_stats(start: str | None = None, end: str | None = None) -> dict:
    start_dt, end_dt = _date_range(start, end)
    query = db.session.query(
        func.coalesce(func.sum(Expense.value_paise), 0).label("total"),
        func.count(Expense.id).label("count"),
        func.avg(Expense.value_paise).label("avg"),
        func.max(Expense.value_paise).label("max"),
        func.min(Expense.value_paise).label("min"),
    )
    if start_dt:
        query = query.filter(Expense.date >= start_dt)
    if end_dt:
        query = query.filter(Expense.date <= end_dt)

    row = query.one()
    count = int(row.count or 0)
    return {
        "total_amount_paise": int(row.total or 0),
        "count": count,
        "avg_amount_paise": round(float(row.avg)) if count else 0,
        "max_amount_paise": int(row.max) if count else 0,
        "min_amount_paise": int(row.min) if count else 0,
    }


# =============================================================================
# STAFF PAYMENTS
# =============================================================================

def list_staff_payments(name: str | None = None, type_: str | None = None, date: str | None = None) -> list[StaffPayment]:
    query = db.session.query(StaffPayment)
    if name:
        query = query.filter(StaffPayment.name.ilike(contains_pattern(name), escape=LIKE_ESCAPE))
    if type_:
        query = query.filter(StaffPayment.type == type_)
    if date:
        try:
            day_start, next_day = day_bounds(date)
        except ValueError:
            raise ValidationError("date must be an ISO-8601 date")
        query = query.filter(StaffPayment.date >= day_start, StaffPayment.date < next_day)
    return query.order_by(StaffPayment.date.desc(), StaffPayment.id.desc()).all()


def create_staff_payment(payload: dict) -> StaffPayment:
    patch = validate_payload(model=StaffPayment, payload=payload, policy=STAFF_PAYMENT_POLICY, partial=False)
    enforce_rules_staff_payment(patch)

    payment = StaffPayment(**patch)
    db.session.add(payment)
    db.session.commit()
    return payment


def update_staff_payment(payment_id: int, payload: dict) -> StaffPayment:
    patch = validate_payload(model=StaffPayment, payload=payload, policy=STAFF_PAYMENT_POLICY, partial=True)
    enforce_rules_staff_payment(patch)
    _no_null_date(patch)

    payment = db.session.get(StaffPayment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    for key, value in patch.items():
        setattr(payment, key, value)
    db.session.commit()
    return payment


def delete_staff_payment(payment_id: int) -> None:
    payment = db.session.get(StaffPayment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    db.session.delete(payment)
    db.session.commit()
