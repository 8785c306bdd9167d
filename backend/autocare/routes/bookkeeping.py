# Overview: Flask API routes for expenses and staff payments.

from flask import Blueprint, request, jsonify

from ..services import bookkeeping_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")
payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _write(operation, *args, status: int = 200, key: str):
    try:
        record = operation(*args)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({key: record.to_dict()}), status


def _delete(operation, record_id: int):
    try:
        operation(record_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"ok": True}), 200


# =============================================================================
# EXPENSES
# =============================================================================

@expenses_bp.get("/")
@require_auth
def list_expenses_route():
    """Query params: startDate, endDate (inclusive of the whole day), search."""
    try:
        expenses = bookkeeping_service.list_expenses(
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
            search=request.args.get("search"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200


@expenses_bp.get("/stats")
@require_auth
def expense_stats_route():
    try:
        stats = bookkeeping_service.expense_stats(
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(stats), 200


@expenses_bp.post("/")
@require_auth
def create_expense_route():
    payload = request.get_json(silent=True) or {}
    return _write(bookkeeping_service.create_expense, payload, status=201, key="expense")


@expenses_bp.put("/<int:expense_id>")
@require_auth
def update_expense_route(expense_id: int):
    payload = request.get_json(silent=True) or {}
    return _write(bookkeeping_service.update_expense, expense_id, payload, key="expense")


@expenses_bp.delete("/<int:expense_id>")
@require_auth
def delete_expense_route(expense_id: int):
    return _delete(bookkeeping_service.delete_expense, expense_id)


# =============================================================================
# STAFF PAYMENTS
# =============================================================================

@payments_bp.get("/")
@require_auth
def list_payments_route():
    """Query params: name (substring), type (salary|advance|deposit), date (single day)."""
    try:
        payments = bookkeeping_service.list_staff_payments(
            name=request.args.get("name"),
            type_=request.args.get("type"),
            date=request.args.get("date"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@payments_bp.post("/")
@require_auth
def create_payment_route():
    payload = request.get_json(silent=True) or {}
    return _write(bookkeeping_service.create_staff_payment, payload, status=201, key="payment")


@payments_bp.put("/<int:payment_id>")
@require_auth
def update_payment_route(payment_id: int):
    payload = request.get_json(silent=True) or {}
    return _write(bookkeeping_service.update_staff_payment, payment_id, payload, key="payment")


@payments_bp.delete("/<int:payment_id>")
@require_auth
def delete_payment_route(payment_id: int):
    return _delete(bookkeeping_service.delete_staff_payment, payment_id)
