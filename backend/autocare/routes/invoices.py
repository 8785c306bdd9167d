# Overview: Flask API routes for invoices; parses input and returns JSON responses.

"""
Invoice routes.

Totals and payment status are always computed server-side; client totals in
the request body are ignored. All routes require an admin session.
"""
from flask import Blueprint, request, jsonify

from ..services import invoice_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("JSON object body required")
    return payload


@invoices_bp.get("/next-number")
@require_auth
def next_number_route():
    return jsonify(invoice_service.next_invoice_number()), 200


@invoices_bp.post("/create")
@require_auth
def create_invoice_route():
    """
    Create an invoice.

    Body: customer/car fields, invoice_date, items[], services[],
    payment_method, payment_details, optional is_pending/pending_amount_paise,
    optional invoice_number / invoice_number_sequence.

    Returns the invoice plus the stock adjustments applied for its items.
    """
    try:
        result = invoice_service.create_invoice(_json_body())
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(result.to_dict()), 201


@invoices_bp.get("/list")
@require_auth
def list_invoices_route():
    invoices, pagination = invoice_service.list_invoices(
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )
    return jsonify({
        "invoices": [inv.to_dict() for inv in invoices],
        "pagination": pagination,
    }), 200


@invoices_bp.get("/search/<path:term>")
@require_auth
def search_invoices_route(term: str):
    try:
        invoices = invoice_service.search_invoices(term)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"invoices": [inv.to_dict() for inv in invoices]}), 200


@invoices_bp.get("/breakdown/<invoice_number>")
@require_auth
def breakdown_route(invoice_number: str):
    try:
        return jsonify(invoice_service.invoice_breakdown(invoice_number)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@invoices_bp.get("/<invoice_number>")
@require_auth
def get_invoice_route(invoice_number: str):
    try:
        invoice = invoice_service.get_invoice(invoice_number)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.put("/<invoice_number>")
@require_auth
def update_invoice_route(invoice_number: str):
    """
    Partial update. Only customer, car, usage reading, invoice date, lines
    and payment fields are writable. `bulk_update: true` copies the supplied
    customer_phone / customer_gst to every invoice of the same customer.
    """
    try:
        result = invoice_service.update_invoice(invoice_number, _json_body())
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    return jsonify(result.to_dict()), 200


@invoices_bp.delete("/<invoice_number>")
@require_auth
def delete_invoice_route(invoice_number: str):
    try:
        adjustments = invoice_service.delete_invoice(invoice_number)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({
        "ok": True,
        "invoice_number": invoice_number,
        "stock_adjustments": [a.to_dict() for a in adjustments],
    }), 200


def _patch(operation, invoice_number: str):
    try:
        invoice = operation(invoice_number, _json_body())
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"invoice": invoice.to_dict()}), 200


@invoices_bp.patch("/<invoice_number>/pending")
@require_auth
def update_pending_route(invoice_number: str):
    """Body: {"is_pending": bool, "pending_amount_paise": int | null}"""
    return _patch(invoice_service.update_pending, invoice_number)


@invoices_bp.patch("/<invoice_number>/payment")
@require_auth
def update_payment_route(invoice_number: str):
    """Body: {"payment_method": "cash|online|both", "payment_details": {...}}"""
    return _patch(invoice_service.update_payment, invoice_number)


@invoices_bp.patch("/<invoice_number>/usage-reading")
@require_auth
def update_usage_reading_route(invoice_number: str):
    return _patch(invoice_service.update_usage_reading, invoice_number)
