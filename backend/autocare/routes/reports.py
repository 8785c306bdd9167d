# Overview: Flask API routes for read-only reports.

from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..validation import ValidationError
from ..decorators import require_auth


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/payment-summary")
@require_auth
def payment_summary_route():
    """Invoices grouped by payment method. Query params: startDate, endDate."""
    try:
        report = reporting_service.payment_summary(
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200


@reports_bp.get("/regular-customers")
@require_auth
def regular_customers_route():
    try:
        customers = reporting_service.regular_customers(request.args.get("minInvoices"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"customers": customers}), 200


@reports_bp.get("/usage-readings/<car_number>")
@require_auth
def usage_readings_route(car_number: str):
    try:
        history = reporting_service.usage_reading_history(car_number)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(history), 200
