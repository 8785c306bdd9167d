# Overview: Flask API routes for tyre purchases and the stock-levels report.

"""
Tyre purchase routes.

Every purchase write moves tyre stock; the response carries the stock
adjustments so the UI can show what changed.
"""
from flask import Blueprint, request, jsonify

from ..services import purchase_service, reporting_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth


tyre_purchases_bp = Blueprint("tyre_purchases", __name__, url_prefix="/api/tyre-purchases")


@tyre_purchases_bp.post("/")
@require_auth
def create_purchase_route():
    payload = request.get_json(silent=True) or {}
    try:
        purchase, adjustment = purchase_service.create_purchase(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "purchase": purchase.to_dict(),
        "stock_adjustments": [adjustment.to_dict()],
    }), 201


@tyre_purchases_bp.get("/recent")
@require_auth
def recent_purchases_route():
    """
    Query params: page, limit (default 20), search (bill no / size / pattern),
    startDate, endDate (bare end date includes the whole day).
    """
    try:
        purchases, pagination = purchase_service.list_recent_purchases(
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            search=request.args.get("search"),
            start=request.args.get("startDate"),
            end=request.args.get("endDate"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "purchases": [p.to_dict() for p in purchases],
        "pagination": pagination,
    }), 200


@tyre_purchases_bp.get("/stock-levels")
@require_auth
def stock_levels_route():
    try:
        report = reporting_service.stock_levels(
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            month=request.args.get("month"),
            search=request.args.get("search"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200


@tyre_purchases_bp.put("/<int:purchase_id>")
@require_auth
def update_purchase_route(purchase_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        purchase, adjustments = purchase_service.update_purchase(purchase_id, payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({
        "purchase": purchase.to_dict(),
        "stock_adjustments": [a.to_dict() for a in adjustments],
    }), 200


@tyre_purchases_bp.delete("/<int:purchase_id>")
@require_auth
def delete_purchase_route(purchase_id: int):
    try:
        adjustment = purchase_service.delete_purchase(purchase_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"ok": True, "stock_adjustments": [adjustment.to_dict()]}), 200
