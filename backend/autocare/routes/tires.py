# Overview: Flask API routes for tyre stock items; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import tire_service, stock_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth


tires_bp = Blueprint("tires", __name__, url_prefix="/api/tires")


@tires_bp.get("/")
@require_auth
def list_tires_route():
    tires = tire_service.list_tires(search=request.args.get("search"))
    return jsonify({"tires": [t.to_dict() for t in tires]}), 200


@tires_bp.post("/add")
@require_auth
def create_tire_route():
    payload = request.get_json(silent=True) or {}
    try:
        tire = tire_service.create_tire(payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"tire": tire.to_dict()}), 201


@tires_bp.put("/<int:tire_id>")
@require_auth
def update_tire_route(tire_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        tire = tire_service.update_tire(tire_id, payload)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"tire": tire.to_dict()}), 200


@tires_bp.delete("/<int:tire_id>")
@require_auth
def delete_tire_route(tire_id: int):
    try:
        tire_service.delete_tire(tire_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"ok": True}), 200


@tires_bp.post("/stock/batch")
@require_auth
def batch_stock_route():
    """
    Apply independent stock deltas.

    Body: {"entries": [{"dimension", "pattern", "quantity_delta", "brand"?}, ...]}
    or a bare list. Returns 200 when every entry applied, 207 otherwise.
    """
    payload = request.get_json(silent=True)
    entries = payload.get("entries") if isinstance(payload, dict) else payload

    try:
        result = stock_service.apply_deltas(entries)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(result.to_dict()), 207 if result.is_partial else 200
