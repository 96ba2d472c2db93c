# Overview: Flask API routes for customer product requests.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import request_service
from ..validation import ValidationError

requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


@requests_bp.post("")
def create_request():
    """Public: the kiosk asks for a sold-out product or variant."""
    payload = request.get_json(silent=True) or {}

    def pick(snake, camel):
        value = payload.get(snake)
        return payload.get(camel) if value is None else value

    try:
        req = request_service.request_product(
            pick("product_id", "productId"),
            pick("product_name", "productName"),
            pick("variant_id", "variantId"),
            pick("variant_name", "variantName"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record product request")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(req.to_dict()), 201


@requests_bp.get("")
@require_admin
def list_requests():
    return jsonify(request_service.list_requests()), 200


@requests_bp.delete("/<request_id>")
@require_admin
def delete_request(request_id: str):
    if not request_service.delete_request(request_id):
        return jsonify({"error": "Request not found"}), 404
    return jsonify({"ok": True}), 200


@requests_bp.delete("")
@require_admin
def clear_requests():
    return jsonify({"deleted": request_service.clear_requests()}), 200
