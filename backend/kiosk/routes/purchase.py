# Overview: Flask API routes for kiosk checkout.

# backend/kiosk/routes/purchase.py
"""
Checkout routes (public, used by the kiosk).

Body:
    {"customer_id": str, "customer_name": str, "items": [CartLine], "total": number}

Guest checkout takes the same body without customer_id.
"""
from flask import Blueprint, current_app, jsonify, request

from ..services import purchase_service
from ..services.purchase_service import CheckoutError

purchase_bp = Blueprint("purchase", __name__, url_prefix="/api/purchase")


def _field(payload: dict, snake: str, camel: str):
    value = payload.get(snake)
    return payload.get(camel) if value is None else value


@purchase_bp.post("")
def purchase():
    payload = request.get_json(silent=True) or {}

    try:
        tx = purchase_service.process_payment(
            _field(payload, "customer_id", "customerId"),
            _field(payload, "customer_name", "customerName"),
            payload.get("items"),
            payload.get("total"),
        )
    except CheckoutError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(tx.to_dict()), 201


@purchase_bp.post("/guest")
def guest_purchase():
    payload = request.get_json(silent=True) or {}

    try:
        tx = purchase_service.process_guest_payment(
            _field(payload, "customer_name", "customerName"),
            payload.get("items"),
            payload.get("total"),
        )
    except CheckoutError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Guest checkout failed")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(tx.to_dict()), 201
