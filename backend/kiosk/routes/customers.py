# Overview: Flask API routes for customers; balances are derived on every read.

from flask import Blueprint, jsonify, request

from ..decorators import require_admin
from ..services import customer_service
from ..validation import ValidationError

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_admin
def list_customers():
    """Customers with `balance` (outstanding) and `invoice_balance` (pending invoice)."""
    return jsonify(customer_service.list_customers()), 200


@customers_bp.get("/directory")
def customer_directory():
    return jsonify(customer_service.customer_directory()), 200


@customers_bp.get("/<customer_id>")
@require_admin
def get_customer(customer_id: str):
    customer = customer_service.get_customer(customer_id)
    if customer is None:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify(customer_service.customer_to_dict(customer)), 200


@customers_bp.post("")
@require_admin
def create_customer():
    payload = request.get_json(silent=True)
    try:
        patch = customer_service.validate_customer_payload(payload, partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    customer = customer_service.create_customer(patch=patch)
    return jsonify(customer_service.customer_to_dict(customer)), 201


@customers_bp.put("/<customer_id>")
@require_admin
def update_customer(customer_id: str):
    payload = request.get_json(silent=True)
    try:
        patch = customer_service.validate_customer_payload(payload, partial=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
    if customer is None:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify(customer_service.customer_to_dict(customer)), 200


@customers_bp.delete("/<customer_id>")
@require_admin
def delete_customer(customer_id: str):
    if not customer_service.delete_customer(customer_id):
        return jsonify({"error": "Customer not found"}), 404
    return jsonify({"ok": True}), 200
