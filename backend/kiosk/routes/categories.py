# Overview: Flask API routes for product categories.

from flask import Blueprint, jsonify, request

from ..decorators import require_admin
from ..services import product_service
from ..validation import ValidationError

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories():
    return jsonify(product_service.list_categories()), 200


@categories_bp.get("/<category_id>")
def get_category(category_id: str):
    category = product_service.get_category(category_id)
    if category is None:
        return jsonify({"error": "Category not found"}), 404
    return jsonify(category.to_dict()), 200


@categories_bp.post("")
@require_admin
def create_category():
    payload = request.get_json(silent=True) or {}
    try:
        patch = product_service.validate_category_payload(payload, partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    category = product_service.create_category(patch=patch)
    return jsonify(category.to_dict()), 201


@categories_bp.put("/<category_id>")
@require_admin
def update_category(category_id: str):
    payload = request.get_json(silent=True) or {}
    try:
        patch = product_service.validate_category_payload(payload, partial=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    category = product_service.update_category(category_id=category_id, patch=patch)
    if category is None:
        return jsonify({"error": "Category not found"}), 404
    return jsonify(category.to_dict()), 200


@categories_bp.delete("/<category_id>")
@require_admin
def delete_category(category_id: str):
    """Products in the category are kept and become uncategorised."""
    if not product_service.delete_category(category_id):
        return jsonify({"error": "Category not found"}), 404
    return jsonify({"ok": True}), 200
