# Overview: Flask API routes for products, variants and restocking; parses input and returns JSON responses.

# backend/kiosk/routes/products.py
"""
Product catalog routes.

SECURITY: The product listing is public (the kiosk renders it). Every
write, restock and the repricing preview require the admin token.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin
from ..services import product_service, stock_service
from ..services.product_service import CatalogError
from ..validation import InvalidArgument, ValidationError, coerce_int, coerce_number

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _arg(payload: dict, snake: str, camel: str, default=None):
    value = payload.get(snake)
    if value is None:
        value = payload.get(camel)
    return default if value is None else value


def _restock_args(payload: dict) -> tuple[int, float | None, float | None]:
    incoming_stock = coerce_int("incoming_stock", _arg(payload, "incoming_stock", "incomingStock", 0))
    raw_price = _arg(payload, "incoming_purchase_price", "incomingPurchasePrice")
    incoming_price = coerce_number("incoming_purchase_price", raw_price) if raw_price is not None else None
    raw_markup = _arg(payload, "markup_factor", "markupFactor")
    markup = coerce_number("markup_factor", raw_markup) if raw_markup is not None else None
    return incoming_stock, incoming_price, markup


@products_bp.get("")
def list_products():
    """All products with their variants and category, oldest first."""
    return jsonify(product_service.list_products()), 200


@products_bp.get("/<product_id>")
def get_product(product_id: str):
    product = product_service.get_product(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_admin
def create_product_route():
    payload = request.get_json(silent=True)

    try:
        patch, variants = product_service.validate_product_payload(payload, partial=False)
        product = product_service.create_product(patch=patch, variants=variants)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product.to_dict()), 201


@products_bp.put("/<product_id>")
@require_admin
def update_product_route(product_id: str):
    """
    Update a product document.

    When "variants" is present it is the complete list: variants missing
    from it are deleted.
    """
    payload = request.get_json(silent=True)

    try:
        patch, variants = product_service.validate_product_payload(payload, partial=True)
        product = product_service.update_product(product_id=product_id, patch=patch, variants=variants)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<product_id>")
@require_admin
def delete_product_route(product_id: str):
    if not product_service.delete_product(product_id):
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"ok": True}), 200


@products_bp.post("/<product_id>/restock")
@require_admin
def restock_product_route(product_id: str):
    """
    Receive stock for a product without variants.

    Body: {"incoming_stock": int, "incoming_purchase_price": number,
           "markup_factor": number (optional, default DEFAULT_MARKUP_FACTOR)}
    """
    payload = request.get_json(silent=True) or {}

    try:
        incoming_stock, incoming_price, markup = _restock_args(payload)
        product, result = stock_service.restock_product(product_id, incoming_stock, incoming_price, markup)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"product": product.to_dict(), "reprice": result.to_dict()}), 200


@products_bp.post("/variants/<variant_id>/restock")
@require_admin
def restock_variant_route(variant_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        incoming_stock, incoming_price, markup = _restock_args(payload)
        variant, result = stock_service.restock_variant(variant_id, incoming_stock, incoming_price, markup)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status
    except Exception:
        current_app.logger.exception("Failed to restock variant")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"variant": variant.to_dict(), "reprice": result.to_dict()}), 200


@products_bp.post("/reprice")
@require_admin
def reprice_preview():
    """Preview of a restock: computes the new stock, cost and price without saving."""
    payload = request.get_json(silent=True) or {}

    try:
        incoming_stock, incoming_price, markup = _restock_args(payload)
        current_stock = coerce_int("current_stock", _arg(payload, "current_stock", "currentStock", 0))
        current_price = coerce_number(
            "current_purchase_price",
            _arg(payload, "current_purchase_price", "currentPurchasePrice", 0),
        )
        result = stock_service.reprice(
            current_stock,
            current_price,
            incoming_stock,
            incoming_price,
            markup if markup is not None else stock_service.default_markup_factor(),
        )
    except (ValidationError, InvalidArgument) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify(result.to_dict()), 200
