# backend/kiosk/services/product_service.py
"""
Products Service

Products and their variants are edited as one document: an update carries
the complete variant list and the service diffs it against the database
(update known ids, create new ones, delete the rest) inside one transaction.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Category, Product, ProductVariant
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    enforce_rules_variant,
    validate_payload,
)

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Raised for product, variant and category operation errors."""
    def __init__(self, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.details = details or {}
        self.status = status


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price", "image", "stock", "purchase_price", "category_id", "related_product_ids"},
    required_on_create={"name"},
    aliases={
        "purchasePrice": "purchase_price",
        "categoryId": "category_id",
        "relatedProductIds": "related_product_ids",
    },
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"id", "name", "price", "stock", "purchase_price", "image"},
    required_on_create={"name", "price"},
    aliases={"purchasePrice": "purchase_price"},
)


def _split_payload(payload: dict) -> tuple[dict, list[dict] | None]:
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    variants = payload.pop("variants", None)
    # read-only fields the kiosk echoes back
    for key in ("id", "category", "created_at", "updated_at", "createdAt", "updatedAt", "version_id"):
        payload.pop(key, None)
    if variants is not None and not isinstance(variants, list):
        raise ValidationError("variants must be a list")
    return payload, variants


def _validate_variants(raw_variants: list[dict] | None) -> list[dict]:
    cleaned = []
    for raw in raw_variants or []:
        if not isinstance(raw, dict):
            raise ValidationError("Each variant must be an object")
        raw = {k: v for k, v in raw.items() if k not in ("product_id", "productId")}
        if not raw.get("id"):
            # new variant, the database assigns the id
            raw.pop("id", None)
        patch = validate_payload(model=ProductVariant, payload=raw, policy=VARIANT_POLICY, partial=False)
        enforce_rules_variant(patch)
        cleaned.append(patch)
    return cleaned


def validate_product_payload(payload: dict, *, partial: bool) -> tuple[dict, list[dict] | None]:
    """
    Validate a product document (product fields + optional variants list).

    Returns (product_patch, variant_patches). variant_patches is None when
    the payload did not mention variants at all.
    """
    product_raw, variants_raw = _split_payload(payload)
    patch = validate_payload(model=Product, payload=product_raw, policy=PRODUCT_POLICY, partial=partial)
    variants = _validate_variants(variants_raw) if variants_raw is not None else None

    has_variants = bool(variants)
    if not partial and not has_variants:
        for field in ("price", "stock"):
            if field not in patch:
                raise ValidationError(f"Missing required fields: {field}")
    enforce_rules_product(patch, has_variants=has_variants)

    if has_variants:
        # variant products keep stock and cost on the variants only
        patch["stock"] = 0
        patch["purchase_price"] = 0.0

    if patch.get("related_product_ids") == []:
        patch["related_product_ids"] = None
    if patch.get("category_id") == "":
        patch["category_id"] = None
    return patch, variants


def _ensure_category(category_id: str | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise CatalogError("Category not found", details={"category_id": category_id}, status=404)


def list_products() -> list[dict]:
    products = (
        db.session.query(Product)
        .order_by(Product.created_at.asc(), Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def get_product(product_id: str) -> Product | None:
    return db.session.get(Product, product_id)


def create_product(*, patch: dict, variants: list[dict] | None = None) -> Product:
    _ensure_category(patch.get("category_id"))

    product = Product(**patch)
    for v in variants or []:
        v = dict(v)
        v.pop("id", None)
        v.setdefault("purchase_price", 0.0)
        product.variants.append(ProductVariant(**v))

    db.session.add(product)
    db.session.commit()
    logger.info("Created product %s (%s) with %d variants", product.id, product.name, len(product.variants))
    return product


def update_product(*, product_id: str, patch: dict, variants: list[dict] | None) -> Product | None:
    """
    Apply a product patch and, when given, replace the variant list.

    Variants whose id matches an existing variant are updated, variants
    without a known id are created, existing variants missing from the list
    are deleted. All in one commit.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        return None

    if "category_id" in patch:
        _ensure_category(patch["category_id"])

    for k, v in patch.items():
        setattr(product, k, v)

    if variants is not None:
        existing = {v.id: v for v in product.variants}
        keep_ids = set()
        for data in variants:
            data = dict(data)
            variant_id = data.pop("id", None)
            if variant_id and variant_id in existing:
                target = existing[variant_id]
                for k, v in data.items():
                    setattr(target, k, v)
                keep_ids.add(variant_id)
            else:
                data.setdefault("purchase_price", 0.0)
                product.variants.append(ProductVariant(**data))

        for variant_id, variant in existing.items():
            if variant_id not in keep_ids:
                product.variants.remove(variant)

    db.session.commit()
    logger.info("Updated product %s", product.id)
    return product


def delete_product(product_id: str) -> bool:
    product = db.session.get(Product, product_id)
    if product is None:
        return False
    # variants go with the product (delete-orphan cascade)
    db.session.delete(product)
    db.session.commit()
    logger.info("Deleted product %s", product_id)
    return True


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"title", "icon"},
    required_on_create={"title"},
)


def validate_category_payload(payload: dict, *, partial: bool) -> dict:
    payload = {
        k: v for k, v in (payload or {}).items()
        if k not in ("id", "created_at", "updated_at", "createdAt", "updatedAt")
    }
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=partial)
    if "title" in patch and not patch["title"]:
        raise ValidationError("title cannot be blank")
    return patch


def list_categories() -> list[dict]:
    return [c.to_dict() for c in db.session.query(Category).order_by(Category.title.asc()).all()]


def get_category(category_id: str) -> Category | None:
    return db.session.get(Category, category_id)


def create_category(*, patch: dict) -> Category:
    category = Category(**patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(*, category_id: str, patch: dict) -> Category | None:
    category = db.session.get(Category, category_id)
    if category is None:
        return None
    for k, v in patch.items():
        setattr(category, k, v)
    db.session.commit()
    return category


def delete_category(category_id: str) -> bool:
    category = db.session.get(Category, category_id)
    if category is None:
        return False
    # products fall back to "no category"
    db.session.query(Product).filter_by(category_id=category_id).update(
        {Product.category_id: None}, synchronize_session=False
    )
    db.session.delete(category)
    db.session.commit()
    return True
