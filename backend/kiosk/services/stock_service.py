# Overview: Weighted-average restock repricing and stock movements for products and variants.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import Product, ProductVariant
from ..validation import InvalidArgument
from .concurrency import begin_write, lock_for_update, run_with_retry
from .product_service import CatalogError

logger = logging.getLogger(__name__)
"""
Kiosk Stock & Cost Invariants (authoritative)

- purchase_price is a weighted average over everything ever received:
      (current_price * current_stock + incoming_price * incoming_stock) / total_stock
  Historical cost is blended, never overwritten.
- The blended purchase_price keeps full precision; the sale price derived
  from it is rounded to whole currency units (half away from zero).
- Restocking to a total of zero units keeps the latest known cost
  (incoming price, or 0 when absent) instead of dividing by zero.
- Stock never goes below zero; sales of more units than on hand clamp to 0.
"""


@dataclass(frozen=True)
class RepriceResult:
    stock: int
    purchase_price: float
    price: int

    def to_dict(self) -> dict:
        return {
            "stock": self.stock,
            "purchase_price": self.purchase_price,
            "price": self.price,
        }


def round_currency(value: float) -> int:
    """Nearest whole currency unit, halves rounded away from zero."""
    return int(Decimal(repr(float(value))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _require_count(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{name} must be an integer")
    if value < 0:
        raise InvalidArgument(f"{name} must be >= 0")
    return value


def _require_price(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgument(f"{name} must be a number")
    if math.isnan(value) or math.isinf(value):
        raise InvalidArgument(f"{name} must be finite")
    if value < 0:
        raise InvalidArgument(f"{name} must be >= 0")
    return float(value)


def reprice(
    current_stock: int,
    current_purchase_price: float,
    incoming_stock: int,
    incoming_purchase_price: float | None,
    markup_factor: float,
) -> RepriceResult:
    """
    Fold a restock into an item's running stock/cost/price.

    Pure function. Raises InvalidArgument for negative counts or prices and
    for a non-positive markup_factor.
    """
    current_stock = _require_count("current_stock", current_stock)
    incoming_stock = _require_count("incoming_stock", incoming_stock)
    current_purchase_price = _require_price("current_purchase_price", current_purchase_price)
    if incoming_purchase_price is None:
        incoming_purchase_price = 0.0
    incoming_purchase_price = _require_price("incoming_purchase_price", incoming_purchase_price)
    markup_factor = _require_price("markup_factor", markup_factor)
    if markup_factor <= 0:
        raise InvalidArgument("markup_factor must be > 0")

    total_stock = current_stock + incoming_stock
    if total_stock == 0:
        purchase_price = incoming_purchase_price
        return RepriceResult(stock=0, purchase_price=purchase_price, price=round_currency(purchase_price * markup_factor))

    if incoming_stock == 0:
        purchase_price = current_purchase_price
    elif current_stock == 0:
        purchase_price = incoming_purchase_price
    else:
        weighted = (
            current_purchase_price * current_stock + incoming_purchase_price * incoming_stock
        ) / total_stock
        # float error must not push the average outside the blended prices
        low = min(current_purchase_price, incoming_purchase_price)
        high = max(current_purchase_price, incoming_purchase_price)
        purchase_price = min(max(weighted, low), high)

    return RepriceResult(
        stock=total_stock,
        purchase_price=purchase_price,
        price=round_currency(purchase_price * markup_factor),
    )


def default_markup_factor() -> float:
    return float(current_app.config.get("DEFAULT_MARKUP_FACTOR", 1.1))


def _apply_restock(
    item: Product | ProductVariant,
    incoming_stock: int,
    incoming_purchase_price: float | None,
    markup_factor: float | None,
) -> RepriceResult:
    if markup_factor is None:
        markup_factor = default_markup_factor()

    # An item never costed before takes the incoming price as its current cost
    current_purchase_price = item.purchase_price or incoming_purchase_price or 0.0

    result = reprice(
        item.stock or 0,
        current_purchase_price,
        incoming_stock,
        incoming_purchase_price,
        markup_factor,
    )
    item.stock = result.stock
    item.purchase_price = result.purchase_price
    item.price = float(result.price)
    return result


def _run_restock(op):
    try:
        return run_with_retry(op)
    except (CatalogError, InvalidArgument):
        db.session.rollback()
        raise


def restock_product(
    product_id: str,
    incoming_stock: int,
    incoming_purchase_price: float | None,
    markup_factor: float | None = None,
) -> tuple[Product, RepriceResult]:
    """
    Receive stock for a product without variants and persist the repriced state.
    """
    def _op():
        begin_write()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise CatalogError("Product not found", status=404)
        if product.has_variants:
            raise CatalogError(
                "Product has variants; restock a variant instead",
                details={"variant_ids": [v.id for v in product.variants]},
            )

        result = _apply_restock(product, incoming_stock, incoming_purchase_price, markup_factor)
        db.session.commit()
        logger.info(
            "Restocked product %s: +%d -> stock=%d purchase_price=%.4f price=%d",
            product.id, incoming_stock, result.stock, result.purchase_price, result.price,
        )
        return product, result

    return _run_restock(_op)


def restock_variant(
    variant_id: str,
    incoming_stock: int,
    incoming_purchase_price: float | None,
    markup_factor: float | None = None,
) -> tuple[ProductVariant, RepriceResult]:
    """Receive stock for a single variant and persist the repriced state."""
    def _op():
        begin_write()
        variant = lock_for_update(db.session.query(ProductVariant).filter_by(id=variant_id)).first()
        if not variant:
            raise CatalogError("Variant not found", status=404)

        result = _apply_restock(variant, incoming_stock, incoming_purchase_price, markup_factor)
        db.session.commit()
        logger.info(
            "Restocked variant %s: +%d -> stock=%d purchase_price=%.4f price=%d",
            variant.id, incoming_stock, result.stock, result.purchase_price, result.price,
        )
        return variant, result

    return _run_restock(_op)


def decrement_stock(item: Product | ProductVariant, quantity: int) -> int:
    """
    Remove sold units from an item, clamping at zero.

    Caller holds the row lock and owns the commit. Returns the shortfall
    (units sold beyond what was on hand), 0 when stock was sufficient.
    """
    on_hand = item.stock or 0
    shortfall = max(0, quantity - on_hand)
    item.stock = max(0, on_hand - quantity)
    if shortfall:
        logger.warning(
            "Sold %d units of %r with only %d on hand; stock clamped to 0",
            quantity, item, on_hand,
        )
    return shortfall
