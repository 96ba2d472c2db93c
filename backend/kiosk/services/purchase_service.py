"""
Purchase Service - kiosk checkout

A checkout is ONE unit of work: every product/variant row on the cart is
locked, its stock is decremented (clamped at zero), and the transaction with
its lines is inserted, then all of it commits together. A missing product
aborts the whole checkout and nothing is written. Lock or version conflicts
with a concurrent checkout roll back and retry from fresh rows.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable

from ..extensions import db
from ..models import Customer, GUEST_CUSTOMER_ID, Product, ProductVariant, Transaction, TransactionItem
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_int, coerce_number
from .concurrency import begin_write, lock_for_update, run_with_retry
from .stock_service import decrement_stock
from ._records import line_variant_id, value_of

logger = logging.getLogger(__name__)

# Client and server totals may differ by float noise only
TOTAL_TOLERANCE = 0.005


class CheckoutError(Exception):
    """Raised for checkout errors; nothing has been written when it escapes."""
    def __init__(self, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.details = details or {}
        self.status = status


@dataclass(frozen=True)
class CartLine:
    product_id: str
    name: str
    price: float
    quantity: int
    image: str = ""
    variant_id: str | None = None
    variant_name: str | None = None

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


def sanitize_cart_line(raw) -> CartLine:
    """
    Normalise one incoming cart line.

    Missing strings become "", a nested {"variant": {"id", "name"}} becomes
    variant_id/variant_name. Quantity must be a positive integer and price
    a non-negative number.
    """
    try:
        quantity = coerce_int("quantity", value_of(raw, "quantity", 0))
        price = coerce_number("price", value_of(raw, "price", 0))
    except ValidationError as e:
        raise CheckoutError(str(e))
    if quantity <= 0:
        raise CheckoutError("quantity must be greater than 0", details={"product_id": value_of(raw, "product_id")})
    if price < 0:
        raise CheckoutError("price must be >= 0", details={"product_id": value_of(raw, "product_id")})

    product_id = str(value_of(raw, "product_id", "")).strip()
    if not product_id:
        raise CheckoutError("product_id required on every cart line")

    variant = value_of(raw, "variant")
    variant_name = value_of(raw, "variant_name") or (value_of(variant, "name") if isinstance(variant, dict) else None)

    return CartLine(
        product_id=product_id,
        name=str(value_of(raw, "name", "")),
        price=price,
        quantity=quantity,
        image=str(value_of(raw, "image", "")),
        variant_id=line_variant_id(raw),
        variant_name=variant_name,
    )


def compute_cart_total(lines: Iterable[CartLine]) -> float:
    return math.fsum(line.line_total for line in lines)


def compute_cart_item_count(lines: Iterable[CartLine]) -> int:
    return sum(line.quantity for line in lines)


def find_cart_line_index(lines: list[CartLine], product_id: str, variant_id: str | None = None) -> int:
    """Index of the line for this product/variant, -1 when the cart has none."""
    for i, line in enumerate(lines):
        if line.product_id == product_id and (line.variant_id or None) == (variant_id or None):
            return i
    return -1


def build_cart_line(
    product: Product,
    price: float,
    variant_id: str | None = None,
    variant_name: str | None = None,
) -> CartLine:
    return CartLine(
        product_id=product.id,
        name=product.name,
        price=price,
        quantity=1,
        image=product.image or "",
        variant_id=variant_id,
        variant_name=(variant_name or "") if variant_id else None,
    )


def _prepare(items, total) -> tuple[list[CartLine], float]:
    if not items:
        raise CheckoutError("Cart is empty")
    lines = [sanitize_cart_line(raw) for raw in items]
    try:
        total = coerce_number("total", total)
    except ValidationError as e:
        raise CheckoutError(str(e))
    if total <= 0:
        raise CheckoutError("total must be greater than 0")

    expected = compute_cart_total(lines)
    if abs(expected - total) > TOTAL_TOLERANCE:
        raise CheckoutError(
            "Total does not match cart",
            details={"total": total, "cart_total": expected},
        )
    return lines, total


def _lock_stock_row(line: CartLine) -> Product | ProductVariant:
    if line.variant_id:
        variant = lock_for_update(db.session.query(ProductVariant).filter_by(id=line.variant_id)).first()
        if variant is None:
            raise CheckoutError("Variant not found", details={"variant_id": line.variant_id}, status=404)
        if variant.product_id != line.product_id:
            raise CheckoutError(
                "Variant does not belong to product",
                details={"variant_id": line.variant_id, "product_id": line.product_id},
            )
        return variant

    product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
    if product is None:
        raise CheckoutError("Product not found", details={"product_id": line.product_id}, status=404)
    return product


def _record_sale(customer_id: str, customer_name: str, lines: list[CartLine], total: float) -> Transaction:
    def _op():
        begin_write()
        shortfalls = []
        resolved = []
        for line in lines:
            row = _lock_stock_row(line)
            if line.variant_id and not line.variant_name:
                line = replace(line, variant_name=row.name)
            short = decrement_stock(row, line.quantity)
            if short:
                shortfalls.append({"product_id": line.product_id, "variant_id": line.variant_id, "shortfall": short})
            resolved.append(line)

        tx = Transaction(
            customer_id=customer_id,
            customer_name=customer_name,
            total=total,
            timestamp=utcnow(),
            paid=False,
            pending=False,
        )
        for position, line in enumerate(resolved):
            tx.items.append(TransactionItem(
                position=position,
                product_id=line.product_id,
                variant_id=line.variant_id,
                variant_name=line.variant_name,
                name=line.name,
                price=line.price,
                image=line.image,
                quantity=line.quantity,
            ))
        db.session.add(tx)
        db.session.commit()

        if shortfalls:
            logger.warning("Transaction %s sold beyond stock: %s", tx.id, shortfalls)
        return tx

    try:
        return run_with_retry(_op)
    except CheckoutError:
        db.session.rollback()
        raise


def process_payment(customer_id: str, customer_name: str | None, items, total) -> Transaction:
    """
    Checkout on a customer's tab.

    The purchase lands as UNPAID_UNINVOICED and raises the customer's
    outstanding balance. A receipt with the new balance is sent afterwards
    (best-effort).
    """
    if not customer_id:
        raise CheckoutError("customer_id required")
    lines, total = _prepare(items, total)

    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CheckoutError("Customer not found", details={"customer_id": customer_id}, status=404)
    customer_name = (customer_name or "").strip() or customer.name

    tx = _record_sale(customer.id, customer_name, lines, total)
    logger.info("Checkout %s for customer %s: %d lines, total=%.2f", tx.id, customer.id, len(lines), total)

    from . import notification_service
    from .balance_service import customer_balance

    notification_service.send_order_receipt(
        customer,
        lines,
        total,
        customer_balance(customer.id).outstanding,
    )
    return tx


def process_guest_payment(customer_name: str | None, items, total) -> Transaction:
    """Checkout without a customer account; recorded under the "guest" id."""
    lines, total = _prepare(items, total)
    customer_name = (customer_name or "").strip() or "Guest"

    tx = _record_sale(GUEST_CUSTOMER_ID, customer_name, lines, total)
    logger.info("Guest checkout %s: %d lines, total=%.2f", tx.id, len(lines), total)
    return tx
