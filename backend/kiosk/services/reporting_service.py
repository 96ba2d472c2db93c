# Overview: Sales statistics, inventory valuation and dashboard figures for the admin views.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Product, Transaction, TransactionItem
from ..time_utils import WEEKDAY_LABELS, as_utc_naive, last_n_days, start_of_day, to_utc_z, utcnow
from ._records import line_variant_id, value_of


@dataclass
class VariantSales:
    total_sold: int = 0
    total_revenue: float = 0.0

    def to_dict(self) -> dict:
        return {"total_sold": self.total_sold, "total_revenue": self.total_revenue}


@dataclass
class ProductSales:
    total_sold: int = 0
    total_revenue: float = 0.0
    variant_sales: dict[str, VariantSales] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total_sold": self.total_sold,
            "total_revenue": self.total_revenue,
            "variant_sales": {k: v.to_dict() for k, v in self.variant_sales.items()},
        }


def compute_sales_statistics(transactions: Iterable) -> dict[str, ProductSales]:
    """
    Fold every line of every transaction into per-product (and per-variant) totals.

    Paid and pending state is irrelevant here: all historical sales count.
    Lines that reference a variant are counted on the product AND on the
    variant under it.
    """
    stats: dict[str, ProductSales] = {}
    for tx in transactions:
        for line in value_of(tx, "items", ()):
            quantity = int(value_of(line, "quantity", 0))
            revenue = float(value_of(line, "price", 0.0)) * quantity

            product = stats.setdefault(value_of(line, "product_id"), ProductSales())
            product.total_sold += quantity
            product.total_revenue += revenue

            variant_id = line_variant_id(line)
            if variant_id:
                variant = product.variant_sales.setdefault(variant_id, VariantSales())
                variant.total_sold += quantity
                variant.total_revenue += revenue
    return stats


def sales_statistics() -> dict[str, ProductSales]:
    """
    Same result as compute_sales_statistics over all transactions, but
    grouped in the database so memory stays bounded as history grows.
    """
    rows = (
        db.session.query(
            TransactionItem.product_id,
            TransactionItem.variant_id,
            func.coalesce(func.sum(TransactionItem.quantity), 0).label("total_sold"),
            func.coalesce(func.sum(TransactionItem.price * TransactionItem.quantity), 0.0).label("total_revenue"),
        )
        .group_by(TransactionItem.product_id, TransactionItem.variant_id)
        .all()
    )

    stats: dict[str, ProductSales] = {}
    for row in rows:
        sold = int(row.total_sold or 0)
        revenue = float(row.total_revenue or 0.0)
        product = stats.setdefault(row.product_id, ProductSales())
        product.total_sold += sold
        product.total_revenue += revenue
        if row.variant_id:
            product.variant_sales[row.variant_id] = VariantSales(total_sold=sold, total_revenue=revenue)
    return stats


def unlisted_sales(stats: dict[str, ProductSales], listed_product_ids: Iterable[str]) -> VariantSales:
    """Totals for products that sold but are not in the listed set (deleted or filtered out)."""
    listed = set(listed_product_ids)
    sold = 0
    revenue = []
    for product_id, data in stats.items():
        if product_id in listed:
            continue
        sold += data.total_sold
        revenue.append(data.total_revenue)
    return VariantSales(total_sold=sold, total_revenue=math.fsum(revenue))


def inventory_value(products: Iterable) -> float:
    """Sum of price * stock, using the variants of products that have them."""
    values = []
    for product in products:
        variants = value_of(product, "variants") or []
        if variants:
            values.extend(
                float(value_of(v, "price", 0.0)) * int(value_of(v, "stock", 0)) for v in variants
            )
        else:
            values.append(float(value_of(product, "price", 0.0)) * int(value_of(product, "stock", 0)))
    return math.fsum(values)


def daily_revenue(transactions: Iterable, now: datetime | None = None, days: int = 7) -> list[dict]:
    """
    Revenue per calendar day for the last `days` days (today included), oldest first.

    Each bucket carries a short label such as "Mon 3/2" (day/month).
    """
    now = as_utc_naive(now) or utcnow()
    buckets = last_n_days(now, days)
    totals = {day: [] for day in buckets}
    for tx in transactions:
        ts = as_utc_naive(value_of(tx, "timestamp"))
        if ts is None:
            continue
        day = start_of_day(ts)
        if day in totals:
            totals[day].append(float(value_of(tx, "total", 0.0)))

    return [
        {
            "date": day.date().isoformat(),
            "weekday": WEEKDAY_LABELS[day.weekday()],
            "label": f"{WEEKDAY_LABELS[day.weekday()]} {day.day}/{day.month}",
            "revenue": math.fsum(totals[day]),
        }
        for day in buckets
    ]


def dashboard_summary(now: datetime | None = None) -> dict:
    now = as_utc_naive(now) or utcnow()
    week_ago = now - timedelta(days=7)
    chart_start = last_n_days(now, 7)[0]

    total_revenue = db.session.query(func.coalesce(func.sum(Transaction.total), 0.0)).scalar()
    weekly_revenue = (
        db.session.query(func.coalesce(func.sum(Transaction.total), 0.0))
        .filter(Transaction.timestamp >= week_ago)
        .scalar()
    )
    recent = (
        db.session.query(Transaction)
        .filter(Transaction.timestamp >= chart_start)
        .all()
    )

    return {
        "generated_at": to_utc_z(now),
        "total_revenue": float(total_revenue or 0.0),
        "weekly_revenue": float(weekly_revenue or 0.0),
        "customer_count": db.session.query(Customer).count(),
        "product_count": db.session.query(Product).count(),
        "transaction_count": db.session.query(Transaction).count(),
        "daily_revenue": daily_revenue(recent, now),
    }


def inventory_report(listed_product_ids: Iterable[str] | None = None) -> dict:
    """Inventory view: per-product sales, unlisted-products row, stock value and total sales."""
    products = db.session.query(Product).order_by(Product.name.asc()).all()
    stats = sales_statistics()
    listed = [p.id for p in products] if listed_product_ids is None else list(listed_product_ids)

    return {
        "products": [
            {
                **p.to_dict(),
                "sales": stats.get(p.id, ProductSales()).to_dict(),
            }
            for p in products
        ],
        "unlisted": unlisted_sales(stats, listed).to_dict(),
        "total_stock_value": inventory_value(products),
        "total_sales": math.fsum(s.total_revenue for s in stats.values()),
    }
