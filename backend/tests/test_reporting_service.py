"""
Sales statistics, inventory valuation and dashboard tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_transaction
from kiosk.models import Transaction
from kiosk.services import reporting_service
from kiosk.services.reporting_service import compute_sales_statistics, daily_revenue, inventory_value, unlisted_sales


def _tx(*lines, total=None, timestamp=None):
    return {
        "items": list(lines),
        "total": total if total is not None else sum(l["price"] * l["quantity"] for l in lines),
        "timestamp": timestamp,
    }


class TestComputeSalesStatistics:

    def test_empty(self):
        assert compute_sales_statistics([]) == {}

    def test_plain_lines_have_no_variant_sales(self):
        stats = compute_sales_statistics([
            _tx({"product_id": "a", "price": 10, "quantity": 2}),
            _tx({"product_id": "a", "price": 10, "quantity": 1}, {"product_id": "b", "price": 4, "quantity": 5}),
        ])
        assert stats["a"].total_sold == 3
        assert stats["a"].total_revenue == 30
        assert stats["b"].total_sold == 5
        assert stats["b"].total_revenue == 20
        assert stats["a"].variant_sales == {}

    def test_variant_lines_count_on_product_and_variant(self):
        stats = compute_sales_statistics([
            _tx({"productId": "coffee", "variant": {"id": "large", "name": "Large"}, "price": 25, "quantity": 2}),
            _tx({"product_id": "coffee", "variant_id": "small", "price": 15, "quantity": 1}),
        ])
        coffee = stats["coffee"]
        assert coffee.total_sold == 3
        assert coffee.total_revenue == 65
        assert coffee.variant_sales["large"].total_sold == 2
        assert coffee.variant_sales["small"].total_revenue == 15

    def test_matches_database_grouping(self, db_session, customer):
        make_transaction(customer, 50, items=[
            {"product_id": "a", "name": "A", "price": 10.0, "quantity": 2},
            {"product_id": "c", "variant_id": "v1", "variant_name": "V1", "name": "C", "price": 15.0, "quantity": 2},
        ])
        make_transaction(customer, 10, paid=True, items=[
            {"product_id": "a", "name": "A", "price": 10.0, "quantity": 1},
        ])

        in_memory = compute_sales_statistics(db_session.query(Transaction).all())
        grouped = reporting_service.sales_statistics()

        assert {k: v.to_dict() for k, v in grouped.items()} == {k: v.to_dict() for k, v in in_memory.items()}


class TestInventory:

    def test_unlisted_sales(self):
        stats = compute_sales_statistics([
            _tx({"product_id": "listed", "price": 5, "quantity": 1}),
            _tx({"product_id": "deleted-1", "price": 2, "quantity": 3}),
            _tx({"product_id": "deleted-2", "price": 1, "quantity": 4}),
        ])
        row = unlisted_sales(stats, ["listed"])
        assert row.total_sold == 7
        assert row.total_revenue == 10

    def test_inventory_value_uses_variants_when_present(self):
        products = [
            {"price": 6, "stock": 10, "variants": None},
            {"price": 0, "stock": 0, "variants": [{"price": 25, "stock": 3}, {"price": 15, "stock": 5}]},
        ]
        assert inventory_value(products) == 60 + 75 + 75

    def test_inventory_report(self, db_session, product, variant_product, customer):
        make_transaction(customer, 12, items=[
            {"product_id": product.id, "name": product.name, "price": 6.0, "quantity": 2},
        ])
        make_transaction(customer, 9, items=[
            {"product_id": "gone", "name": "Old item", "price": 3.0, "quantity": 3},
        ])

        report = reporting_service.inventory_report()

        by_name = {p["name"]: p for p in report["products"]}
        assert by_name["Chocolate bar"]["sales"]["total_sold"] == 2
        assert report["unlisted"] == {"total_sold": 3, "total_revenue": 9.0}
        assert report["total_stock_value"] == pytest.approx(60 + 75 + 75)
        assert report["total_sales"] == pytest.approx(21.0)


class TestDailyRevenue:

    def test_seven_buckets_oldest_first(self):
        now = datetime(2024, 3, 6, 15, 30)  # Wednesday
        buckets = daily_revenue([], now)
        assert len(buckets) == 7
        assert buckets[0]["date"] == "2024-02-29"
        assert buckets[-1]["date"] == "2024-03-06"
        assert buckets[-1]["label"] == "Wed 6/3"
        assert buckets[0]["label"] == "Thu 29/2"

    def test_sums_transactions_per_day(self):
        now = datetime(2024, 3, 6, 15, 30)
        transactions = [
            {"total": 10, "timestamp": datetime(2024, 3, 6, 8, 0)},
            {"total": 5.5, "timestamp": datetime(2024, 3, 6, 23, 59)},
            {"total": 7, "timestamp": datetime(2024, 3, 1, 12, 0)},
            {"total": 100, "timestamp": datetime(2024, 2, 20, 12, 0)},
        ]
        by_date = {b["date"]: b["revenue"] for b in daily_revenue(transactions, now)}
        assert by_date["2024-03-06"] == 15.5
        assert by_date["2024-03-01"] == 7
        assert sum(by_date.values()) == 22.5

    def test_aware_and_iso_timestamps_are_bucketed_in_utc(self):
        now = datetime(2026, 10, 19, 12, 0)
        cet = timezone(timedelta(hours=2))
        transactions = [
            {"total": 40.0, "timestamp": datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)},
            {"total": 2.0, "timestamp": "2026-10-19T09:00:00Z"},
            # 01:00 at UTC+2 is still the previous day in UTC
            {"total": 3.0, "timestamp": datetime(2026, 10, 19, 1, 0, tzinfo=cet)},
        ]
        by_date = {b["date"]: b["revenue"] for b in daily_revenue(transactions, now)}
        assert by_date["2026-10-19"] == 42.0
        assert by_date["2026-10-18"] == 3.0


class TestDashboard:

    def test_summary(self, db_session, customer, product):
        now = datetime(2024, 3, 6, 12, 0)
        make_transaction(customer, 20, timestamp=now - timedelta(hours=1))
        make_transaction(customer, 30, timestamp=now - timedelta(days=2))
        make_transaction(customer, 70, timestamp=now - timedelta(days=30))

        summary = reporting_service.dashboard_summary(now)

        assert summary["total_revenue"] == 120
        assert summary["weekly_revenue"] == 50
        assert summary["customer_count"] == 1
        assert summary["product_count"] == 1
        assert summary["transaction_count"] == 3
        assert summary["daily_revenue"][-1]["revenue"] == 20
