"""
Dashboard cache tests.

Verifies TTL expiry with an injected clock, and that committed writes to
sales / debts / products / expenses drop the cached payloads.
"""

from decimal import Decimal

import pytest

from duka.errors import InsufficientStockError
from duka.services import dashboard_service
from duka.services.dashboard_service import CHARTS_KEY, STATS_KEY, DashboardCache, get_cache
from duka.services.input_schemas import CreateSaleInput
from duka.services.sales_service import create_sale


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestDashboardCacheTTL:

    def test_entry_lives_until_ttl(self):
        clock = FakeClock()
        cache = DashboardCache({STATS_KEY: 300, CHARTS_KEY: 600}, clock=clock)

        cache.set(STATS_KEY, {"n": 1})
        clock.advance(299)
        assert cache.get(STATS_KEY) == {"n": 1}

        clock.advance(1)
        assert cache.get(STATS_KEY) is None

    def test_ttl_per_key(self):
        clock = FakeClock()
        cache = DashboardCache({STATS_KEY: 300, CHARTS_KEY: 600}, clock=clock)
        cache.set(STATS_KEY, "stats")
        cache.set(CHARTS_KEY, "charts")

        clock.advance(450)

        assert STATS_KEY not in cache
        assert CHARTS_KEY in cache

    def test_get_or_compute_only_computes_on_miss(self):
        clock = FakeClock()
        cache = DashboardCache(60, clock=clock)
        calls = []

        def compute():
            calls.append(1)
            return len(calls)

        assert cache.get_or_compute(STATS_KEY, compute) == 1
        assert cache.get_or_compute(STATS_KEY, compute) == 1
        clock.advance(61)
        assert cache.get_or_compute(STATS_KEY, compute) == 2

    def test_invalidate_one_or_all(self):
        cache = DashboardCache(60, clock=FakeClock())
        cache.set(STATS_KEY, 1)
        cache.set(CHARTS_KEY, 2)

        cache.invalidate(STATS_KEY)
        assert STATS_KEY not in cache
        assert CHARTS_KEY in cache

        cache.invalidate()
        assert CHARTS_KEY not in cache


class TestWriteInvalidation:

    def test_sale_commit_refreshes_stats(self, db_session, product):
        before = dashboard_service.get_stats()
        assert before["sales"]["total_sales"] == 0
        assert STATS_KEY in get_cache()

        create_sale(CreateSaleInput.from_payload({
            "product_id": product.id,
            "quantity": 2,
            "payment_method": "cash",
        }))

        assert STATS_KEY not in get_cache()
        after = dashboard_service.get_stats()
        assert after["sales"]["total_sales"] == 1
        assert after["sales"]["total_revenue"] == "200.00"

    def test_failed_write_keeps_cache(self, db_session, product):
        dashboard_service.get_stats()

        with pytest.raises(InsufficientStockError):
            create_sale(CreateSaleInput.from_payload({
                "product_id": product.id,
                "quantity": 50,
                "payment_method": "cash",
            }))

        assert STATS_KEY in get_cache()

    def test_debt_sale_feeds_outstanding_total(self, db_session, product):
        create_sale(CreateSaleInput.from_payload({
            "product_id": product.id,
            "quantity": 3,
            "payment_method": "debt",
            "customer_name": "Jane",
            "customer_phone": "0712000000",
        }))

        stats = dashboard_service.get_stats()

        assert Decimal(stats["debts"]["total_outstanding"]) == Decimal("300.00")
        assert stats["debts"]["open_count"] == 1
        assert stats["inventory"]["stock_units"] == 7

    def test_charts_cover_last_seven_days(self, db_session, product):
        create_sale(CreateSaleInput.from_payload({
            "product_id": product.id,
            "quantity": 1,
            "payment_method": "mobile-money",
        }))

        charts = dashboard_service.get_charts()

        assert len(charts["daily_sales"]) == 7
        assert charts["daily_sales"][-1]["count"] == 1
        assert charts["top_products"][0]["quantity_sold"] == 1
        methods = {m["payment_method"]: m["count"] for m in charts["payment_methods"]}
        assert methods["mobile-money"] == 1
