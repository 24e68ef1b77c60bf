"""
Tests for the Sales Rollup Service and Retention.

============================================================
PURPOSE
============================================================
1. Rollups read stored events and upsert buckets
2. Re-running a rollup is idempotent
3. Retention prunes each kind of raw data
4. Configuration loading

============================================================
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _at(*args):
    return datetime(*args, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def stored_sales(session, make_sale):
    """Events in storage, including a duplicate and one from today."""
    from storage.repositories import SalesRepository

    SalesRepository(session).insert_events([
        make_sale(price=Decimal("145.00"), sold_at=_at(2024, 6, 10, 9, 30)),
        make_sale(price=Decimal("145.00"), sold_at=_at(2024, 6, 10, 9, 30)),
        make_sale(price=Decimal("155.00"), sold_at=_at(2024, 6, 10, 18, 0)),
        make_sale(price=Decimal("130.00"), sold_at=_at(2024, 5, 20, 8, 0)),
        make_sale(price=Decimal("160.00"), sold_at=_at(2024, 6, 15, 6, 0)),
    ])
    session.flush()
    return session


# ============================================================
# ROLLUP SERVICE TESTS
# ============================================================

class TestSalesRollupService:
    """Tests for SalesRollupService."""

    def test_run(self, stored_sales):
        from sales_analytics.service import SalesRollupService

        result = SalesRollupService(stored_sales).run(now=NOW)

        assert result.events_read == 4
        assert result.duplicates_removed == 1
        assert result.daily_buckets == 2
        assert result.monthly_buckets == 1

    def test_run_is_idempotent(self, stored_sales):
        from sales_analytics.service import SalesRollupService
        from storage.repositories import SalesRepository

        service = SalesRollupService(stored_sales)
        service.run(now=NOW)
        service.run(now=NOW)

        repo = SalesRepository(stored_sales)
        daily = repo.list_daily(sku="DD1391-100")
        assert len(daily) == 2
        assert daily[1].sale_count == 2
        assert daily[1].total_revenue == Decimal("300.00")

        monthly = repo.list_monthly(sku="DD1391-100")
        assert len(monthly) == 1
        assert monthly[0].sale_count == 1

    def test_lookback_window(self, stored_sales):
        """A short lookback only re-reads recent events."""
        from sales_analytics.config import SalesAnalyticsConfig
        from sales_analytics.service import SalesRollupService

        service = SalesRollupService(stored_sales, SalesAnalyticsConfig(rollup_lookback_days=7))
        result = service.run(now=NOW)
        assert result.events_read == 3
        assert result.daily_buckets == 1

        assert service.run(now=NOW, full=True).events_read == 4

    def test_sku_filter(self, stored_sales):
        from sales_analytics.service import SalesRollupService

        assert SalesRollupService(stored_sales).run(now=NOW, sku="555088-134").events_read == 0

    def test_daily_lookup(self, stored_sales):
        from sales_analytics.service import SalesRollupService

        service = SalesRollupService(stored_sales)
        service.run(now=NOW)

        assert len(service.daily("DD1391-100", days=30, now=NOW)) == 2
        recent = service.daily("DD1391-100", days=7, now=NOW)
        assert [d.sale_date for d in recent] == [date(2024, 6, 10)]
        assert service.daily("DD1391-100", provider="stockx", now=NOW) == []


# ============================================================
# RETENTION TESTS
# ============================================================

class TestRetention:
    """Tests for retention windows and pruning."""

    @pytest.mark.parametrize("day,months,expected", [
        (date(2024, 3, 31), 1, date(2024, 2, 29)),
        (date(2024, 1, 15), 13, date(2022, 12, 15)),
        (date(2024, 6, 15), 0, date(2024, 6, 15)),
    ])
    def test_subtract_months(self, day, months, expected):
        from sales_analytics.retention import subtract_months

        assert subtract_months(day, months) == expected

    def test_policy_cutoffs(self):
        from sales_analytics.retention import RetentionPolicy

        policy = RetentionPolicy()
        assert policy.sales_cutoff(NOW) == _at(2024, 3, 17, 12, 0)
        assert policy.daily_cutoff(NOW) == date(2023, 5, 15)
        assert policy.history_cutoff(NOW) == _at(2024, 5, 16, 12, 0)

    def test_prune(self, session, make_sale, make_row):
        from sales_analytics.retention import prune
        from sales_analytics.rollup import rollup_daily
        from storage.repositories import MarketRepository, SalesRepository

        sales = SalesRepository(session)
        market = MarketRepository(session)

        sales.insert_events([
            make_sale(sold_at=_at(2024, 1, 1, 10, 0)),
            make_sale(sold_at=_at(2024, 6, 1, 10, 0)),
        ])
        sales.upsert_daily(rollup_daily(
            [make_sale(sold_at=_at(2023, 1, 1, 10, 0)), make_sale(sold_at=_at(2024, 6, 1, 10, 0))],
            today=date(2024, 6, 15),
        ))
        market.append_history([
            make_row(snapshot_at=_at(2024, 4, 1, 10, 0)),
            make_row(snapshot_at=_at(2024, 6, 14, 10, 0)),
        ])
        session.flush()

        result = prune(session, now=NOW)

        assert result.sales_events == 1
        assert result.daily_aggregates == 1
        assert result.price_history == 1
        assert result.total == 3
        assert sales.count_events() == 1
        assert market.count_history() == 1

    def test_service_prune_uses_policy(self, session, make_sale):
        from sales_analytics.config import SalesAnalyticsConfig
        from sales_analytics.retention import RetentionPolicy
        from sales_analytics.service import SalesRollupService
        from storage.repositories import SalesRepository

        SalesRepository(session).insert_events([make_sale(sold_at=_at(2024, 6, 1, 10, 0))])
        session.flush()

        config = SalesAnalyticsConfig(retention=RetentionPolicy(sales_events_days=7))
        assert SalesRollupService(session, config).prune(now=NOW).sales_events == 1


# ============================================================
# CONFIG TESTS
# ============================================================

class TestSalesAnalyticsConfig:
    """Tests for configuration loading."""

    def test_from_dict(self):
        from sales_analytics.config import SalesAnalyticsConfig

        config = SalesAnalyticsConfig.from_dict({
            "rollup_lookback_days": None,
            "retention": {"sales_events_days": 30},
        })
        assert config.rollup_lookback_days is None
        assert config.retention.sales_events_days == 30
        assert config.retention.price_history_days == 30
        assert config.retention.daily_aggregate_months == 13

    def test_yaml(self, tmp_path):
        from sales_analytics.config import load_config

        path = tmp_path / "config.yaml"
        path.write_text("sales:\n  rollup_lookback_days: 10\n")
        assert load_config(path).rollup_lookback_days == 10
        assert load_config(tmp_path / "missing.yaml").rollup_lookback_days == 35
