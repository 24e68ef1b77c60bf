"""
Tests for the Portfolio Service.

============================================================
PURPOSE
============================================================
1. Inventory loading and owner filtering
2. Unified market prices per held item
3. Overview, item ROI and repricing over storage

============================================================
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def stocked(session, clock, make_row):
    """One held pair with StockX and Alias snapshots for its size."""
    from storage.repositories import InventoryRepository, MarketRepository

    inventory = InventoryRepository(session)
    inventory.create(
        "DD1391-100", Decimal("110.00"), size="10", owner_id="u1",
        purchase_date=date(2024, 1, 1),
    )
    inventory.create("555088-134", Decimal("200.00"), size="9", owner_id="u2")

    market = MarketRepository(session)
    market.upsert_rows([
        make_row(),
        make_row(provider="alias", provider_product_id="alias-cat-1", provider_source="alias_availabilities",
                 currency="USD", lowest_ask=Decimal("180.00")),
    ])
    market.append_history([
        make_row(lowest_ask=Decimal("140.00"), snapshot_at=NOW - timedelta(days=2)),
    ])
    session.flush()
    return session


# ============================================================
# SERVICE TESTS
# ============================================================

class TestPortfolioService:
    """Tests for PortfolioService."""

    def test_load_items_by_owner(self, stocked):
        from portfolio.service import PortfolioService

        service = PortfolioService(stocked)
        assert len(service.load_items()) == 2
        [item] = service.load_items("u1")
        assert item.sku == "DD1391-100"
        assert item.size == "10"
        assert item.held_since == date(2024, 1, 1)

    def test_market_data(self, stocked):
        """180 USD on Alias converts to 142.20 GBP and wins."""
        from portfolio.service import PortfolioService

        service = PortfolioService(stocked)
        items = service.load_items("u1")
        prices, summaries = service.market_data(items)

        price = prices[items[0].id]
        assert price.value == Decimal("142.20")
        assert price.currency == "GBP"
        assert price.source == "alias"
        assert price.as_of == NOW
        assert summaries[items[0].id].lowest_ask == Decimal("142.20")
        assert summaries[items[0].id].highest_bid == Decimal("120.00")

    def test_unpriced_item(self, stocked):
        from portfolio.service import PortfolioService

        service = PortfolioService(stocked)
        items = service.load_items("u2")
        prices, summaries = service.market_data(items)
        assert prices[items[0].id] is None
        assert summaries[items[0].id].lowest_ask is None

    def test_overview(self, stocked):
        from portfolio.service import PortfolioService

        valuation = PortfolioService(stocked).overview("u1")

        assert valuation.invested == Decimal("110.00")
        assert valuation.estimated_value == Decimal("142.20")
        assert valuation.unrealised_pl == Decimal("32.20")
        assert valuation.roi == Decimal("29.27")
        assert valuation.missing_prices_count == 0
        assert len(valuation.series_30d) == 30
        # History ask from two days ago carries forward to today
        assert valuation.series_30d[-1].value == Decimal("140.00")
        assert valuation.series_30d[0].value is None

    def test_overview_empty(self, session, clock):
        from portfolio.service import PortfolioService

        valuation = PortfolioService(session).overview("nobody")
        assert valuation.is_empty is True
        assert valuation.prices_as_of == NOW

    def test_item_rois(self, stocked):
        from portfolio.service import PortfolioService

        rois = {r.sku: r for r in PortfolioService(stocked).item_rois()}
        assert rois["DD1391-100"].profit == Decimal("32.20")
        assert rois["555088-134"].market_value is None

    def test_repricing(self, stocked):
        """Held 166 days: stale, so beat the 142.20 lowest ask by 5."""
        from portfolio.service import PortfolioService
        from portfolio.types import Urgency

        [suggestion] = PortfolioService(stocked).repricing("u1")
        assert suggestion.urgency == Urgency.MEDIUM
        assert suggestion.days_in_inventory == 166
        assert suggestion.current_price == Decimal("132.00")
        assert suggestion.suggested_price == Decimal("137.20")

    def test_repricing_empty(self, session, clock):
        from portfolio.service import PortfolioService

        assert PortfolioService(session).repricing() == []
