"""
Tests for Portfolio Valuation.

============================================================
PURPOSE
============================================================
1. Size matching against market labels
2. Item ROI against full cost basis
3. Portfolio KPIs and category breakdown
4. Daily value series and 7-day delta

============================================================
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal


NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def _item(**overrides):
    from portfolio.types import PortfolioItem

    values = {
        "id": "item-1",
        "sku": "DD1391-100",
        "purchase_price": Decimal("100.00"),
        "size": "10",
        "size_uk": "9",
        "category": "sneakers",
    }
    values.update(overrides)
    return PortfolioItem(**values)


# ============================================================
# SIZE MATCHING TESTS
# ============================================================

class TestSizeMatching:
    """Tests for market_size_key and size_matches."""

    @pytest.mark.parametrize("size,expected", [
        ("10", "10"),
        ("US 10.5", "10.5"),
        ("UK 9", "10"),
        ("EU 44", "10"),
        ("UK 30", None),
        (None, None),
    ])
    def test_market_size_key(self, size, expected):
        from portfolio.valuation import market_size_key

        assert market_size_key(_item(size=size, size_uk=None)) == expected

    def test_market_size_key_uses_brand_chart(self):
        """UK-only items map back to US through the brand's chart."""
        from portfolio.valuation import market_size_key

        assert market_size_key(_item(size="UK 9", brand="adidas")) == "9.5"
        assert market_size_key(_item(size="UK 7.5", model="Nike Dunk Low (Women's)")) == "10"
        assert market_size_key(_item(size=None, size_uk="9")) == "10"

    def test_size_matches(self):
        from portfolio.valuation import size_matches

        assert size_matches("10", "10")
        assert size_matches("10.0", "10")
        assert not size_matches("10.5", "10")
        assert not size_matches("OS", "10")
        assert not size_matches("10", None)


# ============================================================
# ITEM ROI TESTS
# ============================================================

class TestItemROI:
    """Tests for item_roi."""

    def test_cost_includes_tax_and_shipping(self):
        from portfolio.valuation import item_roi

        item = _item(tax=Decimal("5.00"), shipping=Decimal("5.00"))
        roi = item_roi(item, Decimal("142.20"))

        assert roi.cost == Decimal("110.00")
        assert roi.profit == Decimal("32.20")
        assert roi.roi_pct == Decimal("29.27")

    def test_no_market_value(self):
        from portfolio.valuation import item_roi

        roi = item_roi(_item(), None)
        assert roi.profit is None
        assert roi.roi_pct is None

    def test_zero_cost(self):
        from portfolio.valuation import item_roi

        roi = item_roi(_item(purchase_price=Decimal("0")), Decimal("50.00"))
        assert roi.profit == Decimal("50.00")
        assert roi.roi_pct is None


# ============================================================
# VALUATOR TESTS
# ============================================================

class TestPortfolioValuator:
    """Tests for PortfolioValuator.value."""

    def test_empty_portfolio(self):
        from portfolio.valuation import PortfolioValuator

        valuation = PortfolioValuator().value([], {}, now=NOW)
        assert valuation.is_empty is True
        assert valuation.estimated_value == Decimal("0")
        assert valuation.roi == Decimal("0")
        assert valuation.prices_as_of == NOW

    def test_kpis(self):
        """Unpriced items count at purchase price and are reported missing."""
        from portfolio.types import MarketPrice
        from portfolio.valuation import PortfolioValuator

        priced_at = NOW - timedelta(hours=1)
        items = [
            _item(id="a", quantity=2),
            _item(id="b", sku="555088-134", purchase_price=Decimal("50.00"),
                  purchase_currency="USD", category=None, size_uk="8"),
        ]
        prices = {"a": MarketPrice(value=Decimal("150.00"), currency="GBP", as_of=priced_at), "b": None}

        valuation = PortfolioValuator().value(items, prices, now=NOW)

        assert valuation.currency == "GBP"
        # 2 x 100 + 50 USD (39.50 GBP)
        assert valuation.invested == Decimal("239.50")
        assert valuation.estimated_value == Decimal("339.50")
        assert valuation.unrealised_pl == Decimal("100.00")
        assert valuation.roi == Decimal("41.75")
        assert valuation.missing_prices_count == 1
        assert valuation.missing_items[0].sku == "555088-134"
        assert valuation.prices_as_of == priced_at

    def test_category_breakdown(self):
        from portfolio.types import MarketPrice
        from portfolio.valuation import PortfolioValuator

        items = [
            _item(id="a", quantity=2),
            _item(id="b", purchase_price=Decimal("39.50"), category=None),
        ]
        prices = {"a": MarketPrice(value=Decimal("150.00"), currency="GBP")}

        breakdown = PortfolioValuator().value(items, prices, now=NOW).category_breakdown

        assert [c.category for c in breakdown] == ["sneakers", "Other"]
        assert breakdown[0].value == Decimal("300.00")
        assert breakdown[0].percentage == Decimal("88.37")
        assert breakdown[1].percentage == Decimal("11.63")

    def test_currency_conversion(self):
        from portfolio.config import PortfolioConfig
        from portfolio.types import MarketPrice
        from portfolio.valuation import PortfolioValuator

        valuator = PortfolioValuator(PortfolioConfig(currency="USD"))
        valuation = valuator.value(
            [_item(id="a")],
            {"a": MarketPrice(value=Decimal("150.00"), currency="GBP")},
            now=NOW,
        )
        assert valuation.invested == Decimal("127.00")
        assert valuation.estimated_value == Decimal("190.50")

    def test_item_rois(self):
        from portfolio.types import MarketPrice
        from portfolio.valuation import PortfolioValuator

        rois = PortfolioValuator().item_rois(
            [_item(id="a"), _item(id="b")],
            {"a": MarketPrice(value=Decimal("180.00"), currency="USD")},
        )
        assert rois[0].market_value == Decimal("142.20")
        assert rois[0].profit == Decimal("42.20")
        assert rois[1].market_value is None

    def test_to_dict(self):
        from portfolio.valuation import PortfolioValuator

        data = PortfolioValuator().value([_item()], {}, now=NOW).to_dict()
        assert data["kpis"]["missing_prices_count"] == 1
        assert data["kpis"]["roi"] == "0.00"
        assert data["meta"]["prices_as_of"] == NOW.isoformat()


# ============================================================
# VALUE SERIES TESTS
# ============================================================

class TestValueSeries:
    """Tests for build_value_series and value_delta."""

    @pytest.fixture
    def series(self):
        from portfolio.valuation import build_value_series

        items = [
            _item(id="a"),
            _item(id="b", sku="555088-134", size="9", purchase_price=Decimal("80.00")),
        ]
        asks = [
            ("DD1391-100", "10", "GBP", TODAY - timedelta(days=2), Decimal("150.00")),
            ("DD1391-100", "10.0", "GBP", TODAY - timedelta(days=2), Decimal("140.00")),
            ("DD1391-100", "10", "USD", TODAY, Decimal("200.00")),
            ("DD1391-100", "11", "GBP", TODAY, Decimal("90.00")),
        ]
        return build_value_series(items, asks, TODAY, days=4)

    def test_days_before_any_price_are_empty(self, series):
        assert [p.day for p in series] == [TODAY - timedelta(days=n) for n in (3, 2, 1, 0)]
        assert series[0].value is None

    def test_prices_carried_forward(self, series):
        """Lowest ask of the day wins; unpriced items count at cost."""
        assert series[1].value == Decimal("220.00")
        assert series[2].value == Decimal("220.00")
        # 200 USD = 158.00 GBP
        assert series[3].value == Decimal("238.00")

    def test_delta(self, series):
        from portfolio.valuation import value_delta

        assert value_delta(series, lookback_days=2) == Decimal("8.18")
        assert value_delta(series, lookback_days=3) is None
        assert value_delta(series, lookback_days=7) is None
