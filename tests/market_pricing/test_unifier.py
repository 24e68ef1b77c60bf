"""
Tests for the Unified Size View and Pricing Options.

============================================================
PURPOSE
============================================================
1. Splitting and merging provider rows per size
2. Alias region and consignment filtering
3. Per-program pricing options
4. Flex savings and consigned comparison

============================================================
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal


FROZEN_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def size_rows(make_row):
    """Rows for one SKU across both providers."""
    return [
        make_row(size_key="10", provider_variant_id="sx-v10"),
        make_row(size_key="10", lowest_ask=Decimal("140.00"), highest_bid=None, is_flex=True,
                 provider_source="stockx_market_data_flex"),
        make_row(size_key="11", provider_variant_id="sx-v11", lowest_ask=Decimal("160.00")),
        make_row(provider="alias", provider_product_id="alias-cat-1", provider_source="alias_availabilities",
                 size_key="10", currency="USD", region="UK", lowest_ask=Decimal("180.00"),
                 highest_bid=Decimal("150.00"), sales_72h=3, sales_30d=12),
        make_row(provider="alias", provider_product_id="alias-cat-1", provider_source="alias_availabilities",
                 size_key="10", currency="USD", region="US", lowest_ask=Decimal("170.00")),
        make_row(provider="alias", provider_product_id="alias-cat-1", provider_source="alias_availabilities",
                 size_key="10", currency="USD", region="UK", lowest_ask=Decimal("200.00"), is_consigned=True),
        make_row(provider="alias", provider_product_id="alias-cat-1", provider_source="alias_availabilities",
                 size_key="9.5", currency="USD", region="UK", lowest_ask=Decimal("175.00")),
    ]


# ============================================================
# UNIFIER TESTS
# ============================================================

class TestSplitProviderRows:
    """Tests for split_provider_rows."""

    def test_split(self, size_rows):
        from market_pricing.unifier import split_provider_rows

        stockx, alias = split_provider_rows(size_rows)
        assert len(stockx) == 3
        assert len(alias) == 4

    def test_currency_preference(self, make_row):
        from market_pricing.unifier import split_provider_rows

        rows = [make_row(currency="GBP"), make_row(currency="USD", region="US")]
        stockx, _ = split_provider_rows(rows, "usd")
        assert [r.currency for r in stockx] == ["USD"]

        stockx, _ = split_provider_rows(rows, "EUR")
        assert len(stockx) == 2


class TestUnifyVariants:
    """Tests for unify_variants."""

    def test_sizes_sorted_numerically(self, size_rows):
        from market_pricing.unifier import split_provider_rows, unify_variants

        rows = unify_variants(*split_provider_rows(size_rows))
        assert [r.size_key for r in rows] == ["9.5", "10", "11"]
        assert rows[0].size_numeric == 9.5

    def test_merged_row(self, size_rows):
        from market_pricing.unifier import find_size, split_provider_rows, unify_variants

        row = find_size(unify_variants(*split_provider_rows(size_rows)), "10")

        assert row.has_stockx and row.has_alias
        assert row.stockx_variant_id == "sx-v10"
        assert row.stockx_lowest_ask == Decimal("150.00")
        assert row.stockx_flex_lowest_ask == Decimal("140.00")
        assert row.stockx_currency == "GBP"
        # UK region, not consigned
        assert row.alias_lowest_ask == Decimal("180.00")
        assert row.alias_sales_72h == 3
        assert row.alias_sales_30d == 12

    def test_consigned_view(self, size_rows):
        from market_pricing.unifier import find_size, split_provider_rows, unify_variants

        stockx, alias = split_provider_rows(size_rows)
        row = find_size(unify_variants(stockx, alias, consigned=True), "10")
        assert row.alias_lowest_ask == Decimal("200.00")

    def test_region_filter(self, size_rows):
        from market_pricing.unifier import find_size, split_provider_rows, unify_variants

        stockx, alias = split_provider_rows(size_rows)
        rows = unify_variants(stockx, alias, region_id="1")
        assert find_size(rows, "10").alias_lowest_ask == Decimal("170.00")
        assert find_size(rows, "9.5") is None

    def test_stockx_only_size(self, size_rows):
        from market_pricing.unifier import find_size, split_provider_rows, unify_variants

        row = find_size(unify_variants(*split_provider_rows(size_rows)), "11")
        assert row.has_stockx is True
        assert row.has_alias is False
        assert row.alias_lowest_ask is None

    def test_newest_snapshot_wins(self, make_row):
        from market_pricing.unifier import unify_variants

        rows = [
            make_row(lowest_ask=Decimal("150.00"), snapshot_at=FROZEN_NOW - timedelta(hours=2)),
            make_row(lowest_ask=Decimal("155.00"), snapshot_at=FROZEN_NOW),
        ]
        [row] = unify_variants(rows, [])
        assert row.stockx_lowest_ask == Decimal("155.00")
        assert row.stockx_updated_at == FROZEN_NOW

    def test_unpriced_alias_rows_skipped(self, make_row):
        from market_pricing.unifier import unify_variants

        rows = [make_row(provider="alias", provider_source="alias_availabilities", currency="USD",
                         lowest_ask=None, highest_bid=None)]
        assert unify_variants([], rows) == []

    def test_non_numeric_sizes_last(self, make_row):
        from market_pricing.unifier import unify_variants

        rows = unify_variants([make_row(size_key="OS"), make_row(size_key="4")], [])
        assert [r.size_key for r in rows] == ["4", "OS"]
        assert rows[1].size_numeric is None


class TestFindSize:
    """Tests for find_size."""

    def test_numeric_match(self, size_rows):
        from market_pricing.unifier import find_size, split_provider_rows, unify_variants

        rows = unify_variants(*split_provider_rows(size_rows))
        assert find_size(rows, "10.0").size_key == "10"
        assert find_size(rows, "12") is None
        assert find_size(rows, "XL") is None


# ============================================================
# PRICING OPTIONS TESTS
# ============================================================

class TestPricingOptions:
    """Tests for per-program pricing options."""

    def test_all_slots(self, size_rows):
        from market_pricing.options import get_all_pricing_options

        rows = [r for r in size_rows if r.size_key == "10" and r.region == "UK"]
        options = get_all_pricing_options(rows)

        assert options.stockx_standard.lowest_ask == Decimal("150.00")
        assert options.stockx_flex.program == "flex"
        assert options.alias_standard.lowest_ask == Decimal("180.00")
        assert options.alias_consigned.program == "consigned"
        assert len(options.all()) == 4

    def test_latest_snapshot_per_slot(self, make_row):
        from market_pricing.options import get_standard_pricing

        rows = [
            make_row(lowest_ask=Decimal("150.00"), snapshot_at=FROZEN_NOW),
            make_row(lowest_ask=Decimal("145.00"), snapshot_at=FROZEN_NOW - timedelta(days=1)),
        ]
        standard = get_standard_pricing(rows)
        assert standard["stockx"].lowest_ask == Decimal("150.00")
        assert standard["alias"] is None

    def test_best_price(self, size_rows):
        from market_pricing.options import get_best_price

        rows = [r for r in size_rows if r.size_key == "10" and r.region == "UK"]
        best = get_best_price(rows)
        assert best.provider == "stockx"
        assert best.program == "flex"
        assert get_best_price([]) is None

    def test_flex_savings(self, size_rows):
        from market_pricing.options import get_flex_savings

        rows = [r for r in size_rows if r.size_key == "10"]
        savings = get_flex_savings(rows)
        assert savings.savings == Decimal("10.00")
        assert savings.savings_pct == Decimal("6.67")

    def test_consigned_comparison(self, size_rows):
        from market_pricing.options import get_consigned_comparison

        rows = [r for r in size_rows if r.size_key == "10" and r.region == "UK"]
        comparison = get_consigned_comparison(rows)
        assert comparison.difference == Decimal("20.00")
        assert comparison.difference_pct == Decimal("11.11")

    def test_missing_programs(self, make_row):
        from market_pricing.options import get_consigned_comparison, get_flex_savings

        rows = [make_row()]
        assert get_flex_savings(rows) is None
        assert get_consigned_comparison(rows) is None
