"""
Tests for Provider Payload Mappers.

============================================================
PURPOSE
============================================================
1. StockX market data: major-unit prices, flex/direct rows
2. StockX catalog and variants
3. Alias availabilities: cents, condition and size filters
4. Alias recent sales and velocity attachment

============================================================
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal


SNAPSHOT = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def stockx_market_payload():
    """Market data for two variants; the first also has flex prices."""
    return [
        {
            "variantId": "var-10",
            "lowestAskAmount": "150",
            "highestBidAmount": "120",
            "standardMarketData": {"lowestAsk": "150", "sellFaster": "145", "earnMore": "160", "beatUS": "149"},
            "flexMarketData": {"lowestAsk": "140", "sellFaster": None, "earnMore": None},
            "directMarketData": {"lowestAsk": None, "sellFaster": None, "earnMore": None},
        },
        {
            "variantId": "var-11",
            "lowestAskAmount": "170.5",
            "highestBidAmount": None,
            "standardMarketData": {},
        },
    ]


@pytest.fixture
def alias_availability_payload():
    """Availability variants covering every filter."""
    new_good = {
        "product_condition": "PRODUCT_CONDITION_NEW",
        "packaging_condition": "PACKAGING_CONDITION_GOOD_CONDITION",
    }
    return [
        {**new_good, "size": 10.0, "consigned": False, "availability": {
            "lowest_listing_price_cents": "18000",
            "highest_offer_price_cents": "15000",
            "last_sold_listing_price_cents": "17500",
            "global_indicator_price_cents": "17800",
        }},
        {**new_good, "size": 10.0, "consigned": True, "availability": {
            "lowest_listing_price_cents": "19000",
            "highest_offer_price_cents": "0",
        }},
        {**new_good, "size": 10.5, "consigned": False, "availability": {
            "lowest_listing_price_cents": "0",
            "highest_offer_price_cents": "",
        }},
        {
            "product_condition": "PRODUCT_CONDITION_USED",
            "packaging_condition": "PACKAGING_CONDITION_GOOD_CONDITION",
            "size": 9.0,
            "availability": {"lowest_listing_price_cents": "10000"},
        },
        {**new_good, "size": 15.0, "consigned": False, "availability": {
            "lowest_listing_price_cents": "25000",
        }},
    ]


# ============================================================
# STOCKX TESTS
# ============================================================

class TestStockXMapper:
    """Tests for StockX market data mapping."""

    def test_parse_major_price(self):
        """Major units are quantized to cents."""
        from data_ingestion.normalizers.stockx_mapper import parse_major_price

        assert parse_major_price("27") == Decimal("27.00")
        assert parse_major_price(145.555) == Decimal("145.56")
        assert parse_major_price("") is None
        assert parse_major_price(None) is None
        assert parse_major_price("abc") is None

    def test_standard_and_flex_rows(self, stockx_market_payload):
        """Flex row only when the flex program has prices."""
        from data_ingestion.normalizers.stockx_mapper import map_stockx_market_data

        rows = map_stockx_market_data(
            stockx_market_payload,
            product_id="prod-1",
            currency="gbp",
            sku="DD1391-100",
            snapshot_at=SNAPSHOT,
            size_lookup={"var-10": "10", "var-11": "11"},
        )

        sources = [(r.size_key, r.provider_source) for r in rows]
        assert sources == [
            ("10", "stockx_market_data"),
            ("10", "stockx_market_data_flex"),
            ("11", "stockx_market_data"),
        ]

        standard = rows[0]
        assert standard.currency == "GBP"
        assert standard.region == "UK"
        assert standard.lowest_ask == Decimal("150.00")
        assert standard.highest_bid == Decimal("120.00")
        assert standard.sell_faster == Decimal("145.00")
        assert standard.earn_more == Decimal("160.00")
        assert standard.beat_us == Decimal("149.00")
        assert standard.size_numeric == 10.0

        flex = rows[1]
        assert flex.is_flex
        assert flex.lowest_ask == Decimal("140.00")

        assert rows[2].lowest_ask == Decimal("170.50")
        assert rows[2].highest_bid is None

    def test_variant_without_id_skipped(self):
        """Payloads without variantId are ignored."""
        from data_ingestion.normalizers.stockx_mapper import map_stockx_market_data

        rows = map_stockx_market_data([{"lowestAskAmount": "100"}], "prod-1", "USD", snapshot_at=SNAPSHOT)
        assert rows == []

    def test_unknown_size_and_region(self):
        """Missing size labels become Unknown; unknown currencies are global."""
        from data_ingestion.normalizers.stockx_mapper import map_stockx_market_data

        rows = map_stockx_market_data(
            [{"variantId": "v1", "lowestAskAmount": "100"}],
            "prod-1",
            "JPY",
            snapshot_at=SNAPSHOT,
        )
        assert rows[0].size_key == "Unknown"
        assert rows[0].region == "global"

    def test_duplicates_removed(self):
        """The same variant twice yields one row."""
        from data_ingestion.normalizers.stockx_mapper import map_stockx_market_data

        payload = [{"variantId": "v1", "variantValue": "9", "lowestAskAmount": "100"}] * 2
        rows = map_stockx_market_data(payload, "prod-1", "GBP", snapshot_at=SNAPSHOT)
        assert len(rows) == 1

    def test_map_product(self):
        """Catalog fields come from the product payload."""
        from data_ingestion.normalizers.stockx_mapper import map_stockx_product

        record = map_stockx_product({
            "productId": "prod-1",
            "styleId": "DD1391-100",
            "title": "Nike Dunk Low Retro White Black Panda",
            "brand": "Nike",
            "productType": "sneakers",
            "productAttributes": {"colorway": "White/Black", "gender": "men", "retailPrice": 110},
        })
        assert record.provider == "stockx"
        assert record.sku == "DD1391-100"
        assert record.colorway == "White/Black"
        assert record.retail_price == Decimal("110.00")
        assert record.size_unit == "US"

    def test_map_variants(self):
        """Variants keep GTINs and program eligibility."""
        from data_ingestion.normalizers.stockx_mapper import map_stockx_variants

        records = map_stockx_variants("prod-1", [
            {"variantId": "v1", "variantValue": "10.5", "gtins": [{"identifier": "195866000000"}],
             "isFlexEligible": True},
            {"variantId": "v2"},
        ])
        assert records[0].size_key == "10.5"
        assert records[0].size_numeric == 10.5
        assert records[0].gtins == ("195866000000",)
        assert records[0].is_flex_eligible
        assert not records[0].is_direct_eligible
        assert records[1].size_key == "Unknown"


# ============================================================
# ALIAS TESTS
# ============================================================

class TestAliasMapper:
    """Tests for Alias availability and sales mapping."""

    def test_parse_cents(self):
        """Cents convert to major units; zero means no data."""
        from data_ingestion.normalizers.alias_mapper import parse_cents

        assert parse_cents("14500") == Decimal("145.00")
        assert parse_cents(9999) == Decimal("99.99")
        assert parse_cents("0") is None
        assert parse_cents("") is None
        assert parse_cents(None) is None

    def test_region_code(self):
        from data_ingestion.normalizers.alias_mapper import region_code

        assert region_code("1") == "US"
        assert region_code("2") == "EU"
        assert region_code("3") == "UK"
        assert region_code(None) == "global"
        assert region_code("9") == "global"

    def test_size_label(self):
        """Numeric sizes render like StockX labels."""
        from data_ingestion.normalizers.alias_mapper import size_label

        assert size_label(10.0) == "10"
        assert size_label(10.5) == "10.5"
        assert size_label(" 9 ") == "9"
        assert size_label(None) == ""

    def test_availabilities(self, alias_availability_payload):
        """Only NEW/GOOD variants with prices become rows."""
        from data_ingestion.normalizers.alias_mapper import map_alias_availabilities

        rows = map_alias_availabilities(
            alias_availability_payload,
            catalog_id="cat-1",
            region_id="3",
            sku="DD1391-100",
            snapshot_at=SNAPSHOT,
        )

        assert [(r.size_key, r.is_consigned) for r in rows] == [("10", False), ("10", True), ("15", False)]
        row = rows[0]
        assert row.provider == "alias"
        assert row.provider_source == "alias_availabilities"
        assert row.currency == "USD"
        assert row.region == "UK"
        assert row.lowest_ask == Decimal("180.00")
        assert row.highest_bid == Decimal("150.00")
        assert row.last_sale == Decimal("175.00")
        assert row.global_indicator == Decimal("178.00")

        consigned = rows[1]
        assert consigned.provider_source == "alias_availabilities_consigned"
        assert consigned.highest_bid is None

    def test_allowed_sizes_filter(self, alias_availability_payload):
        """Sizes outside the catalog's allowed sizes are dropped."""
        from data_ingestion.normalizers.alias_mapper import map_alias_availabilities

        rows = map_alias_availabilities(
            alias_availability_payload,
            catalog_id="cat-1",
            allowed_sizes=[9.0, 10.0, 10.5],
            snapshot_at=SNAPSHOT,
        )
        assert {r.size_key for r in rows} == {"10"}

    @pytest.mark.parametrize("consigned_filter,expected", [
        (True, [True]),
        (False, [False, False]),
        ("mixed", [False, True, False]),
    ])
    def test_consigned_filter(self, alias_availability_payload, consigned_filter, expected):
        from data_ingestion.normalizers.alias_mapper import map_alias_availabilities

        rows = map_alias_availabilities(
            alias_availability_payload,
            catalog_id="cat-1",
            consigned_filter=consigned_filter,
            snapshot_at=SNAPSHOT,
        )
        assert [r.is_consigned for r in rows] == expected

    def test_recent_sales(self):
        """Unpriced or undated sales are skipped."""
        from data_ingestion.normalizers.alias_mapper import map_alias_recent_sales

        records = map_alias_recent_sales(
            [
                {"price_cents": "17000", "purchased_at": "2024-06-14T10:00:00Z", "size": 10.0, "consigned": True},
                {"price_cents": "0", "purchased_at": "2024-06-14T11:00:00Z", "size": 10.0},
                {"price_cents": "16000", "size": 10.0},
            ],
            catalog_id="cat-1",
            region_id="3",
            sku="DD1391-100",
        )
        assert len(records) == 1
        sale = records[0]
        assert sale.price == Decimal("170.00")
        assert sale.size_key == "10"
        assert sale.region == "UK"
        assert sale.is_consigned
        assert sale.sold_at == datetime(2024, 6, 14, 10, 0, tzinfo=timezone.utc)

    def test_attach_sales_velocity(self, make_row, make_sale):
        """Velocity attaches to rows with matching size and consignment."""
        from data_ingestion.normalizers.alias_mapper import attach_sales_velocity

        rows = [
            make_row(provider="alias", size_key="10", last_sale=Decimal("150.00")),
            make_row(provider="alias", size_key="11"),
        ]
        sales = [
            make_sale(sold_at=SNAPSHOT - timedelta(hours=5), price=Decimal("160.00")),
            make_sale(sold_at=SNAPSHOT - timedelta(days=10), price=Decimal("140.00")),
        ]

        result = attach_sales_velocity(rows, sales, now=SNAPSHOT)

        assert result[0].sales_72h == 1
        assert result[0].sales_30d == 2
        assert result[0].total_sales_volume == 2
        assert result[0].last_sale == Decimal("160.00")
        assert result[1].sales_72h is None

    def test_map_catalog(self):
        """Wrapped catalog payloads are unwrapped."""
        from data_ingestion.normalizers.alias_mapper import map_alias_catalog

        record = map_alias_catalog({"catalog_item": {
            "catalog_id": "cat-1",
            "sku": "DD1391 100",
            "name": "Dunk Low 'Panda'",
            "allowed_sizes": [{"value": 9}, {"value": 9.5}, {"value": None}],
            "retail_price_cents": "11000",
            "size_unit": "SIZE_UNIT_US",
            "main_picture_url": "https://example.com/panda.png",
        }})
        assert record.provider_product_id == "cat-1"
        assert record.allowed_sizes == (9.0, 9.5)
        assert record.retail_price == Decimal("110.00")
        assert record.image_url == "https://example.com/panda.png"
