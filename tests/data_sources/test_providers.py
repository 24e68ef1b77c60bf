"""
Tests for Marketplace Data Sources.

============================================================
PURPOSE
============================================================
1. StockX and Alias request routing and normalization
2. Retry on gateway errors, no retry on client errors
3. Rate-limit waits
4. Health tracking and incidents
5. Registry ordering and fan-out

HTTP is mocked at _make_request.

============================================================
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def stockx_source():
    """StockX source with credentials and fast retries."""
    from data_sources.providers.stockx import StockXMarketSource

    return StockXMarketSource(api_key="key", access_token="token", max_retries=3)


@pytest.fixture
def alias_source():
    """Alias source with recent sales enabled."""
    from data_sources.providers.alias import AliasMarketSource

    return AliasMarketSource(token="pat", recent_sales_enabled=True, max_retries=3)


@pytest.fixture
def no_sleep():
    """Skip real sleeps in retry loops."""
    with patch("data_sources.base.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


# ============================================================
# STOCKX TESTS
# ============================================================

class TestStockXSource:
    """Tests for the StockX source."""

    @pytest.mark.asyncio
    async def test_catalog_search(self, stockx_source):
        """Search hits become catalog records."""
        from data_sources.models import DataType, FetchRequest

        response = {"products": [{"productId": "prod-1", "styleId": "DD1391-100", "title": "Dunk Low"}]}
        with patch.object(stockx_source, "_make_request", new=AsyncMock(return_value=response)) as request:
            records = await stockx_source.fetch_or_raise(
                FetchRequest(data_type=DataType.CATALOG_SEARCH, sku="DD1391-100")
            )

        assert records[0].provider_product_id == "prod-1"
        method, url = request.call_args.args[:2]
        assert method == "GET"
        assert url.endswith("/v2/catalog/search")
        assert request.call_args.kwargs["params"]["query"] == "DD1391-100"
        assert request.call_args.kwargs["headers"]["x-api-key"] == "key"

    @pytest.mark.asyncio
    async def test_variant_market_data(self, stockx_source):
        """Variant market data uses the size label from the variants call."""
        from data_sources.models import DataType, FetchRequest

        variants = [{"variantId": "v1", "variantValue": "10"}]
        market = {"variantId": "v1", "lowestAskAmount": "150", "highestBidAmount": "120"}
        mock = AsyncMock(side_effect=[variants, market])

        with patch.object(stockx_source, "_make_request", new=mock):
            await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.VARIANTS, product_id="prod-1"))
            rows = await stockx_source.fetch_or_raise(FetchRequest(
                data_type=DataType.MARKET_DATA,
                product_id="prod-1",
                variant_id="v1",
                currency="GBP",
                sku="DD1391-100",
            ))

        assert len(rows) == 1
        assert rows[0].size_key == "10"
        assert rows[0].lowest_ask == Decimal("150.00")
        assert rows[0].currency == "GBP"
        url = mock.call_args_list[1].args[1]
        assert url.endswith("/v2/catalog/products/prod-1/variants/v1/market-data")
        assert mock.call_args_list[1].kwargs["params"] == {"currencyCode": "GBP"}

    @pytest.mark.asyncio
    async def test_variant_size_cache_bounded(self, stockx_source):
        """Variant sizes are kept for the most recently used products only."""
        from data_sources.models import DataType, FetchRequest

        stockx_source.VARIANT_CACHE_SIZE = 2
        mock = AsyncMock(return_value=[{"variantId": "v1", "variantValue": "10"}])

        with patch.object(stockx_source, "_make_request", new=mock):
            for product_id in ("prod-1", "prod-2"):
                await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.VARIANTS, product_id=product_id))
            assert stockx_source._sizes_for("prod-1") == {"v1": "10"}
            await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.VARIANTS, product_id="prod-3"))

        assert stockx_source._sizes_for("prod-2") is None
        assert stockx_source._sizes_for("prod-1") == {"v1": "10"}
        assert stockx_source._sizes_for("prod-3") == {"v1": "10"}

    @pytest.mark.asyncio
    async def test_market_data_fetches_missing_sizes(self, stockx_source):
        """Payloads without variantValue trigger a variants lookup."""
        from data_sources.models import DataType, FetchRequest

        market = [{"variantId": "v1", "lowestAskAmount": "150"}]
        variants = [{"variantId": "v1", "variantValue": "9.5"}]
        mock = AsyncMock(side_effect=[market, variants])

        with patch.object(stockx_source, "_make_request", new=mock):
            rows = await stockx_source.fetch_or_raise(
                FetchRequest(data_type=DataType.MARKET_DATA, product_id="prod-1")
            )

        assert mock.await_count == 2
        assert rows[0].size_key == "9.5"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch):
        """Requests without credentials fail with a configuration error."""
        from data_sources.exceptions import ConfigurationError
        from data_sources.models import DataType, FetchRequest
        from data_sources.providers.stockx import StockXMarketSource

        monkeypatch.delenv("STOCKX_API_KEY", raising=False)
        monkeypatch.delenv("STOCKX_ACCESS_TOKEN", raising=False)
        source = StockXMarketSource()

        with pytest.raises(ConfigurationError):
            await source.fetch_or_raise(FetchRequest(data_type=DataType.PRODUCT, product_id="prod-1"))

    @pytest.mark.asyncio
    async def test_invalid_request(self, stockx_source):
        """Validation failures surface as data source errors."""
        from data_sources.exceptions import DataSourceError
        from data_sources.models import DataType, FetchRequest

        with pytest.raises(DataSourceError):
            await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.MARKET_DATA))

    @pytest.mark.asyncio
    async def test_recent_sales_unsupported(self, stockx_source):
        """StockX has no recent sales endpoint."""
        from data_sources.exceptions import DataSourceError
        from data_sources.models import DataType, FetchRequest

        with pytest.raises(DataSourceError, match="Unsupported data type"):
            await stockx_source.fetch_or_raise(
                FetchRequest(data_type=DataType.RECENT_SALES, product_id="prod-1")
            )


# ============================================================
# ALIAS TESTS
# ============================================================

class TestAliasSource:
    """Tests for the Alias source."""

    @pytest.mark.asyncio
    async def test_availabilities(self, alias_source):
        """Availabilities are fetched per region and priced in USD."""
        from data_sources.models import DataType, FetchRequest

        response = {"variants": [{
            "size": 10.0,
            "product_condition": "PRODUCT_CONDITION_NEW",
            "packaging_condition": "PACKAGING_CONDITION_GOOD_CONDITION",
            "consigned": False,
            "availability": {"lowest_listing_price_cents": "18000"},
        }]}
        with patch.object(alias_source, "_make_request", new=AsyncMock(return_value=response)) as request:
            rows = await alias_source.fetch_or_raise(FetchRequest(
                data_type=DataType.MARKET_DATA,
                product_id="cat-1",
                region_id="3",
                currency="USD",
            ))

        assert rows[0].size_key == "10"
        assert rows[0].region == "UK"
        assert rows[0].lowest_ask == Decimal("180.00")
        assert request.call_args.args[1].endswith("/pricing_insights/availabilities/cat-1")
        assert request.call_args.kwargs["params"] == {"region_id": "3"}
        assert request.call_args.kwargs["headers"] == {"Authorization": "Bearer pat"}

    @pytest.mark.asyncio
    async def test_recent_sales(self, alias_source):
        """Recent sales map to sale records."""
        from data_sources.models import DataType, FetchRequest

        response = {"recent_sales": [
            {"price_cents": "17000", "purchased_at": "2024-06-14T10:00:00Z", "size": 10.0},
        ]}
        with patch.object(alias_source, "_make_request", new=AsyncMock(return_value=response)):
            sales = await alias_source.fetch_or_raise(FetchRequest(
                data_type=DataType.RECENT_SALES,
                product_id="cat-1",
                region_id="3",
                size="10",
            ))

        assert sales[0].price == Decimal("170.00")
        assert sales[0].region == "UK"

    @pytest.mark.asyncio
    async def test_recent_sales_disabled(self):
        """Recent sales are unsupported unless enabled."""
        from data_sources.exceptions import DataSourceError
        from data_sources.models import DataType, FetchRequest
        from data_sources.providers.alias import AliasMarketSource

        source = AliasMarketSource(token="pat", recent_sales_enabled=False)
        assert DataType.RECENT_SALES not in source.metadata().supported_data_types

        with pytest.raises(DataSourceError):
            await source.fetch_or_raise(FetchRequest(
                data_type=DataType.RECENT_SALES, product_id="cat-1", region_id="3"
            ))

    @pytest.mark.asyncio
    async def test_unknown_region_rejected(self, alias_source):
        from data_sources.exceptions import DataSourceError
        from data_sources.models import DataType, FetchRequest

        with pytest.raises(DataSourceError):
            await alias_source.fetch_or_raise(FetchRequest(
                data_type=DataType.MARKET_DATA, product_id="cat-1", region_id="7"
            ))


# ============================================================
# RETRY TESTS
# ============================================================

class TestRetry:
    """Tests for retry and rate-limit handling."""

    @pytest.mark.asyncio
    async def test_gateway_error_retried(self, stockx_source, no_sleep):
        """502 is retried and the next success is returned."""
        from data_sources.exceptions import FetchError
        from data_sources.models import DataType, FetchRequest

        mock = AsyncMock(side_effect=[
            FetchError("HTTP 502", source_name="stockx", status_code=502),
            {"productId": "prod-1", "styleId": "DD1391-100", "title": "Dunk Low"},
        ])
        with patch.object(stockx_source, "_make_request", new=mock):
            records = await stockx_source.fetch_or_raise(
                FetchRequest(data_type=DataType.PRODUCT, product_id="prod-1")
            )

        assert records[0].sku == "DD1391-100"
        assert mock.await_count == 2
        assert no_sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, stockx_source, no_sleep):
        """404 fails immediately."""
        from data_sources.exceptions import FetchError
        from data_sources.models import DataType, FetchRequest

        mock = AsyncMock(side_effect=FetchError("HTTP 404", source_name="stockx", status_code=404))
        with patch.object(stockx_source, "_make_request", new=mock):
            with pytest.raises(FetchError) as exc_info:
                await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.PRODUCT, product_id="x"))

        assert exc_info.value.status_code == 404
        assert mock.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, stockx_source, no_sleep):
        """Persistent 503 raises after max_retries attempts."""
        from data_sources.exceptions import FetchError
        from data_sources.models import DataType, FetchRequest

        mock = AsyncMock(side_effect=FetchError("HTTP 503", source_name="stockx", status_code=503))
        with patch.object(stockx_source, "_make_request", new=mock):
            with pytest.raises(FetchError, match="Failed after 3 retries"):
                await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.PRODUCT, product_id="x"))

        assert mock.await_count == 3

    @pytest.mark.asyncio
    async def test_rate_limit_waits_retry_after(self, stockx_source, no_sleep):
        """429 waits Retry-After seconds without using an attempt."""
        from data_sources.exceptions import RateLimitError
        from data_sources.models import DataType, FetchRequest

        mock = AsyncMock(side_effect=[
            RateLimitError("Rate limit exceeded", source_name="stockx", retry_after_seconds=7),
            {"productId": "prod-1", "styleId": "DD1391-100", "title": "Dunk Low"},
        ])
        with patch.object(stockx_source, "_make_request", new=mock):
            await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.PRODUCT, product_id="prod-1"))

        no_sleep.assert_awaited_once_with(7)
        assert stockx_source.get_health().rate_limited_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_waits_bounded(self, stockx_source, no_sleep):
        """Endless 429s stop after the bounded number of waits and stay a RateLimitError."""
        from data_sources.exceptions import RateLimitError
        from data_sources.models import DataType, FetchRequest

        mock = AsyncMock(
            side_effect=RateLimitError("Rate limit exceeded", source_name="stockx", retry_after_seconds=2)
        )
        with patch.object(stockx_source, "_make_request", new=mock):
            with pytest.raises(RateLimitError, match="Rate limit exhausted") as exc_info:
                await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.PRODUCT, product_id="x"))

        assert no_sleep.await_count == stockx_source.MAX_RATE_LIMIT_WAITS
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after_seconds == 2
        assert exc_info.value.is_rate_limited()

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after_zero(self, stockx_source, no_sleep):
        """Retry-After: 0 retries immediately instead of backing off."""
        from data_sources.exceptions import RateLimitError
        from data_sources.models import DataType, FetchRequest

        mock = AsyncMock(side_effect=[
            RateLimitError("Rate limit exceeded", source_name="stockx", retry_after_seconds=0),
            {"productId": "prod-1", "styleId": "DD1391-100", "title": "Dunk Low"},
        ])
        with patch.object(stockx_source, "_make_request", new=mock):
            await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.PRODUCT, product_id="prod-1"))

        no_sleep.assert_awaited_once_with(0)

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self, stockx_source, no_sleep):
        """An expired token fails on the first call."""
        from data_sources.exceptions import AuthenticationError
        from data_sources.models import DataType, FetchRequest

        error = AuthenticationError(
            "HTTP 401: check STOCKX_ACCESS_TOKEN",
            source_name="stockx",
            credential_key=stockx_source.CREDENTIAL_ENV,
        )
        mock = AsyncMock(side_effect=error)
        with patch.object(stockx_source, "_make_request", new=mock):
            with pytest.raises(AuthenticationError) as exc_info:
                await stockx_source.fetch_or_raise(FetchRequest(data_type=DataType.PRODUCT, product_id="x"))

        assert mock.await_count == 1
        no_sleep.assert_not_awaited()
        assert exc_info.value.is_auth_error()
        assert exc_info.value.to_dict()["credential_key"] == "STOCKX_ACCESS_TOKEN"

    def test_retry_delay_capped(self, stockx_source):
        """Backoff doubles and caps at 16 seconds."""
        assert stockx_source.get_retry_delay(0, jitter=False) == 1.0
        assert stockx_source.get_retry_delay(3, jitter=False) == 8.0
        assert stockx_source.get_retry_delay(10, jitter=False) == 16.0


# ============================================================
# HEALTH TESTS
# ============================================================

class TestHealthTracking:
    """Tests for health status transitions."""

    @pytest.mark.asyncio
    async def test_degraded_then_unavailable(self, stockx_source):
        """3 consecutive failures degrade, 5 make the source unavailable."""
        from data_sources.exceptions import FetchError
        from data_sources.models import DataType, FetchRequest, SourceStatus

        mock = AsyncMock(side_effect=FetchError("HTTP 400", source_name="stockx", status_code=400))
        request = FetchRequest(data_type=DataType.PRODUCT, product_id="x")

        with patch.object(stockx_source, "_make_request", new=mock):
            for _ in range(3):
                assert await stockx_source.fetch(request) == []
            assert stockx_source.get_health().status == SourceStatus.DEGRADED
            assert stockx_source.is_usable()

            for _ in range(2):
                await stockx_source.fetch(request)

        assert stockx_source.get_health().status == SourceStatus.UNAVAILABLE
        assert not stockx_source.is_usable()
        assert len(stockx_source.get_incidents(limit=10)) == 5

    @pytest.mark.asyncio
    async def test_success_recovers(self, stockx_source):
        """A success resets consecutive failures."""
        from data_sources.exceptions import FetchError
        from data_sources.models import DataType, FetchRequest, SourceStatus

        mock = AsyncMock(side_effect=[
            FetchError("HTTP 400", source_name="stockx", status_code=400),
            {"productId": "prod-1", "styleId": "DD1391-100", "title": "Dunk Low"},
        ])
        request = FetchRequest(data_type=DataType.PRODUCT, product_id="prod-1")
        with patch.object(stockx_source, "_make_request", new=mock):
            await stockx_source.fetch(request)
            await stockx_source.fetch(request)

        assert stockx_source.get_health().consecutive_failures == 0
        assert stockx_source.get_health().status == SourceStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_not_found_is_not_an_outage(self, stockx_source):
        """Unknown products log incidents but keep the source healthy."""
        from data_sources.exceptions import FetchError
        from data_sources.models import DataType, FetchRequest, SourceStatus

        mock = AsyncMock(side_effect=FetchError("HTTP 404", source_name="stockx", status_code=404))
        request = FetchRequest(data_type=DataType.PRODUCT, product_id="missing")
        with patch.object(stockx_source, "_make_request", new=mock):
            for _ in range(5):
                await stockx_source.fetch(request)

        assert stockx_source.get_health().consecutive_failures == 0
        assert stockx_source.get_health().status != SourceStatus.UNAVAILABLE
        assert len(stockx_source.get_incidents()) == 5

    @pytest.mark.asyncio
    async def test_auth_error_marks_unavailable(self, stockx_source):
        from data_sources.exceptions import AuthenticationError
        from data_sources.models import DataType, FetchRequest, SourceStatus

        mock = AsyncMock(side_effect=AuthenticationError("HTTP 401", source_name="stockx"))
        with patch.object(stockx_source, "_make_request", new=mock):
            await stockx_source.fetch(FetchRequest(data_type=DataType.PRODUCT, product_id="x"))

        assert stockx_source.get_health().status == SourceStatus.UNAVAILABLE
        assert not stockx_source.is_usable()

    @pytest.mark.asyncio
    async def test_health_check_probe(self, stockx_source, alias_source):
        from data_sources.exceptions import FetchError
        from data_sources.models import SourceStatus

        with patch.object(stockx_source, "_make_request", new=AsyncMock(return_value={"products": []})) as probe:
            health = await stockx_source.health_check()
        assert health.status == SourceStatus.HEALTHY
        assert probe.call_args.args[1] == "https://api.stockx.com/v2/catalog/search"
        assert probe.call_args.kwargs["params"] == {"query": "nike", "pageSize": 1}

        failure = AsyncMock(side_effect=FetchError("Connection error", source_name="alias"))
        with patch.object(alias_source, "_make_request", new=failure):
            health = await alias_source.health_check()
        assert health.status == SourceStatus.UNAVAILABLE
        assert "Connection error" in health.last_error


# ============================================================
# REGISTRY TESTS
# ============================================================

class TestSourceRegistry:
    """Tests for the source registry."""

    def test_priority_order(self, stockx_source, alias_source):
        """StockX (priority 1) sorts before Alias (priority 2)."""
        from data_sources.registry import SourceRegistry

        registry = SourceRegistry()
        registry.register(alias_source)
        registry.register(stockx_source)

        assert registry.list_sources() == ["stockx", "alias"]
        assert registry.get_source("alias") is alias_source

    @pytest.mark.asyncio
    async def test_fetch_first_falls_through(self, stockx_source, alias_source):
        """An empty first source falls through to the next."""
        from data_sources.models import DataType, FetchRequest
        from data_sources.registry import SourceRegistry

        registry = SourceRegistry()
        registry.register(stockx_source)
        registry.register(alias_source)

        request = FetchRequest(data_type=DataType.CATALOG_SEARCH, sku="DD1391-100")
        alias_hit = {"catalog_items": [{"catalog_id": "cat-1", "sku": "DD1391-100", "name": "Dunk Low"}]}
        with patch.object(stockx_source, "_make_request", new=AsyncMock(return_value={"products": []})), \
                patch.object(alias_source, "_make_request", new=AsyncMock(return_value=alias_hit)):
            name, records = await registry.fetch_first(request)

        assert name == "alias"
        assert records[0].provider_product_id == "cat-1"

    @pytest.mark.asyncio
    async def test_fetch_from_all_isolates_failures(self, stockx_source, alias_source):
        """A failing source maps to an empty list."""
        from data_sources.exceptions import FetchError
        from data_sources.models import DataType, FetchRequest
        from data_sources.registry import SourceRegistry

        registry = SourceRegistry()
        registry.register(stockx_source)
        registry.register(alias_source)

        request = FetchRequest(data_type=DataType.CATALOG_SEARCH, sku="DD1391-100")
        failure = AsyncMock(side_effect=FetchError("HTTP 401", source_name="stockx", status_code=401))
        alias_hit = {"catalog_items": [{"catalog_id": "cat-1", "sku": "DD1391-100", "name": "Dunk Low"}]}
        with patch.object(stockx_source, "_make_request", new=failure), \
                patch.object(alias_source, "_make_request", new=AsyncMock(return_value=alias_hit)):
            results = await registry.fetch_from_all(request)

        assert results["stockx"] == []
        assert len(results["alias"]) == 1
        assert registry.get_incidents()
