"""
StockX Market Data Source - Catalog and market-data API adapter.

Implements catalog search, product/variant lookup and market
data fetching from the StockX public API (v2).
Requires an API key and an OAuth access token.
"""

import logging
import os
from collections import OrderedDict
from typing import Any, Optional

import aiohttp

from core.clock import now_utc
from data_ingestion.normalizers import stockx_mapper
from data_sources.base import BaseMarketDataSource
from data_sources.exceptions import (
    ConfigurationError,
    DataSourceError,
    NormalizationError,
)
from data_sources.models import (
    DataType,
    FetchRequest,
    NormalizedRecord,
    Provider,
    SourceMetadata,
)


logger = logging.getLogger(__name__)


class StockXMarketSource(BaseMarketDataSource):
    """
    StockX API v2 data source.

    Endpoints used:
    - /v2/catalog/search - Catalog search by style id
    - /v2/catalog/products/{productId} - Product details
    - /v2/catalog/products/{productId}/variants - Sizes
    - /v2/catalog/products/{productId}/market-data - All variants
    - /v2/catalog/products/{productId}/variants/{variantId}/market-data

    Prices are returned in major units of the requested currency.
    """

    BASE_URL = "https://api.stockx.com"
    SUPPORTED_CURRENCIES = ["GBP", "USD", "EUR"]
    CREDENTIAL_ENV = "STOCKX_ACCESS_TOKEN"
    HEALTH_PROBE = ("/v2/catalog/search", {"query": "nike", "pageSize": 1})
    # Products whose variant sizes stay cached; least recently used go first
    VARIANT_CACHE_SIZE = 500

    def __init__(
        self,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 5,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__(timeout, max_retries, session, base_url)
        self._api_key = api_key or os.getenv("STOCKX_API_KEY")
        self._access_token = access_token or os.getenv("STOCKX_ACCESS_TOKEN")
        self._variant_sizes: OrderedDict[str, dict[str, str]] = OrderedDict()

        if not self._api_key or not self._access_token:
            logger.warning(f"[{self.name}] STOCKX_API_KEY / STOCKX_ACCESS_TOKEN not set - requests will fail")

    @property
    def name(self) -> str:
        """Unique identifier."""
        return Provider.STOCKX.value

    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name=self.name,
            display_name="StockX",
            version="2.0.0",
            supported_data_types=[
                DataType.CATALOG_SEARCH,
                DataType.PRODUCT,
                DataType.VARIANTS,
                DataType.MARKET_DATA,
            ],
            supported_currencies=list(self.SUPPORTED_CURRENCIES),
            rate_limit_per_minute=60,
            native_price_unit="major",
            requires_auth=True,
            base_url=self._base_url,
            documentation_url="https://developer.stockx.com/",
            priority=1,
            tags=["sneakers", "marketplace", "stockx"],
        )

    def _auth_headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ConfigurationError(
                message="StockX API key missing",
                source_name=self.name,
                config_key="STOCKX_API_KEY",
            )
        if not self._access_token:
            raise ConfigurationError(
                message="StockX access token missing",
                source_name=self.name,
                config_key="STOCKX_ACCESS_TOKEN",
            )
        return {
            "Authorization": f"Bearer {self._access_token}",
            "x-api-key": self._api_key,
        }

    async def fetch_raw(
        self,
        request: FetchRequest,
    ) -> list[dict[str, Any]]:
        """Fetch raw data from StockX API."""
        if request.data_type == DataType.CATALOG_SEARCH:
            return await self._fetch_search(request)
        elif request.data_type == DataType.PRODUCT:
            data = await self._get(f"/v2/catalog/products/{request.product_id}")
            return [data] if data else []
        elif request.data_type == DataType.VARIANTS:
            return await self._fetch_variants(request.product_id)
        elif request.data_type == DataType.MARKET_DATA:
            return await self._fetch_market_data(request)
        else:
            raise DataSourceError(
                message=f"Unsupported data type: {request.data_type.value}",
                source_name=self.name,
            )

    async def _fetch_search(self, request: FetchRequest) -> list[dict[str, Any]]:
        """Search catalog by style id."""
        data = await self._get(
            "/v2/catalog/search",
            params={"query": request.sku, "pageSize": min(request.limit, 50)},
        )
        return list(data.get("products") or [])

    async def _fetch_variants(self, product_id: str) -> list[dict[str, Any]]:
        """Fetch variants and remember their sizes for market-data mapping."""
        data = await self._get(f"/v2/catalog/products/{product_id}/variants")
        variants = list(data or [])
        self._variant_sizes[product_id] = {
            v["variantId"]: str(v.get("variantValue"))
            for v in variants
            if v.get("variantId") and v.get("variantValue") is not None
        }
        self._variant_sizes.move_to_end(product_id)
        while len(self._variant_sizes) > self.VARIANT_CACHE_SIZE:
            self._variant_sizes.popitem(last=False)
        return variants

    def _sizes_for(self, product_id: str) -> Optional[dict[str, str]]:
        sizes = self._variant_sizes.get(product_id)
        if sizes is not None:
            self._variant_sizes.move_to_end(product_id)
        return sizes

    async def _fetch_market_data(self, request: FetchRequest) -> list[dict[str, Any]]:
        """Fetch market data for one variant or the whole product."""
        params = {"currencyCode": request.currency.upper()}
        product_id = request.product_id

        if request.variant_id:
            data = await self._get(
                f"/v2/catalog/products/{product_id}/variants/{request.variant_id}/market-data",
                params=params,
            )
            payload = [data] if data else []
        else:
            data = await self._get(f"/v2/catalog/products/{product_id}/market-data", params=params)
            payload = list(data or [])

        if product_id not in self._variant_sizes and any(
            not item.get("variantValue") for item in payload
        ):
            await self._fetch_variants(product_id)
        return payload

    def normalize(
        self,
        raw_data: list[dict[str, Any]],
        request: FetchRequest,
    ) -> list[NormalizedRecord]:
        """Normalize StockX data to standard records."""
        try:
            if request.data_type in (DataType.CATALOG_SEARCH, DataType.PRODUCT):
                return [stockx_mapper.map_stockx_product(p) for p in raw_data]
            elif request.data_type == DataType.VARIANTS:
                return stockx_mapper.map_stockx_variants(request.product_id, raw_data)
            elif request.data_type == DataType.MARKET_DATA:
                return stockx_mapper.map_stockx_market_data(
                    raw_data,
                    product_id=request.product_id,
                    currency=request.currency,
                    sku=request.sku,
                    snapshot_at=now_utc(),
                    size_lookup=self._sizes_for(request.product_id),
                )
            else:
                return []
        except Exception as e:
            raise NormalizationError(
                message=f"Failed to normalize data: {e}",
                source_name=self.name,
                raw_data=raw_data[:2] if raw_data else None,
                original_error=e,
            ) from e
