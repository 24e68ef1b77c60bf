"""
Alias Market Data Source - Alias (GOAT) pricing insights adapter.

Implements catalog search, catalog item lookup, per-region
availabilities and recent sales from the Alias API.
Requires a personal access token (ALIAS_PAT).
"""

import logging
import os
from typing import Any, Optional

import aiohttp

from core.clock import now_utc
from data_ingestion.normalizers import alias_mapper
from data_sources.base import BaseMarketDataSource
from data_sources.exceptions import (
    ConfigurationError,
    DataSourceError,
    NormalizationError,
)
from data_sources.models import (
    ALIAS_REGIONS,
    DataType,
    FetchRequest,
    NormalizedRecord,
    Provider,
    SourceMetadata,
)


logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class AliasMarketSource(BaseMarketDataSource):
    """
    Alias API v1 data source.

    Endpoints used:
    - /catalog?query= - Catalog search
    - /catalog/{catalogId} - Catalog item (allowed sizes)
    - /pricing_insights/availabilities/{catalogId}?region_id=
    - /pricing_insights/recent_sales/{catalogId}?region_id=&size=

    Prices are returned as strings in USD cents for every region.
    """

    BASE_URL = "https://api.alias.org/api/v1"
    CREDENTIAL_ENV = "ALIAS_PAT"
    HEALTH_PROBE = ("/catalog", {"query": "jordan", "limit": 1})

    def __init__(
        self,
        token: Optional[str] = None,
        recent_sales_enabled: Optional[bool] = None,
        timeout: float = 30.0,
        max_retries: int = 5,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__(timeout, max_retries, session, base_url)
        self._token = token or os.getenv("ALIAS_PAT")
        if recent_sales_enabled is None:
            recent_sales_enabled = _env_flag("ALIAS_RECENT_SALES_ENABLED")
        self._recent_sales_enabled = recent_sales_enabled

        if not self._token:
            logger.warning(f"[{self.name}] ALIAS_PAT not set - requests will fail")

    @property
    def name(self) -> str:
        """Unique identifier."""
        return Provider.ALIAS.value

    @property
    def recent_sales_enabled(self) -> bool:
        return self._recent_sales_enabled

    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        data_types = [
            DataType.CATALOG_SEARCH,
            DataType.PRODUCT,
            DataType.MARKET_DATA,
        ]
        if self._recent_sales_enabled:
            data_types.append(DataType.RECENT_SALES)

        return SourceMetadata(
            name=self.name,
            display_name="Alias (GOAT)",
            version="1.0.0",
            supported_data_types=data_types,
            supported_currencies=["USD"],
            rate_limit_per_minute=60,
            native_price_unit="cents",
            supported_regions=sorted(ALIAS_REGIONS),
            requires_auth=True,
            base_url=self._base_url,
            documentation_url="https://docs.alias.org/",
            priority=2,
            tags=["sneakers", "marketplace", "goat", "alias"],
        )

    def _auth_headers(self) -> dict[str, str]:
        if not self._token:
            raise ConfigurationError(
                message="Alias personal access token missing",
                source_name=self.name,
                config_key="ALIAS_PAT",
            )
        return {"Authorization": f"Bearer {self._token}"}

    async def fetch_raw(
        self,
        request: FetchRequest,
    ) -> list[dict[str, Any]]:
        """Fetch raw data from Alias API."""
        if request.data_type == DataType.CATALOG_SEARCH:
            data = await self._get(
                "/catalog",
                params={"query": request.sku, "limit": min(request.limit, 50)},
            )
            return list(data.get("catalog_items") or [])
        elif request.data_type == DataType.PRODUCT:
            data = await self._get(f"/catalog/{request.product_id}")
            return [data] if data else []
        elif request.data_type == DataType.MARKET_DATA:
            data = await self._get(
                f"/pricing_insights/availabilities/{request.product_id}",
                params={"region_id": request.region_id},
            )
            return list(data.get("variants") or [])
        elif request.data_type == DataType.RECENT_SALES:
            return await self._fetch_recent_sales(request)
        else:
            raise DataSourceError(
                message=f"Unsupported data type: {request.data_type.value}",
                source_name=self.name,
            )

    async def _fetch_recent_sales(self, request: FetchRequest) -> list[dict[str, Any]]:
        """Fetch recent sales (gated by ALIAS_RECENT_SALES_ENABLED)."""
        if not self._recent_sales_enabled:
            raise ConfigurationError(
                message="Recent sales disabled",
                source_name=self.name,
                config_key="ALIAS_RECENT_SALES_ENABLED",
            )
        data = await self._get(
            f"/pricing_insights/recent_sales/{request.product_id}",
            params={
                "region_id": request.region_id,
                "size": request.size,
                "limit": request.limit,
            },
        )
        return list(data.get("recent_sales") or [])

    def normalize(
        self,
        raw_data: list[dict[str, Any]],
        request: FetchRequest,
    ) -> list[NormalizedRecord]:
        """Normalize Alias data to standard records."""
        try:
            if request.data_type in (DataType.CATALOG_SEARCH, DataType.PRODUCT):
                return [alias_mapper.map_alias_catalog(item) for item in raw_data]
            elif request.data_type == DataType.MARKET_DATA:
                return alias_mapper.map_alias_availabilities(
                    raw_data,
                    catalog_id=request.product_id,
                    region_id=request.region_id,
                    consigned_filter="mixed" if request.consigned is None else request.consigned,
                    allowed_sizes=request.allowed_sizes,
                    sku=request.sku,
                    snapshot_at=now_utc(),
                )
            elif request.data_type == DataType.RECENT_SALES:
                return alias_mapper.map_alias_recent_sales(
                    raw_data,
                    catalog_id=request.product_id,
                    region_id=request.region_id,
                    sku=request.sku,
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
