"""
Market Sync - Provider Sync Services.

============================================================
RESPONSIBILITY
============================================================
Fetches catalog, variant, market and sales data for one
product from one marketplace and persists it.

- StockX: search by SKU when no product id is known, then
  product details, variants and per-variant market data
- Alias: catalog item, then availabilities per region and
  optionally recent sales per size

============================================================
DESIGN PRINCIPLES
============================================================
- Partial failure: a failed size or region is recorded on
  the SyncResult and the sync continues
- Cache first: products with a snapshot younger than the TTL
  are not re-fetched unless forced
- Services flush through repositories; the caller commits
- A sync succeeds when enough sizes were refreshed: every
  size for products with fewer than 4, half otherwise

============================================================
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from core.clock import age_of
from data_ingestion.normalizers.alias_mapper import attach_sales_velocity
from data_ingestion.normalizers.sku import normalize_sku
from data_sources.exceptions import DataSourceError, RateLimitError
from data_sources.models import (
    CatalogRecord,
    DataType,
    FetchRequest,
    MarketRow,
    Provider,
    SaleRecord,
    VariantRecord,
)
from data_sources.providers.alias import AliasMarketSource
from data_sources.providers.stockx import StockXMarketSource
from market_sync.config import SyncConfig, get_default_config
from market_sync.exceptions import SyncError
from market_sync.types import SyncResult, SyncStage
from storage.repositories.catalog import CatalogRepository
from storage.repositories.exceptions import RepositoryException
from storage.repositories.market import MarketRepository
from storage.repositories.sales import SalesRepository


logger = logging.getLogger(__name__)


def is_fresh(
    snapshot_at: Optional[datetime],
    ttl_hours: int = 24,
    now: Optional[datetime] = None,
) -> bool:
    """True when a snapshot is younger than the TTL."""
    if snapshot_at is None:
        return False
    return age_of(snapshot_at, now) < timedelta(hours=ttl_hours)


def min_required(total: int) -> int:
    """Sizes that must refresh for a sync to count as successful."""
    if total < 4:
        return total
    return math.ceil(total * 0.5)


class _BaseSyncService:
    """Shared persistence and caching for provider syncs."""

    provider: Provider

    def __init__(self, session: Session, config: Optional[SyncConfig] = None):
        self._session = session
        self._config = config or get_default_config()
        self._catalog = CatalogRepository(session)
        self._market = MarketRepository(session)
        self._sales = SalesRepository(session)

    @property
    def config(self) -> SyncConfig:
        return self._config

    def is_cached(self, product_id: str, now: Optional[datetime] = None) -> bool:
        """True when stored market data for the product is still fresh."""
        latest = self._market.latest_snapshot_at(self.provider.value, product_id)
        return is_fresh(latest, self._config.ttl_hours, now)

    def _record_catalog(self, sku: Optional[str], product_id: str, record: Optional[CatalogRecord]) -> None:
        """Link the SKU to the provider id and fill empty catalog fields."""
        if not sku:
            return
        self._catalog.set_provider_id(sku, self.provider.value, product_id)
        if record is not None:
            self._catalog.backfill_metadata(sku, record)

    def _persist(self, rows: Sequence[MarketRow], result: SyncResult) -> None:
        if not rows:
            return
        try:
            inserted, updated = self._market.upsert_rows(rows)
            result.counts.rows_inserted += inserted
            result.counts.rows_updated += updated
            if self._config.append_history:
                result.counts.history_points += self._market.append_history(rows)
        except RepositoryException as e:
            logger.error(f"[{self.provider.value}_sync] Failed to persist {len(rows)} rows: {e}")
            result.add_error(SyncStage.PERSIST, e)


# ============================================================
# STOCKX
# ============================================================


class StockXSyncService(_BaseSyncService):
    """
    Syncs one StockX product.

    Usage:
        async with StockXSyncService(session) as service:
            result = await service.sync_product(sku="DD1391-100")
        session.commit()
    """

    provider = Provider.STOCKX

    def __init__(
        self,
        session: Session,
        source: Optional[StockXMarketSource] = None,
        config: Optional[SyncConfig] = None,
    ):
        super().__init__(session, config)
        self._owns_source = source is None
        self._source = source or StockXMarketSource()
        self._requests = 0

    async def close(self) -> None:
        if self._owns_source:
            await self._source.close()

    async def __aenter__(self) -> "StockXSyncService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _throttle(self) -> None:
        """Space out market-data requests to stay under the rate limit."""
        if self._requests and self._config.stockx_request_delay_ms > 0:
            await asyncio.sleep(self._config.stockx_request_delay_ms / 1000)
        self._requests += 1

    async def search(self, sku: str) -> Optional[CatalogRecord]:
        """Catalog search by style id; exact style id matches win."""
        records = await self._source.fetch_or_raise(
            FetchRequest(data_type=DataType.CATALOG_SEARCH, sku=sku, limit=10)
        )
        if not records:
            return None
        wanted = normalize_sku(sku)
        for record in records:
            if normalize_sku(record.sku) == wanted:
                return record
        return records[0]

    async def sync_product(
        self,
        sku: Optional[str] = None,
        product_id: Optional[str] = None,
        force: bool = False,
    ) -> SyncResult:
        """
        Fetch product, variants and market data, then persist.

        Args:
            sku: Style id; used for catalog search when product_id is unknown
            product_id: StockX product id
            force: Ignore the snapshot cache

        Raises:
            SyncError: Neither sku nor product_id given
        """
        if not sku and not product_id:
            raise SyncError("sku or product_id is required", provider=self.provider.value)

        sku = normalize_sku(sku) or sku if sku else None
        result = SyncResult(provider=self.provider.value, sku=sku, product_id=product_id)
        stage = SyncStage.CATALOG_SEARCH

        try:
            if product_id is None:
                hit = await self.search(sku)
                if hit is None:
                    result.add_error(stage, f"Product not found for SKU: {sku}")
                    return result
                product_id = hit.provider_product_id
                result.product_id = product_id

            if not force and self.is_cached(product_id):
                logger.info(f"[stockx_sync] {sku or product_id}: cached, skipping fetch")
                result.cached = True
                result.success = True
                return result

            stage = SyncStage.PRODUCT_DETAILS
            products = await self._source.fetch_or_raise(
                FetchRequest(data_type=DataType.PRODUCT, product_id=product_id, sku=sku)
            )
            product = products[0] if products else None
            if product is not None and not sku:
                sku = normalize_sku(product.sku) or product.sku or None
                result.sku = sku
            self._record_catalog(sku, product_id, product)

            stage = SyncStage.VARIANTS
            variants: List[VariantRecord] = await self._source.fetch_or_raise(
                FetchRequest(data_type=DataType.VARIANTS, product_id=product_id, sku=sku)
            )
        except DataSourceError as e:
            logger.warning(f"[stockx_sync] {sku or product_id}: {stage.value} failed: {e}")
            result.add_error(stage, e)
            return result

        result.counts.variants_synced = len(variants)
        if not variants:
            result.add_error(SyncStage.VARIANTS, "Product has no variants")
            return result

        rows = await self._fetch_market_data(product_id, sku, variants, result)
        self._persist(rows, result)

        if result.counts.rate_limited:
            logger.warning(
                f"[stockx_sync] {sku or product_id}: rate limited on "
                f"{result.counts.rate_limited} requests"
            )

        logger.info(
            f"[stockx_sync] {sku or product_id}: {result.counts.market_data_refreshed} market data "
            f"refreshes, {len(result.errors)} errors, success={result.success}"
        )
        return result

    async def _fetch_market_data(
        self,
        product_id: str,
        sku: Optional[str],
        variants: Sequence[VariantRecord],
        result: SyncResult,
    ) -> List[MarketRow]:
        """Market data per variant and currency; sets result.success."""
        currencies = self._config.stockx_currencies
        primary = currencies[0]
        primary_refreshed = 0
        rows: List[MarketRow] = []

        for currency in currencies:
            for variant in variants:
                await self._throttle()
                try:
                    variant_rows = await self._source.fetch_or_raise(
                        FetchRequest(
                            data_type=DataType.MARKET_DATA,
                            product_id=product_id,
                            variant_id=variant.provider_variant_id,
                            currency=currency,
                            sku=sku,
                        )
                    )
                except DataSourceError as e:
                    rate_limited = isinstance(e, RateLimitError)
                    if rate_limited:
                        result.counts.rate_limited += 1
                    result.add_error(
                        SyncStage.MARKET_DATA,
                        e,
                        variant_id=variant.provider_variant_id,
                        size=variant.size_key,
                        currency=currency,
                        rate_limited=rate_limited,
                    )
                    continue

                rows.extend(variant_rows)
                result.counts.market_data_refreshed += 1
                if currency == primary:
                    primary_refreshed += 1

        result.success = primary_refreshed >= min_required(len(variants))
        return rows


# ============================================================
# ALIAS
# ============================================================


class AliasSyncService(_BaseSyncService):
    """
    Syncs one Alias catalog item across regions.

    Prices are USD in every region. Recent sales are only
    fetched when the source has them enabled.
    """

    provider = Provider.ALIAS

    def __init__(
        self,
        session: Session,
        source: Optional[AliasMarketSource] = None,
        config: Optional[SyncConfig] = None,
    ):
        super().__init__(session, config)
        self._owns_source = source is None
        self._source = source or AliasMarketSource()

    async def close(self) -> None:
        if self._owns_source:
            await self._source.close()

    async def __aenter__(self) -> "AliasSyncService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def sync_catalog(
        self,
        catalog_id: str,
        sku: Optional[str] = None,
        regions: Optional[Sequence[str]] = None,
        force: bool = False,
        include_sales: Optional[bool] = None,
    ) -> SyncResult:
        """
        Fetch the catalog item and availabilities per region, then persist.

        Args:
            catalog_id: Alias catalog id
            sku: Style id; taken from the catalog item when omitted
            regions: Region ids in priority order (default UK, EU, US)
            force: Ignore the snapshot cache
            include_sales: Fetch recent sales (default: source setting)
        """
        regions = tuple(regions or self._config.alias_regions)
        if include_sales is None:
            include_sales = self._source.recent_sales_enabled

        sku = normalize_sku(sku) or sku if sku else None
        result = SyncResult(provider=self.provider.value, sku=sku, product_id=catalog_id)

        if not force and self.is_cached(catalog_id):
            logger.info(f"[alias_sync] {sku or catalog_id}: cached, skipping fetch")
            result.cached = True
            result.success = True
            return result

        try:
            items = await self._source.fetch_or_raise(
                FetchRequest(data_type=DataType.PRODUCT, product_id=catalog_id, sku=sku)
            )
        except DataSourceError as e:
            result.add_error(SyncStage.PRODUCT_DETAILS, e)
            return result

        if not items:
            result.add_error(SyncStage.PRODUCT_DETAILS, f"Catalog item not found: {catalog_id}")
            return result

        record: CatalogRecord = items[0]
        if not sku:
            sku = normalize_sku(record.sku) or record.sku or None
            result.sku = sku
        self._record_catalog(sku, catalog_id, record)
        allowed_sizes = frozenset(record.allowed_sizes) or None

        rows: List[MarketRow] = []
        for region_id in regions:
            try:
                region_rows = await self._source.fetch_or_raise(
                    FetchRequest(
                        data_type=DataType.MARKET_DATA,
                        product_id=catalog_id,
                        region_id=region_id,
                        allowed_sizes=allowed_sizes,
                        sku=sku,
                        currency="USD",
                    )
                )
            except DataSourceError as e:
                logger.warning(f"[alias_sync] {sku or catalog_id}: region {region_id} failed: {e}")
                result.add_error(SyncStage.AVAILABILITIES, e, region_id=region_id)
                continue

            result.counts.regions_synced += 1
            if include_sales and region_rows:
                region_rows = await self._sync_sales(catalog_id, sku, region_id, region_rows, result)
            rows.extend(region_rows)

        if not rows:
            if result.counts.regions_synced:
                result.add_error(SyncStage.VARIANTS, "No variants found across all regions")
            return result

        result.counts.market_data_refreshed = len(rows)
        result.counts.variants_synced = len({row.size_key for row in rows})
        self._persist(rows, result)
        result.success = not any(e.stage == SyncStage.PERSIST for e in result.errors)

        logger.info(
            f"[alias_sync] {sku or catalog_id}: {len(rows)} rows from "
            f"{result.counts.regions_synced}/{len(regions)} regions, {len(result.errors)} errors"
        )
        return result

    async def _sync_sales(
        self,
        catalog_id: str,
        sku: Optional[str],
        region_id: str,
        rows: List[MarketRow],
        result: SyncResult,
    ) -> List[MarketRow]:
        """Store recent sales per size and attach velocity to the region's rows."""
        sales: List[SaleRecord] = []
        for size in sorted({row.size_key for row in rows}):
            try:
                size_sales = await self._source.fetch_or_raise(
                    FetchRequest(
                        data_type=DataType.RECENT_SALES,
                        product_id=catalog_id,
                        region_id=region_id,
                        size=size,
                        sku=sku,
                        limit=self._config.alias_recent_sales_limit,
                    )
                )
            except DataSourceError as e:
                result.add_error(SyncStage.SALES_HISTORY, e, region_id=region_id, size=size)
                continue
            sales.extend(size_sales)

        if not sales:
            return rows

        try:
            result.counts.sales_events += self._sales.insert_events(sales)
        except RepositoryException as e:
            result.add_error(SyncStage.SALES_HISTORY, e, region_id=region_id)
        return attach_sales_velocity(rows, sales)
