"""
Market Sync - Queue Worker.

============================================================
RESPONSIBILITY
============================================================
Claims sync jobs and runs the matching provider sync.

1. Recover stale running jobs
2. Claim up to batch_size due jobs (committed as running)
3. Run each job sequentially, pausing between jobs
4. Mark each job done or failed and commit

A job fails when the SKU is not in the catalog, when Alias
has no catalog id, or when the provider sync reports no
success. The first recorded error becomes the job error.

============================================================
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.orm import Session

from data_sources.exceptions import DataSourceError
from data_sources.models import Provider
from data_sources.providers.alias import AliasMarketSource
from data_sources.providers.stockx import StockXMarketSource
from market_sync.config import SyncConfig, get_default_config
from market_sync.exceptions import SyncError
from market_sync.queue import SyncQueue
from market_sync.service import AliasSyncService, StockXSyncService
from market_sync.types import ProcessBatchResult, SyncResult
from storage.models.sync import SyncJob
from storage.repositories.catalog import CatalogRepository
from storage.repositories.exceptions import RepositoryException


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


class SyncQueueWorker:
    """
    Processes sync queue batches.

    Usage:
        async with SyncQueueWorker(session) as worker:
            result = await worker.process_batch()
    """

    def __init__(
        self,
        session: Session,
        stockx_source: Optional[StockXMarketSource] = None,
        alias_source: Optional[AliasMarketSource] = None,
        config: Optional[SyncConfig] = None,
    ):
        self._session = session
        self._config = config or get_default_config()
        self._owned = []
        if stockx_source is None:
            stockx_source = StockXMarketSource()
            self._owned.append(stockx_source)
        if alias_source is None:
            alias_source = AliasMarketSource()
            self._owned.append(alias_source)

        self._queue = SyncQueue(session, self._config)
        self._catalog = CatalogRepository(session)
        self._stockx = StockXSyncService(session, stockx_source, self._config)
        self._alias = AliasSyncService(session, alias_source, self._config)

    @property
    def queue(self) -> SyncQueue:
        return self._queue

    async def close(self) -> None:
        for source in self._owned:
            await source.close()

    async def __aenter__(self) -> "SyncQueueWorker":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def run_job(self, job: SyncJob) -> SyncResult:
        """
        Run the provider sync for a claimed job.

        Raises:
            SyncError: The job cannot run (unknown SKU, unmapped Alias id)
        """
        catalog = self._catalog.get_by_sku(job.sku)
        if catalog is None:
            raise SyncError(f"Style {job.sku} not found in catalog", sku=job.sku, provider=job.provider)

        if job.provider == Provider.STOCKX.value:
            return await self._stockx.sync_product(
                sku=job.sku,
                product_id=catalog.stockx_product_id,
                force=True,
            )
        if job.provider == Provider.ALIAS.value:
            if not catalog.alias_catalog_id:
                raise SyncError(f"Style {job.sku} has no alias_catalog_id", sku=job.sku, provider=job.provider)
            return await self._alias.sync_catalog(catalog.alias_catalog_id, sku=job.sku, force=True)

        raise SyncError(f"Unknown provider: {job.provider}", sku=job.sku, provider=job.provider)

    async def _process_job(self, job: SyncJob) -> Optional[str]:
        """Run one job and record the outcome. Returns the error, if any."""
        try:
            result = await self.run_job(job)
            error = None if result.success else (result.first_error or "Unknown error")
        except (SyncError, DataSourceError, RepositoryException) as e:
            self._session.rollback()
            error = str(e)
        except Exception as e:
            self._session.rollback()
            logger.exception(f"[sync_worker] Job {job.id} ({job.sku}/{job.provider}) crashed")
            error = f"{type(e).__name__}: {e}"

        if error is None:
            self._queue.complete(job)
        else:
            self._queue.fail(job, error)
        self._session.commit()
        return error

    async def process_batch(
        self,
        batch_size: Optional[int] = None,
        delay_ms: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> ProcessBatchResult:
        """
        Claim and process one batch of due jobs.

        Args:
            batch_size: Jobs to claim (default 10)
            delay_ms: Pause between jobs (default 500)
            provider: Only claim jobs for this provider
        """
        batch_size = batch_size or self._config.batch_size or DEFAULT_BATCH_SIZE
        delay_ms = self._config.job_delay_ms if delay_ms is None else delay_ms
        result = ProcessBatchResult()

        self._queue.recover_stale()
        jobs = self._queue.claim_batch(batch_size, provider)
        self._session.commit()

        for index, job in enumerate(jobs):
            if index and delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)

            result.processed += 1
            error = await self._process_job(job)
            if error is None:
                result.successful += 1
            else:
                result.failed += 1
                result.errors.append({
                    "job_id": str(job.id),
                    "sku": job.sku,
                    "provider": job.provider,
                    "error": error,
                })

        logger.info(
            f"[sync_worker] Processed {result.processed} jobs: "
            f"{result.successful} ok, {result.failed} failed"
        )
        return result
