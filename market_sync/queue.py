"""
Market Sync - Sync Queue.

============================================================
PURPOSE
============================================================
Status-column job queue driving per-SKU market refreshes.

One row per (sku, provider):

    pending --claim--> running --complete--> done
       ^                  |
       |                fail
       |                  |
       +-- attempts < max-+--> failed (attempts exhausted)

- Enqueueing a pending or running job returns it unchanged
- Enqueueing a done or failed job resets it to pending
- Failed attempts wait min(2^attempts, 30) minutes
- Running jobs stuck for 5 minutes are recovered to pending

The queue flushes through the repository; callers commit.

============================================================
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from core.clock import now_utc
from data_ingestion.normalizers.sku import normalize_sku
from data_sources.models import Provider
from market_sync.config import SyncConfig, get_default_config
from market_sync.exceptions import QueueError
from market_sync.types import (
    NOT_MAPPED,
    JobStatus,
    OverallSyncStatus,
    ProviderSyncState,
    QueueStats,
    RetryResult,
    SkuSyncStatus,
)
from storage.models.catalog import CatalogProduct
from storage.models.sync import SyncJob
from storage.repositories.catalog import CatalogRepository
from storage.repositories.market import MarketRepository
from storage.repositories.sync import SyncJobRepository


logger = logging.getLogger(__name__)

PROVIDERS = (Provider.STOCKX.value, Provider.ALIAS.value)
MAX_ERROR_LENGTH = 1000
STALE_JOB_ERROR = "Timeout: job processing exceeded {minutes} minutes"

_ACTIVE = (JobStatus.PENDING.value, JobStatus.RUNNING.value)


def derive_overall_status(stockx: str, alias: str) -> OverallSyncStatus:
    """
    Combine provider states.

    Either pending or running is syncing; both done is ready;
    both unmapped is not_mapped; one done is partial; any
    failure is failed; anything else is partial.
    """
    statuses = (stockx, alias)
    if any(s in _ACTIVE for s in statuses):
        return OverallSyncStatus.SYNCING
    if stockx == JobStatus.DONE.value and alias == JobStatus.DONE.value:
        return OverallSyncStatus.READY
    if stockx == NOT_MAPPED and alias == NOT_MAPPED:
        return OverallSyncStatus.NOT_MAPPED
    if JobStatus.DONE.value in statuses:
        return OverallSyncStatus.PARTIAL
    if JobStatus.FAILED.value in statuses:
        return OverallSyncStatus.FAILED
    return OverallSyncStatus.PARTIAL


def _clean_sku(sku: str) -> str:
    return normalize_sku(sku) or sku.strip().upper()


def _check_provider(provider: str) -> str:
    provider = provider.lower()
    if provider not in PROVIDERS:
        raise QueueError(f"Unknown provider: {provider}", provider=provider)
    return provider


class SyncQueue:
    """Enqueue, claim and finish sync jobs."""

    def __init__(self, session: Session, config: Optional[SyncConfig] = None):
        self._session = session
        self._config = config or get_default_config()
        self._jobs = SyncJobRepository(session)
        self._catalog = CatalogRepository(session)
        self._market = MarketRepository(session)

    @property
    def config(self) -> SyncConfig:
        return self._config

    # =========================================================
    # ENQUEUE
    # =========================================================

    def enqueue(self, sku: str, provider: str) -> SyncJob:
        """
        Queue a sync for one SKU and provider.

        An active job is returned as-is; a finished one is reset.
        """
        sku = _clean_sku(sku)
        provider = _check_provider(provider)

        job = self._jobs.get_by_key(sku, provider)
        if job is None:
            job = self._jobs.add(SyncJob(
                sku=sku,
                provider=provider,
                status=JobStatus.PENDING.value,
                attempts=0,
                max_attempts=self._config.max_attempts,
                created_at=now_utc(),
            ))
            logger.info(f"[sync_queue] Enqueued {provider} sync for {sku}")
            return job

        if job.status in _ACTIVE:
            logger.debug(f"[sync_queue] {provider} sync for {sku} already {job.status}")
            return job

        job.status = JobStatus.PENDING.value
        job.attempts = 0
        job.max_attempts = self._config.max_attempts
        job.next_retry_at = None
        job.last_error = None
        job.completed_at = None
        self._session.flush()
        logger.info(f"[sync_queue] Re-queued {provider} sync for {sku}")
        return job

    def enqueue_sku(self, sku: str, providers: Sequence[str] = PROVIDERS) -> List[SyncJob]:
        return [self.enqueue(sku, provider) for provider in providers]

    def retry(self, sku: str, provider: Optional[str] = None) -> RetryResult:
        """
        Queue syncs for providers that are not running or done.

        StockX can sync by SKU search alone; Alias needs a
        catalog id.
        """
        sku = _clean_sku(sku)
        result = RetryResult(sku=sku)
        status = self.status(sku)
        catalog = self._catalog.get_by_sku(sku)
        providers = [_check_provider(provider)] if provider else list(PROVIDERS)

        for name in providers:
            state = getattr(status, name)
            if state.status in (JobStatus.RUNNING.value, JobStatus.DONE.value):
                continue
            if name == Provider.ALIAS.value and (catalog is None or not catalog.alias_catalog_id):
                if state.status == NOT_MAPPED:
                    result.errors.append(f"No Alias catalog ID for {sku} - cannot sync")
                continue
            job = self.enqueue(sku, name)
            result.jobs_created.append({"id": str(job.id), "provider": name})

        return result

    # =========================================================
    # WORKER OPERATIONS
    # =========================================================

    def claim_batch(
        self,
        limit: Optional[int] = None,
        provider: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[SyncJob]:
        """Mark due pending jobs running, oldest first."""
        now = now or now_utc()
        limit = limit or self._config.batch_size
        if provider is not None:
            provider = _check_provider(provider)

        jobs = self._jobs.list_claimable(now, limit, provider)
        for job in jobs:
            job.status = JobStatus.RUNNING.value
            job.attempts += 1
            job.last_attempt_at = now
        self._session.flush()

        if jobs:
            logger.info(f"[sync_queue] Claimed {len(jobs)} jobs")
        return jobs

    def complete(self, job: SyncJob, now: Optional[datetime] = None) -> SyncJob:
        if job.status != JobStatus.RUNNING.value:
            raise QueueError(
                f"Cannot complete job in status {job.status}",
                job_id=str(job.id),
                sku=job.sku,
                provider=job.provider,
            )
        job.status = JobStatus.DONE.value
        job.completed_at = now or now_utc()
        job.last_error = None
        job.next_retry_at = None
        self._session.flush()
        return job

    def fail(self, job: SyncJob, error: str, now: Optional[datetime] = None) -> SyncJob:
        """
        Record a failed attempt.

        The job is rescheduled with backoff until max_attempts is
        reached, then marked failed.
        """
        now = now or now_utc()
        job.last_error = str(error)[:MAX_ERROR_LENGTH]

        if job.attempts >= job.max_attempts:
            job.status = JobStatus.FAILED.value
            job.completed_at = now
            job.next_retry_at = None
            logger.warning(
                f"[sync_queue] {job.provider} sync for {job.sku} failed after "
                f"{job.attempts} attempts: {job.last_error}"
            )
        else:
            job.status = JobStatus.PENDING.value
            job.next_retry_at = now + self._config.backoff(job.attempts)
            logger.info(
                f"[sync_queue] {job.provider} sync for {job.sku} attempt {job.attempts} failed, "
                f"retrying at {job.next_retry_at.isoformat()}"
            )

        self._session.flush()
        return job

    def retry_failed(self) -> int:
        """Reset every failed job to pending."""
        jobs = self._jobs.list_by_status(JobStatus.FAILED.value, limit=1000)
        for job in jobs:
            job.status = JobStatus.PENDING.value
            job.attempts = 0
            job.next_retry_at = None
            job.completed_at = None
        self._session.flush()
        if jobs:
            logger.info(f"[sync_queue] Reset {len(jobs)} failed jobs")
        return len(jobs)

    def recover_stale(self, now: Optional[datetime] = None) -> int:
        """Return running jobs stuck past the timeout to pending."""
        now = now or now_utc()
        timeout = self._config.stale_timeout
        jobs = self._jobs.list_stale(now - timeout)
        for job in jobs:
            job.status = JobStatus.PENDING.value
            job.next_retry_at = None
            job.last_error = STALE_JOB_ERROR.format(minutes=self._config.stale_timeout_minutes)
        self._session.flush()
        if jobs:
            logger.warning(f"[sync_queue] Recovered {len(jobs)} stale jobs")
        return len(jobs)

    # =========================================================
    # STATUS
    # =========================================================

    def _provider_state(
        self,
        provider: str,
        job: Optional[SyncJob],
        catalog: CatalogProduct,
    ) -> ProviderSyncState:
        if job is not None:
            return ProviderSyncState(
                status=job.status,
                last_attempt_at=job.last_attempt_at,
                error=job.last_error,
            )

        product_id = (
            catalog.stockx_product_id if provider == Provider.STOCKX.value else catalog.alias_catalog_id
        )
        if not product_id:
            return ProviderSyncState(status=NOT_MAPPED)

        has_data = self._market.latest_snapshot_at(provider, product_id) is not None
        return ProviderSyncState(status=JobStatus.DONE.value if has_data else JobStatus.PENDING.value)

    def status(self, sku: str) -> SkuSyncStatus:
        """
        Per-provider and overall sync status.

        A provider without a job is done when market data exists,
        pending when only the mapping exists, otherwise not_mapped.
        """
        sku = _clean_sku(sku)
        catalog = self._catalog.get_by_sku(sku)
        if catalog is None:
            unmapped = ProviderSyncState(status=NOT_MAPPED)
            return SkuSyncStatus(sku=sku, stockx=unmapped, alias=unmapped, overall=OverallSyncStatus.NOT_MAPPED)

        jobs = {job.provider: job for job in self._jobs.list_for_sku(sku)}
        stockx = self._provider_state(Provider.STOCKX.value, jobs.get(Provider.STOCKX.value), catalog)
        alias = self._provider_state(Provider.ALIAS.value, jobs.get(Provider.ALIAS.value), catalog)
        return SkuSyncStatus(
            sku=sku,
            stockx=stockx,
            alias=alias,
            overall=derive_overall_status(stockx.status, alias.status),
        )

    def stats(self) -> QueueStats:
        counts = self._jobs.status_counts()
        return QueueStats(
            pending=counts.get(JobStatus.PENDING.value, 0),
            running=counts.get(JobStatus.RUNNING.value, 0),
            done=counts.get(JobStatus.DONE.value, 0),
            failed=counts.get(JobStatus.FAILED.value, 0),
        )
