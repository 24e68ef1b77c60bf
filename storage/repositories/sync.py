"""
Sync Job Repository.

Persistence primitives for the sync queue. State transitions
(claim, complete, fail, backoff) live in market_sync.queue.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from storage.models.sync import SyncJob
from storage.repositories.base import BaseRepository


class SyncJobRepository(BaseRepository[SyncJob]):
    """Sync queue persistence."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, SyncJob, "sync_jobs")

    def get(self, job_id: UUID) -> SyncJob:
        return self._get_by_id_or_raise(job_id)

    def get_by_key(self, sku: str, provider: str) -> Optional[SyncJob]:
        stmt = select(SyncJob).where(SyncJob.sku == sku, SyncJob.provider == provider)
        return self._execute_scalar(stmt)

    def add(self, job: SyncJob) -> SyncJob:
        return self._add(job, {"field": "sku/provider", "value": f"{job.sku}/{job.provider}"})

    def list_claimable(
        self,
        now: datetime,
        limit: int,
        provider: Optional[str] = None,
    ) -> List[SyncJob]:
        """Pending jobs due for a run, oldest first."""
        stmt = select(SyncJob).where(
            SyncJob.status == "pending",
            or_(SyncJob.next_retry_at.is_(None), SyncJob.next_retry_at <= now),
        )
        if provider is not None:
            stmt = stmt.where(SyncJob.provider == provider)
        stmt = stmt.order_by(SyncJob.created_at).limit(limit)
        # Row locks where supported; ignored by SQLite
        stmt = stmt.with_for_update(skip_locked=True)
        return self._execute_query(stmt)

    def list_by_status(self, status: str, limit: int = 100) -> List[SyncJob]:
        stmt = (
            select(SyncJob)
            .where(SyncJob.status == status)
            .order_by(SyncJob.created_at)
            .limit(limit)
        )
        return self._execute_query(stmt)

    def list_stale(self, started_before: datetime) -> List[SyncJob]:
        """Running jobs whose last attempt started before the cutoff."""
        stmt = select(SyncJob).where(
            SyncJob.status == "running",
            SyncJob.last_attempt_at < started_before,
        )
        return self._execute_query(stmt)

    def list_for_sku(self, sku: str) -> List[SyncJob]:
        stmt = select(SyncJob).where(SyncJob.sku == sku).order_by(SyncJob.provider)
        return self._execute_query(stmt)

    def status_counts(self) -> Dict[str, int]:
        stmt = select(SyncJob.status, func.count()).group_by(SyncJob.status)
        return {status: count for status, count in self._execute_rows(stmt)}
