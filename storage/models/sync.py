"""
Sync Queue ORM Model.

Stateful job rows: one row per (sku, provider). Workers poll
for pending rows, mark them running, and finish them as done
or failed. Failed attempts are rescheduled via next_retry_at
until max_attempts is reached.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.clock import now_utc
from storage.models.base import Base


class SyncJob(Base):
    """A market-data sync job for one SKU and provider."""

    __tablename__ = "sync_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    sku: Mapped[str] = mapped_column(String(32), nullable=False)

    provider: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="stockx | alias"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        comment="pending | running | done | failed"
    )

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    next_retry_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=now_utc)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("sku", "provider", name="uq_sync_jobs_sku_provider"),
        Index("idx_sync_jobs_status_retry", "status", "next_retry_at"),
    )
