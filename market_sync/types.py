"""
Market Sync - Type Definitions.

============================================================
PURPOSE
============================================================
Result objects for provider syncs and the sync queue.

A sync never raises for per-size or per-region failures:
each failure is recorded as a SyncStageError on the result
and the sync keeps going.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(Enum):
    """Sync queue job states."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


NOT_MAPPED = "not_mapped"


class OverallSyncStatus(Enum):
    """Combined sync state of a SKU across providers."""
    SYNCING = "syncing"
    READY = "ready"
    PARTIAL = "partial"
    FAILED = "failed"
    NOT_MAPPED = "not_mapped"


class SyncStage(Enum):
    """Stages of a provider sync, recorded on errors."""
    CATALOG_SEARCH = "catalog_search"
    PRODUCT_DETAILS = "product_details"
    VARIANTS = "variants"
    MARKET_DATA = "market_data"
    AVAILABILITIES = "availabilities"
    SALES_HISTORY = "sales_history"
    PERSIST = "persist"


# ============================================================
# SYNC RESULTS
# ============================================================


@dataclass
class SyncStageError:
    """One failure during a sync."""
    stage: SyncStage
    error: str
    variant_id: Optional[str] = None
    size: Optional[str] = None
    region_id: Optional[str] = None
    currency: Optional[str] = None
    rate_limited: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "error": self.error,
            "variant_id": self.variant_id,
            "size": self.size,
            "region_id": self.region_id,
            "currency": self.currency,
            "rate_limited": self.rate_limited,
        }


@dataclass
class SyncCounts:
    """What a sync wrote."""
    variants_synced: int = 0
    market_data_refreshed: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    history_points: int = 0
    sales_events: int = 0
    regions_synced: int = 0
    rate_limited: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "variants_synced": self.variants_synced,
            "market_data_refreshed": self.market_data_refreshed,
            "rows_inserted": self.rows_inserted,
            "rows_updated": self.rows_updated,
            "history_points": self.history_points,
            "sales_events": self.sales_events,
            "regions_synced": self.regions_synced,
            "rate_limited": self.rate_limited,
        }


@dataclass
class SyncResult:
    """Outcome of syncing one product from one provider."""
    provider: str
    sku: Optional[str] = None
    product_id: Optional[str] = None
    success: bool = False
    cached: bool = False
    counts: SyncCounts = field(default_factory=SyncCounts)
    errors: List[SyncStageError] = field(default_factory=list)

    def add_error(self, stage: SyncStage, error: Any, **details: Any) -> SyncStageError:
        entry = SyncStageError(stage=stage, error=str(error), **details)
        self.errors.append(entry)
        return entry

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0].error if self.errors else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "sku": self.sku,
            "product_id": self.product_id,
            "success": self.success,
            "cached": self.cached,
            "counts": self.counts.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
        }


# ============================================================
# QUEUE RESULTS
# ============================================================


@dataclass(frozen=True)
class ProviderSyncState:
    """Sync state of one provider for a SKU."""
    status: str
    last_attempt_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class SkuSyncStatus:
    """Per-provider and overall sync state of a SKU."""
    sku: str
    stockx: ProviderSyncState
    alias: ProviderSyncState
    overall: OverallSyncStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sku": self.sku,
            "stockx": self.stockx.to_dict(),
            "alias": self.alias.to_dict(),
            "overall": self.overall.value,
        }


@dataclass(frozen=True)
class QueueStats:
    """Job counts per status."""
    pending: int = 0
    running: int = 0
    done: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.running + self.done + self.failed

    def to_dict(self) -> Dict[str, int]:
        return {
            "pending": self.pending,
            "running": self.running,
            "done": self.done,
            "failed": self.failed,
            "total": self.total,
        }


@dataclass
class ProcessBatchResult:
    """Outcome of one worker batch."""
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": list(self.errors),
        }


@dataclass
class RetryResult:
    """Jobs created by a retry request for one SKU."""
    sku: str
    jobs_created: List[Dict[str, str]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sku": self.sku,
            "jobs_created": list(self.jobs_created),
            "errors": list(self.errors),
        }
