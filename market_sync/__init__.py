"""
Market Sync - Package.

============================================================
PURPOSE
============================================================
Keeps stored market data current.

- StockXSyncService / AliasSyncService: sync one product
- SyncQueue: status-column job queue with retry and backoff
- SyncQueueWorker: claims and runs queued jobs

============================================================
USAGE
============================================================
    from market_sync import SyncQueue, SyncQueueWorker

    with transaction_scope() as session:
        SyncQueue(session).enqueue_sku("DD1391-100")

    with get_db_session() as session:
        async with SyncQueueWorker(session) as worker:
            result = await worker.process_batch()

============================================================
"""

from .types import (
    NOT_MAPPED,
    JobStatus,
    OverallSyncStatus,
    ProcessBatchResult,
    ProviderSyncState,
    QueueStats,
    RetryResult,
    SkuSyncStatus,
    SyncCounts,
    SyncResult,
    SyncStage,
    SyncStageError,
)
from .exceptions import QueueError, SyncError
from .config import SyncConfig, get_default_config, load_config
from .service import AliasSyncService, StockXSyncService, is_fresh, min_required
from .queue import SyncQueue, derive_overall_status
from .worker import DEFAULT_BATCH_SIZE, SyncQueueWorker


__all__ = [
    "NOT_MAPPED",
    "JobStatus",
    "OverallSyncStatus",
    "ProcessBatchResult",
    "ProviderSyncState",
    "QueueStats",
    "RetryResult",
    "SkuSyncStatus",
    "SyncCounts",
    "SyncResult",
    "SyncStage",
    "SyncStageError",
    "QueueError",
    "SyncError",
    "SyncConfig",
    "get_default_config",
    "load_config",
    "AliasSyncService",
    "StockXSyncService",
    "is_fresh",
    "min_required",
    "SyncQueue",
    "derive_overall_status",
    "DEFAULT_BATCH_SIZE",
    "SyncQueueWorker",
]
