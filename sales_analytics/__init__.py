"""
Sales Analytics - Package.

============================================================
PURPOSE
============================================================
Deduplicates raw sales events, rolls them up into daily and
monthly buckets and computes sales velocity.

The storage-backed SalesRollupService and retention helpers
live in sales_analytics.service and sales_analytics.retention.

============================================================
"""

from .types import (
    DailySalesAggregate,
    MonthlySalesAggregate,
    PruneResult,
    RollupResult,
    SalesVelocity,
    SalesWindowCounts,
)
from .dedupe import dedupe_sales, sale_event_hash
from .rollup import rollup_daily, rollup_monthly
from .velocity import group_velocity, sales_in_windows, sales_velocity


__all__ = [
    "DailySalesAggregate",
    "MonthlySalesAggregate",
    "PruneResult",
    "RollupResult",
    "SalesVelocity",
    "SalesWindowCounts",
    "dedupe_sales",
    "sale_event_hash",
    "rollup_daily",
    "rollup_monthly",
    "group_velocity",
    "sales_in_windows",
    "sales_velocity",
]
