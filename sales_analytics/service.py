"""
Sales Analytics - Rollup Service.

============================================================
PURPOSE
============================================================
Reads raw sales events from storage and upserts daily and
monthly aggregates.

Runs are idempotent: the same events always produce the
same buckets, and existing buckets are replaced in place.

============================================================
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from core.clock import now_utc, start_of_day, start_of_month
from sales_analytics.config import SalesAnalyticsConfig, get_default_config
from sales_analytics.dedupe import dedupe_sales
from sales_analytics.retention import prune
from sales_analytics.rollup import rollup_daily, rollup_monthly
from sales_analytics.types import DailySalesAggregate, PruneResult, RollupResult
from storage.repositories.sales import SalesRepository


logger = logging.getLogger(__name__)


class SalesRollupService:
    """Rolls stored sales events up into daily and monthly buckets."""

    def __init__(self, session: Session, config: Optional[SalesAnalyticsConfig] = None):
        self._session = session
        self._config = config or get_default_config()
        self._sales = SalesRepository(session)

    @property
    def config(self) -> SalesAnalyticsConfig:
        return self._config

    def _window_start(self, today: date, lookback_days: Optional[int]) -> Optional[date]:
        if lookback_days is None:
            return None
        return today - timedelta(days=lookback_days)

    def run(
        self,
        now: Optional[datetime] = None,
        sku: Optional[str] = None,
        full: bool = False,
    ) -> RollupResult:
        """
        Roll up complete days and months.

        Args:
            now: Reference time; today and the current month are skipped
            sku: Limit to one SKU
            full: Re-read every retained event instead of the
                configured lookback window
        """
        now = now or now_utc()
        today = now.date()
        lookback_days = None if full else self._config.rollup_lookback_days

        window_start = self._window_start(today, lookback_days)
        since = start_of_day(window_start) if window_start is not None else None
        until = start_of_day(today)

        events = self._sales.list_events(since=since, until=until, sku=sku)
        unique = dedupe_sales(events)
        daily = rollup_daily(unique, today=today)
        self._sales.upsert_daily(daily)

        # Months are rebuilt from every stored day of each month touched
        month_start = start_of_month(window_start) if window_start is not None else None
        stored_daily: List[DailySalesAggregate] = self._sales.list_daily(sku=sku, since=month_start)
        monthly = rollup_monthly(stored_daily, current_month=today)
        self._sales.upsert_monthly(monthly)

        result = RollupResult(
            events_read=len(events),
            duplicates_removed=len(events) - len(unique),
            daily_buckets=len(daily),
            monthly_buckets=len(monthly),
        )
        logger.info(
            f"[rollup] {result.events_read} events ({result.duplicates_removed} duplicates) "
            f"-> {result.daily_buckets} daily, {result.monthly_buckets} monthly buckets"
        )
        return result

    def prune(self, now: Optional[datetime] = None) -> PruneResult:
        """Apply the configured retention policy."""
        return prune(self._session, now=now, policy=self._config.retention)

    def daily(
        self,
        sku: str,
        days: int = 30,
        size_key: Optional[str] = None,
        provider: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[DailySalesAggregate]:
        """Stored daily buckets for a SKU over the last `days` days."""
        today = (now or now_utc()).date()
        return self._sales.list_daily(
            sku=sku,
            since=today - timedelta(days=days),
            until=today,
            size_key=size_key,
            provider=provider,
        )
