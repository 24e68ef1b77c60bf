"""
Sales Analytics - Retention.

============================================================
PURPOSE
============================================================
Prunes raw data once it has been rolled up.

- Raw sales events: 90 days
- Daily aggregates: 13 months
- Market price history: 30 days

Monthly aggregates and latest snapshots are kept forever.

============================================================
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.clock import now_utc
from sales_analytics.types import PruneResult
from storage.repositories.market import MarketRepository
from storage.repositories.sales import SalesRepository


logger = logging.getLogger(__name__)


def subtract_months(day: date, months: int) -> date:
    """Same day-of-month `months` earlier, clamped to the month's last day."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    for candidate in range(day.day, 0, -1):
        try:
            return date(year, month, candidate)
        except ValueError:
            continue
    raise ValueError(f"Cannot subtract {months} months from {day}")


@dataclass(frozen=True)
class RetentionPolicy:
    """How long each kind of raw data is kept."""

    sales_events_days: int = 90
    daily_aggregate_months: int = 13
    price_history_days: int = 30

    def sales_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(days=self.sales_events_days)

    def daily_cutoff(self, now: datetime) -> date:
        return subtract_months(now.date(), self.daily_aggregate_months)

    def history_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(days=self.price_history_days)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sales_events_days": self.sales_events_days,
            "daily_aggregate_months": self.daily_aggregate_months,
            "price_history_days": self.price_history_days,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetentionPolicy":
        defaults = cls()
        return cls(
            sales_events_days=int(data.get("sales_events_days", defaults.sales_events_days)),
            daily_aggregate_months=int(
                data.get("daily_aggregate_months", defaults.daily_aggregate_months)
            ),
            price_history_days=int(data.get("price_history_days", defaults.price_history_days)),
        )


def prune(
    session: Session,
    now: Optional[datetime] = None,
    policy: Optional[RetentionPolicy] = None,
) -> PruneResult:
    """
    Delete data older than the retention windows.

    The caller owns the transaction; nothing is committed here.
    """
    now = now or now_utc()
    policy = policy or RetentionPolicy()

    sales = SalesRepository(session)
    market = MarketRepository(session)

    result = PruneResult(
        sales_events=sales.delete_events_before(policy.sales_cutoff(now)),
        daily_aggregates=sales.delete_daily_before(policy.daily_cutoff(now)),
        price_history=market.delete_history_before(policy.history_cutoff(now)),
    )

    logger.info(
        f"[retention] Pruned {result.sales_events} sales events, "
        f"{result.daily_aggregates} daily aggregates, "
        f"{result.price_history} price history rows"
    )
    return result
