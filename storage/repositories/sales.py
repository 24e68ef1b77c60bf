"""
Sales History Repository.

============================================================
PURPOSE
============================================================
- Insert raw sales events (duplicates allowed, hashed)
- Read events back as SaleRecord for rollups and velocity
- Idempotent upserts of daily / monthly aggregates
- Retention deletes

============================================================
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from data_sources.models import SaleRecord
from sales_analytics.dedupe import sale_event_hash
from sales_analytics.types import DailySalesAggregate, MonthlySalesAggregate
from storage.models.sales import (
    SalesDailyAggregate,
    SalesEvent,
    SalesMonthlyAggregate,
)
from storage.repositories.base import BaseRepository


_AGGREGATE_VALUES = (
    "sku",
    "sale_count",
    "total_revenue",
    "avg_price",
    "min_price",
    "max_price",
    "consigned_count",
    "non_consigned_count",
)


def event_to_record(event: SalesEvent) -> SaleRecord:
    """Convert a stored event to a SaleRecord."""
    return SaleRecord(
        provider=event.provider,
        provider_product_id=event.provider_product_id,
        sku=event.sku,
        size_key=event.size_key,
        size_numeric=event.size_numeric,
        price=event.price,
        currency=event.currency,
        region=event.region,
        sold_at=event.sold_at,
        is_consigned=event.is_consigned,
    )


def daily_to_aggregate(row: SalesDailyAggregate) -> DailySalesAggregate:
    """Convert a stored daily row to its value object."""
    return DailySalesAggregate(
        provider=row.provider,
        provider_product_id=row.provider_product_id,
        size_key=row.size_key,
        currency=row.currency,
        sale_date=row.sale_date,
        sale_count=row.sale_count,
        total_revenue=row.total_revenue,
        avg_price=row.avg_price,
        min_price=row.min_price,
        max_price=row.max_price,
        consigned_count=row.consigned_count,
        non_consigned_count=row.non_consigned_count,
        sku=row.sku,
    )


class SalesRepository(BaseRepository[SalesEvent]):
    """Sales events and aggregates persistence."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, SalesEvent, "sales")

    # =========================================================
    # RAW EVENTS
    # =========================================================

    def insert_events(self, records: Iterable[SaleRecord]) -> int:
        """Append raw sale events with their content hash."""
        events = [
            SalesEvent(
                provider=r.provider,
                provider_product_id=r.provider_product_id,
                sku=r.sku,
                size_key=r.size_key,
                size_numeric=r.size_numeric,
                price=r.price,
                currency=r.currency,
                region=r.region,
                is_consigned=r.is_consigned,
                sold_at=r.sold_at,
                event_hash=sale_event_hash(r),
            )
            for r in records
        ]
        return len(self._add_all(events))

    def list_events(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        sku: Optional[str] = None,
    ) -> List[SaleRecord]:
        """Raw events (duplicates included) ordered by sale time."""
        stmt = select(SalesEvent)
        if since is not None:
            stmt = stmt.where(SalesEvent.sold_at >= since)
        if until is not None:
            stmt = stmt.where(SalesEvent.sold_at < until)
        if sku is not None:
            stmt = stmt.where(SalesEvent.sku == sku)
        stmt = stmt.order_by(SalesEvent.sold_at, SalesEvent.ingested_at)
        return [event_to_record(e) for e in self._execute_query(stmt)]

    def count_events(self) -> int:
        return self._count()

    def count_duplicate_events(self) -> int:
        """Number of stored events that repeat an earlier hash."""
        stmt = select(func.count(SalesEvent.id) - func.count(func.distinct(SalesEvent.event_hash)))
        rows = self._execute_rows(stmt)
        return int(rows[0][0] or 0) if rows else 0

    def delete_events_before(self, cutoff: datetime) -> int:
        stmt = delete(SalesEvent).where(SalesEvent.sold_at < cutoff)
        return self._execute_write(stmt, "delete_events_before")

    # =========================================================
    # DAILY AGGREGATES
    # =========================================================

    def upsert_daily(self, aggregates: Iterable[DailySalesAggregate]) -> int:
        """
        Insert or replace daily buckets. Re-running with the same
        input leaves the table unchanged.
        """
        aggregates = list(aggregates)
        if not aggregates:
            return 0

        start = min(a.sale_date for a in aggregates)
        end = max(a.sale_date for a in aggregates)
        existing = {
            (row.provider, row.provider_product_id, row.size_key, row.currency, row.sale_date): row
            for row in self._execute_query(
                select(SalesDailyAggregate).where(
                    SalesDailyAggregate.sale_date >= start,
                    SalesDailyAggregate.sale_date <= end,
                )
            )
        }

        new_rows = []
        for agg in aggregates:
            row = existing.get((*agg.bucket_key, agg.sale_date))
            values = {name: getattr(agg, name) for name in _AGGREGATE_VALUES}
            if row is None:
                new_rows.append(SalesDailyAggregate(
                    provider=agg.provider,
                    provider_product_id=agg.provider_product_id,
                    size_key=agg.size_key,
                    currency=agg.currency,
                    sale_date=agg.sale_date,
                    **values,
                ))
            else:
                for name, value in values.items():
                    setattr(row, name, value)

        self._add_all(new_rows)
        self._session.flush()
        return len(aggregates)

    def list_daily(
        self,
        sku: Optional[str] = None,
        since: Optional[date] = None,
        until: Optional[date] = None,
        size_key: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> List[DailySalesAggregate]:
        """Daily buckets in [since, until) ordered by date."""
        stmt = select(SalesDailyAggregate)
        if sku is not None:
            stmt = stmt.where(SalesDailyAggregate.sku == sku)
        if since is not None:
            stmt = stmt.where(SalesDailyAggregate.sale_date >= since)
        if until is not None:
            stmt = stmt.where(SalesDailyAggregate.sale_date < until)
        if size_key is not None:
            stmt = stmt.where(SalesDailyAggregate.size_key == size_key)
        if provider is not None:
            stmt = stmt.where(SalesDailyAggregate.provider == provider)
        stmt = stmt.order_by(SalesDailyAggregate.sale_date, SalesDailyAggregate.size_key)
        return [daily_to_aggregate(row) for row in self._execute_query(stmt)]

    def delete_daily_before(self, cutoff: date) -> int:
        stmt = delete(SalesDailyAggregate).where(SalesDailyAggregate.sale_date < cutoff)
        return self._execute_write(stmt, "delete_daily_before")

    # =========================================================
    # MONTHLY AGGREGATES
    # =========================================================

    def upsert_monthly(self, aggregates: Iterable[MonthlySalesAggregate]) -> int:
        """Insert or replace monthly buckets."""
        aggregates = list(aggregates)
        if not aggregates:
            return 0

        months = sorted({a.month for a in aggregates})
        existing = {
            (row.provider, row.provider_product_id, row.size_key, row.currency, row.month): row
            for row in self._execute_query(
                select(SalesMonthlyAggregate).where(SalesMonthlyAggregate.month.in_(months))
            )
        }

        new_rows = []
        for agg in aggregates:
            row = existing.get((*agg.bucket_key, agg.month))
            values = {name: getattr(agg, name) for name in _AGGREGATE_VALUES}
            values["days_with_sales"] = agg.days_with_sales
            if row is None:
                new_rows.append(SalesMonthlyAggregate(
                    provider=agg.provider,
                    provider_product_id=agg.provider_product_id,
                    size_key=agg.size_key,
                    currency=agg.currency,
                    month=agg.month,
                    **values,
                ))
            else:
                for name, value in values.items():
                    setattr(row, name, value)

        self._add_all(new_rows)
        self._session.flush()
        return len(aggregates)

    def list_monthly(self, sku: Optional[str] = None) -> List[SalesMonthlyAggregate]:
        stmt = select(SalesMonthlyAggregate)
        if sku is not None:
            stmt = stmt.where(SalesMonthlyAggregate.sku == sku)
        return self._execute_query(stmt.order_by(SalesMonthlyAggregate.month))
