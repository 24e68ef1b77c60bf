"""
Market Data Repository.

============================================================
PURPOSE
============================================================
- Upsert latest market rows (one per row key)
- Append price history points
- Read rows back as MarketRow for pricing and portfolio
- Prune price history past the retention window

============================================================
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from data_sources.models import MarketRow
from storage.models.market import MarketPriceHistory, MarketSnapshot
from storage.repositories.base import BaseRepository


_ROW_FIELDS = (
    "provider",
    "provider_source",
    "provider_product_id",
    "provider_variant_id",
    "sku",
    "size_key",
    "size_numeric",
    "currency",
    "region",
    "lowest_ask",
    "highest_bid",
    "last_sale",
    "global_indicator",
    "sell_faster",
    "earn_more",
    "beat_us",
    "sales_72h",
    "sales_30d",
    "total_sales_volume",
    "ask_count",
    "bid_count",
    "is_flex",
    "is_consigned",
    "snapshot_at",
)


def snapshot_to_row(snapshot: MarketSnapshot) -> MarketRow:
    """Convert a stored snapshot back to a MarketRow."""
    return MarketRow(**{name: getattr(snapshot, name) for name in _ROW_FIELDS})


class MarketRepository(BaseRepository[MarketSnapshot]):
    """Market snapshot and price history persistence."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, MarketSnapshot, "market")

    # =========================================================
    # WRITES
    # =========================================================

    def upsert_rows(self, rows: Iterable[MarketRow]) -> tuple[int, int]:
        """
        Insert or update snapshots by row key.

        Returns:
            (inserted, updated)
        """
        by_key = {row.dedupe_key(): row for row in rows}
        if not by_key:
            return 0, 0

        existing = {
            s.row_key: s
            for s in self._execute_query(
                select(MarketSnapshot).where(MarketSnapshot.row_key.in_(list(by_key)))
            )
        }

        inserted = 0
        updated = 0
        new_snapshots = []
        for key, row in by_key.items():
            values = {name: getattr(row, name) for name in _ROW_FIELDS}
            snapshot = existing.get(key)
            if snapshot is None:
                new_snapshots.append(MarketSnapshot(row_key=key, **values))
                inserted += 1
            else:
                for name, value in values.items():
                    setattr(snapshot, name, value)
                updated += 1

        self._add_all(new_snapshots)
        self._session.flush()
        self._logger.debug(f"Upserted market rows: inserted={inserted} updated={updated}")
        return inserted, updated

    def append_history(self, rows: Iterable[MarketRow]) -> int:
        """Append one price point per row with any price."""
        points = [
            MarketPriceHistory(
                provider=row.provider,
                provider_source=row.provider_source,
                provider_product_id=row.provider_product_id,
                sku=row.sku,
                size_key=row.size_key,
                currency=row.currency,
                region=row.region,
                lowest_ask=row.lowest_ask,
                highest_bid=row.highest_bid,
                last_sale=row.last_sale,
                recorded_at=row.snapshot_at,
            )
            for row in rows
            if row.has_prices()
        ]
        return len(self._add_all(points))

    def delete_history_before(self, cutoff: datetime) -> int:
        """Delete price history recorded before cutoff."""
        stmt = delete(MarketPriceHistory).where(MarketPriceHistory.recorded_at < cutoff)
        return self._execute_write(stmt, "delete_history_before")

    # =========================================================
    # READS
    # =========================================================

    def get_rows(
        self,
        sku: Optional[str] = None,
        provider: Optional[str] = None,
        provider_product_id: Optional[str] = None,
        size_key: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> List[MarketRow]:
        """Current market rows matching the filters."""
        stmt = select(MarketSnapshot)
        if sku is not None:
            stmt = stmt.where(MarketSnapshot.sku == sku)
        if provider is not None:
            stmt = stmt.where(MarketSnapshot.provider == provider)
        if provider_product_id is not None:
            stmt = stmt.where(MarketSnapshot.provider_product_id == provider_product_id)
        if size_key is not None:
            stmt = stmt.where(MarketSnapshot.size_key == size_key)
        if currency is not None:
            stmt = stmt.where(MarketSnapshot.currency == currency)
        stmt = stmt.order_by(MarketSnapshot.provider, MarketSnapshot.size_numeric, MarketSnapshot.size_key)
        return [snapshot_to_row(s) for s in self._execute_query(stmt)]

    def get_rows_for_skus(self, skus: Sequence[str]) -> dict[str, List[MarketRow]]:
        """Current market rows grouped by SKU."""
        if not skus:
            return {}
        stmt = select(MarketSnapshot).where(MarketSnapshot.sku.in_(list(skus)))
        grouped: dict[str, List[MarketRow]] = defaultdict(list)
        for snapshot in self._execute_query(stmt):
            grouped[snapshot.sku].append(snapshot_to_row(snapshot))
        return dict(grouped)

    def latest_snapshot_at(self, provider: str, provider_product_id: str) -> Optional[datetime]:
        """Most recent snapshot time for a provider product."""
        stmt = select(func.max(MarketSnapshot.snapshot_at)).where(
            MarketSnapshot.provider == provider,
            MarketSnapshot.provider_product_id == provider_product_id,
        )
        # max() keeps the column type, so the value comes back UTC-aware
        rows = self._execute_rows(stmt)
        return rows[0][0] if rows else None

    def daily_lowest_asks(
        self,
        skus: Sequence[str],
        since: datetime,
    ) -> List[tuple[str, str, str, date, Decimal]]:
        """
        Lowest recorded ask per (sku, size, currency, day) since a time.

        Returns:
            Sorted tuples (sku, size_key, currency, day, lowest_ask)
        """
        if not skus:
            return []
        stmt = (
            select(MarketPriceHistory)
            .where(
                MarketPriceHistory.sku.in_(list(skus)),
                MarketPriceHistory.recorded_at >= since,
                MarketPriceHistory.lowest_ask.is_not(None),
            )
        )
        lowest: dict[tuple[str, str, str, date], Decimal] = {}
        for point in self._execute_query(stmt):
            key = (point.sku, point.size_key, point.currency, point.recorded_at.date())
            if key not in lowest or point.lowest_ask < lowest[key]:
                lowest[key] = point.lowest_ask
        return sorted((*key, ask) for key, ask in lowest.items())

    def count_history(self) -> int:
        stmt = select(func.count()).select_from(MarketPriceHistory)
        rows = self._execute_rows(stmt)
        return rows[0][0] if rows else 0
