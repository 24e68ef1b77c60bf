"""
Market Data ORM Models.

============================================================
PURPOSE
============================================================
Persisted market rows from StockX and Alias.

============================================================
DATA LIFECYCLE ROLE
============================================================
- MarketSnapshot: MUTABLE, one row per row key (latest
  snapshot wins, upserted on every sync)
- MarketPriceHistory: IMMUTABLE (append-only), pruned after
  the retention window

============================================================
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Float,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.clock import now_utc
from storage.models.base import Base, Money, TimestampMixin


class MarketSnapshot(Base, TimestampMixin):
    """
    Latest market row per provider/source/product/variant/size/
    currency/region.

    row_key is MarketRow.dedupe_key(); the snapshot time is
    not part of the identity.
    """

    __tablename__ = "market_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    row_key: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        unique=True,
        comment="Identity key of the market row"
    )

    # Identity
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_source: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    provider_variant_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    size_key: Mapped[str] = mapped_column(String(20), nullable=False)
    size_numeric: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    region: Mapped[str] = mapped_column(String(10), nullable=False)

    # Prices (major units)
    lowest_ask: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    highest_bid: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    last_sale: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    global_indicator: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    sell_faster: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    earn_more: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    beat_us: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    # Activity
    sales_72h: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sales_30d: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_sales_volume: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ask_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bid_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_flex: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_consigned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    snapshot_at: Mapped[datetime] = mapped_column(
        nullable=False,
        comment="When the provider data was fetched"
    )

    __table_args__ = (
        Index("idx_market_snapshot_sku_size", "sku", "size_key"),
        Index("idx_market_snapshot_product", "provider", "provider_product_id"),
        Index("idx_market_snapshot_at", "snapshot_at"),
    )


class MarketPriceHistory(Base):
    """Append-only price points, one per market row per sync."""

    __tablename__ = "market_price_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_source: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    size_key: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    region: Mapped[str] = mapped_column(String(10), nullable=False)

    lowest_ask: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    highest_bid: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    last_sale: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=now_utc,
        comment="Snapshot time of the price point"
    )

    __table_args__ = (
        Index("idx_price_history_sku_size_time", "sku", "size_key", "recorded_at"),
        Index("idx_price_history_recorded_at", "recorded_at"),
    )
