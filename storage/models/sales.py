"""
Sales History ORM Models.

============================================================
DATA LIFECYCLE ROLE
============================================================
- SalesEvent: raw sales, append-only. Overlapping recent-sales
  windows insert the same sale more than once; event_hash
  identifies duplicates at read time. Pruned after 90 days.
- SalesDailyAggregate: one row per bucket and complete day,
  upserted by the rollup. Pruned after 13 months.
- SalesMonthlyAggregate: one row per bucket and complete month.

Bucket = provider, provider product id, size key, currency.

============================================================
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.clock import now_utc
from storage.models.base import Base, Money, MoneyTotal, TimestampMixin


class SalesEvent(Base):
    """A raw marketplace sale."""

    __tablename__ = "sales_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    size_key: Mapped[str] = mapped_column(String(20), nullable=False)
    size_numeric: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    region: Mapped[str] = mapped_column(String(10), nullable=False)
    is_consigned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sold_at: Mapped[datetime] = mapped_column(nullable=False)

    event_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 content hash for deduplication"
    )

    ingested_at: Mapped[datetime] = mapped_column(nullable=False, default=now_utc)

    __table_args__ = (
        Index("idx_sales_events_hash", "event_hash"),
        Index("idx_sales_events_sold_at", "sold_at"),
        Index("idx_sales_events_sku_size", "sku", "size_key"),
    )


class SalesDailyAggregate(Base, TimestampMixin):
    """Daily sales rollup for one bucket."""

    __tablename__ = "sales_daily_aggregates"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    size_key: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)

    sale_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(MoneyTotal, nullable=False)
    avg_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    min_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    max_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    consigned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    non_consigned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_product_id", "size_key", "currency", "sale_date",
            name="uq_sales_daily_bucket",
        ),
        Index("idx_sales_daily_sku_date", "sku", "sale_date"),
    )


class SalesMonthlyAggregate(Base, TimestampMixin):
    """Monthly sales rollup for one bucket; month is the first day."""

    __tablename__ = "sales_monthly_aggregates"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    provider_product_id: Mapped[str] = mapped_column(String(128), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    size_key: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    month: Mapped[date] = mapped_column(Date, nullable=False)

    sale_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(MoneyTotal, nullable=False)
    avg_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    min_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    max_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    consigned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    non_consigned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    days_with_sales: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_product_id", "size_key", "currency", "month",
            name="uq_sales_monthly_bucket",
        ),
        Index("idx_sales_monthly_sku_month", "sku", "month"),
    )
