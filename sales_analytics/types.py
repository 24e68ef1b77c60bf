"""
Sales Analytics - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for sales deduplication, velocity and rollups.

============================================================
DESIGN PRINCIPLES
============================================================
- All types are immutable
- Money is Decimal, rounded to 2dp on output
- Buckets are keyed by provider, product, size, currency and
  date (or month). Regions are merged into one bucket.

============================================================
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional


BucketKey = tuple[str, str, str, str]  # provider, product id, size key, currency


@dataclass(frozen=True)
class SalesVelocity:
    """Sales counts over rolling windows."""
    sales_72h: int
    sales_30d: int
    total_volume: int
    last_sale_price: Optional[Decimal] = None
    last_sale_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sales_72h": self.sales_72h,
            "sales_30d": self.sales_30d,
            "total_volume": self.total_volume,
            "last_sale_price": str(self.last_sale_price) if self.last_sale_price is not None else None,
            "last_sale_at": self.last_sale_at.isoformat() if self.last_sale_at else None,
        }


@dataclass(frozen=True)
class SalesWindowCounts:
    """Sales in the last day, week and month."""
    last_day: int
    last_week: int
    last_month: int

    def to_dict(self) -> dict[str, int]:
        return {
            "last_day": self.last_day,
            "last_week": self.last_week,
            "last_month": self.last_month,
        }


@dataclass(frozen=True)
class DailySalesAggregate:
    """One (provider, product, size, currency, day) sales bucket."""
    provider: str
    provider_product_id: str
    size_key: str
    currency: str
    sale_date: date
    sale_count: int
    total_revenue: Decimal
    avg_price: Decimal
    min_price: Decimal
    max_price: Decimal
    consigned_count: int
    non_consigned_count: int
    sku: Optional[str] = None

    @property
    def bucket_key(self) -> BucketKey:
        return (self.provider, self.provider_product_id, self.size_key, self.currency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "provider_product_id": self.provider_product_id,
            "sku": self.sku,
            "size_key": self.size_key,
            "currency": self.currency,
            "sale_date": self.sale_date.isoformat(),
            "sale_count": self.sale_count,
            "total_revenue": str(self.total_revenue),
            "avg_price": str(self.avg_price),
            "min_price": str(self.min_price),
            "max_price": str(self.max_price),
            "consigned_count": self.consigned_count,
            "non_consigned_count": self.non_consigned_count,
        }


@dataclass(frozen=True)
class MonthlySalesAggregate:
    """One (provider, product, size, currency, month) sales bucket."""
    provider: str
    provider_product_id: str
    size_key: str
    currency: str
    month: date  # first day of month
    sale_count: int
    total_revenue: Decimal
    avg_price: Decimal
    min_price: Decimal
    max_price: Decimal
    consigned_count: int
    non_consigned_count: int
    days_with_sales: int
    sku: Optional[str] = None

    @property
    def bucket_key(self) -> BucketKey:
        return (self.provider, self.provider_product_id, self.size_key, self.currency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "provider_product_id": self.provider_product_id,
            "sku": self.sku,
            "size_key": self.size_key,
            "currency": self.currency,
            "month": self.month.isoformat(),
            "sale_count": self.sale_count,
            "total_revenue": str(self.total_revenue),
            "avg_price": str(self.avg_price),
            "min_price": str(self.min_price),
            "max_price": str(self.max_price),
            "consigned_count": self.consigned_count,
            "non_consigned_count": self.non_consigned_count,
            "days_with_sales": self.days_with_sales,
        }


@dataclass(frozen=True)
class RollupResult:
    """Outcome of a rollup run."""
    events_read: int
    duplicates_removed: int
    daily_buckets: int
    monthly_buckets: int

    def to_dict(self) -> dict[str, int]:
        return {
            "events_read": self.events_read,
            "duplicates_removed": self.duplicates_removed,
            "daily_buckets": self.daily_buckets,
            "monthly_buckets": self.monthly_buckets,
        }


@dataclass(frozen=True)
class PruneResult:
    """Rows removed by a retention run."""
    sales_events: int
    daily_aggregates: int
    price_history: int

    @property
    def total(self) -> int:
        return self.sales_events + self.daily_aggregates + self.price_history

    def to_dict(self) -> dict[str, int]:
        return {
            "sales_events": self.sales_events,
            "daily_aggregates": self.daily_aggregates,
            "price_history": self.price_history,
        }
