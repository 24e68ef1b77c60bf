"""
Sales Analytics - Rollups.

============================================================
RESPONSIBILITY
============================================================
Aggregates raw sales events into daily and monthly buckets.

- Only COMPLETE periods are rolled up: days before today,
  months before the current month
- Input is deduplicated before aggregation
- Re-running a rollup over the same input yields the same
  buckets (upserts downstream are idempotent)

============================================================
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from core.clock import start_of_month, today_utc
from data_sources.models import SaleRecord
from sales_analytics.dedupe import dedupe_sales
from sales_analytics.types import (
    BucketKey,
    DailySalesAggregate,
    MonthlySalesAggregate,
)


CENTS = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def rollup_daily(
    sales: Iterable[SaleRecord],
    today: Optional[date] = None,
) -> list[DailySalesAggregate]:
    """
    Build daily aggregates for complete days.

    Args:
        sales: Raw sale events (duplicates allowed)
        today: Current UTC date; sales on or after it are skipped

    Returns:
        Aggregates sorted by bucket key then date
    """
    today = today or today_utc()
    buckets: dict[tuple[BucketKey, date], list[SaleRecord]] = defaultdict(list)

    for sale in dedupe_sales(sales):
        sale_date = sale.sold_at.date()
        if sale_date >= today:
            continue
        key = (sale.provider, sale.provider_product_id, sale.size_key, sale.currency)
        buckets[(key, sale_date)].append(sale)

    aggregates = []
    for (key, sale_date), group in buckets.items():
        prices = [s.price for s in group]
        total = sum(prices, Decimal("0"))
        consigned = sum(1 for s in group if s.is_consigned)
        aggregates.append(DailySalesAggregate(
            provider=key[0],
            provider_product_id=key[1],
            size_key=key[2],
            currency=key[3],
            sale_date=sale_date,
            sale_count=len(group),
            total_revenue=_money(total),
            avg_price=_money(total / len(group)),
            min_price=_money(min(prices)),
            max_price=_money(max(prices)),
            consigned_count=consigned,
            non_consigned_count=len(group) - consigned,
            sku=next((s.sku for s in group if s.sku), None),
        ))

    aggregates.sort(key=lambda a: (a.bucket_key, a.sale_date))
    return aggregates


def rollup_monthly(
    daily: Iterable[DailySalesAggregate],
    current_month: Optional[date] = None,
) -> list[MonthlySalesAggregate]:
    """
    Build monthly aggregates from daily aggregates.

    Months on or after current_month (first day of the current
    month by default) are incomplete and skipped. Average is
    total revenue / sale count.
    """
    current_month = start_of_month(current_month or today_utc())
    buckets: dict[tuple[BucketKey, date], list[DailySalesAggregate]] = defaultdict(list)

    for day in daily:
        month = start_of_month(day.sale_date)
        if month >= current_month:
            continue
        buckets[(day.bucket_key, month)].append(day)

    aggregates = []
    for (key, month), days in buckets.items():
        count = sum(d.sale_count for d in days)
        total = sum((d.total_revenue for d in days), Decimal("0"))
        consigned = sum(d.consigned_count for d in days)
        aggregates.append(MonthlySalesAggregate(
            provider=key[0],
            provider_product_id=key[1],
            size_key=key[2],
            currency=key[3],
            month=month,
            sale_count=count,
            total_revenue=_money(total),
            avg_price=_money(total / count) if count else Decimal("0.00"),
            min_price=min(d.min_price for d in days),
            max_price=max(d.max_price for d in days),
            consigned_count=consigned,
            non_consigned_count=count - consigned,
            days_with_sales=len(days),
            sku=next((d.sku for d in days if d.sku), None),
        ))

    aggregates.sort(key=lambda a: (a.bucket_key, a.month))
    return aggregates
