"""
Sales Analytics - Velocity.

Counts sales over rolling windows (72h / 30d for listings,
day / week / month for reports).
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from core.clock import now_utc
from data_sources.models import SaleRecord
from sales_analytics.types import SalesVelocity, SalesWindowCounts


WINDOW_72H = timedelta(hours=72)
WINDOW_30D = timedelta(days=30)


def sales_velocity(
    sales: Iterable[SaleRecord],
    now: Optional[datetime] = None,
    consigned: Optional[bool] = None,
) -> SalesVelocity:
    """
    Summarize sales velocity.

    Sales inside 72h count toward both windows. When consigned
    is given, only sales with that consignment state count.
    """
    now = now or now_utc()
    sales_72h = 0
    sales_30d = 0
    total = 0
    last: Optional[SaleRecord] = None

    for sale in sales:
        if consigned is not None and sale.is_consigned != consigned:
            continue
        total += 1
        if last is None or sale.sold_at > last.sold_at:
            last = sale

        age = now - sale.sold_at
        if age <= WINDOW_72H:
            sales_72h += 1
            sales_30d += 1
        elif age <= WINDOW_30D:
            sales_30d += 1

    return SalesVelocity(
        sales_72h=sales_72h,
        sales_30d=sales_30d,
        total_volume=total,
        last_sale_price=last.price if last else None,
        last_sale_at=last.sold_at if last else None,
    )


def group_velocity(
    sales: Iterable[SaleRecord],
    now: Optional[datetime] = None,
) -> dict[tuple[str, bool], SalesVelocity]:
    """Velocity per (size_key, consigned)."""
    grouped: dict[tuple[str, bool], list[SaleRecord]] = defaultdict(list)
    for sale in sales:
        grouped[(sale.size_key, sale.is_consigned)].append(sale)
    return {key: sales_velocity(group, now) for key, group in grouped.items()}


def sales_in_windows(
    sales: Iterable[SaleRecord],
    now: Optional[datetime] = None,
) -> SalesWindowCounts:
    """Count sales in the last day, week and month."""
    now = now or now_utc()
    day_ago = now - timedelta(days=1)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    last_day = last_week = last_month = 0
    for sale in sales:
        if sale.sold_at >= day_ago:
            last_day += 1
        if sale.sold_at >= week_ago:
            last_week += 1
        if sale.sold_at >= month_ago:
            last_month += 1

    return SalesWindowCounts(last_day=last_day, last_week=last_week, last_month=last_month)
