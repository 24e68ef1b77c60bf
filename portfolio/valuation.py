"""
Portfolio - Valuation.

============================================================
PURPOSE
============================================================
Values held inventory against market prices.

- invested = sum of purchase price x quantity
- estimated value uses the market price per unit; items
  without one fall back to their purchase price and are
  reported as missing
- ROI = unrealised P/L / invested x 100 (0 when nothing is
  invested)
- 7-day delta compares today's series value with the value
  seven days earlier

============================================================
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.clock import now_utc
from data_ingestion.normalizers.sizes import (
    ParsedSize,
    SizeSystem,
    convert_to_uk,
    detect_brand,
    detect_gender,
    find_closest_us_size,
    format_size_value,
    is_numeric_size,
    parse_size,
)
from market_pricing.currency import convert, round_money
from portfolio.config import PortfolioConfig, get_default_config
from portfolio.types import (
    CategoryValue,
    ItemROI,
    MarketPrice,
    MissingPriceItem,
    PortfolioItem,
    PortfolioValuation,
    ValuePoint,
)


logger = logging.getLogger(__name__)

ZERO = Decimal("0")

DailyAsk = Tuple[str, str, str, date, Decimal]  # sku, size_key, currency, day, ask


def _pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= 0:
        return ZERO.quantize(Decimal("0.01"))
    return round_money(numerator / denominator * 100)


# ============================================================
# SIZE MATCHING
# ============================================================


def market_size_key(item: PortfolioItem) -> Optional[str]:
    """
    Size label to look up in market data.

    Market rows are keyed by US size labels. Plain and US sizes
    are used as they are; UK, EU and JP sizes (or a bare size_uk)
    go through UK and back to the nearest US size on the
    brand/gender chart.
    """
    parsed = parse_size(item.size) if item.size else ParsedSize(SizeSystem.UK, item.size_uk)
    if parsed.value is None:
        return None
    if parsed.system in (None, SizeSystem.US):
        return parsed.value

    uk = convert_to_uk(parsed.value, parsed.system)
    if not is_numeric_size(uk):
        return None
    us = find_closest_us_size(
        float(uk),
        detect_brand(item.brand, item.model),
        detect_gender(item.model),
    )
    return format_size_value(us) if us is not None else None


def size_matches(size_key: str, target: Optional[str]) -> bool:
    """Exact label match, or equal numeric sizes ("10" == "10.0")."""
    if target is None:
        return False
    if size_key == target:
        return True
    if is_numeric_size(size_key) and is_numeric_size(target):
        return float(size_key) == float(target)
    return False


# ============================================================
# ITEM ROI
# ============================================================


def item_roi(
    item: PortfolioItem,
    market_value: Optional[Decimal],
    cost: Optional[Decimal] = None,
) -> ItemROI:
    """Per-unit profit and ROI against purchase, tax and shipping."""
    cost = item.cost_basis if cost is None else cost
    if market_value is None:
        return ItemROI(item_id=item.id, sku=item.sku, cost=cost, market_value=None, profit=None, roi_pct=None)

    profit = round_money(market_value - cost)
    return ItemROI(
        item_id=item.id,
        sku=item.sku,
        cost=cost,
        market_value=market_value,
        profit=profit,
        roi_pct=_pct(profit, cost) if cost > 0 else None,
    )


# ============================================================
# VALUE SERIES
# ============================================================


def build_value_series(
    items: Sequence[PortfolioItem],
    daily_asks: Iterable[DailyAsk],
    today: date,
    days: int = 30,
    currency: str = "GBP",
) -> List[ValuePoint]:
    """
    Daily portfolio value for the last `days` days.

    Each item is valued at its lowest ask of the day, carried
    forward to later days. Items without any price by a day
    count at purchase price. Days before any item has a price
    have no value.
    """
    start = today - timedelta(days=days - 1)

    asks_by_key: Dict[str, Dict[date, Decimal]] = defaultdict(dict)
    asks = list(daily_asks)
    for item in items:
        target = market_size_key(item)
        for sku, size_key, ask_currency, day, ask in asks:
            if sku != item.sku or not size_matches(size_key, target):
                continue
            value = convert(ask, ask_currency, currency)
            current = asks_by_key[item.id].get(day)
            if current is None or value < current:
                asks_by_key[item.id][day] = value

    carried: Dict[str, Decimal] = {}
    series: List[ValuePoint] = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        for item in items:
            price = asks_by_key.get(item.id, {}).get(day)
            if price is not None:
                carried[item.id] = price

        if not carried:
            series.append(ValuePoint(day=day, value=None))
            continue

        total = ZERO
        for item in items:
            quantity = item.quantity or 1
            if item.id in carried:
                total += carried[item.id] * quantity
            else:
                total += convert(item.purchase_price, item.purchase_currency, currency) * quantity
        series.append(ValuePoint(day=day, value=round_money(total)))

    return series


def value_delta(series: Sequence[ValuePoint], lookback_days: int = 7) -> Optional[Decimal]:
    """Percent change between the last point and lookback_days before it."""
    if len(series) < lookback_days + 1:
        return None
    earlier = series[-(lookback_days + 1)].value
    latest = series[-1].value
    if not earlier or not latest or earlier <= 0:
        return None
    return round_money((latest - earlier) / earlier * 100)


# ============================================================
# VALUATOR
# ============================================================


class PortfolioValuator:
    """Computes portfolio KPIs in the configured currency."""

    def __init__(self, config: Optional[PortfolioConfig] = None):
        self._config = config or get_default_config()

    @property
    def currency(self) -> str:
        return self._config.currency

    def _to_currency(self, amount: Decimal, currency: str) -> Decimal:
        return convert(amount, currency, self._config.currency)

    def value(
        self,
        items: Sequence[PortfolioItem],
        prices: Mapping[str, Optional[MarketPrice]],
        series: Optional[Sequence[ValuePoint]] = None,
        now: Optional[datetime] = None,
    ) -> PortfolioValuation:
        """
        Value items at market.

        Args:
            items: Held items
            prices: Market price per item id (missing or None when unknown)
            series: Optional daily value history for the 7-day delta
            now: Reference time when no price carries a timestamp
        """
        now = now or now_utc()
        series = list(series or [])

        if not items:
            return PortfolioValuation(
                currency=self.currency,
                is_empty=True,
                estimated_value=ZERO,
                invested=ZERO,
                unrealised_pl=ZERO,
                roi=ZERO,
                missing_prices_count=0,
                prices_as_of=now,
                series_30d=series,
            )

        estimated = ZERO
        invested = ZERO
        latest_price_at: Optional[datetime] = None
        missing: List[MissingPriceItem] = []
        by_category: Dict[str, Decimal] = defaultdict(lambda: ZERO)

        for item in items:
            quantity = item.quantity or 1
            purchase = self._to_currency(item.purchase_price, item.purchase_currency)
            invested += purchase * quantity

            price = prices.get(item.id)
            if price is not None:
                line_value = self._to_currency(price.value, price.currency) * quantity
                if price.as_of is not None and (latest_price_at is None or price.as_of > latest_price_at):
                    latest_price_at = price.as_of
            else:
                line_value = purchase * quantity
                missing.append(MissingPriceItem(id=item.id, sku=item.sku, size_uk=item.size_uk))

            estimated += line_value
            by_category[item.category or self._config.default_category] += line_value

        unrealised = estimated - invested
        breakdown = sorted(
            (
                CategoryValue(
                    category=category,
                    value=round_money(value),
                    percentage=_pct(value, estimated),
                )
                for category, value in by_category.items()
            ),
            key=lambda c: c.value,
            reverse=True,
        )

        if missing:
            logger.info(f"[portfolio] {len(missing)} of {len(items)} items have no market price")

        return PortfolioValuation(
            currency=self.currency,
            is_empty=False,
            estimated_value=round_money(estimated),
            invested=round_money(invested),
            unrealised_pl=round_money(unrealised),
            roi=_pct(unrealised, invested),
            missing_prices_count=len(missing),
            prices_as_of=latest_price_at or now,
            unrealised_pl_delta_7d=value_delta(series, self._config.delta_days),
            category_breakdown=breakdown,
            missing_items=missing,
            series_30d=series,
        )

    def item_rois(
        self,
        items: Iterable[PortfolioItem],
        prices: Mapping[str, Optional[MarketPrice]],
    ) -> List[ItemROI]:
        """ROI per item; market value is per unit in portfolio currency."""
        results = []
        for item in items:
            price = prices.get(item.id)
            market_value = (
                round_money(self._to_currency(price.value, price.currency)) if price else None
            )
            cost = round_money(self._to_currency(item.cost_basis, item.purchase_currency))
            results.append(item_roi(item, market_value, cost))
        return results
