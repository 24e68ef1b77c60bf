"""
Market Pricing - Unified Size View.

Joins StockX and Alias market rows on size label so both
providers can be compared per size of one SKU.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from data_ingestion.normalizers.alias_mapper import region_code
from data_ingestion.normalizers.sizes import is_numeric_size
from data_sources.models import MarketRow, Provider
from market_pricing.types import UnifiedSizeRow


DEFAULT_ALIAS_REGION_ID = "3"


def _newer(current: Optional[MarketRow], candidate: MarketRow) -> MarketRow:
    if current is None or candidate.snapshot_at > current.snapshot_at:
        return candidate
    return current


def _sort_key(row: UnifiedSizeRow) -> tuple:
    # Numeric sizes ascending, then the rest in label order
    if row.size_numeric is None:
        return (1, 0.0, row.size_key)
    return (0, row.size_numeric, row.size_key)


def split_provider_rows(
    rows: Sequence[MarketRow],
    currency: Optional[str] = None,
) -> Tuple[List[MarketRow], List[MarketRow]]:
    """
    Split stored rows into (stockx, alias).

    StockX rows are limited to `currency` when any were synced
    in it; otherwise every StockX currency is kept.
    """
    stockx = [r for r in rows if r.provider == Provider.STOCKX.value]
    alias = [r for r in rows if r.provider == Provider.ALIAS.value]
    if currency:
        preferred = [r for r in stockx if r.currency == currency.upper()]
        stockx = preferred or stockx
    return stockx, alias


def unify_variants(
    stockx_rows: Iterable[MarketRow],
    alias_rows: Iterable[MarketRow],
    region_id: str = DEFAULT_ALIAS_REGION_ID,
    consigned: bool = False,
) -> list[UnifiedSizeRow]:
    """
    Merge both providers into one row per size.

    StockX standard rows supply ask, bid and price suggestions;
    flex rows supply the flex ask. Alias rows are limited to one
    region and consignment state, and rows without an ask, bid
    or last sale are skipped. When a provider has several rows
    for a size, the newest snapshot wins.
    """
    stockx_standard: dict[str, MarketRow] = {}
    stockx_flex: dict[str, MarketRow] = {}
    for row in stockx_rows:
        if row.provider != Provider.STOCKX.value or row.is_consigned:
            continue
        target = stockx_flex if row.is_flex else stockx_standard
        target[row.size_key] = _newer(target.get(row.size_key), row)

    region = region_code(region_id)
    alias: dict[str, MarketRow] = {}
    for row in alias_rows:
        if row.provider != Provider.ALIAS.value:
            continue
        if row.region != region or row.is_consigned != consigned:
            continue
        if not row.has_prices():
            continue
        alias[row.size_key] = _newer(alias.get(row.size_key), row)

    sizes = set(stockx_standard) | set(stockx_flex) | set(alias)
    unified: list[UnifiedSizeRow] = []
    for size in sizes:
        sx = stockx_standard.get(size)
        flex = stockx_flex.get(size)
        al = alias.get(size)
        sx_any = sx or flex

        unified.append(UnifiedSizeRow(
            size_key=size,
            size_numeric=float(size) if is_numeric_size(size) else None,
            stockx_variant_id=sx_any.provider_variant_id if sx_any else None,
            stockx_lowest_ask=sx.lowest_ask if sx else None,
            stockx_highest_bid=sx.highest_bid if sx else None,
            stockx_flex_lowest_ask=flex.lowest_ask if flex else None,
            stockx_earn_more=sx.earn_more if sx else None,
            stockx_sell_faster=sx.sell_faster if sx else None,
            stockx_currency=sx_any.currency if sx_any else None,
            stockx_updated_at=sx_any.snapshot_at if sx_any else None,
            alias_variant_id=al.provider_variant_id if al else None,
            alias_lowest_ask=al.lowest_ask if al else None,
            alias_highest_bid=al.highest_bid if al else None,
            alias_last_sale=al.last_sale if al else None,
            alias_global_indicator=al.global_indicator if al else None,
            alias_currency=al.currency if al else None,
            alias_updated_at=al.snapshot_at if al else None,
            alias_sales_72h=al.sales_72h if al else None,
            alias_sales_30d=al.sales_30d if al else None,
            has_stockx=sx_any is not None,
            has_alias=al is not None,
        ))

    unified.sort(key=_sort_key)
    return unified


def find_size(rows: Iterable[UnifiedSizeRow], size_key: str) -> Optional[UnifiedSizeRow]:
    """Row for a size label, matched exactly then numerically."""
    rows = list(rows)
    for row in rows:
        if row.size_key == size_key:
            return row
    if is_numeric_size(size_key):
        target = float(size_key)
        for row in rows:
            if row.size_numeric == target:
                return row
    return None
