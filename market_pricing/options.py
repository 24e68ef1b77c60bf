"""
Market Pricing - Pricing Options.

Splits the snapshot rows of one SKU, size and currency into
the programs a buyer can use: StockX standard and flex, Alias
standard and consigned.
"""

from decimal import Decimal
from typing import Dict, Iterable, Optional

from data_sources.models import MarketRow, Provider
from market_pricing.currency import round_money
from market_pricing.types import (
    ConsignedComparison,
    FlexSavings,
    PricingOption,
    PricingOptions,
)


def _option(row: MarketRow, program: str) -> PricingOption:
    return PricingOption(
        provider=row.provider,
        program=program,
        lowest_ask=row.lowest_ask,
        highest_bid=row.highest_bid,
        last_sale=row.last_sale,
        currency=row.currency,
        sales_72h=row.sales_72h,
        snapshot_at=row.snapshot_at,
    )


def _slot(row: MarketRow) -> Optional[str]:
    if row.provider == Provider.STOCKX.value:
        if row.is_flex:
            return "stockx_flex"
        if row.is_consigned:
            return None
        return "stockx_standard"
    if row.provider == Provider.ALIAS.value:
        return "alias_consigned" if row.is_consigned else "alias_standard"
    return None


def get_all_pricing_options(rows: Iterable[MarketRow]) -> PricingOptions:
    """Latest quote per program; missing programs stay None."""
    options = PricingOptions()
    for row in rows:
        slot = _slot(row)
        if slot is None:
            continue
        current: Optional[PricingOption] = getattr(options, slot)
        if current is None or row.snapshot_at > current.snapshot_at:
            program = slot.split("_", 1)[1]
            setattr(options, slot, _option(row, program))
    return options


def get_standard_pricing(rows: Iterable[MarketRow]) -> Dict[str, Optional[PricingOption]]:
    """Standard (non-flex, non-consigned) quote per provider."""
    options = get_all_pricing_options(rows)
    return {
        Provider.STOCKX.value: options.stockx_standard,
        Provider.ALIAS.value: options.alias_standard,
    }


def get_best_price(rows: Iterable[MarketRow]) -> Optional[PricingOption]:
    """Lowest ask across every program, or None without asks."""
    candidates = [o for o in get_all_pricing_options(rows).all() if o.lowest_ask is not None]
    if not candidates:
        return None
    return min(candidates, key=lambda o: o.lowest_ask)


def get_flex_savings(rows: Iterable[MarketRow]) -> Optional[FlexSavings]:
    """How much cheaper StockX flex is than standard."""
    options = get_all_pricing_options(rows)
    if options.stockx_standard is None or options.stockx_flex is None:
        return None
    standard = options.stockx_standard.lowest_ask
    flex = options.stockx_flex.lowest_ask
    if not standard or not flex:
        return None

    savings = standard - flex
    return FlexSavings(
        standard_price=standard,
        flex_price=flex,
        savings=round_money(savings),
        savings_pct=round_money(savings / standard * Decimal("100")),
    )


def get_consigned_comparison(rows: Iterable[MarketRow]) -> Optional[ConsignedComparison]:
    """Premium (or discount) of Alias consigned over standard."""
    options = get_all_pricing_options(rows)
    if options.alias_standard is None or options.alias_consigned is None:
        return None
    standard = options.alias_standard.lowest_ask
    consigned = options.alias_consigned.lowest_ask
    if not standard or not consigned:
        return None

    difference = consigned - standard
    return ConsignedComparison(
        standard_price=standard,
        consigned_price=consigned,
        difference=round_money(difference),
        difference_pct=round_money(difference / standard * Decimal("100")),
    )
