"""
Market Pricing Engine - Unified Price.

============================================================
PURPOSE
============================================================
Combines StockX and Alias quotes for one SKU and size into a
single market price in the user's currency, with fee-adjusted
payouts and profit against the cost basis.

Formula:
    value = min(stockx_ask, alias_ask), both in user currency

============================================================
CONFIDENCE
============================================================
- HIGH: both providers quoted an ask
- MEDIUM: only one provider quoted an ask
- LOW: the winning provider is stale or errored

============================================================
USAGE
============================================================
    from market_pricing import PricingEngine, ProviderQuote

    engine = PricingEngine()
    price = engine.price_with_fees(
        sku="DD1391-100",
        size="10",
        stockx=ProviderQuote(lowest_ask=Decimal("150"), currency="GBP"),
        alias=ProviderQuote(lowest_ask=Decimal("180"), currency="USD"),
        cost=Decimal("110"),
    )

============================================================
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Tuple

from core.clock import age_of, now_utc
from market_pricing.config import PricingConfig, get_default_config
from market_pricing.currency import convert_to_user_currency, fx_rates_for, round_money
from market_pricing.fees import (
    calculate_net_proceeds,
    calculate_real_profit,
    get_best_platform,
)
from market_pricing.types import (
    AliasExtended,
    DEFAULT_FEE_PROFILE,
    DataFreshness,
    FeeProfile,
    FxRates,
    Platform,
    PriceBids,
    PriceConfidence,
    PriceInputs,
    ProviderDataStatus,
    ProviderFreshness,
    ProviderQuote,
    UnifiedPrice,
    UnifiedPriceWithFees,
    UnifiedSizeRow,
)


logger = logging.getLogger(__name__)

LIVE_MAX_AGE = timedelta(hours=1)
RECENT_MAX_AGE = timedelta(hours=24)

STOCKX_DEFAULT_CURRENCY = "GBP"
ALIAS_CURRENCY = "USD"


# ============================================================
# FRESHNESS
# ============================================================


def determine_data_freshness(
    updated_at: Optional[datetime],
    now: Optional[datetime] = None,
    live_max_age: timedelta = LIVE_MAX_AGE,
    recent_max_age: timedelta = RECENT_MAX_AGE,
) -> DataFreshness:
    """Bucket data age; unknown timestamps are stale."""
    if updated_at is None:
        return DataFreshness.STALE

    # Future timestamps (clock skew) count as zero age
    age = age_of(updated_at, now)
    if age < live_max_age:
        return DataFreshness.LIVE
    if age < recent_max_age:
        return DataFreshness.RECENT
    return DataFreshness.STALE


def build_provider_freshness(
    updated_at: Optional[datetime],
    status: Optional[ProviderDataStatus],
    ask: Optional[Decimal],
    error: Optional[str] = None,
    now: Optional[datetime] = None,
    **thresholds,
) -> ProviderFreshness:
    """
    Freshness and status of one provider.

    An error forces ERROR. Without an ask an AVAILABLE status
    becomes NO_LISTING; with an ask and no explicit status the
    provider is AVAILABLE.
    """
    freshness = determine_data_freshness(updated_at, now, **thresholds)
    if error:
        return ProviderFreshness(
            updated_at=updated_at,
            freshness=freshness,
            status=ProviderDataStatus.ERROR,
            error=error,
        )

    derived = status or ProviderDataStatus.AVAILABLE
    if ask is None:
        if derived == ProviderDataStatus.AVAILABLE:
            derived = ProviderDataStatus.NO_LISTING
    elif status is None:
        derived = ProviderDataStatus.AVAILABLE

    return ProviderFreshness(updated_at=updated_at, freshness=freshness, status=derived)


def _freshness_pair(
    stockx: Optional[ProviderQuote],
    alias: Optional[ProviderQuote],
    now: Optional[datetime],
    **thresholds,
) -> Dict[str, ProviderFreshness]:
    def build(quote: Optional[ProviderQuote]) -> ProviderFreshness:
        if quote is None:
            return build_provider_freshness(None, None, None, now=now, **thresholds)
        return build_provider_freshness(
            quote.updated_at, quote.status, quote.lowest_ask, quote.error, now=now, **thresholds
        )

    return {Platform.STOCKX.value: build(stockx), Platform.ALIAS.value: build(alias)}


# ============================================================
# UNIFIED PRICE
# ============================================================


def _resolve_fx(fx: Optional[FxRates], user_currency: str) -> FxRates:
    return fx if fx is not None else fx_rates_for(user_currency)


def _stockx_currency(stockx: Optional[ProviderQuote]) -> str:
    if stockx is not None and stockx.currency:
        return stockx.currency.upper()
    return STOCKX_DEFAULT_CURRENCY


def _convert(amount: Optional[Decimal], currency: str, fx: FxRates) -> Optional[Decimal]:
    if amount is None:
        return None
    return convert_to_user_currency(amount, currency, fx)


def compute_unified_price(
    stockx: Optional[ProviderQuote],
    alias: Optional[ProviderQuote],
    user_currency: str = "GBP",
    fx: Optional[FxRates] = None,
    sku: Optional[str] = None,
    size: Optional[str] = None,
    size_unit: str = "US",
    variant_ids: Optional[Dict[str, Optional[str]]] = None,
    now: Optional[datetime] = None,
    **thresholds,
) -> Optional[UnifiedPrice]:
    """
    Headline market price for one SKU and size.

    Returns None when neither provider has an ask. StockX
    quotes default to GBP; Alias quotes are USD.

    Raises:
        PricingError: Unsupported currency
    """
    stockx_ask = stockx.lowest_ask if stockx else None
    alias_ask = alias.lowest_ask if alias else None
    if stockx_ask is None and alias_ask is None:
        return None

    fx = _resolve_fx(fx, user_currency)
    stockx_currency = _stockx_currency(stockx)

    stockx_user = _convert(stockx_ask, stockx_currency, fx)
    alias_user = _convert(alias_ask, ALIAS_CURRENCY, fx)

    if stockx_user is not None and alias_user is not None:
        value = min(stockx_user, alias_user)
        source = Platform.STOCKX if stockx_user <= alias_user else Platform.ALIAS
        confidence = PriceConfidence.HIGH
    elif stockx_user is not None:
        value = stockx_user
        source = Platform.STOCKX
        confidence = PriceConfidence.MEDIUM
    else:
        value = alias_user
        source = Platform.ALIAS
        confidence = PriceConfidence.MEDIUM

    stockx_bid = stockx.highest_bid if stockx else None
    alias_bid = alias.highest_bid if alias else None
    bids = PriceBids(
        stockx_bid=_convert(stockx_bid, stockx_currency, fx),
        stockx_bid_original=stockx_bid,
        alias_bid=_convert(alias_bid, ALIAS_CURRENCY, fx),
        alias_bid_original=alias_bid,
    )

    freshness = _freshness_pair(stockx, alias, now, **thresholds)
    winner = freshness[source.value]
    if winner.status == ProviderDataStatus.ERROR or winner.freshness == DataFreshness.STALE:
        confidence = PriceConfidence.LOW

    return UnifiedPrice(
        sku=sku,
        size=size,
        size_unit=size_unit,
        variant_ids=dict(variant_ids or {}),
        value=round_money(value),
        currency=fx.user_currency,
        source=source,
        confidence=confidence,
        inputs=PriceInputs(
            stockx_ask=stockx_user,
            stockx_ask_original=stockx_ask,
            alias_ask=alias_user,
            alias_ask_original=alias_ask,
            fx=fx,
        ),
        bids=bids,
        provider_freshness=freshness,
        calculated_at=now or now_utc(),
    )


def _net(
    amount: Optional[Decimal],
    platform: Platform,
    fx: FxRates,
    profile: FeeProfile,
    currency: str,
):
    if amount is None or amount <= 0:
        return None
    return calculate_net_proceeds(amount, platform, fx, profile, currency)


def _user_value(proceeds, platform: Optional[Platform]) -> Optional[Decimal]:
    if platform is None:
        return None
    chosen = proceeds[platform.value]
    return chosen.net_receive_user_currency if chosen else None


def compute_unified_price_with_fees(
    stockx: Optional[ProviderQuote],
    alias: Optional[ProviderQuote],
    user_currency: str = "GBP",
    fee_profile: FeeProfile = DEFAULT_FEE_PROFILE,
    cost_basis: Optional[Decimal] = None,
    cost_currency: Optional[str] = None,
    fx: Optional[FxRates] = None,
    **kwargs,
) -> Optional[UnifiedPriceWithFees]:
    """
    Unified price plus what the seller actually receives.

    Net proceeds are computed for asks (patient sale) and bids
    (instant sale) on each platform. Real profit compares the
    best ask payout with the cost basis converted to the user's
    currency.
    """
    fx = _resolve_fx(fx, user_currency)
    base = compute_unified_price(stockx, alias, fx=fx, **kwargs)
    if base is None:
        return None

    stockx_currency = _stockx_currency(stockx)
    net_proceeds = {
        Platform.STOCKX.value: _net(stockx.lowest_ask if stockx else None, Platform.STOCKX, fx, fee_profile, stockx_currency),
        Platform.ALIAS.value: _net(alias.lowest_ask if alias else None, Platform.ALIAS, fx, fee_profile, ALIAS_CURRENCY),
    }
    bid_net_proceeds = {
        Platform.STOCKX.value: _net(stockx.highest_bid if stockx else None, Platform.STOCKX, fx, fee_profile, stockx_currency),
        Platform.ALIAS.value: _net(alias.highest_bid if alias else None, Platform.ALIAS, fx, fee_profile, ALIAS_CURRENCY),
    }

    best_bid_platform, _ = get_best_platform(
        bid_net_proceeds[Platform.STOCKX.value], bid_net_proceeds[Platform.ALIAS.value]
    )
    best_platform, advantage = get_best_platform(
        net_proceeds[Platform.STOCKX.value], net_proceeds[Platform.ALIAS.value]
    )
    best_net = _user_value(net_proceeds, best_platform)

    real_profit = None
    real_profit_percent = None
    if cost_basis is not None and best_net is not None:
        cost_user = convert_to_user_currency(cost_basis, (cost_currency or fx.user_currency).upper(), fx)
        result = calculate_real_profit(best_net, cost_user)
        real_profit = result.profit
        real_profit_percent = result.profit_percent

    last_sale = alias.last_sale if alias else None
    extended = AliasExtended(
        last_sale_price=last_sale,
        last_sale_price_user_currency=(
            round_money(convert_to_user_currency(last_sale, ALIAS_CURRENCY, fx))
            if last_sale is not None else None
        ),
        sales_72h=alias.sales_72h if alias else None,
        sales_30d=alias.sales_30d if alias else None,
    )

    return UnifiedPriceWithFees(
        price=base,
        net_proceeds=net_proceeds,
        bid_net_proceeds=bid_net_proceeds,
        best_bid_platform=best_bid_platform,
        best_bid_net_proceeds=_user_value(bid_net_proceeds, best_bid_platform),
        best_platform_to_sell=best_platform,
        best_net_proceeds=best_net,
        platform_advantage=advantage,
        real_profit=real_profit,
        real_profit_percent=real_profit_percent,
        alias_extended=extended,
    )


# ============================================================
# CONVENIENCE
# ============================================================


def has_market_data(stockx: Optional[ProviderQuote], alias: Optional[ProviderQuote]) -> bool:
    """True when either provider quoted an ask."""
    return (stockx is not None and stockx.lowest_ask is not None) or (
        alias is not None and alias.lowest_ask is not None
    )


def get_data_availability(
    stockx: Optional[ProviderQuote],
    alias: Optional[ProviderQuote],
) -> Dict[str, bool]:
    has_stockx = stockx is not None and stockx.lowest_ask is not None
    has_alias = alias is not None and alias.lowest_ask is not None
    return {
        "has_stockx": has_stockx,
        "has_alias": has_alias,
        "has_both": has_stockx and has_alias,
        "has_any": has_stockx or has_alias,
    }


def get_provider_statuses(
    stockx: Optional[ProviderQuote],
    alias: Optional[ProviderQuote],
    now: Optional[datetime] = None,
) -> Dict[str, ProviderFreshness]:
    """
    Per-provider status even when no price can be computed.

    Distinguishes a missing listing from an API error or an
    unmapped product.
    """
    return _freshness_pair(stockx, alias, now)


def quotes_from_row(
    row: UnifiedSizeRow,
    stockx_status: Optional[ProviderDataStatus] = None,
    alias_status: Optional[ProviderDataStatus] = None,
) -> Tuple[Optional[ProviderQuote], Optional[ProviderQuote]]:
    """Provider quotes for one unified size row."""
    stockx = None
    if row.has_stockx or stockx_status is not None:
        stockx = ProviderQuote(
            lowest_ask=row.stockx_lowest_ask,
            highest_bid=row.stockx_highest_bid,
            currency=row.stockx_currency,
            updated_at=row.stockx_updated_at,
            status=stockx_status,
            flex_lowest_ask=row.stockx_flex_lowest_ask,
            earn_more=row.stockx_earn_more,
            sell_faster=row.stockx_sell_faster,
        )

    alias = None
    if row.has_alias or alias_status is not None:
        alias = ProviderQuote(
            lowest_ask=row.alias_lowest_ask,
            highest_bid=row.alias_highest_bid,
            currency=row.alias_currency or ALIAS_CURRENCY,
            updated_at=row.alias_updated_at,
            status=alias_status,
            last_sale=row.alias_last_sale,
            global_indicator=row.alias_global_indicator,
            sales_72h=row.alias_sales_72h,
            sales_30d=row.alias_sales_30d,
        )
    return stockx, alias


# ============================================================
# ENGINE
# ============================================================


class PricingEngine:
    """
    Configured entry point for unified pricing.

    Holds the user currency, FX table, fee profile and
    freshness thresholds so callers only pass quotes.
    """

    def __init__(self, config: Optional[PricingConfig] = None):
        self._config = config or get_default_config()
        self._fee_profile = self._config.fee_profile()
        self._rates = self._config.rate_table()

    @property
    def config(self) -> PricingConfig:
        return self._config

    @property
    def fee_profile(self) -> FeeProfile:
        return self._fee_profile

    def fx_rates(self, user_currency: Optional[str] = None) -> FxRates:
        return fx_rates_for(user_currency or self._config.user_currency, self._rates)

    def _thresholds(self) -> Dict[str, timedelta]:
        return {
            "live_max_age": self._config.live_max_age,
            "recent_max_age": self._config.recent_max_age,
        }

    def price(
        self,
        sku: Optional[str],
        size: Optional[str],
        stockx: Optional[ProviderQuote],
        alias: Optional[ProviderQuote],
        user_currency: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[UnifiedPrice]:
        return compute_unified_price(
            stockx,
            alias,
            fx=self.fx_rates(user_currency),
            sku=sku,
            size=size,
            now=now,
            **self._thresholds(),
        )

    def price_with_fees(
        self,
        sku: Optional[str],
        size: Optional[str],
        stockx: Optional[ProviderQuote],
        alias: Optional[ProviderQuote],
        cost: Optional[Decimal] = None,
        cost_currency: Optional[str] = None,
        user_currency: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[UnifiedPriceWithFees]:
        result = compute_unified_price_with_fees(
            stockx,
            alias,
            fee_profile=self._fee_profile,
            cost_basis=cost,
            cost_currency=cost_currency,
            fx=self.fx_rates(user_currency),
            sku=sku,
            size=size,
            now=now,
            **self._thresholds(),
        )
        if result is None:
            logger.debug(f"[pricing] No asks for {sku} size {size}")
        return result

    def price_row(
        self,
        sku: str,
        row: UnifiedSizeRow,
        cost: Optional[Decimal] = None,
        cost_currency: Optional[str] = None,
        user_currency: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[UnifiedPriceWithFees]:
        """Price one row of the unified size view."""
        stockx, alias = quotes_from_row(row)
        return self.price_with_fees(
            sku, row.size_key, stockx, alias,
            cost=cost, cost_currency=cost_currency, user_currency=user_currency, now=now,
        )
