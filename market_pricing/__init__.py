"""
Market Pricing - Package.

============================================================
PURPOSE
============================================================
Turns StockX and Alias market rows into one comparable view
per SKU and size.

============================================================
WHAT IT PROVIDES
============================================================
- Unified size view (both providers side by side)
- Pricing options per program (standard, flex, consigned)
- Currency conversion between GBP, USD and EUR
- Platform fees, net proceeds and real profit
- Data freshness and provider status
- A single headline price with confidence

============================================================
USAGE
============================================================
    from market_pricing import PricingEngine, unify_variants, quotes_from_row

    rows = unify_variants(stockx_rows, alias_rows, region_id="3")
    engine = PricingEngine()
    for row in rows:
        price = engine.price_row("DD1391-100", row, cost=Decimal("110"))

============================================================
"""

from .types import (
    AliasExtended,
    AliasSellerRegion,
    AliasShippingMethod,
    ConsignedComparison,
    DEFAULT_FEE_PROFILE,
    DataFreshness,
    FeeBreakdown,
    FeeProfile,
    FlexSavings,
    FxRates,
    Platform,
    PlatformNetProceeds,
    PriceConfidence,
    PricingOption,
    PricingOptions,
    ProviderDataStatus,
    ProviderFreshness,
    ProviderQuote,
    RealProfit,
    UnifiedPrice,
    UnifiedPriceWithFees,
    UnifiedSizeRow,
)
from .exceptions import PricingError
from .currency import (
    DEFAULT_FX_RATES,
    SUPPORTED_CURRENCIES,
    convert,
    convert_to_user_currency,
    format_currency,
    fx_rates_for,
    round_money,
)
from .fees import (
    STOCKX_SELLER_LEVEL_FEES,
    build_fee_profile,
    calculate_fees,
    calculate_net_proceeds,
    calculate_real_profit,
    get_best_platform,
    get_platform_fee_config,
)
from .config import PricingConfig, get_default_config, load_config
from .unifier import find_size, split_provider_rows, unify_variants
from .options import (
    get_all_pricing_options,
    get_best_price,
    get_consigned_comparison,
    get_flex_savings,
    get_standard_pricing,
)
from .engine import (
    PricingEngine,
    build_provider_freshness,
    compute_unified_price,
    compute_unified_price_with_fees,
    determine_data_freshness,
    get_data_availability,
    get_provider_statuses,
    has_market_data,
    quotes_from_row,
)


__all__ = [
    # Types
    "AliasExtended",
    "AliasSellerRegion",
    "AliasShippingMethod",
    "ConsignedComparison",
    "DEFAULT_FEE_PROFILE",
    "DataFreshness",
    "FeeBreakdown",
    "FeeProfile",
    "FlexSavings",
    "FxRates",
    "Platform",
    "PlatformNetProceeds",
    "PriceConfidence",
    "PricingOption",
    "PricingOptions",
    "ProviderDataStatus",
    "ProviderFreshness",
    "ProviderQuote",
    "RealProfit",
    "UnifiedPrice",
    "UnifiedPriceWithFees",
    "UnifiedSizeRow",
    "PricingError",
    # Currency
    "DEFAULT_FX_RATES",
    "SUPPORTED_CURRENCIES",
    "convert",
    "convert_to_user_currency",
    "format_currency",
    "fx_rates_for",
    "round_money",
    # Fees
    "STOCKX_SELLER_LEVEL_FEES",
    "build_fee_profile",
    "calculate_fees",
    "calculate_net_proceeds",
    "calculate_real_profit",
    "get_best_platform",
    "get_platform_fee_config",
    # Config
    "PricingConfig",
    "get_default_config",
    "load_config",
    # Unification and options
    "find_size",
    "split_provider_rows",
    "unify_variants",
    "get_all_pricing_options",
    "get_best_price",
    "get_consigned_comparison",
    "get_flex_savings",
    "get_standard_pricing",
    # Engine
    "PricingEngine",
    "build_provider_freshness",
    "compute_unified_price",
    "compute_unified_price_with_fees",
    "determine_data_freshness",
    "get_data_availability",
    "get_provider_statuses",
    "has_market_data",
    "quotes_from_row",
]
