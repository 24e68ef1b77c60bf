"""
Market Pricing - Platform Fees.

============================================================
PURPOSE
============================================================
Seller fees and net proceeds on StockX and Alias.

StockX:
- Transaction fee by seller level (9% at level 1 down to 7%)
- 3% payment processing
- Seller-configured shipping, clamped to [0, 50]
- 5.00 minimum transaction fee, fees quoted in GBP

Alias:
- Commission fraction from the fee profile, clamped to [0, 1]
- 2.9% cash-out fee
- Shipping in USD by seller region and shipping method
- No minimum fee

============================================================
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Tuple, Union

from market_pricing.currency import convert_to_user_currency, round_money
from market_pricing.exceptions import PricingError
from market_pricing.types import (
    AliasSellerRegion,
    AliasShippingMethod,
    DEFAULT_FEE_PROFILE,
    FeeBreakdown,
    FeeProfile,
    FxRates,
    Platform,
    PlatformFeeConfig,
    PlatformNetProceeds,
    RealProfit,
)


logger = logging.getLogger(__name__)

STOCKX_SELLER_LEVEL_FEES: dict[int, Decimal] = {
    1: Decimal("0.09"),
    2: Decimal("0.085"),
    3: Decimal("0.08"),
    4: Decimal("0.075"),
    5: Decimal("0.07"),
}

STOCKX_PAYMENT_PCT = Decimal("0.03")
STOCKX_MIN_FEE = Decimal("5.00")
STOCKX_MAX_SHIPPING = Decimal("50")
STOCKX_FEE_CURRENCY = "GBP"

ALIAS_PAYMENT_PCT = Decimal("0.029")
ALIAS_FEE_CURRENCY = "USD"

ALIAS_SHIPPING_FEES_USD: dict[AliasSellerRegion, dict[AliasShippingMethod, Decimal]] = {
    AliasSellerRegion.US: {AliasShippingMethod.DROPOFF: Decimal("0"), AliasShippingMethod.PREPAID: Decimal("5")},
    AliasSellerRegion.UK: {AliasShippingMethod.DROPOFF: Decimal("2"), AliasShippingMethod.PREPAID: Decimal("5")},
    AliasSellerRegion.EU: {AliasShippingMethod.DROPOFF: Decimal("5"), AliasShippingMethod.PREPAID: Decimal("8")},
}

PLATFORM_CURRENCIES = {
    Platform.STOCKX: STOCKX_FEE_CURRENCY,
    Platform.ALIAS: ALIAS_FEE_CURRENCY,
}

PlatformLike = Union[Platform, str]


# ============================================================
# NORMALIZATION
# ============================================================


def _platform(value: PlatformLike) -> Platform:
    if isinstance(value, Platform):
        return value
    try:
        return Platform(str(value).lower())
    except ValueError:
        raise PricingError(f"Unknown platform: {value}", {"platform": value})


def clamp_seller_level(level: Any) -> int:
    """Round and clamp a seller level into 1..5."""
    rounded = int(Decimal(str(level)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return min(5, max(1, rounded))


def normalize_alias_region(value: Any) -> AliasSellerRegion:
    if isinstance(value, AliasSellerRegion):
        return value
    try:
        return AliasSellerRegion(str(value or "").strip().lower())
    except ValueError:
        return DEFAULT_FEE_PROFILE.alias_region


def normalize_alias_method(value: Any) -> AliasShippingMethod:
    if isinstance(value, AliasShippingMethod):
        return value
    try:
        return AliasShippingMethod(str(value or "").strip().lower())
    except ValueError:
        return DEFAULT_FEE_PROFILE.alias_shipping_method


# ============================================================
# FEE CALCULATION
# ============================================================


def get_platform_fee_config(
    platform: PlatformLike,
    profile: FeeProfile = DEFAULT_FEE_PROFILE,
) -> PlatformFeeConfig:
    """Fee parameters for a platform under a seller's profile."""
    platform = _platform(platform)

    if platform == Platform.STOCKX:
        level = clamp_seller_level(profile.stockx_seller_level)
        shipping = min(STOCKX_MAX_SHIPPING, max(Decimal("0"), Decimal(str(profile.stockx_shipping_fee))))
        return PlatformFeeConfig(
            seller_fee_pct=STOCKX_SELLER_LEVEL_FEES[level],
            payment_processing_pct=STOCKX_PAYMENT_PCT,
            shipping_cost=shipping,
            minimum_fee=STOCKX_MIN_FEE,
            currency=STOCKX_FEE_CURRENCY,
        )

    region = normalize_alias_region(profile.alias_region)
    method = normalize_alias_method(profile.alias_shipping_method)
    commission = min(Decimal("1"), max(Decimal("0"), Decimal(str(profile.alias_commission_pct))))
    return PlatformFeeConfig(
        seller_fee_pct=commission,
        payment_processing_pct=ALIAS_PAYMENT_PCT,
        shipping_cost=ALIAS_SHIPPING_FEES_USD[region][method],
        minimum_fee=Decimal("0"),
        currency=ALIAS_FEE_CURRENCY,
    )


def calculate_fees(
    gross_price: Decimal,
    platform: PlatformLike,
    profile: FeeProfile = DEFAULT_FEE_PROFILE,
) -> FeeBreakdown:
    """
    Fee breakdown for a sale at gross_price.

    Raises:
        PricingError: gross_price is not positive
    """
    if gross_price is None or gross_price <= 0:
        raise PricingError(
            f"gross_price must be > 0, got {gross_price}",
            {"gross_price": str(gross_price), "platform": str(platform)},
        )

    config = get_platform_fee_config(platform, profile)
    platform_fee = max(gross_price * config.seller_fee_pct, config.minimum_fee)
    payment_fee = gross_price * config.payment_processing_pct
    shipping = config.shipping_cost
    total = platform_fee + payment_fee + shipping

    return FeeBreakdown(
        platform_fee=round_money(platform_fee),
        payment_fee=round_money(payment_fee),
        shipping=round_money(shipping),
        total=round_money(total),
    )


def calculate_net_proceeds(
    gross_price: Decimal,
    platform: PlatformLike,
    fx: FxRates,
    profile: FeeProfile = DEFAULT_FEE_PROFILE,
    gross_currency: Optional[str] = None,
) -> PlatformNetProceeds:
    """
    Net payout on a platform, in its currency and the user's.

    gross_currency overrides the platform's fee currency (StockX
    quotes in GBP, USD or EUR depending on region).
    """
    platform = _platform(platform)
    currency = (gross_currency or PLATFORM_CURRENCIES[platform]).upper()

    fees = calculate_fees(gross_price, platform, profile)
    net = round_money(gross_price - fees.total)
    net_user = convert_to_user_currency(net, currency, fx)

    return PlatformNetProceeds(
        platform=platform,
        gross_price=gross_price,
        gross_currency=currency,
        fees=fees,
        net_receive=net,
        net_receive_currency=currency,
        net_receive_user_currency=round_money(net_user),
    )


# ============================================================
# COMPARISON
# ============================================================


def get_best_platform(
    stockx_net: Optional[PlatformNetProceeds],
    alias_net: Optional[PlatformNetProceeds],
) -> Tuple[Optional[Platform], Optional[Decimal]]:
    """
    Platform with the higher payout in the user's currency.

    Returns (platform, advantage). Advantage is None unless both
    platforms quoted. Ties go to StockX.
    """
    if stockx_net is None and alias_net is None:
        return None, None
    if stockx_net is None:
        return Platform.ALIAS, None
    if alias_net is None:
        return Platform.STOCKX, None

    stockx_value = stockx_net.net_receive_user_currency
    alias_value = alias_net.net_receive_user_currency
    advantage = round_money(abs(stockx_value - alias_value))
    if stockx_value >= alias_value:
        return Platform.STOCKX, advantage
    return Platform.ALIAS, advantage


def calculate_real_profit(net_proceeds: Decimal, cost: Decimal) -> RealProfit:
    """Profit after fees; percent is 0 when cost is not positive."""
    profit = round_money(net_proceeds - cost)
    percent = (profit / cost * 100) if cost > 0 else Decimal("0")
    return RealProfit(
        profit=profit,
        profit_percent=percent.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
    )


# ============================================================
# FEE PROFILE FROM SETTINGS
# ============================================================


def build_fee_profile(settings: Mapping[str, Any]) -> FeeProfile:
    """
    Build a FeeProfile from stored user settings.

    Settings store alias_commission_fee as a percentage (9.5).
    A value in (0, 1) already looks like a fraction and is used
    as-is.
    """
    commission = DEFAULT_FEE_PROFILE.alias_commission_pct
    raw_commission = settings.get("alias_commission_fee")
    if raw_commission is not None:
        raw = Decimal(str(raw_commission))
        if 0 < raw < 1:
            logger.warning(
                f"[fees] alias_commission_fee={raw} looks like a fraction; "
                f"expected a percentage (e.g. 9.5). Using as-is."
            )
            commission = raw
        else:
            commission = raw / 100

    shipping = settings.get("stockx_shipping_fee")
    return FeeProfile(
        stockx_seller_level=clamp_seller_level(settings.get("stockx_seller_level") or 1),
        stockx_shipping_fee=(
            Decimal(str(shipping)) if shipping is not None else DEFAULT_FEE_PROFILE.stockx_shipping_fee
        ),
        alias_commission_pct=commission,
        alias_region=normalize_alias_region(settings.get("alias_region")),
        alias_shipping_method=normalize_alias_method(settings.get("alias_shipping_method")),
    )
