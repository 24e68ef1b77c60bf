"""
Market Pricing - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for unified market prices, fees and
freshness.

============================================================
DESIGN PRINCIPLES
============================================================
- Money is Decimal; outputs are rounded to cents
- Fee percentages are FRACTIONS (0.095 = 9.5%)
- Results carry the inputs they were computed from

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


# ============================================================
# ENUMS
# ============================================================


class Platform(Enum):
    """Marketplaces a seller can list on."""
    STOCKX = "stockx"
    ALIAS = "alias"


class PriceConfidence(Enum):
    """
    Trust in a unified price.

    - HIGH: both providers quoted an ask
    - MEDIUM: only one provider quoted an ask
    - LOW: the winning quote is stale or errored
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DataFreshness(Enum):
    """Age bucket of provider data."""
    LIVE = "live"       # < 1 hour
    RECENT = "recent"   # < 24 hours
    STALE = "stale"     # older, or unknown


class ProviderDataStatus(Enum):
    """Why a provider did or did not quote."""
    AVAILABLE = "available"
    NO_LISTING = "no_listing"
    ERROR = "error"
    NOT_MAPPED = "not_mapped"


class AliasSellerRegion(Enum):
    US = "us"
    UK = "uk"
    EU = "eu"


class AliasShippingMethod(Enum):
    DROPOFF = "dropoff"
    PREPAID = "prepaid"


# ============================================================
# FEES
# ============================================================


@dataclass(frozen=True)
class FeeProfile:
    """
    A seller's fee settings.

    stockx_seller_level selects the StockX transaction fee;
    alias_commission_pct is a fraction. alias_region affects
    Alias shipping only, never market data.
    """
    stockx_seller_level: int = 1
    stockx_shipping_fee: Decimal = Decimal("4.00")
    alias_commission_pct: Decimal = Decimal("0.095")
    alias_region: AliasSellerRegion = AliasSellerRegion.UK
    alias_shipping_method: AliasShippingMethod = AliasShippingMethod.DROPOFF

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stockx_seller_level": self.stockx_seller_level,
            "stockx_shipping_fee": str(self.stockx_shipping_fee),
            "alias_commission_pct": str(self.alias_commission_pct),
            "alias_region": self.alias_region.value,
            "alias_shipping_method": self.alias_shipping_method.value,
        }


DEFAULT_FEE_PROFILE = FeeProfile()


@dataclass(frozen=True)
class PlatformFeeConfig:
    """Fee parameters of one platform for one seller."""
    seller_fee_pct: Decimal
    payment_processing_pct: Decimal
    shipping_cost: Decimal
    minimum_fee: Decimal
    currency: str


@dataclass(frozen=True)
class FeeBreakdown:
    """Fees charged on a sale, each rounded to cents."""
    platform_fee: Decimal
    payment_fee: Decimal
    shipping: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "platform_fee": str(self.platform_fee),
            "payment_fee": str(self.payment_fee),
            "shipping": str(self.shipping),
            "total": str(self.total),
        }


@dataclass(frozen=True)
class PlatformNetProceeds:
    """What a seller receives after fees on one platform."""
    platform: Platform
    gross_price: Decimal
    gross_currency: str
    fees: FeeBreakdown
    net_receive: Decimal
    net_receive_currency: str
    net_receive_user_currency: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform.value,
            "gross_price": str(self.gross_price),
            "gross_currency": self.gross_currency,
            "fees": self.fees.to_dict(),
            "net_receive": str(self.net_receive),
            "net_receive_currency": self.net_receive_currency,
            "net_receive_user_currency": str(self.net_receive_user_currency),
        }


@dataclass(frozen=True)
class RealProfit:
    """Profit after fees against the cost basis."""
    profit: Decimal
    profit_percent: Decimal  # 1dp


# ============================================================
# CURRENCY
# ============================================================


@dataclass(frozen=True)
class FxRates:
    """Conversion rates into the user's currency."""
    user_currency: str
    gbp_to_user: Decimal
    usd_to_user: Decimal
    eur_to_user: Decimal
    timestamp: datetime

    def rate_from(self, currency: str) -> Optional[Decimal]:
        if currency == self.user_currency:
            return Decimal("1")
        return {
            "GBP": self.gbp_to_user,
            "USD": self.usd_to_user,
            "EUR": self.eur_to_user,
        }.get(currency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_currency": self.user_currency,
            "gbp_to_user": str(self.gbp_to_user),
            "usd_to_user": str(self.usd_to_user),
            "eur_to_user": str(self.eur_to_user),
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# UNIFIED SIZE VIEW
# ============================================================


@dataclass(frozen=True)
class UnifiedSizeRow:
    """StockX and Alias quotes for one size side by side."""
    size_key: str
    size_numeric: Optional[float] = None

    stockx_variant_id: Optional[str] = None
    stockx_lowest_ask: Optional[Decimal] = None
    stockx_highest_bid: Optional[Decimal] = None
    stockx_flex_lowest_ask: Optional[Decimal] = None
    stockx_earn_more: Optional[Decimal] = None
    stockx_sell_faster: Optional[Decimal] = None
    stockx_currency: Optional[str] = None
    stockx_updated_at: Optional[datetime] = None

    alias_variant_id: Optional[str] = None
    alias_lowest_ask: Optional[Decimal] = None
    alias_highest_bid: Optional[Decimal] = None
    alias_last_sale: Optional[Decimal] = None
    alias_global_indicator: Optional[Decimal] = None
    alias_currency: Optional[str] = None
    alias_updated_at: Optional[datetime] = None
    alias_sales_72h: Optional[int] = None
    alias_sales_30d: Optional[int] = None

    has_stockx: bool = False
    has_alias: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size_key": self.size_key,
            "size_numeric": self.size_numeric,
            "stockx_variant_id": self.stockx_variant_id,
            "stockx_lowest_ask": _money(self.stockx_lowest_ask),
            "stockx_highest_bid": _money(self.stockx_highest_bid),
            "stockx_flex_lowest_ask": _money(self.stockx_flex_lowest_ask),
            "stockx_earn_more": _money(self.stockx_earn_more),
            "stockx_sell_faster": _money(self.stockx_sell_faster),
            "stockx_currency": self.stockx_currency,
            "stockx_updated_at": self.stockx_updated_at.isoformat() if self.stockx_updated_at else None,
            "alias_variant_id": self.alias_variant_id,
            "alias_lowest_ask": _money(self.alias_lowest_ask),
            "alias_highest_bid": _money(self.alias_highest_bid),
            "alias_last_sale": _money(self.alias_last_sale),
            "alias_global_indicator": _money(self.alias_global_indicator),
            "alias_currency": self.alias_currency,
            "alias_updated_at": self.alias_updated_at.isoformat() if self.alias_updated_at else None,
            "alias_sales_72h": self.alias_sales_72h,
            "alias_sales_30d": self.alias_sales_30d,
            "has_stockx": self.has_stockx,
            "has_alias": self.has_alias,
        }


@dataclass(frozen=True)
class PricingOption:
    """One way to buy a size: provider plus program."""
    provider: str
    program: str  # standard, flex, consigned
    lowest_ask: Optional[Decimal]
    highest_bid: Optional[Decimal]
    last_sale: Optional[Decimal]
    currency: str
    sales_72h: Optional[int]
    snapshot_at: datetime

    @property
    def is_flex(self) -> bool:
        return self.program == "flex"

    @property
    def is_consigned(self) -> bool:
        return self.program == "consigned"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "program": self.program,
            "lowest_ask": _money(self.lowest_ask),
            "highest_bid": _money(self.highest_bid),
            "last_sale": _money(self.last_sale),
            "currency": self.currency,
            "sales_72h": self.sales_72h,
            "snapshot_at": self.snapshot_at.isoformat(),
        }


@dataclass
class PricingOptions:
    """Every program quoted for one SKU and size."""
    stockx_standard: Optional[PricingOption] = None
    stockx_flex: Optional[PricingOption] = None
    alias_standard: Optional[PricingOption] = None
    alias_consigned: Optional[PricingOption] = None

    def all(self) -> list[PricingOption]:
        return [
            option for option in (
                self.stockx_standard,
                self.stockx_flex,
                self.alias_standard,
                self.alias_consigned,
            )
            if option is not None
        ]

    def to_dict(self) -> Dict[str, Any]:
        def dump(option: Optional[PricingOption]) -> Optional[Dict[str, Any]]:
            return option.to_dict() if option else None

        return {
            "stockx": {"standard": dump(self.stockx_standard), "flex": dump(self.stockx_flex)},
            "alias": {"standard": dump(self.alias_standard), "consigned": dump(self.alias_consigned)},
        }


@dataclass(frozen=True)
class FlexSavings:
    standard_price: Decimal
    flex_price: Decimal
    savings: Decimal
    savings_pct: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "standard_price": str(self.standard_price),
            "flex_price": str(self.flex_price),
            "savings": str(self.savings),
            "savings_pct": str(self.savings_pct),
        }


@dataclass(frozen=True)
class ConsignedComparison:
    standard_price: Decimal
    consigned_price: Decimal
    difference: Decimal
    difference_pct: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "standard_price": str(self.standard_price),
            "consigned_price": str(self.consigned_price),
            "difference": str(self.difference),
            "difference_pct": str(self.difference_pct),
        }


# ============================================================
# UNIFIED PRICE
# ============================================================


@dataclass(frozen=True)
class ProviderQuote:
    """
    Market input from one provider for one SKU and size.

    Prices are in the provider's currency. Alias quotes are
    always USD.
    """
    lowest_ask: Optional[Decimal] = None
    highest_bid: Optional[Decimal] = None
    currency: Optional[str] = None
    updated_at: Optional[datetime] = None
    status: Optional[ProviderDataStatus] = None
    error: Optional[str] = None

    # StockX only
    flex_lowest_ask: Optional[Decimal] = None
    earn_more: Optional[Decimal] = None
    sell_faster: Optional[Decimal] = None

    # Alias only
    last_sale: Optional[Decimal] = None
    global_indicator: Optional[Decimal] = None
    sales_72h: Optional[int] = None
    sales_30d: Optional[int] = None


@dataclass(frozen=True)
class ProviderFreshness:
    """Freshness and status of one provider's quote."""
    updated_at: Optional[datetime]
    freshness: DataFreshness
    status: ProviderDataStatus
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "freshness": self.freshness.value,
            "status": self.status.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class PriceInputs:
    """Asks in the user's currency and as quoted."""
    stockx_ask: Optional[Decimal]
    stockx_ask_original: Optional[Decimal]
    alias_ask: Optional[Decimal]
    alias_ask_original: Optional[Decimal]
    fx: FxRates

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stockx_ask": _money(self.stockx_ask),
            "stockx_ask_original": _money(self.stockx_ask_original),
            "alias_ask": _money(self.alias_ask),
            "alias_ask_original": _money(self.alias_ask_original),
            "fx": self.fx.to_dict(),
        }


@dataclass(frozen=True)
class PriceBids:
    """Bids in the user's currency and as quoted."""
    stockx_bid: Optional[Decimal]
    stockx_bid_original: Optional[Decimal]
    alias_bid: Optional[Decimal]
    alias_bid_original: Optional[Decimal]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stockx_bid": _money(self.stockx_bid),
            "stockx_bid_original": _money(self.stockx_bid_original),
            "alias_bid": _money(self.alias_bid),
            "alias_bid_original": _money(self.alias_bid_original),
        }


@dataclass(frozen=True)
class UnifiedPrice:
    """One trusted market price for a SKU and size."""
    sku: Optional[str]
    size: Optional[str]
    value: Decimal
    currency: str
    source: Platform
    confidence: PriceConfidence
    inputs: PriceInputs
    bids: PriceBids
    provider_freshness: Dict[str, ProviderFreshness]
    calculated_at: datetime
    size_unit: str = "US"
    variant_ids: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sku": self.sku,
            "size": self.size,
            "size_unit": self.size_unit,
            "variant_ids": dict(self.variant_ids),
            "value": str(self.value),
            "currency": self.currency,
            "source": self.source.value,
            "confidence": self.confidence.value,
            "inputs": self.inputs.to_dict(),
            "bids": self.bids.to_dict(),
            "provider_freshness": {k: v.to_dict() for k, v in self.provider_freshness.items()},
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass(frozen=True)
class AliasExtended:
    """Alias-only liquidity data."""
    last_sale_price: Optional[Decimal]
    last_sale_price_user_currency: Optional[Decimal]
    sales_72h: Optional[int]
    sales_30d: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_sale_price": _money(self.last_sale_price),
            "last_sale_price_user_currency": _money(self.last_sale_price_user_currency),
            "sales_72h": self.sales_72h,
            "sales_30d": self.sales_30d,
        }


@dataclass(frozen=True)
class UnifiedPriceWithFees:
    """Unified price plus fee-adjusted proceeds and profit."""
    price: UnifiedPrice
    net_proceeds: Dict[str, Optional[PlatformNetProceeds]]
    bid_net_proceeds: Dict[str, Optional[PlatformNetProceeds]]
    best_bid_platform: Optional[Platform]
    best_bid_net_proceeds: Optional[Decimal]
    best_platform_to_sell: Optional[Platform]
    best_net_proceeds: Optional[Decimal]
    platform_advantage: Optional[Decimal]
    real_profit: Optional[Decimal]
    real_profit_percent: Optional[Decimal]
    alias_extended: AliasExtended

    def to_dict(self) -> Dict[str, Any]:
        def dump(proceeds: Dict[str, Optional[PlatformNetProceeds]]) -> Dict[str, Any]:
            return {k: v.to_dict() if v else None for k, v in proceeds.items()}

        data = self.price.to_dict()
        data.update({
            "net_proceeds": dump(self.net_proceeds),
            "bid_net_proceeds": dump(self.bid_net_proceeds),
            "best_bid_platform": self.best_bid_platform.value if self.best_bid_platform else None,
            "best_bid_net_proceeds": _money(self.best_bid_net_proceeds),
            "best_platform_to_sell": self.best_platform_to_sell.value if self.best_platform_to_sell else None,
            "best_net_proceeds": _money(self.best_net_proceeds),
            "platform_advantage": _money(self.platform_advantage),
            "real_profit": _money(self.real_profit),
            "real_profit_percent": _money(self.real_profit_percent),
            "alias_extended": self.alias_extended.to_dict(),
        })
        return data
