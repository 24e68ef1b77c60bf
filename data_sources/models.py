"""
Data Source Models - Normalized marketplace data structures.

Provides strict typing for catalog, variant, market and sales data
normalized across StockX and Alias (GOAT).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union


class SourceStatus(Enum):
    """Health status of a data source."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class Provider(Enum):
    """Supported marketplaces."""
    STOCKX = "stockx"
    ALIAS = "alias"


class DataType(Enum):
    """Types of marketplace data supported."""
    CATALOG_SEARCH = "catalog_search"
    PRODUCT = "product"
    VARIANTS = "variants"
    MARKET_DATA = "market_data"
    RECENT_SALES = "recent_sales"


# Alias pricing-insight regions. Alias prices are always USD.
ALIAS_REGIONS: dict[str, str] = {
    "1": "US",
    "2": "EU",
    "3": "UK",
}
ALIAS_GLOBAL_REGION = "global"

# StockX market data is requested per currency
CURRENCY_REGIONS: dict[str, str] = {
    "GBP": "UK",
    "USD": "US",
    "EUR": "EU",
}


def _dec(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _from_dec(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


@dataclass(frozen=True)
class MarketRow:
    """
    Normalized market data row - STRICT schema.

    Both providers MUST normalize to this format. One row per
    (provider, source, product, variant, size, currency, region).
    """
    provider: str
    provider_source: str
    provider_product_id: str
    size_key: str
    currency: str
    region: str
    snapshot_at: datetime

    provider_variant_id: Optional[str] = None
    sku: Optional[str] = None
    size_numeric: Optional[float] = None

    lowest_ask: Optional[Decimal] = None
    highest_bid: Optional[Decimal] = None
    last_sale: Optional[Decimal] = None
    global_indicator: Optional[Decimal] = None

    # StockX pricing suggestions
    sell_faster: Optional[Decimal] = None
    earn_more: Optional[Decimal] = None
    beat_us: Optional[Decimal] = None

    # Liquidity
    sales_72h: Optional[int] = None
    sales_30d: Optional[int] = None
    total_sales_volume: Optional[int] = None
    ask_count: Optional[int] = None
    bid_count: Optional[int] = None

    is_flex: bool = False
    is_consigned: bool = False

    def dedupe_key(self) -> str:
        """Identity of the row, snapshot time excluded."""
        return "|".join([
            self.provider,
            self.provider_source,
            self.provider_product_id,
            self.provider_variant_id or "",
            self.size_key,
            self.currency,
            self.region,
        ])

    def has_prices(self) -> bool:
        """True when at least one of ask, bid or last sale is known."""
        return any(
            v is not None for v in (self.lowest_ask, self.highest_bid, self.last_sale)
        )

    def with_sales(
        self,
        sales_72h: int,
        sales_30d: int,
        last_sale: Optional[Decimal] = None,
        total_sales_volume: Optional[int] = None,
    ) -> "MarketRow":
        """Copy with sales velocity attached."""
        return replace(
            self,
            sales_72h=sales_72h,
            sales_30d=sales_30d,
            last_sale=last_sale if last_sale is not None else self.last_sale,
            total_sales_volume=total_sales_volume,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "provider": self.provider,
            "provider_source": self.provider_source,
            "provider_product_id": self.provider_product_id,
            "provider_variant_id": self.provider_variant_id,
            "sku": self.sku,
            "size_key": self.size_key,
            "size_numeric": self.size_numeric,
            "currency": self.currency,
            "region": self.region,
            "snapshot_at": self.snapshot_at.isoformat(),
            "lowest_ask": _dec(self.lowest_ask),
            "highest_bid": _dec(self.highest_bid),
            "last_sale": _dec(self.last_sale),
            "global_indicator": _dec(self.global_indicator),
            "sell_faster": _dec(self.sell_faster),
            "earn_more": _dec(self.earn_more),
            "beat_us": _dec(self.beat_us),
            "sales_72h": self.sales_72h,
            "sales_30d": self.sales_30d,
            "total_sales_volume": self.total_sales_volume,
            "ask_count": self.ask_count,
            "bid_count": self.bid_count,
            "is_flex": self.is_flex,
            "is_consigned": self.is_consigned,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketRow":
        """Create from dictionary."""
        return cls(
            provider=data["provider"],
            provider_source=data["provider_source"],
            provider_product_id=data["provider_product_id"],
            provider_variant_id=data.get("provider_variant_id"),
            sku=data.get("sku"),
            size_key=data["size_key"],
            size_numeric=data.get("size_numeric"),
            currency=data["currency"],
            region=data["region"],
            snapshot_at=datetime.fromisoformat(data["snapshot_at"]),
            lowest_ask=_from_dec(data.get("lowest_ask")),
            highest_bid=_from_dec(data.get("highest_bid")),
            last_sale=_from_dec(data.get("last_sale")),
            global_indicator=_from_dec(data.get("global_indicator")),
            sell_faster=_from_dec(data.get("sell_faster")),
            earn_more=_from_dec(data.get("earn_more")),
            beat_us=_from_dec(data.get("beat_us")),
            sales_72h=data.get("sales_72h"),
            sales_30d=data.get("sales_30d"),
            total_sales_volume=data.get("total_sales_volume"),
            ask_count=data.get("ask_count"),
            bid_count=data.get("bid_count"),
            is_flex=bool(data.get("is_flex", False)),
            is_consigned=bool(data.get("is_consigned", False)),
        )


@dataclass(frozen=True)
class SaleRecord:
    """A single completed marketplace sale."""
    provider: str
    provider_product_id: str
    size_key: str
    price: Decimal
    currency: str
    region: str
    sold_at: datetime
    is_consigned: bool = False
    sku: Optional[str] = None
    size_numeric: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider": self.provider,
            "provider_product_id": self.provider_product_id,
            "sku": self.sku,
            "size_key": self.size_key,
            "size_numeric": self.size_numeric,
            "price": str(self.price),
            "currency": self.currency,
            "region": self.region,
            "sold_at": self.sold_at.isoformat(),
            "is_consigned": self.is_consigned,
        }


@dataclass(frozen=True)
class VariantRecord:
    """A sellable size of a catalog product."""
    provider: str
    provider_product_id: str
    provider_variant_id: str
    size_key: str
    size_numeric: Optional[float] = None
    gtins: tuple[str, ...] = ()
    is_flex_eligible: bool = False
    is_direct_eligible: bool = False


@dataclass(frozen=True)
class CatalogRecord:
    """Catalog product as described by a marketplace."""
    provider: str
    provider_product_id: str
    sku: str
    name: str
    brand: Optional[str] = None
    colorway: Optional[str] = None
    gender: Optional[str] = None
    category: Optional[str] = None
    release_date: Optional[str] = None
    retail_price: Optional[Decimal] = None
    size_unit: Optional[str] = None
    allowed_sizes: tuple[float, ...] = ()
    image_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "provider": self.provider,
            "provider_product_id": self.provider_product_id,
            "sku": self.sku,
            "name": self.name,
            "brand": self.brand,
            "colorway": self.colorway,
            "gender": self.gender,
            "category": self.category,
            "release_date": self.release_date,
            "retail_price": _dec(self.retail_price),
            "size_unit": self.size_unit,
            "allowed_sizes": list(self.allowed_sizes),
            "image_url": self.image_url,
        }


NormalizedRecord = Union[CatalogRecord, VariantRecord, MarketRow, SaleRecord]


@dataclass
class SourceHealth:
    """Health status of a data source."""
    status: SourceStatus
    last_check: datetime
    latency_ms: Optional[float] = None
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0
    uptime_percentage: float = 100.0
    rate_limited_count: int = 0

    def is_healthy(self) -> bool:
        """Check if source is operational."""
        return self.status == SourceStatus.HEALTHY

    def is_usable(self) -> bool:
        """Check if source can still be used (healthy or degraded)."""
        return self.status in (SourceStatus.HEALTHY, SourceStatus.DEGRADED, SourceStatus.UNKNOWN)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
            "uptime_percentage": self.uptime_percentage,
            "rate_limited_count": self.rate_limited_count,
        }


@dataclass
class SourceMetadata:
    """Metadata about a marketplace provider."""
    name: str
    display_name: str
    version: str
    supported_data_types: list[DataType]
    supported_currencies: list[str]
    rate_limit_per_minute: int
    native_price_unit: str = "major"  # "major" or "cents"
    supported_regions: list[str] = field(default_factory=list)
    requires_auth: bool = True
    base_url: str = ""
    documentation_url: str = ""
    priority: int = 0  # Lower = preferred when prices tie
    tags: list[str] = field(default_factory=list)

    def supports(self, data_type: DataType) -> bool:
        """Check if data type is supported."""
        return data_type in self.supported_data_types

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "display_name": self.display_name,
            "version": self.version,
            "supported_data_types": [d.value for d in self.supported_data_types],
            "supported_currencies": self.supported_currencies,
            "supported_regions": self.supported_regions,
            "rate_limit_per_minute": self.rate_limit_per_minute,
            "native_price_unit": self.native_price_unit,
            "requires_auth": self.requires_auth,
            "base_url": self.base_url,
            "documentation_url": self.documentation_url,
            "priority": self.priority,
            "tags": self.tags,
        }


@dataclass
class FetchRequest:
    """Request parameters for fetching marketplace data."""
    data_type: DataType = DataType.MARKET_DATA
    sku: Optional[str] = None
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    currency: str = "GBP"
    region_id: Optional[str] = None
    size: Optional[str] = None
    consigned: Optional[bool] = None
    allowed_sizes: Optional[frozenset[float]] = None
    limit: int = 100

    def validate(self) -> None:
        """Validate request parameters."""
        if self.data_type == DataType.CATALOG_SEARCH:
            if not self.sku:
                raise ValueError("sku is required for catalog search")
        elif not self.product_id:
            raise ValueError(f"product_id is required for {self.data_type.value}")
        if self.limit < 1 or self.limit > 1000:
            raise ValueError("Limit must be between 1 and 1000")
        if self.region_id is not None and self.region_id not in ALIAS_REGIONS:
            raise ValueError(f"Unknown region_id: {self.region_id}")

    def describe(self) -> dict[str, Any]:
        """Parameters recorded on incidents."""
        return {
            "data_type": self.data_type.value,
            "sku": self.sku,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "currency": self.currency,
            "region_id": self.region_id,
        }


@dataclass
class SourceIncident:
    """Record of a data source incident."""
    source_name: str
    incident_type: str
    timestamp: datetime
    error_message: str
    request_params: Optional[dict[str, Any]] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source_name": self.source_name,
            "incident_type": self.incident_type,
            "timestamp": self.timestamp.isoformat(),
            "error_message": self.error_message,
            "request_params": self.request_params,
            "resolution": self.resolution,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }
