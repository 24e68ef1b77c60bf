"""
Marketplace data sources.

StockX and Alias (GOAT) clients behind one interface. Each
provider turns its own payloads into MarketRow, SaleRecord,
CatalogRecord or VariantRecord, and the shared base retries
gateway errors, honours 429 Retry-After and tracks health.

Example:
    async with SourceRegistry() as registry:
        setup_default_sources(registry)
        rows = await registry.fetch("stockx", FetchRequest(
            data_type=DataType.MARKET_DATA,
            product_id="0f1c4c38-...",
            currency="GBP",
        ))

A new marketplace subclasses BaseMarketDataSource, sets
BASE_URL, CREDENTIAL_ENV and HEALTH_PROBE, and implements
name, metadata(), _auth_headers(), fetch_raw() and normalize().
"""

from data_sources.models import (
    ALIAS_REGIONS,
    CatalogRecord,
    DataType,
    FetchRequest,
    MarketRow,
    NormalizedRecord,
    Provider,
    SaleRecord,
    SourceHealth,
    SourceIncident,
    SourceMetadata,
    SourceStatus,
    VariantRecord,
)
from data_sources.exceptions import (
    ConfigurationError,
    DataSourceError,
    FetchError,
    AuthenticationError,
    NormalizationError,
    RateLimitError,
)
from data_sources.base import BaseMarketDataSource
from data_sources.providers import AliasMarketSource, StockXMarketSource
from data_sources.registry import (
    SourceRegistry,
    get_default_registry,
    setup_default_sources,
)


__version__ = "1.0.0"

__all__ = [
    # Base
    "BaseMarketDataSource",

    # Models
    "ALIAS_REGIONS",
    "CatalogRecord",
    "MarketRow",
    "SaleRecord",
    "VariantRecord",
    "NormalizedRecord",
    "SourceHealth",
    "SourceMetadata",
    "SourceIncident",
    "SourceStatus",
    "Provider",
    "DataType",
    "FetchRequest",

    # Exceptions
    "DataSourceError",
    "FetchError",
    "NormalizationError",
    "RateLimitError",
    "AuthenticationError",
    "ConfigurationError",

    # Providers
    "StockXMarketSource",
    "AliasMarketSource",

    # Registry
    "SourceRegistry",
    "get_default_registry",
    "setup_default_sources",
]
