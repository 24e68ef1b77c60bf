"""
Storage Models Package.

ORM models for the portfolio tracker database, organized by
domain.

============================================================
MODEL ORGANIZATION
============================================================

Catalog & Inventory (catalog.py)
- CatalogProduct
- InventoryItem

Market Data (market.py)
- MarketSnapshot
- MarketPriceHistory

Sales History (sales.py)
- SalesEvent
- SalesDailyAggregate
- SalesMonthlyAggregate

Sync Queue (sync.py)
- SyncJob

============================================================
DESIGN PRINCIPLES
============================================================

- All timestamps are timezone-aware UTC
- Money columns are NUMERIC(12, 2) in major units
- Portable column types (runs on PostgreSQL and SQLite)
- No business logic in models

============================================================
"""

from storage.models.base import Base, Money, MoneyTotal, TimestampMixin, UTCDateTime
from storage.models.catalog import CatalogProduct, InventoryItem
from storage.models.market import MarketPriceHistory, MarketSnapshot
from storage.models.sales import (
    SalesDailyAggregate,
    SalesEvent,
    SalesMonthlyAggregate,
)
from storage.models.sync import SyncJob


__all__ = [
    "Base",
    "Money",
    "MoneyTotal",
    "TimestampMixin",
    "UTCDateTime",
    "CatalogProduct",
    "InventoryItem",
    "MarketSnapshot",
    "MarketPriceHistory",
    "SalesEvent",
    "SalesDailyAggregate",
    "SalesMonthlyAggregate",
    "SyncJob",
]
