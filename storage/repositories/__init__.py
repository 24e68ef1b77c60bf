"""
Storage Repositories Package.

============================================================
PURPOSE
============================================================
Data access layer between services and ORM models.

- Session is injected into each repository
- Repositories flush; callers commit
- All database errors are wrapped in RepositoryException

============================================================
REPOSITORIES
============================================================
- CatalogRepository / InventoryRepository
- MarketRepository
- SalesRepository
- SyncJobRepository

============================================================
"""

from storage.repositories.base import BaseRepository
from storage.repositories.catalog import CatalogRepository, InventoryRepository
from storage.repositories.exceptions import (
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
    ValidationError,
)
from storage.repositories.market import MarketRepository
from storage.repositories.sales import SalesRepository
from storage.repositories.sync import SyncJobRepository


__all__ = [
    "BaseRepository",
    "CatalogRepository",
    "InventoryRepository",
    "MarketRepository",
    "SalesRepository",
    "SyncJobRepository",
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "IntegrityError",
    "ConnectionError",
    "QueryError",
    "ValidationError",
]
