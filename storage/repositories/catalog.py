"""
Catalog & Inventory Repositories.

============================================================
PURPOSE
============================================================
- CatalogRepository: style catalog rows (SKU -> provider ids)
- InventoryRepository: user inventory items

============================================================
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from data_ingestion.normalizers.sizes import normalize_size_to_uk
from data_ingestion.normalizers.sku import normalize_sku
from data_sources.models import CatalogRecord, Provider
from storage.models.catalog import CatalogProduct, InventoryItem
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import ValidationError


ACTIVE_STATUSES = ("active", "listed")
INVENTORY_STATUSES = ("active", "listed", "sold", "archived")

_BACKFILL_FIELDS = ("brand", "name", "colorway", "gender", "category", "retail_price", "image_url")


def _clean_sku(sku: str) -> str:
    return normalize_sku(sku) or sku.strip().upper()


class CatalogRepository(BaseRepository[CatalogProduct]):
    """Style catalog persistence."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, CatalogProduct, "catalog")

    def get_by_sku(self, sku: str) -> Optional[CatalogProduct]:
        stmt = select(CatalogProduct).where(CatalogProduct.sku == _clean_sku(sku))
        return self._execute_scalar(stmt)

    def get_or_create(self, sku: str) -> CatalogProduct:
        """Return the catalog row for a SKU, creating an empty one."""
        product = self.get_by_sku(sku)
        if product is not None:
            return product
        clean = _clean_sku(sku)
        self._logger.info(f"Creating catalog entry for {clean}")
        return self._add(CatalogProduct(sku=clean), {"field": "sku", "value": clean})

    def list_all(self) -> List[CatalogProduct]:
        return self._execute_query(select(CatalogProduct).order_by(CatalogProduct.sku))

    def list_by_skus(self, skus: Iterable[str]) -> List[CatalogProduct]:
        clean = sorted({_clean_sku(s) for s in skus})
        if not clean:
            return []
        return self._execute_query(select(CatalogProduct).where(CatalogProduct.sku.in_(clean)))

    def set_provider_id(self, sku: str, provider: str, product_id: str) -> CatalogProduct:
        """Record the StockX product id or Alias catalog id for a SKU."""
        product = self.get_or_create(sku)
        if provider == Provider.STOCKX.value:
            product.stockx_product_id = product_id
        elif provider == Provider.ALIAS.value:
            product.alias_catalog_id = product_id
        else:
            raise ValidationError(self._repository_name, "set_provider_id", "provider", f"unknown provider {provider}")
        self._session.flush()
        return product

    def backfill_metadata(self, sku: str, record: CatalogRecord) -> List[str]:
        """
        Copy descriptive fields from a provider record into empty
        catalog fields. Existing values are never overwritten.

        Returns:
            Names of the fields that were filled
        """
        product = self.get_or_create(sku)
        filled = []
        for field_name in _BACKFILL_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None and value != "" and getattr(product, field_name) is None:
                setattr(product, field_name, value)
                filled.append(field_name)
        if filled:
            self._session.flush()
            self._logger.debug(f"Backfilled {product.sku} from {record.provider}: {', '.join(filled)}")
        return filled


class InventoryRepository(BaseRepository[InventoryItem]):
    """Inventory persistence."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, InventoryItem, "inventory")

    def create(
        self,
        sku: str,
        purchase_price: Decimal,
        size: Optional[str] = None,
        quantity: int = 1,
        owner_id: Optional[str] = None,
        brand: Optional[str] = None,
        model: Optional[str] = None,
        category: str = "sneakers",
        tax: Optional[Decimal] = None,
        shipping: Optional[Decimal] = None,
        purchase_currency: str = "GBP",
        purchase_date: Optional[date] = None,
        gender: Optional[str] = None,
    ) -> InventoryItem:
        """
        Create an inventory item; the size is normalized to UK.

        Raises:
            ValidationError: Non-positive quantity or negative price
        """
        if quantity < 1:
            raise ValidationError(self._repository_name, "create", "quantity", "must be at least 1")
        if purchase_price < 0:
            raise ValidationError(self._repository_name, "create", "purchase_price", "must not be negative")

        item = InventoryItem(
            owner_id=owner_id,
            sku=_clean_sku(sku),
            brand=brand,
            model=model,
            category=category,
            size=size,
            size_uk=normalize_size_to_uk({"size": size}, gender) if size else None,
            quantity=quantity,
            purchase_price=purchase_price,
            tax=tax,
            shipping=shipping,
            purchase_currency=purchase_currency.upper(),
            purchase_date=purchase_date,
        )
        return self._add(item)

    def get(self, item_id: UUID) -> InventoryItem:
        return self._get_by_id_or_raise(item_id)

    def list_active(self, owner_id: Optional[str] = None) -> List[InventoryItem]:
        """Items still held (active or listed)."""
        stmt = select(InventoryItem).where(InventoryItem.status.in_(ACTIVE_STATUSES))
        if owner_id is not None:
            stmt = stmt.where(InventoryItem.owner_id == owner_id)
        return self._execute_query(stmt.order_by(InventoryItem.created_at))

    def list_by_sku(self, sku: str) -> List[InventoryItem]:
        stmt = select(InventoryItem).where(InventoryItem.sku == _clean_sku(sku))
        return self._execute_query(stmt)

    def active_skus(self) -> List[str]:
        stmt = (
            select(InventoryItem.sku)
            .where(InventoryItem.status.in_(ACTIVE_STATUSES))
            .distinct()
            .order_by(InventoryItem.sku)
        )
        return [row[0] for row in self._execute_rows(stmt)]

    def set_status(self, item_id: UUID, status: str) -> InventoryItem:
        if status not in INVENTORY_STATUSES:
            raise ValidationError(self._repository_name, "set_status", "status", f"unknown status {status}")
        item = self.get(item_id)
        item.status = status
        self._session.flush()
        return item

    def set_custom_market_value(self, item_id: UUID, value: Optional[Decimal]) -> InventoryItem:
        item = self.get(item_id)
        item.custom_market_value = value
        self._session.flush()
        return item
