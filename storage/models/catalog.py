"""
Catalog & Inventory ORM Models.

============================================================
MODELS
============================================================
- CatalogProduct: One row per style id (SKU), with the
  provider ids it maps to
- InventoryItem: A user-owned item (one SKU, one size)

============================================================
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Date,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, Money, TimestampMixin


class CatalogProduct(Base, TimestampMixin):
    """
    Style catalog entry.

    A SKU maps to at most one StockX product and one Alias
    catalog item. Descriptive fields are backfilled from the
    providers when empty.
    """

    __tablename__ = "catalog_products"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    sku: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="Normalized style id"
    )

    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    colorway: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    stockx_product_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment="StockX product uuid"
    )

    alias_catalog_id: Mapped[Optional[str]] = mapped_column(
        String(128),
        nullable=True,
        comment="Alias catalog id (slug)"
    )

    retail_price: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_catalog_stockx_product", "stockx_product_id"),
        Index("idx_catalog_alias_catalog", "alias_catalog_id"),
    )


class InventoryItem(Base, TimestampMixin):
    """
    A user-owned inventory item.

    Cost basis is purchase_price + tax + shipping per unit,
    in purchase_currency.
    """

    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    sku: Mapped[str] = mapped_column(String(32), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="sneakers")

    size: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Size as entered by the user"
    )

    size_uk: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Size normalized to UK"
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    purchase_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    tax: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    shipping: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    purchase_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="GBP")
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active | listed | sold | archived"
    )

    custom_market_value: Mapped[Optional[Decimal]] = mapped_column(
        Money,
        nullable=True,
        comment="User override of the market value"
    )

    listed_price: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    sold_price: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    sold_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        Index("idx_inventory_owner_status", "owner_id", "status"),
        Index("idx_inventory_sku_size", "sku", "size_uk"),
    )
