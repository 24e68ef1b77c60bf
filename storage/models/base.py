"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Declarative base shared by catalog, inventory, market,
sales and sync tables.

============================================================
COMPONENTS
============================================================
- UTCDateTime: timestamps always come back timezone-aware
- Money: price column (2 dp, Decimal on read)
- Base: declarative base; datetime/Decimal annotations map
  to the two types above
- TimestampMixin: created_at / updated_at

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import DateTime, TypeDecorator

from core.clock import ensure_utc, now_utc


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored and returned in UTC.

    SQLite drops tzinfo; naive values read back are UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


# Ask, bid, sale and purchase amounts; totals use a wider column
Money = Numeric(12, 2, asdecimal=True)
MoneyTotal = Numeric(14, 2, asdecimal=True)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    type_annotation_map = {
        datetime: UTCDateTime(),
        Decimal: Money,
    }


class TimestampMixin:
    """
    created_at / updated_at columns.

    updated_at on a MarketSnapshot is the time the row was last
    written by a sync, not the provider's own quote time.
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=now_utc,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=now_utc,
        server_default=func.now(),
        onupdate=now_utc,
    )
