"""
Shared test fixtures.

============================================================
PURPOSE
============================================================
- In-memory SQLite engine and session with all tables
- Frozen clock for time-dependent code
- Factories for market rows and sale records

============================================================
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from core.clock import ClockFactory
from data_sources.models import MarketRow, SaleRecord
from database.engine import create_database_engine
from storage.models import Base


FROZEN_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================
# DATABASE FIXTURES
# ============================================================

@pytest.fixture
def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_database_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Session bound to the in-memory engine."""
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    session = factory()
    yield session
    session.close()


# ============================================================
# CLOCK FIXTURES
# ============================================================

@pytest.fixture
def clock():
    """Global clock frozen at FROZEN_NOW."""
    with ClockFactory.use_mock(FROZEN_NOW) as mock:
        yield mock


# ============================================================
# DATA FACTORIES
# ============================================================

@pytest.fixture
def make_row():
    """Build a MarketRow with sensible defaults."""

    def _make(**overrides):
        values = {
            "provider": "stockx",
            "provider_product_id": "sx-prod-1",
            "sku": "DD1391-100",
            "size_key": "10",
            "currency": "GBP",
            "region": "UK",
            "lowest_ask": Decimal("150.00"),
            "highest_bid": Decimal("120.00"),
            "provider_source": "stockx_market_data",
            "snapshot_at": FROZEN_NOW,
        }
        values.update(overrides)
        return MarketRow(**values)

    return _make


@pytest.fixture
def make_sale():
    """Build a SaleRecord with sensible defaults."""

    def _make(**overrides):
        values = {
            "provider": "alias",
            "provider_product_id": "alias-cat-1",
            "sku": "DD1391-100",
            "size_key": "10",
            "currency": "USD",
            "price": Decimal("145.00"),
            "sold_at": datetime(2024, 6, 10, 9, 30, tzinfo=timezone.utc),
            "region": "UK",
            "is_consigned": False,
        }
        values.update(overrides)
        return SaleRecord(**values)

    return _make
