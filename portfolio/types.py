"""
Portfolio - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for portfolio valuation, item ROI and
repricing suggestions.

============================================================
DESIGN PRINCIPLES
============================================================
- Types are plain dataclasses, independent of the ORM
- Money is Decimal in the portfolio currency
- Percentages are rounded to 2dp on output

============================================================
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


# ============================================================
# INPUTS
# ============================================================


@dataclass(frozen=True)
class PortfolioItem:
    """An item held in inventory, detached from the database."""
    id: str
    sku: str
    purchase_price: Decimal
    quantity: int = 1
    size: Optional[str] = None
    size_uk: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    tax: Optional[Decimal] = None
    shipping: Optional[Decimal] = None
    purchase_currency: str = "GBP"
    purchase_date: Optional[date] = None
    acquired_at: Optional[datetime] = None
    custom_market_value: Optional[Decimal] = None

    @property
    def cost_basis(self) -> Decimal:
        """Per-unit cost: purchase price plus tax and shipping."""
        return self.purchase_price + (self.tax or Decimal("0")) + (self.shipping or Decimal("0"))

    @property
    def held_since(self) -> Optional[date]:
        if self.purchase_date is not None:
            return self.purchase_date
        return self.acquired_at.date() if self.acquired_at else None


@dataclass(frozen=True)
class MarketPrice:
    """Market value of one unit of an item."""
    value: Decimal
    currency: str
    as_of: Optional[datetime] = None
    source: Optional[str] = None
    confidence: Optional[str] = None


@dataclass(frozen=True)
class MarketSummary:
    """Best ask and bid across providers for one item."""
    lowest_ask: Optional[Decimal] = None
    highest_bid: Optional[Decimal] = None

    @classmethod
    def from_quotes(cls, asks: List[Optional[Decimal]], bids: List[Optional[Decimal]]) -> "MarketSummary":
        """Lowest ask and highest bid, ignoring missing and zero prices."""
        valid_asks = [a for a in asks if a]
        valid_bids = [b for b in bids if b]
        return cls(
            lowest_ask=min(valid_asks) if valid_asks else None,
            highest_bid=max(valid_bids) if valid_bids else None,
        )


# ============================================================
# VALUATION OUTPUT
# ============================================================


@dataclass(frozen=True)
class ItemROI:
    """Return on one item against its full cost basis."""
    item_id: str
    sku: str
    cost: Decimal
    market_value: Optional[Decimal]
    profit: Optional[Decimal]
    roi_pct: Optional[Decimal]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "sku": self.sku,
            "cost": str(self.cost),
            "market_value": _money(self.market_value),
            "profit": _money(self.profit),
            "roi_pct": _money(self.roi_pct),
        }


@dataclass(frozen=True)
class CategoryValue:
    category: str
    value: Decimal
    percentage: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "value": str(self.value),
            "percentage": str(self.percentage),
        }


@dataclass(frozen=True)
class MissingPriceItem:
    id: str
    sku: str
    size_uk: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "sku": self.sku, "size_uk": self.size_uk}


@dataclass(frozen=True)
class ValuePoint:
    day: date
    value: Optional[Decimal]

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.day.isoformat(), "value": _money(self.value)}


@dataclass
class PortfolioValuation:
    """Portfolio KPIs, breakdown and value history."""
    currency: str
    is_empty: bool
    estimated_value: Decimal
    invested: Decimal
    unrealised_pl: Decimal
    roi: Decimal
    missing_prices_count: int
    prices_as_of: datetime
    unrealised_pl_delta_7d: Optional[Decimal] = None
    category_breakdown: List[CategoryValue] = field(default_factory=list)
    missing_items: List[MissingPriceItem] = field(default_factory=list)
    series_30d: List[ValuePoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "is_empty": self.is_empty,
            "kpis": {
                "estimated_value": str(self.estimated_value),
                "invested": str(self.invested),
                "unrealised_pl": str(self.unrealised_pl),
                "unrealised_pl_delta_7d": _money(self.unrealised_pl_delta_7d),
                "roi": str(self.roi),
                "missing_prices_count": self.missing_prices_count,
            },
            "series_30d": [p.to_dict() for p in self.series_30d],
            "category_breakdown": [c.to_dict() for c in self.category_breakdown],
            "missing_items": [m.to_dict() for m in self.missing_items],
            "meta": {"prices_as_of": self.prices_as_of.isoformat()},
        }


# ============================================================
# REPRICING
# ============================================================


class Urgency(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {Urgency.HIGH: 0, Urgency.MEDIUM: 1, Urgency.LOW: 2}[self]


class SuggestionConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class RepricingSuggestion:
    """A suggested new asking price for one item."""
    item_id: str
    sku: str
    current_price: Decimal
    purchase_cost: Decimal
    days_in_inventory: int
    suggested_price: Decimal
    price_change: Decimal
    price_change_pct: Decimal
    expected_margin: Decimal
    reason: str
    urgency: Urgency
    confidence: SuggestionConfidence
    market_lowest_ask: Optional[Decimal] = None
    market_highest_bid: Optional[Decimal] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    size_uk: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "sku": self.sku,
            "brand": self.brand,
            "model": self.model,
            "size_uk": self.size_uk,
            "current_price": str(self.current_price),
            "purchase_cost": str(self.purchase_cost),
            "days_in_inventory": self.days_in_inventory,
            "market_lowest_ask": _money(self.market_lowest_ask),
            "market_highest_bid": _money(self.market_highest_bid),
            "suggested_price": str(self.suggested_price),
            "price_change": str(self.price_change),
            "price_change_pct": str(self.price_change_pct),
            "expected_margin": str(self.expected_margin),
            "reason": self.reason,
            "urgency": self.urgency.value,
            "confidence": self.confidence.value,
        }
