"""
Portfolio - Package.

============================================================
PURPOSE
============================================================
Values held inventory at market, computes ROI and suggests
repricing.

============================================================
USAGE
============================================================
    from portfolio import PortfolioService

    with get_db_session() as session:
        overview = PortfolioService(session).overview()
        print(overview.estimated_value, overview.roi)

============================================================
"""

from .types import (
    CategoryValue,
    ItemROI,
    MarketPrice,
    MarketSummary,
    MissingPriceItem,
    PortfolioItem,
    PortfolioValuation,
    RepricingSuggestion,
    SuggestionConfidence,
    Urgency,
    ValuePoint,
)
from .config import PortfolioConfig, RepricingRules, get_default_config, load_config
from .valuation import (
    PortfolioValuator,
    build_value_series,
    item_roi,
    market_size_key,
    size_matches,
    value_delta,
)
from .repricing import RepricingEngine
from .service import PortfolioService, to_portfolio_item


__all__ = [
    "CategoryValue",
    "ItemROI",
    "MarketPrice",
    "MarketSummary",
    "MissingPriceItem",
    "PortfolioItem",
    "PortfolioValuation",
    "RepricingSuggestion",
    "SuggestionConfidence",
    "Urgency",
    "ValuePoint",
    "PortfolioConfig",
    "RepricingRules",
    "get_default_config",
    "load_config",
    "PortfolioValuator",
    "build_value_series",
    "item_roi",
    "market_size_key",
    "size_matches",
    "value_delta",
    "RepricingEngine",
    "PortfolioService",
    "to_portfolio_item",
]
