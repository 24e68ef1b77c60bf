"""
Portfolio - Service.

Loads inventory and market snapshots from storage and feeds
them to the valuator and repricing engine.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from core.clock import now_utc, start_of_day
from market_pricing.currency import convert
from market_pricing.engine import PricingEngine, quotes_from_row
from market_pricing.unifier import find_size, split_provider_rows, unify_variants
from portfolio.config import PortfolioConfig, get_default_config
from portfolio.repricing import RepricingEngine
from portfolio.types import (
    ItemROI,
    MarketPrice,
    MarketSummary,
    PortfolioItem,
    PortfolioValuation,
    RepricingSuggestion,
)
from portfolio.valuation import PortfolioValuator, build_value_series, market_size_key
from storage.models.catalog import InventoryItem
from storage.repositories.catalog import InventoryRepository
from storage.repositories.market import MarketRepository


logger = logging.getLogger(__name__)


def to_portfolio_item(item: InventoryItem) -> PortfolioItem:
    """Detach an inventory row into a PortfolioItem."""
    return PortfolioItem(
        id=str(item.id),
        sku=item.sku,
        purchase_price=item.purchase_price,
        quantity=item.quantity,
        size=item.size,
        size_uk=item.size_uk,
        category=item.category,
        brand=item.brand,
        model=item.model,
        tax=item.tax,
        shipping=item.shipping,
        purchase_currency=item.purchase_currency,
        purchase_date=item.purchase_date,
        acquired_at=item.created_at,
        custom_market_value=item.custom_market_value,
    )


def _in_currency(item: PortfolioItem, currency: str) -> PortfolioItem:
    """Copy of an item with its money fields converted."""
    if item.purchase_currency == currency:
        return item

    def conv(amount):
        return convert(amount, item.purchase_currency, currency) if amount is not None else None

    return replace(
        item,
        purchase_price=conv(item.purchase_price),
        tax=conv(item.tax),
        shipping=conv(item.shipping),
        custom_market_value=conv(item.custom_market_value),
        purchase_currency=currency,
    )


class PortfolioService:
    """Portfolio views over stored inventory and market data."""

    def __init__(
        self,
        session: Session,
        pricing: Optional[PricingEngine] = None,
        config: Optional[PortfolioConfig] = None,
    ):
        self._session = session
        self._pricing = pricing or PricingEngine()
        self._config = config or get_default_config()
        self._inventory = InventoryRepository(session)
        self._market = MarketRepository(session)
        self._valuator = PortfolioValuator(self._config)
        self._repricer = RepricingEngine(self._config.repricing, self._config.currency)

    def load_items(self, owner_id: Optional[str] = None) -> List[PortfolioItem]:
        return [to_portfolio_item(i) for i in self._inventory.list_active(owner_id)]

    def market_data(
        self,
        items: Sequence[PortfolioItem],
    ) -> Tuple[Dict[str, Optional[MarketPrice]], Dict[str, MarketSummary]]:
        """
        Unified market price and best ask/bid per item.

        Prices and summaries are in the portfolio currency.
        """
        currency = self._config.currency
        rows_by_sku = self._market.get_rows_for_skus(sorted({i.sku for i in items}))
        pricing_config = self._pricing.config

        unified_by_sku = {}
        for sku, rows in rows_by_sku.items():
            stockx_rows, alias_rows = split_provider_rows(rows, currency)
            unified_by_sku[sku] = unify_variants(
                stockx_rows,
                alias_rows,
                region_id=pricing_config.alias_region_id,
                consigned=pricing_config.alias_consigned,
            )

        prices: Dict[str, Optional[MarketPrice]] = {}
        summaries: Dict[str, MarketSummary] = {}
        for item in items:
            row = find_size(unified_by_sku.get(item.sku, []), market_size_key(item) or "")
            if row is None:
                prices[item.id] = None
                summaries[item.id] = MarketSummary()
                continue

            stockx, alias = quotes_from_row(row)
            price = self._pricing.price(item.sku, row.size_key, stockx, alias, user_currency=currency)
            if price is None:
                prices[item.id] = None
                summaries[item.id] = MarketSummary.from_quotes(
                    [],
                    [
                        convert(q.highest_bid, q.currency or "GBP", currency)
                        for q in (stockx, alias)
                        if q is not None and q.highest_bid is not None
                    ],
                )
                continue

            timestamps = [t for t in (row.stockx_updated_at, row.alias_updated_at) if t is not None]
            prices[item.id] = MarketPrice(
                value=price.value,
                currency=price.currency,
                as_of=max(timestamps) if timestamps else None,
                source=price.source.value,
                confidence=price.confidence.value,
            )
            summaries[item.id] = MarketSummary.from_quotes(
                [price.inputs.stockx_ask, price.inputs.alias_ask],
                [price.bids.stockx_bid, price.bids.alias_bid],
            )

        return prices, summaries

    def overview(self, owner_id: Optional[str] = None) -> PortfolioValuation:
        """KPIs, category breakdown and value history."""
        now = now_utc()
        items = self.load_items(owner_id)
        if not items:
            return self._valuator.value([], {}, now=now)

        prices, _ = self.market_data(items)
        today = now.date()
        since = start_of_day(today - timedelta(days=self._config.series_days - 1))
        daily = self._market.daily_lowest_asks(sorted({i.sku for i in items}), since)
        series = build_value_series(
            items, daily, today, days=self._config.series_days, currency=self._config.currency
        )
        return self._valuator.value(items, prices, series=series, now=now)

    def item_rois(self, owner_id: Optional[str] = None) -> List[ItemROI]:
        items = self.load_items(owner_id)
        prices, _ = self.market_data(items)
        return self._valuator.item_rois(items, prices)

    def repricing(self, owner_id: Optional[str] = None) -> List[RepricingSuggestion]:
        """Repricing suggestions for held items."""
        items = self.load_items(owner_id)
        if not items:
            return []
        _, summaries = self.market_data(items)
        converted = [_in_currency(i, self._config.currency) for i in items]
        return self._repricer.suggest(converted, summaries, today=now_utc().date())
