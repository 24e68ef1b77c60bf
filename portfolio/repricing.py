"""
Portfolio - Repricing Suggestions.

============================================================
PURPOSE
============================================================
Suggests new asking prices for items that have been held too
long or are priced above the market.

============================================================
RULES
============================================================
Current price = custom market value, else cost x 1.2.

1. Dead stock (>= aggressive_after_days):
   lowest ask - 2 x beat, else a 20% markdown. HIGH urgency.
2. Stale (>= moderate_after_days):
   lowest ask - beat, else the highest bid when matching bids,
   else a 10% markdown. MEDIUM urgency.
3. Otherwise only when current price > lowest ask:
   lowest ask - beat. LOW urgency.

Suggestions never go below cost x (1 + minimum margin).
Changes under both the amount and percent thresholds are
skipped.

============================================================
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from core.clock import days_since, today_utc
from market_pricing.currency import format_currency, round_money
from portfolio.config import RepricingRules
from portfolio.types import (
    MarketSummary,
    PortfolioItem,
    RepricingSuggestion,
    SuggestionConfidence,
    Urgency,
)


logger = logging.getLogger(__name__)

DEFAULT_MARKUP = Decimal("1.2")
DEAD_STOCK_MARKDOWN = Decimal("0.8")
STALE_MARKDOWN = Decimal("0.9")


class RepricingEngine:
    """
    Produces repricing suggestions for held items.

    All prices are expected in one currency (the portfolio
    currency); the engine does not convert.
    """

    def __init__(self, rules: Optional[RepricingRules] = None, currency: str = "GBP"):
        self._rules = rules or RepricingRules()
        self._currency = currency

    @property
    def rules(self) -> RepricingRules:
        return self._rules

    def suggest(
        self,
        items: Iterable[PortfolioItem],
        market: Mapping[str, MarketSummary],
        today: Optional[date] = None,
    ) -> List[RepricingSuggestion]:
        """
        Suggestions sorted by urgency, then by size of change.

        Args:
            items: Held items
            market: Market summary per item id
            today: Reference date for days held
        """
        if not self._rules.enabled:
            return []

        today = today or today_utc()
        suggestions = []
        for item in items:
            held_since = item.held_since
            if held_since is None:
                continue
            days = days_since(held_since, today)
            if days < self._rules.min_age_days:
                continue

            suggestion = self.suggest_item(item, days, market.get(item.id) or MarketSummary())
            if suggestion is not None:
                suggestions.append(suggestion)

        suggestions.sort(key=lambda s: (s.urgency.rank, -abs(s.price_change)))
        logger.info(f"[repricing] {len(suggestions)} suggestions")
        return suggestions

    def suggest_item(
        self,
        item: PortfolioItem,
        days_in_inventory: int,
        market: MarketSummary,
    ) -> Optional[RepricingSuggestion]:
        """Suggestion for one item, or None when no change is warranted."""
        rules = self._rules
        cost = item.cost_basis
        current = item.custom_market_value or cost * DEFAULT_MARKUP
        ask = market.lowest_ask
        bid = market.highest_bid

        if days_in_inventory >= rules.aggressive_after_days:
            urgency = Urgency.HIGH
            if ask:
                beat = rules.beat_lowest_ask_by * 2
                suggested = ask - beat
                reason = (
                    f"Dead stock ({days_in_inventory}d old). Beat market by "
                    f"{format_currency(beat, self._currency)} for quick sale"
                )
                confidence = SuggestionConfidence.HIGH
            else:
                suggested = current * DEAD_STOCK_MARKDOWN
                reason = f"Dead stock ({days_in_inventory}d old). 20% markdown to move quickly"
                confidence = SuggestionConfidence.LOW
        elif days_in_inventory >= rules.moderate_after_days:
            urgency = Urgency.MEDIUM
            if ask:
                suggested = ask - rules.beat_lowest_ask_by
                reason = f"Stale inventory ({days_in_inventory}d old). Beat market lowest ask"
                confidence = SuggestionConfidence.HIGH
            elif bid and rules.match_highest_bid:
                suggested = bid
                reason = "Stale inventory. Match highest bid for instant sale"
                confidence = SuggestionConfidence.HIGH
            else:
                suggested = current * STALE_MARKDOWN
                reason = f"Stale inventory ({days_in_inventory}d old). 10% markdown"
                confidence = SuggestionConfidence.LOW
        else:
            urgency = Urgency.LOW
            if not ask or current <= ask:
                return None
            suggested = ask - rules.beat_lowest_ask_by
            reason = "Price too high vs market. Beat lowest ask for competitiveness"
            confidence = SuggestionConfidence.HIGH

        minimum = cost * (1 + rules.minimum_margin_pct / 100)
        if suggested < minimum:
            suggested = minimum
            reason += f" (capped at {rules.minimum_margin_pct}% minimum margin)"
            confidence = SuggestionConfidence.MEDIUM

        suggested = round_money(suggested)
        current = round_money(current)
        change = suggested - current
        change_pct = round_money(change / current * 100) if current else Decimal("0")
        if abs(change) < rules.min_change_amount and abs(change_pct) < rules.min_change_pct:
            return None

        margin = round_money((suggested - cost) / suggested * 100) if suggested else Decimal("0")

        return RepricingSuggestion(
            item_id=item.id,
            sku=item.sku,
            brand=item.brand,
            model=item.model,
            size_uk=item.size_uk,
            current_price=current,
            purchase_cost=cost,
            days_in_inventory=days_in_inventory,
            market_lowest_ask=ask,
            market_highest_bid=bid,
            suggested_price=suggested,
            price_change=change,
            price_change_pct=change_pct,
            expected_margin=margin,
            reason=reason,
            urgency=urgency,
            confidence=confidence,
        )
