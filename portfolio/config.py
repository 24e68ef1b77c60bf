"""
Portfolio - Configuration.

============================================================
PURPOSE
============================================================
Valuation settings and repricing rules.

============================================================
REPRICING RULES
============================================================
Items are bucketed by days held:
- >= aggressive_after_days (180): dead stock, beat the lowest
  ask by twice the margin or mark down 20%
- >= moderate_after_days (90): stale, beat the lowest ask or
  mark down 10%
- otherwise: only reprice when above the lowest ask

Items held less than min_age_days (30) are never repriced,
and no suggestion goes below minimum_margin_pct over cost.

============================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class RepricingRules:
    """Thresholds for repricing suggestions."""

    aggressive_after_days: int = 180
    moderate_after_days: int = 90
    min_age_days: int = 30

    minimum_margin_pct: Decimal = Decimal("5")
    target_margin_pct: Decimal = Decimal("20")

    # Amount to undercut the lowest ask by, in portfolio currency
    beat_lowest_ask_by: Decimal = Decimal("5")
    match_highest_bid: bool = False
    enabled: bool = True

    # Changes smaller than both are not worth suggesting
    min_change_amount: Decimal = Decimal("1")
    min_change_pct: Decimal = Decimal("2")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "aggressive_after_days": self.aggressive_after_days,
            "moderate_after_days": self.moderate_after_days,
            "min_age_days": self.min_age_days,
            "minimum_margin_pct": str(self.minimum_margin_pct),
            "target_margin_pct": str(self.target_margin_pct),
            "beat_lowest_ask_by": str(self.beat_lowest_ask_by),
            "match_highest_bid": self.match_highest_bid,
            "enabled": self.enabled,
            "min_change_amount": str(self.min_change_amount),
            "min_change_pct": str(self.min_change_pct),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepricingRules":
        defaults = cls()

        def dec(key: str) -> Decimal:
            return Decimal(str(data.get(key, getattr(defaults, key))))

        return cls(
            aggressive_after_days=int(data.get("aggressive_after_days", defaults.aggressive_after_days)),
            moderate_after_days=int(data.get("moderate_after_days", defaults.moderate_after_days)),
            min_age_days=int(data.get("min_age_days", defaults.min_age_days)),
            minimum_margin_pct=dec("minimum_margin_pct"),
            target_margin_pct=dec("target_margin_pct"),
            beat_lowest_ask_by=dec("beat_lowest_ask_by"),
            match_highest_bid=bool(data.get("match_highest_bid", defaults.match_highest_bid)),
            enabled=bool(data.get("enabled", defaults.enabled)),
            min_change_amount=dec("min_change_amount"),
            min_change_pct=dec("min_change_pct"),
        )


@dataclass
class PortfolioConfig:
    """Portfolio valuation settings."""

    currency: str = "GBP"

    # Value history window and delta lookback
    series_days: int = 30
    delta_days: int = 7

    default_category: str = "Other"

    repricing: RepricingRules = field(default_factory=RepricingRules)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency,
            "series_days": self.series_days,
            "delta_days": self.delta_days,
            "default_category": self.default_category,
            "repricing": self.repricing.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PortfolioConfig":
        config = cls()
        config.currency = str(data.get("currency", config.currency)).upper()
        config.series_days = int(data.get("series_days", config.series_days))
        config.delta_days = int(data.get("delta_days", config.delta_days))
        config.default_category = data.get("default_category", config.default_category)
        if "repricing" in data:
            config.repricing = RepricingRules.from_dict(data["repricing"] or {})
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "PortfolioConfig":
        """Load configuration from YAML file (top-level or under "portfolio")."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get("portfolio", data))


def get_default_config() -> PortfolioConfig:
    """Get default configuration."""
    return PortfolioConfig()


def load_config(path: Optional[Path] = None) -> PortfolioConfig:
    """Load configuration from file or return defaults."""
    if path and Path(path).exists():
        return PortfolioConfig.from_yaml(Path(path))
    return get_default_config()
