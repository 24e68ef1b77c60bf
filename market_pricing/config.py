"""
Market Pricing - Configuration.

============================================================
PURPOSE
============================================================
User currency, FX rates, fee settings and freshness
thresholds for the pricing engine.

============================================================
DEFAULTS
============================================================
- User currency GBP, Alias region "3" (UK), non-consigned
- FX rates are fixed reference rates, overridable per pair
- Fee settings use the stored-settings shape (commission as
  a percentage) and pass through build_fee_profile()
- Data younger than 1 hour is live, younger than 24 hours
  is recent, anything else is stale

============================================================
"""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from market_pricing.currency import DEFAULT_FX_RATES, parse_rate_table
from market_pricing.fees import build_fee_profile
from market_pricing.types import FeeProfile


def _default_rates() -> Dict[str, float]:
    return {f"{a}_{b}": float(rate) for (a, b), rate in DEFAULT_FX_RATES.items()}


@dataclass
class PricingConfig:
    """Pricing engine settings."""

    user_currency: str = "GBP"

    # Alias region used for the unified size view ("1" US, "2" EU, "3" UK)
    alias_region_id: str = "3"
    alias_consigned: bool = False

    # "GBP_USD": 1.27 style pairs
    fx_rates: Dict[str, float] = field(default_factory=_default_rates)

    # Stored seller settings, e.g. {"stockx_seller_level": 2, "alias_commission_fee": 9.5}
    fee_settings: Dict[str, Any] = field(default_factory=dict)

    live_max_age_minutes: int = 60
    recent_max_age_hours: int = 24

    @property
    def live_max_age(self) -> timedelta:
        return timedelta(minutes=self.live_max_age_minutes)

    @property
    def recent_max_age(self) -> timedelta:
        return timedelta(hours=self.recent_max_age_hours)

    def rate_table(self) -> dict[tuple[str, str], Decimal]:
        return parse_rate_table(self.fx_rates)

    def fee_profile(self) -> FeeProfile:
        return build_fee_profile(self.fee_settings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_currency": self.user_currency,
            "alias_region_id": self.alias_region_id,
            "alias_consigned": self.alias_consigned,
            "fx_rates": dict(self.fx_rates),
            "fee_settings": dict(self.fee_settings),
            "live_max_age_minutes": self.live_max_age_minutes,
            "recent_max_age_hours": self.recent_max_age_hours,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricingConfig":
        config = cls()
        config.user_currency = str(data.get("user_currency", config.user_currency)).upper()
        config.alias_region_id = str(data.get("alias_region_id", config.alias_region_id))
        config.alias_consigned = bool(data.get("alias_consigned", config.alias_consigned))
        if "fx_rates" in data:
            rates = dict(config.fx_rates)
            rates.update({k.upper(): float(v) for k, v in data["fx_rates"].items()})
            config.fx_rates = rates
        config.fee_settings = dict(data.get("fee_settings", {}))
        config.live_max_age_minutes = int(data.get("live_max_age_minutes", config.live_max_age_minutes))
        config.recent_max_age_hours = int(data.get("recent_max_age_hours", config.recent_max_age_hours))
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "PricingConfig":
        """Load configuration from YAML file (top-level or under "pricing")."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get("pricing", data))


# =============================================================
# DEFAULT CONFIG INSTANCE
# =============================================================


def get_default_config() -> PricingConfig:
    """Get default configuration."""
    return PricingConfig()


def load_config(path: Optional[Path] = None) -> PricingConfig:
    """Load configuration from file or return defaults."""
    if path and Path(path).exists():
        return PricingConfig.from_yaml(Path(path))
    return get_default_config()
