"""
Sales Analytics - Configuration.

Rollup lookback and retention windows.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from sales_analytics.retention import RetentionPolicy


@dataclass
class SalesAnalyticsConfig:
    """Sales rollup and retention settings."""

    # Days of raw events re-read per rollup run; None reads everything retained
    rollup_lookback_days: Optional[int] = 35

    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rollup_lookback_days": self.rollup_lookback_days,
            "retention": self.retention.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SalesAnalyticsConfig":
        config = cls()
        if "rollup_lookback_days" in data:
            value = data["rollup_lookback_days"]
            config.rollup_lookback_days = int(value) if value is not None else None
        if "retention" in data:
            config.retention = RetentionPolicy.from_dict(data["retention"] or {})
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "SalesAnalyticsConfig":
        """Load configuration from YAML file (top-level or under "sales")."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get("sales", data))


def get_default_config() -> SalesAnalyticsConfig:
    """Get default configuration."""
    return SalesAnalyticsConfig()


def load_config(path: Optional[Path] = None) -> SalesAnalyticsConfig:
    """Load configuration from file or return defaults."""
    if path and Path(path).exists():
        return SalesAnalyticsConfig.from_yaml(Path(path))
    return get_default_config()
