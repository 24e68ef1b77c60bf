"""
Market Sync - Configuration.

============================================================
PURPOSE
============================================================
Provider sync and sync queue settings.

============================================================
DEFAULTS
============================================================
- StockX market data is fetched in GBP only; other
  currencies are derived with FX rates at pricing time
- Alias regions are synced UK, EU, then US
- Snapshots younger than 24 hours are reused unless forced
- Queue jobs get 3 attempts with min(2^attempts, 30) minute
  backoff; running jobs older than 5 minutes are recovered
- The worker claims 10 jobs per batch, 500ms apart

============================================================
"""

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml


@dataclass
class SyncConfig:
    """Sync and queue settings."""

    # StockX
    stockx_currencies: Tuple[str, ...] = ("GBP",)
    stockx_request_delay_ms: int = 1100

    # Alias
    alias_regions: Tuple[str, ...] = ("3", "2", "1")
    alias_recent_sales_limit: int = 100

    # Snapshot cache
    ttl_hours: int = 24
    append_history: bool = True

    # Queue
    max_attempts: int = 3
    backoff_cap_minutes: int = 30
    stale_timeout_minutes: int = 5

    # Worker
    batch_size: int = 10
    job_delay_ms: int = 500

    @property
    def stale_timeout(self) -> timedelta:
        return timedelta(minutes=self.stale_timeout_minutes)

    def backoff(self, attempts: int) -> timedelta:
        """Delay before the next attempt after `attempts` failures."""
        return timedelta(minutes=min(2 ** attempts, self.backoff_cap_minutes))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stockx_currencies": list(self.stockx_currencies),
            "stockx_request_delay_ms": self.stockx_request_delay_ms,
            "alias_regions": list(self.alias_regions),
            "alias_recent_sales_limit": self.alias_recent_sales_limit,
            "ttl_hours": self.ttl_hours,
            "append_history": self.append_history,
            "max_attempts": self.max_attempts,
            "backoff_cap_minutes": self.backoff_cap_minutes,
            "stale_timeout_minutes": self.stale_timeout_minutes,
            "batch_size": self.batch_size,
            "job_delay_ms": self.job_delay_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncConfig":
        config = cls()
        for key, value in data.items():
            if not hasattr(config, key):
                continue
            if key in ("stockx_currencies", "alias_regions"):
                value = tuple(str(v).upper() for v in value)
            elif key != "append_history":
                value = int(value)
            else:
                value = bool(value)
            setattr(config, key, value)
        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "SyncConfig":
        """Load configuration from YAML file (top-level or under "sync")."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data.get("sync", data))


def get_default_config() -> SyncConfig:
    """Get default configuration."""
    return SyncConfig()


def load_config(path: Optional[Path] = None) -> SyncConfig:
    """Load configuration from file or return defaults."""
    if path and Path(path).exists():
        return SyncConfig.from_yaml(Path(path))
    return get_default_config()
