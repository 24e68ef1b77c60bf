"""
Dashboard API Routers.
"""
from . import health, market, portfolio, sales, sync

__all__ = ["health", "market", "portfolio", "sales", "sync"]
