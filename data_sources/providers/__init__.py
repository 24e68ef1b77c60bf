"""
Providers package - Marketplace data source implementations.
"""

from data_sources.providers.alias import AliasMarketSource
from data_sources.providers.stockx import StockXMarketSource


__all__ = [
    "AliasMarketSource",
    "StockXMarketSource",
]
