"""
Sales Analytics - Deduplication.

Raw sales history is append-only and may contain the same
sale more than once (overlapping recent-sales windows across
sync runs). Duplicates are removed at read/aggregation time
using a content hash.
"""

import hashlib
from typing import Iterable

from core.clock import to_iso8601
from data_sources.models import SaleRecord


def sale_event_hash(sale: SaleRecord) -> str:
    """
    Stable content hash identifying a sale.

    Fields: provider|sku|size|price|currency|region|sold_at|consigned.
    The provider product id stands in when a sale has no sku.
    Alias reports each region's sales as separate events, so
    region is part of the key.
    """
    payload = "|".join([
        sale.provider,
        sale.sku or sale.provider_product_id,
        sale.size_key,
        f"{sale.price:.2f}",
        sale.currency,
        sale.region,
        to_iso8601(sale.sold_at),
        "1" if sale.is_consigned else "0",
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def dedupe_sales(sales: Iterable[SaleRecord]) -> list[SaleRecord]:
    """Keep the first occurrence of each sale, preserving order."""
    seen: set[str] = set()
    unique: list[SaleRecord] = []
    for sale in sales:
        key = sale_event_hash(sale)
        if key in seen:
            continue
        seen.add(key)
        unique.append(sale)
    return unique
