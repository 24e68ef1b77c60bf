"""
Data Ingestion - Alias Mapper.

============================================================
RESPONSIBILITY
============================================================
Maps Alias (GOAT) catalog, availability and recent-sales
payloads into normalized records.

- Prices arrive as strings in CENTS ("14500" = 145.00)
- "0" or empty prices mean "no data"
- Only NEW product + GOOD packaging variants are priced
- Region ids: "1" = US, "2" = EU, "3" = UK; prices are
  always USD regardless of region

============================================================
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional, Union

from core.clock import from_iso8601, now_utc
from data_ingestion.normalizers.sizes import format_size_value, parse_size_numeric
from data_sources.models import (
    ALIAS_GLOBAL_REGION,
    ALIAS_REGIONS,
    CatalogRecord,
    MarketRow,
    Provider,
    SaleRecord,
)
from sales_analytics.velocity import group_velocity


logger = logging.getLogger(__name__)

ALIAS_CURRENCY = "USD"
CONDITION_NEW = "PRODUCT_CONDITION_NEW"
PACKAGING_GOOD = "PACKAGING_CONDITION_GOOD_CONDITION"

SOURCE_AVAILABILITIES = "alias_availabilities"
SOURCE_AVAILABILITIES_CONSIGNED = "alias_availabilities_consigned"

ConsignedFilter = Union[bool, str, None]  # True, False, "mixed"/None


def parse_cents(value: Any) -> Optional[Decimal]:
    """Convert a cents string to major units; "0" and blanks are None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == "0":
        return None
    try:
        cents = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not cents.is_finite() or cents == 0:
        return None
    return (cents / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def size_label(value: Any) -> str:
    """Size label shared with StockX ("10", "10.5"); 10.0 becomes "10"."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_size_value(value)
    return str(value if value is not None else "").strip()


def region_code(region_id: Optional[str]) -> str:
    """Alias region id to region code ("3" -> "UK")."""
    if region_id is None:
        return ALIAS_GLOBAL_REGION
    return ALIAS_REGIONS.get(str(region_id), ALIAS_GLOBAL_REGION)


def _is_new_good(variant: Mapping[str, Any]) -> bool:
    return (
        variant.get("product_condition") == CONDITION_NEW
        and variant.get("packaging_condition") == PACKAGING_GOOD
    )


def _matches_consigned(consigned: bool, consigned_filter: ConsignedFilter) -> bool:
    if consigned_filter is None or consigned_filter == "mixed":
        return True
    return consigned == bool(consigned_filter)


def map_alias_availabilities(
    variants: Iterable[Mapping[str, Any]],
    catalog_id: str,
    region_id: Optional[str] = None,
    consigned_filter: ConsignedFilter = "mixed",
    allowed_sizes: Optional[Iterable[float]] = None,
    sku: Optional[str] = None,
    snapshot_at: Optional[datetime] = None,
) -> list[MarketRow]:
    """
    Map availability variants to market rows.

    Variants are dropped when they are not NEW/GOOD, not in the
    catalog's allowed sizes, excluded by the consigned filter,
    or have no ask, bid or last sale.
    """
    snapshot_at = snapshot_at or now_utc()
    allowed = set(allowed_sizes) if allowed_sizes else None
    region = region_code(region_id)

    rows: list[MarketRow] = []
    dropped_sizes: list[str] = []
    for variant in variants:
        if not _is_new_good(variant):
            continue

        size_key = size_label(variant.get("size"))
        size_numeric = parse_size_numeric(size_key)
        if allowed is not None and size_numeric not in allowed:
            dropped_sizes.append(size_key)
            continue

        consigned = bool(variant.get("consigned", False))
        if not _matches_consigned(consigned, consigned_filter):
            continue

        availability = variant.get("availability") or {}
        row = MarketRow(
            provider=Provider.ALIAS.value,
            provider_source=SOURCE_AVAILABILITIES_CONSIGNED if consigned else SOURCE_AVAILABILITIES,
            provider_product_id=catalog_id,
            sku=sku,
            size_key=size_key,
            size_numeric=size_numeric,
            currency=ALIAS_CURRENCY,
            region=region,
            snapshot_at=snapshot_at,
            lowest_ask=parse_cents(availability.get("lowest_listing_price_cents")),
            highest_bid=parse_cents(availability.get("highest_offer_price_cents")),
            last_sale=parse_cents(availability.get("last_sold_listing_price_cents")),
            global_indicator=parse_cents(availability.get("global_indicator_price_cents")),
            is_consigned=consigned,
        )
        if not row.has_prices():
            continue
        rows.append(row)

    if dropped_sizes:
        logger.info(
            f"[alias_mapper] region={region}: dropped {len(dropped_sizes)} sizes "
            f"not in allowed sizes: {', '.join(dropped_sizes[:10])}"
        )
    return rows


def map_alias_recent_sales(
    sales: Iterable[Mapping[str, Any]],
    catalog_id: str,
    region_id: Optional[str] = None,
    sku: Optional[str] = None,
) -> list[SaleRecord]:
    """Map recent_sales entries to sale records, skipping unpriced ones."""
    records = []
    for sale in sales:
        price = parse_cents(sale.get("price_cents"))
        purchased_at = sale.get("purchased_at")
        if price is None or not purchased_at:
            continue
        size_key = size_label(sale.get("size"))
        records.append(SaleRecord(
            provider=Provider.ALIAS.value,
            provider_product_id=catalog_id,
            sku=sku,
            size_key=size_key,
            size_numeric=parse_size_numeric(size_key),
            price=price,
            currency=ALIAS_CURRENCY,
            region=region_code(region_id),
            sold_at=from_iso8601(purchased_at),
            is_consigned=bool(sale.get("consigned", False)),
        ))
    return records


def attach_sales_velocity(
    rows: Iterable[MarketRow],
    sales: Iterable[SaleRecord],
    now: Optional[datetime] = None,
) -> list[MarketRow]:
    """
    Attach 72h/30d sales counts to rows of the same size and
    consignment state. Most recent sale price overrides last_sale.
    """
    velocity = group_velocity(sales, now)
    result = []
    for row in rows:
        stats = velocity.get((row.size_key, row.is_consigned))
        if stats is None:
            result.append(row)
            continue
        result.append(row.with_sales(
            sales_72h=stats.sales_72h,
            sales_30d=stats.sales_30d,
            last_sale=stats.last_sale_price,
            total_sales_volume=stats.total_volume,
        ))
    return result


def map_alias_catalog(item: Mapping[str, Any]) -> CatalogRecord:
    """Map a catalog item payload ({"catalog_item": {...}} or bare) to a record."""
    item = item.get("catalog_item", item)
    allowed = tuple(
        float(size["value"])
        for size in item.get("allowed_sizes") or []
        if size.get("value") is not None
    )
    return CatalogRecord(
        provider=Provider.ALIAS.value,
        provider_product_id=item["catalog_id"],
        sku=item.get("sku") or "",
        name=item.get("name") or "",
        brand=item.get("brand"),
        colorway=item.get("colorway"),
        gender=item.get("gender"),
        category=item.get("product_category"),
        release_date=item.get("release_date"),
        retail_price=parse_cents(item.get("retail_price_cents")),
        size_unit=item.get("size_unit"),
        allowed_sizes=allowed,
        image_url=item.get("main_picture_url"),
    )
