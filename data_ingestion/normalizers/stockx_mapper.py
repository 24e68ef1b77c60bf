"""
Data Ingestion - StockX Mapper.

============================================================
RESPONSIBILITY
============================================================
Maps StockX catalog and market-data payloads into normalized
records.

- Prices arrive as strings in MAJOR units ("27" = 27.00)
- One standard row per variant, plus a flex row and a direct
  (consigned) row when those programs have prices
- Rows are deduplicated on their identity key

============================================================
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional

from core.clock import now_utc
from data_ingestion.normalizers.sizes import parse_size_numeric
from data_sources.models import (
    CURRENCY_REGIONS,
    CatalogRecord,
    MarketRow,
    Provider,
    VariantRecord,
)


logger = logging.getLogger(__name__)

SOURCE_STANDARD = "stockx_market_data"
SOURCE_FLEX = "stockx_market_data_flex"
SOURCE_DIRECT = "stockx_market_data_direct"

UNKNOWN_SIZE = "Unknown"


def parse_major_price(value: Any) -> Optional[Decimal]:
    """Parse a major-unit price ("145", 145.5) to a 2dp Decimal."""
    if value is None or value == "":
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _program_has_prices(program: Optional[Mapping[str, Any]]) -> bool:
    if not program:
        return False
    return bool(program.get("lowestAsk") or program.get("sellFaster") or program.get("earnMore"))


def dedupe_rows(rows: Iterable[MarketRow]) -> list[MarketRow]:
    """Keep the first row per identity key."""
    unique: dict[str, MarketRow] = {}
    for row in rows:
        unique.setdefault(row.dedupe_key(), row)
    return list(unique.values())


def map_stockx_market_data(
    variants: list[Mapping[str, Any]],
    product_id: str,
    currency: str,
    sku: Optional[str] = None,
    region: Optional[str] = None,
    snapshot_at: Optional[datetime] = None,
    size_lookup: Optional[Mapping[str, str]] = None,
) -> list[MarketRow]:
    """
    Map StockX market-data payloads (one per variant) to market rows.

    Args:
        variants: Market data payloads; each must carry variantId
        product_id: StockX product id
        currency: Currency the market data was requested in
        sku: Style id of the product
        region: Region code, derived from currency when omitted
        snapshot_at: Snapshot time (defaults to now)
        size_lookup: variantId -> size label from the variants endpoint
    """
    snapshot_at = snapshot_at or now_utc()
    region = region or CURRENCY_REGIONS.get(currency.upper(), "global")
    size_lookup = size_lookup or {}

    rows: list[MarketRow] = []
    for variant in variants:
        variant_id = variant.get("variantId")
        if not variant_id:
            continue

        size_key = (
            size_lookup.get(variant_id)
            or variant.get("variantValue")
            or variant.get("size")
            or UNKNOWN_SIZE
        )
        standard = variant.get("standardMarketData") or {}
        last_sale = parse_major_price(variant.get("lastSaleAmount"))

        base = dict(
            provider=Provider.STOCKX.value,
            provider_product_id=product_id,
            provider_variant_id=variant_id,
            sku=sku,
            size_key=str(size_key),
            size_numeric=parse_size_numeric(str(size_key)),
            currency=currency.upper(),
            region=region,
            snapshot_at=snapshot_at,
            last_sale=last_sale,
        )

        rows.append(MarketRow(
            provider_source=SOURCE_STANDARD,
            lowest_ask=parse_major_price(variant.get("lowestAskAmount") or standard.get("lowestAsk")),
            highest_bid=parse_major_price(variant.get("highestBidAmount") or standard.get("highestBidAmount")),
            sell_faster=parse_major_price(standard.get("sellFaster") or variant.get("sellFasterAmount")),
            earn_more=parse_major_price(standard.get("earnMore") or variant.get("earnMoreAmount")),
            beat_us=parse_major_price(standard.get("beatUS")),
            **base,
        ))

        flex = variant.get("flexMarketData")
        if _program_has_prices(flex):
            rows.append(MarketRow(
                provider_source=SOURCE_FLEX,
                lowest_ask=parse_major_price(flex.get("lowestAsk") or variant.get("flexLowestAskAmount")),
                highest_bid=parse_major_price(flex.get("highestBidAmount") or variant.get("highestBidAmount")),
                sell_faster=parse_major_price(flex.get("sellFaster")),
                earn_more=parse_major_price(flex.get("earnMore")),
                beat_us=parse_major_price(flex.get("beatUS")),
                is_flex=True,
                **base,
            ))

        direct = variant.get("directMarketData")
        if _program_has_prices(direct):
            rows.append(MarketRow(
                provider_source=SOURCE_DIRECT,
                lowest_ask=parse_major_price(direct.get("lowestAsk") or variant.get("lowestAskAmount")),
                highest_bid=parse_major_price(direct.get("highestBidAmount") or variant.get("highestBidAmount")),
                sell_faster=parse_major_price(direct.get("sellFaster")),
                earn_more=parse_major_price(direct.get("earnMore")),
                beat_us=parse_major_price(direct.get("beatUS")),
                is_consigned=True,
                **base,
            ))

    unique = dedupe_rows(rows)
    if len(unique) != len(rows):
        logger.debug(f"[stockx_mapper] Removed {len(rows) - len(unique)} duplicate rows for {product_id}")
    return unique


def map_stockx_product(product: Mapping[str, Any]) -> CatalogRecord:
    """Map a catalog search hit or product payload to a catalog record."""
    attributes = product.get("productAttributes") or {}
    return CatalogRecord(
        provider=Provider.STOCKX.value,
        provider_product_id=product["productId"],
        sku=product.get("styleId") or "",
        name=product.get("title") or "",
        brand=product.get("brand"),
        colorway=attributes.get("colorway"),
        gender=attributes.get("gender"),
        category=product.get("productType"),
        release_date=attributes.get("releaseDate"),
        retail_price=parse_major_price(attributes.get("retailPrice")),
        size_unit="US",
    )


def map_stockx_variants(product_id: str, variants: list[Mapping[str, Any]]) -> list[VariantRecord]:
    """Map the variants endpoint payload to variant records."""
    records = []
    for variant in variants:
        size_key = str(variant.get("variantValue") or UNKNOWN_SIZE)
        records.append(VariantRecord(
            provider=Provider.STOCKX.value,
            provider_product_id=product_id,
            provider_variant_id=variant["variantId"],
            size_key=size_key,
            size_numeric=parse_size_numeric(size_key),
            gtins=tuple(g.get("identifier", "") for g in variant.get("gtins") or []),
            is_flex_eligible=bool(variant.get("isFlexEligible", False)),
            is_direct_eligible=bool(variant.get("isDirectEligible", False)),
        ))
    return records
