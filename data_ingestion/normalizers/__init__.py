"""
Data Ingestion - Normalizers Package.

Normalizers:
- sizes: US/UK/EU/JP size parsing and conversion, brand charts
- sku: style id canonicalization for cross-provider matching
- stockx_mapper: StockX payloads -> normalized records
- alias_mapper: Alias payloads -> normalized records
"""

from data_ingestion.normalizers.sizes import (
    Brand,
    Gender,
    ParsedSize,
    SizeSystem,
    convert_to_uk,
    detect_brand,
    detect_gender,
    format_size_display,
    normalize_size_to_uk,
    parse_size,
    parse_size_numeric,
)
from data_ingestion.normalizers.sku import looks_like_sku, normalize_sku


__all__ = [
    "Brand",
    "Gender",
    "ParsedSize",
    "SizeSystem",
    "convert_to_uk",
    "detect_brand",
    "detect_gender",
    "format_size_display",
    "normalize_size_to_uk",
    "parse_size",
    "parse_size_numeric",
    "looks_like_sku",
    "normalize_sku",
]
