"""
Data Ingestion - Size Normalizer.

============================================================
RESPONSIBILITY
============================================================
Normalizes shoe sizes across sizing systems and marketplaces.

- Parses prefixed size strings ("UK9", "US 10.5", "EU44")
- Converts US/EU/JP sizes to UK
- Brand-aware US <-> UK charts (Nike/Jordan, Adidas/Yeezy,
  New Balance; men, women, grade school)
- Display formatting

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions, no I/O
- Never raise on bad input: unknown sizes pass through
- Inventory is stored in UK sizes, StockX variants use US
  sizes, Alias variants use the catalog's size unit

============================================================
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Mapping, Optional, Union


logger = logging.getLogger(__name__)


# =============================================================
# ENUMS
# =============================================================


class SizeSystem(Enum):
    """Sizing systems accepted on input."""
    US = "US"
    UK = "UK"
    EU = "EU"
    JP = "JP"


class Brand(Enum):
    """Brand families with distinct size charts."""
    NIKE = "nike"
    JORDAN = "jordan"
    ADIDAS = "adidas"
    YEEZY = "yeezy"
    NEW_BALANCE = "new-balance"
    GENERIC = "generic"


class Gender(Enum):
    """Size chart gender / age group."""
    MEN = "men"
    WOMEN = "women"
    GS = "gs"
    PRESCHOOL = "preschool"
    TODDLER = "toddler"
    INFANT = "infant"


@dataclass(frozen=True)
class ParsedSize:
    """Result of parsing a raw size string."""
    system: Optional[SizeSystem]
    value: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "system": self.system.value if self.system else None,
            "value": self.value,
        }


# =============================================================
# SIZE CHARTS (US -> UK)
# =============================================================

NIKE_MENS_US_TO_UK: dict[float, float] = {
    3.5: 3, 4: 3, 4.5: 3.5, 5: 4, 5.5: 4.5, 6: 5, 6.5: 5.5,
    7: 6, 7.5: 6.5, 8: 7, 8.5: 7.5, 9: 8, 9.5: 8.5, 10: 9,
    10.5: 9.5, 11: 10, 11.5: 10.5, 12: 11, 12.5: 11.5, 13: 12,
    14: 13, 15: 14, 16: 15, 17: 16, 18: 17,
}

NIKE_WOMENS_US_TO_UK: dict[float, float] = {
    5: 2.5, 5.5: 3, 6: 3.5, 6.5: 4, 7: 4.5, 7.5: 5, 8: 5.5,
    8.5: 6, 9: 6.5, 9.5: 7, 10: 7.5, 10.5: 8, 11: 8.5,
    11.5: 9, 12: 9.5, 12.5: 10,
}

# UK 6 appears twice: US 6.5 (EU 39) and US 7 (EU 40)
NIKE_GS_US_TO_UK: dict[float, float] = {
    3.5: 3, 4: 3.5, 4.5: 4, 5: 4.5, 5.5: 5, 6: 5.5, 6.5: 6, 7: 6,
}

ADIDAS_MENS_US_TO_UK: dict[float, float] = {
    4: 3.5, 4.5: 4, 5: 4.5, 5.5: 5, 6: 5.5, 6.5: 6, 7: 6.5,
    7.5: 7, 8: 7.5, 8.5: 8, 9: 8.5, 9.5: 9, 10: 9.5, 10.5: 10,
    11: 10.5, 11.5: 11, 12: 11.5, 12.5: 12, 13: 12.5, 14: 13.5,
    15: 14.5,
}

ADIDAS_WOMENS_US_TO_UK: dict[float, float] = {
    5: 3.5, 5.5: 4, 6: 4.5, 6.5: 5, 7: 5.5, 7.5: 6, 8: 6.5,
    8.5: 7, 9: 7.5, 9.5: 8, 10: 8.5, 10.5: 9, 11: 9.5,
    11.5: 10, 12: 10.5,
}

NEW_BALANCE_MENS_US_TO_UK: dict[float, float] = {
    4: 3.5, 4.5: 4, 5: 4.5, 5.5: 5, 6: 5.5, 6.5: 6, 7: 6.5,
    7.5: 7, 8: 7.5, 8.5: 8, 9: 8.5, 9.5: 9, 10: 9.5, 10.5: 10,
    11: 10.5, 11.5: 11, 12: 11.5, 12.5: 12, 13: 12.5, 14: 13,
    15: 14, 16: 15,
}

NEW_BALANCE_WOMENS_US_TO_UK: dict[float, float] = {
    5: 3, 5.5: 3.5, 6: 4, 6.5: 4.5, 7: 5, 7.5: 5.5, 8: 6,
    8.5: 6.5, 9: 7, 9.5: 7.5, 10: 8, 10.5: 8.5, 11: 9,
    11.5: 9.5, 12: 10,
}


# =============================================================
# CONSTANTS
# =============================================================

_PREFIXED_SIZE_RE = re.compile(
    r"^\s*(UK|US|EU|JP)\s*([0-9]+(?:\.[0-9]+)?)\s*$",
    re.IGNORECASE,
)
_NUMERIC_SIZE_RE = re.compile(r"^[0-9]+\.?[0-9]*$")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")

US_MEN_TO_UK_OFFSET = Decimal("1")
US_WOMEN_TO_UK_OFFSET = Decimal("2")
EU_TO_UK_OFFSET = Decimal("30.5")
EU_TO_UK_STEP = Decimal("1.5")
JP_TO_UK_OFFSET = Decimal("22")

# Field priority for normalize_size_to_uk
UK_FIELDS = ("uk", "size_uk")

GenderLike = Union[Gender, str, None]


# =============================================================
# HELPERS
# =============================================================


def _to_decimal(value: Any) -> Optional[Decimal]:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def _round_half(value: Decimal) -> Decimal:
    """Round to the nearest half size."""
    return (value * 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP) / 2


def format_size_value(value: Union[Decimal, float, int]) -> str:
    """Render a size without trailing zeros ("9", "9.5")."""
    normalized = Decimal(str(value)).normalize()
    return format(normalized, "f")


def _is_women(gender: GenderLike) -> bool:
    if gender is None:
        return False
    if isinstance(gender, Gender):
        return gender == Gender.WOMEN
    return gender.strip().upper() in ("W", "WOMEN", "WMNS", "F")


# =============================================================
# PARSING
# =============================================================


def parse_size(text: Optional[str]) -> ParsedSize:
    """
    Parse a raw size string into system and value.

    Examples:
        "UK9"     -> (UK, "9")
        "us 10.5" -> (US, "10.5")
        "9"       -> (None, "9")
        None      -> (None, None)
    """
    if text is None:
        return ParsedSize(system=None, value=None)

    stripped = str(text).strip()
    if not stripped:
        return ParsedSize(system=None, value=None)

    match = _PREFIXED_SIZE_RE.match(stripped)
    if match:
        return ParsedSize(
            system=SizeSystem(match.group(1).upper()),
            value=match.group(2),
        )

    return ParsedSize(system=None, value=stripped)


def is_numeric_size(text: Optional[str]) -> bool:
    """True for plain numeric sizes such as "10" or "10.5"."""
    if text is None:
        return False
    return bool(_NUMERIC_SIZE_RE.match(str(text).strip()))


def parse_size_numeric(text: Optional[str]) -> Optional[float]:
    """
    Extract the numeric part of a provider size label.

    "10.5W" -> 10.5, "US 9" -> 9.0, "OS" -> None
    """
    if text is None:
        return None
    cleaned = _NON_NUMERIC_RE.sub("", str(text))
    if not cleaned or cleaned == ".":
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


# =============================================================
# CONVERSION TO UK
# =============================================================


def convert_to_uk(
    value: Optional[str],
    system: Optional[SizeSystem],
    gender: GenderLike = None,
) -> Optional[str]:
    """
    Convert a size value from the given system to UK.

    US men (default) = UK + 1, US women = UK + 2,
    EU = UK * 1.5 + 30.5, JP (cm) = UK + 22. EU and JP results
    are rounded to the nearest half size. Non-numeric sizes
    ("OS", "XL") are returned unchanged.
    """
    if value is None:
        return None

    if system is None or system == SizeSystem.UK:
        return value

    numeric = _to_decimal(value)
    if numeric is None:
        return value

    if system == SizeSystem.US:
        offset = US_WOMEN_TO_UK_OFFSET if _is_women(gender) else US_MEN_TO_UK_OFFSET
        return format_size_value(numeric - offset)

    if system == SizeSystem.EU:
        uk = _round_half((numeric - EU_TO_UK_OFFSET) / EU_TO_UK_STEP)
        return format_size_value(uk)

    if system == SizeSystem.JP:
        return format_size_value(_round_half(numeric - JP_TO_UK_OFFSET))

    return value


def _convert_field(raw: Any, default_system: SizeSystem, gender: GenderLike) -> Optional[str]:
    parsed = parse_size(str(raw))
    if parsed.value is None:
        return None
    return convert_to_uk(parsed.value, parsed.system or default_system, gender)


def normalize_size_to_uk(
    fields: Mapping[str, Any],
    gender: GenderLike = None,
) -> Optional[str]:
    """
    Resolve a UK size from a record with heterogeneous size fields.

    Priority: uk, size_uk, size (bare numbers assumed UK), us,
    eu, jp, size_alt. Returns None when no field is present.
    """
    for key in UK_FIELDS:
        raw = fields.get(key)
        if raw not in (None, ""):
            return parse_size(str(raw)).value

    raw = fields.get("size")
    if raw not in (None, ""):
        return _convert_field(raw, SizeSystem.UK, gender)

    for key, system in (("us", SizeSystem.US), ("eu", SizeSystem.EU), ("jp", SizeSystem.JP)):
        raw = fields.get(key)
        if raw not in (None, ""):
            return _convert_field(raw, system, gender)

    raw = fields.get("size_alt")
    if raw not in (None, ""):
        return _convert_field(raw, SizeSystem.UK, gender)

    return None


def format_size_display(
    value: Optional[str],
    system: str = "UK",
    gender: Optional[str] = None,
) -> Optional[str]:
    """Format a size for display: "UK 9", "US W 10"."""
    if value is None:
        return None
    if gender and gender.strip().upper() != "M":
        return f"{system} {gender.strip().upper()} {value}"
    return f"{system} {value}"


# =============================================================
# BRAND-AWARE CHARTS
# =============================================================


def detect_brand(brand_name: Optional[str] = None, product_title: Optional[str] = None) -> Brand:
    """Detect the size-chart brand family from brand and title text."""
    text = f"{brand_name or ''} {product_title or ''}".lower()

    # Jordan before Nike: "Nike Air Jordan" uses the Jordan family
    if "jordan" in text:
        return Brand.JORDAN
    if "nike" in text:
        return Brand.NIKE
    if "yeezy" in text:
        return Brand.YEEZY
    if "adidas" in text:
        return Brand.ADIDAS
    if "new balance" in text:
        return Brand.NEW_BALANCE
    return Brand.GENERIC


def detect_gender(product_title: Optional[str] = None) -> Gender:
    """Detect the size-chart gender from a product title."""
    title = (product_title or "").lower()

    if "women's" in title or "wmns" in title:
        return Gender.WOMEN
    if "grade school" in title or " gs" in title:
        return Gender.GS
    if "preschool" in title or " ps" in title:
        return Gender.PRESCHOOL
    if "toddler" in title or " td" in title:
        return Gender.TODDLER
    if "infant" in title:
        return Gender.INFANT
    return Gender.MEN


def get_size_chart(brand: Brand, gender: Gender) -> dict[float, float]:
    """Select the US -> UK chart for a brand/gender combination."""
    if brand in (Brand.NIKE, Brand.JORDAN):
        if gender == Gender.WOMEN:
            return NIKE_WOMENS_US_TO_UK
        if gender in (Gender.GS, Gender.PRESCHOOL):
            return NIKE_GS_US_TO_UK
        return NIKE_MENS_US_TO_UK

    if brand in (Brand.ADIDAS, Brand.YEEZY):
        if gender == Gender.WOMEN:
            return ADIDAS_WOMENS_US_TO_UK
        return ADIDAS_MENS_US_TO_UK

    if brand == Brand.NEW_BALANCE:
        if gender == Gender.WOMEN:
            return NEW_BALANCE_WOMENS_US_TO_UK
        return NEW_BALANCE_MENS_US_TO_UK

    if gender == Gender.WOMEN:
        return NIKE_WOMENS_US_TO_UK
    return NIKE_MENS_US_TO_UK


def convert_us_to_uk_chart(us_size: float, brand: Brand, gender: Gender) -> Optional[float]:
    """Exact chart lookup, None when the size is not on the chart."""
    return get_size_chart(brand, gender).get(float(us_size))


def convert_uk_to_us_chart(uk_size: float, brand: Brand, gender: Gender) -> Optional[float]:
    """
    Reverse chart lookup returning the FIRST matching US size.

    For GS UK 6 this returns US 6.5 only; use
    get_all_us_sizes_for_uk() to see both options.
    """
    for us, uk in get_size_chart(brand, gender).items():
        if uk == uk_size:
            return float(us)
    return None


def get_all_us_sizes_for_uk(uk_size: float, brand: Brand, gender: Gender) -> list[float]:
    """All US sizes mapping to a UK size, ascending."""
    chart = get_size_chart(brand, gender)
    return sorted(float(us) for us, uk in chart.items() if uk == uk_size)


def find_closest_us_size(
    uk_size: float,
    brand: Brand,
    gender: Gender,
    tolerance: float = 0.5,
) -> Optional[float]:
    """Exact reverse lookup, else the nearest chart entry within tolerance."""
    exact = convert_uk_to_us_chart(uk_size, brand, gender)
    if exact is not None:
        return exact

    closest_us: Optional[float] = None
    closest_diff = float("inf")
    for us, uk in get_size_chart(brand, gender).items():
        diff = abs(uk - uk_size)
        if diff < closest_diff and diff <= tolerance:
            closest_diff = diff
            closest_us = float(us)

    if closest_us is None:
        logger.debug(f"No US size within {tolerance} of UK {uk_size} for {brand.value}/{gender.value}")
    return closest_us


def get_available_uk_sizes(brand: Brand, gender: Gender) -> list[float]:
    """Distinct UK sizes on the chart, ascending."""
    return sorted({float(uk) for uk in get_size_chart(brand, gender).values()})


def get_available_us_sizes(brand: Brand, gender: Gender) -> list[float]:
    """US sizes on the chart, ascending."""
    return sorted(float(us) for us in get_size_chart(brand, gender))
