"""
Data Ingestion - SKU Normalizer.

============================================================
RESPONSIBILITY
============================================================
Canonicalizes style ids (SKUs) typed by users or returned by
marketplaces so they can be matched across providers.

- "Nike Dunk Low DD1391 100 (Panda)" -> "DD1391-100"
- "555088 134"                        -> "555088-134"

============================================================
"""

import re
from typing import Optional


_PARENTHESES_RE = re.compile(r"\([^)]*\)")
_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9\s-]")
_WHITESPACE_RE = re.compile(r"\s+")

# Jordan style ids: 6 digits + colour code ("555088-134")
_NUMERIC_STYLE_RE = re.compile(r"(?<![A-Z])(\d{4,6})[\s-](\w{2,4})")
_STYLE_RE = re.compile(r"([A-Z]{1,}\d+[A-Z\d]*(?:[-\s]\d+[A-Z]*)?)(?:\s|$)")
_LOOSE_STYLE_RE = re.compile(r"[A-Z]{1,}\d{3,}[A-Z\d]*")
_SPACED_SUFFIX_RE = re.compile(r"^([A-Z]+\d+)\s+(\d+)$")
_DASH_RE = re.compile(r"\s*-\s*")

MIN_SKU_LENGTH = 6
MAX_SKU_LENGTH = 15
MIN_SKU_DIGITS = 3


def normalize_sku(text: Optional[str]) -> Optional[str]:
    """
    Normalize a raw SKU or product string to a canonical style id.

    Returns None when no plausible style id can be extracted.
    """
    if not text or not isinstance(text, str):
        return None

    normalized = text.strip()
    if not normalized:
        return None

    normalized = _PARENTHESES_RE.sub("", normalized)
    normalized = _DISALLOWED_RE.sub("", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = normalized.upper()

    numeric = _NUMERIC_STYLE_RE.search(normalized)
    if numeric:
        canonical = f"{numeric.group(1)}-{numeric.group(2)}"
        digits = sum(1 for c in canonical if c.isdigit())
        if 7 <= len(canonical) <= 12 and digits >= 6:
            return canonical

    match = _STYLE_RE.search(normalized)
    if match:
        normalized = match.group(1).strip()
    else:
        loose = _LOOSE_STYLE_RE.search(normalized)
        if not loose:
            return None
        normalized = loose.group(0)

    normalized = _SPACED_SUFFIX_RE.sub(r"\1-\2", normalized)
    normalized = _DASH_RE.sub("-", normalized)

    letters = sum(1 for c in normalized if "A" <= c <= "Z")
    digits = sum(1 for c in normalized if c.isdigit())
    if letters < 1 or digits < MIN_SKU_DIGITS:
        return None
    if not MIN_SKU_LENGTH <= len(normalized) <= MAX_SKU_LENGTH:
        return None

    return normalized


def looks_like_sku(query: Optional[str]) -> bool:
    """Heuristic: does a search query look like a style id rather than a name?"""
    if not query or not isinstance(query, str):
        return False

    trimmed = query.strip()
    if not 6 <= len(trimmed) <= 20:
        return False
    if not any(c.isdigit() for c in trimmed):
        return False

    alphanumeric = sum(1 for c in trimmed if c.isascii() and c.isalnum())
    if alphanumeric / len(trimmed) < 0.6:
        return False

    return normalize_sku(trimmed) is not None
