"""
Tests for Size Normalization.

============================================================
PURPOSE
============================================================
1. Parsing prefixed and bare size strings
2. Formula conversion to UK (US, EU, JP)
3. Field priority when resolving a UK size
4. Brand-aware size charts

============================================================
"""

import pytest
from decimal import Decimal


# ============================================================
# PARSING TESTS
# ============================================================

class TestParseSize:
    """Tests for parse_size and numeric helpers."""

    def test_prefixed_size(self):
        """Prefix is recognised case-insensitively."""
        from data_ingestion.normalizers.sizes import SizeSystem, parse_size

        parsed = parse_size("us 10.5")
        assert parsed.system == SizeSystem.US
        assert parsed.value == "10.5"

        parsed = parse_size("UK9")
        assert parsed.system == SizeSystem.UK
        assert parsed.value == "9"

    def test_bare_size_has_no_system(self):
        """A bare number carries no system."""
        from data_ingestion.normalizers.sizes import parse_size

        parsed = parse_size("9")
        assert parsed.system is None
        assert parsed.value == "9"

    def test_empty_input(self):
        """None and blanks parse to nothing."""
        from data_ingestion.normalizers.sizes import parse_size

        assert parse_size(None).value is None
        assert parse_size("   ").value is None

    def test_parse_size_numeric(self):
        """Numeric part is extracted from provider labels."""
        from data_ingestion.normalizers.sizes import parse_size_numeric

        assert parse_size_numeric("10.5W") == 10.5
        assert parse_size_numeric("US 9") == 9.0
        assert parse_size_numeric("OS") is None
        assert parse_size_numeric(None) is None

    def test_is_numeric_size(self):
        """Only plain numbers are numeric sizes."""
        from data_ingestion.normalizers.sizes import is_numeric_size

        assert is_numeric_size("10")
        assert is_numeric_size("10.5")
        assert not is_numeric_size("XL")
        assert not is_numeric_size(None)

    def test_format_size_value(self):
        """Trailing zeros are dropped."""
        from data_ingestion.normalizers.sizes import format_size_value

        assert format_size_value(Decimal("9.0")) == "9"
        assert format_size_value(9.5) == "9.5"
        assert format_size_value(10) == "10"


# ============================================================
# CONVERSION TESTS
# ============================================================

class TestConvertToUK:
    """Tests for formula-based conversion."""

    @pytest.mark.parametrize("value,expected", [("10", "9"), ("9.5", "8.5"), ("12", "11")])
    def test_us_men(self, value, expected):
        """US men is UK + 1."""
        from data_ingestion.normalizers.sizes import SizeSystem, convert_to_uk

        assert convert_to_uk(value, SizeSystem.US) == expected

    def test_us_women(self):
        """US women is UK + 2."""
        from data_ingestion.normalizers.sizes import Gender, SizeSystem, convert_to_uk

        assert convert_to_uk("10", SizeSystem.US, "W") == "8"
        assert convert_to_uk("8.5", SizeSystem.US, Gender.WOMEN) == "6.5"

    @pytest.mark.parametrize("value,expected", [("44", "9"), ("42.5", "8"), ("45", "9.5")])
    def test_eu(self, value, expected):
        """EU converts through the 1.5 step and rounds to half sizes."""
        from data_ingestion.normalizers.sizes import SizeSystem, convert_to_uk

        assert convert_to_uk(value, SizeSystem.EU) == expected

    def test_jp(self):
        """JP (cm) is UK + 22."""
        from data_ingestion.normalizers.sizes import SizeSystem, convert_to_uk

        assert convert_to_uk("28", SizeSystem.JP) == "6"

    def test_uk_and_unknown_unchanged(self):
        """UK values and missing systems pass through."""
        from data_ingestion.normalizers.sizes import SizeSystem, convert_to_uk

        assert convert_to_uk("9", SizeSystem.UK) == "9"
        assert convert_to_uk("9", None) == "9"
        assert convert_to_uk(None, SizeSystem.US) is None

    def test_non_numeric_unchanged(self):
        """One-size labels are not converted."""
        from data_ingestion.normalizers.sizes import SizeSystem, convert_to_uk

        assert convert_to_uk("OS", SizeSystem.US) == "OS"


class TestNormalizeSizeToUK:
    """Tests for multi-field resolution."""

    def test_uk_field_wins(self):
        """Explicit UK fields take priority over everything else."""
        from data_ingestion.normalizers.sizes import normalize_size_to_uk

        assert normalize_size_to_uk({"uk": "UK 8", "us": "10"}) == "8"
        assert normalize_size_to_uk({"size_uk": "7.5", "eu": "44"}) == "7.5"

    def test_bare_size_is_uk(self):
        """A bare `size` is read as UK, a prefixed one is converted."""
        from data_ingestion.normalizers.sizes import normalize_size_to_uk

        assert normalize_size_to_uk({"size": "9"}) == "9"
        assert normalize_size_to_uk({"size": "US 10"}) == "9"

    def test_fallback_order(self):
        """us, eu and jp are tried in order, then size_alt."""
        from data_ingestion.normalizers.sizes import normalize_size_to_uk

        assert normalize_size_to_uk({"us": "11", "eu": "44"}) == "10"
        assert normalize_size_to_uk({"eu": "44", "jp": "30"}) == "9"
        assert normalize_size_to_uk({"jp": "28"}) == "6"
        assert normalize_size_to_uk({"size_alt": "EU 42.5"}) == "8"

    def test_empty_fields(self):
        """Blank fields are skipped; nothing found gives None."""
        from data_ingestion.normalizers.sizes import normalize_size_to_uk

        assert normalize_size_to_uk({"uk": "", "size": None}) is None
        assert normalize_size_to_uk({}) is None

    def test_women_gender_applies_to_us(self):
        """Gender switches the US offset."""
        from data_ingestion.normalizers.sizes import normalize_size_to_uk

        assert normalize_size_to_uk({"us": "10"}, gender="women") == "8"


# ============================================================
# SIZE CHART TESTS
# ============================================================

class TestSizeCharts:
    """Tests for brand-aware chart lookups."""

    def test_detect_brand_prefers_jordan(self):
        """Jordan is detected before Nike."""
        from data_ingestion.normalizers.sizes import Brand, detect_brand

        assert detect_brand("Nike", "Air Jordan 1 Retro High") == Brand.JORDAN
        assert detect_brand("Nike", "Dunk Low") == Brand.NIKE
        assert detect_brand(None, "adidas Yeezy Boost 350") == Brand.YEEZY
        assert detect_brand("New Balance", "550") == Brand.NEW_BALANCE
        assert detect_brand("Asics", "Gel-Lyte") == Brand.GENERIC

    def test_detect_gender(self):
        """Title markers select the chart gender."""
        from data_ingestion.normalizers.sizes import Gender, detect_gender

        assert detect_gender("Nike Dunk Low (Women's)") == Gender.WOMEN
        assert detect_gender("Air Jordan 1 Mid GS") == Gender.GS
        assert detect_gender("Dunk Low Panda") == Gender.MEN

    def test_chart_lookup(self):
        """Exact chart entries convert both ways."""
        from data_ingestion.normalizers.sizes import (
            Brand,
            Gender,
            convert_uk_to_us_chart,
            convert_us_to_uk_chart,
        )

        assert convert_us_to_uk_chart(10, Brand.NIKE, Gender.MEN) == 9
        assert convert_us_to_uk_chart(10, Brand.ADIDAS, Gender.MEN) == 9.5
        assert convert_uk_to_us_chart(9, Brand.NIKE, Gender.MEN) == 10.0
        assert convert_us_to_uk_chart(20, Brand.NIKE, Gender.MEN) is None

    def test_gs_uk6_has_two_us_sizes(self):
        """GS UK 6 maps to US 6.5 and US 7."""
        from data_ingestion.normalizers.sizes import Brand, Gender, get_all_us_sizes_for_uk

        assert get_all_us_sizes_for_uk(6, Brand.NIKE, Gender.GS) == [6.5, 7.0]

    def test_find_closest_us_size(self):
        """Nearest entry within tolerance, None outside it."""
        from data_ingestion.normalizers.sizes import Brand, Gender, find_closest_us_size

        assert find_closest_us_size(9, Brand.NIKE, Gender.MEN) == 10.0
        assert find_closest_us_size(12.5, Brand.NIKE, Gender.MEN) == 13.0
        assert find_closest_us_size(30, Brand.NIKE, Gender.MEN) is None

    def test_available_sizes_sorted(self):
        """Available sizes are ascending and distinct."""
        from data_ingestion.normalizers.sizes import (
            Brand,
            Gender,
            get_available_uk_sizes,
            get_available_us_sizes,
        )

        uk = get_available_uk_sizes(Brand.NIKE, Gender.GS)
        assert uk == sorted(set(uk))
        assert get_available_us_sizes(Brand.NIKE, Gender.MEN)[0] == 3.5
