"""
Tests for erp_core.normalizer module.
"""
import pytest
from datetime import timezone
from decimal import Decimal

from erp_core.normalizer import (
    normalize_record,
    parse_created_date,
    parse_percentage,
    to_decimal,
)


class TestToDecimal:
    """Tests for to_decimal."""

    @pytest.mark.parametrize("value,expected", [
        (100, Decimal("100")),
        ("12500.50", Decimal("12500.50")),
        ("12,500.50", Decimal("12500.50")),
        ("  42 ", Decimal("42")),
        (Decimal("3.14"), Decimal("3.14")),
        (7.5, Decimal("7.5")),
    ])
    def test_numeric_values(self, value, expected):
        """Numbers and numeric strings should parse."""
        assert to_decimal(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "NaN", "Infinity", True, [1]])
    def test_garbage_becomes_zero(self, value):
        """Missing or non-numeric values should become 0."""
        assert to_decimal(value) == Decimal("0")


class TestParsePercentage:
    """Tests for parse_percentage."""

    def test_strips_percent_sign(self):
        """'45.5%' should parse as 45.5."""
        assert parse_percentage("45.5%") == Decimal("45.5")

    def test_percent_with_space_and_commas(self):
        """Thousands separators and spaces should be ignored."""
        assert parse_percentage("1,250.00 %") == Decimal("1250.00")

    def test_plain_number(self):
        """Numeric input should pass through."""
        assert parse_percentage(12) == Decimal("12")

    def test_unparseable(self):
        """Unparseable rate should become 0."""
        assert parse_percentage("n/a%") == Decimal("0")


class TestParseCreatedDate:
    """Tests for parse_created_date."""

    def test_iso_timestamp(self):
        """UTC morning is the same calendar day in Manila."""
        assert parse_created_date("2024-03-15T08:30:00.000Z") == "2024-03-15"

    def test_utc_evening_rolls_to_next_manila_day(self):
        """18:00Z on Dec 31 is already Jan 1 at UTC+8."""
        assert parse_created_date("2023-12-31T18:00:00.000Z") == "2024-01-01"

    def test_explicit_manila_offset(self):
        assert parse_created_date("2024-01-01T02:00:00+08:00") == "2024-01-01"

    def test_other_offset_converted(self):
        """Offsets are converted into the configured timezone."""
        assert parse_created_date("2024-06-30T20:00:00-04:00") == "2024-07-01"

    def test_explicit_timezone(self):
        assert parse_created_date("2023-12-31T18:00:00Z", tz=timezone.utc) == "2023-12-31"

    def test_naive_timestamp_keeps_prefix(self):
        """Timestamps without an offset are taken as local time."""
        assert parse_created_date("2023-12-31T23:30:00") == "2023-12-31"
        assert parse_created_date("2023-12-31 23:30:00") == "2023-12-31"

    def test_plain_date(self):
        assert parse_created_date("2024-03-15") == "2024-03-15"

    def test_unusual_suffix_keeps_prefix(self):
        """A date prefix followed by text fromisoformat rejects still yields the date."""
        assert parse_created_date("2024-03-15 08:30:00 PHT") == "2024-03-15"

    @pytest.mark.parametrize("value", [None, "", "15/03/2024", "yesterday"])
    def test_unparseable(self, value):
        """Unparseable dates should become empty string."""
        assert parse_created_date(value) == ""


class TestNormalizeRecord:
    """Tests for normalize_record."""

    def test_full_record(self, sample_raw_order):
        """All fields should map to the canonical record."""
        record = normalize_record(sample_raw_order)

        assert record.id == "5f1c2a80-8d11-11ee-9c3b-4b1a2f7e9d01"
        assert record.display_number == "SO-2024-00123"
        assert record.customer_name == "Acme Printing Corp"
        assert record.division_name == "Large Format"
        assert record.sales_rep_name == "Maria Santos"
        assert record.amount == Decimal("12500.50")
        assert record.gross_profit_rate == Decimal("45.5")
        assert record.status == "Approved"
        assert record.created_date == "2024-03-15"
        assert record.description == "Tarpaulin banners"
        assert record.memo == "Rush order"

    def test_missing_names_become_unknown(self):
        """Absent or blank names should default to 'Unknown'."""
        record = normalize_record({"so_pk": "1", "so_upk": "SO-1", "Name_Cust": "   "})

        assert record.customer_name == "Unknown"
        assert record.division_name == "Unknown"
        assert record.sales_rep_name == "Unknown"
        assert record.status == "Unknown"
        assert record.description == ""
        assert record.memo == ""

    def test_bad_numbers_become_zero(self):
        """Garbage amount and rate should become 0."""
        record = normalize_record({
            "so_pk": "1",
            "so_upk": "SO-1",
            "TotalAmount_TransH": "N/A",
            "gpRate": None,
        })
        assert record.amount == Decimal("0")
        assert record.gross_profit_rate == Decimal("0")

    def test_identity_passed_through(self):
        """Numeric ids should become strings; missing ids stay empty."""
        record = normalize_record({"so_pk": 991, "so_upk": None})
        assert record.id == "991"
        assert record.display_number == ""

    def test_none_input(self):
        """None should not raise."""
        record = normalize_record(None)
        assert record.id == ""
        assert record.amount == Decimal("0")

    def test_unparseable_date(self):
        """Bad created date should become empty string."""
        record = normalize_record({"so_pk": "1", "DateCreated_TransH": "not a date"})
        assert record.created_date == ""
        assert record.created_on is None

    @pytest.mark.parametrize("value", ["garbage", 42, ["so_pk", "1"]])
    def test_non_mapping_input(self, value):
        """Stray non-object entries should not raise."""
        record = normalize_record(value)
        assert record.id == ""
        assert record.customer_name == "Unknown"

    def test_created_date_uses_given_timezone(self):
        raw = {"so_pk": "1", "DateCreated_TransH": "2023-12-31T18:00:00.000Z"}

        assert normalize_record(raw).created_date == "2024-01-01"
        assert normalize_record(raw, timezone.utc).created_date == "2023-12-31"
