"""Tests for order-date normalization (quote_kernel/domain/dates.py)."""

from datetime import date, datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st

from quote_kernel.domain.clock import DeterministicClock
from quote_kernel.domain.dates import (
    NormalizedDate,
    ensure_utc,
    format_utc_timestamp,
    normalize_order_date,
    parse_date_value,
)


class TestParseDateValue:
    @pytest.mark.parametrize(
        "value",
        ["2025-03-09", "2025/03/09", "2025.03.09", "20250309", " 2025-03-09 "],
    )
    def test_accepted_string_formats(self, value):
        assert parse_date_value(value) == date(2025, 3, 9)

    def test_date_passes_through(self):
        assert parse_date_value(date(2025, 3, 9)) == date(2025, 3, 9)

    def test_datetime_is_converted_to_utc_first(self):
        jst = timezone(timedelta(hours=9))
        value = datetime(2025, 3, 10, 8, 0, tzinfo=jst)
        assert parse_date_value(value) == date(2025, 3, 9)

    def test_iso_datetime_string_with_offset(self):
        assert parse_date_value("2025-03-09T23:30:00-01:00") == date(2025, 3, 10)

    def test_iso_datetime_string_with_z(self):
        assert parse_date_value("2025-03-09T23:30:00Z") == date(2025, 3, 9)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", "2025-13-40", 12345])
    def test_unreadable_values_return_none(self, value):
        assert parse_date_value(value) is None


class TestNormalizeOrderDate:
    def test_both_representations_come_from_one_parse(self):
        normalized = normalize_order_date("2025/04/01")
        assert normalized.sql_date == date(2025, 4, 1)
        assert normalized.timestamp == datetime(2025, 4, 1, tzinfo=timezone.utc)
        assert normalized.iso_timestamp == "2025-04-01T00:00:00.000Z"

    @pytest.mark.parametrize("value", [None, "", "garbage"])
    def test_missing_or_invalid_falls_back_to_clock_today(self, value):
        clock = DeterministicClock(datetime(2025, 2, 14, 23, 59, tzinfo=timezone.utc))
        normalized = normalize_order_date(value, clock)
        assert normalized.sql_date == date(2025, 2, 14)
        assert normalized.timestamp == datetime(2025, 2, 14, tzinfo=timezone.utc)

    @given(st.dates(min_value=date(1900, 1, 1), max_value=date(2999, 12, 31)))
    def test_any_iso_date_string_normalizes_to_itself(self, value):
        normalized = normalize_order_date(value.isoformat())
        assert normalized.sql_date == value
        assert normalized.timestamp.date() == value
        assert normalized.timestamp.tzinfo == timezone.utc
        assert normalized.iso_timestamp.startswith(value.isoformat())

    @given(st.dates(min_value=date(1900, 1, 1), max_value=date(2999, 12, 31)))
    def test_slash_and_compact_forms_agree(self, value):
        slash = normalize_order_date(value.strftime("%Y/%m/%d"))
        compact = normalize_order_date(value.strftime("%Y%m%d"))
        assert slash == compact == NormalizedDate.from_date(value)


class TestTimestampFormatting:
    def test_naive_datetimes_are_treated_as_utc(self):
        assert ensure_utc(datetime(2025, 1, 1, 12, 0)).tzinfo == timezone.utc

    def test_millisecond_precision(self):
        value = datetime(2025, 1, 6, 9, 0, 1, 987654, tzinfo=timezone.utc)
        assert format_utc_timestamp(value) == "2025-01-06T09:00:01.987Z"

    def test_offset_is_converted(self):
        jst = timezone(timedelta(hours=9))
        value = datetime(2025, 1, 6, 9, 0, tzinfo=jst)
        assert format_utc_timestamp(value) == "2025-01-06T00:00:00.000Z"
