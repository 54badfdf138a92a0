"""
Unit tests for the rate table resolver.

Verifies:
- Latest effective date on or before the reference date wins
- Day granularity for date, datetime and ISO string inputs
- Malformed dates are excluded rather than raised
- Settings blobs parse into Decimal rates
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from charge_kernel.domain.rates import (
    RateHistoryEntry,
    parse_rate_history,
    rate_on,
    resolve_effective_rate,
    to_day,
)

HISTORY = (
    RateHistoryEntry(date(2024, 1, 1), Decimal("10")),
    RateHistoryEntry(date(2024, 6, 1), Decimal("12")),
)


class TestResolveEffectiveRate:

    def test_picks_latest_entry_on_or_before_reference(self):
        entry = resolve_effective_rate(HISTORY, date(2024, 7, 15))
        assert entry.rate == Decimal("12")

    def test_before_first_entry_returns_none(self):
        assert resolve_effective_rate(HISTORY, date(2023, 12, 1)) is None

    def test_effective_date_is_inclusive(self):
        assert resolve_effective_rate(HISTORY, date(2024, 6, 1)).rate == Decimal("12")
        assert resolve_effective_rate(HISTORY, date(2024, 5, 31)).rate == Decimal("10")

    def test_order_of_history_does_not_matter(self):
        entry = resolve_effective_rate(tuple(reversed(HISTORY)), date(2024, 7, 15))
        assert entry.rate == Decimal("12")

    def test_empty_history(self):
        assert resolve_effective_rate((), date(2024, 7, 15)) is None

    def test_datetime_reference_uses_day_only(self):
        late_evening = datetime(2024, 5, 31, 23, 59, tzinfo=timezone.utc)
        assert resolve_effective_rate(HISTORY, late_evening).rate == Decimal("10")

    def test_timestamp_effective_date_uses_day_only(self):
        history = (RateHistoryEntry("2024-06-01T18:30:00Z", Decimal("7")),)
        assert resolve_effective_rate(history, date(2024, 6, 1)).rate == Decimal("7")

    def test_string_reference_date(self):
        assert resolve_effective_rate(HISTORY, "2024-07-15").rate == Decimal("12")

    def test_malformed_effective_date_is_ignored(self):
        history = HISTORY + (RateHistoryEntry("not-a-date", Decimal("99")),)
        assert resolve_effective_rate(history, date(2024, 7, 15)).rate == Decimal("12")

    def test_malformed_reference_date_returns_none(self):
        assert resolve_effective_rate(HISTORY, "someday") is None

    def test_tied_dates_return_one_of_the_tied_entries(self):
        history = (
            RateHistoryEntry(date(2024, 1, 1), Decimal("3")),
            RateHistoryEntry(date(2024, 1, 1), Decimal("4")),
        )
        assert resolve_effective_rate(history, date(2024, 2, 1)).rate in {
            Decimal("3"),
            Decimal("4"),
        }


class TestToDay:

    def test_date_passthrough(self):
        assert to_day(date(2025, 3, 5)) == date(2025, 3, 5)

    def test_blank_string(self):
        assert to_day("  ") is None

    def test_unsupported_type(self):
        assert to_day(20250305) is None


class TestParseRateHistory:

    def test_parses_settings_blob(self):
        entries = parse_rate_history([
            {"effective_date": "2025-01-01", "rate": "5.50"},
            {"effective_date": "2025-06-01", "rate": 6},
        ])
        assert [e.rate for e in entries] == [Decimal("5.50"), Decimal("6")]

    def test_float_rates_keep_their_decimal_text(self):
        (entry,) = parse_rate_history([{"effective_date": "2025-01-01", "rate": 0.1}])
        assert entry.rate == Decimal("0.1")

    def test_non_numeric_rates_are_dropped(self):
        entries = parse_rate_history([
            {"effective_date": "2025-01-01", "rate": "abc"},
            {"effective_date": "2025-01-01", "rate": None},
            {"effective_date": "2025-01-01", "rate": "NaN"},
            {"effective_date": "2025-02-01", "rate": "4"},
        ])
        assert [e.rate for e in entries] == [Decimal("4")]

    def test_non_list_is_empty(self):
        assert parse_rate_history({"rate": "1"}) == ()
        assert parse_rate_history(None) == ()

    def test_rate_on(self):
        raw = [{"effective_date": "2024-01-01", "rate": "10"}]
        assert rate_on(raw, "2024-03-01") == Decimal("10")
        assert rate_on(raw, "2023-03-01") is None
