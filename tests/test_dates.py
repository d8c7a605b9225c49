"""Tests for date parsing and token formatting."""

from datetime import datetime, timedelta, timezone

import pytest

from infoflow_sync.render.dates import (
    format_date,
    format_date_string,
    new_watermark,
    parse_date_time,
    watermark_to_iso,
)

MOMENT = datetime(2024, 1, 2, 15, 4, 5, 678000)


class TestFormatDate:
    @pytest.mark.parametrize(
        "fmt,expected",
        [
            ("yyyy-MM-dd", "2024-01-02"),
            ("dd MMM yyyy", "02 Jan 2024"),
            ("MMMM d, yy", "January 2, 24"),
            ("EEEE", "Tuesday"),
            ("EEE", "Tue"),
            ("h:mm a", "3:04 PM"),
            ("HH:mm:ss.SSS", "15:04:05.678"),
            ("yyyy'T'HH", "2024T15"),
        ],
    )
    def test_tokens(self, fmt, expected):
        assert format_date(MOMENT, fmt) == expected

    def test_offset_tokens(self):
        aware = datetime(2024, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        assert format_date(aware, "ZZ") == "+05:30"
        assert format_date(aware, "Z") == "+5:30"

    def test_offset_empty_for_naive(self):
        assert format_date(MOMENT, "Z") == ""

    def test_midnight_twelve_hour_clock(self):
        assert format_date(datetime(2024, 1, 1, 0, 5), "hh:mm a") == "12:05 AM"


class TestParseDateTime:
    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparseable_is_none(self, value):
        assert parse_date_time(value) is None

    def test_naive_value_kept(self):
        assert parse_date_time("2024-01-02T10:00:00") == datetime(2024, 1, 2, 10, 0)

    def test_zulu_suffix_is_aware(self):
        parsed = parse_date_time("2024-01-02T10:00:00Z")
        assert parsed is not None
        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)

    def test_format_date_string_defaults(self):
        assert format_date_string("2024-01-02T10:00:00") == "2024-01-02"
        assert format_date_string(None) == ""


class TestWatermark:
    def test_new_watermark_round_trips(self):
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        mark = new_watermark(now)
        assert datetime.fromisoformat(mark) == now
        assert watermark_to_iso(mark) is not None
        assert datetime.fromisoformat(watermark_to_iso(mark)) == now

    def test_empty_watermark_means_everything(self):
        assert watermark_to_iso("") is None
        assert watermark_to_iso(None) is None

    def test_legacy_watermark_is_accepted(self):
        iso = watermark_to_iso("2024-01-02T10:00:00")
        assert iso is not None
        assert iso.startswith("2024-01-02T10:00:00")
