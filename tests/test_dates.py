"""Tests for timestamp helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from notifier.shared.dates import (
    format_iso,
    format_source_date,
    month_key,
    months_between,
    parse_source_datetime,
)


def test_naive_source_timestamp_is_utc() -> None:
    parsed = parse_source_datetime("2020-03-30T10:37:38.790")

    assert parsed == datetime(2020, 3, 30, 10, 37, 38, 790000, tzinfo=UTC)


def test_zulu_and_offset_timestamps_are_normalized() -> None:
    assert parse_source_datetime("2020-03-30T10:37:38Z") == datetime(
        2020, 3, 30, 10, 37, 38, tzinfo=UTC
    )
    assert parse_source_datetime("2020-03-30T12:00:00+02:00") == datetime(
        2020, 3, 30, 10, 0, tzinfo=UTC
    )


def test_date_only_and_invalid_values() -> None:
    assert parse_source_datetime("2020-03-30") == datetime(2020, 3, 30, tzinfo=UTC)
    assert parse_source_datetime("not a date") is None
    assert parse_source_datetime("") is None
    assert parse_source_datetime(None) is None


def test_format_iso_uses_milliseconds_and_z() -> None:
    value = datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=UTC)

    assert format_iso(value) == "2024-01-02T03:04:05.678Z"


def test_format_source_date_uses_utc_day() -> None:
    late_evening = datetime(2024, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

    assert format_source_date(late_evening) == "2024-01-02"


def test_month_helpers() -> None:
    start = datetime(2024, 1, 31, tzinfo=UTC)
    end = datetime(2024, 3, 1, tzinfo=UTC)

    assert month_key(start) == "2024-01"
    assert months_between(start, end) == ["2024-01", "2024-02", "2024-03"]
    assert months_between(end, start) == []
