"""Timestamp parsing, formatting and month bucketing helpers."""

from __future__ import annotations

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """
    Return the current timezone-aware UTC time.

    Returns:
        Current UTC datetime.
    """
    return datetime.now(UTC)


def parse_source_datetime(value: str | None) -> datetime | None:
    """
    Parse a source timestamp into a timezone-aware UTC datetime.

    The record source emits naive timestamps such as
    ``2020-03-30T10:37:38.790`` that are expressed in UTC.

    Args:
        value: Timestamp text.

    Returns:
        Parsed UTC datetime or None when parsing fails.
    """
    text = (value or "").strip()
    if not text:
        return None
    normalized = text.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(f"{text}T00:00:00+00:00")
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_iso(value: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with milliseconds and a Z suffix.

    Args:
        value: Datetime to format. Naive values are taken as UTC.

    Returns:
        Timestamp string like ``2020-03-30T10:37:38.790Z``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    text = value.astimezone(UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def format_source_date(value: datetime) -> str:
    """
    Format the date part used by day-granularity source filters.

    Args:
        value: Datetime to format.

    Returns:
        ``YYYY-MM-DD`` in UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).date().isoformat()


def month_key(value: datetime) -> str:
    """
    Build the ``YYYY-MM`` key of a timestamp in UTC.

    Args:
        value: Timestamp.

    Returns:
        Month key string.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m")


def months_between(start: datetime, end: datetime) -> list[str]:
    """
    List month keys overlapping the range, both end months included.

    Args:
        start: Range start.
        end: Range end.

    Returns:
        Ordered month keys, empty when start is after end.
    """
    first = date.fromisoformat(f"{month_key(start)}-01")
    last = date.fromisoformat(f"{month_key(end)}-01")
    keys: list[str] = []
    current = first
    while current <= last:
        keys.append(current.strftime("%Y-%m"))
        if current.month == 12:
            current = current.replace(year=current.year + 1, month=1)
        else:
            current = current.replace(month=current.month + 1)
    return keys
