"""Shared conversion helpers for notifier modules."""

from __future__ import annotations

from typing import Any


def to_int(value: Any) -> int | None:
    """
    Convert a value to an integer.

    Args:
        value: Input value.

    Returns:
        Parsed integer when valid, otherwise None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_float(value: Any) -> float | None:
    """
    Convert a value to float when possible.

    Args:
        value: Input value.

    Returns:
        Parsed float or None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_bool(value: Any) -> bool | None:
    """
    Convert a value to a boolean when possible.

    Args:
        value: Input value.

    Returns:
        Parsed boolean or None when the value is not recognized.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    return None


def to_text(value: Any) -> str | None:
    """
    Convert a value to stripped text.

    Args:
        value: Input value.

    Returns:
        Non-empty string or None.
    """
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_string_list(value: Any) -> list[str]:
    """
    Normalize a list-like value into non-empty strings.

    Args:
        value: Input value.

    Returns:
        Normalized string list.
    """
    if not isinstance(value, (list, tuple, set, frozenset)):
        return []
    normalized: list[str] = []
    for item in value:
        text = str(item).strip()
        if text:
            normalized.append(text)
    return normalized


def truncate_text(value: str | None, max_length: int) -> str:
    """
    Truncate text to a target maximum length.

    Args:
        value: Source text.
        max_length: Maximum length.

    Returns:
        Truncated text.
    """
    text = (value or "").strip()
    if len(text) <= max_length:
        return text
    return text[: max(0, max_length - 1)].rstrip() + "..."
