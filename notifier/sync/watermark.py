"""Per-stream watermark model."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from notifier.shared.converters import to_text
from notifier.shared.dates import format_iso, parse_source_datetime


@dataclass(frozen=True)
class Watermark:
    """
    Progress cursor of one stream.

    Args:
        last_success: End of the last successfully processed window.
        users: Last notified event timestamp per recipient username.
    """

    last_success: datetime | None = None
    users: dict[str, datetime] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> Watermark:
        """
        Parse a stored watermark entry.

        Args:
            payload: Stored ``{"lastSuccess", "users"}`` object.

        Returns:
            Parsed watermark. Unparseable user entries are ignored.
        """
        if not isinstance(payload, dict):
            return cls()
        last_success = parse_source_datetime(to_text(payload.get("lastSuccess")))
        raw_users = payload.get("users")
        users: dict[str, datetime] = {}
        if isinstance(raw_users, dict):
            for username, value in raw_users.items():
                parsed = parse_source_datetime(to_text(value))
                if parsed is not None:
                    users[str(username)] = parsed
        return cls(last_success=last_success, users=users)

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize to the stored watermark shape.

        Returns:
            Stored ``{"lastSuccess", "users"}`` object.
        """
        payload: dict[str, Any] = {
            "lastSuccess": (
                format_iso(self.last_success) if self.last_success else None
            ),
            "users": {
                username: format_iso(value)
                for username, value in sorted(self.users.items())
            },
        }
        return payload

    def advanced_to(self, timestamp: datetime) -> Watermark:
        """
        Move ``last_success`` forward, never backward.

        Args:
            timestamp: Candidate new value.

        Returns:
            Updated watermark.
        """
        if self.last_success is not None and timestamp < self.last_success:
            return self
        return replace(self, last_success=timestamp)

    def reset_to(self, timestamp: datetime) -> Watermark:
        """
        Set ``last_success`` to the start of a window that must be retried.

        Args:
            timestamp: Window start.

        Returns:
            Updated watermark.
        """
        return replace(self, last_success=timestamp)

    def with_users(self, updates: dict[str, datetime]) -> Watermark:
        """
        Merge per-recipient timestamps, keeping the latest value per user.

        Args:
            updates: New timestamps by username.

        Returns:
            Updated watermark.
        """
        users = dict(self.users)
        for username, timestamp in updates.items():
            current = users.get(username)
            if current is None or timestamp > current:
                users[username] = timestamp
        return replace(self, users=users)

    def last_notified(self, username: str) -> datetime | None:
        """Last notified event timestamp of a recipient."""
        return self.users.get(username)
