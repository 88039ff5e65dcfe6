"""Change event model and its persisted representation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from notifier.errors import UnknownEventModelError
from notifier.shared.constants import EVENT_BUCKET_PREFIX
from notifier.shared.converters import to_text
from notifier.shared.dates import (
    format_iso,
    month_key,
    months_between,
    parse_source_datetime,
)


class EventType(StrEnum):
    """Kind of change detected on a record."""

    INSERT = "insert"
    UPDATE = "update"


class EventModel(StrEnum):
    """Record level a change applies to."""

    PARENT = "interpretation"
    CHILD = "comment"


@dataclass(frozen=True)
class Event:
    """
    Immutable fact describing a created or edited interpretation or comment.

    Args:
        type: Insert or update.
        model: Interpretation (parent) or comment (child).
        created: Event timestamp (UTC).
        parent_id: Interpretation identifier.
        child_id: Comment identifier, None for interpretation events.

    Raises:
        ValueError: ``child_id`` does not match the model.
    """

    type: EventType
    model: EventModel
    created: datetime
    parent_id: str
    child_id: str | None = None

    def __post_init__(self) -> None:
        if self.model is EventModel.PARENT and self.child_id is not None:
            raise ValueError("Interpretation events cannot carry a comment id")
        if self.model is EventModel.CHILD and not self.child_id:
            raise ValueError("Comment events require a comment id")

    @property
    def target(self) -> tuple[str, str | None]:
        """Record the event is about."""
        return self.parent_id, self.child_id

    @property
    def bucket(self) -> str:
        """Month bucket key derived from ``created``."""
        return month_key(self.created)

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize to the event log entry shape.

        Returns:
            Event log entry.
        """
        return {
            "type": self.type.value,
            "model": self.model.value,
            "created": format_iso(self.created),
            "interpretationId": self.parent_id,
            "commentId": self.child_id,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> Event:
        """
        Parse an event log entry.

        Args:
            payload: Event log entry.

        Returns:
            Parsed event.

        Raises:
            UnknownEventModelError: Type or model is outside the known set.
            ValueError: Other fields are missing or invalid.
        """
        if not isinstance(payload, dict):
            raise ValueError("Event entry must be an object")
        try:
            event_type = EventType(payload.get("type"))
            event_model = EventModel(payload.get("model"))
        except ValueError as exc:
            raise UnknownEventModelError(
                f"Unknown event model: {payload.get('model')}/{payload.get('type')}"
            ) from exc
        created = parse_source_datetime(to_text(payload.get("created")))
        if created is None:
            raise ValueError("Event created timestamp is required")
        parent_id = to_text(payload.get("interpretationId"))
        if not parent_id:
            raise ValueError("Event interpretationId is required")
        return cls(
            type=event_type,
            model=event_model,
            created=created,
            parent_id=parent_id,
            child_id=to_text(payload.get("commentId")),
        )


def bucket_file_name(bucket: str) -> str:
    """
    Build the event log file name of a month bucket.

    Args:
        bucket: ``YYYY-MM`` key.

    Returns:
        File name like ``ev-month-2024-01.json``.
    """
    return f"{EVENT_BUCKET_PREFIX}{bucket}.json"


def sort_events(events: list[Event]) -> list[Event]:
    """
    Sort events ascending by ``created``, keeping input order on ties.

    Args:
        events: Events to sort.

    Returns:
        New sorted list.
    """
    return sorted(events, key=lambda event: event.created)


def buckets_between(start: datetime, end: datetime) -> list[str]:
    """
    List the month buckets overlapping a window, both end months included.

    Args:
        start: Window start.
        end: Window end.

    Returns:
        Ordered ``YYYY-MM`` keys.
    """
    return months_between(start, end)
