"""JSON payload conversion shared by the storage backends."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Any

from notifier.errors import PersistenceError, UnknownEventModelError
from notifier.records.models import ParentRecord, parse_records
from notifier.sync.events import Event, sort_events

logger = logging.getLogger(__name__)


def encode_records(records: Sequence[ParentRecord]) -> list[dict[str, Any]]:
    """
    Serialize a snapshot.

    Args:
        records: Interpretations.

    Returns:
        JSON array payload.
    """
    return [record.to_payload() for record in records]


def decode_records(payload: Any, source: str) -> list[ParentRecord]:
    """
    Parse a stored snapshot.

    Args:
        payload: Stored JSON array.
        source: Store location used in error messages.

    Returns:
        Interpretations.

    Raises:
        PersistenceError: The stored snapshot is malformed.
    """
    try:
        return parse_records(payload)
    except ValueError as exc:
        raise PersistenceError(f"Invalid snapshot in {source}: {exc}") from exc


def decode_events(payload: Any, source: str) -> list[Event]:
    """
    Parse a stored bucket, dropping entries with an unknown model.

    Args:
        payload: Stored JSON array.
        source: Store location used in error and log messages.

    Returns:
        Events sorted by ``created``.

    Raises:
        PersistenceError: The stored bucket is malformed.
    """
    if not isinstance(payload, list):
        raise PersistenceError(f"Event bucket {source} must be a JSON array")
    events: list[Event] = []
    for item in payload:
        try:
            events.append(Event.from_payload(item))
        except UnknownEventModelError as exc:
            logger.warning("Dropping event in %s: %s", source, exc)
        except ValueError as exc:
            raise PersistenceError(f"Invalid event in {source}: {exc}") from exc
    return sort_events(events)


def group_by_bucket(events: Sequence[Event]) -> dict[str, list[Event]]:
    """
    Group events by month bucket, keeping input order inside a bucket.

    Args:
        events: Events to group.

    Returns:
        Mapping of bucket key to events.
    """
    grouped: dict[str, list[Event]] = defaultdict(list)
    for event in events:
        grouped[event.bucket].append(event)
    return dict(grouped)
