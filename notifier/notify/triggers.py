"""Collect, resolve and collapse the events of a dispatch window."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from notifier.errors import MissingReferenceError, PersistenceError
from notifier.notify.models import ResolvedEvent
from notifier.records.models import ParentRecord
from notifier.shared.concurrency import map_bounded
from notifier.storage.base import EventStore
from notifier.sync.differ import index_by_id
from notifier.sync.events import (
    Event,
    EventModel,
    EventType,
    buckets_between,
    sort_events,
)

logger = logging.getLogger(__name__)


async def read_bucket_or_empty(event_store: EventStore, bucket: str) -> list[Event]:
    """
    Read one bucket, treating a read failure as an empty bucket.

    Args:
        event_store: Event log.
        bucket: ``YYYY-MM`` key.

    Returns:
        Events of the bucket.
    """
    try:
        return await event_store.read(bucket)
    except PersistenceError as exc:
        logger.warning("Skipping unreadable event bucket %s: %s", bucket, exc)
        return []


async def collect_window_events(
    event_store: EventStore,
    start: datetime,
    end: datetime,
    concurrency: int = 1,
) -> list[Event]:
    """
    Read the events created inside ``[start, end)``.

    Args:
        event_store: Event log.
        start: Window start, inclusive.
        end: Window end, exclusive.
        concurrency: Maximum concurrent bucket reads.

    Returns:
        Events sorted by ``created``.
    """
    buckets = buckets_between(start, end)
    logger.debug("Reading buckets %s", ", ".join(buckets) or "-")
    per_bucket = await map_bounded(
        buckets,
        lambda bucket: read_bucket_or_empty(event_store, bucket),
        concurrency,
    )
    events = [
        event
        for bucket_events in per_bucket
        for event in bucket_events
        if start <= event.created < end
    ]
    return sort_events(events)


def collapse_events(events: Sequence[Event]) -> list[Event]:
    """
    Keep one event per record, preferring inserts over updates.

    Among events of the same type the earliest one is kept.

    Args:
        events: Events sorted by ``created``.

    Returns:
        Collapsed events sorted by ``created``.
    """
    chosen: dict[tuple[str, str | None], Event] = {}
    for event in events:
        current = chosen.get(event.target)
        if current is None or (
            current.type is EventType.UPDATE and event.type is EventType.INSERT
        ):
            chosen[event.target] = event
    return sort_events(list(chosen.values()))


def resolve_event(
    event: Event, parents_by_id: dict[str, ParentRecord]
) -> ResolvedEvent:
    """
    Join an event with the current interpretation and comment.

    Args:
        event: Stored event.
        parents_by_id: Current interpretations by id.

    Returns:
        Resolved event.

    Raises:
        MissingReferenceError: The interpretation or comment no longer exists.
    """
    parent = parents_by_id.get(event.parent_id)
    if parent is None:
        raise MissingReferenceError(f"Interpretation {event.parent_id} not found")
    if event.model is EventModel.PARENT:
        return ResolvedEvent(event=event, parent=parent)
    comment = parent.find_comment(event.child_id or "")
    if comment is None:
        raise MissingReferenceError(
            f"Comment {event.child_id} of interpretation {event.parent_id} not found"
        )
    return ResolvedEvent(event=event, parent=parent, comment=comment)


def resolve_events(
    events: Sequence[Event], details: Sequence[ParentRecord]
) -> list[ResolvedEvent]:
    """
    Resolve events against fetched details and collapse them per record.

    Args:
        events: Window events sorted by ``created``.
        details: Current interpretations.

    Returns:
        Resolved events sorted by ``created``.
    """
    parents_by_id = index_by_id(details)
    resolved: dict[Event, ResolvedEvent] = {}
    for event in events:
        try:
            resolved[event] = resolve_event(event, parents_by_id)
        except MissingReferenceError as exc:
            logger.debug("Skipping event: %s", exc)
    return [resolved[event] for event in collapse_events(list(resolved))]
