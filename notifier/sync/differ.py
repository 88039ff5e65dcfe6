"""Snapshot comparison producing ordered change events."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from notifier.records.models import ParentRecord
from notifier.sync.events import Event, EventModel, EventType, sort_events


def index_by_id(records: Sequence[ParentRecord]) -> dict[str, ParentRecord]:
    """
    Index interpretations by id, keeping the first occurrence of an id.

    Args:
        records: Interpretations.

    Returns:
        Mapping of id to interpretation.
    """
    indexed: dict[str, ParentRecord] = {}
    for record in records:
        indexed.setdefault(record.id, record)
    return indexed


def created_parent_events(
    cached_by_id: dict[str, ParentRecord],
    fetched: Sequence[ParentRecord],
) -> list[Event]:
    """
    Build insert events for interpretations missing from the cache.

    Args:
        cached_by_id: Cached interpretations by id.
        fetched: Fetched interpretations.

    Returns:
        Insert/interpretation events in fetch order.
    """
    return [
        Event(EventType.INSERT, EventModel.PARENT, record.last_updated, record.id)
        for record in fetched
        if record.id not in cached_by_id
    ]


def edited_parent_events(
    cached_by_id: dict[str, ParentRecord],
    fetched: Sequence[ParentRecord],
) -> list[Event]:
    """
    Build update events for interpretations whose text changed.

    Other fields, such as the subscriber set, are not compared.

    Args:
        cached_by_id: Cached interpretations by id.
        fetched: Fetched interpretations.

    Returns:
        Update/interpretation events in fetch order.
    """
    events: list[Event] = []
    for record in fetched:
        cached = cached_by_id.get(record.id)
        if cached is not None and cached.text != record.text:
            events.append(
                Event(
                    EventType.UPDATE, EventModel.PARENT, record.last_updated, record.id
                )
            )
    return events


def created_child_events(
    cached_by_id: dict[str, ParentRecord],
    fetched: Sequence[ParentRecord],
) -> list[Event]:
    """
    Build insert events for comments missing from their cached interpretation.

    Every comment of an interpretation that is itself new counts as created.

    Args:
        cached_by_id: Cached interpretations by id.
        fetched: Fetched interpretations.

    Returns:
        Insert/comment events in fetch order.
    """
    events: list[Event] = []
    for record in fetched:
        cached = cached_by_id.get(record.id)
        seen_comment_ids = (
            {comment.id for comment in cached.comments} if cached else set()
        )
        for comment in record.comments:
            if comment.id in seen_comment_ids:
                continue
            seen_comment_ids.add(comment.id)
            events.append(
                Event(
                    EventType.INSERT,
                    EventModel.CHILD,
                    comment.last_updated,
                    record.id,
                    comment.id,
                )
            )
    return events


def edited_child_events(
    cached_by_id: dict[str, ParentRecord],
    fetched: Sequence[ParentRecord],
) -> list[Event]:
    """
    Build update events for comments whose text changed.

    The source does not bump a comment's own timestamp reliably on edit, so
    the event takes the ``last_updated`` of the enclosing interpretation.

    Args:
        cached_by_id: Cached interpretations by id.
        fetched: Fetched interpretations.

    Returns:
        Update/comment events in fetch order.
    """
    events: list[Event] = []
    for record in fetched:
        cached = cached_by_id.get(record.id)
        if cached is None:
            continue
        cached_texts = {comment.id: comment.text for comment in cached.comments}
        for comment in record.comments:
            if comment.id not in cached_texts:
                continue
            if cached_texts.pop(comment.id) == comment.text:
                continue
            events.append(
                Event(
                    EventType.UPDATE,
                    EventModel.CHILD,
                    record.last_updated,
                    record.id,
                    comment.id,
                )
            )
    return events


def diff(
    cached: Sequence[ParentRecord],
    fetched: Sequence[ParentRecord],
) -> list[Event]:
    """
    Compare the cached snapshot with freshly fetched interpretations.

    Args:
        cached: Interpretations from the snapshot cache.
        fetched: Interpretations returned by the source.

    Returns:
        Events sorted by ``created``. Ties keep the pass order: created
        interpretations, edited interpretations, created comments, edited
        comments.
    """
    cached_by_id = index_by_id(cached)
    unique_fetched = list(index_by_id(fetched).values())
    events = [
        *created_parent_events(cached_by_id, unique_fetched),
        *edited_parent_events(cached_by_id, unique_fetched),
        *created_child_events(cached_by_id, unique_fetched),
        *edited_child_events(cached_by_id, unique_fetched),
    ]
    return sort_events(events)


def merge_snapshot(
    cached: Sequence[ParentRecord],
    fetched: Sequence[ParentRecord],
) -> list[ParentRecord]:
    """
    Compute the next snapshot from the cached one and a fetch result.

    Cached entries are replaced in place by id; ids not cached yet are
    appended in fetch order.

    Args:
        cached: Interpretations from the snapshot cache.
        fetched: Interpretations returned by the source.

    Returns:
        Next snapshot contents.
    """
    fetched_by_id = index_by_id(fetched)
    cached_ids = {record.id for record in cached}
    merged = [fetched_by_id.get(record.id, record) for record in cached]
    merged.extend(
        record for record in fetched_by_id.values() if record.id not in cached_ids
    )
    return merged


def summarize_events(events: Sequence[Event]) -> dict[str, int]:
    """
    Count events per ``model_type`` kind.

    Args:
        events: Events to count.

    Returns:
        Mapping like ``{"interpretation_insert": 2}``.
    """
    counts = Counter(f"{event.model.value}_{event.type.value}" for event in events)
    return dict(sorted(counts.items()))
