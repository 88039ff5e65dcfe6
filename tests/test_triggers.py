"""Tests for window collection, resolution and collapsing of events."""

from __future__ import annotations

import logging

import pytest

from notifier.errors import PersistenceError
from notifier.notify.triggers import (
    collapse_events,
    collect_window_events,
    resolve_events,
)
from notifier.storage import MemoryEventStore
from notifier.sync.events import Event, EventModel, EventType
from tests.factories import comment, dt, parent


def make_event(
    event_type: EventType, created: str, parent_id: str, child_id: str | None = None
) -> Event:
    model = EventModel.CHILD if child_id else EventModel.PARENT
    return Event(event_type, model, dt(created), parent_id, child_id)


@pytest.mark.asyncio
async def test_collect_keeps_half_open_window_across_buckets() -> None:
    store = MemoryEventStore()
    before = make_event(EventType.INSERT, "2024-01-31T23:00:00", "a")
    at_start = make_event(EventType.INSERT, "2024-01-31T23:30:00", "b")
    inside = make_event(EventType.INSERT, "2024-02-01T00:10:00", "c")
    at_end = make_event(EventType.INSERT, "2024-02-01T00:30:00", "d")
    await store.append([inside, at_end, before, at_start])

    events = await collect_window_events(
        store, dt("2024-01-31T23:30:00"), dt("2024-02-01T00:30:00"), concurrency=2
    )

    assert events == [at_start, inside]


@pytest.mark.asyncio
async def test_unreadable_bucket_is_treated_as_empty(
    caplog: pytest.LogCaptureFixture,
) -> None:
    class FlakyStore(MemoryEventStore):
        async def read(self, bucket: str) -> list[Event]:
            if bucket == "2024-01":
                raise PersistenceError("disk error")
            return await super().read(bucket)

    store = FlakyStore()
    february = make_event(EventType.INSERT, "2024-02-02T00:00:00", "b")
    await store.append([make_event(EventType.INSERT, "2024-01-30T00:00:00", "a")])
    await store.append([february])

    with caplog.at_level(logging.WARNING):
        events = await collect_window_events(
            store, dt("2024-01-29T00:00:00"), dt("2024-02-05T00:00:00")
        )

    assert events == [february]
    assert "2024-01" in caplog.text


def test_collapse_prefers_insert_over_earlier_update() -> None:
    update = make_event(EventType.UPDATE, "2024-01-01T00:00:00", "p1")
    insert = make_event(EventType.INSERT, "2024-01-02T00:00:00", "p1")
    later_update = make_event(EventType.UPDATE, "2024-01-03T00:00:00", "p1")

    assert collapse_events([update, insert, later_update]) == [insert]


def test_collapse_keeps_earliest_among_equals_per_target() -> None:
    first = make_event(EventType.UPDATE, "2024-01-01T00:00:00", "p1", "c1")
    second = make_event(EventType.UPDATE, "2024-01-02T00:00:00", "p1", "c1")
    other = make_event(EventType.UPDATE, "2024-01-01T12:00:00", "p1")

    assert collapse_events([first, other, second]) == [first, other]


def test_resolve_skips_missing_parents_and_comments() -> None:
    details = [
        parent(
            "p1",
            "text",
            "2024-01-01T00:00:00",
            [comment("c1", "hi", "2024-01-01T01:00:00")],
        )
    ]
    kept_parent = make_event(EventType.INSERT, "2024-01-01T00:00:00", "p1")
    kept_comment = make_event(EventType.INSERT, "2024-01-01T01:00:00", "p1", "c1")
    gone_parent = make_event(EventType.INSERT, "2024-01-01T02:00:00", "p2")
    gone_comment = make_event(EventType.INSERT, "2024-01-01T03:00:00", "p1", "c9")

    resolved = resolve_events(
        [kept_parent, kept_comment, gone_parent, gone_comment], details
    )

    assert [item.event for item in resolved] == [kept_parent, kept_comment]
    assert resolved[0].comment is None
    assert resolved[1].comment is not None
    assert resolved[1].text == "hi"
