"""Tests for snapshot diffing and merging."""

from __future__ import annotations

from notifier.sync.differ import diff, merge_snapshot, summarize_events
from notifier.sync.events import Event, EventModel, EventType
from tests.factories import comment, dt, parent


def test_identical_snapshots_produce_no_events() -> None:
    records = [
        parent(
            "p1",
            "text",
            "2024-01-01T10:00:00",
            [comment("c1", "hi", "2024-01-01T11:00:00")],
        )
    ]

    assert diff(records, list(records)) == []


def test_new_parent_yields_insert_with_parent_timestamp() -> None:
    fetched = [parent("p1", "text", "2024-01-05T10:00:00")]

    assert diff([], fetched) == [
        Event(EventType.INSERT, EventModel.PARENT, dt("2024-01-05T10:00:00"), "p1")
    ]


def test_text_change_yields_update_with_fetched_timestamp() -> None:
    cached = [parent("p1", "old", "2024-01-01T10:00:00")]
    fetched = [parent("p1", "new", "2024-01-02T10:00:00")]

    assert diff(cached, fetched) == [
        Event(EventType.UPDATE, EventModel.PARENT, dt("2024-01-02T10:00:00"), "p1")
    ]


def test_subscriber_change_alone_yields_nothing() -> None:
    cached = [parent("p1", "same", "2024-01-01T10:00:00", subscribers=["u1"])]
    fetched = [parent("p1", "same", "2024-01-02T10:00:00", subscribers=["u1", "u2"])]

    assert diff(cached, fetched) == []


def test_new_comment_on_cached_parent_uses_comment_timestamp() -> None:
    cached = [parent("p1", "text", "2024-01-01T10:00:00")]
    fetched = [
        parent(
            "p1",
            "text",
            "2024-01-03T10:00:00",
            [comment("c1", "hello", "2024-01-02T09:00:00")],
        )
    ]

    assert diff(cached, fetched) == [
        Event(
            EventType.INSERT,
            EventModel.CHILD,
            dt("2024-01-02T09:00:00"),
            "p1",
            "c1",
        )
    ]


def test_edited_comment_uses_parent_timestamp() -> None:
    cached = [
        parent(
            "p1",
            "text",
            "2024-01-01T10:00:00",
            [comment("c1", "before", "2024-01-01T10:00:00")],
        )
    ]
    fetched = [
        parent(
            "p1",
            "text",
            "2024-01-04T08:00:00",
            [comment("c1", "after", "2024-01-01T10:00:00")],
        )
    ]

    assert diff(cached, fetched) == [
        Event(
            EventType.UPDATE,
            EventModel.CHILD,
            dt("2024-01-04T08:00:00"),
            "p1",
            "c1",
        )
    ]


def test_children_of_new_parent_are_only_inserts() -> None:
    fetched = [
        parent(
            "p1",
            "text",
            "2024-01-01T10:00:00",
            [
                comment("c1", "one", "2024-01-01T11:00:00"),
                comment("c2", "two", "2024-01-01T12:00:00"),
            ],
        )
    ]

    events = diff([], fetched)

    assert [(event.type, event.model, event.child_id) for event in events] == [
        (EventType.INSERT, EventModel.PARENT, None),
        (EventType.INSERT, EventModel.CHILD, "c1"),
        (EventType.INSERT, EventModel.CHILD, "c2"),
    ]


def test_events_are_sorted_by_created_across_parents() -> None:
    cached = [parent("p1", "old", "2024-01-01T00:00:00")]
    fetched = [
        parent("p1", "new", "2024-01-10T00:00:00"),
        parent("p2", "fresh", "2024-01-05T00:00:00"),
    ]

    events = diff(cached, fetched)

    assert [(event.parent_id, event.type) for event in events] == [
        ("p2", EventType.INSERT),
        ("p1", EventType.UPDATE),
    ]


def test_ties_keep_generation_pass_order() -> None:
    same = "2024-02-01T00:00:00"
    cached = [
        parent("p1", "old", same, [comment("c1", "before", same)]),
    ]
    fetched = [
        parent(
            "p1",
            "new",
            same,
            [comment("c1", "after", same), comment("c2", "added", same)],
        ),
        parent("p2", "fresh", same),
    ]

    events = diff(cached, fetched)

    assert [(event.type, event.model, event.target) for event in events] == [
        (EventType.INSERT, EventModel.PARENT, ("p2", None)),
        (EventType.UPDATE, EventModel.PARENT, ("p1", None)),
        (EventType.INSERT, EventModel.CHILD, ("p1", "c2")),
        (EventType.UPDATE, EventModel.CHILD, ("p1", "c1")),
    ]


def test_duplicate_fetched_ids_emit_a_single_event() -> None:
    fetched = [
        parent("p1", "text", "2024-01-01T10:00:00"),
        parent("p1", "text", "2024-01-01T10:00:00"),
    ]

    assert len(diff([], fetched)) == 1


def test_merge_replaces_in_place_and_appends_new_ids() -> None:
    cached = [
        parent("p1", "one", "2024-01-01T00:00:00"),
        parent("p2", "two", "2024-01-01T00:00:00"),
        parent("p3", "three", "2024-01-01T00:00:00"),
    ]
    fetched = [
        parent("p4", "four", "2024-01-02T00:00:00"),
        parent("p2", "two edited", "2024-01-02T00:00:00"),
    ]

    merged = merge_snapshot(cached, fetched)

    assert [record.id for record in merged] == ["p1", "p2", "p3", "p4"]
    assert merged[1].text == "two edited"
    assert merged[0] is cached[0]
    assert merged[2] is cached[2]


def test_summarize_events_counts_kinds() -> None:
    fetched = [
        parent(
            "p1",
            "text",
            "2024-01-01T10:00:00",
            [comment("c1", "one", "2024-01-01T11:00:00")],
        ),
        parent("p2", "text", "2024-01-01T10:00:00"),
    ]

    assert summarize_events(diff([], fetched)) == {
        "comment_insert": 1,
        "interpretation_insert": 2,
    }
