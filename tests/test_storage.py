"""Tests for the JSON, SQLite and in-memory stores."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from notifier.errors import ConfigError, PersistenceError
from notifier.storage import (
    JsonEventStore,
    MemoryEventStore,
    MemorySnapshotStore,
    MemoryWatermarkStore,
    build_stores,
)
from notifier.storage.retry import with_lock_retry
from notifier.storage.sqlite import SqliteWatermarkStore
from notifier.sync.events import Event, EventModel, EventType
from notifier.sync.watermark import Watermark
from tests.factories import chart, comment, dt, parent

BACKENDS = ["json", "sqlite", "memory"]


def make_stores(backend: str, cache_dir: Path):
    if backend == "memory":
        return MemorySnapshotStore(), MemoryEventStore(), MemoryWatermarkStore()
    return build_stores(cache_dir, backend)


def sample_records():
    return [
        parent(
            "p1",
            "first",
            "2024-01-01T10:00:00",
            [comment("c1", "hello", "2024-01-01T11:00:00", author_id="u2")],
            author_id="u1",
            shared_object=chart(subscribers=["u1", "u2"]),
            likes=2,
        ),
        parent("p2", "second", "2024-01-02T10:00:00", subscribers=["u3"]),
    ]


def insert(parent_id: str, created: str, child_id: str | None = None) -> Event:
    model = EventModel.CHILD if child_id else EventModel.PARENT
    return Event(EventType.INSERT, model, dt(created), parent_id, child_id)


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", BACKENDS)
async def test_snapshot_round_trip(backend: str, tmp_path: Path) -> None:
    snapshot_store, _, _ = make_stores(backend, tmp_path)

    assert await snapshot_store.load() == []

    records = sample_records()
    await snapshot_store.save(records)

    assert await snapshot_store.load() == records


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", BACKENDS)
async def test_snapshot_save_replaces_previous_contents(
    backend: str, tmp_path: Path
) -> None:
    snapshot_store, _, _ = make_stores(backend, tmp_path)
    records = sample_records()

    await snapshot_store.save(records)
    await snapshot_store.save(records[1:])

    assert await snapshot_store.load() == records[1:]


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", BACKENDS)
async def test_event_append_keeps_existing_and_splits_buckets(
    backend: str, tmp_path: Path
) -> None:
    _, event_store, _ = make_stores(backend, tmp_path)
    january_late = insert("p1", "2024-01-20T00:00:00")
    january_early = insert("p2", "2024-01-05T00:00:00")
    february = insert("p3", "2024-02-01T00:00:00", "c3")

    await event_store.append([january_late])
    await event_store.append([february, january_early])

    assert await event_store.read("2024-01") == [january_early, january_late]
    assert await event_store.read("2024-02") == [february]
    assert await event_store.read("2023-12") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", BACKENDS)
async def test_event_append_does_not_deduplicate(backend: str, tmp_path: Path) -> None:
    _, event_store, _ = make_stores(backend, tmp_path)
    event = insert("p1", "2024-01-20T00:00:00")

    await event_store.append([event])
    await event_store.append([event])

    assert await event_store.read("2024-01") == [event, event]


@pytest.mark.asyncio
@pytest.mark.parametrize("backend", BACKENDS)
async def test_watermarks_are_kept_per_stream(backend: str, tmp_path: Path) -> None:
    _, _, watermark_store = make_stores(backend, tmp_path)

    assert await watermark_store.get("getEvents") is None

    sync = Watermark(last_success=dt("2024-01-10T00:00:00"))
    notifications = Watermark(
        last_success=dt("2024-01-09T00:00:00"),
        users={"alice": dt("2024-01-08T00:00:00")},
    )
    await watermark_store.save("getEvents", sync)
    await watermark_store.save("notifications", notifications)
    await watermark_store.save("getEvents", sync.advanced_to(dt("2024-01-11T00:00:00")))

    assert await watermark_store.get("notifications") == notifications
    assert (await watermark_store.get("getEvents")).last_success == dt(
        "2024-01-11T00:00:00"
    )


@pytest.mark.asyncio
async def test_json_layout_matches_cache_files(tmp_path: Path) -> None:
    snapshot_store, event_store, watermark_store = build_stores(tmp_path, "json")

    await snapshot_store.save(sample_records()[1:])
    await event_store.append([insert("p2", "2024-01-02T10:00:00")])
    await watermark_store.save(
        "notifications",
        Watermark(
            last_success=dt("2024-01-10T00:00:00"),
            users={"u3": dt("2024-01-02T10:00:00")},
        ),
    )

    snapshot = json.loads((tmp_path / "interpretations.json").read_text("utf-8"))
    bucket_path = tmp_path / "events" / "ev-month-2024-01.json"
    bucket = json.loads(bucket_path.read_text("utf-8"))
    executions = json.loads((tmp_path / "last-executions.json").read_text("utf-8"))

    assert snapshot[0]["id"] == "p2"
    assert snapshot[0]["subscribers"] == ["u3"]
    assert bucket == [
        {
            "type": "insert",
            "model": "interpretation",
            "created": "2024-01-02T10:00:00.000Z",
            "interpretationId": "p2",
            "commentId": None,
        }
    ]
    assert executions == {
        "notifications": {
            "lastSuccess": "2024-01-10T00:00:00.000Z",
            "users": {"u3": "2024-01-02T10:00:00.000Z"},
        }
    }


@pytest.mark.asyncio
async def test_unknown_event_model_is_dropped(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    store = JsonEventStore(tmp_path)
    store.bucket_path("2024-01").write_text(
        json.dumps(
            [
                {
                    "type": "insert",
                    "model": "dashboard",
                    "created": "2024-01-01T00:00:00.000Z",
                    "interpretationId": "p1",
                    "commentId": None,
                },
                {
                    "type": "update",
                    "model": "interpretation",
                    "created": "2024-01-02T00:00:00.000Z",
                    "interpretationId": "p2",
                    "commentId": None,
                },
            ]
        ),
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING):
        events = await store.read("2024-01")

    assert [event.parent_id for event in events] == ["p2"]
    assert "Dropping event" in caplog.text


@pytest.mark.asyncio
async def test_corrupt_json_bucket_raises_persistence_error(tmp_path: Path) -> None:
    store = JsonEventStore(tmp_path)
    store.bucket_path("2024-01").write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        await store.read("2024-01")


@pytest.mark.asyncio
async def test_existing_watermark_keys_are_preserved(tmp_path: Path) -> None:
    path = tmp_path / "last-executions.json"
    path.write_text(
        json.dumps({"getEvents": {"lastSuccess": None, "note": "kept"}}),
        encoding="utf-8",
    )
    _, _, watermark_store = build_stores(tmp_path, "json")

    await watermark_store.save(
        "getEvents", Watermark(last_success=dt("2024-01-10T00:00:00"))
    )

    stored = json.loads(path.read_text("utf-8"))
    assert stored["getEvents"]["note"] == "kept"
    assert stored["getEvents"]["lastSuccess"] == "2024-01-10T00:00:00.000Z"


def test_unknown_backend_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        build_stores(tmp_path, "redis")


@pytest.mark.asyncio
async def test_locked_database_is_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    sleep = AsyncMock()
    monkeypatch.setattr("notifier.storage.retry.asyncio.sleep", sleep)
    operation = AsyncMock(
        side_effect=[sqlite3.OperationalError("database is locked"), "done"]
    )

    result = await with_lock_retry(operation, "cache.db", base_delay=0.1)

    assert result == "done"
    assert operation.await_count == 2
    sleep.assert_awaited_once_with(0.1)


@pytest.mark.asyncio
async def test_lock_retries_exhausted_raise_persistence_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("notifier.storage.retry.asyncio.sleep", AsyncMock())
    operation = AsyncMock(side_effect=sqlite3.OperationalError("database is locked"))

    with pytest.raises(PersistenceError, match="cache.db"):
        await with_lock_retry(operation, "cache.db", attempts=2)

    assert operation.await_count == 2


@pytest.mark.asyncio
async def test_other_sqlite_errors_are_not_retried() -> None:
    operation = AsyncMock(side_effect=sqlite3.OperationalError("no such table: x"))

    with pytest.raises(PersistenceError, match="no such table"):
        await with_lock_retry(operation, "cache.db")

    assert operation.await_count == 1


@pytest.mark.asyncio
async def test_unusable_sqlite_path_raises_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    store = SqliteWatermarkStore(blocker / "cache.db")

    with pytest.raises(PersistenceError):
        await store.get("getEvents")
