"""SQLite backed stores sharing one database file."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite

from notifier.errors import PersistenceError
from notifier.records.models import ParentRecord
from notifier.shared.constants import DB_TIMEOUT_SECONDS
from notifier.storage.codec import (
    decode_events,
    decode_records,
    encode_records,
    group_by_bucket,
)
from notifier.storage.retry import with_lock_retry
from notifier.sync.events import Event
from notifier.sync.watermark import Watermark

T = TypeVar("T")

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS snapshot (
        position INTEGER PRIMARY KEY,
        record_id TEXT NOT NULL,
        payload TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
        event_id INTEGER PRIMARY KEY AUTOINCREMENT,
        bucket TEXT NOT NULL,
        payload TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_bucket ON events(bucket, event_id)",
    """
    CREATE TABLE IF NOT EXISTS watermarks (
        stream TEXT PRIMARY KEY,
        payload TEXT NOT NULL
    )
    """,
)


@asynccontextmanager
async def open_database(path: Path) -> AsyncIterator[aiosqlite.Connection]:
    """
    Open the store database and make sure the schema exists.

    Args:
        path: SQLite database path.

    Yields:
        Open connection.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(path, timeout=DB_TIMEOUT_SECONDS) as db:
        for statement in SCHEMA_STATEMENTS:
            await db.execute(statement)
        await db.commit()
        yield db


async def run_transaction(
    path: Path, work: Callable[[aiosqlite.Connection], Awaitable[T]]
) -> T:
    """
    Run one unit of store work in its own committed transaction.

    Args:
        path: SQLite database path.
        work: Coroutine function receiving the open connection.

    Returns:
        Result of ``work``.

    Raises:
        PersistenceError: The transaction failed or stayed locked.
    """

    async def attempt() -> T:
        async with open_database(path) as db:
            result = await work(db)
            await db.commit()
            return result

    return await with_lock_retry(attempt, str(path))


async def fetch_payload_column(
    db: aiosqlite.Connection, sql: str, params: tuple[str, ...] = ()
) -> list[str]:
    cursor = await db.execute(sql, params)
    rows = await cursor.fetchall()
    await cursor.close()
    return [row[0] for row in rows]


def parse_payloads(values: Sequence[str], source: str) -> list[Any]:
    try:
        return [json.loads(value) for value in values]
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Invalid JSON row in {source}") from exc


class SqliteSnapshotStore:
    """
    Snapshot cache kept in the ``snapshot`` table.

    Args:
        path: SQLite database path.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def load(self) -> list[ParentRecord]:
        values = await run_transaction(
            self.path,
            lambda db: fetch_payload_column(
                db, "SELECT payload FROM snapshot ORDER BY position"
            ),
        )
        source = f"{self.path}#snapshot"
        return decode_records(parse_payloads(values, source), source)

    async def save(self, records: Sequence[ParentRecord]) -> None:
        rows = [
            (position, payload["id"], json.dumps(payload, ensure_ascii=False))
            for position, payload in enumerate(encode_records(records))
        ]

        async def replace_rows(db: aiosqlite.Connection) -> None:
            await db.execute("DELETE FROM snapshot")
            await db.executemany(
                "INSERT INTO snapshot (position, record_id, payload) VALUES (?, ?, ?)",
                rows,
            )

        await run_transaction(self.path, replace_rows)


class SqliteEventStore:
    """
    Event log kept in the ``events`` table, keyed by month bucket.

    Args:
        path: SQLite database path.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def append(self, events: Sequence[Event]) -> None:
        rows = [
            (bucket, json.dumps(event.to_payload(), ensure_ascii=False))
            for bucket, bucket_events in group_by_bucket(events).items()
            for event in bucket_events
        ]
        if not rows:
            return

        async def insert_rows(db: aiosqlite.Connection) -> None:
            await db.executemany(
                "INSERT INTO events (bucket, payload) VALUES (?, ?)", rows
            )

        await run_transaction(self.path, insert_rows)

    async def read(self, bucket: str) -> list[Event]:
        values = await run_transaction(
            self.path,
            lambda db: fetch_payload_column(
                db,
                "SELECT payload FROM events WHERE bucket = ? ORDER BY event_id",
                (bucket,),
            ),
        )
        source = f"{self.path}#{bucket}"
        return decode_events(parse_payloads(values, source), source)


class SqliteWatermarkStore:
    """
    Watermarks kept in the ``watermarks`` table.

    Args:
        path: SQLite database path.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def get(self, stream: str) -> Watermark | None:
        values = await run_transaction(
            self.path,
            lambda db: fetch_payload_column(
                db, "SELECT payload FROM watermarks WHERE stream = ?", (stream,)
            ),
        )
        if not values:
            return None
        [payload] = parse_payloads(values, f"{self.path}#{stream}")
        return Watermark.from_payload(payload)

    async def save(self, stream: str, watermark: Watermark) -> None:
        payload = json.dumps(watermark.to_payload(), ensure_ascii=False)

        async def upsert(db: aiosqlite.Connection) -> None:
            await db.execute(
                """
                INSERT INTO watermarks (stream, payload) VALUES (?, ?)
                ON CONFLICT(stream) DO UPDATE SET payload = excluded.payload
                """,
                (stream, payload),
            )

        await run_transaction(self.path, upsert)


def build_sqlite_stores(
    path: Path,
) -> tuple[SqliteSnapshotStore, SqliteEventStore, SqliteWatermarkStore]:
    """
    Build the SQLite stores sharing one database file.

    Args:
        path: SQLite database path.

    Returns:
        Snapshot, event and watermark stores.
    """
    return (
        SqliteSnapshotStore(path),
        SqliteEventStore(path),
        SqliteWatermarkStore(path),
    )
