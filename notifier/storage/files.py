"""JSON file backed stores."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from notifier.errors import PersistenceError
from notifier.records.models import ParentRecord
from notifier.shared.constants import (
    EVENTS_DIR,
    LAST_EXECUTIONS_FILE,
    SNAPSHOT_FILE,
)
from notifier.storage.codec import (
    decode_events,
    decode_records,
    encode_records,
    group_by_bucket,
)
from notifier.sync.events import Event, bucket_file_name
from notifier.sync.watermark import Watermark


def load_json(path: Path, default: Any) -> Any:
    """
    Load JSON payload from disk.

    Args:
        path: Source path.
        default: Default value when file is missing.

    Returns:
        Loaded payload.

    Raises:
        PersistenceError: File cannot be read or decoded.
    """
    if not path.exists():
        return default
    try:
        with open(path, encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise PersistenceError(f"Cannot read {path}: {exc}") from exc


def save_json_atomic(path: Path, payload: Any) -> None:
    """
    Save JSON payload atomically.

    Args:
        path: Output path.
        payload: Payload object.

    Returns:
        None.

    Raises:
        PersistenceError: File cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_name(f"{path.name}.tmp")
        with open(temp_path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=4)
            handle.write("\n")
        temp_path.replace(path)
    except OSError as exc:
        raise PersistenceError(f"Cannot write {path}: {exc}") from exc


class JsonSnapshotStore:
    """
    Snapshot cache kept in a single JSON array file.

    Args:
        path: Snapshot file path.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def load(self) -> list[ParentRecord]:
        payload = await asyncio.to_thread(load_json, self.path, [])
        return decode_records(payload, str(self.path))

    async def save(self, records: Sequence[ParentRecord]) -> None:
        await asyncio.to_thread(save_json_atomic, self.path, encode_records(records))


class JsonEventStore:
    """
    Event log with one JSON array file per month bucket.

    Args:
        directory: Directory holding ``ev-month-YYYY-MM.json`` files.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def bucket_path(self, bucket: str) -> Path:
        """
        Resolve the file path of a bucket.

        Args:
            bucket: ``YYYY-MM`` key.

        Returns:
            Bucket file path.
        """
        return self.directory / bucket_file_name(bucket)

    async def append(self, events: Sequence[Event]) -> None:
        for bucket, bucket_events in group_by_bucket(events).items():
            path = self.bucket_path(bucket)
            stored = await asyncio.to_thread(load_json, path, [])
            if not isinstance(stored, list):
                raise PersistenceError(f"Event bucket {path} must be a JSON array")
            stored.extend(event.to_payload() for event in bucket_events)
            await asyncio.to_thread(save_json_atomic, path, stored)

    async def read(self, bucket: str) -> list[Event]:
        path = self.bucket_path(bucket)
        payload = await asyncio.to_thread(load_json, path, [])
        return decode_events(payload, str(path))


class JsonWatermarkStore:
    """
    Watermarks of every stream kept in one JSON object file.

    Args:
        path: Last executions file path.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def _load_all(self) -> dict[str, Any]:
        payload = await asyncio.to_thread(load_json, self.path, {})
        if not isinstance(payload, dict):
            raise PersistenceError(f"Watermark file {self.path} must be a JSON object")
        return payload

    async def get(self, stream: str) -> Watermark | None:
        payload = await self._load_all()
        if stream not in payload:
            return None
        return Watermark.from_payload(payload[stream])

    async def save(self, stream: str, watermark: Watermark) -> None:
        payload = await self._load_all()
        entry = payload.get(stream)
        merged = dict(entry) if isinstance(entry, dict) else {}
        merged.update(watermark.to_payload())
        payload[stream] = merged
        await asyncio.to_thread(save_json_atomic, self.path, payload)


def build_json_stores(
    cache_dir: Path,
) -> tuple[JsonSnapshotStore, JsonEventStore, JsonWatermarkStore]:
    """
    Build the JSON stores under a cache directory.

    Args:
        cache_dir: Cache root directory.

    Returns:
        Snapshot, event and watermark stores.
    """
    return (
        JsonSnapshotStore(cache_dir / SNAPSHOT_FILE),
        JsonEventStore(cache_dir / EVENTS_DIR),
        JsonWatermarkStore(cache_dir / LAST_EXECUTIONS_FILE),
    )
