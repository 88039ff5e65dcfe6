"""Storage backends for the snapshot cache, event log and watermarks."""

from pathlib import Path

from notifier.errors import ConfigError
from notifier.shared.constants import SQLITE_FILE, STORAGE_JSON, STORAGE_SQLITE
from notifier.storage.base import EventStore, SnapshotStore, WatermarkStore
from notifier.storage.files import (
    JsonEventStore,
    JsonSnapshotStore,
    JsonWatermarkStore,
    build_json_stores,
)
from notifier.storage.memory import (
    MemoryEventStore,
    MemorySnapshotStore,
    MemoryWatermarkStore,
)
from notifier.storage.sqlite import (
    SqliteEventStore,
    SqliteSnapshotStore,
    SqliteWatermarkStore,
    build_sqlite_stores,
)


def build_stores(
    cache_dir: Path, backend: str = STORAGE_JSON
) -> tuple[SnapshotStore, EventStore, WatermarkStore]:
    """
    Build the three stores for a configured backend.

    Args:
        cache_dir: Cache root directory.
        backend: ``json`` or ``sqlite``.

    Returns:
        Snapshot, event and watermark stores.

    Raises:
        ConfigError: The backend name is unknown.
    """
    if backend == STORAGE_JSON:
        return build_json_stores(cache_dir)
    if backend == STORAGE_SQLITE:
        return build_sqlite_stores(cache_dir / SQLITE_FILE)
    raise ConfigError(f"Unknown storage backend: {backend}")


__all__ = [
    "SnapshotStore",
    "EventStore",
    "WatermarkStore",
    "JsonSnapshotStore",
    "JsonEventStore",
    "JsonWatermarkStore",
    "MemorySnapshotStore",
    "MemoryEventStore",
    "MemoryWatermarkStore",
    "SqliteSnapshotStore",
    "SqliteEventStore",
    "SqliteWatermarkStore",
    "build_json_stores",
    "build_sqlite_stores",
    "build_stores",
]
