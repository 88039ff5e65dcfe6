"""In-memory stores used by tests and dry runs."""

from __future__ import annotations

from collections.abc import Sequence

from notifier.records.models import ParentRecord
from notifier.storage.codec import group_by_bucket
from notifier.sync.events import Event, sort_events
from notifier.sync.watermark import Watermark


class MemorySnapshotStore:
    """Snapshot cache held in a list."""

    def __init__(self, records: Sequence[ParentRecord] = ()) -> None:
        self.records: list[ParentRecord] = list(records)

    async def load(self) -> list[ParentRecord]:
        return list(self.records)

    async def save(self, records: Sequence[ParentRecord]) -> None:
        self.records = list(records)


class MemoryEventStore:
    """Event log held in a dict of bucket lists."""

    def __init__(self) -> None:
        self.buckets: dict[str, list[Event]] = {}

    async def append(self, events: Sequence[Event]) -> None:
        for bucket, bucket_events in group_by_bucket(events).items():
            self.buckets.setdefault(bucket, []).extend(bucket_events)

    async def read(self, bucket: str) -> list[Event]:
        return sort_events(self.buckets.get(bucket, []))

    def all_events(self) -> list[Event]:
        """Every stored event, in bucket then insertion order."""
        return [event for key in sorted(self.buckets) for event in self.buckets[key]]


class MemoryWatermarkStore:
    """Watermarks held in a dict keyed by stream."""

    def __init__(self, watermarks: dict[str, Watermark] | None = None) -> None:
        self.watermarks: dict[str, Watermark] = dict(watermarks or {})

    async def get(self, stream: str) -> Watermark | None:
        return self.watermarks.get(stream)

    async def save(self, stream: str, watermark: Watermark) -> None:
        self.watermarks[stream] = watermark
