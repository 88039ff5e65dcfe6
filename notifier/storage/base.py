"""Storage protocols shared by the sync controller and the dispatcher."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from notifier.records.models import ParentRecord
from notifier.sync.events import Event
from notifier.sync.watermark import Watermark


class SnapshotStore(Protocol):
    """
    Last observed full set of interpretations.
    """

    async def load(self) -> list[ParentRecord]:
        """
        Load the cached snapshot.

        Returns:
            Cached interpretations, empty when nothing is stored.
        """

    async def save(self, records: Sequence[ParentRecord]) -> None:
        """
        Replace the cached snapshot.

        Args:
            records: Full snapshot contents.

        Returns:
            None.
        """


class EventStore(Protocol):
    """
    Append-only event log partitioned by month bucket.
    """

    async def append(self, events: Sequence[Event]) -> None:
        """
        Append events to their month buckets after existing entries.

        Args:
            events: Events to store.

        Returns:
            None.
        """

    async def read(self, bucket: str) -> list[Event]:
        """
        Read one bucket sorted by ``created``.

        Args:
            bucket: ``YYYY-MM`` key.

        Returns:
            Events of the bucket, empty for an unknown bucket.
        """


class WatermarkStore(Protocol):
    """
    Watermarks keyed by stream name.
    """

    async def get(self, stream: str) -> Watermark | None:
        """
        Get the watermark of a stream.

        Args:
            stream: Stream key.

        Returns:
            Stored watermark or None before the first execution.
        """

    async def save(self, stream: str, watermark: Watermark) -> None:
        """
        Store the watermark of a stream, leaving other streams untouched.

        Args:
            stream: Stream key.
            watermark: Watermark to store.

        Returns:
            None.
        """
