"""Sync execution: fetch, diff, persist events and advance the watermark."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Protocol

from notifier.records.models import ParentRecord
from notifier.shared.constants import SYNC_STREAM
from notifier.shared.dates import format_iso, format_source_date, utc_now
from notifier.storage.base import EventStore, SnapshotStore, WatermarkStore
from notifier.sync.differ import diff, merge_snapshot, summarize_events
from notifier.sync.watermark import Watermark

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Remote source of interpretations with nested comments."""

    async def fetch_all(self) -> list[ParentRecord]:
        """
        Fetch every interpretation.

        Returns:
            Interpretations in source order.
        """

    async def fetch_changed_since(self, day: str) -> list[ParentRecord]:
        """
        Fetch interpretations updated on or after a day.

        Args:
            day: ``YYYY-MM-DD`` in UTC.

        Returns:
            Changed interpretations in source order.
        """


class SyncMode(StrEnum):
    """How a sync execution reads the source."""

    FIRST_RUN = "first_run"
    INCREMENTAL = "incremental"


@dataclass(frozen=True)
class SyncResult:
    """
    Outcome of one sync execution.

    Args:
        stream: Watermark stream key.
        mode: First run or incremental.
        fetched: Number of interpretations returned by the source.
        events: Number of events appended to the log.
        last_success: Watermark value after the run.
    """

    stream: str
    mode: SyncMode
    fetched: int
    events: int
    last_success: datetime


class SyncController:
    """
    Runs sync executions against a record source and the local stores.

    Args:
        record_store: Remote interpretation source.
        snapshot_store: Snapshot cache.
        event_store: Event log.
        watermark_store: Watermark store.
        clock: Callable returning the current UTC time.
    """

    def __init__(
        self,
        record_store: RecordStore,
        snapshot_store: SnapshotStore,
        event_store: EventStore,
        watermark_store: WatermarkStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.record_store = record_store
        self.snapshot_store = snapshot_store
        self.event_store = event_store
        self.watermark_store = watermark_store
        self.clock = clock

    async def run_sync(
        self, stream: str = SYNC_STREAM, ignore_cache: bool = False
    ) -> SyncResult:
        """
        Execute one sync run.

        Without a stored ``last_success`` (or with ``ignore_cache``) the full
        source is written to the snapshot cache and no events are emitted.
        Otherwise interpretations changed since the watermark day are diffed
        against the cache, the events appended and the cache merged.

        Args:
            stream: Watermark stream key.
            ignore_cache: Force a first run.

        Returns:
            Sync result.

        Raises:
            SourceFetchError: The source could not be read.
            PersistenceError: A store could not be read or written.
        """
        watermark = await self.watermark_store.get(stream) or Watermark()
        now = self.clock()

        if ignore_cache or watermark.last_success is None:
            mode = SyncMode.FIRST_RUN
            fetched = await self.record_store.fetch_all()
            await self.snapshot_store.save(fetched)
            event_count = 0
            logger.info(
                "First run of %s: cached %d interpretations", stream, len(fetched)
            )
        else:
            mode = SyncMode.INCREMENTAL
            since = format_source_date(watermark.last_success)
            fetched = await self.record_store.fetch_changed_since(since)
            event_count = 0
            if fetched:
                cached = await self.snapshot_store.load()
                events = diff(cached, fetched)
                if events:
                    await self.event_store.append(events)
                await self.snapshot_store.save(merge_snapshot(cached, fetched))
                event_count = len(events)
                logger.info(
                    "Incremental run of %s since %s: %d fetched, events %s",
                    stream,
                    since,
                    len(fetched),
                    summarize_events(events),
                )
            else:
                logger.info("No interpretations changed since %s", since)

        updated = watermark.advanced_to(now)
        await self.watermark_store.save(stream, updated)
        logger.debug(
            "Watermark %s now at %s", stream, format_iso(updated.last_success or now)
        )
        return SyncResult(
            stream=stream,
            mode=mode,
            fetched=len(fetched),
            events=event_count,
            last_success=updated.last_success or now,
        )
