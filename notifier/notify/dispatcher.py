"""Dispatch of notification and newsletter messages for a time window."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime
from enum import StrEnum
from typing import Protocol

from tqdm import tqdm

from notifier.notify.eligibility import UserSettingsCache, is_eligible
from notifier.notify.mailer import MailTransport
from notifier.notify.models import (
    Audience,
    Delivery,
    DispatchResult,
    OutgoingMessage,
    RenderContext,
    ResolvedEvent,
    TriggerData,
    User,
    UserSettings,
    WindowConfig,
)
from notifier.notify.triggers import collect_window_events, resolve_events
from notifier.records.models import ParentRecord
from notifier.shared.concurrency import map_bounded
from notifier.shared.dates import format_iso, utc_now
from notifier.storage.base import EventStore, WatermarkStore
from notifier.sync.watermark import Watermark

logger = logging.getLogger(__name__)

MessageBuilder = Callable[[TriggerData, RenderContext], list[OutgoingMessage]]


class DetailSource(Protocol):
    """Lookups needed to turn events into messages."""

    async def fetch_details(self, ids: Sequence[str]) -> list[ParentRecord]: ...

    async def fetch_users(self, ids: Sequence[str]) -> list[User]: ...

    async def fetch_user_settings(self, username: str) -> UserSettings: ...


class SendOutcome(StrEnum):
    """Result of handling one message."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


def window_start(
    watermark: Watermark, end: datetime, window: WindowConfig
) -> datetime:
    """
    Compute the start of a dispatch window.

    Args:
        watermark: Stream watermark.
        end: Window end (now).
        window: Window settings.

    Returns:
        The later of ``last_success`` and ``end - max_window``.
    """
    floor = end - window.max_window
    if watermark.last_success is None:
        return floor
    return max(watermark.last_success, floor)


def is_pending(message: OutgoingMessage, watermark: Watermark) -> bool:
    """
    Check whether a message covers events newer than the recipient watermark.

    Args:
        message: Rendered message.
        watermark: Stream watermark before the run.

    Returns:
        True when the message must be transmitted.
    """
    last_notified = watermark.last_notified(message.username)
    return last_notified is None or message.event_created > last_notified


def recipient_updates(
    messages: Sequence[OutgoingMessage], outcomes: Sequence[SendOutcome]
) -> dict[str, datetime]:
    """
    Compute new per-recipient timestamps from the transmitted messages.

    A recipient is never moved to or past the earliest event of a message
    that failed for them in this run.

    Args:
        messages: Messages in send order.
        outcomes: Outcome of each message.

    Returns:
        Timestamps by username.
    """
    earliest_failed: dict[str, datetime] = {}
    for message, outcome in zip(messages, outcomes, strict=True):
        if outcome is SendOutcome.FAILED:
            current = earliest_failed.get(message.username)
            if current is None or message.event_created < current:
                earliest_failed[message.username] = message.event_created

    updates: dict[str, datetime] = {}
    for message, outcome in zip(messages, outcomes, strict=True):
        if outcome is not SendOutcome.SENT:
            continue
        cap = earliest_failed.get(message.username)
        if cap is not None and message.event_created >= cap:
            continue
        current = updates.get(message.username)
        if current is None or message.event_created > current:
            updates[message.username] = message.event_created
    return updates


class NotificationDispatcher:
    """
    Sends the messages of one stream for the events of a time window.

    Args:
        source: Details, users and settings lookups.
        event_store: Event log.
        watermark_store: Watermark store.
        transport: Mail transport.
        builder: Message builder of the stream.
        context: Render context; ``start`` and ``end`` are filled per run.
        audience: Eligibility rules to apply.
        settings_cache: Caller-owned user settings cache.
        clock: Callable returning the current UTC time.
    """

    def __init__(
        self,
        source: DetailSource,
        event_store: EventStore,
        watermark_store: WatermarkStore,
        transport: MailTransport,
        builder: MessageBuilder,
        context: RenderContext,
        audience: Audience = Audience.NOTIFICATIONS,
        settings_cache: UserSettingsCache | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.event_store = event_store
        self.watermark_store = watermark_store
        self.transport = transport
        self.builder = builder
        self.context = context
        self.audience = audience
        self.settings_cache = settings_cache or UserSettingsCache(source)
        self.clock = clock

    async def build_deliveries(
        self, resolved_events: Sequence[ResolvedEvent]
    ) -> list[Delivery]:
        """
        Pair each resolved event with its eligible recipients.

        Args:
            resolved_events: Events sorted by created.

        Returns:
            Deliveries with at least one recipient.
        """
        subscriber_ids = list(
            dict.fromkeys(
                user_id
                for resolved in resolved_events
                for user_id in sorted(resolved.parent.subscribers)
            )
        )
        users: list[User] = []
        if subscriber_ids:
            users = await self.source.fetch_users(subscriber_ids)
        users_by_id = {user.id: user for user in users}

        deliveries: list[Delivery] = []
        for resolved in resolved_events:
            recipients: list[User] = []
            for user_id in sorted(resolved.parent.subscribers):
                user = users_by_id.get(user_id)
                if user is None:
                    logger.debug("User not found: %s", user_id)
                    continue
                eligible = await is_eligible(
                    self.audience, user, resolved, self.settings_cache
                )
                if eligible:
                    recipients.append(user)
            if recipients:
                deliveries.append(
                    Delivery(event=resolved, recipients=tuple(recipients))
                )
        return deliveries

    async def run_dispatch(self, stream: str, window: WindowConfig) -> DispatchResult:
        """
        Execute one dispatch run.

        Args:
            stream: Watermark stream key.
            window: Window settings.

        Returns:
            Dispatch result.

        Raises:
            SourceFetchError: Details or users could not be fetched.
            PersistenceError: The watermark could not be read or written.
        """
        watermark = await self.watermark_store.get(stream) or Watermark()
        end = self.clock()
        start = window_start(watermark, end, window)
        logger.info(
            "Dispatch %s from %s to %s", stream, format_iso(start), format_iso(end)
        )

        events = await collect_window_events(
            self.event_store, start, end, window.concurrency
        )
        details = (
            await self.source.fetch_details([event.parent_id for event in events])
            if events
            else []
        )
        resolved_events = resolve_events(events, details)
        logger.debug("%d events to process", len(resolved_events))

        deliveries = await self.build_deliveries(resolved_events)
        for delivery in deliveries:
            for user in delivery.recipients:
                await self.settings_cache.get(user.username)
        data = TriggerData(
            deliveries=tuple(deliveries), settings=dict(self.settings_cache.entries)
        )
        messages = self.builder(data, replace(self.context, start=start, end=end))

        progress = None
        if window.show_progress and messages:
            progress = tqdm(total=len(messages), desc=f"Sending {stream}", unit="msg")

        async def send_one(message: OutgoingMessage) -> SendOutcome:
            try:
                if not is_pending(message, watermark):
                    logger.debug(
                        "Already notified %s up to %s",
                        message.username,
                        format_iso(message.event_created),
                    )
                    return SendOutcome.SKIPPED
                try:
                    await self.transport.send(message.mail)
                except Exception as exc:
                    logger.warning("Message to %s failed: %s", message.username, exc)
                    return SendOutcome.FAILED
                return SendOutcome.SENT
            finally:
                if progress:
                    progress.update(1)

        try:
            outcomes = await map_bounded(messages, send_one, window.concurrency)
        finally:
            if progress:
                progress.close()

        sent = sum(1 for outcome in outcomes if outcome is SendOutcome.SENT)
        skipped = sum(1 for outcome in outcomes if outcome is SendOutcome.SKIPPED)
        failed = sum(1 for outcome in outcomes if outcome is SendOutcome.FAILED)
        success = sent + skipped == len(messages)

        updated = watermark.with_users(recipient_updates(messages, outcomes))
        updated = updated.advanced_to(end) if success else updated.reset_to(start)
        await self.watermark_store.save(stream, updated)

        logger.info(
            "Dispatch %s done: %d messages, %d sent, %d skipped, %d failed",
            stream,
            len(messages),
            sent,
            skipped,
            failed,
        )
        return DispatchResult(
            stream=stream,
            start=start,
            end=end,
            events=len(resolved_events),
            messages=len(messages),
            sent=sent,
            skipped=skipped,
            failed=failed,
            success=success,
        )
