"""Workflow orchestration for sync and dispatch commands."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from notifier.errors import ConfigError, NotifierError
from notifier.notify.dispatcher import MessageBuilder, NotificationDispatcher
from notifier.notify.eligibility import UserSettingsCache
from notifier.notify.mailer import SmtpTransport
from notifier.notify.message import (
    build_newsletter_messages,
    build_notification_messages,
    notification_settings_url,
)
from notifier.notify.models import (
    Audience,
    DispatchResult,
    RenderContext,
    WindowConfig,
)
from notifier.shared.config import AppConfig, load_config
from notifier.shared.constants import (
    NEWSLETTERS_STREAM,
    NOTIFICATIONS_STREAM,
    SYNC_STREAM,
)
from notifier.shared.dates import format_iso
from notifier.source.client import RecordSourceClient
from notifier.storage import build_stores
from notifier.sync.controller import SyncController, SyncResult

logger = logging.getLogger(__name__)

STREAMS: dict[Audience, str] = {
    Audience.NOTIFICATIONS: NOTIFICATIONS_STREAM,
    Audience.NEWSLETTERS: NEWSLETTERS_STREAM,
}
BUILDERS: dict[Audience, MessageBuilder] = {
    Audience.NOTIFICATIONS: build_notification_messages,
    Audience.NEWSLETTERS: build_newsletter_messages,
}


def build_client(config: AppConfig) -> RecordSourceClient:
    """
    Build the record source client from config.

    Args:
        config: Runtime configuration.

    Returns:
        Source client.
    """
    return RecordSourceClient(
        config.api.url,
        username=config.api.username,
        password=config.api.password,
        timeout=config.api.timeout,
        retries=config.api.retries,
    )


def build_transport(config: AppConfig) -> SmtpTransport:
    """
    Build the SMTP transport from config.

    Args:
        config: Runtime configuration.

    Returns:
        SMTP transport.

    Raises:
        ConfigError: No SMTP section is configured.
    """
    if config.smtp is None:
        raise ConfigError("smtp section is required to send messages")
    smtp = config.smtp
    return SmtpTransport(
        host=smtp.host,
        port=smtp.port,
        sender=smtp.sender,
        secure=smtp.secure,
        username=smtp.username,
        password=smtp.password,
        timeout_seconds=smtp.timeout,
        retries=smtp.retries,
    )


def build_render_context(config: AppConfig) -> RenderContext:
    return RenderContext(
        public_url=config.public_url,
        unsubscribe_url=notification_settings_url(config.public_url),
        locale=config.locale,
        assets_url=config.assets_url,
        footer_text=config.footer_text,
        privacy_policy_url=config.privacy_policy_url,
    )


def build_window(
    config: AppConfig, audience: Audience, show_progress: bool
) -> WindowConfig:
    """
    Build the dispatch window of an audience.

    Args:
        config: Runtime configuration.
        audience: Notifications or newsletters.
        show_progress: Show a progress bar.

    Returns:
        Window settings.
    """
    max_window = (
        config.newsletters_window
        if audience is Audience.NEWSLETTERS
        else config.notifications_window
    )
    return WindowConfig(
        max_window=max_window,
        concurrency=config.concurrency,
        show_progress=show_progress,
    )


async def generate_events(config: AppConfig, ignore_cache: bool = False) -> SyncResult:
    """
    Run one sync execution.

    Args:
        config: Runtime configuration.
        ignore_cache: Force a first run.

    Returns:
        Sync result.
    """
    snapshot_store, event_store, watermark_store = build_stores(
        config.cache_dir, config.storage
    )
    async with build_client(config) as client:
        controller = SyncController(
            client, snapshot_store, event_store, watermark_store
        )
        return await controller.run_sync(SYNC_STREAM, ignore_cache=ignore_cache)


async def send_messages(
    config: AppConfig,
    audience: Audience,
    generate: bool = False,
    show_progress: bool = False,
) -> DispatchResult:
    """
    Run one dispatch execution, optionally preceded by a sync.

    Args:
        config: Runtime configuration.
        audience: Notifications or newsletters.
        generate: Run a sync first.
        show_progress: Show a progress bar over sends.

    Returns:
        Dispatch result.
    """
    transport = build_transport(config)
    if generate:
        print_sync_result(await generate_events(config))
    _, event_store, watermark_store = build_stores(config.cache_dir, config.storage)
    async with build_client(config) as client:
        dispatcher = NotificationDispatcher(
            client,
            event_store,
            watermark_store,
            transport,
            BUILDERS[audience],
            build_render_context(config),
            audience=audience,
            settings_cache=UserSettingsCache(client),
        )
        return await dispatcher.run_dispatch(
            STREAMS[audience], build_window(config, audience, show_progress)
        )


def print_sync_result(result: SyncResult) -> None:
    print(
        f"Sync {result.stream} ({result.mode.value}): "
        f"{result.fetched} interpretations fetched, {result.events} events, "
        f"last success {format_iso(result.last_success)}"
    )


def print_dispatch_result(result: DispatchResult) -> None:
    status = "completed" if result.success else "incomplete"
    print(
        f"Dispatch {result.stream} {status}: "
        f"{format_iso(result.start)} -> {format_iso(result.end)}, "
        f"{result.events} events, {result.messages} messages, "
        f"{result.sent} sent, {result.skipped} skipped, {result.failed} failed"
    )


def read_config(args: argparse.Namespace) -> AppConfig:
    """
    Load the config named on the command line.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Runtime configuration.
    """
    try:
        return load_config(Path(args.config))
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc


def run_generate_events(args: argparse.Namespace) -> int:
    """
    Execute the generate-events command.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Process exit code.
    """
    config = read_config(args)
    try:
        result = asyncio.run(generate_events(config, args.ignore_cache))
    except NotifierError as exc:
        logger.error("Event generation failed: %s", exc)
        return 1
    print_sync_result(result)
    return 0


def run_send(args: argparse.Namespace, audience: Audience) -> int:
    """
    Execute the send-notifications or send-newsletters command.

    Args:
        args: Parsed CLI arguments.
        audience: Notifications or newsletters.

    Returns:
        Process exit code, 1 when any message failed.
    """
    config = read_config(args)
    try:
        result = asyncio.run(
            send_messages(
                config,
                audience,
                generate=args.generate_events,
                show_progress=args.progress,
            )
        )
    except ConfigError as exc:
        raise SystemExit(str(exc)) from exc
    except NotifierError as exc:
        logger.error("Sending %s failed: %s", audience.value, exc)
        return 1
    print_dispatch_result(result)
    return 0 if result.success else 1
