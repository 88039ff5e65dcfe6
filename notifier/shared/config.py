"""JSON configuration loading."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from notifier.errors import ConfigError, PersistenceError
from notifier.shared.constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_CONCURRENCY,
    DEFAULT_LOCALE,
    DEFAULT_NEWSLETTERS_WINDOW_DAYS,
    DEFAULT_NOTIFICATIONS_WINDOW_HOURS,
    HTTP_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    SMTP_RETRIES,
    SMTP_TIMEOUT_SECONDS,
    STORAGE_JSON,
    STORAGE_SQLITE,
)
from notifier.shared.converters import to_bool, to_float, to_int, to_text
from notifier.storage.files import load_json


@dataclass(frozen=True)
class ApiConfig:
    """
    Record source connection settings.

    Args:
        url: API root URL.
        username: Basic auth user.
        password: Basic auth password.
        timeout: Request timeout in seconds.
        retries: Retries for transient errors.
    """

    url: str
    username: str | None = None
    password: str | None = None
    timeout: float = HTTP_TIMEOUT_SECONDS
    retries: int = HTTP_RETRIES


@dataclass(frozen=True)
class SmtpConfig:
    """
    Outbound mail server settings.

    Args:
        host: Server host.
        port: Server port.
        sender: ``From`` address.
        secure: Use implicit TLS.
        username: Login user.
        password: Login password.
        timeout: Connection timeout in seconds.
        retries: Retries for failed sends.
    """

    host: str
    port: int
    sender: str
    secure: bool = False
    username: str | None = None
    password: str | None = None
    timeout: float = SMTP_TIMEOUT_SECONDS
    retries: int = SMTP_RETRIES


@dataclass(frozen=True)
class AppConfig:
    """
    Complete runtime configuration.

    Args:
        api: Record source settings.
        public_url: Public root URL used in message links.
        cache_dir: Directory of the local stores.
        storage: Store backend name.
        locale: Default message locale.
        smtp: Mail server settings, None when sending is not configured.
        assets_url: Root URL of newsletter assets.
        footer_text: Newsletter footer text.
        privacy_policy_url: Newsletter privacy policy link.
        concurrency: Maximum concurrent bucket reads and sends.
        notifications_window: Maximum look-back of notification runs.
        newsletters_window: Maximum look-back of newsletter runs.
    """

    api: ApiConfig
    public_url: str
    cache_dir: Path
    storage: str = STORAGE_JSON
    locale: str = DEFAULT_LOCALE
    smtp: SmtpConfig | None = None
    assets_url: str | None = None
    footer_text: str | None = None
    privacy_policy_url: str | None = None
    concurrency: int = DEFAULT_CONCURRENCY
    notifications_window: timedelta = timedelta(
        hours=DEFAULT_NOTIFICATIONS_WINDOW_HOURS
    )
    newsletters_window: timedelta = timedelta(days=DEFAULT_NEWSLETTERS_WINDOW_DAYS)


def get_section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    """
    Get a nested object, treating a missing or invalid value as empty.

    Args:
        payload: Parent object.
        key: Section key.

    Returns:
        Section object.
    """
    section = payload.get(key)
    return section if isinstance(section, dict) else {}


def parse_api(payload: dict[str, Any]) -> ApiConfig:
    section = get_section(payload, "api")
    url = to_text(section.get("url"))
    if not url:
        raise ConfigError("api.url is required")
    auth = get_section(section, "auth")
    return ApiConfig(
        url=url,
        username=to_text(auth.get("username")),
        password=to_text(auth.get("password")),
        timeout=to_float(section.get("timeout")) or HTTP_TIMEOUT_SECONDS,
        retries=max(0, to_int(section.get("retries")) or HTTP_RETRIES),
    )


def parse_smtp(payload: dict[str, Any]) -> SmtpConfig | None:
    """
    Parse the optional SMTP section.

    Args:
        payload: Root config object.

    Returns:
        SMTP settings, or None when the section is absent.

    Raises:
        ConfigError: The section exists but has no host or sender.
    """
    section = get_section(payload, "smtp")
    if not section:
        return None
    host = to_text(section.get("host"))
    if not host:
        raise ConfigError("smtp.host is required")
    auth = get_section(section, "auth")
    username = to_text(auth.get("user"))
    sender = to_text(section.get("from")) or username
    if not sender:
        raise ConfigError("smtp.from is required")
    secure = bool(to_bool(section.get("secure")))
    return SmtpConfig(
        host=host,
        port=to_int(section.get("port")) or (465 if secure else 587),
        sender=sender,
        secure=secure,
        username=username,
        password=to_text(auth.get("pass")),
        timeout=to_float(section.get("timeout")) or SMTP_TIMEOUT_SECONDS,
        retries=max(0, to_int(section.get("retries")) or SMTP_RETRIES),
    )


def load_config(path: Path) -> AppConfig:
    """
    Load the JSON configuration file.

    Relative ``cacheDir`` values resolve against the config file directory.

    Args:
        path: Config file path.

    Returns:
        Parsed configuration.

    Raises:
        ConfigError: File missing, unreadable or invalid.
    """
    try:
        payload = load_json(path, None)
    except PersistenceError as exc:
        raise ConfigError(str(exc)) from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"Config file missing or invalid: {path}")

    public_url = to_text(payload.get("publicUrl"))
    if not public_url:
        raise ConfigError("publicUrl is required")

    storage = to_text(payload.get("storage")) or STORAGE_JSON
    if storage not in {STORAGE_JSON, STORAGE_SQLITE}:
        raise ConfigError(f"Unknown storage backend: {storage}")

    cache_dir = Path(to_text(payload.get("cacheDir")) or DEFAULT_CACHE_DIR)
    if not cache_dir.is_absolute():
        cache_dir = path.resolve().parent / cache_dir

    footer = get_section(payload, "footer")
    notifications = get_section(payload, "notifications")
    newsletters = get_section(payload, "newsletters")
    hours = to_float(notifications.get("maxTimeWindowHours"))
    days = to_float(newsletters.get("maxTimeWindowDays"))

    return AppConfig(
        api=parse_api(payload),
        public_url=public_url.rstrip("/"),
        cache_dir=cache_dir,
        storage=storage,
        locale=to_text(payload.get("locale")) or DEFAULT_LOCALE,
        smtp=parse_smtp(payload),
        assets_url=to_text(get_section(payload, "assets").get("url")),
        footer_text=to_text(footer.get("text")),
        privacy_policy_url=to_text(footer.get("privacyPolicyUrl")),
        concurrency=max(1, to_int(payload.get("concurrency")) or DEFAULT_CONCURRENCY),
        notifications_window=timedelta(
            hours=hours if hours and hours > 0 else DEFAULT_NOTIFICATIONS_WINDOW_HOURS
        ),
        newsletters_window=timedelta(
            days=days if days and days > 0 else DEFAULT_NEWSLETTERS_WINDOW_DAYS
        ),
    )
