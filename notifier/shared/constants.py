"""Shared constants used across notifier modules."""

from __future__ import annotations

DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_CACHE_DIR = "cache"

SYNC_STREAM = "getEvents"
NOTIFICATIONS_STREAM = "notifications"
NEWSLETTERS_STREAM = "newsletters"

LAST_EXECUTIONS_FILE = "last-executions.json"
SNAPSHOT_FILE = "interpretations.json"
EVENTS_DIR = "events"
EVENT_BUCKET_PREFIX = "ev-month-"
SQLITE_FILE = "notifier.sqlite"

STORAGE_JSON = "json"
STORAGE_SQLITE = "sqlite"

DEFAULT_LOCALE = "en"
DEFAULT_NOTIFICATIONS_WINDOW_HOURS = 1
DEFAULT_NEWSLETTERS_WINDOW_DAYS = 7
DEFAULT_CONCURRENCY = 1

HTTP_TIMEOUT_SECONDS = 30
HTTP_RETRIES = 2
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

SMTP_TIMEOUT_SECONDS = 30
SMTP_RETRIES = 1

DB_TIMEOUT_SECONDS = 30
DB_RETRY_ATTEMPTS = 6
DB_RETRY_BASE_DELAY = 0.5

NO_MENTION_NOTIFICATIONS_ATTRIBUTE = "user_noInterpretationMentionNotifications"
NO_NEWSLETTERS_ATTRIBUTE = "user_noInterpretationSubcriptionNotifications"

NOTIFICATION_SETTINGS_APP_PATH = "api/apps/Notification-Settings/index.html"
