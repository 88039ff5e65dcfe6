"""Dispatch models for recipients, messages and run results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from notifier.records.models import Author, ChildRecord, ParentRecord, SharedObject
from notifier.shared.constants import (
    DEFAULT_CONCURRENCY,
    NO_MENTION_NOTIFICATIONS_ATTRIBUTE,
    NO_NEWSLETTERS_ATTRIBUTE,
)
from notifier.shared.converters import to_bool, to_text
from notifier.sync.events import Event


class Audience(StrEnum):
    """Message family a dispatcher produces."""

    NOTIFICATIONS = "notifications"
    NEWSLETTERS = "newsletters"


def parse_attribute_flags(payload: Any) -> dict[str, bool]:
    """
    Map user attribute codes to boolean values.

    Args:
        payload: Source ``attributeValues`` list.

    Returns:
        Mapping of attribute code to ``value == "true"``.
    """
    flags: dict[str, bool] = {}
    if not isinstance(payload, list):
        return flags
    for item in payload:
        if not isinstance(item, dict):
            continue
        attribute = item.get("attribute")
        code = to_text(attribute.get("code")) if isinstance(attribute, dict) else None
        if code:
            flags[code] = str(item.get("value")).strip().lower() == "true"
    return flags


@dataclass(frozen=True)
class User:
    """
    Potential message recipient.

    Args:
        id: User identifier.
        display_name: Display name.
        username: Login name, used as the watermark recipient key.
        email: E-mail address when set.
        no_mention_notifications: Opted out of notifications.
        no_newsletters: Opted out of newsletters.
    """

    id: str
    display_name: str
    username: str
    email: str | None = None
    no_mention_notifications: bool = False
    no_newsletters: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> User | None:
        """
        Parse a user from a source payload.

        Args:
            payload: Source user object.

        Returns:
            Parsed user or None without an id or username.
        """
        author = Author.from_payload(payload)
        if author is None or not author.username:
            return None
        flags = parse_attribute_flags(payload.get("attributeValues"))
        return cls(
            id=author.id,
            display_name=author.display_name,
            username=author.username,
            email=to_text(payload.get("email")),
            no_mention_notifications=flags.get(
                NO_MENTION_NOTIFICATIONS_ATTRIBUTE, False
            ),
            no_newsletters=flags.get(NO_NEWSLETTERS_ATTRIBUTE, False),
        )


@dataclass(frozen=True)
class UserSettings:
    """
    Per-user settings relevant to delivery.

    Args:
        locale: UI locale.
        email_notifications: Already receives native notification e-mails.
    """

    locale: str | None = None
    email_notifications: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> UserSettings:
        if not isinstance(payload, dict):
            return cls()
        return cls(
            locale=to_text(payload.get("keyUiLocale")),
            email_notifications=bool(
                to_bool(payload.get("keyMessageEmailNotification"))
            ),
        )


@dataclass(frozen=True)
class ResolvedEvent:
    """
    Event joined with the records it refers to.

    Args:
        event: Stored event.
        parent: Current interpretation.
        comment: Current comment for comment events.
    """

    event: Event
    parent: ParentRecord
    comment: ChildRecord | None = None

    @property
    def author(self) -> Author | None:
        """Author of the changed interpretation or comment."""
        if self.comment is not None:
            return self.comment.author
        return self.parent.author

    @property
    def text(self) -> str:
        """Text of the changed interpretation or comment."""
        if self.comment is not None:
            return self.comment.text
        return self.parent.text

    @property
    def object(self) -> SharedObject | None:
        return self.parent.object


@dataclass(frozen=True)
class Delivery:
    """
    Resolved event and the recipients eligible for it.

    Args:
        event: Resolved event.
        recipients: Eligible users in subscriber order.
    """

    event: ResolvedEvent
    recipients: tuple[User, ...]


@dataclass(frozen=True)
class TriggerData:
    """
    Input handed to a message builder.

    Args:
        deliveries: Events with their eligible recipients, sorted by created.
        settings: User settings by username.
    """

    deliveries: tuple[Delivery, ...]
    settings: Mapping[str, UserSettings] = field(default_factory=dict)

    def locale_for(self, user: User, default: str) -> str:
        """
        Resolve the message locale of a recipient.

        Args:
            user: Recipient.
            default: Fallback locale.

        Returns:
            Locale code.
        """
        settings = self.settings.get(user.username)
        if settings is not None and settings.locale:
            return settings.locale
        return default


@dataclass(frozen=True)
class RenderContext:
    """
    Values a message template may use.

    Args:
        public_url: Public root URL of the platform.
        unsubscribe_url: Notification settings app URL.
        locale: Default locale.
        assets_url: Root URL of static newsletter assets.
        footer_text: Newsletter footer text.
        privacy_policy_url: Privacy policy link.
        start: Dispatch window start.
        end: Dispatch window end.
    """

    public_url: str
    unsubscribe_url: str
    locale: str
    assets_url: str | None = None
    footer_text: str | None = None
    privacy_policy_url: str | None = None
    start: datetime | None = None
    end: datetime | None = None


@dataclass(frozen=True)
class MailMessage:
    """
    Outbound e-mail.

    Args:
        recipients: Recipient addresses.
        subject: Subject line.
        text: Plain-text body.
        html: HTML body.
    """

    recipients: tuple[str, ...]
    subject: str
    text: str | None = None
    html: str | None = None


@dataclass(frozen=True)
class OutgoingMessage:
    """
    Rendered message bound to one recipient.

    Args:
        username: Recipient key in the watermark users map.
        event_created: Latest event timestamp the message covers.
        mail: E-mail to transmit.
    """

    username: str
    event_created: datetime
    mail: MailMessage


@dataclass(frozen=True)
class WindowConfig:
    """
    Dispatch window and throughput settings.

    Args:
        max_window: Maximum look-back from now.
        concurrency: Maximum concurrent bucket reads and sends.
        show_progress: Show a progress bar over sends.
    """

    max_window: timedelta
    concurrency: int = DEFAULT_CONCURRENCY
    show_progress: bool = False


@dataclass(frozen=True)
class DispatchResult:
    """
    Outcome of one dispatch execution.

    Args:
        stream: Watermark stream key.
        start: Window start.
        end: Window end.
        events: Resolved events after dedupe.
        messages: Messages built.
        sent: Messages transmitted.
        skipped: Messages held back by the per-recipient watermark.
        failed: Messages whose transmission failed.
        success: Every message was handled.
    """

    stream: str
    start: datetime
    end: datetime
    events: int
    messages: int
    sent: int
    skipped: int
    failed: int
    success: bool
