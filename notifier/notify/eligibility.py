"""Recipient eligibility rules for notifications and newsletters."""

from __future__ import annotations

import logging
from typing import Protocol

from notifier.notify.models import Audience, ResolvedEvent, User, UserSettings

logger = logging.getLogger(__name__)


class UserSettingsSource(Protocol):
    """Lookup of per-user settings by username."""

    async def fetch_user_settings(self, username: str) -> UserSettings: ...


class UserSettingsCache:
    """
    Caller-owned user settings lookup, memoized per instance.

    Args:
        source: Settings source.
        entries: Optional pre-filled entries keyed by username.
    """

    def __init__(
        self,
        source: UserSettingsSource,
        entries: dict[str, UserSettings] | None = None,
    ) -> None:
        self.source = source
        self.entries: dict[str, UserSettings] = dict(entries or {})

    async def get(self, username: str) -> UserSettings:
        """
        Get the settings of a user, fetching them once.

        Args:
            username: Login name.

        Returns:
            User settings.
        """
        cached = self.entries.get(username)
        if cached is None:
            cached = await self.source.fetch_user_settings(username)
            self.entries[username] = cached
        return cached


def is_self_action(user: User, event: ResolvedEvent) -> bool:
    """
    Check whether a user authored the changed interpretation or comment.

    Args:
        user: Subscriber.
        event: Resolved event.

    Returns:
        True when the subscriber is the event author.
    """
    author = event.author
    return author is not None and author.id == user.id


def should_get_notifications(
    user: User, event: ResolvedEvent, settings: UserSettings
) -> bool:
    """
    Decide whether a subscriber gets a notification for an event.

    Args:
        user: Subscriber.
        event: Resolved event.
        settings: Subscriber settings.

    Returns:
        True when a notification should be built.
    """
    if not user.email:
        logger.debug("User has no email: %s", user.username)
        return False
    if is_self_action(user, event):
        logger.debug("Skip self-notification: %s", user.username)
        return False
    if settings.email_notifications:
        logger.debug("User already receives native notifications: %s", user.username)
        return False
    if user.no_mention_notifications:
        logger.debug("User opted out of notifications: %s", user.username)
        return False
    return True


def should_get_newsletters(user: User, event: ResolvedEvent) -> bool:
    """
    Decide whether a subscriber gets an event in their newsletter.

    Args:
        user: Subscriber.
        event: Resolved event.

    Returns:
        True when the event belongs in the digest.
    """
    if not user.email:
        logger.debug("User has no email: %s", user.username)
        return False
    if is_self_action(user, event):
        logger.debug("Skip own event in newsletter: %s", user.username)
        return False
    if user.no_newsletters:
        logger.debug("User opted out of newsletters: %s", user.username)
        return False
    return True


async def is_eligible(
    audience: Audience,
    user: User | None,
    event: ResolvedEvent,
    settings_cache: UserSettingsCache,
) -> bool:
    """
    Apply the rules of an audience to one (event, recipient) pair.

    Args:
        audience: Notifications or newsletters.
        user: Subscriber, None when the user record is missing.
        event: Resolved event.
        settings_cache: Settings lookup.

    Returns:
        True when the recipient should get the event.
    """
    if user is None:
        return False
    if audience is Audience.NEWSLETTERS:
        return should_get_newsletters(user, event)
    settings = await settings_cache.get(user.username)
    return should_get_notifications(user, event, settings)
