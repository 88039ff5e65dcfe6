"""Builders and fakes shared by the test modules."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from notifier.errors import TransmissionError
from notifier.notify.models import MailMessage, User, UserSettings
from notifier.records.models import Author, ChildRecord, ParentRecord, SharedObject
from notifier.records.objects import get_object_info


def dt(text: str) -> datetime:
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def author(user_id: str) -> Author:
    return Author(id=user_id, display_name=f"User {user_id}", username=user_id)


def chart(
    object_id: str = "chart1",
    name: str = "Chart",
    subscribers: Sequence[str] = (),
) -> SharedObject:
    info = get_object_info("CHART")
    assert info is not None
    return SharedObject(
        id=object_id, name=name, info=info, subscribers=tuple(subscribers)
    )


def comment(
    comment_id: str,
    text: str,
    updated: str,
    author_id: str | None = None,
) -> ChildRecord:
    return ChildRecord(
        id=comment_id,
        text=text,
        last_updated=dt(updated),
        author=author(author_id) if author_id else None,
    )


def parent(
    parent_id: str,
    text: str,
    updated: str,
    comments: Sequence[ChildRecord] = (),
    subscribers: Sequence[str] = (),
    author_id: str | None = None,
    shared_object: SharedObject | None = None,
    likes: int = 0,
) -> ParentRecord:
    if shared_object is not None:
        subscribers = shared_object.subscribers
    return ParentRecord(
        id=parent_id,
        text=text,
        last_updated=dt(updated),
        subscribers=frozenset(subscribers),
        comments=tuple(comments),
        author=author(author_id) if author_id else None,
        object=shared_object,
        type="CHART" if shared_object is not None else None,
        likes=likes,
    )


def user(
    user_id: str,
    email: str | None = "default",
    no_mention_notifications: bool = False,
    no_newsletters: bool = False,
) -> User:
    return User(
        id=user_id,
        display_name=f"User {user_id}",
        username=user_id,
        email=f"{user_id}@example.org" if email == "default" else email,
        no_mention_notifications=no_mention_notifications,
        no_newsletters=no_newsletters,
    )


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSource:
    """In-memory record source covering sync and dispatch lookups."""

    def __init__(
        self,
        records: Sequence[ParentRecord] = (),
        users: Sequence[User] = (),
        settings: dict[str, UserSettings] | None = None,
    ) -> None:
        self.records = list(records)
        self.users = list(users)
        self.settings = dict(settings or {})
        self.calls: list[tuple[str, object]] = []

    async def fetch_all(self) -> list[ParentRecord]:
        self.calls.append(("fetch_all", None))
        return list(self.records)

    async def fetch_changed_since(self, day: str) -> list[ParentRecord]:
        self.calls.append(("fetch_changed_since", day))
        return list(self.records)

    async def fetch_details(self, ids: Sequence[str]) -> list[ParentRecord]:
        self.calls.append(("fetch_details", tuple(ids)))
        wanted = set(ids)
        return [record for record in self.records if record.id in wanted]

    async def fetch_users(self, ids: Sequence[str]) -> list[User]:
        self.calls.append(("fetch_users", tuple(ids)))
        wanted = set(ids)
        return [item for item in self.users if item.id in wanted]

    async def fetch_user_settings(self, username: str) -> UserSettings:
        self.calls.append(("fetch_user_settings", username))
        return self.settings.get(username, UserSettings())


class FakeTransport:
    """Mail transport recording messages, failing for chosen addresses."""

    def __init__(self, failing: Sequence[str] = ()) -> None:
        self.failing = set(failing)
        self.sent: list[MailMessage] = []

    async def send(self, message: MailMessage) -> None:
        if self.failing.intersection(message.recipients):
            raise TransmissionError(f"Refused {', '.join(message.recipients)}")
        self.sent.append(message)
