"""Message rendering for notifications and newsletters."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from notifier.notify.i18n import Translator, get_translator
from notifier.notify.models import (
    MailMessage,
    OutgoingMessage,
    RenderContext,
    ResolvedEvent,
    TriggerData,
    User,
)
from notifier.records.models import ParentRecord, SharedObject
from notifier.shared.constants import NOTIFICATION_SETTINGS_APP_PATH
from notifier.shared.converters import truncate_text
from notifier.shared.dates import utc_now
from notifier.sync.events import EventModel

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
NEWSLETTER_TEMPLATE = "newsletter.html"
MAX_LINK_TEXT_LENGTH = 80

_environment = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def notification_settings_url(public_url: str) -> str:
    """
    Build the notification settings app URL.

    Args:
        public_url: Public root URL.

    Returns:
        Settings app URL used as unsubscribe link.
    """
    return f"{public_url.rstrip('/')}/{NOTIFICATION_SETTINGS_APP_PATH}"


def object_url(shared_object: SharedObject | None, public_url: str) -> str:
    """
    Build the app URL of a shared object.

    Args:
        shared_object: Shared object.
        public_url: Public root URL.

    Returns:
        Object URL, or the public root without an object.
    """
    root = public_url.rstrip("/")
    if shared_object is None:
        return root
    return f"{root}/{shared_object.info.object_path.format(id=shared_object.id)}"


def interpretation_url(parent: ParentRecord, public_url: str) -> str:
    """
    Build the app URL focused on one interpretation.

    Args:
        parent: Interpretation.
        public_url: Public root URL.

    Returns:
        Interpretation URL, or the public root without an object.
    """
    root = public_url.rstrip("/")
    if parent.object is None:
        return root
    path = parent.object.info.interpretation_path.format(
        id=parent.object.id, interpretation_id=parent.id
    )
    return f"{root}/{path}"


def likes_label(translator: Translator, likes: int) -> str:
    """
    Build the like count suffix of an interpretation.

    Args:
        translator: Recipient translator.
        likes: Like count.

    Returns:
        Text like `` (3 likes)``, empty without likes.
    """
    if likes <= 0:
        return ""
    if likes == 1:
        return f" ({translator.t('1_like')})"
    return f" ({translator.t('n_likes', n=likes)})"


def action_label(translator: Translator, resolved: ResolvedEvent) -> str:
    event = resolved.event
    return translator.t(f"{event.model.value}_{event.type.value}")


def translator_for(
    data: TriggerData, user: User, context: RenderContext
) -> Translator:
    return get_translator(data.locale_for(user, context.locale), context.locale)


def author_name(resolved: ResolvedEvent) -> str:
    author = resolved.author
    return author.display_name if author is not None else ""


def build_notification_text(
    translator: Translator, resolved: ResolvedEvent, context: RenderContext
) -> str:
    """
    Build the plain-text body of a notification.

    Args:
        translator: Recipient translator.
        resolved: Resolved event.
        context: Render context.

    Returns:
        Notification body.
    """
    author = resolved.author
    headline = [author_name(resolved)]
    if author is not None and author.username:
        headline.append(f"({author.username})")
    headline.extend(
        [action_label(translator, resolved), f"{translator.t('object_subscribed')}:"]
    )
    return "\n\n".join(
        [
            " ".join(part for part in headline if part),
            interpretation_url(resolved.parent, context.public_url),
            resolved.text,
            f"---\n{translator.t('unsubscribe')}: {context.unsubscribe_url}",
        ]
    )


def build_notification_messages(
    data: TriggerData, context: RenderContext
) -> list[OutgoingMessage]:
    """
    Build one plain-text message per event and eligible recipient.

    Args:
        data: Deliveries and recipient settings.
        context: Render context.

    Returns:
        Messages in event order.
    """
    messages: list[OutgoingMessage] = []
    for delivery in data.deliveries:
        resolved = delivery.event
        for user in delivery.recipients:
            if not user.email:
                continue
            translator = translator_for(data, user, context)
            subject = " ".join(
                part
                for part in [author_name(resolved), action_label(translator, resolved)]
                if part
            )
            messages.append(
                OutgoingMessage(
                    username=user.username,
                    event_created=resolved.event.created,
                    mail=MailMessage(
                        recipients=(user.email,),
                        subject=subject,
                        text=build_notification_text(translator, resolved, context),
                    ),
                )
            )
    return messages


@dataclass(frozen=True)
class NewsletterItem:
    """One interpretation or comment line of a newsletter entry."""

    author: str
    text: str
    created: datetime
    likes: str
    url: str | None


@dataclass(frozen=True)
class NewsletterEntry:
    """
    Newsletter section for one object or one commented interpretation.

    Args:
        is_comment: Section lists comments of one interpretation.
        object_name: Shared object name.
        object_url: Shared object URL.
        items: Lines sorted by created.
        interpretation_url: Commented interpretation URL.
        interpretation_text: Commented interpretation excerpt.
    """

    is_comment: bool
    object_name: str
    object_url: str
    items: tuple[NewsletterItem, ...]
    interpretation_url: str | None = None
    interpretation_text: str | None = None


def object_key(resolved: ResolvedEvent) -> str:
    shared_object = resolved.object
    return shared_object.id if shared_object is not None else ""


def object_name(resolved: ResolvedEvent) -> str:
    shared_object = resolved.object
    return shared_object.name if shared_object is not None else ""


def build_newsletter_entries(
    translator: Translator, events: Sequence[ResolvedEvent], public_url: str
) -> list[NewsletterEntry]:
    """
    Group a recipient's events into newsletter sections.

    Interpretation events are grouped by shared object and comment events by
    interpretation. Sections are sorted by object name, interpretation
    sections first.

    Args:
        translator: Recipient translator.
        events: Recipient events.
        public_url: Public root URL.

    Returns:
        Newsletter sections.
    """
    by_object: dict[str, list[ResolvedEvent]] = defaultdict(list)
    by_parent: dict[str, list[ResolvedEvent]] = defaultdict(list)
    for resolved in events:
        if resolved.event.model is EventModel.PARENT:
            by_object[object_key(resolved)].append(resolved)
        else:
            by_parent[resolved.parent.id].append(resolved)

    def sorted_events(group: list[ResolvedEvent]) -> list[ResolvedEvent]:
        return sorted(group, key=lambda resolved: resolved.event.created)

    entries: list[NewsletterEntry] = []
    for group in by_object.values():
        first = group[0]
        entries.append(
            NewsletterEntry(
                is_comment=False,
                object_name=object_name(first),
                object_url=object_url(first.object, public_url),
                items=tuple(
                    NewsletterItem(
                        author=author_name(resolved),
                        text=resolved.text,
                        created=resolved.event.created,
                        likes=likes_label(translator, resolved.parent.likes),
                        url=interpretation_url(resolved.parent, public_url),
                    )
                    for resolved in sorted_events(group)
                ),
            )
        )
    for group in by_parent.values():
        first = group[0]
        entries.append(
            NewsletterEntry(
                is_comment=True,
                object_name=object_name(first),
                object_url=object_url(first.object, public_url),
                items=tuple(
                    NewsletterItem(
                        author=author_name(resolved),
                        text=resolved.text,
                        created=resolved.event.created,
                        likes="",
                        url=None,
                    )
                    for resolved in sorted_events(group)
                ),
                interpretation_url=interpretation_url(first.parent, public_url),
                interpretation_text=truncate_text(
                    first.parent.text, MAX_LINK_TEXT_LENGTH
                ),
            )
        )
    return sorted(entries, key=lambda entry: (entry.object_name, entry.is_comment))


def render_newsletter(
    translator: Translator,
    events: Sequence[ResolvedEvent],
    context: RenderContext,
) -> tuple[str, str]:
    """
    Render the subject and HTML body of one newsletter.

    Args:
        translator: Recipient translator.
        events: Recipient events.
        context: Render context.

    Returns:
        Subject and HTML body.
    """
    end = context.end or utc_now()
    start = context.start or end
    title = translator.t("newsletter_title")
    details_title = translator.t(
        "n_interpretations_and_comments_on_m_favorites",
        n=len(events),
        m=len({object_key(resolved) for resolved in events}),
    )
    html = _environment.get_template(NEWSLETTER_TEMPLATE).render(
        locale=translator.locale,
        title=title,
        details_title=details_title,
        entries=build_newsletter_entries(translator, events, context.public_url),
        start=start,
        end=end,
        t=translator.t,
        format_date=translator.format_date,
        assets_url=context.assets_url,
        footer_text=context.footer_text,
        unsubscribe_url=context.unsubscribe_url,
        privacy_policy_url=context.privacy_policy_url,
    )
    return f"{title} ({translator.format_date(end)})", html


def build_newsletter_messages(
    data: TriggerData, context: RenderContext
) -> list[OutgoingMessage]:
    """
    Build one HTML digest per eligible recipient.

    Args:
        data: Deliveries and recipient settings.
        context: Render context.

    Returns:
        Messages in order of each recipient's first event.
    """
    users: dict[str, User] = {}
    events_by_user: dict[str, list[ResolvedEvent]] = defaultdict(list)
    for delivery in data.deliveries:
        for user in delivery.recipients:
            if not user.email:
                continue
            users.setdefault(user.username, user)
            events_by_user[user.username].append(delivery.event)

    messages: list[OutgoingMessage] = []
    for username, user in users.items():
        events = events_by_user[username]
        translator = translator_for(data, user, context)
        subject, html = render_newsletter(translator, events, context)
        messages.append(
            OutgoingMessage(
                username=username,
                event_created=max(resolved.event.created for resolved in events),
                mail=MailMessage(recipients=(user.email,), subject=subject, html=html),
            )
        )
    return messages
