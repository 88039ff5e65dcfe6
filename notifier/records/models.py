"""Parent (interpretation) and child (comment) record models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from notifier.records.objects import ObjectInfo, get_object_info
from notifier.shared.converters import to_int, to_string_list, to_text
from notifier.shared.dates import format_iso, parse_source_datetime


@dataclass(frozen=True)
class Author:
    """
    User who wrote an interpretation or comment.

    Args:
        id: User identifier.
        display_name: Display name.
        username: Login name.
    """

    id: str
    display_name: str
    username: str

    @classmethod
    def from_payload(cls, payload: Any) -> Author | None:
        """
        Parse an author from a source ``user`` object.

        Args:
            payload: Source user object.

        Returns:
            Parsed author or None when the payload has no id.
        """
        if not isinstance(payload, dict):
            return None
        user_id = to_text(payload.get("id"))
        if not user_id:
            return None
        credentials = payload.get("userCredentials")
        username = None
        if isinstance(credentials, dict):
            username = to_text(credentials.get("username"))
        display_name = to_text(payload.get("displayName")) or username or user_id
        return cls(id=user_id, display_name=display_name, username=username or "")

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize back to the source ``user`` shape.

        Returns:
            Source user object.
        """
        return {
            "id": self.id,
            "displayName": self.display_name,
            "userCredentials": {"username": self.username},
        }


@dataclass(frozen=True)
class SharedObject:
    """
    Shared object (chart, map, table...) an interpretation is attached to.

    Args:
        id: Object identifier.
        name: Object name.
        info: Static metadata of the object type.
        subscribers: Subscribed user identifiers.
    """

    id: str
    name: str
    info: ObjectInfo
    subscribers: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the source object shape."""
        return {
            "id": self.id,
            "name": self.name,
            "subscribers": list(self.subscribers),
        }


@dataclass(frozen=True)
class ChildRecord:
    """
    Comment nested under exactly one interpretation.

    Args:
        id: Comment identifier.
        text: Comment text.
        last_updated: Source last-updated timestamp (UTC).
        author: Comment author when the source supplied it.
    """

    id: str
    text: str
    last_updated: datetime
    author: Author | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ChildRecord:
        """
        Parse a comment from a source payload.

        Args:
            payload: Source comment object.

        Returns:
            Parsed comment.

        Raises:
            ValueError: Required fields are missing or invalid.
        """
        comment_id = to_text(payload.get("id"))
        if not comment_id:
            raise ValueError("Comment id is required")
        last_updated = parse_source_datetime(to_text(payload.get("lastUpdated")))
        if last_updated is None:
            raise ValueError(f"Comment {comment_id} has no valid lastUpdated")
        return cls(
            id=comment_id,
            text=str(payload.get("text") or ""),
            last_updated=last_updated,
            author=Author.from_payload(payload.get("user")),
        )

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize to the cached comment shape.

        Returns:
            Comment object.
        """
        payload: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "lastUpdated": format_iso(self.last_updated),
        }
        if self.author is not None:
            payload["user"] = self.author.to_payload()
        return payload


@dataclass(frozen=True)
class ParentRecord:
    """
    Interpretation with its nested comments.

    Args:
        id: Interpretation identifier.
        text: Interpretation text.
        last_updated: Source last-updated timestamp (UTC).
        subscribers: Subscribers of the shared object.
        comments: Ordered nested comments.
        created: Creation timestamp when supplied.
        likes: Like count.
        type: Interpretation type value.
        author: Interpretation author when supplied.
        object: Shared object when supplied.
    """

    id: str
    text: str
    last_updated: datetime
    subscribers: frozenset[str] = frozenset()
    comments: tuple[ChildRecord, ...] = ()
    created: datetime | None = None
    likes: int = 0
    type: str | None = None
    author: Author | None = None
    object: SharedObject | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ParentRecord:
        """
        Parse an interpretation from a source or cache payload.

        Args:
            payload: Interpretation object.

        Returns:
            Parsed interpretation.

        Raises:
            ValueError: Required fields are missing or invalid.
        """
        if not isinstance(payload, dict):
            raise ValueError("Interpretation payload must be an object")
        interpretation_id = to_text(payload.get("id"))
        if not interpretation_id:
            raise ValueError("Interpretation id is required")
        last_updated = parse_source_datetime(to_text(payload.get("lastUpdated")))
        if last_updated is None:
            raise ValueError(
                f"Interpretation {interpretation_id} has no valid lastUpdated"
            )

        raw_comments = payload.get("comments")
        comments = tuple(
            ChildRecord.from_payload(item)
            for item in (raw_comments if isinstance(raw_comments, list) else [])
            if isinstance(item, dict)
        )

        object_type = to_text(payload.get("type"))
        shared_object = parse_shared_object(payload, get_object_info(object_type))
        if shared_object is not None:
            subscribers = frozenset(shared_object.subscribers)
        else:
            subscribers = frozenset(to_string_list(payload.get("subscribers")))

        return cls(
            id=interpretation_id,
            text=str(payload.get("text") or ""),
            last_updated=last_updated,
            subscribers=subscribers,
            comments=comments,
            created=parse_source_datetime(to_text(payload.get("created"))),
            likes=to_int(payload.get("likes")) or 0,
            type=object_type,
            author=Author.from_payload(payload.get("user")),
            object=shared_object,
        )

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize to the cached interpretation shape.

        Returns:
            Interpretation object.
        """
        payload: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "lastUpdated": format_iso(self.last_updated),
            "likes": self.likes,
            "comments": [comment.to_payload() for comment in self.comments],
        }
        if self.created is not None:
            payload["created"] = format_iso(self.created)
        if self.type:
            payload["type"] = self.type
        if self.author is not None:
            payload["user"] = self.author.to_payload()
        if self.object is not None:
            payload[self.object.info.field] = self.object.to_payload()
        elif self.subscribers:
            payload["subscribers"] = sorted(self.subscribers)
        return payload

    def find_comment(self, comment_id: str) -> ChildRecord | None:
        """
        Find a nested comment by id.

        Args:
            comment_id: Comment identifier.

        Returns:
            Matching comment or None.
        """
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None


def parse_shared_object(
    payload: dict[str, Any],
    info: ObjectInfo | None,
) -> SharedObject | None:
    """
    Extract the shared object nested under the type-specific field.

    Args:
        payload: Interpretation object.
        info: Metadata of the interpretation type.

    Returns:
        Shared object or None when absent.
    """
    if info is None:
        return None
    raw_object = payload.get(info.field)
    if not isinstance(raw_object, dict):
        return None
    object_id = to_text(raw_object.get("id"))
    if not object_id:
        return None
    return SharedObject(
        id=object_id,
        name=to_text(raw_object.get("name")) or object_id,
        info=info,
        subscribers=tuple(to_string_list(raw_object.get("subscribers"))),
    )


def parse_records(payloads: Any) -> list[ParentRecord]:
    """
    Parse a list of interpretation payloads.

    Args:
        payloads: JSON array of interpretation objects.

    Returns:
        Parsed records in input order.

    Raises:
        ValueError: Payload is not a list or an entry is invalid.
    """
    if not isinstance(payloads, list):
        raise ValueError("Interpretations payload must be a list")
    return [ParentRecord.from_payload(item) for item in payloads]
