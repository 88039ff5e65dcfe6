"""Async HTTP client for the interpretations, users and user settings API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import httpx

from notifier.errors import SourceFetchError
from notifier.notify.models import User, UserSettings
from notifier.records.models import ParentRecord, parse_records
from notifier.records.objects import OBJECTS_INFO
from notifier.shared.constants import (
    HTTP_RETRIES,
    HTTP_TIMEOUT_SECONDS,
    RETRYABLE_STATUS_CODES,
)

logger = logging.getLogger(__name__)

USER_FIELD = "user[id,displayName,userCredentials[username]]"
USER_FIELDS = ",".join(
    [
        "id",
        "displayName",
        "email",
        "userCredentials[username]",
        "attributeValues[value,attribute[code]]",
    ]
)


def build_object_fields() -> list[str]:
    """
    Build the nested shared object selectors for every object type.

    Returns:
        Field selectors like ``chart[id,name,subscribers,user[...]]``.
    """
    return [
        f"{info.field}[id,name,subscribers,{USER_FIELD}]" for info in OBJECTS_INFO
    ]


def build_interpretation_fields() -> str:
    """
    Build the field selector used for both sync and detail requests.

    Returns:
        Comma separated field selector.
    """
    return ",".join(
        [
            "id",
            "text",
            "type",
            "created",
            "likes",
            "lastUpdated",
            USER_FIELD,
            f"comments[id,text,lastUpdated,{USER_FIELD}]",
            *build_object_fields(),
        ]
    )


def build_id_filter(ids: Sequence[str]) -> str:
    """
    Build an ``id:in:[...]`` filter.

    Args:
        ids: Identifiers.

    Returns:
        Filter expression.
    """
    return f"id:in:[{','.join(ids)}]"


class RecordSourceClient:
    """
    Client for the remote interpretation source.

    Args:
        base_url: API root, like ``https://play.dhis2.org/api``.
        username: Basic auth user.
        password: Basic auth password.
        timeout: HTTP request timeout in seconds.
        retries: Number of retries for transient errors.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        retries: int = HTTP_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.retries = max(0, retries)
        auth = httpx.BasicAuth(username, password or "") if username else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> RecordSourceClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        """
        Perform a GET request and parse JSON.

        Args:
            path: Path relative to the API root.
            params: Query parameters.

        Returns:
            Parsed JSON payload.

        Raises:
            SourceFetchError: Request failed after retries or returned
                non-JSON content.
        """
        for attempt in range(self.retries + 1):
            try:
                response = await self._client.get(path, params=params)
            except httpx.RequestError as exc:
                if attempt < self.retries:
                    await asyncio.sleep(1 + attempt)
                    continue
                raise SourceFetchError(f"GET {path} failed: {exc}") from exc

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as exc:
                    raise SourceFetchError(f"GET {path} returned invalid JSON") from exc

            if (
                response.status_code in RETRYABLE_STATUS_CODES
                and attempt < self.retries
            ):
                logger.debug("GET %s returned %d, retrying", path, response.status_code)
                await asyncio.sleep(1 + attempt)
                continue

            raise SourceFetchError(f"GET {path} returned HTTP {response.status_code}")

        raise SourceFetchError(f"GET {path} failed")

    async def _get_interpretations(
        self, filter_value: str | None
    ) -> list[ParentRecord]:
        params: dict[str, Any] = {
            "paging": "false",
            "fields": build_interpretation_fields(),
        }
        if filter_value:
            params["filter"] = filter_value
        payload = await self._get_json("/interpretations", params)
        if not isinstance(payload, dict):
            raise SourceFetchError("Interpretations response must be an object")
        try:
            return parse_records(payload.get("interpretations"))
        except ValueError as exc:
            raise SourceFetchError(f"Malformed interpretations: {exc}") from exc

    async def fetch_all(self) -> list[ParentRecord]:
        """
        Fetch every interpretation with its comments.

        Returns:
            Interpretations in source order.
        """
        return await self._get_interpretations(None)

    async def fetch_changed_since(self, day: str) -> list[ParentRecord]:
        """
        Fetch interpretations updated on or after a day.

        Args:
            day: ``YYYY-MM-DD`` in UTC.

        Returns:
            Changed interpretations in source order.
        """
        return await self._get_interpretations(f"lastUpdated:ge:{day}")

    async def fetch_details(self, ids: Sequence[str]) -> list[ParentRecord]:
        """
        Fetch current interpretations by id, including shared objects.

        Args:
            ids: Interpretation identifiers.

        Returns:
            Interpretations still present in the source.
        """
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return []
        return await self._get_interpretations(build_id_filter(unique_ids))

    async def fetch_users(self, ids: Sequence[str]) -> list[User]:
        """
        Fetch users by id.

        Args:
            ids: User identifiers.

        Returns:
            Users found in the source.
        """
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return []
        payload = await self._get_json(
            "/users",
            {
                "paging": "false",
                "filter": build_id_filter(unique_ids),
                "fields": USER_FIELDS,
            },
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("users"), list):
            raise SourceFetchError("Users response must contain a users list")
        users: list[User] = []
        for item in payload["users"]:
            user = User.from_payload(item)
            if user is not None:
                users.append(user)
        return users

    async def fetch_user_settings(self, username: str) -> UserSettings:
        """
        Fetch the settings of one user.

        Args:
            username: Login name.

        Returns:
            Parsed settings.
        """
        payload = await self._get_json("/userSettings", {"user": username})
        return UserSettings.from_payload(payload)
