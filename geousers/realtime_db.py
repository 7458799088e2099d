"""User store backed by the Firebase Realtime Database REST interface.

Users live as children of the ``users`` node, each keyed by the push ID the
database generates on ``POST``. Records are stored with the same camelCase
keys the HTTP API exposes::

    users/
      -OX7KxhYijw4R-64om8t: {name, zipCode, latitude, longitude,
                             timezone, createdAt, updatedAt}
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from .config import StoreSettings
from .errors import StoreError
from .models import Geodata, NewUser, User, UserPatch, format_timestamp, parse_timestamp, utcnow
from .store import UserStore

logger = logging.getLogger("geousers.realtime_db")

USERS_PATH = "users"

# Characters the database forbids in keys.
_INVALID_KEY = re.compile(r"[.$#\[\]/\x00-\x1f\x7f]")

_WIRE_NAMES = {
    "name": "name",
    "zip_code": "zipCode",
    "latitude": "latitude",
    "longitude": "longitude",
    "timezone": "timezone",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def user_to_record(user: User) -> Dict[str, Any]:
    return {
        "name": user.name,
        "zipCode": user.zip_code,
        "latitude": user.latitude,
        "longitude": user.longitude,
        "timezone": user.timezone,
        "createdAt": format_timestamp(user.created_at),
        "updatedAt": format_timestamp(user.updated_at),
    }


def record_to_user(user_id: str, record: Mapping[str, Any]) -> User:
    try:
        return User(
            id=user_id,
            name=str(record["name"]),
            zip_code=str(record["zipCode"]),
            latitude=float(record["latitude"]),
            longitude=float(record["longitude"]),
            timezone=str(record["timezone"]),
            created_at=parse_timestamp(str(record["createdAt"])),
            updated_at=parse_timestamp(str(record["updatedAt"])),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise StoreError(f"Stored user {user_id} is malformed") from exc


def patch_to_record(patch: UserPatch) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    for name, value in patch.changes().items():
        if name in ("created_at", "updated_at"):
            value = format_timestamp(value)  # type: ignore[arg-type]
        record[_WIRE_NAMES[name]] = value
    return record


class RealtimeDatabaseUserStore(UserStore):
    """Persist users as children of ``users`` in a Realtime Database."""

    backend_name = "realtime_db"

    def __init__(
        self,
        database_url: str,
        *,
        auth_token: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        cleaned = (database_url or "").strip().rstrip("/")
        if not cleaned:
            raise ValueError("Realtime Database URL must not be empty")
        self._base_url = cleaned
        self._params: Dict[str, str] = {}
        if auth_token:
            self._params["auth"] = auth_token
        if namespace:
            self._params["ns"] = namespace
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: StoreSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "RealtimeDatabaseUserStore":
        if not settings.database_url:
            raise ValueError("Realtime Database URL must be configured")
        return cls(
            settings.database_url,
            auth_token=settings.auth_token,
            namespace=settings.namespace,
            timeout=settings.timeout,
            transport=transport,
        )

    def _url(self, *segments: str) -> str:
        # Each segment is a single key, so reserved URL characters are escaped.
        path = "/".join(quote(segment.strip("/"), safe="") for segment in segments)
        return f"{self._base_url}/{path}.json"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> Any:
        query = dict(self._params)
        if params:
            query.update(params)
        try:
            response = await self._client.request(method, url, json=json, params=query)
        except httpx.RequestError as exc:
            raise StoreError(f"Failed to contact the Realtime Database: {exc}") from exc

        if response.status_code >= 400:
            detail = response.text.strip() or response.reason_phrase
            raise StoreError(
                f"Realtime Database {method} {url} failed with status {response.status_code}: {detail}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise StoreError("Realtime Database returned an invalid response") from exc

    async def create(self, new_user: NewUser, geodata: Geodata) -> User:
        now = utcnow()
        draft = User(
            id="",
            name=new_user.name,
            zip_code=new_user.zip_code,
            latitude=geodata.latitude,
            longitude=geodata.longitude,
            timezone=geodata.timezone,
            created_at=now,
            updated_at=now,
        )
        payload = await self._request("POST", self._url(USERS_PATH), json=user_to_record(draft))
        key = payload.get("name") if isinstance(payload, dict) else None
        if not isinstance(key, str) or not key:
            raise StoreError("Realtime Database did not return a key for the new user")

        logger.info("Created user %s", key)
        return replace(draft, id=key)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id or _INVALID_KEY.search(user_id):
            return None
        record = await self._request("GET", self._url(USERS_PATH, user_id))
        if record is None:
            return None
        if not isinstance(record, dict):
            raise StoreError(f"Stored user {user_id} is malformed")
        return record_to_user(user_id, record)

    async def find_all(self) -> List[User]:
        records = await self._request("GET", self._url(USERS_PATH))
        if not records:
            return []
        if not isinstance(records, dict):
            raise StoreError("Stored user collection is malformed")
        return [record_to_user(user_id, record) for user_id, record in records.items()]

    async def update(self, user_id: str, patch: UserPatch) -> Optional[User]:
        existing = await self.find_by_id(user_id)
        if existing is None:
            return None

        updated = patch.apply(existing)
        changes = patch_to_record(patch)
        changes["updatedAt"] = format_timestamp(updated.updated_at)
        await self._request("PATCH", self._url(USERS_PATH, user_id), json=changes)

        logger.info("Updated user %s (%s)", user_id, ", ".join(sorted(changes)))
        return updated

    async def delete(self, user_id: str) -> bool:
        existing = await self.find_by_id(user_id)
        if existing is None:
            return False

        await self._request("DELETE", self._url(USERS_PATH, user_id))
        logger.info("Deleted user %s", user_id)
        return True

    async def ping(self) -> None:
        await self._request("GET", self._url(USERS_PATH), params={"shallow": "true"})

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = [
    "RealtimeDatabaseUserStore",
    "USERS_PATH",
    "patch_to_record",
    "record_to_user",
    "user_to_record",
]
