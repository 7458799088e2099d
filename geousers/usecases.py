"""User lifecycle operations composing geocoding with persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from .errors import ExternalServiceError
from .geodata import SERVICE_NAME, GeodataClient
from .models import Geodata, NewUser, User, UserPatch, utcnow
from .store import UserStore

logger = logging.getLogger("geousers.usecases")


async def _geocode(geodata_client: GeodataClient, zip_code: str, *, purpose: str) -> Geodata:
    try:
        geodata = await geodata_client.get_by_zip_code(zip_code)
    except Exception as exc:
        logger.error("Failed to fetch geodata for user %s (zip=%s): %s", purpose, zip_code, exc)
        raise ExternalServiceError(
            f"Unable to fetch location data for ZIP code {zip_code}", service=SERVICE_NAME
        ) from exc

    logger.info(
        "Fetched geodata for user %s (zip=%s, lat=%s, lon=%s, timezone=%s)",
        purpose,
        zip_code,
        geodata.latitude,
        geodata.longitude,
        geodata.timezone,
    )
    return geodata


class CreateUser:
    """Geocode the ZIP code, then persist the enriched user.

    Nothing is written when geocoding fails.
    """

    def __init__(self, store: UserStore, geodata_client: GeodataClient) -> None:
        self._store = store
        self._geodata_client = geodata_client

    async def execute(self, new_user: NewUser) -> User:
        geodata = await _geocode(self._geodata_client, new_user.zip_code, purpose="creation")
        return await self._store.create(new_user, geodata)


class GetUser:
    def __init__(self, store: UserStore) -> None:
        self._store = store

    async def execute(self, user_id: str) -> Optional[User]:
        return await self._store.find_by_id(user_id)


class ListUsers:
    def __init__(self, store: UserStore) -> None:
        self._store = store

    async def execute(self) -> List[User]:
        return await self._store.find_all()


class UpdateUser:
    """Apply a partial update, refreshing geodata when the ZIP code changes.

    ``updated_at`` is stamped on every call, even for an empty patch.
    """

    def __init__(self, store: UserStore, geodata_client: GeodataClient) -> None:
        self._store = store
        self._geodata_client = geodata_client

    async def execute(self, user_id: str, patch: UserPatch) -> Optional[User]:
        changes = replace(patch, updated_at=utcnow())

        if patch.has("zip_code"):
            geodata = await _geocode(self._geodata_client, patch.zip_code, purpose="update")  # type: ignore[arg-type]
            changes = changes.with_geodata(geodata)

        return await self._store.update(user_id, changes)


class DeleteUser:
    def __init__(self, store: UserStore) -> None:
        self._store = store

    async def execute(self, user_id: str) -> bool:
        return await self._store.delete(user_id)


@dataclass(frozen=True)
class UserUseCases:
    """The five user operations wired against one store and geocoder."""

    create: CreateUser
    get: GetUser
    list: ListUsers
    update: UpdateUser
    delete: DeleteUser

    @classmethod
    def build(cls, store: UserStore, geodata_client: GeodataClient) -> "UserUseCases":
        return cls(
            create=CreateUser(store, geodata_client),
            get=GetUser(store),
            list=ListUsers(store),
            update=UpdateUser(store, geodata_client),
            delete=DeleteUser(store),
        )


__all__ = [
    "CreateUser",
    "DeleteUser",
    "GetUser",
    "ListUsers",
    "UpdateUser",
    "UserUseCases",
]
