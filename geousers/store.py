"""User store contract and its in-memory implementation."""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional

from .models import Geodata, NewUser, User, UserPatch, utcnow


class UserStore(ABC):
    """Persistence contract for user records.

    ``update`` and ``delete`` signal an unknown ID with ``None``/``False``
    and never raise for it. Connectivity or storage failures always raise.
    """

    backend_name = "unknown"

    @abstractmethod
    async def create(self, new_user: NewUser, geodata: Geodata) -> User:
        """Persist a new user and return it with its assigned ID."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Return the user with ``user_id`` or ``None``."""

    @abstractmethod
    async def find_all(self) -> List[User]:
        """Return every stored user."""

    @abstractmethod
    async def update(self, user_id: str, patch: UserPatch) -> Optional[User]:
        """Apply ``patch`` and return the merged user, or ``None`` if absent."""

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Remove the user, returning ``False`` when it did not exist."""

    async def ping(self) -> None:
        """Raise if the store cannot serve requests."""

    async def aclose(self) -> None:
        """Release any resources held by the store."""


class InMemoryUserStore(UserStore):
    """Keeps users in a dictionary guarded by an asyncio lock."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._users: Dict[str, User] = {}

    async def create(self, new_user: NewUser, geodata: Geodata) -> User:
        now = utcnow()
        user = User(
            id=uuid.uuid4().hex,
            name=new_user.name,
            zip_code=new_user.zip_code,
            latitude=geodata.latitude,
            longitude=geodata.longitude,
            timezone=geodata.timezone,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._users[user.id] = user
        return user

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with self._lock:
            return self._users.get(user_id)

    async def find_all(self) -> List[User]:
        async with self._lock:
            return list(self._users.values())

    async def update(self, user_id: str, patch: UserPatch) -> Optional[User]:
        async with self._lock:
            existing = self._users.get(user_id)
            if existing is None:
                return None
            updated = patch.apply(existing)
            self._users[user_id] = updated
            return updated

    async def delete(self, user_id: str) -> bool:
        async with self._lock:
            return self._users.pop(user_id, None) is not None

    def clear(self) -> None:
        self._users.clear()

    def count(self) -> int:
        return len(self._users)

    def seed(self, user: User) -> None:
        """Insert ``user`` as-is, keeping its ID and timestamps."""

        self._users[user.id] = replace(user)


__all__ = ["InMemoryUserStore", "UserStore"]
