"""Domain models for user records and their geodata enrichment."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Union


class _Unset(Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset.UNSET
"""Marker for patch attributes that were not part of an update."""


def utcnow() -> datetime:
    # Millisecond precision, matching what the serialized timestamps carry.
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as an ISO-8601 UTC timestamp with a ``Z`` suffix."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting the ``Z`` UTC designator."""

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Geodata:
    """Coordinates and UTC offset resolved for a ZIP code."""

    latitude: float
    longitude: float
    timezone: str


@dataclass(frozen=True)
class NewUser:
    """Caller-supplied attributes of a user that is about to be created."""

    name: str
    zip_code: str


@dataclass(frozen=True)
class User:
    """A stored user record."""

    id: str
    name: str
    zip_code: str
    latitude: float
    longitude: float
    timezone: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserPatch:
    """Partial update for a user.

    Every attribute defaults to :data:`UNSET`. Only attributes that carry a
    value are applied, so a patch never clears a field by accident.
    """

    name: Union[str, _Unset] = UNSET
    zip_code: Union[str, _Unset] = UNSET
    latitude: Union[float, _Unset] = UNSET
    longitude: Union[float, _Unset] = UNSET
    timezone: Union[str, _Unset] = UNSET
    updated_at: Union[datetime, _Unset] = UNSET

    def changes(self) -> Dict[str, object]:
        """Return the attributes present in the patch keyed by field name."""

        present: Dict[str, object] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is not UNSET:
                present[item.name] = value
        return present

    def has(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def with_geodata(self, geodata: Geodata) -> "UserPatch":
        return replace(
            self,
            latitude=geodata.latitude,
            longitude=geodata.longitude,
            timezone=geodata.timezone,
        )

    def apply(self, user: User) -> User:
        """Merge the present attributes into ``user``.

        ``updated_at`` is stamped with the current time when the patch does
        not carry its own timestamp.
        """

        changes = self.changes()
        changes.setdefault("updated_at", utcnow())
        return replace(user, **changes)


__all__ = [
    "Geodata",
    "NewUser",
    "UNSET",
    "User",
    "UserPatch",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
