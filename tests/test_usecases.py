"""Tests for the user lifecycle operations."""

from __future__ import annotations

import asyncio
import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Union

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from geousers.errors import ExternalServiceError  # noqa: E402
from geousers.models import Geodata, NewUser, User, UserPatch  # noqa: E402
from geousers.store import InMemoryUserStore  # noqa: E402
from geousers.usecases import UserUseCases  # noqa: E402

NEW_YORK = Geodata(latitude=40.7505, longitude=-73.9965, timezone="UTC-5")
BEVERLY_HILLS = Geodata(latitude=34.0901, longitude=-118.4065, timezone="UTC-8")
OLD_STAMP = datetime(2020, 1, 1, tzinfo=timezone.utc)


class FakeGeodataClient:
    def __init__(self, results: Dict[str, Union[Geodata, Exception]]) -> None:
        self._results = results
        self.calls: List[str] = []

    async def get_by_zip_code(self, zip_code: str) -> Geodata:
        self.calls.append(zip_code)
        result = self._results.get(zip_code)
        if result is None:
            raise ExternalServiceError(f"Failed to fetch geodata for ZIP {zip_code}")
        if isinstance(result, Exception):
            raise result
        return result


class UserUseCaseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryUserStore()
        self.geodata = FakeGeodataClient(
            {
                "10001": NEW_YORK,
                "90210": BEVERLY_HILLS,
                "55555": RuntimeError("socket closed"),
            }
        )
        self.use_cases = UserUseCases.build(self.store, self.geodata)  # type: ignore[arg-type]

    def _seed(self) -> User:
        user = User(
            id="existing",
            name="Jane Roe",
            zip_code="10001",
            latitude=NEW_YORK.latitude,
            longitude=NEW_YORK.longitude,
            timezone=NEW_YORK.timezone,
            created_at=OLD_STAMP,
            updated_at=OLD_STAMP,
        )
        self.store.seed(user)
        return user

    def test_create_enriches_user_with_geodata(self) -> None:
        user = asyncio.run(self.use_cases.create.execute(NewUser(name="John Doe", zip_code="10001")))

        self.assertEqual((user.latitude, user.longitude, user.timezone), (40.7505, -73.9965, "UTC-5"))
        self.assertEqual(self.geodata.calls, ["10001"])
        self.assertEqual(asyncio.run(self.use_cases.get.execute(user.id)), user)

    def test_create_persists_nothing_when_geocoding_fails(self) -> None:
        for zip_code in ("00000", "55555"):
            with self.subTest(zip_code=zip_code):
                with self.assertRaises(ExternalServiceError) as ctx:
                    asyncio.run(
                        self.use_cases.create.execute(NewUser(name="John Doe", zip_code=zip_code))
                    )
                self.assertEqual(
                    ctx.exception.message, f"Unable to fetch location data for ZIP code {zip_code}"
                )
                self.assertEqual(ctx.exception.service, "OpenWeather")

        self.assertEqual(self.store.count(), 0)

    def test_list_returns_every_user(self) -> None:
        self._seed()
        asyncio.run(self.use_cases.create.execute(NewUser(name="John Doe", zip_code="90210")))

        users = asyncio.run(self.use_cases.list.execute())

        self.assertEqual(sorted(user.name for user in users), ["Jane Roe", "John Doe"])

    def test_update_without_zip_code_does_not_geocode(self) -> None:
        existing = self._seed()

        updated = asyncio.run(self.use_cases.update.execute("existing", UserPatch(name="Jane Updated")))

        assert updated is not None
        self.assertEqual(self.geodata.calls, [])
        self.assertEqual(updated.name, "Jane Updated")
        self.assertEqual(
            (updated.latitude, updated.longitude, updated.timezone),
            (existing.latitude, existing.longitude, existing.timezone),
        )
        self.assertGreater(updated.updated_at, existing.updated_at)
        self.assertEqual(updated.created_at, existing.created_at)

    def test_update_with_zip_code_refreshes_geodata(self) -> None:
        existing = self._seed()

        updated = asyncio.run(self.use_cases.update.execute("existing", UserPatch(zip_code="90210")))

        assert updated is not None
        self.assertEqual(self.geodata.calls, ["90210"])
        self.assertEqual(updated.zip_code, "90210")
        self.assertEqual((updated.latitude, updated.longitude, updated.timezone), (34.0901, -118.4065, "UTC-8"))
        self.assertGreaterEqual(updated.updated_at, existing.updated_at)

    def test_empty_patch_touches_updated_at(self) -> None:
        existing = self._seed()

        updated = asyncio.run(self.use_cases.update.execute("existing", UserPatch()))

        assert updated is not None
        self.assertEqual(updated.name, existing.name)
        self.assertEqual(updated.zip_code, existing.zip_code)
        self.assertGreater(updated.updated_at, existing.updated_at)

    def test_failed_geocode_on_update_leaves_user_unchanged(self) -> None:
        existing = self._seed()

        with self.assertRaises(ExternalServiceError):
            asyncio.run(
                self.use_cases.update.execute("existing", UserPatch(name="X", zip_code="00000"))
            )

        self.assertEqual(asyncio.run(self.use_cases.get.execute("existing")), existing)

    def test_update_missing_user_returns_none(self) -> None:
        self.assertIsNone(asyncio.run(self.use_cases.update.execute("missing", UserPatch(name="X"))))

    def test_delete_twice(self) -> None:
        self._seed()

        self.assertTrue(asyncio.run(self.use_cases.delete.execute("existing")))
        self.assertFalse(asyncio.run(self.use_cases.delete.execute("existing")))
        self.assertIsNone(asyncio.run(self.use_cases.get.execute("existing")))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
