import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from geousers.models import User  # noqa: E402
from geousers.schemas import CreateUserRequest, UpdateUserRequest, UserView  # noqa: E402


@pytest.mark.parametrize("zip_code", ["10001", "10001-1234", "00000"])
def test_valid_zip_codes(zip_code: str) -> None:
    request = CreateUserRequest.model_validate({"name": "John Doe", "zipCode": zip_code})
    assert request.to_new_user().zip_code == zip_code


@pytest.mark.parametrize(
    "zip_code",
    ["invalid", "1234", "123456", "10001-12", "10001 1234", "10001\n", "١٢٣٤٥", ""],
)
def test_invalid_zip_codes(zip_code: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        CreateUserRequest.model_validate({"name": "John Doe", "zipCode": zip_code})
    assert excinfo.value.errors()[0]["msg"] == "Invalid ZIP code format"


def test_name_length_bounds() -> None:
    assert CreateUserRequest.model_validate({"name": "x" * 100, "zipCode": "10001"}).name == "x" * 100

    with pytest.raises(ValidationError):
        CreateUserRequest.model_validate({"name": "x" * 101, "zipCode": "10001"})


def test_update_patch_contains_only_sent_fields() -> None:
    assert UpdateUserRequest.model_validate({}).to_patch().changes() == {}

    patch = UpdateUserRequest.model_validate({"zipCode": "90210", "latitude": 1.0}).to_patch()
    assert patch.changes() == {"zip_code": "90210"}


def test_update_rejects_explicit_null() -> None:
    with pytest.raises(ValidationError):
        UpdateUserRequest.model_validate({"zipCode": None})


def test_user_view_serialises_camel_case_and_utc_timestamps() -> None:
    stamp = datetime(2024, 5, 1, 12, 30, 15, 123000, tzinfo=timezone.utc)
    user = User(
        id="abc",
        name="John Doe",
        zip_code="10001",
        latitude=40.7505,
        longitude=-73.9965,
        timezone="UTC-5",
        created_at=stamp,
        updated_at=stamp,
    )

    dumped = UserView.from_user(user).model_dump(mode="json", by_alias=True)

    assert dumped == {
        "id": "abc",
        "name": "John Doe",
        "zipCode": "10001",
        "latitude": 40.7505,
        "longitude": -73.9965,
        "timezone": "UTC-5",
        "createdAt": "2024-05-01T12:30:15.123Z",
        "updatedAt": "2024-05-01T12:30:15.123Z",
    }
