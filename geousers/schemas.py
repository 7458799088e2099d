"""Request and response bodies of the users HTTP API."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from .models import NewUser, User, UserPatch, format_timestamp

ZIP_CODE_PATTERN = re.compile(r"\d{5}(?:-\d{4})?", re.ASCII)
MAX_NAME_LENGTH = 100

T = TypeVar("T")


def _check_name(value: str) -> str:
    if len(value) < 1:
        raise PydanticCustomError("name_required", "Name is required")
    if len(value) > MAX_NAME_LENGTH:
        raise PydanticCustomError(
            "name_too_long", "Name must be less than 100 characters"
        )
    return value


def _check_zip_code(value: str) -> str:
    if not ZIP_CODE_PATTERN.fullmatch(value):
        raise PydanticCustomError("zip_code_format", "Invalid ZIP code format")
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateUserRequest(_CamelModel):
    name: str = Field(..., examples=["John Doe"])
    zip_code: str = Field(..., examples=["10001"])

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _check_name(value)

    @field_validator("zip_code")
    @classmethod
    def _validate_zip_code(cls, value: str) -> str:
        return _check_zip_code(value)

    def to_new_user(self) -> NewUser:
        return NewUser(name=self.name, zip_code=self.zip_code)


class UpdateUserRequest(_CamelModel):
    """Partial update; every field is optional but ``null`` is rejected."""

    name: Optional[str] = Field(default=None, examples=["John Updated"])
    zip_code: Optional[str] = Field(default=None, examples=["90210"])

    @field_validator("name", mode="before")
    @classmethod
    def _reject_null_name(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("name_null", "Name must not be null")
        return value

    @field_validator("zip_code", mode="before")
    @classmethod
    def _reject_null_zip_code(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("zip_code_null", "ZIP code must not be null")
        return value

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _check_name(value)

    @field_validator("zip_code")
    @classmethod
    def _validate_zip_code(cls, value: str) -> str:
        return _check_zip_code(value)

    def to_patch(self) -> UserPatch:
        # Only fields the client actually sent become part of the patch.
        return UserPatch(**{name: getattr(self, name) for name in self.model_fields_set})


class UserView(_CamelModel):
    id: str
    name: str
    zip_code: str
    latitude: float
    longitude: float
    timezone: str
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    @classmethod
    def from_user(cls, user: User) -> "UserView":
        return cls(
            id=user.id,
            name=user.name,
            zip_code=user.zip_code,
            latitude=user.latitude,
            longitude=user.longitude,
            timezone=user.timezone,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class DeletedView(BaseModel):
    deleted: bool


class ErrorDetail(BaseModel):
    path: str
    message: str


class SuccessEnvelope(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: T
    timestamp: datetime


class ErrorEnvelope(BaseModel):
    success: bool = False
    code: str
    message: str
    details: Optional[List[ErrorDetail]] = None
    timestamp: datetime


__all__ = [
    "CreateUserRequest",
    "DeletedView",
    "ErrorDetail",
    "ErrorEnvelope",
    "MAX_NAME_LENGTH",
    "SuccessEnvelope",
    "UpdateUserRequest",
    "UserView",
    "ZIP_CODE_PATTERN",
]
