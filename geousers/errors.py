"""Error taxonomy shared by the use cases and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class ServiceError(RuntimeError):
    """Base class for failures that map onto a specific HTTP response."""

    status_code = 500
    code = "APP_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Raised when a request carries malformed or missing input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(ServiceError):
    """Raised when a requested user does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class ExternalServiceError(ServiceError):
    """Raised when an upstream dependency such as the geocoder fails."""

    status_code = 503
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, *, service: Optional[str] = None) -> None:
        super().__init__(message)
        self.service = service


class StoreError(RuntimeError):
    """Raised when the user store cannot be reached or rejects a request."""


__all__ = [
    "ExternalServiceError",
    "NotFoundError",
    "ServiceError",
    "StoreError",
    "ValidationError",
]
