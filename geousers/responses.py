"""Uniform response envelopes and the centralized error mapping."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Dict, Iterable, List, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import ServiceError
from .logging_config import get_correlation_id
from .models import format_timestamp, utcnow

logger = logging.getLogger("geousers.errors")

_LOCATION_PREFIXES = {"body", "query", "path", "header"}


def _timestamp() -> str:
    return format_timestamp(utcnow())


def success_response(data: Any, message: str = "Success", *, status_code: int = 200) -> JSONResponse:
    """Wrap ``data`` as ``{success, message, data, timestamp}``."""

    return JSONResponse(
        status_code=status_code,
        content={
            "success": True,
            "message": message,
            "data": jsonable_encoder(data),
            "timestamp": _timestamp(),
        },
    )


def error_response(
    code: str,
    message: str,
    status_code: int,
    *,
    details: Optional[List[Dict[str, str]]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Build the ``{success: false, code, message, details?, timestamp}`` envelope."""

    content: Dict[str, Any] = {"success": False, "code": code, "message": message}
    if details is not None:
        content["details"] = details
    content["timestamp"] = _timestamp()
    return JSONResponse(status_code=status_code, content=content, headers=dict(headers or {}))


def validation_details(errors: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error entries into ``[{path, message}]``."""

    details: List[Dict[str, str]] = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ())]
        if len(location) > 1 and location[0] in _LOCATION_PREFIXES:
            location = location[1:]
        details.append({"path": ".".join(location), "message": str(error.get("msg", "Invalid value"))})
    return details


def _log_failure(request: Request, status_code: int, code: str, message: str) -> None:
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "Request error %s %s -> %s %s: %s (correlation_id=%s)",
        request.method,
        request.url.path,
        status_code,
        code,
        message,
        get_correlation_id(),
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = validation_details(exc.errors())
    _log_failure(request, 400, "VALIDATION_ERROR", "; ".join(f"{d['path']}: {d['message']}" for d in details))
    return error_response("VALIDATION_ERROR", "Validation failed", 400, details=details)


async def _handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    _log_failure(request, exc.status_code, exc.code, exc.message)
    return error_response(exc.code, exc.message, exc.status_code)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code in (404, 405):
        message = f"Route {request.method} {request.url.path} not found"
        _log_failure(request, 404, "NOT_FOUND", message)
        return error_response("NOT_FOUND", message, 404)

    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = "HTTP_ERROR"
    message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
    _log_failure(request, exc.status_code, code, message)
    return error_response(code, message, exc.status_code, headers=exc.headers)


def internal_error_response(request: Request, exc: BaseException) -> JSONResponse:
    """Log an unexpected exception and return the generic 500 envelope."""

    logger.error(
        "Unhandled error on %s %s (correlation_id=%s)",
        request.method,
        request.url.path,
        get_correlation_id(),
        exc_info=exc,
    )
    return error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred", 500)


def register_error_handlers(app: FastAPI) -> None:
    """Route every typed failure through the uniform error envelope."""

    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(ServiceError, _handle_service_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]


__all__ = [
    "error_response",
    "internal_error_response",
    "register_error_handlers",
    "success_response",
    "validation_details",
]
