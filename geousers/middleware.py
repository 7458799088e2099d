"""HTTP middleware for correlation IDs, request logging, security headers and throttling."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import FastAPI, Request
from starlette.responses import Response

from .logging_config import correlation_id_var
from .ratelimit import FixedWindowRateLimiter
from .responses import error_response, internal_error_response

logger = logging.getLogger("geousers.requests")

CORRELATION_HEADER = "X-Correlation-ID"
_MAX_CORRELATION_ID_LENGTH = 128

CallNext = Callable[[Request], Awaitable[Response]]

# Baseline browser hardening headers, matching what helmet sends by default.
SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _incoming_correlation_id(request: Request) -> str:
    supplied = (request.headers.get(CORRELATION_HEADER) or "").strip()
    if supplied and len(supplied) <= _MAX_CORRELATION_ID_LENGTH and supplied.isprintable():
        return supplied
    return str(uuid.uuid4())


def _log_request(request: Request, status_code: int, elapsed_ms: float) -> None:
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(
        level,
        "Request processed: %s %s - %s (%.0f ms) client=%s agent=%s",
        request.method,
        request.url.path,
        status_code,
        elapsed_ms,
        client_address(request),
        request.headers.get("user-agent", "unknown"),
    )


def install_request_context(app: FastAPI) -> None:
    """Tag each request with a correlation ID and log its outcome.

    Exceptions that no handler claimed are converted here into the
    ``INTERNAL_SERVER_ERROR`` envelope.
    """

    @app.middleware("http")
    async def request_context(request: Request, call_next: CallNext) -> Response:
        correlation_id = _incoming_correlation_id(request)
        token = correlation_id_var.set(correlation_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                response = internal_error_response(request, exc)

            response.headers[CORRELATION_HEADER] = correlation_id
            _log_request(request, response.status_code, (time.perf_counter() - started) * 1000)
            return response
        finally:
            correlation_id_var.reset(token)


def install_security_headers(app: FastAPI) -> None:
    """Add ``SECURITY_HEADERS`` to every response.

    The interactive docs pages load their assets from a CDN, so they are
    served without the content security policy.
    """

    docs_paths = {
        path for path in (app.docs_url, app.redoc_url, app.swagger_ui_oauth2_redirect_url) if path
    }

    @app.middleware("http")
    async def security_headers(request: Request, call_next: CallNext) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            if name == "Content-Security-Policy" and request.url.path in docs_paths:
                continue
            response.headers.setdefault(name, value)
        return response


def install_rate_limit(app: FastAPI, limiter: FixedWindowRateLimiter, *, path_prefix: str) -> None:
    """Throttle requests under ``path_prefix`` per client address."""

    def _applies(path: str) -> bool:
        if not path_prefix:
            return True
        return path == path_prefix or path.startswith(path_prefix + "/")

    @app.middleware("http")
    async def rate_limit(request: Request, call_next: CallNext) -> Response:
        if not _applies(request.url.path):
            return await call_next(request)

        address = client_address(request)
        decision = limiter.hit(address)
        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s on %s", address, request.url.path)
            return error_response(
                "RATE_LIMIT_EXCEEDED",
                "Too many requests from this IP, please try again later",
                429,
                headers=decision.headers(),
            )

        response = await call_next(request)
        for name, value in decision.headers().items():
            response.headers[name] = value
        return response


__all__ = [
    "CORRELATION_HEADER",
    "client_address",
    "install_rate_limit",
    "install_request_context",
    "install_security_headers",
    "SECURITY_HEADERS",
]
