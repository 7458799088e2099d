"""HTTP API for managing geo-enriched users."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from . import __version__
from .config import Settings, load_settings
from .errors import NotFoundError
from .geodata import GeodataClient
from .logging_config import configure_logging
from .middleware import install_rate_limit, install_request_context, install_security_headers
from .ratelimit import FixedWindowRateLimiter
from .realtime_db import RealtimeDatabaseUserStore
from .responses import error_response, register_error_handlers, success_response
from .schemas import (
    CreateUserRequest,
    DeletedView,
    ErrorEnvelope,
    SuccessEnvelope,
    UpdateUserRequest,
    UserView,
)
from .store import InMemoryUserStore, UserStore
from .usecases import UserUseCases

logger = logging.getLogger("geousers.service")

USER_NOT_FOUND = "User not found"

# Responses smaller than this are sent uncompressed.
GZIP_MINIMUM_SIZE = 1024

_ERROR_RESPONSES = {
    400: {"model": ErrorEnvelope, "description": "Validation failed"},
    404: {"model": ErrorEnvelope, "description": "User not found"},
    429: {"model": ErrorEnvelope, "description": "Rate limit exceeded"},
    503: {"model": ErrorEnvelope, "description": "Geocoding service unavailable"},
}


def build_store(settings: Settings) -> UserStore:
    """Instantiate the user store selected by ``settings.store.backend``."""

    if settings.store.backend == "realtime_db":
        return RealtimeDatabaseUserStore.from_settings(settings.store)
    return InMemoryUserStore()


def build_geodata_client(settings: Settings) -> GeodataClient:
    return GeodataClient.from_settings(settings.openweather)


def _trusted_proxy_hosts(settings: Settings) -> List[str] | str:
    return list(settings.trusted_proxies) or "127.0.0.1"


def register_user_routes(app: FastAPI, use_cases: UserUseCases, *, prefix: str = "") -> None:
    """Expose the users CRUD endpoints under ``{prefix}/users``."""

    router = APIRouter(prefix=f"{prefix}/users", tags=["users"], responses=_ERROR_RESPONSES)

    @router.post("", response_model=SuccessEnvelope[UserView])
    async def create_user(payload: CreateUserRequest) -> JSONResponse:
        user = await use_cases.create.execute(payload.to_new_user())
        logger.info("Created user %s (zip=%s, timezone=%s)", user.id, user.zip_code, user.timezone)
        return success_response(UserView.from_user(user), "User created successfully")

    @router.get("", response_model=SuccessEnvelope[List[UserView]])
    async def list_users() -> JSONResponse:
        users = await use_cases.list.execute()
        logger.info("Listed %d users", len(users))
        return success_response(
            [UserView.from_user(user) for user in users], "Users retrieved successfully"
        )

    @router.get("/{user_id}", response_model=SuccessEnvelope[UserView])
    async def get_user(user_id: str) -> JSONResponse:
        user = await use_cases.get.execute(user_id)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        return success_response(UserView.from_user(user), "User retrieved successfully")

    @router.patch("/{user_id}", response_model=SuccessEnvelope[UserView])
    async def update_user(user_id: str, payload: UpdateUserRequest) -> JSONResponse:
        user = await use_cases.update.execute(user_id, payload.to_patch())
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        logger.info("Updated user %s (fields=%s)", user.id, sorted(payload.model_fields_set))
        return success_response(UserView.from_user(user), "User updated successfully")

    @router.delete("/{user_id}", response_model=SuccessEnvelope[DeletedView])
    async def delete_user(user_id: str) -> JSONResponse:
        if not await use_cases.delete.execute(user_id):
            raise NotFoundError(USER_NOT_FOUND)
        logger.info("Deleted user %s", user_id)
        return success_response(DeletedView(deleted=True), "User deleted successfully")

    app.include_router(router)


def register_health_routes(app: FastAPI, store: UserStore) -> None:
    started = time.monotonic()

    @app.get("/health", tags=["health"])
    async def health() -> JSONResponse:
        uptime = round(time.monotonic() - started, 3)
        return success_response({"status": "ok", "uptime": uptime}, "Health check passed")

    @app.get("/ready", tags=["health"])
    async def ready() -> JSONResponse:
        try:
            await store.ping()
        except Exception as exc:
            logger.error("Readiness check failed for %s store: %s", store.backend_name, exc)
            return error_response("SERVICE_UNAVAILABLE", "Service dependencies not available", 503)
        return success_response(
            {"status": "ready", "services": {"database": store.backend_name}},
            "Service is ready",
        )


def create_app(
    *,
    settings: Optional[Settings] = None,
    store: Optional[UserStore] = None,
    geodata_client: Optional[GeodataClient] = None,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
) -> FastAPI:
    """Build the users API.

    Collaborators that are not supplied are created from ``settings`` and
    closed on shutdown; injected ones are left to their owner.
    """

    if settings is None:
        settings = load_settings()

    configure_logging(settings.log_level)

    owned: list = []
    if store is None:
        store = build_store(settings)
        owned.append(store)
    if geodata_client is None:
        geodata_client = build_geodata_client(settings)
        owned.append(geodata_client)
    if rate_limiter is None and settings.rate_limit.enabled:
        rate_limiter = FixedWindowRateLimiter(
            settings.rate_limit.requests, settings.rate_limit.window_seconds
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting users API (environment=%s, store=%s)", settings.environment, store.backend_name
        )
        try:
            yield
        finally:
            for resource in owned:
                await resource.aclose()
            logger.info("Users API stopped")

    app = FastAPI(
        title="GeoUsers API",
        description="Manage users enriched with coordinates and timezone from their ZIP code",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.geodata_client = geodata_client
    app.state.rate_limiter = rate_limiter

    register_error_handlers(app)

    # Added innermost first; the proxy middleware ends up outermost.
    if rate_limiter is not None:
        install_rate_limit(app, rate_limiter, path_prefix=settings.api_prefix)
    install_request_context(app)
    install_security_headers(app)
    app.add_middleware(GZipMiddleware, minimum_size=GZIP_MINIMUM_SIZE)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=_trusted_proxy_hosts(settings))

    use_cases = UserUseCases.build(store, geodata_client)
    app.state.use_cases = use_cases
    register_user_routes(app, use_cases, prefix=settings.api_prefix)
    register_health_routes(app, store)

    return app


__all__ = [
    "build_geodata_client",
    "build_store",
    "create_app",
    "register_health_routes",
    "register_user_routes",
]
