"""Configuration management for the user directory service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

DEFAULT_OPENWEATHER_BASE_URL = "https://api.openweathermap.org/data/2.5"
DEFAULT_GEODATA_TIMEOUT = 5.0
STORE_BACKENDS = ("memory", "realtime_db")
ENVIRONMENTS = ("development", "production", "test")


class ConfigurationError(ValueError):
    """Raised when the service configuration is incomplete or invalid."""


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in {"0", "false", "no", "off", ""}


def _as_list(value: object) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(item) for item in value]  # type: ignore[union-attr]
    return tuple(item.strip() for item in items if item.strip())


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_int(value: object, name: str) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def _as_float(value: object, name: str) -> float:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True)
class OpenWeatherSettings:
    """Credentials and endpoint of the geocoding service."""

    api_key: str
    base_url: str = DEFAULT_OPENWEATHER_BASE_URL
    timeout: float = DEFAULT_GEODATA_TIMEOUT
    country: str = "us"

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "OpenWeatherSettings":
        api_key = _optional_str(data.get("api_key"))
        if not api_key:
            raise ConfigurationError("OpenWeather API key is required (set OPENWEATHER_API_KEY)")
        base_url = _optional_str(data.get("base_url")) or DEFAULT_OPENWEATHER_BASE_URL
        if not base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"OpenWeather base URL must be an http(s) URL, got {base_url!r}")
        return OpenWeatherSettings(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            timeout=_as_float(data.get("timeout", DEFAULT_GEODATA_TIMEOUT), "openweather.timeout"),
            country=_optional_str(data.get("country")) or "us",
        )


@dataclass(frozen=True)
class StoreSettings:
    """Selects and configures the user store implementation."""

    backend: str = "memory"
    database_url: Optional[str] = None
    auth_token: Optional[str] = None
    namespace: Optional[str] = None
    timeout: float = 10.0

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "StoreSettings":
        backend = (_optional_str(data.get("backend")) or "memory").lower()
        if backend not in STORE_BACKENDS:
            raise ConfigurationError(
                f"Unknown user store backend {backend!r}; expected one of {', '.join(STORE_BACKENDS)}"
            )
        database_url = _optional_str(data.get("database_url"))
        if backend == "realtime_db" and not database_url:
            raise ConfigurationError(
                "The realtime_db store requires a database URL (set FIREBASE_DATABASE_URL)"
            )
        return StoreSettings(
            backend=backend,
            database_url=database_url.rstrip("/") if database_url else None,
            auth_token=_optional_str(data.get("auth_token")),
            namespace=_optional_str(data.get("namespace")),
            timeout=_as_float(data.get("timeout", 10.0), "store.timeout"),
        )


@dataclass(frozen=True)
class RateLimitSettings:
    """Global request throttle applied per client address."""

    requests: int = 100
    window_seconds: int = 15 * 60
    enabled: bool = True

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "RateLimitSettings":
        requests = _as_int(data.get("requests", 100), "rate_limit.requests")
        window_seconds = _as_int(data.get("window_seconds", 15 * 60), "rate_limit.window_seconds")
        if requests < 1 or window_seconds < 1:
            raise ConfigurationError("Rate limit requests and window must be positive integers")
        return RateLimitSettings(
            requests=requests,
            window_seconds=window_seconds,
            enabled=_as_bool(data.get("enabled", True)),
        )


@dataclass(frozen=True)
class Settings:
    """Top-level service settings."""

    openweather: OpenWeatherSettings
    store: StoreSettings = field(default_factory=StoreSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    api_prefix: str = "/api"
    frontend_base_url: Optional[str] = None
    trusted_proxies: Tuple[str, ...] = ()

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw (YAML or environment) data."""

        environment = (_optional_str(data.get("environment")) or "development").lower()
        if environment not in ENVIRONMENTS:
            raise ConfigurationError(
                f"Unknown environment {environment!r}; expected one of {', '.join(ENVIRONMENTS)}"
            )

        api_prefix = _optional_str(data.get("api_prefix", "/api")) or ""
        if api_prefix and not api_prefix.startswith("/"):
            api_prefix = "/" + api_prefix

        return Settings(
            openweather=OpenWeatherSettings.from_dict(_section(data, "openweather")),
            store=StoreSettings.from_dict(_section(data, "store")),
            rate_limit=RateLimitSettings.from_dict(_section(data, "rate_limit")),
            environment=environment,
            host=_optional_str(data.get("host")) or "0.0.0.0",
            port=_as_int(data.get("port", 8080), "port"),
            log_level=(_optional_str(data.get("log_level")) or "INFO").upper(),
            api_prefix=api_prefix.rstrip("/"),
            frontend_base_url=_optional_str(data.get("frontend_base_url")),
            trusted_proxies=_as_list(data.get("trusted_proxies")),
        )

    @property
    def cors_origins(self) -> Tuple[str, ...]:
        """Origins allowed to call the API from a browser."""

        if self.environment == "production":
            return (self.frontend_base_url,) if self.frontend_base_url else ()
        return ("*",)


def _section(data: Mapping[str, object], name: str) -> Dict[str, object]:
    raw = data.get(name) or {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
    return dict(raw)


# Environment variable -> (section, key); a section of None means top level.
_ENV_OVERRIDES: Dict[str, Tuple[Optional[str], str]] = {
    "APP_ENV": (None, "environment"),
    "HOST": (None, "host"),
    "PORT": (None, "port"),
    "LOG_LEVEL": (None, "log_level"),
    "API_PREFIX": (None, "api_prefix"),
    "FRONTEND_BASE_URL": (None, "frontend_base_url"),
    "TRUSTED_PROXIES": (None, "trusted_proxies"),
    "OPENWEATHER_API_KEY": ("openweather", "api_key"),
    "OPENWEATHER_API_BASE_URL": ("openweather", "base_url"),
    "USER_STORE": ("store", "backend"),
    "FIREBASE_DATABASE_URL": ("store", "database_url"),
    "FIREBASE_AUTH_TOKEN": ("store", "auth_token"),
    "FIREBASE_RTDB_NAMESPACE": ("store", "namespace"),
    "RATE_LIMIT_REQUESTS": ("rate_limit", "requests"),
    "RATE_LIMIT_WINDOW_SECONDS": ("rate_limit", "window_seconds"),
}


def apply_env_overrides(data: Mapping[str, object], environ: Mapping[str, str]) -> Dict[str, object]:
    """Return a copy of ``data`` with environment variables layered on top."""

    merged: Dict[str, object] = {
        key: dict(value) if isinstance(value, Mapping) else value for key, value in data.items()
    }
    for variable, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value is None or not value.strip():
            continue
        if section is None:
            merged[key] = value
            continue
        target = merged.get(section)
        if not isinstance(target, dict):
            target = {}
            merged[section] = target
        target[key] = value
    return merged


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from the YAML file (if present) and the environment."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("GEOUSERS_CONFIG"))

    raw: Mapping[str, object] = {}
    if path.is_file():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, Mapping):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        raw = loaded
    elif config_path is not None:
        raise ConfigurationError(f"Configuration file {path} does not exist")

    return Settings.from_dict(apply_env_overrides(raw, env))


__all__ = [
    "ConfigurationError",
    "OpenWeatherSettings",
    "RateLimitSettings",
    "Settings",
    "StoreSettings",
    "apply_env_overrides",
    "load_settings",
    "resolve_config_path",
]
