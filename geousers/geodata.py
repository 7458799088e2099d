"""OpenWeather-backed lookup of coordinates and UTC offsets by ZIP code."""

from __future__ import annotations

import logging
import math
from typing import Optional

import httpx

from .config import DEFAULT_GEODATA_TIMEOUT, DEFAULT_OPENWEATHER_BASE_URL, OpenWeatherSettings
from .errors import ExternalServiceError
from .models import Geodata

logger = logging.getLogger("geousers.geodata")

SERVICE_NAME = "OpenWeather"


def format_utc_offset(offset_seconds: int) -> str:
    """Render an offset in seconds as ``UTC+N``/``UTC-N`` whole hours.

    Hours are floored, so ``-18000`` becomes ``UTC-5`` and ``0`` becomes
    ``UTC+0``.
    """

    hours = int(offset_seconds // 3600)
    return f"UTC{hours:+d}"


def _require_number(payload: object, *path: str) -> float:
    value = payload
    for key in path:
        if not isinstance(value, dict) or key not in value:
            raise ValueError(f"missing field {'.'.join(path)}")
        value = value[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {'.'.join(path)} is not numeric")
    if not math.isfinite(value):
        raise ValueError(f"field {'.'.join(path)} is not a finite number")
    return value


def parse_weather_payload(payload: object) -> Geodata:
    """Map an OpenWeather ``/weather`` response body onto :class:`Geodata`."""

    latitude = _require_number(payload, "coord", "lat")
    longitude = _require_number(payload, "coord", "lon")
    offset = _require_number(payload, "timezone")
    return Geodata(
        latitude=float(latitude),
        longitude=float(longitude),
        timezone=format_utc_offset(int(offset)),
    )


class GeodataClient:
    """Resolve ZIP codes through the OpenWeather current weather endpoint.

    Every call hits the upstream service; nothing is cached and failures are
    never retried.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_OPENWEATHER_BASE_URL,
        timeout: float = DEFAULT_GEODATA_TIMEOUT,
        country: str = "us",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key.strip():
            raise ValueError("OpenWeather API key must not be empty")
        self._api_key = api_key.strip()
        self._base_url = base_url.rstrip("/")
        self._country = country
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: OpenWeatherSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GeodataClient":
        return cls(
            settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
            country=settings.country,
            transport=transport,
        )

    async def get_by_zip_code(self, zip_code: str) -> Geodata:
        params = {"zip": f"{zip_code},{self._country}", "appid": self._api_key}
        try:
            response = await self._client.get(f"{self._base_url}/weather", params=params)
            response.raise_for_status()
            geodata = parse_weather_payload(response.json())
        except (httpx.HTTPError, ValueError, OverflowError) as exc:
            logger.warning("OpenWeather lookup for ZIP %s failed: %s", zip_code, exc)
            raise ExternalServiceError(
                f"Failed to fetch geodata for ZIP {zip_code}", service=SERVICE_NAME
            ) from exc

        logger.debug("Resolved ZIP %s to %s", zip_code, geodata)
        return geodata

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["GeodataClient", "SERVICE_NAME", "format_utc_offset", "parse_weather_payload"]
