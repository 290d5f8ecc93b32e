"""
weather_provider.py — OpenWeatherMap ingestion for live risk monitoring.

Fetches current conditions and the 48-hour rainfall forecast for one
coordinate and reduces them to the fields the scoring engine needs.

Endpoints used (units=metric):

    GET {base}/weather?lat=..&lon=..&appid=..   → current conditions
    GET {base}/forecast?lat=..&lon=..&appid=..  → 5-day / 3-hour forecast

Current conditions → CurrentWeather
====================================
    rainfall_mm_hr  = rain.1h, else rain.3h / 3, else 0
    wind_speed_kmh  = wind.speed (m/s) × 3.6
    temperature_c   = main.temp
    storm_alert     = "Thunderstorm Warning" when weather[0].main is
                      "Thunderstorm", else ""

Forecast → forecast rainfall
=============================
    Σ rain.3h over the first 16 slots (16 × 3 h = 48 h horizon)

Error Handling Strategy
========================
    Missing / malformed credential  → ConfigurationError at construction
    Non-success HTTP status         → FetchError
    Network error / timeout         → FetchError
    Non-JSON or non-object body     → FetchError

No retries here: a failed fetch means "no data this cycle" for the area,
and the monitoring loop tries again on its next tick.  Timeouts are the
only time limit; the scheduler imposes none of its own.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from floodwatch.core.cache import cache_get, cache_set
from floodwatch.core.config import settings
from floodwatch.core.errors import ConfigurationError, FetchError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SERVICE_NAME = "openweathermap"

# OpenWeatherMap keys are 32-character hex strings
API_KEY_LENGTH = 32
_API_KEY_PATTERN = re.compile(r"[A-Za-z0-9]+")

FORECAST_SLOT_HOURS = 3
FORECAST_HORIZON_HOURS = 48
FORECAST_SLOTS = FORECAST_HORIZON_HOURS // FORECAST_SLOT_HOURS  # 16

MS_TO_KMH = 3.6
THUNDERSTORM_ALERT = "Thunderstorm Warning"


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CurrentWeather:
    """Current conditions reduced to the scoring inputs."""
    rainfall_mm_hr: float = 0.0
    wind_speed_kmh: float = 0.0
    temperature_c: float = 0.0
    storm_alert: str = ""


class WeatherProvider(Protocol):
    """What the monitoring loop needs from a weather source."""

    async def fetch_current(self, lat: float, lng: float) -> CurrentWeather:
        ...

    async def fetch_forecast(self, lat: float, lng: float) -> float:
        ...


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------

def validate_api_key(api_key: Optional[str]) -> str:
    """
    Return the stripped key, or raise ConfigurationError.

    A key is valid when it is exactly 32 alphanumeric characters; the
    template placeholder and empty values are rejected.
    """
    if api_key is None or not api_key.strip():
        raise ConfigurationError(
            "OpenWeatherMap API key is not configured",
            setting="OPENWEATHER_API_KEY",
        )
    key = api_key.strip()
    if len(key) != API_KEY_LENGTH or not _API_KEY_PATTERN.fullmatch(key):
        raise ConfigurationError(
            f"OpenWeatherMap API key must be {API_KEY_LENGTH} alphanumeric "
            f"characters (got {len(key)})",
            setting="OPENWEATHER_API_KEY",
        )
    return key


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def parse_current(data: Dict[str, Any]) -> CurrentWeather:
    """Reduce an OpenWeatherMap /weather payload to CurrentWeather."""
    rain = data.get("rain") or {}
    if rain.get("1h") is not None:
        rainfall = _as_float(rain.get("1h"))
    elif rain.get("3h") is not None:
        rainfall = _as_float(rain.get("3h")) / 3.0
    else:
        rainfall = 0.0

    wind = data.get("wind") or {}
    main = data.get("main") or {}
    conditions = data.get("weather") or []
    primary = conditions[0].get("main", "") if conditions else ""

    return CurrentWeather(
        rainfall_mm_hr=round(rainfall, 2),
        wind_speed_kmh=round(_as_float(wind.get("speed")) * MS_TO_KMH, 2),
        temperature_c=_as_float(main.get("temp")),
        storm_alert=THUNDERSTORM_ALERT if primary == "Thunderstorm" else "",
    )


def parse_forecast(data: Dict[str, Any]) -> float:
    """Sum 3-hour rain over the 48-hour horizon of a /forecast payload."""
    slots = (data.get("list") or [])[:FORECAST_SLOTS]
    total = sum(_as_float((slot.get("rain") or {}).get("3h")) for slot in slots)
    return round(total, 2)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class OpenWeatherProvider:
    """
    Async OpenWeatherMap client.

    Usage:
        provider = OpenWeatherProvider(api_key="...")
        current = await provider.fetch_current(13.08, 80.27)
        forecast_mm = await provider.fetch_forecast(13.08, 80.27)
        await provider.close()

    Constructing the provider validates the credential, so a provider
    instance that exists is always usable for live monitoring.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = validate_api_key(
            api_key if api_key is not None else settings.OPENWEATHER_API_KEY
        )
        self.base_url = (base_url or settings.OPENWEATHER_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.WEATHER_FETCH_TIMEOUT
        self._http_client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _get_json(self, endpoint: str, lat: float, lng: float) -> Dict[str, Any]:
        params = {
            "lat": lat,
            "lon": lng,
            "appid": self.api_key,
            "units": "metric",
        }
        client = await self._get_client()

        try:
            response = await client.get(f"{self.base_url}/{endpoint}", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                SERVICE_NAME, f"HTTP {e.response.status_code} from /{endpoint}",
                status_code=e.response.status_code, lat=lat, lon=lng,
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(SERVICE_NAME, f"timeout on /{endpoint}", lat=lat, lon=lng) from e
        except httpx.HTTPError as e:
            raise FetchError(SERVICE_NAME, f"{type(e).__name__}: {e}", lat=lat, lon=lng) from e
        except ValueError as e:
            raise FetchError(SERVICE_NAME, f"invalid JSON from /{endpoint}", lat=lat, lon=lng) from e

        if not isinstance(data, dict):
            raise FetchError(SERVICE_NAME, f"unexpected payload from /{endpoint}", lat=lat, lon=lng)
        return data

    async def fetch_current(self, lat: float, lng: float) -> CurrentWeather:
        data = await self._get_json("weather", lat, lng)
        return parse_current(data)

    async def fetch_forecast(self, lat: float, lng: float) -> float:
        """
        48-hour forecast rainfall (mm) for a coordinate.

        Cached per ~1 km cell when the Redis cache is enabled; forecasts
        change far slower than the live monitoring period.
        """
        cache_key = f"forecast:{lat:.2f},{lng:.2f}"
        cached = await cache_get(cache_key)
        if cached is not None:
            logger.debug("Cache HIT for forecast %s", cache_key)
            return _as_float(cached.get("forecast_rainfall_mm"))

        data = await self._get_json("forecast", lat, lng)
        total = parse_forecast(data)
        await cache_set(
            cache_key, {"forecast_rainfall_mm": total},
            ttl=settings.REDIS_FORECAST_TTL,
        )
        return total
