"""
Tests for the OpenWeatherMap provider.

All HTTP traffic goes through httpx.MockTransport; nothing leaves the
process.
"""

from __future__ import annotations

import httpx
import pytest

from floodwatch.core.errors import ConfigurationError, FetchError
from floodwatch.ingestion.weather_provider import (
    API_KEY_LENGTH,
    FORECAST_SLOTS,
    CurrentWeather,
    OpenWeatherProvider,
    parse_current,
    parse_forecast,
    validate_api_key,
)

VALID_KEY = "0123456789abcdef0123456789ABCDEF"
BASE_URL = "https://weather.test/data/2.5"


def make_provider(handler) -> OpenWeatherProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenWeatherProvider(api_key=VALID_KEY, base_url=BASE_URL, client=client)


# ═══════════════════════════════════════════════════════════════════════════
# Credential validation
# ═══════════════════════════════════════════════════════════════════════════

class TestValidateApiKey:
    def test_valid_key(self):
        assert len(VALID_KEY) == API_KEY_LENGTH
        assert validate_api_key(VALID_KEY) == VALID_KEY

    def test_surrounding_whitespace_stripped(self):
        assert validate_api_key(f"  {VALID_KEY}\n") == VALID_KEY

    @pytest.mark.parametrize("key", [
        None,
        "",
        "   ",
        "YOUR_OPENWEATHER_API_KEY_HERE",
        VALID_KEY[:-1],
        VALID_KEY + "0",
        VALID_KEY[:-1] + "-",
    ])
    def test_invalid_keys(self, key):
        with pytest.raises(ConfigurationError) as exc:
            validate_api_key(key)
        assert exc.value.status_code == 503
        assert exc.value.details["setting"] == "OPENWEATHER_API_KEY"

    def test_provider_rejects_bad_key(self):
        with pytest.raises(ConfigurationError):
            OpenWeatherProvider(api_key="not-a-key")


# ═══════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestParseCurrent:
    def test_one_hour_rain(self):
        data = {
            "rain": {"1h": 12.5, "3h": 30.0},
            "wind": {"speed": 10.0},
            "main": {"temp": 27.3},
            "weather": [{"main": "Rain"}],
        }
        assert parse_current(data) == CurrentWeather(
            rainfall_mm_hr=12.5, wind_speed_kmh=36.0, temperature_c=27.3, storm_alert="",
        )

    def test_three_hour_rain_averaged(self):
        result = parse_current({"rain": {"3h": 9.0}, "main": {"temp": 25}})
        assert result.rainfall_mm_hr == 3.0

    def test_no_rain(self):
        result = parse_current({"main": {"temp": 31.0}, "wind": {"speed": 2.5}})
        assert result.rainfall_mm_hr == 0.0
        assert result.wind_speed_kmh == 9.0

    def test_thunderstorm_sets_alert(self):
        result = parse_current({"weather": [{"main": "Thunderstorm"}, {"main": "Rain"}]})
        assert result.storm_alert == "Thunderstorm Warning"

    def test_empty_payload(self):
        assert parse_current({}) == CurrentWeather()


class TestParseForecast:
    def test_sums_first_48_hours(self):
        slots = [{"rain": {"3h": 2.0}} for _ in range(40)]
        assert parse_forecast({"list": slots}) == 2.0 * FORECAST_SLOTS

    def test_dry_slots_count_as_zero(self):
        slots = [{"rain": {"3h": 5.0}}, {}, {"rain": {}}, {"rain": {"3h": 1.5}}]
        assert parse_forecast({"list": slots}) == 6.5

    def test_missing_list(self):
        assert parse_forecast({}) == 0.0


# ═══════════════════════════════════════════════════════════════════════════
# HTTP client
# ═══════════════════════════════════════════════════════════════════════════

class TestOpenWeatherProvider:
    @pytest.mark.asyncio
    async def test_fetch_current_request_and_parse(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "rain": {"1h": 4.0},
                "wind": {"speed": 5.0},
                "main": {"temp": 29.0},
                "weather": [{"main": "Thunderstorm"}],
            })

        provider = make_provider(handler)
        result = await provider.fetch_current(13.08, 80.27)
        await provider.close()

        assert result.rainfall_mm_hr == 4.0
        assert result.wind_speed_kmh == 18.0
        assert result.storm_alert == "Thunderstorm Warning"

        params = seen[0].url.params
        assert seen[0].url.path == "/data/2.5/weather"
        assert params["lat"] == "13.08"
        assert params["lon"] == "80.27"
        assert params["appid"] == VALID_KEY
        assert params["units"] == "metric"

    @pytest.mark.asyncio
    async def test_fetch_forecast(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/forecast")
            return httpx.Response(200, json={"list": [{"rain": {"3h": 10.0}}] * 20})

        provider = make_provider(handler)
        assert await provider.fetch_forecast(13.08, 80.27) == 160.0
        await provider.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 429, 500, 503])
    async def test_http_error_raises_fetch_error(self, status):
        provider = make_provider(lambda request: httpx.Response(status, json={}))
        with pytest.raises(FetchError) as exc:
            await provider.fetch_current(13.08, 80.27)
        assert exc.value.details["status_code"] == status
        await provider.close()

    @pytest.mark.asyncio
    async def test_network_error_raises_fetch_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)
        with pytest.raises(FetchError):
            await provider.fetch_forecast(13.08, 80.27)
        await provider.close()

    @pytest.mark.asyncio
    async def test_timeout_raises_fetch_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        provider = make_provider(handler)
        with pytest.raises(FetchError) as exc:
            await provider.fetch_current(13.08, 80.27)
        assert "timeout" in exc.value.message
        await provider.close()

    @pytest.mark.asyncio
    async def test_invalid_json_raises_fetch_error(self):
        provider = make_provider(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(FetchError):
            await provider.fetch_current(13.08, 80.27)
        await provider.close()

    @pytest.mark.asyncio
    async def test_non_object_payload_raises_fetch_error(self):
        provider = make_provider(lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(FetchError):
            await provider.fetch_current(13.08, 80.27)
        await provider.close()
