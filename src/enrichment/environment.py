"""Environment context for a location: UV, humidity, air quality, climate.

Uses the free Open-Meteo weather and air-quality APIs (no key needed). The
result is an opaque dict handed to profile synthesis as extra context; the
interview pipeline never reads its fields.
"""

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import structlog

from cli.retry import http_retry

logger = structlog.get_logger()

WEATHER_URL = "https://api.open-meteo.com/v1/forecast"
AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

DEFAULT_UV = 5
DEFAULT_HUMIDITY = 50
DEFAULT_TEMPERATURE = 20
DEFAULT_AQI = 125


def uv_risk_level(uv_index: float) -> str:
    if uv_index < 3:
        return "low"
    if uv_index < 6:
        return "moderate"
    if uv_index < 8:
        return "high"
    if uv_index < 11:
        return "very_high"
    return "extreme"


def humidity_level(humidity: float) -> str:
    if humidity < 20:
        return "very_dry"
    if humidity < 40:
        return "dry"
    if humidity < 60:
        return "moderate"
    if humidity < 80:
        return "humid"
    return "very_humid"


def pollution_level(aqi: float) -> str:
    """US AQI bands."""
    if aqi <= 50:
        return "good"
    if aqi <= 100:
        return "moderate"
    if aqi <= 150:
        return "unhealthy_sensitive"
    if aqi <= 200:
        return "unhealthy"
    if aqi <= 300:
        return "very_unhealthy"
    return "hazardous"


def climate_zone(lat: float, temperature: float, humidity: float) -> str:
    abs_lat = abs(lat)
    if abs_lat > 66.5 or temperature < 0:
        return "arctic"
    if abs_lat < 23.5 and temperature > 18 and humidity > 60:
        return "tropical"
    if humidity < 30 and temperature > 15:
        return "arid"
    if 30 < abs_lat < 45 and humidity < 70:
        return "mediterranean"
    return "temperate"


_NORTHERN_SEASONS = {
    3: "spring", 4: "spring", 5: "spring",
    6: "summer", 7: "summer", 8: "summer",
    9: "fall", 10: "fall", 11: "fall",
    12: "winter", 1: "winter", 2: "winter",
}  # fmt: skip
_OPPOSITE = {"spring": "fall", "summer": "winter", "fall": "spring", "winter": "summer"}


def season(lat: float, month: int) -> str:
    """Meteorological season; reversed south of the equator."""
    northern = _NORTHERN_SEASONS[month]
    return northern if lat >= 0 else _OPPOSITE[northern]


def device_context(tz: str | None, user_agent: str | None) -> dict:
    return {
        "timezone": tz or "UTC",
        "timezone_offset": 0,
        "locale": "en-US",
        "screen_size": "mobile" if user_agent and "mobile" in user_agent.lower() else "desktop",
        "prefers_dark_mode": False,
    }


class EnvironmentEnricher:
    """Look up environmental conditions for a coordinate pair.

    Upstream failures fall back to moderate defaults; ``enrich`` never raises
    for network or API errors.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = 5.0,
        retry_attempts: int = 2,
        now: Callable[[], datetime] | None = None,
    ):
        self.client = client or httpx.Client(timeout=timeout)
        self.retry_attempts = retry_attempts
        self._now = now or (lambda: datetime.now(timezone.utc))

    def _get_json(self, url: str, params: dict) -> dict:
        @http_retry(
            max_attempts=self.retry_attempts,
            min_wait=0.5,
            max_wait=2.0,
            exceptions=(httpx.TransportError, httpx.HTTPStatusError),
        )
        def _fetch():
            response = self.client.get(url, params=params)
            response.raise_for_status()
            return response.json()

        return _fetch()

    def fetch_weather(self, lat: float, lon: float) -> dict:
        try:
            data = self._get_json(
                WEATHER_URL,
                {
                    "latitude": lat,
                    "longitude": lon,
                    "current": "temperature_2m,relative_humidity_2m,uv_index",
                    "timezone": "auto",
                },
            )
            current = data.get("current") or {}
            return {
                "uv_index": current.get("uv_index") or DEFAULT_UV,
                "humidity": current.get("relative_humidity_2m") or DEFAULT_HUMIDITY,
                "temperature": current.get("temperature_2m") or DEFAULT_TEMPERATURE,
            }
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("enrichment.weather_unavailable", error=str(e))
            return {
                "uv_index": DEFAULT_UV,
                "humidity": DEFAULT_HUMIDITY,
                "temperature": DEFAULT_TEMPERATURE,
            }

    def fetch_air_quality(self, lat: float, lon: float) -> float:
        try:
            data = self._get_json(
                AIR_QUALITY_URL,
                {"latitude": lat, "longitude": lon, "current": "us_aqi", "timezone": "auto"},
            )
            return (data.get("current") or {}).get("us_aqi") or DEFAULT_AQI
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("enrichment.air_quality_unavailable", error=str(e))
            return DEFAULT_AQI

    def enrich(
        self,
        lat: float | None,
        lon: float | None,
        tz: str | None = None,
        user_agent: str | None = None,
    ) -> dict:
        """Build the enriched context blob for a session."""
        now = self._now()
        blob = {
            "geolocation": None,
            "environment": None,
            "device": device_context(tz, user_agent),
            "timestamp": now.isoformat(),
        }
        if lat is None or lon is None:
            return blob

        blob["geolocation"] = {"latitude": lat, "longitude": lon, "timezone": tz or "UTC"}
        weather = self.fetch_weather(lat, lon)
        aqi = self.fetch_air_quality(lat, lon)

        blob["environment"] = {
            "uv_index": weather["uv_index"],
            "uv_risk_level": uv_risk_level(weather["uv_index"]),
            "humidity": weather["humidity"],
            "humidity_level": humidity_level(weather["humidity"]),
            "pollution_aqi": aqi,
            "pollution_level": pollution_level(aqi),
            "temperature": weather["temperature"],
            "climate_zone": climate_zone(lat, weather["temperature"], weather["humidity"]),
            "season": season(lat, now.month),
        }
        logger.info(
            "enrichment.collected",
            climate_zone=blob["environment"]["climate_zone"],
            uv_risk=blob["environment"]["uv_risk_level"],
        )
        return blob

    def close(self):
        self.client.close()
