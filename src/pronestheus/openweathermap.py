"""OpenWeatherMap current-weather client"""

from typing import Any, Optional

import httpx

from .errors import MissingFieldError
from .http_utils import build_timeout, fetch_json, validate_url
from .json_utils import dig_float
from .models import WeatherSnapshot

SOURCE = "weather"


def parse_weather(document: Any) -> WeatherSnapshot:
    """
    Extract the current weather from a ``/data/2.5/weather`` response.

    Raises:
        MissingFieldError: If temperature, humidity or pressure is missing
    """
    values = {}
    for name in ("temp", "humidity", "pressure"):
        value = dig_float(document, "main", name)
        if value is None:
            raise MissingFieldError(f"main.{name}", SOURCE)
        values[name] = value

    return WeatherSnapshot(
        temperature=values["temp"],
        humidity=values["humidity"],
        pressure=values["pressure"],
    )


class OpenWeatherMapClient:
    """Fetches the current weather for one location. Stateless between calls."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        location_id: str,
        timeout_ms: int = 5000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = validate_url(api_url, SOURCE)
        self._params = {"id": location_id, "appid": api_key, "units": "metric"}
        self._client = httpx.AsyncClient(timeout=build_timeout(timeout_ms), transport=transport)

    async def fetch_weather(self) -> WeatherSnapshot:
        """Fetch the current weather snapshot."""
        document = await fetch_json(
            self._client, "GET", self.api_url, source=SOURCE, params=self._params
        )
        return parse_weather(document)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._client.aclose()
