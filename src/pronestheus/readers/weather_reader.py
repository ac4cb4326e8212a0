"""Weather reader backed by OpenWeatherMap"""

from typing import Optional

from prometheus_client.core import GaugeMetricFamily

from ..config import WeatherConfig
from ..logging_utils import Logger, get_structured_logger
from ..models import WeatherSnapshot
from ..openweathermap import OpenWeatherMapClient
from .base import MetricSpec, Reader, ReaderMetadata

UP = MetricSpec("nest_weather_up", "Was talking to OpenWeatherMap API successful.")
TEMPERATURE = MetricSpec("nest_weather_temperature_celsius", "Outside temperature.")
HUMIDITY = MetricSpec("nest_weather_humidity_percent", "Outside humidity.")
PRESSURE = MetricSpec("nest_weather_pressure_hectopascal", "Outside pressure.")

METRICS = [TEMPERATURE, HUMIDITY, PRESSURE]


class WeatherReader(Reader[WeatherSnapshot]):
    """Current weather for one configured location. No retries, no caching."""

    def __init__(
        self,
        config: WeatherConfig,
        timeout_ms: int = 5000,
        client: Optional[OpenWeatherMapClient] = None,
        logger: Optional[Logger] = None,
    ):
        self._config = config
        self._logger = logger or get_structured_logger(__name__, component="weather")
        self._client = client or OpenWeatherMapClient(
            api_url=config.url,
            api_key=config.api_key,
            location_id=config.location,
            timeout_ms=timeout_ms,
        )

    async def initialize(self) -> None:
        self._logger.info("Weather reader initialized", location=self._config.location)

    async def collect(self) -> WeatherSnapshot:
        snapshot = await self._client.fetch_weather()
        self._logger.debug("Successfully collected weather data")
        return snapshot

    def describe(self) -> list[MetricSpec]:
        return list(METRICS)

    def build_metrics(self, data: WeatherSnapshot) -> list[GaugeMetricFamily]:
        temperature = TEMPERATURE.family()
        temperature.add_metric([], data.temperature)
        humidity = HUMIDITY.family()
        humidity.add_metric([], data.humidity)
        pressure = PRESSURE.family()
        pressure.add_metric([], data.pressure)
        return [temperature, humidity, pressure]

    def get_metadata(self) -> ReaderMetadata:
        return ReaderMetadata(
            source_id="weather",
            name="Weather",
            description=f"Current weather from OpenWeatherMap (location {self._config.location})",
            up=UP,
        )

    async def shutdown(self) -> None:
        await self._client.close()
        self._logger.debug("Weather reader shut down")
