"""Temperature sensor and structure reader backed by the Nest app API"""

from typing import Optional

from prometheus_client.core import GaugeMetricFamily

from ..config import NestAppConfig
from ..logging_utils import Logger, get_structured_logger
from ..models import Readings
from ..nest_app import NestAppClient
from .base import MetricSpec, Reader, ReaderMetadata

SENSOR_LABELS = ("serial", "structure", "where")
STRUCTURE_LABELS = ("id", "name")

UP = MetricSpec("nest_app_up", "Was talking to Nest app API successful.")
SENSOR_TEMPERATURE = MetricSpec(
    "nest_temp_sensor_temperature_celsius", "Temperature Sensor temperature", SENSOR_LABELS
)
SENSOR_BATTERY = MetricSpec(
    "nest_temp_sensor_battery", "Temperature Sensor battery level (0-100)", SENSOR_LABELS
)
OUTSIDE_TEMPERATURE = MetricSpec(
    "nest_outside_temperature_celsius", "Outside temperature", STRUCTURE_LABELS
)

METRICS = [SENSOR_TEMPERATURE, SENSOR_BATTERY, OUTSIDE_TEMPERATURE]


class NestAppReader(Reader[Readings]):
    """
    Nest Temperature Sensor reader.

    ``initialize()`` performs the first authentication; the reader cannot
    collect until it succeeds.
    """

    def __init__(
        self,
        config: NestAppConfig,
        timeout_ms: int = 5000,
        client: Optional[NestAppClient] = None,
        logger: Optional[Logger] = None,
    ):
        self._logger = logger or get_structured_logger(__name__, component="nest_app")
        self._client = client or NestAppClient(
            auth_url=config.auth_url,
            auth_cookies=config.auth_cookies,
            timeout_ms=timeout_ms,
            issue_jwt_url=config.issue_jwt_url,
            api_url=config.api_url,
            logger=self._logger,
        )

    async def initialize(self) -> None:
        """
        Authenticate to the Nest app API.

        Raises:
            AuthenticationError: If the token exchange fails
        """
        session = await self._client.authenticate()
        self._logger.info(
            "Nest app reader initialized", valid_until=session.expires_at.isoformat()
        )

    async def collect(self) -> Readings:
        readings = await self._client.fetch_readings()
        self._logger.debug(
            "Successfully collected Nest app data",
            sensors=len(readings.sensors),
            structures=len(readings.structures),
        )
        return readings

    def describe(self) -> list[MetricSpec]:
        return list(METRICS)

    def build_metrics(self, data: Readings) -> list[GaugeMetricFamily]:
        temperature = SENSOR_TEMPERATURE.family()
        battery = SENSOR_BATTERY.family()
        outside = OUTSIDE_TEMPERATURE.family()

        for sensor in data.sensors:
            labels = [sensor.serial_number, sensor.structure_name, sensor.where_name]
            if sensor.temperature is not None:
                temperature.add_metric(labels, sensor.temperature)
            battery.add_metric(labels, float(sensor.battery_level))

        for structure in data.structures:
            if structure.outside_temperature is not None:
                outside.add_metric([structure.id, structure.name], structure.outside_temperature)

        return [temperature, battery, outside]

    def get_metadata(self) -> ReaderMetadata:
        return ReaderMetadata(
            source_id="nest_app",
            name="Nest app",
            description="Temperature sensors and outside temperature from the Nest app API",
            up=UP,
        )

    async def shutdown(self) -> None:
        await self._client.close()
        self._logger.debug("Nest app reader shut down")
