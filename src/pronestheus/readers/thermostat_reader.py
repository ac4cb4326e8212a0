"""Thermostat reader backed by the Smart Device Management API"""

from typing import Optional

from prometheus_client.core import GaugeMetricFamily

from ..config import NestConfig
from ..logging_utils import Logger, get_structured_logger
from ..models import Thermostat
from ..nest_sdm import NestSDMClient
from .base import MetricSpec, Reader, ReaderMetadata, b2f, normalize_label

THERMOSTAT_LABELS = ("id", "room", "label")

UP = MetricSpec("nest_up", "Was talking to Nest API successful.")
ONLINE = MetricSpec("nest_online", "Is the thermostat online.", THERMOSTAT_LABELS)
AMBIENT_TEMPERATURE = MetricSpec(
    "nest_ambient_temperature_celsius", "Inside temperature.", THERMOSTAT_LABELS
)
SETPOINT_TEMPERATURE = MetricSpec(
    "nest_setpoint_temperature_celsius", "Setpoint temperature.", THERMOSTAT_LABELS
)
COOL_SETPOINT_TEMPERATURE = MetricSpec(
    "nest_cool_setpoint_temperature_celsius", "Cooling setpoint temperature.", THERMOSTAT_LABELS
)
HUMIDITY = MetricSpec("nest_humidity_percent", "Inside humidity.", THERMOSTAT_LABELS)
HEATING = MetricSpec("nest_heating", "Is thermostat heating.", THERMOSTAT_LABELS)
COOLING = MetricSpec("nest_cooling", "Is thermostat cooling.", THERMOSTAT_LABELS)

METRICS = [
    ONLINE,
    AMBIENT_TEMPERATURE,
    SETPOINT_TEMPERATURE,
    COOL_SETPOINT_TEMPERATURE,
    HUMIDITY,
    HEATING,
    COOLING,
]


class ThermostatReader(Reader[list[Thermostat]]):
    """
    Nest thermostat reader.

    Each collection makes one fresh request to the SDM API.
    """

    def __init__(
        self,
        config: NestConfig,
        timeout_ms: int = 5000,
        client: Optional[NestSDMClient] = None,
        logger: Optional[Logger] = None,
    ):
        """
        Initialize thermostat reader.

        Args:
            config: Nest SDM configuration
            timeout_ms: Request timeout in milliseconds
            client: Pre-built client (tests inject one with a fake transport)
            logger: Logger to use instead of the module default
        """
        self._config = config
        self._logger = logger or get_structured_logger(__name__, component="nest")
        self._client = client or NestSDMClient(
            api_url=config.url,
            project_id=config.project_id,
            client_id=config.client_id,
            client_secret=config.client_secret,
            refresh_token=config.refresh_token,
            timeout_ms=timeout_ms,
            logger=self._logger,
        )

    async def initialize(self) -> None:
        # The access token is fetched lazily on the first scrape
        self._logger.info("Thermostat reader initialized", url=self._client.devices_url)

    async def collect(self) -> list[Thermostat]:
        thermostats = await self._client.fetch_thermostats(
            require_thermostats=self._config.require_thermostats
        )
        self._logger.debug("Successfully collected Nest data", thermostats=len(thermostats))
        return thermostats

    def describe(self) -> list[MetricSpec]:
        return list(METRICS)

    def build_metrics(self, data: list[Thermostat]) -> list[GaugeMetricFamily]:
        families = {spec: spec.family() for spec in METRICS}

        for therm in data:
            labels = [
                therm.id,
                therm.room,
                normalize_label(therm.label, self._config.label_space_to_dash),
            ]
            families[ONLINE].add_metric(labels, b2f(therm.online))

            # Readings of an offline thermostat are stale, so emit nothing else
            if not therm.online:
                continue

            if therm.ambient_temperature is not None:
                families[AMBIENT_TEMPERATURE].add_metric(labels, therm.ambient_temperature)
            if therm.heat_setpoint is not None:
                families[SETPOINT_TEMPERATURE].add_metric(labels, therm.heat_setpoint)
            if therm.cool_setpoint is not None:
                families[COOL_SETPOINT_TEMPERATURE].add_metric(labels, therm.cool_setpoint)
            if therm.humidity is not None:
                families[HUMIDITY].add_metric(labels, therm.humidity)
            families[HEATING].add_metric(labels, b2f(therm.is_heating))
            families[COOLING].add_metric(labels, b2f(therm.is_cooling))

        return list(families.values())

    def get_metadata(self) -> ReaderMetadata:
        return ReaderMetadata(
            source_id="nest",
            name="Nest thermostats",
            description=f"Thermostat state from the SDM API (project {self._config.project_id})",
            up=UP,
        )

    async def shutdown(self) -> None:
        await self._client.close()
        self._logger.debug("Thermostat reader shut down")
