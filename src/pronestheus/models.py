"""Domain records produced by the readers.

All records are rebuilt on every collection; nothing here is cached.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class HvacStatus(str, Enum):
    """HVAC activity reported by the ThermostatHvac trait"""

    OFF = "OFF"
    HEATING = "HEATING"
    COOLING = "COOLING"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str) -> "HvacStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Thermostat:
    """
    A single thermostat as seen by the Smart Device Management API.

    Attributes:
        id: Full device resource name
        room: Display name of the room the device belongs to (may be empty)
        label: Custom name given by the user
        online: Connectivity status; when False the readings are unknown
        ambient_temperature: Inside temperature in Celsius
        humidity: Inside relative humidity in percent
        heat_setpoint: Heating setpoint, None when the mode has none
        cool_setpoint: Cooling setpoint, None when the mode has none
        hvac_status: Current HVAC activity
    """

    id: str
    room: str
    label: str
    online: bool
    ambient_temperature: Optional[float] = None
    humidity: Optional[float] = None
    heat_setpoint: Optional[float] = None
    cool_setpoint: Optional[float] = None
    hvac_status: HvacStatus = HvacStatus.UNKNOWN

    @property
    def is_heating(self) -> bool:
        return self.hvac_status is HvacStatus.HEATING

    @property
    def is_cooling(self) -> bool:
        return self.hvac_status is HvacStatus.COOLING


@dataclass
class WeatherSnapshot:
    """Current weather for the configured location"""

    temperature: float
    humidity: float
    pressure: float


@dataclass
class Structure:
    """A house, with its rooms ("wheres") and outside temperature"""

    id: str
    name: str
    where_names: dict[str, str] = field(default_factory=dict)
    outside_temperature: Optional[float] = None


@dataclass
class TemperatureSensor:
    """A Nest Temperature Sensor ("kryptonite" bucket)"""

    serial_number: str
    structure_name: str
    where_name: str
    last_updated_at: datetime
    temperature: Optional[float]  # None when the sensor has not reported one
    battery_level: int


@dataclass
class Readings:
    """Everything the Nest app API returns in one collection"""

    structures: list[Structure] = field(default_factory=list)
    sensors: list[TemperatureSensor] = field(default_factory=list)


@dataclass(frozen=True)
class Session:
    """
    Nest app API session.

    Frozen so that re-authentication always swaps in a complete new session.
    """

    token: str
    user_id: str
    expires_at: datetime
