"""
Readers package for pronestheus.

Each reader fetches one upstream API on demand and maps the result onto
Prometheus gauges. The registry scrapes all of them for every request.
"""

from .base import MetricSpec, Reader, ReaderMetadata
from .nest_app_reader import NestAppReader
from .registry import ReaderRegistry
from .thermostat_reader import ThermostatReader
from .weather_reader import WeatherReader

__all__ = [
    "MetricSpec",
    "Reader",
    "ReaderMetadata",
    "ReaderRegistry",
    "ThermostatReader",
    "WeatherReader",
    "NestAppReader",
]
