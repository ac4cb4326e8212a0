"""
Base interface for all readers in pronestheus.

A reader fetches fresh data from one upstream API when asked and maps it onto
Prometheus gauges. Readers do NOT cache: every scrape recomputes from live
upstream state.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from prometheus_client.core import GaugeMetricFamily

T = TypeVar("T")


@dataclass(frozen=True)
class MetricSpec:
    """
    Static description of one gauge a reader can emit.

    Attributes:
        name: Metric name (public contract, dashboards depend on it)
        documentation: HELP text
        labels: Label dimensions, empty for unlabelled gauges
    """

    name: str
    documentation: str
    labels: tuple[str, ...] = ()

    def family(self) -> GaugeMetricFamily:
        """Create an empty gauge family for this metric."""
        return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))


@dataclass
class ReaderMetadata:
    """
    Metadata describing a reader.

    Attributes:
        source_id: Unique identifier for this reader
        name: Human-readable name
        description: Brief description of what this reader provides
        up: Gauge reporting whether the last collection succeeded
    """

    source_id: str
    name: str
    description: str
    up: MetricSpec


class Reader(ABC, Generic[T]):
    """
    Abstract base class for all readers.

    The registry calls ``collect()`` once per scrape and hands the result to
    ``build_metrics()``. Any exception from ``collect()`` marks the reader as
    down for that scrape.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the reader (authenticate if needed).

        Called once at startup. A failure here is a configuration error.
        """

    @abstractmethod
    async def collect(self) -> T:
        """
        Fetch and parse current upstream state.

        Raises:
            PronestheusError: If the data could not be collected
        """

    @abstractmethod
    def describe(self) -> list[MetricSpec]:
        """Every metric this reader can emit, except its ``up`` gauge."""

    @abstractmethod
    def build_metrics(self, data: T) -> list[GaugeMetricFamily]:
        """Map collected data onto one family per ``describe()`` entry."""

    @abstractmethod
    def get_metadata(self) -> ReaderMetadata:
        """Return metadata without doing any I/O."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Release HTTP clients."""

    def empty_families(self) -> list[GaugeMetricFamily]:
        """Families with no samples, so metrics are advertised even without data."""
        return [spec.family() for spec in self.describe()]


def b2f(value: bool) -> float:
    return 1.0 if value else 0.0


_WHITESPACE = re.compile(r"\s")


def normalize_label(value: str, space_to_dash: bool) -> str:
    """Replace whitespace with dashes when ``space_to_dash`` is enabled."""
    if not space_to_dash:
        return value
    return _WHITESPACE.sub("-", value)
