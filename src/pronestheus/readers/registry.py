"""Reader registry: the sink that scrapes every registered reader"""

import asyncio
from typing import Optional

from prometheus_client.core import GaugeMetricFamily

from ..errors import PronestheusError
from ..logging_utils import get_structured_logger
from .base import Reader

logger = get_structured_logger(__name__, component="registry")


class ReaderRegistry:
    """
    Registry for managing readers.

    On every scrape each registered reader is collected independently. A
    failing reader reports ``up = 0`` and no other samples; it never affects
    the other readers or the HTTP handler.
    """

    def __init__(self):
        """Initialize empty registry"""
        self._readers: dict[str, Reader] = {}

    def register(self, reader: Reader) -> None:
        """
        Register a reader.

        Raises:
            ValueError: If a reader with the same ID is already registered
        """
        metadata = reader.get_metadata()
        source_id = metadata.source_id

        if source_id in self._readers:
            raise ValueError(f"Reader '{source_id}' is already registered")

        self._readers[source_id] = reader
        logger.info(f"Registered reader: {metadata.name} (id={source_id})")

    def get(self, source_id: str) -> Optional[Reader]:
        return self._readers.get(source_id)

    def get_all(self) -> list[Reader]:
        return list(self._readers.values())

    async def initialize_all(self) -> None:
        """
        Initialize all registered readers.

        Raises:
            Exception: The first initialization failure, after logging it
        """
        logger.info(f"Initializing {len(self._readers)} reader(s)...")

        for source_id, reader in self._readers.items():
            try:
                await reader.initialize()
            except Exception as e:
                logger.error(f"Error initializing reader '{source_id}': {e}")
                raise

    async def shutdown_all(self) -> None:
        """Shutdown all registered readers"""
        logger.info(f"Shutting down {len(self._readers)} reader(s)...")

        for source_id, reader in self._readers.items():
            try:
                await reader.shutdown()
            except Exception as e:
                logger.error(f"Error shutting down reader '{source_id}': {e}")

    async def _scrape_reader(self, reader: Reader) -> list[GaugeMetricFamily]:
        metadata = reader.get_metadata()
        up = metadata.up.family()

        try:
            data = await reader.collect()
            families = reader.build_metrics(data)
        except PronestheusError as e:
            logger.error("Failed collecting data", source=metadata.source_id, error=str(e))
            up.add_metric([], 0.0)
            return [up, *reader.empty_families()]
        except Exception:
            logger.exception("Unexpected error collecting data", source=metadata.source_id)
            up.add_metric([], 0.0)
            return [up, *reader.empty_families()]

        up.add_metric([], 1.0)
        return [up, *families]

    async def scrape(self) -> list[GaugeMetricFamily]:
        """
        Collect every registered reader concurrently.

        Returns:
            Metric families of all readers, including empty ones so every
            metric is always advertised
        """
        results = await asyncio.gather(
            *(self._scrape_reader(reader) for reader in self._readers.values())
        )
        return [family for families in results for family in families]

    def describe(self) -> list[GaugeMetricFamily]:
        """Empty families for every metric of every registered reader."""
        families = []
        for reader in self._readers.values():
            families.append(reader.get_metadata().up.family())
            families.extend(reader.empty_families())
        return families

    def __len__(self) -> int:
        """Return number of registered readers"""
        return len(self._readers)

    def __contains__(self, source_id: str) -> bool:
        """Check if a reader is registered"""
        return source_id in self._readers
