"""
Application context: the composition root.

Builds one reader per configured upstream, owns them for the lifetime of
the process and hands the registry to the web layer.

Usage:
    config = load_config()
    context = AppContext.create(config)
    await context.start()

    app = create_app(context=context)

    # On shutdown
    await context.shutdown()
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from pronestheus.config import Config
from pronestheus.http_utils import validate_url
from pronestheus.readers import NestAppReader, Reader, ReaderRegistry, ThermostatReader, WeatherReader

logger = logging.getLogger(__name__)


def _enabled_urls(
    config: Config, nest_enabled: bool, weather_enabled: bool, nest_app_enabled: bool
) -> list[str]:
    urls = []
    if nest_enabled:
        urls.append(config.nest.url)
    if weather_enabled:
        urls.append(config.weather.url)
    if nest_app_enabled:
        app = config.nest_app
        urls.extend([app.auth_url, app.issue_jwt_url, app.api_url])
    return urls


def build_readers(config: Config) -> list[Reader]:
    """
    Create a reader for every configured upstream.

    Unconfigured upstreams are skipped silently.

    Raises:
        ConfigurationError: If a reader is half-configured or has a bad URL
    """
    # Settle every section before any reader opens an HTTP client
    nest_enabled = config.nest.is_configured
    weather_enabled = config.weather.is_configured
    nest_app_enabled = config.nest_app.is_configured
    for url in _enabled_urls(config, nest_enabled, weather_enabled, nest_app_enabled):
        validate_url(url, "config")

    readers: list[Reader] = []

    if nest_enabled:
        readers.append(ThermostatReader(config.nest, timeout_ms=config.timeout))
    else:
        logger.info("Nest SDM project or refresh token not configured, thermostats disabled")

    if weather_enabled:
        readers.append(WeatherReader(config.weather, timeout_ms=config.timeout))

    if nest_app_enabled:
        readers.append(NestAppReader(config.nest_app, timeout_ms=config.timeout))

    return readers


@dataclass
class AppContext:
    """
    Application context containing all shared dependencies.

    Attributes:
        config: Application configuration
        registry: Registry holding every active reader
    """

    config: Config
    registry: ReaderRegistry = field(default_factory=ReaderRegistry)
    _started: bool = field(default=False, repr=False)

    @classmethod
    def create(cls, config: Config) -> "AppContext":
        """
        Factory method that builds and registers readers from config.

        Raises:
            ConfigurationError: See ``build_readers``
        """
        context = cls(config=config)
        for reader in build_readers(config):
            context.add_reader(reader)
        logger.debug(f"Created AppContext with {len(context.registry)} reader(s)")
        return context

    def add_reader(self, reader: Reader) -> "AppContext":
        """
        Register a reader.

        Returns:
            self (for method chaining)
        """
        self.registry.register(reader)
        return self

    async def start(self) -> None:
        """
        Initialize all readers.

        Unlike a scrape failure, an initialization failure is fatal: the
        readers are shut down again and the error is re-raised.
        """
        if self._started:
            logger.warning("AppContext already started, ignoring start() call")
            return

        logger.info(f"Starting AppContext with {len(self.registry)} reader(s)...")
        try:
            await self.registry.initialize_all()
        except Exception:
            await self.registry.shutdown_all()
            raise

        self._started = True
        logger.info("AppContext started")

    async def shutdown(self) -> None:
        """
        Shut down all readers.

        Safe to call multiple times or before start().
        """
        if not self._started:
            logger.debug("AppContext not started, nothing to shutdown")
            return

        logger.info("Shutting down AppContext...")
        await self.registry.shutdown_all()
        self._started = False
        logger.info("AppContext shutdown complete")

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def readers(self) -> list[Reader]:
        return self.registry.get_all()

    def get_reader(self, source_id: str) -> Optional[Reader]:
        return self.registry.get(source_id)

    def __repr__(self) -> str:
        sources = [r.get_metadata().source_id for r in self.readers]
        return f"AppContext(started={self._started}, readers={sources})"
