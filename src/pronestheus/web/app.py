"""FastAPI application serving the metrics endpoint."""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from pronestheus import __version__

if TYPE_CHECKING:
    from pronestheus.context import AppContext

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan.

    Readers are owned by AppContext and started by the CLI before the web
    app starts; this only logs.
    """
    context = app.state.context
    if not context.is_started:
        logger.warning("AppContext provided but not started - scrapes will likely fail")
    logger.info(f"Serving {len(context.readers)} reader(s) on {context.config.web.metrics_path}")

    yield

    logger.info("Web application shutting down...")


def create_app(context: "AppContext") -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Application context with config and readers

    Returns:
        Configured FastAPI application
    """
    from pronestheus.web.routes import metrics, router

    app = FastAPI(
        title="ProNestheus",
        description="Nest Thermostat Prometheus Exporter",
        version=__version__,
        lifespan=lifespan,
    )

    # Handlers reach the context through request.app.state
    app.state.context = context

    app.include_router(router)
    app.add_api_route(context.config.web.metrics_path, metrics, methods=["GET"])

    logger.info("FastAPI application created")
    return app
