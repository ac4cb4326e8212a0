"""HTTP routes: landing page, health and Prometheus exposition"""

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from pronestheus.context import AppContext

logger = logging.getLogger(__name__)
router = APIRouter()

LANDING_PAGE = """<html>
<head><title>ProNestheus</title></head>
<body>
<h1>ProNestheus - Nest Thermostat Prometheus Exporter</h1>
<p><a href="{metrics_path}">Metrics</a></p>
</body>
</html>"""


class ScrapeResult(Collector):
    """Hands an already collected set of families to a prometheus_client registry."""

    def __init__(self, families: Iterable[Metric]):
        self._families = list(families)

    def collect(self) -> Iterator[Metric]:
        return iter(self._families)


def render_metrics(families: Iterable[Metric]) -> bytes:
    """Render families in the Prometheus text exposition format."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(ScrapeResult(families))
    return generate_latest(registry)


def _get_context(request: Request) -> AppContext:
    return request.app.state.context


@router.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    context = _get_context(request)
    return HTMLResponse(LANDING_PAGE.format(metrics_path=context.config.web.metrics_path))


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    context = _get_context(request)
    return {
        "status": "healthy" if context.is_started else "starting",
        "readers": [reader.get_metadata().source_id for reader in context.readers],
    }


async def metrics(request: Request) -> Response:
    """Scrape every reader and return the exposition text."""
    context = _get_context(request)
    families = await context.registry.scrape()
    logger.debug(f"Scrape produced {len(families)} metric families")
    return Response(content=render_metrics(families), media_type=CONTENT_TYPE_LATEST)
