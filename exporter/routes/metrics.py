"""Scrape endpoint and liveness probe."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, Response

from services.collection import Collector
from services.exposition import CONTENT_TYPE_LATEST, render

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metrics"])

_INDEX_PAGE = """<html>
<head><title>RabbitMQ Exporter</title></head>
<body>
<h1>RabbitMQ Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>"""


def get_collector(request: Request) -> Collector:
    return request.app.state.collector


@router.get("/metrics")
async def metrics(collector: Collector = Depends(get_collector)) -> Response:
    """Run one scrape and return whatever was collected within the deadline."""
    result = await collector.scrape()
    if result.failures or result.timed_out:
        logger.warning(
            "Partial scrape: failed=%s timed_out=%s",
            sorted(result.failures),
            result.timed_out,
        )
    body = render(collector.describe(), result.samples)
    return Response(content=body, media_type=CONTENT_TYPE_LATEST)


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.get("/", response_class=HTMLResponse)
async def index() -> str:
    return _INDEX_PAGE
