"""Aliveness check of one virtual host via ``/api/aliveness-test/{vhost}``."""

from __future__ import annotations

import logging
from urllib.parse import quote

from core.config import Settings
from models.metrics import MetricDescriptor, gauge
from services.exporters.base import expect_object
from services.upstream import StatusError, UpstreamClient, management_client

logger = logging.getLogger(__name__)

aliveness = gauge(
    "rabbitmq_aliveness_test",
    "Whether the aliveness test of the vhost succeeded (1) or not (0)",
    "vhost",
)


class AlivenessExporter:
    name = "aliveness"

    def __init__(self, settings: Settings, client: UpstreamClient | None = None) -> None:
        self.vhost = settings.aliveness_vhost
        self.client = client or management_client(settings)

    def describe(self) -> list[MetricDescriptor]:
        return [aliveness]

    async def collect(self, ctx) -> None:
        path = f"/api/aliveness-test/{quote(self.vhost, safe='')}"
        try:
            body = expect_object(await self.client.get(path), "aliveness test")
        except StatusError as exc:
            # The broker answers 503 with a failure reason when the test fails
            if exc.status_code != 503:
                raise
            logger.warning("Aliveness test for vhost %r failed: %s", self.vhost, exc)
            body = {}
        ok = body.get("status") == "ok"
        ctx.push(aliveness.sample(1.0 if ok else 0.0, self.vhost))
