"""CPU utilization of the broker pods, aggregated by the time-series API.

Issues a single instant query per scrape and emits one gauge per node row.
A row whose value cannot be read as a number is skipped on its own.
"""

from __future__ import annotations

import logging

from core.config import Settings
from models.metrics import MetricDescriptor, gauge
from services.coercion import CoercionError, get_float
from services.upstream import UpstreamClient, timeseries_client

logger = logging.getLogger(__name__)

CONTAINER = "rabbitmq-k8s"

QUERY_TEMPLATE = (
    'sum(rate(container_cpu_usage_seconds_total{{namespace="{namespace}", '
    'container="{container}", pod=~"rmq-{resource_id}.*"}}[5m])) by (node, container)'
)

utilization = gauge(
    "rabbitmq:cpu_utilization:rate5m",
    "rabbitmq_exporter: CPU utilization",
    "hsdp_instance_guid",
    "hsdp_instance_node_name",
)


class CpuExporter:
    name = "cpu"

    def __init__(self, settings: Settings, client: UpstreamClient | None = None) -> None:
        self.client = client or timeseries_client(settings)
        self.namespace = settings.service_namespace
        self.resource_id = settings.resource_id
        self.instance_guid = settings.service_instance_guid

    def describe(self) -> list[MetricDescriptor]:
        return [utilization]

    @property
    def query(self) -> str:
        return QUERY_TEMPLATE.format(
            namespace=self.namespace,
            container=CONTAINER,
            resource_id=self.resource_id,
        )

    async def collect(self, ctx) -> None:
        response = await self.client.query(self.query)

        for row in response.data.result:
            node = row.metric.get("node", "")
            try:
                value = get_float(row.scalar)
            except CoercionError as exc:
                logger.warning("Skipping cpu sample for node %r: %s", node, exc)
                continue
            ctx.push(utilization.sample(value, self.instance_guid, node))
