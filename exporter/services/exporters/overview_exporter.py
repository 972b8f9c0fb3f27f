"""Cluster-wide totals from the management ``/api/overview`` endpoint."""

from __future__ import annotations

import logging

from core.config import Settings
from models.metrics import MetricDescriptor, counter, gauge
from services.exporters.base import descriptors, expect_object, push_values
from services.upstream import UpstreamClient, management_client

logger = logging.getLogger(__name__)

LABELS = ("cluster",)

OVERVIEW_VALUES = [
    ("object_totals.channels", gauge("rabbitmq_channels", "Number of channels", *LABELS)),
    ("object_totals.connections", gauge("rabbitmq_connections", "Number of connections", *LABELS)),
    ("object_totals.consumers", gauge("rabbitmq_consumers", "Number of message consumers", *LABELS)),
    ("object_totals.queues", gauge("rabbitmq_queues", "Number of queues in use", *LABELS)),
    ("object_totals.exchanges", gauge("rabbitmq_exchanges", "Number of exchanges in use", *LABELS)),
    (
        "queue_totals.messages",
        gauge("rabbitmq_queue_messages_global", "Number ready and unacknowledged messages in cluster.", *LABELS),
    ),
    (
        "queue_totals.messages_ready",
        gauge("rabbitmq_queue_messages_ready_global", "Number of messages ready to be delivered to clients.", *LABELS),
    ),
    (
        "queue_totals.messages_unacknowledged",
        gauge(
            "rabbitmq_queue_messages_unacknowledged_global",
            "Number of messages delivered to clients but not yet acknowledged.",
            *LABELS,
        ),
    ),
    (
        "message_stats.publish",
        counter("rabbitmq_messages_published_total", "Count of messages published.", *LABELS),
    ),
    (
        "message_stats.deliver_get",
        counter("rabbitmq_messages_delivered_total", "Count of messages delivered to consumers.", *LABELS),
    ),
    (
        "message_stats.ack",
        counter("rabbitmq_messages_acknowledged_total", "Count of messages acknowledged by consumers.", *LABELS),
    ),
    (
        "message_stats.redeliver",
        counter("rabbitmq_messages_redelivered_total", "Count of messages redelivered.", *LABELS),
    ),
    (
        "message_stats.confirm",
        counter("rabbitmq_messages_confirmed_total", "Count of messages confirmed to publishers.", *LABELS),
    ),
]

version_info = gauge(
    "rabbitmq_version_info",
    "A metric with a constant '1' value labeled by rabbitmq and erlang versions.",
    "cluster",
    "node",
    "rabbitmq",
    "erlang",
)


class OverviewExporter:
    name = "overview"

    def __init__(self, settings: Settings, client: UpstreamClient | None = None) -> None:
        self.settings = settings
        self.client = client or management_client(settings)

    def describe(self) -> list[MetricDescriptor]:
        return descriptors(OVERVIEW_VALUES, version_info)

    async def collect(self, ctx) -> None:
        overview = expect_object(await self.client.get("/api/overview"), "overview")
        cluster = overview.get("cluster_name") or ""

        pushed = push_values(ctx, overview, OVERVIEW_VALUES, [cluster])
        ctx.push(
            version_info.sample(
                1.0,
                cluster,
                overview.get("node"),
                overview.get("rabbitmq_version"),
                overview.get("erlang_version"),
            )
        )
        logger.debug("Overview exporter: %d samples", pushed + 1)
