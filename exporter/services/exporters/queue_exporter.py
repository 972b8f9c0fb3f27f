"""Per-queue depth, consumers and message rates from ``/api/queues``.

Queues go through the vhost and queue filters and the ``max_queues`` cap
before any sample is built.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.config import Settings
from models.metrics import MetricDescriptor, counter, gauge
from services.entity_filter import EntityClass, EntityFilter, entity_vhost
from services.exporters.base import (
    descriptors,
    expect_list,
    fetch_cluster_identity,
    ordered,
    push_values,
)
from services.upstream import UpstreamClient, management_client

if TYPE_CHECKING:
    from services.collection import ScrapeContext

logger = logging.getLogger(__name__)

LABELS = ("cluster", "vhost", "queue", "durable", "policy", "self")

QUEUE_VALUES = [
    ("messages", gauge("rabbitmq_queue_messages", "Sum of ready and unacknowledged messages (queue depth).", *LABELS)),
    (
        "messages_ready",
        gauge("rabbitmq_queue_messages_ready", "Number of messages ready to be delivered to clients.", *LABELS),
    ),
    (
        "messages_unacknowledged",
        gauge(
            "rabbitmq_queue_messages_unacknowledged",
            "Number of messages delivered to clients but not yet acknowledged.",
            *LABELS,
        ),
    ),
    ("consumers", gauge("rabbitmq_queue_consumers", "Number of consumers.", *LABELS)),
    (
        "consumer_utilisation",
        gauge(
            "rabbitmq_queue_consumer_utilisation",
            "Fraction of the time that the queue is able to immediately deliver messages to consumers.",
            *LABELS,
        ),
    ),
    ("memory", gauge("rabbitmq_queue_memory", "Bytes of memory consumed by the Erlang process.", *LABELS)),
    (
        "message_bytes",
        gauge("rabbitmq_queue_message_bytes", "Sum of the size of all message bodies in the queue.", *LABELS),
    ),
    ("messages_ram", gauge("rabbitmq_queue_messages_ram", "Total number of messages held in RAM.", *LABELS)),
    (
        "messages_persistent",
        gauge("rabbitmq_queue_messages_persistent", "Total number of persistent messages in the queue.", *LABELS),
    ),
    (
        "head_message_timestamp",
        gauge(
            "rabbitmq_queue_head_message_timestamp",
            "Timestamp of the first message in the queue, if any.",
            *LABELS,
        ),
    ),
    (
        "message_stats.publish",
        counter("rabbitmq_queue_messages_published_total", "Count of messages published.", *LABELS),
    ),
    (
        "message_stats.deliver_get",
        counter("rabbitmq_queue_messages_delivered_total", "Count of messages delivered.", *LABELS),
    ),
    (
        "message_stats.ack",
        counter("rabbitmq_queue_messages_acked_total", "Count of messages acknowledged.", *LABELS),
    ),
    (
        "message_stats.redeliver",
        counter("rabbitmq_queue_messages_redelivered_total", "Count of subset of messages redelivered.", *LABELS),
    ),
]


def _flag(value: object) -> str:
    return "true" if value is True or value == "true" else "false"


class QueueExporter:
    name = "queue"

    def __init__(
        self,
        settings: Settings,
        client: UpstreamClient | None = None,
        entity_filter: EntityFilter | None = None,
    ) -> None:
        self.settings = settings
        self.client = client or management_client(settings)
        self.entity_filter = entity_filter or EntityFilter.from_settings(settings)

    def describe(self) -> list[MetricDescriptor]:
        return descriptors(QUEUE_VALUES)

    async def collect(self, ctx: ScrapeContext) -> None:
        identity = await fetch_cluster_identity(self.client)
        queues = expect_list(await self.client.get("/api/queues"), "queues")

        reported = 0
        for queue in self.entity_filter.select(
            EntityClass.QUEUE, ordered(queues, self.settings), vhost=entity_vhost
        ):
            if ctx.expired:
                logger.debug("Queue exporter: deadline reached after %d queues", reported)
                break
            labels = [
                identity.cluster,
                queue.get("vhost", ""),
                queue.get("name", ""),
                _flag(queue.get("durable")),
                queue.get("policy", ""),
                self.settings.self_label(queue.get("node") == identity.node),
            ]
            push_values(ctx, queue, QUEUE_VALUES, labels)
            reported += 1

        logger.debug("Queue exporter: %d of %d queues reported", reported, len(queues))
