"""Per-exchange publish counters from ``/api/exchanges``."""

from __future__ import annotations

import logging

from core.config import Settings
from models.metrics import MetricDescriptor, counter
from services.entity_filter import EntityClass, EntityFilter, entity_vhost
from services.exporters.base import (
    descriptors,
    expect_list,
    fetch_cluster_identity,
    ordered,
    push_values,
)
from services.upstream import UpstreamClient, management_client

logger = logging.getLogger(__name__)

LABELS = ("cluster", "vhost", "exchange")

EXCHANGE_VALUES = [
    (
        "message_stats.publish_in",
        counter(
            "rabbitmq_exchange_messages_published_in_total",
            "Count of messages published in to an exchange, i.e. not taking account of routing.",
            *LABELS,
        ),
    ),
    (
        "message_stats.publish_out",
        counter(
            "rabbitmq_exchange_messages_published_out_total",
            "Count of messages published out of an exchange, i.e. taking account of routing.",
            *LABELS,
        ),
    ),
    (
        "message_stats.confirm",
        counter("rabbitmq_exchange_messages_confirmed_total", "Count of messages confirmed.", *LABELS),
    ),
    (
        "message_stats.return_unroutable",
        counter(
            "rabbitmq_exchange_messages_returned_unroutable_total",
            "Count of messages returned to publisher as unroutable.",
            *LABELS,
        ),
    ),
]


class ExchangeExporter:
    name = "exchange"

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
        return descriptors(EXCHANGE_VALUES)

    async def collect(self, ctx) -> None:
        identity = await fetch_cluster_identity(self.client)
        exchanges = expect_list(await self.client.get("/api/exchanges"), "exchanges")

        for exchange in self.entity_filter.select(
            EntityClass.EXCHANGE, ordered(exchanges, self.settings), vhost=entity_vhost
        ):
            labels = [identity.cluster, exchange.get("vhost", ""), exchange.get("name", "")]
            push_values(ctx, exchange, EXCHANGE_VALUES, labels)

        logger.debug("Exchange exporter: %d exchanges fetched", len(exchanges))
