"""Per-node health from ``/api/nodes``."""

from __future__ import annotations

import logging

from core.config import Settings
from models.metrics import MetricDescriptor, gauge
from services.exporters.base import (
    descriptors,
    expect_list,
    fetch_cluster_identity,
    ordered,
    push_values,
)
from services.upstream import UpstreamClient, management_client

logger = logging.getLogger(__name__)

LABELS = ("cluster", "node", "self")

NODE_VALUES = [
    ("running", gauge("rabbitmq_running", "Whether the node is running", *LABELS)),
    ("uptime", gauge("rabbitmq_uptime", "Uptime in milliseconds", *LABELS)),
    ("mem_used", gauge("rabbitmq_node_mem_used", "Memory used in bytes", *LABELS)),
    ("mem_limit", gauge("rabbitmq_node_mem_limit", "Memory high watermark in bytes", *LABELS)),
    ("mem_alarm", gauge("rabbitmq_node_mem_alarm", "Whether the memory alarm is in effect", *LABELS)),
    ("disk_free", gauge("rabbitmq_node_disk_free", "Disk free space in bytes", *LABELS)),
    ("disk_free_limit", gauge("rabbitmq_node_disk_free_limit", "Free disk space low watermark in bytes", *LABELS)),
    ("disk_free_alarm", gauge("rabbitmq_node_disk_free_alarm", "Whether the disk alarm is in effect", *LABELS)),
    ("fd_used", gauge("rabbitmq_fd_used", "Used file descriptors", *LABELS)),
    ("fd_total", gauge("rabbitmq_fd_available", "File descriptors available", *LABELS)),
    ("sockets_used", gauge("rabbitmq_sockets_used", "File descriptors used as sockets", *LABELS)),
    ("sockets_total", gauge("rabbitmq_sockets_available", "File descriptors available for use as sockets", *LABELS)),
    ("proc_used", gauge("rabbitmq_erlang_processes_used", "Erlang processes used", *LABELS)),
    ("proc_total", gauge("rabbitmq_erlang_processes_available", "Erlang processes available", *LABELS)),
]

partitions = gauge("rabbitmq_partitions", "Number of network partitions this node is seeing", *LABELS)


class NodeExporter:
    name = "node"

    def __init__(self, settings: Settings, client: UpstreamClient | None = None) -> None:
        self.settings = settings
        self.client = client or management_client(settings)

    def describe(self) -> list[MetricDescriptor]:
        return descriptors(NODE_VALUES, partitions)

    async def collect(self, ctx) -> None:
        identity = await fetch_cluster_identity(self.client)
        nodes = expect_list(await self.client.get("/api/nodes"), "nodes")
        for node in ordered(nodes, self.settings):
            name = node.get("name", "")
            labels = [identity.cluster, name, self.settings.self_label(name == identity.node)]
            push_values(ctx, node, NODE_VALUES, labels)
            seen = node.get("partitions")
            if isinstance(seen, list):
                ctx.push(partitions.sample(float(len(seen)), *labels))

        logger.debug("Node exporter: %d nodes", len(nodes))
