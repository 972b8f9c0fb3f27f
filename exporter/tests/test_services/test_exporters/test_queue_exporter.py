"""Tests for the per-queue exporter: filtering, cap, ordering and labels."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent))

from conftest import make_overview, make_queue, make_settings
from services.collection import ScrapeContext, ScrapeSink
from services.exporters.queue_exporter import QueueExporter


def _routes(queues):
    return {"/api/overview": make_overview(), "/api/queues": queues}


def _depths(ctx):
    return [
        (s.labels["vhost"], s.labels["queue"], s.value)
        for s in ctx.sink.samples
        if s.name == "rabbitmq_queue_messages"
    ]


class TestQueueExporter:
    @pytest.mark.asyncio
    async def test_pushes_queue_samples(self, make_management_client, scrape_context):
        client, transport = make_management_client(_routes([make_queue("orders")]))

        await QueueExporter(make_settings(), client).collect(scrape_context)

        assert _depths(scrape_context) == [("/", "orders", 7.0)]
        depth = next(s for s in scrape_context.sink.samples if s.name == "rabbitmq_queue_messages")
        assert depth.labels == {
            "cluster": "rabbit@cluster",
            "vhost": "/",
            "queue": "orders",
            "durable": "true",
            "policy": "",
            "self": "1",
        }
        published = next(
            s for s in scrape_context.sink.samples if s.name == "rabbitmq_queue_messages_published_total"
        )
        assert published.value == 30.0
        assert [request.url.path for request in transport.requests] == ["/api/overview", "/api/queues"]

    @pytest.mark.asyncio
    async def test_queue_on_other_node(self, make_management_client, scrape_context):
        client, _ = make_management_client(_routes([make_queue("orders", node="rabbit@node2")]))

        await QueueExporter(make_settings(), client).collect(scrape_context)

        assert {s.labels["self"] for s in scrape_context.sink.samples} == {"0"}

    @pytest.mark.asyncio
    async def test_include_and_skip_patterns(self, make_management_client, scrape_context):
        settings = make_settings(include_queues="^orders", skip_queues="dead")
        queues = [make_queue("orders"), make_queue("orders.dead"), make_queue("audit")]
        client, _ = make_management_client(_routes(queues), settings=settings)

        await QueueExporter(settings, client).collect(scrape_context)

        assert [queue for _, queue, _ in _depths(scrape_context)] == ["orders"]

    @pytest.mark.asyncio
    async def test_vhost_filter(self, make_management_client, scrape_context):
        settings = make_settings(skip_vhost="^staging$")
        queues = [make_queue("orders", vhost="staging"), make_queue("orders", vhost="/")]
        client, _ = make_management_client(_routes(queues), settings=settings)

        await QueueExporter(settings, client).collect(scrape_context)

        assert [vhost for vhost, _, _ in _depths(scrape_context)] == ["/"]

    @pytest.mark.asyncio
    async def test_max_queues_cap(self, make_management_client, scrape_context):
        settings = make_settings(max_queues=2)
        queues = [make_queue(f"q{index}") for index in range(5)]
        client, _ = make_management_client(_routes(queues), settings=settings)

        await QueueExporter(settings, client).collect(scrape_context)

        assert [queue for _, queue, _ in _depths(scrape_context)] == ["q0", "q1"]

    @pytest.mark.asyncio
    async def test_sorted_by_vhost_then_name(self, make_management_client, scrape_context):
        queues = [make_queue("b", vhost="/"), make_queue("a", vhost="z"), make_queue("a", vhost="/")]
        client, _ = make_management_client(_routes(queues))

        await QueueExporter(make_settings(), client).collect(scrape_context)

        assert [(vhost, queue) for vhost, queue, _ in _depths(scrape_context)] == [
            ("/", "a"),
            ("/", "b"),
            ("z", "a"),
        ]

    @pytest.mark.asyncio
    async def test_no_sort_keeps_arrival_order(self, make_management_client, scrape_context):
        settings = make_settings(rabbit_capabilities="no_sort")
        queues = [make_queue("b"), make_queue("a")]
        client, transport = make_management_client(_routes(queues), settings=settings)

        await QueueExporter(settings, client).collect(scrape_context)

        assert [queue for _, queue, _ in _depths(scrape_context)] == ["b", "a"]
        assert transport.requests[-1].url.params["sort"] == ""

    @pytest.mark.asyncio
    async def test_bad_value_skips_only_that_sample(self, make_management_client, scrape_context):
        client, _ = make_management_client(_routes([make_queue("orders", messages="n/a")]))

        await QueueExporter(make_settings(), client).collect(scrape_context)

        names = {s.name for s in scrape_context.sink.samples}
        assert "rabbitmq_queue_messages" not in names
        assert "rabbitmq_queue_messages_ready" in names

    @pytest.mark.asyncio
    async def test_empty_queue_list(self, make_management_client, scrape_context):
        client, _ = make_management_client(_routes([]))

        await QueueExporter(make_settings(), client).collect(scrape_context)

        assert scrape_context.sink.samples == []

    @pytest.mark.asyncio
    async def test_non_durable_flag(self, make_management_client, scrape_context):
        client, _ = make_management_client(_routes([make_queue("tmp", durable=False)]))

        await QueueExporter(make_settings(), client).collect(scrape_context)

        assert {s.labels["durable"] for s in scrape_context.sink.samples} == {"false"}

    @pytest.mark.asyncio
    async def test_stops_when_the_deadline_has_passed(self, make_management_client):
        client, _ = make_management_client(_routes([make_queue("a"), make_queue("b")]))
        ctx = ScrapeContext(sink=ScrapeSink(), deadline=0.0)

        await QueueExporter(make_settings(), client).collect(ctx)

        assert ctx.expired is True
        assert ctx.sink.samples == []
