"""Shared test fixtures for the RabbitMQ exporter tests."""

import asyncio
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add exporter/ to Python path so imports work
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from application import create_app  # noqa: E402
from core.config import Settings  # noqa: E402
from models.metrics import gauge  # noqa: E402
from services.collection import ScrapeContext, ScrapeSink  # noqa: E402
from services.exporters.registry import ExporterRegistry  # noqa: E402
from services.upstream import management_client, timeseries_client  # noqa: E402

fake_metric = gauge("fake_metric", "A metric produced by fake exporters", "exporter", "index")


class FakeExporter:
    """Exporter pushing ``count`` samples, optionally slowly, optionally failing."""

    def __init__(self, name, count=3, error=None, delay=0.0, hang=False):
        self.name = name
        self.count = count
        self.error = error
        self.delay = delay
        self.hang = hang
        self.late_pushes = []

    def describe(self):
        return [fake_metric]

    async def collect(self, ctx):
        for index in range(self.count):
            if self.delay:
                await asyncio.sleep(self.delay)
            ctx.push(fake_metric.sample(float(index), self.name, index))
        if self.hang:
            try:
                await asyncio.sleep(3600)
            finally:
                self.late_pushes.append(ctx.push(fake_metric.sample(99.0, self.name, "late")))
        if self.error is not None:
            raise self.error


def make_settings(**overrides) -> Settings:
    """Settings independent of the developer's environment."""
    data = {
        "rabbit_url": "http://rabbit.test:15672",
        "rabbit_user": "guest",
        "rabbit_password": "guest",
        "rabbit_capabilities": "",
        "rabbit_exporters": "overview",
        "rabbit_timeout": 5,
        "prometheus_host": "prometheus.test",
        "prometheus_port": "9090",
        "service_namespace": "ns-1",
        "resource_id": "abc",
        "service_instance_guid": "guid-1",
    }
    data.update(overrides)
    return Settings(**data)


def make_overview(**overrides) -> dict:
    data = {
        "cluster_name": "rabbit@cluster",
        "node": "rabbit@node1",
        "rabbitmq_version": "3.12.4",
        "erlang_version": "26.0.2",
        "object_totals": {
            "channels": 4,
            "connections": 2,
            "consumers": 3,
            "queues": 5,
            "exchanges": 8,
        },
        "queue_totals": {
            "messages": 12,
            "messages_ready": 10,
            "messages_unacknowledged": 2,
        },
        "message_stats": {"publish": 100, "deliver_get": 90, "ack": 85},
    }
    data.update(overrides)
    return data


def make_queue(name, vhost="/", **overrides) -> dict:
    data = {
        "name": name,
        "vhost": vhost,
        "durable": True,
        "policy": "",
        "node": "rabbit@node1",
        "messages": 7,
        "messages_ready": 5,
        "messages_unacknowledged": 2,
        "consumers": 1,
        "memory": 14000,
        "message_stats": {"publish": 30, "deliver_get": 23},
    }
    data.update(overrides)
    return data


def management_transport(routes: dict, status_overrides: dict | None = None) -> httpx.MockTransport:
    """Mock management API: ``routes`` maps a URL path to the JSON body."""
    status_overrides = status_overrides or {}
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path in status_overrides:
            return httpx.Response(status_overrides[path], json={"error": "failed"})
        if path not in routes:
            return httpx.Response(404, json={"error": "Object Not Found"})
        return httpx.Response(200, json=routes[path])

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def scrape_context():
    """Context with an open sink and a far-away deadline."""
    return ScrapeContext(sink=ScrapeSink(), deadline=float("inf"))


@pytest.fixture
def make_management_client():
    def _make(routes, settings=None, status_overrides=None):
        transport = management_transport(routes, status_overrides)
        return management_client(settings or make_settings(), transport=transport), transport

    return _make


@pytest.fixture
def make_timeseries_client():
    def _make(handler, settings=None):
        return timeseries_client(settings or make_settings(), transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def fake_registry():
    return ExporterRegistry(
        [
            ("alpha", lambda settings: FakeExporter("alpha", count=3)),
            ("broken", lambda settings: FakeExporter("broken", count=0, error=RuntimeError("boom"))),
            ("gamma", lambda settings: FakeExporter("gamma", count=2)),
        ]
    )


@pytest_asyncio.fixture
async def client(fake_registry):
    """Async test client for an app running the fake exporters."""
    app = create_app(make_settings(rabbit_exporters="alpha,broken,gamma"), registry=fake_registry)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
