"""Tests for the cluster overview exporter."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent))

from conftest import make_overview, make_settings
from services.exporters.overview_exporter import OverviewExporter
from services.upstream import DecodeError, StatusError


def _by_name(samples):
    return {sample.name: sample for sample in samples}


class TestOverviewExporter:
    @pytest.mark.asyncio
    async def test_pushes_totals(self, make_management_client, scrape_context):
        client, _ = make_management_client({"/api/overview": make_overview()})

        await OverviewExporter(make_settings(), client).collect(scrape_context)

        samples = _by_name(scrape_context.sink.samples)
        assert samples["rabbitmq_queues"].value == 5.0
        assert samples["rabbitmq_queues"].labels == {"cluster": "rabbit@cluster"}
        assert samples["rabbitmq_queue_messages_global"].value == 12.0
        assert samples["rabbitmq_messages_published_total"].kind == "counter"
        assert samples["rabbitmq_messages_published_total"].value == 100.0

    @pytest.mark.asyncio
    async def test_version_info(self, make_management_client, scrape_context):
        client, _ = make_management_client({"/api/overview": make_overview()})

        await OverviewExporter(make_settings(), client).collect(scrape_context)

        info = _by_name(scrape_context.sink.samples)["rabbitmq_version_info"]
        assert info.value == 1.0
        assert info.labels == {
            "cluster": "rabbit@cluster",
            "node": "rabbit@node1",
            "rabbitmq": "3.12.4",
            "erlang": "26.0.2",
        }

    @pytest.mark.asyncio
    async def test_missing_sections_emit_nothing(self, make_management_client, scrape_context):
        overview = make_overview()
        del overview["message_stats"]
        client, _ = make_management_client({"/api/overview": overview})

        await OverviewExporter(make_settings(), client).collect(scrape_context)

        names = {sample.name for sample in scrape_context.sink.samples}
        assert "rabbitmq_messages_published_total" not in names
        assert "rabbitmq_channels" in names

    @pytest.mark.asyncio
    async def test_unparseable_value_is_skipped_alone(self, make_management_client, scrape_context):
        overview = make_overview(object_totals={"channels": "lots", "connections": "2"})
        client, _ = make_management_client({"/api/overview": overview})

        await OverviewExporter(make_settings(), client).collect(scrape_context)

        samples = _by_name(scrape_context.sink.samples)
        assert "rabbitmq_channels" not in samples
        assert samples["rabbitmq_connections"].value == 2.0

    @pytest.mark.asyncio
    async def test_status_error_propagates(self, make_management_client, scrape_context):
        client, _ = make_management_client({}, status_overrides={"/api/overview": 401})

        with pytest.raises(StatusError):
            await OverviewExporter(make_settings(), client).collect(scrape_context)
        assert scrape_context.sink.samples == []

    @pytest.mark.asyncio
    async def test_non_object_body_is_decode_error(self, make_management_client, scrape_context):
        client, _ = make_management_client({"/api/overview": ["not", "an", "object"]})

        with pytest.raises(DecodeError):
            await OverviewExporter(make_settings(), client).collect(scrape_context)

    def test_describe(self):
        names = [descriptor.name for descriptor in OverviewExporter(make_settings()).describe()]
        assert "rabbitmq_version_info" in names
        assert len(names) == len(set(names))
