"""Tests for the exporter registry and startup selection."""

import inspect
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent))

from conftest import FakeExporter, make_settings
from core.errors import DuplicateExporterError, UnknownExporterError
from services.exporters.base import Exporter
from services.exporters.registry import BUILTIN_EXPORTERS, ExporterRegistry, default_registry


class TestExporterRegistry:
    def test_all_exporters_registered(self):
        registry = default_registry()

        for name in ("overview", "node", "queue", "exchange", "cpu", "aliveness"):
            assert name in registry

    def test_unique_names(self):
        names = [name for name, _ in BUILTIN_EXPORTERS]
        assert len(names) == len(set(names))

    def test_instances_carry_their_registered_name(self):
        settings = make_settings()
        registry = default_registry()

        exporters = registry.build_active(registry.names, settings)

        assert [exporter.name for exporter in exporters] == registry.names

    def test_collect_is_async(self):
        exporters = default_registry().build_active(default_registry().names, make_settings())

        for exporter in exporters:
            assert isinstance(exporter, Exporter)
            assert inspect.iscoroutinefunction(exporter.collect), (
                f"{exporter.name}.collect() must be async"
            )

    def test_duplicate_registration_is_rejected(self):
        registry = ExporterRegistry([("alpha", lambda settings: FakeExporter("alpha"))])

        with pytest.raises(DuplicateExporterError, match="alpha"):
            registry.register("alpha", lambda settings: FakeExporter("alpha"))

    def test_unknown_name_fails_without_skipping(self):
        registry = default_registry()

        with pytest.raises(UnknownExporterError) as exc_info:
            registry.build_active(["queue", "shovel"], make_settings())

        assert exc_info.value.unknown == ["shovel"]
        assert "queue" in exc_info.value.available

    def test_build_active_keeps_requested_order(self):
        registry = ExporterRegistry(
            [(name, lambda settings, name=name: FakeExporter(name)) for name in ("a", "b", "c")]
        )

        exporters = registry.build_active(["c", "a", "c"], make_settings())

        assert [exporter.name for exporter in exporters] == ["c", "a"]

    def test_empty_selection(self):
        assert default_registry().build_active([], make_settings()) == []
