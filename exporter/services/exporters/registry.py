"""Exporter registry: stable names mapped to exporter constructors.

Registration happens once, at startup, from the explicit ``BUILTIN_EXPORTERS``
list. Registering a name twice is a configuration error, and so is asking
for a name that was never registered.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from core.config import Settings
from core.errors import DuplicateExporterError, UnknownExporterError
from services.exporters.aliveness_exporter import AlivenessExporter
from services.exporters.base import Exporter
from services.exporters.cpu_exporter import CpuExporter
from services.exporters.exchange_exporter import ExchangeExporter
from services.exporters.node_exporter import NodeExporter
from services.exporters.overview_exporter import OverviewExporter
from services.exporters.queue_exporter import QueueExporter

logger = logging.getLogger(__name__)

ExporterFactory = Callable[[Settings], Exporter]

BUILTIN_EXPORTERS: list[tuple[str, ExporterFactory]] = [
    ("overview", OverviewExporter),
    ("node", NodeExporter),
    ("queue", QueueExporter),
    ("exchange", ExchangeExporter),
    ("cpu", CpuExporter),
    ("aliveness", AlivenessExporter),
]


class ExporterRegistry:
    def __init__(self, entries: Iterable[tuple[str, ExporterFactory]] = ()) -> None:
        self._factories: dict[str, ExporterFactory] = {}
        for name, factory in entries:
            self.register(name, factory)

    def register(self, name: str, factory: ExporterFactory) -> None:
        if name in self._factories:
            raise DuplicateExporterError(name)
        self._factories[name] = factory

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    @property
    def names(self) -> list[str]:
        return list(self._factories)

    def build_active(self, enabled_names: Iterable[str], settings: Settings) -> list[Exporter]:
        """Instantiate the requested exporters in the requested order."""
        enabled = list(dict.fromkeys(enabled_names))
        unknown = [name for name in enabled if name not in self._factories]
        if unknown:
            raise UnknownExporterError(unknown, self.names)

        exporters = []
        for name in enabled:
            exporters.append(self._factories[name](settings))
            logger.info("Enabled exporter %s", name)
        return exporters


def default_registry() -> ExporterRegistry:
    return ExporterRegistry(BUILTIN_EXPORTERS)
