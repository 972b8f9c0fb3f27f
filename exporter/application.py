"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from core.config import Settings
from routes.metrics import router as metrics_router
from services.collection import Collector
from services.exporters.registry import ExporterRegistry, default_registry


def create_app(settings: Settings, registry: ExporterRegistry | None = None) -> FastAPI:
    """Build the app and its active exporter set.

    Unknown exporter names raise ``ConfigurationError`` here, before the app
    can serve anything.
    """
    registry = registry or default_registry()
    exporters = registry.build_active(settings.enabled_exporters, settings)

    app = FastAPI(title="RabbitMQ Exporter", version="0.1.0")
    app.state.settings = settings
    app.state.collector = Collector(
        exporters,
        timeout=settings.rabbit_timeout,
        excluded_metrics=settings.excluded_metrics,
    )
    app.include_router(metrics_router)
    return app
