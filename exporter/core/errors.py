"""Startup-fatal configuration errors."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Invalid configuration. Raised before the exporter serves any request."""


class UnknownExporterError(ConfigurationError):
    def __init__(self, unknown: list[str], available: list[str]) -> None:
        self.unknown = unknown
        self.available = available
        super().__init__(
            f"unknown exporter(s): {', '.join(unknown)} "
            f"(available: {', '.join(available) or 'none'})"
        )


class DuplicateExporterError(ConfigurationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"exporter {name!r} is already registered")
