"""Pydantic models for metric families and the samples emitted per scrape."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MetricKind = Literal["gauge", "counter"]


class MetricSample(BaseModel):
    """One labelled value of a metric family for one scrape."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: MetricKind = "gauge"
    labels: dict[str, str] = Field(default_factory=dict)  # ordered as declared
    value: float
    help: str | None = None

    @property
    def key(self) -> tuple[str, tuple[tuple[str, str], ...]]:
        """Identity of the sample within a scrape: name plus label set."""
        return self.name, tuple(self.labels.items())


class MetricDescriptor(BaseModel):
    """Declared shape of a metric family, created once and reused every scrape."""

    model_config = ConfigDict(frozen=True)

    name: str
    help: str
    label_names: tuple[str, ...] = ()
    kind: MetricKind = "gauge"

    def sample(self, value: float, *label_values: object) -> MetricSample:
        """Build a sample carrying exactly the declared labels, in order."""
        if len(label_values) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values "
                f"{list(self.label_names)}, got {len(label_values)}"
            )
        labels = {
            name: "" if raw is None else str(raw)
            for name, raw in zip(self.label_names, label_values)
        }
        return MetricSample(
            name=self.name,
            kind=self.kind,
            labels=labels,
            value=value,
            help=self.help,
        )


def gauge(name: str, help: str, *label_names: str) -> MetricDescriptor:
    return MetricDescriptor(name=name, help=help, label_names=label_names, kind="gauge")


def counter(name: str, help: str, *label_names: str) -> MetricDescriptor:
    return MetricDescriptor(name=name, help=help, label_names=label_names, kind="counter")
