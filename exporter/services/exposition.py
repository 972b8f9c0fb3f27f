"""Render one scrape in the Prometheus text exposition format."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from models.metrics import MetricDescriptor, MetricSample

logger = logging.getLogger(__name__)

__all__ = ["CONTENT_TYPE_LATEST", "ScrapeSnapshot", "render"]


class ScrapeSnapshot:
    """prometheus_client collector serving the samples of a single scrape."""

    def __init__(
        self,
        descriptors: Iterable[MetricDescriptor],
        samples: Iterable[MetricSample],
    ) -> None:
        self._descriptors = {descriptor.name: descriptor for descriptor in descriptors}
        self._families: dict[str, list[MetricSample]] = {}
        for sample in samples:
            self._families.setdefault(sample.name, []).append(sample)

    def collect(self) -> Iterator[Metric]:
        for name, samples in self._families.items():
            descriptor = self._descriptors.get(name)
            if descriptor is None:
                first = samples[0]
                descriptor = MetricDescriptor(
                    name=name,
                    help=first.help or name,
                    label_names=tuple(first.labels),
                    kind=first.kind,
                )
            family_cls = CounterMetricFamily if descriptor.kind == "counter" else GaugeMetricFamily
            family = family_cls(name, descriptor.help, labels=list(descriptor.label_names))
            for sample in samples:
                if tuple(sample.labels) != descriptor.label_names:
                    logger.warning(
                        "Dropping %s sample with labels %s, expected %s",
                        name,
                        list(sample.labels),
                        list(descriptor.label_names),
                    )
                    continue
                family.add_metric(list(sample.labels.values()), sample.value)
            yield family


def render(descriptors: Iterable[MetricDescriptor], samples: Iterable[MetricSample]) -> bytes:
    registry = CollectorRegistry(auto_describe=False)
    registry.register(ScrapeSnapshot(descriptors, samples))
    return generate_latest(registry)
