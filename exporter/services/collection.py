"""Scrape orchestration: run every active exporter concurrently under one deadline.

Each exporter gets its own task. The scrape waits for all of them or for the
deadline, whichever comes first. Exporters still running at the deadline are
cancelled; what they pushed before that stays in the result, and anything
they push afterwards is discarded by the closed sink. A failing exporter is
recorded and logged, its siblings are unaffected.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from models.metrics import MetricDescriptor, MetricSample, gauge
from services.exporters.base import Exporter

logger = logging.getLogger(__name__)

collector_success = gauge(
    "rabbitmq_exporter_collector_success",
    "Whether the exporter completed successfully within the scrape deadline",
    "exporter",
)
collector_duration = gauge(
    "rabbitmq_exporter_collector_duration_seconds",
    "Time spent by the exporter during this scrape",
    "exporter",
)
SELF_DESCRIPTORS = [collector_success, collector_duration]


class ScrapeSink:
    """Append-only sample buffer for one scrape.

    All exporter tasks share one event loop, so appends never interleave.
    After ``close()`` every push is dropped.
    """

    def __init__(self, excluded_metrics: Iterable[str] = ()) -> None:
        self._samples: list[MetricSample] = []
        self._seen: set[tuple] = set()
        self._excluded = frozenset(excluded_metrics)
        self.closed = False
        self.discarded = 0

    def push(self, sample: MetricSample) -> bool:
        if self.closed:
            self.discarded += 1
            return False
        if sample.name in self._excluded:
            return False
        if sample.key in self._seen:
            logger.debug("Dropping duplicate sample %s %s", sample.name, sample.labels)
            return False
        self._seen.add(sample.key)
        self._samples.append(sample)
        return True

    def close(self) -> None:
        self.closed = True

    @property
    def samples(self) -> list[MetricSample]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)


@dataclass
class ScrapeContext:
    """Per-scrape handle given to exporters. Never kept after the scrape."""

    sink: ScrapeSink
    deadline: float  # event loop time

    def push(self, sample: MetricSample) -> bool:
        return self.sink.push(sample)

    def remaining(self) -> float:
        return max(0.0, self.deadline - asyncio.get_running_loop().time())

    @property
    def expired(self) -> bool:
        return self.sink.closed or self.remaining() <= 0


@dataclass
class ScrapeResult:
    samples: list[MetricSample] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    timed_out: list[str] = field(default_factory=list)
    durations: dict[str, float] = field(default_factory=dict)
    discarded: int = 0

    def succeeded(self, exporter_name: str) -> bool:
        return exporter_name not in self.failures and exporter_name not in self.timed_out

    def self_metrics(self) -> list[MetricSample]:
        samples = []
        for name, duration in self.durations.items():
            samples.append(collector_success.sample(float(self.succeeded(name)), name))
            samples.append(collector_duration.sample(duration, name))
        return samples


def _consume_outcome(task: asyncio.Task) -> None:
    # Abandoned tasks may finish or fail after the scrape returned.
    if not task.cancelled():
        task.exception()


async def _collect_one(
    exporter: Exporter, ctx: ScrapeContext, durations: dict[str, float]
) -> None:
    loop = asyncio.get_running_loop()
    started = loop.time()
    try:
        await exporter.collect(ctx)
    finally:
        durations[exporter.name] = loop.time() - started


async def run_scrape(
    exporters: Sequence[Exporter],
    timeout: float,
    excluded_metrics: Iterable[str] = (),
) -> ScrapeResult:
    """Run one scrape over ``exporters`` and return everything collected in time."""
    loop = asyncio.get_running_loop()
    sink = ScrapeSink(excluded_metrics)
    started = loop.time()
    ctx = ScrapeContext(sink=sink, deadline=started + timeout)
    durations: dict[str, float] = {}

    tasks = {
        asyncio.create_task(
            _collect_one(exporter, ctx, durations), name=f"collect-{exporter.name}"
        ): exporter
        for exporter in exporters
    }
    pending: set[asyncio.Task] = set()
    if tasks:
        _, pending = await asyncio.wait(tasks, timeout=timeout)
    sink.close()

    result = ScrapeResult()
    for task, exporter in tasks.items():
        task.add_done_callback(_consume_outcome)
        if task in pending:
            task.cancel()
            result.timed_out.append(exporter.name)
            result.durations[exporter.name] = loop.time() - started
            logger.warning(
                "Exporter %s did not finish within %.1fs, keeping partial results",
                exporter.name,
                timeout,
                extra={"exporter": exporter.name},
            )
            continue

        result.durations[exporter.name] = durations.get(exporter.name, 0.0)
        exc = task.exception()
        if exc is not None:
            result.failures[exporter.name] = f"{type(exc).__name__}: {exc}"
            logger.error(
                "Exporter %s failed: %s",
                exporter.name,
                exc,
                extra={"exporter": exporter.name},
            )

    result.samples = sink.samples
    result.discarded = sink.discarded
    logger.info(
        "Scrape finished: %d samples, %d failed, %d timed out, %d late samples discarded",
        len(result.samples),
        len(result.failures),
        len(result.timed_out),
        result.discarded,
        extra={"samples": len(result.samples), "duration": loop.time() - started},
    )
    return result


class Collector:
    """The active exporter set plus the per-scrape limits, as used by the HTTP layer."""

    def __init__(
        self,
        exporters: Sequence[Exporter],
        timeout: float,
        excluded_metrics: Iterable[str] = (),
    ) -> None:
        self.exporters = list(exporters)
        self.timeout = timeout
        self.excluded_metrics = frozenset(excluded_metrics)

    def describe(self) -> list[MetricDescriptor]:
        descriptors = []
        for exporter in self.exporters:
            descriptors.extend(exporter.describe())
        descriptors.extend(SELF_DESCRIPTORS)
        return descriptors

    async def scrape(self) -> ScrapeResult:
        result = await run_scrape(self.exporters, self.timeout, self.excluded_metrics)
        result.samples.extend(result.self_metrics())
        return result
