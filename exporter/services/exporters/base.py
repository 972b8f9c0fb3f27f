"""Exporter protocol and helpers shared by the management API exporters."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol, runtime_checkable

from core.config import Capability, Settings
from models.metrics import MetricDescriptor
from services.coercion import CoercionError, get_float
from services.upstream import DecodeError, UpstreamClient

if TYPE_CHECKING:
    from services.collection import ScrapeContext

logger = logging.getLogger(__name__)

_MISSING = object()


@runtime_checkable
class Exporter(Protocol):
    name: str

    def describe(self) -> list[MetricDescriptor]: ...

    async def collect(self, ctx: ScrapeContext) -> None: ...


class ClusterIdentity(NamedTuple):
    cluster: str
    node: str  # node the management API answered from


# (dotted key in the upstream object, descriptor)
ValueTable = Sequence[tuple[str, MetricDescriptor]]


def lookup(data: Any, path: str) -> Any:
    """Follow a dotted key path through nested dicts, ``_MISSING`` if absent."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def expect_list(body: Any, what: str) -> list[dict[str, Any]]:
    if body is None:
        return []
    if not isinstance(body, list):
        raise DecodeError(f"expected a list of {what}, got {type(body).__name__}")
    return [item for item in body if isinstance(item, dict)]


def expect_object(body: Any, what: str) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise DecodeError(f"expected an object for {what}, got {type(body).__name__}")
    return body


async def fetch_cluster_identity(client: UpstreamClient) -> ClusterIdentity:
    overview = expect_object(await client.get("/api/overview"), "overview")
    return ClusterIdentity(
        cluster=str(overview.get("cluster_name") or ""),
        node=str(overview.get("node") or ""),
    )


def push_values(
    ctx: ScrapeContext,
    source: dict[str, Any],
    table: ValueTable,
    labels: Sequence[object],
) -> int:
    """Push one sample per table entry present in ``source``.

    Missing keys emit nothing; values that fail coercion are skipped one by
    one. Returns the number of samples pushed.
    """
    pushed = 0
    for path, descriptor in table:
        raw = lookup(source, path)
        if raw is _MISSING:
            continue
        try:
            value = get_float(raw)
        except CoercionError as exc:
            logger.debug("Skipping %s: %s", descriptor.name, exc)
            continue
        if ctx.push(descriptor.sample(value, *labels)):
            pushed += 1
    return pushed


def ordered(entities: Iterable[dict[str, Any]], settings: Settings) -> list[dict[str, Any]]:
    """Sort entities by (vhost, name) unless the ``no_sort`` capability is set."""
    entities = list(entities)
    if settings.has_capability(Capability.NO_SORT):
        return entities
    return sorted(
        entities,
        key=lambda entity: (str(entity.get("vhost", "")), str(entity.get("name", ""))),
    )


def descriptors(table: ValueTable, *extra: MetricDescriptor) -> list[MetricDescriptor]:
    return [descriptor for _, descriptor in table] + list(extra)
