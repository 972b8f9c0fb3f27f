"""Include/exclude filtering of broker entities (queues, exchanges, vhosts).

An entity is reported iff its name does not match the exclude pattern and
does match the include pattern. Patterns are compiled once and searched
unanchored, like the management UI filters.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

MATCH_ALL = ".*"
MATCH_NOTHING = "^$"


class EntityClass(str, Enum):
    EXCHANGE = "exchange"
    QUEUE = "queue"
    VHOST = "vhost"


@dataclass(frozen=True)
class FilterRule:
    include: re.Pattern = field(default_factory=lambda: re.compile(MATCH_ALL))
    exclude: re.Pattern = field(default_factory=lambda: re.compile(MATCH_NOTHING))

    @classmethod
    def from_strings(cls, include: str = MATCH_ALL, exclude: str = MATCH_NOTHING) -> FilterRule:
        return cls(include=re.compile(include), exclude=re.compile(exclude))

    def matches(self, name: str) -> bool:
        if self.exclude.search(name):
            return False
        return self.include.search(name) is not None


def entity_name(entity: dict[str, Any]) -> str:
    return str(entity.get("name", ""))


def entity_vhost(entity: dict[str, Any]) -> str:
    return str(entity.get("vhost", ""))


class EntityFilter:
    """Per-class filter rules plus an optional cap on accepted entities per fetch."""

    def __init__(
        self,
        rules: dict[EntityClass, FilterRule] | None = None,
        caps: dict[EntityClass, int] | None = None,
    ) -> None:
        self._rules = {cls: FilterRule() for cls in EntityClass}
        self._rules.update(rules or {})
        self._caps = dict(caps or {})

    @classmethod
    def from_settings(cls, settings: Settings) -> EntityFilter:
        return cls(
            rules={
                EntityClass.EXCHANGE: FilterRule.from_strings(
                    settings.include_exchanges, settings.skip_exchanges
                ),
                EntityClass.QUEUE: FilterRule.from_strings(
                    settings.include_queues, settings.skip_queues
                ),
                EntityClass.VHOST: FilterRule.from_strings(
                    settings.include_vhost, settings.skip_vhost
                ),
            },
            caps={EntityClass.QUEUE: settings.max_queues},
        )

    def should_report(self, entity_class: EntityClass, name: str) -> bool:
        return self._rules[entity_class].matches(name)

    def cap(self, entity_class: EntityClass) -> int:
        """Maximum accepted entities per fetch, 0 for unlimited."""
        return self._caps.get(entity_class, 0)

    def select(
        self,
        entity_class: EntityClass,
        entities: Iterable[T],
        name: Callable[[T], str] = entity_name,
        vhost: Callable[[T], str | None] | None = None,
    ) -> Iterator[T]:
        """Yield the entities of one fetch that should be reported.

        When ``vhost`` is given, the entity's virtual host must pass the vhost
        rule too. Once the class cap is reached the remaining candidates are
        not evaluated at all.
        """
        limit = self.cap(entity_class)
        accepted = 0
        for entity in entities:
            if vhost is not None and not self.should_report(
                EntityClass.VHOST, vhost(entity) or ""
            ):
                continue
            if not self.should_report(entity_class, name(entity) or ""):
                continue
            accepted += 1
            yield entity
            if limit and accepted >= limit:
                logger.debug(
                    "Reached the limit of %d %s entities, ignoring the rest",
                    limit,
                    entity_class.value,
                )
                return
