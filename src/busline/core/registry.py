"""Subscriber registries for named events and wildcard listeners.

Both registries keep their records sorted by priority, ties in insertion
order. ``list.sort`` is stable, so re-sorting after each append is enough to
hold that invariant.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from operator import attrgetter
from typing import Any, Callable, Optional, Protocol

from busline.core.models import EventFilter, Priority

logger = logging.getLogger(__name__)

_by_priority = attrgetter("priority")


@dataclass(slots=True, eq=False)
class SubscriptionRecord:
    event_name: str
    handler: Callable[..., Any]
    priority: Priority = Priority.NORMAL
    once: bool = False
    active: bool = True
    fired: bool = False


@dataclass(slots=True, eq=False)
class WildcardRecord:
    handler: Callable[..., Any]
    priority: Priority = Priority.NORMAL
    once: bool = False
    filter: Optional[EventFilter] = None
    active: bool = True
    fired: bool = False

    def accepts(self, event_name: str, data: Any) -> bool:
        return self.filter is None or self.filter.matches(event_name, data)


class _Registry(Protocol):
    def discard(self, record: Any) -> bool: ...


class Subscription:
    """Token returned by every subscribe call.

    ``unsubscribe()`` removes exactly the record this token was issued for,
    even if the same handler is registered several times.
    """

    __slots__ = ("_record", "_registry")

    def __init__(self, record: SubscriptionRecord | WildcardRecord, registry: _Registry) -> None:
        self._record = record
        self._registry = registry

    @property
    def event_name(self) -> str | None:
        """Subscribed event name, ``None`` for wildcard subscriptions."""
        return getattr(self._record, "event_name", None)

    @property
    def handler(self) -> Callable[..., Any]:
        return self._record.handler

    @property
    def is_wildcard(self) -> bool:
        return isinstance(self._record, WildcardRecord)

    @property
    def active(self) -> bool:
        return self._record.active

    def unsubscribe(self) -> bool:
        """Remove the subscription. Returns False if it was already gone."""
        return self._registry.discard(self._record)

    def __repr__(self) -> str:
        target = "*" if self.is_wildcard else self.event_name
        state = "active" if self.active else "inactive"
        return f"<Subscription {target!r} {state}>"


def _same_handler(a: Callable[..., Any], b: Callable[..., Any]) -> bool:
    # Bound methods are recreated on every attribute access; compare by equality too.
    return a is b or a == b


class SubscriptionRegistry:
    """Maps event names to priority-sorted buckets of subscription records.

    A bucket is removed as soon as its last record goes, so ``names()``
    only reports events somebody listens to.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, list[SubscriptionRecord]] = {}

    def add(
        self,
        event_name: str,
        handler: Callable[..., Any],
        priority: Priority = Priority.NORMAL,
        once: bool = False,
    ) -> Subscription:
        record = SubscriptionRecord(event_name, handler, Priority(priority), once)
        bucket = self._buckets.setdefault(event_name, [])
        bucket.append(record)
        bucket.sort(key=_by_priority)
        logger.debug("Subscribed %r to '%s' (priority=%s, once=%s)", handler, event_name, record.priority.name, once)
        return Subscription(record, self)

    def discard(self, record: SubscriptionRecord) -> bool:
        """Remove one record by identity."""
        bucket = self._buckets.get(record.event_name)
        if not bucket:
            record.active = False
            return False
        for index, candidate in enumerate(bucket):
            if candidate is record:
                del bucket[index]
                record.active = False
                if not bucket:
                    del self._buckets[record.event_name]
                return True
        record.active = False
        return False

    def remove(self, event_name: str, handler: Callable[..., Any] | None = None) -> int:
        """Remove the whole bucket, or the first record bound to ``handler``.

        Returns the number of records removed.
        """
        bucket = self._buckets.get(event_name)
        if bucket is None:
            return 0

        if handler is None:
            del self._buckets[event_name]
            for record in bucket:
                record.active = False
            return len(bucket)

        for record in bucket:
            if _same_handler(record.handler, handler):
                return int(self.discard(record))

        return 0

    def records(self, event_name: str) -> list[SubscriptionRecord]:
        """Return a copy of the bucket for ``event_name``."""
        return list(self._buckets.get(event_name, ()))

    def ensure_bucket(self, event_name: str) -> None:
        self._buckets.setdefault(event_name, [])

    def drop_if_empty(self, event_name: str) -> None:
        if event_name in self._buckets and not self._buckets[event_name]:
            del self._buckets[event_name]

    def count(self, event_name: str) -> int:
        return len(self._buckets.get(event_name, ()))

    def total(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def names(self) -> list[str]:
        return list(self._buckets)

    def counts(self) -> dict[str, int]:
        return {name: len(bucket) for name, bucket in self._buckets.items()}

    def clear(self) -> None:
        for bucket in self._buckets.values():
            for record in bucket:
                record.active = False
        self._buckets.clear()

    def __contains__(self, event_name: object) -> bool:
        return event_name in self._buckets

    def __len__(self) -> int:
        return len(self._buckets)


class WildcardRegistry:
    """Priority-sorted list of listeners that see every event."""

    def __init__(self) -> None:
        self._records: list[WildcardRecord] = []

    def add(
        self,
        handler: Callable[..., Any],
        priority: Priority = Priority.NORMAL,
        filter: EventFilter | None = None,
        once: bool = False,
    ) -> Subscription:
        record = WildcardRecord(handler, Priority(priority), once, filter)
        self._records.append(record)
        self._records.sort(key=_by_priority)
        logger.debug("Subscribed %r to all events (priority=%s)", handler, record.priority.name)
        return Subscription(record, self)

    def discard(self, record: WildcardRecord) -> bool:
        for index, candidate in enumerate(self._records):
            if candidate is record:
                del self._records[index]
                record.active = False
                return True
        record.active = False
        return False

    def remove(self, handler: Callable[..., Any]) -> int:
        """Remove the first record bound to ``handler``."""
        for record in self._records:
            if _same_handler(record.handler, handler):
                return int(self.discard(record))
        return 0

    def records(self) -> list[WildcardRecord]:
        """Return a copy of the records in execution order."""
        return list(self._records)

    def clear(self) -> None:
        for record in self._records:
            record.active = False
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)
