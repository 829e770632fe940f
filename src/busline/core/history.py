"""Bounded, oldest-first log of emitted events."""

from __future__ import annotations

import time
from collections import deque
from typing import Any, Iterable, Iterator

from busline.constants import DEFAULT_MAX_HISTORY_SIZE
from busline.core.models import HistoryEntry


class EventHistory:
    """FIFO ring of :class:`HistoryEntry` with a fixed capacity.

    Appending past ``max_size`` evicts the oldest entry. Payloads are held
    by reference: mutating a payload after emitting it changes what the
    history reports.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_HISTORY_SIZE, entries: Iterable[HistoryEntry] = ()) -> None:
        if max_size < 1:
            raise ValueError("History size must be at least 1")
        self._entries: deque[HistoryEntry] = deque(entries, maxlen=max_size)

    @property
    def max_size(self) -> int:
        return self._entries.maxlen or DEFAULT_MAX_HISTORY_SIZE

    def record(self, event: str, data: Any = None, timestamp: float | None = None) -> HistoryEntry:
        entry = HistoryEntry(
            event=event,
            data=data,
            timestamp=time.time() if timestamp is None else timestamp,
        )
        self._entries.append(entry)
        return entry

    def entries(self) -> list[HistoryEntry]:
        """Return a new list, oldest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))
