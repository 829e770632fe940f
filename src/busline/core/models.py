"""
busline - Core Data Models

Pydantic v2 models shared by the bus, its snapshot codec and the layers
built on top of it. Handler payloads are typed ``Any`` and are stored as
given, never copied or validated.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from busline.constants import DEFAULT_MAX_HISTORY_SIZE


class Priority(IntEnum):
    """Handler execution priority. Lower values run earlier."""

    CRITICAL = 0
    HIGH = 1
    NORMAL = 2
    LOW = 3


class HistoryEntry(BaseModel):
    """One recorded emit attempt."""

    event: str
    data: Any = None
    timestamp: float

    model_config = {"frozen": True}


class EventFilter(BaseModel):
    """Predicates gating a wildcard subscription or a history query.

    During emit only ``event`` and ``data`` are consulted, in that order.
    ``timestamp`` applies to history queries.
    """

    event: Optional[Callable[[str], bool]] = None
    data: Optional[Callable[[str, Any], bool]] = None
    timestamp: Optional[Callable[[float], bool]] = None

    def matches(self, event_name: str, data: Any) -> bool:
        if self.event is not None and not self.event(event_name):
            return False
        if self.data is not None and not self.data(event_name, data):
            return False
        return True

    def matches_entry(self, entry: HistoryEntry) -> bool:
        if not self.matches(entry.event, entry.data):
            return False
        if self.timestamp is not None and not self.timestamp(entry.timestamp):
            return False
        return True


class SubscribeConfig(BaseModel):
    """Options for a wildcard subscription."""

    priority: Priority = Priority.NORMAL
    filter: Optional[EventFilter] = None
    once: bool = False


class WildcardEvent(BaseModel):
    """Argument passed to wildcard handlers."""

    event: str
    data: Any = None

    model_config = {"frozen": True}


class BusOptions(BaseModel):
    """Behavioral switches of an EventBus."""

    async_event_handling: bool = True
    catch_errors: bool = True
    on_error: Optional[Callable[[BaseException, str], Any]] = Field(default=None, exclude=True)
    allow_empty_events: bool = True
    max_history_size: int = Field(default=DEFAULT_MAX_HISTORY_SIZE, ge=1)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "async_event_handling": True,
                    "catch_errors": True,
                    "allow_empty_events": True,
                    "max_history_size": 1000,
                },
                {"catch_errors": False, "allow_empty_events": False},
            ]
        }
    }


class BusSnapshot(BaseModel):
    """Serializable shape of a bus. Live handlers are not part of it."""

    event_names: list[str] = Field(default_factory=list)
    listener_counts: dict[str, int] = Field(default_factory=dict)
    wildcard_listener_count: int = Field(default=0, ge=0)
    history: list[HistoryEntry] = Field(default_factory=list)
    options: BusOptions = Field(default_factory=BusOptions)


class BusState(BaseModel):
    """Summary counters returned by ``EventBus.get_state``."""

    event_count: int
    total_listeners: int
    history_size: int
    options: BusOptions
