"""busline - in-process publish/subscribe event bus."""

from busline.constants import VERSION as __version__
from busline.core.errors import (
    EventBusError,
    EventRejected,
    GroupError,
    HandlerError,
    InvalidArgument,
    NoSubscribers,
    StateManagementDisabled,
    WaitTimeout,
)
from busline.core.events import EventBus
from busline.core.manager import EventManager, GroupSubscription
from busline.core.models import (
    BusOptions,
    BusSnapshot,
    BusState,
    EventFilter,
    HistoryEntry,
    Priority,
    SubscribeConfig,
    WildcardEvent,
)
from busline.core.registry import Subscription

__all__ = [
    "__version__",
    # Bus
    "EventBus",
    "Subscription",
    "Priority",
    "EventFilter",
    "SubscribeConfig",
    "WildcardEvent",
    "HistoryEntry",
    "BusOptions",
    "BusSnapshot",
    "BusState",
    # Manager
    "EventManager",
    "GroupSubscription",
    # Errors
    "EventBusError",
    "InvalidArgument",
    "NoSubscribers",
    "HandlerError",
    "GroupError",
    "StateManagementDisabled",
    "WaitTimeout",
    "EventRejected",
]
