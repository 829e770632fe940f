"""busline utility modules."""

from busline.utils.bridge import (
    ChainLink,
    awaitable_to_events,
    create_event_chain,
    event_to_future,
    wait_for_all,
    wait_for_any,
)
from busline.utils.logging import EventLogger, configure_logging, read_event_log
from busline.utils.timing import debounce, throttle

__all__ = [
    # Timing
    "throttle",
    "debounce",
    # Bridges
    "ChainLink",
    "wait_for_all",
    "wait_for_any",
    "awaitable_to_events",
    "event_to_future",
    "create_event_chain",
    # Logging
    "EventLogger",
    "configure_logging",
    "read_event_log",
]
