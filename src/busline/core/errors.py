"""Error types for the event bus and the layers built on top of it."""

from __future__ import annotations

from typing import Any, Callable


class EventBusError(Exception):
    """Base error for event bus operations."""


class InvalidArgument(EventBusError, ValueError):
    """Malformed event name or non-callable handler."""


class NoSubscribers(EventBusError):
    """Emit rejected because nothing listens and empty events are disallowed."""

    def __init__(self, event_name: str):
        self.event_name = event_name
        super().__init__(f"No subscribers for event '{event_name}'")


class HandlerError(EventBusError):
    """A handler could not be run to completion by the bus itself."""

    def __init__(self, event_name: str, handler: Callable[..., Any], message: str):
        self.event_name = event_name
        self.handler = handler
        handler_name = getattr(handler, "__qualname__", repr(handler))
        super().__init__(f"Handler '{handler_name}' for event '{event_name}': {message}")


class GroupError(EventBusError):
    """Unknown or duplicate event group."""


class StateManagementDisabled(EventBusError):
    """State operations used on a manager created without state management."""

    def __init__(self) -> None:
        super().__init__("State management is not enabled on this EventManager")


class WaitTimeout(EventBusError):
    """Timed out waiting for events.

    ``received`` maps the events that did arrive to their data, ``pending``
    lists the names still outstanding.
    """

    def __init__(
        self,
        message: str,
        received: dict[str, Any] | None = None,
        pending: list[str] | None = None,
    ):
        self.received = received or {}
        self.pending = pending or []
        super().__init__(message)


class EventRejected(EventBusError):
    """An error event arrived while waiting for a success event."""

    def __init__(self, event_name: str, data: Any):
        self.event_name = event_name
        self.data = data
        super().__init__(f"Received error event '{event_name}': {data!r}")
