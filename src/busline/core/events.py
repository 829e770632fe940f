"""In-process publish/subscribe event bus.

Handlers subscribe to a named event or to every event (wildcard, optionally
filtered). ``emit`` runs the matching handlers synchronously in priority
order, named handlers before wildcard handlers, and records each emit in a
bounded history.

Handlers that return an awaitable are scheduled on the running event loop in
the order they were invoked. With ``async_event_handling`` enabled, ``emit``
returns one future joining all of them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from busline.core.errors import HandlerError, InvalidArgument, NoSubscribers
from busline.core.history import EventHistory
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
from busline.core.registry import (
    Subscription,
    SubscriptionRegistry,
    SubscriptionRecord,
    WildcardRecord,
    WildcardRegistry,
)

if TYPE_CHECKING:
    from busline.core.config import BuslineConfig

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[None, Awaitable[Any]]]


def validate_event_name(event_name: Any) -> None:
    """Raise InvalidArgument unless ``event_name`` is a non-blank string."""
    if not isinstance(event_name, str) or not event_name.strip():
        raise InvalidArgument("Event name must be a non-empty string")


def validate_handler(handler: Any) -> None:
    if not callable(handler):
        raise InvalidArgument(f"Handler must be callable, got {type(handler).__name__}")


def validate_priority(priority: Any) -> Priority:
    """Return ``priority`` as a Priority, or raise InvalidArgument."""
    try:
        return Priority(priority)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid priority: {priority!r}") from None


def log_handler_error(error: BaseException, event_name: str) -> None:
    """Default ``on_error``: log the failure with its traceback."""
    logger.error("Error in event handler for '%s': %s", event_name, error, exc_info=error)


class EventBus:
    """Publish/subscribe dispatcher.

    Every instance owns its own registries and history; there is no shared
    global bus. Not thread-safe: one caller subscribes and emits at a time.

    Example:
        bus = EventBus(max_history_size=100)
        sub = bus.subscribe("order.created", handle_order, Priority.HIGH)
        bus.subscribe_to_all(audit, filter=EventFilter(event=lambda n: n.startswith("order.")))
        bus.emit("order.created", {"id": 1})
        sub.unsubscribe()
    """

    def __init__(self, options: BusOptions | None = None, **overrides: Any) -> None:
        """Initialize the bus.

        Args:
            options: Full option set. Defaults to ``BusOptions()``.
            **overrides: Individual option fields applied on top of ``options``.
        """
        if options is None:
            options = BusOptions(**overrides)
        elif overrides:
            fields = options.model_dump()
            fields["on_error"] = options.on_error
            fields.update(overrides)
            options = BusOptions(**fields)

        self._options = options
        self._named = SubscriptionRegistry()
        self._wildcards = WildcardRegistry()
        self._history = EventHistory(options.max_history_size)
        self._detached: set[asyncio.Future] = set()

    @classmethod
    def from_config(
        cls,
        config: BuslineConfig,
        on_error: Callable[[BaseException, str], Any] | None = None,
    ) -> EventBus:
        """Build a bus from the ``[bus]`` section of a loaded config."""
        return cls(BusOptions(**config.bus.model_dump(), on_error=on_error))

    @property
    def options(self) -> BusOptions:
        return self._options

    # ------------------------------------------------------------------
    # Subscribing
    # ------------------------------------------------------------------
    def subscribe(self, event_name: str, handler: Handler, priority: Priority = Priority.NORMAL) -> Subscription:
        """Subscribe ``handler`` to ``event_name``.

        Raises:
            InvalidArgument: Blank event name, non-callable handler or unknown
                priority.
        """
        validate_event_name(event_name)
        validate_handler(handler)
        return self._named.add(event_name, handler, validate_priority(priority))

    def once(self, event_name: str, handler: Handler, priority: Priority = Priority.NORMAL) -> Subscription:
        """Like :meth:`subscribe`, but removed after its first invocation."""
        validate_event_name(event_name)
        validate_handler(handler)
        return self._named.add(event_name, handler, validate_priority(priority), once=True)

    def subscribe_to_all(
        self,
        handler: Callable[[WildcardEvent], Any],
        config: SubscribeConfig | None = None,
        *,
        priority: Priority | None = None,
        filter: EventFilter | None = None,
        once: bool = False,
    ) -> Subscription:
        """Subscribe ``handler`` to every emitted event.

        The handler receives a :class:`WildcardEvent`. Pass either a
        ``SubscribeConfig`` or the equivalent keyword arguments.
        """
        validate_handler(handler)
        if config is None:
            config = SubscribeConfig(
                priority=Priority.NORMAL if priority is None else validate_priority(priority),
                filter=filter,
                once=once,
            )
        elif priority is not None or filter is not None or once:
            raise InvalidArgument("Pass either a SubscribeConfig or keyword options, not both")
        return self._wildcards.add(handler, config.priority, config.filter, config.once)

    def unsubscribe(self, event_name: str, handler: Handler | None = None) -> None:
        """Remove every subscriber of ``event_name``, or the first one bound to ``handler``.

        Prefer ``Subscription.unsubscribe()``; this is the lookup-by-handler path.
        """
        validate_event_name(event_name)
        removed = self._named.remove(event_name, handler)
        if removed:
            logger.debug("Unsubscribed %d handler(s) from '%s'", removed, event_name)

    def unsubscribe_from_all(self, handler: Callable[..., Any]) -> None:
        """Remove the first wildcard subscription bound to ``handler``."""
        self._wildcards.remove(handler)

    def cancel(self, subscription: Subscription) -> bool:
        """Remove the subscription behind a token. Returns False if already gone."""
        return subscription.unsubscribe()

    # ------------------------------------------------------------------
    # Emitting
    # ------------------------------------------------------------------
    def emit(self, event_name: str, data: Any = None) -> asyncio.Future | None:
        """Emit an event to all matching subscribers.

        The emit is recorded in history before any handler runs. Named
        handlers run first, then wildcard handlers whose filters accept the
        event. Subscriptions changed by a handler take effect on the next
        emit, never on the one in progress.

        Returns:
            A future joining every awaitable the handlers returned, when
            ``async_event_handling`` is on and there was at least one.
            It fails with the first failure among them. Otherwise None.

        Raises:
            InvalidArgument: Blank event name.
            NoSubscribers: Nothing matched and ``allow_empty_events`` is off.
            Exception: Whatever a handler raised, when ``catch_errors`` is off.
        """
        validate_event_name(event_name)
        self._history.record(event_name, data)

        named = self._named.records(event_name)
        wildcards = self._matching_wildcards(event_name, data)

        if not named and not wildcards:
            if not self._options.allow_empty_events:
                raise NoSubscribers(event_name)
            self._named.drop_if_empty(event_name)
            return None

        pending: list[asyncio.Future] = []
        invoked: list[SubscriptionRecord | WildcardRecord] = []
        completed = False
        try:
            for record in named:
                if self._claim(record):
                    invoked.append(record)
                    self._invoke(record.handler, data, event_name, pending)

            if wildcards:
                envelope = WildcardEvent(event=event_name, data=data)
                for record in wildcards:
                    if self._claim(record):
                        invoked.append(record)
                        self._invoke(record.handler, envelope, event_name, pending)
            completed = True
        finally:
            self._prune_once(invoked)
            self._named.drop_if_empty(event_name)
            if not completed:
                # Aborted pass: nobody will await the join, report failures instead.
                for future in pending:
                    self._detach(future, event_name)

        if pending:
            return asyncio.gather(*pending)
        return None

    def _matching_wildcards(self, event_name: str, data: Any) -> list[WildcardRecord]:
        matched = []
        for record in self._wildcards.records():
            try:
                accepted = record.accepts(event_name, data)
            except Exception as exc:
                if not self._options.catch_errors:
                    raise
                self._report(exc, event_name)
                continue
            if accepted:
                matched.append(record)
        return matched

    @staticmethod
    def _claim(record: SubscriptionRecord | WildcardRecord) -> bool:
        # A nested emit of the same event may already have used up a once-record.
        if record.once:
            if record.fired:
                return False
            record.fired = True
        return True

    def _invoke(self, handler: Callable[..., Any], argument: Any, event_name: str, pending: list[asyncio.Future]) -> None:
        try:
            result = handler(argument)
            if inspect.isawaitable(result):
                future = self._schedule(result, handler, event_name)
                if self._options.async_event_handling:
                    pending.append(future)
                else:
                    self._detach(future, event_name)
        except Exception as exc:
            if not self._options.catch_errors:
                raise
            self._report(exc, event_name)

    def _schedule(self, awaitable: Awaitable[Any], handler: Callable[..., Any], event_name: str) -> asyncio.Future:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise HandlerError(event_name, handler, "returned an awaitable but no event loop is running") from None
        return asyncio.ensure_future(awaitable, loop=loop)

    def _detach(self, future: asyncio.Future, event_name: str) -> None:
        self._detached.add(future)
        future.add_done_callback(partial(self._on_detached_done, event_name))

    def _on_detached_done(self, event_name: str, future: asyncio.Future) -> None:
        self._detached.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._report(error, event_name)

    def _report(self, error: BaseException, event_name: str) -> None:
        on_error = self._options.on_error or log_handler_error
        on_error(error, event_name)

    def _prune_once(self, invoked: list[SubscriptionRecord | WildcardRecord]) -> None:
        for record in invoked:
            if not record.once:
                continue
            if isinstance(record, WildcardRecord):
                self._wildcards.discard(record)
            else:
                self._named.discard(record)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def listener_count(self, event_name: str) -> int:
        """Number of named subscribers for ``event_name``."""
        validate_event_name(event_name)
        return self._named.count(event_name)

    def event_names(self) -> list[str]:
        return self._named.names()

    def wildcard_listener_count(self) -> int:
        return len(self._wildcards)

    def has_listeners(self, event_name: str) -> bool:
        """True if ``event_name`` has named subscribers or any wildcard exists."""
        validate_event_name(event_name)
        return self._named.count(event_name) > 0 or len(self._wildcards) > 0

    def has_any_listeners(self) -> bool:
        return len(self._named) > 0 or len(self._wildcards) > 0

    def clear(self) -> None:
        """Drop every subscription, named and wildcard. History is kept."""
        self._named.clear()
        self._wildcards.clear()

    def get_history(self) -> list[HistoryEntry]:
        return self._history.entries()

    def clear_history(self) -> None:
        self._history.clear()

    def get_state(self) -> BusState:
        return BusState(
            event_count=len(self._named),
            total_listeners=self._named.total(),
            history_size=len(self._history),
            options=self._options.model_copy(),
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def get_snapshot(self) -> BusSnapshot:
        """Capture event names, listener counts, history and options.

        Handlers themselves are not captured; a restored bus knows which
        events existed but has nobody listening to them.
        """
        counts = {name: count for name, count in self._named.counts().items() if count > 0}
        return BusSnapshot(
            event_names=list(counts),
            listener_counts=counts,
            wildcard_listener_count=len(self._wildcards),
            history=self._history.entries(),
            options=self._options.model_copy(),
        )

    def restore_from_snapshot(self, snapshot: BusSnapshot | dict[str, Any]) -> None:
        """Reset this bus to the shape captured in ``snapshot``.

        All current subscriptions are dropped. Options and history are
        installed as captured, and an empty bucket is created for every event
        that had listeners.
        """
        if not isinstance(snapshot, BusSnapshot):
            snapshot = BusSnapshot.model_validate(snapshot)

        self.clear()
        self._options = snapshot.options.model_copy()
        self._history = EventHistory(self._options.max_history_size, snapshot.history)
        for event_name, count in snapshot.listener_counts.items():
            if count > 0:
                self._named.ensure_bucket(event_name)

        logger.info(
            "Restored snapshot: %d event names, %d history entries",
            len(self._named),
            len(self._history),
        )

    def __repr__(self) -> str:
        return (
            f"<EventBus events={len(self._named)} "
            f"wildcards={len(self._wildcards)} history={len(self._history)}>"
        )
