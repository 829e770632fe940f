"""Bridges between bus events and asyncio awaitables.

Everything here is built on ``EventBus.once``/``emit`` and must be awaited
inside a running event loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel

from busline.core.errors import EventRejected, InvalidArgument, WaitTimeout
from busline.core.events import EventBus
from busline.core.registry import Subscription

T = TypeVar("T")


class ChainLink(BaseModel):
    """Re-emit ``trigger`` as ``emit``, optionally transforming the data."""

    trigger: str
    emit: str
    transform: Optional[Callable[[Any], Any]] = None


def _unsubscribe_all(subscriptions: list[Subscription]) -> None:
    for sub in subscriptions:
        sub.unsubscribe()


async def wait_for_all(bus: EventBus, event_names: list[str], timeout: float | None = None) -> dict[str, Any]:
    """Wait until every event in ``event_names`` has been emitted once.

    Returns:
        Mapping of event name to the data it was emitted with.

    Raises:
        WaitTimeout: ``timeout`` seconds passed first. Carries the events
            received so far and the ones still pending.
    """
    if not event_names:
        return {}

    done: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
    results: dict[str, Any] = {}
    pending = dict.fromkeys(event_names)
    subscriptions: list[Subscription] = []

    def make_handler(event_name: str) -> Callable[[Any], None]:
        def handler(data: Any) -> None:
            results[event_name] = data
            pending.pop(event_name, None)
            if not pending and not done.done():
                done.set_result(dict(results))

        return handler

    for event_name in pending:
        subscriptions.append(bus.once(event_name, make_handler(event_name)))

    try:
        async with asyncio.timeout(timeout):
            return await done
    except TimeoutError:
        raise WaitTimeout(
            "Timed out waiting for events",
            received=dict(results),
            pending=list(pending),
        ) from None
    finally:
        _unsubscribe_all(subscriptions)


async def wait_for_any(bus: EventBus, event_names: list[str], timeout: float | None = None) -> tuple[str, Any]:
    """Wait for whichever event in ``event_names`` is emitted first.

    Returns:
        ``(event_name, data)`` of the first event.

    Raises:
        InvalidArgument: ``event_names`` is empty.
        WaitTimeout: ``timeout`` seconds passed first.
    """
    if not event_names:
        raise InvalidArgument("Event name list must not be empty")

    done: asyncio.Future[tuple[str, Any]] = asyncio.get_running_loop().create_future()
    subscriptions: list[Subscription] = []

    def make_handler(event_name: str) -> Callable[[Any], None]:
        def handler(data: Any) -> None:
            if not done.done():
                done.set_result((event_name, data))

        return handler

    for event_name in dict.fromkeys(event_names):
        subscriptions.append(bus.once(event_name, make_handler(event_name)))

    try:
        async with asyncio.timeout(timeout):
            return await done
    except TimeoutError:
        raise WaitTimeout("Timed out waiting for events", pending=list(event_names)) from None
    finally:
        _unsubscribe_all(subscriptions)


async def awaitable_to_events(
    bus: EventBus,
    awaitable: Awaitable[T],
    success_event: str,
    error_event: str,
    metadata: dict[str, Any] | None = None,
) -> T:
    """Await ``awaitable`` and announce its progress on the bus.

    Emits ``<success_event>:start`` first, then ``success_event`` with the
    result or ``error_event`` with the exception. With ``metadata`` the
    payload is the metadata plus a ``result``/``error`` key.

    The awaitable's exception is re-raised after the error event.
    """
    bus.emit(f"{success_event}:start", metadata if metadata is not None else {})

    try:
        result = await awaitable
    except Exception as exc:
        bus.emit(error_event, {**metadata, "error": exc} if metadata is not None else exc)
        raise

    bus.emit(success_event, {**metadata, "result": result} if metadata is not None else result)
    return result


async def event_to_future(
    bus: EventBus,
    success_event: str,
    error_event: str | None = None,
    timeout: float | None = None,
) -> Any:
    """Wait for ``success_event`` and return its data.

    Raises:
        EventRejected: ``error_event`` arrived first with non-exception data.
        Exception: ``error_event`` arrived first carrying an exception; it is
            raised as is.
        WaitTimeout: ``timeout`` seconds passed first.
    """
    done: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    subscriptions: list[Subscription] = []

    def on_success(data: Any) -> None:
        if not done.done():
            done.set_result(data)

    def on_error(data: Any) -> None:
        if done.done():
            return
        if isinstance(data, BaseException):
            done.set_exception(data)
        else:
            done.set_exception(EventRejected(error_event, data))

    subscriptions.append(bus.once(success_event, on_success))
    if error_event:
        subscriptions.append(bus.once(error_event, on_error))

    try:
        async with asyncio.timeout(timeout):
            return await done
    except TimeoutError:
        raise WaitTimeout(f"Timed out waiting for event '{success_event}'", pending=[success_event]) from None
    finally:
        _unsubscribe_all(subscriptions)


def create_event_chain(bus: EventBus, chain: list[ChainLink]) -> list[Subscription]:
    """Subscribe one forwarding handler per link.

    The forwarder returns the downstream ``emit`` result, so the join future
    of the triggering emit also covers async handlers further down the chain.
    """
    subscriptions: list[Subscription] = []

    for link in chain:
        def forward(data: Any, link: ChainLink = link) -> Any:
            output = link.transform(data) if link.transform is not None else data
            return bus.emit(link.emit, output)

        subscriptions.append(bus.subscribe(link.trigger, forward))

    return subscriptions
