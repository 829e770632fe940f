"""Rate-limiting wrappers for event handlers.

Delays are in seconds. Deferred calls are scheduled with
``loop.call_later`` on the running asyncio loop.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from functools import wraps
from typing import Any, Callable

Handler = Callable[[Any], Any]


def _call(handler: Handler, data: Any) -> Any:
    result = handler(data)
    if inspect.isawaitable(result):
        # Deferred calls have no caller to await them
        return asyncio.ensure_future(result)
    return result


def throttle(handler: Handler, delay: float) -> Handler:
    """Invoke ``handler`` at most once per ``delay`` seconds.

    A call inside the window schedules one trailing call for when the window
    ends, using the data of the first suppressed call. Further calls in the
    same window return the last result. Without a running event loop the
    trailing call is dropped.
    """
    last_call = float("-inf")
    timer: asyncio.TimerHandle | None = None
    last_result: Any = None

    def fire(data: Any) -> None:
        nonlocal last_call, timer, last_result
        last_call = time.monotonic()
        timer = None
        last_result = _call(handler, data)

    @wraps(handler)
    def wrapper(data: Any) -> Any:
        nonlocal last_call, timer, last_result
        now = time.monotonic()
        remaining = delay - (now - last_call)

        if remaining <= 0:
            if timer is not None:
                timer.cancel()
                timer = None
            last_call = now
            last_result = handler(data)
            return last_result

        if timer is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return last_result
            timer = loop.call_later(remaining, fire, data)

        return last_result

    return wrapper


def debounce(handler: Handler, delay: float, immediate: bool = False) -> Handler:
    """Invoke ``handler`` only after ``delay`` seconds without another call.

    With ``immediate`` the first call of a burst runs right away and the
    trailing call is skipped. Requires a running event loop.

    Raises:
        RuntimeError: Called outside a running event loop.
    """
    timer: asyncio.TimerHandle | None = None
    last_result: Any = None

    def fire(data: Any) -> None:
        nonlocal timer, last_result
        timer = None
        if not immediate:
            last_result = _call(handler, data)

    @wraps(handler)
    def wrapper(data: Any) -> Any:
        nonlocal timer, last_result
        loop = asyncio.get_running_loop()
        call_now = immediate and timer is None

        if timer is not None:
            timer.cancel()
        timer = loop.call_later(delay, fire, data)

        if call_now:
            last_result = handler(data)

        return last_result

    return wrapper
