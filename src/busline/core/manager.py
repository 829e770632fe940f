"""Event groups and keyed state on top of an EventBus.

The manager only uses the bus's public API (``subscribe``, ``once``,
``emit`` and the returned subscription tokens). It adds:

- named groups of events that can be subscribed to as one unit
- its own bounded history, queryable with every EventFilter predicate
- an optional key/value store that notifies listeners on change

Lifecycle notifications are emitted on the bus under the reserved names in
:mod:`busline.constants` (``@group:created``, ``@state:change``, ...).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from busline.constants import (
    DEFAULT_MAX_HISTORY_SIZE,
    GROUP_CREATED,
    GROUP_DELETED,
    GROUP_UPDATED,
    MANAGER_RESET,
    STATE_CHANGE,
)
from busline.core.errors import GroupError, NoSubscribers, StateManagementDisabled
from busline.core.events import EventBus, Handler
from busline.core.history import EventHistory
from busline.core.models import BusOptions, EventFilter, HistoryEntry, Priority
from busline.core.registry import Subscription

if TYPE_CHECKING:
    from busline.core.config import BuslineConfig

logger = logging.getLogger(__name__)

StateListener = Callable[[Any, Any], Any]

_MISSING = object()


class GroupSubscription:
    """One handler subscribed to every event of a group."""

    def __init__(self, group_name: str, subscriptions: list[Subscription], owner: list[GroupSubscription]) -> None:
        self.group_name = group_name
        self._subscriptions = subscriptions
        self._owner = owner

    @property
    def active(self) -> bool:
        return any(sub.active for sub in self._subscriptions)

    def unsubscribe(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        if self in self._owner:
            self._owner.remove(self)


class EventManager:
    """Groups, history queries and state management for one EventBus."""

    def __init__(
        self,
        bus: EventBus | None = None,
        *,
        bus_options: BusOptions | None = None,
        enable_state_management: bool = False,
        record_history: bool = True,
        max_history_length: int = DEFAULT_MAX_HISTORY_SIZE,
    ) -> None:
        self._bus = bus if bus is not None else EventBus(bus_options)
        self.enable_state_management = enable_state_management
        self.record_history = record_history
        self._history = EventHistory(max_history_length)
        self._groups: dict[str, dict[str, None]] = {}
        self._group_subscriptions: dict[str, list[GroupSubscription]] = {}
        self._state: dict[str, Any] = {}
        self._state_listeners: dict[str, list[StateListener]] = {}

    @classmethod
    def from_config(
        cls,
        config: BuslineConfig,
        on_error: Callable[[BaseException, str], Any] | None = None,
    ) -> EventManager:
        return cls(
            EventBus.from_config(config, on_error=on_error),
            enable_state_management=config.manager.enable_state_management,
            record_history=config.manager.record_history,
            max_history_length=config.manager.max_history_length,
        )

    def get_event_bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    def create_group(self, group_name: str, event_names: list[str]) -> None:
        """Create a group.

        Raises:
            GroupError: A group with this name already exists.
        """
        if group_name in self._groups:
            raise GroupError(f"Event group '{group_name}' already exists")

        members = dict.fromkeys(event_names)
        self._groups[group_name] = members
        self._group_subscriptions[group_name] = []
        self._notify(GROUP_CREATED, {"group_name": group_name, "event_names": list(members)})

    def add_to_group(self, group_name: str, event_names: list[str]) -> None:
        members = self._get_group(group_name)
        before = len(members)
        for name in event_names:
            members.setdefault(name, None)

        if len(members) > before:
            self._notify(
                GROUP_UPDATED,
                {"group_name": group_name, "event_names": list(members), "action": "add"},
            )

    def remove_from_group(self, group_name: str, event_names: list[str]) -> None:
        members = self._get_group(group_name)
        before = len(members)
        for name in event_names:
            members.pop(name, None)

        if len(members) < before:
            self._notify(
                GROUP_UPDATED,
                {"group_name": group_name, "event_names": list(members), "action": "remove"},
            )

    def delete_group(self, group_name: str) -> None:
        """Delete a group and cancel its subscriptions. Unknown names are ignored."""
        if group_name not in self._groups:
            return

        self.off_group(group_name)
        event_names = list(self._groups.pop(group_name))
        del self._group_subscriptions[group_name]
        self._notify(GROUP_DELETED, {"group_name": group_name, "event_names": event_names})

    def get_groups(self) -> dict[str, list[str]]:
        return {name: list(members) for name, members in self._groups.items()}

    def on_group(self, group_name: str, handler: Handler, priority: Priority = Priority.NORMAL) -> GroupSubscription:
        """Subscribe ``handler`` to every event currently in the group."""
        return self._subscribe_group(group_name, handler, priority, self._bus.subscribe)

    def once_group(self, group_name: str, handler: Handler, priority: Priority = Priority.NORMAL) -> GroupSubscription:
        """Subscribe ``handler`` once to every event currently in the group."""
        return self._subscribe_group(group_name, handler, priority, self._bus.once)

    def off_group(self, group_name: str) -> None:
        """Cancel every subscription made through ``on_group``/``once_group``."""
        group_subs = self._group_subscriptions.get(group_name)
        if group_subs is None:
            return

        for group_sub in list(group_subs):
            group_sub.unsubscribe()
        group_subs.clear()

    def _subscribe_group(
        self,
        group_name: str,
        handler: Handler,
        priority: Priority,
        subscribe: Callable[[str, Handler, Priority], Subscription],
    ) -> GroupSubscription:
        members = self._get_group(group_name)
        group_subs = self._group_subscriptions[group_name]

        subscriptions = [subscribe(event_name, handler, priority) for event_name in members]
        group_sub = GroupSubscription(group_name, subscriptions, group_subs)
        group_subs.append(group_sub)
        return group_sub

    def _get_group(self, group_name: str) -> dict[str, None]:
        members = self._groups.get(group_name)
        if members is None:
            raise GroupError(f"Event group '{group_name}' does not exist")
        return members

    # ------------------------------------------------------------------
    # Emitting and history
    # ------------------------------------------------------------------
    def emit(self, event_name: str, data: Any = None):
        """Record the event in the manager's history, then emit it on the bus."""
        if self.record_history:
            self._history.record(event_name, data)
        return self._bus.emit(event_name, data)

    def get_history(self, filter: EventFilter | None = None) -> list[HistoryEntry]:
        """Return recorded events, oldest first, optionally filtered.

        Unlike wildcard subscriptions, all three filter predicates apply
        here, including ``timestamp``.
        """
        if not self.record_history:
            return []
        entries = self._history.entries()
        if filter is None:
            return entries
        return [entry for entry in entries if filter.matches_entry(entry)]

    def clear_history(self) -> None:
        self._history.clear()

    def _notify(self, event_name: str, data: Any = None) -> None:
        try:
            self.emit(event_name, data)
        except NoSubscribers:
            logger.debug("Nobody listens to '%s', notification skipped", event_name)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def set_state(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` and notify listeners if it changed."""
        self._require_state()

        old_value = self._state.get(key, _MISSING)
        if old_value is not _MISSING and (old_value is value or old_value == value):
            return
        if old_value is _MISSING:
            old_value = None

        self._state[key] = value

        for listener in list(self._state_listeners.get(key, ())):
            listener(value, old_value)

        self._notify(STATE_CHANGE, {"key": key, "value": value, "old_value": old_value})

    def get_state(self, key: str, default: Any = None) -> Any:
        self._require_state()
        return self._state.get(key, default)

    def on_state_change(self, key: str, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(new_value, old_value)`` whenever ``key`` changes.

        Returns:
            A function that removes the listener.
        """
        self._require_state()
        listeners = self._state_listeners.setdefault(key, [])
        listeners.append(listener)

        def remove() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return remove

    def _require_state(self) -> None:
        if not self.enable_state_management:
            raise StateManagementDisabled()

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------
    def reset(self) -> None:
        """Drop groups (and their subscriptions), history and state."""
        for group_name in list(self._groups):
            self.off_group(group_name)

        self._groups.clear()
        self._group_subscriptions.clear()
        self.clear_history()

        if self.enable_state_management:
            self._state.clear()
            self._state_listeners.clear()

        self._notify(MANAGER_RESET)
