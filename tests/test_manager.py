"""Tests for EventManager groups, history queries and state."""

from __future__ import annotations

import pytest

from busline.constants import GROUP_CREATED, GROUP_DELETED, GROUP_UPDATED, MANAGER_RESET, STATE_CHANGE
from busline.core.errors import GroupError, StateManagementDisabled
from busline.core.events import EventBus
from busline.core.manager import EventManager
from busline.core.models import EventFilter


@pytest.fixture
def manager():
    return EventManager(enable_state_management=True)


def _collect(manager, event_name):
    received = []
    manager.get_event_bus().subscribe(event_name, received.append)
    return received


class TestGroups:
    def test_create_and_subscribe(self, manager):
        received = []
        manager.create_group("orders", ["order.created", "order.paid"])
        manager.on_group("orders", received.append)

        manager.emit("order.created", 1)
        manager.emit("order.paid", 2)
        manager.emit("order.other", 3)

        assert received == [1, 2]

    def test_duplicate_group(self, manager):
        manager.create_group("g", ["a"])
        with pytest.raises(GroupError):
            manager.create_group("g", ["b"])

    def test_unknown_group(self, manager):
        with pytest.raises(GroupError):
            manager.on_group("missing", lambda _: None)
        with pytest.raises(GroupError):
            manager.add_to_group("missing", ["a"])

    def test_get_groups(self, manager):
        manager.create_group("g", ["a", "b", "a"])
        assert manager.get_groups() == {"g": ["a", "b"]}

    def test_add_and_remove_members(self, manager):
        updates = _collect(manager, GROUP_UPDATED)
        manager.create_group("g", ["a"])

        manager.add_to_group("g", ["b", "a"])
        manager.add_to_group("g", ["a"])
        manager.remove_from_group("g", ["a", "missing"])
        manager.remove_from_group("g", ["missing"])

        assert manager.get_groups() == {"g": ["b"]}
        assert [update["action"] for update in updates] == ["add", "remove"]
        assert updates[0]["event_names"] == ["a", "b"]

    def test_created_and_deleted_notifications(self, manager):
        created = _collect(manager, GROUP_CREATED)
        deleted = _collect(manager, GROUP_DELETED)

        manager.create_group("g", ["a"])
        manager.delete_group("g")
        manager.delete_group("g")

        assert created == [{"group_name": "g", "event_names": ["a"]}]
        assert deleted == [{"group_name": "g", "event_names": ["a"]}]
        assert manager.get_groups() == {}

    def test_delete_cancels_subscriptions(self, manager):
        received = []
        manager.create_group("g", ["a"])
        group_sub = manager.on_group("g", received.append)

        manager.delete_group("g")
        manager.emit("a", 1)

        assert received == []
        assert not group_sub.active

    def test_once_group(self, manager):
        received = []
        manager.create_group("g", ["a", "b"])
        manager.once_group("g", received.append)

        manager.emit("a", 1)
        manager.emit("a", 2)
        manager.emit("b", 3)
        manager.emit("b", 4)

        assert received == [1, 3]

    def test_off_group(self, manager):
        received = []
        manager.create_group("g", ["a"])
        manager.on_group("g", received.append)
        manager.on_group("g", received.append)

        manager.off_group("g")
        manager.emit("a", 1)

        assert received == []
        assert manager.get_event_bus().listener_count("a") == 0

    def test_group_subscription_token(self, manager):
        first = []
        second = []
        manager.create_group("g", ["a"])
        token = manager.on_group("g", first.append)
        manager.on_group("g", second.append)

        token.unsubscribe()
        manager.emit("a", 1)

        assert first == []
        assert second == [1]

    def test_members_added_later_not_subscribed(self, manager):
        received = []
        manager.create_group("g", ["a"])
        manager.on_group("g", received.append)
        manager.add_to_group("g", ["b"])

        manager.emit("b", 1)

        assert received == []

    def test_notifications_tolerate_strict_bus(self):
        manager = EventManager(EventBus(allow_empty_events=False))
        manager.create_group("g", ["a"])
        assert manager.get_groups() == {"g": ["a"]}


class TestHistory:
    def test_records_and_filters(self, manager):
        manager.emit("user.login", {"id": 1})
        manager.emit("user.logout", {"id": 1})
        manager.emit("user.login", {"id": 2})

        logins = manager.get_history(EventFilter(event=lambda name: name == "user.login"))
        assert [entry.data["id"] for entry in logins] == [1, 2]

        by_data = manager.get_history(EventFilter(data=lambda name, data: data["id"] == 2))
        assert [entry.event for entry in by_data] == ["user.login"]

    def test_timestamp_filter(self, manager):
        manager.emit("a")
        cutoff = manager.get_history()[-1].timestamp
        manager.emit("b")

        later = manager.get_history(EventFilter(timestamp=lambda ts: ts > cutoff))
        assert all(entry.timestamp > cutoff for entry in later)
        assert "a" not in [entry.event for entry in later]

    def test_bounded(self):
        manager = EventManager(max_history_length=2)
        for name in ["a", "b", "c"]:
            manager.emit(name)
        assert [entry.event for entry in manager.get_history()] == ["b", "c"]

    def test_disabled(self):
        manager = EventManager(record_history=False)
        manager.emit("a")
        assert manager.get_history() == []

    def test_clear(self, manager):
        manager.emit("a")
        manager.clear_history()
        assert manager.get_history() == []

    def test_bus_history_independent(self, manager):
        manager.emit("a")
        manager.clear_history()
        assert len(manager.get_event_bus().get_history()) == 1


class TestState:
    def test_set_and_get(self, manager):
        manager.set_state("user", "alice")
        assert manager.get_state("user") == "alice"
        assert manager.get_state("missing", "default") == "default"

    def test_listener_called_with_new_and_old(self, manager):
        changes = []
        manager.on_state_change("count", lambda new, old: changes.append((new, old)))

        manager.set_state("count", 1)
        manager.set_state("count", 2)

        assert changes == [(1, None), (2, 1)]

    def test_unchanged_value_is_silent(self, manager):
        changes = []
        events = _collect(manager, STATE_CHANGE)
        manager.on_state_change("count", lambda new, old: changes.append(new))

        manager.set_state("count", 1)
        manager.set_state("count", 1)

        assert changes == [1]
        assert len(events) == 1

    def test_state_change_event(self, manager):
        events = _collect(manager, STATE_CHANGE)
        manager.set_state("theme", "dark")
        manager.set_state("theme", "light")

        assert events == [
            {"key": "theme", "value": "dark", "old_value": None},
            {"key": "theme", "value": "light", "old_value": "dark"},
        ]

    def test_remove_listener(self, manager):
        changes = []
        remove = manager.on_state_change("k", changes.append)
        remove()
        remove()
        manager.set_state("k", 1)
        assert changes == []

    def test_disabled(self):
        manager = EventManager()
        with pytest.raises(StateManagementDisabled):
            manager.set_state("k", 1)
        with pytest.raises(StateManagementDisabled):
            manager.get_state("k")
        with pytest.raises(StateManagementDisabled):
            manager.on_state_change("k", lambda new, old: None)


class TestReset:
    def test_reset(self, manager):
        resets = _collect(manager, MANAGER_RESET)
        received = []
        manager.create_group("g", ["a"])
        manager.on_group("g", received.append)
        manager.set_state("k", 1)

        manager.reset()
        manager.emit("a", 1)

        assert received == []
        assert manager.get_groups() == {}
        assert manager.get_state("k") is None
        assert resets == [None]
        assert [entry.event for entry in manager.get_history()] == [MANAGER_RESET, "a"]


class TestFromConfig:
    def test_from_config(self, isolated_config):
        from busline.core.config import load_config

        config = load_config(
            bus={"catch_errors": False},
            manager={"enable_state_management": True, "max_history_length": 3},
        )
        manager = EventManager.from_config(config)

        assert manager.enable_state_management is True
        assert manager.get_event_bus().options.catch_errors is False
        for name in ["a", "b", "c", "d"]:
            manager.emit(name)
        assert len(manager.get_history()) == 3
