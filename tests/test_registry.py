"""Tests for the named and wildcard subscriber registries."""

from __future__ import annotations

from busline.core.models import EventFilter, Priority
from busline.core.registry import SubscriptionRegistry, WildcardRegistry


def _noop(data):
    return None


class _Listener:
    def __init__(self):
        self.calls = []

    def on_event(self, data):
        self.calls.append(data)


class TestSubscriptionRegistry:
    def test_sorted_by_priority_then_insertion(self):
        registry = SubscriptionRegistry()
        handlers = {name: (lambda data, name=name: name) for name in "abcde"}
        registry.add("e", handlers["a"], Priority.LOW)
        registry.add("e", handlers["b"], Priority.NORMAL)
        registry.add("e", handlers["c"], Priority.CRITICAL)
        registry.add("e", handlers["d"], Priority.NORMAL)
        registry.add("e", handlers["e"], Priority.CRITICAL)

        order = [record.handler(None) for record in registry.records("e")]
        assert order == ["c", "e", "b", "d", "a"]

    def test_records_returns_copy(self):
        registry = SubscriptionRegistry()
        registry.add("e", _noop)
        records = registry.records("e")
        records.clear()
        assert registry.count("e") == 1

    def test_token_removes_exact_record(self):
        registry = SubscriptionRegistry()
        first = registry.add("e", _noop, Priority.HIGH)
        second = registry.add("e", _noop, Priority.LOW)

        assert second.unsubscribe() is True
        remaining = registry.records("e")
        assert len(remaining) == 1
        assert remaining[0].priority is Priority.HIGH
        assert first.active
        assert not second.active

    def test_token_unsubscribe_twice(self):
        registry = SubscriptionRegistry()
        sub = registry.add("e", _noop)
        assert sub.unsubscribe() is True
        assert sub.unsubscribe() is False

    def test_last_removal_deletes_bucket(self):
        registry = SubscriptionRegistry()
        sub = registry.add("e", _noop)
        sub.unsubscribe()
        assert "e" not in registry
        assert registry.names() == []

    def test_remove_whole_bucket(self):
        registry = SubscriptionRegistry()
        a = registry.add("e", _noop)
        b = registry.add("e", lambda data: None)
        assert registry.remove("e") == 2
        assert registry.names() == []
        assert not a.active and not b.active

    def test_remove_by_handler_removes_first_match_only(self):
        registry = SubscriptionRegistry()
        registry.add("e", _noop, Priority.HIGH)
        registry.add("e", _noop, Priority.LOW)
        assert registry.remove("e", _noop) == 1
        assert [r.priority for r in registry.records("e")] == [Priority.LOW]

    def test_remove_bound_method(self):
        registry = SubscriptionRegistry()
        listener = _Listener()
        registry.add("e", listener.on_event)
        assert registry.remove("e", listener.on_event) == 1
        assert registry.count("e") == 0

    def test_remove_unknown(self):
        registry = SubscriptionRegistry()
        assert registry.remove("missing") == 0
        assert registry.remove("missing", _noop) == 0

    def test_counts_and_total(self):
        registry = SubscriptionRegistry()
        registry.add("a", _noop)
        registry.add("a", _noop)
        registry.add("b", _noop)
        assert registry.counts() == {"a": 2, "b": 1}
        assert registry.total() == 3
        assert len(registry) == 2

    def test_ensure_and_drop_empty_bucket(self):
        registry = SubscriptionRegistry()
        registry.ensure_bucket("restored")
        assert registry.names() == ["restored"]
        assert registry.count("restored") == 0
        registry.drop_if_empty("restored")
        assert registry.names() == []

    def test_clear_deactivates(self):
        registry = SubscriptionRegistry()
        sub = registry.add("a", _noop)
        registry.clear()
        assert not sub.active
        assert len(registry) == 0

    def test_subscription_repr_and_properties(self):
        registry = SubscriptionRegistry()
        sub = registry.add("a", _noop)
        assert sub.event_name == "a"
        assert sub.handler is _noop
        assert not sub.is_wildcard
        assert "active" in repr(sub)


class TestWildcardRegistry:
    def test_sorted_by_priority(self):
        registry = WildcardRegistry()
        low = lambda event: "low"  # noqa: E731
        critical = lambda event: "critical"  # noqa: E731
        registry.add(low, Priority.LOW)
        registry.add(critical, Priority.CRITICAL)
        assert [r.handler for r in registry.records()] == [critical, low]

    def test_filter_accepts(self):
        registry = WildcardRegistry()
        registry.add(_noop, filter=EventFilter(event=lambda name: name == "a"))
        record = registry.records()[0]
        assert record.accepts("a", None)
        assert not record.accepts("b", None)

    def test_token_and_handler_removal(self):
        registry = WildcardRegistry()
        sub = registry.add(_noop)
        assert sub.is_wildcard
        assert sub.event_name is None
        assert sub.unsubscribe() is True
        assert len(registry) == 0

        registry.add(_noop)
        assert registry.remove(_noop) == 1
        assert registry.remove(_noop) == 0
