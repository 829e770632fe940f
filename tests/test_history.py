"""Tests for the bounded event history."""

from __future__ import annotations

import pytest

from busline.core.history import EventHistory


class TestEventHistory:
    def test_records_oldest_first(self):
        history = EventHistory(max_size=10)
        history.record("a", 1)
        history.record("b", 2)
        assert [entry.event for entry in history.entries()] == ["a", "b"]

    def test_evicts_oldest(self):
        history = EventHistory(max_size=3)
        for i in range(5):
            history.record(f"e{i}", i)
        assert len(history) == 3
        assert [entry.event for entry in history.entries()] == ["e2", "e3", "e4"]

    def test_timestamp_defaults_to_now(self):
        history = EventHistory()
        entry = history.record("a")
        assert entry.timestamp > 0

    def test_explicit_timestamp(self):
        history = EventHistory()
        assert history.record("a", timestamp=12.5).timestamp == 12.5

    def test_entries_is_a_copy(self):
        history = EventHistory()
        history.record("a")
        history.entries().clear()
        assert len(history) == 1

    def test_payload_by_reference(self):
        history = EventHistory()
        payload = {"v": 1}
        history.record("a", payload)
        payload["v"] = 2
        assert history.entries()[0].data == {"v": 2}

    def test_clear(self):
        history = EventHistory()
        history.record("a")
        history.clear()
        assert history.entries() == []

    def test_initial_entries_truncated_to_newest(self):
        source = EventHistory(max_size=5)
        for i in range(5):
            source.record(f"e{i}")
        history = EventHistory(max_size=2, entries=source.entries())
        assert [entry.event for entry in history] == ["e3", "e4"]
        assert history.max_size == 2

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            EventHistory(max_size=0)
