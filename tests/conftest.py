"""Shared test fixtures for the busline test suite."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from busline.core.events import EventBus


@pytest.fixture
def bus():
    """A bus with default options."""
    return EventBus()


@pytest.fixture
def reported():
    """List collecting ``(error, event_name)`` pairs passed to on_error."""
    return []


@pytest.fixture
def catching_bus(reported):
    """A bus whose on_error appends to the ``reported`` fixture."""
    return EventBus(on_error=lambda error, event_name: reported.append((error, event_name)))


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run with no global config, no BUSLINE_* env vars and CWD in a temp dir."""
    for name in list(os.environ):
        if name.startswith("BUSLINE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    with patch("busline.core.config.GLOBAL_CONFIG", tmp_path / "global" / "config.toml"):
        yield tmp_path
