"""Logging setup and structured JSONL event logs."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from busline.constants import LOG_DIR
from busline.core.events import EventBus
from busline.core.models import EventFilter, Priority, WildcardEvent
from busline.core.registry import Subscription

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def configure_logging(level: str = "info") -> None:
    """Configure root logging from a level name such as ``"debug"``."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)


class EventLogger:
    """Writes structured JSONL logs of the events seen on a bus.

    Each log entry is a JSON object with:
    - ts: ISO 8601 timestamp with timezone
    - event: Event name
    - data: Event payload (non-JSON values are stored via ``str``)

    Example:
        with EventLogger("orders") as event_log:
            event_log.attach(bus)
            bus.emit("order.created", {"id": 1})
        event_log.read_lines(tail=10)
    """

    def __init__(self, name: str = "events", log_dir: Path | None = None):
        """Initialize logger.

        Args:
            name: Log file stem, the file is ``<name>.jsonl``
            log_dir: Directory for log files (defaults to LOG_DIR from constants)
        """
        self.name = name
        self.log_dir = log_dir or LOG_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = self.log_dir / f"{name}.jsonl"
        self._file = None
        self._subscription: Subscription | None = None

    def open(self):
        """Open log file for writing."""
        if self._file is None:
            self._file = open(self.log_path, "a", encoding="utf-8")

    def close(self):
        """Detach from the bus and close the log file."""
        self.detach()
        if self._file:
            self._file.close()
            self._file = None

    def attach(self, bus: EventBus, filter: EventFilter | None = None) -> Subscription:
        """Log every event emitted on ``bus`` (after all other listeners).

        Opens the log file if needed. A logger follows one bus at a time.
        """
        self.detach()
        self.open()
        self._subscription = bus.subscribe_to_all(self._on_event, priority=Priority.LOW, filter=filter)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_event(self, event: WildcardEvent) -> None:
        self.write(event.event, event.data)

    def write(self, event_name: str, data: Any = None):
        """Write a structured log entry.

        Args:
            event_name: Name of the emitted event
            data: Event payload
        """
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_name,
            "data": data,
        }

        if self._file:
            self._file.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            self._file.flush()

    def read_lines(self, tail: int | None = None) -> list[dict]:
        """Read log entries.

        Args:
            tail: If set, return only the last N entries

        Returns:
            List of log entries as dicts
        """
        return read_event_log(self.log_path, tail=tail)

    def __enter__(self):
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, *args):
        """Context manager exit."""
        self.close()


def read_event_log(path: Path, tail: int | None = None) -> list[dict]:
    """Read a JSONL event log, skipping malformed lines."""
    if not path.exists():
        return []

    with open(path, "r", encoding="utf-8") as f:
        lines = f.readlines()

    if tail:
        lines = lines[-tail:]

    entries = []
    for line in lines:
        line = line.strip()
        if line:
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                # Skip malformed lines
                continue

    return entries
