"""Event log CLI commands: inspect and replay JSONL event logs."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Optional

import typer

from busline.cli.formatters import (
    is_json_mode,
    print_bus_state,
    print_error,
    print_event_counts,
    print_event_log,
    print_json,
)
from busline.constants import EXIT_NOT_FOUND

app = typer.Typer(help="Inspect event logs", no_args_is_help=True)


@app.command("show")
def log_show(
    path: Path = typer.Argument(..., help="JSONL event log written by EventLogger"),
    event: Optional[str] = typer.Option(None, "--event", "-e", help="Only show this event name"),
    tail: Optional[int] = typer.Option(None, "--tail", "-n", help="Only show the last N entries"),
) -> None:
    """Show the entries of an event log.

    Examples:
        busline log show ~/.local/share/busline/logs/events.jsonl
        busline log show events.jsonl --event order.created --tail 20
    """
    from busline.utils.logging import read_event_log

    if not path.exists():
        print_error(f"Log file not found: {path}")
        raise typer.Exit(EXIT_NOT_FOUND)

    entries = read_event_log(path)
    if event:
        entries = [entry for entry in entries if entry.get("event") == event]
    if tail:
        entries = entries[-tail:]

    print_event_log(entries, title=path.name)


def replay(
    path: Path = typer.Argument(..., help="JSONL event log written by EventLogger"),
) -> None:
    """Replay an event log into a fresh bus and show the resulting state.

    The bus is built from the effective configuration. Malformed lines and
    entries without an event name are skipped.

    Examples:
        busline replay events.jsonl
        busline --json replay events.jsonl
    """
    from busline.cli.app import state
    from busline.core.events import EventBus
    from busline.utils.logging import read_event_log

    if not path.exists():
        print_error(f"Log file not found: {path}")
        raise typer.Exit(EXIT_NOT_FOUND)

    bus = EventBus.from_config(state.config)
    counts: Counter[str] = Counter()
    bus.subscribe_to_all(lambda event: counts.update([event.event]))

    for entry in read_event_log(path):
        name = entry.get("event")
        if isinstance(name, str) and name.strip():
            bus.emit(name, entry.get("data"))

    if is_json_mode():
        print_json({
            "counts": dict(counts),
            "state": bus.get_state().model_dump(mode="json"),
            "snapshot": bus.get_snapshot().model_dump(mode="json"),
        })
        return

    print_event_counts(dict(counts))
    print_bus_state(bus.get_state())
