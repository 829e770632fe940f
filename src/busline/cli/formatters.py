"""
busline CLI - Rich-based Output Formatting

Provides both Rich (terminal) and JSON output formatting for all CLI commands.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from busline.core.models import BusState

# Console instances for normal and error output
console = Console()
error_console = Console(stderr=True)

# Global state for JSON mode
_json_mode = False


def set_json_mode(enabled: bool) -> None:
    """Enable or disable JSON output mode."""
    global _json_mode
    _json_mode = enabled


def is_json_mode() -> bool:
    """Check if JSON output mode is enabled."""
    return _json_mode


# --- Basic output functions ---

def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def print_success(message: str) -> None:
    """Print a success message in green."""
    if _json_mode:
        print_json({"status": "success", "message": message})
    else:
        console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message in red to stderr."""
    if _json_mode:
        print_json({"status": "error", "message": message})
    else:
        error_console.print(f"[red]✗[/red] {message}")


def print_info(message: str) -> None:
    """Print an informational message."""
    if _json_mode:
        print_json({"status": "info", "message": message})
    else:
        console.print(f"[cyan]ℹ[/cyan] {message}")


# --- Event log formatting ---

def format_timestamp(value: str | float | None) -> str:
    """Render an ISO string or epoch seconds as local ``YYYY-MM-DD HH:MM:SS``."""
    if value is None:
        return "-"
    try:
        if isinstance(value, (int, float)):
            dt = datetime.fromtimestamp(value)
        else:
            dt = datetime.fromisoformat(value)
    except (TypeError, ValueError, OSError):
        return str(value)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def format_data(data: Any, max_length: int = 60) -> str:
    text = json.dumps(data, default=str, ensure_ascii=False)
    if len(text) > max_length:
        return text[: max_length - 1] + "…"
    return text


def print_event_log(entries: list[dict], title: str = "Event Log") -> None:
    """Print JSONL event log entries as a Rich table or JSON array."""
    if _json_mode:
        print_json(entries)
        return

    if not entries:
        console.print("[dim]No events found.[/dim]")
        return

    table = Table(title=title, title_style="bold cyan")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Event", style="bold")
    table.add_column("Data")

    for entry in entries:
        table.add_row(
            format_timestamp(entry.get("ts")),
            str(entry.get("event", "?")),
            format_data(entry.get("data")),
        )

    console.print(table)


def print_event_counts(counts: dict[str, int]) -> None:
    table = Table(title="Events", title_style="bold yellow")
    table.add_column("Event", style="bold")
    table.add_column("Count", justify="right")

    for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        table.add_row(name, str(count))

    console.print(table)


def print_bus_state(state: BusState) -> None:
    """Print bus counters and options as a Rich panel."""
    options = state.options
    lines = [
        f"[bold]Event names:[/bold] {state.event_count}",
        f"[bold]Listeners:[/bold] {state.total_listeners}",
        f"[bold]History:[/bold] {state.history_size} / {options.max_history_size}",
        f"[bold]Async handling:[/bold] {_flag(options.async_event_handling)}",
        f"[bold]Catch errors:[/bold] {_flag(options.catch_errors)}",
        f"[bold]Empty events:[/bold] {_flag(options.allow_empty_events)}",
    ]

    panel = Panel(
        "\n".join(lines),
        title="Bus State",
        title_align="left",
        border_style="cyan",
    )
    console.print(panel)


def _flag(value: bool) -> str:
    return "[green]on[/green]" if value else "[red]off[/red]"
