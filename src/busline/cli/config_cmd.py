"""Configuration CLI commands.

Provides the `busline config` sub-commands for viewing and resetting
the busline configuration.
"""

from __future__ import annotations

from typing import Optional

import typer

from busline.cli.formatters import console, is_json_mode, print_error, print_info, print_json, print_success
from busline.constants import EXIT_ERROR

app = typer.Typer(help="Manage busline configuration", no_args_is_help=True)


@app.command("show")
def config_show(
    section: Optional[str] = typer.Argument(None, help="Config section (e.g. 'bus', 'manager')"),
) -> None:
    """Show effective configuration (merged from all sources).

    Examples:
        busline config show
        busline config show bus
    """
    from busline.cli.app import state

    config_dict = state.config.model_dump(mode="json")

    if section:
        if section in config_dict:
            data = {section: config_dict[section]}
        else:
            print_error(f"Unknown config section: {section}")
            print_info(f"Available sections: {', '.join(config_dict.keys())}")
            raise typer.Exit(EXIT_ERROR)
    else:
        data = config_dict

    if is_json_mode():
        print_json(data)
        return

    from rich.panel import Panel

    lines: list[str] = []
    _format_dict(data, lines, indent=0)

    panel = Panel(
        "\n".join(lines),
        title="busline Configuration",
        title_align="left",
        border_style="blue",
    )
    console.print(panel)


@app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Reset configuration to defaults.

    Deletes the global config file at ~/.config/busline/config.toml.
    """
    from busline.constants import GLOBAL_CONFIG

    if not GLOBAL_CONFIG.exists():
        print_info("No config file to reset (using defaults).")
        return

    if not force:
        confirm = typer.confirm(f"Delete {GLOBAL_CONFIG}?")
        if not confirm:
            print_info("Cancelled")
            return

    GLOBAL_CONFIG.unlink()
    print_success("Configuration reset to defaults")


def _format_dict(data: dict, lines: list[str], indent: int = 0) -> None:
    """Recursively format a dict for display."""
    prefix = "  " * indent
    for key, value in data.items():
        if isinstance(value, dict):
            lines.append(f"{prefix}[bold]{key}:[/bold]")
            _format_dict(value, lines, indent + 1)
        else:
            lines.append(f"{prefix}[bold]{key}:[/bold] {value}")
