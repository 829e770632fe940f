"""busline CLI - Root Typer Application.

This is the entry point for the ``busline`` command. It defines the main Typer
app, global options (--json, --verbose) and lazily initialised shared state
that subcommands access via ``from busline.cli.app import state``.

Subcommand registration:
- ``busline config ...`` and ``busline log ...`` are mounted as sub-groups.
- ``busline version`` and ``busline replay`` are registered on the root app.
"""

from __future__ import annotations

import typer

from busline import __version__
from busline.cli.formatters import console, is_json_mode, print_json, set_json_mode

# ---------------------------------------------------------------------------
# Main Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="busline",
    help="busline: in-process event bus toolkit.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ---------------------------------------------------------------------------
# Global state (lazy-initialised, accessible as ``from busline.cli.app import state``)
# ---------------------------------------------------------------------------


class AppState:
    """Shared state populated by the root callback and consumed by subcommands."""

    def __init__(self) -> None:
        self.json_mode: bool = False
        self.verbose: bool = False
        self._config = None

    @property
    def config(self):
        """Load and cache the merged BuslineConfig."""
        if self._config is None:
            from busline.core.config import load_config

            overrides: dict = {}
            if self.verbose:
                overrides["log_level"] = "debug"
            self._config = load_config(**overrides)
        return self._config


state = AppState()


# ---------------------------------------------------------------------------
# Root callback: processes global options before any subcommand runs
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON instead of Rich tables.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Verbose output (debug logging).",
    ),
) -> None:
    """busline: in-process event bus toolkit."""
    from busline.utils.logging import configure_logging

    state.json_mode = json_output
    state.verbose = verbose
    state._config = None
    set_json_mode(json_output)
    configure_logging(state.config.logging.level)


@app.command(name="version")
def version() -> None:
    """Show busline version."""
    if is_json_mode():
        print_json({"version": __version__})
        return
    console.print(f"[bold]busline[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# Register subcommand groups and top-level commands
# ---------------------------------------------------------------------------

from busline.cli import config_cmd, log_cmd  # noqa: E402

app.add_typer(config_cmd.app, name="config", help="Manage busline configuration.")
app.add_typer(log_cmd.app, name="log", help="Inspect event logs.")
app.command(name="replay")(log_cmd.replay)
