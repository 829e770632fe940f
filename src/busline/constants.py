"""Global constants and default paths."""

from __future__ import annotations

import os
from pathlib import Path

# Version
VERSION = "0.1.0"

# XDG-compliant default paths
DATA_DIR = Path(os.environ.get("BUSLINE_DATA_DIR", "~/.local/share/busline")).expanduser()
CONFIG_DIR = Path(os.environ.get("BUSLINE_CONFIG_DIR", "~/.config/busline")).expanduser()
LOG_DIR = DATA_DIR / "logs"

# Config file names
GLOBAL_CONFIG = CONFIG_DIR / "config.toml"
PROJECT_CONFIG = ".busline/config.toml"

# Bus defaults
DEFAULT_MAX_HISTORY_SIZE = 1000

# Reserved event names emitted by EventManager
STATE_CHANGE = "@state:change"
GROUP_CREATED = "@group:created"
GROUP_UPDATED = "@group:updated"
GROUP_DELETED = "@group:deleted"
MANAGER_RESET = "@manager:reset"

# Exit codes
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2
