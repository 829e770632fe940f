"""Hierarchical configuration system for busline.

Loads configuration from multiple sources in priority order:
1. Built-in defaults (in code)
2. Global config: ~/.config/busline/config.toml
3. Project config: .busline/config.toml (searched in CWD and parents)
4. Environment variables: BUSLINE_* prefix
5. Keyword overrides (passed as kwargs)
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from busline.constants import (
    DEFAULT_MAX_HISTORY_SIZE,
    GLOBAL_CONFIG,
    LOG_DIR,
    PROJECT_CONFIG,
)

logger = logging.getLogger(__name__)


class BusConfig(BaseModel):
    """EventBus behavior. ``on_error`` is code, not config."""

    async_event_handling: bool = True
    catch_errors: bool = True
    allow_empty_events: bool = True
    max_history_size: int = Field(default=DEFAULT_MAX_HISTORY_SIZE, ge=1)


class ManagerConfig(BaseModel):
    """EventManager settings."""

    enable_state_management: bool = False
    record_history: bool = True
    max_history_length: int = Field(default=DEFAULT_MAX_HISTORY_SIZE, ge=1)


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "info"
    log_dir: str = str(LOG_DIR)


class BuslineConfig(BaseModel):
    """Root configuration model."""

    bus: BusConfig = Field(default_factory=BusConfig)
    manager: ManagerConfig = Field(default_factory=ManagerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _find_project_config() -> Path | None:
    """Walk up from CWD looking for .busline/config.toml.

    Returns:
        Path to project config file if found, None otherwise
    """
    current = Path.cwd()

    for parent in [current, *current.parents]:
        config_path = parent / PROJECT_CONFIG
        if config_path.exists():
            return config_path

    return None


def _load_toml(path: Path) -> dict:
    """Load a TOML file.

    Args:
        path: Path to TOML file

    Returns:
        Parsed TOML data as dict, or {} if file doesn't exist
    """
    if not path.exists():
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        # Skip this source, the remaining ones still apply
        logger.warning("Failed to load %s: %s", path, e)
        return {}


def _merge_dicts(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary with overriding values

    Returns:
        Merged dictionary (creates a new dict)
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = value

    return result


_BOOL_KEYS = {
    "async_event_handling",
    "catch_errors",
    "allow_empty_events",
    "enable_state_management",
    "record_history",
}
_INT_KEYS = {"max_history_size", "max_history_length"}

_ENV_MAPPINGS = {
    # Bus settings
    "BUSLINE_ASYNC_EVENT_HANDLING": ("bus", "async_event_handling"),
    "BUSLINE_CATCH_ERRORS": ("bus", "catch_errors"),
    "BUSLINE_ALLOW_EMPTY_EVENTS": ("bus", "allow_empty_events"),
    "BUSLINE_MAX_HISTORY_SIZE": ("bus", "max_history_size"),
    # Manager settings
    "BUSLINE_ENABLE_STATE_MANAGEMENT": ("manager", "enable_state_management"),
    "BUSLINE_RECORD_HISTORY": ("manager", "record_history"),
    "BUSLINE_MAX_HISTORY_LENGTH": ("manager", "max_history_length"),
    # Logging settings
    "BUSLINE_LOG_LEVEL": ("logging", "level"),
    "BUSLINE_LOG_DIR": ("logging", "log_dir"),
}


def _apply_env_vars(config: dict) -> dict:
    """Apply BUSLINE_* environment variables to config.

    Args:
        config: Configuration dictionary

    Returns:
        Updated configuration dictionary
    """
    result = config.copy()

    for env_var, (section, key) in _ENV_MAPPINGS.items():
        value: Any = os.environ.get(env_var)
        if value is None:
            continue

        result[section] = dict(result.get(section, {}))

        if key in _BOOL_KEYS:
            value = value.lower() in ("true", "1", "yes", "on")
        elif key in _INT_KEYS:
            value = int(value)

        result[section][key] = value

    return result


def load_config(**overrides: Any) -> BuslineConfig:
    """Load configuration from all sources and merge them.

    Sources are merged in priority order (later overrides earlier):
    1. Built-in defaults (Pydantic model defaults)
    2. Global config (~/.config/busline/config.toml)
    3. Project config (.busline/config.toml)
    4. Environment variables (BUSLINE_*)
    5. Keyword overrides

    Args:
        **overrides: Section dicts like ``bus={"catch_errors": False}``, or
            the flat key ``log_level`` which goes to the logging section.

    Returns:
        Validated BuslineConfig instance

    Examples:
        >>> config = load_config()
        >>> config = load_config(log_level="debug")
        >>> config = load_config(bus={"max_history_size": 50})
    """
    config_dict: dict[str, Any] = {}

    global_config = _load_toml(GLOBAL_CONFIG)
    if global_config:
        config_dict = _merge_dicts(config_dict, global_config)

    project_config_path = _find_project_config()
    if project_config_path:
        project_config = _load_toml(project_config_path)
        if project_config:
            config_dict = _merge_dicts(config_dict, project_config)

    config_dict = _apply_env_vars(config_dict)

    if overrides:
        override_config: dict[str, Any] = {}
        for key, value in overrides.items():
            if key == "log_level":
                override_config.setdefault("logging", {})["level"] = value
            else:
                override_config[key] = value

        config_dict = _merge_dicts(config_dict, override_config)

    return BuslineConfig(**config_dict)
