# -------------------------------------
# Configuration
# -------------------------------------
"""
YAML configuration for store adapters, recipes and logging.

A config file holds a `tabframe` mapping (a bare top-level mapping is
accepted too):

    tabframe:
      csv:
        delimiter: ","
        na_values: ["", "NA"]
      separator: "_"
      log_level: INFO

Values missing from the file fall back to DEFAULTS. Loaded files are
cached by resolved path; TABFRAME_CONFIG names a default file.
"""
import copy
import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml

from .errors import ArgumentError

ENV_VAR = "TABFRAME_CONFIG"

DEFAULTS: dict[str, Any] = {
    "csv": {
        "delimiter": ",",
        "na_values": [""],
    },
    "separator": "_",
    "log_level": "WARNING",
}

# Module-level cache for loaded config files
_CONFIG_CACHE: dict[str, dict[str, Any]] = {}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """
    Load a config file merged over DEFAULTS.

    Args:
        path: YAML file; defaults to $TABFRAME_CONFIG, else no file

    Returns:
        Config dict; every call returns its own copy, so callers may modify it

    Raises:
        FileNotFoundError: If the file doesn't exist
        ArgumentError: If the file does not hold a mapping
    """
    if path is None:
        path = os.environ.get(ENV_VAR)
    if not path:
        return copy.deepcopy(DEFAULTS)

    path = Path(path)
    path_str = str(path.resolve())
    if path_str in _CONFIG_CACHE:
        return copy.deepcopy(_CONFIG_CACHE[path_str])

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ArgumentError(f"Config file '{path}' must hold a mapping")
    section = data.get("tabframe", data)
    if not isinstance(section, dict):
        raise ArgumentError(f"Config file '{path}': 'tabframe' must be a mapping")

    config = _merge(DEFAULTS, section)
    _CONFIG_CACHE[path_str] = config
    return copy.deepcopy(config)


def clear_cache() -> None:
    """Clear the config file cache."""
    _CONFIG_CACHE.clear()


def get_value(config: dict[str, Any], key_path: str, default: Any = None) -> Any:
    """Get a config value by its dot-separated key path."""
    current: Any = config
    for key in key_path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configures basic logging to stdout."""
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ArgumentError(f"Unknown log level: {name!r}")
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
