"""Configuration manager for codemap using TOML files."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict

import toml

from . import config

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised for unknown config keys or values of the wrong shape."""


def load_full_config() -> Dict[str, Any]:
    """Load the raw TOML config (all sections), or an empty dict."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config.CONFIG_FILE, exc)
        return {}


def load_config() -> Dict[str, Dict[str, Any]]:
    """Load configuration merged over :data:`config.DEFAULT_CONFIG`.

    Unknown sections and keys in the file are ignored; missing keys take
    their default value.
    """
    merged = copy.deepcopy(config.DEFAULT_CONFIG)
    raw = load_full_config()
    for section, values in merged.items():
        overrides = raw.get(section, {})
        if not isinstance(overrides, dict):
            continue
        for key in values:
            if key not in overrides:
                continue
            try:
                values[key] = _coerce(section, key, overrides[key])
            except ConfigError as exc:
                logger.warning("Using default for %s.%s: %s", section, key, exc)
    return merged


def get_setting(section: str, key: str) -> Any:
    return load_config()[section][key]


def save_config(section: str, key: str, value: Any) -> Any:
    """Validate and persist one setting, preserving the rest of the file.

    Returns:
        The coerced value that was written.
    """
    coerced = _coerce(section, key, value)
    full = load_full_config()
    full.setdefault(section, {})[key] = coerced
    config.ensure_base_dirs()
    with open(config.CONFIG_FILE, "w", encoding="utf-8") as f:
        toml.dump(full, f)
    return coerced


def _coerce(section: str, key: str, value: Any) -> Any:
    defaults = config.DEFAULT_CONFIG.get(section)
    if defaults is None or key not in defaults:
        raise ConfigError(f"Unknown setting '{section}.{key}'")

    default = defaults[key]
    if isinstance(default, list):
        if isinstance(value, str):
            value = [v.strip() for v in value.split(",") if v.strip()]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"'{section}.{key}' must be a list of strings")
        if key == "resolve_extensions":
            value = [v if v.startswith(".") else f".{v}" for v in value]
        return value

    if isinstance(default, int):
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"'{section}.{key}' must be an integer, got {value!r}")
        if number < 0 or (key == "workers" and number < 1):
            raise ConfigError(f"'{section}.{key}' is out of range: {number}")
        return number

    return value
