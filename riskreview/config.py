"""Project-wide configuration management (.riskreview/config.json).

Keys cover critical-file selection, external tool execution, tier thresholds,
and where the toolchain and tool registry files live.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from .utils import PROJECT_ROOT, STATE_DIR_NAME, safe_write_text

CONFIG_FILE = PROJECT_ROOT / STATE_DIR_NAME / "config.json"


@dataclass(frozen=True)
class ConfigKey:
    type: type
    default: object
    description: str


CONFIG_SCHEMA: dict[str, ConfigKey] = {
    "max_critical_files": ConfigKey(int, 10,
        "Files selected for deep review in the critical-files report"),
    "critical_paths": ConfigKey(list, [],
        "Glob patterns always treated as critical (e.g. src/payments/**)"),
    "tool_timeout_seconds": ConfigKey(int, 120,
        "Per-tool timeout for external quality checks"),
    "max_parallel_tools": ConfigKey(int, 4,
        "Quality-check tools run concurrently (1 = sequential)"),
    "exclude": ConfigKey(list, [],
        "Path patterns excluded from the import graph scan"),
    "tier_quick_max_files": ConfigKey(int, 3,
        "Largest test/config-only change that still gets a quick review"),
    "tier_quick_max_lines": ConfigKey(int, 50,
        "Line budget for the quick tier"),
    "tier_standard_max_files": ConfigKey(int, 10,
        "Largest change (files) reviewed at the standard tier"),
    "tier_standard_max_lines": ConfigKey(int, 200,
        "Largest change (lines) reviewed at the standard tier"),
    "toolchain_path": ConfigKey(str, f"{STATE_DIR_NAME}/toolchain.yaml",
        "Toolchain file listing quality-check commands (relative to project root)"),
    "registry_path": ConfigKey(str, "",
        "Tool registry override (empty = bundled registry)"),
}


def default_config() -> dict:
    """Return a config dict with all keys set to their defaults."""
    return {k: _copy_default(v.default) for k, v in CONFIG_SCHEMA.items()}


def _copy_default(value: object) -> object:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return dict(value)
    return value


def load_config(path: Path | None = None) -> dict:
    """Load config from disk, filling missing keys with defaults.

    A corrupted or unreadable file is treated as empty.
    """
    p = path or CONFIG_FILE
    config: dict = {}
    if p.exists():
        try:
            loaded = json.loads(p.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError, OSError):
            loaded = {}
        if isinstance(loaded, dict):
            config = loaded

    for key, schema in CONFIG_SCHEMA.items():
        if key not in config:
            config[key] = _copy_default(schema.default)

    return config


def save_config(config: dict, path: Path | None = None) -> None:
    """Save config to disk atomically."""
    p = path or CONFIG_FILE
    safe_write_text(p, json.dumps(config, indent=2) + "\n")


def set_config_value(config: dict, key: str, raw: str) -> None:
    """Parse and set a config value from a raw string.

    List keys append (deduplicated); int keys must be non-negative.
    """
    if key not in CONFIG_SCHEMA:
        raise KeyError(f"Unknown config key: {key}")

    schema = CONFIG_SCHEMA[key]

    if schema.type is int:
        value = int(raw)
        if value < 0:
            raise ValueError(f"Expected a non-negative integer for {key}, got: {raw}")
        config[key] = value
    elif schema.type is list:
        config.setdefault(key, [])
        if raw not in config[key]:
            config[key].append(raw)
    else:
        config[key] = raw


def unset_config_value(config: dict, key: str) -> None:
    """Reset a config key to its default value."""
    if key not in CONFIG_SCHEMA:
        raise KeyError(f"Unknown config key: {key}")
    config[key] = _copy_default(CONFIG_SCHEMA[key].default)
