"""Shared helpers for command modules."""

from __future__ import annotations

import json
from pathlib import Path

from ..utils import PROJECT_ROOT, colorize, safe_write_text


def project_root() -> Path:
    return PROJECT_ROOT


def print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


def write_json(path: str | Path, data: object) -> None:
    safe_write_text(path, json.dumps(data, indent=2, default=str) + "\n")


def severity_color(severity: str) -> str:
    if severity in ("blocker", "critical"):
        return "red"
    if severity == "major":
        return "yellow"
    return "dim"


def status_label(success: bool, skipped: bool) -> str:
    if skipped:
        return colorize("skipped", "dim")
    return colorize("pass", "green") if success else colorize("fail", "red")
