"""Shared helpers for consistent best-effort fallback behavior."""

from __future__ import annotations

import logging
import sys

from riskreview.utils import colorize


def log_best_effort_failure(
    logger: logging.Logger, action: str, exc: Exception
) -> None:
    """Record non-fatal fallback failures in a consistent debug format."""
    logger.debug("Best-effort fallback failed while trying to %s: %s", action, exc)


def print_error(message: str) -> None:
    """Print a user-facing error message to stderr in a consistent format."""
    print(colorize(f"  Error: {message}", "red"), file=sys.stderr)


def warn_best_effort(message: str) -> None:
    """Emit a consistent user-facing warning for non-fatal fallback failures."""
    print(colorize(f"  WARNING: {message}", "red"), file=sys.stderr)


__all__ = [
    "log_best_effort_failure",
    "print_error",
    "warn_best_effort",
]
