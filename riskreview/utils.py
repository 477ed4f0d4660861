"""Shared utilities: paths, colors, output formatting, file discovery."""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from fnmatch import fnmatch
from pathlib import Path

PROJECT_ROOT = Path(os.environ.get("RISKREVIEW_ROOT", Path.cwd())).resolve()
STATE_DIR_NAME = ".riskreview"

# Directories that are never useful to scan — always pruned during traversal.
DEFAULT_EXCLUSIONS = frozenset({
    "node_modules", ".git", "__pycache__", ".venv", "venv", ".env",
    "dist", "build", "coverage", ".next", ".nuxt", ".output",
    ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    ".eggs", ".svn", ".hg", ".riskreview",
})


# ── Atomic file writes ─────────────────────────────────────


def safe_write_text(filepath: str | Path, content: str) -> None:
    """Atomically write text to a file using temp+rename."""
    p = Path(filepath)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=p.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.replace(tmp, str(p))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


# ── Paths ──────────────────────────────────────────────────


def to_posix(path: str) -> str:
    return path.replace("\\", "/")


def strip_dot_slash(path: str) -> str:
    """Drop a single leading ``./`` (tool output and callers disagree on it)."""
    return path[2:] if path.startswith("./") else path


def matches_exclusion(rel_path: str, exclusion: str) -> bool:
    """Check if a relative path matches an exclusion pattern (path-component aware).

    Matches if exclusion is a path component (e.g. "test" matches "test/foo.ts"
    or "src/test/bar.ts") or a directory prefix (e.g. "src/test" matches
    "src/test/bar.ts"). Does NOT do substring matching — "test" will NOT match
    "testimony.ts".
    """
    parts = Path(rel_path).parts
    if exclusion in parts:
        return True
    if "/" in exclusion:
        normalized = exclusion.rstrip("/")
        return rel_path.startswith(normalized + "/")
    return False


def _is_excluded_dir(name: str, rel_path: str, extra: tuple[str, ...]) -> bool:
    """Check if a directory should be pruned during traversal."""
    if name in DEFAULT_EXCLUSIONS or name.endswith(".egg-info"):
        return True
    return bool(extra) and any(matches_exclusion(rel_path, ex) or ex == name for ex in extra)


def find_source_files(
    root: Path,
    extensions: tuple[str, ...],
    exclusions: tuple[str, ...] = (),
    *,
    onerror=None,
) -> list[str]:
    """Find files with the given extensions under *root*.

    Returns sorted POSIX paths relative to *root*. Excluded directories are
    pruned during traversal so they are never descended into.
    """
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=onerror):
        rel_dir = to_posix(os.path.relpath(dirpath, root))
        prefix = "" if rel_dir == "." else rel_dir + "/"
        dirnames[:] = sorted(
            d for d in dirnames
            if not _is_excluded_dir(d, prefix + d, exclusions)
        )
        for fname in filenames:
            if not fname.endswith(extensions):
                continue
            rel_file = prefix + fname
            if exclusions and any(matches_exclusion(rel_file, ex) for ex in exclusions):
                continue
            files.append(rel_file)
    return sorted(files)


# ── Terminal output ────────────────────────────────────────

COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "cyan": "\033[36m",
}

NO_COLOR = os.environ.get("NO_COLOR") is not None


def colorize(text: str, color: str) -> str:
    if NO_COLOR or not sys.stdout.isatty():
        return str(text)
    return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"


def log(msg: str):
    """Print a dim status message to stderr."""
    print(colorize(msg, "dim"), file=sys.stderr)


def print_table(headers: list[str], rows: list[list[str]], widths: list[int] | None = None):
    if not rows:
        return
    if not widths:
        widths = [max(len(str(h)), *(len(str(r[i])) for r in rows)) for i, h in enumerate(headers)]
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    print(colorize(header_line, "bold"))
    print(colorize("─" * (sum(widths) + 2 * (len(widths) - 1)), "dim"))
    for row in rows:
        print("  ".join(str(v).ljust(w) for v, w in zip(row, widths)))


def plural(count: int, noun: str, suffix: str = "s") -> str:
    return f"{count} {noun}{suffix if count != 1 else ''}"


# ── Logging ────────────────────────────────────────────────

_LOGGER_NAME = "riskreview"


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Attach a stderr handler to the ``riskreview`` logger hierarchy."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when main() runs more than once.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[riskreview] %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    return logger


def matches_path_pattern(path: str, pattern: str) -> bool:
    """Match a repo-relative path against a glob, directory prefix, or plain name."""
    normalized = to_posix(path)
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        return normalized == prefix or normalized.startswith(prefix + "/")
    if pattern.endswith("/"):
        return normalized.startswith(pattern)
    if pattern.startswith("**/"):
        tail = pattern[3:]
        return normalized == tail or normalized.endswith(f"/{tail}") or fnmatch(normalized, pattern)
    if "/" in pattern or any(ch in pattern for ch in "*?["):
        return fnmatch(normalized, pattern)
    return normalized == pattern or normalized.endswith(f"/{pattern}")
