"""Pending change statistics from ``git diff --numstat``.

Staged and unstaged listings are parsed separately, rename notation
(``src/{old.ts => new.ts}``) is collapsed to the new path, and files present in
both listings are merged so every path appears once.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from riskreview.errors import ChangeSetError
from riskreview.utils import strip_dot_slash, to_posix

logger = logging.getLogger(__name__)

GitRunner = Callable[..., str]

# --diff-filter=d drops deletions: later stages read file contents.
_NUMSTAT_ARGS = ("--numstat", "--diff-filter=d")
_BRACE_RENAME_RE = re.compile(r"^(?P<prefix>.*)\{(?P<old>.*) => (?P<new>.*)\}(?P<suffix>.*)$")
_PLAIN_RENAME_SEP = " => "


@dataclass(frozen=True)
class FileChange:
    path: str
    lines_added: int
    lines_deleted: int

    @property
    def lines_changed(self) -> int:
        return self.lines_added + self.lines_deleted

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "linesAdded": self.lines_added,
            "linesDeleted": self.lines_deleted,
            "linesChanged": self.lines_changed,
        }


def resolve_rename_path(path: str) -> str:
    """Collapse git rename notation to the destination path.

    ``src/{old.ts => new.ts}`` -> ``src/new.ts``; ``a.ts => b.ts`` -> ``b.ts``;
    ``src/{ => nested}/x.ts`` -> ``src/nested/x.ts``.
    """
    match = _BRACE_RENAME_RE.match(path)
    if match:
        joined = match["prefix"] + match["new"] + match["suffix"]
        return re.sub(r"/{2,}", "/", joined)
    if _PLAIN_RENAME_SEP in path:
        return path.split(_PLAIN_RENAME_SEP, 1)[1]
    return path


def _parse_count(raw: str) -> int | None:
    if raw == "-":  # binary file
        return 0
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def parse_numstat(output: str) -> list[FileChange]:
    """Parse ``added<TAB>deleted<TAB>path`` lines; malformed lines are skipped."""
    results: list[FileChange] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) != 3:
            logger.warning("Skipping malformed numstat line: %r", line)
            continue
        added_raw, deleted_raw, raw_path = parts
        added = _parse_count(added_raw.strip())
        deleted = _parse_count(deleted_raw.strip())
        if added is None or deleted is None:
            logger.warning("Skipping numstat line with invalid counts: %r", line)
            continue
        path = strip_dot_slash(to_posix(resolve_rename_path(raw_path.strip())))
        if not path:
            logger.warning("Skipping numstat line without a path: %r", line)
            continue
        results.append(FileChange(path=path, lines_added=added, lines_deleted=deleted))
    return results


def merge_changes(changes: Iterable[FileChange]) -> list[FileChange]:
    """Sum counts for paths that appear more than once, keeping first-seen order."""
    merged: dict[str, FileChange] = {}
    for change in changes:
        existing = merged.get(change.path)
        if existing is None:
            merged[change.path] = change
            continue
        merged[change.path] = FileChange(
            path=change.path,
            lines_added=existing.lines_added + change.lines_added,
            lines_deleted=existing.lines_deleted + change.lines_deleted,
        )
    return list(merged.values())


class ChangeSetAnalyzer:
    """Computes per-file line counts for a working tree's pending modifications."""

    def __init__(self, project_root: Path, runner: GitRunner | None = None) -> None:
        self.project_root = Path(project_root)
        self._runner = runner or self._default_runner

    def get_changed_files(
        self,
        paths: Sequence[str] | None = None,
        *,
        base: str | None = None,
    ) -> list[FileChange]:
        """Return staged + unstaged changes (or changes since *base*), one entry per path.

        Raises ChangeSetError when git cannot be run or the directory is not a
        working tree.
        """
        pathspec = ["--", *paths] if paths else []
        if base:
            listings = [self._git(["diff", base, *_NUMSTAT_ARGS, *pathspec])]
        else:
            listings = [
                self._git(["diff", "--staged", *_NUMSTAT_ARGS, *pathspec]),
                self._git(["diff", *_NUMSTAT_ARGS, *pathspec]),
            ]

        parsed = [change for listing in listings for change in parse_numstat(listing)]
        merged = merge_changes(parsed)
        logger.debug(
            "change set: %d numstat entries -> %d files (base=%s)",
            len(parsed), len(merged), base or "working tree",
        )
        return merged

    def change_stats_for(
        self, files: Sequence[str], *, base: str | None = None
    ) -> list[FileChange]:
        """Return one FileChange per requested file; files without pending edits get zeros."""
        if not files:
            return []
        wanted = [strip_dot_slash(to_posix(f)) for f in files]
        by_path = {c.path: c for c in self.get_changed_files(wanted, base=base)}
        stats: list[FileChange] = []
        seen: set[str] = set()
        for path in wanted:
            if path in seen:
                continue
            seen.add(path)
            change = by_path.get(path)
            if change is None:
                if (self.project_root / path).is_dir():
                    continue
                change = FileChange(path=path, lines_added=0, lines_deleted=0)
            stats.append(change)
        # Directory arguments expand to the files git reported underneath them.
        for path, change in by_path.items():
            if path not in seen:
                seen.add(path)
                stats.append(change)
        return stats

    def _git(self, args: list[str]) -> str:
        try:
            return self._runner(["git", *args], cwd=self.project_root)
        except FileNotFoundError as exc:
            raise ChangeSetError("git executable not found") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise ChangeSetError(
                f"git {' '.join(args)} failed in {self.project_root}: {detail}"
            ) from exc
        except OSError as exc:
            raise ChangeSetError(f"could not run git in {self.project_root}: {exc}") from exc

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
        )
        return completed.stdout


def list_changed_paths(analyzer: ChangeSetAnalyzer, *, base: str | None = None) -> list[str]:
    """Paths of the pending change set, in git order."""
    return [change.path for change in analyzer.get_changed_files(base=base)]
