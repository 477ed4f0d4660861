"""Import fan-in analysis: how many project files depend on each file.

Scans JS/TS sources for ``from '<spec>'`` and ``require('<spec>')`` targets and
resolves relative specifiers against the importing file's directory. Bare and
aliased specifiers (``react``, ``@/lib/foo``) are not resolved and never count;
most architecturally significant imports in these codebases are relative.
"""

from __future__ import annotations

import logging
import os
import re
from collections import defaultdict
from collections.abc import Iterator
from pathlib import Path

from riskreview.core.fallbacks import log_best_effort_failure
from riskreview.errors import SourceTreeError
from riskreview.utils import DEFAULT_EXCLUSIONS, find_source_files, matches_exclusion, to_posix

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
_RESOLVE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
_JS_SPECIFIER_EXTENSIONS = {".js", ".mjs", ".cjs"}
TEST_DIRS = ("test", "tests", "__tests__", "__mocks__")
_TEST_NAME_RE = re.compile(r"\.(test|spec)\.[^.]+$")

_FROM_RE = re.compile(r"""\bfrom\s+['"]([^'"]+)['"]""")
_REQUIRE_RE = re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)""")

# Fan-in above this marks a file as inferred critical infrastructure.
HIGH_FAN_IN_THRESHOLD = 20


def extract_import_specifiers(content: str) -> list[str]:
    """Return every ``from '...'`` and ``require('...')`` target in *content*."""
    return [m.group(1) for m in _FROM_RE.finditer(content)] + [
        m.group(1) for m in _REQUIRE_RE.finditer(content)
    ]


def is_test_file(path: str) -> bool:
    return bool(_TEST_NAME_RE.search(path.rsplit("/", 1)[-1]))


def _iter_resolve_candidates(target: Path) -> Iterator[Path]:
    """Yield filesystem candidates for a relative specifier, in priority order."""
    yield target
    if target.suffix in _JS_SPECIFIER_EXTENSIONS:
        # ESM/NodeNext sources import `./x.js` while the file on disk is `x.ts`.
        stem = str(target.with_suffix(""))
        yield Path(stem + ".ts")
        yield Path(stem + ".tsx")
    for ext in _RESOLVE_EXTENSIONS:
        yield Path(str(target) + ext)
    for ext in _RESOLVE_EXTENSIONS:
        yield target / f"index{ext}"


class ImportGraphAnalyzer:
    """Builds per-file fan-in counts for a source tree."""

    def __init__(
        self,
        extensions: tuple[str, ...] = SOURCE_EXTENSIONS,
        exclude: tuple[str, ...] = (),
    ) -> None:
        self.extensions = extensions
        self.exclusions = tuple(exclude) + TEST_DIRS

    def analyze_fan_in(self, project_root: str | Path) -> dict[str, int]:
        """Map project-relative path -> number of other files importing it.

        Returns ``{}`` for a missing or empty project.
        """
        graph = self.build_graph(project_root)
        fan_in: dict[str, int] = defaultdict(int)
        for targets in graph.values():
            for target in targets:
                fan_in[target] += 1

        logger.debug(
            "fan-in: %d source files, %d imported files, %d above %d importers",
            len(graph),
            len(fan_in),
            sum(1 for count in fan_in.values() if count > HIGH_FAN_IN_THRESHOLD),
            HIGH_FAN_IN_THRESHOLD,
        )
        return dict(fan_in)

    def build_graph(self, project_root: str | Path) -> dict[str, set[str]]:
        """Map each source file to the set of project files it imports."""
        root = Path(project_root).resolve()
        if not root.is_dir():
            logger.debug("fan-in: project root %s does not exist", root)
            return {}

        graph: dict[str, set[str]] = {}
        for rel_file in self._source_files(root):
            try:
                content = (root / rel_file).read_text(errors="replace")
            except OSError as exc:
                log_best_effort_failure(logger, f"read {rel_file}", exc)
                continue
            targets: set[str] = set()
            for spec in extract_import_specifiers(content):
                resolved = self._resolve(spec, rel_file, root)
                if resolved is not None and resolved != rel_file:
                    targets.add(resolved)
            graph[rel_file] = targets
        return graph

    def _source_files(self, root: Path) -> list[str]:
        def _raise(err: OSError) -> None:
            raise SourceTreeError(f"cannot enumerate source tree at {root}: {err}") from err

        files = find_source_files(root, self.extensions, self.exclusions, onerror=_raise)
        return [f for f in files if not is_test_file(f)]

    def _resolve(self, spec: str, importer: str, root: Path) -> str | None:
        """Resolve a relative specifier to a project-relative file, or None."""
        if not spec.startswith("."):
            return None  # bare/aliased: not resolved
        base = Path(os.path.normpath(root / Path(importer).parent / spec))
        for candidate in _iter_resolve_candidates(base):
            if not candidate.is_file():
                continue
            try:
                rel_target = to_posix(str(candidate.relative_to(root)))
            except ValueError:
                return None  # outside the project root
            if self._is_ignored(rel_target):
                return None
            return rel_target
        return None

    def _is_ignored(self, rel_path: str) -> bool:
        parts = rel_path.split("/")[:-1]
        if any(part in DEFAULT_EXCLUSIONS or part.endswith(".egg-info") for part in parts):
            return True
        return any(matches_exclusion(rel_path, ex) for ex in self.exclusions)


def infer_critical_paths(
    fan_in: dict[str, int], threshold: int = HIGH_FAN_IN_THRESHOLD
) -> list[str]:
    """Files whose fan-in exceeds *threshold*, highest fan-in first."""
    hot = [(path, count) for path, count in fan_in.items() if count > threshold]
    hot.sort(key=lambda item: (-item[1], item[0]))
    return [path for path, _count in hot]
