"""Risk-weighted selection of the changed files that deserve the deepest review.

score = sum(count[severity] * multiplier[severity])
        + change_size_weight(lines_changed)
        + fan_in_weight(importers)
        + NEW_FILE_BONUS (no deleted lines)
        + CRITICAL_PATH_BONUS (configured critical path match)
        - TEST_FILE_PENALTY (test files, floored at 0)

Both weights saturate (``cap * (1 - exp(-x / scale))``): every extra line or
importer adds risk, but less than the one before, and neither can outweigh a
single blocker diagnostic. The parameters are encoded in ``ALGORITHM`` so
report consumers can detect formula changes.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from riskreview.engine.changes import FileChange
from riskreview.engine.diagnostics import Diagnostic, DiagnosticNormalizer, best_path_match
from riskreview.engine.imports import HIGH_FAN_IN_THRESHOLD, infer_critical_paths, is_test_file
from riskreview.engine.results import RawToolResult
from riskreview.engine.severity import SeverityExtractor
from riskreview.enums import SEVERITY_ORDER, Severity, empty_severity_counts
from riskreview.utils import matches_path_pattern, plural

logger = logging.getLogger(__name__)

CHANGE_SIZE_CAP = 50.0
CHANGE_SIZE_SCALE = 100.0
FAN_IN_CAP = 60.0
FAN_IN_SCALE = 15.0
CRITICAL_PATH_BONUS = 50
NEW_FILE_BONUS = 50
TEST_FILE_PENALTY = 50
DEFAULT_MAX_FILES = 10

ALGORITHM = (
    "risk-weighted-v2.1"
    f"+expsat(lines:{CHANGE_SIZE_CAP:g}/{CHANGE_SIZE_SCALE:g},"
    f"fan-in:{FAN_IN_CAP:g}/{FAN_IN_SCALE:g},"
    f"new-file:{NEW_FILE_BONUS},"
    f"critical-path:{CRITICAL_PATH_BONUS},"
    f"test-file:-{TEST_FILE_PENALTY})"
)


def _saturating(value: float, cap: float, scale: float) -> float:
    if value <= 0:
        return 0.0
    return cap * (1.0 - math.exp(-value / scale))


def change_size_weight(lines_changed: int) -> float:
    return _saturating(lines_changed, CHANGE_SIZE_CAP, CHANGE_SIZE_SCALE)


def fan_in_weight(importers: int) -> float:
    return _saturating(importers, FAN_IN_CAP, FAN_IN_SCALE)


def _fan_in_factor(importers: int) -> str:
    if importers > HIGH_FAN_IN_THRESHOLD:
        return f"high impact ({importers} imports)"
    if importers > 5:
        return f"medium impact ({importers} imports)"
    return f"low impact ({importers} imports)"


def _change_size_factor(lines_changed: int) -> str:
    if lines_changed > 200:
        return f"large change ({lines_changed} lines)"
    if lines_changed > 100:
        return f"medium change ({lines_changed} lines)"
    return f"small change ({lines_changed} lines)"


@dataclass
class FileRiskEntry:
    path: str
    score: float
    risk_factors: list[str]
    lines_changed: int
    import_fan_in: int
    severity_counts: dict[Severity, int] = field(default_factory=empty_severity_counts)

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "score": self.score,
            "riskFactors": list(self.risk_factors),
            "linesChanged": self.lines_changed,
            "importFanIn": self.import_fan_in,
            "severityCounts": {
                str(level): self.severity_counts.get(level, 0) for level in SEVERITY_ORDER
            },
        }


@dataclass
class CriticalFilesReport:
    top_files: list[FileRiskEntry]
    all_files: list[FileRiskEntry]
    inferred_critical_paths: list[str]
    configured_critical_paths: list[str]
    algorithm: str = ALGORITHM

    def to_dict(self) -> dict[str, object]:
        return {
            "topFiles": [entry.to_dict() for entry in self.top_files],
            "allFiles": [entry.to_dict() for entry in self.all_files],
            "inferredCriticalPaths": list(self.inferred_critical_paths),
            "configuredCriticalPaths": list(self.configured_critical_paths),
            "algorithm": self.algorithm,
        }


class CriticalFileSelector:
    """Ranks changed files by risk. Pure: all inputs arrive through arguments.

    *fan_in* is the FanInIndex snapshot for the project the changes belong to.
    """

    def __init__(
        self,
        fan_in: Mapping[str, int],
        normalizer: DiagnosticNormalizer | None = None,
        severity_extractor: SeverityExtractor | None = None,
        critical_paths: Sequence[str] = (),
    ) -> None:
        self.fan_in = dict(fan_in)
        self.normalizer = normalizer or DiagnosticNormalizer()
        self.severity = severity_extractor or SeverityExtractor()
        self.critical_paths = list(critical_paths)

    def select_critical_files(
        self,
        changes: Sequence[FileChange],
        tool_results: Iterable[RawToolResult],
        max_files: int = DEFAULT_MAX_FILES,
    ) -> CriticalFilesReport:
        inferred = infer_critical_paths(self.fan_in)
        if not changes:
            return CriticalFilesReport(
                top_files=[],
                all_files=[],
                inferred_critical_paths=inferred,
                configured_critical_paths=list(self.critical_paths),
            )

        diagnostics = self.normalizer.collect(tool_results)
        by_file = self._attribute(diagnostics, [change.path for change in changes])
        inferred_set = set(inferred)
        all_files = [
            self._score_file(change, by_file.get(change.path, []), inferred_set)
            for change in changes
        ]

        ranked = sorted(all_files, key=lambda entry: (-entry.score, entry.path))
        top_files = ranked[: max(0, max_files)]

        logger.debug(
            "critical files: %d scored, %d selected, %d diagnostics, %d inferred critical",
            len(all_files), len(top_files), len(diagnostics), len(inferred),
        )
        return CriticalFilesReport(
            top_files=top_files,
            all_files=all_files,
            inferred_critical_paths=inferred,
            configured_critical_paths=list(self.critical_paths),
        )

    @staticmethod
    def _attribute(
        diagnostics: Sequence[Diagnostic], paths: Sequence[str]
    ) -> dict[str, list[Diagnostic]]:
        """Group diagnostics under the changed file each one belongs to."""
        by_file: dict[str, list[Diagnostic]] = {}
        for diagnostic in diagnostics:
            if diagnostic.file is None:
                continue
            owner = best_path_match(diagnostic.file, paths)
            if owner is not None:
                by_file.setdefault(owner, []).append(diagnostic)
        return by_file

    def _score_file(
        self,
        change: FileChange,
        diagnostics: Sequence[Diagnostic],
        inferred: set[str],
    ) -> FileRiskEntry:
        risk_factors: list[str] = []
        counts = empty_severity_counts()
        for diagnostic in diagnostics:
            counts[diagnostic.severity] += 1

        score = 0.0
        for level in SEVERITY_ORDER:
            count = counts[level]
            if count:
                score += count * self.severity.get_score_multiplier(level)
                risk_factors.append(plural(count, f"{level} issue"))

        importers = self.fan_in.get(change.path, 0)
        if importers:
            score += fan_in_weight(importers)
            risk_factors.append(_fan_in_factor(importers))

        if change.lines_changed:
            score += change_size_weight(change.lines_changed)
            risk_factors.append(_change_size_factor(change.lines_changed))

        if change.lines_deleted == 0 and change.lines_added > 0:
            score += NEW_FILE_BONUS
            risk_factors.append("new file")

        for pattern in self.critical_paths:
            if matches_path_pattern(change.path, pattern):
                score += CRITICAL_PATH_BONUS
                risk_factors.append(f"critical path: {pattern}")
                break

        if change.path in inferred:
            risk_factors.append("inferred critical (high fan-in)")

        if is_test_file(change.path):
            score = max(0.0, score - TEST_FILE_PENALTY)
            risk_factors.append("test file (lower priority)")

        return FileRiskEntry(
            path=change.path,
            score=round(score, 1),
            risk_factors=risk_factors,
            lines_changed=change.lines_changed,
            import_fan_in=importers,
            severity_counts=counts,
        )
