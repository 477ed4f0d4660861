"""Review-depth tiers for a change set.

Rules, first match wins:
1. any file on a configured critical path      -> full
2. file or line count at/over the full minimum -> full
3. documentation only                          -> skip
4. test/config only, within quick limits       -> quick
5. within standard limits                      -> standard
6. otherwise                                   -> full
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from riskreview.engine.changes import FileChange
from riskreview.enums import FileType, ReviewTier
from riskreview.utils import matches_path_pattern

logger = logging.getLogger(__name__)

_TEST_RE = re.compile(r"\.(test|spec)\.(ts|js|tsx|jsx)$|(^|/)test_[^/]+\.py$|_test\.py$")
_DOC_RE = re.compile(r"\.(md|rst|txt)$")
_CONFIG_RE = re.compile(
    r"(package\.json|tsconfig|\.config\.|eslint|pyproject\.toml|setup\.cfg|\.ya?ml$|\.toml$)"
)


@dataclass(frozen=True)
class TierThresholds:
    quick_max_files: int = 3
    quick_max_lines: int = 50
    quick_allowed_types: tuple[FileType, ...] = (FileType.TEST, FileType.CONFIG)
    standard_max_files: int = 10
    standard_max_lines: int = 200

    @property
    def full_min_files(self) -> int:
        return self.standard_max_files + 1

    @property
    def full_min_lines(self) -> int:
        return self.standard_max_lines + 1

    @classmethod
    def from_config(cls, config: dict) -> TierThresholds:
        defaults = cls()
        return cls(
            quick_max_files=config.get("tier_quick_max_files", defaults.quick_max_files),
            quick_max_lines=config.get("tier_quick_max_lines", defaults.quick_max_lines),
            standard_max_files=config.get(
                "tier_standard_max_files", defaults.standard_max_files
            ),
            standard_max_lines=config.get(
                "tier_standard_max_lines", defaults.standard_max_lines
            ),
        )


def _empty_breakdown() -> dict[FileType, int]:
    return {file_type: 0 for file_type in FileType}


@dataclass
class ChangeMetrics:
    total_files: int = 0
    total_lines: int = 0
    file_type_breakdown: dict[FileType, int] = field(default_factory=_empty_breakdown)
    has_critical_paths: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "totalFiles": self.total_files,
            "totalLines": self.total_lines,
            "fileTypeBreakdown": {
                str(file_type): count for file_type, count in self.file_type_breakdown.items()
            },
            "hasCriticalPaths": self.has_critical_paths,
        }


@dataclass
class TierRecommendation:
    tier: ReviewTier
    reason: str
    metrics: ChangeMetrics

    def to_dict(self) -> dict[str, object]:
        return {
            "tier": str(self.tier),
            "reason": self.reason,
            "metrics": self.metrics.to_dict(),
        }


def _files_phrase(count: int) -> str:
    return f"{count} file{'s' if count > 1 else ''}"


class ReviewTierClassifier:
    """Maps a change set's volume and file types onto a ReviewTier."""

    def __init__(
        self,
        thresholds: TierThresholds | None = None,
        critical_paths: Sequence[str] = (),
    ) -> None:
        self.thresholds = thresholds or TierThresholds()
        self.critical_paths = list(critical_paths)

    def analyze_file_type(self, path: str) -> FileType:
        if _TEST_RE.search(path):
            return FileType.TEST
        if _DOC_RE.search(path):
            return FileType.DOCUMENTATION
        if _CONFIG_RE.search(path):
            return FileType.CONFIG
        return FileType.IMPLEMENTATION

    def is_critical_path(self, path: str) -> bool:
        return any(matches_path_pattern(path, pattern) for pattern in self.critical_paths)

    def classify_changes(self, changes: Sequence[FileChange]) -> TierRecommendation:
        metrics = self._metrics(changes)
        tier = self._determine_tier(metrics)
        reason = self._reason(tier, metrics, changes)
        logger.debug("tier: %s (%s)", tier, reason)
        return TierRecommendation(tier=tier, reason=reason, metrics=metrics)

    def _metrics(self, changes: Sequence[FileChange]) -> ChangeMetrics:
        metrics = ChangeMetrics(total_files=len(changes))
        for change in changes:
            metrics.file_type_breakdown[self.analyze_file_type(change.path)] += 1
            metrics.total_lines += change.lines_changed
            if self.is_critical_path(change.path):
                metrics.has_critical_paths = True
        return metrics

    def _determine_tier(self, metrics: ChangeMetrics) -> ReviewTier:
        t = self.thresholds
        if metrics.has_critical_paths:
            return ReviewTier.FULL
        if metrics.total_files >= t.full_min_files or metrics.total_lines >= t.full_min_lines:
            return ReviewTier.FULL
        if metrics.total_files == 0:
            return ReviewTier.SKIP

        breakdown = metrics.file_type_breakdown
        if breakdown[FileType.DOCUMENTATION] == metrics.total_files:
            return ReviewTier.SKIP

        only_quick_types = all(
            count == 0 or file_type in t.quick_allowed_types
            for file_type, count in breakdown.items()
        )
        if (
            only_quick_types
            and metrics.total_files <= t.quick_max_files
            and metrics.total_lines <= t.quick_max_lines
        ):
            return ReviewTier.QUICK

        if (
            metrics.total_files <= t.standard_max_files
            and metrics.total_lines <= t.standard_max_lines
        ):
            return ReviewTier.STANDARD
        return ReviewTier.FULL

    def _reason(
        self, tier: ReviewTier, metrics: ChangeMetrics, changes: Sequence[FileChange]
    ) -> str:
        if metrics.has_critical_paths:
            critical = [c.path for c in changes if self.is_critical_path(c.path)]
            return f"Critical path changes detected: {', '.join(critical)}"
        if metrics.total_files == 0:
            return "No changes detected"
        if tier == ReviewTier.SKIP:
            return f"Pure documentation changes ({_files_phrase(metrics.total_files)})"
        if tier == ReviewTier.QUICK:
            types = "/".join(
                str(file_type)
                for file_type, count in metrics.file_type_breakdown.items()
                if count > 0
            )
            return (
                f"{types} only: {_files_phrase(metrics.total_files)}, "
                f"{metrics.total_lines} lines"
            )
        if tier == ReviewTier.STANDARD:
            return (
                f"Implementation changes: {_files_phrase(metrics.total_files)}, "
                f"{metrics.total_lines} lines"
            )

        t = self.thresholds
        if metrics.total_files >= t.full_min_files:
            return f"Large change: {metrics.total_files} files (threshold: {t.full_min_files})"
        if metrics.total_lines >= t.full_min_lines:
            return f"Large change: {metrics.total_lines} lines (threshold: {t.full_min_lines})"
        return "Comprehensive review recommended"
