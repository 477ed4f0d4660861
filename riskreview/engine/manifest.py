"""Review manifest: the tier-tagged context handed to downstream reviewers."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from riskreview.engine.changes import FileChange
from riskreview.engine.tiers import ReviewTierClassifier, TierRecommendation
from riskreview.enums import FileType, ReviewTier, ScopeType

logger = logging.getLogger(__name__)

MANIFEST_VERSION = "1.0"

_EXTENSION_LANGUAGES = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".cs": "csharp",
}

# Checked in order when the change set itself has no source files.
_MARKER_LANGUAGES = (
    ("tsconfig.json", "typescript"),
    ("package.json", "javascript"),
    ("pyproject.toml", "python"),
    ("setup.py", "python"),
    ("go.mod", "go"),
    ("Cargo.toml", "rust"),
)


def now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ReviewScope:
    type: ScopeType
    target: str

    def to_dict(self) -> dict[str, str]:
        return {"type": str(self.type), "target": self.target}


@dataclass(frozen=True)
class ChangedFile:
    path: str
    lines_changed: int
    change_type: FileType

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "lines_changed": self.lines_changed,
            "change_type": str(self.change_type),
        }


@dataclass
class ReviewManifest:
    feature: str
    generated_at: str
    recommended_tier: ReviewTier
    total_files: int
    total_lines: int
    breakdown: dict[FileType, int]
    changed_files: list[ChangedFile] = field(default_factory=list)
    language: str | None = None
    scope: ReviewScope | None = None
    version: str = MANIFEST_VERSION

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "version": self.version,
            "feature": self.feature,
            "generated_at": self.generated_at,
            "recommended_tier": str(self.recommended_tier),
            "change_analysis": {
                "total_files": self.total_files,
                "total_lines": self.total_lines,
                "breakdown": {str(k): v for k, v in self.breakdown.items()},
            },
            "changed_files": [f.to_dict() for f in self.changed_files],
            "language": self.language,
        }
        if self.scope is not None:
            payload["scope"] = {**self.scope.to_dict(), "file_count": len(self.changed_files)}
        return payload


def detect_language(paths: Sequence[str], project_root: Path | None = None) -> str | None:
    """Most common source language among *paths*, else from project marker files."""
    counts = Counter(
        _EXTENSION_LANGUAGES[suffix]
        for suffix in (Path(p).suffix.lower() for p in paths)
        if suffix in _EXTENSION_LANGUAGES
    )
    if counts:
        # Ties resolve to the language seen first.
        return counts.most_common(1)[0][0]
    if project_root is not None:
        for marker, language in _MARKER_LANGUAGES:
            if (project_root / marker).exists():
                return language
    return None


class ManifestGenerator:
    def __init__(
        self,
        project_root: str | Path,
        classifier: ReviewTierClassifier | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.classifier = classifier or ReviewTierClassifier()

    def generate_manifest(
        self,
        feature: str,
        changes: Sequence[FileChange],
        recommendation: TierRecommendation,
        scope: ReviewScope | None = None,
    ) -> ReviewManifest:
        changed_files = [
            ChangedFile(
                path=change.path,
                lines_changed=change.lines_changed,
                change_type=self.classifier.analyze_file_type(change.path),
            )
            for change in changes
        ]
        manifest = ReviewManifest(
            feature=feature,
            generated_at=now_iso(),
            recommended_tier=recommendation.tier,
            total_files=recommendation.metrics.total_files,
            total_lines=recommendation.metrics.total_lines,
            breakdown=dict(recommendation.metrics.file_type_breakdown),
            changed_files=changed_files,
            language=detect_language([c.path for c in changes], self.project_root),
            scope=scope,
        )
        logger.debug(
            "manifest: feature=%s tier=%s files=%d language=%s",
            feature, manifest.recommended_tier, len(changed_files), manifest.language,
        )
        return manifest
