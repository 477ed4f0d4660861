"""Review pipeline: changes -> tier -> manifest -> quality checks -> critical files -> findings.

Every step that can fail is wrapped in ReviewEngineError naming the step. Tool
failures are data (RawToolResult), not errors, so one broken tool never aborts
a review.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from riskreview.engine.changes import ChangeSetAnalyzer
from riskreview.engine.critical_files import (
    DEFAULT_MAX_FILES,
    CriticalFileSelector,
    CriticalFilesReport,
)
from riskreview.engine.imports import ImportGraphAnalyzer
from riskreview.engine.manifest import ManifestGenerator, ReviewManifest, ReviewScope, now_iso
from riskreview.engine.registry import ToolRegistry
from riskreview.engine.results import RawToolResult
from riskreview.engine.tiers import ReviewTierClassifier, TierThresholds
from riskreview.engine.toolchain import Toolchain, ToolRunner
from riskreview.enums import ScopeType
from riskreview.errors import ReviewEngineError, RiskReviewError

logger = logging.getLogger(__name__)

SelectorFactory = Callable[[], CriticalFileSelector]


@dataclass(frozen=True)
class ReviewOptions:
    scope: ReviewScope
    enable_critical_selection: bool = True
    # Diff against this ref instead of the working tree (commit-range scope).
    base: str | None = None


@dataclass(frozen=True)
class EnrichedToolResult:
    tool: str
    check_type: str
    success: bool
    output: str
    auto_fixable: bool
    skipped: bool = False
    reason: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "tool": self.tool,
            "checkType": self.check_type,
            "success": self.success,
            "output": self.output,
            "autoFixable": self.auto_fixable,
        }
        if self.skipped:
            payload["skipped"] = True
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload


@dataclass
class ReviewFindings:
    raw_tool_results: list[RawToolResult]
    tool_results: list[EnrichedToolResult]
    manifest: ReviewManifest
    critical_files: CriticalFilesReport | None = None
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, object]:
        manifest = self.manifest.to_dict()
        payload: dict[str, object] = {
            "rawToolResults": [r.to_dict() for r in self.raw_tool_results],
            "toolResults": [r.to_dict() for r in self.tool_results],
        }
        if self.critical_files is not None:
            payload["criticalFiles"] = self.critical_files.to_dict()
        payload["manifest"] = manifest
        payload["metadata"] = {
            "scope": manifest.get("scope"),
            "timestamp": self.timestamp,
            "tier": str(self.manifest.recommended_tier),
        }
        return payload


def combine_output(stdout: str | None, stderr: str | None) -> str:
    """Join trimmed stdout and stderr, dropping empty segments."""
    parts = [part.strip() for part in (stdout, stderr) if part and part.strip()]
    return "\n\n".join(parts)


@contextmanager
def _step(name: str) -> Iterator[None]:
    try:
        yield
    except ReviewEngineError:
        raise
    except (RiskReviewError, OSError, ValueError) as exc:
        logger.debug("review step %s failed: %s", name, exc)
        raise ReviewEngineError(name, str(exc)) from exc


class ReviewEngine:
    """Sequences the review pipeline. All collaborators are injected."""

    def __init__(
        self,
        change_analyzer: ChangeSetAnalyzer,
        tier_classifier: ReviewTierClassifier,
        manifest_generator: ManifestGenerator,
        tool_runner: ToolRunner,
        selector_factory: SelectorFactory,
        registry: ToolRegistry,
        max_critical_files: int = DEFAULT_MAX_FILES,
    ) -> None:
        self.change_analyzer = change_analyzer
        self.tier_classifier = tier_classifier
        self.manifest_generator = manifest_generator
        self.tool_runner = tool_runner
        self.selector_factory = selector_factory
        self.registry = registry
        self.max_critical_files = max_critical_files

    @classmethod
    def for_project(cls, project_root: str | Path, config: dict) -> ReviewEngine:
        """Wire the default collaborators from a loaded project config."""
        root = Path(project_root)
        critical_paths = list(config.get("critical_paths") or [])

        registry = ToolRegistry.load(config.get("registry_path") or None)
        toolchain_path = root / config.get("toolchain_path", ".riskreview/toolchain.yaml")
        toolchain = Toolchain.load(toolchain_path) if toolchain_path.is_file() else None

        classifier = ReviewTierClassifier(
            thresholds=TierThresholds.from_config(config),
            critical_paths=critical_paths,
        )
        runner = ToolRunner(
            toolchain,
            root,
            timeout=config.get("tool_timeout_seconds", 120),
            max_workers=config.get("max_parallel_tools", 4),
            registry=registry,
            unavailable_reason=f"No toolchain file at {toolchain_path}",
        )
        exclude = tuple(config.get("exclude") or ())

        def selector_factory() -> CriticalFileSelector:
            fan_in = ImportGraphAnalyzer(exclude=exclude).analyze_fan_in(root)
            return CriticalFileSelector(fan_in, critical_paths=critical_paths)

        return cls(
            change_analyzer=ChangeSetAnalyzer(root),
            tier_classifier=classifier,
            manifest_generator=ManifestGenerator(root, classifier),
            tool_runner=runner,
            selector_factory=selector_factory,
            registry=registry,
            max_critical_files=config.get("max_critical_files", DEFAULT_MAX_FILES),
        )

    def analyze_files(self, file_list: Sequence[str], options: ReviewOptions) -> ReviewFindings:
        logger.debug(
            "review: %d files, scope=%s:%s, critical=%s",
            len(file_list), options.scope.type, options.scope.target,
            options.enable_critical_selection,
        )

        with _step("change statistics"):
            changes = self.change_analyzer.change_stats_for(file_list, base=options.base)

        with _step("tier classification"):
            recommendation = self.tier_classifier.classify_changes(changes)

        with _step("manifest"):
            manifest = self.manifest_generator.generate_manifest(
                options.scope.target, changes, recommendation, scope=options.scope
            )

        with _step("quality checks"):
            files = [change.path for change in changes] or list(file_list)
            raw_results = self.tool_runner.run_quality_checks(files)

        critical: CriticalFilesReport | None = None
        if options.enable_critical_selection:
            with _step("critical file selection"):
                selector = self.selector_factory()
                critical = selector.select_critical_files(
                    changes, raw_results, max_files=self.max_critical_files
                )

        enriched = [self._enrich(result) for result in raw_results]
        logger.debug(
            "review packaged: %d tool results, critical=%s",
            len(enriched), critical is not None,
        )
        return ReviewFindings(
            raw_tool_results=raw_results,
            tool_results=enriched,
            manifest=manifest,
            critical_files=critical,
        )

    def _enrich(self, result: RawToolResult) -> EnrichedToolResult:
        return EnrichedToolResult(
            tool=result.tool,
            check_type=str(result.type),
            success=True if result.skipped else bool(result.success),
            output=combine_output(result.stdout, result.stderr),
            auto_fixable=self.registry.is_auto_fixable(result.tool),
            skipped=result.skipped,
            reason=result.reason,
        )


def default_scope(
    paths: Sequence[str], *, base: str | None = None, root: Path | None = None
) -> ReviewScope:
    """Describe what is being reviewed, for manifests and reports."""
    if base:
        return ReviewScope(ScopeType.COMMITS, base)
    if len(paths) == 1:
        target = paths[0]
        is_dir = ((root or Path.cwd()) / target).is_dir()
        kind = ScopeType.DIRECTORY if is_dir else ScopeType.FILE
        return ReviewScope(kind, target)
    if paths:
        return ReviewScope(ScopeType.FILE, ", ".join(paths))
    return ReviewScope(ScopeType.FEATURE, "working-tree")
