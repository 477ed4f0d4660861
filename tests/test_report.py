"""Tests for riskreview.output.report — critical-files markdown."""

from __future__ import annotations

from riskreview.engine.changes import FileChange
from riskreview.engine.critical_files import ALGORITHM, CriticalFileSelector
from riskreview.output.report import render_critical_files_report


def _report(changes, fan_in=None, critical_paths=(), max_files=10):
    selector = CriticalFileSelector(fan_in or {}, critical_paths=critical_paths)
    return selector.select_critical_files(changes, [], max_files=max_files)


class TestRenderReport:
    def test_header(self):
        md = render_critical_files_report(_report([FileChange("a.ts", 1, 0)]), "2026-01-01T00:00:00Z")
        assert md.startswith("# Critical Files for Review\n")
        assert "**Generated**: 2026-01-01T00:00:00Z" in md
        assert f"**Algorithm**: {ALGORITHM}" in md
        assert "1 files changed, top 1 selected" in md

    def test_scoring_legend(self):
        md = render_critical_files_report(_report([]), "t")
        assert "- Blocker issues: +100 points each" in md
        assert "- Critical path match: +50 points" in md
        assert "- New file (no deleted lines): +50 points" in md
        assert "- Test file: -50 points (never below 0)" in md

    def test_empty_report(self):
        md = render_critical_files_report(_report([]), "t")
        assert "No files scored high enough for selection" in md
        assert "No changed files found." in md
        assert "**Inferred Critical Paths**: None" in md
        assert "**Configured Critical Paths**: None" in md

    def test_ranked_tables(self):
        changes = [FileChange("small.ts", 0, 1), FileChange("big.ts", 300, 0)]
        md = render_critical_files_report(_report(changes, max_files=1), "t")
        assert "| 1 |" in md and "| big.ts |" in md
        assert "| big.ts |" in md.split("## All Changed Files")[1]
        assert "Yes (Rank 1)" in md
        assert "| small.ts | 0.5 | No |" in md

    def test_critical_paths_listed(self):
        report = _report(
            [FileChange("src/hub.ts", 1, 0)],
            fan_in={"src/hub.ts": 30},
            critical_paths=["src/payments/**"],
        )
        md = render_critical_files_report(report, "t")
        assert "- src/hub.ts" in md
        assert "- src/payments/**" in md
        assert "inferred critical (high fan-in)" in md
