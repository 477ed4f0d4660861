"""Markdown rendering of a CriticalFilesReport."""

from __future__ import annotations

from riskreview.engine.critical_files import (
    CHANGE_SIZE_CAP,
    CHANGE_SIZE_SCALE,
    CRITICAL_PATH_BONUS,
    FAN_IN_CAP,
    FAN_IN_SCALE,
    NEW_FILE_BONUS,
    TEST_FILE_PENALTY,
    CriticalFilesReport,
)
from riskreview.engine.imports import HIGH_FAN_IN_THRESHOLD
from riskreview.engine.severity import SCORE_MULTIPLIERS
from riskreview.enums import SEVERITY_ORDER


def _header(report: CriticalFilesReport, timestamp: str) -> list[str]:
    return [
        "# Critical Files for Review",
        "",
        f"**Generated**: {timestamp}",
        f"**Algorithm**: {report.algorithm}",
        f"**Scope**: {len(report.all_files)} files changed, "
        f"top {len(report.top_files)} selected for deep review",
        "",
    ]


def _scoring_factors() -> list[str]:
    lines = ["## Scoring Factors", ""]
    for level in SEVERITY_ORDER:
        lines.append(f"- {level.capitalize()} issues: +{SCORE_MULTIPLIERS[level]} points each")
    lines += [
        f"- Import fan-in: up to +{FAN_IN_CAP:g} points, "
        f"{FAN_IN_CAP:g} x (1 - e^(-imports/{FAN_IN_SCALE:g}))",
        f"- Lines changed: up to +{CHANGE_SIZE_CAP:g} points, "
        f"{CHANGE_SIZE_CAP:g} x (1 - e^(-lines/{CHANGE_SIZE_SCALE:g}))",
        f"- New file (no deleted lines): +{NEW_FILE_BONUS} points",
        f"- Critical path match: +{CRITICAL_PATH_BONUS} points",
        f"- Test file: -{TEST_FILE_PENALTY} points (never below 0)",
        "",
    ]
    return lines


def _critical_paths(report: CriticalFilesReport) -> list[str]:
    lines = ["## Critical Path Analysis", ""]
    if report.inferred_critical_paths:
        lines.append(f"**Inferred Critical Paths** (by import fan-in >{HIGH_FAN_IN_THRESHOLD}):")
        lines += [f"- {path}" for path in report.inferred_critical_paths]
        lines.append("")
    else:
        lines += [
            f"**Inferred Critical Paths**: None (no files with >{HIGH_FAN_IN_THRESHOLD} imports)",
            "",
        ]
    if report.configured_critical_paths:
        lines.append("**Configured Critical Paths** (critical_paths config):")
        lines += [f"- {pattern}" for pattern in report.configured_critical_paths]
        lines.append("")
    else:
        lines += [
            "**Configured Critical Paths**: None "
            "(add with `riskreview config set critical_paths <glob>`)",
            "",
        ]
    return lines


def _top_files(report: CriticalFilesReport) -> list[str]:
    lines = [f"## Top {len(report.top_files)} Critical Files", ""]
    if not report.top_files:
        return lines + ["No files scored high enough for selection. All changes appear low-risk.", ""]
    lines += ["| Rank | Score | File | Risk Factors |", "|------|-------|------|--------------|"]
    for rank, entry in enumerate(report.top_files, start=1):
        factors = ", ".join(entry.risk_factors) or "low risk"
        lines.append(f"| {rank} | {entry.score} | {entry.path} | {factors} |")
    lines.append("")
    return lines


def _all_files(report: CriticalFilesReport) -> list[str]:
    lines = [f"## All Changed Files ({len(report.all_files)} total)", ""]
    if not report.all_files:
        return lines + ["No changed files found.", ""]
    ranks = {entry.path: rank for rank, entry in enumerate(report.top_files, start=1)}
    lines += ["| File | Score | Included in Review |", "|------|-------|--------------------|"]
    for entry in report.all_files:
        rank = ranks.get(entry.path)
        status = f"Yes (Rank {rank})" if rank else "No"
        lines.append(f"| {entry.path} | {entry.score} | {status} |")
    lines.append("")
    return lines


def render_critical_files_report(report: CriticalFilesReport, timestamp: str) -> str:
    lines = (
        _header(report, timestamp)
        + _scoring_factors()
        + _critical_paths(report)
        + _top_files(report)
        + _all_files(report)
    )
    lines += [
        "---",
        f"**Note**: Focus your deep review on the Top {len(report.top_files)} files. "
        "Other files should receive basic checks only.",
    ]
    return "\n".join(lines) + "\n"
