"""Normalize heterogeneous quality-tool output into one Diagnostic shape.

Each supported tool has its own parser, selected from ``PARSERS`` by the
result's tool id:

  typescript / tsc  ``file(line,col): error|warning CODE: message``
  eslint            ``--format json`` array of per-file message lists
  prettier          one path per line needing reformatting
  vitest / jest     ``--reporter json`` object with testResults[].assertionResults[]

Unknown tools and malformed structured output yield no diagnostics (logged),
never an exception.
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from riskreview.engine.results import RawToolResult
from riskreview.enums import SEVERITY_ORDER, Severity, empty_severity_counts
from riskreview.utils import strip_dot_slash, to_posix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    tool: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    rule: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "severity": str(self.severity),
            "message": self.message,
            "tool": self.tool,
        }
        for key in ("file", "line", "column", "rule"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class DiagnosticSummary:
    total_issues: int
    by_severity: dict[Severity, int]
    pass_rate: int
    checks_run: int
    checks_passed: int

    def to_dict(self) -> dict[str, object]:
        return {
            "total_issues": self.total_issues,
            "by_severity": {str(level): self.by_severity[level] for level in SEVERITY_ORDER},
            "pass_rate": self.pass_rate,
            "checks_run": self.checks_run,
            "checks_passed": self.checks_passed,
        }


@dataclass(frozen=True)
class DiagnosticReport:
    summary: DiagnosticSummary
    issues: list[Diagnostic]

    def to_dict(self) -> dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "issues": [issue.to_dict() for issue in self.issues],
        }


# ── Format-specific parsers ─────────────────────────────────

_TSC_RE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<col>\d+)\):\s+(?P<level>error|warning)\s+"
    r"(?P<code>\w+):\s+(?P<message>.+)$",
    re.MULTILINE,
)

_ESLINT_SEVERITY = {2: Severity.CRITICAL, 1: Severity.MAJOR}

_PRETTIER_MARKER = "[warn]"
_PRETTIER_NOISE = (
    "Checking formatting",
    "Code style issues",
    "All matched files use Prettier",
)

PRETTIER_MESSAGE = "File is not formatted according to Prettier rules"


def parse_type_checker(stdout: str, tool: str) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for match in _TSC_RE.finditer(stdout):
        diagnostics.append(
            Diagnostic(
                severity=Severity.BLOCKER if match["level"] == "error" else Severity.MINOR,
                message=match["message"].strip(),
                tool=tool,
                file=match["file"].strip(),
                line=int(match["line"]),
                column=int(match["col"]),
                rule=match["code"],
            )
        )
    return diagnostics


def _eslint_severity(raw: object) -> Severity:
    return _ESLINT_SEVERITY.get(raw, Severity.INFO) if isinstance(raw, int) else Severity.INFO


def _optional_int(value: object) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def parse_linter_json(stdout: str, tool: str) -> list[Diagnostic]:
    try:
        parsed = json.loads(stdout)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning("%s: failed to parse JSON output: %s", tool, exc)
        return []
    if not isinstance(parsed, list):
        logger.warning("%s: JSON output is not an array", tool)
        return []

    diagnostics: list[Diagnostic] = []
    for file_result in parsed:
        if not isinstance(file_result, dict):
            continue
        messages = file_result.get("messages")
        if not isinstance(messages, list):
            continue
        file_path = file_result.get("filePath")
        for message in messages:
            if not isinstance(message, dict):
                continue
            rule = message.get("ruleId")
            diagnostics.append(
                Diagnostic(
                    severity=_eslint_severity(message.get("severity")),
                    message=str(message.get("message", "")),
                    tool=tool,
                    file=file_path if isinstance(file_path, str) else None,
                    line=_optional_int(message.get("line")),
                    column=_optional_int(message.get("column")),
                    rule=rule if isinstance(rule, str) else None,
                )
            )
    return diagnostics


def _formatter_path(line: str) -> str | None:
    text = line.strip()
    if text.startswith(_PRETTIER_MARKER):
        text = text[len(_PRETTIER_MARKER):].strip()
    if not text or text.startswith(_PRETTIER_NOISE):
        return None
    return text


def parse_formatter(stdout: str, tool: str, stderr: str = "") -> list[Diagnostic]:
    """Every listed path needs reformatting; ``--check`` also reports ``[warn] path`` on stderr."""
    lines = stdout.splitlines() + [
        line for line in stderr.splitlines() if line.strip().startswith(_PRETTIER_MARKER)
    ]
    diagnostics: list[Diagnostic] = []
    seen: set[str] = set()
    for line in lines:
        path = _formatter_path(line)
        if path is None or path in seen:
            continue
        seen.add(path)
        diagnostics.append(
            Diagnostic(severity=Severity.MINOR, message=PRETTIER_MESSAGE, tool=tool, file=path)
        )
    return diagnostics


def parse_test_runner_json(stdout: str, tool: str) -> list[Diagnostic]:
    try:
        parsed = json.loads(stdout)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning("%s: failed to parse JSON output: %s", tool, exc)
        return []
    if not isinstance(parsed, dict):
        logger.warning("%s: JSON output is not an object", tool)
        return []

    test_files = parsed.get("testResults")
    if not isinstance(test_files, list):
        return []

    diagnostics: list[Diagnostic] = []
    for test_file in test_files:
        if not isinstance(test_file, dict):
            continue
        file_path = test_file.get("name")
        for case in test_file.get("assertionResults") or []:
            if not isinstance(case, dict) or case.get("status") != "failed":
                continue
            failures = [str(m) for m in case.get("failureMessages") or []]
            diagnostics.append(
                Diagnostic(
                    severity=Severity.CRITICAL,
                    message="\n".join(failures) or "Test failed",
                    tool=tool,
                    file=file_path if isinstance(file_path, str) else None,
                )
            )
    return diagnostics


Parser = Callable[[RawToolResult], list[Diagnostic]]

PARSERS: dict[str, Parser] = {
    "typescript": lambda r: parse_type_checker(r.stdout or "", r.tool),
    "tsc": lambda r: parse_type_checker(r.stdout or "", r.tool),
    "eslint": lambda r: parse_linter_json(r.stdout or "", r.tool),
    "prettier": lambda r: parse_formatter(r.stdout or "", r.tool, r.stderr or ""),
    "vitest": lambda r: parse_test_runner_json(r.stdout or "", r.tool),
    "jest": lambda r: parse_test_runner_json(r.stdout or "", r.tool),
}


# ── Path matching ───────────────────────────────────────────


def path_matches(diagnostic_file: str, scope_path: str) -> bool:
    """Exact match, or *scope_path* is a trailing run of whole path components.

    ``/repo/src/a.ts`` matches ``src/a.ts``; ``src/data.ts`` does not match ``a.ts``.
    """
    left = strip_dot_slash(to_posix(diagnostic_file))
    right = strip_dot_slash(to_posix(scope_path))
    if not right:
        return False
    return left == right or left.endswith(f"/{right}")


def best_path_match(diagnostic_file: str, candidates: Iterable[str]) -> str | None:
    """The candidate a diagnostic belongs to: exact match first, else the longest suffix match.

    With ``index.ts`` and ``src/index.ts`` both changed, a diagnostic for
    ``src/index.ts`` is credited to that file only.
    """
    exact = strip_dot_slash(to_posix(diagnostic_file))
    best: str | None = None
    for candidate in candidates:
        if strip_dot_slash(to_posix(candidate)) == exact:
            return candidate
        if path_matches(diagnostic_file, candidate) and (
            best is None or len(candidate) > len(best)
        ):
            best = candidate
    return best


class DiagnosticNormalizer:
    """Parses RawToolResults and aggregates them into a DiagnosticReport."""

    def __init__(self, parsers: dict[str, Parser] | None = None) -> None:
        self.parsers = parsers if parsers is not None else PARSERS

    def parse(self, result: RawToolResult) -> list[Diagnostic]:
        parser = self.parsers.get(result.tool)
        if parser is None:
            logger.warning("No diagnostic parser for tool: %s", result.tool)
            return []
        return parser(result)

    def filter_to_scope(
        self, diagnostics: Iterable[Diagnostic], scope_files: Sequence[str]
    ) -> list[Diagnostic]:
        """Keep diagnostics for in-scope files (and those without a file reference)."""
        kept: list[Diagnostic] = []
        for diagnostic in diagnostics:
            if diagnostic.file is None or any(
                path_matches(diagnostic.file, scoped) for scoped in scope_files
            ):
                kept.append(diagnostic)
        return kept

    def collect(self, results: Iterable[RawToolResult]) -> list[Diagnostic]:
        """All diagnostics from non-skipped results, unfiltered."""
        diagnostics: list[Diagnostic] = []
        for result in results:
            if result.skipped:
                continue
            diagnostics.extend(self.parse(result))
        return diagnostics

    def aggregate(
        self,
        results: Iterable[RawToolResult],
        scope_files: Sequence[str] | None = None,
    ) -> DiagnosticReport:
        issues: list[Diagnostic] = []
        checks_run = 0
        checks_passed = 0

        for result in results:
            if result.skipped:
                continue
            checks_run += 1
            tool_issues = self.parse(result)
            if scope_files is not None:
                tool_issues = self.filter_to_scope(tool_issues, scope_files)
            issues.extend(tool_issues)
            if not tool_issues:
                checks_passed += 1

        pass_rate = math.floor(checks_passed / checks_run * 100 + 0.5) if checks_run else 100
        by_severity = empty_severity_counts()
        for issue in issues:
            by_severity[issue.severity] += 1

        logger.debug(
            "aggregate: %d issues, %d/%d checks passed (%d%%)",
            len(issues), checks_passed, checks_run, pass_rate,
        )
        return DiagnosticReport(
            summary=DiagnosticSummary(
                total_issues=len(issues),
                by_severity=by_severity,
                pass_rate=pass_rate,
                checks_run=checks_run,
                checks_passed=checks_passed,
            ),
            issues=issues,
        )
