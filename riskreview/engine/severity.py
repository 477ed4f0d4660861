"""Keyword severity classification and per-severity risk multipliers."""

from __future__ import annotations

import re

from riskreview.enums import Severity, empty_severity_counts

_BLOCKER_RE = re.compile(r"\b(error|errors|blocker|critical|fail|failed|failure)\b")
_WARNING_RE = re.compile(r"\b(warn|warning|warnings)\b")
_INFO_RE = re.compile(r"\b(info|note|hint)\b")

# Risk contributed by one issue of each severity.
SCORE_MULTIPLIERS: dict[Severity, int] = {
    Severity.BLOCKER: 100,
    Severity.CRITICAL: 75,
    Severity.MAJOR: 25,
    Severity.MINOR: 10,
    Severity.INFO: 5,
}


class SeverityExtractor:
    """Classifies free-text tool output lines into the severity scale."""

    def extract_severity(self, text: str | None) -> dict[Severity, int]:
        """Count lines per severity; each line is classified at most once (highest wins)."""
        counts = empty_severity_counts()
        if not text:
            return counts
        for line in text.splitlines():
            lower = line.lower()
            if _BLOCKER_RE.search(lower):
                counts[Severity.BLOCKER] += 1
            elif _WARNING_RE.search(lower):
                counts[Severity.MAJOR] += 1
            elif _INFO_RE.search(lower):
                counts[Severity.INFO] += 1
        return counts

    def get_score_multiplier(self, severity: Severity | str) -> int:
        return SCORE_MULTIPLIERS[Severity(severity)]
