"""Canonical enums for diagnostics, check types and review tiers.

StrEnum values compare equal to their string values (Severity.BLOCKER == "blocker"),
so payloads read back from JSON compare cleanly against enum members.
"""

from __future__ import annotations

import enum


class Severity(enum.StrEnum):
    BLOCKER = "blocker"
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Lower rank = more severe (blocker is 0)."""
        return SEVERITY_ORDER.index(self)


# Most severe first.
SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.BLOCKER,
    Severity.CRITICAL,
    Severity.MAJOR,
    Severity.MINOR,
    Severity.INFO,
)


def empty_severity_counts() -> dict[Severity, int]:
    return {level: 0 for level in SEVERITY_ORDER}


class CheckType(enum.StrEnum):
    TYPE_CHECKING = "type_checking"
    LINTING = "linting"
    TESTING = "testing"
    FORMATTING = "formatting"


class ReviewTier(enum.StrEnum):
    SKIP = "skip"
    QUICK = "quick"
    STANDARD = "standard"
    FULL = "full"


class FileType(enum.StrEnum):
    IMPLEMENTATION = "implementation"
    TEST = "test"
    DOCUMENTATION = "documentation"
    CONFIG = "config"


class ScopeType(enum.StrEnum):
    FILE = "file"
    DIRECTORY = "directory"
    COMMITS = "commits"
    FEATURE = "feature"
