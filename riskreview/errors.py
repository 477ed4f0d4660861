"""Exception hierarchy for pipeline-fatal failures.

Tool-local problems (a crashing linter, malformed JSON, a timeout) are never
raised; they are recorded on ``RawToolResult`` instead.
"""

from __future__ import annotations


class RiskReviewError(RuntimeError):
    """Base class for all riskreview errors."""


class ChangeSetError(RiskReviewError):
    """Version-control query failed or the directory is not a working tree."""


class SourceTreeError(RiskReviewError):
    """The source tree could not be enumerated."""


class CommandValidationError(RiskReviewError, ValueError):
    """A registry-sourced command contains a deny-listed shell metacharacter."""


class RegistryError(RiskReviewError):
    """Tool registry or toolchain file is missing required structure."""


class ReviewEngineError(RiskReviewError):
    """A review pipeline step failed; the cause is chained."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step


__all__ = [
    "ChangeSetError",
    "CommandValidationError",
    "RegistryError",
    "ReviewEngineError",
    "RiskReviewError",
    "SourceTreeError",
]
