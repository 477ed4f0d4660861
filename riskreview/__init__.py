"""riskreview: change-risk ranking and tool diagnostics for code review."""

__version__ = "0.4.0"
