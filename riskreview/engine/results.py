"""Raw outcome of one external quality-check invocation."""

from __future__ import annotations

from dataclasses import dataclass

from riskreview.enums import CheckType


@dataclass(frozen=True)
class RawToolResult:
    """One tool run before normalization.

    ``skipped`` results carry no diagnostics and are excluded from pass/fail
    accounting. ``success`` is the process outcome (exit status 0), left as
    None for skipped checks.
    """

    type: CheckType
    tool: str
    success: bool | None = None
    skipped: bool = False
    reason: str | None = None
    stdout: str | None = None
    stderr: str | None = None
    exit_code: int | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"type": str(self.type), "tool": self.tool}
        if self.success is not None:
            payload["success"] = self.success
        if self.skipped:
            payload["skipped"] = True
        for key, value in (
            ("reason", self.reason),
            ("stdout", self.stdout),
            ("stderr", self.stderr),
            ("exitCode", self.exit_code),
        ):
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> RawToolResult:
        return cls(
            type=CheckType(data["type"]),
            tool=str(data["tool"]),
            success=data.get("success"),
            skipped=bool(data.get("skipped", False)),
            reason=data.get("reason"),
            stdout=data.get("stdout"),
            stderr=data.get("stderr"),
            exit_code=data.get("exitCode"),
        )

    @classmethod
    def skipped_check(cls, check_type: CheckType, tool: str, reason: str) -> RawToolResult:
        return cls(type=check_type, tool=tool, skipped=True, reason=reason)
