"""External quality-check execution.

The toolchain file (``.riskreview/toolchain.yaml``) names the commands a
project uses and which check types each one covers::

    commands:
      eslint:
        command: npx eslint --format json ${files}
        provides: [linting]
    quality_checks:
      linting: [eslint]

Commands are tokenized with shlex and executed without a shell. The
``${files}`` token expands to the files under review (``.`` when none).
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import signal
import subprocess
import threading
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from riskreview.engine.registry import ToolRegistry
from riskreview.engine.results import RawToolResult
from riskreview.enums import CheckType
from riskreview.errors import CommandValidationError, RegistryError

logger = logging.getLogger(__name__)

FILES_PLACEHOLDER = "${files}"
DEFAULT_TIMEOUT = 120
DEFAULT_MAX_WORKERS = 4
# Grace period for collecting output after a killed tool.
REAP_TIMEOUT = 5

_DENY_LIST: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r";"), "command chaining (;)"),
    (re.compile(r"&"), "background execution (&)"),
    (re.compile(r"\|"), "pipe (|)"),
    (re.compile(r"`"), "command substitution (`)"),
    (re.compile(r"\$"), "variable or command substitution ($)"),
    (re.compile(r"[()]"), "subshell (parentheses)"),
    (re.compile(r"<"), "input redirection (<)"),
)


def validate_command(command: str) -> None:
    """Reject commands containing shell metacharacters.

    The ``${files}`` placeholder is the only permitted use of ``$``.
    Raises CommandValidationError naming the offending construct.
    """
    stripped = command.replace(FILES_PLACEHOLDER, "")
    for pattern, description in _DENY_LIST:
        if pattern.search(stripped):
            raise CommandValidationError(
                f"Command contains potentially dangerous pattern: {description}"
            )


def expand_command(template: str, files: Sequence[str] | None) -> list[str]:
    """Split *template* into argv, expanding ``${files}``."""
    file_args = list(files) if files else ["."]
    argv: list[str] = []
    for token in shlex.split(template):
        if token == FILES_PLACEHOLDER:
            argv.extend(file_args)
        elif FILES_PLACEHOLDER in token:
            argv.append(token.replace(FILES_PLACEHOLDER, " ".join(file_args)))
        else:
            argv.append(token)
    return argv


@dataclass(frozen=True)
class ToolCommand:
    command: str
    provides: tuple[str, ...] = ()


@dataclass
class Toolchain:
    commands: dict[str, ToolCommand] = field(default_factory=dict)
    quality_checks: dict[CheckType, list[str]] = field(default_factory=dict)
    language: str | None = None

    @classmethod
    def load(cls, path: str | Path) -> Toolchain:
        """Parse a toolchain file. Raises RegistryError on unreadable or malformed input."""
        toolchain_path = Path(path)
        try:
            parsed = yaml.safe_load(toolchain_path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise RegistryError(f"Failed to load toolchain from {toolchain_path}: {exc}") from exc
        if parsed is None:
            parsed = {}
        if not isinstance(parsed, dict):
            raise RegistryError(f"Toolchain {toolchain_path} must be a mapping")
        return cls.from_dict(parsed, source=str(toolchain_path))

    @classmethod
    def from_dict(cls, data: dict, *, source: str = "<toolchain>") -> Toolchain:
        raw_commands = data.get("commands") or {}
        raw_checks = data.get("quality_checks") or {}
        if not isinstance(raw_commands, dict) or not isinstance(raw_checks, dict):
            raise RegistryError(f"{source}: commands and quality_checks must be mappings")

        commands: dict[str, ToolCommand] = {}
        for name, entry in raw_commands.items():
            if isinstance(entry, str):
                commands[name] = ToolCommand(command=entry)
                continue
            if not isinstance(entry, dict) or not isinstance(entry.get("command"), str):
                raise RegistryError(f"{source}: command {name!r} needs a command string")
            commands[name] = ToolCommand(
                command=entry["command"],
                provides=tuple(entry.get("provides") or ()),
            )

        quality_checks: dict[CheckType, list[str]] = {}
        for key, tools in raw_checks.items():
            try:
                check_type = CheckType(key)
            except ValueError:
                logger.warning("%s: ignoring unknown check type %r", source, key)
                continue
            if isinstance(tools, str):
                tools = [tools]
            quality_checks[check_type] = [str(tool) for tool in tools or []]

        return cls(commands=commands, quality_checks=quality_checks, language=data.get("language"))


@dataclass(frozen=True)
class PlannedRun:
    check_type: CheckType
    tool: str
    command: str | None
    skip_reason: str | None = None


def kill_process_tree(proc: subprocess.Popen) -> None:
    """Kill a tool and everything it spawned.

    Tools start in their own session, so the process group id equals the
    tool's pid. Grandchildren (``npx`` -> ``node``) hold the output pipes and
    must die too, or reading the pipes blocks until they exit on their own.
    """
    if hasattr(os, "killpg"):
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except OSError as exc:
            logger.debug("killpg failed for pid %s: %s", proc.pid, exc)
    try:
        proc.kill()
    except OSError as exc:
        logger.debug("kill failed for pid %s: %s", proc.pid, exc)


class ToolRunner:
    """Runs the toolchain's quality checks in parallel, one RawToolResult per planned run.

    Tool-local failures never raise. ``cancel()`` kills every in-flight
    process; an interrupt during ``run_quality_checks`` cancels and re-raises.
    """

    def __init__(
        self,
        toolchain: Toolchain | None,
        cwd: str | Path,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
        registry: ToolRegistry | None = None,
        unavailable_reason: str = "No toolchain configured",
    ) -> None:
        self.toolchain = toolchain
        self.cwd = Path(cwd)
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self.registry = registry
        self.unavailable_reason = unavailable_reason
        self._lock = threading.Lock()
        self._active: set[subprocess.Popen] = set()
        self._cancelled = threading.Event()

    def plan(self) -> list[PlannedRun]:
        runs: list[PlannedRun] = []
        for check_type in CheckType:
            if self.toolchain is None:
                runs.append(PlannedRun(check_type, "none", None, self.unavailable_reason))
                continue
            tools = self.toolchain.quality_checks.get(check_type) or []
            if not tools:
                runs.append(PlannedRun(
                    check_type, "none", None, "No tools configured for this check type"
                ))
                continue
            for tool in tools:
                entry = self.toolchain.commands.get(tool)
                if entry is None:
                    logger.warning("Tool %s not found in toolchain commands", tool)
                    runs.append(PlannedRun(
                        check_type, tool, None, f"Tool {tool} has no command in the toolchain"
                    ))
                    continue
                runs.append(PlannedRun(check_type, tool, entry.command))
        return runs

    def run_quality_checks(self, files: Sequence[str] | None = None) -> list[RawToolResult]:
        """Execute every planned run and return results in plan order."""
        self._cancelled.clear()
        runs = self.plan()
        slots: list[RawToolResult | None] = [None] * len(runs)
        pending: dict[Future, int] = {}

        for idx, run in enumerate(runs):
            if run.command is None:
                slots[idx] = RawToolResult.skipped_check(
                    run.check_type, run.tool, run.skip_reason or "skipped"
                )

        executable = [idx for idx, slot in enumerate(slots) if slot is None]
        logger.debug(
            "quality checks: %d planned, %d to execute, %d files",
            len(runs), len(executable), len(files or []),
        )
        if not executable:
            return [slot for slot in slots if slot is not None]

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(executable)))
        try:
            for idx in executable:
                run = runs[idx]
                future = executor.submit(
                    self._run_tool, run.check_type, run.tool, run.command, files
                )
                pending[future] = idx
            for future in as_completed(pending):
                slots[pending[future]] = future.result()
        except BaseException:
            self.cancel()
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        return [slot for slot in slots if slot is not None]

    def cancel(self) -> None:
        """Kill all in-flight tool processes; runs not yet started are skipped."""
        self._cancelled.set()
        with self._lock:
            active = list(self._active)
        for proc in active:
            kill_process_tree(proc)

    @staticmethod
    def _reap(proc: subprocess.Popen, tool: str) -> tuple[str, str]:
        try:
            return proc.communicate(timeout=REAP_TIMEOUT)
        except subprocess.TimeoutExpired:
            # Something outside the process group still holds the pipes.
            logger.warning("Tool %s left output pipes open; discarding output", tool)
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()
            return "", ""

    def _install_hint(self, tool: str) -> str:
        hint = self.registry.install_hint(tool) if self.registry else None
        return hint or f"npm install --save-dev {tool}"

    def _run_tool(
        self,
        check_type: CheckType,
        tool: str,
        template: str,
        files: Sequence[str] | None,
    ) -> RawToolResult:
        if self._cancelled.is_set():
            return RawToolResult.skipped_check(check_type, tool, "cancelled")
        try:
            validate_command(template)
            argv = expand_command(template, files)
        except (CommandValidationError, ValueError) as exc:
            logger.warning("Refusing to run %s: %s", tool, exc)
            return RawToolResult(type=check_type, tool=tool, success=False, reason=str(exc))
        if not argv:
            return RawToolResult(
                type=check_type, tool=tool, success=False, reason="empty command"
            )

        logger.debug("running %s: %s", tool, " ".join(argv))
        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(self.cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                start_new_session=True,
            )
        except FileNotFoundError:
            logger.warning("Tool %s not available (%s not found)", tool, argv[0])
            return RawToolResult.skipped_check(
                check_type, tool, f"Tool not available. Install with: {self._install_hint(tool)}"
            )
        except OSError as exc:
            return RawToolResult(
                type=check_type, tool=tool, success=False, reason=f"could not start: {exc}"
            )

        with self._lock:
            self._active.add(proc)
        try:
            try:
                stdout, stderr = proc.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                kill_process_tree(proc)
                stdout, stderr = self._reap(proc, tool)
                logger.warning("Tool %s timed out after %ss", tool, self.timeout)
                return RawToolResult(
                    type=check_type,
                    tool=tool,
                    success=False,
                    reason=f"timed out after {self.timeout:g}s",
                    stdout=stdout or "",
                    stderr=stderr or "",
                )
        finally:
            with self._lock:
                self._active.discard(proc)

        if self._cancelled.is_set():
            return RawToolResult.skipped_check(check_type, tool, "cancelled")
        return RawToolResult(
            type=check_type,
            tool=tool,
            success=proc.returncode == 0,
            stdout=stdout or "",
            stderr=stderr or "",
            exit_code=proc.returncode,
        )
