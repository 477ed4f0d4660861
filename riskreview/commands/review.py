"""review command: the full change-risk review pipeline."""

from __future__ import annotations

from ..engine.changes import ChangeSetAnalyzer, list_changed_paths
from ..engine.review import ReviewEngine, ReviewFindings, ReviewOptions, default_scope
from ..engine.manifest import ReviewScope
from ..core.fallbacks import warn_best_effort
from ..output.report import render_critical_files_report
from ..utils import colorize, log, plural, print_table, safe_write_text
from ._helpers import print_json, project_root, status_label, write_json


def _base_ref(args) -> str | None:
    if args.last:
        return f"HEAD~{args.last}"
    return None


def cmd_review(args):
    root = project_root()
    config = args._config
    base = _base_ref(args)

    files = list(args.paths) or list_changed_paths(ChangeSetAnalyzer(root), base=base)
    if not files:
        print(colorize("\n  No changes to review.\n", "dim"))
        return

    scope = default_scope(args.paths, base=base, root=root)
    if args.target:
        scope = ReviewScope(scope.type, args.target)

    engine = ReviewEngine.for_project(root, config)
    if engine.tool_runner.toolchain is None:
        warn_best_effort(f"{engine.tool_runner.unavailable_reason}; quality checks will be skipped.")
    log(f"  Reviewing {plural(len(files), 'file')}...")
    findings = engine.analyze_files(
        files,
        ReviewOptions(scope=scope, enable_critical_selection=not args.no_critical, base=base),
    )

    if args.output:
        write_json(args.output, findings.to_dict())
        log(f"  Findings written to {args.output}")
    if args.report and findings.critical_files is not None:
        safe_write_text(
            args.report,
            render_critical_files_report(findings.critical_files, findings.timestamp),
        )
        log(f"  Critical-files report written to {args.report}")

    if args.json:
        print_json(findings.to_dict())
        return
    _print_findings(findings)


def _print_findings(findings: ReviewFindings) -> None:
    manifest = findings.manifest
    print(colorize(f"\n  Review tier: {str(manifest.recommended_tier).upper()}", "bold"))
    print(colorize(
        f"  {plural(manifest.total_files, 'file')}, {manifest.total_lines} lines"
        + (f", {manifest.language}" if manifest.language else ""), "dim"))
    print()

    rows = []
    for result in findings.tool_results:
        fix = colorize("auto-fix", "cyan") if result.auto_fixable and not result.success else ""
        rows.append([result.tool, result.check_type,
                     status_label(result.success, result.skipped), fix, result.reason or ""])
    print_table(["Tool", "Check", "Status", "", "Reason"], rows)

    critical = findings.critical_files
    if critical is None:
        print()
        return
    print(colorize(f"\n  Critical files (top {len(critical.top_files)})\n", "bold"))
    if not critical.top_files:
        print(colorize("  No files selected.", "dim"))
    else:
        print_table(
            ["#", "Score", "File", "Risk factors"],
            [[str(rank), f"{entry.score:g}", entry.path, ", ".join(entry.risk_factors) or "low risk"]
             for rank, entry in enumerate(critical.top_files, start=1)],
        )
    print()
