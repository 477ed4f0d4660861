"""diagnose command: run the toolchain and print normalized diagnostics."""

from ..engine.changes import ChangeSetAnalyzer, list_changed_paths
from ..core.fallbacks import warn_best_effort
from ..engine.diagnostics import DiagnosticNormalizer
from ..engine.review import ReviewEngine
from ..enums import SEVERITY_ORDER
from ..utils import colorize, log, plural, print_table
from ._helpers import print_json, project_root, severity_color, status_label


def cmd_diagnose(args):
    root = project_root()
    files = list(args.paths) or list_changed_paths(ChangeSetAnalyzer(root))
    engine = ReviewEngine.for_project(root, args._config)
    if engine.tool_runner.toolchain is None:
        warn_best_effort(f"{engine.tool_runner.unavailable_reason}; quality checks will be skipped.")

    log(f"  Running quality checks on {plural(len(files), 'file')}...")
    results = engine.tool_runner.run_quality_checks(files)
    report = DiagnosticNormalizer().aggregate(results, scope_files=files or None)

    if args.json:
        print_json(report.to_dict())
        return

    summary = report.summary
    print(colorize(
        f"\n  {summary.checks_passed}/{summary.checks_run} checks passed "
        f"({summary.pass_rate}%), {plural(summary.total_issues, 'issue')}", "bold"))
    counts = ", ".join(
        colorize(f"{summary.by_severity[level]} {level}", severity_color(level))
        for level in SEVERITY_ORDER
        if summary.by_severity[level]
    )
    if counts:
        print(f"  {counts}")
    print()

    print_table(
        ["Tool", "Check", "Status", "Reason"],
        [[r.tool, str(r.type), status_label(bool(r.success), r.skipped), r.reason or ""]
         for r in results],
    )

    if report.issues:
        print()
        rows = []
        for issue in sorted(report.issues, key=lambda i: (i.severity.rank, i.file or "", i.line or 0)):
            location = issue.file or "-"
            if issue.line is not None:
                location += f":{issue.line}"
            rows.append([
                colorize(str(issue.severity), severity_color(issue.severity)),
                issue.tool,
                location,
                issue.message[:100],
            ])
        print_table(["Severity", "Tool", "Location", "Message"], rows)
    print()
