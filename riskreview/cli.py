"""CLI entry point: argparse, subcommand routing, shared error handling."""

import argparse
import sys

from .config import load_config
from .core.fallbacks import print_error
from .errors import RiskReviewError
from .utils import configure_logging

USAGE_EXAMPLES = """
workflow:
  changes                       Pending change set (staged + unstaged)
  tier                          Review depth for the pending change set
  review                        Run tools, rank critical files, emit findings
  diagnose                      Normalized diagnostics from the toolchain
  fanin                         Most-imported files in the project

examples:
  riskreview review
  riskreview review src/payments --report .riskreview/critical-files.md
  riskreview review --last 3 --json --output findings.json
  riskreview diagnose src/api/handler.ts
  riskreview fanin --top 15
  riskreview config set critical_paths "src/payments/**"
"""


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="riskreview",
        description="riskreview - change risk and diagnostics for code review",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    p_review = sub.add_parser("review", help="Run the full review pipeline")
    p_review.add_argument("paths", nargs="*", metavar="PATH",
                          help="Files or directories to review (default: pending changes)")
    p_review.add_argument("--last", type=int, default=None, metavar="N",
                          help="Review the last N commits instead of the working tree")
    p_review.add_argument("--target", type=str, default=None,
                          help="Feature name recorded in the manifest")
    p_review.add_argument("--no-critical", action="store_true",
                          help="Skip critical-file selection")
    p_review.add_argument("--json", action="store_true")
    p_review.add_argument("--output", type=str, metavar="FILE",
                          help="Write findings JSON to file")
    p_review.add_argument("--report", type=str, metavar="FILE",
                          help="Write the critical-files markdown report to file")

    p_changes = sub.add_parser("changes", help="Pending change set with line counts")
    p_changes.add_argument("--json", action="store_true")

    p_fanin = sub.add_parser("fanin", help="Files with the most importers")
    p_fanin.add_argument("--top", type=int, default=20, help="Max files to show (default: 20)")
    p_fanin.add_argument("--json", action="store_true")

    p_diagnose = sub.add_parser("diagnose", help="Run the toolchain and normalize its output")
    p_diagnose.add_argument("paths", nargs="*", metavar="PATH",
                            help="Restrict diagnostics to these files (default: pending changes)")
    p_diagnose.add_argument("--json", action="store_true")

    p_tier = sub.add_parser("tier", help="Review tier for the pending change set")
    p_tier.add_argument("--json", action="store_true")

    p_config = sub.add_parser("config", help="Show/set/unset project configuration")
    config_sub = p_config.add_subparsers(dest="config_action")
    config_sub.add_parser("show", help="Show all config values")
    p_set = config_sub.add_parser("set", help="Set a config value")
    p_set.add_argument("config_key", type=str, help="Config key name")
    p_set.add_argument("config_value", type=str, help="Value to set")
    p_unset = config_sub.add_parser("unset", help="Reset a config key to default")
    p_unset.add_argument("config_key", type=str, help="Config key name")

    return parser


def main(argv: list[str] | None = None):
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)
    args._config = load_config()

    from .commands.changes import cmd_changes
    from .commands.config_cmd import cmd_config
    from .commands.diagnose import cmd_diagnose
    from .commands.fanin import cmd_fanin
    from .commands.review import cmd_review
    from .commands.tier import cmd_tier

    commands = {
        "review": cmd_review,
        "changes": cmd_changes,
        "fanin": cmd_fanin,
        "diagnose": cmd_diagnose,
        "tier": cmd_tier,
        "config": cmd_config,
    }

    try:
        commands[args.command](args)
    except RiskReviewError as exc:
        print_error(str(exc))
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(1)


if __name__ == "__main__":
    main()
