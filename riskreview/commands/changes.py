"""changes command: pending change set with per-file line counts."""

from ..engine.changes import ChangeSetAnalyzer
from ..utils import colorize, plural, print_table
from ._helpers import print_json, project_root


def cmd_changes(args):
    changes = ChangeSetAnalyzer(project_root()).get_changed_files()

    if args.json:
        print_json({"files": [c.to_dict() for c in changes]})
        return

    if not changes:
        print(colorize("\n  No pending changes.\n", "dim"))
        return

    total = sum(c.lines_changed for c in changes)
    print(colorize(f"\n  {plural(len(changes), 'file')} changed, {total} lines\n", "bold"))
    rows = [
        [c.path, colorize(f"+{c.lines_added}", "green"), colorize(f"-{c.lines_deleted}", "red"),
         str(c.lines_changed)]
        for c in changes
    ]
    print_table(["File", "Added", "Deleted", "Changed"], rows)
    print()
