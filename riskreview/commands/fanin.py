"""fanin command: the project's most-imported files."""

from collections import Counter

from ..engine.imports import HIGH_FAN_IN_THRESHOLD, ImportGraphAnalyzer
from ..utils import colorize, print_table
from ._helpers import print_json, project_root


def cmd_fanin(args):
    analyzer = ImportGraphAnalyzer(exclude=tuple(args._config.get("exclude") or ()))
    graph = analyzer.build_graph(project_root())
    fan_in: Counter[str] = Counter()
    for targets in graph.values():
        fan_in.update(targets)

    ranked = sorted(fan_in.items(), key=lambda item: (-item[1], item[0]))[: args.top]

    if args.json:
        print_json({
            "files": [
                {"path": path, "fanIn": count, "fanOut": len(graph.get(path, ()))}
                for path, count in ranked
            ],
            "threshold": HIGH_FAN_IN_THRESHOLD,
        })
        return

    if not ranked:
        print(colorize("\n  No resolvable relative imports found.\n", "dim"))
        return

    print(colorize(f"\n  Top {len(ranked)} files by fan-in ({len(graph)} source files)\n", "bold"))
    rows = []
    for path, count in ranked:
        marker = colorize("critical", "red") if count > HIGH_FAN_IN_THRESHOLD else ""
        rows.append([path, str(count), str(len(graph.get(path, ()))), marker])
    print_table(["File", "Fan-in", "Fan-out", ""], rows)
    print()
