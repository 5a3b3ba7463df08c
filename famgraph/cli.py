from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from . import config
from .integrity import audit_graph
from .mutations import FamilyTreeSession
from .persistence import ImportFormatError, dumps_graph, import_portable
from .plotly_graph.layout import compute_layout
from .plotly_graph.plotly_render import build_plotly_figure, write_html
from .tasks import InlineDispatcher


def _read(path: Path):
    if not path.exists():
        raise SystemExit(f"File not found: {path}")
    try:
        return import_portable(path.read_bytes())
    except ImportFormatError as e:
        raise SystemExit(f"{path}: {e}")


def cmd_check(args) -> int:
    graph = _read(Path(args.file_path))
    problems = audit_graph(graph)
    if not problems:
        print(f"OK: {len(graph.people)} people, no integrity problems")
        return 0
    print(f"{len(problems)} problem(s) in {args.file_path}:")
    for problem in problems:
        print(f"  - {problem}")
    return 1


def cmd_layout(args) -> int:
    graph = _read(Path(args.file_path))
    layout = compute_layout(graph)
    out = {
        "nodes": [
            {"id": pid, "x": x, "y": y, "generation": layout.generations[pid]}
            for pid, (x, y) in layout.positions.items()
        ],
        "edges": [{"id": e.id, "source": e.source, "target": e.target} for e in layout.edges],
    }
    print(json.dumps(out, indent=2))
    return 0


def cmd_render(args) -> int:
    graph = _read(Path(args.file_path))
    write_html(build_plotly_figure(graph), args.out)
    print(f"Wrote {args.out}")
    return 0


def cmd_snapshots(args) -> int:
    store = config.make_store()
    if args.show or args.restore:
        snapshot_id = args.show or args.restore
        graph = store.read_snapshot(snapshot_id)
        if graph is None:
            raise SystemExit(f"Snapshot not found: {snapshot_id}")
        if args.show:
            print(dumps_graph(graph))
            return 0
        session = FamilyTreeSession(store, InlineDispatcher())
        session.load()
        session.replace_graph(graph)
        print(f"Restored {snapshot_id} ({len(graph.people)} people)")
        return 0

    snapshots = store.list_snapshots()
    if not snapshots:
        print("No snapshots")
    for snap in snapshots:
        print(f"{snap['created_at']}  {snap['id']}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="famgraph")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("check", help="Report integrity problems in a family tree JSON file")
    p.add_argument("file_path")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("layout", help="Print computed node positions and edges as JSON")
    p.add_argument("file_path")
    p.set_defaults(func=cmd_layout)

    p = sub.add_parser("render", help="Write an interactive HTML chart")
    p.add_argument("file_path")
    p.add_argument("--out", default="family-tree.html")
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("snapshots", help="List, show or restore snapshots of the configured store")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--show", metavar="ID")
    group.add_argument("--restore", metavar="ID")
    p.set_defaults(func=cmd_snapshots)

    args = parser.parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
