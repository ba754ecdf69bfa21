from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from .config import load_config
from .dsl.regenerate import regenerate_prompt
from .graph.serialize import graph_from_dict
from .routing.router import route_all, routes_to_dict
from .server import run as run_server
from .session import DiagramSession
from .tables import export_workbook, load_tables


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with a clean format for terminal output."""
    level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []
    root_logger.addHandler(handler)


def _read_text(path: str) -> str:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Prompt file not found: {p}")
    return p.read_text(encoding="utf-8")


def _read_state(path: str):
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"State file not found: {p}")
    data = json.loads(p.read_text(encoding="utf-8"))
    return graph_from_dict(data), data.get("prompt")


def _emit(data, out: str | None) -> None:
    text = json.dumps(data, indent=2)
    if out:
        Path(out).write_text(text, encoding="utf-8")
        logging.getLogger(__name__).info(f"Wrote {out}")
    else:
        print(text)


def cmd_parse(args: argparse.Namespace) -> None:
    setup_logging(args.verbose)
    session = DiagramSession(load_config())
    if args.state:
        graph, prompt = _read_state(args.state)
        session.load_graph(graph, prompt)

    status = session.update_from_text(_read_text(args.prompt), use_remote=args.remote or None)
    data = session.snapshot()
    data["remote"] = status.remote
    _emit(data, args.out)


def cmd_regenerate(args: argparse.Namespace) -> None:
    graph, _ = _read_state(args.state)
    print(regenerate_prompt(graph.nodes, graph.edges, graph.clusters))


def cmd_route(args: argparse.Namespace) -> None:
    setup_logging(args.verbose)
    graph, _ = _read_state(args.state)
    _emit({"routes": routes_to_dict(route_all(graph))}, None)


def cmd_import(args: argparse.Namespace) -> None:
    print(load_tables(Path(args.table), Path(args.edges) if args.edges else None))


def cmd_export(args: argparse.Namespace) -> None:
    setup_logging()
    session = DiagramSession(load_config())
    session.update_from_text(_read_text(args.prompt), use_remote=False)
    export_workbook(session.graph, Path(args.out))
    logging.getLogger(__name__).info(f"Exported {len(session.nodes)} nodes to {args.out}")


def cmd_serve(args: argparse.Namespace) -> None:
    setup_logging()
    run_server(host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vizcode", description="Text-to-diagram CLI")
    sub = p.add_subparsers(dest="cmd", required=True)

    # vizcode parse
    p_parse = sub.add_parser("parse", help="Parse a prompt file into a laid-out, routed graph")
    p_parse.add_argument("prompt", help="Prompt file in the diagram DSL")
    p_parse.add_argument("--state", help="Previous output JSON; ids and positions are kept where possible")
    p_parse.add_argument("--out", help="Write JSON here instead of stdout")
    p_parse.add_argument("--remote", action="store_true", help="Also try the remote parse service")
    p_parse.add_argument("-v", "--verbose", action="store_true")
    p_parse.set_defaults(func=cmd_parse)

    # vizcode regenerate
    p_regen = sub.add_parser("regenerate", help="Print the canonical prompt of a saved graph")
    p_regen.add_argument("state")
    p_regen.set_defaults(func=cmd_regenerate)

    # vizcode route
    p_route = sub.add_parser("route", help="Print edge routes for a saved graph")
    p_route.add_argument("state")
    p_route.add_argument("-v", "--verbose", action="store_true")
    p_route.set_defaults(func=cmd_route)

    # vizcode import
    p_import = sub.add_parser("import", help="Print DSL built from an .xlsx workbook or nodes CSV")
    p_import.add_argument("table")
    p_import.add_argument("--edges", help="Edges CSV, when TABLE is a nodes CSV")
    p_import.set_defaults(func=cmd_import)

    # vizcode export
    p_export = sub.add_parser("export", help="Parse a prompt and write a Nodes/Edges workbook")
    p_export.add_argument("prompt")
    p_export.add_argument("out")
    p_export.set_defaults(func=cmd_export)

    # vizcode serve
    p_serve = sub.add_parser("serve", help="Run the parse service")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=5001)
    p_serve.set_defaults(func=cmd_serve)

    return p


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
