from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import timedelta

from rich.console import Console
from rich.table import Table

from mesh_graph.settings import settings


def _configure_logging() -> None:
    import logging

    level = (settings.log_level or "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def cmd_version() -> int:
    from mesh_graph import __version__

    print(__version__)
    return 0


def _edge_table(traffic_map) -> Table:
    from mesh_graph.graph import RESPONSE_TIME

    table = Table(title="Edge response times")
    table.add_column("Source", style="cyan")
    table.add_column("Destination", style="blue")
    table.add_column("ms", style="green", justify="right")
    for edge in sorted(traffic_map.edges(), key=lambda e: (e.source.id, e.dest.id)):
        val = edge.metadata.get(RESPONSE_TIME)
        table.add_row(edge.source.id, edge.dest.id, "-" if val is None else f"{val:.2f}")
    return table


async def _enrich(traffic_map, args: argparse.Namespace):
    from mesh_graph.appender import AppenderPipeline, GlobalInfo, NamespaceInfo, ResponseTimeAppender

    infra = settings.infrastructure_namespace_set()
    namespaces = {
        name: NamespaceInfo(
            name=name,
            duration=timedelta(seconds=args.duration_s),
            infrastructure_namespaces=infra,
        )
        for name in args.namespace
    }
    pipeline = AppenderPipeline(
        [
            ResponseTimeAppender(
                graph_type=args.graph_type,
                inject_service_nodes=args.inject_service_nodes,
                namespaces=namespaces,
                quantile=args.quantile,
                query_time=args.query_time,
            )
        ]
    )
    async with GlobalInfo() as global_info:
        return await pipeline.run(traffic_map, global_info, namespaces)


def cmd_enrich(args: argparse.Namespace) -> int:
    _configure_logging()
    from mesh_graph.errors import ClientConstructionError
    from mesh_graph.graph import decode_traffic_map, encode_traffic_map

    err = Console(stderr=True)
    try:
        with open(args.path, encoding="utf-8") as f:
            traffic_map = decode_traffic_map(json.load(f))
    except (OSError, ValueError) as e:
        err.print(f"unable to read traffic map {args.path}: {e}", style="red", markup=False)
        return 2

    try:
        report = asyncio.run(_enrich(traffic_map, args))
    except ClientConstructionError as e:
        err.print(f"[red]{e}[/red]")
        return 2

    out = json.dumps(encode_traffic_map(traffic_map), indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(out + "\n")
    else:
        print(out)

    err.print(_edge_table(traffic_map))
    for e in report.errors:
        err.print(f"[yellow]{e}[/yellow]")
    return 0 if report.ok else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mesh-graph")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("version").set_defaults(func=lambda _a: cmd_version())

    enrich = sub.add_parser("enrich", help="Annotate a traffic map JSON file with response times")
    enrich.add_argument("path", help="Traffic map JSON file")
    enrich.add_argument(
        "--namespace", action="append", required=True, help="Namespace to enrich (repeatable)"
    )
    enrich.add_argument("--graph-type", default=settings.graph_type, help="app|versionedApp|workload|service")
    enrich.add_argument("--duration-s", type=int, default=settings.duration_s)
    enrich.add_argument("--quantile", type=float, default=settings.quantile)
    enrich.add_argument("--query-time", type=float, default=None, help="Unix seconds, default now")
    enrich.add_argument(
        "--inject-service-nodes",
        action=argparse.BooleanOptionalAction,
        default=settings.inject_service_nodes,
    )
    enrich.add_argument("--output", default=None, help="Write JSON here instead of stdout")
    enrich.set_defaults(func=cmd_enrich)

    return p


def app(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    rc = args.func(args)
    raise SystemExit(rc)


if __name__ == "__main__":
    app(sys.argv[1:])
