"""
CatanScout CLI entrypoint.

This CLI is intended for quick local inspection of the cell grid and for running a
reconciliation sweep over a live feed snapshot without the map UI.
It delegates the work to `catanscout.grid` and `catanscout.reconcile.engine`.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from catanscout.api.routes import cell_payload, report_payload
from catanscout.catalog.loader import (
    export_cells,
    export_csv,
    import_payload,
    load_live_points,
    load_store,
    save_store,
    store_to_payload,
)
from catanscout.config.settings import get_settings
from catanscout.core.env import resolve_project_path
from catanscout.core.geo import GeoPoint, LatLngBounds
from catanscout.core.logging import configure_logging
from catanscout.domain.models import CLASSIFIED_CATEGORIES, Category
from catanscout.grid.cell import EIGHT_NEIGHBORS, Cell
from catanscout.grid.cover import cover_viewport
from catanscout.reconcile.engine import Reconciler


def _parse_bounds(value: str) -> LatLngBounds:
    """Parse `SOUTH,WEST,NORTH,EAST` into bounds."""
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"Invalid bounds '{value}', expected SOUTH,WEST,NORTH,EAST")
    try:
        south, west, north, east = (float(p) for p in parts)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid bounds '{value}': {e}") from e
    return LatLngBounds(south=south, west=west, north=north, east=east)


def _store_path(args: argparse.Namespace) -> str:
    return str(args.store or get_settings().storage.path)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _cmd_cell(args: argparse.Namespace) -> int:
    cell = Cell.from_point(GeoPoint(lat=args.lat, lng=args.lng), args.level)
    if args.json:
        _print_json(cell_payload(cell))
        return 0
    center = cell.center()
    print(cell.key)
    print(f"  center: {center.lat:.7f},{center.lng:.7f}")
    for corner in cell.corners():
        print(f"  corner: {corner.lat:.7f},{corner.lng:.7f}")
    return 0


def _cmd_neighbors(args: argparse.Namespace) -> int:
    cell = Cell.parse(args.key)
    for neighbor in cell.neighbors(EIGHT_NEIGHBORS if args.diagonal else None):
        print(neighbor.key)
    return 0


def _cmd_cover(args: argparse.Namespace) -> int:
    bounds: LatLngBounds = args.bounds
    center = GeoPoint(lat=(bounds.south + bounds.north) / 2, lng=(bounds.west + bounds.east) / 2)
    cells = cover_viewport(center, args.level, bounds, max_cells=args.max_cells)
    for cell in cells:
        print(cell.key)
    return 0


def _cmd_reconcile(args: argparse.Namespace) -> int:
    settings = get_settings()
    store_path = _store_path(args)
    store = load_store(store_path)
    reconciler = Reconciler(store, settings=settings)
    counts = reconciler.observe_all(load_live_points(args.live))
    report = reconciler.sweep(viewport=args.bounds, zoom=args.zoom)

    if args.resolve_moves and report.ran:
        for point in reconciler.resolve_all_moves():
            print(f"relocated {point.id} ({point.name or 'unnamed'})", file=sys.stderr)
        save_store(store, store_path)

    if args.json:
        _print_json({**report_payload(report), "observations": {k.value: v for k, v in counts.items()}})
        return 0

    if not report.ran:
        print(f"Sweep skipped: {report.reason}")
        return 0
    print(f"Cells checked: {report.cells_checked}")
    print(f"Missing ({len(report.missing)}):")
    for p in report.missing:
        print(f"  - {p.id} {p.name or ''} [{p.category.label}] {p.lat},{p.lng}")
    print(f"Moved ({len(report.moved)}):")
    for pair in report.moved:
        print(f"  - {pair.stored.id} -> {pair.observed.id} {pair.observed.lat},{pair.observed.lng}")
    print(f"Ambiguous cells ({len(report.clusters)}):")
    for cluster in report.clusters:
        names = ", ".join(m.name or m.id for m in cluster.members)
        print(f"  - {cluster.cell.key}: {names}")
    print(f"Dropped duplicates: {len(report.dropped_ids)}")
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    store_path = _store_path(args)
    store = load_store(store_path)
    payload = json.loads(resolve_project_path(args.file).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Invalid import file {args.file}; expected a JSON object.")
    added = import_payload(store, payload)
    path = save_store(store, store_path)
    print(f"Imported {added} points into {path}")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    store = load_store(_store_path(args))
    if args.format == "csv":
        categories = [Category(c) for c in args.category] if args.category else [Category.RESOURCE, Category.SETTLEMENT]
        text = export_csv(store, categories, bounds=args.bounds, header=args.header)
    elif args.format == "cells":
        level = args.level if args.level is not None else get_settings().grid.classification_level
        text = json.dumps(export_cells(store, level), ensure_ascii=False, indent=2)
    else:
        text = json.dumps(store_to_payload(store), ensure_ascii=False, indent=2)

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CatanScout CLI."""
    parser = argparse.ArgumentParser(prog="catanscout")
    sub = parser.add_subparsers(dest="command", required=True)

    c = sub.add_parser("cell", help="Show the cell containing a point.")
    c.add_argument("--lat", required=True, type=float)
    c.add_argument("--lng", required=True, type=float)
    c.add_argument("--level", required=True, type=int)
    c.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    c.set_defaults(func=_cmd_cell)

    n = sub.add_parser("neighbors", help="List the neighbors of a cell key (e.g. F0ij[3,4]@3).")
    n.add_argument("key")
    n.add_argument("--diagonal", action="store_true", help="Include the four diagonal neighbors.")
    n.set_defaults(func=_cmd_neighbors)

    cov = sub.add_parser("cover", help="List the cells intersecting a viewport.")
    cov.add_argument("--bounds", required=True, type=_parse_bounds, help="SOUTH,WEST,NORTH,EAST")
    cov.add_argument("--level", required=True, type=int)
    cov.add_argument("--max-cells", type=int, default=None)
    cov.set_defaults(func=_cmd_cover)

    rec = sub.add_parser("reconcile", help="Run a sweep of the stored points against a live feed snapshot.")
    rec.add_argument("--live", required=True, help="JSON list of {guid, lat, lng, name} objects")
    rec.add_argument("--store", default=None, help="Store file (default: storage.path from settings)")
    rec.add_argument("--bounds", type=_parse_bounds, default=None, help="SOUTH,WEST,NORTH,EAST")
    rec.add_argument("--zoom", type=float, default=None)
    rec.add_argument("--resolve-moves", action="store_true", help="Accept every detected move and save the store.")
    rec.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    rec.set_defaults(func=_cmd_reconcile)

    imp = sub.add_parser("import", help="Merge an exported JSON file into the store.")
    imp.add_argument("file")
    imp.add_argument("--store", default=None)
    imp.set_defaults(func=_cmd_import)

    exp = sub.add_parser("export", help="Export the store as JSON, CSV, or per-cell JSON.")
    exp.add_argument("--format", choices=["json", "csv", "cells"], default="json")
    exp.add_argument("--store", default=None)
    exp.add_argument(
        "--category",
        action="append",
        default=[],
        choices=[c.value for c in CLASSIFIED_CATEGORIES],
        help="Repeatable (csv only). Omit for resources and settlements.",
    )
    exp.add_argument("--bounds", type=_parse_bounds, default=None, help="csv only: SOUTH,WEST,NORTH,EAST")
    exp.add_argument("--header", action="store_true", help="csv only: write a header row")
    exp.add_argument("--level", type=int, default=None, help="cells only (default: classification level)")
    exp.add_argument("--output", "-o", default=None)
    exp.set_defaults(func=_cmd_export)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m catanscout.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
