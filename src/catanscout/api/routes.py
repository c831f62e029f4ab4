"""
API routes.

Endpoints:
- GET  `/api/cells/lookup`: the cell containing a point (center + corners).
- GET  `/api/cells/{key}/neighbors`: edge (or edge + diagonal) neighbors of a cell.
- POST `/api/grid`: cells of every drawable overlay level visible in a viewport.
- POST `/api/reconcile`: one stateless reconciliation sweep over a stored snapshot and a live snapshot.
- GET  `/api/settings`: public settings (grid levels and reconciliation knobs).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from catanscout.catalog.loader import parse_live_points, store_from_payload
from catanscout.config.overrides import apply_settings_overrides
from catanscout.config.settings import get_settings
from catanscout.core.geo import GeoPoint, LatLngBounds
from catanscout.domain.models import (
    BoundsModel,
    GridRequest,
    MovedPair,
    ReconcileRequest,
    SweepReport,
    TrackedPoint,
)
from catanscout.grid.cell import EIGHT_NEIGHBORS, Cell
from catanscout.grid.cover import cover_viewport, drawable_levels
from catanscout.reconcile.engine import Reconciler

router = APIRouter()


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})


def _point(p: GeoPoint) -> dict[str, float]:
    return {"lat": p.lat, "lng": p.lng}


def _bounds(b: BoundsModel) -> LatLngBounds:
    return LatLngBounds(south=b.south, west=b.west, north=b.north, east=b.east)


def cell_payload(cell: Cell) -> dict[str, Any]:
    return {
        **cell.as_dict(),
        "center": _point(cell.center()),
        "corners": [_point(c) for c in cell.corners()],
    }


def _tracked(p: TrackedPoint) -> dict[str, Any]:
    return {"id": p.id, "name": p.name, "lat": p.lat, "lng": p.lng, "category": p.category.value}


def _moved(pair: MovedPair) -> dict[str, Any]:
    return {"stored": _tracked(pair.stored), "observed": _tracked(pair.observed)}


def report_payload(report: SweepReport) -> dict[str, Any]:
    return {
        "ran": report.ran,
        "reason": report.reason,
        "cells_checked": report.cells_checked,
        "clusters": [
            {"cell": c.cell.key, "members": [_tracked(m) for m in c.members]} for c in report.clusters
        ],
        "dropped_ids": report.dropped_ids,
        "single_candidate_ids": report.single_candidate_ids,
        "missing": [_tracked(p) for p in report.missing],
        "moved": [_moved(pair) for pair in report.moved],
    }


@router.get("/api/cells/lookup")
def get_cell(lat: float, lng: float, level: int) -> dict:
    """Return the cell containing (lat, lng) at `level`."""
    try:
        cell = Cell.from_point(GeoPoint(lat=lat, lng=lng), level)
    except ValueError as e:
        raise _bad_request(e) from e
    return cell_payload(cell)


@router.get("/api/cells/{key}/neighbors")
def get_cell_neighbors(key: str, diagonal: bool = False) -> dict:
    """Return the neighbors of a cell given by its canonical key (e.g. `F0ij[3,4]@3`)."""
    try:
        cell = Cell.parse(key)
    except ValueError as e:
        raise _bad_request(e) from e
    deltas = EIGHT_NEIGHBORS if diagonal else None
    return {"cell": cell.key, "neighbors": [cell_payload(n) for n in cell.neighbors(deltas)]}


@router.post("/api/grid")
def post_grid(req: GridRequest) -> dict:
    """Return overlay cells for the current map viewport."""
    try:
        settings = apply_settings_overrides(get_settings(), req.settings_overrides)
    except ValueError as e:
        raise _bad_request(e) from e

    grid = settings.grid
    bounds = _bounds(req.bounds)
    center = GeoPoint(lat=req.center.lat, lng=req.center.lng)
    levels = drawable_levels(
        req.zoom,
        [o.level for o in grid.overlays],
        min_level=grid.min_draw_level,
        min_zoom=grid.min_draw_zoom,
    )

    overlays = []
    for overlay in grid.overlays:
        if overlay.level not in levels:
            continue
        cells = cover_viewport(center, overlay.level, bounds, max_cells=grid.max_cells_per_overlay)
        overlays.append(
            {
                **overlay.model_dump(mode="json"),
                "truncated": len(cells) >= grid.max_cells_per_overlay,
                "cells": [{"key": c.key, "corners": [_point(p) for p in c.corners()]} for c in cells],
            }
        )
    return {"zoom": req.zoom, "overlays": overlays}


@router.post("/api/reconcile")
def post_reconcile(req: ReconcileRequest) -> dict:
    """Run one sweep over a stored snapshot plus a live feed snapshot (no server-side state)."""
    try:
        settings = apply_settings_overrides(get_settings(), req.settings_overrides)
    except ValueError as e:
        raise _bad_request(e) from e

    payload = {
        category: {pid: record.model_dump(mode="python") for pid, record in records.items()}
        for category, records in req.store.items()
    }
    store = store_from_payload(payload)
    reconciler = Reconciler(store, settings=settings)
    counts = reconciler.observe_all(parse_live_points(req.live))

    viewport = _bounds(req.bounds) if req.bounds is not None else None
    report = reconciler.sweep(viewport=viewport, zoom=req.zoom)

    scores: list[dict[str, Any]] = []
    if viewport is not None and report.ran:
        center = GeoPoint(lat=(viewport.south + viewport.north) / 2, lng=(viewport.west + viewport.east) / 2)
        cells = cover_viewport(
            center, settings.grid.score_level, viewport, max_cells=settings.grid.max_cells_per_overlay
        )
        scores = [
            {"cell": s.cell.key, "score": s.score, "label": s.label, "center": _point(s.cell.center())}
            for s in reconciler.score_cells(cells)
        ]

    return {
        **report_payload(report),
        "observations": {outcome.value: n for outcome, n in counts.items()},
        "scores": scores,
    }


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return grid and reconciliation settings (the storage location is not exposed)."""
    data = get_settings().model_dump(mode="json")
    return {
        "app": {"name": data.get("app", {}).get("name")},
        "grid": data.get("grid", {}),
        "reconciliation": data.get("reconciliation", {}),
    }
