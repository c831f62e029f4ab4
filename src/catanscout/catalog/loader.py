"""
Store persistence and data exchange.

The classified store is a local JSON file (default: `data/catan.json`) with one
object per category, keyed by point id:

    {"resources": {"<guid>": {"guid": ..., "lat": ..., "lng": ..., "name": ..., "rtype": ...}},
     "settlements": {...},
     "notcatan": {...}}

Records are validated into typed Pydantic models so the store can assume a
consistent shape. Only the minimal record fields are written back; cell caches and
live-set flags are session state and never persisted.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import TypeAdapter, ValidationError

from catanscout.catalog.store import TrackedPointStore
from catanscout.core.env import resolve_project_path
from catanscout.core.geo import LatLngBounds
from catanscout.domain.models import CLASSIFIED_CATEGORIES, Category, LivePoint, PointRecord, TrackedPoint
from catanscout.reconcile.grouping import group_by_cell, points_in_viewport

logger = logging.getLogger(__name__)

_RECORDS_ADAPTER = TypeAdapter(dict[str, PointRecord])

CSV_HEADER = ["name", "lat", "lng", "type", "rtype"]


def store_from_payload(payload: Mapping[str, Any]) -> TrackedPointStore:
    """Build a store from the persisted JSON shape (unknown categories are ignored)."""
    store = TrackedPointStore()
    for category in CLASSIFIED_CATEGORIES:
        records = _RECORDS_ADAPTER.validate_python(payload.get(category.value) or {})
        for record in records.values():
            store.add_point(TrackedPoint.from_record(record, category))
    return store


def store_to_payload(store: TrackedPointStore) -> dict[str, dict[str, Any]]:
    return {
        category.value: {
            point_id: point.to_record().model_dump(mode="json", exclude_none=True)
            for point_id, point in store.points(category).items()
        }
        for category in CLASSIFIED_CATEGORIES
    }


def load_store(path: str | Path) -> TrackedPointStore:
    """Load and validate a store JSON file; a missing file is an empty store."""
    resolved = resolve_project_path(path)
    if not resolved.is_file():
        logger.info("No store at %s; starting empty", resolved)
        return TrackedPointStore()
    payload = json.loads(resolved.read_text(encoding="utf-8") or "{}")
    if not isinstance(payload, dict):
        raise ValueError(f"Invalid store file {resolved}; expected a JSON object.")
    store = store_from_payload(payload)
    logger.info("Loaded %s points from %s", len(store), resolved)
    return store


def save_store(store: TrackedPointStore, path: str | Path) -> Path:
    resolved = resolve_project_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    resolved.write_text(json.dumps(store_to_payload(store), ensure_ascii=False, indent=2), encoding="utf-8")
    return resolved


def import_payload(store: TrackedPointStore, payload: Mapping[str, Any]) -> int:
    """Merge an exported payload into `store`; returns how many points were added.

    Entries without coordinates or a name, or whose id is already stored, are skipped.
    """
    added = 0
    for category in CLASSIFIED_CATEGORIES:
        group = payload.get(category.value) or {}
        if not isinstance(group, Mapping):
            logger.warning("Ignoring %s: expected an object keyed by id", category.value)
            continue
        for key, item in group.items():
            if not isinstance(item, Mapping):
                continue
            data = {"guid": key, **dict(item)} if not item.get("guid") else dict(item)
            try:
                record = PointRecord.model_validate(data)
            except ValidationError as e:
                logger.warning("Skipping %s/%s: %s", category.value, key, e.errors()[0].get("msg"))
                continue
            if not record.name or record.guid in store:
                continue
            store.add(
                record.guid,
                record.lat,
                record.lng,
                record.name,
                category,
                resource_type=record.rtype,
                sponsored=record.sponsored,
            )
            added += 1
    return added


def export_csv(
    store: TrackedPointStore,
    categories: Iterable[Category] = (Category.RESOURCE, Category.SETTLEMENT),
    *,
    bounds: LatLngBounds | None = None,
    header: bool = False,
) -> str:
    """Render stored points as CSV rows: name, lat, lng, type, rtype."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    if header:
        writer.writerow(CSV_HEADER)
    for category in categories:
        points: Iterable[TrackedPoint] = store.points(category).values()
        if bounds is not None:
            points = points_in_viewport(points, bounds)
        for p in points:
            writer.writerow([p.name or "", p.lat, p.lng, category.label, p.resource_type or ""])
    return buf.getvalue()


def export_cells(store: TrackedPointStore, level: int) -> dict[str, dict[str, Any]]:
    """Cells holding resources or settlements, with their records, keyed by cell key."""
    buckets = group_by_cell(
        {c: store.points(c).values() for c in (Category.RESOURCE, Category.SETTLEMENT)},
        level,
    )
    out: dict[str, dict[str, Any]] = {}
    for key, bucket in buckets.items():
        out[key] = {
            "cell": bucket.cell.as_dict(),
            "resources": [p.to_record().model_dump(mode="json", exclude_none=True) for p in bucket.of(Category.RESOURCE)],
            "settlements": [
                p.to_record().model_dump(mode="json", exclude_none=True) for p in bucket.of(Category.SETTLEMENT)
            ],
        }
    return out


def parse_live_points(items: Iterable[Any]) -> list[LivePoint]:
    """Validate live feed items one by one; malformed items are logged and skipped."""
    out: list[LivePoint] = []
    for index, item in enumerate(items):
        try:
            out.append(LivePoint.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping live item #%s: %s", index, e.errors()[0].get("msg"))
    return out


def load_live_points(path: str | Path) -> list[LivePoint]:
    """Load a live feed snapshot: a JSON list of `{guid, lat, lng, name}` objects."""
    resolved = resolve_project_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Invalid live feed file {resolved}; expected a JSON list.")
    return parse_live_points(payload)
