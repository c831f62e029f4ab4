"""
Spatial grouping of tracked points into grid cells.

Buckets are keyed by the canonical cell key, so equal cells collapse into one bucket
regardless of which point produced them first. Each point memoizes its cell per level
(`TrackedPoint.cell`), which keeps repeated sweeps linear and cheap.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from catanscout.core.geo import LatLngBounds
from catanscout.domain.models import CellBucket, Category, TrackedPoint

logger = logging.getLogger(__name__)


def group_by_cell(
    point_sets: Mapping[Category, Iterable[TrackedPoint]], level: int
) -> dict[str, CellBucket]:
    """Bucket every point of every category by its cell at `level`."""
    buckets: dict[str, CellBucket] = {}
    for category, points in point_sets.items():
        for point in points:
            if not point.has_valid_location():
                logger.debug("Skipping %s: no usable coordinates", point.id)
                continue
            cell = point.cell(level)
            bucket = buckets.get(cell.key)
            if bucket is None:
                bucket = CellBucket(cell=cell)
                buckets[cell.key] = bucket
            bucket.add(category, point)
    return buckets


def within_viewport(buckets: Mapping[str, CellBucket], bounds: LatLngBounds) -> dict[str, CellBucket]:
    """Keep the buckets whose cell footprint touches `bounds` (drawing)."""
    return {key: b for key, b in buckets.items() if bounds.intersects(b.cell.bounds())}


def strictly_inside_viewport(buckets: Mapping[str, CellBucket], bounds: LatLngBounds) -> dict[str, CellBucket]:
    """Keep the buckets whose cell footprint is fully inside `bounds` (reconciliation).

    Partially visible cells are left out because the live feed may not have
    delivered all of their points yet.
    """
    return {key: b for key, b in buckets.items() if bounds.contains(b.cell.bounds())}


def points_in_viewport(points: Iterable[TrackedPoint], bounds: LatLngBounds) -> list[TrackedPoint]:
    return [p for p in points if p.has_valid_location() and bounds.contains_point(p.location)]
