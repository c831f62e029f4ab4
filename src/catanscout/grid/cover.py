"""
Viewport cover for grid overlays.

Renderers draw the cells of a level that are visible in the current map viewport.
`cover_viewport` walks outwards from the cell under the map center with an explicit
breadth-first worklist, expanding only through cells whose footprint touches the
viewport.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from catanscout.core.geo import GeoPoint, LatLngBounds
from catanscout.grid.cell import EIGHT_NEIGHBORS, Cell, validate_level

logger = logging.getLogger(__name__)


def cover_viewport(
    center: GeoPoint,
    level: int,
    bounds: LatLngBounds,
    *,
    max_cells: int | None = None,
) -> list[Cell]:
    """Return the cells at `level` whose footprint intersects `bounds`, in BFS order."""
    validate_level(level)
    start = Cell.from_point(center, level)
    visited: set[Cell] = {start}
    queue: deque[Cell] = deque([start])
    out: list[Cell] = []

    while queue:
        cell = queue.popleft()
        if not bounds.intersects(cell.bounds()):
            continue
        out.append(cell)
        if max_cells is not None and len(out) >= max_cells:
            logger.warning("Viewport cover at level %s truncated at %s cells", level, max_cells)
            break
        for neighbor in cell.neighbors(EIGHT_NEIGHBORS):
            if neighbor in visited:
                continue
            visited.add(neighbor)
            queue.append(neighbor)
    return out


def drawable_levels(zoom: float, levels: Iterable[int], *, min_level: int = 6, min_zoom: float = 5) -> list[int]:
    """Filter overlay levels down to those worth drawing at a map zoom.

    Coarse levels have visibly wrong straight edges, and fine levels are unreadable
    far out, so a level is drawn only when `min_level <= level < zoom + 2`.
    """
    if zoom < min_zoom:
        return []
    return [lvl for lvl in levels if min_level <= lvl < zoom + 2]
