"""
Classified point store.

`TrackedPointStore` holds the user's classified points, one dict per category. The
add/remove/switch operations keep the invariant that a point id belongs to at most
one category at a time; reconciliation relies on it and never re-checks it.
"""

from __future__ import annotations

import logging
from typing import Iterator

from catanscout.domain.models import CLASSIFIED_CATEGORIES, Category, ResourceType, TrackedPoint

logger = logging.getLogger(__name__)


class TrackedPointStore:
    """In-memory classified point sets (resources / settlements / not-in-game)."""

    def __init__(self) -> None:
        self._points: dict[Category, dict[str, TrackedPoint]] = {c: {} for c in CLASSIFIED_CATEGORIES}

    def __len__(self) -> int:
        return sum(len(group) for group in self._points.values())

    def __contains__(self, point_id: object) -> bool:
        return any(point_id in group for group in self._points.values())

    def __iter__(self) -> Iterator[TrackedPoint]:
        for category in CLASSIFIED_CATEGORIES:
            yield from self._points[category].values()

    def find(self, point_id: str) -> TrackedPoint | None:
        for group in self._points.values():
            point = group.get(point_id)
            if point is not None:
                return point
        return None

    def category_of(self, point_id: str) -> Category | None:
        point = self.find(point_id)
        return point.category if point is not None else None

    def points(self, category: Category) -> dict[str, TrackedPoint]:
        if not category.is_classified:
            raise ValueError(f"The store only holds classified categories, got {category.value!r}")
        return self._points[category]

    def point_sets(self) -> dict[Category, list[TrackedPoint]]:
        return {c: list(self._points[c].values()) for c in CLASSIFIED_CATEGORIES}

    def add(
        self,
        point_id: str,
        lat: float,
        lng: float,
        name: str | None,
        category: Category,
        *,
        resource_type: ResourceType | None = None,
        exists_in_live_set: bool = False,
        sponsored: bool | None = None,
    ) -> TrackedPoint:
        """Add (or re-add) a point under `category`, dropping any previous classification."""
        if not category.is_classified:
            raise ValueError(f"Cannot store a point as {category.value!r}")
        previous = self.category_of(point_id)
        if previous is not None:
            self.remove(point_id)

        point = TrackedPoint(
            id=point_id,
            lat=lat,
            lng=lng,
            name=name,
            category=category,
            resource_type=(resource_type or "Unknown") if category is Category.RESOURCE else None,
            sponsored=sponsored,
            exists_in_live_set=exists_in_live_set,
        )
        self._points[category][point_id] = point
        logger.debug("Stored %s as %s", point_id, category.value)
        return point

    def add_point(self, point: TrackedPoint) -> TrackedPoint:
        """Insert an already-built point under its own category."""
        if self.category_of(point.id) is not None:
            self.remove(point.id)
        self.points(point.category)[point.id] = point
        return point

    def remove(self, point_id: str) -> TrackedPoint:
        for group in self._points.values():
            if point_id in group:
                return group.pop(point_id)
        raise KeyError(point_id)

    def switch(self, point_id: str, category: Category, *, lat: float, lng: float, name: str | None) -> TrackedPoint | None:
        """Toggle a classification: the same category removes it, another one moves it.

        Returns the stored point, or None when the toggle removed it.
        """
        existing = self.category_of(point_id)
        if existing is category:
            self.remove(point_id)
            return None
        return self.add(point_id, lat, lng, name, category, exists_in_live_set=True)

    def set_resource_type(self, point_id: str, resource_type: ResourceType) -> TrackedPoint:
        point = self.points(Category.RESOURCE).get(point_id)
        if point is None:
            raise KeyError(point_id)
        point.resource_type = resource_type
        return point

    def relocate(
        self,
        point_id: str,
        lat: float,
        lng: float,
        *,
        new_id: str | None = None,
        name: str | None = None,
    ) -> TrackedPoint:
        """Move a stored point to new coordinates (and optionally a new id).

        The cell cache of the point is cleared, since its cells are stale.
        """
        point = self.find(point_id)
        if point is None:
            raise KeyError(point_id)

        target_id = new_id or point_id
        if target_id != point_id:
            self.remove(point_id)
            if target_id in self:
                self.remove(target_id)
            point.id = target_id
            self._points[point.category][target_id] = point

        point.lat = lat
        point.lng = lng
        if name:
            point.name = name
        point.replacement_id = None
        point.invalidate_cells()
        return point
