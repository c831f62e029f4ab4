"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- persisted records (`PointRecord`) and live feed items (`LivePoint`)
- the tracked points the reconciliation engine works on (`TrackedPoint`)
- reconciliation outputs (`MovedPair`, `AmbiguousCluster`, `SweepReport`)
- API payloads

Keeping these models in one place helps:
- validation (reject bad inputs early),
- typed refactors,
- consistent JSON output across CLI/API.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, PrivateAttr

from catanscout.core.geo import GeoPoint
from catanscout.grid.cell import Cell


class Category(str, Enum):
    """Which set a tracked point belongs to."""

    RESOURCE = "resources"
    SETTLEMENT = "settlements"
    NOT_CATAN = "notcatan"
    UNCLASSIFIED = "unclassified"

    @property
    def is_classified(self) -> bool:
        return self is not Category.UNCLASSIFIED

    @property
    def claims_cell(self) -> bool:
        """True for in-game categories; a cell holding one needs no further review."""
        return self in (Category.RESOURCE, Category.SETTLEMENT)

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    Category.RESOURCE: "resource",
    Category.SETTLEMENT: "settlement",
    Category.NOT_CATAN: "notcatan",
    Category.UNCLASSIFIED: "unclassified",
}

CLASSIFIED_CATEGORIES: tuple[Category, ...] = (Category.RESOURCE, Category.SETTLEMENT, Category.NOT_CATAN)

ResourceType = Literal["Brick", "Sheep", "Wood", "Wheat", "Ore", "Unknown"]


class PointRecord(BaseModel):
    """Persisted shape of one classified point."""

    guid: str
    lat: float
    lng: float
    name: str | None = None
    rtype: ResourceType | None = None
    sponsored: bool | None = None


class LivePoint(BaseModel):
    """One point as delivered by the live feed."""

    guid: str
    lat: float
    lng: float
    name: str | None = None
    image: str | None = None


class TrackedPoint(BaseModel):
    """A point tracked by the store or the live-set reconciliation.

    `_cell_cache` memoizes the cell of this point per level. It is never invalidated
    implicitly: whoever changes the coordinates must call `invalidate_cells()`.
    """

    id: str
    lat: float
    lng: float
    name: str | None = None
    category: Category = Category.UNCLASSIFIED
    resource_type: ResourceType | None = None
    sponsored: bool | None = None
    image: str | None = None
    exists_in_live_set: bool = False
    replacement_id: str | None = None

    _cell_cache: dict[int, Cell] = PrivateAttr(default_factory=dict)

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(lat=float(self.lat), lng=float(self.lng))

    def has_valid_location(self) -> bool:
        try:
            return math.isfinite(float(self.lat)) and math.isfinite(float(self.lng))
        except (TypeError, ValueError):
            return False

    def cell(self, level: int) -> Cell:
        """Return (and memoize) the cell of this point at `level`."""
        cached = self._cell_cache.get(level)
        if cached is None:
            cached = Cell.from_point(self.location, level)
            self._cell_cache[level] = cached
        return cached

    def cached_levels(self) -> list[int]:
        return sorted(self._cell_cache)

    def invalidate_cells(self) -> None:
        self._cell_cache.clear()

    @classmethod
    def from_record(cls, record: PointRecord, category: Category) -> "TrackedPoint":
        rtype = record.rtype
        if category is Category.RESOURCE and rtype is None:
            rtype = "Unknown"
        return cls(
            id=record.guid,
            lat=record.lat,
            lng=record.lng,
            name=record.name,
            category=category,
            resource_type=rtype if category is Category.RESOURCE else None,
            sponsored=record.sponsored,
        )

    @classmethod
    def from_live(cls, live: LivePoint) -> "TrackedPoint":
        return cls(id=live.guid, lat=live.lat, lng=live.lng, name=live.name, image=live.image)

    def to_record(self) -> PointRecord:
        return PointRecord(
            guid=self.id,
            lat=self.lat,
            lng=self.lng,
            name=self.name,
            rtype=self.resource_type if self.category is Category.RESOURCE else None,
            sponsored=self.sponsored or None,
        )


def name_sort_key(point: TrackedPoint) -> tuple[int, str, str]:
    """Alphabetical by name (case-insensitive), unnamed points last, ties by id."""
    if not point.name:
        return (1, "", point.id)
    return (0, point.name.casefold(), point.id)


@dataclass
class MovedPair:
    """A classified point whose stored location differs from what the live feed reports."""

    stored: TrackedPoint
    observed: TrackedPoint

    @property
    def same_id(self) -> bool:
        return self.stored.id == self.observed.id


@dataclass
class AmbiguousCluster:
    """Two or more unclassified points sharing one cell with no classified point."""

    cell: Cell
    members: list[TrackedPoint]

    @property
    def member_ids(self) -> list[str]:
        return [p.id for p in self.members]


@dataclass
class CellBucket:
    """The points of one cell, grouped by category in insertion order."""

    cell: Cell
    members: dict[Category, list[TrackedPoint]] = field(default_factory=dict)

    def of(self, category: Category) -> list[TrackedPoint]:
        return self.members.get(category, [])

    def add(self, category: Category, point: TrackedPoint) -> None:
        self.members.setdefault(category, []).append(point)

    @property
    def unclassified(self) -> list[TrackedPoint]:
        return self.of(Category.UNCLASSIFIED)

    def classified(self) -> list[TrackedPoint]:
        return [p for c in CLASSIFIED_CATEGORIES for p in self.of(c)]

    def has_cell_claim(self) -> bool:
        return any(self.of(c) for c in CLASSIFIED_CATEGORIES if c.claims_cell)


@dataclass
class ClusterSweep:
    """What one cluster detection pass did."""

    enqueued: list[AmbiguousCluster] = field(default_factory=list)
    dropped_ids: list[str] = field(default_factory=list)
    single_candidate_ids: list[str] = field(default_factory=list)


@dataclass
class SweepReport:
    """Outcome of a full reconciliation sweep."""

    ran: bool
    cells_checked: int = 0
    clusters: list[AmbiguousCluster] = field(default_factory=list)
    dropped_ids: list[str] = field(default_factory=list)
    single_candidate_ids: list[str] = field(default_factory=list)
    missing: list[TrackedPoint] = field(default_factory=list)
    moved: list[MovedPair] = field(default_factory=list)
    reason: str | None = None


# API payloads


class GeoPointModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class BoundsModel(BaseModel):
    south: float = Field(..., ge=-90, le=90)
    west: float = Field(..., ge=-180, le=180)
    north: float = Field(..., ge=-90, le=90)
    east: float = Field(..., ge=-180, le=180)


class GridRequest(BaseModel):
    center: GeoPointModel
    bounds: BoundsModel
    zoom: float = Field(..., ge=0, le=30)
    settings_overrides: dict[str, Any] | None = None


class ReconcileRequest(BaseModel):
    """Stateless reconciliation run: a stored snapshot plus a live feed snapshot."""

    store: dict[str, dict[str, PointRecord]] = Field(default_factory=dict)
    # Raw feed items; malformed ones are dropped item by item, not rejected as a whole.
    live: list[Any] = Field(default_factory=list)
    bounds: BoundsModel | None = None
    zoom: float | None = Field(default=None, ge=0, le=30)
    settings_overrides: dict[str, Any] | None = None
