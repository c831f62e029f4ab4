from __future__ import annotations
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Iterable

"""
Geospatial helpers.

We keep a tiny geometry layer here so grid and reconciliation code can reason about
points and viewports without pulling in heavier GIS dependencies.
"""


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


@dataclass(frozen=True)
class LatLngBounds:
    """An axis-aligned lat/lng box (edges inclusive, no antimeridian wrapping)."""

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Iterable[GeoPoint]) -> "LatLngBounds":
        pts = list(points)
        if not pts:
            raise ValueError("LatLngBounds.from_points needs at least one point")
        return cls(
            south=min(p.lat for p in pts),
            west=min(p.lng for p in pts),
            north=max(p.lat for p in pts),
            east=max(p.lng for p in pts),
        )

    def extend(self, point: GeoPoint) -> "LatLngBounds":
        return LatLngBounds(
            south=min(self.south, point.lat),
            west=min(self.west, point.lng),
            north=max(self.north, point.lat),
            east=max(self.east, point.lng),
        )

    def contains_point(self, point: GeoPoint) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east

    def contains(self, other: "LatLngBounds") -> bool:
        return (
            other.south >= self.south
            and other.north <= self.north
            and other.west >= self.west
            and other.east <= self.east
        )

    def intersects(self, other: "LatLngBounds") -> bool:
        lat_overlap = other.north >= self.south and other.south <= self.north
        lng_overlap = other.east >= self.west and other.west <= self.east
        return lat_overlap and lng_overlap


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    r = 6_371_000
    lat1 = radians(a.lat)
    lng1 = radians(a.lng)
    lat2 = radians(b.lat)
    lng2 = radians(b.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    return 2 * r * asin(min(1.0, sqrt(h)))
