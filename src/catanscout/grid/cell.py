"""
Cell addressing on the cube-face grid.

A `Cell` is identified by `(face, level, i, j)`. It is built from a geographic point
through the projection pipeline (unit vector -> face/uv -> st -> ij) and can report
its center, its four corners (fixed winding) and its neighbors, including across
cube-face edges where the neighboring face is rotated relative to this one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from catanscout.core.geo import GeoPoint, LatLngBounds
from catanscout.grid.projection import (
    FACE_COUNT,
    MAX_LEVEL,
    InvalidFaceError,
    ij_to_st,
    st_to_ij,
    st_to_uv_pair,
    to_geo_point,
    to_unit_vector,
    unproject_from_face,
    uv_to_st_pair,
    xyz_to_face_uv,
)

Delta = tuple[int, int]

FOUR_NEIGHBORS: tuple[Delta, ...] = ((-1, 0), (0, -1), (1, 0), (0, 1))
EIGHT_NEIGHBORS: tuple[Delta, ...] = (
    (-1, 0),
    (-1, -1),
    (0, -1),
    (1, -1),
    (1, 0),
    (1, 1),
    (0, 1),
    (-1, 1),
)

# Corner offsets in (i, j) units; the winding is the same for every cell.
CORNER_OFFSETS: tuple[tuple[float, float], ...] = ((0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0))

# How far past a face edge (in cells) an out-of-range neighbor is probed.
_EDGE_NUDGE = 0.01

_KEY_RE = re.compile(r"^F(\d+)ij\[(-?\d+),(-?\d+)\]@(\d+)$")


def validate_level(level: int) -> int:
    if not isinstance(level, int) or isinstance(level, bool) or not 0 <= level <= MAX_LEVEL:
        raise ValueError(f"Invalid level {level!r}; expected an int in 0..{MAX_LEVEL}")
    return level


@dataclass(frozen=True)
class Cell:
    """A square region of one cube face at a given subdivision level."""

    face: int
    level: int
    i: int
    j: int

    def __post_init__(self) -> None:
        if not 0 <= self.face < FACE_COUNT:
            raise InvalidFaceError(f"Invalid face {self.face!r}; expected 0..5")
        validate_level(self.level)
        max_size = 1 << self.level
        if not (0 <= self.i < max_size and 0 <= self.j < max_size):
            raise ValueError(f"Cell indices ({self.i}, {self.j}) out of range for level {self.level}")

    @classmethod
    def from_point(cls, point: GeoPoint, level: int) -> "Cell":
        """Return the cell containing `point` at `level`."""
        validate_level(level)
        face, uv = xyz_to_face_uv(to_unit_vector(point))
        i, j = st_to_ij(uv_to_st_pair(uv), level)
        return cls(face=face, level=level, i=i, j=j)

    @classmethod
    def from_face_ij(cls, face: int, i: int, j: int, level: int) -> "Cell":
        return cls(face=face, level=level, i=i, j=j)

    @classmethod
    def parse(cls, key: str) -> "Cell":
        """Inverse of `str(cell)`."""
        m = _KEY_RE.match(str(key).strip())
        if not m:
            raise ValueError(f"Malformed cell key: {key!r}")
        face, i, j, level = (int(g) for g in m.groups())
        return cls(face=face, level=level, i=i, j=j)

    def __str__(self) -> str:
        return f"F{self.face}ij[{self.i},{self.j}]@{self.level}"

    @property
    def key(self) -> str:
        return str(self)

    def _point_at(self, offset: tuple[float, float]) -> GeoPoint:
        st = ij_to_st((self.i, self.j), self.level, offset)
        xyz = unproject_from_face(self.face, st_to_uv_pair(st))
        return to_geo_point(xyz)

    def center(self) -> GeoPoint:
        return self._point_at((0.5, 0.5))

    def corners(self) -> list[GeoPoint]:
        return [self._point_at(offset) for offset in CORNER_OFFSETS]

    def bounds(self) -> LatLngBounds:
        """Lat/lng bounding box of the four corners."""
        return LatLngBounds.from_points(self.corners())

    def neighbors(self, deltas: Iterable[Delta] | None = None) -> list["Cell"]:
        """Return the cells at `(i + di, j + dj)` for each delta, wrapping across faces."""
        if deltas is None:
            deltas = FOUR_NEIGHBORS
        return [_from_face_ij_wrap(self.face, self.i + di, self.j + dj, self.level) for di, dj in deltas]

    def as_dict(self) -> dict[str, Any]:
        return {"key": self.key, "face": self.face, "level": self.level, "i": self.i, "j": self.j}


def _probe_st(index: int, max_size: int) -> float:
    # Out-of-range axes sit just past the face edge; in-range axes use the cell center.
    if index < 0:
        return (index + 1 - _EDGE_NUDGE) / max_size
    if index >= max_size:
        return (index + _EDGE_NUDGE) / max_size
    return (index + 0.5) / max_size


def _from_face_ij_wrap(face: int, i: int, j: int, level: int) -> Cell:
    max_size = 1 << level
    if 0 <= i < max_size and 0 <= j < max_size:
        return Cell(face=face, level=level, i=i, j=j)

    # Lift the probe point off this face and let the forward pipeline pick the face it lands on.
    st = (_probe_st(i, max_size), _probe_st(j, max_size))
    xyz = unproject_from_face(face, st_to_uv_pair(st))
    new_face, uv = xyz_to_face_uv(xyz)
    ni, nj = st_to_ij(uv_to_st_pair(uv), level)
    return Cell(face=new_face, level=level, i=ni, j=nj)
