"""
Cube-face projection math.

The sphere is projected onto the six faces of an inscribed cube. Each face carries
a local (u, v) coordinate in [-1, 1]; a quadratic warp turns (u, v) into (s, t) in
[0, 1] so that cells cut from (s, t) have closer-to-equal surface area, and the
(s, t) square is finally discretized into a 2^level x 2^level grid of (i, j) indices.

Face ids:
- 0 / 3: +x / -x
- 1 / 4: +y / -y
- 2 / 5: +z / -z

Everything here is a pure function of its inputs.
"""

from __future__ import annotations

import math

from catanscout.core.geo import GeoPoint

Vec3 = tuple[float, float, float]

MAX_LEVEL = 30
FACE_COUNT = 6


class InvalidFaceError(ValueError):
    """A face id outside 0..5 reached a per-face formula (a projection bug)."""


def to_unit_vector(point: GeoPoint) -> Vec3:
    """Convert lat/lng degrees to a point on the unit sphere."""
    phi = math.radians(point.lat)
    theta = math.radians(point.lng)
    cosphi = math.cos(phi)
    return (math.cos(theta) * cosphi, math.sin(theta) * cosphi, math.sin(phi))


def to_geo_point(xyz: Vec3) -> GeoPoint:
    """Convert a non-zero 3D vector back to lat/lng degrees."""
    x, y, z = xyz
    lat = math.atan2(z, math.sqrt(x * x + y * y))
    lng = math.atan2(y, x)
    return GeoPoint(lat=math.degrees(lat), lng=math.degrees(lng))


def select_face(xyz: Vec3) -> int:
    """Pick the face whose axis carries the largest-magnitude component.

    Ties go to the first axis in x, y, z order.
    """
    ax, ay, az = abs(xyz[0]), abs(xyz[1]), abs(xyz[2])
    if ax >= ay and ax >= az:
        axis = 0
    elif ay >= az:
        axis = 1
    else:
        axis = 2
    return axis + 3 if xyz[axis] < 0 else axis


def project_to_face(face: int, xyz: Vec3) -> tuple[float, float]:
    """Project a vector onto the given face's (u, v) plane."""
    x, y, z = xyz
    if face == 0:
        return y / x, z / x
    if face == 1:
        return -x / y, z / y
    if face == 2:
        return -x / z, -y / z
    if face == 3:
        return z / x, y / x
    if face == 4:
        return z / y, -x / y
    if face == 5:
        return -y / z, -x / z
    raise InvalidFaceError(f"Invalid face {face!r}; expected 0..5")


def unproject_from_face(face: int, uv: tuple[float, float]) -> Vec3:
    """Lift a face-local (u, v) back to a (non-normalized) 3D vector."""
    u, v = uv
    if face == 0:
        return (1.0, u, v)
    if face == 1:
        return (-u, 1.0, v)
    if face == 2:
        return (-u, -v, 1.0)
    if face == 3:
        return (-1.0, -v, -u)
    if face == 4:
        return (v, -1.0, -u)
    if face == 5:
        return (v, u, -1.0)
    raise InvalidFaceError(f"Invalid face {face!r}; expected 0..5")


def xyz_to_face_uv(xyz: Vec3) -> tuple[int, tuple[float, float]]:
    face = select_face(xyz)
    return face, project_to_face(face, xyz)


def st_to_uv(s: float) -> float:
    """Quadratic warp from linear (s) to face (u) coordinates."""
    if s >= 0.5:
        return (1 / 3.0) * (4 * s * s - 1)
    return (1 / 3.0) * (1 - 4 * (1 - s) * (1 - s))


def uv_to_st(u: float) -> float:
    """Exact inverse of `st_to_uv`."""
    if u >= 0:
        return 0.5 * math.sqrt(1 + 3 * u)
    return 1 - 0.5 * math.sqrt(1 - 3 * u)


def st_to_uv_pair(st: tuple[float, float]) -> tuple[float, float]:
    return st_to_uv(st[0]), st_to_uv(st[1])


def uv_to_st_pair(uv: tuple[float, float]) -> tuple[float, float]:
    return uv_to_st(uv[0]), uv_to_st(uv[1])


def st_to_ij(st: tuple[float, float], level: int) -> tuple[int, int]:
    """Discretize (s, t) into cell indices, clamped to the valid range."""
    max_size = 1 << level

    def _one(value: float) -> int:
        return max(0, min(max_size - 1, int(math.floor(value * max_size))))

    return _one(st[0]), _one(st[1])


def ij_to_st(ij: tuple[float, float], level: int, offsets: tuple[float, float]) -> tuple[float, float]:
    """Map (possibly fractional or out-of-range) indices plus an offset back to (s, t)."""
    max_size = 1 << level
    return (ij[0] + offsets[0]) / max_size, (ij[1] + offsets[1]) / max_size
