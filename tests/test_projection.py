import math
import random

import pytest

from catanscout.core.geo import GeoPoint
from catanscout.grid.projection import (
    InvalidFaceError,
    project_to_face,
    select_face,
    st_to_ij,
    st_to_uv,
    to_geo_point,
    to_unit_vector,
    unproject_from_face,
    uv_to_st,
    xyz_to_face_uv,
)


def test_unit_vector_round_trip():
    rng = random.Random(7)
    for _ in range(500):
        p = GeoPoint(lat=rng.uniform(-89.9, 89.9), lng=rng.uniform(-179.9, 179.9))
        xyz = to_unit_vector(p)
        assert math.isclose(sum(c * c for c in xyz), 1.0, abs_tol=1e-12)
        back = to_geo_point(xyz)
        assert back.lat == pytest.approx(p.lat, abs=1e-9)
        assert back.lng == pytest.approx(p.lng, abs=1e-9)


def test_warp_is_inverted_exactly_enough():
    for k in range(101):
        s = k / 100
        assert uv_to_st(st_to_uv(s)) == pytest.approx(s, abs=1e-12)
    assert st_to_uv(0.0) == pytest.approx(-1.0)
    assert st_to_uv(0.5) == 0.0
    assert st_to_uv(1.0) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "xyz,face",
    [
        ((1.0, 0.0, 0.0), 0),
        ((0.0, 1.0, 0.0), 1),
        ((0.0, 0.0, 1.0), 2),
        ((-1.0, 0.0, 0.0), 3),
        ((0.0, -1.0, 0.0), 4),
        ((0.0, 0.0, -1.0), 5),
        # Ties go to the first axis in x, y, z order.
        ((1.0, 1.0, 0.0), 0),
        ((-1.0, -1.0, 0.0), 3),
        ((0.0, 1.0, 1.0), 1),
        ((0.5, -0.5, 0.5), 0),
    ],
)
def test_select_face(xyz, face):
    assert select_face(xyz) == face


@pytest.mark.parametrize("face", range(6))
def test_unproject_then_project_is_identity_on_every_face(face):
    uv = (0.3, -0.2)
    xyz = unproject_from_face(face, uv)
    got_face, got_uv = xyz_to_face_uv(xyz)
    assert got_face == face
    assert got_uv == pytest.approx(uv, abs=1e-12)


def test_per_face_formulas_reject_unknown_faces():
    with pytest.raises(InvalidFaceError, match="Invalid face 6"):
        project_to_face(6, (1.0, 0.0, 0.0))
    with pytest.raises(InvalidFaceError):
        unproject_from_face(-1, (0.0, 0.0))


def test_st_to_ij_clamps_to_the_face():
    assert st_to_ij((0.0, 0.999999), 2) == (0, 3)
    assert st_to_ij((1.0, 1.0), 2) == (3, 3)
    assert st_to_ij((-0.01, 1.01), 3) == (0, 7)


def test_quadratic_to_linear_then_back_is_identity():
    values = [k / 100 for k in range(-99, 100)]
    values += [-1 + 1e-12, -0.999999, -1e-12, 0.0, 1e-12, 0.999999, 1 - 1e-12]
    for u in values:
        s = uv_to_st(u)
        assert 0.0 <= s <= 1.0
        assert st_to_uv(s) == pytest.approx(u, abs=1e-12)
