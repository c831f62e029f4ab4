import random
import itertools

import pytest

from catanscout.core.geo import GeoPoint
from catanscout.grid.cell import CORNER_OFFSETS, EIGHT_NEIGHBORS, Cell
from catanscout.grid.projection import InvalidFaceError


def _all_cells(level: int):
    n = 1 << level
    for face, i, j in itertools.product(range(6), range(n), range(n)):
        yield Cell(face=face, level=level, i=i, j=j)


def test_origin_at_level_zero_is_the_whole_first_face():
    cell = Cell.from_point(GeoPoint(lat=0, lng=0), 0)
    assert cell == Cell(face=0, level=0, i=0, j=0)
    assert str(cell) == "F0ij[0,0]@0"


def test_nearby_points_share_a_fine_cell():
    cell = Cell.from_point(GeoPoint(lat=48.8566, lng=2.3522), 20)
    center = cell.center()
    # About one millimeter north of the cell center.
    nudged = GeoPoint(lat=center.lat + 9e-9, lng=center.lng)
    assert Cell.from_point(center, 20) == cell
    assert Cell.from_point(nudged, 20) == cell


def test_distant_points_land_in_different_cells():
    # ~50 km apart, on either side of the face's middle line (a boundary at every level >= 1).
    west = Cell.from_point(GeoPoint(lat=0.1, lng=-0.225), 6)
    east = Cell.from_point(GeoPoint(lat=0.1, lng=0.225), 6)
    assert west != east
    assert west.face == east.face == 0
    assert east.i == west.i + 1


def test_from_point_of_center_returns_the_cell():
    rng = random.Random(42)
    for _ in range(300):
        level = rng.randint(0, 30)
        p = GeoPoint(lat=rng.uniform(-89, 89), lng=rng.uniform(-179, 179))
        cell = Cell.from_point(p, level)
        assert Cell.from_point(cell.center(), level) == cell


def test_key_round_trip_and_malformed_keys():
    cell = Cell(face=4, level=12, i=17, j=4095)
    assert cell.key == "F4ij[17,4095]@12"
    assert Cell.parse(cell.key) == cell
    with pytest.raises(ValueError, match="Malformed cell key"):
        Cell.parse("F1ij[1,2]")
    with pytest.raises(InvalidFaceError):
        Cell.parse("F6ij[0,0]@0")


def test_invalid_cells_are_rejected():
    with pytest.raises(InvalidFaceError):
        Cell(face=7, level=3, i=0, j=0)
    with pytest.raises(ValueError, match="Invalid level"):
        Cell(face=0, level=31, i=0, j=0)
    with pytest.raises(ValueError, match="out of range"):
        Cell(face=0, level=2, i=4, j=0)
    with pytest.raises(ValueError, match="Invalid level"):
        Cell.from_point(GeoPoint(lat=0, lng=0), -1)


def test_corners_are_shared_with_adjacent_cells_in_the_same_winding():
    cell = Cell(face=2, level=5, i=10, j=11)
    right = Cell(face=2, level=5, i=11, j=11)
    up = Cell(face=2, level=5, i=10, j=12)
    c, r, u = cell.corners(), right.corners(), up.corners()
    assert len(c) == len(CORNER_OFFSETS) == 4
    # Offsets are (0,0), (0,1), (1,1), (1,0).
    assert c[3] == r[0]
    assert c[2] == r[1]
    assert c[1] == u[0]
    assert c[2] == u[3]


def test_bounds_contain_the_center():
    cell = Cell.from_point(GeoPoint(lat=25.0478, lng=121.517), 14)
    assert cell.bounds().contains_point(cell.center())


@pytest.mark.parametrize("level", [0, 1, 2, 3])
def test_edge_neighbors_are_symmetric_across_all_faces(level):
    for cell in _all_cells(level):
        neighbors = cell.neighbors()
        assert len(neighbors) == 4
        assert cell not in neighbors
        assert len(set(neighbors)) == 4
        for n in neighbors:
            assert n.level == level
            assert cell in n.neighbors(), f"{n} does not list {cell} back"


def test_level_zero_face_neighbors_are_the_four_adjacent_faces():
    faces = {n.face for n in Cell(face=0, level=0, i=0, j=0).neighbors()}
    assert faces == {1, 2, 4, 5}
    faces = {n.face for n in Cell(face=2, level=0, i=0, j=0).neighbors()}
    assert faces == {0, 1, 3, 4}


def test_neighbors_are_symmetric_at_fine_levels():
    rng = random.Random(1234)
    for _ in range(200):
        level = rng.randint(4, 30)
        p = GeoPoint(lat=rng.uniform(-89, 89), lng=rng.uniform(-179, 179))
        cell = Cell.from_point(p, level)
        for n in cell.neighbors():
            assert cell in n.neighbors()


def test_neighbors_on_a_face_edge_cross_to_the_next_face():
    n = 1 << 10
    cell = Cell(face=0, level=10, i=n - 1, j=n // 2)
    right = cell.neighbors([(1, 0)])[0]
    assert right.face == 1
    assert cell in right.neighbors()


def test_eight_neighbors_inside_a_face():
    cell = Cell(face=3, level=8, i=100, j=50)
    got = cell.neighbors(EIGHT_NEIGHBORS)
    expected = {Cell(face=3, level=8, i=100 + di, j=50 + dj) for di, dj in EIGHT_NEIGHBORS}
    assert set(got) == expected
