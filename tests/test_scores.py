from catanscout.core.geo import GeoPoint
from catanscout.domain.models import Category, TrackedPoint
from catanscout.grid.cell import Cell
from catanscout.reconcile.grouping import group_by_cell
from catanscout.reconcile.scores import cell_scores


def _at(cell: Cell, pid: str, category: Category) -> TrackedPoint:
    c = cell.center()
    return TrackedPoint(id=pid, lat=c.lat, lng=c.lng, category=category)


def test_score_adds_the_average_of_resource_holding_neighbors():
    cell = Cell.from_point(GeoPoint(lat=48.8566, lng=2.3522), 15)
    west, south, east, north = cell.neighbors()
    resources = [
        _at(cell, "r1", Category.RESOURCE),
        _at(cell, "r2", Category.RESOURCE),
        _at(west, "r3", Category.RESOURCE),
        _at(east, "r4", Category.RESOURCE),
        _at(east, "r5", Category.RESOURCE),
        _at(east, "r6", Category.RESOURCE),
    ]
    buckets = group_by_cell({Category.RESOURCE: resources}, 15)

    (score,) = cell_scores(buckets, [cell])

    assert score.score == 2 + 4 / 2
    assert score.label == "4.0"
    assert not score.has_unknown

    buckets = group_by_cell(
        {Category.RESOURCE: resources, Category.UNCLASSIFIED: [_at(north, "u1", Category.UNCLASSIFIED)]}, 15
    )
    (score,) = cell_scores(buckets, [cell])
    assert score.label == "4.0?"


def test_cells_without_resources_nearby_are_omitted():
    cell = Cell.from_point(GeoPoint(lat=10.0, lng=10.0), 15)
    far = Cell.from_point(GeoPoint(lat=11.0, lng=10.0), 15)
    buckets = group_by_cell({Category.RESOURCE: [_at(far, "r1", Category.RESOURCE)]}, 15)
    assert cell_scores(buckets, [cell]) == []
    assert [s.cell for s in cell_scores(buckets, [cell, far])] == [far]
