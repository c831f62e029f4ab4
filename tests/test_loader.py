import json

import pytest

from catanscout.catalog.loader import (
    export_cells,
    export_csv,
    import_payload,
    load_live_points,
    load_store,
    save_store,
)
from catanscout.catalog.store import TrackedPointStore
from catanscout.core.geo import LatLngBounds
from catanscout.domain.models import Category


def _store() -> TrackedPointStore:
    store = TrackedPointStore()
    store.add("r1", 48.8566, 2.3522, "Fountain", Category.RESOURCE, resource_type="Wood")
    store.add("s1", 48.8606, 2.3376, "Museum", Category.SETTLEMENT)
    store.add("n1", 48.8530, 2.3499, "Bench", Category.NOT_CATAN, sponsored=True)
    return store


def test_save_and_load_round_trip(tmp_path):
    path = save_store(_store(), tmp_path / "nested" / "catan.json")
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert set(raw) == {"resources", "settlements", "notcatan"}
    assert raw["resources"]["r1"]["rtype"] == "Wood"
    assert "rtype" not in raw["settlements"]["s1"]
    assert "exists_in_live_set" not in raw["resources"]["r1"]

    loaded = load_store(path)
    assert len(loaded) == 3
    assert loaded.category_of("n1") is Category.NOT_CATAN
    assert loaded.find("n1").sponsored is True
    assert loaded.find("r1").resource_type == "Wood"


def test_missing_store_file_is_empty(tmp_path):
    assert len(load_store(tmp_path / "absent.json")) == 0


def test_import_skips_unnamed_known_and_invalid_entries():
    store = _store()
    payload = {
        "resources": {
            "r1": {"guid": "r1", "lat": 0, "lng": 0, "name": "Dup"},
            "r2": {"lat": 1, "lng": 1, "name": "Quarry", "rtype": "Ore"},
            "r3": {"guid": "r3", "lat": 1, "lng": 1},
            "r4": {"guid": "r4", "lat": "north", "lng": 1, "name": "Bad"},
        },
        "settlements": {"s2": {"guid": "s2", "lat": 2, "lng": 2, "name": "Church"}},
        "notcatan": ["not", "a", "mapping"],
    }

    added = import_payload(store, payload)

    assert added == 2
    assert store.find("r2").resource_type == "Ore"
    assert store.category_of("s2") is Category.SETTLEMENT
    assert store.find("r1").name == "Fountain"
    assert "r3" not in store and "r4" not in store


def test_export_csv_rows_and_bounds():
    store = _store()
    text = export_csv(store, header=True)
    lines = text.splitlines()
    assert lines[0] == "name,lat,lng,type,rtype"
    assert lines[1] == "Fountain,48.8566,2.3522,resource,Wood"
    assert lines[2] == "Museum,48.8606,2.3376,settlement,"
    assert len(lines) == 3

    only_fountain = LatLngBounds(south=48.85, west=2.35, north=48.86, east=2.36)
    assert export_csv(store, bounds=only_fountain).splitlines() == ["Fountain,48.8566,2.3522,resource,Wood"]
    assert "Bench" in export_csv(store, [Category.NOT_CATAN])


def test_export_cells_groups_resources_and_settlements():
    cells = export_cells(_store(), 10)
    assert sum(len(v["resources"]) + len(v["settlements"]) for v in cells.values()) == 2
    for key, value in cells.items():
        assert value["cell"]["key"] == key
        assert value["cell"]["level"] == 10


def test_load_live_points(tmp_path):
    path = tmp_path / "live.json"
    path.write_text(json.dumps([{"guid": "a", "lat": 1, "lng": 2, "name": "A"}, {"guid": "b", "lat": 3, "lng": 4}]))
    points = load_live_points(path)
    assert [p.guid for p in points] == ["a", "b"]
    assert points[1].name is None


def test_load_live_points_skips_malformed_items(tmp_path, caplog):
    path = tmp_path / "live.json"
    path.write_text(
        json.dumps([{"guid": "a", "lat": 1, "lng": 2}, {"guid": "b", "name": "x"}, "junk", {"guid": "c", "lat": 3, "lng": 4}])
    )
    with caplog.at_level("WARNING", logger="catanscout.catalog.loader"):
        points = load_live_points(path)
    assert [p.guid for p in points] == ["a", "c"]
    assert "live item #1" in caplog.text


def test_load_live_points_rejects_a_non_list_file(tmp_path):
    path = tmp_path / "live.json"
    path.write_text(json.dumps({"guid": "a"}))
    with pytest.raises(ValueError, match="expected a JSON list"):
        load_live_points(path)
