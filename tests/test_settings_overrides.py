from __future__ import annotations

import pytest

# We import the existing Settings loader so tests run with the real default config structure.
from catanscout.config.settings import get_settings

# The override helper is pure and guards what API clients may change per request.
from catanscout.config.overrides import apply_settings_overrides


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults_are_loaded_from_packaged_yaml():
    settings = get_settings()
    assert settings.grid.classification_level == 17
    assert settings.grid.score_level == 15
    assert [o.level for o in settings.grid.overlays] == [14, 0]
    assert settings.reconciliation.min_sweep_zoom == 15


def test_env_overrides_store_path_and_log_level(monkeypatch, fresh_settings):
    monkeypatch.setenv("CATANSCOUT_STORE_PATH", "/tmp/elsewhere.json")
    monkeypatch.setenv("CATANSCOUT_LOG_LEVEL", "DEBUG")
    settings = get_settings()
    assert settings.storage.path == "/tmp/elsewhere.json"
    assert settings.app.log_level == "DEBUG"


def test_external_config_file(monkeypatch, tmp_path, fresh_settings):
    path = tmp_path / "catan.yaml"
    path.write_text("grid:\n  classification_level: 16\n", encoding="utf-8")
    monkeypatch.setenv("CATANSCOUT_CONFIG_PATH", str(path))
    settings = get_settings()
    assert settings.grid.classification_level == 16
    # Sections missing from the file fall back to model defaults.
    assert settings.reconciliation.sweep_debounce_seconds == 1.0


def test_apply_settings_overrides_returns_same_object_when_none():
    settings = get_settings()
    # No overrides is a no-op returning the shared cached object.
    assert apply_settings_overrides(settings, None) is settings


def test_apply_settings_overrides_can_override_allowed_knobs():
    settings = get_settings()
    out = apply_settings_overrides(settings, {"grid": {"classification_level": 16}, "reconciliation": {"min_sweep_zoom": None}})

    assert out.grid.classification_level == 16
    assert out.reconciliation.min_sweep_zoom is None
    # The shared settings must remain unchanged (no cross-request leakage).
    assert settings.grid.classification_level == 17


def test_apply_settings_overrides_rejects_disallowed_keys_with_clear_path():
    settings = get_settings()
    # The store location is a file path and never overridable per request.
    with pytest.raises(ValueError, match=r"storage"):
        apply_settings_overrides(settings, {"storage": {"path": "/etc/passwd"}})
    with pytest.raises(ValueError, match=r"grid\.max_cells_per_overlay"):
        apply_settings_overrides(settings, {"grid": {"max_cells_per_overlay": 10**9}})


def test_apply_settings_overrides_rejects_wrong_value_shapes_for_restricted_subtrees():
    settings = get_settings()
    with pytest.raises(ValueError, match=r"settings_overrides key 'grid' must be a mapping"):
        apply_settings_overrides(settings, {"grid": 1})


def test_apply_settings_overrides_revalidates_ranges():
    settings = get_settings()
    with pytest.raises(ValueError):
        apply_settings_overrides(settings, {"grid": {"classification_level": 31}})
