# src/catanscout/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/catanscout/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `CATANSCOUT_LOG_LEVEL`, `CATANSCOUT_STORE_PATH`)
- an external YAML file via `CATANSCOUT_CONFIG_PATH`

Design rule:
- Tuning knobs (grid levels, debounce delays, tolerances) live in YAML, not hard-coded in the engine.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from catanscout.core.env import load_dotenv_if_present
from catanscout.grid.projection import MAX_LEVEL


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `catanscout.config`."""
    text = resources.files("catanscout.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "CatanScout"
    log_level: str = "INFO"


class StorageSettings(BaseModel):
    path: str = "data/catan.json"


class GridOverlay(BaseModel):
    level: int = Field(..., ge=0, le=MAX_LEVEL)
    width: int = Field(2, ge=0)
    color: str = "#004D40"
    opacity: float = Field(0.5, ge=0, le=1)


class GridSettings(BaseModel):
    classification_level: int = Field(17, ge=0, le=MAX_LEVEL)
    score_level: int = Field(15, ge=0, le=MAX_LEVEL)
    min_draw_level: int = Field(6, ge=0, le=MAX_LEVEL)
    min_draw_zoom: float = Field(5, ge=0)
    max_cells_per_overlay: int = Field(5000, ge=1)
    overlays: list[GridOverlay] = Field(
        default_factory=lambda: [GridOverlay(level=14, width=5), GridOverlay(level=0, width=2, color="#388E3C")]
    )


class ReconciliationSettings(BaseModel):
    analyze_for_missing_data: bool = True
    min_sweep_zoom: float | None = Field(15, ge=0)
    sweep_debounce_seconds: float = Field(1.0, ge=0)
    moved_tolerance_deg: float = Field(1e-12, ge=0, allow_inf_nan=False)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    grid: GridSettings = Field(default_factory=GridSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)
    log_level = os.getenv("CATANSCOUT_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    store_path = os.getenv("CATANSCOUT_STORE_PATH")
    if store_path:
        data.setdefault("storage", {})["path"] = store_path

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("CATANSCOUT_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
