from __future__ import annotations


# Overrides come from JSON payloads (dict-like objects), so typing stays flexible here
# and shape problems are reported as ValueError with the offending dotted path.
from typing import Any, Mapping

from catanscout.config.settings import Settings

"""
Per-request settings overrides (safe subset).

API clients can send `settings_overrides` to tune grid levels or reconciliation knobs
for a single request. This module:
- validates the override payload against a whitelist,
- deep-merges the safe subset onto current settings,
- re-validates with Pydantic to ensure types/ranges remain correct.

Security note:
We intentionally do NOT allow overriding the storage path or logging setup.
"""

# Which parts of the global Settings object can be overridden per request.
#
# How to read this structure:
# - A value of True means "allow any keys under this subtree".
# - A nested dict means "only allow the listed keys, recursively".
ALLOWED_SETTINGS_OVERRIDES_TREE: dict[str, Any] = {
    # Grid levels only change which cells points fall into and what gets drawn.
    "grid": {
        "classification_level": True,
        "score_level": True,
        "min_draw_level": True,
        "min_draw_zoom": True,
        "overlays": True,
    },
    # Reconciliation knobs are numeric thresholds and flags.
    "reconciliation": True,
}


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    # A new dict, so the caller's `base` (possibly a cached dump) is never mutated.
    merged: dict[str, Any] = dict(base)
    for key, override_value in override.items():
        # Mappings on both sides merge recursively so nested keys override cleanly.
        if isinstance(override_value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(dict(merged[key]), override_value)
            continue
        # Otherwise, the override replaces the base value.
        merged[key] = override_value
    return merged


def _filter_overrides(
    overrides: Mapping[str, Any],
    *,
    allowed_tree: Mapping[str, Any],
    path: tuple[str, ...] = (),
) -> dict[str, Any]:
    filtered: dict[str, Any] = {}
    for key, value in overrides.items():
        # Unknown keys are rejected early with a precise path.
        if key not in allowed_tree:
            dotted_path = ".".join((*path, key))
            raise ValueError(
                f"settings_overrides contains a disallowed key: '{dotted_path}'"
            )

        allowed = allowed_tree[key]
        if allowed is True:
            filtered[key] = value
            continue

        # A restricted subtree must be overridden with a mapping we can recurse into.
        if not isinstance(value, Mapping):
            dotted_path = ".".join((*path, key))
            raise ValueError(
                f"settings_overrides key '{dotted_path}' must be a mapping"
            )

        filtered[key] = _filter_overrides(
            value, allowed_tree=allowed, path=(*path, key)
        )
    return filtered


def apply_settings_overrides(
    settings: Settings, overrides: Mapping[str, Any] | None
) -> Settings:
    # No overrides: hand back the same (shared) Settings object.
    if not overrides:
        return settings

    # Validate and strip overrides to the safe subset (raises ValueError on disallowed keys).
    safe_overrides = _filter_overrides(
        overrides, allowed_tree=ALLOWED_SETTINGS_OVERRIDES_TREE
    )

    merged_payload = _deep_merge(settings.model_dump(mode="python"), safe_overrides)

    # Re-validate so a request can never run with out-of-range levels.
    return Settings.model_validate(merged_payload)
