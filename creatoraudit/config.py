from __future__ import annotations

import os

import yaml


CONFIG_KEYS = {
    "org": str,
    "out": str,
    "out_json": str,
    "filter": str,
    "propagation_wait": int,
    "log_viewer_role": str,
    "log_freshness": str,
    "self_heal": bool,
}


def load_config_yaml(path: str) -> dict:
    """
    Load run defaults from a YAML mapping.

    Only keys in CONFIG_KEYS are accepted. Values are type-checked; numeric
    organization ids written without quotes are accepted and turned into
    strings.
    """
    if not os.path.exists(path):
        raise SystemExit(f"Missing config file `{path}`.")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except Exception as exc:
        raise SystemExit(f"Failed to parse `{path}`: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SystemExit(f"`{path}` is invalid (expected a YAML mapping).")

    out: dict = {}
    for key, value in data.items():
        if key not in CONFIG_KEYS:
            raise SystemExit(f"`{path}`: unknown key `{key}`. Valid keys: {', '.join(CONFIG_KEYS)}")
        expected = CONFIG_KEYS[key]
        if key == "org" and isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if value is None:
            continue
        if expected is int and (isinstance(value, bool) or not isinstance(value, int)):
            raise SystemExit(f"`{path}`: `{key}` must be an integer.")
        if not isinstance(value, expected):
            raise SystemExit(f"`{path}`: `{key}` must be a {expected.__name__}.")
        if key == "propagation_wait" and value < 0:
            raise SystemExit(f"`{path}`: `propagation_wait` must be >= 0.")
        out[key] = value
    return out
