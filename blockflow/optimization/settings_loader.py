"""
Optimizer settings loader: supports YAML files, dicts, OptimizerSettings instances, and defaults.
"""

from __future__ import annotations

from dataclasses import fields
from pathlib import Path

import yaml

from blockflow.optimization.data_model import OptimizerSettings


def default_settings() -> OptimizerSettings:
    """Return the default settings (10s oracle timeout, floor 60, cap 90, 100 cached models)."""
    return OptimizerSettings()


def load_settings(
    source: OptimizerSettings | str | Path | dict | None,
) -> OptimizerSettings:
    """
    Load OptimizerSettings from various sources.

    Args:
        source: Can be:
            - OptimizerSettings instance: returned as-is
            - str or Path: treated as YAML file path
            - dict: field values, missing keys take defaults
            - None: returns default_settings()

    Raises:
        FileNotFoundError: If source is a file path that doesn't exist
        ValueError: If the YAML is invalid, or a field is unknown or has the wrong type
    """
    if source is None:
        return default_settings()

    if isinstance(source, OptimizerSettings):
        return source

    if isinstance(source, (str, Path)):
        return _load_from_yaml_file(source)

    if isinstance(source, dict):
        return _load_from_dict(source)

    raise TypeError(f"Unsupported source type for load_settings: {type(source).__name__}")


def _load_from_yaml_file(path: str | Path) -> OptimizerSettings:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Settings file not found: {file_path}")

    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML file {file_path}: {e}") from e

    if data is None:
        return default_settings()
    if not isinstance(data, dict):
        raise ValueError(f"YAML file {file_path}: expected dict, got {type(data).__name__}")

    # Settings may sit at the root or under an ``optimizer`` key.
    if "optimizer" in data:
        nested = data["optimizer"]
        if not isinstance(nested, dict):
            raise ValueError(f"YAML file {file_path}: 'optimizer' must be a dict")
        return _load_from_dict(nested)
    return _load_from_dict(data)


def _load_from_dict(data: dict) -> OptimizerSettings:
    defaults = default_settings()
    known = {f.name: f for f in fields(OptimizerSettings)}

    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"Unknown settings field(s): {', '.join(unknown)}")

    values: dict[str, float | int] = {}
    for name, value in data.items():
        expected = type(getattr(defaults, name))
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(
                f"Setting '{name}' must be a number, got {type(value).__name__}"
            )
        if expected is int and not float(value).is_integer():
            raise ValueError(f"Setting '{name}' must be an integer, got {value}")
        if value < 0:
            raise ValueError(f"Setting '{name}' must not be negative, got {value}")
        values[name] = expected(value)

    if "cache_eviction_fraction" in values and not 0 < values["cache_eviction_fraction"] <= 1:
        raise ValueError("Setting 'cache_eviction_fraction' must be in (0, 1]")
    if "cache_min_accuracy" in values and values["cache_min_accuracy"] > 1:
        raise ValueError("Setting 'cache_min_accuracy' must be in [0, 1]")

    return OptimizerSettings(**{**{n: getattr(defaults, n) for n in known}, **values})
