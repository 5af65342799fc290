"""Tests for the optimizer settings loader."""

from pathlib import Path

import pytest

from blockflow.optimization.data_model import OptimizerSettings
from blockflow.optimization.settings_loader import default_settings, load_settings


def test_default_settings():
    s = default_settings()
    assert s.oracle_timeout_seconds == 10.0
    assert s.confidence_floor == 60
    assert s.improvement_cap == 90.0
    assert s.cache_capacity == 100
    assert s.cache_eviction_fraction == 0.2
    assert s.cache_max_age_hours == 24.0
    assert s.cache_min_accuracy == 0.7
    assert s.cache_ttl_seconds == 300


def test_load_settings_none_and_instance():
    assert load_settings(None) == default_settings()
    custom = OptimizerSettings(confidence_floor=40)
    assert load_settings(custom) is custom


def test_load_settings_from_dict_keeps_defaults_for_missing_keys():
    s = load_settings({"confidence_floor": 50, "oracle_timeout_seconds": 2})
    assert s.confidence_floor == 50
    assert isinstance(s.oracle_timeout_seconds, float)
    assert s.oracle_timeout_seconds == 2.0
    assert s.cache_capacity == 100


def test_load_settings_casts_integral_floats():
    s = load_settings({"cache_capacity": 10.0})
    assert s.cache_capacity == 10
    assert isinstance(s.cache_capacity, int)


@pytest.mark.parametrize(
    "data",
    [
        {"no_such_setting": 1},
        {"confidence_floor": "high"},
        {"confidence_floor": True},
        {"cache_capacity": 2.5},
        {"oracle_timeout_seconds": -1},
        {"cache_eviction_fraction": 0},
        {"cache_eviction_fraction": 1.5},
        {"cache_min_accuracy": 2},
    ],
)
def test_load_settings_rejects_bad_values(data):
    with pytest.raises(ValueError):
        load_settings(data)


def test_load_settings_rejects_unsupported_source():
    with pytest.raises(TypeError):
        load_settings(42)


def test_load_settings_from_yaml(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text("confidence_floor: 70\ncache_ttl_seconds: 60\n", encoding="utf-8")
    s = load_settings(path)
    assert s.confidence_floor == 70
    assert s.cache_ttl_seconds == 60


def test_load_settings_from_nested_yaml(tmp_path: Path):
    path = tmp_path / "settings.yml"
    path.write_text("optimizer:\n  cache_capacity: 5\n", encoding="utf-8")
    assert load_settings(str(path)).cache_capacity == 5


def test_load_settings_empty_yaml_gives_defaults(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_settings(path) == default_settings()


def test_load_settings_yaml_errors(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.yaml")

    broken = tmp_path / "broken.yaml"
    broken.write_text("confidence_floor: [unclosed\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(broken)

    listed = tmp_path / "list.yaml"
    listed.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(listed)

    nested = tmp_path / "nested.yaml"
    nested.write_text("optimizer: 3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(nested)
