"""Tests for rollout configuration."""

import pytest

from rollout.config import RolloutConfig, build_config, load_config_file
from rollout.errors import ConfigError


def test_defaults():
    config = RolloutConfig(target="orders", candidate="7").validate()
    assert config.alias == "live"
    assert config.step == 0.1
    assert config.tick_interval == 1.0
    assert config.call_timeout is None


@pytest.mark.parametrize("changes", [
    {"step": 0},
    {"step": -0.5},
    {"step": 1.01},
    {"target": ""},
    {"candidate": ""},
    {"alias": ""},
    {"tick_interval": -1},
    {"call_timeout": 0},
    {"max_attempts": 0},
])
def test_invalid_values(changes):
    values = {"target": "orders", "candidate": "7", **changes}
    with pytest.raises(ConfigError):
        RolloutConfig(**values).validate()


def test_step_of_one_is_allowed():
    assert RolloutConfig(target="orders", candidate="7", step=1.0).validate().step == 1.0


def test_config_error_is_value_error():
    with pytest.raises(ValueError):
        RolloutConfig(target="orders", candidate="7", step=2).validate()


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigError, match="bogus"):
        RolloutConfig.from_dict({"target": "orders", "candidate": "7", "bogus": 1})


def test_from_dict_requires_target_and_candidate():
    with pytest.raises(ConfigError):
        RolloutConfig.from_dict({"alias": "live"})


def test_file_values_overridden_by_flags(tmp_path):
    path = tmp_path / "rollout.yaml"
    path.write_text("target: orders\ncandidate: '7'\nstep: 0.25\nalias: beta\n")

    config = build_config(load_config_file(path), {"step": 0.5, "alias": None})

    assert config.step == 0.5
    assert config.alias == "beta"
    assert config.candidate == "7"


def test_empty_file_is_empty_mapping(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config_file(path) == {}


def test_non_mapping_file_rejected(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- orders\n- '7'\n")
    with pytest.raises(ConfigError):
        load_config_file(path)


def test_missing_file_rejected(tmp_path):
    with pytest.raises(ConfigError):
        load_config_file(tmp_path / "missing.yaml")


def test_invalid_yaml_rejected(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("target: [orders\n")
    with pytest.raises(ConfigError):
        load_config_file(path)


def test_string_numbers_from_file_are_coerced(tmp_path):
    path = tmp_path / "rollout.yaml"
    path.write_text("target: orders\ncandidate: 7\nstep: '0.5'\nmax_attempts: '3'\n")

    config = build_config(load_config_file(path), {})

    assert config.step == 0.5
    assert config.candidate == "7"
    assert config.max_attempts == 3


@pytest.mark.parametrize("changes", [
    {"step": "half"},
    {"step": [0.5]},
    {"step": True},
    {"candidate": {"version": 7}},
    {"max_attempts": "three"},
])
def test_wrongly_typed_values_are_config_errors(changes):
    with pytest.raises(ConfigError):
        RolloutConfig.from_dict({"target": "orders", "candidate": "7", **changes})
