"""Tests for configuration loading and validation."""

from __future__ import annotations

import time

import numpy as np
import pytest
import yaml

from nca_metric.config import (
    ConfigurationError,
    NCAConfig,
    build_config,
    create_default_config,
    dump_config,
    load_config,
    load_raw_config,
    make_rng,
    resolve_seed,
)


def test_defaults() -> None:
    config = NCAConfig()
    assert config.optimizer == "sgd"
    assert config.max_iterations == 500000
    assert config.tolerance == pytest.approx(1e-7)
    assert config.sgd.step_size == pytest.approx(0.01)
    assert config.sgd.batch_size == 50
    assert config.lbfgs.num_basis == 5
    assert config.lbfgs.max_line_search_trials == 50
    assert config.whitening.epsilon == pytest.approx(5e-5)


@pytest.mark.parametrize(
    "raw",
    [
        {"optimizer": "adam"},
        {"max_iterations": -1},
        {"tolerance": -1e-3},
        {"sgd": {"step_size": 0.0}},
        {"sgd": {"batch_size": 0}},
        {"lbfgs": {"num_basis": 0}},
        {"lbfgs": {"wolfe": 1.5}},
        {"lbfgs": {"min_step": -1.0}},
    ],
)
def test_invalid_values_raise_configuration_error(raw) -> None:
    with pytest.raises(ConfigurationError):
        build_config(raw)


def test_ignored_options_reports_other_optimizer() -> None:
    config = build_config({"optimizer": "sgd", "lbfgs": {"num_basis": 10}})
    notices = config.ignored_options()
    assert notices == ["'num_basis' ignored because L-BFGS optimizer is not being used"]

    config = build_config({"optimizer": "lbfgs", "sgd": {"batch_size": 7, "linear_scan": True}})
    notices = config.ignored_options()
    assert len(notices) == 2
    assert all("SGD optimizer is not being used" in notice for notice in notices)


def test_ignored_options_reports_explicit_default_values() -> None:
    config = build_config({"optimizer": "lbfgs", "sgd": {"step_size": 0.01, "batch_size": 50}})
    assert config.ignored_options() == [
        "'step_size' ignored because SGD optimizer is not being used",
        "'batch_size' ignored because SGD optimizer is not being used",
    ]
    assert build_config({"optimizer": "lbfgs", "lbfgs": {"num_basis": 10}}).ignored_options() == []


def test_default_config_file_reports_nothing(tmp_path) -> None:
    path = tmp_path / "nca.config.yaml"
    create_default_config(path)
    assert load_config(path).ignored_options() == []

    path = tmp_path / "lbfgs.yaml"
    dump_config(build_config({"optimizer": "lbfgs"}), path)
    assert load_config(path).ignored_options() == []


def test_yaml_round_trip(tmp_path) -> None:
    path = tmp_path / "nca.config.yaml"
    create_default_config(path)

    with path.open() as handle:
        raw = yaml.safe_load(handle)
    assert raw["optimizer"] == "sgd"
    assert raw["sgd"]["batch_size"] == 50
    assert "lbfgs" not in raw

    assert load_config(path).model_dump() == NCAConfig().model_dump()


def test_environment_variables_are_expanded(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("NCA_OPTIMIZER", "lbfgs")
    path = tmp_path / "env.yaml"
    path.write_text("optimizer: ${NCA_OPTIMIZER}\nmax_iterations: 25\n")

    assert load_raw_config(path)["optimizer"] == "lbfgs"
    config = load_config(path)
    assert config.optimizer == "lbfgs"
    assert config.max_iterations == 25


def test_missing_and_malformed_files(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_raw_config(tmp_path / "missing.yaml")

    path = tmp_path / "list.yaml"
    path.write_text("- sgd\n- lbfgs\n")
    with pytest.raises(ConfigurationError):
        load_raw_config(path)

    path = tmp_path / "broken.yaml"
    path.write_text("optimizer: [sgd\n")
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_raw_config(path)


def test_resolve_seed() -> None:
    assert resolve_seed(42) == 42
    before = int(time.time())
    assert resolve_seed(0) >= before


def test_make_rng_is_reproducible() -> None:
    first = make_rng(11).permutation(20)
    second = make_rng(11).permutation(20)
    np.testing.assert_array_equal(first, second)
