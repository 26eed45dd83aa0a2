# tests/test_config.py
"""Unit tests for ModelOptions."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from box_engine.config import ModelOptions
from box_engine.errors import ConfigurationError
from box_engine.integrator import SolverConfig


def test_defaults() -> None:
    """Only int_time is required; solver defaults are rtol=1e-3, atol=1e-6."""
    opts = ModelOptions(int_time=60.0)

    assert not opts.fix_nox
    assert not opts.end_points_only
    assert not opts.link_steps
    assert opts.verbose == 0
    assert opts.strict
    assert opts.nox_zero_policy == "raise"
    assert opts.method == "BDF"
    assert opts.rtol == 1e-3
    assert opts.atol == 1e-6
    assert math.isinf(opts.max_step)
    assert opts.first_step is None


def test_legacy_aliases_are_accepted() -> None:
    """CamelCase keys from legacy option files populate the same fields."""
    opts = ModelOptions.model_validate(
        {
            "IntTime": 3600,
            "FixNOx": 1,
            "EndPointsOnly": True,
            "LinkSteps": False,
            "Verbose": 2,
            "SavePath": "unused",
        }
    )

    assert opts.int_time == 3600.0
    assert opts.fix_nox
    assert opts.end_points_only
    assert opts.verbose == 2


def test_to_solver_config() -> None:
    """Solver fields are forwarded unchanged."""
    opts = ModelOptions(
        int_time=60.0, method="Radau", rtol=1e-6, atol=1e-9, max_step=5.0, first_step=0.1
    )

    assert opts.to_solver_config() == SolverConfig(
        method="Radau", rtol=1e-6, atol=1e-9, max_step=5.0, first_step=0.1
    )


@pytest.mark.parametrize(
    "bad",
    [
        {"int_time": 0.0},
        {"int_time": -1.0},
        {"int_time": 60.0, "verbose": -1},
        {"int_time": 60.0, "method": "RK45"},
        {"int_time": 60.0, "nox_zero_policy": "ignore"},
        {"int_time": 60.0, "rtol": 0.0},
        {},
    ],
)
def test_invalid_options_raise_validation_error(bad: dict[str, object]) -> None:
    """Out-of-range values, unknown methods and missing int_time are rejected."""
    with pytest.raises(ValidationError):
        ModelOptions.model_validate(bad)


def test_options_are_frozen() -> None:
    """One instance can be shared across calls."""
    opts = ModelOptions(int_time=60.0)
    with pytest.raises(ValidationError):
        opts.int_time = 120.0  # type: ignore[misc]


def test_first_step_longer_than_interval_is_a_conflict() -> None:
    """The initial step guess must fit inside one interval."""
    opts = ModelOptions(int_time=600.0, first_step=1e6)

    with pytest.raises(ConfigurationError, match="first_step") as excinfo:
        opts.to_solver_config()

    assert "strict=False" not in str(excinfo.value)
    assert ModelOptions(int_time=600.0, first_step=600.0).to_solver_config().first_step == 600.0
