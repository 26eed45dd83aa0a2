# tests/test_errors.py
"""Unit tests for box_engine error helpers."""

from __future__ import annotations

import pytest

from box_engine.errors import (
    BoxEngineError,
    ConfigurationError,
    IntegrationFailure,
    NumericDegeneracyError,
    raise_integration_failure,
    raise_invalid_parameters,
    raise_option_conflict,
    raise_shape_error,
)


def test_error_hierarchy() -> None:
    """Errors share a base class and the matching builtin."""
    assert issubclass(ConfigurationError, BoxEngineError)
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(IntegrationFailure, RuntimeError)
    assert issubclass(NumericDegeneracyError, ArithmeticError)


def test_raise_invalid_parameters_lists_fields() -> None:
    """Missing and unexpected names are sorted and de-duplicated."""
    with pytest.raises(ConfigurationError) as excinfo:
        raise_invalid_parameters(missing=["b", "a", "a"], unexpected=["z"], detail="met")

    msg = str(excinfo.value)
    assert "Missing field(s): ['a', 'b']" in msg
    assert "Unexpected field(s): ['z']" in msg
    assert "Detail: met" in msg


def test_raise_shape_error_message() -> None:
    """Shape errors name the object, the expectation and the observed value."""
    with pytest.raises(ConfigurationError, match=r"conc_init has an invalid shape"):
        raise_shape_error(name="conc_init", expected="(4,)", got=(3,))


def test_raise_option_conflict_mentions_strict() -> None:
    """Option conflicts explain how to downgrade them to warnings."""
    with pytest.raises(ConfigurationError) as excinfo:
        raise_option_conflict(options=["n_days", "link_steps"], reason="overlap")

    msg = str(excinfo.value)
    assert "Conflicting model options ['link_steps', 'n_days']" in msg
    assert "strict=False" in msg


def test_raise_integration_failure_carries_interval() -> None:
    """The failing sub-interval is in the message and on the exception."""
    with pytest.raises(IntegrationFailure, match="sub-interval 2 of 24: diverged") as excinfo:
        raise_integration_failure(interval=2, n_intervals=24, reason="diverged")

    assert excinfo.value.interval == 2


def test_raise_option_conflict_without_strict_hint() -> None:
    """Conflicts that strict=False cannot relax omit the hint."""
    with pytest.raises(ConfigurationError) as excinfo:
        raise_option_conflict(options=["a", "b"], reason="r", downgradable=False)

    assert "strict=False" not in str(excinfo.value)
