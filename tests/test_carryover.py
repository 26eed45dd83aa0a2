# tests/test_carryover.py
"""Unit tests for the concentration carryover policy and NOx rescaling."""

from __future__ import annotations

import numpy as np
import pytest

from box_engine.carryover import CarryoverPolicy, rescale_nox
from box_engine.config import ModelOptions
from box_engine.errors import NumericDegeneracyError
from box_engine.kinetics import ChemistryContext

_I_NOX = np.array([0, 1], dtype=np.intp)


# -------------------------------------------------------------------
# rescale_nox
# -------------------------------------------------------------------


def test_rescale_nox_equal_totals_is_identity() -> None:
    """Matching totals leave every value unchanged."""
    conc = np.array([3.0, 7.0, 1.0])
    init = np.array([5.0, 5.0, 9.0])

    out = rescale_nox(conc, init, _I_NOX)

    assert np.allclose(out, conc)
    assert out is not conc


def test_rescale_nox_keeps_distribution_and_restores_total() -> None:
    """NOx total returns to the initial total; the partitioning is kept."""
    conc = np.array([1.0, 3.0, 2.0])
    init = np.array([10.0, 10.0, 0.0])

    out = rescale_nox(conc, init, _I_NOX)

    assert out[0] + out[1] == pytest.approx(20.0)
    assert out[1] / out[0] == pytest.approx(3.0)
    assert out[2] == 2.0
    assert np.array_equal(conc, [1.0, 3.0, 2.0])


def test_rescale_nox_zero_total_raises_by_default() -> None:
    """A zero modeled total cannot be rescaled."""
    with pytest.raises(NumericDegeneracyError, match="NOx total is zero"):
        rescale_nox(np.array([0.0, 0.0, 1.0]), np.array([1.0, 1.0, 1.0]), _I_NOX)


def test_rescale_nox_zero_total_skip_warns() -> None:
    """With the skip policy the values are left unscaled."""
    conc = np.array([0.0, 0.0, 1.0])
    with pytest.warns(RuntimeWarning, match="rescaling skipped"):
        out = rescale_nox(conc, np.array([1.0, 1.0, 1.0]), _I_NOX, zero_policy="skip")

    assert np.array_equal(out, conc)


def test_rescale_nox_without_nox_species_is_noop() -> None:
    """An empty NOx family never triggers the zero-total check."""
    conc = np.zeros(3)
    out = rescale_nox(conc, np.ones(3), np.empty(0, dtype=np.intp))

    assert np.array_equal(out, conc)


# -------------------------------------------------------------------
# CarryoverPolicy
# -------------------------------------------------------------------


def test_initial_state_without_previous_state_copies_init(
    chem: ChemistryContext, conc_init: np.ndarray
) -> None:
    """The first interval starts from the initial conditions."""
    policy = CarryoverPolicy.from_options(chem, ModelOptions(int_time=60.0))
    y0 = policy.initial_state(conc_init, None)

    assert np.array_equal(y0, conc_init)
    y0[0] = -1.0
    assert conc_init[0] == 10.0


def test_initial_state_resets_held_species(
    chem: ChemistryContext, conc_init: np.ndarray
) -> None:
    """Carried-over values are used except for held species."""
    policy = CarryoverPolicy.from_options(chem, ModelOptions(int_time=60.0))
    last = np.array([1.0, 2.0, 3.0, 55.0])

    y0 = policy.initial_state(conc_init, last)

    assert np.array_equal(y0, [1.0, 2.0, 3.0, 100.0])
    assert last[3] == 55.0


def test_initial_state_with_fix_nox_rescales_family(
    chem: ChemistryContext, conc_init: np.ndarray
) -> None:
    """FixNOx restores the initial NOx total after carryover."""
    options = ModelOptions(int_time=60.0, fix_nox=True)
    policy = CarryoverPolicy.from_options(chem, options)

    y0 = policy.initial_state(conc_init, np.array([2.0, 1.0, 30.0, 90.0]))

    assert y0[0] + y0[1] == pytest.approx(15.0)
    assert y0[0] == pytest.approx(10.0)
    assert y0[2] == 30.0
    assert y0[3] == 100.0


def test_policy_takes_zero_policy_from_options(chem: ChemistryContext) -> None:
    """nox_zero_policy is forwarded to the policy."""
    options = ModelOptions(int_time=60.0, fix_nox=True, nox_zero_policy="skip")
    policy = CarryoverPolicy.from_options(chem, options)

    assert policy.fix_nox
    assert policy.zero_policy == "skip"
    assert np.array_equal(policy.i_nox, [0, 1])
