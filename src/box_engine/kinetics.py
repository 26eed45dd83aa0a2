# src/box_engine/kinetics.py
"""Chemistry context and reference mass-action kinetics.

A mechanism is described by two matrices:

- ``i_g``: reactant indices, shape (n_reactions, max_order). Each entry is a
  species index, ``EMPTY_SLOT`` (-1) for an unused slot, or ``RO2_SLOT`` (-2)
  for the lumped peroxy-radical pool (the sum over ``i_ro2``).
- ``f``: stoichiometry, shape (n_reactions, n_species). Reactants carry
  negative coefficients, products positive ones.

With rate constants k (one row per interval) the reference RHS is

    rate_r = k_r * prod(reactant concentrations of r)
    dy/dt  = f^T rate - kdil_eff * (y - y_bkgd)
    dy/dt[i_hold] = 0

where kdil_eff is ``kdil``, or ``1 / (2 (t + tgauss))`` when ``tgauss > 0``
(Gaussian plume dispersion). The Jacobian is its exact derivative.

The two negative sentinels index an augmented vector ``[y, RO2, 1]``, so a
single fancy-indexing pass gathers every reactant factor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import raise_shape_error

if TYPE_CHECKING:
    from .config import ModelOptions
    from .integrator import JacobianEvaluator, OdeParameters, RHSEvaluator
    from .params import MeteorologyRecord

logger = logging.getLogger(__name__)

FloatArray: TypeAlias = NDArray[np.float64]
IndexArray: TypeAlias = NDArray[np.intp]

EMPTY_SLOT: Final[int] = -1
RO2_SLOT: Final[int] = -2


class RateConstantCalculator(Protocol):
    """Rate constants from meteorology.

    Returns one row per meteorology row (n_rows, n_reactions).
    """

    def __call__(self, met: MeteorologyRecord, options: ModelOptions) -> FloatArray:
        """Compute the rate-constant matrix."""
        ...


def dilution_rate(t: float, params: OdeParameters) -> float:
    """Effective first-order dilution rate at time t, 1/s."""
    if params.tgauss > 0.0:
        return 1.0 / (2.0 * (t + params.tgauss))
    return params.kdil


def _augmented(y: FloatArray, i_ro2: IndexArray) -> FloatArray:
    ro2 = float(y[i_ro2].sum()) if i_ro2.size else 0.0
    return np.concatenate((y, (ro2, 1.0)))


class MassActionKinetics:
    """Reference RHS and analytic Jacobian for mass-action mechanisms."""

    def rhs(self, t: float, y: FloatArray, params: OdeParameters) -> FloatArray:
        """Compute dy/dt.

        Args:
            t: Interval-local time, s.
            y: Concentrations, shape (n_species,).
            params: Interval parameter bundle.

        Returns:
            Time derivative, shape (n_species,).
        """
        if params.verbose >= 3:
            logger.debug("rhs t = %.6g s", t)

        y_arr = np.asarray(y, dtype=np.float64)
        factors = _augmented(y_arr, params.i_ro2)[params.i_g]
        rates = params.k * np.prod(factors, axis=1)

        dydt = params.f.T @ rates
        dydt -= dilution_rate(t, params) * (y_arr - params.conc_bkgd)
        dydt[params.i_hold] = 0.0
        return dydt

    def jacobian(self, t: float, y: FloatArray, params: OdeParameters) -> FloatArray:
        """Compute d(dy/dt)/dy.

        Args:
            t: Interval-local time, s.
            y: Concentrations, shape (n_species,).
            params: Interval parameter bundle.

        Returns:
            Jacobian, shape (n_species, n_species).
        """
        y_arr = np.asarray(y, dtype=np.float64)
        n_rx, order = params.i_g.shape
        n_sp = params.n_species
        rows = np.arange(n_rx)

        factors = _augmented(y_arr, params.i_ro2)[params.i_g]

        # d rate_r / d y_s, one reactant slot at a time
        drate = np.zeros((n_rx, n_sp), dtype=np.float64)
        for m in range(order):
            others = params.k * np.prod(np.delete(factors, m, axis=1), axis=1)
            slot = params.i_g[:, m]

            direct = slot >= 0
            drate[rows[direct], slot[direct]] += others[direct]

            pooled = slot == RO2_SLOT
            if np.any(pooled) and params.i_ro2.size:
                drate[np.ix_(rows[pooled], params.i_ro2)] += others[pooled][:, None]

        jac = params.f.T @ drate
        jac[np.diag_indices(n_sp)] -= dilution_rate(t, params)
        jac[params.i_hold, :] = 0.0
        return jac


_DEFAULT_KINETICS: Final[MassActionKinetics] = MassActionKinetics()


def _index_array(values: object, *, name: str, n_species: int) -> IndexArray:
    arr = np.array(values if values is not None else [], dtype=np.intp).reshape(-1)
    if arr.size and (arr.min() < 0 or arr.max() >= n_species):
        raise_shape_error(
            name=name, expected=f"indices in [0, {n_species})", got=arr.tolist()
        )
    arr.setflags(write=False)
    return arr


@dataclass(slots=True, frozen=True)
class ChemistryContext:
    """Mechanism description and collaborators for one simulation.

    Attributes:
        f: Stoichiometry matrix, shape (n_reactions, n_species).
        i_g: Reactant index matrix, shape (n_reactions, max_order).
        i_ro2: Species lumped into the RO2 pool.
        i_nox: Species of the NOx family, used for NOx renormalization.
        i_hold: Held species, pinned to their initial value every interval.
        rate_calculator: Rate constants from meteorology; required for solar
            cycling.
        rhs: RHS evaluator (defaults to mass-action kinetics).
        jacobian: Jacobian evaluator (defaults to mass-action kinetics). None
            lets the solver estimate it by finite differences.
    """

    f: FloatArray
    i_g: IndexArray
    i_ro2: IndexArray = ()  # type: ignore[assignment]
    i_nox: IndexArray = ()  # type: ignore[assignment]
    i_hold: IndexArray = ()  # type: ignore[assignment]
    rate_calculator: RateConstantCalculator | None = None
    rhs: RHSEvaluator = _DEFAULT_KINETICS.rhs
    jacobian: JacobianEvaluator | None = _DEFAULT_KINETICS.jacobian

    def __post_init__(self) -> None:
        f = np.array(self.f, dtype=np.float64)
        if f.ndim != 2:
            raise_shape_error(name="f", expected="(n_reactions, n_species)", got=f.shape)
        f.setflags(write=False)
        n_rx, n_sp = f.shape

        i_g = np.array(self.i_g, dtype=np.intp)
        if i_g.ndim == 1:
            i_g = i_g.reshape(-1, 1)
        if i_g.ndim != 2 or i_g.shape[0] != n_rx:
            raise_shape_error(
                name="i_g", expected=f"({n_rx}, max_order)", got=i_g.shape
            )
        if i_g.size and (i_g.min() < RO2_SLOT or i_g.max() >= n_sp):
            raise_shape_error(
                name="i_g",
                expected=f"species indices in [0, {n_sp}) or slot sentinels",
                got=(int(i_g.min()), int(i_g.max())),
            )
        i_g.setflags(write=False)

        object.__setattr__(self, "f", f)
        object.__setattr__(self, "i_g", i_g)
        for name in ("i_ro2", "i_nox", "i_hold"):
            arr = _index_array(getattr(self, name), name=name, n_species=n_sp)
            object.__setattr__(self, name, arr)

    @property
    def n_species(self) -> int:
        """Number of species."""
        return int(self.f.shape[1])

    @property
    def n_reactions(self) -> int:
        """Number of reactions."""
        return int(self.f.shape[0])
