# src/box_engine/integrator.py
"""Stiff implicit integration of one chemistry interval.

The integrator advances a concentration vector over the time domain
[0, int_time] with an implicit multistep/Runge-Kutta method from SciPy
(`solve_ivp` with method "BDF", "Radau" or "LSODA"). The right-hand side and
its Jacobian are supplied as explicit evaluator objects bound to an immutable
parameter bundle; nothing is captured from the surrounding scope.

Contract:
    - The returned trajectory starts at t = 0 with the initial vector and ends
      at t = int_time with the final vector.
    - Every internal solver time point is retained.
    - Solver non-convergence, non-finite derivatives and non-finite states are
      reported as IntegrationFailure; they are never converted to NaN output.

The Jacobian only accelerates the Newton iterations of the implicit method;
the solution does not depend on it beyond solver tolerances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Literal, Protocol, TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.integrate import solve_ivp

from .errors import IntegrationFailure, raise_integration_failure, raise_shape_error

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

FloatArray: TypeAlias = NDArray[np.float64]
IndexArray: TypeAlias = NDArray[np.intp]

MethodName = Literal["BDF", "Radau", "LSODA"]


# =============================================================================
# Errors / messages
# =============================================================================

_NONFINITE_RHS_MSG: Final[str] = "non-finite derivative at t={t:.6g} s"
_NONFINITE_JAC_MSG: Final[str] = "non-finite Jacobian at t={t:.6g} s"
_NONFINITE_STATE_MSG: Final[str] = "solver returned non-finite concentrations"


# =============================================================================
# Evaluator protocols
# =============================================================================


class RHSEvaluator(Protocol):
    """Time derivative of the concentration vector."""

    def __call__(
        self, t: float, y: FloatArray, params: OdeParameters
    ) -> FloatArray:
        """Return dy/dt, shape (n_species,)."""
        ...


class JacobianEvaluator(Protocol):
    """Jacobian d(dy/dt)/dy of an RHSEvaluator."""

    def __call__(
        self, t: float, y: FloatArray, params: OdeParameters
    ) -> FloatArray:
        """Return the Jacobian, shape (n_species, n_species)."""
        ...


# =============================================================================
# Configuration / parameter dataclasses
# =============================================================================


@dataclass(slots=True, frozen=True)
class SolverConfig:
    """Configuration for the stiff solver.

    Attributes:
        method: SciPy implicit method name.
        rtol: Relative tolerance.
        atol: Absolute tolerance.
        max_step: Maximum internal step size, s.
        first_step: Optional initial step size guess, s.
    """

    method: MethodName = "BDF"
    rtol: float = 1e-3
    atol: float = 1e-6
    max_step: float = float("inf")
    first_step: float | None = None


def _frozen(arr: object, dtype: object) -> NDArray:
    out = np.array(arr, dtype=dtype)
    out.setflags(write=False)
    return out


@dataclass(slots=True, frozen=True)
class OdeParameters:
    """Fixed parameter bundle for one interval.

    Array attributes are private read-only copies, so a bundle can be shared
    between the RHS and Jacobian evaluators without aliasing caller data.

    Attributes:
        k: Rate constants for this interval, shape (n_reactions,).
        f: Stoichiometry matrix, shape (n_reactions, n_species).
        i_g: Reactant index matrix, shape (n_reactions, max_order).
        i_ro2: Indices of species lumped into the RO2 pool.
        i_hold: Indices of held species.
        kdil: First-order dilution rate constant, 1/s.
        tgauss: Gaussian dispersion timescale, s (0 disables).
        conc_bkgd: Background concentrations, shape (n_species,).
        int_time: Interval duration, s.
        verbose: Verbosity level forwarded to evaluators.
    """

    k: FloatArray
    f: FloatArray
    i_g: IndexArray
    i_ro2: IndexArray
    i_hold: IndexArray
    kdil: float
    tgauss: float
    conc_bkgd: FloatArray
    int_time: float
    verbose: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "k", _frozen(self.k, np.float64))
        object.__setattr__(self, "f", _frozen(self.f, np.float64))
        object.__setattr__(self, "i_g", _frozen(self.i_g, np.intp))
        object.__setattr__(self, "i_ro2", _frozen(self.i_ro2, np.intp))
        object.__setattr__(self, "i_hold", _frozen(self.i_hold, np.intp))
        object.__setattr__(self, "conc_bkgd", _frozen(self.conc_bkgd, np.float64))
        object.__setattr__(self, "kdil", float(self.kdil))
        object.__setattr__(self, "tgauss", float(self.tgauss))
        object.__setattr__(self, "int_time", float(self.int_time))

        n_rx, n_sp = self.f.shape
        if self.k.shape != (n_rx,):
            raise_shape_error(name="k", expected=f"({n_rx},)", got=self.k.shape)
        if self.conc_bkgd.shape != (n_sp,):
            raise_shape_error(
                name="conc_bkgd", expected=f"({n_sp},)", got=self.conc_bkgd.shape
            )

    @property
    def n_species(self) -> int:
        """Number of species."""
        return int(self.f.shape[1])


@dataclass(slots=True, frozen=True)
class Trajectory:
    """Solver output for one interval.

    Attributes:
        time: Time points, shape (T,).
        conc: Concentrations at each time point, shape (T, n_species).
    """

    time: FloatArray
    conc: FloatArray

    @property
    def final_time(self) -> float:
        """Time of the last point."""
        return float(self.time[-1])

    @property
    def final_state(self) -> FloatArray:
        """Concentrations at the last point (a copy)."""
        return np.array(self.conc[-1], dtype=np.float64)

    def shifted(self, offset: float) -> Trajectory:
        """Return the trajectory with `offset` added to every time point."""
        if offset == 0.0:
            return self
        return Trajectory(time=self.time + offset, conc=self.conc)


# =============================================================================
# Bound evaluators
# =============================================================================


@dataclass(slots=True, frozen=True)
class BoundRHS:
    """RHS evaluator bound to a parameter bundle, callable as f(t, y)."""

    evaluator: RHSEvaluator
    params: OdeParameters

    def __call__(self, t: float, y: FloatArray) -> FloatArray:
        dydt = np.asarray(self.evaluator(t, y, self.params), dtype=np.float64)
        n = self.params.n_species
        if dydt.shape != (n,):
            raise_shape_error(name="rhs", expected=f"({n},)", got=dydt.shape)
        if not np.all(np.isfinite(dydt)):
            raise IntegrationFailure(_NONFINITE_RHS_MSG.format(t=t))
        return dydt


@dataclass(slots=True, frozen=True)
class BoundJacobian:
    """Jacobian evaluator bound to a parameter bundle, callable as J(t, y)."""

    evaluator: JacobianEvaluator
    params: OdeParameters

    def __call__(self, t: float, y: FloatArray) -> FloatArray:
        jac = np.asarray(self.evaluator(t, y, self.params), dtype=np.float64)
        n = self.params.n_species
        if jac.shape != (n, n):
            raise_shape_error(name="jacobian", expected=f"({n}, {n})", got=jac.shape)
        if not np.all(np.isfinite(jac)):
            raise IntegrationFailure(_NONFINITE_JAC_MSG.format(t=t))
        return jac


# =============================================================================
# Integrator
# =============================================================================


@dataclass(slots=True)
class StiffIntegrator:
    """Stiff implicit integrator for one box-model interval."""

    rhs: RHSEvaluator
    jacobian: JacobianEvaluator | None = None
    config: SolverConfig = field(default_factory=SolverConfig)

    def _solver_kwargs(self) -> dict[str, object]:
        kwargs: dict[str, object] = {
            "method": self.config.method,
            "rtol": self.config.rtol,
            "atol": self.config.atol,
            "max_step": self.config.max_step,
        }
        if self.config.first_step is not None:
            kwargs["first_step"] = self.config.first_step
        return kwargs

    def integrate(
        self,
        y0: FloatArray,
        params: OdeParameters,
        *,
        interval: int = 1,
        n_intervals: int = 1,
    ) -> Trajectory:
        """Integrate one interval from t = 0 to t = params.int_time.

        Args:
            y0: Initial concentrations, shape (n_species,).
            params: Parameter bundle for this interval.
            interval: 1-based sub-interval index, used in error reports.
            n_intervals: Total number of sub-intervals, used in error reports.

        Returns:
            Trajectory with every internal solver time point.

        Raises:
            IntegrationFailure: If the solver fails or values become non-finite.
            ConfigurationError: If y0 or an evaluator result has the wrong shape.
        """
        y_init = np.array(y0, dtype=np.float64)
        if y_init.shape != (params.n_species,):
            raise_shape_error(
                name="y0", expected=f"({params.n_species},)", got=y_init.shape
            )

        fun: Callable[[float, FloatArray], FloatArray] = BoundRHS(self.rhs, params)
        jac = None if self.jacobian is None else BoundJacobian(self.jacobian, params)

        try:
            sol = solve_ivp(
                fun,
                (0.0, params.int_time),
                y_init,
                jac=jac,
                **self._solver_kwargs(),
            )
        except IntegrationFailure as exc:
            raise_integration_failure(
                interval=interval, n_intervals=n_intervals, reason=str(exc)
            )

        if not sol.success:
            raise_integration_failure(
                interval=interval, n_intervals=n_intervals, reason=str(sol.message)
            )

        conc = np.ascontiguousarray(sol.y.T, dtype=np.float64)
        if not np.all(np.isfinite(conc)):
            raise_integration_failure(
                interval=interval, n_intervals=n_intervals, reason=_NONFINITE_STATE_MSG
            )

        logger.debug(
            "Interval %d of %d: %d time points, nfev=%d, njev=%d",
            interval,
            n_intervals,
            sol.t.size,
            sol.nfev,
            sol.njev,
        )
        return Trajectory(time=np.asarray(sol.t, dtype=np.float64), conc=conc)
