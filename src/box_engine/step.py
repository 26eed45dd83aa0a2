# src/box_engine/step.py
"""Advance a box-model concentration vector through one step.

The step runs as a sequence of N >= 1 sub-intervals of length int_time:

1. materialize the meteorology and solar records for this call,
2. build the sub-interval schedule (N > 1 only under solar cycling),
3. for each sub-interval: choose the initial state (carryover policy), then
   integrate with the stiff solver,
4. offset the times and assemble the output for the configured mode.

Output modes, in priority order:
    - EndpointOutput:    end_points_only; final state and time of the step.
    - SubIntervalOutput: solar cycling; one row per sub-interval end.
    - TrajectoryOutput:  otherwise; every solver time point of the interval.

Calls share no mutable state. Carryover between linked steps is threaded
explicitly through `conc_last`.
"""

from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Literal, TypeAlias

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .carryover import CarryoverPolicy
from .errors import raise_option_conflict, raise_shape_error
from .integrator import OdeParameters, StiffIntegrator, Trajectory
from .interval_core import IntervalCore, IntervalCoreOptions
from .params import ParameterSource, materialize
from .solar import SolarPositionCalculator, expand_solar_cycle, solar_position

if TYPE_CHECKING:
    from .config import ModelOptions
    from .kinetics import ChemistryContext
    from .solar import SubIntervalSchedule

logger = logging.getLogger(__name__)

FloatArray: TypeAlias = NDArray[np.float64]
IntArray: TypeAlias = NDArray[np.int64]

_LINK_SOLAR_REASON: Final[str] = (
    "link_steps offsets times by step and repetition, but solar cycling "
    "already places every sub-interval on its own time axis"
)
_LINK_SOLAR_WARNING: Final[str] = (
    "link_steps is ignored while solar cycling is active; sub-interval times "
    "start at 0 for this step."
)


# =============================================================================
# Step context / outputs
# =============================================================================


@dataclass(slots=True, frozen=True)
class StepContext:
    """Position of a call within a simulation.

    Attributes:
        step_index: 1-based step index.
        rep_index: 1-based repetition index.
        step_count: Total number of steps per repetition.
    """

    step_index: int = 1
    rep_index: int = 1
    step_count: int = 1

    def __post_init__(self) -> None:
        for name in ("step_index", "rep_index", "step_count"):
            value = getattr(self, name)
            if int(value) != value or value < 1:
                raise_shape_error(name=name, expected="a positive integer", got=value)


@dataclass(slots=True, frozen=True)
class EndpointOutput:
    """Final state of the step only."""

    conc: FloatArray
    time: float
    kind: Literal["endpoint"] = "endpoint"

    @property
    def final_state(self) -> FloatArray:
        """Concentrations at the end of the step (a copy)."""
        return self.conc.copy()

    @property
    def time_vector(self) -> FloatArray:
        """Output time as a length-1 array."""
        return np.array([self.time], dtype=np.float64)


@dataclass(slots=True, frozen=True)
class SubIntervalOutput:
    """Final state of every solar sub-interval."""

    conc: FloatArray
    time: FloatArray
    kind: Literal["sub_interval"] = "sub_interval"

    @property
    def final_state(self) -> FloatArray:
        """Concentrations at the end of the step (a copy)."""
        return self.conc[-1].copy()

    @property
    def time_vector(self) -> FloatArray:
        """Output times."""
        return self.time


@dataclass(slots=True, frozen=True)
class TrajectoryOutput:
    """Every solver time point of a single interval."""

    conc: FloatArray
    time: FloatArray
    kind: Literal["trajectory"] = "trajectory"

    @property
    def final_state(self) -> FloatArray:
        """Concentrations at the end of the step (a copy)."""
        return self.conc[-1].copy()

    @property
    def time_vector(self) -> FloatArray:
        """Output times."""
        return self.time


StepOutput: TypeAlias = EndpointOutput | SubIntervalOutput | TrajectoryOutput


@dataclass(slots=True, frozen=True)
class StepResult:
    """Everything one step produces.

    Attributes:
        output: Concentrations and times, shaped by the output mode.
        step_index: Step index broadcast to the length of the time output.
        rep_index: Repetition index broadcast to the length of the time output.
        k_solar: Rate constants used under solar cycling (last row only with
            end_points_only); empty otherwise.
        sza_solar: Solar zenith angles used under solar cycling; empty otherwise.
    """

    output: StepOutput
    step_index: IntArray
    rep_index: IntArray
    k_solar: FloatArray
    sza_solar: FloatArray

    @property
    def conc(self) -> FloatArray:
        """Output concentrations."""
        return self.output.conc

    @property
    def time(self) -> FloatArray | float:
        """Output time(s)."""
        return self.output.time

    @property
    def conc_last(self) -> FloatArray:
        """Final state, the carryover source of the next linked step."""
        return self.output.final_state


# =============================================================================
# Time / index assembly
# =============================================================================


def interval_time_offset(
    h: int,
    step: StepContext,
    int_time: float,
    *,
    solar_active: bool,
    link_steps: bool,
) -> float:
    """Absolute time of the start of sub-interval h (1-based), s."""
    if solar_active:
        return (h - 1) * int_time
    if link_steps:
        return (step.step_index - 1) * int_time + (
            (step.rep_index - 1) * step.step_count * int_time
        )
    return 0.0


def broadcast_indices(step: StepContext, time_vector: FloatArray) -> tuple[IntArray, IntArray]:
    """Step and repetition indices, one per output time."""
    shape = np.shape(time_vector)
    return (
        np.full(shape, step.step_index, dtype=np.int64),
        np.full(shape, step.rep_index, dtype=np.int64),
    )


# =============================================================================
# Output assembly
# =============================================================================


def assemble_output(
    core: IntervalCore,
    trajectory: Trajectory,
    *,
    end_points_only: bool,
    solar_active: bool,
) -> StepOutput:
    """Select the output shape for the configured mode.

    Args:
        core: Interval core holding every sub-interval end state.
        trajectory: Time-offset trajectory of the last sub-interval.
        end_points_only: Collapse to the final state.
        solar_active: Whether the step ran a solar cycle.

    Returns:
        One of EndpointOutput, SubIntervalOutput, TrajectoryOutput.
    """
    if end_points_only:
        return EndpointOutput(conc=trajectory.final_state, time=trajectory.final_time)
    if solar_active:
        if core.state_array is None or core.time_array is None:
            msg = "sub-interval output requires interval history"
            raise RuntimeError(msg)
        return SubIntervalOutput(
            conc=core.state_array.copy(), time=core.time_array.copy()
        )
    return TrajectoryOutput(conc=trajectory.conc.copy(), time=trajectory.time.copy())


def _solar_outputs(
    schedule: SubIntervalSchedule, *, end_points_only: bool
) -> tuple[FloatArray, FloatArray]:
    if not schedule.active:
        empty = np.empty(0, dtype=np.float64)
        return empty, empty.copy()
    k_solar = schedule.k[-1].copy() if end_points_only else schedule.k.copy()
    return k_solar, schedule.sza.copy()


# =============================================================================
# Step driver
# =============================================================================


def _as_concentration(values: ArrayLike, *, name: str, n_species: int) -> FloatArray:
    arr = np.array(values, dtype=np.float64).reshape(-1)
    if arr.shape != (n_species,):
        raise_shape_error(name=name, expected=f"({n_species},)", got=arr.shape)
    return arr


def _check_option_consistency(options: ModelOptions, *, solar_active: bool) -> bool:
    """Return the effective link_steps flag."""
    if not (options.link_steps and solar_active):
        return options.link_steps
    if options.strict:
        raise_option_conflict(options=["link_steps", "n_days"], reason=_LINK_SOLAR_REASON)
    warnings.warn(_LINK_SOLAR_WARNING, RuntimeWarning, stacklevel=3)
    return False


def _format_elapsed(seconds: float) -> str:
    return time.strftime("%H:%M:%S", time.gmtime(seconds))


def integrate_step(
    step: StepContext,
    conc_init: ArrayLike,
    conc_last: ArrayLike | None,
    conc_bkgd: ArrayLike,
    options: ModelOptions,
    chem: ChemistryContext,
    k: ArrayLike,
    met_params: ParameterSource,
    solar_params: ParameterSource | None = None,
    *,
    position: SolarPositionCalculator = solar_position,
) -> StepResult:
    """Integrate the chemistry for one step.

    Args:
        step: Step/repetition position of this call.
        conc_init: Initial conditions, shape (n_species,).
        conc_last: Final state of the previous linked step, or None.
        conc_bkgd: Background concentrations, shape (n_species,).
        options: Model options.
        chem: Chemistry context (mechanism, index sets, collaborators).
        k: Rate constants for this step, (n_rows, n_reactions) or
            (n_reactions,). Recomputed per sub-interval under solar cycling.
        met_params: (shared, slice) meteorology parameters.
        solar_params: (shared, slice) solar parameters, or None.
        position: Solar position calculator.

    Returns:
        StepResult for the configured output mode.

    Raises:
        ConfigurationError: On malformed parameters, shapes or options.
        IntegrationFailure: If a sub-interval cannot be integrated.
        NumericDegeneracyError: If NOx rescaling meets a zero modeled total.
    """
    started = time.perf_counter()
    if options.verbose >= 1:
        logger.info("Step %d of %d", step.step_index, step.step_count)

    met, solar = materialize(met_params, solar_params)

    n_sp = chem.n_species
    init = _as_concentration(conc_init, name="conc_init", n_species=n_sp)
    last = (
        None
        if conc_last is None
        else _as_concentration(conc_last, name="conc_last", n_species=n_sp)
    )
    bkgd = _as_concentration(conc_bkgd, name="conc_bkgd", n_species=n_sp)
    kdil = met.scalar("kdil")
    tgauss = met.scalar("tgauss")

    schedule = expand_solar_cycle(met, solar, options, chem, k, position=position)
    link_steps = _check_option_consistency(options, solar_active=schedule.active)
    n_intervals = schedule.n_intervals

    policy = CarryoverPolicy.from_options(chem, options)
    integrator = StiffIntegrator(
        rhs=chem.rhs, jacobian=chem.jacobian, config=options.to_solver_config()
    )
    core = IntervalCore(
        n_sp,
        n_intervals,
        options.int_time,
        options=IntervalCoreOptions(store_history=schedule.active),
    )

    trajectory: Trajectory | None = None
    for h in range(1, n_intervals + 1):
        if options.verbose >= 2 and schedule.active:
            logger.info("Solar cycle %d of %d", h, n_intervals)

        y0 = policy.initial_state(init, last)
        offset = interval_time_offset(
            h,
            step,
            options.int_time,
            solar_active=schedule.active,
            link_steps=link_steps,
        )
        params = OdeParameters(
            k=schedule.rate_row(h),
            f=chem.f,
            i_g=chem.i_g,
            i_ro2=chem.i_ro2,
            i_hold=chem.i_hold,
            kdil=kdil,
            tgauss=tgauss,
            conc_bkgd=bkgd,
            int_time=options.int_time,
            verbose=options.verbose,
        )
        trajectory = integrator.integrate(
            y0, params, interval=h, n_intervals=n_intervals
        ).shifted(offset)

        core.record_interval(trajectory.final_state, trajectory.final_time)
        last = core.last_state()

    if trajectory is None:  # pragma: no cover - n_intervals >= 1
        msg = "no sub-interval was integrated"
        raise RuntimeError(msg)

    output = assemble_output(
        core,
        trajectory,
        end_points_only=options.end_points_only,
        solar_active=schedule.active,
    )
    step_idx, rep_idx = broadcast_indices(step, output.time_vector)
    k_solar, sza_solar = _solar_outputs(
        schedule, end_points_only=options.end_points_only
    )

    if options.verbose >= 1:
        logger.info(
            "  Step %d time: %s",
            step.step_index,
            _format_elapsed(time.perf_counter() - started),
        )

    return StepResult(
        output=output,
        step_index=step_idx,
        rep_index=rep_idx,
        k_solar=k_solar,
        sza_solar=sza_solar,
    )
