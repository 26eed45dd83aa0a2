"""box_engine: one-step integrator for box-model atmospheric chemistry."""

from __future__ import annotations

from .carryover import CarryoverPolicy, rescale_nox
from .config import ModelOptions
from .errors import (
    BoxEngineError,
    ConfigurationError,
    IntegrationFailure,
    NumericDegeneracyError,
)
from .integrator import (
    JacobianEvaluator,
    OdeParameters,
    RHSEvaluator,
    SolverConfig,
    StiffIntegrator,
    Trajectory,
)
from .interval_core import IntervalCore, IntervalCoreOptions
from .kinetics import (
    EMPTY_SLOT,
    RO2_SLOT,
    ChemistryContext,
    MassActionKinetics,
    RateConstantCalculator,
)
from .params import (
    MeteorologyRecord,
    SharedParameters,
    SolarLocation,
    SolarParameterRecord,
    materialize,
)
from .solar import SubIntervalSchedule, expand_solar_cycle, solar_position
from .step import (
    EndpointOutput,
    StepContext,
    StepResult,
    SubIntervalOutput,
    TrajectoryOutput,
    integrate_step,
)

__all__ = [
    "EMPTY_SLOT",
    "RO2_SLOT",
    "BoxEngineError",
    "CarryoverPolicy",
    "ChemistryContext",
    "ConfigurationError",
    "EndpointOutput",
    "IntegrationFailure",
    "IntervalCore",
    "IntervalCoreOptions",
    "JacobianEvaluator",
    "MassActionKinetics",
    "MeteorologyRecord",
    "ModelOptions",
    "NumericDegeneracyError",
    "OdeParameters",
    "RHSEvaluator",
    "RateConstantCalculator",
    "SharedParameters",
    "SolarLocation",
    "SolarParameterRecord",
    "SolverConfig",
    "StepContext",
    "StepResult",
    "StiffIntegrator",
    "SubIntervalOutput",
    "SubIntervalSchedule",
    "Trajectory",
    "TrajectoryOutput",
    "expand_solar_cycle",
    "integrate_step",
    "materialize",
    "rescale_nox",
    "solar_position",
]

__version__ = "0.1.0"
