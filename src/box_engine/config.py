# src/box_engine/config.py
"""Configuration model for a single box-model integration step.

This module defines the pydantic-facing ModelOptions object and translates its
solver-related fields into the native SolverConfig consumed by the integrator.

Notes:
    - ModelOptions accepts both snake_case names and the CamelCase keys used by
      legacy option files (IntTime, FixNOx, EndPointsOnly, LinkSteps, Verbose).
    - Unknown fields are allowed and ignored (`extra="allow"`), so option files
      shared with an outer driver can be passed through unchanged.
    - Options are frozen: one instance may be shared by every call of a sweep.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from box_engine.errors import raise_option_conflict
from box_engine.integrator import SolverConfig

StiffMethodName = Literal["BDF", "Radau", "LSODA"]
NOxZeroPolicy = Literal["raise", "skip"]


class ModelOptions(BaseModel):
    """Options controlling one integration step.

    Notes:
        - `strict` governs mutually inconsistent combinations, currently
          `link_steps` together with an active solar cycle.
        - Solver tolerances default to the classic stiff-solver defaults
          (rtol=1e-3, atol=1e-6).
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    int_time: float = Field(
        alias="IntTime",
        gt=0.0,
        description="Duration of one interval, s",
    )

    fix_nox: bool = Field(
        default=False,
        alias="FixNOx",
        description="Rescale carried-over NOx to the initial-condition total",
    )

    end_points_only: bool = Field(
        default=False,
        alias="EndPointsOnly",
        description="Return only the final state of the step",
    )

    link_steps: bool = Field(
        default=False,
        alias="LinkSteps",
        description="Offset output times for chained multi-step runs",
    )

    verbose: int = Field(default=0, alias="Verbose", ge=0)

    strict: bool = Field(
        default=True,
        description="Fail fast on inconsistent option combinations",
    )

    nox_zero_policy: NOxZeroPolicy = Field(
        default="raise",
        description="Behavior when the carried-over NOx total is zero",
    )

    # Stiff solver controls
    method: StiffMethodName = Field(default="BDF")
    rtol: float = Field(default=1e-3, gt=0.0)
    atol: float = Field(default=1e-6, gt=0.0)
    max_step: float = Field(default=float("inf"), gt=0.0)
    first_step: float | None = Field(default=None, gt=0.0)

    def to_solver_config(self) -> SolverConfig:
        """Convert the solver fields to a native SolverConfig.

        Returns:
            Fully constructed SolverConfig instance.

        Raises:
            ConfigurationError: If first_step does not fit inside one interval.
        """
        if self.first_step is not None and self.first_step > self.int_time:
            raise_option_conflict(
                options=["first_step", "int_time"],
                reason=(
                    f"first_step={self.first_step} s exceeds the interval length "
                    f"int_time={self.int_time} s"
                ),
                downgradable=False,
            )
        return SolverConfig(
            method=self.method,
            rtol=self.rtol,
            atol=self.atol,
            max_step=self.max_step,
            first_step=self.first_step,
        )
