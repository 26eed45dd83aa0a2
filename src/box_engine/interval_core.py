# src/box_engine/interval_core.py
"""State container for the sub-intervals of one integration step.

IntervalCore tracks the final concentration vector and absolute end time of
every completed sub-interval of a step. It is the carryover source for the
next sub-interval and the store behind per-sub-interval output.

The core does not integrate anything; it only manages state, times and shape
checks in a loop-friendly manner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

import numpy as np
import numpy.typing as npt

from .errors import raise_shape_error

# Error / message constants -------------------------------------------------

_N_SPECIES_ERROR = "n_species must be at least 1"
_N_INTERVALS_ERROR = "n_intervals must be at least 1"
_INT_TIME_ERROR = "int_time must be positive"

_FINAL_INTERVAL_ERROR = "All sub-intervals of the step have already been recorded"
_NO_INTERVAL_ERROR = "No sub-interval has been recorded yet"


# Typing helpers ------------------------------------------------------------

FloatArray = npt.NDArray[np.floating[Any]]


@dataclass(slots=True)
class IntervalCoreOptions:
    """Optional configuration for IntervalCore.

    Attributes:
        store_history: Whether to keep the final state of every sub-interval.
            Only the latest state is kept otherwise.
    """

    store_history: bool = True


class IntervalCore:
    """Boundary-state manager for the sub-intervals of one step."""

    def __init__(
        self,
        n_species: int,
        n_intervals: int,
        int_time: float,
        *,
        options: IntervalCoreOptions | None = None,
    ) -> None:
        """
        Initialize IntervalCore.

        Args:
            n_species: Length of the concentration vector.
            n_intervals: Number of sub-intervals in the step.
            int_time: Length of each sub-interval, s.
            options: Optional IntervalCoreOptions.

        Raises:
            ValueError: if a size or the interval length is invalid.
        """
        opts = options or IntervalCoreOptions()

        self.n_species = int(n_species)
        if self.n_species < 1:
            raise ValueError(_N_SPECIES_ERROR)
        self.n_intervals = int(n_intervals)
        if self.n_intervals < 1:
            raise ValueError(_N_INTERVALS_ERROR)
        self.int_time = float(int_time)
        if not self.int_time > 0.0:
            raise ValueError(_INT_TIME_ERROR)

        self.store_history = bool(opts.store_history)
        self.current_interval = 0

        self.current_state = np.zeros(self.n_species, dtype=np.float64)
        self.current_time = 0.0

        # Optional history: (n_intervals, n_species) and (n_intervals,)
        self.state_array: FloatArray | None
        self.time_array: FloatArray | None
        if self.store_history:
            self.state_array = cast(
                "FloatArray",
                np.full((self.n_intervals, self.n_species), np.nan, dtype=np.float64),
            )
            self.time_array = cast(
                "FloatArray", np.full(self.n_intervals, np.nan, dtype=np.float64)
            )
        else:
            self.state_array = None
            self.time_array = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_complete(self) -> bool:
        """Whether every sub-interval has been recorded."""
        return self.current_interval >= self.n_intervals

    @property
    def has_recorded(self) -> bool:
        """Whether at least one sub-interval has been recorded."""
        return self.current_interval > 0

    def validate_state_shape(self, arr: np.ndarray, *, name: str = "state") -> None:
        """
        Validate that arr is a concentration vector of length n_species.

        Args:
            arr: Array to validate.
            name: Name used in the error message.

        Raises:
            ConfigurationError: if arr has the wrong shape.
        """
        arr_shape = np.asarray(arr).shape
        if arr_shape != (self.n_species,):
            raise_shape_error(name=name, expected=f"({self.n_species},)", got=arr_shape)

    def last_state(self) -> FloatArray:
        """
        Return a copy of the final state of the latest sub-interval.

        Raises:
            RuntimeError: if nothing has been recorded.
        """
        if not self.has_recorded:
            raise RuntimeError(_NO_INTERVAL_ERROR)
        return self.current_state.copy()

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def record_interval(self, final_state: np.ndarray, final_time: float) -> None:
        """
        Record the end of the next sub-interval.

        Args:
            final_state: Concentrations at the end of the sub-interval.
            final_time: Absolute end time, s.

        Raises:
            RuntimeError: if every sub-interval is already recorded.
        """
        if self.is_complete:
            raise RuntimeError(_FINAL_INTERVAL_ERROR)
        self.validate_state_shape(final_state, name="final_state")

        np.copyto(self.current_state, np.asarray(final_state, dtype=np.float64))
        self.current_time = float(final_time)

        if self.store_history and self.state_array is not None:
            self.state_array[self.current_interval] = self.current_state
        if self.store_history and self.time_array is not None:
            self.time_array[self.current_interval] = self.current_time

        self.current_interval += 1
