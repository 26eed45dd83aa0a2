# src/box_engine/carryover.py
"""Initial concentrations for each sub-interval.

The first sub-interval of a fresh simulation starts from the initial
conditions. Every later sub-interval (and every linked step) starts from the
final state of the previous one, with two corrections:

- held species are reset to their initial-condition values, and
- optionally, the NOx family is rescaled so its total matches the
  initial-condition total while keeping the carried-over distribution.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import NumericDegeneracyError

if TYPE_CHECKING:
    from .config import ModelOptions
    from .kinetics import ChemistryContext

FloatArray: TypeAlias = NDArray[np.float64]
IndexArray: TypeAlias = NDArray[np.intp]

_ZERO_NOX_MSG: Final[str] = (
    "Cannot rescale NOx: carried-over NOx total is zero "
    "(initial-condition total {init_total:.6g})."
)
_ZERO_NOX_SKIP_MSG: Final[str] = (
    "Carried-over NOx total is zero; NOx rescaling skipped for this interval."
)


def rescale_nox(
    conc: FloatArray,
    conc_init: FloatArray,
    i_nox: IndexArray,
    *,
    zero_policy: Literal["raise", "skip"] = "raise",
) -> FloatArray:
    """Rescale the NOx family of `conc` to the initial-condition NOx total.

    adjusted = modeled * sum(initial) / sum(modeled), element-wise.

    Args:
        conc: Carried-over concentrations (not modified).
        conc_init: Initial-condition concentrations.
        i_nox: Indices of the NOx family.
        zero_policy: "raise" or "skip" when the modeled total is zero.

    Returns:
        New concentration vector.

    Raises:
        NumericDegeneracyError: If the modeled total is zero and
            zero_policy is "raise".
    """
    out = np.array(conc, dtype=np.float64)
    if i_nox.size == 0:
        return out

    modeled = out[i_nox]
    init_total = float(np.sum(conc_init[i_nox]))
    modeled_total = float(np.sum(modeled))

    if modeled_total == 0.0:
        if zero_policy == "raise":
            raise NumericDegeneracyError(_ZERO_NOX_MSG.format(init_total=init_total))
        warnings.warn(_ZERO_NOX_SKIP_MSG, RuntimeWarning, stacklevel=2)
        return out

    out[i_nox] = modeled * init_total / modeled_total
    return out


@dataclass(slots=True, frozen=True)
class CarryoverPolicy:
    """Rules for the initial state of each sub-interval.

    Attributes:
        i_hold: Held species.
        i_nox: NOx family.
        fix_nox: Whether to rescale NOx on carryover.
        zero_policy: Behavior for a zero carried-over NOx total.
    """

    i_hold: IndexArray
    i_nox: IndexArray
    fix_nox: bool = False
    zero_policy: Literal["raise", "skip"] = "raise"

    @classmethod
    def from_options(
        cls, chem: ChemistryContext, options: ModelOptions
    ) -> CarryoverPolicy:
        """Build the policy for a chemistry context and option set."""
        return cls(
            i_hold=chem.i_hold,
            i_nox=chem.i_nox,
            fix_nox=options.fix_nox,
            zero_policy=options.nox_zero_policy,
        )

    def initial_state(
        self, conc_init: FloatArray, conc_last: FloatArray | None
    ) -> FloatArray:
        """Return the initial concentrations of the next sub-interval.

        Args:
            conc_init: Initial conditions of the step.
            conc_last: Final state of the previous sub-interval or step, or None.

        Returns:
            New concentration vector (never aliases the inputs).
        """
        if conc_last is None:
            return np.array(conc_init, dtype=np.float64)

        conc = np.array(conc_last, dtype=np.float64)
        conc[self.i_hold] = conc_init[self.i_hold]
        if self.fix_nox:
            conc = rescale_nox(conc, conc_init, self.i_nox, zero_policy=self.zero_policy)
        return conc
