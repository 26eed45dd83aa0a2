# box_engine/examples/diurnal_nox.py
"""NO-NO2-O3 photostationary box over a diurnal cycle using integrate_step.

This example demonstrates the core API:

- One call with solar parameters slices the step into hourly sub-intervals and
  recomputes the NO2 photolysis rate from the solar zenith angle of each.
- Two linked days are run by passing the final state of the first call as
  `conc_last` of the second; held O2 is reset from the initial conditions and
  the NOx family is renormalized (FixNOx).
- A non-solar call with the full trajectory shows every internal solver point.

We model NO + O3 -> NO2 + O2 and NO2 + hv -> NO + O3 in ppb, with O2 held.

This script saves plots to disk (no interactive windows).
"""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from box_engine import (
    EMPTY_SLOT,
    ChemistryContext,
    MeteorologyRecord,
    ModelOptions,
    SharedParameters,
    StepContext,
    integrate_step,
)

_OUTPUT_DIR = Path(__file__).resolve().parent / "output" / "diurnal_nox"

_SPECIES = ("NO", "NO2", "O3", "O2")
_K_TITRATION = 4.4e-4  # 1/(ppb s) at 298 K
_J_NO2_OVERHEAD = 8.0e-3  # 1/s


def photostationary_rates(met: MeteorologyRecord, options: ModelOptions) -> np.ndarray:
    """Rate constants (n_rows, 2): titration and NO2 photolysis.

    Args:
        met: Meteorology with a per-row "SZA" field, degrees.
        options: Model options (unused).

    Returns:
        Rate-constant matrix, one row per meteorology row.
    """
    del options
    sza = np.atleast_1d(np.asarray(met["SZA"], dtype=float))
    j_no2 = _J_NO2_OVERHEAD * np.maximum(np.cos(np.radians(sza)), 0.0) ** 0.8
    return np.column_stack((np.full(sza.shape, _K_TITRATION), j_no2))


def build_chemistry() -> ChemistryContext:
    """Two-reaction NOx/O3 mechanism with O2 held."""
    f = np.array(
        [
            [-1.0, 1.0, -1.0, 1.0],
            [1.0, -1.0, 1.0, 0.0],
        ]
    )
    i_g = np.array([[0, 2], [1, EMPTY_SLOT]])
    return ChemistryContext(
        f=f,
        i_g=i_g,
        i_nox=[0, 1],
        i_hold=[3],
        rate_calculator=photostationary_rates,
    )


def save_species_plot(
    time: np.ndarray,
    conc: np.ndarray,
    *,
    title: str,
    out_path: Path,
    marker: str | None = None,
) -> None:
    """Save NO, NO2 and O3 concentrations to an image file.

    Args:
        time: Output times, s.
        conc: Concentrations, shape (n_times, n_species).
        title: Plot title.
        out_path: Output path for the saved figure.
        marker: Optional matplotlib marker.
    """
    hours = np.asarray(time) / 3600.0

    plt.figure(figsize=(8, 5))
    for idx, name in enumerate(_SPECIES[:3]):
        plt.plot(hours, conc[:, idx], label=name, marker=marker)
    plt.grid(visible=True)
    plt.legend()
    plt.title(title)
    plt.xlabel("Time (h)")
    plt.ylabel("Mixing ratio (ppb)")
    plt.tight_layout()

    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_path, dpi=150)
    plt.close()


def main() -> None:
    """Run a two-day diurnal cycle and a single midday interval.

    Files are written to: examples/output/diurnal_nox/
    """
    chem = build_chemistry()
    conc_init = np.array([5.0, 15.0, 40.0, 2.1e8])
    conc_bkgd = np.zeros(4)
    k_seed = photostationary_rates(MeteorologyRecord({"SZA": 30.0}), None)  # type: ignore[arg-type]

    met = (
        SharedParameters(fixed={"kdil": 0.0, "tgauss": 0.0, "T": 298.0}),
        None,
    )
    solar_shared = SharedParameters(
        fixed={"nDays": 1, "lat": 40.0, "lon": -105.0, "alt": 1600.0},
        sliced_names=("startTime",),
    )

    # ---------------------------------------------------------------------
    # (1) Two linked days of hourly solar sub-intervals
    # ---------------------------------------------------------------------
    options = ModelOptions(int_time=3600.0, fix_nox=True, verbose=1)
    days = [(2020, 6, 21, 0, 0, 0), (2020, 6, 22, 0, 0, 0)]

    times: list[np.ndarray] = []
    concs: list[np.ndarray] = []
    conc_last = None
    for day, start in enumerate(days, start=1):
        result = integrate_step(
            StepContext(step_index=day, step_count=len(days)),
            conc_init,
            conc_last,
            conc_bkgd,
            options,
            chem,
            k_seed,
            met,
            (solar_shared, [start]),
        )
        times.append(np.asarray(result.time) + (day - 1) * 86400.0)
        concs.append(result.conc)
        conc_last = result.conc_last

    save_species_plot(
        np.concatenate(times),
        np.vstack(concs),
        title="NOx/O3 over two days (hourly solar sub-intervals)",
        out_path=_OUTPUT_DIR / "two_day_cycle.png",
        marker=".",
    )

    # ---------------------------------------------------------------------
    # (2) One interval at fixed SZA: full solver trajectory
    # ---------------------------------------------------------------------
    single = integrate_step(
        StepContext(),
        conc_init,
        None,
        conc_bkgd,
        ModelOptions(int_time=600.0, rtol=1e-6, atol=1e-9),
        chem,
        k_seed,
        met,
    )
    save_species_plot(
        np.asarray(single.time),
        single.conc,
        title="Relaxation to photostationary state (SZA = 30 deg)",
        out_path=_OUTPUT_DIR / "single_interval.png",
    )


if __name__ == "__main__":
    main()
