"""Global pytest configuration and shared fixtures for box_engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest

from box_engine.config import ModelOptions
from box_engine.kinetics import EMPTY_SLOT, ChemistryContext
from box_engine.params import SharedParameters

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from box_engine.params import MeteorologyRecord

# -----------------------------------------------------------------------------
# Species / reactions of the small NO-NO2-O3 test mechanism
# -----------------------------------------------------------------------------

NO, NO2, O3, O2 = 0, 1, 2, 3
N_SPECIES = 4

K_TITRATION = 1.0e-3  # NO + O3 -> NO2 + O2, 1/(conc s)
J_NO2_OVERHEAD = 8.0e-3  # NO2 + hv -> NO + O3, 1/s at SZA = 0


def photostationary_rates(met: MeteorologyRecord, options: ModelOptions) -> NDArray:
    """Rate constants for the test mechanism, one row per meteorology row."""
    del options
    sza = np.atleast_1d(np.asarray(met["SZA"], dtype=float))
    j_no2 = J_NO2_OVERHEAD * np.maximum(np.cos(np.radians(sza)), 0.0)
    return np.column_stack((np.full(sza.shape, K_TITRATION), j_no2))


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used by the test suite."""
    config.addinivalue_line(
        "markers",
        "solar: mark test as running a full solar cycle",
    )


@pytest.fixture
def chem() -> ChemistryContext:
    """NO + O3 -> NO2 + O2 and NO2 + hv -> NO + O3, with O2 held."""
    f = np.array(
        [
            [-1.0, 1.0, -1.0, 1.0],
            [1.0, -1.0, 1.0, 0.0],
        ]
    )
    i_g = np.array(
        [
            [NO, O3],
            [NO2, EMPTY_SLOT],
        ]
    )
    return ChemistryContext(
        f=f,
        i_g=i_g,
        i_nox=[NO, NO2],
        i_hold=[O2],
        rate_calculator=photostationary_rates,
    )


@pytest.fixture
def conc_init() -> NDArray:
    """Initial concentrations (NO, NO2, O3, O2)."""
    return np.array([10.0, 5.0, 40.0, 100.0])


@pytest.fixture
def conc_bkgd() -> NDArray:
    """Background concentrations."""
    return np.zeros(N_SPECIES)


@pytest.fixture
def met_params() -> tuple[SharedParameters, dict[str, object]]:
    """Meteorology with SZA varying per call and no dilution."""
    shared = SharedParameters(
        fixed={"kdil": 0.0, "tgauss": 0.0, "T": 298.0, "P": 1013.0},
        sliced_names=("SZA",),
    )
    return shared, {"SZA": 30.0}


@pytest.fixture
def solar_params() -> tuple[SharedParameters, list[object]]:
    """One day of solar cycling at mid-latitude, start date per call."""
    shared = SharedParameters(
        fixed={"nDays": 1, "lat": 40.0, "lon": -105.0, "alt": 1600.0},
        sliced_names=("startTime",),
    )
    return shared, [(2020, 6, 21, 0, 0, 0)]


@pytest.fixture
def options() -> ModelOptions:
    """Single-interval options with tight tolerances."""
    return ModelOptions(int_time=600.0, rtol=1e-8, atol=1e-10)


@pytest.fixture
def k_seed(met_params: tuple[SharedParameters, dict[str, object]]) -> NDArray:
    """Rate constants at the fixture SZA."""
    sza = float(met_params[1]["SZA"])  # type: ignore[arg-type]
    j_no2 = J_NO2_OVERHEAD * np.cos(np.radians(sza))
    return np.array([[K_TITRATION, j_no2]])
