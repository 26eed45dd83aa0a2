# src/box_engine/solar.py
"""Solar geometry and solar-cycle expansion of one integration step.

When solar forcing is enabled, a step of length ``n_days`` days is sliced into
sub-intervals of ``int_time`` seconds. Each sub-interval gets its own solar
zenith angle and its own row of rate constants, so photolysis follows the
diurnal cycle. Without solar forcing the step is a single sub-interval that
uses the rate constants it was given.

Solar position follows the orbital-position formulation: declination and the
orbital correction to the hour angle are Fourier series in the fractional year.
"""

from __future__ import annotations

import datetime
import logging
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol, TypeAlias

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .errors import raise_invalid_parameters, raise_shape_error

if TYPE_CHECKING:
    from .config import ModelOptions
    from .kinetics import ChemistryContext
    from .params import MeteorologyRecord, SolarLocation, SolarParameterRecord

logger = logging.getLogger(__name__)

FloatArray: TypeAlias = NDArray[np.float64]

SECONDS_PER_DAY: Final[float] = 86400.0
MAX_ZENITH_DEG: Final[float] = 90.0

_NON_DIVISOR_MSG: Final[str] = (
    "int_time={int_time} s does not divide one day; the solar cycle covers "
    "{covered} s of each day"
)
_MISSING_RATE_CALCULATOR_MSG: Final[str] = (
    "solar cycling requires a rate_calculator in the chemistry context"
)


# =============================================================================
# Solar position
# =============================================================================


class SolarPositionCalculator(Protocol):
    """Solar zenith and azimuth for UTC times at a location."""

    def __call__(
        self, times: NDArray[np.datetime64], location: SolarLocation
    ) -> tuple[FloatArray, FloatArray]:
        """Return (zenith, azimuth) in degrees."""
        ...


def orbital_position(time: NDArray[np.datetime64]) -> FloatArray:
    """Orbital position of Earth relative to the start of the year 2000, rad."""
    date_start = np.datetime64(2000 - 1970, "Y")
    dt_day = (time - date_start) / np.timedelta64(1, "D")
    return np.radians(360.0 * (dt_day / 365.25))


def solar_declination_angle(theta_rad: ArrayLike) -> FloatArray:
    """Solar declination angle, degrees, from the orbital position in radians."""
    theta = np.asarray(theta_rad, dtype=np.float64)
    return (
        0.396372
        - (22.91327 * np.cos(theta))
        + (4.02543 * np.sin(theta))
        - (0.387205 * np.cos(2 * theta))
        + (0.051967 * np.sin(2 * theta))
        - (0.154527 * np.cos(3 * theta))
        + (0.084798 * np.sin(3 * theta))
    )


def orbital_correction_for_solar_hour_angle(theta_rad: ArrayLike) -> FloatArray:
    """Correction to the solar hour angle from Earth's orbital location, degrees."""
    theta = np.asarray(theta_rad, dtype=np.float64)
    return (
        0.004297
        + (0.107029 * np.cos(theta))
        - (1.837877 * np.sin(theta))
        - (0.837378 * np.cos(2 * theta))
        - (2.340475 * np.sin(2 * theta))
    )


def solar_hour_angle(
    longitude: float, time: NDArray[np.datetime64], theta_rad: ArrayLike
) -> FloatArray:
    """Solar hour angle, degrees: zero at solar noon, +15 degrees per hour."""
    dt_hour = (time - time.astype("datetime64[D]")) / np.timedelta64(1, "h")
    correction = orbital_correction_for_solar_hour_angle(theta_rad)
    return ((np.asarray(dt_hour, dtype=np.float64) - 12.0) * 15.0) + longitude + correction


def solar_position(
    times: NDArray[np.datetime64], location: SolarLocation
) -> tuple[FloatArray, FloatArray]:
    """Compute solar zenith and azimuth angles.

    Args:
        times: UTC times.
        location: Geographic location. Altitude does not change the geometric
            angles and is ignored.

    Returns:
        (zenith, azimuth) in degrees. Azimuth is measured clockwise from north
        in [0, 360). Zenith is not clamped here.
    """
    t = np.asarray(times, dtype="datetime64[ms]")
    theta_rad = orbital_position(t)

    lat_rad = np.radians(location.lat)
    dec_rad = np.radians(solar_declination_angle(theta_rad))
    ha_rad = np.radians(solar_hour_angle(location.lon, t, theta_rad))

    cos_zen = np.sin(lat_rad) * np.sin(dec_rad) + (
        np.cos(lat_rad) * np.cos(dec_rad) * np.cos(ha_rad)
    )
    zen_rad = np.arccos(np.clip(cos_zen, -1.0, 1.0))

    denom = np.cos(lat_rad) * np.sin(zen_rad)
    with np.errstate(divide="ignore", invalid="ignore"):
        cos_az = (np.sin(dec_rad) - np.sin(lat_rad) * cos_zen) / denom
    cos_az = np.where(np.abs(denom) > 1e-12, cos_az, 1.0)
    az = np.degrees(np.arccos(np.clip(cos_az, -1.0, 1.0)))
    # afternoon: sun is west of the meridian
    az = np.where(np.sin(ha_rad) > 0.0, 360.0 - az, az) % 360.0

    return np.degrees(zen_rad), az


# =============================================================================
# Sub-interval schedule
# =============================================================================


@dataclass(slots=True, frozen=True)
class SubIntervalSchedule:
    """Sub-intervals of one step.

    Attributes:
        active: Whether solar cycling produced the schedule.
        k: Rate constants, one row per sub-interval when active; the rate
            matrix as given otherwise (only the first row is used).
        met: Meteorology, replicated per sub-interval when active.
        sza: Clamped solar zenith angle per sub-interval (empty if inactive).
    """

    active: bool
    k: FloatArray
    met: MeteorologyRecord
    sza: FloatArray

    @property
    def n_intervals(self) -> int:
        """Number of sub-intervals."""
        return int(self.sza.size) if self.active else 1

    def rate_row(self, h: int) -> FloatArray:
        """Rate constants of 1-based sub-interval h."""
        return self.k[h - 1] if self.active else self.k[0]


def cycle_offsets(int_time: float, n_days: int) -> FloatArray:
    """End offsets of every sub-interval within its day, repeated for n_days.

    The daily cycle is int_time, 2 int_time, ... up to one day.

    Raises:
        ConfigurationError: If int_time exceeds one day.
    """
    per_day = int(np.floor(SECONDS_PER_DAY / int_time + 1e-9))
    if per_day < 1:
        raise_shape_error(
            name="int_time",
            expected=f"at most {SECONDS_PER_DAY:.0f} s with solar cycling",
            got=int_time,
        )
    covered = per_day * int_time
    if not np.isclose(covered, SECONDS_PER_DAY):
        warnings.warn(
            _NON_DIVISOR_MSG.format(int_time=int_time, covered=covered),
            RuntimeWarning,
            stacklevel=2,
        )
    day = int_time * np.arange(1, per_day + 1, dtype=np.float64)
    return np.tile(day, n_days)


def cycle_times(
    start_time: tuple[float, ...], offsets: FloatArray
) -> NDArray[np.datetime64]:
    """Absolute UTC times: start (to the minute) plus start seconds plus offsets.

    Raises:
        ConfigurationError: If the start timestamp is not a valid date.
    """
    year, month, day, hour, minute, second = start_time
    try:
        start = datetime.datetime(  # noqa: DTZ001
            int(year), int(month), int(day), int(hour), int(minute)
        )
    except ValueError as exc:
        raise_shape_error(name="start_time", expected="a valid date", got=str(exc))

    seconds = second + np.asarray(offsets, dtype=np.float64)
    delta = np.round(seconds * 1000.0).astype("timedelta64[ms]")
    return np.datetime64(start, "ms") + delta


def _single_interval(k: FloatArray, met: MeteorologyRecord) -> SubIntervalSchedule:
    return SubIntervalSchedule(
        active=False, k=k, met=met, sza=np.empty(0, dtype=np.float64)
    )


def expand_solar_cycle(
    met: MeteorologyRecord,
    solar: SolarParameterRecord,
    options: ModelOptions,
    chem: ChemistryContext,
    k: ArrayLike,
    *,
    position: SolarPositionCalculator = solar_position,
) -> SubIntervalSchedule:
    """Slice one step into solar sub-intervals.

    Args:
        met: Materialized meteorology for this call.
        solar: Solar settings for this call.
        options: Model options (int_time is the sub-interval length).
        chem: Chemistry context; its rate_calculator supplies per-interval
            rate constants when solar cycling is active.
        k: Rate constants supplied by the caller, (n_rows, n_reactions) or
            (n_reactions,). Used unchanged without solar cycling.
        position: Solar position calculator.

    Returns:
        SubIntervalSchedule with one sub-interval per cycle slot, or a single
        sub-interval when solar cycling is disabled.

    Raises:
        ConfigurationError: On invalid settings or rate-constant shapes.
    """
    k_in = np.atleast_2d(np.asarray(k, dtype=np.float64))
    if k_in.ndim != 2 or k_in.shape[1] != chem.n_reactions or k_in.shape[0] < 1:
        raise_shape_error(
            name="k", expected=f"(n_rows, {chem.n_reactions})", got=k_in.shape
        )

    if not solar.enabled:
        return _single_interval(k_in, met)

    if chem.rate_calculator is None:
        raise_invalid_parameters(detail=_MISSING_RATE_CALCULATOR_MSG)

    offsets = cycle_offsets(options.int_time, int(solar.n_days or 0))
    times = cycle_times(solar.start_time, offsets)
    n_solar = int(offsets.size)

    zenith, _azimuth = position(times, solar.location)
    sza = np.minimum(np.asarray(zenith, dtype=np.float64), MAX_ZENITH_DEG)

    solar_met = met.replicate(n_solar).with_field("SZA", sza)

    k_solar = np.atleast_2d(
        np.asarray(chem.rate_calculator(solar_met, options), dtype=np.float64)
    )
    if k_solar.shape != (n_solar, chem.n_reactions):
        raise_shape_error(
            name="rate_calculator output",
            expected=f"({n_solar}, {chem.n_reactions})",
            got=k_solar.shape,
        )

    logger.debug(
        "Solar cycle: %d sub-interval(s), SZA range [%.2f, %.2f] deg",
        n_solar,
        float(sza.min()),
        float(sza.max()),
    )
    return SubIntervalSchedule(
        active=True,
        k=k_solar,
        met=solar_met,
        sza=sza,
    )
