# src/box_engine/params.py
"""Per-call meteorology and solar parameters from shared and per-call parts.

An outer sweep calls the step many times with mostly identical parameters. The
shared part of a parameter record is an immutable SharedParameters object that
every call references; each call only carries a small slice with the values of
the fields declared as varying. Materializing merges the two into a complete
record without touching the shared object.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import raise_invalid_parameters, raise_shape_error

FloatArray: TypeAlias = NDArray[np.float64]
ParameterSlice: TypeAlias = Mapping[str, object] | Sequence[object] | NDArray | None

_SOLAR_REQUIRED_WHEN_ENABLED: Final[tuple[str, ...]] = ("start_time", "lat", "lon")

_SOLAR_KEY_ALIASES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "nDays": "n_days",
        "n_days": "n_days",
        "startTime": "start_time",
        "start_time": "start_time",
        "lat": "lat",
        "lon": "lon",
        "alt": "alt",
    }
)


def _readonly(value: object) -> NDArray:
    arr = np.array(value)
    if arr.dtype.kind in "biuf":
        arr = arr.astype(np.float64)
    arr.setflags(write=False)
    return arr


# =============================================================================
# Records
# =============================================================================


class MeteorologyRecord(Mapping[str, NDArray]):
    """Immutable named meteorology fields.

    Scalars are stored as 0-d arrays. After replication every field gains a
    leading sub-interval axis.
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Mapping[str, object]) -> None:
        self._fields: Mapping[str, NDArray] = MappingProxyType(
            {str(name): _readonly(value) for name, value in fields.items()}
        )

    def __getitem__(self, name: str) -> NDArray:
        return self._fields[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"MeteorologyRecord({sorted(self._fields)})"

    def scalar(self, name: str) -> float:
        """Return a field that must hold exactly one value.

        Raises:
            ConfigurationError: If the field is missing or not a single value.
        """
        if name not in self._fields:
            raise_invalid_parameters(missing=[name], detail="meteorology record")
        arr = self._fields[name]
        if arr.size != 1:
            raise_shape_error(name=f"Met.{name}", expected="a scalar", got=arr.shape)
        return float(arr.reshape(-1)[0])

    def with_field(self, name: str, value: object) -> MeteorologyRecord:
        """Return a copy with one field added or replaced."""
        fields: dict[str, object] = dict(self._fields)
        fields[name] = value
        return MeteorologyRecord(fields)

    def replicate(self, n_rows: int) -> MeteorologyRecord:
        """Repeat every field once per row.

        Scalars become shape (n_rows,); 1-D fields of length m become
        (n_rows, m).
        """
        fields: dict[str, object] = {}
        for name, arr in self._fields.items():
            if arr.ndim == 0:
                fields[name] = np.full(n_rows, arr, dtype=arr.dtype)
            else:
                fields[name] = np.tile(arr.reshape(1, -1), (n_rows, 1))
        return MeteorologyRecord(fields)


@dataclass(slots=True, frozen=True)
class SolarLocation:
    """Geographic location: latitude and longitude in degrees, altitude in m."""

    lat: float = 0.0
    lon: float = 0.0
    alt: float = 0.0


@dataclass(slots=True, frozen=True)
class SolarParameterRecord:
    """Solar forcing settings.

    Attributes:
        n_days: Number of days to cycle through. None or NaN disables solar
            cycling.
        start_time: (year, month, day, hour, minute[, second]) in UTC.
        lat: Latitude, degrees north.
        lon: Longitude, degrees east.
        alt: Altitude, m.
    """

    n_days: float | None = None
    start_time: tuple[float, ...] = (2000.0, 1.0, 1.0, 0.0, 0.0, 0.0)
    lat: float = 0.0
    lon: float = 0.0
    alt: float = 0.0

    def __post_init__(self) -> None:
        start = tuple(float(x) for x in np.asarray(self.start_time).reshape(-1))
        if len(start) == 5:
            start = (*start, 0.0)
        if len(start) != 6:
            raise_shape_error(
                name="start_time",
                expected="(year, month, day, hour, minute[, second])",
                got=start,
            )
        object.__setattr__(self, "start_time", start)

        if self.n_days is not None:
            n_days = float(self.n_days)
            object.__setattr__(self, "n_days", None if math.isnan(n_days) else n_days)
        if self.n_days is not None and (
            self.n_days < 1 or not float(self.n_days).is_integer()
        ):
            raise_shape_error(
                name="n_days", expected="a positive integer or NaN", got=self.n_days
            )

    @property
    def enabled(self) -> bool:
        """Whether solar cycling is active."""
        return self.n_days is not None

    @property
    def location(self) -> SolarLocation:
        """Geographic location of the box."""
        return SolarLocation(lat=self.lat, lon=self.lon, alt=self.alt)

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> SolarParameterRecord:
        """Build from a mapping using snake_case or legacy CamelCase keys.

        Raises:
            ConfigurationError: If the mapping contains unknown keys, or if
                solar cycling is enabled without a start time and location.
        """
        unknown = [k for k in values if k not in _SOLAR_KEY_ALIASES]
        if unknown:
            raise_invalid_parameters(unexpected=unknown, detail="solar parameters")

        kwargs: dict[str, object] = {}
        for key, value in values.items():
            name = _SOLAR_KEY_ALIASES[key]
            if name == "start_time":
                kwargs[name] = tuple(np.asarray(value, dtype=float).reshape(-1))
            elif name == "n_days":
                kwargs[name] = None if value is None else float(value)  # type: ignore[arg-type]
            else:
                kwargs[name] = float(value)  # type: ignore[arg-type]

        n_days = kwargs.get("n_days")
        if n_days is not None and not math.isnan(n_days):  # type: ignore[arg-type]
            missing = [n for n in _SOLAR_REQUIRED_WHEN_ENABLED if n not in kwargs]
            if missing:
                raise_invalid_parameters(
                    missing=missing, detail="solar cycling needs a start time and location"
                )
        return cls(**kwargs)  # type: ignore[arg-type]


# =============================================================================
# Shared parameters + per-call slices
# =============================================================================


@dataclass(slots=True, frozen=True)
class SharedParameters:
    """Immutable parameter fields shared by every call of a sweep.

    Attributes:
        fixed: Fields with the same value in every call.
        sliced_names: Ordered names of the fields supplied per call.
    """

    fixed: Mapping[str, object] = field(default_factory=dict)
    sliced_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fixed", MappingProxyType(dict(self.fixed)))
        names = tuple(str(n) for n in self.sliced_names)
        object.__setattr__(self, "sliced_names", names)

        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise_invalid_parameters(detail=f"duplicate sliced field(s) {duplicates}")
        overlap = sorted(set(names) & set(self.fixed))
        if overlap:
            raise_invalid_parameters(
                detail=f"field(s) {overlap} are declared both fixed and sliced"
            )

    def materialize(self, values: ParameterSlice = None) -> dict[str, object]:
        """Merge the fixed fields with one per-call slice.

        Args:
            values: Per-call values, either aligned with `sliced_names` or keyed
                by them. May be None when nothing is sliced.

        Returns:
            New dictionary holding every field.

        Raises:
            ConfigurationError: If the slice does not match `sliced_names`.
        """
        merged: dict[str, object] = dict(self.fixed)

        if values is None:
            if self.sliced_names:
                raise_invalid_parameters(missing=list(self.sliced_names))
            return merged

        if isinstance(values, Mapping):
            given = [str(k) for k in values]
            missing = [n for n in self.sliced_names if n not in values]
            unexpected = [k for k in given if k not in self.sliced_names]
            if missing or unexpected:
                raise_invalid_parameters(missing=missing, unexpected=unexpected)
            merged.update({n: values[n] for n in self.sliced_names})
            return merged

        if isinstance(values, (str, bytes)):
            raise_invalid_parameters(detail="slice must be a sequence or a mapping")

        seq = list(values)
        if len(seq) != len(self.sliced_names):
            raise_invalid_parameters(
                detail=(
                    f"slice has {len(seq)} value(s) but {len(self.sliced_names)} "
                    "field(s) are declared"
                )
            )
        merged.update(zip(self.sliced_names, seq, strict=True))
        return merged


ParameterSource: TypeAlias = tuple[SharedParameters, ParameterSlice]


def materialize(
    met_params: ParameterSource,
    solar_params: ParameterSource | None = None,
) -> tuple[MeteorologyRecord, SolarParameterRecord]:
    """Build the meteorology and solar records for one call.

    Args:
        met_params: (shared, slice) pair for meteorology.
        solar_params: (shared, slice) pair for solar parameters, or None when
            solar forcing is not used.

    Returns:
        (MeteorologyRecord, SolarParameterRecord).

    Raises:
        ConfigurationError: If a slice does not match its shared part.
    """
    met_shared, met_slice = met_params
    met = MeteorologyRecord(met_shared.materialize(met_slice))

    if solar_params is None:
        return met, SolarParameterRecord()

    solar_shared, solar_slice = solar_params
    solar = SolarParameterRecord.from_mapping(solar_shared.materialize(solar_slice))
    return met, solar
