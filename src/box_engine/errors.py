# src/box_engine/errors.py
"""Error types and raise helpers for box_engine.

This module centralizes:
- explicit error classes with actionable messages, and
- small helpers that build standardized messages for common failures.

All errors surface to the immediate caller of the step; the engine itself never
retries and never returns a partially integrated result.
"""

from __future__ import annotations

from typing import Final, NoReturn

_STRICT_HINT_MSG: Final[str] = (
    "Set strict=False in ModelOptions to downgrade option conflicts to warnings."
)


class BoxEngineError(Exception):
    """Base exception for box_engine errors."""


class ConfigurationError(BoxEngineError, ValueError):
    """Raised when parameter records, shapes or options are invalid or inconsistent."""


class IntegrationFailure(BoxEngineError, RuntimeError):
    """Raised when the stiff solver fails or produces non-finite values.

    Attributes:
        interval: 1-based sub-interval index the failure occurred in, if known.
    """

    def __init__(self, msg: str, *, interval: int | None = None) -> None:
        super().__init__(msg)
        self.interval = interval


class NumericDegeneracyError(BoxEngineError, ArithmeticError):
    """Raised when NOx renormalization would divide by a zero modeled total."""


def raise_invalid_parameters(
    *,
    missing: list[str] | None = None,
    unexpected: list[str] | None = None,
    detail: str | None = None,
) -> NoReturn:
    """Raise a standardized ConfigurationError for broadcast/slice records.

    Args:
        missing: Declared field names that were not supplied.
        unexpected: Supplied field names that were not declared.
        detail: Optional additional context.

    Raises:
        ConfigurationError: Always.
    """
    parts: list[str] = ["Invalid parameter record."]
    if missing:
        parts.append(f"Missing field(s): {sorted(set(missing))}.")
    if unexpected:
        parts.append(f"Unexpected field(s): {sorted(set(unexpected))}.")
    if detail:
        parts.append(f"Detail: {detail}")
    raise ConfigurationError(" ".join(parts))


def raise_shape_error(*, name: str, expected: str, got: object) -> NoReturn:
    """Raise a standardized ConfigurationError for array shape problems.

    Args:
        name: Name of the object with the shape issue.
        expected: Human-readable expected shape description.
        got: Actual observed shape/value.

    Raises:
        ConfigurationError: Always.
    """
    msg = f"{name} has an invalid shape/value. Expected {expected}. Got: {got!r}."
    raise ConfigurationError(msg)


def raise_option_conflict(
    *, options: list[str], reason: str, downgradable: bool = True
) -> NoReturn:
    """Raise a standardized ConfigurationError for mutually inconsistent options.

    Args:
        options: Names of the conflicting options.
        reason: Human-readable explanation of the conflict.
        downgradable: Whether strict=False turns this conflict into a warning.

    Raises:
        ConfigurationError: Always.
    """
    msg = f"Conflicting model options {sorted(options)}.\nReason: {reason}"
    if downgradable:
        msg = f"{msg}\n\n{_STRICT_HINT_MSG}"
    raise ConfigurationError(msg)


def raise_integration_failure(
    *,
    interval: int,
    n_intervals: int,
    reason: str,
) -> NoReturn:
    """Raise a standardized IntegrationFailure.

    Args:
        interval: 1-based sub-interval index.
        n_intervals: Total number of sub-intervals in the step.
        reason: Solver message or description of the failure.

    Raises:
        IntegrationFailure: Always.
    """
    msg = f"Integration failed in sub-interval {interval} of {n_intervals}: {reason}"
    raise IntegrationFailure(msg, interval=interval)
