"""Solver return statuses and the outcome variants they map onto."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

import numpy as np

from nlpbridge.constants import ACCEPTABLE_POINT_WARNING
from nlpbridge.logging import get_logger

log = get_logger(__name__)


class SolverReturn(Enum):
    """Termination status reported by the engine to ``finalize_solution``."""

    SUCCESS = "success"
    MAXITER_EXCEEDED = "maxiter_exceeded"
    CPUTIME_EXCEEDED = "cputime_exceeded"
    WALLTIME_EXCEEDED = "walltime_exceeded"
    STOP_AT_TINY_STEP = "stop_at_tiny_step"
    STOP_AT_ACCEPTABLE_POINT = "stop_at_acceptable_point"
    LOCAL_INFEASIBILITY = "local_infeasibility"
    USER_REQUESTED_STOP = "user_requested_stop"
    FEASIBLE_POINT_FOUND = "feasible_point_found"
    DIVERGING_ITERATES = "diverging_iterates"
    RESTORATION_FAILURE = "restoration_failure"
    ERROR_IN_STEP_COMPUTATION = "error_in_step_computation"
    INVALID_NUMBER_DETECTED = "invalid_number_detected"
    TOO_FEW_DEGREES_OF_FREEDOM = "too_few_degrees_of_freedom"
    INVALID_OPTION = "invalid_option"
    OUT_OF_MEMORY = "out_of_memory"
    INTERNAL_ERROR = "internal_error"
    UNASSIGNED = "unassigned"


@dataclass
class SolverResult:
    """Converged (or feasible) point with its multipliers.

    ``x`` is the primal point, ``constraints`` the constraint values at ``x``
    and ``multipliers`` the constraint multipliers. Bound multipliers are
    kept as ``z_lower`` / ``z_upper``.
    """

    x: np.ndarray
    constraints: np.ndarray
    multipliers: np.ndarray
    value: float
    status: SolverReturn = SolverReturn.SUCCESS
    z_lower: np.ndarray = field(default_factory=lambda: np.zeros(0))
    z_upper: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def success(self) -> bool:
        return True


@dataclass
class SolverResultWithWarnings(SolverResult):
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SolverFailure:
    reason: str
    status: SolverReturn | None = None

    @property
    def success(self) -> bool:
        return False


@dataclass(frozen=True)
class SolverFatal:
    """Termination that the front-end must escalate instead of returning."""

    status: SolverReturn

    @property
    def success(self) -> bool:
        return False


Outcome = Union[SolverResult, SolverResultWithWarnings, SolverFailure, SolverFatal]


_FAILURE_REASONS: dict[SolverReturn, str] = {
    SolverReturn.MAXITER_EXCEEDED: "Max iteration exceeded",
    SolverReturn.CPUTIME_EXCEEDED: "Cpu time exceeded",
    SolverReturn.WALLTIME_EXCEEDED: "Wall time exceeded",
    SolverReturn.STOP_AT_TINY_STEP: "Algorithm proceeds with very little progress",
    SolverReturn.LOCAL_INFEASIBILITY: "Algorithm converged to a point of local infeasibility",
    SolverReturn.DIVERGING_ITERATES: "Iterate diverges",
    SolverReturn.RESTORATION_FAILURE: "Restoration phase failed",
    SolverReturn.ERROR_IN_STEP_COMPUTATION: (
        "Unrecoverable error while Ipopt tried to compute the search direction"
    ),
    SolverReturn.INVALID_NUMBER_DETECTED: "Ipopt received an invalid number",
    SolverReturn.TOO_FEW_DEGREES_OF_FREEDOM: "Too few degrees of freedom",
    SolverReturn.INVALID_OPTION: "Invalid option",
    SolverReturn.OUT_OF_MEMORY: "Out of memory",
    SolverReturn.INTERNAL_ERROR: "Unknown internal error",
    SolverReturn.UNASSIGNED: "Solver terminated without a status",
}

_RESULT_STATUSES = frozenset({SolverReturn.SUCCESS, SolverReturn.FEASIBLE_POINT_FOUND})
_WARNING_STATUSES: dict[SolverReturn, str] = {
    SolverReturn.STOP_AT_ACCEPTABLE_POINT: ACCEPTABLE_POINT_WARNING,
}
_FATAL_STATUSES = frozenset({SolverReturn.USER_REQUESTED_STOP})


def failure_reason(status: SolverReturn) -> str | None:
    """Human-readable reason for a recoverable failure status, else None."""
    return _FAILURE_REASONS.get(status)


def map_outcome(
    status: SolverReturn,
    x: np.ndarray,
    constraints: np.ndarray,
    multipliers: np.ndarray,
    value: float,
    z_lower: np.ndarray | None = None,
    z_upper: np.ndarray | None = None,
) -> Outcome:
    """Translate a termination status plus the final iterate into an outcome.

    Arrays are copied so the outcome does not alias engine memory.
    """
    if status in _RESULT_STATUSES or status in _WARNING_STATUSES:
        fields = dict(
            x=np.array(x, dtype=float),
            constraints=np.array(constraints, dtype=float),
            multipliers=np.array(multipliers, dtype=float),
            value=float(value),
            status=status,
            z_lower=np.zeros(0) if z_lower is None else np.array(z_lower, dtype=float),
            z_upper=np.zeros(0) if z_upper is None else np.array(z_upper, dtype=float),
        )
        if status in _WARNING_STATUSES:
            return SolverResultWithWarnings(warnings=[_WARNING_STATUSES[status]], **fields)
        return SolverResult(**fields)

    if status in _FATAL_STATUSES:
        log.error("Solver terminated with fatal status %s", status.name)
        return SolverFatal(status)

    reason = _FAILURE_REASONS.get(status)
    if reason is None:
        raise AssertionError(f"Unmapped solver status {status!r}")
    log.warning("Solver failed: %s (%s)", reason, status.name)
    return SolverFailure(reason, status)
