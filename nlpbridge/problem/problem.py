"""Problem description handed to the solvers.

The problem is built by the caller (objective, bounds, constraints, optional
scales and starting point) and then only read by the adapter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import numpy as np

from nlpbridge.constants import INFINITY
from nlpbridge.errors import ProblemDefinitionError
from nlpbridge.logging import get_logger
from nlpbridge.problem.function import DifferentiableFunction, Linearity

log = get_logger(__name__)

Interval = tuple[float, float]


def make_interval(lower: float = -INFINITY, upper: float = INFINITY) -> Interval:
    """Return a validated ``(lower, upper)`` pair."""
    lower, upper = float(lower), float(upper)
    if np.isnan(lower) or np.isnan(upper):
        raise ProblemDefinitionError("interval bounds must not be NaN")
    if lower > upper:
        raise ProblemDefinitionError(f"empty interval [{lower}, {upper}]")
    return lower, upper


def _as_intervals(bounds: object, size: int, what: str) -> tuple[Interval, ...]:
    if bounds is None:
        return tuple(make_interval() for _ in range(size))
    items = list(bounds)  # type: ignore[call-overload]
    # a bare (lo, hi) pair is accepted for single-output constraints
    if size == 1 and len(items) == 2 and np.isscalar(items[0]):
        items = [tuple(items)]
    if len(items) != size:
        raise ProblemDefinitionError(f"{what}: expected {size} intervals, got {len(items)}")
    return tuple(make_interval(*interval) for interval in items)


def _as_scales(scales: object, size: int, what: str) -> np.ndarray | None:
    if scales is None:
        return None
    values = np.asarray(scales, dtype=float).reshape(-1)
    if values.size != size:
        raise ProblemDefinitionError(f"{what}: expected {size} scales, got {values.size}")
    if np.any(values <= 0) or not np.all(np.isfinite(values)):
        raise ProblemDefinitionError(f"{what}: scales must be finite and positive")
    return values


@dataclass(frozen=True, eq=False)
class Constraint:
    """One constraint function together with its linearity tag and bounds."""

    function: DifferentiableFunction
    linearity: Linearity
    bounds: tuple[Interval, ...]
    scales: np.ndarray | None = None

    @property
    def output_size(self) -> int:
        return self.function.output_size


class Problem:
    """Minimise ``objective(x)`` subject to bounded constraints.

    Args:
        objective: scalar differentiable function of ``n`` variables.
        argument_bounds: ``n`` intervals, unbounded by default.
        argument_scales: optional ``n`` positive scale factors.
        starting_point: optional initial guess of length ``n``.
    """

    def __init__(
        self,
        objective: DifferentiableFunction,
        argument_bounds: Iterable[Sequence[float]] | None = None,
        argument_scales: Iterable[float] | None = None,
        starting_point: Iterable[float] | None = None,
    ):
        if objective.output_size != 1:
            raise ProblemDefinitionError(
                f"objective must be scalar, got output_size={objective.output_size}"
            )
        self._objective = objective
        self._argument_bounds = _as_intervals(
            argument_bounds, objective.input_size, "argument bounds"
        )
        self._argument_scales = _as_scales(
            argument_scales, objective.input_size, "argument scales"
        )
        self._constraints: list[Constraint] = []
        self._starting_point: np.ndarray | None = None
        if starting_point is not None:
            self.starting_point = starting_point

    def __repr__(self) -> str:
        return (
            f"<Problem n={self.input_size} m={self.constraints_output_size()} "
            f"constraints={len(self._constraints)}>"
        )

    # -- construction ---------------------------------------------------

    def add_constraint(
        self,
        function: DifferentiableFunction,
        bounds: Iterable[Sequence[float]] | Sequence[float] | None = None,
        scales: Iterable[float] | None = None,
        linearity: Linearity | None = None,
    ) -> "Problem":
        """Append a constraint; *linearity* defaults to the function's own tag."""
        if function.input_size != self.input_size:
            raise ProblemDefinitionError(
                f"constraint {function.name!r} takes {function.input_size} inputs, "
                f"problem has {self.input_size} variables"
            )
        what = f"constraint {function.name!r}"
        constraint = Constraint(
            function=function,
            linearity=linearity if linearity is not None else function.linearity,
            bounds=_as_intervals(bounds, function.output_size, f"{what} bounds"),
            scales=_as_scales(scales, function.output_size, f"{what} scales"),
        )
        self._constraints.append(constraint)
        log.debug(
            "Added %s constraint %r (%d outputs)",
            constraint.linearity.value,
            function.name,
            function.output_size,
        )
        return self

    # -- read-only queries ----------------------------------------------

    @property
    def function(self) -> DifferentiableFunction:
        return self._objective

    @property
    def input_size(self) -> int:
        return self._objective.input_size

    @property
    def constraints(self) -> tuple[Constraint, ...]:
        return tuple(self._constraints)

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._constraints)

    @property
    def argument_bounds(self) -> tuple[Interval, ...]:
        return self._argument_bounds

    @property
    def argument_scales(self) -> np.ndarray | None:
        return self._argument_scales

    @property
    def bounds_vector(self) -> list[tuple[Interval, ...]]:
        return [c.bounds for c in self._constraints]

    @property
    def scales_vector(self) -> list[np.ndarray | None]:
        return [c.scales for c in self._constraints]

    @property
    def starting_point(self) -> np.ndarray | None:
        return None if self._starting_point is None else self._starting_point.copy()

    @starting_point.setter
    def starting_point(self, value: Iterable[float] | None) -> None:
        if value is None:
            self._starting_point = None
            return
        point = np.asarray(value, dtype=float).reshape(-1)
        if point.size != self.input_size:
            raise ProblemDefinitionError(
                f"starting point has {point.size} entries, expected {self.input_size}"
            )
        self._starting_point = point

    def constraints_output_size(self) -> int:
        return sum(c.output_size for c in self._constraints)

    def has_scaling(self) -> bool:
        """True when any variable or constraint scale was supplied."""
        return self._argument_scales is not None or any(
            c.scales is not None for c in self._constraints
        )
