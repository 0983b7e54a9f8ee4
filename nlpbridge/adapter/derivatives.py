"""Finite-difference check of user-supplied derivatives."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp

from nlpbridge.logging import get_logger
from nlpbridge.problem import DifferentiableFunction

log = get_logger(__name__)


@dataclass(frozen=True)
class DerivativeCheck:
    name: str
    max_abs_error: float
    max_rel_error: float
    tolerance: float

    @property
    def ok(self) -> bool:
        return self.max_rel_error <= self.tolerance


def finite_difference_jacobian(
    function: DifferentiableFunction, x: np.ndarray, step: float
) -> np.ndarray:
    """Central differences, one column per variable."""
    x = np.asarray(x, dtype=float)
    jac = np.zeros((function.output_size, function.input_size))
    for j in range(function.input_size):
        h = step * max(1.0, abs(x[j]))
        forward = x.copy()
        backward = x.copy()
        forward[j] += h
        backward[j] -= h
        jac[:, j] = (function(forward) - function(backward)) / (2.0 * h)
    return jac


def check_jacobian(
    function: DifferentiableFunction,
    x: np.ndarray,
    tolerance: float = 1e-4,
    step: float = 1e-6,
) -> DerivativeCheck:
    """Compare ``function.jacobian(x)`` with central finite differences.

    The relative error of each entry is taken against ``max(1, |fd|)`` so
    that entries near zero are judged on their absolute error.
    """
    analytic = function.jacobian(x)
    if sp.issparse(analytic):
        analytic = analytic.toarray()
    numeric = finite_difference_jacobian(function, x, step)
    error = np.abs(np.asarray(analytic) - numeric)
    if error.size == 0:
        return DerivativeCheck(function.name, 0.0, 0.0, tolerance)
    scale = np.maximum(1.0, np.abs(numeric))
    result = DerivativeCheck(
        name=function.name,
        max_abs_error=float(error.max()),
        max_rel_error=float((error / scale).max()),
        tolerance=tolerance,
    )
    if not result.ok:
        row, col = np.unravel_index(np.argmax(error / scale), error.shape)
        log.warning(
            "Derivative check failed for %r: relative error %.3e at (%d, %d) "
            "(analytic=%.6e, finite difference=%.6e)",
            function.name,
            result.max_rel_error,
            row,
            col,
            analytic[row, col],
            numeric[row, col],
        )
    return result
