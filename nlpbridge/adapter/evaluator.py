"""Numeric evaluation of cost, gradient, constraints and Jacobian.

Every quantity is computed at most once per point: the engine's new-point
flag clears the cache and the first request of each quantity afterwards
fills it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
import scipy.sparse as sp

from nlpbridge.adapter.buffer import EvaluationBuffer, Quantity
from nlpbridge.adapter.derivatives import check_jacobian
from nlpbridge.adapter.options import AdapterOptions
from nlpbridge.adapter.sparsity import SparseSparsityBuilder
from nlpbridge.adapter.trace import TraceSink
from nlpbridge.logging import get_logger
from nlpbridge.problem import DifferentiableFunction, Problem

log = get_logger(__name__)


class NumericEvaluator(ABC):
    def __init__(
        self,
        problem: Problem,
        buffer: EvaluationBuffer,
        options: AdapterOptions,
        trace: TraceSink,
    ):
        self.problem = problem
        self.buffer = buffer
        self.options = options
        self.trace = trace

    def _sync(self, x: np.ndarray, new_x: bool) -> np.ndarray:
        x = np.asarray(x, dtype=float).reshape(-1)
        assert x.size == self.buffer.n, f"point has {x.size} entries, expected {self.buffer.n}"
        if new_x or self.buffer.point is None:
            self.buffer.new_point(x)
            self.trace("new_point")
        return x

    def _check_derivatives(self, function: DifferentiableFunction, x: np.ndarray) -> None:
        if not self.options.check_derivatives:
            return
        result = check_jacobian(
            function,
            x,
            tolerance=self.options.derivative_tolerance,
            step=self.options.finite_difference_step,
        )
        self.trace("derivative_check", name=result.name, ok=result.ok, error=result.max_rel_error)

    def cost(self, x: np.ndarray, new_x: bool) -> float:
        x = self._sync(x, new_x)
        if not self.buffer.is_fresh(Quantity.COST):
            self.buffer.cost = float(self.problem.function(x)[0])
            self.buffer.mark_fresh(Quantity.COST)
            self.trace("eval_cost", value=self.buffer.cost)
        return self.buffer.cost

    def cost_gradient(self, x: np.ndarray, new_x: bool) -> np.ndarray:
        x = self._sync(x, new_x)
        if not self.buffer.is_fresh(Quantity.GRADIENT):
            self.buffer.cost_gradient[:] = self.problem.function.gradient(x, 0)
            self.buffer.mark_fresh(Quantity.GRADIENT)
            self.trace("eval_cost_gradient")
            self._check_derivatives(self.problem.function, x)
        return self.buffer.cost_gradient

    def constraints(self, x: np.ndarray, new_x: bool) -> np.ndarray:
        x = self._sync(x, new_x)
        if not self.buffer.is_fresh(Quantity.CONSTRAINTS):
            offset = 0
            for constraint in self.problem:
                size = constraint.output_size
                self.buffer.constraints[offset : offset + size] = constraint.function(x)
                offset += size
            self.buffer.mark_fresh(Quantity.CONSTRAINTS)
            self.trace("eval_constraints")
        return self.buffer.constraints

    def jacobian_values(self, x: np.ndarray, new_x: bool, out: np.ndarray) -> None:
        """Write the Jacobian values at *x* into *out* in structure order."""
        x = self._sync(x, new_x)
        if not self.buffer.is_fresh(Quantity.JACOBIAN):
            self._evaluate_jacobian(x)
            self.buffer.mark_fresh(Quantity.JACOBIAN)
            self.trace("eval_jacobian")
        self._emit_jacobian(out)

    @abstractmethod
    def _evaluate_jacobian(self, x: np.ndarray) -> None: ...

    @abstractmethod
    def _emit_jacobian(self, out: np.ndarray) -> None: ...


class DenseNumericEvaluator(NumericEvaluator):
    def _evaluate_jacobian(self, x: np.ndarray) -> None:
        offset = 0
        for constraint in self.problem:
            size = constraint.output_size
            jac = constraint.function.jacobian(x)
            if sp.issparse(jac):
                jac = jac.toarray()
            self.buffer.jacobian[offset : offset + size, :] = jac
            offset += size
            self._check_derivatives(constraint.function, x)

    def _emit_jacobian(self, out: np.ndarray) -> None:
        values = self.buffer.jacobian.reshape(-1)
        assert out.size == values.size, f"value buffer holds {out.size}, expected {values.size}"
        out[:] = values


class SparseNumericEvaluator(NumericEvaluator):
    def __init__(
        self,
        problem: Problem,
        buffer: EvaluationBuffer,
        options: AdapterOptions,
        trace: TraceSink,
        sparsity: SparseSparsityBuilder,
    ):
        super().__init__(problem, buffer, options, trace)
        self.sparsity = sparsity

    def _evaluate_jacobian(self, x: np.ndarray) -> None:
        self.sparsity.freeze()
        for constraint, stored in zip(self.problem, self.buffer.constraint_jacobians):
            stored.data[:] = 0.0
            fresh = constraint.function.jacobian(x)
            dropped = _scatter(stored, fresh)
            if dropped:
                log.warning(
                    "Constraint %r: %d Jacobian entries outside the frozen pattern were dropped",
                    constraint.function.name,
                    dropped,
                )
                self.trace("entries_dropped", name=constraint.function.name, count=dropped)
            self._check_derivatives(constraint.function, x)
        self.sparsity.gather()

    def _emit_jacobian(self, out: np.ndarray) -> None:
        values = self.buffer.jacobian_values
        assert out.size == values.size, f"value buffer holds {out.size}, expected {values.size}"
        out[:] = values


def _scatter(stored: sp.spmatrix, fresh: np.ndarray | sp.spmatrix) -> int:
    """Copy *fresh* into the stored positions of *stored*.

    Returns the number of non-zero entries of *fresh* that have no stored
    position.
    """
    coo = stored.tocoo()
    if sp.issparse(fresh):
        fresh = sp.csc_matrix(fresh, dtype=float)
        fresh.sum_duplicates()
        if coo.nnz:
            inside_values = np.asarray(fresh[coo.row, coo.col], dtype=float).reshape(-1)
        else:
            inside_values = np.zeros(0)
        mask = sp.csc_matrix((np.ones(coo.nnz), (coo.row, coo.col)), shape=stored.shape)
        outside = fresh - fresh.multiply(mask)
        dropped = int(np.count_nonzero(outside.data))
    else:
        dense = np.asarray(fresh, dtype=float)
        inside_values = dense[coo.row, coo.col]
        inside = np.zeros(dense.shape, dtype=bool)
        inside[coo.row, coo.col] = True
        dropped = int(np.count_nonzero(dense[~inside]))
    stored.data[:] = inside_values
    return dropped
