"""Evaluation storage reused across every numeric callback of one solve."""

from __future__ import annotations

from enum import Enum

import numpy as np
import scipy.sparse as sp


class Quantity(Enum):
    COST = "cost"
    GRADIENT = "gradient"
    CONSTRAINTS = "constraints"
    JACOBIAN = "jacobian"


class EvaluationBuffer:
    """Cost, gradient, constraint and Jacobian storage plus the point cache.

    Storage is sized once from ``(n, m)``. Each quantity carries a validity
    flag that is cleared by :meth:`new_point`; a cleared quantity must be
    recomputed before it is read again.
    """

    def __init__(self, n: int, m: int, *, dense_jacobian: bool):
        self.n = n
        self.m = m
        self.cost = 0.0
        self.cost_gradient = np.zeros(n)
        self.constraints = np.zeros(m)
        self.jacobian = np.zeros((m, n)) if dense_jacobian else None
        # Sparse variant only: one matrix per constraint, layout frozen on first use,
        # and their values stacked in frozen pattern order
        self.constraint_jacobians: list[sp.spmatrix] = []
        self.jacobian_values = np.zeros(0)
        self.point: np.ndarray | None = None
        self._fresh: set[Quantity] = set()

    def __repr__(self) -> str:
        fresh = ",".join(sorted(q.value for q in self._fresh)) or "-"
        return f"<EvaluationBuffer n={self.n} m={self.m} fresh={fresh}>"

    def new_point(self, x: np.ndarray) -> None:
        """Record *x* as the current point and invalidate every quantity."""
        assert x.size == self.n, f"point has {x.size} entries, expected {self.n}"
        if self.point is None:
            self.point = np.array(x, dtype=float)
        else:
            self.point[:] = x
        self._fresh.clear()

    def is_fresh(self, quantity: Quantity) -> bool:
        return quantity in self._fresh

    def mark_fresh(self, quantity: Quantity) -> None:
        self._fresh.add(quantity)

    def allocate_jacobian_values(self, nnz: int) -> None:
        # Only the sparse variant calls this, exactly once.
        assert self.jacobian_values.size == 0, "Jacobian storage already allocated"
        self.jacobian_values = np.zeros(nnz)
