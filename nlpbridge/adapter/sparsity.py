"""Jacobian structure reported to the engine.

The dense builder reports every ``(i, j)`` of the ``m x n`` block. The sparse
builder evaluates each constraint Jacobian once, at the starting point or at
a point synthesized from the variable bounds, and freezes the union of the
stored entries. Values are later written in exactly that order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

import numpy as np
import scipy.sparse as sp

from nlpbridge.adapter.buffer import EvaluationBuffer
from nlpbridge.adapter.trace import TraceSink
from nlpbridge.logging import get_logger
from nlpbridge.problem import Problem

log = get_logger(__name__)

_FORMATS = {"column": "csc", "row": "csr"}


def synthesize_point(bounds: Sequence[tuple[float, float]]) -> np.ndarray:
    """Pick a point inside (or on) the given intervals.

    Midpoint when both sides are finite, the finite side when only one is,
    zero otherwise.
    """
    point = np.zeros(len(bounds))
    for j, (lo, hi) in enumerate(bounds):
        lo_finite, hi_finite = np.isfinite(lo), np.isfinite(hi)
        if lo_finite and hi_finite:
            point[j] = 0.5 * (lo + hi)
        elif lo_finite:
            point[j] = lo
        elif hi_finite:
            point[j] = hi
    return point


class SparsityBuilder(ABC):
    """Answer the non-zero count and the structural Jacobian query."""

    def __init__(self, problem: Problem, buffer: EvaluationBuffer, trace: TraceSink):
        self.problem = problem
        self.buffer = buffer
        self.trace = trace

    @abstractmethod
    def nonzeros(self) -> int: ...

    @abstractmethod
    def structure(self) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(rows, cols)`` of every reported entry, in value order."""

    def fill_structure(self, i_row: np.ndarray, j_col: np.ndarray) -> bool:
        rows, cols = self.structure()
        assert i_row.size == rows.size and j_col.size == cols.size, (
            f"structure buffers hold {i_row.size}/{j_col.size} entries, "
            f"expected {rows.size}"
        )
        i_row[:] = rows
        j_col[:] = cols
        self.trace("jacobian_structure", nnz=int(rows.size))
        return True


class DenseSparsityBuilder(SparsityBuilder):
    def nonzeros(self) -> int:
        return self.buffer.m * self.buffer.n

    def structure(self) -> tuple[np.ndarray, np.ndarray]:
        m, n = self.buffer.m, self.buffer.n
        return np.repeat(np.arange(m), n), np.tile(np.arange(n), m)


class SparseSparsityBuilder(SparsityBuilder):
    """Discover the Jacobian pattern once and keep it for the whole solve.

    Args:
        storage_order: ``"column"`` emits entries column by column (rows
            ascending inside a column), ``"row"`` row by row. The per-constraint
            Jacobians are stored in the matching compressed format so the
            numeric fill follows the same order.
    """

    def __init__(
        self,
        problem: Problem,
        buffer: EvaluationBuffer,
        trace: TraceSink,
        storage_order: str = "column",
    ):
        super().__init__(problem, buffer, trace)
        self.storage_order = storage_order
        self._format = _FORMATS[storage_order]
        self._rows: np.ndarray | None = None
        self._cols: np.ndarray | None = None
        # position of each concatenated per-constraint entry in the frozen order
        self._order: np.ndarray | None = None

    @property
    def frozen(self) -> bool:
        return self._rows is not None

    def evaluation_point(self) -> np.ndarray:
        start = self.problem.starting_point
        if start is not None:
            return start
        return synthesize_point(self.problem.argument_bounds)

    def freeze(self) -> None:
        """Build the pattern on first call; later calls are no-ops."""
        if self.frozen:
            return
        m, n = self.buffer.m, self.buffer.n
        point = self.evaluation_point()
        self.trace("sparsity_point", point=point.tolist())

        local_rows, local_cols = [], []
        offset = 0
        for constraint in self.problem:
            # Private copy: the stored values are overwritten on every evaluation
            jac = sp.csc_matrix(constraint.function.jacobian(point), dtype=float, copy=True)
            jac.sum_duplicates()
            stored = jac.asformat(self._format)
            stored.sort_indices()
            self.buffer.constraint_jacobians.append(stored)
            coo = stored.tocoo()
            local_rows.append(coo.row + offset)
            local_cols.append(coo.col)
            self.trace(
                "constraint_pattern",
                name=constraint.function.name,
                offset=offset,
                nnz=int(stored.nnz),
            )
            if stored.nnz == 0:
                log.warning(
                    "Constraint %r has an empty Jacobian at the sparsity point; "
                    "it will not contribute any non-zero",
                    constraint.function.name,
                )
            offset += constraint.output_size

        rows = np.concatenate(local_rows) if local_rows else np.zeros(0, dtype=np.int64)
        cols = np.concatenate(local_cols) if local_cols else np.zeros(0, dtype=np.int64)
        ones = np.ones(rows.size)
        pattern = sp.coo_matrix((ones, (rows, cols)), shape=(m, n)).asformat(self._format)
        pattern.sum_duplicates()
        coo = pattern.tocoo()
        self._rows = coo.row.astype(np.int64)
        self._cols = coo.col.astype(np.int64)
        self._rows.setflags(write=False)
        self._cols.setflags(write=False)

        if self.storage_order == "column":
            self._order = np.lexsort((rows, cols))
        else:
            self._order = np.lexsort((cols, rows))
        assert np.array_equal(rows[self._order], self._rows) and np.array_equal(
            cols[self._order], self._cols
        ), "per-constraint entries do not cover the frozen pattern"

        self.buffer.allocate_jacobian_values(self._rows.size)
        log.debug("Froze %s-major Jacobian pattern: %d non-zeros", self.storage_order, self._rows.size)
        self.trace("pattern_frozen", nnz=int(self._rows.size), order=self.storage_order)

    def nonzeros(self) -> int:
        self.freeze()
        return int(self._rows.size)

    def structure(self) -> tuple[np.ndarray, np.ndarray]:
        self.freeze()
        return self._rows, self._cols

    def gather(self) -> np.ndarray:
        """Stack the stored per-constraint values into the buffer in frozen order."""
        assert self.frozen, "numeric Jacobian requested before the pattern was frozen"
        jacobians = self.buffer.constraint_jacobians
        values = np.concatenate([j.data for j in jacobians]) if jacobians else np.zeros(0)
        self.buffer.jacobian_values[:] = values[self._order]
        return self.buffer.jacobian_values
