"""Structural queries answered before any numeric evaluation."""

from __future__ import annotations

from typing import MutableSequence

import numpy as np

from nlpbridge.adapter.options import AdapterOptions
from nlpbridge.adapter.outcome import SolverFailure
from nlpbridge.adapter.sparsity import SparsityBuilder, synthesize_point
from nlpbridge.constants import MISSING_STARTING_POINT
from nlpbridge.logging import get_logger
from nlpbridge.problem import Linearity, Problem

log = get_logger(__name__)


class StructuralAdapter:
    """Sizes, bounds, scaling, linearity and starting point of a problem.

    Constraint data is always flattened in declaration order, then component
    order; every method writing per-constraint values uses that layout.
    """

    def __init__(self, problem: Problem, sparsity: SparsityBuilder, options: AdapterOptions):
        self.problem = problem
        self.sparsity = sparsity
        self.options = options

    def dimensions(self) -> tuple[int, int]:
        return self.problem.input_size, self.problem.constraints_output_size()

    def nonzeros(self) -> int:
        return self.sparsity.nonzeros()

    def bounds(
        self,
        x_l: np.ndarray,
        x_u: np.ndarray,
        g_l: np.ndarray,
        g_u: np.ndarray,
    ) -> bool:
        n, m = self.dimensions()
        if x_l.size != n or x_u.size != n or g_l.size != m or g_u.size != m:
            log.error(
                "Bound buffers have sizes x=(%d, %d) g=(%d, %d), expected n=%d m=%d",
                x_l.size,
                x_u.size,
                g_l.size,
                g_u.size,
                n,
                m,
            )
            return False
        for j, (lo, hi) in enumerate(self.problem.argument_bounds):
            x_l[j], x_u[j] = lo, hi
        row = 0
        for intervals in self.problem.bounds_vector:
            for lo, hi in intervals:
                g_l[row], g_u[row] = lo, hi
                row += 1
        return True

    def scales(self, x_scaling: np.ndarray, g_scaling: np.ndarray) -> tuple[bool, bool]:
        """Fill the scaling buffers; return which of them carry values."""
        if not self.problem.has_scaling():
            return False, False
        use_x = self.problem.argument_scales is not None
        if use_x:
            x_scaling[:] = self.problem.argument_scales
        use_g = any(s is not None for s in self.problem.scales_vector)
        if use_g:
            row = 0
            for constraint in self.problem:
                size = constraint.output_size
                g_scaling[row : row + size] = 1.0 if constraint.scales is None else constraint.scales
                row += size
        return use_x, use_g

    def linearity(self, const_types: MutableSequence[Linearity]) -> bool:
        _, m = self.dimensions()
        assert len(const_types) == m, f"linearity buffer holds {len(const_types)}, expected {m}"
        row = 0
        for constraint in self.problem:
            for _ in range(constraint.output_size):
                const_types[row] = constraint.linearity
                row += 1
        return True

    def variables_linearity(self, var_types: MutableSequence[Linearity]) -> bool:
        # Variable linearity is not tracked by the problem model.
        for j in range(len(var_types)):
            var_types[j] = Linearity.NONLINEAR
        return True

    def starting_point(
        self,
        x: np.ndarray,
        init_x: bool,
        z_l: np.ndarray | None = None,
        z_u: np.ndarray | None = None,
        init_z: bool = False,
    ) -> SolverFailure | None:
        """Fill the requested initial values; a failure means nothing was written."""
        start = self.problem.starting_point
        if init_x:
            if start is None:
                if self.options.require_starting_point:
                    log.error(MISSING_STARTING_POINT)
                    return SolverFailure(MISSING_STARTING_POINT)
                start = synthesize_point(self.problem.argument_bounds)
                log.info("No starting point given, starting from the bound-derived point")
            assert x.size == start.size, f"point buffer holds {x.size}, expected {start.size}"
            x[:] = start
        if init_z:
            z_l[:] = self.options.bound_multiplier_init
            z_u[:] = self.options.bound_multiplier_init
        return None
