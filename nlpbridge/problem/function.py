"""Differentiable functions consumed by the adapter.

A function maps a vector of ``input_size`` to a vector of ``output_size`` and
supplies its own first derivatives. Dense functions return their Jacobian as a
``numpy`` array, sparse ones as a ``scipy.sparse.csc_matrix``; the adapter
never differentiates anything itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, ClassVar

import casadi as ca
import numpy as np
import scipy.sparse as sp

from nlpbridge.errors import ProblemDefinitionError

Jacobian = np.ndarray | sp.csc_matrix


class Linearity(Enum):
    """Linearity tag carried by every constraint."""

    LINEAR = "linear"
    NONLINEAR = "nonlinear"


class DifferentiableFunction(ABC):
    """Base class for functions with an analytic Jacobian."""

    linearity: ClassVar[Linearity] = Linearity.NONLINEAR
    sparse: ClassVar[bool] = False

    def __init__(self, input_size: int, output_size: int, name: str = ""):
        if input_size <= 0:
            raise ProblemDefinitionError(f"input_size must be positive, got {input_size}")
        if output_size < 0:
            raise ProblemDefinitionError(f"output_size must be non-negative, got {output_size}")
        self.input_size = int(input_size)
        self.output_size = int(output_size)
        self.name = name or type(self).__name__

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} {self.input_size}->{self.output_size}>"

    def __call__(self, x: np.ndarray) -> np.ndarray:
        x = self._check_argument(x)
        value = np.asarray(self._compute(x), dtype=float).reshape(-1)
        assert value.size == self.output_size, (
            f"{self.name}: expected {self.output_size} outputs, got {value.size}"
        )
        return value

    def gradient(self, x: np.ndarray, which: int = 0) -> np.ndarray:
        """Return the gradient of output component *which* as a dense vector."""
        x = self._check_argument(x)
        if not 0 <= which < self.output_size:
            raise IndexError(f"{self.name}: output index {which} out of range")
        jac = self.jacobian(x)
        if sp.issparse(jac):
            return np.asarray(jac[which, :].toarray(), dtype=float).reshape(-1)
        return np.array(jac[which], dtype=float).reshape(-1)

    def jacobian(self, x: np.ndarray) -> Jacobian:
        """Return the ``output_size x input_size`` Jacobian at *x*."""
        x = self._check_argument(x)
        raw = self._jacobian(x)
        shape = (self.output_size, self.input_size)
        if self.sparse:
            jac = sp.csc_matrix(raw, dtype=float, copy=True)
            jac.sum_duplicates()
        else:
            jac = np.asarray(raw.toarray() if sp.issparse(raw) else raw, dtype=float)
            jac = jac.reshape(shape)
        assert jac.shape == shape, f"{self.name}: Jacobian shape {jac.shape} != {shape}"
        return jac

    def _check_argument(self, x: Any) -> np.ndarray:
        x = np.asarray(x, dtype=float).reshape(-1)
        if x.size != self.input_size:
            raise ValueError(f"{self.name}: expected {self.input_size} inputs, got {x.size}")
        return x

    @abstractmethod
    def _compute(self, x: np.ndarray) -> Any:
        """Return the function value at *x*."""

    @abstractmethod
    def _jacobian(self, x: np.ndarray) -> Any:
        """Return the Jacobian at *x* (array-like or scipy sparse)."""


class NumericFunction(DifferentiableFunction):
    """Function backed by plain Python callables.

    Example:
        >>> f = NumericFunction(lambda x: [x @ x], lambda x: [2 * x], 2, 1)
    """

    def __init__(
        self,
        fn: Callable[[np.ndarray], Any],
        jac: Callable[[np.ndarray], Any],
        input_size: int,
        output_size: int,
        *,
        sparse: bool = False,
        linearity: Linearity = Linearity.NONLINEAR,
        name: str = "",
    ):
        super().__init__(input_size, output_size, name=name)
        self._fn = fn
        self._jac = jac
        self.sparse = sparse
        self.linearity = linearity

    def _compute(self, x: np.ndarray) -> Any:
        return self._fn(x)

    def _jacobian(self, x: np.ndarray) -> Any:
        return self._jac(x)


class LinearFunction(DifferentiableFunction):
    """Affine function ``A @ x + b`` with a constant Jacobian."""

    linearity = Linearity.LINEAR

    def __init__(self, A: Any, b: Any = None, name: str = ""):
        if sp.issparse(A):
            matrix = sp.csc_matrix(A, dtype=float)
        else:
            matrix = np.atleast_2d(np.asarray(A, dtype=float))
        rows, cols = matrix.shape
        super().__init__(cols, rows, name=name)
        self.sparse = sp.issparse(matrix)
        self.A = matrix
        self.b = np.zeros(rows) if b is None else np.asarray(b, dtype=float).reshape(-1)
        if self.b.size != rows:
            raise ProblemDefinitionError(
                f"{self.name}: offset has {self.b.size} entries, expected {rows}"
            )

    def _compute(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(self.A @ x).reshape(-1) + self.b

    def _jacobian(self, x: np.ndarray) -> Jacobian:
        return self.A.copy()


class SymbolicFunction(DifferentiableFunction):
    """CasADi expression wrapped as a sparse differentiable function.

    The Jacobian is generated once with ``casadi.jacobian`` and returned in
    compressed sparse column form, so its structure follows the expression
    graph rather than the evaluation point.
    """

    sparse = True

    def __init__(self, x: ca.SX, expr: ca.SX, name: str = ""):
        expr = ca.vec(expr)
        super().__init__(int(x.numel()), int(expr.numel()), name=name)
        self._value = ca.Function(f"{self.name}_value", [x], [expr])
        self._jac = ca.Function(f"{self.name}_jac", [x], [ca.jacobian(expr, x)])
        self.linearity = (
            Linearity.LINEAR if ca.is_linear(expr, x) else Linearity.NONLINEAR
        )

    @classmethod
    def from_callable(
        cls, fn: Callable[[ca.SX], ca.SX], input_size: int, name: str = ""
    ) -> "SymbolicFunction":
        """Trace *fn* on a fresh symbol of length *input_size*."""
        x = ca.SX.sym("x", input_size)
        return cls(x, fn(x), name=name)

    def _compute(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(self._value(x).full()).reshape(-1)

    def _jacobian(self, x: np.ndarray) -> sp.csc_matrix:
        jac = self._jac(x)
        pattern = jac.sparsity()
        return sp.csc_matrix(
            (
                np.asarray(jac.nonzeros(), dtype=float),
                np.asarray(pattern.row(), dtype=np.int64),
                np.asarray(pattern.colind(), dtype=np.int64),
            ),
            shape=(pattern.size1(), pattern.size2()),
        )
