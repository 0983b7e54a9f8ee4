"""Problem description: functions, constraints, bounds and starting point."""

from .function import (
    DifferentiableFunction,
    LinearFunction,
    Linearity,
    NumericFunction,
    SymbolicFunction,
)
from .problem import Constraint, Problem, make_interval

__all__ = [
    "Constraint",
    "DifferentiableFunction",
    "LinearFunction",
    "Linearity",
    "NumericFunction",
    "Problem",
    "SymbolicFunction",
    "make_interval",
]
