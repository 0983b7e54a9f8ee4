"""nlpbridge: Ipopt callback adapter for differentiable optimization problems."""

from __future__ import annotations

from nlpbridge.adapter import (
    AdapterOptions,
    Outcome,
    SolverFailure,
    SolverFatal,
    SolverResult,
    SolverResultWithWarnings,
    SolverReturn,
)
from nlpbridge.engine import IpoptOptions, ipopt_available, load_options
from nlpbridge.errors import (
    EngineUnavailableError,
    NlpBridgeError,
    ProblemDefinitionError,
    UnrecoverableSolverError,
)
from nlpbridge.logging import get_logger
from nlpbridge.problem import (
    Constraint,
    DifferentiableFunction,
    LinearFunction,
    Linearity,
    NumericFunction,
    Problem,
    SymbolicFunction,
    make_interval,
)
from nlpbridge.solvers import IpoptSolver, IpoptSolverSparse, available_solvers, create_solver

__version__ = "0.1.0"

log = get_logger(__name__)

__all__ = [
    "AdapterOptions",
    "Constraint",
    "DifferentiableFunction",
    "EngineUnavailableError",
    "IpoptOptions",
    "IpoptSolver",
    "IpoptSolverSparse",
    "LinearFunction",
    "Linearity",
    "NlpBridgeError",
    "NumericFunction",
    "Outcome",
    "Problem",
    "ProblemDefinitionError",
    "SolverFailure",
    "SolverFatal",
    "SolverResult",
    "SolverResultWithWarnings",
    "SolverReturn",
    "SymbolicFunction",
    "UnrecoverableSolverError",
    "available_solvers",
    "create_solver",
    "ipopt_available",
    "load_options",
    "make_interval",
]
