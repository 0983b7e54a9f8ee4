"""Solver front-ends."""

from nlpbridge.solvers.factory import available_solvers, create_solver, register_solver
from nlpbridge.solvers.ipopt_solver import IpoptSolver, IpoptSolverSparse

__all__ = [
    "IpoptSolver",
    "IpoptSolverSparse",
    "available_solvers",
    "create_solver",
    "register_solver",
]
