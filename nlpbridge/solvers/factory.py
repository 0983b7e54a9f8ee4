"""Name-based solver creation."""

from __future__ import annotations

from typing import Any

from nlpbridge.logging import get_logger
from nlpbridge.problem import Problem
from nlpbridge.solvers.ipopt_solver import IpoptSolver, IpoptSolverSparse

log = get_logger(__name__)

_SOLVERS: dict[str, type[IpoptSolver]] = {}


def register_solver(cls: type[IpoptSolver]) -> type[IpoptSolver]:
    """Make *cls* available under ``cls.name``; usable as a decorator."""
    if cls.name in _SOLVERS and _SOLVERS[cls.name] is not cls:
        log.warning("Replacing solver %r (%s)", cls.name, _SOLVERS[cls.name].__name__)
    _SOLVERS[cls.name] = cls
    return cls


def available_solvers() -> list[str]:
    return sorted(_SOLVERS)


def create_solver(name: str, problem: Problem, **kwargs: Any) -> IpoptSolver:
    """Instantiate the solver registered as *name* for *problem*.

    Extra keyword arguments are passed to the solver constructor.
    """
    try:
        cls = _SOLVERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown solver {name!r}; available: {', '.join(available_solvers())}"
        ) from None
    return cls(problem, **kwargs)


register_solver(IpoptSolver)
register_solver(IpoptSolverSparse)
