"""Ipopt solver front-ends.

Each :meth:`solve` call builds a fresh :class:`~nlpbridge.adapter.Tnlp` for the
problem, hands it to the engine and returns the recorded outcome.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar

from nlpbridge.adapter import (
    AdapterOptions,
    IterationData,
    Outcome,
    SolverFailure,
    SolverFatal,
    Tnlp,
    TraceSink,
)
from nlpbridge.adapter.tnlp import IterationObserver
from nlpbridge.constants import CALLBACK_FAILURE
from nlpbridge.engine import CasadiIpoptEngine, IpoptOptions, SolverEngine, load_options
from nlpbridge.errors import UnrecoverableSolverError
from nlpbridge.logging import get_logger
from nlpbridge.problem import Problem

log = get_logger(__name__)


class IpoptSolver:
    """Solve a :class:`Problem` with Ipopt using a dense constraint Jacobian.

    Args:
        problem: the problem to solve; only read.
        options: Ipopt parameters, see :class:`IpoptOptions`.
        adapter_options: adapter behaviour, see :class:`AdapterOptions`.
        engine: engine driving the callbacks, CasADi's Ipopt by default.
        trace: sink for adapter trace events.
        iteration_observer: called with an :class:`IterationData` per iteration.
    """

    name: ClassVar[str] = "ipopt"
    sparse: ClassVar[bool] = False

    def __init__(
        self,
        problem: Problem,
        options: IpoptOptions | None = None,
        adapter_options: AdapterOptions | None = None,
        *,
        engine: SolverEngine | None = None,
        trace: TraceSink | None = None,
        iteration_observer: IterationObserver | None = None,
    ):
        self.problem = problem
        self.options = options or IpoptOptions()
        self.adapter_options = adapter_options or AdapterOptions()
        self.engine = engine or CasadiIpoptEngine(self.options)
        self.trace = trace
        self.iteration_observer = iteration_observer
        self.last_tnlp: Tnlp | None = None
        self.iterations: list[IterationData] = []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.problem!r}>"

    @classmethod
    def from_config(cls, problem: Problem, path: str | Path, **kwargs: Any) -> "IpoptSolver":
        """Create a solver with options read from a YAML file."""
        options, adapter_options = load_options(path)
        return cls(problem, options, adapter_options, **kwargs)

    @property
    def parameters(self) -> dict[str, Any]:
        """``ipopt.*`` parameters the engine runs with."""
        return self.engine.parameters

    def _observe(self, data: IterationData) -> None:
        self.iterations.append(data)
        if self.iteration_observer is not None:
            self.iteration_observer(data)

    def solve(self) -> Outcome:
        """Run the engine and return its outcome.

        Raises:
            UnrecoverableSolverError: the engine reported a user-requested stop.
        """
        self.iterations = []
        tnlp = Tnlp(
            self.problem,
            sparse=self.sparse,
            options=self.adapter_options,
            trace=self.trace,
            iteration_observer=self._observe,
        )
        self.last_tnlp = tnlp
        log.info("Solving %r with %s", self.problem, self.name)
        self.engine.run(tnlp)

        outcome = tnlp.outcome
        if outcome is None:
            log.error(CALLBACK_FAILURE)
            outcome = SolverFailure(CALLBACK_FAILURE)
        if isinstance(outcome, SolverFatal):
            raise UnrecoverableSolverError(outcome.status)
        log.info("%s finished: %s", self.name, type(outcome).__name__)
        return outcome


class IpoptSolverSparse(IpoptSolver):
    """Like :class:`IpoptSolver` with a discovered sparse Jacobian pattern."""

    name = "ipopt-sparse"
    sparse = True
