"""Callback facade handed to an NLP engine.

Method names and argument order follow Ipopt's ``TNLP`` interface. Output
arguments are caller-provided numpy arrays of the documented length; every
``bool`` return of ``False`` tells the engine to stop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, MutableSequence

import numpy as np

from nlpbridge.adapter.buffer import EvaluationBuffer
from nlpbridge.adapter.evaluator import (
    DenseNumericEvaluator,
    NumericEvaluator,
    SparseNumericEvaluator,
)
from nlpbridge.adapter.options import AdapterOptions
from nlpbridge.adapter.outcome import Outcome, SolverReturn, map_outcome
from nlpbridge.adapter.sparsity import DenseSparsityBuilder, SparseSparsityBuilder
from nlpbridge.adapter.structure import StructuralAdapter
from nlpbridge.adapter.trace import LoggingTraceSink, TraceSink
from nlpbridge.logging import get_logger
from nlpbridge.problem import Linearity, Problem

log = get_logger(__name__)


@dataclass(frozen=True)
class NlpInfo:
    n: int
    m: int
    nnz_jac_g: int
    nnz_h_lag: int = 0
    index_style: str = "C"


@dataclass(frozen=True)
class IterationData:
    """Per-iteration values forwarded by the engine."""

    iteration: int
    objective: float
    inf_pr: float
    inf_du: float
    mu: float = float("nan")
    d_norm: float = float("nan")
    regularization_size: float = float("nan")
    alpha_du: float = float("nan")
    alpha_pr: float = float("nan")
    ls_trials: int = 0
    restoration: bool = False


IterationObserver = Callable[[IterationData], None]


class Tnlp:
    """One problem bound to one solve.

    The sparsity pattern, the evaluation cache and the outcome all live here
    and are discarded with the instance.
    """

    def __init__(
        self,
        problem: Problem,
        *,
        sparse: bool = False,
        options: AdapterOptions | None = None,
        trace: TraceSink | None = None,
        iteration_observer: IterationObserver | None = None,
    ):
        self.problem = problem
        self.sparse = sparse
        self.options = options or AdapterOptions()
        self.trace = trace or LoggingTraceSink()
        self.iteration_observer = iteration_observer
        n, m = problem.input_size, problem.constraints_output_size()
        self.buffer = EvaluationBuffer(n, m, dense_jacobian=not sparse)
        self.evaluator: NumericEvaluator
        if sparse:
            self.sparsity = SparseSparsityBuilder(
                problem, self.buffer, self.trace, storage_order=self.options.storage_order
            )
            self.evaluator = SparseNumericEvaluator(
                problem, self.buffer, self.options, self.trace, self.sparsity
            )
        else:
            self.sparsity = DenseSparsityBuilder(problem, self.buffer, self.trace)
            self.evaluator = DenseNumericEvaluator(problem, self.buffer, self.options, self.trace)
        self.structure = StructuralAdapter(problem, self.sparsity, self.options)
        self._outcome: Outcome | None = None

    def __repr__(self) -> str:
        kind = "sparse" if self.sparse else "dense"
        return f"<Tnlp {kind} n={self.buffer.n} m={self.buffer.m}>"

    @property
    def outcome(self) -> Outcome | None:
        return self._outcome

    # -- structural queries ---------------------------------------------

    def get_nlp_info(self) -> NlpInfo:
        n, m = self.structure.dimensions()
        info = NlpInfo(n=n, m=m, nnz_jac_g=self.structure.nonzeros())
        self.trace("nlp_info", n=n, m=m, nnz=info.nnz_jac_g)
        return info

    def get_bounds_info(
        self,
        n: int,
        x_l: np.ndarray,
        x_u: np.ndarray,
        m: int,
        g_l: np.ndarray,
        g_u: np.ndarray,
    ) -> bool:
        return self.structure.bounds(x_l, x_u, g_l, g_u)

    def get_scaling_parameters(
        self, n: int, x_scaling: np.ndarray, m: int, g_scaling: np.ndarray
    ) -> tuple[bool, bool]:
        return self.structure.scales(x_scaling, g_scaling)

    def get_variables_linearity(self, n: int, var_types: MutableSequence[Linearity]) -> bool:
        return self.structure.variables_linearity(var_types)

    def get_function_linearity(self, m: int, const_types: MutableSequence[Linearity]) -> bool:
        return self.structure.linearity(const_types)

    def get_starting_point(
        self,
        n: int,
        init_x: bool,
        x: np.ndarray,
        init_z: bool,
        z_L: np.ndarray | None,
        z_U: np.ndarray | None,
        m: int,
        init_lambda: bool,
        lambda_: np.ndarray | None,
    ) -> bool:
        failure = self.structure.starting_point(x, init_x, z_L, z_U, init_z)
        if failure is not None:
            self._outcome = failure
            return False
        if init_lambda and lambda_ is not None:
            lambda_[:] = 0.0
        return True

    def get_warm_start_iterate(self, *args: object) -> bool:
        return False

    def get_number_of_nonlinear_variables(self) -> int:
        return -1

    def get_list_of_nonlinear_variables(self, num_nonlin_vars: int, pos_nonlin_vars: np.ndarray) -> bool:
        return False

    # -- numeric evaluation ---------------------------------------------

    def eval_f(self, n: int, x: np.ndarray, new_x: bool, obj_value: np.ndarray) -> bool:
        obj_value[0] = self.evaluator.cost(x, new_x)
        return True

    def eval_grad_f(self, n: int, x: np.ndarray, new_x: bool, grad_f: np.ndarray) -> bool:
        grad_f[:] = self.evaluator.cost_gradient(x, new_x)
        return True

    def eval_g(self, n: int, x: np.ndarray, new_x: bool, m: int, g: np.ndarray) -> bool:
        g[:] = self.evaluator.constraints(x, new_x)
        return True

    def eval_jac_g(
        self,
        n: int,
        x: np.ndarray | None,
        new_x: bool,
        m: int,
        nele_jac: int,
        i_row: np.ndarray | None,
        j_col: np.ndarray | None,
        values: np.ndarray | None,
    ) -> bool:
        """Structure request when *values* is None, numeric request otherwise."""
        if values is None:
            return self.sparsity.fill_structure(i_row, j_col)
        assert values.size == nele_jac, f"value buffer holds {values.size}, expected {nele_jac}"
        self.evaluator.jacobian_values(x, new_x, values)
        return True

    def eval_h(self, *args: object) -> bool:
        # Exact Hessians are not provided; the engine runs with limited-memory.
        return False

    # -- iteration and termination --------------------------------------

    def intermediate_callback(
        self,
        alg_mod: int,
        iter_count: int,
        obj_value: float,
        inf_pr: float,
        inf_du: float,
        mu: float,
        d_norm: float,
        regularization_size: float,
        alpha_du: float,
        alpha_pr: float,
        ls_trials: int,
    ) -> bool:
        data = IterationData(
            iteration=iter_count,
            objective=obj_value,
            inf_pr=inf_pr,
            inf_du=inf_du,
            mu=mu,
            d_norm=d_norm,
            regularization_size=regularization_size,
            alpha_du=alpha_du,
            alpha_pr=alpha_pr,
            ls_trials=ls_trials,
            restoration=alg_mod == 1,
        )
        self.trace("iteration", iteration=iter_count, objective=obj_value, inf_pr=inf_pr)
        if self.iteration_observer is not None:
            self.iteration_observer(data)
        # Observation only: the solve is never stopped from here.
        return True

    def finalize_solution(
        self,
        status: SolverReturn,
        n: int,
        x: np.ndarray,
        z_L: np.ndarray,
        z_U: np.ndarray,
        m: int,
        g: np.ndarray,
        lambda_: np.ndarray,
        obj_value: float,
    ) -> None:
        self._outcome = map_outcome(status, x, g, lambda_, obj_value, z_L, z_U)
        self.trace("finalize", status=status.name, outcome=type(self._outcome).__name__)
        assert self._outcome is not None, "finalize_solution produced no outcome"
