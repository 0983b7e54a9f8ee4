"""
Tests for the Tnlp callback facade.
"""

import numpy as np
import pytest

from nlpbridge.adapter import (
    AdapterOptions,
    IterationData,
    SolverResult,
    SolverReturn,
    Tnlp,
)
from nlpbridge.problem import Problem


class TestUnimplementedExtensions:
    def test_defaults(self, scenario):
        tnlp = Tnlp(scenario.problem)
        assert tnlp.get_warm_start_iterate() is False
        assert tnlp.get_number_of_nonlinear_variables() == -1
        assert tnlp.get_list_of_nonlinear_variables(0, np.zeros(0, dtype=int)) is False
        assert tnlp.eval_h() is False


class TestNlpInfo:
    def test_dense_nonzeros(self, scenario):
        info = Tnlp(scenario.problem, sparse=False).get_nlp_info()
        assert (info.n, info.m, info.nnz_jac_g, info.nnz_h_lag) == (2, 2, 4, 0)
        assert info.index_style == "C"


class TestIntermediateCallback:
    def test_forwards_to_observer(self, scenario, trace):
        seen = []
        tnlp = Tnlp(scenario.problem, trace=trace, iteration_observer=seen.append)
        keep_going = tnlp.intermediate_callback(0, 3, -1.5, 1e-3, 1e-4, 0.1, 0.2, 0.0, 1.0, 1.0, 1)
        assert keep_going is True
        (data,) = seen
        assert isinstance(data, IterationData)
        assert data.iteration == 3
        assert data.objective == -1.5
        assert data.restoration is False
        assert trace.count("iteration") == 1

    def test_never_stops_without_observer(self, scenario):
        tnlp = Tnlp(scenario.problem)
        assert tnlp.intermediate_callback(1, 0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0)


class TestFinalize:
    def test_records_result(self, scenario):
        tnlp = Tnlp(scenario.problem)
        tnlp.finalize_solution(
            SolverReturn.SUCCESS,
            2,
            np.array([1.8, -0.8]),
            np.zeros(2),
            np.zeros(2),
            2,
            np.array([1.0, 0.0]),
            np.array([0.1, 0.2]),
            -1.8,
        )
        outcome = tnlp.outcome
        assert isinstance(outcome, SolverResult)
        np.testing.assert_allclose(outcome.x, [1.8, -0.8])
        np.testing.assert_allclose(outcome.constraints, [1.0, 0.0])
        np.testing.assert_allclose(outcome.multipliers, [0.1, 0.2])
        assert outcome.value == pytest.approx(-1.8)


class TestDerivativeCheck:
    def test_wrong_gradient_logged(self, counting_function, caplog):
        wrong = counting_function(
            lambda x: [x[0] ** 2], lambda x: [[1.0, 0.0]], 2, 1, name="wrong"
        )
        tnlp = Tnlp(
            Problem(wrong, starting_point=[3.0, 0.0]),
            options=AdapterOptions(check_derivatives=True),
        )
        tnlp.eval_grad_f(2, np.array([3.0, 0.0]), True, np.zeros(2))
        assert "Derivative check failed for 'wrong'" in caplog.text

    def test_disabled_by_default(self, scenario):
        tnlp = Tnlp(scenario.problem)
        tnlp.eval_grad_f(2, np.array([3.0, 0.0]), True, np.zeros(2))
        assert scenario.objective.value_calls == 0
