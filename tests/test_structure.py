"""
Tests for the structural queries: sizes, bounds, scaling, linearity and
starting point.
"""

import logging

import numpy as np
import pytest

from nlpbridge.adapter import AdapterOptions, SolverFailure, Tnlp
from nlpbridge.constants import INFINITY, MISSING_STARTING_POINT
from nlpbridge.problem import LinearFunction, Linearity, NumericFunction, Problem


def _starting_point(tnlp, n=2, m=2, init_z=False):
    x = np.zeros(n)
    z_l, z_u = np.zeros(n), np.zeros(n)
    lam = np.full(m, 7.0)
    ok = tnlp.get_starting_point(n, True, x, init_z, z_l, z_u, m, True, lam)
    return ok, x, z_l, z_u, lam


class TestBounds:
    def test_flattened_in_declaration_order(self, scenario):
        tnlp = Tnlp(scenario.problem)
        x_l, x_u = np.zeros(2), np.zeros(2)
        g_l, g_u = np.zeros(2), np.zeros(2)
        assert tnlp.get_bounds_info(2, x_l, x_u, 2, g_l, g_u)
        np.testing.assert_allclose(x_l, [-10.0, -10.0])
        np.testing.assert_allclose(x_u, [10.0, 10.0])
        np.testing.assert_allclose(g_l, [1.0, -INFINITY])
        np.testing.assert_allclose(g_u, [1.0, 0.0])

    def test_multi_output_constraint_component_order(self):
        objective = NumericFunction(lambda x: [0.0], lambda x: [[0.0, 0.0]], 2, 1)
        box = LinearFunction(np.eye(2), name="box")
        problem = Problem(objective).add_constraint(box, bounds=[(0.0, 1.0), (2.0, 3.0)])
        tnlp = Tnlp(problem)
        g_l, g_u = np.zeros(2), np.zeros(2)
        assert tnlp.get_bounds_info(2, np.zeros(2), np.zeros(2), 2, g_l, g_u)
        np.testing.assert_allclose(g_l, [0.0, 2.0])
        np.testing.assert_allclose(g_u, [1.0, 3.0])

    def test_size_mismatch_returns_false(self, scenario, caplog):
        tnlp = Tnlp(scenario.problem)
        with caplog.at_level(logging.ERROR):
            ok = tnlp.get_bounds_info(2, np.zeros(2), np.zeros(2), 3, np.zeros(3), np.zeros(3))
        assert ok is False
        assert "Bound buffers" in caplog.text


class TestScaling:
    def test_no_scaling_requested(self, scenario):
        tnlp = Tnlp(scenario.problem)
        assert tnlp.get_scaling_parameters(2, np.zeros(2), 2, np.zeros(2)) == (False, False)

    def test_scales_emitted_in_bounds_order(self, scenario):
        problem = Problem(
            scenario.objective,
            argument_bounds=[(-10.0, 10.0)] * 2,
            argument_scales=[2.0, 0.5],
            starting_point=[0.0, 0.0],
        )
        problem.add_constraint(scenario.line, bounds=(1.0, 1.0))
        problem.add_constraint(scenario.circle, bounds=(-INFINITY, 0.0), scales=[4.0])
        tnlp = Tnlp(problem)
        x_scaling, g_scaling = np.zeros(2), np.zeros(2)
        assert tnlp.get_scaling_parameters(2, x_scaling, 2, g_scaling) == (True, True)
        np.testing.assert_allclose(x_scaling, [2.0, 0.5])
        # unscaled constraints keep a unit factor
        np.testing.assert_allclose(g_scaling, [1.0, 4.0])

    def test_unscaled_problem_leaves_buffers(self, scenario):
        x_scaling, g_scaling = np.full(2, 7.0), np.full(2, 7.0)
        assert Tnlp(scenario.problem).get_scaling_parameters(2, x_scaling, 2, g_scaling) == (False, False)
        np.testing.assert_allclose(x_scaling, [7.0, 7.0])
        np.testing.assert_allclose(g_scaling, [7.0, 7.0])

    def test_constraint_scales_only(self, scenario):
        problem = Problem(
            scenario.objective, argument_bounds=[(-10.0, 10.0)] * 2, starting_point=[0.0, 0.0]
        )
        problem.add_constraint(scenario.line, bounds=(1.0, 1.0), scales=[3.0])
        assert problem.has_scaling()
        x_scaling, g_scaling = np.full(2, 7.0), np.zeros(1)
        assert Tnlp(problem).get_scaling_parameters(2, x_scaling, 1, g_scaling) == (False, True)
        np.testing.assert_allclose(x_scaling, [7.0, 7.0])
        np.testing.assert_allclose(g_scaling, [3.0])


class TestLinearity:
    def test_constraint_components_tagged(self, scenario):
        tnlp = Tnlp(scenario.problem)
        kinds = [None, None]
        assert tnlp.get_function_linearity(2, kinds)
        assert kinds == [Linearity.LINEAR, Linearity.NONLINEAR]

    def test_variables_reported_nonlinear(self, scenario):
        tnlp = Tnlp(scenario.problem)
        kinds = [None, None]
        assert tnlp.get_variables_linearity(2, kinds)
        assert kinds == [Linearity.NONLINEAR, Linearity.NONLINEAR]


class TestStartingPoint:
    def test_copies_starting_point(self, scenario_factory):
        tnlp = Tnlp(scenario_factory(starting_point=(0.25, -0.5)).problem)
        ok, x, _, _, lam = _starting_point(tnlp)
        assert ok
        np.testing.assert_allclose(x, [0.25, -0.5])
        np.testing.assert_allclose(lam, [0.0, 0.0])

    def test_bound_multipliers_initialised(self, scenario):
        tnlp = Tnlp(scenario.problem, options=AdapterOptions(bound_multiplier_init=0.5))
        ok, _, z_l, z_u, _ = _starting_point(tnlp, init_z=True)
        assert ok
        np.testing.assert_allclose(z_l, [0.5, 0.5])
        np.testing.assert_allclose(z_u, [0.5, 0.5])

    def test_default_bound_multiplier_is_one(self, scenario):
        tnlp = Tnlp(scenario.problem)
        _, _, z_l, z_u, _ = _starting_point(tnlp, init_z=True)
        np.testing.assert_allclose(z_l, [1.0, 1.0])
        np.testing.assert_allclose(z_u, [1.0, 1.0])

    def test_missing_starting_point_fails(self, scenario_factory):
        """No starting point: failure recorded, nothing evaluated."""
        scenario = scenario_factory(starting_point=None)
        tnlp = Tnlp(scenario.problem)
        ok, *_ = _starting_point(tnlp)
        assert ok is False
        assert tnlp.outcome == SolverFailure(MISSING_STARTING_POINT)
        assert scenario.objective.value_calls == 0
        assert scenario.objective.jacobian_calls == 0
        assert scenario.circle.value_calls == 0

    def test_missing_starting_point_tolerated_when_configured(self, scenario_factory):
        """Without the requirement the bound-derived point is used."""
        problem = scenario_factory(starting_point=None).problem
        tnlp = Tnlp(problem, options=AdapterOptions(require_starting_point=False))
        ok, x, *_ = _starting_point(tnlp)
        assert ok
        np.testing.assert_allclose(x, [0.0, 0.0])
        assert tnlp.outcome is None

    @pytest.mark.parametrize("order", ["diagonal", ""])
    def test_invalid_storage_order_rejected(self, order):
        with pytest.raises(ValueError):
            AdapterOptions(storage_order=order)
