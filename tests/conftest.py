"""
Pytest configuration for the nlpbridge test suite.

Provides the two-variable scenario used throughout the tests:

    minimise   -x0
    subject to x0 + x1 = 1            (linear)
               x0^2 + x1^2 - 4 <= 0   (nonlinear)
               -10 <= x0, x1 <= 10

started from (0, 0). The optimum lies on both constraints at
x0 = (1 + sqrt(7)) / 2.
"""

from __future__ import annotations

import os
from types import SimpleNamespace

import numpy as np
import pytest
import scipy.sparse as sp

# Keep Ipopt quiet regardless of the developer's environment
os.environ.setdefault("NLPBRIDGE_IPOPT_PRINT_LEVEL", "0")

from nlpbridge.adapter import RecordingTraceSink  # noqa: E402
from nlpbridge.constants import INFINITY  # noqa: E402
from nlpbridge.problem import Linearity, NumericFunction, Problem  # noqa: E402

SCENARIO_X0 = (1.0 + np.sqrt(7.0)) / 2.0


class CountingFunction(NumericFunction):
    """NumericFunction that counts value and Jacobian evaluations."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.value_calls = 0
        self.jacobian_calls = 0

    def _compute(self, x):
        self.value_calls += 1
        return super()._compute(x)

    def _jacobian(self, x):
        self.jacobian_calls += 1
        return super()._jacobian(x)


def _circle_jacobian(x):
    # Structural entries are kept even where the value is zero
    return sp.csc_matrix((2.0 * x, ([0, 0], [0, 1])), shape=(1, 2))


def build_scenario(starting_point=(0.0, 0.0), sparse_circle: bool = True) -> SimpleNamespace:
    objective = CountingFunction(
        lambda x: [-x[0]],
        lambda x: [[-1.0, 0.0]],
        2,
        1,
        linearity=Linearity.LINEAR,
        name="objective",
    )
    line = CountingFunction(
        lambda x: [x[0] + x[1]],
        lambda x: [[1.0, 1.0]],
        2,
        1,
        linearity=Linearity.LINEAR,
        name="line",
    )
    circle = CountingFunction(
        lambda x: [x[0] ** 2 + x[1] ** 2 - 4.0],
        _circle_jacobian if sparse_circle else (lambda x: [2.0 * x]),
        2,
        1,
        sparse=sparse_circle,
        name="circle",
    )
    problem = Problem(
        objective,
        argument_bounds=[(-10.0, 10.0), (-10.0, 10.0)],
        starting_point=starting_point,
    )
    problem.add_constraint(line, bounds=(1.0, 1.0))
    problem.add_constraint(circle, bounds=(-INFINITY, 0.0))
    return SimpleNamespace(problem=problem, objective=objective, line=line, circle=circle)


@pytest.fixture
def scenario() -> SimpleNamespace:
    """Scenario problem with a starting point and a structurally sparse circle."""
    return build_scenario()


@pytest.fixture
def scenario_factory():
    """Build scenario variants, e.g. ``scenario_factory(starting_point=None)``."""
    return build_scenario


@pytest.fixture
def counting_function():
    return CountingFunction


@pytest.fixture
def trace() -> RecordingTraceSink:
    return RecordingTraceSink()


@pytest.fixture
def scenario_optimum() -> float:
    return SCENARIO_X0
