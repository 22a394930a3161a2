"""
Tests for the backend-neutral 0/1 model and the solver backends.
"""

import itertools

import numpy as np
import pytest
from scipy.optimize import OptimizeResult

from orssa.solver import (
    BooleanModel,
    CpSatBackend,
    HighsBackend,
    SolveStatus,
    get_backend,
    linearize_and,
)


def and_model(a_value, b_value, sign):
    model = BooleanModel("and")
    a = model.new_bool_var("a")
    b = model.new_bool_var("b")
    y = linearize_and(model, a, b, "y")
    model.add_eq([(a, 1)], a_value)
    model.add_eq([(b, 1)], b_value)
    model.maximize([(y, sign)])
    return model, y


def small_knapsack():
    # max 5x0 + 4x1 + 3x2, x0 + x1 + x2 <= 2, x0 = x2
    model = BooleanModel("knapsack")
    x = [model.new_bool_var(f"x{i}") for i in range(3)]
    model.add_le([(xi, 1) for xi in x], 2)
    model.add_eq([(x[0], 1), (x[2], -1)], 0)
    model.maximize([(x[0], 5), (x[1], 4), (x[2], 3)])
    return model


class TestBooleanModel:

    def test_variables_are_indexed(self):
        model = BooleanModel()
        assert model.new_bool_var("a") == 0
        assert model.new_bool_var("b") == 1
        assert model.num_vars == 2

    def test_linearize_and_adds_three_constraints(self):
        model = BooleanModel()
        a, b = model.new_bool_var("a"), model.new_bool_var("b")
        y = linearize_and(model, a, b, "y")
        assert y == 2
        assert len(model.constraints) == 3

    def test_non_integer_coefficient_rejected(self):
        model = BooleanModel()
        a = model.new_bool_var("a")
        with pytest.raises(ValueError):
            model.maximize([(a, 0.5)])

    def test_unknown_variable_rejected(self):
        model = BooleanModel()
        with pytest.raises(ValueError):
            model.add_le([(3, 1)], 1)

    def test_empty_range_rejected(self):
        model = BooleanModel()
        a = model.new_bool_var("a")
        with pytest.raises(ValueError):
            model.add_range([(a, 1)], 2, 1)

    def test_objective_merges_repeated_terms(self):
        model = BooleanModel()
        a = model.new_bool_var("a")
        model.maximize([(a, 2), (a, 3)])
        assert model.objective == {a: 5}


class TestGetBackend:

    def test_known_names(self):
        assert isinstance(get_backend("highs"), HighsBackend)
        assert isinstance(get_backend("cpsat"), CpSatBackend)

    def test_instance_passes_through(self):
        backend = HighsBackend()
        assert get_backend(backend) is backend

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            get_backend("gurobi")


class BackendContract:
    """Shared checks every backend must pass."""

    backend = None

    @pytest.mark.parametrize("a_value,b_value", list(itertools.product([0, 1], repeat=2)))
    @pytest.mark.parametrize("sign", [1, -1])
    def test_linearized_and_is_exact(self, a_value, b_value, sign):
        model, y = and_model(a_value, b_value, sign)
        solution = self.backend.solve(model, time_limit=5)

        assert solution.status == SolveStatus.OPTIMAL
        assert solution.values[y] == bool(a_value and b_value)

    def test_knapsack_optimum(self):
        solution = self.backend.solve(small_knapsack(), time_limit=5)

        assert solution.status == SolveStatus.OPTIMAL
        assert solution.objective == pytest.approx(8.0)
        np.testing.assert_array_equal(solution.values, [True, False, True])

    def test_infeasible_model(self):
        model = BooleanModel()
        x = [model.new_bool_var(f"x{i}") for i in range(2)]
        model.add_range([(xi, 1) for xi in x], 3, 4)
        model.maximize([(x[0], 1)])
        solution = self.backend.solve(model, time_limit=5)

        assert solution.status == SolveStatus.INFEASIBLE
        assert not solution.values.any()
        assert solution.objective == 0.0

    def test_empty_model(self):
        solution = self.backend.solve(BooleanModel(), time_limit=1)
        assert solution.status == SolveStatus.OPTIMAL
        assert solution.values.shape == (0,)

    def test_diagnostics_reported(self):
        solution = self.backend.solve(small_knapsack(), time_limit=5, num_workers=2)
        assert solution.wall_time >= 0.0
        assert solution.num_branches >= 0
        assert solution.num_conflicts >= 0
        assert solution.best_bound >= solution.objective - 1e-6


class TestHighsBackend(BackendContract):
    backend = HighsBackend()

    @staticmethod
    def _stub_milp(monkeypatch, **fields):
        result = OptimizeResult(message="Time limit reached. (HiGHS Status 13)", **fields)
        monkeypatch.setattr("orssa.solver.milp", lambda *args, **kwargs: result)

    def test_time_limit_with_incumbent_is_feasible(self, monkeypatch):
        self._stub_milp(monkeypatch, status=1, x=np.array([1.0, 0.0, 1.0]), fun=-8.0,
                        mip_dual_bound=-9.0, mip_node_count=17)
        solution = self.backend.solve(small_knapsack(), time_limit=1)

        assert solution.status == SolveStatus.FEASIBLE
        np.testing.assert_array_equal(solution.values, [True, False, True])
        assert solution.objective == pytest.approx(8.0)
        assert solution.best_bound == pytest.approx(9.0)
        assert solution.num_branches == 17

    def test_time_limit_without_incumbent_is_unknown(self, monkeypatch):
        self._stub_milp(monkeypatch, status=1, x=None, fun=None)
        solution = self.backend.solve(small_knapsack(), time_limit=1)

        assert solution.status == SolveStatus.UNKNOWN
        assert solution.values.shape == (3,)
        assert not solution.values.any()
        assert solution.objective == 0.0
        assert solution.num_branches == 0


class TestCpSatBackend(BackendContract):

    @pytest.fixture(autouse=True)
    def _require_ortools(self):
        pytest.importorskip("ortools")

    backend = CpSatBackend()
