"""
Абстрактна «здатність» цілочисельного програмування для селектора компонент.

Модель BooleanModel не залежить від конкретного розв'язувача: вона лише
накопичує булеві змінні, лінійні обмеження з цілими коефіцієнтами та
цільову функцію на максимум. Конкретний бекенд (HiGHS через scipy або
CP-SAT з OR-Tools) перекладає її у свій API і повертає Solution.
"""
import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Tuple

import numpy as np
from scipy.optimize import Bounds, LinearConstraint, milp
from scipy.sparse import csr_matrix

logger = logging.getLogger(__name__)

Terms = Iterable[Tuple[int, int]]


class SolveStatus(str, Enum):
    OPTIMAL = "OPTIMAL"
    FEASIBLE = "FEASIBLE"
    INFEASIBLE = "INFEASIBLE"
    UNKNOWN = "UNKNOWN"
    MODEL_INVALID = "MODEL_INVALID"
    NOT_SOLVED = "NOT_SOLVED"

    @property
    def has_solution(self):
        return self in (SolveStatus.OPTIMAL, SolveStatus.FEASIBLE)


@dataclass(frozen=True)
class Constraint:
    terms: Tuple[Tuple[int, int], ...]
    lb: float
    ub: float


@dataclass(frozen=True)
class Solution:
    values: np.ndarray
    objective: float
    best_bound: float
    status: SolveStatus
    num_branches: int = 0
    num_conflicts: int = 0
    wall_time: float = 0.0


class BooleanModel:
    """0/1-програма з лінійними обмеженнями та цілою цільовою функцією."""

    def __init__(self, name="model"):
        self.name = name
        self.var_names: List[str] = []
        self.constraints: List[Constraint] = []
        self.objective: Dict[int, int] = {}

    @property
    def num_vars(self):
        return len(self.var_names)

    def new_bool_var(self, name):
        self.var_names.append(name)
        return len(self.var_names) - 1

    def _check_terms(self, terms):
        checked = []
        for var, coef in terms:
            if not 0 <= var < self.num_vars:
                raise ValueError(f"Невідома змінна {var} у моделі '{self.name}'")
            if int(coef) != coef:
                raise ValueError(f"Коефіцієнт {coef!r} при {self.var_names[var]} не цілий")
            checked.append((int(var), int(coef)))
        return tuple(checked)

    def add_range(self, terms: Terms, lb, ub):
        if lb > ub:
            raise ValueError(f"Порожній діапазон обмеження [{lb}, {ub}]")
        self.constraints.append(Constraint(self._check_terms(terms), lb, ub))

    def add_le(self, terms: Terms, ub):
        self.add_range(terms, -math.inf, ub)

    def add_eq(self, terms: Terms, rhs):
        self.add_range(terms, rhs, rhs)

    def maximize(self, terms: Terms):
        objective: Dict[int, int] = {}
        for var, coef in self._check_terms(terms):
            objective[var] = objective.get(var, 0) + coef
        self.objective = objective


def linearize_and(model, a, b, name):
    """
    Точна лінеаризація кон'юнкції y = a ∧ b для булевих a, b:
    y <= a, y <= b, a + b - y <= 1.
    """
    y = model.new_bool_var(name)
    model.add_le([(y, 1), (a, -1)], 0)
    model.add_le([(y, 1), (b, -1)], 0)
    model.add_le([(a, 1), (b, 1), (y, -1)], 1)
    return y


class SolverBackend(ABC):
    name = "abstract"

    def solve(self, model, time_limit, num_workers=8):
        """Розв'язує модель не довше time_limit секунд."""
        if model.num_vars == 0:
            return Solution(values=np.zeros(0, dtype=bool), objective=0.0,
                            best_bound=0.0, status=SolveStatus.OPTIMAL)
        logger.debug("%s: %d змінних, %d обмежень, ліміт %ss",
                     self.name, model.num_vars, len(model.constraints), time_limit)
        return self._solve(model, time_limit, num_workers)

    @abstractmethod
    def _solve(self, model, time_limit, num_workers):
        raise NotImplementedError


class HighsBackend(SolverBackend):
    """
    Гілки та межі HiGHS через scipy.optimize.milp.

    scipy не дає задати кількість потоків, тому num_workers ігнорується;
    кількість конфліктів HiGHS не повідомляє і вона дорівнює 0.
    """
    name = "highs"

    # milp: 0 – оптимум, 1 – ліміт часу/ітерацій, 2 – недопустима, 3 – необмежена
    _STATUS = {
        0: SolveStatus.OPTIMAL,
        2: SolveStatus.INFEASIBLE,
        3: SolveStatus.MODEL_INVALID,
    }

    def _solve(self, model, time_limit, num_workers):
        n = model.num_vars
        c = np.zeros(n)
        for var, coef in model.objective.items():
            c[var] = -coef

        constraints = None
        if model.constraints:
            rows, cols, data = [], [], []
            for row, con in enumerate(model.constraints):
                for var, coef in con.terms:
                    rows.append(row)
                    cols.append(var)
                    data.append(coef)
            A = csr_matrix((data, (rows, cols)), shape=(len(model.constraints), n))
            lb = np.array([con.lb for con in model.constraints], dtype=float)
            ub = np.array([con.ub for con in model.constraints], dtype=float)
            constraints = LinearConstraint(A, lb, ub)

        start = time.perf_counter()
        res = milp(
            c,
            integrality=np.ones(n),
            bounds=Bounds(0, 1),
            constraints=constraints,
            options={"time_limit": float(time_limit), "disp": False, "mip_rel_gap": 0.0},
        )
        wall_time = time.perf_counter() - start

        has_x = res.x is not None
        status = self._STATUS.get(res.status)
        if status is None:
            status = SolveStatus.FEASIBLE if has_x else SolveStatus.UNKNOWN
        logger.debug("HiGHS: %s (%s)", status.value, res.message)

        dual_bound = getattr(res, "mip_dual_bound", None)
        objective = -float(res.fun) if has_x else 0.0
        if dual_bound is None or not np.isfinite(dual_bound):
            best_bound = objective
        else:
            best_bound = -float(dual_bound)
        return Solution(
            values=np.round(res.x).astype(bool) if has_x else np.zeros(n, dtype=bool),
            objective=objective,
            best_bound=best_bound,
            status=status,
            num_branches=int(getattr(res, "mip_node_count", 0) or 0),
            num_conflicts=0,
            wall_time=wall_time,
        )


class CpSatBackend(SolverBackend):
    """
    Google OR-Tools CP-SAT (паралельний пошук у num_workers потоках).

    Потребує необов'язкової залежності: pip install orssa[cpsat]
    """
    name = "cpsat"

    def _solve(self, model, time_limit, num_workers):
        from ortools.sat.python import cp_model

        m = cp_model.CpModel()
        xs = [m.new_bool_var(name) for name in model.var_names]
        for con in model.constraints:
            # CP-SAT приймає лише цілі межі; нескінченність замінюємо досяжним мінімумом/максимумом.
            low = sum(min(coef, 0) for _, coef in con.terms)
            high = sum(max(coef, 0) for _, coef in con.terms)
            lb = low if con.lb == -math.inf else max(low, math.ceil(con.lb))
            ub = high if con.ub == math.inf else min(high, math.floor(con.ub))
            if lb > ub:
                logger.debug("CP-SAT: обмеження %s недосяжне", con)
                return Solution(values=np.zeros(model.num_vars, dtype=bool), objective=0.0,
                                best_bound=0.0, status=SolveStatus.INFEASIBLE)
            if con.terms:
                m.add_linear_constraint(
                    cp_model.LinearExpr.weighted_sum([xs[v] for v, _ in con.terms],
                                                     [c for _, c in con.terms]),
                    lb, ub)
        if model.objective:
            m.maximize(cp_model.LinearExpr.weighted_sum(
                [xs[v] for v in model.objective], list(model.objective.values())))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = float(time_limit)
        solver.parameters.num_workers = int(num_workers)
        code = solver.solve(m)

        status = {
            cp_model.OPTIMAL: SolveStatus.OPTIMAL,
            cp_model.FEASIBLE: SolveStatus.FEASIBLE,
            cp_model.INFEASIBLE: SolveStatus.INFEASIBLE,
            cp_model.MODEL_INVALID: SolveStatus.MODEL_INVALID,
        }.get(code, SolveStatus.UNKNOWN)

        if status.has_solution:
            values = np.array([solver.boolean_value(x) for x in xs], dtype=bool)
            objective = float(solver.objective_value)
            best_bound = float(solver.best_objective_bound)
        else:
            values = np.zeros(model.num_vars, dtype=bool)
            objective = best_bound = 0.0
        return Solution(
            values=values,
            objective=objective,
            best_bound=best_bound,
            status=status,
            num_branches=int(solver.num_branches),
            num_conflicts=int(solver.num_conflicts),
            wall_time=float(solver.wall_time),
        )


BACKENDS = {
    HighsBackend.name: HighsBackend,
    CpSatBackend.name: CpSatBackend,
}


def get_backend(name="highs"):
    if isinstance(name, SolverBackend):
        return name
    try:
        return BACKENDS[name]()
    except KeyError:
        raise ValueError(f"Невідомий розв'язувач '{name}', доступні: {sorted(BACKENDS)}") from None


__all__ = [
    "BACKENDS",
    "BooleanModel",
    "Constraint",
    "CpSatBackend",
    "HighsBackend",
    "Solution",
    "SolveStatus",
    "SolverBackend",
    "get_backend",
    "linearize_and",
]
