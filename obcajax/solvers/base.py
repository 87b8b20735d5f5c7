# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Base classes for NLP solver adapters.

An adapter drives an NLPInterface from an external NLP solver. The common
solve() performs the size query, bounds and starting point requests, runs
the solver and always reports the terminal point to finalize_solution,
including when a callback fails half way.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from absl import logging
import numpy as np

from obcajax.core.exceptions import EvaluationError
from obcajax.core.types import SolverReturn
from obcajax.nlp.interface import NLPInfo, NLPInterface


@dataclass
class SolveOutcome:
    """Terminal point of one solver run."""
    status: SolverReturn
    x: np.ndarray
    z_L: Optional[np.ndarray] = None
    z_U: Optional[np.ndarray] = None
    g: Optional[np.ndarray] = None
    lambda_: Optional[np.ndarray] = None
    obj_value: float = float('nan')


class CallbackAdapter:
    """Exposes NLPInterface callbacks as plain functions of x.

    Every function raises EvaluationError when the wrapped callback
    reports failure. The method names follow the problem object protocol
    of cyipopt.

    Attributes:
        n, m: Problem sizes.
        last_x: Copy of the most recent evaluation point.
    """

    def __init__(self, problem: NLPInterface, info: NLPInfo):
        self.problem = problem
        self.n = info.n
        self.m = info.m
        self.nnz_jac = info.nnz_jac_g
        self.nnz_hess = info.nnz_h_lag
        self.last_x: Optional[np.ndarray] = None

        self._jac_structure = self._structure(
            'eval_jac_g', self.nnz_jac,
            lambda rows, cols: problem.eval_jac_g(
                self.n, None, False, self.m, self.nnz_jac, rows, cols, None))
        self._hess_structure = self._structure(
            'eval_h', self.nnz_hess,
            lambda rows, cols: problem.eval_h(
                self.n, None, False, 1.0, self.m, None, False,
                self.nnz_hess, rows, cols, None))

    @staticmethod
    def _structure(callback, nnz, query) -> Tuple[np.ndarray, np.ndarray]:
        rows = np.zeros((nnz,), dtype=np.int64)
        cols = np.zeros((nnz,), dtype=np.int64)
        if not query(rows, cols):
            raise EvaluationError(callback, 'structure query failed')
        return rows, cols

    def _point(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        self.last_x = np.array(x)
        return x

    def objective(self, x) -> float:
        ok, value = self.problem.eval_f(self.n, self._point(x), True)
        if not ok:
            raise EvaluationError('eval_f')
        return value

    def gradient(self, x) -> np.ndarray:
        grad = np.zeros((self.n,))
        if not self.problem.eval_grad_f(self.n, self._point(x), True, grad):
            raise EvaluationError('eval_grad_f')
        return grad

    def constraints(self, x) -> np.ndarray:
        g = np.zeros((self.m,))
        if not self.problem.eval_g(self.n, self._point(x), True, self.m, g):
            raise EvaluationError('eval_g')
        return g

    def jacobianstructure(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._jac_structure

    def jacobian(self, x) -> np.ndarray:
        values = np.zeros((self.nnz_jac,))
        if not self.problem.eval_jac_g(self.n, self._point(x), True, self.m,
                                       self.nnz_jac, None, None, values):
            raise EvaluationError('eval_jac_g')
        return values

    def hessianstructure(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._hess_structure

    def hessian(self, x, lagrange, obj_factor) -> np.ndarray:
        values = np.zeros((self.nnz_hess,))
        lagrange = np.asarray(lagrange, dtype=np.float64)
        if not self.problem.eval_h(self.n, self._point(x), True, obj_factor,
                                   self.m, lagrange, True, self.nnz_hess,
                                   None, None, values):
            raise EvaluationError('eval_h')
        return values


class NLPSolverBase(ABC):
    """Abstract base class for NLP solver adapters.

    Subclasses implement _solve_impl(), which runs the external solver
    from a starting point and returns a SolveOutcome.
    """

    name: str = "base"

    def __init__(self, **options):
        """Initialize adapter with default options.

        Args:
            **options: Solver-specific default options.
        """
        self.default_options = options

    def solve(
        self,
        problem: NLPInterface,
        options: Optional[Dict[str, Any]] = None,
    ) -> SolverReturn:
        """Run one full solve of problem.

        Args:
            problem: Formulation implementing NLPInterface.
            options: Solver options overriding the defaults.

        Returns:
            Terminal status, also passed to problem.finalize_solution.
        """
        merged_options = {**self.default_options}
        if options:
            merged_options.update(options)

        info = problem.get_nlp_info()
        n, m = info.n, info.m
        x_l, x_u = np.zeros((n,)), np.zeros((n,))
        g_l, g_u = np.zeros((m,)), np.zeros((m,))
        x0 = np.zeros((n,))

        if not (problem.get_bounds_info(n, x_l, x_u, m, g_l, g_u)
                and problem.get_starting_point(n, True, x0, False, None, None,
                                               m, False, None)):
            logging.error('%s: problem setup failed', self.name)
            outcome = SolveOutcome(SolverReturn.INVALID_PROBLEM_DEFINITION, x0)
        else:
            logging.info('%s: solving n=%d, m=%d, nnz_jac=%d, nnz_hess=%d',
                         self.name, n, m, info.nnz_jac_g, info.nnz_h_lag)
            adapter = None
            try:
                adapter = CallbackAdapter(problem, info)
                outcome = self._solve_impl(adapter, x0, (x_l, x_u), (g_l, g_u),
                                           merged_options)
            except EvaluationError as e:
                logging.error('%s: solve aborted: %s', self.name, e)
                last_x = adapter.last_x if adapter is not None else None
                outcome = SolveOutcome(
                    SolverReturn.INTERNAL_ERROR, last_x if last_x is not None else x0)

        problem.finalize_solution(
            outcome.status, n, outcome.x, outcome.z_L, outcome.z_U, m,
            outcome.g, outcome.lambda_, outcome.obj_value)
        return outcome.status

    @abstractmethod
    def _solve_impl(
        self,
        adapter: CallbackAdapter,
        x0: np.ndarray,
        variable_bounds: Tuple[np.ndarray, np.ndarray],
        constraint_bounds: Tuple[np.ndarray, np.ndarray],
        options: Dict[str, Any],
    ) -> SolveOutcome:
        """Internal solve implementation.

        Subclasses must implement this method.
        """
        ...
