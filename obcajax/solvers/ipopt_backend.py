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

"""IPOPT adapter through cyipopt.

IPOPT solves NLPs in the form:
    min f(x)
    s.t. g_l <= g(x) <= g_u
         x_l <= x <= x_u

with the exact sparse Hessian of the Lagrangian supplied by the
formulation.
"""

from typing import Any, Dict, Tuple

import numpy as np

from obcajax.core.types import SolverReturn
from obcajax.solvers.base import CallbackAdapter, NLPSolverBase, SolveOutcome

try:
    import cyipopt
    CYIPOPT_AVAILABLE = True
except ImportError:
    CYIPOPT_AVAILABLE = False
    cyipopt = None


# ApplicationReturnStatus codes reported in info['status']
IPOPT_STATUS = {
    0: SolverReturn.SUCCESS,
    1: SolverReturn.STOP_AT_ACCEPTABLE_POINT,
    2: SolverReturn.LOCAL_INFEASIBILITY,
    3: SolverReturn.STOP_AT_TINY_STEP,
    4: SolverReturn.DIVERGING_ITERATES,
    5: SolverReturn.USER_REQUESTED_STOP,
    6: SolverReturn.FEASIBLE_POINT_FOUND,
    -1: SolverReturn.MAXITER_EXCEEDED,
    -2: SolverReturn.RESTORATION_FAILURE,
    -3: SolverReturn.ERROR_IN_STEP_COMPUTATION,
    -4: SolverReturn.CPUTIME_EXCEEDED,
    -10: SolverReturn.TOO_FEW_DEGREES_OF_FREEDOM,
    -11: SolverReturn.INVALID_PROBLEM_DEFINITION,
    -12: SolverReturn.INVALID_OPTION,
    -13: SolverReturn.INVALID_NUMBER_DETECTED,
    -102: SolverReturn.OUT_OF_MEMORY,
}


def ipopt_status(code: int) -> SolverReturn:
    """Map an IPOPT return code onto SolverReturn."""
    return IPOPT_STATUS.get(int(code), SolverReturn.INTERNAL_ERROR)


class IpoptSolver(NLPSolverBase):
    """IPOPT adapter.

    Attributes:
        name: "ipopt"
    """

    name = "ipopt"

    def __init__(
        self,
        max_iter: int = 1000,
        tol: float = 1e-4,
        acceptable_tol: float = 1e-1,
        print_level: int = 0,
        mu_strategy: str = 'adaptive',
        linear_solver: str = 'mumps',
        hessian_approximation: str = 'exact',
        **kwargs,
    ):
        """Initialize IPOPT adapter.

        Args:
            max_iter: Maximum iterations.
            tol: Convergence tolerance.
            acceptable_tol: Acceptable convergence tolerance.
            print_level: IPOPT output verbosity (0 is silent).
            mu_strategy: Barrier parameter update strategy.
            linear_solver: Linear solver for the KKT systems.
            hessian_approximation: 'exact' or 'limited-memory'.
            **kwargs: Additional IPOPT options.
        """
        if not CYIPOPT_AVAILABLE:
            raise ImportError(
                "cyipopt is required for IpoptSolver. "
                "Install with: pip install cyipopt"
            )

        super().__init__(
            max_iter=max_iter,
            tol=tol,
            acceptable_tol=acceptable_tol,
            print_level=print_level,
            mu_strategy=mu_strategy,
            linear_solver=linear_solver,
            hessian_approximation=hessian_approximation,
            **kwargs,
        )

    def _solve_impl(
        self,
        adapter: CallbackAdapter,
        x0: np.ndarray,
        variable_bounds: Tuple[np.ndarray, np.ndarray],
        constraint_bounds: Tuple[np.ndarray, np.ndarray],
        options: Dict[str, Any],
    ) -> SolveOutcome:
        x_l, x_u = variable_bounds
        g_l, g_u = constraint_bounds
        nlp = cyipopt.Problem(
            n=adapter.n, m=adapter.m,
            problem_obj=adapter,
            lb=x_l, ub=x_u,
            cl=g_l, cu=g_u,
        )
        options = dict(options)
        if options.get('print_level', 0) == 0:
            options.setdefault('sb', 'yes')
        for key, value in options.items():
            nlp.add_option(key, value)

        x, info = nlp.solve(x0)
        return SolveOutcome(
            status=ipopt_status(info['status']),
            x=np.asarray(x),
            z_L=info.get('mult_x_L'),
            z_U=info.get('mult_x_U'),
            g=info.get('g'),
            lambda_=info.get('mult_g'),
            obj_value=float(info.get('obj_val', np.nan)),
        )
