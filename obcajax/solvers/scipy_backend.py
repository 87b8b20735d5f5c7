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

"""SciPy trust-constr adapter.

Runs scipy.optimize.minimize(method='trust-constr') with the sparse
Jacobian and the Lagrangian Hessian from the formulation. Always
available, which makes it the reference adapter in tests.
"""

from typing import Any, Dict, Tuple

import numpy as np
from scipy import sparse
from scipy.optimize import Bounds, LinearConstraint, NonlinearConstraint, minimize

from obcajax.core.types import SolverReturn
from obcajax.solvers.base import CallbackAdapter, NLPSolverBase, SolveOutcome


TRUST_CONSTR_STATUS = {
    0: SolverReturn.MAXITER_EXCEEDED,
    1: SolverReturn.SUCCESS,
    2: SolverReturn.SUCCESS,
    3: SolverReturn.USER_REQUESTED_STOP,
}


def symmetric_from_lower(rows, cols, values, n: int) -> sparse.csr_matrix:
    """Full symmetric matrix from lower triangle triples."""
    lower = sparse.coo_matrix((values, (rows, cols)), shape=(n, n)).tocsr()
    return (lower + lower.T - sparse.diags(lower.diagonal())).tocsr()


class TrustConstrSolver(NLPSolverBase):
    """SciPy trust-constr adapter.

    Attributes:
        name: "trust_constr"
    """

    name = "trust_constr"

    def __init__(
        self,
        maxiter: int = 1000,
        gtol: float = 1e-4,
        verbose: int = 0,
        **kwargs,
    ):
        """Initialize trust-constr adapter.

        Args:
            maxiter: Maximum iterations.
            gtol: Tolerance on the Lagrangian gradient norm.
            verbose: SciPy verbosity level (0 to 3).
            **kwargs: Additional trust-constr options.
        """
        super().__init__(maxiter=maxiter, gtol=gtol, verbose=verbose, **kwargs)

    def _solve_impl(
        self,
        adapter: CallbackAdapter,
        x0: np.ndarray,
        variable_bounds: Tuple[np.ndarray, np.ndarray],
        constraint_bounds: Tuple[np.ndarray, np.ndarray],
        options: Dict[str, Any],
    ) -> SolveOutcome:
        n, m = adapter.n, adapter.m
        jac_rows, jac_cols = adapter.jacobianstructure()
        hess_rows, hess_cols = adapter.hessianstructure()
        zeros_m = np.zeros((m,))

        def jacobian(x):
            return sparse.csr_matrix(
                (adapter.jacobian(x), (jac_rows, jac_cols)), shape=(m, n))

        def constraint_hessian(x, v):
            values = adapter.hessian(x, v, 0.0)
            return symmetric_from_lower(hess_rows, hess_cols, values, n)

        def objective_hessian(x):
            values = adapter.hessian(x, zeros_m, 1.0)
            return symmetric_from_lower(hess_rows, hess_cols, values, n)

        constraints = [NonlinearConstraint(
            adapter.constraints, constraint_bounds[0], constraint_bounds[1],
            jac=jacobian, hess=constraint_hessian)]

        # Pinned variables (lb == ub) become linear equality rows
        x_l, x_u = (np.array(bound, dtype=np.float64) for bound in variable_bounds)
        fixed = np.flatnonzero(x_l == x_u)
        if len(fixed):
            selector = sparse.csr_matrix(
                (np.ones(len(fixed)), (np.arange(len(fixed)), fixed)),
                shape=(len(fixed), n))
            constraints.append(LinearConstraint(selector, x_l[fixed], x_u[fixed]))
            x_l[fixed] = -np.inf
            x_u[fixed] = np.inf

        result = minimize(
            adapter.objective,
            x0,
            method='trust-constr',
            jac=adapter.gradient,
            hess=objective_hessian,
            bounds=Bounds(x_l, x_u),
            constraints=constraints,
            options=options,
        )

        multipliers = result.v[0] if len(result.v) else None
        g = result.constr[0] if len(result.constr) else None
        return SolveOutcome(
            status=TRUST_CONSTR_STATUS.get(result.status, SolverReturn.INTERNAL_ERROR),
            x=np.asarray(result.x),
            g=np.asarray(g) if g is not None else None,
            lambda_=np.asarray(multipliers) if multipliers is not None else None,
            obj_value=float(result.fun),
        )
