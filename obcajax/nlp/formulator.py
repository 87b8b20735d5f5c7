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

"""Distance approach NLP formulator.

DistanceApproachProblem turns one OpenSpaceProblem into a sparse NLP and
implements the NLPInterface callbacks on top of a single recorded
formulation:

    decision vector  [ states | controls | time | lambda | mu ]
    objective        tracking, control effort and rate, time terms
    constraints      kinematics, steering rate, obstacle separation

Callbacks never raise for per-call problems such as a size mismatch or a
missing output buffer. They log the cause and return False, and the
solver aborts the solve.
"""

from typing import Optional, Tuple

from absl import logging
import jax.numpy as jnp
import numpy as np

from obcajax.autodiff.tape import Tape
from obcajax.core.config import PlannerOpenSpaceConfig
from obcajax.core.exceptions import FormulationError, ResultsNotReadyError
from obcajax.core.problem import OpenSpaceProblem
from obcajax.core.trajectory import OptimizationResult
from obcajax.core.types import IndexStyle, SolverReturn
from obcajax.formulation.bounds import constraint_bounds, starting_point, variable_bounds
from obcajax.formulation.constraints import make_constraints
from obcajax.formulation.objective import make_objective
from obcajax.nlp.interface import NLPInfo


class DistanceApproachProblem:
    """Sparse NLP of one collision-free open space trajectory.

    Args:
        problem: Read-only problem data.
        config: Formulation configuration. Defaults to
            PlannerOpenSpaceConfig().

    Raises:
        FormulationError: If the obstacle data does not match the layout.

    Example:
        >>> nlp = DistanceApproachProblem(problem, config)
        >>> status = IpoptSolver().solve(nlp)
        >>> state, control, time, dual_l, dual_n = nlp.get_optimization_results()
    """

    def __init__(
        self,
        problem: OpenSpaceProblem,
        config: Optional[PlannerOpenSpaceConfig] = None,
    ):
        self.problem = problem
        self.config = config if config is not None else PlannerOpenSpaceConfig()
        self.layout = problem.layout(self.config.distance_approach.use_fix_time)

        obstacles = problem.obstacles
        if obstacles.A.shape[0] != self.layout.obstacles_edges_sum:
            raise FormulationError(
                f"obstacle A has {obstacles.A.shape[0]} rows, layout expects "
                f"{self.layout.obstacles_edges_sum}")
        if obstacles.b.shape[0] != self.layout.obstacles_edges_sum:
            raise FormulationError(
                f"obstacle b has {obstacles.b.shape[0]} rows, layout expects "
                f"{self.layout.obstacles_edges_sum}")

        self.objective_fn = make_objective(self.layout, problem, self.config)
        self.constraints_fn = make_constraints(self.layout, problem, self.config)
        self.tape = Tape(
            self.objective_fn,
            self.constraints_fn,
            self.layout.num_of_variables,
            self.layout.num_of_constraints,
        )
        self._result: Optional[OptimizationResult] = None

        logging.info(
            'Distance approach problem: horizon=%d, obstacles=%d, edges=%d, '
            'n=%d, m=%d',
            self.layout.horizon, self.layout.num_obstacles,
            self.layout.obstacles_edges_sum, self.num_of_variables,
            self.num_of_constraints)

    @property
    def num_of_variables(self) -> int:
        return self.layout.num_of_variables

    @property
    def num_of_constraints(self) -> int:
        return self.layout.num_of_constraints

    def _check_sizes(self, callback: str, n: Optional[int] = None,
                     m: Optional[int] = None) -> bool:
        if n is not None and n != self.num_of_variables:
            logging.error('%s: n=%d does not match num_of_variables=%d',
                          callback, n, self.num_of_variables)
            return False
        if m is not None and m != self.num_of_constraints:
            logging.error('%s: m=%d does not match num_of_constraints=%d',
                          callback, m, self.num_of_constraints)
            return False
        return True

    def _check_buffers(self, callback: str, **buffers) -> bool:
        for name, buffer in buffers.items():
            if buffer is None:
                logging.error('%s: missing output buffer %s', callback, name)
                return False
        return True

    def _check_tape(self, callback: str) -> bool:
        if not self.tape.generated:
            logging.error('%s: derivatives requested before tape generation', callback)
            return False
        return True

    def generate_tapes(self, num_probes: int = 3, seed: int = 0) -> None:
        """Record and compile the formulation. Later calls do nothing."""
        self.tape.generate(num_probes=num_probes, seed=seed)

    def get_nlp_info(self) -> NLPInfo:
        """Report sizes, generating the tapes on the first call."""
        self.generate_tapes()
        info = NLPInfo(
            n=self.num_of_variables,
            m=self.num_of_constraints,
            nnz_jac_g=self.tape.nnz_jac,
            nnz_h_lag=self.tape.nnz_hess,
            index_style=IndexStyle.C_STYLE,
        )
        logging.info('NLP info: %s', info)
        return info

    def get_bounds_info(self, n, x_l, x_u, m, g_l, g_u) -> bool:
        if not self._check_sizes('get_bounds_info', n, m):
            return False
        if not self._check_buffers('get_bounds_info', x_l=x_l, x_u=x_u, g_l=g_l, g_u=g_u):
            return False
        x_l[:], x_u[:] = variable_bounds(self.layout, self.problem, self.config)
        g_l[:], g_u[:] = constraint_bounds(self.layout, self.config)
        return True

    def get_starting_point(self, n, init_x, x, init_z, z_L, z_U, m,
                           init_lambda, lambda_) -> bool:
        """Fill x with the warm start.

        Only primal initialization is supported: requests for bound or
        constraint multipliers fail.
        """
        if not self._check_sizes('get_starting_point', n, m):
            return False
        if init_z or init_lambda:
            logging.error('get_starting_point: multiplier initialization is not supported')
            return False
        if init_x:
            if not self._check_buffers('get_starting_point', x=x):
                return False
            x[:] = starting_point(self.layout, self.problem)
            if self.layout.num_obstacles and not self.problem.has_dual_warm_start:
                logging.warning(
                    'get_starting_point: no dual warm start, the unit norm rows '
                    'have a zero gradient at the initial point')
        return True

    def eval_f(self, n, x, new_x) -> Tuple[bool, float]:
        if not self._check_sizes('eval_f', n) or not self._check_buffers('eval_f', x=x):
            return False, float('nan')
        if self.tape.generated:
            return True, self.tape.objective(x)
        return True, float(self.objective_fn(jnp.asarray(x, dtype=jnp.float64)))

    def eval_grad_f(self, n, x, new_x, grad_f) -> bool:
        if not self._check_sizes('eval_grad_f', n):
            return False
        if not self._check_buffers('eval_grad_f', x=x, grad_f=grad_f):
            return False
        if not self._check_tape('eval_grad_f'):
            return False
        grad_f[:] = self.tape.gradient(x)
        return True

    def eval_g(self, n, x, new_x, m, g) -> bool:
        if not self._check_sizes('eval_g', n, m):
            return False
        if not self._check_buffers('eval_g', x=x, g=g):
            return False
        if self.tape.generated:
            g[:] = self.tape.constraints(x)
        else:
            g[:] = np.asarray(self.constraints_fn(jnp.asarray(x, dtype=jnp.float64)))
        return True

    def eval_jac_g(self, n, x, new_x, m, nele_jac, i_row, j_col, values) -> bool:
        """Constraint Jacobian.

        Structure mode (values is None) fills i_row and j_col. Value mode
        fills values at x in the same order.
        """
        if not self._check_sizes('eval_jac_g', n, m) or not self._check_tape('eval_jac_g'):
            return False
        if nele_jac != self.tape.nnz_jac:
            logging.error('eval_jac_g: nele_jac=%d does not match nnz=%d',
                          nele_jac, self.tape.nnz_jac)
            return False
        if values is None:
            if not self._check_buffers('eval_jac_g', i_row=i_row, j_col=j_col):
                return False
            i_row[:], j_col[:] = self.tape.jacobian_structure()
            return True
        if not self._check_buffers('eval_jac_g', x=x):
            return False
        values[:] = self.tape.jacobian_values(x)
        return True

    def eval_h(self, n, x, new_x, obj_factor, m, lambda_, new_lambda,
               nele_hess, i_row, j_col, values) -> bool:
        """Lower triangle of the Hessian of obj_factor f + lambda' g.

        Structure mode (values is None) fills i_row and j_col. Value mode
        fills values in the same order.
        """
        if not self._check_sizes('eval_h', n, m) or not self._check_tape('eval_h'):
            return False
        if nele_hess != self.tape.nnz_hess:
            logging.error('eval_h: nele_hess=%d does not match nnz=%d',
                          nele_hess, self.tape.nnz_hess)
            return False
        if values is None:
            if not self._check_buffers('eval_h', i_row=i_row, j_col=j_col):
                return False
            i_row[:], j_col[:] = self.tape.hessian_structure()
            return True
        if not self._check_buffers('eval_h', x=x, lambda_=lambda_):
            return False
        values[:] = self.tape.hessian_values(x, obj_factor, lambda_)
        return True

    def finalize_solution(self, status, n, x, z_L, z_U, m, g, lambda_, obj_value) -> None:
        """Capture the terminal point whatever the status."""
        status = SolverReturn(status)
        info = {}
        for key, value in (
            ('constraint_values', g),
            ('constraint_multipliers', lambda_),
            ('bound_multipliers_lower', z_L),
            ('bound_multipliers_upper', z_U),
        ):
            if value is not None:
                info[key] = np.array(value, dtype=np.float64)
        self._result = OptimizationResult.from_decision_vector(
            self.layout, x, status, obj_value, info)
        if status.succeeded:
            logging.info('Solve finished: %s, objective %g, duration %.3f s',
                         status.name, obj_value,
                         self._result.total_time(self.config.delta_t))
        else:
            logging.warning('Solve finished without success: %s, objective %g',
                            status.name, obj_value)

    @property
    def result(self) -> OptimizationResult:
        if self._result is None:
            raise ResultsNotReadyError('finalize_solution has not been called')
        return self._result

    def get_optimization_results(self):
        """Return (state, control, time, dual_l, dual_n) of the terminal point.

        Raises:
            ResultsNotReadyError: If finalize_solution has not run.
        """
        return self.result.as_tuple()
