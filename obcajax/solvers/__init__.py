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

"""NLP solver adapters for the distance approach formulation.

Adapters are loaded conditionally based on available dependencies.

Available solvers:
- trust_constr: SciPy trust-constr (always available)
- ipopt: IPOPT through cyipopt (requires cyipopt)
"""

from typing import Optional

from obcajax.core.config import PlannerOpenSpaceConfig, SolverConfig
from obcajax.core.problem import OpenSpaceProblem
from obcajax.core.trajectory import OptimizationResult
from obcajax.nlp.formulator import DistanceApproachProblem
from obcajax.solvers.base import (
    CallbackAdapter,
    NLPSolverBase,
    SolveOutcome,
)
from obcajax.solvers.ipopt_backend import CYIPOPT_AVAILABLE, IpoptSolver, ipopt_status
from obcajax.solvers.scipy_backend import TrustConstrSolver

# Registry of available solvers
_AVAILABLE_SOLVERS = {
    'trust_constr': TrustConstrSolver,
    'trust-constr': TrustConstrSolver,
}

# Optional: IPOPT adapter
if CYIPOPT_AVAILABLE:
    _AVAILABLE_SOLVERS['ipopt'] = IpoptSolver


def get_available_solvers():
    """Return list of available NLP solver adapter names."""
    return list(_AVAILABLE_SOLVERS.keys())


def get_solver(name: str, **kwargs) -> NLPSolverBase:
    """Factory function to create an NLP solver adapter by name.

    Args:
        name: Adapter name ('ipopt', 'trust_constr').
        **kwargs: Adapter-specific options.

    Returns:
        NLPSolverBase instance.

    Raises:
        ValueError: If the adapter is not available.
    """
    name_lower = name.lower()
    if name_lower not in _AVAILABLE_SOLVERS:
        available = get_available_solvers()
        raise ValueError(
            f"NLP solver '{name}' not available. "
            f"Available solvers: {available}. "
            f"Install the required package to enable more solvers."
        )
    return _AVAILABLE_SOLVERS[name_lower](**kwargs)


def solve_distance_approach(
    problem: OpenSpaceProblem,
    config: Optional[PlannerOpenSpaceConfig] = None,
    solver_config: Optional[SolverConfig] = None,
) -> OptimizationResult:
    """Formulate and solve one open space trajectory problem.

    Args:
        problem: Problem data.
        config: Formulation configuration.
        solver_config: Adapter choice and options.

    Returns:
        OptimizationResult of the terminal point, successful or not.

    Example:
        >>> result = solve_distance_approach(
        ...     problem, solver_config=SolverConfig(solver_type='trust_constr'))
        >>> result.converged
        True
    """
    solver_config = solver_config if solver_config is not None else SolverConfig()
    nlp = DistanceApproachProblem(problem, config)
    solver = get_solver(solver_config.solver_type, **solver_config.to_dict())
    solver.solve(nlp)
    return nlp.result


__all__ = [
    # Base classes
    'NLPSolverBase',
    'CallbackAdapter',
    'SolveOutcome',
    # Adapters
    'IpoptSolver',
    'TrustConstrSolver',
    'CYIPOPT_AVAILABLE',
    'ipopt_status',
    # Factory
    'get_solver',
    'get_available_solvers',
    'solve_distance_approach',
]
