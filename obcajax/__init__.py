"""obcajax: Optimization-based collision avoidance in JAX.

Formulates open space trajectory planning with the distance approach as a
sparse NLP and drives it from an external NLP solver.

Main modules:
- obcajax.core: Core abstractions (OpenSpaceProblem, ObstacleSet, configs)
- obcajax.formulation: Objective, constraints and bounds
- obcajax.autodiff: Recorded programs and sparse derivatives
- obcajax.nlp: NLP callback interface and the formulator
- obcajax.solvers: IPOPT and SciPy solver adapters
- obcajax.utils: Vehicle kinematics and warm start rollout
"""

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

import jax

# Enable 64-bit precision before any array is created
jax.config.update("jax_enable_x64", True)

from . import core
from . import utils
from . import formulation
from . import autodiff
from . import nlp
from . import solvers

from obcajax.core import (
    OpenSpaceProblem,
    ObstacleSet,
    PlannerOpenSpaceConfig,
    SolverConfig,
    OptimizationResult,
    SolverReturn,
)
from obcajax.nlp import DistanceApproachProblem
from obcajax.solvers import get_solver, solve_distance_approach

__version__ = "0.1.0"
