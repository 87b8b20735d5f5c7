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

"""Core abstractions for the distance approach formulation.

This module provides the fundamental data structures and type definitions:

- OpenSpaceProblem: Read-only problem data (boundary states, warm start)
- ObstacleSet: Obstacle polygons in half-plane representation
- DecisionLayout: Index arithmetic of the decision and constraint vectors
- OptimizationResult: Terminal point of a solve
- Configuration dataclasses and the exception hierarchy
"""

from obcajax.core.types import (
    SolverReturn,
    IndexStyle,
    ObjectiveFn,
    ConstraintFn,
    Bounds,
    Structure,
    STATE_DIM,
    CONTROL_DIM,
    FOOTPRINT_DIM,
    OBSTACLE_ROWS,
)

from obcajax.core.exceptions import (
    ObcaError,
    FormulationError,
    EvaluationError,
    ResultsNotReadyError,
)

from obcajax.core.config import (
    VehicleParam,
    DistanceApproachConfig,
    PlannerOpenSpaceConfig,
    SolverConfig,
)

from obcajax.core.obstacles import ObstacleSet
from obcajax.core.layout import DecisionLayout
from obcajax.core.trajectory import OptimizationResult
from obcajax.core.problem import OpenSpaceProblem

__all__ = [
    # Types
    'SolverReturn',
    'IndexStyle',
    'ObjectiveFn',
    'ConstraintFn',
    'Bounds',
    'Structure',
    'STATE_DIM',
    'CONTROL_DIM',
    'FOOTPRINT_DIM',
    'OBSTACLE_ROWS',
    # Exceptions
    'ObcaError',
    'FormulationError',
    'EvaluationError',
    'ResultsNotReadyError',
    # Configuration
    'VehicleParam',
    'DistanceApproachConfig',
    'PlannerOpenSpaceConfig',
    'SolverConfig',
    # Data structures
    'ObstacleSet',
    'DecisionLayout',
    'OptimizationResult',
    'OpenSpaceProblem',
]
