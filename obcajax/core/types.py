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

"""Type definitions for the distance approach formulation."""

from __future__ import annotations

from enum import Enum, IntEnum, auto
from typing import Protocol, Tuple

from jax import Array

# Dimensions of one sample of the trajectory.
STATE_DIM = 4     # (x, y, heading, velocity)
CONTROL_DIM = 2   # (steering angle, acceleration)
# One dual multiplier per half-plane of the rectangular vehicle footprint.
FOOTPRINT_DIM = 4
# Obstacle rows per (sample, obstacle): unit norm, two direction rows, margin.
OBSTACLE_ROWS = 4


class SolverReturn(Enum):
    """Termination status handed to finalize_solution."""
    SUCCESS = auto()                      # Converged to a local optimum
    STOP_AT_ACCEPTABLE_POINT = auto()     # Converged to acceptable level
    MAXITER_EXCEEDED = auto()             # Reached maximum iterations
    CPUTIME_EXCEEDED = auto()             # Reached maximum CPU time
    STOP_AT_TINY_STEP = auto()            # Search direction became too small
    LOCAL_INFEASIBILITY = auto()          # Converged to an infeasible point
    DIVERGING_ITERATES = auto()           # Iterates diverged
    USER_REQUESTED_STOP = auto()          # Stopped by a callback
    FEASIBLE_POINT_FOUND = auto()         # Feasibility problem solved
    RESTORATION_FAILURE = auto()          # Restoration phase failed
    ERROR_IN_STEP_COMPUTATION = auto()    # Linear algebra failure
    INVALID_NUMBER_DETECTED = auto()      # NaN or Inf returned by a callback
    TOO_FEW_DEGREES_OF_FREEDOM = auto()   # More equalities than variables
    INVALID_PROBLEM_DEFINITION = auto()   # Inconsistent problem data
    INVALID_OPTION = auto()               # Unknown or bad solver option
    OUT_OF_MEMORY = auto()                # Allocation failure
    INTERNAL_ERROR = auto()               # Any other failure
    UNASSIGNED = auto()                   # Solver never reported a status

    @property
    def succeeded(self) -> bool:
        return self in (SolverReturn.SUCCESS,
                        SolverReturn.STOP_AT_ACCEPTABLE_POINT)


class IndexStyle(IntEnum):
    """Index base of the sparse derivative triples."""
    C_STYLE = 0
    FORTRAN_STYLE = 1


class ObjectiveFn(Protocol):
    """Protocol for the traced objective.

    Signature: objective(x) -> scalar

    Args:
        x: Flat decision vector (n,).

    Returns:
        cost: Scalar objective value.
    """
    def __call__(self, x: Array) -> Array:
        ...


class ConstraintFn(Protocol):
    """Protocol for the traced constraint residual.

    Signature: constraints(x) -> g

    Args:
        x: Flat decision vector (n,).

    Returns:
        g: Constraint residual vector (m,).
    """
    def __call__(self, x: Array) -> Array:
        ...


# Bounds type
Bounds = Tuple[Array, Array]  # (lower, upper)

# Sparsity structure type
Structure = Tuple[Array, Array]  # (rows, cols)
