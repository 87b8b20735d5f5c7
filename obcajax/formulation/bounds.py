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

"""Variable bounds, constraint row bounds and the starting point."""

import numpy as np

from obcajax.core.config import PlannerOpenSpaceConfig
from obcajax.core.layout import DecisionLayout
from obcajax.core.problem import OpenSpaceProblem
from obcajax.core.types import Bounds


def variable_bounds(
    layout: DecisionLayout,
    problem: OpenSpaceProblem,
    config: PlannerOpenSpaceConfig,
) -> Bounds:
    """Box bounds of every decision variable.

    The first state sample is pinned to x0 and the last to xf. Heading is
    free. Unbounded entries use +/- inf.

    Args:
        layout: Decision vector layout.
        problem: Problem data.
        config: Formulation configuration.

    Returns:
        (x_l, x_u), each of shape (num_of_variables,).
    """
    da = config.distance_approach
    vehicle = config.vehicle
    T = layout.horizon
    x_min, x_max, y_min, y_max = problem.xy_bounds

    state_l = np.tile([x_min, y_min, -np.inf, -da.max_speed_reverse], (T + 1, 1))
    state_u = np.tile([x_max, y_max, np.inf, da.max_speed_forward], (T + 1, 1))
    state_l[0] = state_u[0] = problem.x0
    state_l[T] = state_u[T] = problem.xf

    control_l = np.tile([-vehicle.max_steer_angle, -da.max_acceleration_reverse], (T, 1))
    control_u = np.tile([vehicle.max_steer_angle, da.max_acceleration_forward], (T, 1))

    time_l = np.full((layout.time_size,), da.min_time_sample_scaling)
    time_u = np.full((layout.time_size,), da.max_time_sample_scaling)

    sizes = layout.block_sizes()
    x_l = np.concatenate([
        state_l.reshape(-1),
        control_l.reshape(-1),
        time_l,
        np.zeros((sizes['dual_l'],)),
        np.zeros((sizes['dual_n'],)),
    ])
    x_u = np.concatenate([
        state_u.reshape(-1),
        control_u.reshape(-1),
        time_u,
        np.full((sizes['dual_l'],), da.max_lambda),
        np.full((sizes['dual_n'],), da.max_miu),
    ])
    return x_l, x_u


def constraint_bounds(
    layout: DecisionLayout,
    config: PlannerOpenSpaceConfig,
) -> Bounds:
    """Lower and upper bounds of every constraint row.

    Args:
        layout: Decision vector layout.
        config: Formulation configuration.

    Returns:
        (g_l, g_u), each of shape (num_of_constraints,).
    """
    da = config.distance_approach
    T = layout.horizon

    kinematic = np.zeros((layout.steer_rate_start_row - layout.kinematic_start_row,))

    if da.enable_steer_rate_constraint:
        rate_limit = config.vehicle.max_steer_angle_rate
    else:
        rate_limit = np.inf
    rate_l = np.full((T,), -rate_limit)
    rate_u = np.full((T,), rate_limit)

    # [unit norm, direction x, direction y, safety margin] per (sample, obstacle)
    safety_u = da.max_safety_distance if da.enable_safety_distance_cap else np.inf
    row_l = np.array([1.0, 0.0, 0.0, da.min_safety_distance])
    row_u = np.array([1.0, 0.0, 0.0, safety_u])
    pairs = (T + 1) * layout.num_obstacles
    obstacle_l = np.tile(row_l, pairs)
    obstacle_u = np.tile(row_u, pairs)

    g_l = np.concatenate([kinematic, rate_l, obstacle_l])
    g_u = np.concatenate([kinematic, rate_u, obstacle_u])
    return g_l, g_u


def starting_point(layout: DecisionLayout, problem: OpenSpaceProblem) -> np.ndarray:
    """Initial decision vector from the warm starts.

    Missing time scaling defaults to ones and missing dual warm starts to
    zeros. With zero lambda the unit norm rows ||A' lambda||^2 = 1 are
    violated and have a zero gradient at the returned point, so the
    solver starts from a point where the constraint Jacobian is rank
    deficient in those rows.
    """
    time = None if layout.use_fix_time else problem.timeWS
    return layout.pack(
        problem.xWS,
        problem.uWS,
        time=time,
        dual_l=problem.l_warm_up,
        dual_n=problem.n_warm_up,
    )
