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

"""Constraint residuals of the distance approach formulation.

Rows, in order:

1. Kinematics, 4 per transition:
       s_{k+1} - bicycle_step(s_k, u_k, ts t_k) = 0
2. Steering rate, 1 per transition:
       (steer_k - steer_{k-1}) / (ts t_k)
3. Obstacles, 4 per (state sample k, obstacle o), with a = A_o' lambda_ko
   the world-frame separating direction and R(phi_k) the vehicle rotation:
       ||a||^2                                   unit norm, = 1
       G' mu_ko + R(phi_k)' a                    2 rows, = 0
       -g' mu_ko + a' c_k - b_o' lambda_ko       safety margin, >= d_min
   where G = [I; -I] and g are the footprint half-planes in the vehicle
   frame and c_k the footprint center in the world frame.

Whenever these hold with lambda, mu >= 0 the signed distance between the
footprint and obstacle o is at least the margin row's value.
"""

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from obcajax.core.config import PlannerOpenSpaceConfig
from obcajax.core.layout import DecisionLayout
from obcajax.core.problem import OpenSpaceProblem
from obcajax.core.types import FOOTPRINT_DIM, ConstraintFn
from obcajax.formulation.objective import control_rates
from obcajax.utils.integrators import bicycle_step


def make_constraints(
    layout: DecisionLayout,
    problem: OpenSpaceProblem,
    config: PlannerOpenSpaceConfig,
) -> ConstraintFn:
    """Build the residual function x -> g(x) for one problem.

    Args:
        layout: Decision vector layout.
        problem: Problem data (obstacles, stitching control).
        config: Formulation configuration.

    Returns:
        Function of the flat decision vector returning
        (num_of_constraints,) residuals.
    """
    vehicle = config.vehicle
    ts = config.delta_t
    wheelbase = vehicle.wheelbase
    offset = vehicle.rear_axle_offset
    g_foot = jnp.asarray(vehicle.footprint_g)
    last_u = jnp.asarray(problem.last_time_u)

    obstacles = problem.obstacles
    num_obstacles = obstacles.num_obstacles
    A = jnp.asarray(obstacles.A)
    b = jnp.asarray(obstacles.b)
    # membership[o, e] = 1 when edge e belongs to obstacle o
    membership = jnp.asarray(
        (obstacles.segment_ids[None, :] == np.arange(num_obstacles)[:, None])
        .astype(np.float64))

    step = jax.vmap(bicycle_step, in_axes=(0, 0, 0, None))

    def kinematic_residuals(states, controls, time):
        predicted = step(states[:-1], controls, ts * time, wheelbase)
        return (states[1:] - predicted).reshape(-1)

    def steer_rate_residuals(controls, time):
        return control_rates(controls, last_u, time, ts)[:, 0]

    def obstacle_residuals(states, dual_l, dual_n):
        samples = states.shape[0]
        mu = dual_n.reshape(samples, num_obstacles, FOOTPRINT_DIM)

        # a[k, o] = A_o' lambda_ko and b_o' lambda_ko
        direction = jnp.einsum('oe,ke,ed->kod', membership, dual_l, A)
        offsets = jnp.einsum('oe,ke,e->ko', membership, dual_l, b)
        ax, ay = direction[..., 0], direction[..., 1]

        heading = states[:, 2:3]
        cos, sin = jnp.cos(heading), jnp.sin(heading)
        center_x = states[:, 0:1] + cos * offset
        center_y = states[:, 1:2] + sin * offset

        unit_norm = ax ** 2 + ay ** 2
        direction_x = mu[..., 0] - mu[..., 2] + cos * ax + sin * ay
        direction_y = mu[..., 1] - mu[..., 3] - sin * ax + cos * ay
        margin = -(mu @ g_foot) + center_x * ax + center_y * ay - offsets

        rows = jnp.stack([unit_norm, direction_x, direction_y, margin], axis=-1)
        return rows.reshape(-1)

    def constraints(x: Array) -> Array:
        states, controls, _, dual_l, dual_n = layout.split(x)
        time = layout.time_scale(x)
        residuals = [
            kinematic_residuals(states, controls, time),
            steer_rate_residuals(controls, time),
        ]
        if num_obstacles > 0:
            residuals.append(obstacle_residuals(states, dual_l, dual_n))
        return jnp.concatenate(residuals)

    return constraints


def obstacle_rows(layout: DecisionLayout, k: int, o: int) -> slice:
    """Rows [unit norm, direction x, direction y, margin] of (k, o)."""
    start = layout.obstacle_start_row + 4 * (k * layout.num_obstacles + o)
    return slice(start, start + 4)
