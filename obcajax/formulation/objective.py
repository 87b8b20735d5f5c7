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

"""Objective of the distance approach formulation.

The objective is written once against jax.numpy. The same function is
evaluated on plain arrays and traced by the differentiation driver, so
values and derivatives always come from one computation.

    f(x) = sum_k  (s_k - s_f)' W_s (s_k - s_f)              tracking
         + sum_k  u_k' W_u u_k                              control effort
         + r_0' W_stitch r_0 + sum_{k>0} r_k' W_rate r_k     control rate
         + w_1 sum_k (t_k - 1)^2 + w_2 sum_k (t_k - t_{k-1})^2   time

with r_k = (u_k - u_{k-1}) / (ts t_k) and u_{-1} the previous cycle's
control.
"""

import jax.numpy as jnp
from jax import Array

from obcajax.core.config import PlannerOpenSpaceConfig
from obcajax.core.layout import DecisionLayout
from obcajax.core.problem import OpenSpaceProblem
from obcajax.core.types import ObjectiveFn


def control_rates(controls: Array, last_u: Array, time: Array, ts: float) -> Array:
    """Rates (u_k - u_{k-1}) / (ts t_k) of a control sequence.

    Args:
        controls: Control trajectory of shape (T, 2).
        last_u: Control preceding controls[0], shape (2,).
        time: Time scaling factors of shape (T,).
        ts: Nominal sample interval.

    Returns:
        Rates of shape (T, 2). Row 0 is the stitching rate.
    """
    previous = jnp.vstack((last_u[None, :], controls[:-1]))
    return (controls - previous) / (ts * time)[:, None]


def make_objective(
    layout: DecisionLayout,
    problem: OpenSpaceProblem,
    config: PlannerOpenSpaceConfig,
) -> ObjectiveFn:
    """Build the objective x -> f(x) for one problem.

    Args:
        layout: Decision vector layout.
        problem: Problem data (end state, stitching control).
        config: Formulation configuration.

    Returns:
        Scalar function of the flat decision vector.
    """
    da = config.distance_approach
    ts = config.delta_t
    xf = jnp.asarray(problem.xf)
    last_u = jnp.asarray(problem.last_time_u)

    w_state = jnp.array([da.weight_x, da.weight_y, da.weight_phi, da.weight_v])
    w_input = jnp.array([da.weight_steer, da.weight_a])
    w_rate = jnp.array([da.weight_steer_rate, da.weight_a_rate])
    w_stitch = jnp.array([da.weight_steer_stitching, da.weight_a_stitching])

    def objective(x: Array) -> Array:
        states, controls, _, _, _ = layout.split(x)
        time = layout.time_scale(x)

        tracking = jnp.sum(w_state * (states - xf) ** 2)
        effort = jnp.sum(w_input * controls ** 2)

        rates = control_rates(controls, last_u, time, ts)
        stitching = jnp.sum(w_stitch * rates[0] ** 2)
        smoothness = jnp.sum(w_rate * rates[1:] ** 2)

        cost = tracking + effort + stitching + smoothness
        if not layout.use_fix_time:
            cost = cost + da.weight_first_order_time * jnp.sum((time - 1.0) ** 2)
            cost = cost + da.weight_second_order_time * jnp.sum(jnp.diff(time) ** 2)
        return cost

    return objective
