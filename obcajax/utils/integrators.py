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

"""Discretized kinematic bicycle model.

State is (x, y, heading, velocity) of the rear axle center, control is
(steering angle, acceleration). The same functions are traced for the
constraint residuals and evaluated directly for warm-start rollouts.
"""

from typing import Optional

import jax.numpy as jnp
from jax import Array, lax


def kinematic_bicycle(x: Array, u: Array, wheelbase: float) -> Array:
    """Continuous-time kinematic bicycle dynamics dx/dt.

    Args:
        x: State (x, y, heading, velocity).
        u: Control (steering angle, acceleration).
        wheelbase: Distance between the axles.

    Returns:
        State derivative of shape (4,).
    """
    heading, v = x[2], x[3]
    steer, a = u[0], u[1]
    return jnp.stack([
        v * jnp.cos(heading),
        v * jnp.sin(heading),
        v * jnp.tan(steer) / wheelbase,
        a,
    ])


def bicycle_step(x: Array, u: Array, h: Array, wheelbase: float) -> Array:
    """Propagate the bicycle model over one (scaled) sample interval.

    Position and heading advance with the mid-interval velocity, and the
    position update uses the mid-interval heading:

        v_m     = v + h a / 2
        phi_m   = phi + h v tan(steer) / (2 L)
        x'      = x + h v_m cos(phi_m)
        y'      = y + h v_m sin(phi_m)
        phi'    = phi + h v_m tan(steer) / L
        v'      = v + h a

    Args:
        x: State (x, y, heading, velocity).
        u: Control (steering angle, acceleration).
        h: Interval length, the nominal interval times the time scaling.
        wheelbase: Distance between the axles.

    Returns:
        Next state of shape (4,).
    """
    heading, v = x[2], x[3]
    steer, a = u[0], u[1]
    v_mid = v + 0.5 * h * a
    heading_mid = heading + 0.5 * h * v * jnp.tan(steer) / wheelbase
    return jnp.stack([
        x[0] + h * v_mid * jnp.cos(heading_mid),
        x[1] + h * v_mid * jnp.sin(heading_mid),
        heading + h * v_mid * jnp.tan(steer) / wheelbase,
        v + h * a,
    ])


def rollout(
    x0: Array,
    U: Array,
    ts: float,
    wheelbase: float,
    time_scale: Optional[Array] = None,
) -> Array:
    """Roll out the bicycle model: x[k+1] = bicycle_step(x[k], U[k], ts t[k]).

    Args:
        x0: Initial state of shape (4,).
        U: Control sequence of shape (T, 2).
        ts: Nominal sample interval.
        wheelbase: Distance between the axles.
        time_scale: Time scaling factors of shape (T,). Defaults to ones.

    Returns:
        X: State trajectory of shape (T+1, 4).
    """
    x0 = jnp.asarray(x0)
    U = jnp.asarray(U)
    if time_scale is None:
        time_scale = jnp.ones((U.shape[0],), dtype=U.dtype)

    def step_for_scan(x, ut):
        u, t = ut
        x_next = bicycle_step(x, u, ts * t, wheelbase)
        return x_next, x_next

    _, X_rest = lax.scan(step_for_scan, x0, (U, jnp.asarray(time_scale)))
    return jnp.vstack((x0, X_rest))
