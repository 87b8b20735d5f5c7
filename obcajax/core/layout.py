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

"""Decision vector and constraint vector layout.

The flat decision vector is partitioned into contiguous blocks:

    [ states | controls | time scaling | lambda | mu ]

    states:       (T+1) samples of (x, y, heading, velocity)
    controls:     T samples of (steering angle, acceleration)
    time scaling: T positive factors, absent when the time is fixed
    lambda:       (T+1) samples of one multiplier per obstacle edge
    mu:           (T+1) samples of 4 multipliers per obstacle

The constraint vector is partitioned likewise:

    [ kinematics (4T) | steering rate (T) | obstacles (4 O (T+1)) ]
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import jax.numpy as jnp
import numpy as np
from jax import Array

from obcajax.core.exceptions import FormulationError
from obcajax.core.types import (
    CONTROL_DIM,
    FOOTPRINT_DIM,
    OBSTACLE_ROWS,
    STATE_DIM,
)


@dataclass(frozen=True)
class DecisionLayout:
    """Index arithmetic for the decision and constraint vectors.

    All sizes are fixed at construction from the horizon and the obstacle
    edge counts and never change afterwards.

    Attributes:
        horizon: Number of transitions T. The trajectory has T+1 states.
        obstacles_edges_num: Edge count of every obstacle.
        obstacles_edges_sum: Total edge count. Checked against the sum of
            obstacles_edges_num when given.
        use_fix_time: Whether the time scaling block is removed.

    Example:
        >>> layout = DecisionLayout(horizon=2, obstacles_edges_num=(4,))
        >>> layout.num_of_variables
        42
        >>> layout.num_of_constraints
        22
    """

    horizon: int
    obstacles_edges_num: Tuple[int, ...] = ()
    obstacles_edges_sum: Optional[int] = None
    use_fix_time: bool = False

    # Derived offsets (computed in __post_init__)
    state_start_index: int = field(init=False)
    control_start_index: int = field(init=False)
    time_start_index: int = field(init=False)
    l_start_index: int = field(init=False)
    n_start_index: int = field(init=False)
    num_of_variables: int = field(init=False)
    kinematic_start_row: int = field(init=False)
    steer_rate_start_row: int = field(init=False)
    obstacle_start_row: int = field(init=False)
    num_of_constraints: int = field(init=False)

    def __post_init__(self):
        """Validate dimensions and compute block offsets."""
        horizon = int(self.horizon)
        if horizon < 1:
            raise FormulationError(f"horizon must be >= 1, got {self.horizon}")
        edges_num = tuple(int(e) for e in np.asarray(self.obstacles_edges_num).reshape(-1))
        for o, edges in enumerate(edges_num):
            if edges <= 0:
                raise FormulationError(
                    f"obstacle {o} must have a positive edge count, got {edges}")
        edges_sum = sum(edges_num)
        if self.obstacles_edges_sum is not None and int(self.obstacles_edges_sum) != edges_sum:
            raise FormulationError(
                f"obstacles_edges_sum ({self.obstacles_edges_sum}) does not match "
                f"the sum of obstacle edge counts ({edges_sum})"
            )

        set_ = lambda name, value: object.__setattr__(self, name, value)
        set_('horizon', horizon)
        set_('obstacles_edges_num', edges_num)
        set_('obstacles_edges_sum', edges_sum)
        set_('use_fix_time', bool(self.use_fix_time))

        samples = horizon + 1
        set_('state_start_index', 0)
        set_('control_start_index', STATE_DIM * samples)
        set_('time_start_index', self.control_start_index + CONTROL_DIM * horizon)
        set_('l_start_index', self.time_start_index + self.time_size)
        set_('n_start_index', self.l_start_index + edges_sum * samples)
        set_('num_of_variables',
             self.n_start_index + FOOTPRINT_DIM * self.num_obstacles * samples)

        set_('kinematic_start_row', 0)
        set_('steer_rate_start_row', STATE_DIM * horizon)
        set_('obstacle_start_row', self.steer_rate_start_row + horizon)
        set_('num_of_constraints',
             self.obstacle_start_row + OBSTACLE_ROWS * self.num_obstacles * samples)

    @property
    def num_obstacles(self) -> int:
        return len(self.obstacles_edges_num)

    @property
    def time_size(self) -> int:
        """Size of the time scaling block (0 when the time is fixed)."""
        return 0 if self.use_fix_time else self.horizon

    def block_sizes(self) -> Dict[str, int]:
        """Return the size of every decision vector block."""
        samples = self.horizon + 1
        return {
            'state': STATE_DIM * samples,
            'control': CONTROL_DIM * self.horizon,
            'time': self.time_size,
            'dual_l': self.obstacles_edges_sum * samples,
            'dual_n': FOOTPRINT_DIM * self.num_obstacles * samples,
        }

    def split(self, x: Array) -> Tuple[Array, Array, Array, Array, Array]:
        """Split a flat decision vector into its blocks.

        Works on numpy arrays and on traced JAX arrays alike.

        Args:
            x: Flat decision vector of shape (num_of_variables,).

        Returns:
            states: (T+1, 4).
            controls: (T, 2).
            time: (T,) time scaling factors, or (0,) when the time is fixed.
            dual_l: (T+1, E).
            dual_n: (T+1, 4 O).
        """
        samples = self.horizon + 1
        states = x[self.state_start_index:self.control_start_index].reshape(
            samples, STATE_DIM)
        controls = x[self.control_start_index:self.time_start_index].reshape(
            self.horizon, CONTROL_DIM)
        time = x[self.time_start_index:self.l_start_index]
        dual_l = x[self.l_start_index:self.n_start_index].reshape(
            samples, self.obstacles_edges_sum)
        dual_n = x[self.n_start_index:self.num_of_variables].reshape(
            samples, FOOTPRINT_DIM * self.num_obstacles)
        return states, controls, time, dual_l, dual_n

    def time_scale(self, x: Array) -> Array:
        """Return the (T,) time scaling factors, constant 1 when fixed."""
        if self.use_fix_time:
            return jnp.ones((self.horizon,), dtype=x.dtype)
        return x[self.time_start_index:self.l_start_index]

    def pack(
        self,
        states,
        controls,
        time=None,
        dual_l=None,
        dual_n=None,
    ) -> np.ndarray:
        """Assemble a flat decision vector from per-block arrays.

        Missing time factors default to ones, missing duals to zeros.

        Raises:
            FormulationError: If any block has the wrong shape.
        """
        samples = self.horizon + 1
        if time is None:
            time = np.ones((self.time_size,))
        elif self.use_fix_time:
            time = np.zeros((0,))
        if dual_l is None:
            dual_l = np.zeros((samples, self.obstacles_edges_sum))
        if dual_n is None:
            dual_n = np.zeros((samples, FOOTPRINT_DIM * self.num_obstacles))

        expected = {
            'states': ((samples, STATE_DIM), states),
            'controls': ((self.horizon, CONTROL_DIM), controls),
            'time': ((self.time_size,), time),
            'dual_l': ((samples, self.obstacles_edges_sum), dual_l),
            'dual_n': ((samples, FOOTPRINT_DIM * self.num_obstacles), dual_n),
        }
        blocks = []
        for name, (shape, value) in expected.items():
            value = np.asarray(value, dtype=np.float64)
            if value.shape != shape:
                raise FormulationError(
                    f"{name} must have shape {shape}, got {value.shape}")
            blocks.append(value.reshape(-1))
        return np.concatenate(blocks)

    def state_index(self, k: int) -> int:
        """Offset of state sample k."""
        return self.state_start_index + STATE_DIM * k

    def control_index(self, k: int) -> int:
        """Offset of control sample k."""
        return self.control_start_index + CONTROL_DIM * k
