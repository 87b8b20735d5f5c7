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

"""Open space trajectory problem data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from obcajax.core.exceptions import FormulationError
from obcajax.core.layout import DecisionLayout
from obcajax.core.obstacles import ObstacleSet
from obcajax.core.types import CONTROL_DIM, FOOTPRINT_DIM, STATE_DIM
from obcajax.utils.integrators import rollout


def _frozen_array(name: str, value, shape) -> np.ndarray:
    """Copy value into a read-only float64 array of the given shape."""
    array = np.array(value, dtype=np.float64)
    if array.shape != shape:
        raise FormulationError(f"{name} must have shape {shape}, got {array.shape}")
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class OpenSpaceProblem:
    """Read-only inputs of one trajectory optimization.

    All arrays follow the (samples, dim) convention: row k holds sample k.

        min  tracking + control effort + control rate + time terms
        s.t. x[k+1] = bicycle_step(x[k], u[k], ts * t[k])
             vehicle footprint at x[k] keeps min_safety_distance to every
             obstacle, certified by dual multipliers (lambda, mu)
             x[0] = x0, x[T] = xf, box bounds on every block

    Attributes:
        horizon: Number of transitions T.
        x0: Start state (x, y, heading, velocity), shape (4,).
        xf: End state, shape (4,).
        last_time_u: Control applied in the previous planning cycle,
            shape (2,). Used by the stitching terms.
        xy_bounds: (x_min, x_max, y_min, y_max) of the drivable region.
        obstacles: Obstacle half-planes.
        xWS: State warm start, shape (T+1, 4).
        uWS: Control warm start, shape (T, 2).
        timeWS: Time scaling warm start, shape (T,). Defaults to ones.
        l_warm_up: lambda warm start, shape (T+1, E). Defaults to zeros.
        n_warm_up: mu warm start, shape (T+1, 4 O). Defaults to zeros.
    """

    horizon: int
    x0: np.ndarray
    xf: np.ndarray
    xy_bounds: Sequence[float]
    xWS: np.ndarray
    uWS: np.ndarray
    obstacles: ObstacleSet = None
    last_time_u: Optional[np.ndarray] = None
    timeWS: Optional[np.ndarray] = None
    l_warm_up: Optional[np.ndarray] = None
    n_warm_up: Optional[np.ndarray] = None

    def __post_init__(self):
        """Validate shapes and freeze every array."""
        if int(self.horizon) < 1:
            raise FormulationError(f"horizon must be >= 1, got {self.horizon}")
        T = int(self.horizon)
        obstacles = self.obstacles if self.obstacles is not None else ObstacleSet.empty()
        if not isinstance(obstacles, ObstacleSet):
            raise FormulationError(
                f"obstacles must be an ObstacleSet, got {type(obstacles).__name__}")
        E = obstacles.edges_sum
        O = obstacles.num_obstacles

        set_ = lambda name, value: object.__setattr__(self, name, value)
        set_('horizon', T)
        set_('obstacles', obstacles)
        set_('x0', _frozen_array('x0', self.x0, (STATE_DIM,)))
        set_('xf', _frozen_array('xf', self.xf, (STATE_DIM,)))
        last_time_u = self.last_time_u
        if last_time_u is None:
            last_time_u = np.zeros((CONTROL_DIM,))
        set_('last_time_u', _frozen_array('last_time_u', last_time_u, (CONTROL_DIM,)))

        xy_bounds = _frozen_array('xy_bounds', self.xy_bounds, (4,))
        if xy_bounds[0] > xy_bounds[1] or xy_bounds[2] > xy_bounds[3]:
            raise FormulationError(
                f"xy_bounds must be (x_min, x_max, y_min, y_max), got {xy_bounds.tolist()}")
        set_('xy_bounds', xy_bounds)

        set_('xWS', _frozen_array('xWS', self.xWS, (T + 1, STATE_DIM)))
        set_('uWS', _frozen_array('uWS', self.uWS, (T, CONTROL_DIM)))

        timeWS = self.timeWS if self.timeWS is not None else np.ones((T,))
        timeWS = _frozen_array('timeWS', timeWS, (T,))
        if np.any(timeWS <= 0.0):
            raise FormulationError("timeWS must be positive")
        set_('timeWS', timeWS)

        if self.l_warm_up is not None:
            set_('l_warm_up', _frozen_array('l_warm_up', self.l_warm_up, (T + 1, E)))
        if self.n_warm_up is not None:
            set_('n_warm_up', _frozen_array(
                'n_warm_up', self.n_warm_up, (T + 1, FOOTPRINT_DIM * O)))

    @property
    def has_dual_warm_start(self) -> bool:
        return self.l_warm_up is not None and self.n_warm_up is not None

    def layout(self, use_fix_time: bool = False) -> DecisionLayout:
        """Return the decision vector layout of this problem."""
        return DecisionLayout(
            horizon=self.horizon,
            obstacles_edges_num=tuple(self.obstacles.edges_num.tolist()),
            obstacles_edges_sum=self.obstacles.edges_sum,
            use_fix_time=use_fix_time,
        )

    @classmethod
    def from_controls(
        cls,
        x0: np.ndarray,
        xf: np.ndarray,
        uWS: np.ndarray,
        ts: float,
        wheelbase: float,
        xy_bounds: Sequence[float],
        obstacles: Optional[ObstacleSet] = None,
        **kwargs,
    ) -> 'OpenSpaceProblem':
        """Create a problem whose state warm start is a rollout of uWS.

        The warm start then satisfies the kinematic constraints exactly.

        Args:
            x0: Start state of shape (4,).
            xf: End state of shape (4,).
            uWS: Control warm start of shape (T, 2).
            ts: Nominal sample interval.
            wheelbase: Distance between the axles.
            xy_bounds: (x_min, x_max, y_min, y_max).
            obstacles: Obstacle half-planes.
            **kwargs: Additional arguments passed to OpenSpaceProblem.

        Returns:
            OpenSpaceProblem instance.
        """
        uWS = np.asarray(uWS, dtype=np.float64)
        if uWS.ndim != 2 or uWS.shape[1] != CONTROL_DIM:
            raise FormulationError(f"uWS must have shape (T, 2), got {uWS.shape}")
        xWS = np.asarray(rollout(x0, uWS, ts, wheelbase, kwargs.get('timeWS')))
        return cls(
            horizon=uWS.shape[0],
            x0=x0,
            xf=xf,
            xy_bounds=xy_bounds,
            xWS=xWS,
            uWS=uWS,
            obstacles=obstacles,
            **kwargs,
        )
