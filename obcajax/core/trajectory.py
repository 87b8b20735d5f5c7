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

"""Result containers for the distance approach formulation."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

from obcajax.core.layout import DecisionLayout
from obcajax.core.types import SolverReturn


@dataclass
class OptimizationResult:
    """Container for the terminal point of one solve.

    Populated by finalize_solution whatever the termination status, so a
    caller can inspect non-optimal terminal points too.

    Attributes:
        state: State trajectory of shape (T+1, 4).
        control: Control trajectory of shape (T, 2).
        time: Time scaling factors of shape (T,). Ones when the time is
            fixed.
        dual_l: Edge multipliers lambda of shape (T+1, E).
        dual_n: Footprint multipliers mu of shape (T+1, 4 O).
        status: Termination status reported by the solver.
        obj_value: Objective value at the terminal point.
        info: Dictionary containing solver-specific information such as:
            - 'constraint_values': Constraint residuals g(x)
            - 'constraint_multipliers': Multipliers of the constraint rows
            - 'bound_multipliers_lower': Multipliers of the lower bounds
            - 'bound_multipliers_upper': Multipliers of the upper bounds

    Example:
        >>> result = problem.result
        >>> if result.converged:
        ...     print(result.state[-1], result.total_time(ts))
    """

    state: np.ndarray
    control: np.ndarray
    time: np.ndarray
    dual_l: np.ndarray
    dual_n: np.ndarray
    status: SolverReturn = SolverReturn.UNASSIGNED
    obj_value: float = float('nan')
    info: Dict[str, Any] = field(default_factory=dict)

    @property
    def horizon(self) -> int:
        """Return the number of transitions T."""
        return self.control.shape[0]

    @property
    def converged(self) -> bool:
        """Return True if the solver reported success."""
        return self.status.succeeded

    def total_time(self, ts: float) -> float:
        """Return the trajectory duration for nominal interval ts."""
        return float(ts * np.sum(self.time))

    def as_tuple(self) -> Tuple[np.ndarray, ...]:
        """Return (state, control, time, dual_l, dual_n)."""
        return self.state, self.control, self.time, self.dual_l, self.dual_n

    @classmethod
    def from_decision_vector(
        cls,
        layout: DecisionLayout,
        x: np.ndarray,
        status: SolverReturn,
        obj_value: float = float('nan'),
        info: Optional[Dict[str, Any]] = None,
    ) -> 'OptimizationResult':
        """Split a flat decision vector into a result container.

        Args:
            layout: Layout the vector was built with.
            x: Flat decision vector of shape (num_of_variables,).
            status: Termination status.
            obj_value: Objective value at x.
            info: Extra solver information.

        Returns:
            OptimizationResult owning copies of every block.
        """
        x = np.array(x, dtype=np.float64)
        state, control, time, dual_l, dual_n = layout.split(x)
        if layout.use_fix_time:
            time = np.ones((layout.horizon,))
        return cls(
            state=np.array(state),
            control=np.array(control),
            time=np.array(time),
            dual_l=np.array(dual_l),
            dual_n=np.array(dual_n),
            status=status,
            obj_value=float(obj_value),
            info=dict(info or {}),
        )
