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

"""Configuration classes for the distance approach formulator.

Provides nested, immutable dataclass configuration for the vehicle, the
formulation and the NLP solver. A formulator captures one of these values
at construction; there is no process-wide configuration.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Tuple

from obcajax.core.exceptions import FormulationError


@dataclass(frozen=True)
class VehicleParam:
    """Vehicle footprint and steering limits.

    Edge distances are measured from the rear axle center, which is the
    reference point of the state (x, y).

    Attributes:
        front_edge_to_center: Rear axle to front bumper.
        back_edge_to_center: Rear axle to rear bumper.
        left_edge_to_center: Rear axle to left side.
        right_edge_to_center: Rear axle to right side.
        wheelbase: Distance between front and rear axles.
        max_steer_angle: Maximum road-wheel steering angle (rad).
        max_steer_angle_rate: Maximum road-wheel steering rate (rad/s).
    """
    front_edge_to_center: float = 3.89
    back_edge_to_center: float = 1.043
    left_edge_to_center: float = 1.055
    right_edge_to_center: float = 1.055
    wheelbase: float = 2.8448
    max_steer_angle: float = 0.5126904677
    max_steer_angle_rate: float = 0.4363323130

    def __post_init__(self):
        for name in ('front_edge_to_center', 'back_edge_to_center',
                     'left_edge_to_center', 'right_edge_to_center',
                     'wheelbase', 'max_steer_angle', 'max_steer_angle_rate'):
            value = getattr(self, name)
            if not value > 0.0:
                raise FormulationError(f"{name} must be > 0, got {value}")

    @property
    def length(self) -> float:
        return self.front_edge_to_center + self.back_edge_to_center

    @property
    def width(self) -> float:
        return self.left_edge_to_center + self.right_edge_to_center

    @property
    def rear_axle_offset(self) -> float:
        """Signed distance from the rear axle to the footprint center."""
        return self.length / 2.0 - self.back_edge_to_center

    @property
    def footprint_g(self) -> Tuple[float, float, float, float]:
        """Right-hand side of the footprint half-planes G y <= g."""
        half_length = self.length / 2.0
        half_width = self.width / 2.0
        return (half_length, half_width, half_length, half_width)


@dataclass(frozen=True)
class DistanceApproachConfig:
    """Weights and limits of the distance approach formulation.

    Attributes:
        weight_x, weight_y, weight_phi, weight_v: State tracking weights
            against the end state.
        weight_steer, weight_a: Control magnitude weights.
        weight_steer_rate, weight_a_rate: Control rate weights.
        weight_steer_stitching, weight_a_stitching: Weights of the rate
            between the first control and the previous cycle's control.
        weight_first_order_time: Pulls time scaling factors toward 1.
        weight_second_order_time: Penalizes changes between consecutive
            time scaling factors.
        min_safety_distance: Lower bound of the safety margin rows.
        max_safety_distance: Upper bound of the safety margin rows, used
            only when enable_safety_distance_cap is set.
        max_speed_forward, max_speed_reverse: Velocity limits (positive).
        max_acceleration_forward, max_acceleration_reverse: Acceleration
            limits (positive).
        min_time_sample_scaling, max_time_sample_scaling: Time scaling box.
        max_lambda, max_miu: Upper bounds of the dual variables.
        use_fix_time: Removes the time scaling block.
        enable_steer_rate_constraint: Bounds the steering rate rows.
    """
    weight_x: float = 2.3
    weight_y: float = 0.7
    weight_phi: float = 1.5
    weight_v: float = 0.0
    weight_steer: float = 0.3
    weight_a: float = 1.1
    weight_steer_rate: float = 3.0
    weight_a_rate: float = 2.5
    weight_steer_stitching: float = 1.75
    weight_a_stitching: float = 3.25
    weight_first_order_time: float = 4.25
    weight_second_order_time: float = 13.5

    min_safety_distance: float = 0.01
    max_safety_distance: float = 1.0e3
    enable_safety_distance_cap: bool = False
    max_speed_forward: float = 2.0
    max_speed_reverse: float = 1.0
    max_acceleration_forward: float = 2.0
    max_acceleration_reverse: float = 1.0
    min_time_sample_scaling: float = 0.8
    max_time_sample_scaling: float = 1.2
    max_lambda: float = 100.0
    max_miu: float = 100.0

    use_fix_time: bool = False
    enable_steer_rate_constraint: bool = True

    def __post_init__(self):
        for name, value in self.weights().items():
            if value < 0.0:
                raise FormulationError(f"{name} must be >= 0, got {value}")
        if not self.min_time_sample_scaling > 0.0:
            raise FormulationError(
                "min_time_sample_scaling must be > 0, "
                f"got {self.min_time_sample_scaling}"
            )
        if self.min_time_sample_scaling > self.max_time_sample_scaling:
            raise FormulationError(
                f"min_time_sample_scaling ({self.min_time_sample_scaling}) "
                f"exceeds max_time_sample_scaling ({self.max_time_sample_scaling})"
            )
        if (self.enable_safety_distance_cap
                and self.max_safety_distance < self.min_safety_distance):
            raise FormulationError(
                f"max_safety_distance ({self.max_safety_distance}) is below "
                f"min_safety_distance ({self.min_safety_distance})"
            )
        for name in ('max_speed_forward', 'max_speed_reverse',
                     'max_acceleration_forward', 'max_acceleration_reverse',
                     'max_lambda', 'max_miu'):
            value = getattr(self, name)
            if value < 0.0:
                raise FormulationError(f"{name} must be >= 0, got {value}")

    def weights(self) -> Dict[str, float]:
        """Return all objective weights keyed by name."""
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if name.startswith('weight_')
        }


@dataclass(frozen=True)
class PlannerOpenSpaceConfig:
    """Complete formulator configuration.

    Attributes:
        delta_t: Nominal sampling interval (s), stretched by time scaling.
        vehicle: Vehicle footprint and steering limits.
        distance_approach: Formulation weights and limits.
    """
    delta_t: float = 0.5
    vehicle: VehicleParam = field(default_factory=VehicleParam)
    distance_approach: DistanceApproachConfig = field(
        default_factory=DistanceApproachConfig)

    def __post_init__(self):
        """Convert nested dicts to config objects if needed."""
        if isinstance(self.vehicle, dict):
            object.__setattr__(self, 'vehicle', VehicleParam(**self.vehicle))
        if isinstance(self.distance_approach, dict):
            object.__setattr__(
                self, 'distance_approach',
                DistanceApproachConfig(**self.distance_approach))
        if not self.delta_t > 0.0:
            raise FormulationError(f"delta_t must be > 0, got {self.delta_t}")


@dataclass(frozen=True)
class SolverConfig:
    """Configuration for the NLP solver adapter.

    Attributes:
        solver_type: Adapter name ('ipopt' or 'trust_constr').
        max_iter: Maximum solver iterations.
        tol: Convergence tolerance.
        acceptable_tol: IPOPT acceptable tolerance.
        print_level: IPOPT print level (0 is silent).
        mu_strategy: IPOPT barrier parameter strategy.
        linear_solver: IPOPT linear solver.
        hessian_approximation: 'exact' uses the recorded Hessian.
        extra_options: Additional solver options passed through as-is.
    """
    solver_type: Literal['ipopt', 'trust_constr'] = 'ipopt'
    max_iter: int = 1000
    tol: float = 1e-4
    acceptable_tol: float = 1e-1
    print_level: int = 0
    mu_strategy: str = 'adaptive'
    linear_solver: str = 'mumps'
    hessian_approximation: Literal['exact', 'limited-memory'] = 'exact'
    extra_options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for solver initialization."""
        if self.solver_type == 'ipopt':
            base = {
                'max_iter': self.max_iter,
                'tol': self.tol,
                'acceptable_tol': self.acceptable_tol,
                'print_level': self.print_level,
                'mu_strategy': self.mu_strategy,
                'linear_solver': self.linear_solver,
                'hessian_approximation': self.hessian_approximation,
            }
        else:
            base = {
                'maxiter': self.max_iter,
                'gtol': self.tol,
                'verbose': min(self.print_level, 3),
            }
        base.update(self.extra_options)
        return base
