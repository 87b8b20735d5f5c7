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

"""Distance approach formulation written against jax.numpy.

- make_objective: tracking, control effort, control rate and time terms
- make_constraints: kinematics, steering rate and obstacle rows
- variable_bounds / constraint_bounds / starting_point: box data
"""

from obcajax.formulation.objective import (
    make_objective,
    control_rates,
)

from obcajax.formulation.constraints import (
    make_constraints,
    obstacle_rows,
)

from obcajax.formulation.bounds import (
    variable_bounds,
    constraint_bounds,
    starting_point,
)

__all__ = [
    'make_objective',
    'control_rates',
    'make_constraints',
    'obstacle_rows',
    'variable_bounds',
    'constraint_bounds',
    'starting_point',
]
