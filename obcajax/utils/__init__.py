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

"""Vehicle kinematics utilities.

- Continuous-time kinematic bicycle dynamics
- The discretized bicycle step used by the kinematic constraints
- Rollouts for building dynamically consistent warm starts
"""

from obcajax.utils.integrators import (
    kinematic_bicycle,
    bicycle_step,
    rollout,
)

__all__ = [
    'kinematic_bicycle',
    'bicycle_step',
    'rollout',
]
