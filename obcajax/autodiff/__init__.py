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

"""Sparse automatic differentiation for the NLP callbacks.

- Tape: recorded objective/constraint programs and their sparse
  Jacobian and Lagrangian Hessian
- greedy_column_coloring: compression of sparse derivative evaluation
"""

from obcajax.autodiff.coloring import (
    conflict_graph,
    greedy_column_coloring,
    seed_matrix,
    is_valid_coloring,
)

from obcajax.autodiff.tape import Tape

__all__ = [
    'Tape',
    'conflict_graph',
    'greedy_column_coloring',
    'seed_matrix',
    'is_valid_coloring',
]
