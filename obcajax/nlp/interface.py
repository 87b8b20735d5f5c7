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

"""Callback interface between a formulation and an NLP solver.

The solver owns the iteration. It queries sizes once, then bounds and the
starting point, then evaluates the callbacks at points of its choosing and
finally hands the terminal point back through finalize_solution.

Output buffers are preallocated numpy arrays filled in place. Every
callback returns True on success and False on failure.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from obcajax.core.types import IndexStyle, SolverReturn


@dataclass(frozen=True)
class NLPInfo:
    """Sizes reported by get_nlp_info.

    Attributes:
        n: Number of decision variables.
        m: Number of constraint rows.
        nnz_jac_g: Nonzeros of the constraint Jacobian.
        nnz_h_lag: Nonzeros of the lower triangle of the Lagrangian Hessian.
        index_style: Base of the reported indices.
    """
    n: int
    m: int
    nnz_jac_g: int
    nnz_h_lag: int
    index_style: IndexStyle = IndexStyle.C_STYLE


@runtime_checkable
class NLPInterface(Protocol):
    """Protocol of a sparse NLP formulation.

        min  f(x)
        s.t. g_l <= g(x) <= g_u
             x_l <= x <= x_u
    """

    def get_nlp_info(self) -> Optional[NLPInfo]:
        ...

    def get_bounds_info(self, n: int, x_l: np.ndarray, x_u: np.ndarray,
                        m: int, g_l: np.ndarray, g_u: np.ndarray) -> bool:
        ...

    def get_starting_point(self, n: int, init_x: bool, x: np.ndarray,
                           init_z: bool, z_L: Optional[np.ndarray],
                           z_U: Optional[np.ndarray], m: int,
                           init_lambda: bool,
                           lambda_: Optional[np.ndarray]) -> bool:
        ...

    def eval_f(self, n: int, x: np.ndarray, new_x: bool) -> Tuple[bool, float]:
        ...

    def eval_grad_f(self, n: int, x: np.ndarray, new_x: bool,
                    grad_f: np.ndarray) -> bool:
        ...

    def eval_g(self, n: int, x: np.ndarray, new_x: bool, m: int,
               g: np.ndarray) -> bool:
        ...

    def eval_jac_g(self, n: int, x: Optional[np.ndarray], new_x: bool, m: int,
                   nele_jac: int, i_row: Optional[np.ndarray],
                   j_col: Optional[np.ndarray],
                   values: Optional[np.ndarray]) -> bool:
        ...

    def eval_h(self, n: int, x: Optional[np.ndarray], new_x: bool,
               obj_factor: float, m: int, lambda_: Optional[np.ndarray],
               new_lambda: bool, nele_hess: int, i_row: Optional[np.ndarray],
               j_col: Optional[np.ndarray],
               values: Optional[np.ndarray]) -> bool:
        ...

    def finalize_solution(self, status: SolverReturn, n: int, x: np.ndarray,
                          z_L: Optional[np.ndarray], z_U: Optional[np.ndarray],
                          m: int, g: Optional[np.ndarray],
                          lambda_: Optional[np.ndarray],
                          obj_value: float) -> None:
        ...
