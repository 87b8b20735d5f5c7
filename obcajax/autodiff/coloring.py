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

"""Greedy column coloring of sparse derivative patterns.

Two columns conflict when they have a nonzero in a common row. Columns of
one color are structurally orthogonal, so a single directional derivative
along the sum of their unit vectors recovers all of their entries.

For the symmetric Hessian pattern, coloring the full pattern with its
diagonal added yields a distance-2 coloring, which allows direct recovery
of each lower-triangle entry H[r, c] from row r of the product with the
seed of color(c).
"""

from typing import Tuple

import numpy as np
from scipy import sparse


def conflict_graph(rows: np.ndarray, cols: np.ndarray, shape: Tuple[int, int]) -> sparse.csr_matrix:
    """Column intersection graph P' P of a sparsity pattern."""
    pattern = sparse.csr_matrix(
        (np.ones(len(rows), dtype=np.int64), (np.asarray(rows), np.asarray(cols))),
        shape=shape,
    )
    pattern.data[:] = 1
    return (pattern.T @ pattern).tocsr()


def greedy_column_coloring(
    rows: np.ndarray,
    cols: np.ndarray,
    shape: Tuple[int, int],
) -> Tuple[np.ndarray, int]:
    """Color the columns of a sparsity pattern.

    Columns are visited in order of decreasing conflict degree and each
    receives the smallest color not used by a conflicting column.

    Args:
        rows: Row indices of the nonzeros.
        cols: Column indices of the nonzeros.
        shape: (num_rows, num_cols) of the pattern.

    Returns:
        colors: (num_cols,) color of every column.
        num_colors: Number of distinct colors (0 for an empty pattern).
    """
    num_cols = shape[1]
    colors = np.full((num_cols,), -1, dtype=np.int64)
    if len(rows) == 0:
        colors[:] = 0
        return colors, 0

    graph = conflict_graph(rows, cols, shape)
    degree = np.diff(graph.indptr)
    for c in np.argsort(-degree, kind='stable'):
        neighbors = graph.indices[graph.indptr[c]:graph.indptr[c + 1]]
        used = set(colors[neighbors].tolist())
        color = 0
        while color in used:
            color += 1
        colors[c] = color
    return colors, int(colors.max()) + 1


def seed_matrix(colors: np.ndarray, num_colors: int) -> np.ndarray:
    """(num_colors, num_cols) seeds; row k sums the unit vectors of color k."""
    seeds = np.zeros((num_colors, len(colors)))
    if num_colors:
        seeds[colors, np.arange(len(colors))] = 1.0
    return seeds


def is_valid_coloring(rows: np.ndarray, cols: np.ndarray, colors: np.ndarray) -> bool:
    """Return True if no row holds two nonzero columns of the same color."""
    rows = np.asarray(rows)
    cols = np.asarray(cols)
    for r in np.unique(rows):
        row_colors = colors[cols[rows == r]]
        if len(np.unique(row_colors)) != len(row_colors):
            return False
    return True
