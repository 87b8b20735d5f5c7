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

"""Obstacle polygons in half-plane representation."""

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy.spatial import ConvexHull

from obcajax.core.exceptions import FormulationError


@dataclass(frozen=True)
class ObstacleSet:
    """Convex obstacles stacked as {z : A_o z <= b_o}.

    Rows of A and b are grouped by obstacle in the order of edges_num,
    so obstacle o owns rows [sum(edges_num[:o]), sum(edges_num[:o+1])).

    Attributes:
        edges_num: Edge count of every obstacle, shape (O,).
        A: Stacked half-plane normals, shape (E, 2).
        b: Stacked half-plane offsets, shape (E,).
    """

    edges_num: np.ndarray
    A: np.ndarray
    b: np.ndarray

    def __post_init__(self):
        edges_num = np.array(self.edges_num, dtype=np.int64).reshape(-1)
        A = np.array(self.A, dtype=np.float64)
        b = np.array(self.b, dtype=np.float64)
        if b.ndim == 2 and b.shape[1] == 1:
            b = b[:, 0]
        if np.any(edges_num <= 0):
            raise FormulationError(
                f"obstacle edge counts must be > 0, got {edges_num.tolist()}")
        total = int(edges_num.sum())
        if A.size == 0:
            A = A.reshape(0, 2)
        if A.ndim != 2 or A.shape != (total, 2):
            raise FormulationError(
                f"obstacles A must have shape ({total}, 2), got {A.shape}")
        if b.shape != (total,):
            raise FormulationError(
                f"obstacles b must have shape ({total},), got {b.shape}")
        for name, value in (('edges_num', edges_num), ('A', A), ('b', b)):
            value.setflags(write=False)
            object.__setattr__(self, name, value)

    @property
    def num_obstacles(self) -> int:
        return int(self.edges_num.shape[0])

    @property
    def edges_sum(self) -> int:
        return int(self.edges_num.sum())

    @property
    def segment_ids(self) -> np.ndarray:
        """Obstacle index of every stacked half-plane row, shape (E,)."""
        return np.repeat(np.arange(self.num_obstacles), self.edges_num)

    def polygon(self, o: int):
        """Return (A_o, b_o) of obstacle o."""
        start = int(self.edges_num[:o].sum())
        stop = start + int(self.edges_num[o])
        return self.A[start:stop], self.b[start:stop]

    @classmethod
    def empty(cls) -> 'ObstacleSet':
        """Obstacle-free space."""
        return cls(
            edges_num=np.zeros((0,), dtype=np.int64),
            A=np.zeros((0, 2)),
            b=np.zeros((0,)),
        )

    @classmethod
    def from_vertices(cls, polygons: Sequence[np.ndarray]) -> 'ObstacleSet':
        """Build half-planes from the vertices of convex obstacles.

        Each polygon is replaced by its convex hull. Hull normals have unit
        length, so A_o' lambda is a direction whenever lambda selects a
        single edge.

        Args:
            polygons: Sequence of (k, 2) vertex arrays, k >= 3.

        Returns:
            ObstacleSet with one obstacle per polygon.
        """
        if len(polygons) == 0:
            return cls.empty()

        edges_num, A_rows, b_rows = [], [], []
        for i, vertices in enumerate(polygons):
            vertices = np.asarray(vertices, dtype=np.float64)
            if vertices.ndim != 2 or vertices.shape[1] != 2 or vertices.shape[0] < 3:
                raise FormulationError(
                    f"obstacle {i} needs at least 3 vertices of shape (k, 2), "
                    f"got {vertices.shape}"
                )
            hull = ConvexHull(vertices)
            # Hull equations: a*x + b*y + c <= 0 for interior points
            eq = hull.equations
            A_rows.append(eq[:, 0:2])
            b_rows.append(-eq[:, 2])
            edges_num.append(eq.shape[0])

        return cls(
            edges_num=np.asarray(edges_num, dtype=np.int64),
            A=np.vstack(A_rows),
            b=np.concatenate(b_rows),
        )

    @classmethod
    def from_boxes(cls, boxes: Sequence[Sequence[float]]) -> 'ObstacleSet':
        """Build axis-aligned rectangles from (x_min, x_max, y_min, y_max)."""
        if len(boxes) == 0:
            return cls.empty()

        normals = np.array([
            [1.0, 0.0],
            [0.0, 1.0],
            [-1.0, 0.0],
            [0.0, -1.0],
        ])
        A_rows, b_rows = [], []
        for x_min, x_max, y_min, y_max in boxes:
            if x_min >= x_max or y_min >= y_max:
                raise FormulationError(
                    f"degenerate box ({x_min}, {x_max}, {y_min}, {y_max})")
            A_rows.append(normals)
            b_rows.append(np.array([x_max, y_max, -x_min, -y_min]))

        return cls(
            edges_num=np.full((len(boxes),), 4, dtype=np.int64),
            A=np.vstack(A_rows),
            b=np.concatenate(b_rows),
        )

    def contains(self, point: np.ndarray) -> np.ndarray:
        """Return, per obstacle, whether the point lies inside it."""
        margins = self.b - self.A @ np.asarray(point, dtype=np.float64)
        inside = np.ones((self.num_obstacles,), dtype=bool)
        for o in range(self.num_obstacles):
            start = int(self.edges_num[:o].sum())
            stop = start + int(self.edges_num[o])
            inside[o] = bool(np.all(margins[start:stop] >= 0.0))
        return inside
