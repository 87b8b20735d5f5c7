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

"""Tests for obstacle half-plane construction."""

from absl.testing import absltest
from absl.testing import parameterized

from jax import config
import numpy as np

from obcajax.core import FormulationError, ObstacleSet

config.update('jax_enable_x64', True)


class ObstacleSetTest(parameterized.TestCase):
    """Tests for ObstacleSet."""

    def test_from_boxes(self):
        obstacles = ObstacleSet.from_boxes([(0.0, 2.0, 0.0, 1.0)])
        self.assertEqual(obstacles.num_obstacles, 1)
        self.assertEqual(obstacles.edges_sum, 4)
        np.testing.assert_array_almost_equal(obstacles.b, [2.0, 1.0, 0.0, 0.0])
        np.testing.assert_array_equal(obstacles.contains([1.0, 0.5]), [True])
        np.testing.assert_array_equal(obstacles.contains([3.0, 0.5]), [False])

    def test_from_vertices_square(self):
        square = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 1.0], [0.0, 1.0]])
        obstacles = ObstacleSet.from_vertices([square])
        np.testing.assert_array_equal(obstacles.edges_num, [4])
        # Unit normals
        np.testing.assert_array_almost_equal(
            np.linalg.norm(obstacles.A, axis=1), np.ones(4))
        # Every vertex lies on or inside every half-plane
        margins = obstacles.b[None, :] - square @ obstacles.A.T
        self.assertTrue(np.all(margins >= -1e-9))
        np.testing.assert_array_equal(obstacles.contains([1.0, 0.5]), [True])
        np.testing.assert_array_equal(obstacles.contains([-0.5, 0.5]), [False])

    def test_from_vertices_uses_convex_hull(self):
        # Interior point is dropped
        triangle = np.array([[0.0, 0.0], [4.0, 0.0], [0.0, 4.0], [1.0, 1.0]])
        obstacles = ObstacleSet.from_vertices([triangle])
        np.testing.assert_array_equal(obstacles.edges_num, [3])

    def test_segment_ids_and_polygon(self):
        obstacles = ObstacleSet.from_vertices([
            np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]]),
            np.array([[5.0, 5.0], [6.0, 5.0], [6.0, 6.0], [5.0, 6.0]]),
        ])
        np.testing.assert_array_equal(obstacles.segment_ids, [0, 0, 0, 1, 1, 1, 1])
        A1, b1 = obstacles.polygon(1)
        self.assertEqual(A1.shape, (4, 2))
        self.assertEqual(b1.shape, (4,))
        np.testing.assert_array_equal(obstacles.contains([5.5, 5.5]), [False, True])

    def test_empty(self):
        obstacles = ObstacleSet.empty()
        self.assertEqual(obstacles.num_obstacles, 0)
        self.assertEqual(obstacles.edges_sum, 0)
        self.assertEqual(obstacles.A.shape, (0, 2))

    def test_column_b_flattened(self):
        obstacles = ObstacleSet(edges_num=[4], A=np.eye(4, 2), b=np.ones((4, 1)))
        self.assertEqual(obstacles.b.shape, (4,))

    def test_arrays_are_copied_and_read_only(self):
        A = np.array([[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, -1.0]])
        obstacles = ObstacleSet(edges_num=[4], A=A, b=np.ones(4))
        A[0, 0] = 7.0
        self.assertEqual(obstacles.A[0, 0], 1.0)
        with self.assertRaises(ValueError):
            obstacles.A[0, 0] = 3.0

    @parameterized.named_parameters(
        ('zero_edges', [0], np.zeros((0, 2)), np.zeros(0)),
        ('rows_mismatch', [4], np.zeros((3, 2)), np.zeros(3)),
        ('b_mismatch', [3], np.zeros((3, 2)), np.zeros(4)),
    )
    def test_malformed_rejected(self, edges_num, A, b):
        with self.assertRaises(FormulationError):
            ObstacleSet(edges_num=edges_num, A=A, b=b)

    def test_degenerate_polygon_rejected(self):
        with self.assertRaises(FormulationError):
            ObstacleSet.from_vertices([np.array([[0.0, 0.0], [1.0, 1.0]])])


if __name__ == '__main__':
    absltest.main()
