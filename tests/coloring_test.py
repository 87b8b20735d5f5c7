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

"""Tests for greedy column coloring."""

from absl.testing import absltest
from absl.testing import parameterized

from jax import config
import numpy as np

from obcajax.autodiff import greedy_column_coloring, is_valid_coloring, seed_matrix

config.update('jax_enable_x64', True)


class ColoringTest(parameterized.TestCase):
    """Tests for greedy_column_coloring."""

    def test_diagonal_needs_one_color(self):
        rows = cols = np.arange(6)
        colors, num_colors = greedy_column_coloring(rows, cols, (6, 6))
        self.assertEqual(num_colors, 1)
        np.testing.assert_array_equal(colors, 0)

    def test_dense_row_needs_all_colors(self):
        cols = np.arange(5)
        rows = np.zeros(5, dtype=int)
        colors, num_colors = greedy_column_coloring(rows, cols, (1, 5))
        self.assertEqual(num_colors, 5)
        self.assertLen(np.unique(colors), 5)

    def test_bidiagonal(self):
        # Row i touches columns i and i + 1
        rows = np.concatenate([np.arange(5), np.arange(5)])
        cols = np.concatenate([np.arange(5), np.arange(1, 6)])
        colors, num_colors = greedy_column_coloring(rows, cols, (5, 6))
        self.assertEqual(num_colors, 2)
        self.assertTrue(is_valid_coloring(rows, cols, colors))

    @parameterized.parameters(0, 1, 2)
    def test_random_pattern_is_valid(self, seed):
        rng = np.random.default_rng(seed)
        pattern = rng.uniform(size=(30, 40)) < 0.1
        rows, cols = np.nonzero(pattern)
        colors, num_colors = greedy_column_coloring(rows, cols, pattern.shape)
        self.assertTrue(is_valid_coloring(rows, cols, colors))
        self.assertLessEqual(num_colors, 40)

    def test_invalid_coloring_detected(self):
        rows = np.array([0, 0])
        cols = np.array([0, 1])
        self.assertFalse(is_valid_coloring(rows, cols, np.array([0, 0])))

    def test_empty_pattern(self):
        colors, num_colors = greedy_column_coloring(
            np.zeros(0, dtype=int), np.zeros(0, dtype=int), (3, 4))
        self.assertEqual(num_colors, 0)
        self.assertEqual(seed_matrix(colors, num_colors).shape, (0, 4))

    def test_seed_matrix(self):
        seeds = seed_matrix(np.array([0, 1, 0, 2]), 3)
        np.testing.assert_array_equal(seeds, [[1, 0, 1, 0], [0, 1, 0, 0], [0, 0, 0, 1]])
        np.testing.assert_array_equal(seeds.sum(axis=0), np.ones(4))


if __name__ == '__main__':
    absltest.main()
