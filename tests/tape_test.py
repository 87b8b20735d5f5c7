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

"""Tests for the differentiation driver."""

from absl.testing import absltest
from absl.testing import parameterized

import jax
import jax.numpy as jnp
from jax import config
import numpy as np

from obcajax.autodiff import Tape, greedy_column_coloring, is_valid_coloring
from obcajax.core import ObstacleSet, OpenSpaceProblem, PlannerOpenSpaceConfig
from obcajax.formulation import make_constraints, make_objective

config.update('jax_enable_x64', True)


def toy_objective(x):
    return jnp.sum(x ** 2) + x[0] * x[1] + jnp.sin(x[3])


def toy_constraints(x):
    return jnp.stack([x[0] * x[2], x[1] + x[3] ** 2, jnp.exp(x[4])])


def scatter(rows, cols, values, shape):
    dense = np.zeros(shape)
    dense[rows, cols] = values
    return dense


def formulation_tape(use_fix_time=False):
    horizon = 2
    x0 = np.zeros(4)
    xf = np.array([2.0, 0.5, 0.0, 0.0])
    problem = OpenSpaceProblem(
        horizon=horizon,
        x0=x0,
        xf=xf,
        xy_bounds=(-10.0, 10.0, -10.0, 10.0),
        xWS=np.linspace(x0, xf, horizon + 1),
        uWS=np.zeros((horizon, 2)),
        obstacles=ObstacleSet.from_vertices([
            np.array([[4.0, -1.0], [5.0, -1.0], [5.0, 1.0], [4.0, 1.0]]),
            np.array([[-3.0, 2.0], [-2.0, 2.0], [-2.5, 3.0]]),
        ]),
        last_time_u=np.array([0.05, 0.1]),
    )
    cfg = PlannerOpenSpaceConfig()
    layout = problem.layout(use_fix_time)
    objective = make_objective(layout, problem, cfg)
    constraints = make_constraints(layout, problem, cfg)
    tape = Tape(objective, constraints, layout.num_of_variables, layout.num_of_constraints)
    return tape, objective, constraints


class ToyTapeTest(parameterized.TestCase):
    """Tests on a small hand-written function pair."""

    def setUp(self):
        super().setUp()
        self.tape = Tape(toy_objective, toy_constraints, 5, 3)

    def test_requests_before_generate_raise(self):
        x = np.ones(5)
        with self.assertRaises(RuntimeError):
            self.tape.jacobian_values(x)
        with self.assertRaises(RuntimeError):
            self.tape.hessian_structure()
        with self.assertRaises(RuntimeError):
            _ = self.tape.nnz_jac

    def test_jacobian_structure(self):
        self.tape.generate()
        rows, cols = self.tape.jacobian_structure()
        np.testing.assert_array_equal(rows, [0, 0, 1, 1, 2])
        np.testing.assert_array_equal(cols, [0, 2, 1, 3, 4])
        self.assertEqual(self.tape.nnz_jac, 5)

    def test_hessian_structure_is_lower_triangle(self):
        self.tape.generate()
        rows, cols = self.tape.hessian_structure()
        self.assertTrue(np.all(rows >= cols))
        # Diagonal of every variable, x0*x1 from f and x0*x2 from g0
        expected = {(0, 0), (1, 0), (1, 1), (2, 0), (2, 2), (3, 3), (4, 4)}
        self.assertEqual(set(zip(rows.tolist(), cols.tolist())), expected)

    def test_values(self):
        self.tape.generate()
        x = np.array([0.3, -0.2, 1.5, 0.7, -0.4])
        lam = np.array([0.5, -1.0, 2.0])
        self.assertAlmostEqual(self.tape.objective(x), float(toy_objective(x)))
        np.testing.assert_array_almost_equal(
            self.tape.gradient(x), jax.grad(toy_objective)(x))
        np.testing.assert_array_almost_equal(
            self.tape.constraints(x), toy_constraints(x))

        rows, cols = self.tape.jacobian_structure()
        np.testing.assert_array_almost_equal(
            scatter(rows, cols, self.tape.jacobian_values(x), (3, 5)),
            jax.jacfwd(toy_constraints)(x))

        lagrangian = lambda z: 0.7 * toy_objective(z) + jnp.dot(lam, toy_constraints(z))
        rows, cols = self.tape.hessian_structure()
        np.testing.assert_array_almost_equal(
            scatter(rows, cols, self.tape.hessian_values(x, 0.7, lam), (5, 5)),
            np.tril(jax.hessian(lagrangian)(x)))

    @parameterized.parameters(1, 2, 128)
    def test_structure_independent_of_chunk_size(self, chunk_size):
        tape = Tape(toy_objective, toy_constraints, 5, 3, chunk_size=chunk_size)
        tape.generate()
        rows, cols = tape.jacobian_structure()
        np.testing.assert_array_equal(rows, [0, 0, 1, 1, 2])
        np.testing.assert_array_equal(cols, [0, 2, 1, 3, 4])
        rows, cols = tape.hessian_structure()
        np.testing.assert_array_equal(rows, [0, 1, 1, 2, 2, 3, 4])
        np.testing.assert_array_equal(cols, [0, 0, 1, 0, 2, 3, 4])

    def test_generate_twice_is_noop(self):
        self.tape.generate()
        structure = self.tape.jacobian_structure()
        self.tape.generate(seed=7)
        self.assertIs(self.tape.jacobian_structure(), structure)


class FormulationTapeTest(parameterized.TestCase):
    """Tests on the distance approach formulation."""

    @parameterized.parameters(False, True)
    def test_sparse_derivatives_match_dense(self, use_fix_time):
        tape, objective, constraints = formulation_tape(use_fix_time)
        tape.generate()
        rng = np.random.default_rng(3)
        x = rng.uniform(0.2, 0.8, size=(tape.n,))
        lam = rng.normal(size=(tape.m,))

        rows, cols = tape.jacobian_structure()
        np.testing.assert_allclose(
            scatter(rows, cols, tape.jacobian_values(x), (tape.m, tape.n)),
            jax.jacfwd(constraints)(x), atol=1e-10)

        lagrangian = lambda z: 1.3 * objective(z) + jnp.dot(lam, constraints(z))
        rows, cols = tape.hessian_structure()
        np.testing.assert_allclose(
            scatter(rows, cols, tape.hessian_values(x, 1.3, lam), (tape.n, tape.n)),
            np.tril(jax.hessian(lagrangian)(x)), atol=1e-8)

    def test_chunked_discovery_matches_single_pass(self):
        tape, objective, constraints = formulation_tape()
        chunked = Tape(objective, constraints, tape.n, tape.m, chunk_size=3)
        tape.generate()
        chunked.generate()
        for expected, actual in zip(tape.jacobian_structure() + tape.hessian_structure(),
                                    chunked.jacobian_structure() + chunked.hessian_structure()):
            np.testing.assert_array_equal(expected, actual)

    def test_colorings_are_valid(self):
        tape, _, _ = formulation_tape()
        tape.generate()
        jac_colors, hess_colors = tape.num_colors
        self.assertLess(jac_colors, tape.n)
        self.assertLess(hess_colors, tape.n)

        rows, cols = tape.jacobian_structure()
        colors, _ = greedy_column_coloring(rows, cols, (tape.m, tape.n))
        self.assertTrue(is_valid_coloring(rows, cols, colors))

    def test_gradient_matches_finite_differences(self):
        tape, objective, _ = formulation_tape()
        tape.generate()
        rng = np.random.default_rng(5)
        x = rng.uniform(0.5, 1.5, size=(tape.n,))
        eps = 1e-6
        fd = np.array([
            (tape.objective(x + eps * e) - tape.objective(x - eps * e)) / (2 * eps)
            for e in np.eye(tape.n)
        ])
        np.testing.assert_allclose(tape.gradient(x), fd, rtol=1e-5, atol=1e-5)

    def test_hessian_matches_finite_differences(self):
        tape, _, _ = formulation_tape()
        tape.generate()
        rng = np.random.default_rng(7)
        x = rng.uniform(0.5, 1.5, size=(tape.n,))
        eps = 1e-5
        fd = np.stack([
            (tape.gradient(x + eps * e) - tape.gradient(x - eps * e)) / (2 * eps)
            for e in np.eye(tape.n)
        ], axis=1)
        rows, cols = tape.hessian_structure()
        values = tape.hessian_values(x, 1.0, np.zeros(tape.m))
        np.testing.assert_allclose(
            scatter(rows, cols, values, (tape.n, tape.n)), np.tril(fd),
            rtol=1e-5, atol=1e-4)

    def test_jacobian_matches_finite_differences(self):
        tape, _, _ = formulation_tape()
        tape.generate()
        rng = np.random.default_rng(6)
        x = rng.uniform(0.5, 1.5, size=(tape.n,))
        eps = 1e-6
        fd = np.stack([
            (tape.constraints(x + eps * e) - tape.constraints(x - eps * e)) / (2 * eps)
            for e in np.eye(tape.n)
        ], axis=1)
        rows, cols = tape.jacobian_structure()
        np.testing.assert_allclose(
            scatter(rows, cols, tape.jacobian_values(x), (tape.m, tape.n)),
            fd, rtol=1e-5, atol=1e-5)


if __name__ == '__main__':
    absltest.main()
