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

"""Tests for the distance approach constraint residuals."""

from absl.testing import absltest
from absl.testing import parameterized

import jax.numpy as jnp
from jax import config
import numpy as np

from obcajax.core import ObstacleSet, OpenSpaceProblem, PlannerOpenSpaceConfig
from obcajax.formulation import make_constraints, obstacle_rows

config.update('jax_enable_x64', True)

CONFIG = PlannerOpenSpaceConfig()
# Facing edge of the box is x >= 10, stored as row 2 with normal (-1, 0)
BOX = (10.0, 12.0, -1.0, 1.0)


def make_problem(horizon=3, x0=None, **kwargs):
    x0 = np.zeros(4) if x0 is None else np.asarray(x0)
    return OpenSpaceProblem(
        horizon=horizon,
        x0=x0,
        xf=x0,
        xy_bounds=(-20.0, 20.0, -20.0, 20.0),
        xWS=np.tile(x0, (horizon + 1, 1)),
        uWS=np.zeros((horizon, 2)),
        obstacles=ObstacleSet.from_boxes([BOX]),
        **kwargs,
    )


def separating_certificate(states, normal):
    """lambda selecting one edge and the matching footprint multipliers."""
    mu = []
    for heading in states[:, 2]:
        c, s = np.cos(heading), np.sin(heading)
        # G' mu = -R' a, split into positive and negative parts
        target = -np.array([c * normal[0] + s * normal[1],
                            -s * normal[0] + c * normal[1]])
        mu.append(np.concatenate([np.maximum(target, 0.0), np.maximum(-target, 0.0)]))
    return np.array(mu)


class ConstraintsTest(parameterized.TestCase):
    """Tests for make_constraints."""

    def evaluate(self, problem, x, use_fix_time=False):
        layout = problem.layout(use_fix_time)
        constraints = make_constraints(layout, problem, CONFIG)
        return layout, np.asarray(constraints(jnp.asarray(x)))

    def test_size(self):
        problem = make_problem()
        layout = problem.layout()
        _, g = self.evaluate(problem, layout.pack(problem.xWS, problem.uWS))
        self.assertEqual(g.shape, (layout.num_of_constraints,))

    def test_stationary_vehicle_is_kinematically_consistent(self):
        problem = make_problem(x0=[1.0, 2.0, 0.7, 0.0])
        layout = problem.layout()
        _, g = self.evaluate(problem, layout.pack(problem.xWS, problem.uWS))
        np.testing.assert_array_almost_equal(g[:layout.steer_rate_start_row], 0.0)

    def test_two_step_stationary_scenario(self):
        problem = make_problem(horizon=2)
        layout = problem.layout()
        self.assertEqual(layout.num_of_variables, 42)
        self.assertEqual(layout.num_of_constraints, 22)
        _, g = self.evaluate(problem, layout.pack(problem.xWS, problem.uWS))
        np.testing.assert_array_equal(g[:layout.steer_rate_start_row], np.zeros(8))

    @parameterized.parameters(False, True)
    def test_rollout_warm_start_is_kinematically_consistent(self, use_fix_time):
        timeWS = None if use_fix_time else np.array([0.9, 1.0, 1.1, 1.2])
        problem = OpenSpaceProblem.from_controls(
            x0=np.array([0.0, 0.0, 0.3, 0.5]),
            xf=np.array([2.0, 1.0, 0.0, 0.0]),
            uWS=np.array([[0.1, 0.2], [0.2, -0.1], [-0.1, 0.3], [0.0, -0.5]]),
            ts=CONFIG.delta_t,
            wheelbase=CONFIG.vehicle.wheelbase,
            xy_bounds=(-20.0, 20.0, -20.0, 20.0),
            obstacles=ObstacleSet.from_boxes([BOX]),
            timeWS=timeWS,
        )
        layout = problem.layout(use_fix_time)
        time = None if use_fix_time else problem.timeWS
        x = layout.pack(problem.xWS, problem.uWS, time)
        _, g = self.evaluate(problem, x, use_fix_time)
        np.testing.assert_array_almost_equal(g[:layout.steer_rate_start_row], 0.0)

    def test_kinematic_violation(self):
        problem = make_problem()
        layout = problem.layout()
        states = np.array(problem.xWS)
        states[2, 0] += 0.5
        _, g = self.evaluate(problem, layout.pack(states, problem.uWS))
        kinematic = g[:layout.steer_rate_start_row].reshape(-1, 4)
        # Sample 2 is ahead of its prediction and sample 3 behind its own
        self.assertAlmostEqual(kinematic[1, 0], 0.5)
        self.assertAlmostEqual(kinematic[2, 0], -0.5)

    def test_steer_rate_rows(self):
        problem = make_problem(last_time_u=np.array([0.1, 0.0]))
        layout = problem.layout()
        controls = np.array([[0.2, 0.0], [0.2, 0.0], [0.0, 0.0]])
        time = np.array([1.0, 1.0, 2.0])
        _, g = self.evaluate(problem, layout.pack(problem.xWS, controls, time))
        rate = g[layout.steer_rate_start_row:layout.obstacle_start_row]
        ts = CONFIG.delta_t
        np.testing.assert_array_almost_equal(rate, [0.1 / ts, 0.0, -0.2 / (2.0 * ts)])

    def test_far_obstacle_certificate(self):
        problem = make_problem()
        layout = problem.layout()
        samples = layout.horizon + 1
        dual_l = np.zeros((samples, 4))
        dual_l[:, 2] = 1.0
        dual_n = separating_certificate(problem.xWS, normal=(-1.0, 0.0))
        _, g = self.evaluate(problem, layout.pack(
            problem.xWS, problem.uWS, dual_l=dual_l, dual_n=dual_n))

        rows = g[layout.obstacle_start_row:].reshape(samples, 4)
        np.testing.assert_array_almost_equal(rows[:, 0], 1.0)
        np.testing.assert_array_almost_equal(rows[:, 1:3], 0.0)
        # Heading 0 at the origin: gap between the front bumper and x = 10
        expected_gap = BOX[0] - CONFIG.vehicle.front_edge_to_center
        np.testing.assert_array_almost_equal(rows[:, 3], expected_gap)

    def test_certificate_with_rotated_vehicle(self):
        problem = make_problem(x0=[2.0, 0.0, 0.5 * np.pi, 0.0])
        layout = problem.layout()
        samples = layout.horizon + 1
        dual_l = np.zeros((samples, 4))
        dual_l[:, 2] = 1.0
        dual_n = separating_certificate(problem.xWS, normal=(-1.0, 0.0))
        _, g = self.evaluate(problem, layout.pack(
            problem.xWS, problem.uWS, dual_l=dual_l, dual_n=dual_n))

        rows = g[obstacle_rows(layout, 1, 0)]
        np.testing.assert_array_almost_equal(rows[:3], [1.0, 0.0, 0.0])
        # Pointing along +y, the closest footprint side is half a width away
        expected_gap = BOX[0] - 2.0 - CONFIG.vehicle.right_edge_to_center
        self.assertAlmostEqual(rows[3], expected_gap)

    def test_obstacle_row_order(self):
        obstacles = ObstacleSet.from_boxes([BOX, (-12.0, -10.0, -1.0, 1.0)])
        problem = OpenSpaceProblem(
            horizon=2,
            x0=np.zeros(4),
            xf=np.zeros(4),
            xy_bounds=(-20.0, 20.0, -20.0, 20.0),
            xWS=np.zeros((3, 4)),
            uWS=np.zeros((2, 2)),
            obstacles=obstacles,
        )
        layout = problem.layout()
        dual_l = np.zeros((3, 8))
        dual_l[1, 4] = 1.0  # sample 1, edge x <= -10 of obstacle 1
        _, g = self.evaluate(problem, layout.pack(problem.xWS, problem.uWS, dual_l=dual_l))
        unit_norm = g[layout.obstacle_start_row::4]
        np.testing.assert_array_almost_equal(unit_norm, [0, 0, 0, 1, 0, 0])
        self.assertAlmostEqual(g[obstacle_rows(layout, 1, 1)][0], 1.0)


if __name__ == '__main__':
    absltest.main()
