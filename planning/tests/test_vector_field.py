#!/usr/bin/env python3
"""
Unit Tests for Vector Field Planning Module

Test suite covering:
- Straight end-effector motions of the requested length
- Distance window handling
- Termination on collision, joint limits and time budget

Author: Robot Control Team
"""

import sys
import os
import unittest
import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
sys.path.insert(0, os.path.dirname(__file__))

from planning.src.state_space import JointStateSpace
from planning.src.path_planner import PlanningResult, PlanningStatus
from planning.src.vector_field import VectorFieldPlanner
from planning.src.motion_planner import TimeBudget
from planning_fixtures import make_gantry, AlwaysSatisfied, HalfSpaceTestable


class TestVectorFieldPlanner(unittest.TestCase):
    """Test straight-line end-effector planning on the gantry."""

    def setUp(self):
        self.chain = make_gantry()
        self.space = JointStateSpace.from_skeleton(self.chain)
        self.frame = self.chain.get_end_effector()

    def _planner(self, testable=None, **kwargs):
        return VectorFieldPlanner(self.space, self.chain, self.frame,
                                  testable or AlwaysSatisfied(), **kwargs)

    def _plan(self, planner, direction, min_distance, max_distance, timelimit=5.0, result=None):
        return planner.plan_to_end_effector_offset(
            np.array(direction, dtype=float), min_distance, max_distance,
            position_tolerance=1e-3, angular_tolerance=1e-3,
            budget=TimeBudget(timelimit), result=result)

    def test_moves_along_direction(self):
        result = PlanningResult()
        trajectory = self._plan(self._planner(), [1.0, 0.0, 0.0], 0.09, 0.11, result=result)

        self.assertIsNotNone(trajectory, result.message)
        self.assertTrue(result.success)

        end = trajectory.get_waypoint(len(trajectory) - 1).values
        moved = self.frame.compute_world_transform(end)[:3, 3] - [0.5, 0.0, 0.5]
        self.assertGreaterEqual(moved[0], 0.09 - 1e-9)
        self.assertLessEqual(moved[0], 0.11 + 1e-9)
        self.assertLess(np.linalg.norm(moved[1:]), 1e-3)

    def test_path_is_straight_and_monotonic(self):
        trajectory = self._plan(self._planner(), [0.0, 0.0, 1.0], 0.05, 0.06)

        previous_z, previous_t = -np.inf, -np.inf
        for t, state in trajectory:
            p = self.frame.compute_world_transform(state.values)[:3, 3]
            self.assertLess(abs(p[0] - 0.5) + abs(p[1]), 1e-3)
            self.assertGreaterEqual(p[2], previous_z)
            self.assertGreater(t, previous_t)
            previous_z, previous_t = p[2], t

    def test_joint_steps_bounded_by_check_resolution(self):
        trajectory = self._plan(self._planner(constraint_check_resolution=5e-3),
                                [0.0, 1.0, 0.0], 0.05, 0.06)
        states = [state.values for _, state in trajectory]
        steps = [np.max(np.abs(b - a)) for a, b in zip(states[:-1], states[1:])]
        self.assertTrue(all(step <= 5e-3 + 1e-12 for step in steps))

    def test_skeleton_left_at_integration_end(self):
        self._plan(self._planner(), [1.0, 0.0, 0.0], 0.05, 0.06)
        self.assertGreater(self.chain.get_positions()[0], 0.05)

    def test_collision_before_minimum_distance(self):
        result = PlanningResult()
        trajectory = self._plan(self._planner(HalfSpaceTestable(0, 0.03)),
                                [1.0, 0.0, 0.0], 0.09, 0.11, result=result)
        self.assertIsNone(trajectory)
        self.assertEqual(result.status, PlanningStatus.COLLISION)

    def test_collision_inside_window_keeps_progress(self):
        trajectory = self._plan(self._planner(HalfSpaceTestable(0, 0.1)),
                                [1.0, 0.0, 0.0], 0.09, 0.11)
        self.assertIsNotNone(trajectory)
        end = trajectory.get_waypoint(len(trajectory) - 1).values
        self.assertGreaterEqual(end[0], 0.09 - 1e-9)
        self.assertLessEqual(end[0], 0.1)

    def test_joint_limit_stops_integration(self):
        result = PlanningResult()
        self.chain.set_positions(np.array([0.95, 0.0, 0.0]))
        trajectory = self._plan(self._planner(), [1.0, 0.0, 0.0], 0.09, 0.11, result=result)
        self.assertIsNone(trajectory)
        self.assertEqual(result.status, PlanningStatus.JOINT_LIMIT)
        self.assertEqual(result.message, "Joint limit reached")

    def test_zero_minimum_distance_accepts_start(self):
        self.chain.set_positions(np.array([0.999, 0.0, 0.0]))
        trajectory = self._plan(self._planner(), [1.0, 0.0, 0.0], 0.0, 0.01)
        self.assertIsNotNone(trajectory)
        np.testing.assert_allclose(trajectory.get_waypoint(0).values, [0.999, 0.0, 0.0])

    def test_expired_budget(self):
        result = PlanningResult()
        trajectory = self._plan(self._planner(), [1.0, 0.0, 0.0], 0.09, 0.11,
                                timelimit=0.0, result=result)
        self.assertIsNone(trajectory)
        self.assertEqual(result.status, PlanningStatus.TIMEOUT)

    def test_rejects_inverted_window(self):
        with self.assertRaises(ValueError):
            self._plan(self._planner(), [1.0, 0.0, 0.0], 0.2, 0.1)

    def test_rejects_non_positive_step(self):
        with self.assertRaises(ValueError):
            self._planner(initial_step_size=0.0)


if __name__ == '__main__':
    unittest.main()
