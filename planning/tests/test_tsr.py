#!/usr/bin/env python3
"""
Unit Tests for Task Space Regions and Offset Geometry

Test suite covering:
- TSR validation, sampling and membership
- Pose projection onto a region
- Cyclic handling of rotational bounds
- Look-at frames and offset goal/constraint synthesis

Author: Robot Control Team
"""

import sys
import os
import unittest
import numpy as np
from scipy.spatial.transform import Rotation

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
sys.path.insert(0, os.path.dirname(__file__))

from planning.src.rng import RNG
from planning.src.tsr import (
    TSR, CyclicTSR, ProjectionDidNotConverge, pose_from_coordinates, coordinates_from_pose
)
from planning.src.geometry import (
    ZeroDirectionVector, look_at_transform, canonicalize_offset,
    compute_offset_goal_and_constraint
)
from planning_fixtures import make_gantry, translation


def box_bounds(half_extent=0.1):
    Bw = np.zeros((6, 2))
    Bw[:3, 0] = -half_extent
    Bw[:3, 1] = half_extent
    return Bw


class TestTSR(unittest.TestCase):
    """Test Task Space Region behavior."""

    def test_defaults(self):
        tsr = TSR()
        np.testing.assert_array_equal(tsr.T0_w, np.eye(4))
        np.testing.assert_array_equal(tsr.Tw_e, np.eye(4))
        np.testing.assert_array_equal(tsr.Bw, np.zeros((6, 2)))
        self.assertTrue(tsr.can_sample())

    def test_validation(self):
        Bw = box_bounds()
        Bw[0] = [0.2, 0.1]
        with self.assertRaises(ValueError):
            TSR(Bw=Bw)
        with self.assertRaises(ValueError):
            TSR(Bw=np.zeros((5, 2)))
        with self.assertRaises(ValueError):
            TSR(T0_w=np.eye(3))

    def test_samples_satisfy_region(self):
        tsr = TSR(T0_w=translation(0.5, 0.0, 0.3), Bw=box_bounds())
        rng = RNG(3)
        for _ in range(50):
            pose = tsr.sample(rng)
            self.assertTrue(tsr.is_satisfied(pose))
            self.assertTrue(np.all(np.abs(pose[:3, 3] - [0.5, 0.0, 0.3]) <= 0.1 + 1e-12))

    def test_samples_satisfy_rotational_bounds(self):
        Bw = box_bounds()
        Bw[3] = [-0.4, 0.3]
        Bw[4] = [1.8, 2.0]
        Bw[5] = [0.5, 1.2]
        rng = RNG(7)
        for region in (TSR(T0_w=translation(0.5, 0.0, 0.3), Bw=Bw), CyclicTSR(TSR(Bw=Bw))):
            for _ in range(50):
                pose = region.sample(rng)
                self.assertTrue(region.is_satisfied(pose, 1e-6))
                coordinates = region.pose_to_coordinates(pose)
                self.assertGreaterEqual(coordinates[4], 1.8 - 1e-9)
                self.assertLessEqual(coordinates[4], 2.0 + 1e-9)

    def test_pitch_beyond_half_pi_projects_inside(self):
        Bw = np.zeros((6, 2))
        Bw[4] = [1.8, 2.0]
        tsr = TSR(Bw=Bw)
        pose = pose_from_coordinates(np.array([0.0, 0.0, 0.0, 0.1, 2.2, -0.1]))
        self.assertFalse(tsr.is_satisfied(pose))
        projected = tsr.project(pose)
        self.assertTrue(tsr.is_satisfied(projected, 1e-6))
        np.testing.assert_allclose(tsr.pose_to_coordinates(projected)[3:], [0.0, 2.0, 0.0],
                                   atol=1e-6)

    def test_zero_width_sample_is_reference_pose(self):
        Tw_e = translation(0.0, 0.0, 0.1)
        tsr = TSR(T0_w=translation(1.0, 2.0, 3.0), Tw_e=Tw_e)
        np.testing.assert_allclose(tsr.sample(RNG(0)), translation(1.0, 2.0, 3.1))

    def test_bound_deviation(self):
        tsr = TSR(Bw=box_bounds())
        deviation = tsr.get_bound_deviation(translation(0.3, 0.0, -0.15))
        np.testing.assert_allclose(deviation, [0.2, 0.0, -0.05, 0.0, 0.0, 0.0], atol=1e-12)
        self.assertFalse(tsr.is_satisfied(translation(0.3, 0.0, 0.0)))
        self.assertTrue(tsr.is_satisfied(translation(0.05, -0.05, 0.1)))

    def test_coordinates_follow_rpy_convention(self):
        coordinates = np.array([0.1, 0.2, 0.3, 0.4, -0.3, 0.2])
        pose = pose_from_coordinates(coordinates)
        expected = (Rotation.from_euler('z', 0.2).as_matrix()
                    @ Rotation.from_euler('y', -0.3).as_matrix()
                    @ Rotation.from_euler('x', 0.4).as_matrix())
        np.testing.assert_allclose(pose[:3, :3], expected, atol=1e-12)
        np.testing.assert_allclose(coordinates_from_pose(pose), coordinates, atol=1e-12)

    def test_projection_lands_inside(self):
        tsr = TSR(T0_w=translation(0.5, 0.0, 0.0), Bw=box_bounds())
        projected = tsr.project(translation(1.0, 0.05, -0.4))
        self.assertTrue(tsr.is_satisfied(projected, 1e-6))
        np.testing.assert_allclose(projected[:3, 3], [0.6, 0.05, -0.1], atol=1e-5)

    def test_projection_keeps_inside_pose(self):
        tsr = TSR(Bw=box_bounds())
        pose = translation(0.02, 0.03, -0.01)
        np.testing.assert_allclose(tsr.project(pose), pose, atol=1e-12)

    def test_projection_failure(self):
        tsr = TSR(Bw=box_bounds())
        with self.assertRaises(ProjectionDidNotConverge):
            tsr.project(translation(10.0, 0.0, 0.0), tolerance=1e-12, max_iterations=0)


class TestCyclicTSR(unittest.TestCase):
    """Test cyclic comparison of rotational bounds."""

    def setUp(self):
        Bw = np.zeros((6, 2))
        Bw[5] = [3.0, 3.3]
        self.tsr = TSR(Bw=Bw)
        self.cyclic = CyclicTSR(self.tsr)

    def _yaw_pose(self, yaw):
        return pose_from_coordinates(np.array([0.0, 0.0, 0.0, 0.0, 0.0, yaw]))

    def test_wrapped_angle_accepted(self):
        pose = self._yaw_pose(3.2)
        # Extracted yaw is -3.083 and lies outside [3.0, 3.3] without wrapping
        self.assertFalse(self.tsr.is_satisfied(pose, 1e-6))
        self.assertTrue(self.cyclic.is_satisfied(pose, 1e-6))

    def test_wrapped_angle_deviation(self):
        deviation = self.cyclic.get_bound_deviation(self._yaw_pose(2.9))
        self.assertAlmostEqual(deviation[5], -0.1, places=9)

    def test_full_circle_has_no_rotational_deviation(self):
        Bw = np.zeros((6, 2))
        Bw[3:, 0] = -np.pi
        Bw[3:, 1] = np.pi
        cyclic = CyclicTSR(TSR(Bw=Bw))
        pose = pose_from_coordinates(np.array([0.0, 0.0, 0.0, 1.0, 0.5, -2.0]))
        np.testing.assert_allclose(cyclic.get_bound_deviation(pose), np.zeros(6), atol=1e-12)

    def test_delegation(self):
        self.assertIs(self.cyclic.T0_w, self.tsr.T0_w)
        self.assertIs(self.cyclic.Bw, self.tsr.Bw)
        pose = self.cyclic.sample(RNG(1))
        self.assertTrue(self.cyclic.is_satisfied(pose, 1e-6))


class TestOffsetGeometry(unittest.TestCase):
    """Look-at frames and offset regions."""

    def test_look_at_z_axis(self):
        T = look_at_transform([1.0, 2.0, 3.0], [0.0, 2.0, 0.0])
        np.testing.assert_allclose(T[:3, 2], [0.0, 1.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(T[:3, 3], [1.0, 2.0, 3.0])
        R = T[:3, :3]
        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(np.linalg.det(R), 1.0)

    def test_look_at_parallel_and_antiparallel(self):
        np.testing.assert_allclose(look_at_transform(np.zeros(3), [0, 0, 2])[:3, :3], np.eye(3))
        T = look_at_transform(np.zeros(3), [0, 0, -1])
        np.testing.assert_allclose(T[:3, 2], [0.0, 0.0, -1.0])
        self.assertAlmostEqual(np.linalg.det(T[:3, :3]), 1.0)

    def test_look_at_rejects_short_direction(self):
        with self.assertRaises(ZeroDirectionVector):
            look_at_transform(np.zeros(3), [1e-8, 0.0, 0.0])

    def test_canonicalize_offset(self):
        direction, distance = canonicalize_offset([0.0, 0.0, 2.0], -0.1)
        np.testing.assert_allclose(direction, [0.0, 0.0, -1.0])
        self.assertAlmostEqual(distance, 0.1)
        with self.assertRaises(ZeroDirectionVector):
            canonicalize_offset([0.0, 0.0, 0.0], 0.1)

    def test_offset_goal_and_constraint(self):
        chain = make_gantry()
        chain.set_positions(np.array([0.1, 0.0, 0.0]))
        frame = chain.get_end_effector()

        goal_tsr, constraint_tsr = compute_offset_goal_and_constraint(
            frame, [0.0, 1.0, 0.0], 0.2, position_tolerance=0.01, angular_tolerance=0.02)

        expected_goal = translation(0.6, 0.2, 0.5)
        self.assertTrue(goal_tsr.is_satisfied(expected_goal, 1e-9))
        np.testing.assert_allclose(goal_tsr.sample(RNG(0)), expected_goal, atol=1e-12)

        self.assertTrue(constraint_tsr.is_satisfied(translation(0.6, 0.1, 0.5), 1e-9))
        self.assertTrue(constraint_tsr.is_satisfied(translation(0.605, 0.0, 0.5), 1e-9))
        self.assertFalse(constraint_tsr.is_satisfied(translation(0.6, -0.05, 0.5), 1e-9))
        self.assertFalse(constraint_tsr.is_satisfied(translation(0.63, 0.1, 0.5), 1e-9))
        np.testing.assert_allclose(constraint_tsr.Bw[2], [0.0, 0.2])
        np.testing.assert_allclose(constraint_tsr.Bw[3:], [[-0.02, 0.02]] * 3)


if __name__ == '__main__':
    unittest.main()
