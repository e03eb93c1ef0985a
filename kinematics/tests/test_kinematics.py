#!/usr/bin/env python3
"""
Unit Tests for Kinematics Module

Test suite covering:
- Product of Exponentials forward kinematics
- Space and end-effector Jacobians against finite differences
- Live configuration handling and the end-effector frame
- Seeded damped least squares inverse kinematics
- Loading chain parameters from the constraints file

Author: Robot Control Team
"""

import sys
import os
import tempfile
import threading
import unittest
import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from kinematics.src.forward_kinematic import (
    KinematicChain, EndEffectorFrame, KinematicChainError, DEFAULT_SCREW_AXES, DEFAULT_HOME
)
from kinematics.src.inverse_kinematic import InverseKinematics, InverseKinematicsError


def make_rb3():
    return KinematicChain(DEFAULT_SCREW_AXES, DEFAULT_HOME, name="rb3")


def make_gantry():
    screw_axes = np.zeros((6, 3))
    screw_axes[3, 0] = screw_axes[4, 1] = screw_axes[5, 2] = 1.0
    home = np.eye(4)
    home[:3, 3] = [0.5, 0.0, 0.5]
    return KinematicChain(screw_axes, home, np.array([[-1.0] * 3, [1.0] * 3]), name="gantry")


class TestForwardKinematics(unittest.TestCase):
    """Test PoE forward kinematics."""

    def setUp(self):
        self.chain = make_rb3()

    def test_home_configuration(self):
        """Zero joint angles give the home pose."""
        T = self.chain.compute_forward_kinematics(np.zeros(6))
        np.testing.assert_allclose(T, DEFAULT_HOME, atol=1e-12)

    def test_base_rotation(self):
        """Rotating joint 1 by 90° rotates the TCP about the base z-axis."""
        q = np.array([np.pi / 2, 0, 0, 0, 0, 0])
        T = self.chain.compute_forward_kinematics(q)
        np.testing.assert_allclose(T[:3, 3], [0.00645, 0.0, 0.8753], atol=1e-9)

    def test_result_is_rigid_transform(self):
        q = np.array([0.3, -0.5, 0.9, 0.1, 0.4, -0.2])
        T = self.chain.compute_forward_kinematics(q)
        R = T[:3, :3]
        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-10)
        self.assertAlmostEqual(np.linalg.det(R), 1.0, places=10)
        np.testing.assert_allclose(T[3], [0, 0, 0, 1])

    def test_matrix_exp6_pure_translation(self):
        T = KinematicChain.matrix_exp6(np.array([0, 0, 0, 0.1, 0.2, 0.3]))
        np.testing.assert_allclose(T[:3, :3], np.eye(3))
        np.testing.assert_allclose(T[:3, 3], [0.1, 0.2, 0.3])

    def test_invalid_joint_vector(self):
        with self.assertRaises(KinematicChainError):
            self.chain.compute_forward_kinematics(np.zeros(5))

    def test_invalid_construction(self):
        with self.assertRaises(KinematicChainError):
            KinematicChain(np.zeros((5, 3)), np.eye(4))
        with self.assertRaises(KinematicChainError):
            KinematicChain(np.zeros((6, 2)), np.eye(4), np.array([[1.0, 1.0], [0.0, 0.0]]))


class TestJacobians(unittest.TestCase):
    """Jacobians against finite differences of forward kinematics."""

    def setUp(self):
        self.chain = make_rb3()
        self.q = np.array([0.2, -0.4, 0.8, 0.3, -0.6, 0.5])
        self.eps = 1e-6

    def test_end_effector_jacobian_linear_rows(self):
        J = self.chain.compute_end_effector_jacobian(self.q)
        for i in range(6):
            dq = np.zeros(6)
            dq[i] = self.eps
            p_plus = self.chain.compute_forward_kinematics(self.q + dq)[:3, 3]
            p_minus = self.chain.compute_forward_kinematics(self.q - dq)[:3, 3]
            np.testing.assert_allclose(J[3:, i], (p_plus - p_minus) / (2 * self.eps), atol=1e-6)

    def test_end_effector_jacobian_angular_rows(self):
        J = self.chain.compute_end_effector_jacobian(self.q)
        R = self.chain.compute_forward_kinematics(self.q)[:3, :3]
        for i in range(6):
            dq = np.zeros(6)
            dq[i] = self.eps
            R_plus = self.chain.compute_forward_kinematics(self.q + dq)[:3, :3]
            omega_hat = (R_plus @ R.T - np.eye(3)) / self.eps
            omega = np.array([omega_hat[2, 1], omega_hat[0, 2], omega_hat[1, 0]])
            np.testing.assert_allclose(J[:3, i], omega, atol=1e-5)

    def test_space_jacobian_first_column(self):
        J_s = self.chain.compute_space_jacobian(self.q)
        np.testing.assert_allclose(J_s[:, 0], DEFAULT_SCREW_AXES[:, 0])

    def test_body_jacobian_shape(self):
        self.assertEqual(self.chain.compute_body_jacobian(self.q).shape, (6, 6))


class TestLiveConfiguration(unittest.TestCase):
    """Live positions, lock and end-effector frame."""

    def setUp(self):
        self.chain = make_gantry()

    def test_positions_are_copied(self):
        q = self.chain.get_positions()
        q[0] = 0.7
        np.testing.assert_allclose(self.chain.get_positions(), np.zeros(3))

    def test_set_positions_validates(self):
        with self.assertRaises(KinematicChainError):
            self.chain.set_positions(np.zeros(4))

    def test_mutex_is_reentrant(self):
        self.assertIsInstance(self.chain.mutex, type(threading.RLock()))
        with self.chain.mutex:
            with self.chain.mutex:
                self.chain.set_positions(np.array([0.1, 0.0, 0.0]))

    def test_end_effector_frame_tracks_positions(self):
        frame = self.chain.get_end_effector()
        self.assertIsInstance(frame, EndEffectorFrame)
        self.assertIs(frame.get_skeleton(), self.chain)

        self.chain.set_positions(np.array([0.1, -0.2, 0.3]))
        np.testing.assert_allclose(frame.get_world_transform()[:3, 3], [0.6, -0.2, 0.8])

        J = frame.get_world_jacobian()
        np.testing.assert_allclose(J[:3], np.zeros((3, 3)))
        np.testing.assert_allclose(J[3:], np.eye(3))

    def test_compute_world_transform_does_not_touch_positions(self):
        frame = self.chain.get_end_effector()
        frame.compute_world_transform(np.array([0.5, 0.5, 0.5]))
        np.testing.assert_allclose(self.chain.get_positions(), np.zeros(3))

    def test_joint_positions_include_tcp(self):
        points = make_rb3().compute_joint_positions(np.zeros(6))
        self.assertEqual(len(points), 7)
        np.testing.assert_allclose(points[-1], DEFAULT_HOME[:3, 3])
        np.testing.assert_allclose(points[1], [0.0, 0.0, 0.1453], atol=1e-12)


class TestInverseKinematics(unittest.TestCase):
    """Test seeded DLS inverse kinematics."""

    def test_gantry_reaches_target(self):
        chain = make_gantry()
        ik = InverseKinematics(chain)
        T_target = np.eye(4)
        T_target[:3, 3] = [0.7, 0.3, 0.2]

        q, success = ik.solve(T_target, np.zeros(3))

        self.assertTrue(success)
        np.testing.assert_allclose(q, [0.2, 0.3, -0.3], atol=1e-3)

    def test_rb3_from_nearby_seed(self):
        chain = make_rb3()
        ik = InverseKinematics(chain, {'time_budget': 0.5})
        q_true = np.array([0.3, -0.4, 0.9, 0.2, 0.5, -0.3])
        T_target = chain.compute_forward_kinematics(q_true)

        q, success = ik.solve(T_target, q_true + 0.05)

        self.assertTrue(success)
        T_solution = chain.compute_forward_kinematics(q)
        np.testing.assert_allclose(T_solution[:3, 3], T_target[:3, 3], atol=1e-3)

    def test_unreachable_target_reports_failure(self):
        chain = make_gantry()
        ik = InverseKinematics(chain)
        T_target = np.eye(4)
        T_target[:3, 3] = [5.0, 0.0, 0.0]

        q, success = ik.solve(T_target, np.zeros(3))

        self.assertFalse(success)
        self.assertTrue(np.all(q <= chain.joint_limits[1] + 1e-12))

    def test_rejects_malformed_target(self):
        ik = InverseKinematics(make_gantry())
        with self.assertRaises(InverseKinematicsError):
            ik.solve(np.eye(3))

    def test_statistics(self):
        chain = make_gantry()
        ik = chain.get_end_effector().create_inverse_kinematics(time_budget=0.1)
        self.assertEqual(ik.default_params['time_budget'], 0.1)
        ik.solve(chain.compute_forward_kinematics(np.zeros(3)))
        stats = ik.get_statistics()
        self.assertEqual(stats['total_calls'], 1)
        self.assertEqual(stats['success_rate'], 1.0)

    def test_error_twist_zero_at_target(self):
        T = make_rb3().compute_forward_kinematics(np.array([0.1, 0.2, 0.3, 0.4, 0.5, 0.6]))
        np.testing.assert_allclose(InverseKinematics.compute_error_twist(T, T), np.zeros(6),
                                   atol=1e-9)


class TestChainFromConfig(unittest.TestCase):
    """Loading chain parameters from YAML."""

    def test_joint_limits_in_degrees(self):
        content = (
            "joint_limits:\n"
            "  j1: {min: -90.0, max: 90.0}\n"
            "  j2: {min: -45.0, max: 45.0}\n"
        )
        with tempfile.NamedTemporaryFile('w', suffix='.yaml', delete=False) as f:
            f.write(content)
            path = f.name
        try:
            chain = KinematicChain.from_config(path)
        finally:
            os.unlink(path)

        limits = chain.get_joint_limits()
        self.assertEqual(chain.get_num_dofs(), 6)
        self.assertAlmostEqual(limits[0, 0], -np.pi / 2)
        self.assertAlmostEqual(limits[1, 1], np.pi / 4)
        self.assertAlmostEqual(limits[1, 5], np.pi)

    def test_missing_file_uses_defaults(self):
        chain = KinematicChain.from_config("/nonexistent/constraints.yaml")
        np.testing.assert_allclose(chain.get_screw_axes(), DEFAULT_SCREW_AXES)
        np.testing.assert_allclose(chain.get_home_configuration(), DEFAULT_HOME)

    def test_repository_configuration(self):
        chain = KinematicChain.from_config()
        self.assertEqual(chain.name, "rb3_730es_u")
        self.assertAlmostEqual(chain.get_joint_limits()[1, 2], np.deg2rad(160.0))


if __name__ == '__main__':
    unittest.main()
