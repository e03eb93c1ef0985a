#!/usr/bin/env python3
"""
Unit Tests for Constrained Sampling and Frame Constraints

Test suite covering:
- IK-based sampling of goal regions and its lifetime trial cap
- Frame goal tests, constraint Jacobians and manifold projection
- Random source cloning

Author: Robot Control Team
"""

import sys
import os
import unittest
import numpy as np
from unittest.mock import Mock

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
sys.path.insert(0, os.path.dirname(__file__))

from planning.src.rng import RNG
from planning.src.state_space import JointStateSpace
from planning.src.tsr import TSR
from planning.src.constraint_sampler import InverseKinematicsSampleable
from planning.src.frame_constraints import (
    FrameTestable, FrameDifferentiable, NewtonsMethodProjectable
)
from planning_fixtures import make_gantry, translation


class TestRNG(unittest.TestCase):
    """Test the random source."""

    def test_seeded_streams_repeat(self):
        a, b = RNG(42), RNG(42)
        self.assertEqual([a.sample() for _ in range(5)], [b.sample() for _ in range(5)])

    def test_clone_is_independent(self):
        rng = RNG(42)
        clone = rng.clone()
        first = clone.sample()
        rng.sample()
        self.assertEqual(RNG(42).clone().sample(), first)

    def test_uniform_respects_bounds(self):
        values = RNG(1).uniform(np.array([0.0, 2.0]), np.array([1.0, 2.0]))
        self.assertTrue(0.0 <= values[0] <= 1.0)
        self.assertEqual(values[1], 2.0)


class TestInverseKinematicsSampleable(unittest.TestCase):
    """Test IK sampling of goal regions."""

    def setUp(self):
        self.chain = make_gantry()
        self.space = JointStateSpace.from_skeleton(self.chain)
        self.ik = self.chain.get_end_effector().create_inverse_kinematics()
        Bw = np.zeros((6, 2))
        Bw[0] = [-0.1, 0.1]
        self.tsr = TSR(T0_w=translation(0.7, 0.2, 0.5), Bw=Bw)

    def test_samples_reach_region(self):
        sampleable = InverseKinematicsSampleable(self.space, self.chain, self.tsr, RNG(0),
                                                 self.ik, max_num_trials=5)
        generator = sampleable.create_sample_generator()
        state = self.space.create_state()
        frame = self.chain.get_end_effector()

        self.assertTrue(generator.sample(state))
        pose = frame.compute_world_transform(state.values)
        self.assertTrue(self.tsr.is_satisfied(pose, 1e-3))
        # Successful samples are applied to the skeleton
        np.testing.assert_allclose(self.chain.get_positions(), state.values)

    def test_lifetime_trial_cap(self):
        sampleable = InverseKinematicsSampleable(self.space, self.chain, self.tsr, RNG(0),
                                                 self.ik, max_num_trials=3)
        generator = sampleable.create_sample_generator()
        state = self.space.create_state()

        results = [generator.sample(state) for _ in range(3)]
        self.assertTrue(all(results))
        self.assertFalse(generator.can_sample())
        self.assertFalse(generator.sample(state))
        self.assertEqual(generator.num_trials, 3)

        # A new generator starts a new lifetime
        self.assertTrue(sampleable.create_sample_generator().can_sample())

    def test_failed_ik_counts_as_trial(self):
        ik = Mock()
        ik.solve.return_value = (np.zeros(3), False)
        sampleable = InverseKinematicsSampleable(self.space, self.chain, self.tsr, RNG(0),
                                                 ik, max_num_trials=2)
        generator = sampleable.create_sample_generator()
        state = self.space.create_state()

        self.assertFalse(generator.sample(state))
        self.assertFalse(generator.sample(state))
        self.assertFalse(generator.can_sample())
        self.assertEqual(ik.solve.call_count, 2)
        self.assertEqual(generator.num_successes, 0)

    def test_ik_is_seeded_within_bounds(self):
        ik = Mock()
        ik.solve.return_value = (np.zeros(3), True)
        sampleable = InverseKinematicsSampleable(self.space, self.chain, self.tsr, RNG(5),
                                                 ik, max_num_trials=4)
        generator = sampleable.create_sample_generator()
        state = self.space.create_state()
        for _ in range(4):
            generator.sample(state)

        for call in ik.solve.call_args_list:
            pose, seed = call[0]
            self.assertEqual(pose.shape, (4, 4))
            self.assertTrue(np.all(np.abs(seed) <= 1.0))

    def test_rejects_invalid_arguments(self):
        with self.assertRaises(ValueError):
            InverseKinematicsSampleable(self.space, self.chain, None, RNG(0), self.ik, 3)
        with self.assertRaises(ValueError):
            InverseKinematicsSampleable(self.space, self.chain, self.tsr, RNG(0), self.ik, 0)


class TestFrameConstraints(unittest.TestCase):
    """Test frame testables, differentiables and projection."""

    def setUp(self):
        self.chain = make_gantry()
        self.space = JointStateSpace.from_skeleton(self.chain)
        self.frame = self.chain.get_end_effector()
        # Plane z = 0.5 with free x and y
        Bw = np.zeros((6, 2))
        Bw[0] = [-1.0, 1.0]
        Bw[1] = [-1.0, 1.0]
        self.plane = TSR(T0_w=translation(0.5, 0.0, 0.5), Bw=Bw)

    def test_frame_testable(self):
        testable = FrameTestable(self.space, self.frame, self.plane)
        self.assertTrue(testable.is_satisfied(self.space.create_state_from_vector([0.3, -0.2, 0.0])))
        self.assertFalse(testable.is_satisfied(self.space.create_state_from_vector([0.0, 0.0, 0.1])))

    def test_differentiable_value_and_jacobian(self):
        differentiable = FrameDifferentiable(self.space, self.frame, self.plane)
        q = np.array([0.1, 0.2, 0.3])
        np.testing.assert_allclose(differentiable.get_value(q), [0, 0, 0.3, 0, 0, 0], atol=1e-12)

        J = differentiable.get_jacobian(q)
        self.assertEqual(J.shape, (6, 3))
        np.testing.assert_allclose(J[2], [0.0, 0.0, 1.0], atol=1e-6)
        np.testing.assert_allclose(J[:2], np.zeros((2, 3)), atol=1e-6)

    def test_projection_onto_plane(self):
        projectable = NewtonsMethodProjectable(FrameDifferentiable(self.space, self.frame, self.plane))
        state = self.space.create_state_from_vector([0.2, -0.1, 0.4])
        out = self.space.create_state()

        self.assertTrue(projectable.project(state, out))
        np.testing.assert_allclose(out.values, [0.2, -0.1, 0.0], atol=1e-4)
        # Input is left untouched
        np.testing.assert_allclose(state.values, [0.2, -0.1, 0.4])

    def test_projection_failure(self):
        projectable = NewtonsMethodProjectable(
            FrameDifferentiable(self.space, self.frame, self.plane), max_iterations=0)
        state = self.space.create_state_from_vector([0.0, 0.0, 0.4])
        out = self.space.create_state_from_vector([0.9, 0.9, 0.9])

        self.assertFalse(projectable.project(state, out))
        np.testing.assert_allclose(out.values, [0.9, 0.9, 0.9])


if __name__ == '__main__':
    unittest.main()
