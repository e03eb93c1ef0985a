#!/usr/bin/env python3
"""
Constrained Sampler Module

Produces joint configurations whose end-effector pose lies in a Task Space
Region: every draw samples a pose from the region and asks the IK solver for a
configuration reaching it, seeded from a random configuration within bounds.

Author: Robot Control Team
"""

import logging

logger = logging.getLogger(__name__)


class InverseKinematicsSampleable:
    """
    Sampleable of configurations reaching poses of a pose sampleable (TSR).

    ``max_num_trials`` caps the number of IK attempts a generator makes over
    its whole lifetime.
    """

    def __init__(self, state_space, skeleton, pose_sampleable, rng, ik_solver,
                 max_num_trials: int):
        if pose_sampleable is None:
            raise ValueError("Pose sampleable is required")
        if max_num_trials < 1:
            raise ValueError(f"max_num_trials must be positive, got {max_num_trials}")

        self.state_space = state_space
        self.skeleton = skeleton
        self.pose_sampleable = pose_sampleable
        self.rng = rng
        self.ik_solver = ik_solver
        self.max_num_trials = int(max_num_trials)

    def create_sample_generator(self) -> "IKSampleGenerator":
        return IKSampleGenerator(self, self.rng.clone())


class IKSampleGenerator:
    """Stateful draw sequence of an InverseKinematicsSampleable."""

    def __init__(self, sampleable: InverseKinematicsSampleable, rng):
        self.sampleable = sampleable
        self.rng = rng
        self.num_trials = 0
        self.num_successes = 0
        self._seed_state = sampleable.state_space.create_state()

    def can_sample(self) -> bool:
        return (self.num_trials < self.sampleable.max_num_trials and
                self.sampleable.pose_sampleable.can_sample())

    def sample(self, out_state) -> bool:
        """
        Try one pose draw and one seeded IK solve.

        On success the configuration is written to ``out_state`` and applied to
        the skeleton. Returns False when IK fails or the trial cap is reached.
        """
        if not self.can_sample():
            return False
        self.num_trials += 1

        space = self.sampleable.state_space
        pose = self.sampleable.pose_sampleable.sample(self.rng)
        space.sample_within_bounds(self.rng, self._seed_state)

        q, success = self.sampleable.ik_solver.solve(pose, space.convert_to_vector(self._seed_state))
        if not success:
            logger.debug(f"IK trial {self.num_trials}/{self.sampleable.max_num_trials} failed")
            return False

        space.convert_from_vector(q, out_state)
        space.set_state(self.sampleable.skeleton, out_state)
        self.num_successes += 1
        return True
