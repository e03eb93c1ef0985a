#!/usr/bin/env python3
"""
Frame Constraint Module

Lifts a Task Space Region from end-effector poses to joint configurations:
- FrameTestable: goal test on the end-effector pose
- FrameDifferentiable: bound deviation and its joint-space Jacobian
- NewtonsMethodProjectable: projection of a configuration onto the constraint
  manifold, used by the constrained bidirectional planner

Author: Robot Control Team
"""

import numpy as np
import logging

logger = logging.getLogger(__name__)


class FrameTestable:
    """True when the end-effector pose of a configuration lies in the region."""

    def __init__(self, state_space, body_frame, tsr, tolerance: float = 1e-3):
        self.state_space = state_space
        self.body_frame = body_frame
        self.tsr = tsr
        self.tolerance = tolerance

    def is_satisfied(self, state) -> bool:
        pose = self.body_frame.compute_world_transform(self.state_space.convert_to_vector(state))
        return self.tsr.is_satisfied(pose, self.tolerance)


class FrameDifferentiable:
    """TSR bound deviation of the end-effector pose as a function of joint values."""

    def __init__(self, state_space, body_frame, tsr, step: float = 1e-6):
        self.state_space = state_space
        self.body_frame = body_frame
        self.tsr = tsr
        self.step = step

    def get_value(self, q: np.ndarray) -> np.ndarray:
        return self.tsr.get_bound_deviation(self.body_frame.compute_world_transform(q))

    def get_jacobian(self, q: np.ndarray) -> np.ndarray:
        """Central-difference Jacobian (6 x n_joints)."""
        J = np.zeros((6, q.shape[0]))
        for i in range(q.shape[0]):
            delta = np.zeros_like(q)
            delta[i] = self.step
            J[:, i] = (self.get_value(q + delta) - self.get_value(q - delta)) / (2 * self.step)
        return J


class NewtonsMethodProjectable:
    """Projects configurations onto the zero set of a FrameDifferentiable."""

    def __init__(self, differentiable: FrameDifferentiable, tolerance: float = 1e-4,
                 max_iterations: int = 20):
        self.differentiable = differentiable
        self.tolerance = tolerance
        self.max_iterations = int(max_iterations)

    def project(self, state, out_state) -> bool:
        """
        Newton iterations q ← q − J⁺·value. Writes ``out_state`` on success.
        """
        space = self.differentiable.state_space
        q = space.convert_to_vector(state)

        for iteration in range(self.max_iterations + 1):
            value = self.differentiable.get_value(q)
            if np.all(np.abs(value) <= self.tolerance):
                space.convert_from_vector(q, out_state)
                return True
            if iteration == self.max_iterations:
                break
            J = self.differentiable.get_jacobian(q)
            q = q - np.linalg.pinv(J) @ value

        logger.debug(f"Manifold projection failed, residual {np.max(np.abs(value)):.3e}")
        return False
