#!/usr/bin/env python3
"""
Vector Field Planning Module

Moves the end-effector along a straight line by integrating a Cartesian twist
field through the damped pseudo-inverse of the end-effector Jacobian.

The field pushes along the requested direction and corrects cross-track and
orientation drift. Integration stops on overshoot, deviation beyond tolerance,
joint limits, collision, stall or budget expiry; the trajectory returned ends
at the last integration point whose travelled distance lies in
[min_distance, max_distance].

Author: Robot Control Team
"""

import numpy as np
import logging
from typing import Optional, List
from scipy.spatial.transform import Rotation

from .path_planner import PlanningResult, PlanningStatus, make_trajectory

logger = logging.getLogger(__name__)


class VectorFieldPlanner:
    """Straight-line end-effector motion by vector field integration."""

    def __init__(self, state_space, skeleton, body_frame, testable,
                 initial_step_size: float = 1e-3,
                 joint_limit_tolerance: float = 1e-3,
                 constraint_check_resolution: float = 1e-3,
                 linear_velocity: float = 1.0,
                 position_gain: float = 5.0,
                 angular_gain: float = 5.0,
                 damping: float = 1e-3):
        """
        Args:
            state_space: JointStateSpace of the skeleton
            skeleton: Kinematic chain whose live configuration is integrated
            body_frame: End-effector frame to move
            testable: Collision oracle checked at every integration point
            initial_step_size: Integration time step
            joint_limit_tolerance: Required clearance from joint limits
            constraint_check_resolution: Max joint displacement between checks
            linear_velocity: Speed along the motion direction
            position_gain: Cross-track correction gain
            angular_gain: Orientation correction gain
            damping: Damping of the Jacobian pseudo-inverse
        """
        if initial_step_size <= 0.0 or constraint_check_resolution <= 0.0:
            raise ValueError("Step size and check resolution must be positive")
        self.state_space = state_space
        self.skeleton = skeleton
        self.body_frame = body_frame
        self.testable = testable
        self.initial_step_size = initial_step_size
        self.joint_limit_tolerance = joint_limit_tolerance
        self.constraint_check_resolution = constraint_check_resolution
        self.linear_velocity = linear_velocity
        self.position_gain = position_gain
        self.angular_gain = angular_gain
        self.damping = damping

    def plan_to_end_effector_offset(self, direction: np.ndarray, min_distance: float,
                                    max_distance: float, position_tolerance: float,
                                    angular_tolerance: float, budget,
                                    result: Optional[PlanningResult] = None):
        """
        Integrate the field from the skeleton's current configuration.

        Args:
            direction: Unit motion direction in the world frame
            min_distance: Smallest acceptable travelled distance
            max_distance: Largest acceptable travelled distance
            position_tolerance: Allowed cross-track deviation
            angular_tolerance: Allowed orientation deviation (rad)
            budget: Shared time budget
            result: Optional report of the outcome

        Returns:
            Interpolated trajectory, or None if no point in range was reached
        """
        result = result if result is not None else PlanningResult()
        space = self.state_space
        direction = np.asarray(direction, dtype=float)

        if min_distance > max_distance:
            raise ValueError(f"min_distance {min_distance} exceeds max_distance {max_distance}")

        state = space.get_scoped_state_from_skeleton(self.skeleton)
        q = space.convert_to_vector(state)
        T_start = self.body_frame.get_world_transform()
        p_start, R_start = T_start[:3, 3], T_start[:3, :3]

        lower = space.lower + self.joint_limit_tolerance
        upper = space.upper - self.joint_limit_tolerance

        path: List[np.ndarray] = [q.copy()]
        times: List[float] = [0.0]
        cached_length = 1 if min_distance <= 0.0 else 0
        t = 0.0
        status, message = PlanningStatus.FAILED, ""

        while True:
            if budget.is_expired():
                status, message = PlanningStatus.TIMEOUT, "Time limit reached during integration"
                break

            T = self.body_frame.compute_world_transform(q)
            displacement = T[:3, 3] - p_start
            moved = float(np.dot(displacement, direction))
            cross_track = displacement - moved * direction
            rotation_error = Rotation.from_matrix(R_start @ T[:3, :3].T).as_rotvec()

            if np.linalg.norm(cross_track) > position_tolerance:
                status, message = PlanningStatus.DEVIATION, (
                    f"Cross-track deviation {np.linalg.norm(cross_track):.4f} exceeds tolerance")
                break
            if np.linalg.norm(rotation_error) > angular_tolerance:
                status, message = PlanningStatus.DEVIATION, (
                    f"Orientation deviation {np.linalg.norm(rotation_error):.4f} exceeds tolerance")
                break
            if moved > max_distance:
                status, message = PlanningStatus.SUCCESS, f"Reached maximum distance {max_distance:.4f}"
                break
            if moved >= min_distance:
                cached_length = len(path)

            twist = np.concatenate([
                self.angular_gain * rotation_error,
                self.linear_velocity * direction - self.position_gain * cross_track,
            ])
            qd = self._joint_velocity(self.body_frame.compute_world_jacobian(q), twist)

            dq = qd * self.initial_step_size
            largest = np.max(np.abs(dq))
            if largest < 1e-12:
                status, message = PlanningStatus.FAILED, "Vector field stalled"
                break
            dt = self.initial_step_size
            if largest > self.constraint_check_resolution:
                scale = self.constraint_check_resolution / largest
                dq, dt = dq * scale, dt * scale

            q_next = q + dq
            if np.any(q_next < lower) or np.any(q_next > upper):
                status, message = PlanningStatus.JOINT_LIMIT, "Joint limit reached"
                break

            space.convert_from_vector(q_next, state)
            if not self.testable.is_satisfied(state):
                status, message = PlanningStatus.COLLISION, "Collision detected during integration"
                break

            space.set_state(self.skeleton, state)
            q = q_next
            t += dt
            path.append(q.copy())
            times.append(t)

        if cached_length == 0:
            result.report(PlanningStatus.FAILED if status == PlanningStatus.SUCCESS else status,
                          message or "Minimum distance not reached")
            logger.info(f"Vector field planning failed: {result.message}")
            return None

        trajectory = make_trajectory(space, path[:cached_length], times[:cached_length])

        result.report(PlanningStatus.SUCCESS,
                      f"Vector field path with {cached_length} waypoints ({message})")
        logger.info(f"Vector field planning succeeded with {cached_length} waypoints")
        return trajectory

    def _joint_velocity(self, J: np.ndarray, twist: np.ndarray) -> np.ndarray:
        """Damped least squares joint velocity for a desired twist."""
        JJt = J @ J.T
        return J.T @ np.linalg.solve(JJt + self.damping ** 2 * np.eye(JJt.shape[0]), twist)
