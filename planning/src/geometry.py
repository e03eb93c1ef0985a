#!/usr/bin/env python3
"""
Geometric utilities for end-effector offset planning.

Builds the look-at frame of a straight end-effector motion and the pair of
Task Space Regions describing it: a zero-width goal region at the requested
distance and a tube-shaped constraint region around the motion segment.

Author: Robot Control Team
"""

import numpy as np
import logging
from typing import Tuple

from .tsr import TSR

logger = logging.getLogger(__name__)

LOOK_AT_MIN_NORM = 1e-6


class ZeroDirectionVector(ValueError):
    """Offset direction with (near) zero length."""
    pass


def _rotation_from_z_to(direction: np.ndarray) -> np.ndarray:
    """Minimal rotation taking the unit z-axis onto ``direction`` (unit)."""
    z_axis = np.array([0.0, 0.0, 1.0])
    cos_angle = float(np.dot(z_axis, direction))
    axis = np.cross(z_axis, direction)
    sin_angle = float(np.linalg.norm(axis))

    if sin_angle < 1e-12:
        if cos_angle > 0.0:
            return np.eye(3)
        # Antiparallel: half turn about x
        return np.diag([1.0, -1.0, -1.0])

    axis = axis / sin_angle
    K = np.array([
        [0, -axis[2], axis[1]],
        [axis[2], 0, -axis[0]],
        [-axis[1], axis[0], 0]
    ])
    return np.eye(3) + sin_angle * K + (1.0 - cos_angle) * K @ K


def look_at_transform(position_from, direction) -> np.ndarray:
    """
    Frame anchored at ``position_from`` whose z-axis points along ``direction``.

    Raises:
        ZeroDirectionVector: if ``direction`` has norm below 1e-6
    """
    direction = np.asarray(direction, dtype=float)
    direction_norm = np.linalg.norm(direction)
    if direction_norm < LOOK_AT_MIN_NORM:
        raise ZeroDirectionVector(f"Look-at direction too short: norm {direction_norm:.3e}")

    T = np.eye(4)
    T[:3, :3] = _rotation_from_z_to(direction / direction_norm)
    T[:3, 3] = np.asarray(position_from, dtype=float)
    return T


def canonicalize_offset(direction, distance: float) -> Tuple[np.ndarray, float]:
    """
    Unit direction and non-negative distance describing the same motion.

    Raises:
        ZeroDirectionVector: if ``direction`` has zero length
    """
    direction = np.asarray(direction, dtype=float)
    if direction.shape != (3,):
        raise ValueError(f"Direction must be a 3-vector, got shape {direction.shape}")
    direction_norm = np.linalg.norm(direction)
    if direction_norm == 0.0:
        raise ZeroDirectionVector("Direction vector is a zero vector")

    direction = direction / direction_norm
    distance = float(distance)
    if distance < 0.0:
        direction = -direction
        distance = -distance
    return direction, distance


def compute_offset_goal_and_constraint(body_frame, direction, distance: float,
                                       position_tolerance: float = 1e-3,
                                       angular_tolerance: float = 1e-3) -> Tuple[TSR, TSR]:
    """
    Goal and constraint regions for moving ``body_frame`` by ``distance`` along ``direction``.

    Returns:
        goal_tsr: zero-width region at the target pose
        constraint_tsr: region allowing ``position_tolerance`` cross-track,
            [0, distance] along the motion and ``angular_tolerance`` on every
            rotation axis
    """
    direction, distance = canonicalize_offset(direction, distance)

    H_world_ee = body_frame.get_world_transform()
    H_world_w = look_at_transform(H_world_ee[:3, 3], direction)
    H_w_ee = np.linalg.inv(H_world_w) @ H_world_ee

    H_w_end = np.eye(4)
    H_w_end[2, 3] = distance

    goal_tsr = TSR(T0_w=H_world_w @ H_w_end, Tw_e=H_w_ee, Bw=np.zeros((6, 2)))

    Bw = np.array([
        [-position_tolerance, position_tolerance],
        [-position_tolerance, position_tolerance],
        [0.0, distance],
        [-angular_tolerance, angular_tolerance],
        [-angular_tolerance, angular_tolerance],
        [-angular_tolerance, angular_tolerance],
    ])
    constraint_tsr = TSR(T0_w=H_world_w, Tw_e=H_w_ee, Bw=Bw)

    logger.debug(f"Offset goal at {distance:.4f} along {np.round(direction, 4)}")
    return goal_tsr, constraint_tsr
