#!/usr/bin/env python3
"""
Task Space Region (TSR) Module

A TSR describes a set of end-effector poses: a reference frame ``T0_w``, an
end-effector offset ``Tw_e`` and a 6x2 bounds matrix ``Bw`` on the pose of the
end-effector offset frame expressed in ``T0_w``:

    rows   x, y, z, roll, pitch, yaw      (R = Rz(yaw) Ry(pitch) Rx(roll))
    cols   min, max

Key Features:
- Uniform pose sampling (T0_w · T(offset) · Tw_e)
- Per-axis bound deviation and membership test
- Damped Newton projection of a pose onto the region
- Cyclic wrapper treating rotational bounds on the circle

Author: Robot Control Team
"""

import numpy as np
import logging
from typing import Optional
from scipy.spatial.transform import Rotation

from .state_space import wrap_angle

logger = logging.getLogger(__name__)


class ProjectionDidNotConverge(Exception):
    """Pose projection ran out of iterations before reaching the tolerance."""
    pass


def _check_transform(T, name: str) -> np.ndarray:
    T = np.asarray(T, dtype=float)
    if T.shape != (4, 4):
        raise ValueError(f"{name} must be a 4x4 homogeneous transform, got {T.shape}")
    if not np.allclose(T[3], [0.0, 0.0, 0.0, 1.0]):
        raise ValueError(f"{name} last row must be [0, 0, 0, 1]")
    return T


def pose_from_coordinates(coordinates: np.ndarray) -> np.ndarray:
    """Homogeneous transform from [x, y, z, roll, pitch, yaw]."""
    T = np.eye(4)
    T[:3, :3] = Rotation.from_euler('xyz', coordinates[3:]).as_matrix()
    T[:3, 3] = coordinates[:3]
    return T


def coordinates_from_pose(T: np.ndarray) -> np.ndarray:
    """[x, y, z, roll, pitch, yaw] of a homogeneous transform."""
    rpy = Rotation.from_matrix(T[:3, :3]).as_euler('xyz')
    return np.concatenate([T[:3, 3], rpy])


def _nearest_coordinates(region, coordinates: np.ndarray) -> np.ndarray:
    """
    Euler triple of the same rotation closest to the region's bounds.

    (roll, pitch, yaw) and (roll + π, π - pitch, yaw + π) describe the same
    rotation; extraction only returns pitch in [-π/2, π/2], so bounds on
    pitch beyond that range are only reachable through the second triple.
    """
    alternate = coordinates.copy()
    alternate[3:] = wrap_angle(coordinates[3:] + np.array([np.pi, np.pi - 2 * coordinates[4], np.pi]))
    primary_error = np.linalg.norm(region.get_coordinate_deviation(coordinates))
    alternate_error = np.linalg.norm(region.get_coordinate_deviation(alternate))
    return alternate if alternate_error < primary_error else coordinates


def _newton_project(region, pose: np.ndarray, tolerance: float, max_iterations: int,
                    damping: float) -> np.ndarray:
    """
    Damped Newton iterations on the bound deviation in TSR coordinates.

    The deviation Jacobian is diagonal: 1 on violated axes, 0 elsewhere.
    """
    coordinates = region.pose_to_coordinates(pose)

    for iteration in range(max_iterations + 1):
        deviation = region.get_coordinate_deviation(coordinates)
        error = np.linalg.norm(deviation)
        if error <= tolerance:
            logger.debug(f"TSR projection converged after {iteration} iteration(s)")
            return region.coordinates_to_pose(coordinates)
        if iteration == max_iterations:
            break

        J = np.diag((deviation != 0.0).astype(float))
        step = J.T @ np.linalg.solve(J @ J.T + damping ** 2 * np.eye(6), deviation)
        coordinates = coordinates - step

    raise ProjectionDidNotConverge(
        f"Projection did not converge in {max_iterations} iteration(s), "
        f"residual {error:.3e} > tolerance {tolerance:.3e}"
    )


class TSR:
    """Task Space Region with sampling, testing and projection."""

    def __init__(self, T0_w: Optional[np.ndarray] = None, Tw_e: Optional[np.ndarray] = None,
                 Bw: Optional[np.ndarray] = None, test_tolerance: float = 1e-6):
        self.T0_w = _check_transform(np.eye(4) if T0_w is None else T0_w, "T0_w")
        self.Tw_e = _check_transform(np.eye(4) if Tw_e is None else Tw_e, "Tw_e")
        self.Bw = np.zeros((6, 2)) if Bw is None else np.array(Bw, dtype=float)
        self.test_tolerance = test_tolerance
        self.validate()

    def validate(self):
        """Raise ValueError for malformed bounds."""
        if self.Bw.shape != (6, 2):
            raise ValueError(f"Bw must have shape (6, 2), got {self.Bw.shape}")
        if not np.all(np.isfinite(self.Bw)):
            raise ValueError("Bw must be finite")
        bad_rows = np.where(self.Bw[:, 0] > self.Bw[:, 1])[0]
        if bad_rows.size:
            raise ValueError(f"Lower bound greater than upper bound in Bw row(s) {bad_rows.tolist()}")

    def can_sample(self) -> bool:
        return True

    def sample(self, rng) -> np.ndarray:
        """Draw a pose uniformly over the bounds."""
        offset = rng.uniform(self.Bw[:, 0], self.Bw[:, 1])
        return self.coordinates_to_pose(offset)

    def extract_coordinates(self, pose: np.ndarray) -> np.ndarray:
        """Coordinates of the offset frame, Tw_s = inv(T0_w) · pose · inv(Tw_e)."""
        Tw_s = np.linalg.inv(self.T0_w) @ pose @ np.linalg.inv(self.Tw_e)
        return coordinates_from_pose(Tw_s)

    def pose_to_coordinates(self, pose: np.ndarray) -> np.ndarray:
        """Offset frame coordinates, choosing the Euler triple nearest the bounds."""
        return _nearest_coordinates(self, self.extract_coordinates(pose))

    def coordinates_to_pose(self, coordinates: np.ndarray) -> np.ndarray:
        return self.T0_w @ pose_from_coordinates(coordinates) @ self.Tw_e

    def get_coordinate_deviation(self, coordinates: np.ndarray) -> np.ndarray:
        """Signed distance of each coordinate outside its [min, max] interval."""
        lower, upper = self.Bw[:, 0], self.Bw[:, 1]
        return coordinates - np.clip(coordinates, lower, upper)

    def get_bound_deviation(self, pose: np.ndarray) -> np.ndarray:
        return self.get_coordinate_deviation(self.pose_to_coordinates(pose))

    def is_satisfied(self, pose: np.ndarray, tolerance: Optional[float] = None) -> bool:
        tolerance = self.test_tolerance if tolerance is None else tolerance
        return bool(np.linalg.norm(self.get_bound_deviation(pose)) <= tolerance)

    def project(self, pose: np.ndarray, tolerance: float = 1e-6, max_iterations: int = 20,
                damping: float = 1e-3) -> np.ndarray:
        """
        Closest pose inside the region found by damped Newton iterations.

        Raises:
            ProjectionDidNotConverge: if the residual is still above tolerance
                after ``max_iterations`` updates
        """
        return _newton_project(self, np.asarray(pose, dtype=float), tolerance,
                               max_iterations, damping)

    def __repr__(self):
        return f"TSR(T0_w=\n{self.T0_w},\nTw_e=\n{self.Tw_e},\nBw=\n{self.Bw})"


class CyclicTSR:
    """
    Decorator comparing a TSR's rotational coordinates on the circle.

    An extracted angle is shifted by multiples of 2π to the representative
    closest to its bound interval before the deviation is measured, so a yaw
    bound of [3.0, 3.3] accepts a pose whose extracted yaw is -3.08.
    """

    def __init__(self, tsr: TSR):
        self.tsr = tsr

    @property
    def T0_w(self) -> np.ndarray:
        return self.tsr.T0_w

    @property
    def Tw_e(self) -> np.ndarray:
        return self.tsr.Tw_e

    @property
    def Bw(self) -> np.ndarray:
        return self.tsr.Bw

    def can_sample(self) -> bool:
        return self.tsr.can_sample()

    def sample(self, rng) -> np.ndarray:
        return self.tsr.sample(rng)

    def pose_to_coordinates(self, pose: np.ndarray) -> np.ndarray:
        return _nearest_coordinates(self, self.tsr.extract_coordinates(pose))

    def coordinates_to_pose(self, coordinates: np.ndarray) -> np.ndarray:
        return self.tsr.coordinates_to_pose(coordinates)

    def get_coordinate_deviation(self, coordinates: np.ndarray) -> np.ndarray:
        deviation = self.tsr.get_coordinate_deviation(coordinates)
        lower, upper = self.Bw[3:, 0], self.Bw[3:, 1]
        angles = coordinates[3:]

        center = 0.5 * (lower + upper)
        # Representative of each angle nearest the middle of its interval
        shifted = center + wrap_angle(angles - center)
        rotational = shifted - np.clip(shifted, lower, upper)
        rotational = np.where(upper - lower >= 2 * np.pi, 0.0, rotational)

        deviation[3:] = rotational
        return deviation

    def get_bound_deviation(self, pose: np.ndarray) -> np.ndarray:
        return self.get_coordinate_deviation(self.pose_to_coordinates(pose))

    def is_satisfied(self, pose: np.ndarray, tolerance: Optional[float] = None) -> bool:
        tolerance = self.tsr.test_tolerance if tolerance is None else tolerance
        return bool(np.linalg.norm(self.get_bound_deviation(pose)) <= tolerance)

    def project(self, pose: np.ndarray, tolerance: float = 1e-6, max_iterations: int = 20,
                damping: float = 1e-3) -> np.ndarray:
        return _newton_project(self, np.asarray(pose, dtype=float), tolerance,
                               max_iterations, damping)

    def __repr__(self):
        return f"CyclicTSR({self.tsr!r})"

