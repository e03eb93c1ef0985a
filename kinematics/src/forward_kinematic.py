#!/usr/bin/env python3
"""
Kinematic Chain Module for Serial Manipulators

This module models the robot "skeleton" the motion planners operate on: a serial
chain described with the Product of Exponentials (PoE) formulation, together with
its live joint configuration and the lock that serializes access to it.

Key Features:
- Product of Exponentials (PoE) forward kinematics
- Space and end-effector Jacobians
- Live joint configuration guarded by a re-entrant lock
- Joint limits loaded from the constraints YAML file
- End-effector frame handle used by the planners (pose, Jacobian, IK)

Author: Robot Control Team
"""

import numpy as np
from numpy.linalg import norm, inv
import logging
import threading
from typing import Tuple, Optional, List
import os
import yaml

logger = logging.getLogger(__name__)


class KinematicChainError(Exception):
    """Raised for malformed chain parameters or joint vectors."""
    pass


# RB3-730ES-U parameters, used when the configuration has no robot section
DEFAULT_SCREW_AXES = np.array([
    # Joint:    1      2         3         4          5         6
    [0.,     0.,      0.,       0.,       0.,       0.      ],  # ω_x
    [0.,     1.,      1.,       0.,       1.,       0.      ],  # ω_y
    [1.,     0.,      0.,       1.,       0.,       1.      ],  # ω_z
    [0.,    -0.1453, -0.4313,  -0.00645, -0.7753,  -0.00645 ],  # v_x
    [0.,     0.,      0.,       0.,       0.,       0.      ],  # v_y
    [0.,     0.,      0.,       0.,       0.,       0.      ]   # v_z
])

DEFAULT_HOME = np.array([
    [1., 0., 0.,  0.0     ],
    [0., 1., 0., -0.00645],
    [0., 0., 1.,  0.8753  ],
    [0., 0., 0.,  1.0     ]
])


def get_default_constraints_path() -> str:
    """Get default path to constraints file."""
    possible_paths = [
        os.path.join(os.path.dirname(__file__), "..", "..", "config", "constraints.yaml"),
        os.path.join(os.path.dirname(__file__), "..", "config", "constraints.yaml"),
        os.path.join(os.path.dirname(__file__), "constraints.yaml")
    ]

    for path in possible_paths:
        if os.path.exists(path):
            return path

    # Return first path as default even if it doesn't exist
    return possible_paths[0]


class KinematicChain:
    """Serial chain with PoE kinematics and a live, lockable joint configuration."""

    def __init__(self, screw_axes: np.ndarray, home: np.ndarray,
                 joint_limits: Optional[np.ndarray] = None, name: str = "manipulator"):
        """
        Initialize the chain.

        Args:
            screw_axes: Screw axes matrix (6 x n_joints), columns [ω, v] in the base frame
            home: Home configuration of the end-effector (4 x 4)
            joint_limits: Joint limits array (2 x n_joints), defaults to ±π
            name: Human readable name used in log messages
        """
        self.S = np.asarray(screw_axes, dtype=float)
        self.M = np.asarray(home, dtype=float)
        if self.S.ndim != 2 or self.S.shape[0] != 6:
            raise KinematicChainError(f"Screw axes must have shape (6, n), got {self.S.shape}")
        if self.M.shape != (4, 4):
            raise KinematicChainError(f"Home configuration must be 4x4, got {self.M.shape}")

        self.n_joints = self.S.shape[1]
        if self.n_joints == 0:
            raise KinematicChainError("No active joints found in the kinematic chain.")

        if joint_limits is None:
            joint_limits = np.vstack([np.full(self.n_joints, -np.pi),
                                      np.full(self.n_joints, np.pi)])
        self.joint_limits = np.asarray(joint_limits, dtype=float)
        if self.joint_limits.shape != (2, self.n_joints):
            raise KinematicChainError(
                f"Joint limits must have shape (2, {self.n_joints}), got {self.joint_limits.shape}")
        if np.any(self.joint_limits[0] > self.joint_limits[1]):
            raise KinematicChainError("Lower joint limit exceeds upper joint limit")

        self.name = name
        self.mutex = threading.RLock()
        self._positions = np.clip(np.zeros(self.n_joints),
                                  self.joint_limits[0], self.joint_limits[1])

        logger.info(f"Kinematic chain '{name}' initialized with {self.n_joints} joints")

    @classmethod
    def from_config(cls, constraints_path: Optional[str] = None) -> "KinematicChain":
        """
        Build a chain from the constraints YAML file.

        The optional ``robot`` section provides ``screw_axes`` (6 rows) and ``home``;
        ``joint_limits`` entries j1..jn are given in degrees. Missing sections fall
        back to the RB3-730ES-U parameters and ±π limits.
        """
        constraints_path = constraints_path or get_default_constraints_path()
        config = _load_yaml(constraints_path)

        robot = config.get('robot', {}) or {}
        screw_axes = np.array(robot.get('screw_axes', DEFAULT_SCREW_AXES), dtype=float)
        home = np.array(robot.get('home', DEFAULT_HOME), dtype=float)
        name = robot.get('name', 'rb3_730es_u')

        joint_limits = _parse_joint_limits(config.get('joint_limits', {}) or {},
                                           screw_axes.shape[1])
        return cls(screw_axes, home, joint_limits, name=name)

    # ------------------------------------------------------------------
    # Live configuration
    # ------------------------------------------------------------------

    def get_num_dofs(self) -> int:
        return self.n_joints

    def get_positions(self) -> np.ndarray:
        """Current joint positions (copy)."""
        return self._positions.copy()

    def set_positions(self, q: np.ndarray):
        """Overwrite the live joint positions."""
        self._positions = self._validate_joint_vector(q).copy()

    def get_end_effector(self) -> "EndEffectorFrame":
        """Handle on the end-effector frame of this chain."""
        return EndEffectorFrame(self)

    # ------------------------------------------------------------------
    # Kinematics
    # ------------------------------------------------------------------

    @staticmethod
    def skew_symmetric(w: np.ndarray) -> np.ndarray:
        """
        Compute skew-symmetric matrix from 3D vector.

        Args:
            w: 3D vector

        Returns:
            3x3 skew-symmetric matrix
        """
        return np.array([
            [0, -w[2], w[1]],
            [w[2], 0, -w[0]],
            [-w[1], w[0], 0]
        ])

    @staticmethod
    def matrix_exp6(xi_theta: np.ndarray) -> np.ndarray:
        """
        Compute matrix exponential of a 6D screw vector.

        Uses the closed-form solution for SE(3) matrix exponential:
        exp([ξ]θ) = [exp([ω]θ)  G·v·θ]
                    [0         1     ]

        Args:
            xi_theta: 6D screw vector [ω·θ, v·θ]

        Returns:
            4x4 homogeneous transformation matrix
        """
        w_theta, v_theta = xi_theta[:3], xi_theta[3:]
        theta = norm(w_theta)

        T = np.eye(4)

        if theta < 1e-12:
            # Pure translation (prismatic joint or zero motion)
            T[:3, 3] = v_theta
            return T

        w = w_theta / theta
        v = v_theta / theta
        w_hat = KinematicChain.skew_symmetric(w)
        w_hat2 = w_hat @ w_hat

        # Rodrigues' formula
        R = np.eye(3) + np.sin(theta) * w_hat + (1 - np.cos(theta)) * w_hat2

        G = (np.eye(3) * theta +
             (1 - np.cos(theta)) * w_hat +
             (theta - np.sin(theta)) * w_hat2)

        T[:3, :3] = R
        T[:3, 3] = G @ v
        return T

    @staticmethod
    def adjoint(T: np.ndarray) -> np.ndarray:
        """Adjoint of an SE(3) transform acting on [ω, v] twists."""
        R, p = T[:3, :3], T[:3, 3]
        adj = np.zeros((6, 6))
        adj[:3, :3] = R
        adj[3:, 3:] = R
        adj[3:, :3] = KinematicChain.skew_symmetric(p) @ R
        return adj

    def compute_forward_kinematics(self, q: np.ndarray) -> np.ndarray:
        """
        Compute forward kinematics using Product of Exponentials.

        T(q) = exp([S₁]q₁) · exp([S₂]q₂) · ... · exp([Sₙ]qₙ) · M

        Args:
            q: Joint positions (n_joints,)

        Returns:
            4x4 homogeneous transformation matrix of end-effector pose

        Raises:
            KinematicChainError: If input dimensions are invalid
        """
        q = self._validate_joint_vector(q)

        T = np.eye(4)
        for i in range(self.n_joints):
            T = T @ self.matrix_exp6(self.S[:, i] * q[i])

        return T @ self.M

    def compute_space_jacobian(self, q: np.ndarray) -> np.ndarray:
        """
        Space Jacobian (6 x n_joints), rows [ω, v] expressed in the base frame.
        """
        q = self._validate_joint_vector(q)
        J_s = np.zeros((6, self.n_joints))
        T_temp = np.eye(4)

        for i in range(self.n_joints):
            J_s[:, i] = self.adjoint(T_temp) @ self.S[:, i]
            T_temp = T_temp @ self.matrix_exp6(self.S[:, i] * q[i])

        return J_s

    def compute_body_jacobian(self, q: np.ndarray) -> np.ndarray:
        """Body Jacobian (6 x n_joints) expressed in the end-effector frame."""
        T_final = self.compute_forward_kinematics(q)
        return self.adjoint(inv(T_final)) @ self.compute_space_jacobian(q)

    def compute_end_effector_jacobian(self, q: np.ndarray) -> np.ndarray:
        """
        Jacobian of the end-effector point with world-aligned axes.

        Rows [ω, ṗ]: angular velocity and linear velocity of the end-effector
        origin, both in the base frame.
        """
        J_s = self.compute_space_jacobian(q)
        p = self.compute_forward_kinematics(q)[:3, 3]

        J = J_s.copy()
        J[3:, :] = J_s[3:, :] - self.skew_symmetric(p) @ J_s[:3, :]
        return J

    def compute_joint_positions(self, q: np.ndarray) -> List[np.ndarray]:
        """
        World positions of a point on each joint axis plus the end-effector.

        Revolute axes use the point of the axis closest to the base origin at
        home; prismatic joints reuse the previous point.
        """
        q = self._validate_joint_vector(q)
        points = []
        T_temp = np.eye(4)
        last_point = np.zeros(3)

        for i in range(self.n_joints):
            w, v = self.S[:3, i], self.S[3:, i]
            if norm(w) > 1e-12:
                # v = -ω × p  =>  p = ω × v for a unit axis
                axis_point = np.cross(w, v) / norm(w) ** 2
                last_point = (T_temp @ np.append(axis_point, 1.0))[:3]
            points.append(last_point.copy())
            T_temp = T_temp @ self.matrix_exp6(self.S[:, i] * q[i])

        points.append((T_temp @ self.M)[:3, 3])
        return points

    def get_screw_axes(self) -> np.ndarray:
        """Get the screw axes matrix."""
        return self.S.copy()

    def get_home_configuration(self) -> np.ndarray:
        """Get the home configuration matrix."""
        return self.M.copy()

    def get_joint_limits(self) -> np.ndarray:
        """Get joint limits."""
        return self.joint_limits.copy()

    def _validate_joint_vector(self, q) -> np.ndarray:
        q = np.asarray(q, dtype=float)
        if q.ndim != 1 or q.shape[0] != self.n_joints:
            raise KinematicChainError(
                f"Joint vector must have shape ({self.n_joints},), got {q.shape}"
            )
        return q


class EndEffectorFrame:
    """
    End-effector body frame of a chain.

    ``get_*`` methods read the chain's live configuration, ``compute_*`` methods
    evaluate at an explicit joint vector without touching it.
    """

    def __init__(self, chain: KinematicChain):
        self.chain = chain

    def get_skeleton(self) -> KinematicChain:
        return self.chain

    def get_world_transform(self) -> np.ndarray:
        return self.chain.compute_forward_kinematics(self.chain.get_positions())

    def get_world_jacobian(self) -> np.ndarray:
        return self.chain.compute_end_effector_jacobian(self.chain.get_positions())

    def compute_world_transform(self, q: np.ndarray) -> np.ndarray:
        return self.chain.compute_forward_kinematics(q)

    def compute_world_jacobian(self, q: np.ndarray) -> np.ndarray:
        return self.chain.compute_end_effector_jacobian(q)

    def create_inverse_kinematics(self, **params):
        """Damped least squares IK solver targeting this frame."""
        from .inverse_kinematic import InverseKinematics
        return InverseKinematics(self.chain, params or None)


def _load_yaml(path: str) -> dict:
    if not os.path.exists(path):
        logger.warning(f"Constraints file not found: {path}, using default robot parameters")
        return {}

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
        logger.info(f"Robot parameters loaded from: {path}")
        return config or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load robot parameters from {path}: {e}")
        return {}


def _parse_joint_limits(joint_config: dict, n_joints: int) -> np.ndarray:
    """Convert j1..jn degree limits into a (2 x n) radian array."""
    if not joint_config:
        logger.warning("No joint limits found in config, using default ±π limits")

    lower_limits = []
    upper_limits = []
    for i in range(n_joints):
        joint_name = f"j{i + 1}"
        if joint_name not in joint_config:
            if joint_config:
                logger.warning(f"Joint {joint_name} not found in config, using ±π")
            lower_limits.append(-np.pi)
            upper_limits.append(np.pi)
        else:
            limits = joint_config[joint_name]
            lower_limits.append(np.deg2rad(limits['min']))
            upper_limits.append(np.deg2rad(limits['max']))

    return np.array([lower_limits, upper_limits])
