#!/usr/bin/env python3
"""
Inverse Kinematics Module for Serial Manipulators

This module implements a time-budgeted damped least squares (DLS) inverse
kinematics solver on top of the Product of Exponentials chain. The planners use
it as the IK collaborator of the constrained samplers: every call is seeded with
an explicit joint configuration and reports whether the target pose was reached.

Key Features:
- Damped Least Squares (DLS) iterations on the body Jacobian
- Adaptive damping for singularity handling
- Nullspace optimization for joint limit avoidance
- Strict per-call time budget
- Pure mathematical computation (no collision checking)

Author: Robot Control Team
"""

import numpy as np
from numpy.linalg import norm, inv, pinv
import logging
from typing import Tuple, Optional, Dict, Any
import time

logger = logging.getLogger(__name__)


class InverseKinematicsError(Exception):
    """Custom exception for inverse kinematics errors."""
    pass


class InverseKinematics:
    """
    Seeded damped least squares IK solver.

    ``solve`` never raises for unreachable targets: it returns the best
    configuration found and a success flag.
    """

    def __init__(self, chain, default_params: Optional[Dict[str, Any]] = None):
        """
        Initialize the solver.

        Args:
            chain: KinematicChain instance
            default_params: Overrides for the default solver parameters
        """
        self.chain = chain
        self.n_joints = chain.n_joints
        self.joint_limits = chain.joint_limits

        self.default_params = {
            'time_budget': 0.05,        # 50ms per call
            'pos_tol': 1e-4,            # 0.1mm position tolerance
            'rot_tol': 5e-3,            # ~0.3° rotation tolerance
            'max_iters': 150,
            'damping_min': 1e-5,
            'damping_max': 0.5,
            'step_scale': 1.0,
            'dq_max': 0.35,             # Max joint step norm per iteration
            'adaptive_damping': True,
            'nullspace_weight': 0.05,
        }
        if default_params:
            self.default_params.update(default_params)

        self.stats = {
            'total_calls': 0,
            'successful_calls': 0,
            'total_time': 0.0,
            'average_time': 0.0,
        }

        logger.debug(f"IK solver initialized for {self.n_joints} joints")

    def solve(self, T_target: np.ndarray, q_init: Optional[np.ndarray] = None,
              **kwargs) -> Tuple[np.ndarray, bool]:
        """
        Solve the inverse kinematics for a target pose.

        Args:
            T_target: Target transformation matrix (4x4)
            q_init: Seed joint configuration (defaults to the chain's live positions)
            **kwargs: Parameter overrides for this call (e.g. 'time_budget')

        Returns:
            q_solution: Best configuration found
            success: True if the pose is within tolerances
        """
        T_target = np.asarray(T_target, dtype=float)
        if T_target.shape != (4, 4):
            raise InverseKinematicsError(f"Target pose must be 4x4, got {T_target.shape}")

        start_time = time.time()
        self.stats['total_calls'] += 1

        params = self.default_params.copy()
        params.update(kwargs)

        if q_init is None:
            q_init = self.chain.get_positions()
        q_init = np.clip(np.asarray(q_init, dtype=float),
                         self.joint_limits[0], self.joint_limits[1])

        q_solution, success, info = self._dls_solve(T_target, q_init, params)

        solve_time = time.time() - start_time
        self.stats['total_time'] += solve_time
        if success:
            self.stats['successful_calls'] += 1
        self.stats['average_time'] = self.stats['total_time'] / self.stats['total_calls']

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"IK solved in {solve_time*1000:.2f}ms, success: {success}, "
                         f"iterations: {info['iterations']}")

        return q_solution, success

    def _dls_solve(self, T_des: np.ndarray, q0: np.ndarray,
                   params: Dict[str, Any]) -> Tuple[np.ndarray, bool, Dict[str, Any]]:
        """
        Damped Least Squares iterations with a time budget.

        Returns:
            q_solution: Best solution found (even if not fully converged)
            converged: Whether solution converged to the tolerances
            info: Dictionary with solving info
        """
        q = q0.copy()
        limits_lower, limits_upper = self.joint_limits[0], self.joint_limits[1]

        damping = 0.01
        info = {'iterations': 0}
        deadline = time.time() + params['time_budget']

        best_q = q.copy()
        best_error = float('inf')
        no_improvement_count = 0

        for iteration in range(params['max_iters']):
            if time.time() >= deadline:
                logger.debug(f"Time budget exceeded at iteration {iteration}")
                break

            info['iterations'] += 1

            T_cur = self.chain.compute_forward_kinematics(q)
            error_twist = self.compute_error_twist(T_des, T_cur)

            pos_err = norm(error_twist[3:])
            rot_err = norm(error_twist[:3])
            if pos_err < params['pos_tol'] and rot_err < params['rot_tol']:
                logger.debug(f"Converged at iteration {iteration}")
                return q, True, info

            total_error = pos_err + rot_err * 0.2
            if total_error < best_error:
                best_error = total_error
                best_q = q.copy()
                no_improvement_count = 0
            else:
                no_improvement_count += 1
                if no_improvement_count > 15:
                    logger.debug(f"Early exit at iteration {iteration}, no improvement")
                    break

            Jb = self.chain.compute_body_jacobian(q)

            if params['adaptive_damping']:
                manipulability = np.sqrt(abs(np.linalg.det(Jb @ Jb.T)) + 1e-10)
                if manipulability < 0.01:
                    damping = min(params['damping_max'], damping * 1.5)
                elif no_improvement_count > 5:
                    damping = min(params['damping_max'], damping * 1.2)
                else:
                    damping = max(params['damping_min'], damping * 0.9)

            JtJ = Jb.T @ Jb
            reg_term = (damping ** 2) * np.eye(self.n_joints)
            dq_raw = np.linalg.solve(JtJ + reg_term, Jb.T @ error_twist)

            if params['nullspace_weight'] > 0:
                nullspace_proj = np.eye(self.n_joints) - pinv(Jb) @ Jb
                dq_raw += params['nullspace_weight'] * (nullspace_proj @ self._joint_limit_gradient(q))

            dq_norm = norm(dq_raw)
            if dq_norm > params['dq_max']:
                dq_raw = dq_raw * (params['dq_max'] / dq_norm)

            q = np.clip(q + params['step_scale'] * dq_raw, limits_lower, limits_upper)

        return best_q, False, info

    def _joint_limit_gradient(self, q: np.ndarray) -> np.ndarray:
        """Gradient pushing joints towards the middle of their range."""
        limits_lower, limits_upper = self.joint_limits[0], self.joint_limits[1]
        mid_point = (limits_lower + limits_upper) / 2
        range_half = (limits_upper - limits_lower) / 2

        # -1 = lower limit, 0 = midpoint, 1 = upper limit
        q_norm = (q - mid_point) / (range_half + 1e-10)
        return -q_norm * (1.0 - q_norm**2)

    @staticmethod
    def compute_error_twist(T_des: np.ndarray, T_cur: np.ndarray) -> np.ndarray:
        """
        Error twist [ω, p] in the current end-effector frame.

        Uses the SO(3) logarithm of the relative rotation.
        """
        T_rel = inv(T_cur) @ T_des
        R, p = T_rel[:3, :3], T_rel[:3, 3]

        cos_theta = np.clip((np.trace(R) - 1.0) * 0.5, -1.0, 1.0)
        theta = np.arccos(cos_theta)

        if theta < 1e-9:
            omega = np.zeros(3)
        elif abs(np.sin(theta)) < 1e-6:
            # Near π: axis is the eigenvector with eigenvalue 1
            eigvals, eigvecs = np.linalg.eig(R)
            idx = np.argmin(np.abs(eigvals - 1.0))
            axis = np.real(eigvecs[:, idx])
            omega = axis * theta / (norm(axis) + 1e-12)
        else:
            omega_hat = (R - R.T) * (0.5 / np.sin(theta))
            omega = np.array([omega_hat[2, 1], omega_hat[0, 2], omega_hat[1, 0]]) * theta

        return np.hstack([omega, p])

    def get_statistics(self) -> Dict[str, Any]:
        """Get performance statistics."""
        stats = self.stats.copy()
        if stats['total_calls'] > 0:
            stats['success_rate'] = stats['successful_calls'] / stats['total_calls']
        else:
            stats['success_rate'] = 0.0
        return stats
