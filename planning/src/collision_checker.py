#!/usr/bin/env python3
"""
Collision Checker Module

Collision oracles ("testables") consumed by the planners. Every testable
exposes ``is_satisfied(state) -> bool``.

- BoundsTestable: joint limits of the state space
- WorkspaceCollisionChecker: floor, working surface and workspace box
  constraints from the constraints YAML file
- TestableIntersection: conjunction of several testables

Author: Robot Control Team
"""

import numpy as np
import logging
import os
from typing import List, Dict, Any, Optional, Sequence
from dataclasses import dataclass
from enum import Enum
import yaml

logger = logging.getLogger(__name__)


class CollisionType(Enum):
    """Types of collision detection."""
    NONE = "none"
    FLOOR_COLLISION = "floor_collision"
    WORKSPACE_VIOLATION = "workspace_violation"
    JOINT_LIMIT_VIOLATION = "joint_limit_violation"


@dataclass
class CollisionResult:
    """Result of collision checking."""
    is_collision: bool
    collision_type: CollisionType
    details: str
    collision_point: Optional[List[float]] = None


class BoundsTestable:
    """Satisfied when every joint lies inside the state space bounds."""

    def __init__(self, state_space, tolerance: float = 0.0):
        self.state_space = state_space
        self.tolerance = tolerance

    def is_satisfied(self, state) -> bool:
        return self.state_space.is_within_bounds(state, self.tolerance)


class TestableIntersection:
    """Satisfied when all member testables are satisfied."""

    __test__ = False  # not a pytest test class

    def __init__(self, testables: Sequence):
        self.testables = [t for t in testables if t is not None]

    def is_satisfied(self, state) -> bool:
        return all(testable.is_satisfied(state) for testable in self.testables)


class WorkspaceCollisionChecker:
    """
    Environment checker for a kinematic chain.

    Rejects configurations outside the joint limits, with the TCP outside the
    workspace box or below the working surface, or with any joint axis point
    below the floor.
    """

    def __init__(self, state_space, chain, config_path: Optional[str] = None,
                 config: Optional[Dict[str, Any]] = None):
        """
        Initialize collision checker.

        Args:
            state_space: JointStateSpace of the chain
            chain: KinematicChain providing forward kinematics
            config_path: Constraints YAML file (ignored when ``config`` is given)
            config: Already loaded configuration dictionary
        """
        self.state_space = state_space
        self.chain = chain
        self.config_path = config_path
        self.config = config if config is not None else self.load_configuration(config_path)

        self.workspace = self.config.get('workspace', {}) or {}
        self.safety_margins = self.config.get('safety_margins', {}) or {}
        self.environment = self.config.get('environment', {}) or {}

        self.stats = {'checks': 0, 'collisions': 0}

    @staticmethod
    def load_configuration(config_path: Optional[str]) -> Dict[str, Any]:
        """Load collision checking configuration."""
        if not config_path or not os.path.exists(config_path):
            logger.warning(f"Collision config not found: {config_path}, using default workspace")
            return {}

        with open(config_path, 'r') as file:
            config = yaml.safe_load(file) or {}
        logger.info(f"Collision checker loaded config from: {config_path}")
        return config

    def is_satisfied(self, state) -> bool:
        return not self.check_configuration(self.state_space.convert_to_vector(state)).is_collision

    def check_configuration(self, joint_angles: np.ndarray) -> CollisionResult:
        """Comprehensive collision check for a single robot configuration."""
        self.stats['checks'] += 1

        result = self.check_joint_limits(joint_angles)
        if not result.is_collision:
            joint_positions = self.chain.compute_joint_positions(joint_angles)
            tcp_position = joint_positions[-1]

            result = self.check_workspace_limits(tcp_position)
            if not result.is_collision:
                result = self.check_floor_collision(tcp_position, joint_positions[:-1])

        if result.is_collision:
            self.stats['collisions'] += 1
            logger.debug(f"Collision: {result.details}")
        return result

    def check_joint_limits(self, joint_angles: np.ndarray) -> CollisionResult:
        """Check if joint configuration violates joint limits."""
        lower, upper = self.state_space.lower, self.state_space.upper
        violations = np.where((joint_angles < lower) | (joint_angles > upper))[0]
        if violations.size:
            i = violations[0]
            return CollisionResult(
                is_collision=True,
                collision_type=CollisionType.JOINT_LIMIT_VIOLATION,
                details=f"Joint j{i + 1} ({joint_angles[i]:.3f}) exceeds limits "
                        f"[{lower[i]:.3f}, {upper[i]:.3f}]"
            )

        return CollisionResult(False, CollisionType.NONE, "Joint limits OK")

    def check_workspace_limits(self, tcp_position: np.ndarray) -> CollisionResult:
        """Check if TCP position violates workspace boundaries."""
        x, y, z = tcp_position

        margins = self.safety_margins if self.safety_margins.get('enabled', False) else {}
        margin_x = margins.get('margin_x', 0.0)
        margin_y = margins.get('margin_y', 0.0)
        margin_z = margins.get('margin_z', 0.0)

        x_min = self.workspace.get('x_min', -1.0) + margin_x
        x_max = self.workspace.get('x_max', 1.0) - margin_x
        y_min = self.workspace.get('y_min', -1.0) + margin_y
        y_max = self.workspace.get('y_max', 1.0) - margin_y
        z_min = self.workspace.get('z_min', 0.0) + margin_z
        z_max = self.workspace.get('z_max', 1.5) - margin_z

        if not (x_min <= x <= x_max and y_min <= y <= y_max and z_min <= z <= z_max):
            return CollisionResult(
                is_collision=True,
                collision_type=CollisionType.WORKSPACE_VIOLATION,
                details=f"TCP position ({x:.3f}, {y:.3f}, {z:.3f}) outside workspace",
                collision_point=[x, y, z]
            )

        return CollisionResult(False, CollisionType.NONE, "Workspace limits OK")

    def check_floor_collision(self, tcp_position: np.ndarray,
                              joint_positions: List[np.ndarray]) -> CollisionResult:
        """Check collision with floor and working surface."""
        floor_level = self.environment.get('floor_level', 0.0)
        surface_height = self.environment.get('surface_height', 0.0)

        if tcp_position[2] < surface_height:
            return CollisionResult(
                is_collision=True,
                collision_type=CollisionType.FLOOR_COLLISION,
                details=f"TCP below working surface: {tcp_position[2]*1000:.1f}mm < "
                        f"{surface_height*1000:.1f}mm",
                collision_point=tcp_position.tolist()
            )

        for i, pos in enumerate(joint_positions):
            if pos[2] < floor_level:
                return CollisionResult(
                    is_collision=True,
                    collision_type=CollisionType.FLOOR_COLLISION,
                    details=f"Joint {i+1} below floor level: {pos[2]*1000:.1f}mm",
                    collision_point=pos.tolist()
                )

        return CollisionResult(False, CollisionType.NONE, "Floor/surface collision OK")

    def get_collision_summary(self) -> Dict[str, Any]:
        """Get summary of collision checker configuration and counters."""
        return {
            'robot_model': self.chain.name,
            'safety_margins_enabled': self.safety_margins.get('enabled', False),
            'workspace_bounds': self.workspace,
            'environment': self.environment,
            'checks': self.stats['checks'],
            'collisions': self.stats['collisions'],
        }
