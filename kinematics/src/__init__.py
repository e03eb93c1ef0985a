#!/usr/bin/env python3
"""
Robot Kinematics Package - Source Module

Product of Exponentials kinematics for serial manipulators, used by the motion
planners as the robot "skeleton" and IK collaborator.

This package provides:
- Kinematic chain with live joint configuration and access lock
- End-effector frame handle (pose, Jacobian, IK factory)
- Seeded damped least squares inverse kinematics

Author: Robot Control Team
Version: 2.1.0
"""

__version__ = "2.1.0"
__author__ = "Robot Control Team"

from .forward_kinematic import KinematicChain, EndEffectorFrame, KinematicChainError
from .inverse_kinematic import InverseKinematics, InverseKinematicsError

__all__ = [
    'KinematicChain',
    'EndEffectorFrame',
    'KinematicChainError',
    'InverseKinematics',
    'InverseKinematicsError',
]

__title__ = "robot_kinematics"
__description__ = "Product of Exponentials kinematics for motion planning"
__license__ = "MIT"
