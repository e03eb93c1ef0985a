#!/usr/bin/env python3
"""
TSR Motion Planning Package

Motion planning for serial manipulators towards joint configurations, Task
Space Regions and straight end-effector offsets. Every entry point runs a
cascade of planners under one time budget and returns a time-parameterized
trajectory.

This package provides:
- Joint state space, interpolated trajectories and Task Space Regions
- Snap, RRT-Connect and constrained RRT-Connect planners
- Vector field planner for straight end-effector motions
- Planning cascade entry points and the MotionPlanner coordinator

Architecture:
- Uses the kinematics package for FK, Jacobians and IK
- Collision checking through pluggable "testable" oracles
- Planner parameters loaded from the constraints YAML file

Author: Robot Control Team
Version: 2.1.0
"""

__version__ = "2.1.0"
__author__ = "Robot Control Team"

"""
Planning module initialization.

Imports are structured to avoid circular dependencies.
"""

# First, import base modules that don't have dependencies
from .rng import RNG
from .state_space import JointStateSpace, State, SkeletonStateSaver
from .trajectory import (Interpolated, GeodesicInterpolator, TrajectoryError,
                         DomainError, UnsupportedDerivative)
from .tsr import TSR, CyclicTSR, ProjectionDidNotConverge
from .collision_checker import (WorkspaceCollisionChecker, BoundsTestable, TestableIntersection,
                                CollisionResult, CollisionType)

# Then import modules that depend on the base modules
from .constraint_sampler import InverseKinematicsSampleable
from .frame_constraints import FrameTestable, FrameDifferentiable, NewtonsMethodProjectable
from .geometry import (ZeroDirectionVector, look_at_transform, canonicalize_offset,
                       compute_offset_goal_and_constraint)
from .path_planner import PlanningResult, PlanningStatus, RRTConnect, CRRTConnect, plan_snap
from .vector_field import VectorFieldPlanner
from .planner_config import CRRTPlannerParameters, VectorFieldPlannerParameters, PlannerConfigError

# Finally, import the high-level coordinator that depends on everything else
from .motion_planner import (
    MotionPlanner, MotionPlanningResult, PlannerCascade, PlanningStrategy, TimeBudget,
    ConstrainedTSRGoal, EndEffectorOffsetGoal,
    plan_to_configuration, plan_to_configurations, plan_to_tsr, plan_to_tsr_with_constraint,
    plan_to_end_effector_offset, plan_to_end_effector_offset_by_crrt,
)

# Export all public classes
__all__ = [
    'RNG',
    'JointStateSpace',
    'State',
    'SkeletonStateSaver',
    'Interpolated',
    'GeodesicInterpolator',
    'TrajectoryError',
    'DomainError',
    'UnsupportedDerivative',
    'TSR',
    'CyclicTSR',
    'ProjectionDidNotConverge',
    'WorkspaceCollisionChecker',
    'BoundsTestable',
    'TestableIntersection',
    'CollisionResult',
    'CollisionType',
    'InverseKinematicsSampleable',
    'FrameTestable',
    'FrameDifferentiable',
    'NewtonsMethodProjectable',
    'ZeroDirectionVector',
    'look_at_transform',
    'canonicalize_offset',
    'compute_offset_goal_and_constraint',
    'PlanningResult',
    'PlanningStatus',
    'RRTConnect',
    'CRRTConnect',
    'plan_snap',
    'VectorFieldPlanner',
    'CRRTPlannerParameters',
    'VectorFieldPlannerParameters',
    'PlannerConfigError',
    'MotionPlanner',
    'MotionPlanningResult',
    'PlannerCascade',
    'PlanningStrategy',
    'TimeBudget',
    'ConstrainedTSRGoal',
    'EndEffectorOffsetGoal',
    'plan_to_configuration',
    'plan_to_configurations',
    'plan_to_tsr',
    'plan_to_tsr_with_constraint',
    'plan_to_end_effector_offset',
    'plan_to_end_effector_offset_by_crrt',
]

# Package metadata
__title__ = "tsr_motion_planning"
__description__ = "TSR-based motion planning cascade for serial manipulators"
__license__ = "MIT"
