#!/usr/bin/env python3
"""
Motion Planning Module

Planning cascade and entry points. Every entry point tries cheap deterministic
strategies first and escalates to randomized, constrained or vector-field
strategies, all sharing one wall-clock deadline:

- plan_to_configuration(s): Snap, then RRT-Connect
- plan_to_tsr: Snap against IK samples of the goal region, then per-sample
  Snap/RRT-Connect with a time slice per sample
- plan_to_tsr_with_constraint: CRRT-Connect on the constraint manifold
- plan_to_end_effector_offset: vector field, then CRRT-Connect on the
  synthesized goal/constraint regions

Each entry point holds the skeleton lock for its whole duration and restores
the skeleton's configuration on exit.

Author: Robot Control Team
"""

import numpy as np
import logging
import time
import threading
from typing import List, Dict, Any, Optional, Sequence
from dataclasses import dataclass

from .collision_checker import BoundsTestable, TestableIntersection, WorkspaceCollisionChecker
from .constraint_sampler import InverseKinematicsSampleable
from .frame_constraints import FrameTestable, FrameDifferentiable, NewtonsMethodProjectable
from .geometry import canonicalize_offset, compute_offset_goal_and_constraint
from .path_planner import (COLLISION_RESOLUTION, PlanningResult, PlanningStatus,
                           plan_snap, RRTConnect, CRRTConnect)
from .planner_config import (CRRTPlannerParameters, VectorFieldPlannerParameters,
                             get_default_config_path, load_planner_config,
                             load_named_configurations, merge_config)
from .rng import RNG
from .state_space import JointStateSpace, SkeletonStateSaver
from .trajectory import GeodesicInterpolator, Interpolated
from .tsr import CyclicTSR
from .vector_field import VectorFieldPlanner

logger = logging.getLogger(__name__)

MAX_SNAP_SAMPLES = 100


class TimeBudget:
    """Deadline shared by every stage of one planning call."""

    def __init__(self, timelimit: float, deadline: Optional[float] = None):
        if timelimit < 0:
            raise ValueError(f"Time limit must be non-negative, got {timelimit}")
        self.start_time = time.monotonic()
        self.timelimit = timelimit
        self.deadline = self.start_time + timelimit if deadline is None else deadline

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    def is_expired(self) -> bool:
        return time.monotonic() >= self.deadline

    def sub_budget(self, timelimit: float) -> "TimeBudget":
        """Child budget of ``timelimit`` seconds, clamped to this deadline."""
        limit = min(timelimit, self.remaining())
        return TimeBudget(limit, deadline=min(self.deadline, time.monotonic() + limit))


@dataclass
class ConstrainedTSRGoal:
    """Goal region plus the region every path point must stay in."""
    goal_tsr: Any
    constraint_tsr: Any


@dataclass
class EndEffectorOffsetGoal(ConstrainedTSRGoal):
    """Straight end-effector motion with its acceptable distance range."""
    direction: Optional[np.ndarray] = None
    min_distance: float = 0.0
    max_distance: float = 0.0


# ----------------------------------------------------------------------
# Strategies
# ----------------------------------------------------------------------

class PlanningStrategy:
    """One stage of a cascade."""

    name = "strategy"
    requires_time = True

    def attempt(self, start, goal, budget: TimeBudget,
                result: PlanningResult) -> Optional[Interpolated]:
        raise NotImplementedError


class SnapStrategy(PlanningStrategy):
    """Straight interpolation to each goal state in order."""

    name = "snap"
    requires_time = False

    def __init__(self, state_space, testable, resolution: float = COLLISION_RESOLUTION):
        self.state_space = state_space
        self.testable = testable
        self.resolution = resolution
        self.interpolator = GeodesicInterpolator(state_space)

    def attempt(self, start, goal, budget, result):
        for goal_state in goal:
            trajectory = plan_snap(self.state_space, start, goal_state, self.interpolator,
                                   self.testable, result, self.resolution)
            if trajectory is not None:
                return trajectory
        return None


class RRTConnectStrategy(PlanningStrategy):
    """Bidirectional RRT towards all goal states at once."""

    name = "rrt_connect"

    def __init__(self, state_space, testable, rng, resolution: float = COLLISION_RESOLUTION,
                 max_extension_distance: Optional[float] = None, simplify: bool = True):
        self.state_space = state_space
        self.testable = testable
        self.rng = rng
        self.resolution = resolution
        self.max_extension_distance = max_extension_distance
        self.simplify = simplify

    def attempt(self, start, goal, budget, result):
        planner = RRTConnect(self.state_space, self.testable, self.rng,
                             self.max_extension_distance, self.resolution, self.simplify)
        return planner.plan(start, goal, budget, result)


class TSRSnapStrategy(PlanningStrategy):
    """Snap attempts against IK samples of the goal region."""

    name = "tsr_snap"

    def __init__(self, state_space, skeleton, ik_solver, rng, testable,
                 max_snap_samples: int = MAX_SNAP_SAMPLES,
                 resolution: float = COLLISION_RESOLUTION):
        self.state_space = state_space
        self.skeleton = skeleton
        self.ik_solver = ik_solver
        self.rng = rng
        self.max_snap_samples = max_snap_samples
        self.snap = SnapStrategy(state_space, testable, resolution)

    def attempt(self, start, goal, budget, result):
        sampleable = InverseKinematicsSampleable(self.state_space, self.skeleton, goal,
                                                 self.rng, self.ik_solver, self.max_snap_samples)
        generator = sampleable.create_sample_generator()
        goal_state = self.state_space.create_state()

        while generator.can_sample() and not budget.is_expired():
            if not generator.sample(goal_state):
                continue
            self.state_space.set_state(self.skeleton, start)
            trajectory = self.snap.attempt(start, [goal_state], budget, result)
            if trajectory is not None:
                return trajectory

        logger.debug(f"TSR snap exhausted after {generator.num_trials} sample(s)")
        if generator.num_successes == 0:
            result.report(PlanningStatus.SAMPLING_FAILED, "No IK solution for the goal region")
        return None


class TSRSampleStrategy(PlanningStrategy):
    """Per-sample Snap/RRT-Connect with a time slice per goal sample."""

    name = "tsr_sample"

    def __init__(self, state_space, skeleton, ik_solver, rng, testable, max_num_trials: int,
                 per_sample_time: float, resolution: float = COLLISION_RESOLUTION,
                 max_extension_distance: Optional[float] = None, simplify: bool = True):
        self.state_space = state_space
        self.skeleton = skeleton
        self.ik_solver = ik_solver
        self.rng = rng
        self.testable = testable
        self.max_num_trials = max_num_trials
        self.per_sample_time = per_sample_time
        self.resolution = resolution
        self.max_extension_distance = max_extension_distance
        self.simplify = simplify

    def attempt(self, start, goal, budget, result):
        sampleable = InverseKinematicsSampleable(self.state_space, self.skeleton, goal,
                                                 self.rng, self.ik_solver, self.max_num_trials)
        generator = sampleable.create_sample_generator()
        goal_state = self.state_space.create_state()

        while generator.can_sample() and not budget.is_expired():
            if not generator.sample(goal_state):
                continue
            self.state_space.set_state(self.skeleton, start)

            cascade = PlannerCascade(configuration_strategies(
                self.state_space, self.testable, self.rng.clone(), self.resolution,
                self.max_extension_distance, self.simplify))
            trajectory = cascade.plan(start, [goal_state],
                                      budget.sub_budget(self.per_sample_time), result)
            if trajectory is not None:
                return trajectory
        return None


class CRRTStrategy(PlanningStrategy):
    """Constrained bidirectional search between start and an IK-sampled goal region."""

    name = "crrt_connect"

    def __init__(self, state_space, skeleton, body_frame, testable,
                 parameters: CRRTPlannerParameters, ik_solver=None,
                 resolution: float = COLLISION_RESOLUTION):
        self.state_space = state_space
        self.skeleton = skeleton
        self.body_frame = body_frame
        self.testable = testable
        self.parameters = parameters
        self.ik_solver = ik_solver
        self.resolution = resolution

    def attempt(self, start, goal, budget, result):
        params = self.parameters
        rng = params.rng if params.rng is not None else RNG()
        ik_solver = self.ik_solver or self.body_frame.create_inverse_kinematics()
        cyclic_goal = CyclicTSR(goal.goal_tsr)

        goal_sampleable = InverseKinematicsSampleable(
            self.state_space, self.skeleton, cyclic_goal, rng.clone(), ik_solver,
            params.max_num_trials)
        constraint_sampleable = InverseKinematicsSampleable(
            self.state_space, self.skeleton, goal.constraint_tsr, rng.clone(), ik_solver,
            params.max_num_trials)
        projectable = NewtonsMethodProjectable(
            FrameDifferentiable(self.state_space, self.body_frame, goal.constraint_tsr),
            params.projection_tolerance, params.projection_max_iteration)
        goal_testable = FrameTestable(self.state_space, self.body_frame, cyclic_goal)

        planner = CRRTConnect(
            self.state_space, self.testable, projectable, goal_sampleable, goal_testable,
            constraint_sampleable, rng,
            max_extension_distance=params.max_extension_distance,
            max_distance_btw_projections=params.max_distance_btw_projections,
            min_step_size=params.min_step_size,
            min_tree_connection_distance=params.min_tree_connection_distance,
            resolution=self.resolution)
        return planner.plan(start, budget, result)


class VectorFieldStrategy(PlanningStrategy):
    """Straight end-effector motion by vector field integration."""

    name = "vector_field"

    def __init__(self, state_space, skeleton, body_frame, testable,
                 parameters: VectorFieldPlannerParameters,
                 position_tolerance: float, angular_tolerance: float):
        self.state_space = state_space
        self.skeleton = skeleton
        self.body_frame = body_frame
        self.testable = testable
        self.parameters = parameters
        self.position_tolerance = position_tolerance
        self.angular_tolerance = angular_tolerance

    def attempt(self, start, goal, budget, result):
        self.state_space.set_state(self.skeleton, start)
        planner = VectorFieldPlanner(
            self.state_space, self.skeleton, self.body_frame, self.testable,
            initial_step_size=self.parameters.initial_step_size,
            joint_limit_tolerance=self.parameters.joint_limit_tolerance,
            constraint_check_resolution=self.parameters.constraint_check_resolution)
        return planner.plan_to_end_effector_offset(
            goal.direction, goal.min_distance, goal.max_distance,
            self.position_tolerance, self.angular_tolerance, budget, result)


class PlannerCascade:
    """
    Ordered strategies sharing one budget; the first trajectory wins.

    Strategies needing time are skipped once the budget has expired. With a
    skeleton, each stage runs inside a state saver.
    """

    def __init__(self, strategies: Sequence[PlanningStrategy], skeleton=None):
        self.strategies = list(strategies)
        self.skeleton = skeleton

    def plan(self, start, goal, budget: TimeBudget,
             result: Optional[PlanningResult] = None) -> Optional[Interpolated]:
        result = result if result is not None else PlanningResult()

        for strategy in self.strategies:
            if strategy.requires_time and budget.is_expired():
                logger.info(f"Skipping {strategy.name}: time budget exhausted")
                result.report(PlanningStatus.TIMEOUT, "Time budget exhausted", strategy.name)
                break

            result.stage = strategy.name
            if self.skeleton is not None:
                with SkeletonStateSaver(self.skeleton):
                    trajectory = strategy.attempt(start, goal, budget, result)
            else:
                trajectory = strategy.attempt(start, goal, budget, result)

            if trajectory is not None:
                logger.info(f"Stage '{strategy.name}' succeeded after {budget.elapsed():.3f}s")
                result.report(PlanningStatus.SUCCESS, result.message, strategy.name)
                return trajectory
            logger.debug(f"Stage '{strategy.name}' failed: {result.message}")

        if result.status == PlanningStatus.SUCCESS:
            result.report(PlanningStatus.FAILED, "All planning stages failed")
        return None


def configuration_strategies(state_space, testable, rng,
                             resolution: float = COLLISION_RESOLUTION,
                             max_extension_distance: Optional[float] = None,
                             simplify: bool = True) -> List[PlanningStrategy]:
    """Snap followed by RRT-Connect."""
    return [SnapStrategy(state_space, testable, resolution),
            RRTConnectStrategy(state_space, testable, rng, resolution,
                               max_extension_distance, simplify)]


def _full_testable(state_space, collision_testable):
    return TestableIntersection([collision_testable, BoundsTestable(state_space)])


def _finish(result: PlanningResult, budget: TimeBudget):
    result.computation_time = budget.elapsed()


# ----------------------------------------------------------------------
# Entry points
# ----------------------------------------------------------------------

def plan_to_configuration(state_space, skeleton, goal_state, collision_testable, rng,
                          timelimit: float, result: Optional[PlanningResult] = None,
                          collision_resolution: float = COLLISION_RESOLUTION,
                          max_extension_distance: Optional[float] = None,
                          simplify: bool = True) -> Optional[Interpolated]:
    """
    Plan from the skeleton's current configuration to ``goal_state``.

    Snap first, then RRT-Connect within ``timelimit`` seconds.
    """
    return plan_to_configurations(state_space, skeleton, [goal_state], collision_testable, rng,
                                  timelimit, result, collision_resolution,
                                  max_extension_distance, simplify)


def plan_to_configurations(state_space, skeleton, goal_states, collision_testable, rng,
                           timelimit: float, result: Optional[PlanningResult] = None,
                           collision_resolution: float = COLLISION_RESOLUTION,
                           max_extension_distance: Optional[float] = None,
                           simplify: bool = True) -> Optional[Interpolated]:
    """
    Plan to any of ``goal_states``.

    Snap is tried against each goal in order; RRT-Connect then grows its goal
    tree from all of them.
    """
    goal_states = list(goal_states)
    if not goal_states:
        raise ValueError("At least one goal state is required")
    result = result if result is not None else PlanningResult()

    with skeleton.mutex, SkeletonStateSaver(skeleton):
        budget = TimeBudget(timelimit)
        start = state_space.get_scoped_state_from_skeleton(skeleton)
        testable = _full_testable(state_space, collision_testable)

        cascade = PlannerCascade(configuration_strategies(
            state_space, testable, rng.clone(), collision_resolution,
            max_extension_distance, simplify), skeleton)
        trajectory = cascade.plan(start, goal_states, budget, result)
        _finish(result, budget)
        return trajectory


def plan_to_tsr(state_space, skeleton, body_frame, goal_tsr, collision_testable, rng,
                timelimit: float, max_num_trials: int, result: Optional[PlanningResult] = None,
                ik_solver=None, max_snap_samples: int = MAX_SNAP_SAMPLES,
                collision_resolution: float = COLLISION_RESOLUTION,
                max_extension_distance: Optional[float] = None,
                simplify: bool = True) -> Optional[Interpolated]:
    """
    Plan to any configuration whose end-effector pose lies in ``goal_tsr``.

    Up to ``max_snap_samples`` Snap attempts against fresh IK samples, then up
    to ``max_num_trials`` samples each given ``timelimit / max_num_trials``
    seconds (clamped to the remaining budget) of Snap/RRT-Connect.
    """
    if goal_tsr is None:
        raise ValueError("Goal TSR is required")
    if max_num_trials < 1:
        raise ValueError(f"max_num_trials must be positive, got {max_num_trials}")
    result = result if result is not None else PlanningResult()

    with skeleton.mutex, SkeletonStateSaver(skeleton):
        budget = TimeBudget(timelimit)
        start = state_space.get_scoped_state_from_skeleton(skeleton)
        testable = _full_testable(state_space, collision_testable)
        ik_solver = ik_solver or body_frame.create_inverse_kinematics()

        cascade = PlannerCascade([
            TSRSnapStrategy(state_space, skeleton, ik_solver, rng.clone(), testable,
                            max_snap_samples, collision_resolution),
            TSRSampleStrategy(state_space, skeleton, ik_solver, rng.clone(), testable,
                              max_num_trials, timelimit / max_num_trials, collision_resolution,
                              max_extension_distance, simplify),
        ], skeleton)
        trajectory = cascade.plan(start, goal_tsr, budget, result)
        _finish(result, budget)
        return trajectory


def plan_to_tsr_with_constraint(state_space, skeleton, body_frame, goal_tsr, constraint_tsr,
                                collision_testable, timelimit: float,
                                crrt_parameters: Optional[CRRTPlannerParameters] = None,
                                result: Optional[PlanningResult] = None, ik_solver=None,
                                collision_resolution: float = COLLISION_RESOLUTION) -> Optional[Interpolated]:
    """
    Plan into ``goal_tsr`` while keeping the end-effector inside ``constraint_tsr``.
    """
    if goal_tsr is None or constraint_tsr is None:
        raise ValueError("Goal and constraint TSRs are required")
    crrt_parameters = crrt_parameters or CRRTPlannerParameters()
    result = result if result is not None else PlanningResult()

    with skeleton.mutex, SkeletonStateSaver(skeleton):
        budget = TimeBudget(timelimit)
        start = state_space.get_scoped_state_from_skeleton(skeleton)
        testable = _full_testable(state_space, collision_testable)

        cascade = PlannerCascade([
            CRRTStrategy(state_space, skeleton, body_frame, testable, crrt_parameters,
                         ik_solver, collision_resolution),
        ], skeleton)
        trajectory = cascade.plan(start, ConstrainedTSRGoal(goal_tsr, constraint_tsr),
                                  budget, result)
        _finish(result, budget)
        return trajectory


def plan_to_end_effector_offset(state_space, skeleton, body_frame, direction, distance: float,
                                collision_testable, timelimit: float,
                                position_tolerance: float = 1e-3,
                                angular_tolerance: float = 1e-3,
                                vf_parameters: Optional[VectorFieldPlannerParameters] = None,
                                crrt_parameters: Optional[CRRTPlannerParameters] = None,
                                result: Optional[PlanningResult] = None, ik_solver=None,
                                collision_resolution: float = COLLISION_RESOLUTION) -> Optional[Interpolated]:
    """
    Move the end-effector ``distance`` along ``direction``.

    Vector field first, accepting travelled distances within the
    vector-field tolerances around ``distance``; CRRT-Connect on the
    synthesized goal and constraint regions as fallback.

    Raises:
        ZeroDirectionVector: for a zero direction, before any stage runs
    """
    direction, distance = canonicalize_offset(direction, distance)
    vf_parameters = vf_parameters or VectorFieldPlannerParameters()
    crrt_parameters = crrt_parameters or CRRTPlannerParameters()
    result = result if result is not None else PlanningResult()

    with skeleton.mutex, SkeletonStateSaver(skeleton):
        budget = TimeBudget(timelimit)
        start = state_space.get_scoped_state_from_skeleton(skeleton)
        testable = _full_testable(state_space, collision_testable)

        goal_tsr, constraint_tsr = compute_offset_goal_and_constraint(
            body_frame, direction, distance, position_tolerance, angular_tolerance)
        goal = EndEffectorOffsetGoal(
            goal_tsr, constraint_tsr, direction=direction,
            min_distance=distance - vf_parameters.negative_distance_tolerance,
            max_distance=distance + vf_parameters.positive_distance_tolerance)

        cascade = PlannerCascade([
            VectorFieldStrategy(state_space, skeleton, body_frame, testable, vf_parameters,
                                position_tolerance, angular_tolerance),
            CRRTStrategy(state_space, skeleton, body_frame, testable, crrt_parameters,
                         ik_solver, collision_resolution),
        ], skeleton)
        trajectory = cascade.plan(start, goal, budget, result)
        _finish(result, budget)
        return trajectory


def plan_to_end_effector_offset_by_crrt(state_space, skeleton, body_frame, direction,
                                        distance: float, collision_testable, timelimit: float,
                                        position_tolerance: float = 1e-3,
                                        angular_tolerance: float = 1e-3,
                                        crrt_parameters: Optional[CRRTPlannerParameters] = None,
                                        result: Optional[PlanningResult] = None, ik_solver=None,
                                        collision_resolution: float = COLLISION_RESOLUTION) -> Optional[Interpolated]:
    """Straight end-effector motion planned by CRRT-Connect only."""
    direction, distance = canonicalize_offset(direction, distance)
    with skeleton.mutex:
        goal_tsr, constraint_tsr = compute_offset_goal_and_constraint(
            body_frame, direction, distance, position_tolerance, angular_tolerance)
        return plan_to_tsr_with_constraint(state_space, skeleton, body_frame, goal_tsr,
                                           constraint_tsr, collision_testable, timelimit,
                                           crrt_parameters, result, ik_solver,
                                           collision_resolution)


# ----------------------------------------------------------------------
# Coordinator
# ----------------------------------------------------------------------

@dataclass
class MotionPlanningResult:
    """Result container for MotionPlanner calls."""
    status: PlanningStatus
    trajectory: Optional[Interpolated] = None
    message: str = ""
    stage: Optional[str] = None
    planning_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == PlanningStatus.SUCCESS


class MotionPlanner:
    """
    Planner bound to one kinematic chain, its collision oracle and configuration.

    Thread-safe; concurrent calls on the same chain are serialized by the
    chain's lock.
    """

    def __init__(self, chain, collision_testable=None, rng: Optional[RNG] = None,
                 config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None,
                 state_space: Optional[JointStateSpace] = None, ik_solver=None):
        """
        Initialize motion planner.

        Args:
            chain: KinematicChain to plan for
            collision_testable: Collision oracle (WorkspaceCollisionChecker if None)
            rng: Random source (fresh unseeded RNG if None)
            config_path: Constraints YAML file
            config: Planner configuration overriding the file's ``planner`` section
            state_space: State space (built from the chain's joint limits if None)
            ik_solver: IK solver (chain end-effector DLS solver if None)
        """
        self.config_path = config_path or get_default_config_path()
        self.skeleton = chain
        self.body_frame = chain.get_end_effector()
        self.state_space = state_space or JointStateSpace.from_skeleton(chain)
        self.collision_testable = collision_testable or WorkspaceCollisionChecker(
            self.state_space, chain, self.config_path)
        self.rng = rng or RNG()
        self.ik_solver = ik_solver or self.body_frame.create_inverse_kinematics()

        self.config = merge_config(load_planner_config(self.config_path), config or {})
        self.named_configurations = load_named_configurations(self.config_path)

        self.stats = {
            'total_plans': 0,
            'successful_plans': 0,
            'failed_plans': 0,
            'stage_successes': {},
        }
        self._stats_lock = threading.RLock()
        self._config_lock = threading.RLock()

        logger.info(f"Motion planner initialized for '{getattr(chain, 'name', 'chain')}'")

    def plan_to_configuration(self, q_goal, timelimit: Optional[float] = None) -> MotionPlanningResult:
        """Plan to a joint vector."""
        return self.plan_to_configurations([q_goal], timelimit)

    def plan_to_configurations(self, q_goals, timelimit: Optional[float] = None) -> MotionPlanningResult:
        """Plan to the first reachable of several joint vectors."""
        goal_states = [self.state_space.create_state_from_vector(q) for q in q_goals]
        return self._run(plan_to_configurations, self.state_space, self.skeleton, goal_states,
                         self.collision_testable, self.rng, self._timelimit(timelimit),
                         collision_resolution=self._get('collision_resolution'),
                         **self._rrt_options())

    def plan_to_named_configuration(self, name: str,
                                    timelimit: Optional[float] = None) -> MotionPlanningResult:
        """Plan to a configuration listed under ``named_configurations``."""
        if name not in self.named_configurations:
            raise KeyError(f"Unknown named configuration '{name}'")
        return self.plan_to_configuration(self.named_configurations[name], timelimit)

    def plan_to_tsr(self, goal_tsr, timelimit: Optional[float] = None,
                    max_num_trials: Optional[int] = None) -> MotionPlanningResult:
        """Plan into a goal region."""
        return self._run(plan_to_tsr, self.state_space, self.skeleton, self.body_frame, goal_tsr,
                         self.collision_testable, self.rng, self._timelimit(timelimit),
                         max_num_trials or self._get('max_num_trials'),
                         ik_solver=self.ik_solver,
                         max_snap_samples=self._get('max_snap_samples'),
                         collision_resolution=self._get('collision_resolution'),
                         **self._rrt_options())

    def plan_to_tsr_with_constraint(self, goal_tsr, constraint_tsr,
                                    timelimit: Optional[float] = None) -> MotionPlanningResult:
        """Plan into a goal region under a path constraint."""
        return self._run(plan_to_tsr_with_constraint, self.state_space, self.skeleton,
                         self.body_frame, goal_tsr, constraint_tsr, self.collision_testable,
                         self._timelimit(timelimit), self._crrt_parameters(),
                         ik_solver=self.ik_solver,
                         collision_resolution=self._get('collision_resolution'))

    def plan_to_end_effector_offset(self, direction, distance: float,
                                    timelimit: Optional[float] = None) -> MotionPlanningResult:
        """Straight end-effector motion."""
        offset = self._get('offset')
        return self._run(plan_to_end_effector_offset, self.state_space, self.skeleton,
                         self.body_frame, direction, distance, self.collision_testable,
                         self._timelimit(timelimit),
                         offset['position_tolerance'], offset['angular_tolerance'],
                         VectorFieldPlannerParameters.from_config(self._get('vector_field')),
                         self._crrt_parameters(),
                         ik_solver=self.ik_solver,
                         collision_resolution=self._get('collision_resolution'))

    def update_config(self, new_config: Dict[str, Any]):
        """Update planner configuration (thread-safe)."""
        with self._config_lock:
            self.config = merge_config(self.config, new_config)
        logger.info(f"Planner configuration updated: {sorted(new_config)}")

    def get_statistics(self) -> Dict[str, Any]:
        """Get planning statistics."""
        with self._stats_lock:
            stats = dict(self.stats)
            stats['stage_successes'] = dict(self.stats['stage_successes'])
        stats['success_rate'] = (stats['successful_plans'] / stats['total_plans']
                                 if stats['total_plans'] else 0.0)
        return stats

    def reset_statistics(self):
        """Reset planning statistics."""
        with self._stats_lock:
            self.stats = {
                'total_plans': 0,
                'successful_plans': 0,
                'failed_plans': 0,
                'stage_successes': {},
            }

    def _run(self, planning_function, *args, **kwargs) -> MotionPlanningResult:
        result = PlanningResult()
        start_time = time.time()
        trajectory = planning_function(*args, result=result, **kwargs)
        planning_time = time.time() - start_time

        with self._stats_lock:
            self.stats['total_plans'] += 1
            if trajectory is not None:
                self.stats['successful_plans'] += 1
                stage_counts = self.stats['stage_successes']
                stage_counts[result.stage] = stage_counts.get(result.stage, 0) + 1
            else:
                self.stats['failed_plans'] += 1

        if trajectory is None:
            logger.warning(f"{planning_function.__name__} failed at stage '{result.stage}': "
                           f"{result.message}")
        return MotionPlanningResult(
            status=PlanningStatus.SUCCESS if trajectory is not None else result.status,
            trajectory=trajectory,
            message=result.message,
            stage=result.stage,
            planning_time=planning_time,
        )

    def _get(self, key: str):
        with self._config_lock:
            return self.config[key]

    def _timelimit(self, timelimit: Optional[float]) -> float:
        return self._get('timelimit') if timelimit is None else timelimit

    def _rrt_options(self) -> Dict[str, Any]:
        rrt = self._get('rrt')
        return {'max_extension_distance': rrt.get('max_extension_distance'),
                'simplify': rrt.get('simplify', True)}

    def _crrt_parameters(self) -> CRRTPlannerParameters:
        return CRRTPlannerParameters.from_config(self._get('crrt'), rng=self.rng.clone())
