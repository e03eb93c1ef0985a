#!/usr/bin/env python3
"""
Path Planning Module

Configuration-space planners used by the planning cascade:
- Snap: straight geodesic interpolation checked at a fixed resolution
- RRT-Connect: bidirectional tree search between start and goal states
- CRRT-Connect: bidirectional search restricted to a constraint manifold by
  Newton projection, with IK-sampled goal configurations

Each planner returns an ``Interpolated`` trajectory or None and reports the
outcome through a ``PlanningResult``. Searches stop when the shared time
budget expires.

Author: Robot Control Team
"""

import numpy as np
import logging
import math
from collections import deque
from typing import List, Dict, Any, Optional, Sequence
from dataclasses import dataclass
from enum import Enum
from scipy.spatial import cKDTree

from .trajectory import Interpolated, GeodesicInterpolator

logger = logging.getLogger(__name__)

COLLISION_RESOLUTION = 0.1


class PlanningStatus(Enum):
    """Outcome of a planning attempt."""
    SUCCESS = "success"
    INVALID_START = "invalid_start"
    INVALID_GOAL = "invalid_goal"
    COLLISION = "collision"
    JOINT_LIMIT = "joint_limit"
    TIMEOUT = "timeout"
    SAMPLING_FAILED = "sampling_failed"
    DEVIATION = "deviation"
    FAILED = "failed"


@dataclass
class PlanningResult:
    """Out-of-band report of the last planning outcome."""
    status: PlanningStatus = PlanningStatus.FAILED
    message: str = ""
    stage: Optional[str] = None
    computation_time: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.status == PlanningStatus.SUCCESS

    def report(self, status: PlanningStatus, message: str = "", stage: Optional[str] = None):
        self.status = status
        self.message = message
        if stage is not None:
            self.stage = stage


def coarse_to_fine_fractions(num_segments: int) -> List[float]:
    """Fractions i/n, i = 0..n, ordered endpoints first then by bisection."""
    order = [0, num_segments] if num_segments > 0 else [0]
    queue = deque([(0, num_segments)])
    while queue:
        lo, hi = queue.popleft()
        if hi - lo < 2:
            continue
        mid = (lo + hi) // 2
        order.append(mid)
        queue.append((lo, mid))
        queue.append((mid, hi))
    return [i / num_segments if num_segments else 0.0 for i in order]


class MotionValidator:
    """Checks states and straight motions against a testable."""

    def __init__(self, state_space, testable, resolution: float = COLLISION_RESOLUTION):
        if resolution <= 0.0:
            raise ValueError(f"Collision resolution must be positive, got {resolution}")
        self.state_space = state_space
        self.testable = testable
        self.resolution = resolution
        self._scratch = state_space.create_state()

    def is_valid(self, q: np.ndarray) -> bool:
        self.state_space.convert_from_vector(q, self._scratch)
        return self.testable.is_satisfied(self._scratch)

    def num_segments(self, q_from: np.ndarray, q_to: np.ndarray) -> int:
        distance = self.state_space.vector_distance(q_from, q_to)
        return max(1, int(math.ceil(distance / self.resolution)))

    def is_motion_valid(self, q_from: np.ndarray, q_to: np.ndarray) -> bool:
        """Checks every interpolated point after ``q_from`` up to ``q_to``."""
        n = self.num_segments(q_from, q_to)
        for i in range(1, n + 1):
            if not self.is_valid(self.state_space.interpolate_vectors(q_from, q_to, i / n)):
                return False
        return True


def make_trajectory(state_space, path: Sequence[np.ndarray], times: Optional[Sequence[float]] = None,
                    interpolator=None) -> Interpolated:
    """Trajectory through ``path``; untimed paths put waypoint i at time i."""
    trajectory = Interpolated(state_space, interpolator or GeodesicInterpolator(state_space))
    state = state_space.create_state()
    for i, q in enumerate(path):
        state_space.convert_from_vector(q, state)
        trajectory.add_waypoint(float(i) if times is None else times[i], state)
    return trajectory


def plan_snap(state_space, start_state, goal_state, interpolator, testable,
              result: Optional[PlanningResult] = None,
              resolution: float = COLLISION_RESOLUTION) -> Optional[Interpolated]:
    """
    Straight-line plan from start to goal.

    Points along the geodesic are checked coarse-to-fine; the first failing
    point rejects the plan.
    """
    result = result if result is not None else PlanningResult()
    validator = MotionValidator(state_space, testable, resolution)

    q_start = state_space.convert_to_vector(start_state)
    q_goal = state_space.convert_to_vector(goal_state)
    n = validator.num_segments(q_start, q_goal)

    for fraction in coarse_to_fine_fractions(n):
        if not validator.is_valid(state_space.interpolate_vectors(q_start, q_goal, fraction)):
            result.report(PlanningStatus.COLLISION,
                          f"Collision detected at fraction {fraction:.3f} of the snap path")
            return None

    trajectory = Interpolated(state_space, interpolator)
    trajectory.add_waypoint(0.0, start_state)
    trajectory.add_waypoint(1.0, goal_state)
    result.report(PlanningStatus.SUCCESS, "Snap path is collision free")
    return trajectory


# ----------------------------------------------------------------------
# Search trees
# ----------------------------------------------------------------------

def _new_tree(roots: Sequence[np.ndarray] = ()) -> Dict[str, Any]:
    tree = {'points': [], 'parents': [], 'kdtree': None, 'indexed': 0}
    for q in roots:
        _add_node(tree, q, -1)
    return tree


def _add_node(tree: Dict[str, Any], q: np.ndarray, parent: int) -> int:
    tree['points'].append(np.array(q, dtype=float))
    tree['parents'].append(parent)
    return len(tree['points']) - 1


def _nearest(state_space, tree: Dict[str, Any], target: np.ndarray) -> Optional[int]:
    """
    Index of the node nearest to ``target``.

    Euclidean spaces use a cKDTree over the first ``indexed`` nodes, rebuilt
    when the tree has doubled, plus a linear scan over newer nodes.
    """
    points = tree['points']
    if not points:
        return None

    if not state_space.is_euclidean():
        distances = np.linalg.norm(state_space.difference(np.asarray(points), target), axis=1)
        return int(np.argmin(distances))

    if tree['kdtree'] is None or len(points) > 2 * tree['indexed']:
        tree['kdtree'] = cKDTree(np.asarray(points))
        tree['indexed'] = len(points)

    best_distance, best_idx = tree['kdtree'].query(target)
    best_idx = int(best_idx)
    if len(points) > tree['indexed']:
        tail = np.asarray(points[tree['indexed']:])
        tail_distances = np.linalg.norm(tail - target, axis=1)
        tail_idx = int(np.argmin(tail_distances))
        if tail_distances[tail_idx] < best_distance:
            best_idx = tree['indexed'] + tail_idx
    return best_idx


def _get_tree_path(tree: Dict[str, Any], node_idx: int) -> List[np.ndarray]:
    """Path from the given node back to its root."""
    path = []
    current = node_idx
    while current != -1:
        path.append(tree['points'][current].copy())
        current = tree['parents'][current]
    return path


def _join_paths(start_tree_path: List[np.ndarray], goal_tree_path: List[np.ndarray],
                state_space) -> List[np.ndarray]:
    """Start root → connection → goal root, without a duplicated junction."""
    forward = start_tree_path[::-1]
    if goal_tree_path and state_space.vector_distance(forward[-1], goal_tree_path[0]) < 1e-12:
        goal_tree_path = goal_tree_path[1:]
    return forward + goal_tree_path


def shortcut_path(path: List[np.ndarray], validator: MotionValidator, budget) -> List[np.ndarray]:
    """Greedy shortcutting: from each kept point jump to the farthest reachable one."""
    if len(path) < 3:
        return path

    simplified = [path[0]]
    i = 0
    while i < len(path) - 1:
        if budget.is_expired():
            simplified.extend(path[i + 1:])
            return simplified
        j = len(path) - 1
        while j > i + 1 and not validator.is_motion_valid(path[i], path[j]):
            j -= 1
        simplified.append(path[j])
        i = j

    logger.debug(f"Shortcut reduced path from {len(path)} to {len(simplified)} waypoints")
    return simplified


# ----------------------------------------------------------------------
# RRT-Connect
# ----------------------------------------------------------------------

_TRAPPED, _ADVANCED, _REACHED = range(3)


class RRTConnect:
    """Bidirectional RRT with greedy connection between the trees."""

    def __init__(self, state_space, testable, rng, max_extension_distance: Optional[float] = None,
                 resolution: float = COLLISION_RESOLUTION, simplify: bool = True):
        """
        Args:
            state_space: JointStateSpace to search
            testable: Collision oracle (already including bounds if desired)
            rng: Random source for uniform sampling
            max_extension_distance: Step length, defaults to 20% of the space extent
            resolution: Collision checking resolution along edges
            simplify: Shortcut the solution path while budget remains
        """
        self.state_space = state_space
        self.rng = rng
        self.validator = MotionValidator(state_space, testable, resolution)
        self.max_extension_distance = (max_extension_distance if max_extension_distance
                                       else 0.2 * state_space.get_maximum_extent())
        self.simplify = simplify
        self._sample_state = state_space.create_state()

    def plan(self, start_state, goal_states: Sequence, budget,
             result: Optional[PlanningResult] = None) -> Optional[Interpolated]:
        result = result if result is not None else PlanningResult()
        space = self.state_space

        q_start = space.convert_to_vector(start_state)
        if not self.validator.is_valid(q_start):
            result.report(PlanningStatus.INVALID_START, "Start state violates constraints")
            return None

        q_goals = [space.convert_to_vector(g) for g in goal_states]
        q_goals = [q for q in q_goals if self.validator.is_valid(q)]
        if not q_goals:
            result.report(PlanningStatus.INVALID_GOAL, "No valid goal state")
            return None

        start_tree = _new_tree([q_start])
        goal_tree = _new_tree(q_goals)
        iteration = 0

        while not budget.is_expired():
            tree_from, tree_to = (start_tree, goal_tree) if iteration % 2 == 0 else (goal_tree, start_tree)
            iteration += 1

            space.sample_within_bounds(self.rng, self._sample_state)
            target = space.convert_to_vector(self._sample_state)

            status, new_idx = self._extend(tree_from, target)
            if status == _TRAPPED:
                continue

            status, connect_idx = self._connect(tree_to, tree_from['points'][new_idx], budget)
            if status == _REACHED:
                if tree_from is start_tree:
                    path = _join_paths(_get_tree_path(start_tree, new_idx),
                                       _get_tree_path(goal_tree, connect_idx), space)
                else:
                    path = _join_paths(_get_tree_path(start_tree, connect_idx),
                                       _get_tree_path(goal_tree, new_idx), space)

                logger.info(f"RRT-Connect solved in {iteration} iterations, trees "
                            f"{len(start_tree['points'])}/{len(goal_tree['points'])}")
                if self.simplify:
                    path = shortcut_path(path, self.validator, budget)
                result.report(PlanningStatus.SUCCESS, f"Path with {len(path)} waypoints")
                return make_trajectory(space, path)

        logger.info(f"RRT-Connect timed out after {iteration} iterations")
        result.report(PlanningStatus.TIMEOUT, "Time limit reached before trees connected")
        return None

    def _steer(self, tree: Dict[str, Any], from_idx: int, target: np.ndarray):
        q_from = tree['points'][from_idx]
        distance = self.state_space.vector_distance(q_from, target)
        if distance < 1e-9:
            return _REACHED, from_idx

        if distance <= self.max_extension_distance:
            q_new, status = np.array(target, dtype=float), _REACHED
        else:
            q_new = self.state_space.interpolate_vectors(
                q_from, target, self.max_extension_distance / distance)
            status = _ADVANCED

        if not self.validator.is_motion_valid(q_from, q_new):
            return _TRAPPED, from_idx
        return status, _add_node(tree, q_new, from_idx)

    def _extend(self, tree: Dict[str, Any], target: np.ndarray):
        return self._steer(tree, _nearest(self.state_space, tree, target), target)

    def _connect(self, tree: Dict[str, Any], target: np.ndarray, budget):
        idx = _nearest(self.state_space, tree, target)
        status = _ADVANCED
        while status == _ADVANCED and not budget.is_expired():
            status, idx = self._steer(tree, idx, target)
        return status, idx


# ----------------------------------------------------------------------
# Constrained RRT-Connect
# ----------------------------------------------------------------------

class CRRTConnect:
    """
    Bidirectional search on a constraint manifold.

    New nodes are obtained by stepping towards a target, projecting onto the
    manifold and keeping the projection only when it stays close to the raw
    step, makes progress and is reachable by a collision-free motion.
    """

    def __init__(self, state_space, testable, projectable, goal_sampleable, goal_testable,
                 constraint_sampleable, rng,
                 max_extension_distance: float = 0.5,
                 max_distance_btw_projections: float = 0.1,
                 min_step_size: float = 0.05,
                 min_tree_connection_distance: float = 0.1,
                 resolution: float = COLLISION_RESOLUTION,
                 goal_sample_probability: float = 0.1):
        if min_step_size <= 0.0:
            raise ValueError(f"min_step_size must be positive, got {min_step_size}")
        self.state_space = state_space
        self.validator = MotionValidator(state_space, testable, resolution)
        self.projectable = projectable
        self.goal_sampleable = goal_sampleable
        self.goal_testable = goal_testable
        self.constraint_sampleable = constraint_sampleable
        self.rng = rng
        self.max_extension_distance = max_extension_distance
        self.max_distance_btw_projections = max_distance_btw_projections
        self.min_step_size = min_step_size
        self.min_tree_connection_distance = min_tree_connection_distance
        self.goal_sample_probability = goal_sample_probability

        self._state = state_space.create_state()
        self._projected = state_space.create_state()

    def plan(self, start_state, budget,
             result: Optional[PlanningResult] = None) -> Optional[Interpolated]:
        result = result if result is not None else PlanningResult()
        space = self.state_space

        q_start = space.convert_to_vector(start_state)
        if not self.validator.is_valid(q_start):
            result.report(PlanningStatus.INVALID_START, "Start state violates constraints")
            return None
        if self.goal_testable is not None and self.goal_testable.is_satisfied(start_state):
            result.report(PlanningStatus.SUCCESS, "Start state already satisfies the goal")
            return make_trajectory(space, [q_start])

        goal_generator = self.goal_sampleable.create_sample_generator()
        constraint_generator = (self.constraint_sampleable.create_sample_generator()
                                if self.constraint_sampleable is not None else None)

        start_tree = _new_tree([q_start])
        goal_tree = _new_tree()
        iteration = 0

        while not budget.is_expired():
            iteration += 1

            if not goal_tree['points'] or self.rng.sample() < self.goal_sample_probability:
                self._add_goal_sample(goal_tree, goal_generator)
            if not goal_tree['points']:
                if not goal_generator.can_sample():
                    result.report(PlanningStatus.SAMPLING_FAILED, "No valid goal sample found")
                    return None
                continue

            target = self._sample_target(constraint_generator)
            tree_a, tree_b = (start_tree, goal_tree) if iteration % 2 else (goal_tree, start_tree)

            _, a_idx = self._constrained_extend(tree_a, _nearest(space, tree_a, target), target, budget)
            if tree_a is start_tree and self._satisfies_goal(tree_a['points'][a_idx]):
                return self._finish(_get_tree_path(start_tree, a_idx)[::-1], iteration, result)

            q_a = tree_a['points'][a_idx]
            reached, b_idx = self._constrained_extend(tree_b, _nearest(space, tree_b, q_a), q_a, budget)
            if tree_b is start_tree and self._satisfies_goal(tree_b['points'][b_idx]):
                return self._finish(_get_tree_path(start_tree, b_idx)[::-1], iteration, result)

            if reached and self.validator.is_motion_valid(tree_b['points'][b_idx], q_a):
                if tree_a is start_tree:
                    path = _join_paths(_get_tree_path(start_tree, a_idx),
                                       _get_tree_path(goal_tree, b_idx), space)
                else:
                    path = _join_paths(_get_tree_path(start_tree, b_idx),
                                       _get_tree_path(goal_tree, a_idx), space)
                return self._finish(path, iteration, result)

        logger.info(f"CRRT-Connect timed out after {iteration} iterations")
        result.report(PlanningStatus.TIMEOUT, "Time limit reached before trees connected")
        return None

    def _finish(self, path: List[np.ndarray], iteration: int,
                result: PlanningResult) -> Interpolated:
        logger.info(f"CRRT-Connect solved in {iteration} iterations with {len(path)} waypoints")
        result.report(PlanningStatus.SUCCESS, f"Constrained path with {len(path)} waypoints")
        return make_trajectory(self.state_space, path)

    def _satisfies_goal(self, q: np.ndarray) -> bool:
        if self.goal_testable is None:
            return False
        self.state_space.convert_from_vector(q, self._state)
        return self.goal_testable.is_satisfied(self._state)

    def _add_goal_sample(self, goal_tree: Dict[str, Any], goal_generator):
        if not goal_generator.can_sample():
            return
        if goal_generator.sample(self._state):
            q_goal = self.state_space.convert_to_vector(self._state)
            if self.validator.is_valid(q_goal):
                _add_node(goal_tree, q_goal, -1)
                logger.debug(f"Goal tree now has {len(goal_tree['points'])} node(s)")

    def _sample_target(self, constraint_generator) -> np.ndarray:
        if (constraint_generator is not None and constraint_generator.can_sample()
                and constraint_generator.sample(self._state)):
            return self.state_space.convert_to_vector(self._state)
        self.state_space.sample_within_bounds(self.rng, self._state)
        return self.state_space.convert_to_vector(self._state)

    def _project(self, q: np.ndarray) -> Optional[np.ndarray]:
        self.state_space.convert_from_vector(q, self._state)
        if not self.projectable.project(self._state, self._projected):
            return None
        return self.state_space.convert_to_vector(self._projected)

    def _constrained_extend(self, tree: Dict[str, Any], idx: int, target: np.ndarray, budget):
        """
        Grow ``tree`` from node ``idx`` towards ``target``.

        Returns (reached, last_idx): whether the last node is within the tree
        connection distance of the target, and the index of that node.
        """
        space = self.state_space
        current = idx
        previous_distance = space.vector_distance(tree['points'][current], target)

        while previous_distance >= self.min_tree_connection_distance:
            if budget.is_expired():
                return False, current

            q_current = tree['points'][current]
            step = min(self.max_extension_distance, previous_distance)
            q_step = space.interpolate_vectors(q_current, target, step / previous_distance)

            q_projected = self._project(q_step)
            if q_projected is None:
                break
            if space.vector_distance(q_step, q_projected) > self.max_distance_btw_projections:
                break

            new_distance = space.vector_distance(q_projected, target)
            if new_distance >= previous_distance:
                break
            if (space.vector_distance(q_current, q_projected) < self.min_step_size
                    and new_distance >= self.min_tree_connection_distance):
                break
            if not self.validator.is_motion_valid(q_current, q_projected):
                break

            current = _add_node(tree, q_projected, current)
            previous_distance = new_distance

        return previous_distance < self.min_tree_connection_distance, current
