#!/usr/bin/env python3
"""
Trajectory Module

Continuous-time trajectories built from time-stamped waypoints:
- Waypoints kept sorted by time (stable for equal times)
- State evaluation by geodesic interpolation between bracketing waypoints
- Derivative evaluation up to the interpolator's supported order
- Binary-search lookup of the waypoint following a given time

Every planner in the package returns an ``Interpolated`` trajectory.

Author: Robot Control Team
"""

import bisect
import numpy as np
import logging
from dataclasses import dataclass
from typing import Iterator, List, Tuple

logger = logging.getLogger(__name__)


class TrajectoryError(Exception):
    """Base class for trajectory errors."""
    pass


class DomainError(TrajectoryError, ValueError):
    """Evaluation time outside the trajectory's time span."""
    pass


class UnsupportedDerivative(TrajectoryError):
    """Derivative order not provided by the interpolator."""
    pass


class GeodesicInterpolator:
    """Straight-line interpolation along the state space geodesic."""

    def __init__(self, state_space):
        self.state_space = state_space

    def get_num_derivatives(self) -> int:
        return 1

    def interpolate(self, from_state, to_state, alpha: float, out_state):
        self.state_space.interpolate(from_state, to_state, alpha, out_state)

    def get_derivative(self, from_state, to_state, derivative: int) -> np.ndarray:
        """Derivative w.r.t. the normalized segment parameter in [0, 1]."""
        if derivative < 1:
            raise ValueError(f"Derivative order must be at least 1, got {derivative}")
        if derivative > self.get_num_derivatives():
            raise UnsupportedDerivative(
                f"Geodesic interpolation provides {self.get_num_derivatives()} derivative(s), "
                f"requested order {derivative}"
            )
        return self.state_space.difference(from_state.values, to_state.values)


@dataclass
class Waypoint:
    """Single trajectory waypoint."""
    time: float
    state: object


class Interpolated:
    """
    Trajectory defined by waypoints and an interpolator.

    The state space is shared, waypoint states are copied on insertion.
    """

    def __init__(self, state_space, interpolator):
        self.state_space = state_space
        self.interpolator = interpolator
        self._waypoints: List[Waypoint] = []
        self._times: List[float] = []

    def __len__(self):
        return len(self._waypoints)

    def __iter__(self) -> Iterator[Tuple[float, object]]:
        for waypoint in self._waypoints:
            yield waypoint.time, waypoint.state

    def get_state_space(self):
        return self.state_space

    def get_interpolator(self):
        return self.interpolator

    def get_num_derivatives(self) -> int:
        return self.interpolator.get_num_derivatives()

    def add_waypoint(self, t: float, state):
        """
        Insert a copy of ``state`` at time ``t``.

        Waypoints stay sorted by time; a waypoint added at an existing time is
        placed after the waypoints already there.
        """
        t = float(t)
        if not np.isfinite(t):
            raise ValueError(f"Waypoint time must be finite, got {t}")

        state_copy = self.state_space.create_state()
        self.state_space.copy_state(state, state_copy)

        index = bisect.bisect_right(self._times, t)
        self._times.insert(index, t)
        self._waypoints.insert(index, Waypoint(t, state_copy))

    def get_num_waypoints(self) -> int:
        return len(self._waypoints)

    def get_waypoint(self, index: int):
        return self._waypoints[index].state

    def get_waypoint_time(self, index: int) -> float:
        return self._waypoints[index].time

    def get_start_time(self) -> float:
        self._require_waypoints()
        return self._times[0]

    def get_end_time(self) -> float:
        self._require_waypoints()
        return self._times[-1]

    def get_duration(self) -> float:
        return self.get_end_time() - self.get_start_time()

    def waypoint_index_after_time(self, t: float) -> int:
        """
        Index of the first waypoint whose time is strictly greater than ``t``.

        Returns 0 for times before the first waypoint. Raises DomainError when
        no such waypoint exists, i.e. for ``t`` at or after the last waypoint.
        """
        self._require_waypoints()
        index = bisect.bisect_right(self._times, t)
        if index >= len(self._times):
            raise DomainError(
                f"No waypoint after time {t}; trajectory ends at {self._times[-1]}"
            )
        return index

    def evaluate(self, t: float, out_state):
        """Write the state at time ``t`` into ``out_state``."""
        self._check_time(t)

        if t == self._times[-1]:
            self.state_space.copy_state(self._waypoints[-1].state, out_state)
            return

        next_index = self.waypoint_index_after_time(t)
        next_waypoint = self._waypoints[next_index]
        previous_waypoint = self._waypoints[next_index - 1]

        segment_duration = next_waypoint.time - previous_waypoint.time
        alpha = (t - previous_waypoint.time) / segment_duration
        self.interpolator.interpolate(previous_waypoint.state, next_waypoint.state,
                                      alpha, out_state)

    def evaluate_derivative(self, t: float, derivative: int) -> np.ndarray:
        """
        Time derivative of the given order at ``t``.

        The last waypoint time uses the final segment. A single-waypoint
        trajectory has zero derivatives.
        """
        if derivative < 1:
            raise ValueError(f"Derivative order must be at least 1, got {derivative}")
        if derivative > self.get_num_derivatives():
            raise UnsupportedDerivative(
                f"Trajectory supports {self.get_num_derivatives()} derivative(s), "
                f"requested order {derivative}"
            )
        self._check_time(t)

        if len(self._waypoints) == 1:
            return np.zeros(self.state_space.dimension)

        if t == self._times[-1]:
            next_index = len(self._waypoints) - 1
        else:
            next_index = self.waypoint_index_after_time(t)
        next_waypoint = self._waypoints[next_index]
        previous_waypoint = self._waypoints[next_index - 1]

        segment_duration = next_waypoint.time - previous_waypoint.time
        if segment_duration <= 0.0:
            return np.zeros(self.state_space.dimension)

        tangent = self.interpolator.get_derivative(previous_waypoint.state,
                                                   next_waypoint.state, derivative)
        return tangent / segment_duration ** derivative

    def _require_waypoints(self):
        if not self._waypoints:
            raise DomainError("Trajectory has no waypoints")

    def _check_time(self, t: float):
        self._require_waypoints()
        if t < self._times[0] or t > self._times[-1]:
            raise DomainError(
                f"Time {t} outside trajectory span [{self._times[0]}, {self._times[-1]}]"
            )
