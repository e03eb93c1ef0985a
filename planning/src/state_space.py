#!/usr/bin/env python3
"""
Joint State Space Module

Configuration space of a kinematic chain as used by every planner: explicit
state objects, the geodesic metric, bounds sampling and the scoped saver that
restores a skeleton's live configuration.

Key Features:
- Opaque states, mutated only through explicit copy/set/get calls
- Euclidean metric with optional cyclic (continuous) joints
- Uniform sampling and projection inside joint bounds
- Scoped save/restore of the live skeleton configuration

Author: Robot Control Team
"""

import numpy as np
import logging
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class State:
    """A point of a JointStateSpace. Holds its own value buffer."""

    __slots__ = ('values',)

    def __init__(self, values: np.ndarray):
        self.values = values

    def __repr__(self):
        return f"State({np.array2string(self.values, precision=4)})"


def wrap_angle(angle):
    """Wrap angles into [-π, π)."""
    return (np.asarray(angle) + np.pi) % (2 * np.pi) - np.pi


class JointStateSpace:
    """
    Real vector space of joint positions bounded by joint limits.

    Joints flagged as cyclic are treated as SO(2): differences wrap at ±π and
    their sampling range is [-π, π).
    """

    def __init__(self, lower: Sequence[float], upper: Sequence[float],
                 cyclic: Optional[Sequence[bool]] = None):
        self.lower = np.asarray(lower, dtype=float)
        self.upper = np.asarray(upper, dtype=float)
        if self.lower.shape != self.upper.shape or self.lower.ndim != 1:
            raise ValueError("Lower and upper bounds must be vectors of equal length")
        if np.any(self.lower > self.upper):
            raise ValueError("Lower bound exceeds upper bound")

        if cyclic is None:
            cyclic = np.zeros(self.lower.shape, dtype=bool)
        self.cyclic = np.asarray(cyclic, dtype=bool)
        if self.cyclic.shape != self.lower.shape:
            raise ValueError("Cyclic mask must match the number of joints")

        self.lower = np.where(self.cyclic, -np.pi, self.lower)
        self.upper = np.where(self.cyclic, np.pi, self.upper)

    @classmethod
    def from_skeleton(cls, skeleton, cyclic: Optional[Sequence[bool]] = None) -> "JointStateSpace":
        limits = skeleton.get_joint_limits()
        return cls(limits[0], limits[1], cyclic)

    @property
    def dimension(self) -> int:
        return self.lower.shape[0]

    def is_euclidean(self) -> bool:
        return not np.any(self.cyclic)

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def create_state(self) -> State:
        return State(np.zeros(self.dimension))

    def copy_state(self, source: State, destination: State):
        destination.values[:] = source.values

    def convert_to_vector(self, state: State) -> np.ndarray:
        return state.values.copy()

    def convert_from_vector(self, vector, out_state: State):
        vector = np.asarray(vector, dtype=float)
        if vector.shape != (self.dimension,):
            raise ValueError(f"Expected vector of shape ({self.dimension},), got {vector.shape}")
        out_state.values[:] = vector

    def create_state_from_vector(self, vector) -> State:
        state = self.create_state()
        self.convert_from_vector(vector, state)
        return state

    def get_state(self, skeleton, out_state: State):
        self.convert_from_vector(skeleton.get_positions(), out_state)

    def set_state(self, skeleton, state: State):
        skeleton.set_positions(state.values)

    def get_scoped_state_from_skeleton(self, skeleton) -> State:
        state = self.create_state()
        self.get_state(skeleton, state)
        return state

    # ------------------------------------------------------------------
    # Metric and interpolation
    # ------------------------------------------------------------------

    def difference(self, from_vector: np.ndarray, to_vector: np.ndarray) -> np.ndarray:
        """Tangent from ``from_vector`` to ``to_vector``; accepts (n,) or (k, n) arrays."""
        delta = np.asarray(to_vector, dtype=float) - np.asarray(from_vector, dtype=float)
        if np.any(self.cyclic):
            delta = np.where(self.cyclic, wrap_angle(delta), delta)
        return delta

    def distance(self, state_a: State, state_b: State) -> float:
        return float(np.linalg.norm(self.difference(state_a.values, state_b.values)))

    def vector_distance(self, a: np.ndarray, b: np.ndarray) -> float:
        return float(np.linalg.norm(self.difference(a, b)))

    def interpolate_vectors(self, from_vector: np.ndarray, to_vector: np.ndarray,
                            alpha: float) -> np.ndarray:
        """Geodesic point at fraction ``alpha``; exact at 0 and 1."""
        if alpha <= 0.0:
            return np.array(from_vector, dtype=float)
        if alpha >= 1.0:
            return np.array(to_vector, dtype=float)
        result = from_vector + alpha * self.difference(from_vector, to_vector)
        if np.any(self.cyclic):
            result = np.where(self.cyclic, wrap_angle(result), result)
        return result

    def interpolate(self, from_state: State, to_state: State, alpha: float, out_state: State):
        out_state.values[:] = self.interpolate_vectors(from_state.values, to_state.values, alpha)

    def get_maximum_extent(self) -> float:
        span = np.where(self.cyclic, np.pi, self.upper - self.lower)
        return float(np.linalg.norm(span))

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def sample_within_bounds(self, rng, out_state: State):
        out_state.values[:] = rng.uniform(self.lower, self.upper)

    def is_within_bounds(self, state: State, tolerance: float = 0.0) -> bool:
        values = state.values
        return bool(np.all(values >= self.lower - tolerance) and
                    np.all(values <= self.upper + tolerance))

    def project_to_bounds(self, state: State, out_state: State):
        values = state.values
        if np.any(self.cyclic):
            values = np.where(self.cyclic, wrap_angle(values), values)
        out_state.values[:] = np.clip(values, self.lower, self.upper)


class SkeletonStateSaver:
    """
    Context manager restoring a skeleton's live configuration on exit.

    Usage:
        with skeleton.mutex, SkeletonStateSaver(skeleton):
            ...  # planners may freely set positions here
    """

    def __init__(self, skeleton):
        self.skeleton = skeleton
        self._saved_positions = None

    def __enter__(self):
        self._saved_positions = self.skeleton.get_positions().copy()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.skeleton.set_positions(self._saved_positions)
        return False
