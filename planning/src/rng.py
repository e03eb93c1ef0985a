#!/usr/bin/env python3
"""
Random number source shared by the sampling-based planners.

Wraps a numpy ``Generator`` so planners can hand out independent,
reproducible streams through ``clone()``.

Author: Robot Control Team
"""

import numpy as np
from typing import Optional


class RNG:
    """Seedable random source with independent clones."""

    def __init__(self, seed: Optional[int] = None):
        self._generator = np.random.default_rng(seed)

    def clone(self) -> "RNG":
        """New generator seeded from this one; draws do not interleave."""
        return RNG(int(self._generator.integers(0, 2**63 - 1)))

    def sample(self) -> float:
        """Uniform draw in [0, 1)."""
        return float(self._generator.random())

    def uniform(self, low, high) -> np.ndarray:
        """Elementwise uniform draw in [low, high]; equal bounds return the bound."""
        low = np.asarray(low, dtype=float)
        high = np.asarray(high, dtype=float)
        return low + (high - low) * self._generator.random(low.shape)
