#!/usr/bin/env python3
"""
Joint limit projection.

Author: Robot Control Team
"""

import numpy as np
from typing import Optional, Sequence

from .arm_config import ArmConfig, resolve_config


class JointLimiter:
    """Clamp joint vectors into the configured [qmin, qmax] box."""

    def __init__(self, config: Optional[ArmConfig] = None):
        self.config = resolve_config(config)
        limits = self.config.joint_limits()
        self.lower = limits[0]
        self.upper = limits[1]

    def clamp(self, q: Sequence[float]) -> np.ndarray:
        """Return a clamped copy of q; never fails."""
        return np.clip(np.asarray(q, dtype=float).reshape(-1), self.lower, self.upper)

    def violations(self, q: Sequence[float]) -> np.ndarray:
        """Boolean mask of joints outside their limits."""
        q = np.asarray(q, dtype=float)
        return (q < self.lower) | (q > self.upper)

    def within_limits(self, q: Sequence[float]) -> bool:
        return not np.any(self.violations(q))


def enforce_limits(joints: Sequence[float], config: Optional[ArmConfig] = None) -> np.ndarray:
    return JointLimiter(config).clamp(joints)
