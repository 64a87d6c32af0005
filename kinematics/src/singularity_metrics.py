#!/usr/bin/env python3
"""
Singularity Metrics Module

Classifies joint configurations as singular or not from the Jacobian
conditioning measures:

    is_singular = κ(J) > cond_threshold  or  w < manip_threshold

Author: Robot Control Team
"""

import numpy as np
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Sequence

from .arm_config import ArmConfig
from .jacobian import GeometricJacobian

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingularityReport:
    det_gram: float
    condition_number: float
    manipulability: float
    is_singular: bool

    def __iter__(self) -> Iterator:
        return iter((self.det_gram, self.condition_number, self.manipulability, self.is_singular))


class SingularityMetrics:
    """Thin classification layer over GeometricJacobian."""

    def __init__(self, jacobian: Optional[GeometricJacobian] = None,
                 config: Optional[ArmConfig] = None):
        self.jacobian = jacobian or GeometricJacobian(config=config)
        self.config = self.jacobian.config

    def classify(self, condition_number: float, manipulability: float) -> bool:
        return bool(condition_number > self.config.cond_threshold
                    or manipulability < self.config.manip_threshold)

    def evaluate(self, q: Sequence[float]) -> SingularityReport:
        result = self.jacobian.compute(q)
        return SingularityReport(
            det_gram=result.gram_determinant,
            condition_number=result.condition_number,
            manipulability=result.manipulability,
            is_singular=self.classify(result.condition_number, result.manipulability)
        )

    def evaluate_path(self, q_samples: np.ndarray) -> Dict[str, np.ndarray]:
        """
        Conditioning along a sequence of joint vectors (e.g. a trajectory).

        Args:
            q_samples: (K, n) joint positions

        Returns:
            Dictionary with per-sample 'condition_numbers', 'manipulability',
            'is_singular', plus 'singular_count' and 'max_condition_number'
        """
        q_samples = np.atleast_2d(np.asarray(q_samples, dtype=float))
        reports = [self.evaluate(q) for q in q_samples]

        cond = np.array([r.condition_number for r in reports])
        manip = np.array([r.manipulability for r in reports])
        flags = np.array([r.is_singular for r in reports], dtype=bool)

        if flags.any():
            logger.debug(f"{int(flags.sum())}/{len(flags)} path samples near singularity")

        return {
            'condition_numbers': cond,
            'manipulability': manip,
            'is_singular': flags,
            'singular_count': int(flags.sum()),
            'max_condition_number': float(cond.max()) if len(cond) else 0.0,
        }


def singularity_metrics(joints: Sequence[float], config: Optional[ArmConfig] = None) -> SingularityReport:
    """Functional entry point: (det_gram, condition_number, manipulability, is_singular)."""
    return SingularityMetrics(config=config).evaluate(joints)
