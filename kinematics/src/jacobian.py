#!/usr/bin/env python3
"""
Geometric Jacobian Module

Computes the 6 x n geometric Jacobian of a revolute chain from its link poses,
together with the conditioning measures used for singularity handling:

- Manipulability  w = sqrt(det(J Jᵀ)), clamped to 0 for a negative determinant
- Condition number κ(J) = σ_max / σ_min, +inf below a numerical floor

Column i uses the z-axis and origin of frame i-1 (frame 0 is the base):

    J_i = [ z_{i-1} × (p_end - p_{i-1}) ]
          [ z_{i-1}                     ]

Author: Robot Control Team
"""

import numpy as np
import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from .arm_config import ArmConfig, resolve_config
from .forward_kinematic import ForwardKinematics, FKResult

logger = logging.getLogger(__name__)

SIGMA_FLOOR = 1e-10

_BASE_Z = np.array([0.0, 0.0, 1.0])
_BASE_ORIGIN = np.zeros(3)


@dataclass(frozen=True)
class JacobianResult:
    """Jacobian with derived conditioning metrics."""
    J: np.ndarray                 # (6, n): rows 0-2 linear, rows 3-5 angular
    manipulability: float
    condition_number: float
    singular_values: np.ndarray

    def __iter__(self) -> Iterator:
        return iter((self.J, self.manipulability, self.condition_number))

    @property
    def gram_determinant(self) -> float:
        return float(np.linalg.det(self.J @ self.J.T))


def jacobian_from_chain(fk_result: FKResult) -> np.ndarray:
    """Build the 6 x n geometric Jacobian from an FK link chain."""
    chain = fk_result.link_chain
    n = chain.shape[0]
    p_end = fk_result.pose[:3, 3]

    J = np.zeros((6, n))
    for i in range(n):
        if i == 0:
            z_prev, p_prev = _BASE_Z, _BASE_ORIGIN
        else:
            z_prev = chain[i - 1][:3, 2]
            p_prev = chain[i - 1][:3, 3]

        J[:3, i] = np.cross(z_prev, p_end - p_prev)
        J[3:, i] = z_prev

    return J


def manipulability_index(J: np.ndarray) -> float:
    det_jjt = np.linalg.det(J @ J.T)
    if det_jjt < 0:
        logger.debug(f"Negative Gram determinant ({det_jjt:.2e}), manipulability clamped to 0")
        return 0.0
    return float(np.sqrt(det_jjt))


def condition_number(singular_values: np.ndarray) -> float:
    if singular_values[-1] < SIGMA_FLOOR:
        return float('inf')
    return float(singular_values[0] / singular_values[-1])


class GeometricJacobian:
    """Geometric Jacobian and conditioning metrics for an arm configuration."""

    def __init__(self, forward_kinematics: Optional[ForwardKinematics] = None,
                 config: Optional[ArmConfig] = None):
        """
        Args:
            forward_kinematics: ForwardKinematics instance (built from config when None)
            config: ArmConfig used when no forward_kinematics is given
        """
        self.fk = forward_kinematics or ForwardKinematics(resolve_config(config))
        self.config = self.fk.config
        self.n_joints = self.fk.n_joints

    def compute(self, q: Sequence[float]) -> JacobianResult:
        """
        Compute J, manipulability and condition number at q.

        The link chain is re-derived through forward kinematics, so dimension
        and non-finite errors propagate from there.
        """
        fk_result = self.fk.compute(q)
        return self.from_fk_result(fk_result)

    def from_fk_result(self, fk_result: FKResult) -> JacobianResult:
        J = jacobian_from_chain(fk_result)
        sigma = np.linalg.svd(J, compute_uv=False)
        return JacobianResult(
            J=J,
            manipulability=manipulability_index(J),
            condition_number=condition_number(sigma),
            singular_values=sigma
        )

    def compute_jacobian(self, q: Sequence[float]) -> np.ndarray:
        return self.compute(q).J


def jacobian(joints: Sequence[float], config: Optional[ArmConfig] = None) -> JacobianResult:
    """Functional entry point: (J, manipulability, condition_number)."""
    return GeometricJacobian(config=config).compute(joints)
