#!/usr/bin/env python3
"""
Forward Kinematics Module for Serial Revolute Manipulators

This module implements forward kinematics using the standard Denavit-Hartenberg
convention. It composes per-joint link transforms into the end-effector pose and
all intermediate frame poses.

Key Features:
- Standard DH link transforms: Rz(q+θ₀) · Tz(d) · Tx(a) · Rx(α)
- Full link chain (base → frame i) for Jacobian construction
- Per-frame rotation orthonormality check (non-fatal validity flag)
- Fail-fast on dimension mismatch and non-finite values

Author: Robot Control Team
"""

import numpy as np
import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from .arm_config import ArmConfig, resolve_config
from .pose_math import dh_transform, orthonormality_error

logger = logging.getLogger(__name__)


class ForwardKinematicsError(Exception):
    """Custom exception for forward kinematics errors."""
    pass


class DimensionMismatch(ForwardKinematicsError):
    """Joint vector length differs from the configured degree-of-freedom count."""
    pass


class NonFiniteResult(ForwardKinematicsError):
    """A composed transform contains NaN or Inf."""
    pass


@dataclass(frozen=True)
class FKResult:
    """Forward kinematics output for one joint vector."""
    pose: np.ndarray            # 4x4 base → end-effector
    link_chain: np.ndarray      # (n, 4, 4) base → frame i, i = 1..n
    valid: bool                 # all frames orthonormal within tolerance
    max_orthonormality_error: float = 0.0

    def __iter__(self) -> Iterator:
        return iter((self.pose, self.link_chain, self.valid))

    @property
    def position(self) -> np.ndarray:
        return self.pose[:3, 3].copy()


class ForwardKinematics:
    """Forward kinematics implementation using standard DH parameters."""

    def __init__(self, config: Optional[ArmConfig] = None):
        """
        Initialize forward kinematics with an arm configuration.

        Args:
            config: ArmConfig to use; the process-wide default when None
        """
        self.config = resolve_config(config)
        self.n_joints = self.config.n

        dh = self.config.dh_parameters()
        self._a = dh['a']
        self._d = dh['d']
        self._alpha = dh['alpha']
        self._theta0 = dh['theta0']
        self.joint_limits = self.config.joint_limits()
        self._orthonormality_tol = self.config.orthonormality_tol

        logger.debug(f"Forward kinematics initialized with {self.n_joints} joints")

    def _check_input(self, q: Sequence[float]) -> np.ndarray:
        q = np.asarray(q, dtype=float).reshape(-1)
        if q.shape[0] != self.n_joints:
            raise DimensionMismatch(
                f"Joint vector must have {self.n_joints} elements, got {q.shape[0]}")
        return q

    def compute(self, q: Sequence[float]) -> FKResult:
        """
        Compute the end-effector pose and the full link chain.

        For each joint i the DH transform Tᵢ is accumulated as T₀ᵢ = T₀,ᵢ₋₁ · Tᵢ.
        A frame whose rotation block fails the orthonormality check clears the
        validity flag but computation continues.

        Args:
            q: Joint angles in radians (n_joints,)

        Returns:
            FKResult with pose, link chain and validity flag

        Raises:
            DimensionMismatch: If len(q) != n_joints
            NonFiniteResult: If any composed entry is NaN or Inf
        """
        q = self._check_input(q)

        T = np.eye(4)
        chain = np.empty((self.n_joints, 4, 4))
        valid = True
        worst = 0.0

        for i in range(self.n_joints):
            T = T @ dh_transform(q[i] + self._theta0[i], self._d[i], self._a[i], self._alpha[i])

            if not np.all(np.isfinite(T)):
                raise NonFiniteResult(f"Frame {i + 1} contains NaN or Inf values")

            chain[i] = T

            err = orthonormality_error(T)
            worst = max(worst, err)
            if err > self._orthonormality_tol:
                valid = False
                logger.warning(f"Frame {i + 1}: rotation orthonormality error = {err:.2e} "
                               f"(threshold: {self._orthonormality_tol:.0e})")

        return FKResult(pose=T.copy(), link_chain=chain, valid=valid,
                        max_orthonormality_error=worst)

    def compute_forward_kinematics(self, q: Sequence[float]) -> np.ndarray:
        """
        Compute the end-effector pose only.

        Args:
            q: Joint angles in radians (n_joints,)

        Returns:
            4x4 homogeneous transformation matrix of end-effector pose
        """
        return self.compute(q).pose

    def get_joint_limits(self) -> np.ndarray:
        """Get joint limits."""
        return self.joint_limits.copy()


def forward_kinematics(joints: Sequence[float], config: Optional[ArmConfig] = None) -> FKResult:
    """Functional entry point: (pose, link_chain, valid) for one joint vector."""
    return ForwardKinematics(config).compute(joints)
