#!/usr/bin/env python3
"""
Inverse Kinematics Module - Damped Least Squares

This module solves for joint angles that place the end-effector at a position
plus heading (yaw) target. The task is 4-dimensional (x, y, z, yaw), so on a
5-DOF arm one degree of redundancy remains; it is resolved implicitly by the
damped step itself, with no secondary null-space objective.

Key Features:
- Damped Least Squares (DLS) update: (JᵀJ + λ²I) Δq = Jᵀ e
- Adaptive damping driven by the Jacobian condition number
- Half-size steps near singularities to avoid overshoot
- Joint-limit projection after every update
- Tagged terminal status instead of exceptions for non-convergence
- Thread-safe solve statistics

Iteration outline (bounded by max_iters):
    1. FK at current joints; invalid frame → SINGULAR
    2. Position error and wrapped yaw error
    3. Converged within tolerances → SUCCESS
    4. Reduced 4 x n Jacobian (3 linear rows + z angular row)
    5. κ(J) > threshold: λ ← min(2λ, λ_max), count event; else λ ← max(λ/1.5, λ_init)
    6. Solve damped normal equations
    7. Step scale 0.5 near singularity, 1.0 otherwise
    8. Clamp into joint limits
Exhaustion → UNREACHABLE if position error > unreachable_distance,
otherwise MAX_ITERATIONS. The last iterate is always returned.

Author: Robot Control Team
"""

import numpy as np
from numpy.linalg import norm
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple, Union

from .arm_config import ArmConfig, resolve_config
from .forward_kinematic import ForwardKinematics, DimensionMismatch
from .jacobian import GeometricJacobian
from .joint_limiter import JointLimiter
from .pose_math import position_and_yaw, wrap_to_pi

logger = logging.getLogger(__name__)

# Rows of the geometric Jacobian kept for the position + yaw task
TASK_ROWS = [0, 1, 2, 5]

SINGULAR_STEP_SCALE = 0.5
DAMPING_GROWTH = 2.0
DAMPING_DECAY = 1.5


class InverseKinematicsError(ValueError):
    """Raised for targets the solver cannot interpret."""
    pass


class IKStatus(Enum):
    """Terminal states of the DLS solver."""
    SUCCESS = "success"
    MAX_ITERATIONS = "max_iters"
    UNREACHABLE = "unreachable"
    SINGULAR = "singularity"


@dataclass(frozen=True)
class Target:
    """Reduced task target: position plus heading about the vertical axis."""
    x: float
    y: float
    z: float
    yaw: float = 0.0

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z, self.yaw], dtype=float)

    @classmethod
    def from_pose(cls, T: np.ndarray) -> 'Target':
        p, yaw = position_and_yaw(np.asarray(T, dtype=float))
        return cls(float(p[0]), float(p[1]), float(p[2]), yaw)

    @classmethod
    def coerce(cls, target: Union['Target', Sequence[float], np.ndarray]) -> 'Target':
        """Accept a Target, a 4x4 homogeneous transform or [x, y, z, yaw]."""
        if isinstance(target, cls):
            return target
        arr = np.asarray(target, dtype=float)
        if arr.shape == (4, 4):
            return cls.from_pose(arr)
        if arr.size == 4:
            x, y, z, yaw = arr.reshape(-1)
            return cls(float(x), float(y), float(z), float(yaw))
        raise InverseKinematicsError(f"Target must be a 4x4 transform or [x, y, z, yaw], got shape {arr.shape}")


@dataclass(frozen=True)
class IKResult:
    """Outcome of one solve call."""
    solution: np.ndarray
    status: IKStatus
    iterations: int
    final_error: np.ndarray        # [position error (m), |yaw error| (rad)]
    singularity_events: int

    def __iter__(self) -> Iterator:
        return iter((self.solution, self.status, self.iterations,
                     self.final_error, self.singularity_events))

    @property
    def success(self) -> bool:
        return self.status is IKStatus.SUCCESS

    @property
    def position_error(self) -> float:
        return float(self.final_error[0])

    @property
    def yaw_error(self) -> float:
        return float(self.final_error[1])


class DampedLeastSquaresIK:
    """
    Position + yaw inverse kinematics with adaptive damping.

    The solver holds no per-solve state; every call works on its own copy of
    the joint vector, so one instance can serve concurrent callers.
    """

    def __init__(self, forward_kinematics: Optional[ForwardKinematics] = None,
                 config: Optional[ArmConfig] = None):
        """
        Initialize the DLS solver.

        Args:
            forward_kinematics: ForwardKinematics instance (built from config when None)
            config: ArmConfig used when no forward_kinematics is given
        """
        self.fk = forward_kinematics or ForwardKinematics(resolve_config(config))
        self.config = self.fk.config
        self.n_joints = self.fk.n_joints
        self.jacobian = GeometricJacobian(self.fk)
        self.limiter = JointLimiter(self.config)
        self._identity = np.eye(self.n_joints)

        self._stats_lock = threading.Lock()
        self.stats = self._empty_stats()

        logger.debug(f"DLS IK solver initialized: max_iters={self.config.max_iters}, "
                     f"lambda=[{self.config.lambda_init:g}, {self.config.lambda_max:g}], "
                     f"cond_threshold={self.config.cond_threshold:g}")

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'total_calls': 0,
            'successful_calls': 0,
            'total_iterations': 0,
            'singularity_events': 0,
            'status_counts': {status.value: 0 for status in IKStatus},
        }

    def _task_error(self, target: Target, T_current: np.ndarray) -> Tuple[np.ndarray, float]:
        p_current, yaw_current = position_and_yaw(T_current)
        pos_error = target.position - p_current
        yaw_error = float(wrap_to_pi(target.yaw - yaw_current))
        return pos_error, yaw_error

    def _initial_joints(self, q_init: Optional[Sequence[float]]) -> np.ndarray:
        if q_init is None:
            return np.zeros(self.n_joints)
        q = np.array(q_init, dtype=float).reshape(-1)
        if q.shape[0] != self.n_joints:
            raise DimensionMismatch(
                f"Initial guess must have {self.n_joints} elements, got {q.shape[0]}")
        return q

    def solve(self, target: Union[Target, Sequence[float], np.ndarray],
              q_init: Optional[Sequence[float]] = None) -> IKResult:
        """
        Solve IK for a position + yaw target.

        Args:
            target: Target, [x, y, z, yaw] or 4x4 transform (yaw = atan2(R21, R11))
            q_init: Initial guess (n_joints,); zeros when None. Clamped into limits.

        Returns:
            IKResult; the solution is the last iterate whatever the status

        Raises:
            InverseKinematicsError: If the target is neither a 4x4 transform nor [x, y, z, yaw]
            DimensionMismatch: If q_init has the wrong length
            NonFiniteResult: If forward kinematics blows up
        """
        cfg = self.config
        target = Target.coerce(target)
        q = self.limiter.clamp(self._initial_joints(q_init))

        damping = cfg.lambda_init
        singularity_events = 0

        for iteration in range(1, cfg.max_iters + 1):
            fk_result = self.fk.compute(q)
            pos_error, yaw_error = self._task_error(target, fk_result.pose)
            pos_err_norm = float(norm(pos_error))
            yaw_err_abs = abs(yaw_error)

            if not fk_result.valid:
                return self._finish(q, IKStatus.SINGULAR, iteration,
                                    pos_err_norm, yaw_err_abs, singularity_events)

            if pos_err_norm < cfg.tol_pos and yaw_err_abs < cfg.tol_yaw:
                return self._finish(q, IKStatus.SUCCESS, iteration,
                                    pos_err_norm, yaw_err_abs, singularity_events)

            jac = self.jacobian.from_fk_result(fk_result)
            J = jac.J[TASK_ROWS, :]

            near_singular = jac.condition_number > cfg.cond_threshold
            if near_singular:
                damping = min(damping * DAMPING_GROWTH, cfg.lambda_max)
                singularity_events += 1
            else:
                damping = max(damping / DAMPING_DECAY, cfg.lambda_init)

            error_vec = np.append(pos_error, yaw_error)
            dq = np.linalg.solve(J.T @ J + (damping ** 2) * self._identity, J.T @ error_vec)

            step_scale = SINGULAR_STEP_SCALE if near_singular else 1.0
            q = self.limiter.clamp(q + step_scale * dq)

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"iter {iteration}: pos_err={pos_err_norm:.6f} m, "
                             f"yaw_err={np.degrees(yaw_err_abs):.4f} deg, "
                             f"cond={jac.condition_number:.1f}, lambda={damping:.2e}")

        pos_error, yaw_error = self._task_error(target, self.fk.compute_forward_kinematics(q))
        pos_err_norm = float(norm(pos_error))
        status = (IKStatus.UNREACHABLE if pos_err_norm > cfg.unreachable_distance
                  else IKStatus.MAX_ITERATIONS)
        return self._finish(q, status, cfg.max_iters, pos_err_norm, abs(yaw_error),
                            singularity_events)

    def _finish(self, q: np.ndarray, status: IKStatus, iterations: int,
                pos_err: float, yaw_err: float, singularity_events: int) -> IKResult:
        result = IKResult(
            solution=q.copy(),
            status=status,
            iterations=iterations,
            final_error=np.array([pos_err, yaw_err]),
            singularity_events=singularity_events
        )
        self._record(result)

        logger.debug(f"DLS IK finished: {status.value} after {iterations} iterations "
                     f"(pos_err={pos_err * 1000:.3f} mm, yaw_err={np.degrees(yaw_err):.3f} deg, "
                     f"singularity events={singularity_events})")
        return result

    def _record(self, result: IKResult):
        with self._stats_lock:
            self.stats['total_calls'] += 1
            self.stats['total_iterations'] += result.iterations
            self.stats['singularity_events'] += result.singularity_events
            self.stats['status_counts'][result.status.value] += 1
            if result.success:
                self.stats['successful_calls'] += 1

    def get_statistics(self) -> Dict[str, Any]:
        """Get solve statistics."""
        with self._stats_lock:
            stats = dict(self.stats)
            stats['status_counts'] = dict(self.stats['status_counts'])
        if stats['total_calls'] > 0:
            stats['success_rate'] = stats['successful_calls'] / stats['total_calls']
            stats['average_iterations'] = stats['total_iterations'] / stats['total_calls']
        else:
            stats['success_rate'] = 0.0
            stats['average_iterations'] = 0.0
        return stats

    def reset_statistics(self):
        """Reset solve statistics."""
        with self._stats_lock:
            self.stats = self._empty_stats()


def inverse_kinematics(target: Union[Target, Sequence[float], np.ndarray],
                       initial_guess: Optional[Sequence[float]] = None,
                       config: Optional[ArmConfig] = None) -> IKResult:
    """Functional entry point: (solution, status, iterations, errors, singularity_events)."""
    return DampedLeastSquaresIK(config=config).solve(target, initial_guess)
