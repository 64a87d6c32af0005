#!/usr/bin/env python3
"""
Kinematics Validation and Acceptance Utilities

This module provides validation tools for the arm kinematics including:
- Forward kinematics orthonormality sweep
- Forward/Inverse kinematics round-trip consistency
- Jacobian agreement with finite differences
- Conditioning along a joint path (maximum condition number)
- Workspace tray coverage acceptance
- Trajectory segment acceptance (validity and clearance)

Every check returns a results dictionary with the raw statistics and a
boolean 'passed' flag computed against the configured acceptance thresholds.
Results are also kept in `validation_results` keyed by check name.

Author: Robot Control Team
"""

import numpy as np
from typing import Any, Dict, Iterable, List, Optional
import logging
import time

from .forward_kinematic import ForwardKinematics
from .inverse_kinematic import DampedLeastSquaresIK, Target
from .jacobian import GeometricJacobian
from .pose_math import wrap_to_pi, yaw_from_rotation
from .singularity_metrics import SingularityMetrics

logger = logging.getLogger(__name__)


class KinematicsValidationError(Exception):
    """Raised when a check is given input it cannot evaluate."""
    pass


class KinematicsValidator:
    """Acceptance checks for forward/inverse kinematics and planning outputs."""

    def __init__(self, forward_kinematics: ForwardKinematics,
                 inverse_kinematics: Optional[DampedLeastSquaresIK] = None,
                 jacobian: Optional[GeometricJacobian] = None):
        """
        Initialize validator with kinematics modules.

        Args:
            forward_kinematics: ForwardKinematics instance
            inverse_kinematics: DampedLeastSquaresIK instance (built on the same FK when None)
            jacobian: GeometricJacobian instance (built on the same FK when None)
        """
        self.fk = forward_kinematics
        self.ik = inverse_kinematics or DampedLeastSquaresIK(forward_kinematics)
        self.jacobian = jacobian or GeometricJacobian(forward_kinematics)
        self.config = forward_kinematics.config
        self.n_joints = forward_kinematics.n_joints

        # Results storage
        self.validation_results: Dict[str, Dict[str, Any]] = {}

        logger.info(f"Kinematics validator initialized for {self.n_joints}-joint arm")

    def _random_configurations(self, rng: np.random.Generator, count: int) -> np.ndarray:
        limits_lower, limits_upper = self.fk.get_joint_limits()
        return rng.uniform(limits_lower, limits_upper, size=(count, self.n_joints))

    def check_fk_orthonormality(self, num_samples: int = 1000,
                                seed: Optional[int] = None) -> Dict[str, Any]:
        """
        Sweep random configurations and record the worst frame orthonormality error.

        Args:
            num_samples: Number of joint configurations
            seed: RNG seed (config seed when None)
        """
        rng = np.random.default_rng(self.config.seed if seed is None else seed)
        worst = 0.0
        invalid = 0

        for q in self._random_configurations(rng, num_samples):
            result = self.fk.compute(q)
            worst = max(worst, result.max_orthonormality_error)
            if not result.valid:
                invalid += 1

        results = {
            'num_samples': num_samples,
            'max_orthonormality_error': worst,
            'invalid_count': invalid,
            'passed': worst < self.config.pass_fk_orthonorm,
        }

        logger.info(f"FK orthonormality: max error {worst:.2e} over {num_samples} samples")
        self.validation_results['fk_orthonormality'] = results
        return results

    def test_fk_ik_consistency(self, num_tests: int = 200, perturbation: float = 0.1,
                               seed: Optional[int] = None,
                               min_heading_norm: float = 0.0) -> Dict[str, Any]:
        """
        Test forward-inverse kinematics round trips.

        For each random in-limit configuration q the FK pose is reduced to a
        (position, yaw) target and solved from q + N(0, perturbation²).
        Every sampled configuration is tested unless min_heading_norm is set,
        in which case configurations whose tool x-axis is closer to vertical
        are skipped (their yaw is ill-defined there).

        Args:
            num_tests: Number of accepted round trips
            perturbation: Standard deviation of the initial-guess noise (rad)
            seed: RNG seed (config seed when None)
            min_heading_norm: Minimum horizontal length of the tool x-axis (0 keeps all)
        """
        logger.info(f"Testing FK-IK consistency with {num_tests} configurations")

        cfg = self.config
        rng = np.random.default_rng(cfg.seed if seed is None else seed)
        limits_lower, limits_upper = self.fk.get_joint_limits()

        position_errors = []
        yaw_errors = []
        iterations = []
        status_counts: Dict[str, int] = {}
        computation_times = []
        success_count = 0

        tested = 0
        attempts = 0
        max_attempts = num_tests * 5  # Prevent infinite loop

        while tested < num_tests and attempts < max_attempts:
            attempts += 1
            q_test = rng.uniform(limits_lower, limits_upper)
            T_target = self.fk.compute_forward_kinematics(q_test)

            if min_heading_norm > 0 and np.hypot(T_target[0, 0], T_target[1, 0]) < min_heading_norm:
                continue

            tested += 1
            target = Target.from_pose(T_target)
            q_guess = q_test + rng.normal(0.0, perturbation, size=self.n_joints)

            start_time = time.time()
            result = self.ik.solve(target, q_init=q_guess)
            computation_times.append(time.time() - start_time)

            status_counts[result.status.value] = status_counts.get(result.status.value, 0) + 1
            iterations.append(result.iterations)

            if result.success:
                success_count += 1
                T_check = self.fk.compute_forward_kinematics(result.solution)
                position_errors.append(float(np.linalg.norm(T_check[:3, 3] - target.position)))
                yaw_errors.append(abs(float(wrap_to_pi(yaw_from_rotation(T_check) - target.yaw))))

        success_rate = success_count / tested if tested > 0 else 0.0
        max_pos = float(np.max(position_errors)) if position_errors else float('inf')
        max_yaw = float(np.max(yaw_errors)) if yaw_errors else float('inf')
        mean_iters = float(np.mean(iterations)) if iterations else 0.0

        results = {
            'num_tests': tested,
            'num_attempts': attempts,
            'success_count': success_count,
            'success_rate': success_rate,
            'status_counts': status_counts,
            'position_errors': position_errors,
            'yaw_errors': yaw_errors,
            'iterations': iterations,
            'max_pos_error': max_pos,
            'max_yaw_error': max_yaw,
            'mean_iterations': mean_iters,
            'mean_computation_time': float(np.mean(computation_times)) if computation_times else 0.0,
            'passed': (success_rate >= cfg.pass_ik_success_rate
                       and max_pos < cfg.pass_ik_pos_error
                       and max_yaw < cfg.pass_ik_yaw_error
                       and mean_iters <= cfg.pass_ik_max_iters),
        }

        logger.info(f"FK-IK consistency: success rate {success_rate:.1%}, "
                    f"mean iterations {mean_iters:.1f}")
        if position_errors:
            logger.info(f"  Max position error: {max_pos * 1000:.3f} mm, "
                        f"max yaw error: {np.rad2deg(max_yaw):.3f}°")

        self.validation_results['fk_ik_consistency'] = results
        return results

    def _finite_difference_jacobian(self, q: np.ndarray, epsilon: float) -> np.ndarray:
        J_fd = np.zeros((6, self.n_joints))
        for i in range(self.n_joints):
            dq = np.zeros(self.n_joints)
            dq[i] = epsilon
            T_plus = self.fk.compute_forward_kinematics(q + dq)
            T_minus = self.fk.compute_forward_kinematics(q - dq)

            J_fd[:3, i] = (T_plus[:3, 3] - T_minus[:3, 3]) / (2 * epsilon)

            # R+ R-ᵀ ≈ I + [ω]x · 2ε
            dR = T_plus[:3, :3] @ T_minus[:3, :3].T
            omega = 0.5 * np.array([dR[2, 1] - dR[1, 2], dR[0, 2] - dR[2, 0], dR[1, 0] - dR[0, 1]])
            J_fd[3:, i] = omega / (2 * epsilon)
        return J_fd

    def check_jacobian(self, num_tests: int = 20, epsilon: float = 1e-6,
                       tolerance: float = 1e-4, seed: Optional[int] = None) -> Dict[str, Any]:
        """
        Compare the geometric Jacobian with central finite differences of FK.

        Args:
            num_tests: Number of random configurations
            epsilon: Joint perturbation (rad)
            tolerance: Maximum accepted relative Frobenius error
            seed: RNG seed (config seed when None)
        """
        rng = np.random.default_rng(self.config.seed if seed is None else seed)
        relative_errors = []

        for q in self._random_configurations(rng, num_tests):
            J = self.jacobian.compute_jacobian(q)
            J_fd = self._finite_difference_jacobian(q, epsilon)
            scale = max(np.linalg.norm(J), 1e-9)
            relative_errors.append(float(np.linalg.norm(J - J_fd) / scale))

        max_error = max(relative_errors) if relative_errors else 0.0
        results = {
            'num_tests': num_tests,
            'relative_errors': relative_errors,
            'max_relative_error': max_error,
            'passed': max_error < tolerance,
        }

        logger.info(f"Jacobian finite-difference check: max relative error {max_error:.2e}")
        self.validation_results['jacobian'] = results
        return results

    def check_conditioning(self, q_samples: np.ndarray) -> Dict[str, Any]:
        """
        Accept or reject a joint path by its worst Jacobian condition number.

        Args:
            q_samples: (K, n) joint positions, e.g. trajectory positions

        Raises:
            KinematicsValidationError: If the path is empty or has the wrong joint count
        """
        q_samples = np.atleast_2d(np.asarray(q_samples, dtype=float))
        if q_samples.size == 0 or q_samples.shape[1] != self.n_joints:
            raise KinematicsValidationError(
                f"Expected (K, {self.n_joints}) joint samples with K >= 1, got shape {q_samples.shape}")

        profile = SingularityMetrics(self.jacobian).evaluate_path(q_samples)
        max_cond = profile['max_condition_number']

        results = {
            'num_samples': len(q_samples),
            'max_condition_number': max_cond,
            'singular_count': profile['singular_count'],
            'passed': max_cond < self.config.pass_cond_max,
        }

        logger.info(f"Path conditioning: max condition number {max_cond:.1f} "
                    f"(threshold {self.config.pass_cond_max:g})")
        self.validation_results['conditioning'] = results
        return results

    def check_workspace_coverage(self, scan_result) -> Dict[str, Any]:
        """
        Accept or reject a workspace scan against the coverage threshold.

        Args:
            scan_result: WorkspaceScanResult from the planning package
        """
        coverage = float(scan_result.coverage_fraction)
        results = {
            'coverage_fraction': coverage,
            'hull_volume': float(scan_result.hull_volume),
            'valid_samples': int(len(scan_result.points)),
            'passed': coverage >= self.config.pass_coverage,
        }

        logger.info(f"Workspace coverage: {coverage:.1%} "
                    f"(threshold {self.config.pass_coverage:.0%})")
        self.validation_results['workspace_coverage'] = results
        return results

    def check_trajectories(self, trajectory_results: Iterable) -> Dict[str, Any]:
        """
        Accept or reject planned trajectory segments.

        A segment passes when it is valid and keeps at least the required
        clearance above the tray.

        Args:
            trajectory_results: TrajectoryResult objects from the planning package
        """
        trajectory_results = list(trajectory_results)
        clearances: List[float] = [float(r.clearance) for r in trajectory_results]
        valid_flags = [bool(r.valid) for r in trajectory_results]
        min_clearance = min(clearances) if clearances else float('inf')

        results = {
            'num_segments': len(trajectory_results),
            'valid_count': sum(valid_flags),
            'clearances': clearances,
            'min_clearance': min_clearance,
            'passed': all(valid_flags) and min_clearance >= self.config.pass_clearance_min,
        }

        logger.info(f"Trajectory segments: {results['valid_count']}/{len(trajectory_results)} valid, "
                    f"min clearance {min_clearance * 1000:.1f} mm")
        self.validation_results['trajectories'] = results
        return results

    def summary(self) -> Dict[str, Any]:
        """Pass/fail overview of every check run so far."""
        checks = {name: bool(result.get('passed', False))
                  for name, result in self.validation_results.items()}
        return {
            'checks': checks,
            'all_passed': bool(checks) and all(checks.values()),
        }
