#!/usr/bin/env python3
"""
Trajectory Planning Module

This module generates time-sampled joint trajectories between two waypoints
and checks them against the arm constraints:
- Joint-space cubic polynomials with zero endpoint velocity
- Task-space linear segments with parabolic blends (LSPB), resolved to joints
  by warm-started inverse kinematics at every sample
- Constraint validation: joint limits, velocity continuity, jerk spikes and
  tray clearance
- Multi-segment planning (e.g. pick → lift → transit → place → retract) with aggregate
  violation counts

Constraint violations are reported as data alongside a validity flag; only
malformed requests raise TrajectoryPlanningError.

Author: Robot Control Team
"""

import numpy as np
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from kinematics.src.arm_config import ArmConfig, resolve_config
from kinematics.src.forward_kinematic import ForwardKinematics
from kinematics.src.inverse_kinematic import DampedLeastSquaresIK, IKStatus, Target
from kinematics.src.pose_math import wrap_to_pi
from kinematics.src.singularity_metrics import SingularityMetrics

logger = logging.getLogger(__name__)

# LSPB blend time as a fraction of the duration
BLEND_FRACTION = 0.25
# Velocity jump allowed between adjacent samples, in units of vmax * dt
CONTINUITY_FACTOR = 10.0
JERK_MEDIAN_FLOOR = 1e-6
MIN_LSPB_DISTANCE = 1e-6


class TrajectoryPlanningError(Exception):
    """Custom exception for trajectory planning errors."""
    pass


class TrajectoryMethod(Enum):
    """Interpolation methods."""
    JOINT_CUBIC = "joint_cubic"
    TASK_LSPB = "task_lspb"


@dataclass
class Trajectory:
    """Complete robot trajectory with timing and dynamics."""
    times: np.ndarray           # (K,)
    positions: np.ndarray       # (K, n) joint positions
    velocities: np.ndarray      # (K, n)
    accelerations: np.ndarray   # (K, n)
    poses: np.ndarray           # (K, 4, 4) end-effector poses
    clearance: float            # min over samples of z - z_tray + clearance

    @property
    def num_samples(self) -> int:
        return len(self.times)

    @property
    def total_time(self) -> float:
        return float(self.times[-1])

    def get_positions(self) -> np.ndarray:
        """Get position array (n_points x n_joints)."""
        return self.positions

    def get_velocities(self) -> np.ndarray:
        """Get velocity array (n_points x n_joints)."""
        return self.velocities

    def get_accelerations(self) -> np.ndarray:
        """Get acceleration array (n_points x n_joints)."""
        return self.accelerations

    def get_times(self) -> np.ndarray:
        """Get time array."""
        return self.times

    def get_end_effector_path(self) -> np.ndarray:
        """End-effector positions (n_points x 3)."""
        return self.poses[:, :3, 3]


@dataclass
class Violations:
    """Constraint violation flags of one trajectory."""
    limit: bool = False
    continuity: bool = False
    jerk: bool = False
    clearance: bool = False

    def any(self) -> bool:
        return self.limit or self.continuity or self.jerk or self.clearance

    def as_dict(self) -> Dict[str, bool]:
        return {'limit': self.limit, 'continuity': self.continuity,
                'jerk': self.jerk, 'clearance': self.clearance}


@dataclass
class TrajectoryResult:
    """Result container for trajectory planning operations."""
    trajectory: Trajectory
    valid: bool
    violations: Violations
    method: TrajectoryMethod
    ik_failures: int = 0
    computation_time: Optional[float] = None

    def __iter__(self) -> Iterator:
        return iter((self.trajectory, self.valid, self.violations))

    @property
    def clearance(self) -> float:
        return self.trajectory.clearance


@dataclass
class SegmentPlanSummary:
    """Aggregate of a multi-segment plan."""
    results: List[TrajectoryResult] = field(default_factory=list)
    limit_violations: int = 0
    continuity_violations: int = 0
    jerk_violations: int = 0
    clearance_violations: int = 0
    min_clearance: float = float('inf')

    @property
    def all_valid(self) -> bool:
        return all(r.valid for r in self.results)

    @property
    def num_segments(self) -> int:
        return len(self.results)


Waypoint = Union[Target, Sequence[float], np.ndarray]


class TrajectoryPlanner:
    """Point-to-point trajectory generation and constraint validation."""

    def __init__(self, forward_kinematics: Optional[ForwardKinematics] = None,
                 inverse_kinematics: Optional[DampedLeastSquaresIK] = None,
                 config: Optional[ArmConfig] = None):
        """
        Initialize trajectory planner.

        Args:
            forward_kinematics: ForwardKinematics instance (built from config when None)
            inverse_kinematics: IK solver for task-space waypoints (built on the FK when None)
            config: ArmConfig used when no forward_kinematics is given
        """
        self.fk = forward_kinematics or ForwardKinematics(resolve_config(config))
        self.ik = inverse_kinematics or DampedLeastSquaresIK(self.fk)
        self.config = self.fk.config
        self.n_joints = self.fk.n_joints
        self.joint_limits = self.fk.get_joint_limits()

        logger.info(f"Trajectory planner initialized (dt={self.config.traj_dt:g} s)")

    def time_grid(self, duration: float) -> np.ndarray:
        """Uniform samples t_k = k * dt covering [0, duration]."""
        dt = self.config.traj_dt
        if duration is None or not duration > 0:
            raise TrajectoryPlanningError(f"Duration must be positive, got {duration}")
        num_samples = int(np.floor(duration / dt + 1e-9)) + 1
        if num_samples < 2:
            raise TrajectoryPlanningError(
                f"Duration {duration} s is shorter than one sample step ({dt} s)")
        return np.arange(num_samples) * dt

    def _classify(self, waypoint: Waypoint) -> Tuple[str, Union[Target, np.ndarray]]:
        if isinstance(waypoint, Target):
            return 'task', waypoint
        arr = np.asarray(waypoint, dtype=float).reshape(-1)
        if arr.size == self.n_joints:
            return 'joint', arr
        if arr.size == 4:
            return 'task', Target.coerce(arr)
        raise TrajectoryPlanningError(
            f"Waypoint must be a {self.n_joints}-joint vector or [x, y, z, yaw], got {arr.size} values")

    @staticmethod
    def _parse_method(method: Union[TrajectoryMethod, str]) -> TrajectoryMethod:
        if isinstance(method, TrajectoryMethod):
            return method
        try:
            return TrajectoryMethod(str(method).lower())
        except ValueError:
            raise TrajectoryPlanningError(f"Unknown method: {method}") from None

    def plan(self, start: Waypoint, goal: Waypoint, duration: Optional[float] = None,
             method: Union[TrajectoryMethod, str] = TrajectoryMethod.JOINT_CUBIC) -> TrajectoryResult:
        """
        Plan and validate a trajectory between two waypoints.

        Args:
            start: Joint vector or task-space target
            goal: Joint vector or task-space target (same kind as start)
            duration: Trajectory duration in seconds (config.traj_duration when None)
            method: 'joint_cubic' or 'task_lspb'

        Returns:
            TrajectoryResult with trajectory, validity flag and violations

        Raises:
            TrajectoryPlanningError: Unknown method, mixed or joint-space waypoints for
                task_lspb, too short a duration, or IK failure resolving task
                waypoints for joint_cubic
        """
        start_time = time.time()
        method = self._parse_method(method)
        t = self.time_grid(self.config.traj_duration if duration is None else duration)

        start_kind, start_value = self._classify(start)
        goal_kind, goal_value = self._classify(goal)
        if start_kind != goal_kind:
            raise TrajectoryPlanningError("Start and goal must both be joint vectors or both task targets")

        ik_failures = 0
        if method is TrajectoryMethod.JOINT_CUBIC:
            if start_kind == 'task':
                q_start, q_goal = self._resolve_task_endpoints(start_value, goal_value)
            else:
                q_start, q_goal = start_value, goal_value
            q, qd, qdd = self._joint_cubic(q_start, q_goal, t)
            poses = self._poses(q)
        else:
            if start_kind == 'joint':
                raise TrajectoryPlanningError("task_lspb requires task-space poses")
            q, qd, qdd, poses, ik_failures = self._task_lspb(start_value, goal_value, t)

        clearance = self.compute_clearance(poses)
        trajectory = Trajectory(times=t, positions=q, velocities=qd, accelerations=qdd,
                                poses=poses, clearance=clearance)
        violations = self.validate(trajectory)

        result = TrajectoryResult(
            trajectory=trajectory,
            valid=not violations.any(),
            violations=violations,
            method=method,
            ik_failures=ik_failures,
            computation_time=time.time() - start_time
        )

        logger.info(f"Trajectory planned ({method.value}): {len(t)} samples over {t[-1]:.2f} s, "
                    f"valid={result.valid}, clearance={clearance * 1000:.1f} mm")
        return result

    def _resolve_task_endpoints(self, start: Target, goal: Target) -> Tuple[np.ndarray, np.ndarray]:
        start_result = self.ik.solve(start, np.zeros(self.n_joints))
        if not start_result.success:
            raise TrajectoryPlanningError(f"IK failed for start pose: {start_result.status.value}")

        goal_result = self.ik.solve(goal, start_result.solution)
        if not goal_result.success:
            raise TrajectoryPlanningError(f"IK failed for goal pose: {goal_result.status.value}")

        return start_result.solution, goal_result.solution

    @staticmethod
    def _joint_cubic(q_start: np.ndarray, q_goal: np.ndarray,
                     t: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Cubic polynomial per joint with zero endpoint velocity.

        q(t) = a0 + a2 t² + a3 t³ with a0 = q0, a2 = 3Δ/Tf², a3 = -2Δ/Tf³.
        """
        Tf = t[-1]
        delta = q_goal - q_start
        a2 = 3.0 * delta / Tf ** 2
        a3 = -2.0 * delta / Tf ** 3

        tc = t[:, None]
        q = q_start + a2 * tc ** 2 + a3 * tc ** 3
        qd = 2.0 * a2 * tc + 3.0 * a3 * tc ** 2
        qdd = 2.0 * a2 + 6.0 * a3 * tc
        return q, qd, qdd

    @staticmethod
    def lspb_progress(t: np.ndarray, distance: float) -> np.ndarray:
        """
        Normalized LSPB progress λ(t) in [0, 1].

        Blend time tb = Tf/4 and cruise velocity V = distance / (Tf - tb).
        Degenerate (near-zero) distances fall back to linear timing t / Tf.
        """
        Tf = t[-1]
        if distance <= MIN_LSPB_DISTANCE:
            return np.clip(t / Tf, 0.0, 1.0)

        tb = BLEND_FRACTION * Tf
        V = distance / (Tf - tb)
        accel = V / tb

        s = np.where(
            t <= tb,
            0.5 * accel * t ** 2,
            np.where(t <= Tf - tb,
                     V * (t - tb / 2),
                     distance - 0.5 * accel * (Tf - t) ** 2))
        return np.clip(s / distance, 0.0, 1.0)

    def _task_lspb(self, start: Target, goal: Target, t: np.ndarray):
        pos_start, pos_goal = start.position, goal.position
        distance = float(np.linalg.norm(pos_goal - pos_start))
        dyaw = float(wrap_to_pi(goal.yaw - start.yaw))

        progress = self.lspb_progress(t, distance)
        K = len(t)
        q = np.zeros((K, self.n_joints))
        poses = np.zeros((K, 4, 4))
        ik_failures = 0

        # Samples must be solved in order: each warm-starts from the previous solution
        q_prev = np.zeros(self.n_joints)
        for k, lam in enumerate(progress):
            p = pos_start + lam * (pos_goal - pos_start)
            target = Target(float(p[0]), float(p[1]), float(p[2]), start.yaw + lam * dyaw)

            result = self.ik.solve(target, q_prev)
            if result.status is not IKStatus.SUCCESS:
                ik_failures += 1
                logger.warning(f"IK failed at step {k + 1}/{K}: {result.status.value} "
                               f"(pos_err={result.position_error * 1000:.2f} mm)")

            q[k] = result.solution
            q_prev = result.solution
            poses[k] = self.fk.compute_forward_kinematics(result.solution)

        dt = t[1] - t[0]
        qd = np.zeros_like(q)
        qd[1:] = np.diff(q, axis=0) / dt
        qd[0] = qd[1]

        qdd = np.zeros_like(q)
        qdd[1:] = np.diff(qd, axis=0) / dt
        qdd[0] = qdd[1]

        return q, qd, qdd, poses, ik_failures

    def _poses(self, q: np.ndarray) -> np.ndarray:
        return np.array([self.fk.compute_forward_kinematics(qk) for qk in q])

    def compute_clearance(self, poses: np.ndarray) -> float:
        """Minimum over samples of z_ee - z_tray + clearance."""
        z = poses[:, 2, 3]
        return float(np.min(z - self.config.z_tray + self.config.clearance))

    def validate(self, trajectory: Trajectory) -> Violations:
        """
        Check a trajectory against limits, continuity, jerk and clearance.

        Args:
            trajectory: Trajectory to check

        Returns:
            Violations record; each triggered check is also logged
        """
        cfg = self.config
        violations = Violations()
        t = trajectory.times
        q, qd, qdd = trajectory.positions, trajectory.velocities, trajectory.accelerations
        dt = t[1] - t[0]
        lower, upper = self.joint_limits

        for i in range(self.n_joints):
            if np.any(q[:, i] < lower[i]) or np.any(q[:, i] > upper[i]):
                violations.limit = True
                logger.warning(f"Joint {i + 1} exceeds limits: "
                               f"[{np.degrees(q[:, i].min()):.1f}, {np.degrees(q[:, i].max()):.1f}] deg")

        continuity_limit = CONTINUITY_FACTOR * cfg.vmax * dt
        for i in range(self.n_joints):
            max_jump = float(np.max(np.abs(np.diff(qd[:, i]))))
            if max_jump > continuity_limit:
                violations.continuity = True
                logger.warning(f"Velocity discontinuity in joint {i + 1}: "
                               f"jump {max_jump:.4f} rad/s (limit {continuity_limit:.4f})")

        if len(t) > 2:
            for i in range(self.n_joints):
                jerk = np.abs(np.diff(qdd[:, i]) / dt)
                median_jerk = float(np.median(jerk))
                max_jerk = float(np.max(jerk))
                if max_jerk > cfg.jerk_threshold_ratio * median_jerk and median_jerk > JERK_MEDIAN_FLOOR:
                    violations.jerk = True
                    logger.warning(f"Excessive jerk in joint {i + 1}: {max_jerk:.2e} "
                                   f"({max_jerk / median_jerk:.2f}x median)")

        if trajectory.clearance < cfg.clearance:
            violations.clearance = True
            logger.warning(f"Tray clearance violated: {trajectory.clearance * 1000:.1f} mm "
                           f"(required {cfg.clearance * 1000:.1f} mm)")

        return violations

    def conditioning_profile(self, trajectory: Trajectory) -> Dict[str, Any]:
        """Condition number and manipulability at every trajectory sample."""
        return SingularityMetrics(config=self.config).evaluate_path(trajectory.positions)

    def plan_segments(self, segments: Sequence[Sequence[Any]]) -> SegmentPlanSummary:
        """
        Plan consecutive segments and aggregate their violations.

        Args:
            segments: Items of (start, goal, duration) or (start, goal, duration, method)

        Returns:
            SegmentPlanSummary with per-segment results and violation counts
        """
        summary = SegmentPlanSummary()

        for index, segment in enumerate(segments):
            if len(segment) not in (3, 4):
                raise TrajectoryPlanningError(
                    f"Segment {index + 1} must be (start, goal, duration[, method])")
            start, goal, duration = segment[:3]
            method = segment[3] if len(segment) == 4 else TrajectoryMethod.JOINT_CUBIC

            logger.debug(f"Planning segment {index + 1}/{len(segments)}")
            result = self.plan(start, goal, duration, method)
            summary.results.append(result)

            summary.limit_violations += int(result.violations.limit)
            summary.continuity_violations += int(result.violations.continuity)
            summary.jerk_violations += int(result.violations.jerk)
            summary.clearance_violations += int(result.violations.clearance)
            summary.min_clearance = min(summary.min_clearance, result.clearance)

        logger.info(f"Planned {summary.num_segments} segments: all_valid={summary.all_valid}, "
                    f"min clearance {summary.min_clearance * 1000:.1f} mm")
        return summary

    def plan_pick_place(self, pick_xy: Sequence[float], place_xy: Sequence[float],
                        yaw: Optional[float] = None,
                        durations: Tuple[float, float, float, float] = (1.5, 2.0, 1.5, 1.5)
                        ) -> SegmentPlanSummary:
        """
        Pick → lift → transit → place → retract sequence in task space.

        Pick and place sit at tray height; lift, transit and retract are z_lift
        above it, so the transfer across the tray happens at lift height.

        Args:
            pick_xy: (x, y) of the pick point
            place_xy: (x, y) of the place point
            yaw: Tool heading for every waypoint; radial heading atan2(y, x) of each point when None
            durations: Durations of the lift, transit, place and retract segments
        """
        cfg = self.config
        if len(durations) != 4:
            raise TrajectoryPlanningError(f"Expected 4 segment durations, got {len(durations)}")

        def waypoint(xy, z):
            heading = float(np.arctan2(xy[1], xy[0])) if yaw is None else yaw
            return Target(float(xy[0]), float(xy[1]), z, heading)

        z_high = cfg.z_tray + cfg.z_lift
        pick = waypoint(pick_xy, cfg.z_tray)
        lift = waypoint(pick_xy, z_high)
        transit = waypoint(place_xy, z_high)
        place = waypoint(place_xy, cfg.z_tray)
        retract = waypoint(place_xy, z_high)

        lift_time, transit_time, place_time, retract_time = durations
        return self.plan_segments([
            (pick, lift, lift_time, TrajectoryMethod.TASK_LSPB),
            (lift, transit, transit_time, TrajectoryMethod.TASK_LSPB),
            (transit, place, place_time, TrajectoryMethod.TASK_LSPB),
            (place, retract, retract_time, TrajectoryMethod.TASK_LSPB),
        ])


def plan_trajectory(start: Waypoint, goal: Waypoint, duration: Optional[float] = None,
                    method: Union[TrajectoryMethod, str] = TrajectoryMethod.JOINT_CUBIC,
                    config: Optional[ArmConfig] = None) -> TrajectoryResult:
    """Functional entry point: (trajectory, is_valid, violations)."""
    return TrajectoryPlanner(config=config).plan(start, goal, duration, method)
