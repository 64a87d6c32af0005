#!/usr/bin/env python3
"""
Arm Configuration Module

Immutable configuration for a serial revolute manipulator described by standard
Denavit-Hartenberg parameters. A single ArmConfig value carries everything the
kinematics and planning modules need:

- DH table (link length, offset, twist, angle offset) and joint limits
- IK tolerances, iteration cap and damping bounds
- Singularity thresholds
- Tray / workspace geometry and sampling settings
- Trajectory sampling step and constraint thresholds
- Acceptance thresholds used by the validation utilities

Values are loaded from YAML (angles in degrees) or taken from the built-in
nominal 5-DOF arm.

Author: Robot Control Team
"""

import os
import logging
from dataclasses import dataclass, field, fields, replace as dataclass_replace
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

import numpy as np
import yaml

logger = logging.getLogger(__name__)

SUPPORTED_SAMPLERS = ('sobol', 'uniform')


class ConfigurationError(ValueError):
    """Raised when an arm configuration is inconsistent or cannot be loaded."""
    pass


def _deg(*values: float) -> Tuple[float, ...]:
    return tuple(float(v) for v in np.deg2rad(values))


@dataclass(frozen=True)
class ArmConfig:
    """Read-only arm description. Angles in radians, lengths in meters."""

    # Kinematic chain
    n: int = 5
    a: Tuple[float, ...] = (0.06, 0.11, 0.10, 0.08, 0.06)
    d: Tuple[float, ...] = (0.10, 0.0, 0.0, 0.0, 0.0)
    alpha: Tuple[float, ...] = _deg(90.0, 0.0, 0.0, 0.0, 90.0)
    theta0: Tuple[float, ...] = (0.0, 0.0, 0.0, 0.0, 0.0)
    qmin: Tuple[float, ...] = _deg(-170.0, -100.0, -120.0, -180.0, -180.0)
    qmax: Tuple[float, ...] = _deg(170.0, 100.0, 120.0, 180.0, 180.0)

    # Inverse kinematics
    tol_pos: float = 1e-3
    tol_yaw: float = float(np.deg2rad(0.5))
    max_iters: int = 200
    lambda_init: float = 1e-3
    lambda_max: float = 1e-1
    cond_threshold: float = 250.0
    manip_threshold: float = 0.02
    orthonormality_tol: float = 1e-6
    unreachable_distance: float = 0.05

    # Tray geometry
    z_tray: float = 0.15
    clearance: float = 0.02
    z_lift: float = 0.08
    coverage_z_band: float = 0.05
    grid_nx: int = 8
    grid_ny: int = 4
    grid_dx: float = 0.06
    grid_dy: float = 0.06
    grid_x_offset: float = 0.15
    grid_y_offset: float = 0.0
    place_y_offset: float = 0.25

    # Workspace sampling
    workspace_samples: int = 50000
    seed: int = 42
    sampler: str = 'sobol'
    sobol_skip: int = 1000

    # Trajectory
    traj_duration: float = 2.0
    traj_dt: float = 0.01
    vmax: float = float(np.deg2rad(45.0))
    amax: float = float(np.deg2rad(90.0))
    jerk_threshold_ratio: float = 3.0

    # Acceptance thresholds
    pass_fk_orthonorm: float = 1e-6
    pass_ik_pos_error: float = 1e-3
    pass_ik_yaw_error: float = float(np.deg2rad(0.5))
    pass_ik_max_iters: float = 60.0
    pass_ik_success_rate: float = 0.95
    pass_coverage: float = 0.90
    pass_clearance_min: float = 0.02
    pass_cond_max: float = 250.0

    source: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        for name in ('a', 'd', 'alpha', 'theta0', 'qmin', 'qmax'):
            try:
                values = tuple(float(v) for v in getattr(self, name))
            except (TypeError, ValueError):
                raise ConfigurationError(f"'{name}' must be a sequence of numbers")
            object.__setattr__(self, name, values)
        object.__setattr__(self, 'n', int(self.n))
        object.__setattr__(self, 'sampler', str(self.sampler).lower())
        self._validate()

    def _validate(self):
        n = self.n
        if n < 1:
            raise ConfigurationError(f"Degree-of-freedom count must be positive, got {n}")

        for name in ('a', 'd', 'alpha', 'theta0', 'qmin', 'qmax'):
            length = len(getattr(self, name))
            if length != n:
                raise ConfigurationError(f"'{name}' has {length} entries, expected n={n}")

        for i, (lo, hi) in enumerate(zip(self.qmin, self.qmax)):
            if not lo < hi:
                raise ConfigurationError(
                    f"Joint {i + 1} limits invalid: qmin={lo:.4f} must be below qmax={hi:.4f}")

        if not 0.0 < self.lambda_init <= self.lambda_max:
            raise ConfigurationError(
                f"Damping bounds invalid: need 0 < lambda_init ({self.lambda_init}) "
                f"<= lambda_max ({self.lambda_max})")

        positive = ('tol_pos', 'tol_yaw', 'cond_threshold', 'orthonormality_tol',
                    'traj_dt', 'traj_duration', 'vmax', 'jerk_threshold_ratio')
        for name in positive:
            if not getattr(self, name) > 0:
                raise ConfigurationError(f"'{name}' must be positive, got {getattr(self, name)}")

        if self.max_iters < 1:
            raise ConfigurationError(f"max_iters must be at least 1, got {self.max_iters}")
        if self.grid_nx < 1 or self.grid_ny < 1:
            raise ConfigurationError("Tray grid needs at least one row and one column")
        if self.workspace_samples < 1:
            raise ConfigurationError("workspace_samples must be at least 1")
        if self.sampler not in SUPPORTED_SAMPLERS:
            raise ConfigurationError(
                f"Unknown sampler '{self.sampler}', expected one of {SUPPORTED_SAMPLERS}")

    def replace(self, **overrides) -> 'ArmConfig':
        """Return a validated copy with the given fields replaced."""
        return dataclass_replace(self, **overrides)

    def joint_limits(self) -> np.ndarray:
        """Joint limits as a (2, n) array: row 0 lower, row 1 upper."""
        return np.array([self.qmin, self.qmax], dtype=float)

    def dh_parameters(self) -> Dict[str, np.ndarray]:
        return {
            'a': np.array(self.a, dtype=float),
            'd': np.array(self.d, dtype=float),
            'alpha': np.array(self.alpha, dtype=float),
            'theta0': np.array(self.theta0, dtype=float),
        }

    @property
    def total_cells(self) -> int:
        return self.grid_nx * self.grid_ny

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> 'ArmConfig':
        """
        Build a configuration from the nested YAML layout.

        Sections that are missing fall back to the built-in defaults, so a file
        may override only the values it cares about.

        Args:
            data: Parsed YAML mapping (angles in degrees)
            source: Optional description of where the data came from

        Returns:
            Validated ArmConfig
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Arm configuration must be a mapping")

        kwargs: Dict[str, Any] = {}

        arm = data.get('arm', {}) or {}
        for key in ('n', 'a', 'd'):
            if key in arm:
                kwargs[key] = arm[key]
        if 'alpha_deg' in arm:
            kwargs['alpha'] = _deg(*arm['alpha_deg'])
        if 'theta0_deg' in arm:
            kwargs['theta0'] = _deg(*arm['theta0_deg'])

        limits = data.get('joint_limits', {}) or {}
        if 'qmin_deg' in limits:
            kwargs['qmin'] = _deg(*limits['qmin_deg'])
        if 'qmax_deg' in limits:
            kwargs['qmax'] = _deg(*limits['qmax_deg'])

        ik = dict(data.get('ik', {}) or {})
        if 'tol_yaw_deg' in ik:
            kwargs['tol_yaw'] = float(np.deg2rad(ik.pop('tol_yaw_deg')))
        kwargs.update(ik)

        tray = dict(data.get('tray', {}) or {})
        kwargs.update(tray)

        workspace = data.get('workspace', {}) or {}
        _copy_renamed(workspace, kwargs, {'samples': 'workspace_samples', 'seed': 'seed',
                                          'sampler': 'sampler', 'sobol_skip': 'sobol_skip'})

        trajectory = data.get('trajectory', {}) or {}
        _copy_renamed(trajectory, kwargs, {'duration': 'traj_duration', 'dt': 'traj_dt',
                                           'jerk_threshold_ratio': 'jerk_threshold_ratio'})
        for key in ('vmax_deg', 'amax_deg'):
            if key in trajectory:
                kwargs[key[:-4]] = float(np.deg2rad(trajectory[key]))

        acceptance = dict(data.get('acceptance', {}) or {})
        if 'ik_yaw_error_deg' in acceptance:
            kwargs['pass_ik_yaw_error'] = float(np.deg2rad(acceptance.pop('ik_yaw_error_deg')))
        for key, value in acceptance.items():
            kwargs[f'pass_{key}'] = value

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        return cls(source=source, **kwargs)


def _copy_renamed(section: Dict[str, Any], out: Dict[str, Any], mapping: Dict[str, str]):
    for key, target in mapping.items():
        if key in section:
            out[target] = section[key]


def get_default_config_path() -> str:
    """Get default path to the arm configuration file."""
    possible_paths = [
        os.path.join(os.path.dirname(__file__), "..", "config", "arm_config.yaml"),
        os.path.join(os.path.dirname(__file__), "..", "..", "config", "arm_config.yaml"),
        os.path.join(os.path.dirname(__file__), "arm_config.yaml"),
    ]

    for path in possible_paths:
        abs_path = os.path.abspath(path)
        if os.path.exists(abs_path):
            return abs_path

    # Return first path as default even if it doesn't exist
    return os.path.abspath(possible_paths[0])


def load_arm_config(path: Optional[str] = None) -> ArmConfig:
    """
    Load an ArmConfig from YAML.

    Args:
        path: YAML file path; the packaged default location is used when None

    Returns:
        ArmConfig built from the file, or the built-in defaults when the file
        does not exist

    Raises:
        ConfigurationError: If the file exists but cannot be parsed or validated
    """
    config_path = path or get_default_config_path()

    if not os.path.exists(config_path):
        logger.warning(f"Arm configuration not found: {config_path}, using built-in defaults")
        return ArmConfig()

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to read arm configuration from {config_path}: {e}")
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    try:
        config = ArmConfig.from_dict(data, source=config_path)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid arm configuration in {config_path}: {e}")
        raise ConfigurationError(str(e)) from e

    logger.info(f"Arm configuration loaded from: {config_path} ({config.n} joints)")
    return config


@lru_cache(maxsize=1)
def default_arm_config() -> ArmConfig:
    """Process-wide default configuration (loaded once)."""
    return load_arm_config()


def resolve_config(config: Optional[ArmConfig]) -> ArmConfig:
    return config if config is not None else default_arm_config()
