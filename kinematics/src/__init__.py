#!/usr/bin/env python3
"""
Arm Kinematics Package - Source Module

Kinematics library for serial revolute manipulators using the standard
Denavit-Hartenberg convention.

This package provides:
- Immutable arm configuration with YAML loading
- Forward kinematics with full link chain and orthonormality check
- Geometric Jacobian, manipulability and condition number
- Singularity classification
- Joint limit projection
- Damped Least Squares inverse kinematics for position + yaw targets
- Acceptance validation utilities

Author: Robot Control Team
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Robot Control Team"

# Configuration
from .arm_config import ArmConfig, ConfigurationError, load_arm_config, default_arm_config

# Core kinematics classes
from .forward_kinematic import (ForwardKinematics, FKResult, ForwardKinematicsError,
                                DimensionMismatch, NonFiniteResult, forward_kinematics)
from .jacobian import GeometricJacobian, JacobianResult, jacobian
from .singularity_metrics import SingularityMetrics, SingularityReport, singularity_metrics
from .joint_limiter import JointLimiter, enforce_limits
from .inverse_kinematic import (DampedLeastSquaresIK, IKResult, IKStatus, Target,
                                InverseKinematicsError, inverse_kinematics)
from .kinematics_validation import KinematicsValidator, KinematicsValidationError

__all__ = [
    'ArmConfig',
    'ConfigurationError',
    'load_arm_config',
    'default_arm_config',
    'ForwardKinematics',
    'FKResult',
    'ForwardKinematicsError',
    'DimensionMismatch',
    'NonFiniteResult',
    'forward_kinematics',
    'GeometricJacobian',
    'JacobianResult',
    'jacobian',
    'SingularityMetrics',
    'SingularityReport',
    'singularity_metrics',
    'JointLimiter',
    'enforce_limits',
    'DampedLeastSquaresIK',
    'IKResult',
    'IKStatus',
    'Target',
    'InverseKinematicsError',
    'inverse_kinematics',
    'KinematicsValidator',
    'KinematicsValidationError',
]

# Package metadata
__title__ = "arm_kinematics"
__description__ = "DH kinematics, Jacobian and DLS inverse kinematics for serial revolute arms"
__license__ = "MIT"
