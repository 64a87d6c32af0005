#!/usr/bin/env python3
"""
Unit Tests for Geometric Jacobian and Singularity Metrics

Test suite covering:
- Analytic columns at the zero configuration
- Agreement with finite differences of forward kinematics
- Condition number and manipulability on a full-rank 6-DOF arm
- Wrist singularity detection
- Path conditioning profile

Author: Robot Control Team
"""

import sys
import os
import unittest
import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from kinematics.src.arm_config import ArmConfig
from kinematics.src.forward_kinematic import ForwardKinematics, DimensionMismatch
from kinematics.src.jacobian import (
    GeometricJacobian, condition_number, manipulability_index, jacobian
)
from kinematics.src.singularity_metrics import SingularityMetrics, singularity_metrics
from kinematics.src.kinematics_validation import KinematicsValidator


def puma_config():
    """Six-joint arm with a spherical wrist (PUMA 560 DH table)."""
    return ArmConfig(
        n=6,
        a=(0.0, 0.4318, 0.0203, 0.0, 0.0, 0.0),
        d=(0.0, 0.0, 0.15005, 0.4318, 0.0, 0.0),
        alpha=(np.pi / 2, 0.0, -np.pi / 2, np.pi / 2, -np.pi / 2, 0.0),
        theta0=(0.0,) * 6,
        qmin=(-np.pi,) * 6,
        qmax=(np.pi,) * 6,
    )


class TestGeometricJacobian(unittest.TestCase):
    """Test Jacobian construction on the nominal arm."""

    def setUp(self):
        self.config = ArmConfig()
        self.fk = ForwardKinematics(self.config)
        self.jacobian = GeometricJacobian(self.fk)

    def test_shape(self):
        J = self.jacobian.compute_jacobian(np.zeros(5))
        self.assertEqual(J.shape, (6, 5))

    def test_zero_configuration_columns(self):
        J = self.jacobian.compute_jacobian(np.zeros(5))
        # Base joint: z0 x p_end with p_end = (0.41, 0, 0.1)
        np.testing.assert_allclose(J[:, 0], [0.0, 0.41, 0.0, 0.0, 0.0, 1.0], atol=1e-12)
        # Shoulder: axis -y through (0.06, 0, 0.1), lever 0.35 along x
        np.testing.assert_allclose(J[:, 1], [0.0, 0.0, 0.35, 0.0, -1.0, 0.0], atol=1e-12)

    def test_matches_finite_differences(self):
        validator = KinematicsValidator(self.fk, jacobian=self.jacobian)
        results = validator.check_jacobian(num_tests=25, seed=11)
        self.assertTrue(results['passed'])
        self.assertLess(results['max_relative_error'], 1e-4)

    def test_result_unpacks(self):
        J, manipulability, cond = self.jacobian.compute(np.array([0.1, 0.5, -0.4, 0.3, 0.2]))
        self.assertEqual(J.shape, (6, 5))
        self.assertGreaterEqual(manipulability, 0.0)
        self.assertGreaterEqual(cond, 1.0)

    def test_dimension_mismatch_propagates(self):
        with self.assertRaises(DimensionMismatch):
            self.jacobian.compute(np.zeros(3))

    def test_parallel_axes_make_nominal_arm_rank_deficient(self):
        # Joints 2-5 share one horizontal axis direction, so rank(J) <= 4
        result = self.jacobian.compute(np.array([0.2, 0.6, -0.9, 0.4, 0.3]))
        self.assertLess(result.singular_values[-1], 1e-10)
        self.assertEqual(result.condition_number, float('inf'))


class TestConditioningHelpers(unittest.TestCase):
    """Test the scalar conditioning measures."""

    def test_condition_number(self):
        self.assertAlmostEqual(condition_number(np.array([4.0, 2.0, 0.5])), 8.0)
        self.assertEqual(condition_number(np.array([1.0, 1e-12])), float('inf'))

    def test_manipulability_of_square_matrix(self):
        J = np.diag([2.0, 3.0, 1.0, 1.0, 1.0, 0.5])
        self.assertAlmostEqual(manipulability_index(J), 3.0)

    def test_manipulability_clamped_for_rank_deficient(self):
        J = np.zeros((6, 5))
        J[0, 0] = 1.0
        self.assertEqual(manipulability_index(J), 0.0)


class TestSingularityMetrics(unittest.TestCase):
    """Test singularity classification on a full-rank arm."""

    def setUp(self):
        self.config = puma_config()
        self.metrics = SingularityMetrics(config=self.config)
        self.q_regular = np.array([0.1, 0.4, -0.6, 0.3, 0.9, 0.2])

    def test_regular_configuration(self):
        det_gram, cond, manipulability, is_singular = self.metrics.evaluate(self.q_regular)
        self.assertGreater(det_gram, 0.0)
        self.assertAlmostEqual(manipulability, np.sqrt(det_gram))
        self.assertTrue(np.isfinite(cond))
        self.assertEqual(is_singular, cond > self.config.cond_threshold
                         or manipulability < self.config.manip_threshold)

    def test_wrist_singularity(self):
        q = self.q_regular.copy()
        q[4] = 0.0  # wrist axes 4 and 6 aligned
        report = self.metrics.evaluate(q)
        self.assertTrue(report.is_singular)
        self.assertGreater(report.condition_number, self.config.cond_threshold)
        self.assertLess(report.manipulability, 1e-6)

    def test_classify_thresholds(self):
        self.assertTrue(self.metrics.classify(300.0, 0.5))
        self.assertTrue(self.metrics.classify(10.0, 0.001))
        self.assertFalse(self.metrics.classify(10.0, 0.5))

    def test_nominal_arm_reports_singular(self):
        report = singularity_metrics(np.zeros(5), ArmConfig())
        self.assertTrue(report.is_singular)

    def test_evaluate_path(self):
        q_wrist = self.q_regular.copy()
        q_wrist[4] = 0.0
        profile = self.metrics.evaluate_path(np.vstack([self.q_regular, q_wrist]))
        self.assertEqual(profile['condition_numbers'].shape, (2,))
        self.assertTrue(profile['is_singular'][1])
        self.assertGreaterEqual(profile['singular_count'], 1)
        self.assertEqual(profile['max_condition_number'], float(np.max(profile['condition_numbers'])))

    def test_functional_interface(self):
        J, manipulability, cond = jacobian(self.q_regular, self.config)
        self.assertEqual(J.shape, (6, 6))
        self.assertGreater(manipulability, 0.0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
