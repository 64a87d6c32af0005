#!/usr/bin/env python3
"""
Unit Tests for Arm Configuration

Test suite covering:
- Built-in defaults and packaged YAML consistency
- Invariant validation on construction
- YAML loading, partial overrides and failure modes
- Per-call overrides through replace()

Author: Robot Control Team
"""

import sys
import os
import tempfile
import unittest
import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

import kinematics
from kinematics.src.arm_config import (
    ArmConfig, ConfigurationError, load_arm_config, get_default_config_path,
    default_arm_config, resolve_config
)


class TestArmConfigDefaults(unittest.TestCase):
    """Test the nominal 5-DOF arm description."""

    def test_default_dimensions(self):
        config = ArmConfig()
        self.assertEqual(config.n, 5)
        for name in ('a', 'd', 'alpha', 'theta0', 'qmin', 'qmax'):
            self.assertEqual(len(getattr(config, name)), 5, name)

    def test_default_angles_in_radians(self):
        config = ArmConfig()
        self.assertAlmostEqual(config.alpha[0], np.pi / 2)
        self.assertAlmostEqual(config.qmax[0], np.radians(170.0))
        self.assertAlmostEqual(config.tol_yaw, np.radians(0.5))

    def test_joint_limits_array(self):
        limits = ArmConfig().joint_limits()
        self.assertEqual(limits.shape, (2, 5))
        self.assertTrue(np.all(limits[0] < limits[1]))

    def test_packaged_yaml_matches_defaults(self):
        config = load_arm_config(get_default_config_path())
        self.assertEqual(config, ArmConfig())
        self.assertIsNotNone(config.source)

    def test_packaged_yaml_ships_inside_package(self):
        # setup.py installs it as package data of the kinematics package
        package_dir = os.path.dirname(os.path.abspath(kinematics.__file__))
        path = get_default_config_path()
        self.assertTrue(os.path.exists(path))
        self.assertEqual(path, os.path.join(package_dir, 'config', 'arm_config.yaml'))

    def test_default_is_cached(self):
        self.assertIs(default_arm_config(), default_arm_config())
        self.assertIs(resolve_config(None), default_arm_config())

    def test_total_cells(self):
        self.assertEqual(ArmConfig().total_cells, 32)


class TestArmConfigValidation(unittest.TestCase):
    """Test invariant checks."""

    def test_length_mismatch_rejected(self):
        with self.assertRaises(ConfigurationError):
            ArmConfig(a=(0.1, 0.1))

    def test_inverted_limits_rejected(self):
        qmin = list(ArmConfig().qmin)
        qmax = list(ArmConfig().qmax)
        qmin[2] = qmax[2]
        with self.assertRaises(ConfigurationError):
            ArmConfig(qmin=qmin)

    def test_damping_bounds_rejected(self):
        with self.assertRaises(ConfigurationError):
            ArmConfig(lambda_init=0.5, lambda_max=0.1)

    def test_non_numeric_sequence_rejected(self):
        with self.assertRaises(ConfigurationError):
            ArmConfig(d=('x', 0, 0, 0, 0))

    def test_unknown_sampler_rejected(self):
        with self.assertRaises(ConfigurationError):
            ArmConfig(sampler='halton')

    def test_configuration_error_is_value_error(self):
        self.assertTrue(issubclass(ConfigurationError, ValueError))

    def test_replace_returns_validated_copy(self):
        base = ArmConfig()
        changed = base.replace(max_iters=10)
        self.assertEqual(changed.max_iters, 10)
        self.assertEqual(base.max_iters, 200)
        with self.assertRaises(ConfigurationError):
            base.replace(max_iters=0)

    def test_config_is_immutable(self):
        config = ArmConfig()
        with self.assertRaises(AttributeError):
            config.n = 6


class TestArmConfigLoading(unittest.TestCase):
    """Test YAML loading."""

    def _write(self, text):
        handle = tempfile.NamedTemporaryFile('w', suffix='.yaml', delete=False)
        handle.write(text)
        handle.close()
        self.addCleanup(os.unlink, handle.name)
        return handle.name

    def test_partial_override(self):
        path = self._write("ik:\n  max_iters: 50\n  tol_yaw_deg: 1.0\ntrajectory:\n  dt: 0.02\n")
        config = load_arm_config(path)
        self.assertEqual(config.max_iters, 50)
        self.assertAlmostEqual(config.tol_yaw, np.radians(1.0))
        self.assertAlmostEqual(config.traj_dt, 0.02)
        self.assertEqual(config.a, ArmConfig().a)

    def test_missing_file_falls_back_to_defaults(self):
        missing = os.path.join(tempfile.gettempdir(), 'no_such_arm_config.yaml')
        with self.assertLogs('kinematics.src.arm_config', level='WARNING'):
            config = load_arm_config(missing)
        self.assertEqual(config, ArmConfig())

    def test_malformed_yaml_raises(self):
        path = self._write("arm: [unclosed\n")
        with self.assertLogs('kinematics.src.arm_config', level='ERROR'):
            with self.assertRaises(ConfigurationError):
                load_arm_config(path)

    def test_unknown_key_raises(self):
        path = self._write("ik:\n  step_size: 0.3\n")
        with self.assertRaises(ConfigurationError):
            load_arm_config(path)

    def test_invalid_values_raise(self):
        path = self._write("joint_limits:\n  qmin_deg: [10, 0, 0, 0, 0]\n  qmax_deg: [0, 10, 10, 10, 10]\n")
        with self.assertRaises(ConfigurationError):
            load_arm_config(path)

    def test_from_dict_requires_mapping(self):
        with self.assertRaises(ConfigurationError):
            ArmConfig.from_dict([1, 2, 3])


if __name__ == '__main__':
    unittest.main(verbosity=2)
