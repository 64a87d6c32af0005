#!/usr/bin/env python3
"""
Unit Tests for Workspace Scanner

Test suite covering:
- Tray grid layout
- Sampling strategies and determinism
- Scan aggregates (point cloud, hull volume, coverage grid)
- Coverage monotonicity in the sample count
- Parallel sweep equivalence
- Degenerate inputs and invalid FK samples

Author: Robot Control Team
"""

import sys
import os
import unittest
import numpy as np
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from kinematics.src.arm_config import ArmConfig
from kinematics.src.forward_kinematic import ForwardKinematics
from planning.src.workspace_scanner import (
    WorkspaceScanner, WorkspaceScanError, SobolSampler, UniformSampler,
    make_sampler, tray_grid, hull_volume, scan_workspace
)


class TestTrayGrid(unittest.TestCase):
    """Test tray cell layout."""

    def setUp(self):
        self.config = ArmConfig()

    def test_grid_shape_and_centre(self):
        grid_x, grid_y = tray_grid(self.config)
        self.assertEqual(grid_x.shape, (4, 8))
        self.assertEqual(grid_y.shape, (4, 8))
        self.assertAlmostEqual(grid_x.mean(), self.config.grid_x_offset)
        self.assertAlmostEqual(grid_y.mean(), self.config.grid_y_offset)

    def test_grid_spacing(self):
        grid_x, grid_y = tray_grid(self.config)
        np.testing.assert_allclose(np.diff(grid_x[0]), self.config.grid_dx)
        np.testing.assert_allclose(np.diff(grid_y[:, 0]), self.config.grid_dy)

    def test_place_tray_offset(self):
        pick_x, pick_y = tray_grid(self.config)
        place_x, place_y = tray_grid(self.config, place=True)
        np.testing.assert_allclose(place_x, pick_x)
        np.testing.assert_allclose(place_y - pick_y, self.config.place_y_offset)


class TestSamplers(unittest.TestCase):
    """Test unit-cube sampling strategies."""

    def test_sobol_shape_and_range(self):
        samples = SobolSampler(5, seed=42, skip=1000).sample(256)
        self.assertEqual(samples.shape, (256, 5))
        self.assertTrue(np.all((samples >= 0.0) & (samples < 1.0)))

    def test_sobol_prefix_consistent(self):
        sampler = SobolSampler(5, seed=42, skip=1000)
        np.testing.assert_array_equal(sampler.sample(64), sampler.sample(256)[:64])

    def test_uniform_prefix_consistent(self):
        sampler = UniformSampler(5, seed=7)
        np.testing.assert_array_equal(sampler.sample(100), sampler.sample(400)[:100])

    def test_make_sampler_follows_config(self):
        self.assertIsInstance(make_sampler(ArmConfig()), SobolSampler)
        self.assertIsInstance(make_sampler(ArmConfig(sampler='uniform')), UniformSampler)


class TestHullVolume(unittest.TestCase):
    """Test convex hull volume edge cases."""

    def test_unit_cube(self):
        corners = np.array([[x, y, z] for x in (0, 1) for y in (0, 1) for z in (0, 1)], dtype=float)
        self.assertAlmostEqual(hull_volume(corners), 1.0)

    def test_too_few_points(self):
        self.assertEqual(hull_volume(np.zeros((3, 3))), 0.0)

    def test_coplanar_points(self):
        rng = np.random.default_rng(0)
        planar = np.column_stack([rng.random(20), rng.random(20), np.zeros(20)])
        self.assertEqual(hull_volume(planar), 0.0)


class TestWorkspaceScanner(unittest.TestCase):
    """Test workspace scans on the nominal arm."""

    def setUp(self):
        self.config = ArmConfig()
        self.fk = ForwardKinematics(self.config)
        self.scanner = WorkspaceScanner(self.fk)

    def test_scan_aggregates(self):
        result = self.scanner.scan(2048)
        points, volume, grid, fraction = result

        self.assertEqual(points.shape[1], 3)
        self.assertLessEqual(len(points), 2048)
        self.assertGreater(volume, 0.0)
        self.assertEqual(grid.shape, (self.config.grid_ny, self.config.grid_nx))
        self.assertEqual(grid.dtype, bool)
        self.assertGreaterEqual(fraction, 0.0)
        self.assertLessEqual(fraction, 1.0)
        self.assertAlmostEqual(fraction, grid.mean())

    def test_points_within_reach(self):
        points = self.scanner.scan(1024).points
        shoulder = np.array([0.0, 0.0, self.config.d[0]])
        reach = sum(self.config.a)
        self.assertTrue(np.all(np.linalg.norm(points - shoulder, axis=1) <= reach + 1e-9))

    def test_metrics(self):
        result = self.scanner.scan(1024)
        metrics = result.metrics
        self.assertEqual(metrics['samples'], 1024)
        self.assertEqual(metrics['valid_samples'], len(result.points))
        self.assertEqual(metrics['total_cells'], 32)
        self.assertEqual(metrics['reachable_cells'], int(result.coverage_grid.sum()))
        self.assertAlmostEqual(metrics['max_z'], result.points[:, 2].max())
        self.assertLessEqual(metrics['min_x'], metrics['max_x'])

    def test_tray_reachable(self):
        self.assertGreater(self.scanner.scan(4096).coverage_fraction, 0.0)

    def test_coverage_monotonic_in_sample_count(self):
        small = self.scanner.scan(512)
        large = self.scanner.scan(4096)
        self.assertLessEqual(small.coverage_fraction, large.coverage_fraction)
        self.assertTrue(np.all(large.coverage_grid[small.coverage_grid]))
        self.assertLessEqual(small.hull_volume, large.hull_volume + 1e-12)

    def test_repeatable(self):
        first = self.scanner.scan(1000)
        second = WorkspaceScanner(ForwardKinematics(self.config)).scan(1000)
        np.testing.assert_array_equal(first.points, second.points)
        np.testing.assert_array_equal(first.coverage_grid, second.coverage_grid)
        self.assertEqual(first.hull_volume, second.hull_volume)

    def test_parallel_matches_sequential(self):
        sequential = self.scanner.scan(1500)
        parallel = self.scanner.scan(1500, workers=4)
        np.testing.assert_array_equal(sequential.points, parallel.points)
        np.testing.assert_array_equal(sequential.coverage_grid, parallel.coverage_grid)
        self.assertEqual(sequential.hull_volume, parallel.hull_volume)

    def test_uniform_sampler(self):
        scanner = WorkspaceScanner(config=self.config.replace(sampler='uniform'))
        self.assertIsInstance(scanner.sampler, UniformSampler)
        result = scanner.scan(1024)
        self.assertGreater(len(result.points), 0)

    def test_samples_mapped_into_limits(self):
        q = self.scanner.sample_joints(500)
        lower, upper = self.fk.get_joint_limits()
        self.assertEqual(q.shape, (500, 5))
        self.assertTrue(np.all(q >= lower) and np.all(q <= upper))

    def test_invalid_samples_excluded(self):
        real_compute = self.fk.compute
        calls = {'count': 0}

        def every_other_invalid(q):
            result = real_compute(q)
            calls['count'] += 1
            if calls['count'] % 2 == 0:
                return result.__class__(pose=result.pose, link_chain=result.link_chain, valid=False)
            return result

        with patch.object(self.fk, 'compute', side_effect=every_other_invalid):
            result = self.scanner.scan(200)
        self.assertEqual(len(result.points), 100)
        self.assertEqual(result.metrics['valid_samples'], 100)

    def test_coverage_from_synthetic_points(self):
        grid_x, grid_y = tray_grid(self.config)
        on_cells = np.column_stack([grid_x.ravel(), grid_y.ravel(),
                                    np.full(grid_x.size, self.config.z_tray)])
        grid, fraction = self.scanner.tray_coverage(on_cells)
        self.assertTrue(np.all(grid))
        self.assertEqual(fraction, 1.0)

        out_of_band = on_cells.copy()
        out_of_band[:, 2] += 2 * self.config.coverage_z_band
        grid, fraction = self.scanner.tray_coverage(out_of_band)
        self.assertFalse(np.any(grid))
        self.assertEqual(fraction, 0.0)

        shifted = on_cells.copy()
        shifted[:, 0] += 1.5 * self.config.clearance
        self.assertEqual(self.scanner.tray_coverage(shifted)[1], 0.0)

    def test_empty_point_cloud(self):
        grid, fraction = self.scanner.tray_coverage(np.zeros((0, 3)))
        self.assertEqual(fraction, 0.0)
        self.assertEqual(grid.shape, (4, 8))

    def test_rejects_non_positive_counts(self):
        with self.assertRaises(WorkspaceScanError):
            self.scanner.scan(0)
        with self.assertRaises(WorkspaceScanError):
            self.scanner.scan(100, workers=0)

    def test_functional_interface(self):
        points, volume, grid, fraction = scan_workspace(self.config, 256)
        self.assertEqual(points.shape[1], 3)
        self.assertEqual(grid.shape, (4, 8))


if __name__ == '__main__':
    unittest.main(verbosity=2)
