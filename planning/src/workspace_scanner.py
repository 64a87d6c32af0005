#!/usr/bin/env python3
"""
Workspace Scanner Module

Reachability analysis for the arm over its tray layout, built on forward
kinematics only:

- Quasi-random (Sobol) or uniform sampling of the joint-limit box
- FK sweep to a reachable point cloud (invalid frames are dropped)
- Convex hull volume of the point cloud
- Tray coverage grid: a cell is reachable when some point inside the tray
  height band lies within the clearance radius of the cell centre
- Optional chunked sweep on a thread pool; chunks are concatenated in order,
  so results match the sequential sweep exactly

Sampling is seeded from the arm configuration, so repeated scans with the
same configuration and sample count are reproducible. Sample sequences are
prefix-consistent: a larger scan contains every point of a smaller one,
which keeps coverage non-decreasing in the sample count.

Author: Robot Control Team
"""

import numpy as np
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from scipy.spatial import ConvexHull, QhullError, cKDTree
from scipy.stats import qmc

from kinematics.src.arm_config import ArmConfig, resolve_config
from kinematics.src.forward_kinematic import ForwardKinematics

logger = logging.getLogger(__name__)

PROGRESS_LOG_INTERVAL = 10000
MIN_HULL_POINTS = 4


class WorkspaceScanError(Exception):
    """Custom exception for workspace scan errors."""
    pass


class SobolSampler:
    """Scrambled Sobol points in the unit hypercube."""

    name = 'sobol'

    def __init__(self, dimension: int, seed: int, skip: int = 0):
        self.dimension = dimension
        self.seed = seed
        self.skip = skip

    def sample(self, count: int) -> np.ndarray:
        engine = qmc.Sobol(d=self.dimension, scramble=True, rng=np.random.default_rng(self.seed))
        if self.skip:
            engine.fast_forward(self.skip)
        return engine.random(count)


class UniformSampler:
    """Pseudo-random uniform points in the unit hypercube."""

    name = 'uniform'

    def __init__(self, dimension: int, seed: int):
        self.dimension = dimension
        self.seed = seed

    def sample(self, count: int) -> np.ndarray:
        rng = np.random.default_rng(self.seed)
        return rng.random((count, self.dimension))


def make_sampler(config: ArmConfig):
    """Build the sampler selected by config.sampler."""
    if config.sampler == 'sobol':
        if config.n > qmc.Sobol.MAXDIM:
            logger.warning(f"Sobol sequence supports at most {qmc.Sobol.MAXDIM} dimensions, "
                           f"using uniform sampling for {config.n} joints")
            return UniformSampler(config.n, config.seed)
        return SobolSampler(config.n, config.seed, config.sobol_skip)
    return UniformSampler(config.n, config.seed)


def tray_grid(config: ArmConfig, place: bool = False) -> Tuple[np.ndarray, np.ndarray]:
    """
    Nominal (x, y) centres of the tray cells.

    Args:
        config: Arm configuration holding the grid layout
        place: Shift the grid by place_y_offset (place tray instead of pick tray)

    Returns:
        (grid_x, grid_y), each of shape (grid_ny, grid_nx)
    """
    x_start = config.grid_x_offset - (config.grid_nx - 1) * config.grid_dx / 2
    y_start = config.grid_y_offset - (config.grid_ny - 1) * config.grid_dy / 2
    if place:
        y_start += config.place_y_offset

    x_vec = x_start + np.arange(config.grid_nx) * config.grid_dx
    y_vec = y_start + np.arange(config.grid_ny) * config.grid_dy
    return np.meshgrid(x_vec, y_vec)


def hull_volume(points: np.ndarray) -> float:
    """Convex hull volume; 0.0 for empty or degenerate point sets."""
    if len(points) < MIN_HULL_POINTS:
        logger.warning(f"Convex hull needs at least {MIN_HULL_POINTS} points, got {len(points)}")
        return 0.0
    try:
        return float(ConvexHull(points).volume)
    except QhullError as e:
        logger.warning(f"Convex hull computation failed: {str(e).splitlines()[0]}")
        return 0.0


@dataclass(frozen=True)
class WorkspaceScanResult:
    """Aggregates of one workspace scan."""
    points: np.ndarray              # (M, 3) valid end-effector positions
    hull_volume: float
    coverage_grid: np.ndarray       # (grid_ny, grid_nx) bool
    coverage_fraction: float
    metrics: Dict[str, Any] = field(default_factory=dict)

    def __iter__(self) -> Iterator:
        return iter((self.points, self.hull_volume, self.coverage_grid, self.coverage_fraction))

    @property
    def valid_samples(self) -> int:
        return int(len(self.points))


class WorkspaceScanner:
    """FK-based reachability scan over the joint-limit box."""

    def __init__(self, forward_kinematics: Optional[ForwardKinematics] = None,
                 config: Optional[ArmConfig] = None, sampler=None):
        """
        Initialize workspace scanner.

        Args:
            forward_kinematics: ForwardKinematics instance (built from config when None)
            config: ArmConfig used when no forward_kinematics is given
            sampler: Object with sample(count) -> (count, n) unit-cube array;
                chosen from config.sampler when None
        """
        self.fk = forward_kinematics or ForwardKinematics(resolve_config(config))
        self.config = self.fk.config
        self.n_joints = self.fk.n_joints
        self.joint_limits = self.fk.get_joint_limits()
        self.sampler = sampler or make_sampler(self.config)

        logger.info(f"Workspace scanner initialized ({self.sampler.name} sampling, "
                    f"{self.config.grid_nx}x{self.config.grid_ny} tray grid)")

    def sample_joints(self, sample_count: int) -> np.ndarray:
        """Map unit-cube samples linearly into [qmin, qmax]."""
        unit = np.asarray(self.sampler.sample(sample_count), dtype=float)
        lower, upper = self.joint_limits
        return lower + unit * (upper - lower)

    def _sweep(self, q_samples: np.ndarray, offset: int = 0) -> Tuple[np.ndarray, np.ndarray]:
        positions = np.full((len(q_samples), 3), np.nan)
        valid = np.zeros(len(q_samples), dtype=bool)

        for i, q in enumerate(q_samples):
            result = self.fk.compute(q)
            if result.valid:
                positions[i] = result.pose[:3, 3]
                valid[i] = True

            done = offset + i + 1
            if done % PROGRESS_LOG_INTERVAL == 0:
                logger.debug(f"Workspace sweep progress: {done} samples")

        return positions, valid

    def _parallel_sweep(self, q_samples: np.ndarray, workers: int) -> Tuple[np.ndarray, np.ndarray]:
        chunks = np.array_split(q_samples, workers)
        offsets = np.cumsum([0] + [len(c) for c in chunks[:-1]])

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._sweep, chunk, int(offset))
                       for chunk, offset in zip(chunks, offsets)]
            parts = [future.result() for future in futures]

        positions = np.concatenate([p for p, _ in parts], axis=0)
        valid = np.concatenate([v for _, v in parts])
        return positions, valid

    def tray_coverage(self, points: np.ndarray) -> Tuple[np.ndarray, float]:
        """
        Coverage grid of the pick tray.

        Args:
            points: (M, 3) reachable positions

        Returns:
            (coverage_grid, coverage_fraction)
        """
        cfg = self.config
        grid_x, grid_y = tray_grid(cfg)
        coverage = np.zeros(grid_x.shape, dtype=bool)

        if len(points) > 0:
            in_band = np.abs(points[:, 2] - cfg.z_tray) < cfg.coverage_z_band
            band_xy = points[in_band, :2]
            if len(band_xy) > 0:
                tree = cKDTree(band_xy)
                centres = np.column_stack([grid_x.ravel(), grid_y.ravel()])
                distances, _ = tree.query(centres, k=1, distance_upper_bound=cfg.clearance)
                coverage = (distances < cfg.clearance).reshape(grid_x.shape)

        fraction = float(np.count_nonzero(coverage)) / coverage.size
        return coverage, fraction

    def scan(self, sample_count: Optional[int] = None, workers: int = 1) -> WorkspaceScanResult:
        """
        Run a workspace scan.

        Args:
            sample_count: Number of joint samples (config.workspace_samples when None)
            workers: Thread count for the FK sweep

        Returns:
            WorkspaceScanResult with point cloud, hull volume and coverage

        Raises:
            WorkspaceScanError: If sample_count or workers is not positive
        """
        if sample_count is None:
            sample_count = self.config.workspace_samples
        if sample_count < 1:
            raise WorkspaceScanError(f"Sample count must be positive, got {sample_count}")
        if workers < 1:
            raise WorkspaceScanError(f"Worker count must be positive, got {workers}")

        start_time = time.time()
        q_samples = self.sample_joints(sample_count)

        if workers > 1 and sample_count >= workers:
            positions, valid = self._parallel_sweep(q_samples, workers)
        else:
            positions, valid = self._sweep(q_samples)

        points = positions[valid]
        volume = hull_volume(points)
        coverage_grid, coverage_fraction = self.tray_coverage(points)

        metrics = self._compute_metrics(points, sample_count, coverage_grid)
        metrics['computation_time'] = time.time() - start_time

        logger.info(f"Workspace scan: {len(points)}/{sample_count} valid samples, "
                    f"hull volume {volume:.6f} m³, tray coverage {coverage_fraction:.1%} "
                    f"({metrics['reachable_cells']}/{metrics['total_cells']} cells)")

        return WorkspaceScanResult(
            points=points,
            hull_volume=volume,
            coverage_grid=coverage_grid,
            coverage_fraction=coverage_fraction,
            metrics=metrics
        )

    @staticmethod
    def _compute_metrics(points: np.ndarray, sample_count: int,
                         coverage_grid: np.ndarray) -> Dict[str, Any]:
        metrics: Dict[str, Any] = {
            'samples': sample_count,
            'valid_samples': int(len(points)),
            'reachable_cells': int(np.count_nonzero(coverage_grid)),
            'total_cells': int(coverage_grid.size),
        }
        axes: List[str] = ['x', 'y', 'z']
        for i, axis in enumerate(axes):
            if len(points) > 0:
                metrics[f'min_{axis}'] = float(points[:, i].min())
                metrics[f'max_{axis}'] = float(points[:, i].max())
            else:
                metrics[f'min_{axis}'] = metrics[f'max_{axis}'] = float('nan')
        return metrics


def scan_workspace(config: Optional[ArmConfig] = None,
                   sample_count: Optional[int] = None) -> WorkspaceScanResult:
    """Functional entry point: (point_cloud, hull_volume, coverage_grid, coverage_fraction)."""
    return WorkspaceScanner(config=config).scan(sample_count)
