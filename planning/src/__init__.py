#!/usr/bin/env python3
"""
Arm Planning Package

Planning consumers of the kinematics package: FK-only workspace scans and
point-to-point trajectory generation with constraint validation.

This package provides:
- Workspace reachability scans with Sobol or uniform joint sampling
- Tray coverage grids and convex hull volume
- Joint-space cubic and task-space LSPB trajectories
- Multi-segment pick and place planning

Author: Robot Control Team
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Robot Control Team"

from .workspace_scanner import (WorkspaceScanner, WorkspaceScanResult, WorkspaceScanError,
                                SobolSampler, UniformSampler, make_sampler, tray_grid,
                                scan_workspace)
from .trajectory_planner import (TrajectoryPlanner, TrajectoryResult, Trajectory, Violations,
                                 TrajectoryMethod, TrajectoryPlanningError, SegmentPlanSummary,
                                 plan_trajectory)

# Export all public classes
__all__ = [
    'WorkspaceScanner',
    'WorkspaceScanResult',
    'WorkspaceScanError',
    'SobolSampler',
    'UniformSampler',
    'make_sampler',
    'tray_grid',
    'scan_workspace',
    'TrajectoryPlanner',
    'TrajectoryResult',
    'Trajectory',
    'Violations',
    'TrajectoryMethod',
    'TrajectoryPlanningError',
    'SegmentPlanSummary',
    'plan_trajectory',
]

# Package metadata
__title__ = "arm_planning"
__description__ = "Workspace scanning and trajectory planning for serial revolute arms"
__license__ = "MIT"
