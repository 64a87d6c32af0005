"""
Arm Planning Package
====================

Batch consumers of the kinematics package: workspace reachability scans over
the tray and joint/task-space trajectory generation with constraint checks.

Package Structure:
- src/: Core source code modules
- tests/: unittest suites

Author: Robot Control Team
"""

__version__ = "1.0.0"
__author__ = "Robot Control Team"
