"""
Arm Kinematics Package
======================

Mathematical core for a serial revolute arm described by standard
Denavit-Hartenberg parameters.

Package Structure:
- src/: Core source code modules
- tests/: unittest suites

Author: Robot Control Team
"""

__version__ = "1.0.0"
__author__ = "Robot Control Team"
