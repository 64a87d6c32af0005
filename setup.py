#!/usr/bin/env python3
"""
Setup script for the Arm Kinematics and Motion Planning Package
"""

from setuptools import setup, find_packages

setup(
    name="arm_kinematics_planning",
    version="1.0.0",
    description="Kinematics, workspace analysis and trajectory planning for serial revolute arms",
    author="Thorn",
    packages=find_packages(exclude=["*.tests", "*.tests.*", "tests"]),
    package_data={"kinematics": ["config/arm_config.yaml"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22.0",
        "scipy>=1.15.0",
        "PyYAML>=5.4",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
