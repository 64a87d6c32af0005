#!/usr/bin/env python3
"""
Pose Math Utilities

Homogeneous-transform helpers shared by the kinematics and planning modules.
A pose is a 4x4 numpy array [R p; 0 1]; helpers never modify their inputs.

Author: Robot Control Team
"""

import numpy as np
from numpy.linalg import norm
from typing import Sequence, Tuple

_I3 = np.eye(3)


def rot_z(theta: float) -> np.ndarray:
    """4x4 rotation about z."""
    c, s = np.cos(theta), np.sin(theta)
    return np.array([
        [c, -s, 0., 0.],
        [s,  c, 0., 0.],
        [0., 0., 1., 0.],
        [0., 0., 0., 1.]
    ])


def rot_x(alpha: float) -> np.ndarray:
    """4x4 rotation about x."""
    c, s = np.cos(alpha), np.sin(alpha)
    return np.array([
        [1., 0., 0., 0.],
        [0., c, -s, 0.],
        [0., s,  c, 0.],
        [0., 0., 0., 1.]
    ])


def trans_z(d: float) -> np.ndarray:
    T = np.eye(4)
    T[2, 3] = d
    return T


def trans_x(a: float) -> np.ndarray:
    T = np.eye(4)
    T[0, 3] = a
    return T


def dh_transform(theta: float, d: float, a: float, alpha: float) -> np.ndarray:
    """
    Standard Denavit-Hartenberg link transform.

    Closed form of Rz(theta) · Tz(d) · Tx(a) · Rx(alpha):

        [cθ  -sθ·cα   sθ·sα   a·cθ]
        [sθ   cθ·cα  -cθ·sα   a·sθ]
        [0    sα      cα      d   ]
        [0    0       0       1   ]

    Args:
        theta: Joint angle including the angle offset (rad)
        d: Link offset along previous z (m)
        a: Link length along new x (m)
        alpha: Link twist about new x (rad)

    Returns:
        4x4 homogeneous transformation matrix
    """
    ct, st = np.cos(theta), np.sin(theta)
    ca, sa = np.cos(alpha), np.sin(alpha)
    return np.array([
        [ct, -st * ca,  st * sa, a * ct],
        [st,  ct * ca, -ct * sa, a * st],
        [0.,  sa,       ca,      d     ],
        [0.,  0.,       0.,      1.    ]
    ])


def make_transform(R: np.ndarray, p: Sequence[float]) -> np.ndarray:
    """Assemble a 4x4 transform from a rotation block and translation."""
    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = p
    return T


def orthonormality_error(R: np.ndarray) -> float:
    """Frobenius norm ||RᵀR - I||."""
    R = np.asarray(R)[:3, :3]
    return float(norm(R.T @ R - _I3, 'fro'))


def is_orthonormal(R: np.ndarray, tol: float = 1e-6) -> bool:
    return orthonormality_error(R) < tol


def yaw_from_rotation(R: np.ndarray) -> float:
    """Heading of the tool x-axis projected on the base plane: atan2(R21, R11)."""
    return float(np.arctan2(R[1, 0], R[0, 0]))


def wrap_to_pi(angle):
    """Wrap angle(s) into [-π, π]."""
    return np.arctan2(np.sin(angle), np.cos(angle))


def position_and_yaw(T: np.ndarray) -> Tuple[np.ndarray, float]:
    return np.array(T[:3, 3], dtype=float), yaw_from_rotation(T)


def skew_symmetric(w: np.ndarray) -> np.ndarray:
    """
    Compute skew-symmetric matrix from 3D vector.

    Args:
        w: 3D vector

    Returns:
        3x3 skew-symmetric matrix
    """
    return np.array([
        [0, -w[2], w[1]],
        [w[2], 0, -w[0]],
        [-w[1], w[0], 0]
    ])


def matrix_to_rpy(R: np.ndarray) -> np.ndarray:
    """
    Convert rotation matrix to RPY angles (XYZ convention).

    Args:
        R: 3x3 rotation matrix

    Returns:
        RPY angles [roll, pitch, yaw] in radians
    """
    sy = np.sqrt(R[0, 0]**2 + R[1, 0]**2)
    singular = sy < 1e-6

    if not singular:
        x = np.arctan2(R[2, 1], R[2, 2])
        y = np.arctan2(-R[2, 0], sy)
        z = np.arctan2(R[1, 0], R[0, 0])
    else:
        x = np.arctan2(-R[1, 2], R[1, 1])
        y = np.arctan2(-R[2, 0], sy)
        z = 0

    return np.array([x, y, z])


def rpy_to_matrix(rpy: Sequence[float]) -> np.ndarray:
    """Convert RPY angles to a 3x3 rotation matrix (Rz·Ry·Rx)."""
    roll, pitch, yaw = rpy
    cr, sr = np.cos(roll), np.sin(roll)
    cp, sp = np.cos(pitch), np.sin(pitch)
    cy, sy = np.cos(yaw), np.sin(yaw)

    Rz = np.array([[cy, -sy, 0], [sy, cy, 0], [0, 0, 1]])
    Ry = np.array([[cp, 0, sp], [0, 1, 0], [-sp, 0, cp]])
    Rx = np.array([[1, 0, 0], [0, cr, -sr], [0, sr, cr]])

    return Rz @ Ry @ Rx
