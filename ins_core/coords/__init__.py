"""Rotation and pose primitives for navigation.

This module provides the attitude and pose types on which NavState is built:
- Rotation representations (matrices, quaternions, Euler angles)
- Rot3: SO(3) with exponential/logarithm maps and analytic Jacobians
- Pose3: rotation plus translation
"""

from ins_core.coords.pose3 import Pose3
from ins_core.coords.rotations import (
    euler_to_rotation_matrix,
    quat_to_rotation_matrix,
    rotation_matrix_to_euler,
    rotation_matrix_to_quat,
)
from ins_core.coords.so3 import (
    Rot3,
    left_jacobian,
    left_jacobian_inverse,
    orthonormality_error,
    right_jacobian,
    right_jacobian_inverse,
    skew,
)

__all__ = [
    # Rotations
    "euler_to_rotation_matrix",
    "quat_to_rotation_matrix",
    "rotation_matrix_to_euler",
    "rotation_matrix_to_quat",
    # SO(3)
    "Rot3",
    "skew",
    "right_jacobian",
    "left_jacobian",
    "right_jacobian_inverse",
    "left_jacobian_inverse",
    "orthonormality_error",
    # Poses
    "Pose3",
]
