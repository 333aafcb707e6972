"""Rotation representations and conversions.

Conversions between the attitude parameterizations used by the navigation
state:
- Rotation matrices (3x3 orthogonal matrices, SO(3)), world-from-body
- Quaternions (unit quaternions, q = [qw, qx, qy, qz])
- Euler angles (roll-pitch-yaw, ZYX convention)

Conventions:
- Quaternions: [qw, qx, qy, qz] where qw is the scalar part
- Euler angles: [roll, pitch, yaw] in radians (ZYX/3-2-1 convention),
  R = Rz(yaw) @ Ry(pitch) @ Rx(roll)
- Rotation matrices: 3x3 numpy arrays, v_world = R @ v_body

scipy.spatial.transform.Rotation stores quaternions scalar-last; the
functions below translate to and from the scalar-first convention.
"""

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to rotation matrix.

    Args:
        roll: Roll angle φ in radians (rotation about x-axis).
        pitch: Pitch angle θ in radians (rotation about y-axis).
        yaw: Yaw angle ψ in radians (rotation about z-axis).

    Returns:
        3x3 rotation matrix R = Rz(ψ) Ry(θ) Rx(φ) such that
        v_world = R @ v_body.

    Example:
        >>> R = euler_to_rotation_matrix(0.1, 0.2, 0.3)
        >>> print(f"Determinant (should be 1.0): {np.linalg.det(R):.6f}")
    """
    cr, sr = np.cos(roll), np.sin(roll)
    cp, sp = np.cos(pitch), np.sin(pitch)
    cy, sy = np.cos(yaw), np.sin(yaw)

    Rx = np.array([[1.0, 0.0, 0.0], [0.0, cr, -sr], [0.0, sr, cr]])
    Ry = np.array([[cp, 0.0, sp], [0.0, 1.0, 0.0], [-sp, 0.0, cp]])
    Rz = np.array([[cy, -sy, 0.0], [sy, cy, 0.0], [0.0, 0.0, 1.0]])

    return Rz @ Ry @ Rx


def rotation_matrix_to_euler(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert rotation matrix to Euler angles.

    Extracts roll-pitch-yaw (ZYX convention). At gimbal lock (pitch = ±90°)
    only yaw - roll is observable; roll is then set to zero.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Euler angles as numpy array [roll, pitch, yaw] in radians.

    Raises:
        ValueError: If R is not a 3x3 matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")

    sin_pitch = np.clip(-R[2, 0], -1.0, 1.0)

    if abs(sin_pitch) > 1.0 - 1e-12:
        pitch = np.copysign(np.pi / 2.0, sin_pitch)
        yaw = np.arctan2(-R[0, 1], R[1, 1])
        roll = 0.0
    else:
        pitch = np.arcsin(sin_pitch)
        roll = np.arctan2(R[2, 1], R[2, 2])
        yaw = np.arctan2(R[1, 0], R[0, 0])

    return np.array([roll, pitch, yaw], dtype=np.float64)


def quat_to_rotation_matrix(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a scalar-first quaternion to a rotation matrix.

    The quaternion is normalized before conversion.

    Raises:
        ValueError: If q is not a 4-element array or has zero norm.
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"Expected 4-element quaternion, got shape {q.shape}")
    if np.linalg.norm(q) == 0.0:
        raise ValueError("Quaternion must have non-zero norm")

    qw, qx, qy, qz = q
    return Rotation.from_quat([qx, qy, qz, qw]).as_matrix()


def rotation_matrix_to_quat(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert rotation matrix to a scalar-first unit quaternion.

    The sign is fixed so that qw >= 0.

    Raises:
        ValueError: If R is not a 3x3 matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")

    qx, qy, qz, qw = Rotation.from_matrix(R).as_quat()
    q = np.array([qw, qx, qy, qz], dtype=np.float64)
    if q[0] < 0.0:
        q = -q
    return q
