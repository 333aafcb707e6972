"""SO(3) rotation group: value type, exponential map and Jacobians.

Rot3 is the attitude primitive of the navigation state. It is an immutable
wrapper around a 3x3 rotation matrix (world-from-body) exposing:
    - Expmap / Logmap between so(3) (rotation vectors) and SO(3)
    - composition, inverse and between, with Jacobians
    - the group action rotate / unrotate, with Jacobians
    - right retraction R ⊕ ω = R Exp(ω) and its inverse

Jacobians follow the right-perturbation convention used throughout the
package: the derivative of f at R is the matrix H such that
    f(R Exp(δ)) ≈ f(R) ⊕ H δ.

The exponential and logarithm are evaluated with
scipy.spatial.transform.Rotation.
"""

from typing import Union

import numpy as np
from scipy.spatial.transform import Rotation

from ins_core.coords.rotations import (
    euler_to_rotation_matrix,
    quat_to_rotation_matrix,
    rotation_matrix_to_euler,
    rotation_matrix_to_quat,
)

# Below this squared angle the closed forms are replaced by Taylor series.
# The series are truncated after the θ⁴ term, exact to double precision here.
_SMALL_ANGLE_SQ = 1e-4

# Orthonormality and determinant error above which a matrix is not in SO(3)
_ROTATION_TOL = 1e-6


def _as_vector3(x: np.ndarray, name: str) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {x.shape}")
    return x


def skew(w: np.ndarray) -> np.ndarray:
    """
    Skew-symmetric (cross-product) matrix of a 3-vector.

    skew(w) @ x == np.cross(w, x) for all x.

    Args:
        w: Vector of shape (3,).

    Returns:
        3x3 skew-symmetric matrix.

    Example:
        >>> W = skew(np.array([1.0, 2.0, 3.0]))
        >>> np.allclose(W, -W.T)
        True
    """
    x, y, z = _as_vector3(w, "w")
    return np.array(
        [
            [0.0, -z, y],
            [z, 0.0, -x],
            [-y, x, 0.0],
        ]
    )


def right_jacobian(omega: np.ndarray) -> np.ndarray:
    """
    Right Jacobian of the SO(3) exponential.

        Jr(ω) = I - (1 - cos θ)/θ² [ω]× + (θ - sin θ)/θ³ [ω]×²

    so that Exp(ω + δ) ≈ Exp(ω) Exp(Jr(ω) δ).

    Args:
        omega: Rotation vector, shape (3,).

    Returns:
        3x3 Jacobian.
    """
    omega = _as_vector3(omega, "omega")
    theta_sq = float(omega @ omega)
    W = skew(omega)

    if theta_sq < _SMALL_ANGLE_SQ:
        a = 0.5 - theta_sq / 24.0 + theta_sq * theta_sq / 720.0
        b = 1.0 / 6.0 - theta_sq / 120.0 + theta_sq * theta_sq / 5040.0
    else:
        theta = np.sqrt(theta_sq)
        # 1 - cos θ = 2 sin²(θ/2)
        a = 2.0 * np.sin(0.5 * theta) ** 2 / theta_sq
        b = (theta - np.sin(theta)) / (theta_sq * theta)

    return np.eye(3) - a * W + b * W @ W


def left_jacobian(omega: np.ndarray) -> np.ndarray:
    """Left Jacobian of the SO(3) exponential, Jl(ω) = Jr(-ω)."""
    return right_jacobian(-_as_vector3(omega, "omega"))


def right_jacobian_inverse(omega: np.ndarray) -> np.ndarray:
    """
    Inverse of the right Jacobian of the SO(3) exponential.

        Jr⁻¹(ω) = I + ½[ω]× + (1/θ² - (1 + cos θ)/(2θ sin θ)) [ω]×²

    Singular at θ = π (as is Logmap's derivative).

    Args:
        omega: Rotation vector, shape (3,).

    Returns:
        3x3 matrix.
    """
    omega = _as_vector3(omega, "omega")
    theta_sq = float(omega @ omega)
    W = skew(omega)

    if theta_sq < _SMALL_ANGLE_SQ:
        c = 1.0 / 12.0 + theta_sq / 720.0 + theta_sq * theta_sq / 30240.0
    else:
        theta = np.sqrt(theta_sq)
        c = 1.0 / theta_sq - (1.0 + np.cos(theta)) / (2.0 * theta * np.sin(theta))

    return np.eye(3) + 0.5 * W + c * W @ W


def orthonormality_error(R: np.ndarray) -> float:
    """Largest deviation of a 3x3 matrix from SO(3): max(|RᵀR - I|, |det R - 1|)."""
    R = np.asarray(R, dtype=np.float64)
    return float(
        max(np.abs(R.T @ R - np.eye(3)).max(), abs(np.linalg.det(R) - 1.0))
    )


def left_jacobian_inverse(omega: np.ndarray) -> np.ndarray:
    """Inverse of the left Jacobian, Jl⁻¹(ω) = Jr⁻¹(-ω)."""
    return right_jacobian_inverse(-_as_vector3(omega, "omega"))


class Rot3:
    """
    Immutable 3D rotation (element of SO(3)).

    Attributes are not exposed directly; use matrix(). The stored matrix is
    read-only so that instances can be shared freely.

    Raises:
        ValueError: If R is not 3x3, or is not orthonormal with determinant
            +1 to within 1e-6.

    Example:
        >>> R = Rot3.from_euler(0.1, 0.2, 0.3)
        >>> w = Rot3.Logmap(R)
        >>> Rot3.Expmap(w).equals(R)
        True
    """

    __slots__ = ("_R",)

    def __init__(self, R: Union[np.ndarray, None] = None) -> None:
        if R is None:
            R = np.eye(3)
        R = np.array(R, dtype=np.float64)
        if R.shape != (3, 3):
            raise ValueError(f"R must have shape (3, 3), got {R.shape}")
        error = orthonormality_error(R)
        if not error <= _ROTATION_TOL:
            raise ValueError(
                f"R must be a rotation matrix (orthonormal, det +1), "
                f"error {error:.3e}"
            )
        R.setflags(write=False)
        self._R = R

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def identity(cls) -> "Rot3":
        return cls(np.eye(3))

    @classmethod
    def from_euler(cls, roll: float, pitch: float, yaw: float) -> "Rot3":
        """Rotation Rz(yaw) Ry(pitch) Rx(roll)."""
        return cls(euler_to_rotation_matrix(roll, pitch, yaw))

    @classmethod
    def from_quaternion(cls, q: np.ndarray) -> "Rot3":
        """Rotation from a scalar-first quaternion [qw, qx, qy, qz]."""
        return cls(quat_to_rotation_matrix(q))

    @classmethod
    def Expmap(cls, omega: np.ndarray, return_jacobian: bool = False):
        """
        Exponential map from a rotation vector to SO(3).

        Args:
            omega: Rotation vector (axis * angle), shape (3,).
            return_jacobian: Also return Jr(ω), the derivative of the
                             result with respect to omega.

        Returns:
            Rot3, or (Rot3, 3x3 Jacobian) if return_jacobian is True.
        """
        omega = _as_vector3(omega, "omega")
        R = cls(Rotation.from_rotvec(omega).as_matrix())
        if return_jacobian:
            return R, right_jacobian(omega)
        return R

    @staticmethod
    def Logmap(R: "Rot3", return_jacobian: bool = False):
        """
        Logarithm map from SO(3) to a rotation vector.

        Args:
            R: Rotation.
            return_jacobian: Also return Jr⁻¹(Log R).

        Returns:
            Rotation vector of shape (3,), optionally with its 3x3 Jacobian.
        """
        omega = Rotation.from_matrix(R.matrix()).as_rotvec()
        if return_jacobian:
            return omega, right_jacobian_inverse(omega)
        return omega

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def matrix(self) -> np.ndarray:
        return self._R

    def transpose(self) -> np.ndarray:
        return self._R.T

    def rpy(self) -> np.ndarray:
        """Euler angles [roll, pitch, yaw] (ZYX)."""
        return rotation_matrix_to_euler(self._R)

    def quaternion(self) -> np.ndarray:
        """Scalar-first unit quaternion [qw, qx, qy, qz]."""
        return rotation_matrix_to_quat(self._R)

    @staticmethod
    def dim() -> int:
        return 3

    # ------------------------------------------------------------------
    # Group operations
    # ------------------------------------------------------------------

    def compose(self, other: "Rot3", return_jacobians: bool = False):
        """Group product self * other; Jacobians (otherᵀ, I)."""
        result = Rot3(self._R @ other._R)
        if return_jacobians:
            return result, other.transpose().copy(), np.eye(3)
        return result

    def inverse(self) -> "Rot3":
        return Rot3(self._R.T)

    def between(self, other: "Rot3", return_jacobians: bool = False):
        """Relative rotation selfᵀ * other; Jacobians (-resultᵀ, I)."""
        result = Rot3(self._R.T @ other._R)
        if return_jacobians:
            return result, -result.transpose(), np.eye(3)
        return result

    def rotate(self, p: np.ndarray, return_jacobians: bool = False):
        """
        Rotate a vector from body to world frame: R p.

        Jacobians are with respect to the rotation (-R [p]×) and the
        vector (R).
        """
        p = _as_vector3(p, "p")
        q = self._R @ p
        if return_jacobians:
            return q, -self._R @ skew(p), self._R.copy()
        return q

    def unrotate(self, p: np.ndarray, return_jacobians: bool = False):
        """
        Rotate a vector from world to body frame: Rᵀ p.

        Jacobians are with respect to the rotation ([Rᵀp]×) and the
        vector (Rᵀ).
        """
        p = _as_vector3(p, "p")
        q = self._R.T @ p
        if return_jacobians:
            return q, skew(q), self._R.T.copy()
        return q

    def __mul__(self, other):
        if isinstance(other, Rot3):
            return self.compose(other)
        return self.rotate(other)

    # ------------------------------------------------------------------
    # Manifold
    # ------------------------------------------------------------------

    def retract(self, omega: np.ndarray) -> "Rot3":
        return self.compose(Rot3.Expmap(omega))

    def local_coordinates(self, other: "Rot3") -> np.ndarray:
        return Rot3.Logmap(self.between(other))

    # ------------------------------------------------------------------
    # Testable
    # ------------------------------------------------------------------

    def equals(self, other: "Rot3", tol: float = 1e-9) -> bool:
        return bool(np.allclose(self._R, other._R, rtol=0.0, atol=tol))

    def __repr__(self) -> str:
        return f"Rot3(rpy={np.array2string(self.rpy(), precision=6)})"


RotationLike = Union[Rot3, np.ndarray]


def as_rot3(R: RotationLike) -> Rot3:
    """Accept either a Rot3 or a 3x3 array."""
    if isinstance(R, Rot3):
        return R
    return Rot3(R)

