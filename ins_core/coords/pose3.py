"""3D pose (rotation + translation) value type.

Pose3 is used to hand a combined attitude/position to
NavState.from_pose_velocity and back via NavState.pose(). Its tangent vector
is ordered (ω, ρ) and its retraction acts component-wise in the body frame:

    (R, t) ⊕ (ω, ρ) = (R Exp(ω), t + R ρ)

which agrees to first order with the SE(3) exponential, so Jacobians
computed in either chart coincide.
"""

import numpy as np

from ins_core.coords.so3 import Rot3, RotationLike, as_rot3


class Pose3:
    """
    Immutable rigid-body pose (world-from-body).

    Example:
        >>> pose = Pose3(Rot3.from_euler(0.1, 0.2, 0.3), np.array([1.0, 2.0, 3.0]))
        >>> pose.translation()
        array([1., 2., 3.])
    """

    __slots__ = ("_R", "_t")

    def __init__(self, R: RotationLike, t: np.ndarray) -> None:
        t = np.array(t, dtype=np.float64)
        if t.shape != (3,):
            raise ValueError(f"t must have shape (3,), got {t.shape}")
        t.setflags(write=False)
        self._R = as_rot3(R)
        self._t = t

    @classmethod
    def identity(cls) -> "Pose3":
        return cls(Rot3.identity(), np.zeros(3))

    def rotation(self) -> Rot3:
        return self._R

    def translation(self) -> np.ndarray:
        return self._t

    def matrix(self) -> np.ndarray:
        """4x4 homogeneous transform."""
        T = np.eye(4)
        T[:3, :3] = self._R.matrix()
        T[:3, 3] = self._t
        return T

    @staticmethod
    def dim() -> int:
        return 6

    def compose(self, other: "Pose3") -> "Pose3":
        return Pose3(self._R * other._R, self._t + self._R.rotate(other._t))

    def inverse(self) -> "Pose3":
        R_inv = self._R.inverse()
        return Pose3(R_inv, -R_inv.rotate(self._t))

    def __mul__(self, other: "Pose3") -> "Pose3":
        return self.compose(other)

    def retract(self, xi: np.ndarray) -> "Pose3":
        xi = np.asarray(xi, dtype=np.float64)
        if xi.shape != (6,):
            raise ValueError(f"xi must have shape (6,), got {xi.shape}")
        return Pose3(self._R.retract(xi[:3]), self._t + self._R.rotate(xi[3:]))

    def local_coordinates(self, other: "Pose3") -> np.ndarray:
        return np.concatenate(
            [
                self._R.local_coordinates(other._R),
                self._R.unrotate(other._t - self._t),
            ]
        )

    def equals(self, other: "Pose3", tol: float = 1e-9) -> bool:
        return self._R.equals(other._R, tol) and bool(
            np.allclose(self._t, other._t, rtol=0.0, atol=tol)
        )

    def __repr__(self) -> str:
        return f"Pose3(R={self._R!r}, t={np.array2string(self._t, precision=6)})"
