"""
Navigation state manifold: attitude, position and velocity as one Lie group.

NavState is the composite state (R, p, v) used by IMU preintegration and
factor-graph estimation:
    - R: attitude, rotation from body frame B to world/navigation frame N
    - p: position of the body in N [m]
    - v: velocity of the body in N [m/s]

Group structure (SE_2(3), a semi-direct product, NOT SO(3) x R3 x R3):
    (R1, p1, v1) * (R2, p2, v2) = (R1 R2, p1 + R1 p2, v1 + R1 v2)

which is exactly the product of the 7x7 homogeneous matrices

    [ R  0  p ]
    [ 0  R  v ]
    [ 0  0  1 ]

Tangent vectors are 9-vectors ξ = (ω, ρ, ν) (rotation, position, velocity),
indexed by the ROT, POS and VEL slices of this module. Two distinct families
of maps between tangent space and group are provided:

    Chart (cheap, component-wise):
        ChartAtOrigin.retract(ξ) = (Exp(ω), ρ, ν)
        state.retract(ξ) = state * ChartAtOrigin.retract(ξ)

    Lie group exponential (exact one-parameter subgroups):
        NavState.Expmap(ξ) = (Exp(ω), Jl(ω) ρ, Jl(ω) ν)
        state.expmap(ξ) = state * NavState.Expmap(ξ)

Both agree to first order at the identity, so Jacobians expressed in one
chart are valid in the other. All Jacobians use right perturbations: H is the
derivative of f at x when f(x.retract(δ)) ≈ f(x).retract(H δ).

Every Jacobian is optional: pass return_jacobian(s)=True to receive a tuple
(value, H...) instead of the bare value. Nothing derivative-related is
computed otherwise.
"""

import warnings
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ins_core.coords.pose3 import Pose3
from ins_core.coords.so3 import (
    Rot3,
    RotationLike,
    as_rot3,
    left_jacobian,
    left_jacobian_inverse,
    orthonormality_error,
    right_jacobian,
    right_jacobian_inverse,
    skew,
)

# Tangent-space layout: ξ = (ω, ρ, ν)
ROT = slice(0, 3)
POS = slice(3, 6)
VEL = slice(6, 9)

DIM = 9

# Orthonormality error above which a 7x7 matrix is rejected outright
_MATRIX_REJECT_TOL = 1e-6
# Orthonormality error above which the rotation block is re-projected
_MATRIX_PROJECT_TOL = 1e-9
# Below this squared angle the Q coefficients use their Taylor series
_Q_SMALL_ANGLE_SQ = 1e-4


class InvalidRepresentationError(ValueError):
    """Raised when a matrix is not a valid NavState embedding."""


def _as_vector(x: np.ndarray, size: int, name: str) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {x.shape}")
    return x


def _read_only(x: np.ndarray, name: str) -> np.ndarray:
    x = np.array(x, dtype=np.float64)
    if x.shape != (3,):
        raise ValueError(f"NavState.{name} must have shape (3,), got {x.shape}")
    x.setflags(write=False)
    return x


def _q_left(phi: np.ndarray, rho: np.ndarray) -> np.ndarray:
    """
    Off-diagonal block of the SE(3)/SE_2(3) left Jacobian.

    Q(φ, ρ) = ½[ρ] + (θ - sin θ)/θ³ ([φ][ρ] + [ρ][φ] + [φ][ρ][φ])
              + (θ² + 2cos θ - 2)/(2θ⁴) ([φ]²[ρ] + [ρ][φ]² - 3[φ][ρ][φ])
              + (2θ - 3sin θ + θcos θ)/(2θ⁵) ([φ][ρ][φ]² + [φ]²[ρ][φ])
    """
    P = skew(phi)
    Rh = skew(rho)
    theta_sq = float(phi @ phi)

    if theta_sq < _Q_SMALL_ANGLE_SQ:
        theta_4 = theta_sq * theta_sq
        a = 1.0 / 6.0 - theta_sq / 120.0 + theta_4 / 5040.0
        b = 1.0 / 24.0 - theta_sq / 720.0 + theta_4 / 40320.0
        c = 1.0 / 120.0 - theta_sq / 2520.0 + theta_4 / 120960.0
    else:
        theta = np.sqrt(theta_sq)
        s, co = np.sin(theta), np.cos(theta)
        a = (theta - s) / (theta_sq * theta)
        b = (theta_sq + 2.0 * co - 2.0) / (2.0 * theta_sq * theta_sq)
        c = (2.0 * theta - 3.0 * s + theta * co) / (2.0 * theta_sq * theta_sq * theta)

    PR = P @ Rh
    RP = Rh @ P
    PRP = PR @ P
    PP = P @ P
    return (
        0.5 * Rh
        + a * (PR + RP + PRP)
        + b * (PP @ Rh + RP @ P - 3.0 * PRP)
        + c * (PRP @ P + P @ PRP)
    )


def expmap_derivative(xi: np.ndarray) -> np.ndarray:
    """
    Right Jacobian of the SE_2(3) exponential.

        Expmap(ξ + δ) ≈ Expmap(ξ) * Expmap(J δ)

    Block lower-triangular in the (ω, ρ, ν) layout:
        [ Jr(ω)       0      0    ]
        [ Q(-ω, -ρ)   Jr(ω)  0    ]
        [ Q(-ω, -ν)   0      Jr(ω)]

    Args:
        xi: Tangent vector, shape (9,).

    Returns:
        9x9 Jacobian.
    """
    xi = _as_vector(xi, DIM, "xi")
    omega = xi[ROT]
    Jr = right_jacobian(omega)

    J = np.zeros((DIM, DIM))
    J[ROT, ROT] = Jr
    J[POS, POS] = Jr
    J[VEL, VEL] = Jr
    J[POS, ROT] = _q_left(-omega, -xi[POS])
    J[VEL, ROT] = _q_left(-omega, -xi[VEL])
    return J


def logmap_derivative(xi: np.ndarray) -> np.ndarray:
    """Inverse of expmap_derivative(xi), evaluated in closed form."""
    xi = _as_vector(xi, DIM, "xi")
    omega = xi[ROT]
    Jr_inv = right_jacobian_inverse(omega)

    J = np.zeros((DIM, DIM))
    J[ROT, ROT] = Jr_inv
    J[POS, POS] = Jr_inv
    J[VEL, VEL] = Jr_inv
    J[POS, ROT] = -Jr_inv @ _q_left(-omega, -xi[POS]) @ Jr_inv
    J[VEL, ROT] = -Jr_inv @ _q_left(-omega, -xi[VEL]) @ Jr_inv
    return J


@dataclass(frozen=True, eq=False)
class NavState:
    """
    Navigation state (R, p, v) as an element of SE_2(3).

    Immutable: every operation returns a new NavState and the position and
    velocity arrays are read-only, so instances may be shared between
    threads without coordination.

    Attributes:
        R: Attitude (body to navigation frame). A 3x3 array is accepted and
           converted to Rot3.
        p: Position in navigation frame, shape (3,). Units: m.
        v: Velocity in navigation frame, shape (3,). Units: m/s.

    Example:
        >>> state = NavState(Rot3.from_euler(0.1, 0.2, 0.3),
        ...                  np.array([1.0, 2.0, 3.0]),
        ...                  np.array([0.4, 0.5, 0.6]))
        >>> xi = np.array([0.1, 0.1, 0.1, 0.2, 0.3, 0.4, -0.1, -0.2, -0.3])
        >>> np.allclose(state.local_coordinates(state.retract(xi)), xi)
        True
    """

    R: RotationLike = field(default_factory=Rot3.identity)
    p: np.ndarray = field(default_factory=lambda: np.zeros(3))
    v: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        object.__setattr__(self, "R", as_rot3(self.R))
        object.__setattr__(self, "p", _read_only(self.p, "p"))
        object.__setattr__(self, "v", _read_only(self.v, "v"))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def identity(cls) -> "NavState":
        return cls(Rot3.identity(), np.zeros(3), np.zeros(3))

    @classmethod
    def create(
        cls,
        R: RotationLike,
        p: np.ndarray,
        v: np.ndarray,
        return_jacobians: bool = False,
    ):
        """
        Construct from components, optionally with Jacobians.

        Returns:
            NavState, or (NavState, H_R, H_p, H_v) with 9x3 Jacobians
            [I;0;0], [0;Rᵀ;0] and [0;0;Rᵀ].
        """
        state = cls(R, p, v)
        if not return_jacobians:
            return state
        Rt = state.R.transpose()
        H_R = np.zeros((DIM, 3))
        H_R[ROT] = np.eye(3)
        H_p = np.zeros((DIM, 3))
        H_p[POS] = Rt
        H_v = np.zeros((DIM, 3))
        H_v[VEL] = Rt
        return state, H_R, H_p, H_v

    @classmethod
    def from_pose_velocity(
        cls,
        pose: Pose3,
        velocity: np.ndarray,
        return_jacobians: bool = False,
    ):
        """
        Build a NavState from a pose and a navigation-frame velocity.

        Args:
            pose: Attitude and position.
            velocity: Velocity in navigation frame, shape (3,).
            return_jacobians: Also return the 9x6 Jacobian with respect to
                              the pose and the 9x3 Jacobian with respect to
                              the velocity.

        Returns:
            NavState, or (NavState, H_pose, H_velocity).
        """
        state = cls(pose.rotation(), pose.translation(), velocity)
        if not return_jacobians:
            return state
        H_pose = np.zeros((DIM, 6))
        H_pose[ROT, 0:3] = np.eye(3)
        H_pose[POS, 3:6] = np.eye(3)
        H_velocity = np.zeros((DIM, 3))
        H_velocity[VEL] = state.R.transpose()
        return state, H_pose, H_velocity

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "NavState":
        """
        Inverse of matrix(): recover (R, p, v) from the 7x7 representation.

        A rotation block that is orthonormal to within 1e-9 is used as-is,
        so matrix() -> from_matrix() is an exact round trip. Blocks off by
        up to 1e-6 are projected onto SO(3) with a RuntimeWarning.

        Raises:
            InvalidRepresentationError: If T is not 7x7, its structural
                blocks are not zero, the two rotation blocks differ, the
                last row is not [0 ... 0 1], or the rotation block is not a
                proper rotation.
        """
        T = np.asarray(T, dtype=np.float64)
        if T.shape != (7, 7):
            raise InvalidRepresentationError(
                f"NavState matrix must have shape (7, 7), got {T.shape}"
            )

        R1 = T[0:3, 0:3]
        R2 = T[3:6, 3:6]
        off_diagonal = max(np.abs(T[0:3, 3:6]).max(), np.abs(T[3:6, 0:3]).max())
        if off_diagonal > _MATRIX_REJECT_TOL:
            raise InvalidRepresentationError(
                f"Off-diagonal rotation blocks must be zero, got max |x| = "
                f"{off_diagonal:.3e}"
            )
        if not np.allclose(R1, R2, rtol=0.0, atol=_MATRIX_REJECT_TOL):
            raise InvalidRepresentationError(
                "The two rotation blocks of a NavState matrix must be equal"
            )
        last_row = np.zeros(7)
        last_row[6] = 1.0
        if not np.allclose(T[6], last_row, rtol=0.0, atol=_MATRIX_REJECT_TOL):
            raise InvalidRepresentationError(
                f"Last row must be [0, 0, 0, 0, 0, 0, 1], got {T[6]}"
            )

        error = orthonormality_error(R1)
        if error > _MATRIX_REJECT_TOL:
            raise InvalidRepresentationError(
                f"Rotation block is not in SO(3) (error {error:.3e})"
            )
        if error > _MATRIX_PROJECT_TOL:
            warnings.warn(
                f"NavState matrix rotation block deviates from SO(3) by "
                f"{error:.3e}; re-orthonormalizing.",
                RuntimeWarning,
            )
            U, _, Vt = np.linalg.svd(R1)
            R1 = U @ Vt

        return cls(Rot3(R1), T[0:3, 6], T[3:6, 6])

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def attitude(self, return_jacobian: bool = False):
        """Attitude R; the 3x9 Jacobian is [I, 0, 0]."""
        if return_jacobian:
            H = np.zeros((3, DIM))
            H[:, ROT] = np.eye(3)
            return self.R, H
        return self.R

    def position(self, return_jacobian: bool = False):
        """Position p; the 3x9 Jacobian is [0, R, 0]."""
        if return_jacobian:
            H = np.zeros((3, DIM))
            H[:, POS] = self.R.matrix()
            return self.p, H
        return self.p

    def velocity(self, return_jacobian: bool = False):
        """Navigation-frame velocity v; the 3x9 Jacobian is [0, 0, R]."""
        if return_jacobian:
            H = np.zeros((3, DIM))
            H[:, VEL] = self.R.matrix()
            return self.v, H
        return self.v

    def body_velocity(self, return_jacobian: bool = False):
        """
        Velocity expressed in the body frame, b_v = Rᵀ v.

        The 3x9 Jacobian is [[b_v]×, 0, I]: a body-frame rotation
        perturbation rotates b_v, a velocity perturbation adds directly.
        """
        if not return_jacobian:
            return self.R.unrotate(self.v)
        b_v, D_bv_R, _ = self.R.unrotate(self.v, return_jacobians=True)
        H = np.zeros((3, DIM))
        H[:, ROT] = D_bv_R
        H[:, VEL] = np.eye(3)
        return b_v, H

    def pose(self) -> Pose3:
        return Pose3(self.R, self.p)

    def quaternion(self) -> np.ndarray:
        """Attitude as a scalar-first unit quaternion [qw, qx, qy, qz]."""
        return self.R.quaternion()

    def matrix(self) -> np.ndarray:
        """7x7 homogeneous representation [[R, 0, p], [0, R, v], [0, 0, 1]]."""
        T = np.zeros((7, 7))
        R = self.R.matrix()
        T[0:3, 0:3] = R
        T[3:6, 3:6] = R
        T[0:3, 6] = self.p
        T[3:6, 6] = self.v
        T[6, 6] = 1.0
        return T

    @staticmethod
    def dim() -> int:
        return DIM

    # ------------------------------------------------------------------
    # Group operations
    # ------------------------------------------------------------------

    def compose(self, other: "NavState", return_jacobians: bool = False):
        """
        Group product self * other.

        Jacobians: H1 = Ad(other⁻¹), H2 = I.
        """
        R = self.R.matrix()
        result = NavState(
            self.R * other.R, self.p + R @ other.p, self.v + R @ other.v
        )
        if return_jacobians:
            return result, other.inverse().adjoint_map(), np.eye(DIM)
        return result

    def __mul__(self, other: "NavState") -> "NavState":
        return self.compose(other)

    def inverse(self) -> "NavState":
        R_inv = self.R.inverse()
        return NavState(R_inv, -R_inv.rotate(self.p), -R_inv.rotate(self.v))

    def between(self, other: "NavState", return_jacobians: bool = False):
        """
        Relative state self⁻¹ * other.

        Jacobians: H1 = -Ad(result⁻¹), H2 = I.
        """
        result = self.inverse().compose(other)
        if return_jacobians:
            return result, -result.inverse().adjoint_map(), np.eye(DIM)
        return result

    def adjoint_map(self) -> np.ndarray:
        """
        Adjoint representation Ad(x), with x Exp(ξ) x⁻¹ = Exp(Ad(x) ξ).

            [ R      0  0 ]
            [ [p]R   R  0 ]
            [ [v]R   0  R ]
        """
        R = self.R.matrix()
        Ad = np.zeros((DIM, DIM))
        Ad[ROT, ROT] = R
        Ad[POS, POS] = R
        Ad[VEL, VEL] = R
        Ad[POS, ROT] = skew(self.p) @ R
        Ad[VEL, ROT] = skew(self.v) @ R
        return Ad

    # ------------------------------------------------------------------
    # Manifold (chart-based retraction)
    # ------------------------------------------------------------------

    def retract(self, xi: np.ndarray, return_jacobians: bool = False):
        """
        Move along the tangent vector xi: self * ChartAtOrigin.retract(xi).

        Args:
            xi: Tangent vector (ω, ρ, ν), shape (9,).
            return_jacobians: Also return H1 (w.r.t. self) and H2
                              (w.r.t. xi), both 9x9.

        Returns:
            NavState, or (NavState, H1, H2).

        Notes:
            - H1 = Ad(δ⁻¹) with δ = ChartAtOrigin.retract(xi).
            - H2 is the chart Jacobian diag(Jr(ω), δRᵀ, δRᵀ).
        """
        xi = _as_vector(xi, DIM, "xi")
        if not return_jacobians:
            return self.compose(ChartAtOrigin.retract(xi))
        delta, H_chart = ChartAtOrigin.retract(xi, return_jacobian=True)
        result = self.compose(delta)
        return result, delta.inverse().adjoint_map(), H_chart

    def local_coordinates(self, other: "NavState", return_jacobians: bool = False):
        """
        Tangent vector xi such that self.retract(xi) == other.

        xi = (Log(Rᵀ R_o), Rᵀ(p_o - p), Rᵀ(v_o - v)).

        Returns:
            Array of shape (9,), or (xi, H1, H2) with 9x9 Jacobians with
            respect to self and other.
        """
        if not return_jacobians:
            dR = self.R.between(other.R)
            return np.concatenate(
                [
                    Rot3.Logmap(dR),
                    self.R.unrotate(other.p - self.p),
                    self.R.unrotate(other.v - self.v),
                ]
            )

        dR, D_dR_R, _ = self.R.between(other.R, return_jacobians=True)
        dp, D_dp_R, _ = self.R.unrotate(other.p - self.p, return_jacobians=True)
        dv, D_dv_R, _ = self.R.unrotate(other.v - self.v, return_jacobians=True)
        omega, D_xi_dR = Rot3.Logmap(dR, return_jacobian=True)

        H1 = np.zeros((DIM, DIM))
        H1[ROT, ROT] = D_xi_dR @ D_dR_R
        H1[POS, ROT] = D_dp_R
        H1[POS, POS] = -np.eye(3)
        H1[VEL, ROT] = D_dv_R
        H1[VEL, VEL] = -np.eye(3)

        dR_matrix = dR.matrix()
        H2 = np.zeros((DIM, DIM))
        H2[ROT, ROT] = D_xi_dR
        H2[POS, POS] = dR_matrix
        H2[VEL, VEL] = dR_matrix

        return np.concatenate([omega, dp, dv]), H1, H2

    # ------------------------------------------------------------------
    # Lie group exponential
    # ------------------------------------------------------------------

    @classmethod
    def Expmap(cls, xi: np.ndarray, return_jacobian: bool = False):
        """
        Exact SE_2(3) exponential.

        The rotation block is Exp(ω); position and velocity are the screw
        motions Jl(ω) ρ and Jl(ω) ν.

        Args:
            xi: Tangent vector (ω, ρ, ν), shape (9,).
            return_jacobian: Also return the 9x9 right Jacobian.

        Returns:
            NavState, or (NavState, H).
        """
        xi = _as_vector(xi, DIM, "xi")
        omega = xi[ROT]
        R = Rot3.Expmap(omega)
        Jl = left_jacobian(omega)
        state = cls(R, Jl @ xi[POS], Jl @ xi[VEL])
        if return_jacobian:
            return state, expmap_derivative(xi)
        return state

    @staticmethod
    def Logmap(state: "NavState", return_jacobian: bool = False):
        """
        Exact SE_2(3) logarithm, inverse of Expmap.

        Returns:
            Tangent vector of shape (9,), or (xi, H) with the 9x9 inverse
            right Jacobian.
        """
        omega = Rot3.Logmap(state.R)
        Jl_inv = left_jacobian_inverse(omega)
        xi = np.concatenate([omega, Jl_inv @ state.p, Jl_inv @ state.v])
        if return_jacobian:
            return xi, logmap_derivative(xi)
        return xi

    def expmap(self, xi: np.ndarray, return_jacobians: bool = False):
        """
        self * Expmap(xi).

        Jacobians: H1 = Ad(Expmap(xi)⁻¹), H2 = right Jacobian at xi.
        """
        if not return_jacobians:
            return self.compose(NavState.Expmap(xi))
        delta, H_exp = NavState.Expmap(xi, return_jacobian=True)
        return self.compose(delta), delta.inverse().adjoint_map(), H_exp

    def logmap(self, other: "NavState", return_jacobians: bool = False):
        """
        Logmap(self⁻¹ * other), the inverse of expmap.

        Returns:
            Tangent vector of shape (9,), or (xi, H1, H2).
        """
        if not return_jacobians:
            return NavState.Logmap(self.between(other))
        b, D_b_self, D_b_other = self.between(other, return_jacobians=True)
        xi, H_log = NavState.Logmap(b, return_jacobian=True)
        return xi, H_log @ D_b_self, H_log @ D_b_other

    # ------------------------------------------------------------------
    # Mechanization and corrections (see mechanization.py, corrections.py)
    # ------------------------------------------------------------------

    def update(
        self,
        b_acceleration: np.ndarray,
        b_omega: np.ndarray,
        dt: float,
        return_jacobians: bool = False,
    ):
        """Single IMU mechanization step; see mechanization.update."""
        from ins_core.navigation.mechanization import update

        return update(self, b_acceleration, b_omega, dt, return_jacobians)

    def coriolis(
        self,
        dt: float,
        omega: np.ndarray,
        use_second_order: bool = False,
        return_jacobian: bool = False,
    ):
        """Coriolis correction in the tangent space; see corrections.coriolis."""
        from ins_core.navigation.corrections import coriolis

        return coriolis(self, dt, omega, use_second_order, return_jacobian)

    def correct_pim(
        self,
        pim: np.ndarray,
        dt: float,
        n_gravity: np.ndarray,
        omega_coriolis: Optional[np.ndarray] = None,
        use_second_order: bool = False,
        return_jacobians: bool = False,
    ):
        """Gravity/Coriolis correction of a PIM; see corrections.correct_pim."""
        from ins_core.navigation.corrections import correct_pim

        return correct_pim(
            self,
            pim,
            dt,
            n_gravity,
            omega_coriolis,
            use_second_order,
            return_jacobians,
        )

    # ------------------------------------------------------------------
    # Testable
    # ------------------------------------------------------------------

    def equals(self, other: "NavState", tol: float = 1e-9) -> bool:
        return (
            self.R.equals(other.R, tol)
            and bool(np.allclose(self.p, other.p, rtol=0.0, atol=tol))
            and bool(np.allclose(self.v, other.v, rtol=0.0, atol=tol))
        )

    def __repr__(self) -> str:
        return (
            f"NavState(R={self.R!r}, "
            f"p={np.array2string(self.p, precision=6)}, "
            f"v={np.array2string(self.v, precision=6)})"
        )


class ChartAtOrigin:
    """
    Component-wise chart of NavState anchored at the identity.

        retract(ξ) = (Exp(ω), ρ, ν)
        local(x)   = (Log(R), p, v)

    retract(0) is exactly the identity and local(identity) exactly zero.
    """

    @staticmethod
    def retract(xi: np.ndarray, return_jacobian: bool = False):
        """
        Map a tangent vector to a NavState.

        Returns:
            NavState, or (NavState, H) with H = diag(Jr(ω), Rᵀ, Rᵀ).
        """
        xi = _as_vector(xi, DIM, "xi")
        if not return_jacobian:
            return NavState(Rot3.Expmap(xi[ROT]), xi[POS], xi[VEL])

        R, D_R_omega = Rot3.Expmap(xi[ROT], return_jacobian=True)
        result = NavState(R, xi[POS], xi[VEL])
        Rt = R.transpose()
        H = np.zeros((DIM, DIM))
        H[ROT, ROT] = D_R_omega
        H[POS, POS] = Rt
        H[VEL, VEL] = Rt
        return result, H

    @staticmethod
    def local(state: NavState, return_jacobian: bool = False):
        """
        Map a NavState to its tangent vector at the identity.

        Returns:
            Array of shape (9,), or (xi, H) with H = diag(Jr⁻¹(ω), R, R).
        """
        if not return_jacobian:
            return np.concatenate([Rot3.Logmap(state.R), state.p, state.v])

        omega, D_omega_R = Rot3.Logmap(state.R, return_jacobian=True)
        R = state.R.matrix()
        H = np.zeros((DIM, DIM))
        H[ROT, ROT] = D_omega_R
        H[POS, POS] = R
        H[VEL, VEL] = R
        return np.concatenate([omega, state.p, state.v]), H
