"""
Gravity and Coriolis corrections for preintegrated IMU measurements.

A preintegrated measurement (PIM) is the body-frame tangent increment
accumulated by integrating raw specific force and angular rate over a window
of length Δt, starting from the identity. It ignores gravity and the fact
that the navigation frame rotates with the Earth. correct_pim turns it into
the increment predicted for a given starting state x_i = (R, p, v):

    ξ_R = pim_R
    ξ_P = pim_P + Rᵀ v Δt + ½ Rᵀ g Δt²
    ξ_V = pim_V + Rᵀ g Δt
    (+ coriolis(Δt, ω_ie) when an Earth rotation rate is given)

so that x_j ≈ x_i.retract(ξ).

Coriolis terms (navigation frame, then rotated into the body frame):

    first order:   dR = -ω Δt
                   dP = -(ω × v) Δt²
                   dV = -2 (ω × v) Δt
    second order:  dP -= ½ ω × (ω × p) Δt²     (centrifugal)
                   dV -= ω × (ω × p) Δt

All Jacobians are with respect to the state (right perturbation) and, for
correct_pim, with respect to the raw PIM vector.
"""

from typing import Optional

import numpy as np

from ins_core.coords.so3 import skew
from ins_core.navigation.nav_state import DIM, POS, ROT, VEL, NavState


def _as_vector3(x: np.ndarray, name: str) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {x.shape}")
    return x


def coriolis(
    state: NavState,
    dt: float,
    omega: np.ndarray,
    use_second_order: bool = False,
    return_jacobian: bool = False,
):
    """
    Tangent-space correction for a rotating navigation frame.

    Args:
        state: Navigation state at the start of the interval.
        dt: Interval length. Units: s. Must be non-negative; dt = 0 is a no-op.
        omega: Angular rate of the navigation frame (e.g. Earth rotation)
               expressed in the navigation frame. Shape: (3,). Units: rad/s.
        use_second_order: Include the centrifugal ω × (ω × p) terms.
        return_jacobian: Also return the 9x9 derivative with respect to
                         the state.

    Returns:
        Correction ξ of shape (9,), or (ξ, H).

    Raises:
        ValueError: If omega has the wrong shape or dt is negative or not finite.
    """
    omega = _as_vector3(omega, "omega")
    if not (np.isfinite(dt) and dt >= 0):
        raise ValueError(f"dt must be non-negative and finite, got {dt}")

    R = state.R
    dt2 = dt * dt
    omega_cross_vel = np.cross(omega, state.v)

    n_dR = -dt * omega
    n_dP = -dt2 * omega_cross_vel
    n_dV = -2.0 * dt * omega_cross_vel
    if use_second_order:
        omega_cross2_t = np.cross(omega, np.cross(omega, state.p))
        n_dP = n_dP - 0.5 * dt2 * omega_cross2_t
        n_dV = n_dV - dt * omega_cross2_t

    xi = np.zeros(DIM)
    if not return_jacobian:
        xi[ROT] = R.unrotate(n_dR)
        xi[POS] = R.unrotate(n_dP)
        xi[VEL] = R.unrotate(n_dV)
        return xi

    xi[ROT], D_dR_R, D_body_nav = R.unrotate(n_dR, return_jacobians=True)
    xi[POS], D_dP_R, _ = R.unrotate(n_dP, return_jacobians=True)
    xi[VEL], D_dV_R, _ = R.unrotate(n_dV, return_jacobians=True)

    # Derivatives of ω × v and ω × (ω × p) under v → v + R δν, p → p + R δρ
    Omega = skew(omega)
    D_cross_state = Omega @ R.matrix()

    H = np.zeros((DIM, DIM))
    H[ROT, ROT] = D_dR_R
    H[POS, ROT] = D_dP_R
    H[POS, VEL] = D_body_nav @ (-dt2 * D_cross_state)
    H[VEL, ROT] = D_dV_R
    H[VEL, VEL] = D_body_nav @ (-2.0 * dt * D_cross_state)
    if use_second_order:
        D_cross2_state = Omega @ D_cross_state
        H[POS, POS] -= D_body_nav @ (0.5 * dt2 * D_cross2_state)
        H[VEL, POS] -= D_body_nav @ (dt * D_cross2_state)

    return xi, H


def correct_pim(
    state: NavState,
    pim: np.ndarray,
    dt: float,
    n_gravity: np.ndarray,
    omega_coriolis: Optional[np.ndarray] = None,
    use_second_order: bool = False,
    return_jacobians: bool = False,
):
    """
    Correct a raw preintegrated measurement for gravity and Coriolis.

    Args:
        state: Navigation state x_i at the start of the window.
        pim: Raw preintegrated tangent vector (ω, ρ, ν), shape (9,).
        dt: Window length. Units: s. Must be non-negative; dt = 0 is a no-op.
        n_gravity: Gravity vector in navigation frame, shape (3,).
                   E.g. [0, 0, -9.81] for a Z-up frame.
        omega_coriolis: Navigation-frame rotation rate, shape (3,), or None
                        to skip the Coriolis terms.
        use_second_order: Include second-order Coriolis terms.
        return_jacobians: Also return H1 (9x9, w.r.t. state) and H2
                          (9x9, w.r.t. pim).

    Returns:
        Corrected tangent vector of shape (9,), or (ξ, H1, H2).

    Raises:
        ValueError: If inputs have the wrong shape or dt is negative or not finite.

    Example:
        >>> state = NavState.identity()
        >>> xi = correct_pim(state, np.zeros(9), 0.5, np.array([0.0, 0.0, -9.81]))
        >>> float(xi[8])  # dV_z = g dt
        -4.905
    """
    pim = np.asarray(pim, dtype=np.float64)
    if pim.shape != (DIM,):
        raise ValueError(f"pim must have shape ({DIM},), got {pim.shape}")
    n_gravity = _as_vector3(n_gravity, "n_gravity")
    if not (np.isfinite(dt) and dt >= 0):
        raise ValueError(f"dt must be non-negative and finite, got {dt}")

    R = state.R
    dt22 = 0.5 * dt * dt

    if return_jacobians:
        b_v, D_bv_R, D_bv_nv = R.unrotate(state.v, return_jacobians=True)
        b_g, D_bg_R, _ = R.unrotate(n_gravity, return_jacobians=True)
    else:
        b_v = R.unrotate(state.v)
        b_g = R.unrotate(n_gravity)

    xi = pim.copy()
    xi[POS] += dt * b_v + dt22 * b_g
    xi[VEL] += dt * b_g

    if not return_jacobians:
        if omega_coriolis is not None:
            xi += coriolis(state, dt, omega_coriolis, use_second_order)
        return xi

    if omega_coriolis is not None:
        xi_coriolis, H1 = coriolis(
            state, dt, omega_coriolis, use_second_order, return_jacobian=True
        )
        xi += xi_coriolis
    else:
        H1 = np.zeros((DIM, DIM))

    H1[POS, ROT] += dt * D_bv_R + dt22 * D_bg_R
    H1[POS, VEL] += dt * D_bv_nv @ R.matrix()
    H1[VEL, ROT] += dt * D_bg_R
    H2 = np.eye(DIM)

    return xi, H1, H2
