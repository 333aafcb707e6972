"""
Single-step IMU mechanization on the NavState manifold.

Integrates one bias-corrected IMU sample (specific force a and angular rate
ω, both in body frame B, held constant over dt) into the navigation state by
forming a body-frame tangent increment and retracting:

    ξ_R = ω Δt
    ξ_P = Rᵀv Δt + ½ a Δt²
    ξ_V = a Δt
    x'  = x.retract(ξ)

Written out in the navigation frame this is

    R' = R Exp(ω Δt)
    p' = p + (v + ½ R a Δt) Δt
    v' = v + R a Δt

Gravity is not applied here; for preintegration the caller integrates raw
specific force and corrects the accumulated increment afterwards with
corrections.correct_pim.

The transition Jacobian F (9x9) and the input Jacobians G1 (acceleration,
9x3) and G2 (angular rate, 9x3) are exactly the derivatives of this closed
form, as required for covariance propagation of a preintegrated
measurement:
    Σ' = F Σ Fᵀ + G1 Σ_a G1ᵀ + G2 Σ_ω G2ᵀ
"""

import numpy as np

from ins_core.navigation.nav_state import POS, ROT, VEL, NavState


def _as_input(x: np.ndarray, name: str) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {x.shape}")
    return x


def update(
    state: NavState,
    b_acceleration: np.ndarray,
    b_omega: np.ndarray,
    dt: float,
    return_jacobians: bool = False,
):
    """
    Propagate a NavState by one IMU sample.

    Args:
        state: Current navigation state.
        b_acceleration: Specific force in body frame B (bias-corrected).
                        Shape: (3,). Units: m/s².
        b_omega: Angular rate in body frame B (bias-corrected).
                 Shape: (3,). Units: rad/s.
        dt: Sample interval. Units: s. Must be non-negative; dt = 0 is a no-op.
        return_jacobians: Also return F, G1 and G2.

    Returns:
        New NavState, or (NavState, F, G1, G2) where
            F:  9x9 derivative with respect to the state
            G1: 9x3 derivative with respect to b_acceleration
            G2: 9x3 derivative with respect to b_omega

    Raises:
        ValueError: If inputs have the wrong shape or dt is negative or not finite.

    Example:
        >>> state = NavState.identity()
        >>> new_state = update(state, np.array([0.1, 0.0, 0.0]),
        ...                    np.array([0.0, 0.0, 0.01]), 0.01)
    """
    b_acceleration = _as_input(b_acceleration, "b_acceleration")
    b_omega = _as_input(b_omega, "b_omega")
    if not (np.isfinite(dt) and dt >= 0):
        raise ValueError(f"dt must be non-negative and finite, got {dt}")

    if return_jacobians:
        b_v, D_bv_state = state.body_velocity(return_jacobian=True)
    else:
        b_v = state.body_velocity()

    dt22 = 0.5 * dt * dt
    xi = np.zeros(9)
    xi[ROT] = dt * b_omega
    xi[POS] = dt * b_v + dt22 * b_acceleration
    xi[VEL] = dt * b_acceleration

    if not return_jacobians:
        return state.retract(xi)

    new_state, F, D_new_xi = state.retract(xi, return_jacobians=True)

    # ξ_P depends on the state through the body velocity
    F = F + D_new_xi[:, POS] @ (dt * D_bv_state)

    G1 = D_new_xi[:, POS] * dt22 + D_new_xi[:, VEL] * dt
    G2 = D_new_xi[:, ROT] * dt

    return new_state, F, G1, G2
