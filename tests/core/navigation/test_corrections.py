"""
Unit tests for ins_core/navigation/corrections.py (Coriolis and PIM correction).

Tests cover:
    - First- and second-order Coriolis terms against navigation-frame formulas
    - Coriolis Jacobians against central differences
    - Gravity correction of a preintegrated measurement
    - correct_pim with and without Coriolis, and its Jacobians
    - Input validation

Run with: pytest tests/core/navigation/test_corrections.py -v
"""

import unittest

import numpy as np
import pytest

from ins_core.coords.so3 import Rot3
from ins_core.navigation.corrections import coriolis, correct_pim
from ins_core.navigation.nav_state import POS, ROT, VEL, NavState
from ins_core.utils.numerical import numerical_derivative

STATE = NavState(
    Rot3.from_euler(0.1, 0.2, 0.3), np.array([1.0, 2.0, 3.0]), np.array([0.4, 0.5, 0.6])
)
STATE2 = NavState(
    Rot3.from_euler(np.pi / 12.0, np.pi / 6.0, np.pi / 4.0),
    np.array([5.0, 1.0, -50.0]),
    np.array([0.5, 0.0, 0.0]),
)
OMEGA_CORIOLIS = np.array([0.02, 0.03, 0.04])
GRAVITY = np.array([0.0, 0.0, 9.81])
XI = np.array([0.1, 0.1, 0.1, 0.2, 0.3, 0.4, -0.1, -0.2, -0.3])


class TestCoriolis(unittest.TestCase):
    """Test suite for the Coriolis tangent correction."""

    def test_first_order_terms(self) -> None:
        """Test first-order terms rotated into the body frame."""
        dt = 2.0
        Rt = STATE.R.matrix().T
        w_cross_v = np.cross(OMEGA_CORIOLIS, STATE.v)

        xi = coriolis(STATE, dt, OMEGA_CORIOLIS)

        np.testing.assert_allclose(xi[ROT], Rt @ (-dt * OMEGA_CORIOLIS), atol=1e-12)
        np.testing.assert_allclose(xi[POS], Rt @ (-dt * dt * w_cross_v), atol=1e-12)
        np.testing.assert_allclose(xi[VEL], Rt @ (-2.0 * dt * w_cross_v), atol=1e-12)

    def test_second_order_terms(self) -> None:
        """Test the centrifugal terms added by use_second_order."""
        dt = 2.0
        Rt = STATE2.R.matrix().T
        centrifugal = np.cross(OMEGA_CORIOLIS, np.cross(OMEGA_CORIOLIS, STATE2.p))

        first = coriolis(STATE2, dt, OMEGA_CORIOLIS)
        second = coriolis(STATE2, dt, OMEGA_CORIOLIS, use_second_order=True)
        difference = second - first

        np.testing.assert_allclose(difference[ROT], np.zeros(3), atol=1e-12)
        np.testing.assert_allclose(
            difference[POS], Rt @ (-0.5 * dt * dt * centrifugal), atol=1e-12
        )
        np.testing.assert_allclose(
            difference[VEL], Rt @ (-dt * centrifugal), atol=1e-12
        )

    def test_stationary_state(self) -> None:
        """Test a state at rest at the origin only picks up the rotation term."""
        xi = coriolis(NavState.identity(), 1.0, OMEGA_CORIOLIS, use_second_order=True)

        np.testing.assert_allclose(xi[ROT], -OMEGA_CORIOLIS, atol=1e-12)
        np.testing.assert_allclose(xi[POS], np.zeros(3))
        np.testing.assert_allclose(xi[VEL], np.zeros(3))

    def test_jacobians(self) -> None:
        """Test Jacobians against central differences, first and second order."""
        dt = 2.0
        for state in (STATE, STATE2):
            for second_order in (False, True):
                _, H = coriolis(
                    state, dt, OMEGA_CORIOLIS, second_order, return_jacobian=True
                )

                def f(x, second_order=second_order):
                    return coriolis(x, dt, OMEGA_CORIOLIS, second_order)

                np.testing.assert_allclose(
                    H, numerical_derivative(f, state), atol=1e-8
                )

    def test_method_delegates(self) -> None:
        np.testing.assert_allclose(
            STATE.coriolis(2.0, OMEGA_CORIOLIS, True),
            coriolis(STATE, 2.0, OMEGA_CORIOLIS, True),
        )

    def test_validation(self) -> None:
        for dt in (-1.0, np.nan):
            with pytest.raises(ValueError):
                coriolis(STATE, dt, OMEGA_CORIOLIS)
        with pytest.raises(ValueError):
            coriolis(STATE, 1.0, np.zeros(2))

    def test_zero_dt_gives_zero_correction(self) -> None:
        for second_order in (False, True):
            xi, H = coriolis(
                STATE, 0.0, OMEGA_CORIOLIS, second_order, return_jacobian=True
            )

            np.testing.assert_array_equal(xi, np.zeros(9))
            np.testing.assert_array_equal(H, np.zeros((9, 9)))


class TestCorrectPIM(unittest.TestCase):
    """Test suite for gravity/Coriolis correction of a preintegrated measurement."""

    def test_gravity_and_velocity_terms(self) -> None:
        """Test ξ_P += Rᵀv Δt + ½ Rᵀg Δt² and ξ_V += Rᵀg Δt."""
        dt = 0.5
        Rt = STATE.R.matrix().T

        xi = correct_pim(STATE, XI, dt, GRAVITY)

        np.testing.assert_allclose(xi[ROT], XI[ROT])
        np.testing.assert_allclose(
            xi[POS],
            XI[POS] + dt * Rt @ STATE.v + 0.5 * dt * dt * Rt @ GRAVITY,
            atol=1e-12,
        )
        np.testing.assert_allclose(xi[VEL], XI[VEL] + dt * Rt @ GRAVITY, atol=1e-12)

    def test_pim_is_not_modified(self) -> None:
        pim = XI.copy()
        correct_pim(STATE, pim, 0.5, GRAVITY, OMEGA_CORIOLIS)

        np.testing.assert_array_equal(pim, XI)

    def test_corrected_pim_predicts_free_fall(self) -> None:
        """Test retracting a corrected zero PIM reproduces ballistic motion."""
        dt = 0.5
        g = np.array([0.0, 0.0, -9.81])

        predicted = STATE.retract(correct_pim(STATE, np.zeros(9), dt, g))

        self.assertTrue(predicted.R.equals(STATE.R))
        np.testing.assert_allclose(
            predicted.p, STATE.p + STATE.v * dt + 0.5 * g * dt * dt, atol=1e-12
        )
        np.testing.assert_allclose(predicted.v, STATE.v + g * dt, atol=1e-12)

    def test_coriolis_is_added(self) -> None:
        dt = 0.5
        without = correct_pim(STATE, XI, dt, GRAVITY)
        with_coriolis = correct_pim(STATE, XI, dt, GRAVITY, OMEGA_CORIOLIS, True)

        np.testing.assert_allclose(
            with_coriolis - without,
            coriolis(STATE, dt, OMEGA_CORIOLIS, True),
            atol=1e-12,
        )

    def test_jacobians(self) -> None:
        """Test H1 and H2 against central differences."""
        dt = 0.5
        for omega in (None, OMEGA_CORIOLIS):
            for second_order in (False, True):
                _, H1, H2 = correct_pim(
                    STATE, XI, dt, GRAVITY, omega, second_order, return_jacobians=True
                )

                def f(x, pim, omega=omega, second_order=second_order):
                    return correct_pim(x, pim, dt, GRAVITY, omega, second_order)

                np.testing.assert_allclose(
                    H1, numerical_derivative(f, STATE, XI), atol=1e-8
                )
                np.testing.assert_allclose(
                    H2, numerical_derivative(f, STATE, XI, wrt=1), atol=1e-8
                )

    def test_method_delegates(self) -> None:
        np.testing.assert_allclose(
            STATE.correct_pim(XI, 0.5, GRAVITY, OMEGA_CORIOLIS, False),
            correct_pim(STATE, XI, 0.5, GRAVITY, OMEGA_CORIOLIS, False),
        )

    def test_validation(self) -> None:
        with pytest.raises(ValueError):
            correct_pim(STATE, np.zeros(6), 0.5, GRAVITY)
        with pytest.raises(ValueError):
            correct_pim(STATE, XI, 0.5, np.zeros(2))
        with pytest.raises(ValueError):
            correct_pim(STATE, XI, -0.5, GRAVITY)
        with pytest.raises(ValueError):
            correct_pim(STATE, XI, np.inf, GRAVITY)

    def test_zero_dt_returns_pim(self) -> None:
        """Test dt = 0 leaves the preintegrated measurement unchanged."""
        xi, H1, H2 = correct_pim(
            STATE, XI, 0.0, GRAVITY, OMEGA_CORIOLIS, True, return_jacobians=True
        )

        np.testing.assert_array_equal(xi, XI)
        np.testing.assert_array_equal(H1, np.zeros((9, 9)))
        np.testing.assert_array_equal(H2, np.eye(9))


if __name__ == "__main__":
    unittest.main()
