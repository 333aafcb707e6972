"""
Unit tests for ins_core/coords/so3.py (Rot3, skew, SO(3) Jacobians).

Tests cover:
    - skew-symmetric matrix construction
    - Right/left Jacobians and the inverse right Jacobian
    - Expmap / Logmap round trip and small-angle behavior
    - Group operations and the rotate/unrotate action
    - Analytic Jacobians against central differences

Run with: pytest tests/core/coords/test_so3.py -v
"""

import unittest

import numpy as np
import pytest

from ins_core.coords.so3 import (
    Rot3,
    as_rot3,
    left_jacobian,
    left_jacobian_inverse,
    orthonormality_error,
    right_jacobian,
    right_jacobian_inverse,
    skew,
)
from ins_core.utils.numerical import numerical_derivative


def series_right_jacobian(omega: np.ndarray, terms: int = 30) -> np.ndarray:
    """Reference Jr(ω) = Σ (-[ω]×)^k / (k+1)! summed term by term."""
    W = skew(omega)
    term = np.eye(3)
    J = np.eye(3)
    for k in range(1, terms):
        term = -term @ W / (k + 1)
        J = J + term
    return J


R1 = Rot3.from_euler(0.1, 0.2, 0.3)
R2 = Rot3.from_euler(-0.4, 0.6, 1.2)


class TestSkew(unittest.TestCase):
    """Test suite for the cross-product matrix."""

    def test_skew_matches_cross_product(self) -> None:
        """Test skew(w) @ x == w × x."""
        w = np.array([0.3, -1.2, 2.0])
        x = np.array([1.5, 0.4, -0.7])

        np.testing.assert_allclose(skew(w) @ x, np.cross(w, x), atol=1e-12)

    def test_skew_antisymmetric(self) -> None:
        """Test skew(w)ᵀ = -skew(w)."""
        W = skew(np.array([1.0, 2.0, 3.0]))

        np.testing.assert_array_equal(W.T, -W)

    def test_skew_invalid_shape(self) -> None:
        """Test that a non-3-vector raises ValueError."""
        with pytest.raises(ValueError):
            skew(np.zeros(4))


class TestSO3Jacobians(unittest.TestCase):
    """Test suite for the closed-form SO(3) Jacobians."""

    def test_right_jacobian_at_zero(self) -> None:
        """Test Jr(0) = I."""
        np.testing.assert_allclose(right_jacobian(np.zeros(3)), np.eye(3))

    def test_right_jacobian_inverse(self) -> None:
        """Test Jr(ω) Jr⁻¹(ω) = I for small and large angles."""
        for omega in (
            np.array([1e-7, -2e-7, 3e-7]),
            np.array([0.1, 0.2, 0.3]),
            np.array([1.0, -1.5, 0.5]),
        ):
            np.testing.assert_allclose(
                right_jacobian(omega) @ right_jacobian_inverse(omega),
                np.eye(3),
                atol=1e-12,
            )

    def test_left_jacobian_relation(self) -> None:
        """Test Jl(ω) = Exp(ω) Jr(ω)."""
        omega = np.array([0.4, -0.2, 0.9])
        R = Rot3.Expmap(omega).matrix()

        np.testing.assert_allclose(
            left_jacobian(omega), R @ right_jacobian(omega), atol=1e-12
        )

    def test_matches_series_across_small_angle_switch(self) -> None:
        """Test closed forms and Taylor branches against the power series."""
        axis = np.array([0.6, -0.8, 0.0])
        for theta in (3e-5, 1.0001e-5, 0.99e-2, 1.01e-2, 0.3):
            omega = theta * axis
            Jr = series_right_jacobian(omega)

            np.testing.assert_allclose(right_jacobian(omega), Jr, atol=1e-13)
            np.testing.assert_allclose(
                right_jacobian_inverse(omega), np.linalg.inv(Jr), atol=1e-13
            )

    def test_left_jacobian_inverse(self) -> None:
        omega = np.array([0.4, -0.2, 0.9])

        np.testing.assert_allclose(
            left_jacobian(omega) @ left_jacobian_inverse(omega), np.eye(3), atol=1e-12
        )


class TestRot3ExpLog(unittest.TestCase):
    """Test suite for the SO(3) exponential and logarithm."""

    def test_expmap_logmap_round_trip(self) -> None:
        """Test Logmap(Expmap(ω)) = ω."""
        omega = np.array([0.3, -0.7, 1.1])

        np.testing.assert_allclose(Rot3.Logmap(Rot3.Expmap(omega)), omega, atol=1e-12)

    def test_expmap_zero_is_identity(self) -> None:
        """Test Expmap(0) = I."""
        self.assertTrue(Rot3.Expmap(np.zeros(3)).equals(Rot3.identity()))

    def test_expmap_about_z(self) -> None:
        """Test Expmap([0, 0, θ]) equals a yaw rotation."""
        R = Rot3.Expmap(np.array([0.0, 0.0, 0.5]))

        self.assertTrue(R.equals(Rot3.from_euler(0.0, 0.0, 0.5)))

    def test_expmap_jacobian(self) -> None:
        """Test Expmap Jacobian against central differences."""
        omega = np.array([0.3, -0.7, 1.1])
        _, H = Rot3.Expmap(omega, return_jacobian=True)

        H_num = numerical_derivative(Rot3.Expmap, omega)
        np.testing.assert_allclose(H, H_num, atol=1e-8)

    def test_logmap_jacobian(self) -> None:
        """Test Logmap Jacobian against central differences."""
        _, H = Rot3.Logmap(R2, return_jacobian=True)

        H_num = numerical_derivative(Rot3.Logmap, R2)
        np.testing.assert_allclose(H, H_num, atol=1e-8)


class TestRot3Group(unittest.TestCase):
    """Test suite for composition, inverse and the group action."""

    def test_compose_and_inverse(self) -> None:
        """Test R * R⁻¹ = I."""
        self.assertTrue((R1 * R1.inverse()).equals(Rot3.identity()))

    def test_between(self) -> None:
        """Test R1 * between(R1, R2) = R2."""
        self.assertTrue((R1 * R1.between(R2)).equals(R2))

    def test_mul_rotates_vectors(self) -> None:
        """Test that multiplying by an array rotates it."""
        p = np.array([1.0, 2.0, 3.0])

        np.testing.assert_allclose(R1 * p, R1.matrix() @ p)

    def test_compose_jacobians(self) -> None:
        """Test compose Jacobians against central differences."""
        _, H1, H2 = R1.compose(R2, return_jacobians=True)

        np.testing.assert_allclose(
            H1, numerical_derivative(lambda a, b: a.compose(b), R1, R2), atol=1e-8
        )
        np.testing.assert_allclose(
            H2,
            numerical_derivative(lambda a, b: a.compose(b), R1, R2, wrt=1),
            atol=1e-8,
        )

    def test_between_jacobians(self) -> None:
        """Test between Jacobians against central differences."""
        _, H1, H2 = R1.between(R2, return_jacobians=True)

        np.testing.assert_allclose(
            H1, numerical_derivative(lambda a, b: a.between(b), R1, R2), atol=1e-8
        )
        np.testing.assert_allclose(
            H2,
            numerical_derivative(lambda a, b: a.between(b), R1, R2, wrt=1),
            atol=1e-8,
        )

    def test_rotate_unrotate_jacobians(self) -> None:
        """Test rotate and unrotate Jacobians against central differences."""
        p = np.array([0.5, -1.0, 2.0])

        for method in ("rotate", "unrotate"):
            _, H_R, H_p = getattr(R1, method)(p, return_jacobians=True)

            def f(R, x, method=method):
                return getattr(R, method)(x)

            np.testing.assert_allclose(
                H_R, numerical_derivative(f, R1, p), atol=1e-8
            )
            np.testing.assert_allclose(
                H_p, numerical_derivative(f, R1, p, wrt=1), atol=1e-8
            )

    def test_unrotate_inverts_rotate(self) -> None:
        """Test Rᵀ (R p) = p."""
        p = np.array([0.5, -1.0, 2.0])

        np.testing.assert_allclose(R1.unrotate(R1.rotate(p)), p, atol=1e-12)


class TestRot3Manifold(unittest.TestCase):
    """Test suite for retract / local_coordinates and conversions."""

    def test_retract_local_round_trip(self) -> None:
        """Test local_coordinates(retract(ω)) = ω."""
        omega = np.array([0.05, -0.1, 0.2])

        np.testing.assert_allclose(
            R1.local_coordinates(R1.retract(omega)), omega, atol=1e-12
        )

    def test_quaternion_and_rpy(self) -> None:
        """Test quaternion and Euler accessors reproduce the rotation."""
        self.assertTrue(Rot3.from_quaternion(R2.quaternion()).equals(R2))
        np.testing.assert_allclose(R2.rpy(), [-0.4, 0.6, 1.2], atol=1e-12)

    def test_matrix_is_read_only(self) -> None:
        """Test that the stored matrix cannot be modified in place."""
        with pytest.raises(ValueError):
            R1.matrix()[0, 0] = 2.0

    def test_invalid_matrix_shape(self) -> None:
        """Test that a non-3x3 matrix raises ValueError."""
        with pytest.raises(ValueError):
            Rot3(np.eye(4))

    def test_rejects_non_rotation(self) -> None:
        """Test scaled, reflected and non-finite matrices raise ValueError."""
        for M in (2.0 * np.eye(3), np.diag([1.0, 1.0, -1.0]), np.full((3, 3), np.nan)):
            with pytest.raises(ValueError):
                Rot3(M)

    def test_accepts_rounding_noise(self) -> None:
        M = R1.matrix() + 1e-9 * np.ones((3, 3))

        self.assertLess(orthonormality_error(M), 1e-6)
        self.assertTrue(Rot3(M).equals(R1, tol=1e-8))

    def test_as_rot3(self) -> None:
        """Test as_rot3 passes Rot3 through and wraps arrays."""
        self.assertIs(as_rot3(R1), R1)
        self.assertTrue(as_rot3(R1.matrix()).equals(R1))


if __name__ == "__main__":
    unittest.main()
