"""Unit tests for the Pose3 value type."""

import unittest

import numpy as np
import pytest

from ins_core.coords.pose3 import Pose3
from ins_core.coords.so3 import Rot3


class TestPose3(unittest.TestCase):
    """Test cases for pose composition and the component-wise retraction."""

    def setUp(self) -> None:
        self.pose = Pose3(Rot3.from_euler(0.1, 0.2, 0.3), np.array([1.0, 2.0, 3.0]))
        self.other = Pose3(Rot3.from_euler(-0.2, 0.1, 0.5), np.array([-1.0, 0.5, 2.0]))

    def test_matrix(self) -> None:
        """Test the 4x4 homogeneous representation."""
        T = self.pose.matrix()

        np.testing.assert_allclose(T[:3, :3], self.pose.rotation().matrix())
        np.testing.assert_allclose(T[:3, 3], [1.0, 2.0, 3.0])
        np.testing.assert_allclose(T[3], [0.0, 0.0, 0.0, 1.0])

    def test_compose_matches_matrix_product(self) -> None:
        """Test compose agrees with 4x4 matrix multiplication."""
        composed = self.pose * self.other

        np.testing.assert_allclose(
            composed.matrix(), self.pose.matrix() @ self.other.matrix(), atol=1e-12
        )

    def test_inverse(self) -> None:
        """Test pose * pose⁻¹ = identity."""
        self.assertTrue((self.pose * self.pose.inverse()).equals(Pose3.identity()))

    def test_retract_local_round_trip(self) -> None:
        """Test local_coordinates inverts retract."""
        xi = np.array([0.1, -0.1, 0.05, 0.3, -0.2, 0.4])

        np.testing.assert_allclose(
            self.pose.local_coordinates(self.pose.retract(xi)), xi, atol=1e-12
        )

    def test_retract_translates_in_body_frame(self) -> None:
        """Test a pure translation increment moves along the body axes."""
        moved = self.pose.retract(np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0]))

        np.testing.assert_allclose(
            moved.translation(),
            self.pose.translation() + self.pose.rotation().matrix()[:, 0],
            atol=1e-12,
        )

    def test_invalid_inputs(self) -> None:
        """Test shape validation."""
        with pytest.raises(ValueError):
            Pose3(Rot3.identity(), np.zeros(2))
        with pytest.raises(ValueError):
            self.pose.retract(np.zeros(9))


if __name__ == "__main__":
    unittest.main()
