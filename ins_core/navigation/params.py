"""
Configuration of the gravity and Coriolis corrections.

NavigationParams bundles the navigation-frame constants needed to correct a
preintegrated measurement, so that a preintegration accumulator can be set
up once per frame convention instead of threading gravity and Earth-rate
vectors through every call.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional

import numpy as np

from ins_core.navigation.earth import STANDARD_GRAVITY, earth_rate_vector, gravity_magnitude
from ins_core.navigation.nav_state import NavState


def _frozen_vector(x: np.ndarray, name: str) -> np.ndarray:
    x = np.array(x, dtype=np.float64)
    if x.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {x.shape}")
    x.setflags(write=False)
    return x


@dataclass(frozen=True, eq=False)
class NavigationParams:
    """
    Navigation-frame constants for PIM correction.

    Attributes:
        n_gravity: Gravity vector in the navigation frame, shape (3,).
                   ENU: [0, 0, -g] (down is -z). NED: [0, 0, +g].
        omega_coriolis: Rotation rate of the navigation frame, shape (3,),
                        or None to disable Coriolis terms.
        use_second_order_coriolis: Include centrifugal terms.
        frame: Navigation frame convention, 'ENU' or 'NED'.

    Notes:
        - Frozen: parameter sets can be shared between accumulators.
        - __post_init__ checks that gravity points down for the frame.

    Example:
        >>> params = NavigationParams.create_enu()
        >>> params.n_gravity
        array([ 0.  ,  0.  , -9.81])
        >>> params = NavigationParams.at_latitude(np.deg2rad(22.3), frame="NED")
    """

    n_gravity: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, -STANDARD_GRAVITY])
    )
    omega_coriolis: Optional[np.ndarray] = None
    use_second_order_coriolis: bool = False
    frame: Literal["ENU", "NED"] = "ENU"

    def __post_init__(self) -> None:
        if self.frame not in ("ENU", "NED"):
            raise ValueError(f"frame must be 'ENU' or 'NED', got '{self.frame}'")

        n_gravity = _frozen_vector(self.n_gravity, "n_gravity")
        down = -1.0 if self.frame == "ENU" else 1.0
        if n_gravity[2] * down < 0.0:
            raise ValueError(
                f"For {self.frame}, gravity must point along "
                f"{'-z' if down < 0 else '+z'}, got n_gravity={n_gravity}"
            )
        object.__setattr__(self, "n_gravity", n_gravity)

        if self.omega_coriolis is not None:
            object.__setattr__(
                self,
                "omega_coriolis",
                _frozen_vector(self.omega_coriolis, "omega_coriolis"),
            )

    @classmethod
    def create_enu(cls, g: float = STANDARD_GRAVITY) -> "NavigationParams":
        """Z-up frame without Coriolis: n_gravity = [0, 0, -g]."""
        return cls(n_gravity=np.array([0.0, 0.0, -g]), frame="ENU")

    @classmethod
    def create_ned(cls, g: float = STANDARD_GRAVITY) -> "NavigationParams":
        """Z-down frame without Coriolis: n_gravity = [0, 0, +g]."""
        return cls(n_gravity=np.array([0.0, 0.0, g]), frame="NED")

    @classmethod
    def at_latitude(
        cls,
        lat_rad: float,
        frame: Literal["ENU", "NED"] = "ENU",
        use_second_order_coriolis: bool = False,
    ) -> "NavigationParams":
        """
        Local-level frame at a given latitude.

        Uses WGS-84 gravity magnitude and the Earth rotation rate
        expressed in the chosen frame.

        Args:
            lat_rad: Geodetic latitude in radians.
            frame: 'ENU' or 'NED'.
            use_second_order_coriolis: Include centrifugal terms.
        """
        g = gravity_magnitude(lat_rad)
        down = -1.0 if frame == "ENU" else 1.0
        return cls(
            n_gravity=np.array([0.0, 0.0, down * g]),
            omega_coriolis=earth_rate_vector(lat_rad, frame),
            use_second_order_coriolis=use_second_order_coriolis,
            frame=frame,
        )

    def correct_pim(
        self,
        state: NavState,
        pim: np.ndarray,
        dt: float,
        return_jacobians: bool = False,
    ):
        """Apply NavState.correct_pim with these parameters."""
        return state.correct_pim(
            pim,
            dt,
            self.n_gravity,
            self.omega_coriolis,
            self.use_second_order_coriolis,
            return_jacobians,
        )
