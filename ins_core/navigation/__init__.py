"""Navigation state manifold and IMU integration.

This module implements the navigation state used by IMU preintegration:
- NavState: attitude, position and velocity as the Lie group SE_2(3)
- update: single-step IMU mechanization with transition Jacobians
- coriolis / correct_pim: gravity and Earth-rotation corrections
- NavigationParams: gravity and Earth-rate configuration (ENU/NED)
"""

from ins_core.navigation.corrections import coriolis, correct_pim
from ins_core.navigation.earth import (
    EARTH_ROTATION_RATE,
    STANDARD_GRAVITY,
    earth_rate_vector,
    gravity_magnitude,
)
from ins_core.navigation.mechanization import update
from ins_core.navigation.nav_state import (
    DIM,
    POS,
    ROT,
    VEL,
    ChartAtOrigin,
    InvalidRepresentationError,
    NavState,
    expmap_derivative,
    logmap_derivative,
)
from ins_core.navigation.params import NavigationParams

__all__ = [
    # State
    "NavState",
    "ChartAtOrigin",
    "InvalidRepresentationError",
    "expmap_derivative",
    "logmap_derivative",
    "ROT",
    "POS",
    "VEL",
    "DIM",
    # Integration
    "update",
    "coriolis",
    "correct_pim",
    # Configuration
    "NavigationParams",
    "EARTH_ROTATION_RATE",
    "STANDARD_GRAVITY",
    "gravity_magnitude",
    "earth_rate_vector",
]
