"""
Earth models feeding the gravity and Coriolis corrections.

    - gravity_magnitude: WGS-84 latitude-dependent gravity series
    - earth_rate_vector: Earth rotation rate expressed in a local-level
      navigation frame (ENU or NED) at a given latitude

Both are used by NavigationParams.at_latitude to configure correct_pim for a
local navigation frame attached to the Earth.
"""

from typing import Literal, Optional

import numpy as np

# WGS-84 Earth rotation rate [rad/s]
EARTH_ROTATION_RATE = 7.2921151467e-5

STANDARD_GRAVITY = 9.81


def gravity_magnitude(
    lat_rad: Optional[float] = None,
    default_g: float = STANDARD_GRAVITY,
) -> float:
    """
    Gravity magnitude, optionally latitude dependent.

    With a latitude, evaluates the WGS-84 series

        g(φ) = 9.7803 (1 + 0.0053024 sin²φ - 0.000005 sin²2φ)

    ranging from ≈9.780 m/s² at the equator to ≈9.832 m/s² at the poles.
    Without a latitude, returns default_g.

    Args:
        lat_rad: Geodetic latitude in radians, in [-π/2, π/2], or None.
        default_g: Value returned when lat_rad is None. Units: m/s².

    Returns:
        Gravity magnitude in m/s².

    Raises:
        ValueError: If lat_rad is outside [-π/2, π/2].

    Example:
        >>> round(gravity_magnitude(np.deg2rad(45.0)), 3)
        9.806
    """
    if lat_rad is None:
        return default_g
    if abs(lat_rad) > np.pi / 2.0:
        raise ValueError(f"lat_rad must be in [-pi/2, pi/2], got {lat_rad}")

    sin_lat_sq = np.sin(lat_rad) ** 2
    sin_2lat_sq = np.sin(2.0 * lat_rad) ** 2
    return float(9.7803 * (1.0 + 0.0053024 * sin_lat_sq - 0.000005 * sin_2lat_sq))


def earth_rate_vector(
    lat_rad: float,
    frame: Literal["ENU", "NED"] = "ENU",
) -> np.ndarray:
    """
    Earth rotation rate ω_ie expressed in a local-level frame.

        ENU: Ω [0, cos φ, sin φ]
        NED: Ω [cos φ, 0, -sin φ]

    Args:
        lat_rad: Geodetic latitude in radians.
        frame: Local-level frame, 'ENU' or 'NED'.

    Returns:
        Rotation rate vector, shape (3,). Units: rad/s.

    Raises:
        ValueError: If frame is unknown or lat_rad outside [-π/2, π/2].
    """
    if abs(lat_rad) > np.pi / 2.0:
        raise ValueError(f"lat_rad must be in [-pi/2, pi/2], got {lat_rad}")

    c, s = np.cos(lat_rad), np.sin(lat_rad)
    if frame == "ENU":
        return EARTH_ROTATION_RATE * np.array([0.0, c, s])
    if frame == "NED":
        return EARTH_ROTATION_RATE * np.array([c, 0.0, -s])
    raise ValueError(f"frame must be 'ENU' or 'NED', got '{frame}'")
