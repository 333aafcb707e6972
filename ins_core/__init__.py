"""Core modules for inertial navigation on the NavState manifold.

This package contains the building blocks of an IMU preintegration / factor
graph backend:
- coords: Rotation representations, SO(3) and 3D pose value types
- navigation: NavState (SE_2(3)), IMU mechanization, gravity and Coriolis
  corrections and their configuration
- utils: Numerical differentiation used to verify analytic Jacobians
"""

__version__ = "0.1.0"
