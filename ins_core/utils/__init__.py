"""
Utility functions for verifying navigation algorithms.
"""

from .numerical import numerical_derivative

__all__ = [
    'numerical_derivative',
]
