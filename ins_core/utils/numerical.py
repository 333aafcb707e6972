"""
Numerical differentiation on manifolds.

Central differences used to check analytic Jacobians. Arguments and results
may be plain numpy arrays or manifold objects exposing retract,
local_coordinates and dim (Rot3, Pose3, NavState), in which case the
perturbation is applied in the tangent space:

    H[:, j] = local(f(x), f(x.retract(+δ e_j))) - local(f(x), f(x.retract(-δ e_j)))
              ------------------------------------------------------------------
                                              2δ
"""

from typing import Any, Callable

import numpy as np


def _tangent_dim(x: Any) -> int:
    if hasattr(x, "retract"):
        return int(x.dim())
    return int(np.asarray(x).size)


def _perturb(x: Any, d: np.ndarray) -> Any:
    if hasattr(x, "retract"):
        return x.retract(d)
    x = np.asarray(x, dtype=np.float64)
    return x + d.reshape(x.shape)


def _difference(y0: Any, y: Any) -> np.ndarray:
    if hasattr(y0, "local_coordinates"):
        return np.asarray(y0.local_coordinates(y), dtype=np.float64)
    return (np.asarray(y, dtype=np.float64) - np.asarray(y0, dtype=np.float64)).ravel()


def numerical_derivative(
    f: Callable[..., Any],
    *args: Any,
    wrt: int = 0,
    delta: float = 1e-5,
) -> np.ndarray:
    """
    Jacobian of f with respect to one of its arguments.

    Args:
        f: Function of *args returning an array or a manifold object.
        *args: Point at which to differentiate.
        wrt: Index into args of the argument to perturb.
        delta: Step size for central differences.

    Returns:
        Jacobian of shape (m, n), with m the output tangent dimension and n
        the tangent dimension of args[wrt].

    Example:
        >>> H = numerical_derivative(lambda x: x.R.rotate([1.0, 0.0, 0.0]),
        ...                          NavState.identity())
        >>> H.shape
        (3, 9)
    """
    if not 0 <= wrt < len(args):
        raise ValueError(f"wrt must index one of {len(args)} arguments, got {wrt}")

    x = args[wrt]
    n = _tangent_dim(x)

    def evaluate(d: np.ndarray) -> Any:
        perturbed = list(args)
        perturbed[wrt] = _perturb(x, d)
        return f(*perturbed)

    y0 = f(*args)
    m = _tangent_dim(y0)

    H = np.zeros((m, n))
    for j in range(n):
        d = np.zeros(n)
        d[j] = delta
        H[:, j] = (_difference(y0, evaluate(d)) - _difference(y0, evaluate(-d))) / (
            2.0 * delta
        )
    return H
