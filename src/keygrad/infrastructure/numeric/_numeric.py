"""
Tolerance-based comparison and diagnostic formatting of arrays.
"""

from __future__ import annotations

from typing import Any, Union

import numpy as np

from ..tensor import Tensor

ArrayLike = Union[Tensor, np.ndarray, float]


def _as_numpy(x: Any) -> np.ndarray:
    return x.to_numpy() if isinstance(x, Tensor) else np.asarray(x)


def all_close(
    a: ArrayLike,
    b: ArrayLike,
    atol: float = 1e-5,
    rtol: float = 1e-8,
    equal_nan: bool = False,
) -> bool:
    """
    Elementwise tolerance predicate ``|a - b| <= atol + rtol * |b|``.

    Parameters
    ----------
    a, b : Tensor or array_like
        Values to compare. `b` is the reference.
    atol : float, optional
        Absolute tolerance.
    rtol : float, optional
        Relative tolerance, scaled by ``|b|``.
    equal_nan : bool, optional
        Whether NaNs at the same position compare equal.

    Returns
    -------
    bool
        True if every element satisfies the predicate.

    Raises
    ------
    ValueError
        If the shapes differ.
    """
    a_np = _as_numpy(a)
    b_np = _as_numpy(b)
    if a_np.shape != b_np.shape:
        raise ValueError(f"Cannot compare arrays of shapes {a_np.shape} and {b_np.shape}")
    return bool(np.allclose(a_np, b_np, rtol=rtol, atol=atol, equal_nan=equal_nan))


def format_array(x: ArrayLike) -> str:
    """
    Render an array (or tensor) for failure reports.
    """
    arr = _as_numpy(x)
    return np.array2string(arr, precision=8, separator=", ", threshold=1000)
