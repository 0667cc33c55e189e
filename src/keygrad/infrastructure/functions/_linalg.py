"""
Linear-algebra functions: transpose and 2-D matrix product.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from ...domain._function import Function
from ..tensor import Tensor
from ._base import apply_function


class TransposeFn(Function):
    """out = x.transpose(axes)"""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.array(np.transpose(x, ctx.saved_meta["axes"]), copy=True)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        inverse = tuple(int(i) for i in np.argsort(ctx.saved_meta["axes"]))
        return (grad_out.transpose(inverse),)


class MatmulFn(Function):
    """
    out = a @ b for 2-D operands.

    Backward:

        dL/da = dL/dout @ b.T
        dL/db = a.T @ dL/dout
    """

    @staticmethod
    def forward(ctx, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return a @ b

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        a, b = ctx.inputs
        return grad_out @ b.T, a.T @ grad_out


def transpose(x: Tensor, axes: Optional[Sequence[int]] = None) -> Tensor:
    if axes is None:
        axes = tuple(reversed(range(x.ndim)))
    axes = tuple(int(a) for a in axes)
    if sorted(axes) != list(range(x.ndim)):
        raise ValueError(f"axes {axes} is not a permutation of {x.ndim} dimensions")
    return apply_function(TransposeFn, x, axes=axes)


def matmul(a: Tensor, b: Tensor) -> Tensor:
    if not isinstance(b, Tensor):
        raise TypeError(f"matmul expects a Tensor, got {type(b)!r}")
    if a.ndim != 2 or b.ndim != 2:
        raise ValueError(f"matmul requires 2-D operands, got {a.shape} and {b.shape}")
    if a.shape[1] != b.shape[0]:
        raise ValueError(f"matmul inner dimensions differ: {a.shape} @ {b.shape}")
    if a.dtype != b.dtype:
        raise TypeError(f"dtype mismatch: {a.dtype} vs {b.dtype}")
    return apply_function(MatmulFn, a, b)
