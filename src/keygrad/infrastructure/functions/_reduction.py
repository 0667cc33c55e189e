"""
Reduction and shape functions.

`SumFn` and `BroadcastToFn` are adjoint to each other: the backward rule of
one is the forward of the other. `sum_to` is the composite used by
`BroadcastToFn.backward` to reduce a gradient back to the source shape.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple, Union

import numpy as np

from ...domain._function import Function
from ..tensor import Tensor
from ._base import apply_function


def _normalize_axes(axis: Optional[Union[int, Sequence[int]]], ndim: int) -> Tuple[int, ...]:
    if axis is None:
        return tuple(range(ndim))
    if isinstance(axis, int):
        axis = (axis,)
    axes = []
    for a in axis:
        if not -ndim <= a < ndim:
            raise ValueError(f"axis {a} is out of bounds for a tensor of dimension {ndim}")
        axes.append(a % ndim)
    if len(set(axes)) != len(axes):
        raise ValueError(f"Duplicate axes in {tuple(axis)}")
    return tuple(sorted(axes))


class SumFn(Function):
    """
    Sum over `ctx.saved_meta["axes"]`.

    Backward: the output gradient is reshaped to the keepdims shape and
    broadcast back to the input shape.
    """

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.sum(x, axis=ctx.saved_meta["axes"], keepdims=ctx.saved_meta["keepdims"])

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        axes = ctx.saved_meta["axes"]
        keep_shape = tuple(1 if i in axes else d for i, d in enumerate(x.shape))
        g = grad_out if grad_out.shape == keep_shape else grad_out.reshape(keep_shape)
        return (g.broadcast_to(x.shape),)


class ReshapeFn(Function):
    """out = x.reshape(shape)"""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.array(x.reshape(ctx.saved_meta["shape"]), copy=True)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        return (grad_out.reshape(x.shape),)


class BroadcastToFn(Function):
    """out = broadcast_to(x, shape), materialized."""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.array(np.broadcast_to(x, ctx.saved_meta["shape"]), copy=True)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        return (sum_to(grad_out, x.shape),)


def sum(
    x: Tensor, axis: Optional[Union[int, Sequence[int]]] = None, keepdims: bool = False
) -> Tensor:
    return apply_function(
        SumFn, x, axes=_normalize_axes(axis, x.ndim), keepdims=bool(keepdims)
    )


def reshape(x: Tensor, shape: Sequence[int]) -> Tensor:
    shape = tuple(int(d) for d in shape)
    if int(np.prod(shape, dtype=np.int64)) != x.size:
        raise ValueError(f"Cannot reshape tensor of shape {x.shape} into {shape}")
    return apply_function(ReshapeFn, x, shape=shape)


def broadcast_to(x: Tensor, shape: Sequence[int]) -> Tensor:
    shape = tuple(int(d) for d in shape)
    try:
        np.broadcast_shapes(x.shape, shape)
    except ValueError as e:
        raise ValueError(f"Cannot broadcast shape {x.shape} to {shape}") from e
    if np.broadcast_shapes(x.shape, shape) != shape:
        raise ValueError(f"Cannot broadcast shape {x.shape} to {shape}")
    return apply_function(BroadcastToFn, x, shape=shape)


def sum_to(x: Tensor, shape: Sequence[int]) -> Tensor:
    """
    Reduce `x` by summation so that it has `shape`.

    Leading axes that `shape` lacks are summed away, and axes where `shape`
    has extent 1 are summed with keepdims. Returns `x` itself when no
    reduction is needed.
    """
    shape = tuple(shape)
    lead = x.ndim - len(shape)
    if lead:
        x = x.sum(axis=tuple(range(lead)))
    axes = tuple(i for i, d in enumerate(shape) if d == 1 and x.shape[i] != 1)
    if axes:
        x = x.sum(axis=axes, keepdims=True)
    return x
