"""
Elementwise arithmetic functions.

Backward rules are written with tensor operators so that, with double
backprop enabled, the gradients they produce are themselves differentiable.
Operands are assumed to have identical shapes and dtypes; the `Tensor`
operators check this before dispatching here.
"""

from __future__ import annotations

import numpy as np

from ...domain._function import Function
from ..tensor import Tensor
from ._base import apply_function


class AddFn(Function):
    """out = a + b"""

    @staticmethod
    def forward(ctx, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return a + b

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        return grad_out, grad_out


class SubFn(Function):
    """out = a - b"""

    @staticmethod
    def forward(ctx, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return a - b

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        return grad_out, -grad_out


class MulFn(Function):
    """out = a * b"""

    @staticmethod
    def forward(ctx, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return a * b

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        a, b = ctx.inputs
        return grad_out * b, grad_out * a


class DivFn(Function):
    """out = a / b"""

    @staticmethod
    def forward(ctx, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return a / b

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        a, b = ctx.inputs
        return grad_out / b, -(grad_out * a / (b * b))


class NegFn(Function):
    """out = -x"""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return -x

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        return (-grad_out,)


class PowScalarFn(Function):
    """
    out = x ** p for a Python scalar `p` stored in `ctx.saved_meta["p"]`.

    Backward:

        d(x ** p)/dx = p * x ** (p - 1)

    The derivative factor is built without a `** 0` or `** 1` node so that
    repeated differentiation does not divide by zero at x == 0.
    """

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.power(x, ctx.saved_meta["p"]).astype(x.dtype, copy=False)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        p = ctx.saved_meta["p"]
        if p == 0:
            return (Tensor.zeros_like(x),)
        if p == 1:
            return (grad_out,)
        factor = x if p == 2 else x ** (p - 1)
        return (grad_out * factor * p,)


def add(a: Tensor, b: Tensor) -> Tensor:
    return apply_function(AddFn, a, b)


def sub(a: Tensor, b: Tensor) -> Tensor:
    return apply_function(SubFn, a, b)


def mul(a: Tensor, b: Tensor) -> Tensor:
    return apply_function(MulFn, a, b)


def div(a: Tensor, b: Tensor) -> Tensor:
    return apply_function(DivFn, a, b)


def neg(x: Tensor) -> Tensor:
    return apply_function(NegFn, x)


def pow_scalar(x: Tensor, p: float) -> Tensor:
    return apply_function(PowScalarFn, x, p=p)
