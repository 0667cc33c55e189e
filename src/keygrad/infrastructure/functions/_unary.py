"""
Elementwise transcendental functions.

Derivatives are recomputed from the input tensor inside `backward` instead of
saving the output, which keeps outputs out of their own graph (no reference
cycle from an output back to itself).
"""

from __future__ import annotations

import numpy as np

from ...domain._function import Function
from ..tensor import Tensor
from ._base import apply_function


class ExpFn(Function):
    """
    Elementwise exponential function.

    Backward:

        d(exp(x))/dx = exp(x)
    """

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.exp(x)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        return (grad_out * x.exp(),)


class LogFn(Function):
    """
    Elementwise natural logarithm.

    Backward:

        d(log(x))/dx = 1 / x
    """

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.log(x)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        return (grad_out / x,)


class SinFn(Function):
    """out = sin(x)"""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.sin(x)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        return (grad_out * x.cos(),)


class CosFn(Function):
    """out = cos(x)"""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.cos(x)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        return (-(grad_out * x.sin()),)


class TanhFn(Function):
    """
    Elementwise hyperbolic tangent.

    Backward:

        d(tanh(x))/dx = 1 - tanh(x)^2
    """

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return np.tanh(x)

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        y = x.tanh()
        return (grad_out * (1 - y * y),)


def exp(x: Tensor) -> Tensor:
    return apply_function(ExpFn, x)


def log(x: Tensor) -> Tensor:
    return apply_function(LogFn, x)


def sin(x: Tensor) -> Tensor:
    return apply_function(SinFn, x)


def cos(x: Tensor) -> Tensor:
    return apply_function(CosFn, x)


def tanh(x: Tensor) -> Tensor:
    return apply_function(TanhFn, x)
