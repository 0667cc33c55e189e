"""
Differentiable functions and their functional wrappers.

Each operation is a `Function` subclass with a NumPy forward pass and a
tensor-level backward rule; the lowercase wrappers apply them through
`apply_function`, which attaches graph nodes.
"""

from ._base import apply_function
from ._arithmetic import (
    AddFn,
    SubFn,
    MulFn,
    DivFn,
    NegFn,
    PowScalarFn,
    add,
    sub,
    mul,
    div,
    neg,
    pow_scalar,
)
from ._unary import ExpFn, LogFn, SinFn, CosFn, TanhFn, exp, log, sin, cos, tanh
from ._reduction import (
    SumFn,
    ReshapeFn,
    BroadcastToFn,
    sum,
    reshape,
    broadcast_to,
    sum_to,
)
from ._linalg import TransposeFn, MatmulFn, transpose, matmul

__all__ = [
    "apply_function",
    "AddFn",
    "SubFn",
    "MulFn",
    "DivFn",
    "NegFn",
    "PowScalarFn",
    "ExpFn",
    "LogFn",
    "SinFn",
    "CosFn",
    "TanhFn",
    "SumFn",
    "ReshapeFn",
    "BroadcastToFn",
    "TransposeFn",
    "MatmulFn",
    "add",
    "sub",
    "mul",
    "div",
    "neg",
    "pow_scalar",
    "exp",
    "log",
    "sin",
    "cos",
    "tanh",
    "sum",
    "reshape",
    "broadcast_to",
    "sum_to",
    "transpose",
    "matmul",
]
