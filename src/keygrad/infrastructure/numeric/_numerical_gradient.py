"""
Numerical gradients by central differences.

For every element ``x[k]`` of every input, the function is evaluated at
``x[k] + eps`` and ``x[k] - eps`` and the gradient is estimated as

    sum_j sum((y_j(+) - y_j(-)) * gy_j) / (2 * eps)

where ``gy_j`` are the output gradients. This is the vector-Jacobian
product the backward pass computes analytically.

All evaluations run under `NoBackpropModeScope()` on fresh copies of the
inputs, so the caller's tensors never gain graph history.
"""

from __future__ import annotations

import warnings
from typing import Any, Callable, List, Optional, Sequence

import numpy as np

from ..autograd import NoBackpropModeScope
from ..tensor import Tensor

ForwardFn = Callable[[List[Tensor]], Any]


def as_output_list(outputs: Any) -> List[Tensor]:
    """
    Normalize the return value of a forward function to a list of tensors.

    Raises
    ------
    TypeError
        If the function returned something other than a Tensor or a
        sequence of Tensors.
    """
    if isinstance(outputs, Tensor):
        return [outputs]
    outputs = list(outputs)
    for y in outputs:
        if not isinstance(y, Tensor):
            raise TypeError(f"Forward function must return Tensors, got {type(y)!r}")
    return outputs


def _eps_array(eps: Any, x: Tensor) -> np.ndarray:
    e = eps.to_numpy() if isinstance(eps, Tensor) else np.asarray(eps, dtype=x.dtype)
    try:
        e = np.broadcast_to(e, x.shape)
    except ValueError as err:
        raise ValueError(f"eps of shape {e.shape} cannot be broadcast to {x.shape}") from err
    if np.any(e <= 0):
        raise ValueError("eps must be positive")
    return e


def _evaluate(
    func: ForwardFn,
    base: Sequence[np.ndarray],
    i: int,
    index: tuple,
    delta: Any,
) -> List[np.ndarray]:
    xs = [Tensor.from_numpy(b) for b in base]
    xs[i].to_numpy()[index] += delta
    return [y.to_numpy().copy() for y in as_output_list(func(xs))]


def calculate_numerical_gradient(
    func: ForwardFn,
    inputs: Sequence[Tensor],
    grad_outputs: Optional[Sequence[Tensor]],
    eps: Sequence[Any],
) -> List[Tensor]:
    """
    Estimate input gradients of `func` by central differences.

    Parameters
    ----------
    func : Callable[[list[Tensor]], Sequence[Tensor]]
        Forward function.
    inputs : Sequence[Tensor]
        Points to differentiate at. Never modified.
    grad_outputs : Optional[Sequence[Tensor]]
        Output gradients to contract the Jacobian with. None means ones.
    eps : Sequence[float | np.ndarray | Tensor]
        Perturbation per input, broadcastable to that input's shape.

    Returns
    -------
    list[Tensor]
        One gradient per input, with the input's shape and dtype.

    Raises
    ------
    ValueError
        If `eps` does not have one entry per input, if an eps value is not
        positive, or if the number of outputs differs from the number of
        output gradients.
    """
    inputs = list(inputs)
    if len(eps) != len(inputs):
        raise ValueError(
            f"Number of eps values ({len(eps)}) must match the number of inputs ({len(inputs)})."
        )

    grads: List[Tensor] = []
    with NoBackpropModeScope():
        base = [x.to_numpy().copy() for x in inputs]
        gys = None if grad_outputs is None else [gy.to_numpy() for gy in grad_outputs]

        for i, x in enumerate(inputs):
            if x.dtype == np.float16:
                warnings.warn(
                    f"Numerical gradient of input {i} is estimated in float16; "
                    "central differences are unreliable at this precision.",
                    RuntimeWarning,
                    stacklevel=2,
                )
            eps_i = _eps_array(eps[i], x)
            grad = np.zeros(x.shape, dtype=x.dtype)

            for index in np.ndindex(*x.shape):
                e = eps_i[index]
                ys_plus = _evaluate(func, base, i, index, e)
                ys_minus = _evaluate(func, base, i, index, -e)
                if gys is None:
                    gys_used = [np.ones_like(y) for y in ys_plus]
                else:
                    gys_used = gys
                if len(ys_plus) != len(gys_used):
                    raise ValueError(
                        f"Size of function outputs: {len(ys_plus)} and size of grad "
                        f"outputs: {len(gys_used)} must be same"
                    )
                total = 0
                for y_plus, y_minus, gy in zip(ys_plus, ys_minus, gys_used):
                    total = total + np.sum((y_plus - y_minus) * gy)
                grad[index] = total / (2 * e)

            grads.append(Tensor._from_array(grad))
    return grads
