"""
Differentiable function interface definitions.

This module defines the abstract base class for differentiable operations
used by the autograd engine. Concrete subclasses of `Function` implement
both the forward computation and its corresponding backward rule.

The forward pass works on raw NumPy arrays and never touches the graph.
The backward pass works on tensors and must be expressed in terms of
differentiable tensor operations, so that gradients computed with double
backprop enabled remain connected to the graph.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import numpy as np

from ._tensor import ITensor


class Function(ABC):
    """
    Abstract base class for differentiable operations.

    A `Function` represents a single operation in the computation graph and
    encapsulates both:
    - the forward computation (NumPy arrays in, NumPy array out)
    - the backward (gradient) computation (tensors in, tensors out)

    Notes
    -----
    - Methods are declared as `@staticmethod` to avoid implicit state on the
      function object itself.
    - The `ctx` argument acts as a per-invocation context holding the input
      tensors and any metadata the backward rule needs.
    """

    @staticmethod
    @abstractmethod
    def forward(ctx, *inputs: np.ndarray) -> np.ndarray:
        """
        Perform the forward computation.

        Parameters
        ----------
        ctx : Context
            Per-invocation context. Metadata required by `backward` may be
            stored in `ctx.saved_meta`.
        *inputs : np.ndarray
            Input arrays.

        Returns
        -------
        np.ndarray
            The output array.
        """
        ...

    @staticmethod
    @abstractmethod
    def backward(ctx, grad_out: ITensor) -> Sequence[Optional[ITensor]]:
        """
        Compute gradients with respect to the inputs.

        Parameters
        ----------
        ctx : Context
            The context populated during the forward pass. `ctx.inputs`
            holds the input tensors.
        grad_out : ITensor
            Gradient with respect to the output.

        Returns
        -------
        Sequence[Optional[ITensor]]
            One gradient per input. Entries may be None.
        """
        ...


def function_name(fn: Any) -> str:
    """Return a readable name of a Function class for graph diagnostics."""
    name = getattr(fn, "__name__", type(fn).__name__)
    return name[:-2] if name.endswith("Fn") else name
