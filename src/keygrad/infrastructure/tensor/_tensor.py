"""
Concrete Tensor implementation (NumPy backend) with per-graph autograd state.

This module provides the `Tensor` handle that satisfies the domain-level
`ITensor` protocol. A tensor is a thin handle to an `ArrayBody`, which owns
the NumPy buffer and the per-graph state (array node and gradient slot).

Design notes
------------
- Handles are cheap. `as_grad_stopped()` returns a new handle with a new body
  that shares the NumPy buffer but carries no graph state ("view").
- Graph tracking is per graph id. `require_grad(graph_id)` makes the tensor a
  leaf of that graph; differentiable operations attach a non-leaf node to
  their output for every graph that one of their inputs is tracked under.
- Broadcasting is intentionally not implemented for binary ops; operands must
  have the same shape and dtype. Python scalars are lifted to tensors that
  match the other operand.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Union

import numpy as np
from typing_extensions import Self

from ...domain._graph import DoubleBackpropOption, GraphId, resolve_graph_id
from ...domain._tensor import ITensor
from ._array_body import ArrayBody

Number = Union[int, float]


class Tensor(ITensor):
    """
    Concrete tensor handle (NumPy CPU backend).

    Parameters
    ----------
    shape : tuple[int, ...]
        Tensor shape. Storage is zero-initialized.
    requires_grad : bool, optional
        If True, the tensor is made a leaf of `graph_id`. Defaults to False.
    dtype : np.dtype, optional
        Element dtype. Defaults to np.float32.
    graph_id : Optional[GraphId], optional
        Graph used when `requires_grad` is True. Defaults to the default graph.
    """

    def __init__(
        self,
        shape: tuple[int, ...],
        *,
        requires_grad: bool = False,
        dtype: np.dtype = np.float32,
        graph_id: Optional[GraphId] = None,
    ) -> None:
        self._body = ArrayBody(np.zeros(shape, dtype=dtype))
        if requires_grad:
            self.require_grad(graph_id)

    @classmethod
    def _from_body(cls, body: ArrayBody) -> "Tensor":
        """
        Wrap an existing body in a new handle (bypasses `__init__`).
        """
        obj = cls.__new__(cls)
        obj._body = body
        return obj

    @classmethod
    def _from_array(cls, data: np.ndarray) -> "Tensor":
        """
        Wrap `data` in a new body without copying it.
        """
        return cls._from_body(ArrayBody(np.asarray(data)))

    # ----------------------------
    # Factories
    # ----------------------------
    @classmethod
    def from_numpy(
        cls,
        arr: Any,
        *,
        dtype: Optional[np.dtype] = None,
        requires_grad: bool = False,
        graph_id: Optional[GraphId] = None,
    ) -> "Tensor":
        """
        Create a tensor holding a copy of `arr`.

        Parameters
        ----------
        arr : array_like
            Source values. Python scalars produce a 0-d tensor.
        dtype : Optional[np.dtype], optional
            Element dtype. Defaults to the dtype NumPy infers for `arr`.
        requires_grad : bool, optional
            If True, the new tensor is made a leaf of `graph_id`.
        graph_id : Optional[GraphId], optional
            Graph used when `requires_grad` is True.

        Returns
        -------
        Tensor
            A new tensor.
        """
        t = cls._from_array(np.array(arr, dtype=dtype, copy=True))
        if requires_grad:
            t.require_grad(graph_id)
        return t

    @classmethod
    def full(
        cls, shape: tuple[int, ...], value: Number, *, dtype: np.dtype = np.float32
    ) -> "Tensor":
        """Create a tensor of `shape` filled with `value`."""
        return cls._from_array(np.full(shape, value, dtype=dtype))

    @classmethod
    def zeros(cls, shape: tuple[int, ...], *, dtype: np.dtype = np.float32) -> "Tensor":
        """Create a zero-filled tensor."""
        return cls.full(shape, 0, dtype=dtype)

    @classmethod
    def ones(cls, shape: tuple[int, ...], *, dtype: np.dtype = np.float32) -> "Tensor":
        """Create a one-filled tensor."""
        return cls.full(shape, 1, dtype=dtype)

    @staticmethod
    def zeros_like(t: "Tensor") -> "Tensor":
        """Create a zero-filled tensor with the shape and dtype of `t`."""
        return Tensor.zeros(t.shape, dtype=t.dtype)

    @staticmethod
    def ones_like(t: "Tensor") -> "Tensor":
        """Create a one-filled tensor with the shape and dtype of `t`."""
        return Tensor.ones(t.shape, dtype=t.dtype)

    # ----------------------------
    # Array metadata and data access
    # ----------------------------
    @property
    def shape(self) -> tuple[int, ...]:
        """
        Return the tensor shape.

        Returns
        -------
        tuple[int, ...]
            The tensor's shape.
        """
        return self._body.shape

    @property
    def dtype(self) -> np.dtype:
        """
        Return the element dtype of this tensor.

        Returns
        -------
        np.dtype
            NumPy dtype representing the tensor element type.
        """
        return self._body.dtype

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        return int(self._body.data.size)

    def numel(self) -> int:
        return self.size

    def to_numpy(self) -> np.ndarray:
        """
        Return the underlying NumPy buffer.

        Notes
        -----
        The returned array is the storage itself, not a copy. Writing to it
        is visible through every handle sharing the buffer.
        """
        return self._body.data

    def copy_from_numpy(self, arr: Any) -> None:
        """
        Copy values from `arr` into this tensor's storage.

        Raises
        ------
        ValueError
            If `arr` does not have the tensor's shape.
        """
        arr = np.asarray(arr)
        if tuple(arr.shape) != self.shape:
            raise ValueError(
                f"copy_from_numpy shape mismatch: expected {self.shape}, got {arr.shape}"
            )
        self._body.data[...] = arr

    def item(self) -> float:
        """
        Return the value of a single-element tensor as a Python float.

        Raises
        ------
        ValueError
            If the tensor has more than one element.
        """
        if self.size != 1:
            raise ValueError(f"item() requires a single-element tensor, got shape={self.shape}")
        return float(self._body.data.reshape(-1)[0])

    def copy(self) -> "Tensor":
        """
        Return a tensor with a deep copy of the data and no graph state.
        """
        return self.as_grad_stopped(copy=True)

    def as_grad_stopped(self, copy: bool = False) -> "Tensor":
        """
        Return a handle without any graph attachment.

        Parameters
        ----------
        copy : bool, optional
            If False (default), the new handle shares this tensor's buffer
            ("view"). If True, the buffer is copied.

        Returns
        -------
        Tensor
            A tensor that is not tracked under any graph.
        """
        data = self._body.data.copy() if copy else self._body.data
        return Tensor._from_array(data)

    # ----------------------------
    # Graph tracking
    # ----------------------------
    def require_grad(self, graph_id: Optional[GraphId] = None) -> Self:
        """
        Make this tensor a leaf of `graph_id`.

        Calling this on a tensor that is already tracked under `graph_id`
        leaves it unchanged.

        Parameters
        ----------
        graph_id : Optional[GraphId], optional
            Graph to track this tensor under. Defaults to the default graph.

        Returns
        -------
        Tensor
            This tensor.
        """
        gid = resolve_graph_id(graph_id)
        if not self._body.has_array_node(gid):
            self._body.create_array_node(gid)
        return self

    def is_grad_required(self, graph_id: Optional[GraphId] = None) -> bool:
        """
        Return True if this tensor is tracked under `graph_id`.
        """
        return self._body.has_array_node(resolve_graph_id(graph_id))

    def is_leaf(self, graph_id: Optional[GraphId] = None) -> bool:
        """
        Return True if this tensor has no producing operation under
        `graph_id`. Untracked tensors count as leaves.
        """
        node = self._body.get_array_node(resolve_graph_id(graph_id))
        return node is None or node.is_leaf()

    def graph_ids(self) -> List[GraphId]:
        """Return the graphs this tensor is tracked under."""
        return list(self._body.graph_ids())

    @property
    def requires_grad(self) -> bool:
        """
        Indicate whether this tensor is tracked under the default graph.
        """
        return self.is_grad_required()

    def _check_grad_required(self, gid: GraphId) -> None:
        if not self._body.has_array_node(gid):
            raise ValueError(f"Tensor is not tracked under graph '{gid}'.")

    # ----------------------------
    # Gradient slots
    # ----------------------------
    def get_grad(self, graph_id: Optional[GraphId] = None) -> Optional["Tensor"]:
        """
        Return the gradient stored under `graph_id`.

        Returns
        -------
        Optional[Tensor]
            The gradient, or None if none has been computed.

        Raises
        ------
        ValueError
            If the tensor is not tracked under `graph_id`.
        """
        gid = resolve_graph_id(graph_id)
        self._check_grad_required(gid)
        return self._body.get_grad(gid)

    def set_grad(self, grad: "Tensor", graph_id: Optional[GraphId] = None) -> None:
        """
        Store `grad` as the gradient under `graph_id`.

        Raises
        ------
        TypeError
            If `grad` is not a Tensor.
        ValueError
            If the tensor is not tracked under `graph_id`, or if `grad` does
            not match this tensor's shape or dtype.
        """
        gid = resolve_graph_id(graph_id)
        self._check_grad_required(gid)
        if not isinstance(grad, Tensor):
            raise TypeError(f"grad must be a Tensor, got {type(grad)!r}")
        if grad.shape != self.shape:
            raise ValueError(f"Grad shape mismatch: expected {self.shape}, got {grad.shape}")
        if grad.dtype != self.dtype:
            raise ValueError(f"Grad dtype mismatch: expected {self.dtype}, got {grad.dtype}")
        self._body.set_grad(gid, grad)

    def clear_grad(self, graph_id: Optional[GraphId] = None) -> None:
        """
        Remove the gradient stored under `graph_id`.

        Raises
        ------
        ValueError
            If the tensor is not tracked under `graph_id`.
        """
        gid = resolve_graph_id(graph_id)
        self._check_grad_required(gid)
        self._body.set_grad(gid, None)

    @property
    def grad(self) -> Optional["Tensor"]:
        """
        Return the gradient under the default graph, or None if the tensor
        is not tracked or no gradient has been computed.
        """
        return self._body.get_grad(resolve_graph_id(None))

    def zero_grad(self) -> None:
        """
        Clear the gradient under the default graph, if tracked.
        """
        if self.requires_grad:
            self.clear_grad()

    def backward(
        self,
        grad_out: Optional["Tensor"] = None,
        *,
        graph_id: Optional[GraphId] = None,
        double_backprop: DoubleBackpropOption = DoubleBackpropOption.DISABLE,
    ) -> None:
        """
        Backpropagate from this tensor through `graph_id`.

        Parameters
        ----------
        grad_out : Optional[Tensor], optional
            Seed gradient. If omitted, a gradient already stored on this
            tensor is used, otherwise a tensor of ones.
        graph_id : Optional[GraphId], optional
            Graph to backpropagate through.
        double_backprop : DoubleBackpropOption, optional
            Whether the computed gradients stay connected to the graph.
        """
        from ..autograd import backward

        if grad_out is not None:
            self.set_grad(grad_out, graph_id)
        backward([self], graph_id, double_backprop)

    # ----------------------------
    # Representation
    # ----------------------------
    def __repr__(self) -> str:
        graphs = [str(g) for g in self._body.graph_ids()]
        return f"Tensor(shape={self.shape}, dtype={self.dtype}, graphs={graphs})"

    def __str__(self) -> str:
        return np.array2string(self._body.data, precision=8, separator=", ")

    # ----------------------------
    # Operator helpers
    # ----------------------------
    @staticmethod
    def _as_tensor_like(x: Union["Tensor", Number], like: "Tensor") -> "Tensor":
        """
        Lift a Python scalar to a constant tensor matching `like`.

        Raises
        ------
        TypeError
            If `x` is neither a Tensor nor a Python number.
        """
        if isinstance(x, Tensor):
            return x
        if isinstance(x, (int, float, np.integer, np.floating)):
            return Tensor.full(like.shape, x, dtype=like.dtype)
        raise TypeError(f"Unsupported operand type: {type(x)!r}")

    @staticmethod
    def _binary_op_check(a: "Tensor", b: "Tensor") -> None:
        """
        Require identical shapes and dtypes for elementwise binary ops.

        Raises
        ------
        ValueError
            If the shapes differ.
        TypeError
            If the dtypes differ.
        """
        if a.shape != b.shape:
            raise ValueError(f"Shape mismatch: {a.shape} vs {b.shape}")
        if a.dtype != b.dtype:
            raise TypeError(f"dtype mismatch: {a.dtype} vs {b.dtype}")

    # ----------------------------
    # Arithmetic
    # ----------------------------
    def __add__(self, other: Union["Tensor", Number]) -> "Tensor":
        """
        Elementwise addition.

        Notes
        -----
        Backward rule: d(a + b)/da = 1, d(a + b)/db = 1
        """
        from ..functions import add

        other_t = self._as_tensor_like(other, self)
        self._binary_op_check(self, other_t)
        return add(self, other_t)

    def __radd__(self, other: Number) -> "Tensor":
        return self.__add__(other)

    def __sub__(self, other: Union["Tensor", Number]) -> "Tensor":
        """
        Elementwise subtraction.

        Notes
        -----
        Backward rule: d(a - b)/da = 1, d(a - b)/db = -1
        """
        from ..functions import sub

        other_t = self._as_tensor_like(other, self)
        self._binary_op_check(self, other_t)
        return sub(self, other_t)

    def __rsub__(self, other: Number) -> "Tensor":
        return self._as_tensor_like(other, self).__sub__(self)

    def __mul__(self, other: Union["Tensor", Number]) -> "Tensor":
        """
        Elementwise multiplication.

        Notes
        -----
        Backward rule: d(a * b)/da = b, d(a * b)/db = a
        """
        from ..functions import mul

        other_t = self._as_tensor_like(other, self)
        self._binary_op_check(self, other_t)
        return mul(self, other_t)

    def __rmul__(self, other: Number) -> "Tensor":
        return self.__mul__(other)

    def __truediv__(self, other: Union["Tensor", Number]) -> "Tensor":
        """
        Elementwise true division.

        Notes
        -----
        Backward rule: d(a / b)/da = 1 / b, d(a / b)/db = -a / b^2
        """
        from ..functions import div

        other_t = self._as_tensor_like(other, self)
        self._binary_op_check(self, other_t)
        return div(self, other_t)

    def __rtruediv__(self, other: Number) -> "Tensor":
        return self._as_tensor_like(other, self).__truediv__(self)

    def __neg__(self) -> "Tensor":
        from ..functions import neg

        return neg(self)

    def __pow__(self, exponent: Number) -> "Tensor":
        """
        Elementwise power with a scalar exponent.

        Raises
        ------
        TypeError
            If `exponent` is not a Python number.
        """
        from ..functions import pow_scalar

        if not isinstance(exponent, (int, float)):
            raise TypeError(f"Exponent must be a Python number, got {type(exponent)!r}")
        return pow_scalar(self, exponent)

    def __matmul__(self, other: "Tensor") -> "Tensor":
        return self.matmul(other)

    def matmul(self, other: "Tensor") -> "Tensor":
        """
        2-D matrix product.

        Raises
        ------
        ValueError
            If either operand is not 2-D or inner dimensions differ.
        TypeError
            If the dtypes differ.
        """
        from ..functions import matmul

        return matmul(self, other)

    # ----------------------------
    # Unary math
    # ----------------------------
    def exp(self) -> "Tensor":
        from ..functions import exp

        return exp(self)

    def log(self) -> "Tensor":
        from ..functions import log

        return log(self)

    def sin(self) -> "Tensor":
        from ..functions import sin

        return sin(self)

    def cos(self) -> "Tensor":
        from ..functions import cos

        return cos(self)

    def tanh(self) -> "Tensor":
        from ..functions import tanh

        return tanh(self)

    # ----------------------------
    # Reductions and shape manipulation
    # ----------------------------
    def sum(
        self, axis: Optional[Union[int, Sequence[int]]] = None, keepdims: bool = False
    ) -> "Tensor":
        """
        Sum over `axis` (all axes by default).
        """
        from ..functions import sum as sum_

        return sum_(self, axis=axis, keepdims=keepdims)

    def reshape(self, new_shape: tuple[int, ...]) -> "Tensor":
        from ..functions import reshape

        return reshape(self, new_shape)

    def broadcast_to(self, shape: tuple[int, ...]) -> "Tensor":
        from ..functions import broadcast_to

        return broadcast_to(self, shape)

    def transpose(self, axes: Optional[Sequence[int]] = None) -> "Tensor":
        from ..functions import transpose

        return transpose(self, axes)

    @property
    def T(self) -> "Tensor":
        return self.transpose()


def get_array_body(t: Tensor) -> ArrayBody:
    """
    Return the body behind a tensor handle.

    Two handles alias each other exactly when their bodies are the same
    object.
    """
    return t._body
