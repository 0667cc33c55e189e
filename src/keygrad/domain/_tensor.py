"""
Tensor interface definitions.

This module defines the domain-level interface for tensor-like objects using
structural typing. The interface captures what the gradient-check machinery
needs from a tensor: array metadata, per-graph gradient tracking and
gradient slots.

Notes
-----
Every graph-aware method takes an optional graph id. When omitted, the
default graph is used.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from ._graph import GraphId


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor interface.

    An `ITensor` is a handle to array storage that may be tracked under zero
    or more differentiation graphs. Multiple handles can share the same
    storage while carrying independent graph attachments.
    """

    # ---------------------------------------------------------------------
    # Array metadata
    # ---------------------------------------------------------------------
    @property
    def shape(self) -> tuple[int, ...]:
        """
        Return the shape of the tensor.

        Returns
        -------
        tuple[int, ...]
            The tensor's shape.
        """
        ...

    @property
    def dtype(self) -> np.dtype:
        """
        Return the element dtype of the tensor.

        Returns
        -------
        np.dtype
            NumPy dtype of the elements.
        """
        ...

    def to_numpy(self) -> np.ndarray:
        """
        Return the underlying data as a NumPy array.

        Returns
        -------
        np.ndarray
            Array holding the tensor values.
        """
        ...

    # ---------------------------------------------------------------------
    # Graph tracking
    # ---------------------------------------------------------------------
    def require_grad(self, graph_id: Optional[GraphId] = None) -> "ITensor":
        """
        Start tracking this tensor as a leaf under `graph_id`.

        Returns
        -------
        ITensor
            This tensor, for chaining.
        """
        ...

    def is_grad_required(self, graph_id: Optional[GraphId] = None) -> bool:
        """
        Return True if this tensor is tracked under `graph_id`.
        """
        ...

    def is_leaf(self, graph_id: Optional[GraphId] = None) -> bool:
        """
        Return True if this tensor has no producing operation under
        `graph_id`.
        """
        ...

    def graph_ids(self) -> Sequence[GraphId]:
        """
        Return the graphs this tensor is tracked under.
        """
        ...

    # ---------------------------------------------------------------------
    # Gradient slots
    # ---------------------------------------------------------------------
    def get_grad(self, graph_id: Optional[GraphId] = None) -> Optional["ITensor"]:
        """
        Return the gradient stored under `graph_id`, if any.
        """
        ...

    def set_grad(self, grad: "ITensor", graph_id: Optional[GraphId] = None) -> None:
        """
        Store `grad` as the gradient under `graph_id`.
        """
        ...

    def clear_grad(self, graph_id: Optional[GraphId] = None) -> None:
        """
        Remove the gradient stored under `graph_id`.
        """
        ...

    def as_grad_stopped(self, copy: bool = False) -> "ITensor":
        """
        Return a handle to the same data (or a copy) without any graph
        attachment.
        """
        ...
