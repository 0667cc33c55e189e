"""
Shared array storage with per-graph state.

An `ArrayBody` owns a NumPy buffer plus a small explicit map from graph id
to that graph's state (array node and gradient slot). Tensor handles point
at bodies; several bodies may share one NumPy buffer ("views") while keeping
independent graph state.

Every body is reported to the active leak tracker on creation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterator, Optional

import numpy as np

from ...domain._graph import GraphId
from ..leak import track_array_body
from ._array_node import ArrayNode, OpNode

if TYPE_CHECKING:
    from ._tensor import Tensor


@dataclass
class GraphSlot:
    """
    State of one body under one graph.

    Attributes
    ----------
    node : ArrayNode
        The body's node in the graph.
    grad : Optional[Tensor]
        Accumulated gradient, or None.
    """

    node: ArrayNode
    grad: Optional["Tensor"] = None


class ArrayBody:
    """
    Storage object shared by tensor handles.

    Parameters
    ----------
    data : np.ndarray
        Buffer backing the body. Not copied.
    """

    __slots__ = ("_data", "_slots", "__weakref__")

    def __init__(self, data: np.ndarray) -> None:
        self._data = data
        self._slots: Dict[GraphId, GraphSlot] = {}
        track_array_body(self)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self._data.shape)

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    def graph_ids(self) -> Iterator[GraphId]:
        return iter(self._slots)

    def has_array_node(self, graph_id: GraphId) -> bool:
        return graph_id in self._slots

    def get_array_node(self, graph_id: GraphId) -> Optional[ArrayNode]:
        slot = self._slots.get(graph_id)
        return None if slot is None else slot.node

    def create_array_node(
        self, graph_id: GraphId, creator: Optional[OpNode] = None
    ) -> ArrayNode:
        """
        Attach a new array node under `graph_id`.

        Raises
        ------
        ValueError
            If the body is already tracked under `graph_id`.
        """
        if graph_id in self._slots:
            raise ValueError(f"Array body already has a node on graph '{graph_id}'.")
        node = ArrayNode(self, graph_id, creator)
        self._slots[graph_id] = GraphSlot(node=node)
        return node

    def get_grad(self, graph_id: GraphId) -> Optional["Tensor"]:
        slot = self._slots.get(graph_id)
        return None if slot is None else slot.grad

    def set_grad(self, graph_id: GraphId, grad: Optional["Tensor"]) -> None:
        self._slots[graph_id].grad = grad

    def __repr__(self) -> str:
        graphs = [str(g) for g in self._slots]
        return (
            f"ArrayBody(id=0x{id(self):x}, shape={self.shape}, "
            f"dtype={self.dtype}, graphs={graphs})"
        )
