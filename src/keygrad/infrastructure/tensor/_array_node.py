"""
Graph nodes of the computation graph.

Two node kinds make up a graph:

- `ArrayNode`: attached to an array body under one graph. It records the
  operation that produced the array (`creator`), or None for a leaf.
- `OpNode`: one recorded application of a differentiable function under one
  graph. It references the array nodes of its inputs and carries the
  closure that maps the output gradient to input gradients.

Ownership runs from outputs to inputs only: a body owns its array nodes, an
array node owns its creator op node, an op node owns its parents' array
nodes. The back reference from an array node to its body is weak, so graph
nodes never keep arrays alive on their own.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from ...domain._graph import GraphId

if TYPE_CHECKING:
    from ._array_body import ArrayBody
    from ._tensor import Tensor


@dataclass(eq=False)
class OpNode:
    """
    Record of one differentiable operation under one graph.

    Attributes
    ----------
    name : str
        Operation name, used in diagnostics.
    graph_id : GraphId
        Graph this op node belongs to.
    parents : Sequence[Optional[ArrayNode]]
        Array nodes of the inputs under `graph_id`, in input order. Entries
        are None for inputs that are not tracked under this graph.
    backward_fn : Callable[[Tensor], Sequence[Optional[Tensor]]]
        Maps the gradient w.r.t. the output to one gradient per input.
    rank : int
        One more than the highest rank among the parents' creators. Leaves
        have rank 0.
    """

    name: str
    graph_id: GraphId
    parents: Sequence[Optional["ArrayNode"]]
    backward_fn: Callable[["Tensor"], Sequence[Optional["Tensor"]]]
    rank: int = field(default=0)

    def __repr__(self) -> str:
        return f"OpNode(name={self.name!r}, graph={self.graph_id}, rank={self.rank})"


class ArrayNode:
    """
    Per-graph attachment of an array body.

    Parameters
    ----------
    body : ArrayBody
        Body this node is attached to (held weakly).
    graph_id : GraphId
        Graph this node belongs to.
    creator : Optional[OpNode]
        Operation that produced the array, or None for a leaf.
    """

    __slots__ = ("_body_ref", "_graph_id", "_creator", "_shape", "_dtype", "__weakref__")

    def __init__(
        self,
        body: "ArrayBody",
        graph_id: GraphId,
        creator: Optional[OpNode] = None,
    ) -> None:
        self._body_ref = weakref.ref(body)
        self._graph_id = graph_id
        self._creator = creator
        self._shape = body.shape
        self._dtype = body.dtype

    @property
    def graph_id(self) -> GraphId:
        return self._graph_id

    @property
    def creator(self) -> Optional[OpNode]:
        return self._creator

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def rank(self) -> int:
        return 0 if self._creator is None else self._creator.rank

    def is_leaf(self) -> bool:
        return self._creator is None

    def body(self) -> Optional["ArrayBody"]:
        """Return the body this node is attached to, or None if it is gone."""
        return self._body_ref()

    def __repr__(self) -> str:
        creator = "leaf" if self._creator is None else self._creator.name
        return f"ArrayNode(graph={self._graph_id}, shape={self._shape}, creator={creator})"
