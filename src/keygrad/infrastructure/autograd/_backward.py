"""
Reverse-mode backward engine.

`backward` propagates gradients from a set of output tensors to every leaf
reachable from them under one graph:

1. Each output must be tracked under the graph. Its current gradient slot
   is the seed; an empty slot is seeded with ones.
2. Op nodes reachable from the outputs are visited in reverse topological
   order, so every op sees the fully accumulated gradient of its output
   before propagating to its parents.
3. Gradients reaching leaf array nodes are accumulated into the leaves'
   gradient slots.

With double backprop disabled, every computation above runs inside
`NoBackpropModeScope(graph_id)` and the seeds are grad-stopped, so the
resulting gradients are not tracked under the graph. With it enabled,
backward computations are recorded like any other operation and the
resulting gradients can be differentiated again.

Gradients are never updated in place: accumulation always produces a new
tensor, because backward rules may hand out the same gradient tensor for
several parents.
"""

from __future__ import annotations

import contextlib
from typing import Dict, List, Optional, Sequence, Union

from ...domain._graph import DoubleBackpropOption, GraphId, resolve_graph_id
from ..tensor import ArrayNode, OpNode, Tensor, get_array_body
from ._backprop_mode import NoBackpropModeScope


def _accumulate(existing: Optional[Tensor], g: Tensor) -> Tensor:
    return g if existing is None else existing + g


def _topological_op_nodes(output_nodes: Sequence[ArrayNode]) -> List[OpNode]:
    """
    Return the op nodes reachable from `output_nodes`, consumers first.
    """
    order: List[OpNode] = []
    visited: set[int] = set()

    def dfs(op_node: OpNode) -> None:
        if id(op_node) in visited:
            return
        visited.add(id(op_node))
        for parent in op_node.parents:
            if parent is not None and parent.creator is not None:
                dfs(parent.creator)
        order.append(op_node)

    for node in output_nodes:
        if node.creator is not None:
            dfs(node.creator)

    return list(reversed(order))


def backward(
    outputs: Union[Tensor, Sequence[Tensor]],
    graph_id: Optional[GraphId] = None,
    double_backprop: DoubleBackpropOption = DoubleBackpropOption.DISABLE,
) -> None:
    """
    Backpropagate from `outputs` through `graph_id`.

    Parameters
    ----------
    outputs : Tensor or Sequence[Tensor]
        Tensors to start from. Each must be tracked under `graph_id`.
    graph_id : Optional[GraphId], optional
        Graph to backpropagate through. Defaults to the default graph.
    double_backprop : DoubleBackpropOption, optional
        Whether the computed gradients stay connected to the graph.

    Raises
    ------
    ValueError
        If an output is not tracked under `graph_id`.
    RuntimeError
        If a backward rule returns the wrong number of gradients.
    """
    gid = resolve_graph_id(graph_id)
    if isinstance(outputs, Tensor):
        outputs = [outputs]
    outputs = list(outputs)
    enable = double_backprop is DoubleBackpropOption.ENABLE

    output_nodes: List[ArrayNode] = []
    for output in outputs:
        node = get_array_body(output).get_array_node(gid)
        if node is None:
            raise ValueError(
                f"Cannot start backprop from a tensor that is not tracked under graph '{gid}'."
            )
        output_nodes.append(node)

    mode = contextlib.nullcontext() if enable else NoBackpropModeScope(gid)
    with mode:
        # Gradients flowing into the output of each op node, and into leaves.
        op_grads: Dict[OpNode, Tensor] = {}
        leaf_grads: Dict[ArrayNode, Tensor] = {}
        seeded: set[int] = set()

        for output, node in zip(outputs, output_nodes):
            if id(node) in seeded:
                continue
            seeded.add(id(node))
            seed = output.get_grad(gid)
            if seed is None:
                seed = Tensor.ones_like(output)
                output.set_grad(seed, gid)
            elif not enable:
                seed = seed.as_grad_stopped()
            if node.creator is not None:
                op_grads[node.creator] = _accumulate(op_grads.get(node.creator), seed)

        for op_node in _topological_op_nodes(output_nodes):
            grad_out = op_grads.pop(op_node, None)
            if grad_out is None:
                continue
            parent_grads = op_node.backward_fn(grad_out)
            for parent, g in zip(op_node.parents, parent_grads):
                if parent is None or g is None:
                    continue
                if not isinstance(g, Tensor):
                    raise TypeError(f"backward_fn must return Tensor or None, got {type(g)!r}")
                if g.shape != parent.shape:
                    raise ValueError(
                        f"Gradient shape mismatch in '{op_node.name}': "
                        f"expected {parent.shape}, got {g.shape}"
                    )
                if parent.creator is None:
                    leaf_grads[parent] = _accumulate(leaf_grads.get(parent), g)
                else:
                    op_grads[parent.creator] = _accumulate(op_grads.get(parent.creator), g)

        for node, g in leaf_grads.items():
            body = node.body()
            if body is None:
                continue
            body.set_grad(gid, _accumulate(body.get_grad(gid), g))
