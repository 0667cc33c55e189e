"""
Wiring of differentiable functions into the computation graph.

`apply_function` is the single place where graph nodes are created: it runs
a `Function`'s forward pass on raw arrays, wraps the result in a new tensor
and, for every graph that some input is tracked under and that currently
records (see `is_backprop_required`), attaches an `OpNode` to the output.

User code can define its own `Function` subclasses and apply them with this
helper, e.g. to build test doubles with deliberately broken backward rules.
"""

from __future__ import annotations

from functools import partial
from typing import List, Optional, Sequence, Type

import numpy as np

from ...domain._function import Function, function_name
from ...domain._graph import GraphId
from ..autograd._backprop_mode import is_backprop_required
from ..tensor import Context, OpNode, Tensor, get_array_body


def _run_backward(
    fn: Type[Function], ctx: Context, grad_out: Tensor
) -> Sequence[Optional[Tensor]]:
    grads = fn.backward(ctx, grad_out)
    if isinstance(grads, Tensor) or grads is None:
        grads = (grads,)
    grads = tuple(grads)
    if len(grads) != len(ctx.inputs):
        raise RuntimeError(
            "backward_fn must return one grad per parent. "
            f"Got {len(grads)} grads for {len(ctx.inputs)} parents."
        )
    return grads


def _recording_graph_ids(inputs: Sequence[Tensor]) -> List[GraphId]:
    graph_ids: List[GraphId] = []
    for x in inputs:
        for gid in get_array_body(x).graph_ids():
            if gid not in graph_ids and is_backprop_required(gid):
                graph_ids.append(gid)
    return graph_ids


def apply_function(fn: Type[Function], *inputs: Tensor, **meta) -> Tensor:
    """
    Apply a differentiable function to tensors.

    Parameters
    ----------
    fn : Type[Function]
        Function class providing `forward` and `backward`.
    *inputs : Tensor
        Input tensors.
    **meta
        Metadata stored in `ctx.saved_meta` before `forward` runs.

    Returns
    -------
    Tensor
        Output tensor, attached to every recording graph its inputs are
        tracked under.

    Raises
    ------
    TypeError
        If an input is not a Tensor.
    """
    for x in inputs:
        if not isinstance(x, Tensor):
            raise TypeError(f"{function_name(fn)} expects Tensor inputs, got {type(x)!r}")

    ctx = Context(inputs=tuple(inputs), saved_meta=dict(meta))
    out = Tensor._from_array(np.asarray(fn.forward(ctx, *(x.to_numpy() for x in inputs))))

    out_body = get_array_body(out)
    for gid in _recording_graph_ids(inputs):
        parents = tuple(get_array_body(x).get_array_node(gid) for x in inputs)
        rank = 1 + max(p.rank for p in parents if p is not None)
        op_node = OpNode(
            name=function_name(fn),
            graph_id=gid,
            parents=parents,
            backward_fn=partial(_run_backward, fn, ctx),
            rank=rank,
        )
        out_body.create_array_node(gid, creator=op_node)
    return out
