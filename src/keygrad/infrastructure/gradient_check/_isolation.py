"""
Graph isolation of check inputs.
"""

from __future__ import annotations

from typing import List, Sequence

from ..tensor import Tensor


def disconnect_input_arrays(inputs: Sequence[Tensor]) -> List[Tensor]:
    """
    Return leaf views of `inputs` that share data but not graph history.

    Each returned tensor shares its input's buffer and is required-grad on
    exactly the graphs the input is tracked under, as a fresh leaf. Graph
    nodes created while a check runs on these views therefore never reach
    the caller's tensors, which would otherwise both corrupt the caller's
    graph and escape the leak tracker.

    Parameters
    ----------
    inputs : Sequence[Tensor]
        Original tensors. Not modified.

    Returns
    -------
    list[Tensor]
        One isolated view per input.
    """
    views = []
    for x in inputs:
        view = x.as_grad_stopped()
        for graph_id in x.graph_ids():
            view.require_grad(graph_id)
        views.append(view)
    return views
