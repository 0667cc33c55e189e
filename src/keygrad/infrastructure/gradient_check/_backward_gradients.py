"""
Backward gradient extraction: the primitive shared by every check.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

from ...domain._errors import GradientCheckPreconditionError
from ...domain._graph import DoubleBackpropOption, GraphId
from ..autograd import backward
from ..numeric import as_output_list
from ..tensor import Tensor, get_array_body

logger = logging.getLogger(__name__)

ForwardFn = Callable[[List[Tensor]], Any]


def backward_gradients(
    func: ForwardFn,
    inputs: List[Tensor],
    grad_outputs: Optional[Sequence[Tensor]],
    graph_id: GraphId,
    double_backprop: DoubleBackpropOption = DoubleBackpropOption.ENABLE,
) -> List[Optional[Tensor]]:
    """
    Run `func` once and backpropagate to obtain input gradients.

    Parameters
    ----------
    func : Callable[[list[Tensor]], Sequence[Tensor]]
        Forward function.
    inputs : list[Tensor]
        Inputs to `func`. Their gradient slots under `graph_id` are cleared
        and then filled by the backward pass.
    grad_outputs : Optional[Sequence[Tensor]]
        Seed gradients, one per output. None leaves seeding to the backward
        engine (ones).
    graph_id : GraphId
        Graph to differentiate on.
    double_backprop : DoubleBackpropOption, optional
        Whether the gradients stay connected to the graph.

    Returns
    -------
    list[Optional[Tensor]]
        One gradient per input, in input order. None for inputs that are not
        tracked under `graph_id`.

    Raises
    ------
    GradientCheckPreconditionError
        If an input is not a leaf, if an output is one of the inputs, or if
        the number of seed gradients differs from the number of outputs.
    """
    for i, x in enumerate(inputs):
        if not x.is_leaf(graph_id):
            raise GradientCheckPreconditionError(
                f"BackwardGradients: All inputs must be leaf nodes of computational graph "
                f"(input {i} has a producing operation on graph '{graph_id}')."
            )

    outputs = as_output_list(func(inputs))

    for i, x in enumerate(inputs):
        for j, y in enumerate(outputs):
            if get_array_body(x) is get_array_body(y) and x.is_grad_required(graph_id):
                raise GradientCheckPreconditionError(
                    f"BackwardGradients: Input {i} and output {j} of the forward "
                    "function are identical."
                )

    if grad_outputs is not None:
        if len(outputs) != len(grad_outputs):
            raise GradientCheckPreconditionError(
                f"BackwardGradients: Size of function outputs: {len(outputs)} and size "
                f"of grad outputs: {len(grad_outputs)} must be same"
            )
        for y, gy in zip(outputs, grad_outputs):
            if y.is_grad_required(graph_id):
                y.set_grad(gy, graph_id)

    # func may have called backward on its own
    for x in inputs:
        if x.is_grad_required(graph_id):
            x.clear_grad(graph_id)

    outputs_requiring_grad = [y for y in outputs if y.is_grad_required(graph_id)]
    logger.debug(
        "Backpropagating %d of %d outputs on graph '%s' (double backprop %s).",
        len(outputs_requiring_grad),
        len(outputs),
        graph_id,
        double_backprop.value,
    )
    backward(outputs_requiring_grad, graph_id, double_backprop)

    return [x.get_grad(graph_id) if x.is_grad_required(graph_id) else None for x in inputs]
