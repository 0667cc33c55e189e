"""
Verification of the double-backprop toggle.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Sequence

from ...domain._errors import GradientCheckError
from ...domain._graph import DoubleBackpropOption, GraphId
from ..numeric import as_output_list
from ..tensor import Tensor
from ._backward_gradients import backward_gradients
from ._isolation import disconnect_input_arrays

logger = logging.getLogger(__name__)


def check_double_backprop_option(
    func: Callable[[List[Tensor]], Any],
    inputs: Sequence[Tensor],
    graph_id: GraphId,
) -> None:
    """
    Check that the double-backprop option controls gradient connectivity.

    The outputs of `func` are squared first, so that the gradients depend
    on the forward values even when the backward rule of `func` is linear;
    a linear rule would otherwise hide a toggle that does nothing.

    - With double backprop disabled, no gradient may be tracked under
      `graph_id`.
    - With it enabled, every gradient must be tracked under `graph_id`.

    Both runs use freshly isolated inputs and default seeds. All violations
    of both runs are reported together.

    Raises
    ------
    GradientCheckError
        If any gradient violates the rule of its run.
    GradientCheckPreconditionError
        If `backward_gradients` rejects the inputs or outputs.
    """

    def nonlinear_func(func_inputs: List[Tensor]) -> List[Tensor]:
        return [y * y for y in as_output_list(func(func_inputs))]

    failures: List[str] = []

    logger.debug("Checking double backprop disabled on graph '%s'.", graph_id)
    grads = backward_gradients(
        nonlinear_func,
        disconnect_input_arrays(inputs),
        None,
        graph_id,
        DoubleBackpropOption.DISABLE,
    )
    for i, g in enumerate(grads):
        if g is not None and g.is_grad_required(graph_id):
            failures.append(
                f"Gradient {i} / {len(grads)} is connected to the graph '{graph_id}' "
                "even when double-backprop is disabled."
            )

    logger.debug("Checking double backprop enabled on graph '%s'.", graph_id)
    grads = backward_gradients(
        nonlinear_func,
        disconnect_input_arrays(inputs),
        None,
        graph_id,
        DoubleBackpropOption.ENABLE,
    )
    for i, g in enumerate(grads):
        if g is not None and not g.is_grad_required(graph_id):
            failures.append(
                f"Gradient {i} / {len(grads)} is not connected to the graph '{graph_id}' "
                "even when double-backprop is enabled."
            )

    if failures:
        raise GradientCheckError("\n".join(failures))
