"""
Rendering of numerical-error reports.
"""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from ...domain._graph import GraphId
from ..numeric import format_array
from ..tensor import Tensor


def format_numerical_error_report(
    title: str,
    num_inputs: int,
    failed_indices: Sequence[int],
    graph_id: GraphId,
    atol: float,
    rtol: float,
    backward_grads: Sequence[Tensor],
    numerical_grads: Sequence[Tensor],
    eps: Sequence[Any],
) -> str:
    """
    Render the failure report of a numerical gradient comparison.

    The report lists the failing indices, the graph and tolerances, then for
    every failing index the absolute difference, the backward gradient, the
    numerical gradient and the perturbation used.

    Parameters
    ----------
    title : str
        First words of the report, e.g. ``"Numerical error in backward"``.
    num_inputs : int
        Total number of compared inputs.
    failed_indices : Sequence[int]
        Indices whose gradients did not match.
    graph_id : GraphId
        Graph the gradients were computed on.
    atol, rtol : float
        Tolerances used for the comparison.
    backward_grads, numerical_grads : Sequence[Tensor]
        Gradients indexed like the inputs.
    eps : Sequence
        Perturbations indexed like the inputs.
    """
    lines = [
        f"{title} on inputs (out of {num_inputs}): "
        + ", ".join(str(i) for i in failed_indices),
        f"Graph: {graph_id}",
        f"Atol: {atol}  Rtol: {rtol}",
    ]
    for i in failed_indices:
        a = backward_grads[i].to_numpy()
        n = numerical_grads[i].to_numpy()
        e = eps[i].to_numpy() if isinstance(eps[i], Tensor) else np.asarray(eps[i])
        lines.extend(
            [
                f"Error[{i}] (absolute difference):",
                format_array(np.abs(a - n)),
                f"Backward gradients[{i}]:",
                format_array(a),
                f"Numerical gradients[{i}]:",
                format_array(n),
                f"Eps[{i}] (perturbation in numerical gradients):",
                format_array(e),
            ]
        )
    return "\n".join(lines)
