"""
First-order gradient check.

`check_backward` is the public entry point. It runs two checks, each inside
its own leak detection scope:

1. `check_double_backprop_option`: the double-backprop toggle really
   controls whether gradients stay connected to the graph.
2. `check_backward_computation`: gradients computed by the backward pass
   agree with central-difference estimates.

Everything a check allocates must be released by the time its scope closes;
otherwise the check fails with an `ArrayBodyLeakError`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

from ...domain._errors import GradientCheckError, GradientCheckPreconditionError
from ...domain._graph import DoubleBackpropOption, GraphId, resolve_graph_id
from ..numeric import all_close, calculate_numerical_gradient
from ..tensor import Tensor
from ._backward_gradients import backward_gradients
from ._common import (
    check_numerical_gradient_contract,
    resolve_eps,
    resolve_tolerances,
    run_in_leak_scope,
)
from ._config import GradientCheckConfig
from ._double_backprop_option import check_double_backprop_option
from ._isolation import disconnect_input_arrays
from ._report import format_numerical_error_report

logger = logging.getLogger(__name__)

ForwardFn = Callable[[List[Tensor]], Any]


def check_backward_computation(
    func: ForwardFn,
    inputs: Sequence[Tensor],
    grad_outputs: Sequence[Tensor],
    eps: Sequence[Any],
    atol: float,
    rtol: float,
    graph_id: GraphId,
) -> None:
    """
    Compare backward gradients of `func` with numerical gradients.

    Inputs that are not tracked under `graph_id` produce no backward
    gradient and are skipped.

    Raises
    ------
    GradientCheckError
        If a backward gradient has the wrong shape or dtype, or if any
        backward gradient is not close to its numerical estimate. All
        mismatching indices are reported together.
    """
    inputs = list(inputs)
    backward_grads = backward_gradients(
        func,
        disconnect_input_arrays(inputs),
        grad_outputs,
        graph_id,
        DoubleBackpropOption.DISABLE,
    )
    if len(backward_grads) != len(inputs):
        raise GradientCheckError("Number of input gradients does not match the input arrays.")

    for i, (g, x) in enumerate(zip(backward_grads, inputs)):
        if g is None:
            continue
        if g.shape != x.shape:
            raise GradientCheckError(
                f"Shape of input gradient {i} of {len(inputs)} {g.shape} does not match "
                f"the corresponding input shape {x.shape}."
            )
        if g.dtype != x.dtype:
            raise GradientCheckError(
                f"Dtype of input gradient {i} of {len(inputs)} {g.dtype} does not match "
                f"the corresponding input dtype {x.dtype}."
            )

    numerical_grads = calculate_numerical_gradient(func, inputs, grad_outputs, eps)
    check_numerical_gradient_contract(numerical_grads, inputs)

    failed = [
        i
        for i, g in enumerate(backward_grads)
        if g is not None and not all_close(g, numerical_grads[i], atol, rtol)
    ]
    if failed:
        raise GradientCheckError(
            format_numerical_error_report(
                "Numerical error in backward",
                len(inputs),
                failed,
                graph_id,
                atol,
                rtol,
                backward_grads,
                numerical_grads,
                eps,
            )
        )


def check_backward(
    func: ForwardFn,
    inputs: Sequence[Tensor],
    grad_outputs: Sequence[Tensor],
    eps: Optional[Sequence[Any]] = None,
    atol: Optional[float] = None,
    rtol: Optional[float] = None,
    graph_id: Optional[GraphId] = None,
    *,
    config: Optional[GradientCheckConfig] = None,
) -> None:
    """
    Check the first-order backward pass of `func`.

    Parameters
    ----------
    func : Callable[[list[Tensor]], Tensor | Sequence[Tensor]]
        Forward function under test.
    inputs : Sequence[Tensor]
        Points to check at. Only their data and the set of graphs they are
        tracked under are used; they are never modified.
    grad_outputs : Sequence[Tensor]
        Output gradients, one per output of `func`.
    eps : Optional[Sequence[float | np.ndarray | Tensor]], optional
        Perturbation per input. Defaults to `config.eps` for every input.
    atol, rtol : Optional[float], optional
        Tolerances of the comparison. Default to the config values.
    graph_id : Optional[GraphId], optional
        Graph to check. Defaults to the default graph.
    config : Optional[GradientCheckConfig], optional
        Defaults. When omitted, read from the environment.

    Raises
    ------
    GradientCheckError
        If the function under test fails a check (including leaks).
    GradientCheckPreconditionError
        If the check is set up incorrectly, including a negative tolerance
        or a non-positive eps. Raised before `func` is ever called.
    """
    config = GradientCheckConfig.from_env() if config is None else config
    inputs = list(inputs)
    if not inputs:
        raise GradientCheckPreconditionError("check_backward requires at least one input.")
    eps = resolve_eps(eps, len(inputs), config, "inputs")
    atol, rtol = resolve_tolerances(atol, rtol, config)
    gid = resolve_graph_id(graph_id)

    logger.debug(
        "check_backward: %d inputs on graph '%s' (atol=%g, rtol=%g).",
        len(inputs),
        gid,
        atol,
        rtol,
    )
    run_in_leak_scope(
        lambda: check_double_backprop_option(func, inputs, gid),
        config.detect_leaks,
    )
    run_in_leak_scope(
        lambda: check_backward_computation(func, inputs, grad_outputs, eps, atol, rtol, gid),
        config.detect_leaks,
    )
