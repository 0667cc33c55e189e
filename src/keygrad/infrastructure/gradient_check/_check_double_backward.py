"""
Second-order gradient check.

The first-order backward pass is itself a function: it maps the inputs and
the output gradients to the input gradients. Differentiating that function
once more yields second derivatives (Hessian-vector products w.r.t. the
inputs, Jacobian-vector products w.r.t. the output gradients). This module
checks them against central-difference estimates of the same function.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

from ...domain._errors import GradientCheckError, GradientCheckPreconditionError
from ...domain._graph import DoubleBackpropOption, GraphId, resolve_graph_id
from ..autograd import ForceBackpropModeScope
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
from ._isolation import disconnect_input_arrays
from ._report import format_numerical_error_report

logger = logging.getLogger(__name__)

ForwardFn = Callable[[List[Tensor]], Any]


def _make_first_order_grad_func(
    func: ForwardFn, nin: int, graph_id: GraphId
) -> Callable[[List[Tensor]], List[Tensor]]:
    """
    Build the function ``(inputs ++ grad_outputs) -> first-order input grads``.
    """

    def first_order_grad_func(inputs_and_grad_outputs: List[Tensor]) -> List[Tensor]:
        inputs = list(inputs_and_grad_outputs[:nin])
        grad_outputs = list(inputs_and_grad_outputs[nin:])

        with ForceBackpropModeScope(graph_id):
            for x in inputs:
                x.require_grad(graph_id)

            grads = backward_gradients(
                func, inputs, grad_outputs, graph_id, DoubleBackpropOption.ENABLE
            )

        if len(grads) != nin:
            raise GradientCheckError(
                f"Number of first-order input gradients arrays {len(grads)} do not match "
                f"the number of input arrays {nin}."
            )
        for i, g in enumerate(grads):
            if g is None:
                raise GradientCheckError(
                    f"First-order input gradient {i} / {nin} does not exist."
                )
        for i, g in enumerate(grads):
            if not g.is_grad_required(graph_id):
                raise GradientCheckError(
                    f"First-order input gradient {i} / {nin} is not differentiable "
                    f"w.r.t. the graph '{graph_id}'."
                )
        return grads

    return first_order_grad_func


def _check_double_backward_computation_impl(
    func: ForwardFn,
    inputs: Sequence[Tensor],
    grad_outputs: Sequence[Tensor],
    grad_grad_inputs: Sequence[Tensor],
    eps: Sequence[Any],
    atol: float,
    rtol: float,
    graph_id: GraphId,
) -> None:
    nin = len(inputs)
    nout = len(grad_outputs)
    first_order_grad_func = _make_first_order_grad_func(func, nin, graph_id)

    inputs_and_grad_outputs = list(inputs) + list(grad_outputs)

    numerical_grads = calculate_numerical_gradient(
        first_order_grad_func, inputs_and_grad_outputs, grad_grad_inputs, eps
    )
    check_numerical_gradient_contract(numerical_grads, inputs_and_grad_outputs)

    backward_grads = backward_gradients(
        first_order_grad_func,
        inputs_and_grad_outputs,
        grad_grad_inputs,
        graph_id,
        DoubleBackpropOption.ENABLE,
    )

    missing = [i for i, g in enumerate(backward_grads) if g is None]
    if missing:
        raise GradientCheckError(
            "\n".join(
                f"Second order gradient w.r.t. the input gradient {i} (Total inputs: {nin}, "
                f"outputs: {nout}) is missing on the graph '{graph_id}'. "
                "Maybe you need additional nonlinearity in the target function."
                for i in missing
            )
        )

    failed = [
        i
        for i, g in enumerate(backward_grads)
        if not all_close(g, numerical_grads[i], atol, rtol)
    ]
    if failed:
        raise GradientCheckError(
            format_numerical_error_report(
                "Numerical error in double backward",
                len(inputs_and_grad_outputs),
                failed,
                graph_id,
                atol,
                rtol,
                backward_grads,
                numerical_grads,
                eps,
            )
        )


def check_double_backward_computation(
    func: ForwardFn,
    inputs: Sequence[Tensor],
    grad_outputs: Sequence[Tensor],
    grad_grad_inputs: Sequence[Tensor],
    eps: Optional[Sequence[Any]] = None,
    atol: Optional[float] = None,
    rtol: Optional[float] = None,
    graph_id: Optional[GraphId] = None,
    *,
    config: Optional[GradientCheckConfig] = None,
) -> None:
    """
    Check the second-order backward pass of `func`.

    Every input and every output gradient must be tracked under the checked
    graph, since second-order differentiation flows through both.

    Parameters
    ----------
    func : Callable[[list[Tensor]], Tensor | Sequence[Tensor]]
        Forward function under test.
    inputs : Sequence[Tensor]
        Points to check at.
    grad_outputs : Sequence[Tensor]
        First-order output gradients, one per output of `func`.
    grad_grad_inputs : Sequence[Tensor]
        Seeds for the gradients of the first-order input gradients, one per
        input.
    eps : Optional[Sequence[float | np.ndarray | Tensor]], optional
        Perturbation per element of ``inputs ++ grad_outputs``. Defaults to
        `config.eps` for every element.
    atol, rtol : Optional[float], optional
        Tolerances of the comparison. Default to the config values.
    graph_id : Optional[GraphId], optional
        Graph to check. Defaults to the default graph.
    config : Optional[GradientCheckConfig], optional
        Defaults. When omitted, read from the environment.

    Raises
    ------
    GradientCheckError
        If the function under test fails the check (including leaks).
    GradientCheckPreconditionError
        If the check is set up incorrectly, including inputs or output
        gradients that are not tracked under the graph, a negative
        tolerance or a non-positive eps. Raised before `func` is ever called.
    """
    config = GradientCheckConfig.from_env() if config is None else config
    inputs = list(inputs)
    grad_outputs = list(grad_outputs)
    grad_grad_inputs = list(grad_grad_inputs)
    nin = len(inputs)
    nout = len(grad_outputs)
    gid = resolve_graph_id(graph_id)

    if not inputs:
        raise GradientCheckPreconditionError(
            "check_double_backward_computation requires at least one input."
        )
    if len(grad_grad_inputs) != nin:
        raise GradientCheckPreconditionError(
            "Number of input arrays and grad_grad_input arrays do not match."
        )
    for i, x in enumerate(inputs):
        if not x.is_grad_required(gid):
            raise GradientCheckPreconditionError(
                f"Input array {i} / {nin} is not differentiable w.r.t. the graph '{gid}'."
            )
    for i, gy in enumerate(grad_outputs):
        if not gy.is_grad_required(gid):
            raise GradientCheckPreconditionError(
                f"Output gradient array {i} / {nout} is not differentiable "
                f"w.r.t. the graph '{gid}'."
            )
    eps = resolve_eps(eps, nin + nout, config, "inputs and output gradients")
    atol, rtol = resolve_tolerances(atol, rtol, config)

    logger.debug(
        "check_double_backward_computation: %d inputs, %d outputs on graph '%s' "
        "(atol=%g, rtol=%g).",
        nin,
        nout,
        gid,
        atol,
        rtol,
    )
    run_in_leak_scope(
        lambda: _check_double_backward_computation_impl(
            func,
            disconnect_input_arrays(inputs),
            disconnect_input_arrays(grad_outputs),
            grad_grad_inputs,
            eps,
            atol,
            rtol,
            gid,
        ),
        config.detect_leaks,
    )
