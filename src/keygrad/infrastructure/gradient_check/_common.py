"""
Helpers shared by the first- and second-order gradient checks.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from ...domain._errors import GradientCheckPreconditionError, NumericalGradientContractError
from ..leak import (
    ArrayBodyLeakDetectionScope,
    ArrayBodyLeakTracker,
    check_all_array_bodies_freed,
)
from ..tensor import Tensor
from ._config import GradientCheckConfig


def resolve_eps(
    eps: Optional[Sequence[Any]], count: int, config: GradientCheckConfig, what: str
) -> List[Any]:
    """
    Return one perturbation per checked array.

    Parameters
    ----------
    eps : Optional[Sequence[float | np.ndarray | Tensor]]
        Explicit perturbations, or None to use `config.eps` everywhere.
    count : int
        Number of checked arrays.
    config : GradientCheckConfig
        Source of the default perturbation.
    what : str
        Name of the checked arrays, used in error messages.

    Raises
    ------
    GradientCheckPreconditionError
        If the number of values does not match `count`, or if any value is
        not strictly positive.
    """
    if eps is None:
        return [config.eps] * count
    eps = list(eps)
    if len(eps) != count:
        raise GradientCheckPreconditionError(
            f"Number of eps values ({len(eps)}) does not match the number of {what} ({count})."
        )
    for i, e in enumerate(eps):
        values = e.to_numpy() if isinstance(e, Tensor) else np.asarray(e, dtype=np.float64)
        # NaN fails the comparison as well
        if not np.all(values > 0):
            raise GradientCheckPreconditionError(
                f"eps[{i}] must be positive, got {values}."
            )
    return eps


def resolve_tolerances(
    atol: Optional[float], rtol: Optional[float], config: GradientCheckConfig
) -> Tuple[float, float]:
    """
    Merge explicit tolerances with the config defaults.

    Raises
    ------
    GradientCheckPreconditionError
        If an explicit tolerance is negative.
    """
    atol = config.atol if atol is None else atol
    rtol = config.rtol if rtol is None else rtol
    if not atol >= 0:
        raise GradientCheckPreconditionError(f"atol must be non-negative, got {atol}.")
    if not rtol >= 0:
        raise GradientCheckPreconditionError(f"rtol must be non-negative, got {rtol}.")
    return atol, rtol


def check_numerical_gradient_contract(
    numerical_grads: Sequence[Tensor], inputs: Sequence[Tensor]
) -> None:
    # If you're trapped here, numerical gradients must be implemented incorrectly.
    if len(numerical_grads) != len(inputs):
        raise NumericalGradientContractError(
            f"Numerical gradient returned {len(numerical_grads)} gradients "
            f"for {len(inputs)} inputs."
        )
    for i, (g, x) in enumerate(zip(numerical_grads, inputs)):
        if g.shape != x.shape or g.dtype != x.dtype:
            raise NumericalGradientContractError(
                f"Numerical gradient {i} has shape {g.shape} and dtype {g.dtype}, "
                f"expected {x.shape} and {x.dtype}."
            )


def run_in_leak_scope(check: Callable[[], None], detect_leaks: bool) -> None:
    """
    Run `check` inside its own leak detection scope.

    With `detect_leaks` off, `check` runs without a scope.
    """
    if not detect_leaks:
        check()
        return
    tracker = ArrayBodyLeakTracker()
    with ArrayBodyLeakDetectionScope(tracker):
        check()
    check_all_array_bodies_freed(tracker)
