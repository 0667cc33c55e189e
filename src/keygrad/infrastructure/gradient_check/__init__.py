"""
Gradient checks for differentiable functions.

`check_backward` verifies first-order gradients and the double-backprop
toggle; `check_double_backward_computation` verifies second-order gradients.
Both isolate their inputs from the caller's graph and assert that every
array body they allocate is released.
"""

from ._config import GradientCheckConfig
from ._isolation import disconnect_input_arrays
from ._backward_gradients import backward_gradients
from ._double_backprop_option import check_double_backprop_option
from ._check_backward import check_backward, check_backward_computation
from ._check_double_backward import check_double_backward_computation

__all__ = [
    GradientCheckConfig.__name__,
    disconnect_input_arrays.__name__,
    backward_gradients.__name__,
    check_double_backprop_option.__name__,
    check_backward.__name__,
    check_backward_computation.__name__,
    check_double_backward_computation.__name__,
]
