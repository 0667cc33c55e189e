"""
KeyGrad: a NumPy reverse-mode autodiff engine with multi-graph tracking and
a gradient-check harness.

Typical use in a test::

    import numpy as np
    import keygrad as kg

    x = kg.Tensor.from_numpy(np.array([1.0, 2.0]), requires_grad=True)
    gy = kg.Tensor.from_numpy(np.array([1.0, 1.0]))
    kg.check_backward(lambda xs: xs[0] * xs[0], [x], [gy])
"""

from .domain._errors import (
    KeyGradError,
    GradientCheckError,
    GradientCheckPreconditionError,
    ArrayBodyLeakError,
    LeakDetectionScopeError,
    NumericalGradientContractError,
)
from .domain._function import Function
from .domain._graph import (
    DEFAULT_GRAPH_ID,
    DoubleBackpropOption,
    GraphId,
    new_graph_id,
)
from .domain._tensor import ITensor
from .infrastructure.tensor import Context, Tensor
from .infrastructure.functions import apply_function
from .infrastructure.autograd import (
    ForceBackpropModeScope,
    NoBackpropModeScope,
    backward,
    is_backprop_required,
)
from .infrastructure.leak import (
    ArrayBodyLeakDetectionScope,
    ArrayBodyLeakTracker,
    check_all_array_bodies_freed,
)
from .infrastructure.numeric import all_close, calculate_numerical_gradient
from .infrastructure.gradient_check import (
    GradientCheckConfig,
    check_backward,
    check_double_backward_computation,
)

__all__ = [
    "KeyGradError",
    "GradientCheckError",
    "GradientCheckPreconditionError",
    "ArrayBodyLeakError",
    "LeakDetectionScopeError",
    "NumericalGradientContractError",
    "Function",
    "DEFAULT_GRAPH_ID",
    "DoubleBackpropOption",
    "GraphId",
    "new_graph_id",
    "ITensor",
    "Context",
    "Tensor",
    "apply_function",
    "ForceBackpropModeScope",
    "NoBackpropModeScope",
    "backward",
    "is_backprop_required",
    "ArrayBodyLeakDetectionScope",
    "ArrayBodyLeakTracker",
    "check_all_array_bodies_freed",
    "all_close",
    "calculate_numerical_gradient",
    "GradientCheckConfig",
    "check_backward",
    "check_double_backward_computation",
]
