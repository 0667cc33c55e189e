"""
Autograd engine: backprop mode scopes and the backward pass.
"""

from ._backprop_mode import (
    NoBackpropModeScope,
    ForceBackpropModeScope,
    is_backprop_required,
)
from ._backward import backward

__all__ = [
    NoBackpropModeScope.__name__,
    ForceBackpropModeScope.__name__,
    is_backprop_required.__name__,
    backward.__name__,
]
