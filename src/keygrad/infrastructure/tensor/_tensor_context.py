from typing import Any, Sequence
from dataclasses import dataclass, field

from ...domain._tensor import ITensor


@dataclass
class Context:
    """
    Per-invocation context of a differentiable function.

    A `Context` records the information a `Function.backward` rule needs to
    compute input gradients.

    Attributes
    ----------
    inputs : Sequence[Tensor]
        The input tensor handles of the invocation, in order. Backward rules
        should build gradients from these handles (not from raw arrays) so
        that double backprop can differentiate through them.
    saved_meta : dict[str, Any]
        Non-tensor metadata required for backward (e.g., shapes, axes).

    Notes
    -----
    The output of the invocation is never stored on the context, so no
    reference cycle forms through the graph.
    """

    inputs: Sequence["ITensor"]
    saved_meta: dict[str, Any] = field(default_factory=dict)
