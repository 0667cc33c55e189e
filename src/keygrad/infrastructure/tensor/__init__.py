from ._array_body import ArrayBody, GraphSlot
from ._array_node import ArrayNode, OpNode
from ._tensor import Tensor, get_array_body
from ._tensor_context import Context

__all__ = [
    ArrayBody.__name__,
    ArrayNode.__name__,
    Context.__name__,
    GraphSlot.__name__,
    OpNode.__name__,
    Tensor.__name__,
    get_array_body.__name__,
]
