"""
Graph identifiers and double-backprop options.

A `GraphId` is an opaque token partitioning the differentiation state of
tensors. A tensor may be tracked under several graphs at the same time,
each with its own node, gradient slot and leaf status, which is what makes
nested (higher-order) differentiation possible.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


_serials = itertools.count(1)


@dataclass(frozen=True)
class GraphId:
    """
    Opaque token identifying one independent differentiation context.

    Attributes
    ----------
    name : str
        Human-readable name used in diagnostics.
    serial : int
        Unique serial number. Two graph ids compare equal only if both
        their name and serial match.
    """

    name: str
    serial: int = field(default_factory=lambda: next(_serials))

    def __str__(self) -> str:
        return self.name


DEFAULT_GRAPH_ID = GraphId("default", 0)
"""Graph used whenever no graph id is given explicitly."""


def new_graph_id(name: str) -> GraphId:
    """
    Create a fresh graph id that is distinct from every other graph id.

    Parameters
    ----------
    name : str
        Human-readable name of the graph.

    Returns
    -------
    GraphId
        A new graph identifier.
    """
    return GraphId(name)


def resolve_graph_id(graph_id: Optional[GraphId]) -> GraphId:
    """Return `graph_id`, or the default graph id if it is None."""
    return DEFAULT_GRAPH_ID if graph_id is None else graph_id


class DoubleBackpropOption(Enum):
    """
    Whether gradients computed by a backward pass remain tracked under the
    graph they were computed for.

    Attributes
    ----------
    DISABLE : DoubleBackpropOption
        Gradients are detached from the graph.
    ENABLE : DoubleBackpropOption
        Gradients are themselves differentiable under the same graph.
    """

    DISABLE = "disable"
    ENABLE = "enable"
