"""
Backprop mode scopes.

Backprop mode decides whether differentiable operations record graph nodes
for a given graph. By default every graph records. The scopes defined here
push an override onto a per-context stack:

- `NoBackpropModeScope` stops recording, for all graphs or for a given set.
- `ForceBackpropModeScope` re-enables recording inside an enclosing
  `NoBackpropModeScope`, for all graphs or for a given set.

The innermost scope that mentions a graph decides for that graph.

The stack lives in a `contextvars.ContextVar`, so it is private to the
current thread (or asyncio task) and never leaks across concurrent checks.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from ...domain._graph import GraphId, resolve_graph_id


@dataclass(frozen=True)
class _BackpropModeEntry:
    graph_ids: Optional[frozenset]
    enabled: bool

    def covers(self, graph_id: GraphId) -> bool:
        return self.graph_ids is None or graph_id in self.graph_ids


_mode_stack: ContextVar[Tuple[_BackpropModeEntry, ...]] = ContextVar(
    "keygrad_backprop_mode_stack", default=()
)


class _BackpropModeScope:
    """
    Base context manager pushing one backprop mode entry.

    Parameters
    ----------
    graph_ids : Optional[Iterable[GraphId] | GraphId]
        Graphs the entry applies to. None applies to every graph.
    """

    _enabled: bool = True

    def __init__(self, graph_ids: Optional[Iterable[GraphId] | GraphId] = None) -> None:
        if isinstance(graph_ids, GraphId):
            graph_ids = (graph_ids,)
        self._entry = _BackpropModeEntry(
            graph_ids=None if graph_ids is None else frozenset(graph_ids),
            enabled=self._enabled,
        )
        self._token: Optional[Token] = None

    def __enter__(self) -> "_BackpropModeScope":
        self._token = _mode_stack.set(_mode_stack.get() + (self._entry,))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        _mode_stack.reset(self._token)
        self._token = None


class NoBackpropModeScope(_BackpropModeScope):
    """
    Disable graph recording for the given graphs (all graphs by default).
    """

    _enabled = False


class ForceBackpropModeScope(_BackpropModeScope):
    """
    Enable graph recording for the given graphs (all graphs by default),
    overriding any enclosing `NoBackpropModeScope`.
    """

    _enabled = True


def is_backprop_required(graph_id: Optional[GraphId] = None) -> bool:
    """
    Return True if operations currently record nodes for `graph_id`.

    Parameters
    ----------
    graph_id : Optional[GraphId]
        Graph to query. Defaults to the default graph.
    """
    gid = resolve_graph_id(graph_id)
    for entry in reversed(_mode_stack.get()):
        if entry.covers(gid):
            return entry.enabled
    return True
