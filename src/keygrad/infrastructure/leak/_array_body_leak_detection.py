"""
Leak detection for array bodies.

Every `ArrayBody` reports itself to the tracker that is active in the
current execution context when it is created. After the scope closes, the
tracker can tell which of those bodies are still alive. A surviving body
means some graph node (or a user function) kept a reference it should have
dropped.

Design notes
------------
- The active tracker lives in a `contextvars.ContextVar`, not in a module
  global, so independent threads each see their own (or no) tracker.
- The tracker only holds weak references; it never extends the lifetime of
  what it observes. A reference is dropped as soon as its body dies, so a
  long check keeps only the still-alive bodies in memory.
- Double backprop legitimately creates reference cycles (a gradient stored
  on a leaf can reference that leaf through its own graph). Survivors are
  therefore determined after a full `gc.collect()`: only bodies that are
  still reachable count as leaks.
"""

from __future__ import annotations

import gc
import io
import itertools
import logging
import sys
import weakref
from contextvars import ContextVar, Token
from typing import TYPE_CHECKING, Dict, List, Optional, TextIO

from ...domain._errors import ArrayBodyLeakError, LeakDetectionScopeError

if TYPE_CHECKING:
    from ..tensor._array_body import ArrayBody

logger = logging.getLogger(__name__)

_active_tracker: ContextVar[Optional["ArrayBodyLeakTracker"]] = ContextVar(
    "keygrad_active_array_body_leak_tracker", default=None
)


class ArrayBodyLeakTracker:
    """
    Registry of array bodies allocated while the tracker was active.

    Notes
    -----
    A tracker is activated with `ArrayBodyLeakDetectionScope`. It may be
    queried at any time, but a meaningful answer is only available once the
    scope has closed and the checked code has released its references.
    """

    def __init__(self) -> None:
        self._refs: Dict[int, weakref.ref] = {}
        self._serial = itertools.count()
        self._allocations = 0

    def __len__(self) -> int:
        """Number of array bodies recorded since the tracker was created."""
        return self._allocations

    @property
    def num_watched(self) -> int:
        """Number of recorded array bodies that have not been released yet."""
        return len(self._refs)

    def track(self, body: "ArrayBody") -> None:
        """
        Record a newly allocated array body.

        Parameters
        ----------
        body : ArrayBody
            The body to observe.
        """
        key = next(self._serial)
        refs = self._refs

        def forget(_ref: weakref.ref) -> None:
            refs.pop(key, None)

        refs[key] = weakref.ref(body, forget)
        self._allocations += 1

    def get_alive_array_bodies(self) -> List["ArrayBody"]:
        """
        Return the tracked array bodies that are still alive.

        Returns
        -------
        list[ArrayBody]
            Surviving bodies, in allocation order.
        """
        gc.collect()
        alive = []
        for ref in list(self._refs.values()):
            body = ref()
            if body is not None:
                alive.append(body)
        return alive

    def is_all_array_bodies_freed(self, os: TextIO) -> bool:
        """
        Check that every tracked array body has been released.

        Parameters
        ----------
        os : TextIO
            Stream the leak report is written to when survivors exist.

        Returns
        -------
        bool
            True if no tracked body is alive.
        """
        alive = self.get_alive_array_bodies()
        if not alive:
            return True

        os.write("Some array bodies are not freed.\n")
        os.write(f"Number of alive array bodies: {len(alive)}\n")
        for body in alive:
            # discount the references held by this loop and by getrefcount
            refs = sys.getrefcount(body) - 3
            os.write(f"- Unreleased array body: {body!r} (references: {refs})\n")
        return False


class ArrayBodyLeakDetectionScope:
    """
    Context manager activating an `ArrayBodyLeakTracker`.

    On entry, every array body created in the current execution context is
    recorded by `tracker`. On exit (including exceptional exits), recording
    stops. Scopes cannot be nested.

    Parameters
    ----------
    tracker : ArrayBodyLeakTracker
        Tracker receiving the allocations.

    Raises
    ------
    LeakDetectionScopeError
        If another leak detection scope is already active.
    """

    def __init__(self, tracker: ArrayBodyLeakTracker) -> None:
        self._tracker = tracker
        self._token: Optional[Token] = None

    def __enter__(self) -> ArrayBodyLeakTracker:
        if _active_tracker.get() is not None:
            raise LeakDetectionScopeError(
                "Leak detection scope cannot be nested inside another one."
            )
        self._token = _active_tracker.set(self._tracker)
        logger.debug("Array body leak detection started.")
        return self._tracker

    def __exit__(self, exc_type, exc, tb) -> None:
        _active_tracker.reset(self._token)
        self._token = None
        logger.debug(
            "Array body leak detection stopped after %d allocations.",
            len(self._tracker),
        )


def track_array_body(body: "ArrayBody") -> None:
    """
    Report a new array body to the active tracker, if any.

    Called by `ArrayBody.__init__`; a no-op outside leak detection scopes.
    """
    tracker = _active_tracker.get()
    if tracker is not None:
        tracker.track(body)


def check_all_array_bodies_freed(tracker: ArrayBodyLeakTracker) -> None:
    """
    Assert that every array body recorded by `tracker` has been released.

    Parameters
    ----------
    tracker : ArrayBodyLeakTracker
        Tracker of a closed leak detection scope.

    Raises
    ------
    ArrayBodyLeakError
        If any tracked body is still alive. The message names each survivor.
    """
    os = io.StringIO()
    if not tracker.is_all_array_bodies_freed(os):
        alive_count = len(tracker.get_alive_array_bodies())
        raise ArrayBodyLeakError(os.getvalue(), alive_count)
