"""
Array body leak detection.

Exports the tracker, the scope that activates it and the assertion helper
used at the end of every gradient check.
"""

from ._array_body_leak_detection import (
    ArrayBodyLeakTracker,
    ArrayBodyLeakDetectionScope,
    check_all_array_bodies_freed,
    track_array_body,
)

__all__ = [
    ArrayBodyLeakTracker.__name__,
    ArrayBodyLeakDetectionScope.__name__,
    check_all_array_bodies_freed.__name__,
    track_array_body.__name__,
]
