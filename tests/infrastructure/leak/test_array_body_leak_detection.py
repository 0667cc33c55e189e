import gc
import io
import threading
import unittest

import numpy as np

from keygrad.domain._errors import ArrayBodyLeakError, LeakDetectionScopeError
from keygrad.domain._graph import DoubleBackpropOption
from keygrad.infrastructure.leak import (
    ArrayBodyLeakDetectionScope,
    ArrayBodyLeakTracker,
    check_all_array_bodies_freed,
)
from keygrad.infrastructure.tensor import Tensor


def _allocate_and_drop(n: int) -> None:
    for i in range(n):
        t = Tensor.from_numpy(np.full((2,), float(i)))
        del t


def _double_backprop_round_trip() -> None:
    x = Tensor.from_numpy(np.array([1.5, 2.0]), requires_grad=True)
    y = x * x * x
    y.backward(double_backprop=DoubleBackpropOption.ENABLE)
    g = x.grad
    x.clear_grad()
    g.backward()


class TestArrayBodyLeakTracker(unittest.TestCase):
    def test_freed_bodies_pass(self) -> None:
        tracker = ArrayBodyLeakTracker()
        with ArrayBodyLeakDetectionScope(tracker):
            _allocate_and_drop(5)
        self.assertEqual(len(tracker), 5)
        self.assertEqual(tracker.get_alive_array_bodies(), [])
        check_all_array_bodies_freed(tracker)

    def test_retained_body_is_reported(self) -> None:
        tracker = ArrayBodyLeakTracker()
        kept = []
        with ArrayBodyLeakDetectionScope(tracker):
            kept.append(Tensor.from_numpy(np.zeros(3)))
            _allocate_and_drop(2)

        with self.assertRaises(ArrayBodyLeakError) as cm:
            check_all_array_bodies_freed(tracker)
        self.assertEqual(cm.exception.alive_count, 1)
        message = str(cm.exception)
        self.assertIn("Some array bodies are not freed.", message)
        self.assertIn("Number of alive array bodies: 1", message)
        self.assertIn("Unreleased array body: ArrayBody(", message)

        kept.clear()
        check_all_array_bodies_freed(tracker)

    def test_report_is_written_to_stream(self) -> None:
        tracker = ArrayBodyLeakTracker()
        with ArrayBodyLeakDetectionScope(tracker):
            kept = Tensor.from_numpy(np.zeros(1))
        os = io.StringIO()
        self.assertFalse(tracker.is_all_array_bodies_freed(os))
        self.assertIn("shape=(1,)", os.getvalue())
        del kept
        self.assertTrue(tracker.is_all_array_bodies_freed(io.StringIO()))

    def test_bodies_outside_scope_are_not_tracked(self) -> None:
        tracker = ArrayBodyLeakTracker()
        outside = Tensor.from_numpy(np.zeros(1))
        with ArrayBodyLeakDetectionScope(tracker):
            pass
        after = Tensor.from_numpy(np.zeros(1))
        self.assertEqual(len(tracker), 0)
        check_all_array_bodies_freed(tracker)
        del outside, after

    def test_reference_cycles_from_double_backprop_are_collected(self) -> None:
        tracker = ArrayBodyLeakTracker()
        with ArrayBodyLeakDetectionScope(tracker):
            _double_backprop_round_trip()
        self.assertGreater(len(tracker), 0)
        check_all_array_bodies_freed(tracker)

    def test_released_bodies_are_forgotten(self) -> None:
        tracker = ArrayBodyLeakTracker()
        kept = []
        with ArrayBodyLeakDetectionScope(tracker):
            _allocate_and_drop(200)
            kept.append(Tensor.from_numpy(np.zeros(2)))
            gc.collect()
            self.assertEqual(tracker.num_watched, 1)
        self.assertEqual(len(tracker), 201)
        self.assertEqual(len(tracker.get_alive_array_bodies()), 1)
        kept.clear()
        gc.collect()
        self.assertEqual(tracker.num_watched, 0)


class TestArrayBodyLeakDetectionScope(unittest.TestCase):
    def test_nesting_is_rejected(self) -> None:
        with ArrayBodyLeakDetectionScope(ArrayBodyLeakTracker()):
            with self.assertRaises(LeakDetectionScopeError):
                with ArrayBodyLeakDetectionScope(ArrayBodyLeakTracker()):
                    pass

    def test_scope_is_closed_after_exception(self) -> None:
        tracker = ArrayBodyLeakTracker()
        with self.assertRaises(RuntimeError):
            with ArrayBodyLeakDetectionScope(tracker):
                raise RuntimeError("boom")
        with ArrayBodyLeakDetectionScope(ArrayBodyLeakTracker()):
            pass

    def test_scope_yields_tracker(self) -> None:
        tracker = ArrayBodyLeakTracker()
        with ArrayBodyLeakDetectionScope(tracker) as active:
            self.assertIs(active, tracker)

    def test_allocations_in_other_threads_are_not_tracked(self) -> None:
        tracker = ArrayBodyLeakTracker()
        kept = []

        def allocate() -> None:
            kept.append(Tensor.from_numpy(np.zeros(2)))

        with ArrayBodyLeakDetectionScope(tracker):
            worker = threading.Thread(target=allocate)
            worker.start()
            worker.join()
        self.assertEqual(len(kept), 1)
        self.assertEqual(len(tracker), 0)
        check_all_array_bodies_freed(tracker)

    def test_scope_in_other_thread_does_not_nest(self) -> None:
        errors = []

        def open_scope() -> None:
            try:
                with ArrayBodyLeakDetectionScope(ArrayBodyLeakTracker()):
                    pass
            except LeakDetectionScopeError as e:
                errors.append(e)

        with ArrayBodyLeakDetectionScope(ArrayBodyLeakTracker()):
            worker = threading.Thread(target=open_scope)
            worker.start()
            worker.join()
        self.assertEqual(errors, [])


if __name__ == "__main__":
    unittest.main()
