import threading
import unittest

import numpy as np

from keygrad.domain._graph import DEFAULT_GRAPH_ID, new_graph_id
from keygrad.infrastructure.autograd import (
    ForceBackpropModeScope,
    NoBackpropModeScope,
    is_backprop_required,
)
from keygrad.infrastructure.tensor import Tensor


class TestBackpropMode(unittest.TestCase):
    def test_required_by_default(self) -> None:
        self.assertTrue(is_backprop_required())
        self.assertTrue(is_backprop_required(new_graph_id("g")))

    def test_no_backprop_for_all_graphs(self) -> None:
        g = new_graph_id("g")
        with NoBackpropModeScope():
            self.assertFalse(is_backprop_required())
            self.assertFalse(is_backprop_required(g))
        self.assertTrue(is_backprop_required())

    def test_no_backprop_for_one_graph(self) -> None:
        g = new_graph_id("g")
        with NoBackpropModeScope(g):
            self.assertFalse(is_backprop_required(g))
            self.assertTrue(is_backprop_required(DEFAULT_GRAPH_ID))

    def test_force_overrides_enclosing_no_backprop(self) -> None:
        g1 = new_graph_id("g1")
        g2 = new_graph_id("g2")
        with NoBackpropModeScope():
            with ForceBackpropModeScope(g1):
                self.assertTrue(is_backprop_required(g1))
                self.assertFalse(is_backprop_required(g2))
                with NoBackpropModeScope([g1, g2]):
                    self.assertFalse(is_backprop_required(g1))
                self.assertTrue(is_backprop_required(g1))
            self.assertFalse(is_backprop_required(g1))

    def test_scope_is_restored_after_exception(self) -> None:
        with self.assertRaises(KeyError):
            with NoBackpropModeScope():
                raise KeyError("boom")
        self.assertTrue(is_backprop_required())

    def test_operations_do_not_record_inside_scope(self) -> None:
        g = new_graph_id("g")
        x = Tensor.from_numpy(np.array([1.0]), requires_grad=True)
        x.require_grad(g)
        with NoBackpropModeScope(g):
            y = x * x
        self.assertTrue(y.is_grad_required())
        self.assertFalse(y.is_grad_required(g))

    def test_scope_is_private_to_its_thread(self) -> None:
        seen = []
        entered = threading.Event()
        release = threading.Event()

        def hold_scope() -> None:
            with NoBackpropModeScope():
                entered.set()
                release.wait(timeout=10)

        def observe() -> None:
            seen.append(is_backprop_required())

        holder = threading.Thread(target=hold_scope)
        holder.start()
        try:
            self.assertTrue(entered.wait(timeout=10))
            self.assertTrue(is_backprop_required())
            observer = threading.Thread(target=observe)
            observer.start()
            observer.join()
        finally:
            release.set()
            holder.join()
        self.assertEqual(seen, [True])

        with NoBackpropModeScope():
            observer = threading.Thread(target=observe)
            observer.start()
            observer.join()
        self.assertEqual(seen, [True, True])


if __name__ == "__main__":
    unittest.main()
