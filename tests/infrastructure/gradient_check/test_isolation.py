import unittest

import numpy as np

from keygrad.domain._graph import DEFAULT_GRAPH_ID, new_graph_id
from keygrad.infrastructure.gradient_check import disconnect_input_arrays
from keygrad.infrastructure.tensor import Tensor, get_array_body


class TestDisconnectInputArrays(unittest.TestCase):
    def test_views_share_data_and_graphs_as_fresh_leaves(self) -> None:
        g1 = new_graph_id("g1")
        x0 = Tensor.from_numpy(np.array([1.0, 2.0]), requires_grad=True)
        x0.require_grad(g1)
        x = x0 * x0

        (view,) = disconnect_input_arrays([x])

        self.assertTrue(np.shares_memory(view.to_numpy(), x.to_numpy()))
        self.assertIsNot(get_array_body(view), get_array_body(x))
        self.assertEqual(set(view.graph_ids()), {DEFAULT_GRAPH_ID, g1})
        self.assertTrue(view.is_leaf(DEFAULT_GRAPH_ID))
        self.assertTrue(view.is_leaf(g1))
        self.assertFalse(x.is_leaf(DEFAULT_GRAPH_ID))

    def test_untracked_input_gives_untracked_view(self) -> None:
        (view,) = disconnect_input_arrays([Tensor.from_numpy(np.zeros(2))])
        self.assertEqual(view.graph_ids(), [])

    def test_backprop_on_view_does_not_reach_original(self) -> None:
        x = Tensor.from_numpy(np.array([3.0]), requires_grad=True)
        (view,) = disconnect_input_arrays([x])
        (view * view).backward()
        np.testing.assert_array_equal(view.grad.to_numpy(), [6.0])
        self.assertIsNone(x.grad)


if __name__ == "__main__":
    unittest.main()
