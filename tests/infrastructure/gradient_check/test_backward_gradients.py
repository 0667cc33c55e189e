import unittest

import numpy as np

from keygrad.domain._errors import GradientCheckPreconditionError
from keygrad.domain._graph import DEFAULT_GRAPH_ID, DoubleBackpropOption
from keygrad.infrastructure.gradient_check import backward_gradients
from keygrad.infrastructure.tensor import Tensor


def make_tensor(arr, *, requires_grad: bool = False) -> Tensor:
    return Tensor.from_numpy(np.asarray(arr, dtype=np.float64), requires_grad=requires_grad)


def square(xs):
    return xs[0] * xs[0]


class TestBackwardGradients(unittest.TestCase):
    def test_returns_one_gradient_per_input(self) -> None:
        a = make_tensor([1.5, -0.5], requires_grad=True)
        b = make_tensor([2.0, 4.0])
        grads = backward_gradients(
            lambda xs: xs[0] * xs[1], [a, b], [make_tensor([1.0, 0.5])], DEFAULT_GRAPH_ID
        )
        self.assertEqual(len(grads), 2)
        np.testing.assert_array_equal(grads[0].to_numpy(), [2.0, 2.0])
        self.assertIsNone(grads[1])

    def test_previous_gradients_are_cleared(self) -> None:
        x = make_tensor([1.0, 2.0], requires_grad=True)
        x.set_grad(make_tensor([100.0, 100.0]))
        (g,) = backward_gradients(square, [x], [make_tensor([1.0, 1.0])], DEFAULT_GRAPH_ID)
        np.testing.assert_array_equal(g.to_numpy(), [2.0, 4.0])

    def test_connectivity_follows_option(self) -> None:
        x = make_tensor([1.0], requires_grad=True)
        (g,) = backward_gradients(
            square, [x], None, DEFAULT_GRAPH_ID, DoubleBackpropOption.DISABLE
        )
        self.assertFalse(g.is_grad_required())

        y = make_tensor([1.0], requires_grad=True)
        (g,) = backward_gradients(square, [y], None, DEFAULT_GRAPH_ID, DoubleBackpropOption.ENABLE)
        self.assertTrue(g.is_grad_required())

    def test_non_leaf_input_is_rejected_before_forward(self) -> None:
        calls = []

        def func(xs):
            calls.append(1)
            return square(xs)

        x0 = make_tensor([1.0], requires_grad=True)
        x = x0 * x0
        with self.assertRaises(GradientCheckPreconditionError) as cm:
            backward_gradients(func, [x], None, DEFAULT_GRAPH_ID)
        self.assertIn("All inputs must be leaf nodes", str(cm.exception))
        self.assertEqual(calls, [])

    def test_output_identical_to_input_is_rejected(self) -> None:
        x = make_tensor([1.0], requires_grad=True)
        with self.assertRaises(GradientCheckPreconditionError) as cm:
            backward_gradients(lambda xs: xs[0], [x], None, DEFAULT_GRAPH_ID)
        self.assertIn("Input 0 and output 0", str(cm.exception))

    def test_seed_count_must_match_outputs(self) -> None:
        x = make_tensor([1.0], requires_grad=True)
        with self.assertRaises(GradientCheckPreconditionError) as cm:
            backward_gradients(
                square, [x], [make_tensor([1.0]), make_tensor([1.0])], DEFAULT_GRAPH_ID
            )
        self.assertIn("must be same", str(cm.exception))

    def test_outputs_not_requiring_grad_are_skipped(self) -> None:
        x = make_tensor([2.0], requires_grad=True)
        const = make_tensor([5.0])
        grads = backward_gradients(
            lambda xs: [xs[0] * 3.0, const * 2.0],
            [x],
            [make_tensor([1.0]), make_tensor([1.0])],
            DEFAULT_GRAPH_ID,
        )
        np.testing.assert_array_equal(grads[0].to_numpy(), [3.0])


if __name__ == "__main__":
    unittest.main()
