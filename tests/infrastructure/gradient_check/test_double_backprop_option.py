import unittest

import numpy as np

from keygrad.domain._errors import GradientCheckError
from keygrad.domain._function import Function
from keygrad.domain._graph import DEFAULT_GRAPH_ID, new_graph_id
from keygrad.infrastructure.autograd import ForceBackpropModeScope
from keygrad.infrastructure.functions import apply_function
from keygrad.infrastructure.gradient_check import check_double_backprop_option
from keygrad.infrastructure.tensor import Tensor


class DetachedBackwardSquareFn(Function):
    """x ** 2 whose backward ignores the graph entirely."""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return x * x

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        return (Tensor.from_numpy(2.0 * grad_out.to_numpy() * x.to_numpy()),)


class AlwaysRecordingSquareFn(Function):
    """x ** 2 whose backward records even when recording is switched off."""

    @staticmethod
    def forward(ctx, x: np.ndarray) -> np.ndarray:
        return x * x

    @staticmethod
    def backward(ctx, grad_out: Tensor):
        (x,) = ctx.inputs
        with ForceBackpropModeScope():
            return (grad_out * x * 2.0,)


def make_tensor(arr, *, requires_grad: bool = True, graph_id=None) -> Tensor:
    return Tensor.from_numpy(
        np.asarray(arr, dtype=np.float64), requires_grad=requires_grad, graph_id=graph_id
    )


class TestCheckDoubleBackpropOption(unittest.TestCase):
    def test_correct_functions_pass(self) -> None:
        x = make_tensor([0.5, -1.0])
        check_double_backprop_option(lambda xs: xs[0] * xs[0], [x], DEFAULT_GRAPH_ID)
        check_double_backprop_option(lambda xs: xs[0].tanh(), [x], DEFAULT_GRAPH_ID)

    def test_linear_function_passes_thanks_to_squaring(self) -> None:
        x = make_tensor([0.5, -1.0])
        check_double_backprop_option(lambda xs: xs[0] * 3.0, [x], DEFAULT_GRAPH_ID)

    def test_detached_backward_is_reported(self) -> None:
        x = make_tensor([0.5, -1.0])
        with self.assertRaises(GradientCheckError) as cm:
            check_double_backprop_option(
                lambda xs: apply_function(DetachedBackwardSquareFn, xs[0]),
                [x],
                DEFAULT_GRAPH_ID,
            )
        message = str(cm.exception)
        self.assertIn("Gradient 0 / 1 is not connected to the graph 'default'", message)
        self.assertIn("even when double-backprop is enabled", message)
        self.assertNotIn("is connected", message.replace("is not connected", ""))

    def test_always_recording_backward_is_reported(self) -> None:
        x = make_tensor([0.5, -1.0])
        with self.assertRaises(GradientCheckError) as cm:
            check_double_backprop_option(
                lambda xs: apply_function(AlwaysRecordingSquareFn, xs[0]),
                [x],
                DEFAULT_GRAPH_ID,
            )
        self.assertIn(
            "Gradient 0 / 1 is connected to the graph 'default' even when "
            "double-backprop is disabled.",
            str(cm.exception),
        )

    def test_untracked_inputs_are_ignored(self) -> None:
        g = new_graph_id("g")
        a = make_tensor([1.0], graph_id=g)
        b = make_tensor([2.0], requires_grad=False)
        check_double_backprop_option(lambda xs: xs[0] * xs[1], [a, b], g)

    def test_caller_inputs_are_untouched(self) -> None:
        x = make_tensor([0.5])
        check_double_backprop_option(lambda xs: xs[0] * xs[0], [x], DEFAULT_GRAPH_ID)
        self.assertIsNone(x.grad)
        self.assertTrue(x.is_leaf())


if __name__ == "__main__":
    unittest.main()
