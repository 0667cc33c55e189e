import unittest

import numpy as np

from keygrad.infrastructure.numeric import (
    all_close,
    as_output_list,
    calculate_numerical_gradient,
    format_array,
)
from keygrad.infrastructure.tensor import Tensor


def make_tensor(arr, *, requires_grad: bool = False, dtype=np.float64) -> Tensor:
    return Tensor.from_numpy(np.asarray(arr, dtype=dtype), requires_grad=requires_grad)


class TestCalculateNumericalGradient(unittest.TestCase):
    def test_square_is_exact_at_dyadic_points(self) -> None:
        x = make_tensor([1.5, -0.5])
        gy = make_tensor([0.25, 1.0])
        (g,) = calculate_numerical_gradient(lambda xs: xs[0] * xs[0], [x], [gy], [0.5])
        np.testing.assert_array_equal(g.to_numpy(), [0.75, -1.0])
        self.assertEqual(g.shape, x.shape)
        self.assertEqual(g.dtype, x.dtype)

    def test_multiple_inputs(self) -> None:
        a = make_tensor([2.0, 3.0])
        b = make_tensor([0.5, -1.0])
        ga, gb = calculate_numerical_gradient(
            lambda xs: xs[0] * xs[1], [a, b], [make_tensor([1.0, 2.0])], [0.25, 0.25]
        )
        np.testing.assert_array_equal(ga.to_numpy(), [0.5, -2.0])
        np.testing.assert_array_equal(gb.to_numpy(), [2.0, 6.0])

    def test_multiple_outputs_are_summed(self) -> None:
        x = make_tensor([1.0])
        (g,) = calculate_numerical_gradient(
            lambda xs: [xs[0] * 2.0, xs[0] * 3.0],
            [x],
            [make_tensor([1.0]), make_tensor([2.0])],
            [0.5],
        )
        np.testing.assert_array_equal(g.to_numpy(), [8.0])

    def test_missing_grad_outputs_mean_ones(self) -> None:
        x = make_tensor([[1.0, 2.0]])
        (g,) = calculate_numerical_gradient(lambda xs: xs[0] * 4.0, [x], None, [0.5])
        np.testing.assert_array_equal(g.to_numpy(), [[4.0, 4.0]])

    def test_eps_per_element(self) -> None:
        x = make_tensor([1.0, 2.0])
        eps = [np.array([0.5, 0.25])]
        (g,) = calculate_numerical_gradient(lambda xs: xs[0] * xs[0], [x], None, eps)
        np.testing.assert_array_equal(g.to_numpy(), [2.0, 4.0])

    def test_eps_as_tensor(self) -> None:
        x = make_tensor([3.0])
        (g,) = calculate_numerical_gradient(
            lambda xs: xs[0] * xs[0], [x], None, [make_tensor([0.5])]
        )
        np.testing.assert_array_equal(g.to_numpy(), [6.0])

    def test_zero_dim_input(self) -> None:
        x = make_tensor(1.5)
        (g,) = calculate_numerical_gradient(lambda xs: xs[0] * xs[0], [x], None, [0.5])
        self.assertEqual(g.shape, ())
        self.assertEqual(g.item(), 3.0)

    def test_inputs_are_not_modified_or_tracked(self) -> None:
        x = make_tensor([1.0, 2.0], requires_grad=True)
        seen = []

        def func(xs):
            seen.append(xs[0].is_grad_required())
            y = xs[0] * xs[0]
            seen.append(y.is_grad_required())
            return y

        calculate_numerical_gradient(func, [x], None, [0.5])
        np.testing.assert_array_equal(x.to_numpy(), [1.0, 2.0])
        self.assertTrue(x.is_leaf())
        self.assertIsNone(x.grad)
        self.assertEqual(len(seen), 8)
        self.assertFalse(any(seen))

    def test_eps_count_mismatch(self) -> None:
        with self.assertRaises(ValueError):
            calculate_numerical_gradient(lambda xs: xs[0], [make_tensor([1.0])], None, [])

    def test_non_positive_eps(self) -> None:
        with self.assertRaises(ValueError):
            calculate_numerical_gradient(
                lambda xs: xs[0] * 2.0, [make_tensor([1.0])], None, [0.0]
            )

    def test_output_count_mismatch(self) -> None:
        with self.assertRaises(ValueError):
            calculate_numerical_gradient(
                lambda xs: xs[0] * 2.0,
                [make_tensor([1.0])],
                [make_tensor([1.0]), make_tensor([1.0])],
                [0.5],
            )

    def test_float16_warns(self) -> None:
        x = make_tensor([1.0], dtype=np.float16)
        with self.assertWarns(RuntimeWarning):
            calculate_numerical_gradient(lambda xs: xs[0] * 2.0, [x], None, [0.5])


class TestNumericHelpers(unittest.TestCase):
    def test_all_close_uses_reference_scaled_tolerance(self) -> None:
        a = make_tensor([1.0, 100.0])
        self.assertTrue(all_close(a, np.array([1.0, 100.05]), atol=0.0, rtol=1e-3))
        self.assertFalse(all_close(a, np.array([1.01, 100.0]), atol=1e-3, rtol=0.0))
        self.assertTrue(all_close(a, a, atol=0.0, rtol=0.0))

    def test_all_close_nan_handling(self) -> None:
        a = np.array([np.nan])
        self.assertFalse(all_close(a, a))
        self.assertTrue(all_close(a, a, equal_nan=True))

    def test_all_close_rejects_shape_mismatch(self) -> None:
        with self.assertRaises(ValueError):
            all_close(np.zeros(2), np.zeros(3))

    def test_format_array(self) -> None:
        text = format_array(make_tensor([1.0, 2.5]))
        self.assertTrue(text.startswith("["))
        self.assertIn("2.5", text)

    def test_as_output_list(self) -> None:
        y = make_tensor([1.0])
        self.assertEqual(as_output_list(y), [y])
        self.assertEqual(as_output_list((y, y)), [y, y])
        with self.assertRaises(TypeError):
            as_output_list([np.zeros(1)])


if __name__ == "__main__":
    unittest.main()
