import unittest

import numpy as np

from keygrad.domain._errors import UnsupportedOperationError
from keygrad.domain._function import Function
from keygrad.infrastructure._backward import backward_iterative, backward_recursive
from keygrad.infrastructure._invoke import call, call_multi
from keygrad.infrastructure._value import Value


class Split(Function):
    """Split a vector into equally sized chunks."""

    received = []

    def __init__(self, size):
        super().__init__()
        self.size = size

    def require_input_count(self):
        return 1

    def forward(self, x):
        raise NotImplementedError

    def forward_multi(self, x):
        return [x[i : i + self.size] for i in range(0, x.shape[0], self.size)]

    def backward(self, grad_out):
        raise AssertionError("multi-output node routed to single backward")

    def backward_multi(self, grad_outs):
        type(self).received.append([np.array(g) for g in grad_outs])
        return (np.concatenate(grad_outs),)


class ForwardOnlySplit(Split):
    backward_multi = Function.backward_multi


class Add(Function):
    def require_input_count(self):
        return 2

    def forward(self, a, b):
        return a + b

    def backward(self, grad_out):
        return (grad_out, grad_out)


class Scale(Function):
    def __init__(self, k):
        super().__init__()
        self.k = k

    def require_input_count(self):
        return 1

    def forward(self, x):
        return x * self.k

    def backward(self, grad_out):
        return (grad_out * self.k,)


def _x():
    return Value(np.array([1.0, 2.0, 3.0, 4.0], dtype=np.float32))


class TestMultiOutputBackward(unittest.TestCase):
    def setUp(self):
        Split.received = []

    def test_unused_sibling_receives_zeros(self):
        for strategy in (backward_recursive, backward_iterative):
            with self.subTest(strategy=strategy.__name__):
                Split.received = []
                x = _x()
                o1, o2 = call_multi(Split(2), x)
                strategy(o1)

                self.assertEqual(len(Split.received), 1)
                g1, g2 = Split.received[0]
                np.testing.assert_array_equal(g1, [1.0, 1.0])
                np.testing.assert_array_equal(g2, [0.0, 0.0])
                self.assertEqual(g2.shape, o2.shape)
                np.testing.assert_array_equal(x.grad, [1.0, 1.0, 0.0, 0.0])
                self.assertIsNone(o2.grad)

    def test_recursive_calls_backward_multi_once_with_all_gradients(self):
        x = _x()
        o1, o2 = call_multi(Split(2), x)
        z = call(Scale(3.0), o2)
        y = call(Add(), o1, z)
        y.backward()

        self.assertEqual(len(Split.received), 1)
        g1, g2 = Split.received[0]
        np.testing.assert_array_equal(g1, [1.0, 1.0])
        np.testing.assert_array_equal(g2, [3.0, 3.0])
        np.testing.assert_array_equal(x.grad, [1.0, 1.0, 3.0, 3.0])

    def test_iterative_routes_one_output_per_step(self):
        x = _x()
        o1, o2 = call_multi(Split(2), x)
        z = call(Scale(3.0), o2)
        y = call(Add(), o1, z)
        y.backward_iterative()

        self.assertEqual(len(Split.received), 2)
        for step in Split.received:
            nonzero = [bool(np.any(g)) for g in step]
            self.assertEqual(sum(nonzero), 1)
        np.testing.assert_array_equal(x.grad, [1.0, 1.0, 3.0, 3.0])

    def test_single_output_call_multi_uses_backward_multi(self):
        x = _x()
        (out,) = call_multi(Split(4), x)
        out.backward()

        self.assertEqual(len(Split.received), 1)
        self.assertEqual(len(Split.received[0]), 1)
        np.testing.assert_array_equal(x.grad, [1.0, 1.0, 1.0, 1.0])

    def test_backward_multi_not_implemented(self):
        x = _x()
        o1, _ = call_multi(ForwardOnlySplit(2), x)
        with self.assertRaises(UnsupportedOperationError) as cm:
            o1.backward()
        self.assertEqual(cm.exception.method, "backward_multi")

    def test_sibling_with_stored_gradient_is_used(self):
        x = _x()
        o1, o2 = call_multi(Split(2), x)
        o2.grad = np.array([5.0, 6.0], dtype=np.float32)
        o1.backward()

        g1, g2 = Split.received[0]
        np.testing.assert_array_equal(g2, [5.0, 6.0])
        np.testing.assert_array_equal(x.grad, [1.0, 1.0, 5.0, 6.0])


if __name__ == "__main__":
    unittest.main()
