import unittest

import numpy as np

from keygrad.domain._function import Function
from keygrad.infrastructure._backward import unchain_backward
from keygrad.infrastructure._invoke import call, call_multi
from keygrad.infrastructure._value import Value


class Mul(Function):
    def require_input_count(self):
        return 2

    def forward(self, a, b):
        self.save_for_backward(a, b)
        return a * b

    def backward(self, grad_out):
        a, b = self.saved_tensors
        return (grad_out * b, grad_out * a)


class Split(Function):
    def require_input_count(self):
        return 1

    def forward(self, x):
        raise NotImplementedError

    def forward_multi(self, x):
        return [x[:1], x[1:]]

    def backward(self, grad_out):
        raise NotImplementedError

    def backward_multi(self, grad_outs):
        return (np.concatenate(grad_outs),)


def _v(*xs, **kwargs):
    return Value(np.array(xs, dtype=np.float32), **kwargs)


class TestDetach(unittest.TestCase):
    def test_detach_makes_value_a_leaf(self):
        x = _v(2.0)
        h = call(Mul(), x, x)
        fn = h.creator
        y = call(Mul(), h, x)

        h.detach_from_graph()
        self.assertIsNone(h.creator)
        self.assertIsNotNone(fn.node)

        y.backward()
        np.testing.assert_array_equal(h.grad, [2.0])
        np.testing.assert_array_equal(x.grad, [4.0])


class TestUnchainBackward(unittest.TestCase):
    def test_severs_every_upstream_link(self):
        x = _v(2.0)
        h = call(Mul(), x, x)
        y = call(Mul(), h, x)
        f1, f2 = h.creator, y.creator

        y.unchain_backward()

        self.assertIsNone(y.creator)
        self.assertIsNone(h.creator)
        self.assertIsNone(f1.node)
        self.assertIsNone(f2.node)
        np.testing.assert_array_equal(y.data, [8.0])

        y.backward()
        self.assertIsNone(x.grad)
        np.testing.assert_array_equal(y.grad, [1.0])

    def test_idempotent_and_noop_on_leaf(self):
        x = _v(1.0)
        x.unchain_backward()
        self.assertIsNone(x.creator)

        y = call(Mul(), x, x)
        unchain_backward(y)
        unchain_backward(y)
        self.assertIsNone(y.creator)

    def test_detaches_sibling_outputs(self):
        x = _v(1.0, 2.0)
        o1, o2 = call_multi(Split(), x)
        o1.unchain_backward()
        self.assertIsNone(o1.creator)
        self.assertIsNone(o2.creator)

    def test_detached_sibling_gradient_does_not_flow(self):
        for method in ("backward", "backward_iterative"):
            with self.subTest(method=method):
                x = _v(1.0, 2.0)
                o1, o2 = call_multi(Split(), x)
                o1.grad = np.array([5.0], dtype=np.float32)
                o1.detach_from_graph()

                getattr(o2, method)()

                np.testing.assert_array_equal(x.grad, [0.0, 1.0])
                np.testing.assert_array_equal(o1.grad, [5.0])

    def test_truncated_backprop_through_time(self):
        w = _v(2.0)
        h0 = _v(1.0, requires_grad=False)

        h1 = call(Mul(), w, h0)
        h2 = call(Mul(), w, h1)
        h2.backward()
        np.testing.assert_array_equal(w.grad, [4.0])
        h1_grad = np.array(h1.grad)

        h2.unchain_backward()
        w.clear_grad()
        h2.clear_grad()

        h3 = call(Mul(), w, h2)
        h4 = call(Mul(), w, h3)
        h4.backward()

        # d(w * w * h2)/dw with h2 held constant
        np.testing.assert_array_equal(w.grad, [16.0])
        np.testing.assert_array_equal(h2.grad, [4.0])
        np.testing.assert_array_equal(h1.grad, h1_grad)

    def test_unchain_on_deep_chain(self):
        x = _v(1.0)
        h = x
        for _ in range(3000):
            h = call(Mul(), h, x)
        h.unchain_backward()
        self.assertIsNone(h.creator)


if __name__ == "__main__":
    unittest.main()
