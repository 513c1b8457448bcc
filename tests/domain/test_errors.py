import unittest

from keygrad.domain._errors import (
    ArityMismatchError,
    AutogradError,
    ContractViolationError,
    GradientCountMismatchError,
    GradientShapeMismatchError,
    InvariantViolationError,
    NullInputError,
    UnsupportedOperationError,
)


class TestErrorHierarchy(unittest.TestCase):
    def test_contract_violations_share_a_base(self):
        for cls in (
            ArityMismatchError,
            NullInputError,
            UnsupportedOperationError,
            GradientCountMismatchError,
            GradientShapeMismatchError,
        ):
            with self.subTest(cls=cls.__name__):
                self.assertTrue(issubclass(cls, ContractViolationError))
                self.assertTrue(issubclass(cls, AutogradError))
                self.assertTrue(issubclass(cls, RuntimeError))

    def test_invariant_violation_is_not_a_contract_violation(self):
        self.assertTrue(issubclass(InvariantViolationError, AutogradError))
        self.assertFalse(issubclass(InvariantViolationError, ContractViolationError))

    def test_builtin_compatibility(self):
        self.assertTrue(issubclass(ArityMismatchError, ValueError))
        self.assertTrue(issubclass(NullInputError, ValueError))
        self.assertTrue(issubclass(GradientShapeMismatchError, ValueError))
        self.assertTrue(issubclass(UnsupportedOperationError, NotImplementedError))


class TestErrorMessages(unittest.TestCase):
    def test_arity_mismatch(self):
        err = ArityMismatchError("Mul", 2, 3)
        self.assertEqual(str(err), "Mul requires 2 inputs, but got 3.")
        self.assertEqual((err.op_name, err.expected, err.actual), ("Mul", 2, 3))

    def test_null_input(self):
        err = NullInputError("Add", 1)
        self.assertEqual(err.index, 1)
        self.assertIn("Add", str(err))
        self.assertIn("None", str(err))

    def test_unsupported_operation(self):
        err = UnsupportedOperationError("Add", "forward_multi")
        self.assertEqual(str(err), "Add does not support forward_multi().")

    def test_gradient_count_mismatch(self):
        err = GradientCountMismatchError("Mul", 2, 1)
        self.assertEqual((err.expected, err.actual), (2, 1))
        self.assertIn("Got 1 grads for 2 inputs", str(err))

    def test_gradient_shape_mismatch_normalizes_shapes(self):
        err = GradientShapeMismatchError([2, 3], (3,))
        self.assertEqual(err.expected, (2, 3))
        self.assertEqual(err.actual, (3,))
        self.assertIn("(2, 3)", str(err))

    def test_invariant_violation_prefix(self):
        err = InvariantViolationError("node visited twice")
        self.assertTrue(str(err).startswith("Autograd invariant violated: "))
        self.assertTrue(str(err).endswith("node visited twice"))


if __name__ == "__main__":
    unittest.main()
