"""
Autograd exceptions for keygrad.

This module defines the error taxonomy used by the graph construction and
backward traversal code. Errors fall into two families:

- `ContractViolationError` and its subclasses signal that caller code broke
  the operation/value contract (wrong arity, missing inputs, gradients of the
  wrong shape or count, multi-output calls on single-output operations).
- `InvariantViolationError` signals that the engine itself reached a state it
  should never reach. These indicate a bug in keygrad, not in user code.

Both derive from `AutogradError`, so callers that only want to know "the
autograd engine refused this" can catch a single type.
"""

from typing import Any


class AutogradError(RuntimeError):
    """
    Base class for all errors raised by the autograd engine.
    """


class ContractViolationError(AutogradError):
    """
    Raised when caller code violates the operation or value contract.

    Contract violations are always fatal and reported at the point of
    violation. The engine never truncates, pads or broadcasts to recover.
    """


class ArityMismatchError(ContractViolationError, ValueError):
    """
    Raised when an operation is invoked with the wrong number of inputs.

    Attributes
    ----------
    op_name : str
        Class name of the operation that was invoked.
    expected : int
        Number of inputs the operation declares via `require_input_count()`.
    actual : int
        Number of inputs it was invoked with.
    """

    def __init__(self, op_name: str, expected: int, actual: int) -> None:
        super().__init__(f"{op_name} requires {expected} inputs, but got {actual}.")
        self.op_name = op_name
        self.expected = expected
        self.actual = actual


class NullInputError(ContractViolationError, ValueError):
    """
    Raised when an operation is invoked with a `None` input.

    Attributes
    ----------
    op_name : str
        Class name of the operation that was invoked.
    index : int
        Position of the first missing input.
    """

    def __init__(self, op_name: str, index: int) -> None:
        super().__init__(f"{op_name} inputs cannot contain None (input {index}).")
        self.op_name = op_name
        self.index = index


class UnsupportedOperationError(ContractViolationError, NotImplementedError):
    """
    Raised when an operation hook is called that the concrete operation does
    not implement (typically `forward_multi` / `backward_multi` on a
    single-output operation).

    Attributes
    ----------
    op_name : str
        Class name of the operation.
    method : str
        Name of the hook that is not supported (e.g. "forward_multi").
    """

    def __init__(self, op_name: str, method: str) -> None:
        super().__init__(f"{op_name} does not support {method}().")
        self.op_name = op_name
        self.method = method


class GradientCountMismatchError(ContractViolationError):
    """
    Raised when a backward rule returns a number of gradients different from
    the number of inputs recorded for the operation.

    Attributes
    ----------
    op_name : str
        Class name of the operation whose backward rule misbehaved.
    expected : int
        Number of recorded inputs.
    actual : int
        Number of gradients returned.
    """

    def __init__(self, op_name: str, expected: int, actual: int) -> None:
        super().__init__(
            f"{op_name}.backward must return one grad per input. "
            f"Got {actual} grads for {expected} inputs."
        )
        self.op_name = op_name
        self.expected = expected
        self.actual = actual


class GradientShapeMismatchError(ContractViolationError, ValueError):
    """
    Raised when a gradient whose shape differs from the value's shape is
    assigned to that value.

    Attributes
    ----------
    expected : tuple[int, ...]
        Shape of the value's tensor.
    actual : tuple[int, ...]
        Shape of the offered gradient.
    """

    def __init__(self, expected: tuple[int, ...], actual: Any) -> None:
        super().__init__(
            f"Gradient shape mismatch: expected {tuple(expected)}, got {tuple(actual)}."
        )
        self.expected = tuple(expected)
        self.actual = tuple(actual)


class InvariantViolationError(AutogradError):
    """
    Raised when an internal engine invariant does not hold.

    Examples are a multi-output node with no captured outputs, or a node being
    visited twice inside a single guarded traversal. These are engine bugs and
    are deliberately not subclasses of `ContractViolationError`.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Autograd invariant violated: {message}")
