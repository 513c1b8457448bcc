"""
Concrete graph value implementation.

A `Value` pairs a tensor with optional gradient storage and a back-reference
(`creator`) to the operation that produced it. Values without a creator are
leaves: user-supplied data or learnable parameters. Values produced by a
graphed invocation point at their creator, and the creator records its input
values, which is how the computation graph is linked from outputs back to
inputs.

Design notes
------------
- The value owns its tensor (unless the caller passed an array it keeps using)
  and always owns its gradient: gradients are copied on assignment and
  accumulated into new arrays, never in place.
- Gradient shape is checked on assignment, before storage. A mismatch raises
  `GradientShapeMismatchError`; nothing is broadcast.
- `requires_grad=False` values never hold a gradient. Offered gradients are
  validated and then dropped.
- Gradients are not cleared automatically between backward calls. Training
  loops clear them (`clear_grad`, `clear_graph_grads`) between iterations.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
from typing_extensions import Self

from ..domain._errors import GradientShapeMismatchError
from ..domain._function import Function
from ..domain._value import IValue
from ._backward import backward_iterative, backward_recursive, unchain_backward
from .tensor import _numpy_backend as backend


class Value(IValue):
    """
    Tensor wrapper that records its position in the computation graph.

    Parameters
    ----------
    data : array-like
        Tensor data. NumPy arrays are wrapped as-is (their dtype is kept);
        other inputs are converted to `float32`.
    requires_grad : bool, optional
        Whether this value stores gradients during backpropagation.
        Defaults to True.
    name : str, optional
        Human-readable name used by graph inspection.
    dtype : np.dtype, optional
        Force a dtype for the wrapped tensor.

    Notes
    -----
    - Gradient storage is allocated lazily: it stays None until a backward
      pass reaches this value (the terminal value of a backward call is seeded
      with ones).
    - The creator link can be severed independently of the value's lifetime
      (`detach_from_graph`, `unchain_backward`).
    """

    def __init__(
        self,
        data: Any,
        *,
        requires_grad: bool = True,
        name: Optional[str] = None,
        dtype: Any = None,
    ) -> None:
        self._data: np.ndarray = backend.as_tensor(data, dtype)
        self._grad: Optional[np.ndarray] = None
        self._requires_grad: bool = bool(requires_grad)
        self._creator: Optional[Function] = None
        self._name: Optional[str] = name

    # ---------------------------------------------------------------------
    # Tensor access
    # ---------------------------------------------------------------------
    @property
    def data(self) -> np.ndarray:
        """
        Return the wrapped tensor.
        """
        return self._data

    @data.setter
    def data(self, value: Any) -> None:
        """
        Replace the wrapped tensor.

        Notes
        -----
        Used by training code that updates parameters. If the new tensor has a
        different shape, the stored gradient no longer conforms and is cleared.
        """
        new_data = backend.as_tensor(value)
        if self._grad is not None and not backend.same_shape(new_data, self._data):
            self._grad = None
        self._data = new_data

    @property
    def shape(self) -> tuple[int, ...]:
        """
        Return the shape of the wrapped tensor.
        """
        return backend.shape_of(self._data)

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def ndim(self) -> int:
        return len(self.shape)

    def size(self, dim: int) -> int:
        """
        Return the extent of dimension `dim`.

        Parameters
        ----------
        dim : int
            Dimension index. Negative values count from the end.

        Raises
        ------
        IndexError
            If `dim` is out of range.
        """
        ndim = self.ndim
        d = dim + ndim if dim < 0 else dim
        if d < 0 or d >= ndim:
            raise IndexError(
                f"Dimension out of range (expected to be in range of "
                f"[-{ndim}, {ndim}), but got {dim})"
            )
        return self.shape[d]

    @property
    def numel(self) -> int:
        return int(np.prod(self.shape, dtype=np.int64))

    @property
    def is_scalar(self) -> bool:
        return self.numel == 1

    @property
    def is_vector(self) -> bool:
        return self.ndim == 1

    @property
    def is_matrix(self) -> bool:
        return self.ndim == 2

    # ---------------------------------------------------------------------
    # Gradient storage
    # ---------------------------------------------------------------------
    @property
    def requires_grad(self) -> bool:
        """
        Indicate whether this value stores gradients.
        """
        return self._requires_grad

    @requires_grad.setter
    def requires_grad(self, value: bool) -> None:
        """
        Enable or disable gradient storage.

        Disabling drops any stored gradient.
        """
        self._requires_grad = bool(value)
        if not self._requires_grad:
            self._grad = None

    def set_requires_grad(self, value: bool) -> Self:
        """
        Chainable form of the `requires_grad` setter.
        """
        self.requires_grad = value
        return self

    @property
    def grad(self) -> Optional[np.ndarray]:
        """
        Return the stored gradient, or None if absent.
        """
        return self._grad

    @grad.setter
    def grad(self, value: Any) -> None:
        """
        Assign the gradient.

        Parameters
        ----------
        value : array-like or None
            New gradient. None clears the stored gradient.

        Raises
        ------
        GradientShapeMismatchError
            If the gradient's shape differs from this value's shape.
        """
        if value is None:
            self._grad = None
            return
        g = self._check_grad(value)
        self._grad = backend.copy(g) if self._requires_grad else None

    def accumulate_grad(self, grad: Any) -> None:
        """
        Add `grad` element-wise into the stored gradient.

        When no gradient is stored yet, a copy of `grad` is stored instead.

        Raises
        ------
        GradientShapeMismatchError
            If the gradient's shape differs from this value's shape.
        """
        g = self._check_grad(grad)
        if not self._requires_grad:
            self._grad = None
            return
        if self._grad is None:
            self._grad = backend.copy(g)
        else:
            self._grad = backend.add(self._grad, g)

    def _check_grad(self, grad: Any) -> np.ndarray:
        g = backend.as_tensor(grad)
        if not backend.same_shape(g, self._data):
            raise GradientShapeMismatchError(self.shape, backend.shape_of(g))
        return g

    def clear_grad(self) -> None:
        """
        Clear the stored gradient.

        Notes
        -----
        Training loops typically clear gradients before backprop to avoid
        unintentional accumulation across iterations.
        """
        self._grad = None

    clear_gradient = clear_grad

    # ---------------------------------------------------------------------
    # Graph position
    # ---------------------------------------------------------------------
    @property
    def creator(self) -> Optional[Function]:
        """
        Return the operation that produced this value, or None for leaves.
        """
        return self._creator

    @property
    def is_leaf(self) -> bool:
        return self._creator is None

    def _set_creator(self, creator: Optional[Function]) -> None:
        """
        Attach or detach the creator operation.

        Notes
        -----
        This is an internal hook intended for use by the invocation entry
        points and graph severing.
        """
        self._creator = creator

    def detach_from_graph(self) -> None:
        """
        Sever the link to this value's creator.

        The value becomes a leaf: later backward passes stop here. Upstream
        values and operations are left untouched; see `unchain_backward` to
        release the whole chain. No-op on leaves.
        """
        self._creator = None

    def unchain_backward(self) -> None:
        """
        Sever the entire upstream chain feeding this value.

        Every value reachable through creator links is detached and every
        operation on the way is unchained. Used to bound graph depth, e.g. for
        truncated backpropagation through time. No-op on leaves.
        """
        unchain_backward(self)

    # ---------------------------------------------------------------------
    # Naming
    # ---------------------------------------------------------------------
    @property
    def name(self) -> Optional[str]:
        return self._name

    @name.setter
    def name(self, value: Optional[str]) -> None:
        self._name = value

    def set_name(self, name: Optional[str]) -> Self:
        """
        Chainable form of the `name` setter.
        """
        self._name = name
        return self

    # ---------------------------------------------------------------------
    # Backward entry points
    # ---------------------------------------------------------------------
    def backward(self) -> None:
        """
        Backpropagate from this value using the recursive strategy.

        If this value has no gradient yet it is seeded with ones. Gradients
        are accumulated into every upstream value that requires them.
        """
        backward_recursive(self)

    def backward_iterative(self) -> None:
        """
        Backpropagate from this value using the iterative (explicit stack)
        strategy. Suitable for graphs deeper than the recursion limit.
        """
        backward_iterative(self)

    def __repr__(self) -> str:
        label = f", name={self._name!r}" if self._name is not None else ""
        creator = self._creator.op_name if self._creator is not None else None
        return (
            f"Value(shape={self.shape}, dtype={self._data.dtype}, "
            f"requires_grad={self._requires_grad}, creator={creator}{label})"
        )
