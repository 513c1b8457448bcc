"""
Tensor interface definitions.

This module defines the minimal, structural contract the autograd engine
expects from the numeric tensor library it runs on top of. The engine treats
tensors as opaque: it queries shapes, combines tensors with element-wise
arithmetic and allocates all-ones / all-zeros tensors through a backend, but
never inspects element storage.

NumPy `ndarray` satisfies this protocol and is the concrete tensor type used
by the infrastructure layer.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ITensor(Protocol):
    """
    Tensor interface.

    An `ITensor` represents a multi-dimensional array. Operations never mutate
    tensors passed to them; arithmetic returns new tensors.

    Notes
    -----
    This protocol deliberately carries no autograd state. Gradient storage and
    graph position belong to `IValue`, which wraps a tensor.
    """

    @property
    def shape(self) -> tuple[int, ...]:
        """
        Return the shape of the tensor.

        Returns
        -------
        tuple[int, ...]
            The tensor's shape.
        """
        ...

    @property
    def dtype(self) -> Any:
        """
        Return the element dtype of the tensor.
        """
        ...

    def __add__(self, other: Any) -> "ITensor":
        """
        Element-wise addition. Returns a new tensor.
        """
        ...

    def __sub__(self, other: Any) -> "ITensor":
        """
        Element-wise subtraction. Returns a new tensor.
        """
        ...

    def __mul__(self, other: Any) -> "ITensor":
        """
        Element-wise multiplication. Returns a new tensor.
        """
        ...
