"""
Value interface definitions.

This module defines the domain-level interface for graph values: a tensor
paired with optional gradient storage and a back-reference to the operation
that produced it. The interface is structural so operations in the domain
layer can refer to values without importing the concrete infrastructure
`Value` class.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from ._tensor import ITensor

if TYPE_CHECKING:
    from ._function import Function


@runtime_checkable
class IValue(Protocol):
    """
    Domain-level interface for graph values.

    An `IValue` is either a leaf (no creator; user data or a learnable
    parameter) or the output of an operation invocation (creator set).

    Notes
    -----
    - `grad`, if present, always has exactly the shape of `data`.
    - A value with `requires_grad = False` never stores a gradient.
    """

    # ---- tensor ----
    @property
    def data(self) -> ITensor:
        """
        Return the tensor wrapped by this value.
        """
        ...

    @property
    def shape(self) -> tuple[int, ...]:
        """
        Return the shape of the wrapped tensor.
        """
        ...

    # ---- gradient ----
    @property
    def requires_grad(self) -> bool:
        """
        Indicate whether this value should store gradients.

        Returns
        -------
        bool
            True if gradients are stored/accumulated, False otherwise.
        """
        ...

    @property
    def grad(self) -> Optional[ITensor]:
        """
        Return the stored gradient tensor, or None if absent.
        """
        ...

    def accumulate_grad(self, grad: ITensor) -> None:
        """
        Add `grad` element-wise into the stored gradient (or store it when no
        gradient is present yet).
        """
        ...

    def clear_grad(self) -> None:
        """
        Clear the stored gradient.
        """
        ...

    # ---- graph position ----
    @property
    def creator(self) -> Optional["Function"]:
        """
        Return the operation that produced this value, or None for leaves.
        """
        ...

    def detach_from_graph(self) -> None:
        """
        Sever the creator link of this value.
        """
        ...
