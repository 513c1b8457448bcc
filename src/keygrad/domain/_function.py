"""
Autograd function interface definitions.

This module defines the abstract base class for differentiable operations
used by the automatic differentiation engine. Concrete subclasses of
`Function` implement both the forward computation and its corresponding
backward gradient computation.

An operation instance is constructed by client code right before it is
invoked, and it becomes a node of the computation graph when an invocation
entry point (`keygrad.call` / `keygrad.call_multi`) records its inputs and
outputs on it. The recorded wiring is kept in a `GraphNode`, whose `arity`
tag (single vs. multi output) is fixed once at construction time so the
traversal never has to infer it again.

This design is inspired by function-level autograd systems (e.g., PyTorch's
`autograd.Function`) while remaining lightweight and framework-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from ._errors import UnsupportedOperationError
from ._tensor import ITensor
from ._value import IValue

VARIADIC = -1
"""Sentinel returned by `require_input_count()` to accept any input count."""


class OutputArity(Enum):
    """
    Tag describing how many outputs a graph node was wired with.

    Attributes
    ----------
    SINGLE : OutputArity
        The node was built by the single-output entry point. Backward is
        routed through `Function.backward`.
    MULTI : OutputArity
        The node was built by the multi-output entry point. Backward is
        routed through `Function.backward_multi`, with one gradient per
        output.
    """

    SINGLE = "single"
    MULTI = "multi"


@dataclass(frozen=True)
class GraphNode:
    """
    Graph wiring recorded on an operation by an invocation entry point.

    Attributes
    ----------
    inputs : tuple[IValue, ...]
        The input values the operation was invoked with, in call order.
        Gradients returned by backward are aligned with this tuple.
    outputs : tuple[IValue, ...]
        The values produced by the invocation. Each of them has its
        `creator` pointing back to the operation.
    arity : OutputArity
        Single- or multi-output routing tag.
    """

    inputs: tuple[IValue, ...]
    outputs: tuple[IValue, ...]
    arity: OutputArity

    @property
    def is_multi_output(self) -> bool:
        """
        Return True if backward must be routed through `backward_multi`.
        """
        return self.arity is OutputArity.MULTI


class Function(ABC):
    """
    Abstract base class for differentiable operations.

    A `Function` represents a single node in the computation graph and
    encapsulates both:
    - the forward computation (`forward`, or `forward_multi` for operations
      producing several outputs)
    - the backward (gradient) computation (`backward` / `backward_multi`)

    Subclasses must implement `forward`, `backward` and `require_input_count`.
    Multi-output operations additionally override `forward_multi` and
    `backward_multi`. Values needed by backward (shapes, masks, inputs)
    should be cached during forward with `save_for_backward` or in
    `saved_meta`.

    Notes
    -----
    - Operations are stateless across calls except for what they cache for
      their own backward pass; use a fresh instance per invocation.
    - Operations never mutate input tensors. They allocate and return new
      tensors.
    - Subclasses defining `__init__` must call `super().__init__()`.
    """

    def __init__(self) -> None:
        self._node: Optional[GraphNode] = None
        self.saved_tensors: list[ITensor] = []
        self.saved_meta: dict[str, Any] = {}

    # ---------------------------------------------------------------------
    # Contract
    # ---------------------------------------------------------------------
    @abstractmethod
    def forward(self, *inputs: ITensor) -> ITensor:
        """
        Perform the forward computation.

        Parameters
        ----------
        *inputs : ITensor
            Input tensors, exactly `require_input_count()` of them unless the
            operation is variadic.

        Returns
        -------
        ITensor
            A new output tensor.
        """
        ...

    def forward_multi(self, *inputs: ITensor) -> Sequence[ITensor]:
        """
        Perform a forward computation producing several output tensors.

        The default implementation fails: only operations that produce more
        than one output (split/chunk style) override it.

        Raises
        ------
        UnsupportedOperationError
            Always, unless overridden.
        """
        raise UnsupportedOperationError(self.op_name, "forward_multi")

    @abstractmethod
    def backward(self, grad_out: ITensor) -> Sequence[Optional[ITensor]]:
        """
        Compute gradients with respect to the recorded inputs.

        Parameters
        ----------
        grad_out : ITensor
            Gradient of the loss with respect to this operation's output.

        Returns
        -------
        Sequence[ITensor | None]
            One entry per recorded input, in input order. A `None` entry means
            the input is not differentiable along this edge (e.g. an index
            operand); it is skipped rather than treated as a zero gradient.
        """
        ...

    def backward_multi(
        self, grad_outs: Sequence[ITensor]
    ) -> Sequence[Optional[ITensor]]:
        """
        Compute input gradients for a multi-output operation.

        Parameters
        ----------
        grad_outs : Sequence[ITensor]
            One gradient per output, in output order. Outputs that received
            no gradient are given an all-zeros tensor of their shape.

        Returns
        -------
        Sequence[ITensor | None]
            One entry per recorded input, in input order.

        Raises
        ------
        UnsupportedOperationError
            Always, unless overridden.
        """
        raise UnsupportedOperationError(self.op_name, "backward_multi")

    @abstractmethod
    def require_input_count(self) -> int:
        """
        Return the number of inputs this operation accepts.

        Returns
        -------
        int
            A fixed non-negative arity, or `VARIADIC` to accept any count.
        """
        ...

    # ---------------------------------------------------------------------
    # Backward cache
    # ---------------------------------------------------------------------
    def save_for_backward(self, *tensors: ITensor) -> None:
        """
        Save tensors for use during the backward computation.

        Parameters
        ----------
        *tensors : ITensor
            Any number of tensors to be appended to `saved_tensors`.
        """
        self.saved_tensors.extend(tensors)

    # ---------------------------------------------------------------------
    # Graph bookkeeping
    # ---------------------------------------------------------------------
    @property
    def op_name(self) -> str:
        """
        Return the concrete operation type name used in error messages.
        """
        return type(self).__name__

    @property
    def node(self) -> Optional[GraphNode]:
        """
        Return the graph wiring recorded on this operation, or None if the
        operation was never wired into a graph or has been unchained.
        """
        return self._node

    @property
    def inputs(self) -> tuple[IValue, ...]:
        """
        Return the recorded input values (empty when not wired).
        """
        return () if self._node is None else self._node.inputs

    @property
    def outputs(self) -> tuple[IValue, ...]:
        """
        Return the recorded output values (empty when not wired).
        """
        return () if self._node is None else self._node.outputs

    @property
    def output(self) -> Optional[IValue]:
        """
        Return the first recorded output value, or None.
        """
        outputs = self.outputs
        return outputs[0] if outputs else None

    @property
    def is_multi_output(self) -> bool:
        """
        Return True if this operation was wired through the multi-output
        entry point.
        """
        return self._node is not None and self._node.is_multi_output

    def _attach(self, node: GraphNode) -> None:
        """
        Record graph wiring on this operation.

        Notes
        -----
        This is an internal hook intended for use by the invocation entry
        points. It does not set the outputs' creator links.
        """
        self._node = node

    def unchain(self) -> None:
        """
        Drop the recorded inputs and outputs, taking this operation out of the
        graph. Calling it on an operation that is not wired is a no-op.
        """
        self._node = None

    def __repr__(self) -> str:
        if self._node is None:
            return f"{self.op_name}(unwired)"
        return (
            f"{self.op_name}(inputs={len(self._node.inputs)}, "
            f"outputs={len(self._node.outputs)}, arity={self._node.arity.value})"
        )
