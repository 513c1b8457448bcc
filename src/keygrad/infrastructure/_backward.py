"""
Backward traversal algorithms and graph severing.

Starting from a terminal value (conceptually the loss), backpropagation walks
creator links toward the leaves, asks each operation for its input gradients
and accumulates them into the input values. Two strategies are provided:

Recursive (`backward_recursive`)
    A depth-first, naturally recursive walk over creator operations, guarded
    by a visited set that lives only for the duration of the call, builds a
    reverse topological order. Each operation is then processed exactly once,
    after every one of its outputs has received its full gradient. Shared
    sub-expressions (diamonds) are therefore handled with a single backward
    call per operation. Graph depth is bounded by the interpreter recursion
    limit.

Iterative (`backward_iterative`)
    An explicit stack of ``(value, incoming gradient)`` pairs and no visited
    set. A value reached along several paths is processed once per path, and
    each step only propagates its own incoming contribution. Because backward
    rules are linear in the output gradient, the final gradients equal those
    of the recursive strategy; the cost is that shared operations are invoked
    more than once. It never recurses, so it is the strategy to use on deep or
    unrolled recurrent graphs.

Common rules
------------
- A terminal value with ``requires_grad=False`` has its gradient cleared and
  nothing else happens.
- A terminal value without a gradient is seeded with ones.
- A `None` entry returned by a backward rule means "not differentiable along
  this edge": nothing is accumulated and the edge is not followed.
- Gradients are summed element-wise at fan-in points.
- Multi-output operations receive one gradient per output; outputs without a
  gradient are given zeros of their shape. An output detached from the
  operation counts as having no gradient, whatever it stores.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from ..domain._errors import (
    ContractViolationError,
    GradientCountMismatchError,
    InvariantViolationError,
)
from ..domain._function import Function, GraphNode
from ..domain._value import IValue
from ._config import BackwardStrategy, GraphMode, resolve_mode
from .tensor import _numpy_backend as backend

logger = logging.getLogger(__name__)


def _seed(value: IValue) -> bool:
    """
    Seed the terminal value of a backward call.

    Returns
    -------
    bool
        False if the value does not require gradients (its gradient is
        cleared and traversal must stop), True otherwise.
    """
    if not value.requires_grad:
        value.clear_grad()
        return False
    if value.grad is None:
        value.accumulate_grad(backend.ones(value.shape, value.data.dtype))
    return True


def _zeros_like(value: IValue) -> Any:
    return backend.zeros(value.shape, value.data.dtype)


def _attached_grad(fn: Function, out: IValue) -> Optional[Any]:
    """
    Return the gradient stored on output `out` of `fn`, or None if `out` has
    been detached from `fn` since the node was recorded.
    """
    return out.grad if out.creator is fn else None


def _live_node(fn: Function) -> Optional[GraphNode]:
    """
    Return the node of `fn`, checking that a multi-output node captured its
    outputs.
    """
    node = fn.node
    if node is not None and node.is_multi_output and not node.outputs:
        raise InvariantViolationError(
            f"multi-output operation {fn.op_name} has no outputs captured"
        )
    return node


def _invoke_backward(
    fn: Function, node: GraphNode, grad_outs: Sequence[Any]
) -> Sequence[Optional[Any]]:
    """
    Run the operation's backward rule and validate the gradient count.

    Parameters
    ----------
    fn : Function
        Operation whose backward rule is invoked.
    node : GraphNode
        The operation's recorded wiring.
    grad_outs : Sequence[tensor]
        One gradient per output (exactly one for single-output nodes).

    Returns
    -------
    Sequence[tensor | None]
        Gradients aligned with `node.inputs`.

    Raises
    ------
    GradientCountMismatchError
        If the rule returns a different number of gradients than inputs.
    ContractViolationError
        If the rule does not return a list or tuple.
    """
    if node.is_multi_output:
        grads = fn.backward_multi(list(grad_outs))
    else:
        grads = fn.backward(grad_outs[0])

    if not isinstance(grads, (list, tuple)):
        raise ContractViolationError(
            f"{fn.op_name}.backward must return a list or tuple of gradients, "
            f"got {type(grads)!r}"
        )
    if len(grads) != len(node.inputs):
        raise GradientCountMismatchError(fn.op_name, len(node.inputs), len(grads))
    return grads


# -------------------------------------------------------------------------
# Recursive strategy
# -------------------------------------------------------------------------
def _topological_creators(root: IValue) -> list[Function]:
    """
    Return the operations reachable from `root`, inputs before consumers.

    The walk is recursive and its bookkeeping is local to this call. An
    operation that is reached again after it was finished is skipped; one
    that is reached again while its own inputs are still being walked means
    the graph has a cycle, which graph construction can never produce, and
    raises `InvariantViolationError`. Values with ``requires_grad=False``
    have their gradient cleared and are not walked through.
    """
    order: list[Function] = []
    done: set[int] = set()
    active: set[int] = set()

    def visit(value: IValue) -> None:
        if not value.requires_grad:
            value.clear_grad()
            return
        fn = value.creator
        if fn is None or id(fn) in done:
            return
        if id(fn) in active:
            raise InvariantViolationError(
                f"{fn.op_name} reached again while its inputs are being walked"
            )
        active.add(id(fn))
        node = _live_node(fn)
        if node is not None:
            for parent in node.inputs:
                visit(parent)
            order.append(fn)
        active.discard(id(fn))
        done.add(id(fn))

    visit(root)
    return order


def backward_recursive(value: IValue) -> None:
    """
    Backpropagate from `value` with the recursive, single-visit strategy.

    Parameters
    ----------
    value : IValue
        Terminal value. Seeded with ones if it has no gradient yet.

    Raises
    ------
    GradientCountMismatchError
        If a backward rule returns the wrong number of gradients.
    GradientShapeMismatchError
        If a backward rule returns a gradient whose shape does not match its
        input.
    InvariantViolationError
        On engine inconsistencies (e.g. multi-output node without outputs).
    """
    if not _seed(value):
        return

    order = _topological_creators(value)
    processed = 0

    for fn in reversed(order):
        node = fn.node
        if node is None:
            continue

        outputs = node.outputs
        stored = [_attached_grad(fn, out) for out in outputs]
        if all(g is None for g in stored):
            # No gradient flowing to this node; skip
            continue

        grad_outs = [
            g if g is not None else _zeros_like(out) for g, out in zip(stored, outputs)
        ]
        grads = _invoke_backward(fn, node, grad_outs)
        processed += 1

        for parent, g in zip(node.inputs, grads):
            if g is None:
                continue
            parent.accumulate_grad(g)

    logger.debug(
        "recursive backward from %r processed %d operations", value, processed
    )


# -------------------------------------------------------------------------
# Iterative strategy
# -------------------------------------------------------------------------
def backward_iterative(value: IValue) -> None:
    """
    Backpropagate from `value` with the explicit-stack strategy.

    No visited set is kept: an operation reachable along N paths is invoked
    N times, each time with the contribution of one path only (sibling
    outputs of multi-output operations are given zeros for that step). Only
    the terminal value's stored gradient is used as a seed; gradients stored
    on intermediate values before the call are not re-propagated.

    Parameters
    ----------
    value : IValue
        Terminal value. Seeded with ones if it has no gradient yet.

    Raises
    ------
    GradientCountMismatchError
        If a backward rule returns the wrong number of gradients.
    GradientShapeMismatchError
        If a backward rule returns a gradient whose shape does not match its
        input.
    InvariantViolationError
        On engine inconsistencies (e.g. multi-output node without outputs).
    """
    if not _seed(value):
        return

    stack: list[tuple[IValue, Any]] = [(value, value.grad)]
    processed = 0

    while stack:
        current, incoming = stack.pop()
        fn = current.creator
        if fn is None:
            continue
        node = _live_node(fn)
        if node is None:
            continue

        if node.is_multi_output:
            grad_outs = [
                incoming if out is current else _zeros_like(out)
                for out in node.outputs
            ]
        else:
            grad_outs = [incoming]

        grads = _invoke_backward(fn, node, grad_outs)
        processed += 1

        for parent, g in zip(node.inputs, grads):
            if g is None:
                continue
            parent.accumulate_grad(g)
            if parent.requires_grad and parent.creator is not None:
                stack.append((parent, g))

    logger.debug(
        "iterative backward from %r processed %d operations", value, processed
    )


def backward(
    value: IValue,
    strategy: Optional[BackwardStrategy] = None,
    *,
    mode: Optional[GraphMode] = None,
) -> None:
    """
    Backpropagate from `value` with the given (or configured) strategy.

    Parameters
    ----------
    value : IValue
        Terminal value.
    strategy : BackwardStrategy, optional
        Traversal strategy. Defaults to the strategy of the effective
        `GraphMode`.
    mode : GraphMode, optional
        Mode whose strategy is used when `strategy` is omitted. Defaults to
        the context's current mode.
    """
    chosen = resolve_mode(mode).strategy if strategy is None else strategy
    if chosen is BackwardStrategy.ITERATIVE:
        backward_iterative(value)
    else:
        backward_recursive(value)


# -------------------------------------------------------------------------
# Graph severing
# -------------------------------------------------------------------------
def unchain_backward(value: IValue) -> None:
    """
    Sever the whole upstream chain feeding `value`.

    Every operation reachable through creator links is unchained (its
    recorded inputs and outputs are dropped) and its outputs are detached
    from it; the walk then continues into the operation's former inputs.
    Calling this on a leaf, or twice on the same value, is a no-op.
    """
    stack: list[IValue] = [value]
    severed = 0

    while stack:
        current = stack.pop()
        fn = current.creator
        if fn is None:
            continue

        parents = fn.inputs
        for out in fn.outputs:
            out.detach_from_graph()
        current.detach_from_graph()
        fn.unchain()
        severed += 1

        stack.extend(parents)

    if severed:
        logger.debug("unchained %d operations upstream of %r", severed, value)
