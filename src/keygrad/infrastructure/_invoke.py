"""
Invocation entry points (graph construction).

`call` and `call_multi` are the only way operations are wired into a graph.
Both follow the same sequence:

1. validate the inputs: arity must match `Function.require_input_count()`
   (unless the operation is variadic) and no input may be None,
2. unwrap the input values into tensors,
3. run the operation's forward computation,
4. wrap each result tensor in a new `Value`,
5. decide whether to record graph edges: only when the effective
   `GraphMode` has ``training=True`` and at least one input requires
   gradients,
6. if so, record a `GraphNode` on the operation and point every output's
   `creator` at it.

When step 5 decides against recording, the outputs are returned as ungraphed
leaves and the operation keeps no reference to them, which keeps inference
cheap in both time and memory.

Validation happens before anything is evaluated: a failing call produces no
value and leaves the operation unwired.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from ..domain._errors import ArityMismatchError, NullInputError
from ..domain._function import VARIADIC, Function, GraphNode, OutputArity
from ._config import GraphMode, resolve_mode
from ._value import Value

logger = logging.getLogger(__name__)


def _validate_inputs(fn: Function, inputs: Sequence[Optional[Value]]) -> None:
    """
    Check arity and reject missing inputs.

    Raises
    ------
    ArityMismatchError
        If the operation declares a fixed arity that differs from
        `len(inputs)`.
    NullInputError
        If any input is None.
    TypeError
        If any input is not a `Value`.
    """
    required = fn.require_input_count()
    if required != VARIADIC and len(inputs) != required:
        raise ArityMismatchError(fn.op_name, required, len(inputs))

    for i, v in enumerate(inputs):
        if v is None:
            raise NullInputError(fn.op_name, i)
        if not isinstance(v, Value):
            raise TypeError(
                f"{fn.op_name} input {i} must be a Value, got {type(v)!r}"
            )


def _should_build_graph(inputs: Sequence[Value], mode: GraphMode) -> bool:
    if not mode.training:
        return False
    return any(v.requires_grad for v in inputs)


def _wire(
    fn: Function,
    inputs: Sequence[Value],
    outputs: Sequence[Value],
    arity: OutputArity,
) -> None:
    fn._attach(GraphNode(inputs=tuple(inputs), outputs=tuple(outputs), arity=arity))
    for out in outputs:
        out._set_creator(fn)


def call(fn: Function, *inputs: Value, mode: Optional[GraphMode] = None) -> Value:
    """
    Invoke a single-output operation.

    Parameters
    ----------
    fn : Function
        Freshly constructed operation instance.
    *inputs : Value
        Input values.
    mode : GraphMode, optional
        Graph mode for this invocation. Defaults to the context's current
        mode (see `keygrad.no_grad` / `keygrad.use_mode`).

    Returns
    -------
    Value
        The output value. Its `creator` is `fn` if graph edges were recorded,
        None otherwise.

    Raises
    ------
    ArityMismatchError
        If the number of inputs does not match the operation's arity.
    NullInputError
        If any input is None.
    """
    _validate_inputs(fn, inputs)
    effective = resolve_mode(mode)

    out_data = fn.forward(*(v.data for v in inputs))
    output = Value(out_data)

    if _should_build_graph(inputs, effective):
        _wire(fn, inputs, (output,), OutputArity.SINGLE)
        logger.debug("wired %s with %d inputs", fn.op_name, len(inputs))
    else:
        logger.debug("%s invoked without graph construction", fn.op_name)

    return output


def call_multi(
    fn: Function, *inputs: Value, mode: Optional[GraphMode] = None
) -> tuple[Value, ...]:
    """
    Invoke a multi-output operation.

    The operation must implement `forward_multi` (and `backward_multi` for
    gradients to flow). Every output shares the same creator, and during
    backward the creator receives one gradient per output.

    Parameters
    ----------
    fn : Function
        Freshly constructed operation instance.
    *inputs : Value
        Input values.
    mode : GraphMode, optional
        Graph mode for this invocation. Defaults to the context's current
        mode.

    Returns
    -------
    tuple[Value, ...]
        The output values, in the order returned by `forward_multi`.

    Raises
    ------
    ArityMismatchError
        If the number of inputs does not match the operation's arity.
    NullInputError
        If any input is None.
    UnsupportedOperationError
        If the operation does not implement `forward_multi`.
    """
    _validate_inputs(fn, inputs)
    effective = resolve_mode(mode)

    out_data: Sequence[Any] = fn.forward_multi(*(v.data for v in inputs))
    outputs = tuple(Value(d) for d in out_data)

    if _should_build_graph(inputs, effective):
        _wire(fn, inputs, outputs, OutputArity.MULTI)
        logger.debug(
            "wired %s with %d inputs and %d outputs",
            fn.op_name,
            len(inputs),
            len(outputs),
        )
    else:
        logger.debug("%s invoked without graph construction", fn.op_name)

    return outputs
