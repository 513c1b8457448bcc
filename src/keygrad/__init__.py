"""
keygrad: a small reverse-mode automatic differentiation engine.

Operations are written against the `Function` contract and wired into a
computation graph by `call` / `call_multi`; `Value.backward()` walks that
graph back to the leaves.

Example
-------
>>> class Square(Function):
...     def require_input_count(self):
...         return 1
...     def forward(self, x):
...         self.save_for_backward(x)
...         return x * x
...     def backward(self, grad_out):
...         (x,) = self.saved_tensors
...         return (2 * x * grad_out,)
>>> x = Value([3.0])
>>> y = call(Square(), x)
>>> y.backward()
>>> x.grad
array([6.], dtype=float32)
"""

import logging

from .domain._errors import (
    ArityMismatchError,
    AutogradError,
    ContractViolationError,
    GradientCountMismatchError,
    GradientShapeMismatchError,
    InvariantViolationError,
    NullInputError,
    UnsupportedOperationError,
)
from .domain._function import VARIADIC, Function, GraphNode, OutputArity
from .domain._tensor import ITensor
from .domain._value import IValue
from .infrastructure._backward import (
    backward,
    backward_iterative,
    backward_recursive,
    unchain_backward,
)
from .infrastructure._config import (
    BackwardStrategy,
    GraphMode,
    current_mode,
    no_grad,
    use_mode,
)
from .infrastructure._graph_visualizer import (
    GraphSnapshot,
    clear_graph_grads,
    collect_graph,
    display_graph,
    render_graph,
)
from .infrastructure._invoke import call, call_multi
from .infrastructure._value import Value

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ArityMismatchError",
    "AutogradError",
    "BackwardStrategy",
    "ContractViolationError",
    "Function",
    "GradientCountMismatchError",
    "GradientShapeMismatchError",
    "GraphMode",
    "GraphNode",
    "GraphSnapshot",
    "ITensor",
    "IValue",
    "InvariantViolationError",
    "NullInputError",
    "OutputArity",
    "UnsupportedOperationError",
    "VARIADIC",
    "Value",
    "backward",
    "backward_iterative",
    "backward_recursive",
    "call",
    "call_multi",
    "clear_graph_grads",
    "collect_graph",
    "current_mode",
    "display_graph",
    "no_grad",
    "render_graph",
    "unchain_backward",
    "use_mode",
]
