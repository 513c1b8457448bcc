"""
Computation graph inspection utilities.

Helpers for looking at (and resetting) the graph hanging off a value:

- `collect_graph` gathers every value and operation reachable through
  creator links, each exactly once, in discovery order.
- `render_graph` formats the graph as a plain-text report: a value table, an
  operation table and a tree from the output back to the inputs.
- `display_graph` writes that report to a stream (stdout by default).
- `clear_graph_grads` clears the gradient of every reachable value, which is
  what a training loop does between iterations.

All walks use explicit stacks, so they work on graphs deeper than the
interpreter recursion limit.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Optional, TextIO

from ..domain._function import Function
from ..domain._value import IValue
from .tensor import _numpy_backend as backend


@dataclass
class GraphSnapshot:
    """
    Values and operations reachable from a root value.

    Attributes
    ----------
    root : IValue
        The value the walk started from.
    values : list[IValue]
        Reachable values in discovery order, root first.
    functions : list[Function]
        Reachable operations in discovery order.
    """

    root: IValue
    values: list[IValue] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)

    def value_ids(self) -> dict[int, int]:
        return {id(v): i for i, v in enumerate(self.values)}

    def function_ids(self) -> dict[int, int]:
        return {id(f): i for i, f in enumerate(self.functions)}


def collect_graph(root: IValue) -> GraphSnapshot:
    """
    Collect every value and operation reachable from `root`.

    Parameters
    ----------
    root : IValue
        Starting value.

    Returns
    -------
    GraphSnapshot
        Reachable nodes, each listed once, in depth-first discovery order
        (a value, then its creator, then the creator's inputs in order).
    """
    snapshot = GraphSnapshot(root=root)
    seen_values: set[int] = set()
    seen_functions: set[int] = set()
    stack: list[IValue] = [root]

    while stack:
        value = stack.pop()
        if id(value) in seen_values:
            continue
        seen_values.add(id(value))
        snapshot.values.append(value)

        fn = value.creator
        if fn is None:
            continue
        if id(fn) not in seen_functions:
            seen_functions.add(id(fn))
            snapshot.functions.append(fn)
        stack.extend(reversed(fn.inputs))

    return snapshot


def clear_graph_grads(root: IValue) -> int:
    """
    Clear the gradient of every value reachable from `root`.

    Returns
    -------
    int
        Number of values visited.
    """
    snapshot = collect_graph(root)
    for value in snapshot.values:
        value.clear_grad()
    return len(snapshot.values)


def _value_label(value: IValue) -> str:
    name = getattr(value, "name", None)
    return name if name is not None else "unnamed"


def _refs(values: tuple[IValue, ...], ids: dict[int, int]) -> str:
    return ", ".join(f"V{ids[id(v)]}" if id(v) in ids else "V?" for v in values)


def render_graph(root: IValue) -> str:
    """
    Render the graph reachable from `root` as a plain-text report.

    Parameters
    ----------
    root : IValue
        Output value to start from.

    Returns
    -------
    str
        Multi-line report with a value table, an operation table and a tree
        from `root` back to the leaves. A value reached a second time in the
        tree is printed once more with a "(see above)" marker instead of its
        subtree.
    """
    snapshot = collect_graph(root)
    value_ids = snapshot.value_ids()
    function_ids = snapshot.function_ids()
    lines: list[str] = ["=== computation graph ===", "", "values:"]

    for value in snapshot.values:
        marker = " [requires_grad]" if value.requires_grad else ""
        lines.append(
            f"  V{value_ids[id(value)]}: {_value_label(value)} "
            f"[shape: {value.shape}] [value: {backend.preview(value.data)}]{marker}"
        )

    lines.append("")
    lines.append("operations:")
    for fn in snapshot.functions:
        lines.append(
            f"  F{function_ids[id(fn)]}: {fn.op_name} "
            f"[inputs: {_refs(fn.inputs, value_ids)}] "
            f"[outputs: {_refs(fn.outputs, value_ids)}]"
        )

    lines.append("")
    lines.append("tree (output to inputs):")
    shown: set[int] = set()
    frames: list[tuple[IValue, str, bool]] = [(root, "", True)]

    while frames:
        value, prefix, is_last = frames.pop()
        connector = "└── " if is_last else "├── "
        vid = value_ids[id(value)]
        if id(value) in shown:
            lines.append(f"{prefix}{connector}V{vid} ({_value_label(value)}) (see above)")
            continue
        shown.add(id(value))
        lines.append(f"{prefix}{connector}V{vid} ({_value_label(value)})")

        fn = value.creator
        if fn is None:
            continue
        child_prefix = prefix + ("    " if is_last else "│   ")
        lines.append(f"{child_prefix}└── F{function_ids[id(fn)]} ({fn.op_name})")
        parents = fn.inputs
        # reversed so the first input is rendered first
        for i in range(len(parents) - 1, -1, -1):
            frames.append((parents[i], child_prefix + "    ", i == len(parents) - 1))

    lines.append("=== end of graph ===")
    return "\n".join(lines)


def display_graph(root: IValue, stream: Optional[TextIO] = None) -> None:
    """
    Write `render_graph(root)` to `stream` (stdout by default).
    """
    out = sys.stdout if stream is None else stream
    out.write(render_graph(root) + "\n")
