"""
NumPy tensor backend.

The autograd engine treats tensors as opaque. Everything it needs from the
tensor library (shape queries, element-wise addition, all-ones / all-zeros
allocation, copies) goes through the small set of helpers defined here, so
the traversal and value code never touch element storage directly.

Notes
-----
- Tensors are plain `np.ndarray` objects; they satisfy the domain `ITensor`
  protocol structurally.
- Helpers always return new arrays. Nothing here mutates its arguments.
"""

from __future__ import annotations

from typing import Any

import numpy as np

DEFAULT_DTYPE = np.float32


def as_tensor(data: Any, dtype: Any = None) -> np.ndarray:
    """
    Convert array-like input into a tensor.

    Parameters
    ----------
    data : Any
        A NumPy array, Python scalar or (nested) sequence of numbers.
    dtype : np.dtype, optional
        Target dtype. When omitted, NumPy arrays keep their dtype and all other
        inputs are converted to `float32`.

    Returns
    -------
    np.ndarray
        A tensor holding `data`. NumPy inputs with a matching dtype are
        returned without copying.

    Raises
    ------
    TypeError
        If `data` is None.
    """
    if data is None:
        raise TypeError("Tensor data cannot be None")
    if isinstance(data, np.ndarray):
        return data if dtype is None else data.astype(dtype, copy=False)
    return np.asarray(data, dtype=DEFAULT_DTYPE if dtype is None else dtype)


def ones(shape: tuple[int, ...], dtype: Any = DEFAULT_DTYPE) -> np.ndarray:
    """
    Allocate an all-ones tensor of the given shape.
    """
    return np.ones(shape, dtype=dtype)


def zeros(shape: tuple[int, ...], dtype: Any = DEFAULT_DTYPE) -> np.ndarray:
    """
    Allocate an all-zeros tensor of the given shape.
    """
    return np.zeros(shape, dtype=dtype)


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Add two tensors of identical shape into a new tensor.

    Raises
    ------
    ValueError
        If the shapes differ. Gradient accumulation never broadcasts.
    """
    if a.shape != b.shape:
        raise ValueError(f"Shape mismatch in add: {a.shape} vs {b.shape}")
    return a + b


def copy(t: np.ndarray) -> np.ndarray:
    """
    Return an independent copy of `t`.
    """
    return np.array(t, copy=True)


def shape_of(t: Any) -> tuple[int, ...]:
    """
    Return the shape of a tensor as a tuple.
    """
    return tuple(np.shape(t))


def same_shape(a: Any, b: Any) -> bool:
    """
    Return True if both tensors have exactly the same shape.
    """
    return shape_of(a) == shape_of(b)


def preview(t: np.ndarray, max_items: int = 5) -> str:
    """
    Return a compact, human-readable rendering of a tensor's values.

    Small tensors are printed in full; larger ones show the first two and
    the last element plus the element count.
    """
    flat = np.ravel(t)
    if flat.size == 0:
        return "[]"
    if flat.size == 1:
        return f"{float(flat[0]):.4f}"
    if flat.size <= max_items:
        return "[" + ", ".join(f"{float(v):.4f}" for v in flat) + "]"
    return (
        f"[{float(flat[0]):.4f}, {float(flat[1]):.4f}, ..., "
        f"{float(flat[-1]):.4f}] ({flat.size} elements)"
    )
