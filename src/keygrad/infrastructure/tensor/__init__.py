from ._numpy_backend import (
    DEFAULT_DTYPE,
    add,
    as_tensor,
    copy,
    ones,
    preview,
    same_shape,
    shape_of,
    zeros,
)

__all__ = [
    "DEFAULT_DTYPE",
    "add",
    "as_tensor",
    "copy",
    "ones",
    "preview",
    "same_shape",
    "shape_of",
    "zeros",
]
