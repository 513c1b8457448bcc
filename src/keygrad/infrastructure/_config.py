"""
Graph mode configuration.

Whether forward invocations record graph edges ("training" mode) is not a
hidden module global. It is carried by an immutable `GraphMode` object which
can be passed explicitly to the invocation entry points (`mode=...`). When no
mode is passed, the effective mode is read from a context variable, so
threads and asyncio tasks each see their own setting and a `with no_grad():`
block in one of them never leaks into another.

The process-wide default is read from the environment once, at import:

- ``KEYGRAD_TRAINING``: graph construction on/off. Defaults to on; "0", "",
  "false" (any case) turn it off.
- ``KEYGRAD_BACKWARD_STRATEGY``: "recursive" (default) or "iterative";
  the strategy used by `keygrad.backward` when none is given.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, Mapping, Optional

logger = logging.getLogger(__name__)

ENV_TRAINING = "KEYGRAD_TRAINING"
ENV_BACKWARD_STRATEGY = "KEYGRAD_BACKWARD_STRATEGY"

_FALSEY = ("0", "", "false")


class BackwardStrategy(Enum):
    """
    Backward traversal strategies.

    Attributes
    ----------
    RECURSIVE : BackwardStrategy
        Depth-first walk with a per-call visited set. Each operation is
        processed exactly once; graph depth is bounded by the interpreter
        recursion limit.
    ITERATIVE : BackwardStrategy
        Explicit-stack walk without a visited set. Safe on arbitrarily deep
        graphs, but an operation reached along several paths is processed
        once per path.
    """

    RECURSIVE = "recursive"
    ITERATIVE = "iterative"


@dataclass(frozen=True)
class GraphMode:
    """
    Immutable graph-construction settings.

    Attributes
    ----------
    training : bool
        If True, invocations whose inputs require gradients record graph
        edges. If False, every invocation returns ungraphed leaves.
    strategy : BackwardStrategy
        Default traversal used by `keygrad.backward` when no strategy is
        given explicitly.
    """

    training: bool = True
    strategy: BackwardStrategy = BackwardStrategy.RECURSIVE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GraphMode":
        """
        Build a mode from environment variables.

        Parameters
        ----------
        environ : Mapping[str, str], optional
            Source mapping. Defaults to `os.environ`.

        Returns
        -------
        GraphMode
            Mode reflecting ``KEYGRAD_TRAINING`` and
            ``KEYGRAD_BACKWARD_STRATEGY``; unset variables keep the defaults.

        Raises
        ------
        ValueError
            If ``KEYGRAD_BACKWARD_STRATEGY`` names an unknown strategy.
        """
        env = os.environ if environ is None else environ

        training = True
        raw_training = env.get(ENV_TRAINING)
        if raw_training is not None:
            training = raw_training.strip().lower() not in _FALSEY

        strategy = BackwardStrategy.RECURSIVE
        raw_strategy = env.get(ENV_BACKWARD_STRATEGY)
        if raw_strategy is not None and raw_strategy.strip():
            try:
                strategy = BackwardStrategy(raw_strategy.strip().lower())
            except ValueError:
                valid = ", ".join(s.value for s in BackwardStrategy)
                raise ValueError(
                    f"Invalid {ENV_BACKWARD_STRATEGY}={raw_strategy!r}; expected one of: {valid}"
                ) from None

        return cls(training=training, strategy=strategy)


_DEFAULT_MODE = GraphMode.from_env()
_current_mode: ContextVar[GraphMode] = ContextVar(
    "keygrad_graph_mode", default=_DEFAULT_MODE
)


def current_mode() -> GraphMode:
    """
    Return the graph mode in effect for the current context.
    """
    return _current_mode.get()


def resolve_mode(mode: Optional[GraphMode]) -> GraphMode:
    """
    Return `mode` if given, otherwise the context's current mode.
    """
    return current_mode() if mode is None else mode


def set_mode(mode: GraphMode) -> Token:
    """
    Set the graph mode for the current context.

    Returns
    -------
    Token
        Token accepted by `reset_mode` to restore the previous mode.
    """
    if not isinstance(mode, GraphMode):
        raise TypeError(f"mode must be a GraphMode, got {type(mode)!r}")
    return _current_mode.set(mode)


def reset_mode(token: Token) -> None:
    """
    Restore the mode that was active before the matching `set_mode` call.
    """
    _current_mode.reset(token)


@contextmanager
def use_mode(mode: GraphMode) -> Iterator[GraphMode]:
    """
    Run a block under `mode`, restoring the previous mode on exit.
    """
    token = set_mode(mode)
    logger.debug("graph mode set to %s", mode)
    try:
        yield mode
    finally:
        reset_mode(token)


@contextmanager
def no_grad() -> Iterator[GraphMode]:
    """
    Run a block without graph construction (inference).

    Invocations inside the block return ungraphed values even when their
    inputs require gradients. The backward strategy setting is kept.
    """
    with use_mode(replace(current_mode(), training=False)) as mode:
        yield mode
