"""Callback adaptation for positional ``(item, index)`` arguments.

Combinators always have an index to offer, but Python callables reject extra
positional arguments, and optional ones would silently absorb it. bind_index()
inspects a callback once and returns a wrapper with a fixed call shape,
passing the trailing index only to callbacks that ask for it: a required
positional parameter in that slot, or ``*args``.

Classes and callables without an introspectable signature receive no index,
so ``map(stream, int)`` converts items rather than treating the index as a base.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .capabilities import is_deferred

R = TypeVar("R")

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def _required_positionals(func: Callable[..., object]) -> int | None:
    """Required positional parameters of func; None means it takes *args."""
    if isinstance(func, type):
        return 1
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return 1
    count = 0
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in _POSITIONAL and param.default is inspect.Parameter.empty:
            count += 1
    return count


def wants_positional(func: Callable[..., object], n: int) -> bool:
    """Whether func requires at least n positional arguments (or takes *args)."""
    required = _required_positionals(func)
    return required is None or required >= n


def bind_index(func: Callable[..., R], arity: int) -> Callable[..., R]:
    """Return a callable always invoked as ``f(*args, index)``.
    
    ``arity`` is the number of leading arguments besides the index: 1 for
    ``map``-style ``(item, index)``, 2 for ``fold``-style ``(acc, item, index)``.
    
    Example:
        >>> bind_index(lambda x: x * 2, 1)(21, 0)
        42
        >>> bind_index(lambda x, i: (i, x), 1)("a", 3)
        (3, 'a')
    """
    if wants_positional(func, arity + 1):
        return func

    def without_index(*args: Any) -> R:
        return func(*args[:arity])

    return without_index


async def resolve(value: R | Awaitable[R]) -> R:
    """Await value if it is deferred, otherwise return it unchanged."""
    if is_deferred(value):
        return await value  # type: ignore[misc]
    return value  # type: ignore[return-value]
