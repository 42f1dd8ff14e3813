"""Capability checks classifying values entering a pipeline.

Side-effect-free predicates decide how a value is iterated:

    - is_sync_sequence: supports synchronous pull iteration (``__iter__``)
    - is_async_sequence: supports suspension-based pull iteration (``__aiter__``)
    - is_deferred: a single value that resolves later (any awaitable)
    - is_stream: anything iterable, used for values passed explicitly as streams

Text, binary and mapping values are atoms: they are iterable in Python, but
flatten() and pipe() never treat them as sequences, so flattening
``["ab", {"k": 1}]`` keeps both items whole.

classify() tags a value once at the boundary (see pipe()) so the engine does not
re-check it internally.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterable, Iterable, Mapping
from enum import StrEnum

__all__ = ["SourceKind", "classify", "is_async_sequence", "is_deferred", "is_stream", "is_sync_sequence"]

_ATOMS: tuple[type, ...] = (str, bytes, bytearray, memoryview, Mapping)


class SourceKind(StrEnum):
    """How a pipeline input is consumed."""
    ASYNC = "async"
    SYNC = "sync"
    DEFERRED = "deferred"
    SCALAR = "scalar"


def is_async_sequence(value: object) -> bool:
    """True if value can be consumed with ``async for``."""
    return isinstance(value, AsyncIterable)


def is_sync_sequence(value: object) -> bool:
    """True if value can be consumed with ``for`` and is not an atom (str, bytes, mapping)."""
    return isinstance(value, Iterable) and not isinstance(value, _ATOMS)


def is_deferred(value: object) -> bool:
    """True if value is awaitable (coroutine, Future, Task, or ``__await__`` implementor)."""
    return inspect.isawaitable(value)


def is_stream(value: object) -> bool:
    """True if value can be iterated at all, atoms included.
    
    Used where a value is explicitly passed as a stream: ``from_iterable("ab")``
    yields the characters. Only flatten() and pipe() apply the atom rule.
    """
    return isinstance(value, (AsyncIterable, Iterable))


def classify(value: object) -> SourceKind:
    """Tag a value with the way it should be consumed.
    
    Async iteration wins over sync iteration for objects supporting both.
    Deferred is checked first: an awaitable is resolved before anything else.
    """
    if is_deferred(value):
        return SourceKind.DEFERRED
    if is_async_sequence(value):
        return SourceKind.ASYNC
    if is_sync_sequence(value):
        return SourceKind.SYNC
    return SourceKind.SCALAR
