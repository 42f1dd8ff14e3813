"""Lazy, pull-based stream combinators.

Each combinator takes a stream (any sync or async iterable) and returns an
async generator that pulls its input only when it is itself pulled. Nothing
runs until the first ``__anext__``; no values are buffered.

Callbacks receive ``(item, index)`` where index is the input position; a
callback taking only ``item`` is called without the index. Callbacks may
return awaitables, which are awaited before the next item is pulled.

When a combinator stops early (closed by its consumer, ``take`` reaching its
count, or a callback raising) it releases the input it was iterating.

Key Operations:
    - enumerate, map, filter, peek: per-item transforms
    - take, skip: positional slicing
    - flatten, chain: structural composition
    - from_iterable, from_promise: adapters for plain and deferred values
    - next_item: pull one value from any source

Example:
    >>> from lazypipe.runtime import combinators as c
    >>> evens = c.filter(c.from_iterable(range(10)), lambda x: x % 2 == 0)
    >>> doubled = c.map(c.take(evens, 3), lambda x, i: x * 2 + i)
    >>> await collect(doubled)
    [0, 5, 10]
"""

from __future__ import annotations

import builtins
from collections.abc import AsyncGenerator, AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable, Iterator
from contextlib import asynccontextmanager
from typing import TypeVar, Union

from lazypipe.foundation.callbacks import bind_index, resolve
from lazypipe.foundation.capabilities import is_async_sequence, is_stream, is_sync_sequence
from lazypipe.foundation.errors import InvalidArgumentError

T = TypeVar("T")
U = TypeVar("U")

PipeStream = Union[AsyncIterable[T], Iterable[T]]
MaybeAwaitable = Union[T, Awaitable[T]]
# Callbacks take (item, index) or just item; FoldFn is parameterised as [acc, item]
ItemFn = Union[Callable[[T, int], MaybeAwaitable[U]], Callable[[T], MaybeAwaitable[U]]]
FoldFn = Union[Callable[[U, T, int], MaybeAwaitable[U]], Callable[[U, T], MaybeAwaitable[U]]]

__all__ = [
    "FoldFn",
    "ItemFn",
    "MaybeAwaitable",
    "PipeStream",
    "aiter_of",
    "chain",
    "enumerate",
    "filter",
    "flatten",
    "from_iterable",
    "from_promise",
    "map",
    "next_item",
    "peek",
    "pulling",
    "release",
    "skip",
    "take",
    "validate_count",
]


# ─────────────────────────────────────────────────────────────────────────────
# Source access
# ─────────────────────────────────────────────────────────────────────────────


async def _from_sync(iterator: Iterator[T]) -> AsyncGenerator[T, None]:
    """Expose a sync iterator through the async protocol; closes it on exit."""
    try:
        for item in iterator:
            yield item
    finally:
        if (close := getattr(iterator, "close", None)) is not None:
            close()


def aiter_of(stream: PipeStream[T]) -> AsyncIterator[T]:
    """Async iterator over any sync or async iterable (text iterates its characters)."""
    if is_async_sequence(stream):
        return builtins.aiter(stream)  # type: ignore[arg-type]
    if is_stream(stream):
        return _from_sync(builtins.iter(stream))  # type: ignore[arg-type]
    raise InvalidArgumentError.for_operation(
        "stream", f"expected a sync or async iterable, got {type(stream).__name__}",
    )


async def release(iterator: object) -> None:
    """Invoke the early-release capability of an iterator, if it has one."""
    if (aclose := getattr(iterator, "aclose", None)) is not None:
        await aclose()
    elif (close := getattr(iterator, "close", None)) is not None:
        close()


@asynccontextmanager
async def pulling(stream: PipeStream[T]) -> AsyncGenerator[AsyncIterator[T], None]:
    """Iterate stream inside a scope that releases it on exit.
    
    Example:
        >>> async with pulling(source) as items:
        ...     async for item in items:
        ...         if done(item):
        ...             break  # source released here
    """
    iterator = aiter_of(stream)
    try:
        yield iterator
    finally:
        await release(iterator)


async def next_item(stream: PipeStream[T] | Iterator[T], default: U | None = None) -> T | U | None:
    """Pull exactly one value from a sync or async source.
    
    Returns ``default`` once the source is exhausted. Pass an iterator (or a
    generator) to advance it across calls; a re-iterable collection restarts
    from its first element on every call.
    """
    if is_async_sequence(stream):
        return await builtins.anext(builtins.aiter(stream), default)  # type: ignore[arg-type]
    return builtins.next(builtins.iter(stream), default)  # type: ignore[arg-type]


# ─────────────────────────────────────────────────────────────────────────────
# Per-item transforms
# ─────────────────────────────────────────────────────────────────────────────


async def enumerate(stream: PipeStream[T]) -> AsyncGenerator[tuple[T, int], None]:
    """Yield ``(item, index)`` pairs, index starting at 0."""
    index = 0
    async with pulling(stream) as items:
        async for item in items:
            yield item, index
            index += 1


async def map(
    stream: PipeStream[T],
    func: ItemFn[T, U],
) -> AsyncGenerator[U, None]:
    """Yield ``func(item, index)`` for each item, awaiting async results."""
    call = bind_index(func, 1)
    async with pulling(enumerate(stream)) as pairs:
        async for item, index in pairs:
            yield await resolve(call(item, index))


async def filter(
    stream: PipeStream[T],
    func: ItemFn[T, object],
) -> AsyncGenerator[T, None]:
    """Yield items for which ``func(item, index)`` is truthy.
    
    The index is the item's input position, not its position among kept items.
    """
    call = bind_index(func, 1)
    async with pulling(enumerate(stream)) as pairs:
        async for item, index in pairs:
            if await resolve(call(item, index)):
                yield item


def peek(
    stream: PipeStream[T],
    fn: ItemFn[T, object],
) -> AsyncGenerator[T, None]:
    """Yield items unchanged, calling ``fn(item, index)`` on each as a side effect."""
    call = bind_index(fn, 1)

    async def tap(item: T, index: int) -> T:
        await resolve(call(item, index))
        return item

    return map(stream, tap)


# ─────────────────────────────────────────────────────────────────────────────
# Positional slicing
# ─────────────────────────────────────────────────────────────────────────────


def validate_count(operation: str, count: int) -> None:
    """Reject negative or non-integer counts."""
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidArgumentError.for_operation(operation, f"count must be an int, got {type(count).__name__}")
    if count < 0:
        raise InvalidArgumentError.for_operation(operation, f"count must be >= 0, got {count}")


def take(stream: PipeStream[T], count: int) -> AsyncGenerator[T, None]:
    """Yield at most ``count`` items.
    
    The input is never pulled past the boundary: after the last item the
    input is released instead of being asked for another value.
    """
    validate_count("take", count)
    return _take(stream, count)


async def _take(stream: PipeStream[T], count: int) -> AsyncGenerator[T, None]:
    if count == 0:
        return
    taken = 0
    async with pulling(stream) as items:
        async for item in items:
            yield item
            taken += 1
            if taken >= count:
                return


def skip(stream: PipeStream[T], count: int) -> AsyncGenerator[T, None]:
    """Discard the first ``count`` items, yield the rest."""
    validate_count("skip", count)
    return _skip(stream, count)


async def _skip(stream: PipeStream[T], count: int) -> AsyncGenerator[T, None]:
    async with pulling(enumerate(stream)) as pairs:
        async for item, index in pairs:
            if index >= count:
                yield item


# ─────────────────────────────────────────────────────────────────────────────
# Structural composition
# ─────────────────────────────────────────────────────────────────────────────


async def flatten(stream: PipeStream[PipeStream[T] | T]) -> AsyncGenerator[T, None]:
    """Expand sequence-like items one level; other items pass through unchanged.
    
    Example:
        >>> await collect(flatten([1, [2, [3]], "ab"]))
        [1, 2, [3], 'ab']
    """
    async with pulling(stream) as items:
        async for item in items:
            if is_async_sequence(item) or is_sync_sequence(item):
                async with pulling(item) as inner:  # type: ignore[arg-type]
                    async for sub in inner:
                        yield sub
            else:
                yield item  # type: ignore[misc]


async def chain(first: PipeStream[T], second: PipeStream[T]) -> AsyncGenerator[T, None]:
    """Yield everything from ``first``, then everything from ``second``."""
    for stream in (first, second):
        async with pulling(stream) as items:
            async for item in items:
                yield item


# ─────────────────────────────────────────────────────────────────────────────
# Adapters
# ─────────────────────────────────────────────────────────────────────────────


async def from_iterable(values: Iterable[MaybeAwaitable[T]]) -> AsyncGenerator[T, None]:
    """Stream a finite or infinite collection, resolving deferred values in order."""
    async with pulling(values) as items:
        async for value in items:
            yield await resolve(value)


async def from_promise(promise: Awaitable[T]) -> AsyncGenerator[T, None]:
    """Single-element stream yielding the awaited value."""
    yield await promise
