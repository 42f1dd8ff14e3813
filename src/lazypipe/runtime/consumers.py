"""Terminal consumers: drive a stream and return an aggregate.

Each consumer pulls until the stream is exhausted or a stopping condition is
met, then releases it. Callback failures propagate to the caller unchanged.
"""

from __future__ import annotations

from typing import TypeVar

from lazypipe.foundation.callbacks import bind_index, resolve

from .combinators import FoldFn, ItemFn, PipeStream, enumerate, pulling, take

T = TypeVar("T")
R = TypeVar("R")

__all__ = ["collect", "find", "fold", "for_each", "join"]


async def for_each(
    stream: PipeStream[T],
    func: ItemFn[T, object],
) -> None:
    """Call ``func(item, index)`` for every item, awaiting async results."""
    call = bind_index(func, 1)
    async with pulling(enumerate(stream)) as pairs:
        async for item, index in pairs:
            await resolve(call(item, index))


async def collect(stream: PipeStream[T], count: int | None = None) -> list[T]:
    """Gather items into a list, at most ``count`` of them when given."""
    source = take(stream, count) if count is not None else stream
    async with pulling(source) as items:
        return [item async for item in items]


async def fold(
    stream: PipeStream[T],
    func: FoldFn[R, T],
    init: R,
) -> R:
    """Reduce the stream with ``func(acc, item, index)`` starting from ``init``."""
    call = bind_index(func, 2)
    acc = init
    async with pulling(enumerate(stream)) as pairs:
        async for item, index in pairs:
            acc = await resolve(call(acc, item, index))
    return acc


async def find(
    stream: PipeStream[T],
    predicate: ItemFn[T, object],
) -> tuple[T, int] | None:
    """First ``(item, index)`` satisfying the predicate, or None.
    
    The stream is released as soon as a match is found.
    """
    call = bind_index(predicate, 1)
    async with pulling(enumerate(stream)) as pairs:
        async for item, index in pairs:
            if await resolve(call(item, index)):
                return item, index
    return None


async def join(stream: PipeStream[T], joiner: str) -> str:
    """Concatenate ``str(item)`` values separated by ``joiner``."""

    def append(prev: str, cur: T, index: int) -> str:
        return f"{prev}{joiner}{cur}" if index > 0 else str(cur)

    return await fold(stream, append, "")
