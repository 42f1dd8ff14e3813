"""Merge engine: interleave N sources in first-ready order.

combine() keeps exactly one outstanding pull per live source. Each pull runs
as an asyncio task; completions are queued in the order they finish and
emitted from that queue, so values appear as soon as any source produces one
while each source's own order is preserved. The merged stream ends when every
source is exhausted.

Abandoning the merged stream (closing it, letting it be collected, or an error
anywhere in it) releases every source still live: its pending pull is
cancelled and its ``aclose()``/``close()`` is invoked once. Sources that
already finished are left alone.

Example:
    >>> async def slow():
    ...     await asyncio.sleep(0.1)
    ...     yield "slow"
    >>> 
    >>> await collect(combine([slow(), ["a", "b"]]))
    ['a', 'b', 'slow']
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncGenerator, Awaitable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, NamedTuple, TypeVar, get_args

from lazypipe.foundation.capabilities import is_async_sequence, is_deferred, is_stream
from lazypipe.foundation.config import ReleaseMode, get_settings
from lazypipe.foundation.errors import ErrorCode, InvalidArgumentError, StreamError
from lazypipe.runtime.observability import get_logger

from .combinators import PipeStream

T = TypeVar("T")

__all__ = ["Combine", "MergeState", "combine", "join_releases"]

Combine = Iterable[PipeStream[T]]

_log = get_logger("lazypipe.merge")

# Strong references to detached release tasks until they finish
_releasing: set[asyncio.Task[None]] = set()


class _Pull(NamedTuple):
    """Outcome of one pull: a value, or exhaustion with the source's final value."""
    exhausted: bool
    value: Any


@dataclass(eq=False)
class MergeState(Generic[T]):
    """Bookkeeping for one combine() run.
    
    Attributes:
        pending: Outstanding pull per live source, keyed by source index
        live: Number of sources not yet exhausted or failed
        results: Final value of each exhausted source (StopIteration.value
            for sync generators, None otherwise)
        errors: Exception raised by a failed source
        released: Indices whose release was issued during teardown
    """
    pending: dict[int, asyncio.Task[_Pull]] = field(default_factory=dict)
    live: int = 0
    results: dict[int, object] = field(default_factory=dict)
    errors: dict[int, BaseException] = field(default_factory=dict)
    released: list[int] = field(default_factory=list)
    
    def is_finished(self, index: int) -> bool:
        """Whether the source at index completed or failed (needs no release)."""
        return index in self.results or index in self.errors


@dataclass(slots=True)
class _Source:
    """An opened input: its iterator and the protocol used to pull it."""
    iterator: Any
    is_async: bool
    
    @classmethod
    def open(cls, index: int, stream: object) -> _Source:
        if is_async_sequence(stream):
            return cls(aiter(stream), True)  # type: ignore[arg-type]
        if is_stream(stream):
            return cls(iter(stream), False)  # type: ignore[arg-type]
        raise InvalidArgumentError.for_operation(
            "combine", f"source {index} is not sequence-like: {type(stream).__name__}",
        )
    
    async def pull(self) -> _Pull:
        if self.is_async:
            try:
                return _Pull(False, await anext(self.iterator))
            except StopAsyncIteration:
                return _Pull(True, None)
        try:
            return _Pull(False, next(self.iterator))
        except StopIteration as stop:
            return _Pull(True, stop.value)
    
    @property
    def releasable(self) -> bool:
        attr = "aclose" if self.is_async else "close"
        return callable(getattr(self.iterator, attr, None))


def _check_release(release: str | None) -> ReleaseMode:
    mode = release or get_settings().merge.release
    if mode not in get_args(ReleaseMode):
        raise InvalidArgumentError.for_operation("combine", f"release must be 'detach' or 'await', got {mode!r}")
    return mode  # type: ignore[return-value]


def combine(
    sources: Combine[T] | Awaitable[Combine[T]],
    *,
    state: MergeState[T] | None = None,
    release: ReleaseMode | None = None,
) -> AsyncGenerator[T, None]:
    """Merge sources into one stream emitting values in arrival order.
    
    Args:
        sources: Sync/async iterables, or an awaitable resolving to them
        state: Optional MergeState to observe the run (pending pulls, results)
        release: "detach" to release abandoned sources in the background
            without waiting, "await" to wait for every release before the
            merged stream finishes closing. Defaults to LAZYPIPE_MERGE_RELEASE.
    
    Returns:
        Async generator over all sources' values
    """
    return _combine(sources, state if state is not None else MergeState(), _check_release(release))


async def _combine(
    sources: Combine[T] | Awaitable[Combine[T]],
    state: MergeState[T],
    mode: ReleaseMode,
) -> AsyncGenerator[T, None]:
    opened: list[_Source] = []
    ready: deque[int] = deque()
    wakeup = asyncio.Event()
    
    def arm(index: int) -> None:
        task = asyncio.ensure_future(opened[index].pull())
        state.pending[index] = task
        task.add_done_callback(lambda _t: (ready.append(index), wakeup.set()))
    
    log = _log
    try:
        if is_deferred(sources):
            sources = await sources  # type: ignore[misc]
        # Sources opened before a failing one are released by teardown
        for i, stream in enumerate(sources):  # type: ignore[arg-type]
            opened.append(_Source.open(i, stream))
        state.live = len(opened)
        log = _log.bind(sources=state.live)
        log.debug("merge started")
        for i in range(len(opened)):
            arm(i)
        
        while state.live:
            while not ready:
                wakeup.clear()
                await wakeup.wait()
            index = ready.popleft()
            task = state.pending.pop(index)
            try:
                pulled = task.result()
            except BaseException as exc:
                state.errors[index] = exc
                state.live -= 1
                error = StreamError.from_exception("merge.pull", exc, ErrorCode.SOURCE_FAILED)
                log.debug("source failed", index=index, code=error.code.value, error=error.message)
                raise
            if pulled.exhausted:
                state.results[index] = pulled.value
                state.live -= 1
                log.debug("source exhausted", index=index, live=state.live)
                continue
            # Re-arm before emitting so the source always has one pull in flight
            arm(index)
            yield pulled.value
        log.debug("merge finished")
    finally:
        await _teardown(opened, state, mode)


async def _teardown(opened: list[_Source], state: MergeState[Any], mode: ReleaseMode) -> None:
    """Cancel outstanding pulls and release every source that is still live."""
    pending = dict(state.pending)
    state.pending.clear()
    for index, task in pending.items():
        if _settled_exhausted(task):
            # Completed while queued behind the value that ended the merge
            state.results[index] = task.result().value
            state.live -= 1
        else:
            task.cancel()

    releases = []
    for index, source in enumerate(opened):
        if state.is_finished(index) or not source.releasable:
            continue
        state.released.append(index)
        releases.append(_release(index, source, pending.get(index)))
    if not releases:
        return
    
    _log.debug("releasing sources", indices=list(state.released), mode=mode)
    if mode == "await":
        await asyncio.gather(*releases)
        return
    for coro in releases:
        task = asyncio.ensure_future(coro)
        _releasing.add(task)
        task.add_done_callback(_releasing.discard)


def _settled_exhausted(task: asyncio.Task[_Pull]) -> bool:
    return task.done() and not task.cancelled() and task.exception() is None and task.result().exhausted


async def _release(index: int, source: _Source, pull: asyncio.Task[_Pull] | None) -> None:
    """Release one source once its cancelled pull has settled."""
    if pull is not None:
        await asyncio.wait([pull])
        if not pull.cancelled():
            pull.exception()  # Mark retrieved; the value is discarded with the source
    try:
        if source.is_async:
            await source.iterator.aclose()
        else:
            source.iterator.close()
    except Exception as exc:
        error = StreamError.from_exception("merge.release", exc, ErrorCode.RELEASE_FAILED)
        _log.warning("release failed", index=index, code=error.code.value, error=error.message)


async def join_releases() -> None:
    """Wait for every detached release still in flight on the running loop.
    
    Useful before shutting down a loop when merged streams were abandoned
    with the default "detach" release mode. Releases started on other loops
    are left to those loops.
    """
    loop = asyncio.get_running_loop()
    while own := [task for task in _releasing if task.get_loop() is loop]:
        await asyncio.gather(*own)
