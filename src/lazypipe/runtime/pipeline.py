"""Chainable pipeline over a single owned stream, with move discipline.

A Pipe owns exactly one live source. Deriving a pipe (filter, map, take, ...)
or consuming it (collect, fold, ...) moves the source out so it cannot be
pulled from two places at once.

Move discipline (fixed per instance by PipeConfig):
    - move_on_chain=True (default): deriving returns a new Pipe and leaves the
      original inert, wrapping a sentinel source
    - move_on_chain=False: deriving rewires the same instance in place and
      returns it
    - err_on_move=True: pulling from a moved pipe raises UseAfterMoveError;
      otherwise a moved pipe behaves as an empty, exhausted stream

Terminal operations always move the source, whatever move_on_chain says.

Example:
    >>> p = pipe([1, 2, 3], fetch_more())
    >>> total = await p.filter(lambda x: x > 1).map(lambda x: x * 10).fold(lambda a, x: a + x, 0)
    >>> await p.collect()  # p moved on the first chained call
    []
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar, Union, cast

from lazypipe.foundation.capabilities import SourceKind, classify, is_stream
from lazypipe.foundation.config import get_settings
from lazypipe.foundation.errors import InvalidArgumentError, UseAfterMoveError
from lazypipe.runtime.observability import get_logger

from . import combinators as ops
from . import consumers
from .combinators import FoldFn, ItemFn, PipeStream, aiter_of
from .merge import combine

T = TypeVar("T")
R = TypeVar("R")

__all__ = ["Pipe", "PipeConfig", "PipeInput", "PipeState", "pipe"]

PipeInput = Union[PipeStream[T], Awaitable[PipeStream[T]], T]

_log = get_logger("lazypipe.pipe")


class PipeState(StrEnum):
    """Ownership state of a Pipe's source."""
    LIVE = "live"
    MOVED = "moved"
    MOVED_WITH_ERROR = "moved_with_error"


@dataclass(frozen=True, slots=True)
class PipeConfig:
    """Move discipline of a Pipe, fixed at construction."""
    
    err_on_move: bool = False
    move_on_chain: bool = True
    
    @classmethod
    def resolve(cls, err_on_move: bool | None = None, move_on_chain: bool | None = None) -> PipeConfig:
        """Fill unset flags from PipeSettings (LAZYPIPE_PIPE_*)."""
        defaults = get_settings().pipe
        return cls(
            err_on_move=defaults.err_on_move if err_on_move is None else err_on_move,
            move_on_chain=defaults.move_on_chain if move_on_chain is None else move_on_chain,
        )
    
    @property
    def moved_state(self) -> PipeState:
        return PipeState.MOVED_WITH_ERROR if self.err_on_move else PipeState.MOVED


async def _empty() -> AsyncGenerator[Any, None]:
    return
    yield


async def _use_after_move(operation: str) -> AsyncGenerator[Any, None]:
    raise UseAfterMoveError.for_operation(operation)
    yield


class Pipe(Generic[T]):
    """Chainable facade over one owned stream.
    
    Example:
        >>> p = Pipe(from_iterable(range(5)), err_on_move=True)
        >>> evens = p.filter(lambda x: x % 2 == 0)
        >>> await evens.collect()
        [0, 2, 4]
        >>> await p.collect()
        Traceback (most recent call last):
        UseAfterMoveError: use after move
    """
    
    __slots__ = ("_source", "_state", "_config")
    
    def __init__(
        self,
        source: PipeStream[T],
        *,
        err_on_move: bool | None = None,
        move_on_chain: bool | None = None,
        config: PipeConfig | None = None,
    ) -> None:
        if not is_stream(source):
            raise InvalidArgumentError.for_operation(
                "pipe", f"expected a sync or async iterable, got {type(source).__name__}",
            )
        self._config = config or PipeConfig.resolve(err_on_move, move_on_chain)
        self._source: PipeStream[T] | None = source
        self._state = PipeState.LIVE
    
    @property
    def config(self) -> PipeConfig:
        return self._config
    
    @property
    def err_on_move(self) -> bool:
        return self._config.err_on_move
    
    @property
    def move_on_chain(self) -> bool:
        return self._config.move_on_chain
    
    @property
    def state(self) -> PipeState:
        return self._state
    
    @property
    def is_live(self) -> bool:
        return self._state is PipeState.LIVE
    
    def __repr__(self) -> str:
        return (f"Pipe(state={self._state.value}, err_on_move={self.err_on_move}, "
                f"move_on_chain={self.move_on_chain})")
    
    # ─────────────────────────────────────────────────────────────────
    # State transitions
    # ─────────────────────────────────────────────────────────────────
    
    def _current(self, operation: str) -> PipeStream[T]:
        """The live source, or a sentinel standing in for a moved one."""
        match self._state:
            case PipeState.LIVE:
                return cast("PipeStream[T]", self._source)
            case PipeState.MOVED:
                return _empty()
            case PipeState.MOVED_WITH_ERROR:
                return _use_after_move(operation)
    
    def _move(self, operation: str) -> PipeStream[T]:
        """Extract the source, leaving a sentinel behind."""
        source = self._current(operation)
        if self._state is PipeState.LIVE:
            _log.debug("source moved", operation=operation, state=self._config.moved_state.value)
        self._source, self._state = None, self._config.moved_state
        return source
    
    def _chained(self, operation: str, derive: Callable[[PipeStream[T]], PipeStream[R]]) -> Pipe[R]:
        if self._config.move_on_chain:
            return Pipe(derive(self._move(operation)), config=self._config)
        self._source = cast("PipeStream[T]", derive(self._current(operation)))
        self._state = PipeState.LIVE
        return cast("Pipe[R]", self)
    
    # ─────────────────────────────────────────────────────────────────
    # Chaining
    # ─────────────────────────────────────────────────────────────────
    
    def filter(self, func: ItemFn[T, object]) -> Pipe[T]:
        return self._chained("pipe.filter", lambda s: ops.filter(s, func))
    
    def map(self, func: ItemFn[T, R]) -> Pipe[R]:
        return self._chained("pipe.map", lambda s: ops.map(s, func))
    
    def take(self, count: int) -> Pipe[T]:
        ops.validate_count("take", count)
        return self._chained("pipe.take", lambda s: ops.take(s, count))
    
    def skip(self, count: int) -> Pipe[T]:
        ops.validate_count("skip", count)
        return self._chained("pipe.skip", lambda s: ops.skip(s, count))
    
    def peek(self, fn: ItemFn[T, object]) -> Pipe[T]:
        return self._chained("pipe.peek", lambda s: ops.peek(s, fn))
    
    def chain(self, next_stream: PipeStream[T]) -> Pipe[T]:
        """Continue with next_stream once this pipe is exhausted."""
        return self._chained("pipe.chain", lambda s: ops.chain(s, next_stream))
    
    def combine(self, streams: Iterable[PipeStream[T]]) -> Pipe[T]:
        """Merge this pipe with other streams in arrival order."""
        others = list(streams)
        return self._chained("pipe.combine", lambda s: combine([s, *others]))
    
    def flat(self) -> Pipe[Any]:
        """Flatten sequence-like items one level."""
        return self._chained("pipe.flat", ops.flatten)
    
    async def first(self) -> T | None:
        """First item, or None when empty. Releases the rest of the stream."""
        async with ops.pulling(self.take(1)) as items:
            return await anext(items, None)
    
    # ─────────────────────────────────────────────────────────────────
    # Terminal operations
    # ─────────────────────────────────────────────────────────────────
    
    async def for_each(self, func: ItemFn[T, object]) -> None:
        await consumers.for_each(self._move("pipe.for_each"), func)
    
    async def collect(self, count: int | None = None) -> list[T]:
        return await consumers.collect(self._move("pipe.collect"), count)
    
    async def fold(self, func: FoldFn[R, T], init: R) -> R:
        return await consumers.fold(self._move("pipe.fold"), func, init)
    
    async def find(self, func: ItemFn[T, object]) -> tuple[T, int] | None:
        return await consumers.find(self._move("pipe.find"), func)
    
    async def join(self, joiner: str) -> str:
        return await consumers.join(self._move("pipe.join"), joiner)
    
    def __aiter__(self) -> AsyncIterator[T]:
        """Iterate the current source directly; this does not move it."""
        return aiter_of(self._current("pipe.__aiter__"))


def pipe(
    *inputs: PipeInput[T],
    err_on_move: bool | None = None,
    move_on_chain: bool | None = None,
) -> Pipe[T]:
    """Build a Pipe merging mixed inputs.
    
    Each input is classified once:
        - awaitable: awaited, then flattened one level
        - sync or async iterable: merged as-is
        - anything else: a single-element stream
    
    All inputs are merged in arrival order (see combine()).
    
    Example:
        >>> async def load():
        ...     return [4]
        >>> sorted(await pipe(1, from_iterable([2, 3]), load()).collect())
        [1, 2, 3, 4]
    """
    sources: list[PipeStream[Any]] = []
    for value in inputs:
        match classify(value):
            case SourceKind.DEFERRED:
                sources.append(ops.flatten(ops.from_promise(value)))  # type: ignore[arg-type]
            case SourceKind.ASYNC | SourceKind.SYNC:
                sources.append(value)  # type: ignore[arg-type]
            case SourceKind.SCALAR:
                sources.append((value,))
    return Pipe(combine(sources), err_on_move=err_on_move, move_on_chain=move_on_chain)
