"""lazypipe - Lazy, pull-based stream combinators for sync and async sources.

Compose transformations over lists, generators, async generators and awaitables,
then materialize the result with a terminal operation. Nothing runs until a
value is pulled.

Quick Start (Pipe - Recommended):
    >>> from lazypipe import pipe
    >>>
    >>> async def fetch_ids():
    ...     return [4, 5]
    >>>
    >>> p = pipe(1, [2, 3], fetch_ids())          # merged in arrival order
    >>> sorted(await p.filter(lambda x: x % 2).map(lambda x: x * 10).collect())
    [10, 30, 50]

Free Functions:
    >>> from lazypipe import combinators as c, collect, join
    >>> await collect(c.take(c.map(range(10), lambda x: x * x), 3))
    [0, 1, 4]
    >>> await join(c.from_iterable(["a", "b", "c"]), "-")
    'a-b-c'

Merging:
    >>> from lazypipe import combine
    >>> async for item in combine([slow_source(), fast_source()]):
    ...     print(item)  # first-ready order, per-source order preserved

Move Discipline:
    >>> p = pipe([1, 2, 3], err_on_move=True)
    >>> q = p.map(str)
    >>> await p.collect()  # raises UseAfterMoveError("use after move")

Configuration (environment):
    LAZYPIPE_PIPE_ERR_ON_MOVE, LAZYPIPE_PIPE_MOVE_ON_CHAIN,
    LAZYPIPE_MERGE_RELEASE, LAZYPIPE_LOG_LEVEL, LAZYPIPE_LOG_FORMAT
"""

from __future__ import annotations

__version__ = "0.1.0"

# Capabilities
from .foundation.capabilities import SourceKind, classify, is_async_sequence, is_deferred, is_stream, is_sync_sequence

# Errors
from .foundation.errors import ErrorCode, InvalidArgumentError, StreamError, StreamException, UseAfterMoveError

# Config
from .foundation.config import LazypipeSettings, clear_settings_cache, get_settings

# Combinators
from .runtime import combinators
from .runtime.combinators import (
    PipeStream,
    chain,
    flatten,
    from_iterable,
    from_promise,
    next_item,
    peek,
    skip,
    take,
)

# Consumers
from .runtime.consumers import collect, find, fold, for_each, join

# Merge
from .runtime.merge import MergeState, combine, join_releases

# Pipeline
from .runtime.pipeline import Pipe, PipeConfig, PipeState, pipe

# Observability
from .runtime.observability import configure_logging, get_logger, log_context

__all__ = [
    "__version__",
    # Capabilities
    "SourceKind", "classify", "is_async_sequence", "is_deferred", "is_stream", "is_sync_sequence",
    # Errors
    "ErrorCode", "StreamError", "StreamException", "UseAfterMoveError", "InvalidArgumentError",
    # Config
    "LazypipeSettings", "get_settings", "clear_settings_cache",
    # Combinators
    "combinators", "PipeStream",
    "chain", "flatten", "from_iterable", "from_promise", "next_item", "peek", "skip", "take",
    # Consumers
    "collect", "find", "fold", "for_each", "join",
    # Merge
    "MergeState", "combine", "join_releases",
    # Pipeline
    "Pipe", "PipeConfig", "PipeState", "pipe",
    # Observability
    "configure_logging", "get_logger", "log_context",
]
