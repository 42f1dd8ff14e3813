"""Runtime - the stream composition engine.

- combinators: lazy per-item transforms and structural composition
- consumers: terminal operations materializing a result
- merge: first-ready interleaving of many sources
- pipeline: the chainable Pipe wrapper and the pipe() builder
- observability: structured logging
"""

from __future__ import annotations

from .observability import configure_logging, get_logger, log_context
from . import combinators
from .combinators import (
    FoldFn,
    ItemFn,
    MaybeAwaitable,
    PipeStream,
    aiter_of,
    chain,
    flatten,
    from_iterable,
    from_promise,
    next_item,
    peek,
    pulling,
    skip,
    take,
)
from .consumers import collect, find, fold, for_each, join
from .merge import Combine, MergeState, combine, join_releases
from .pipeline import Pipe, PipeConfig, PipeInput, PipeState, pipe

__all__ = [
    # Combinators (enumerate/map/filter live on the combinators module)
    "combinators", "FoldFn", "ItemFn", "MaybeAwaitable", "PipeStream",
    "aiter_of", "chain", "flatten", "from_iterable", "from_promise", "next_item", "peek", "pulling", "skip", "take",
    # Consumers
    "collect", "find", "fold", "for_each", "join",
    # Merge
    "Combine", "MergeState", "combine", "join_releases",
    # Pipeline
    "Pipe", "PipeConfig", "PipeInput", "PipeState", "pipe",
    # Observability
    "configure_logging", "get_logger", "log_context",
]
