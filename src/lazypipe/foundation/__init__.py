"""Foundation - leaf building blocks for lazypipe.

Contains: capability checks, callback adaptation, error handling, config, testing.
"""

from __future__ import annotations

from .callbacks import bind_index, resolve, wants_positional
from .capabilities import SourceKind, classify, is_async_sequence, is_deferred, is_stream, is_sync_sequence
from .config import LazypipeSettings, clear_settings_cache, get_settings
from .errors import ErrorCode, InvalidArgumentError, StreamError, StreamException, UseAfterMoveError

__all__ = [
    # Capabilities
    "SourceKind", "classify", "is_async_sequence", "is_deferred", "is_stream", "is_sync_sequence",
    # Callbacks
    "bind_index", "resolve", "wants_positional",
    # Errors
    "ErrorCode", "StreamError", "StreamException", "UseAfterMoveError", "InvalidArgumentError",
    # Config
    "LazypipeSettings", "get_settings", "clear_settings_cache",
]
