"""Unified error handling for lazypipe.

- ErrorCode: Standard error codes for engine failures
- StreamError/StreamException: Structured errors and exceptions
- UseAfterMoveError/InvalidArgumentError: Concrete engine exceptions
- JsonDict/JsonValue: Shared type aliases for structured payloads
"""

from .errors import (
    ErrorCode,
    InvalidArgumentError,
    StreamError,
    StreamException,
    UseAfterMoveError,
)
from .types import JsonDict, JsonMapping, JsonPrimitive, JsonValue

__all__ = [
    # Core errors
    "ErrorCode", "StreamError", "StreamException",
    "UseAfterMoveError", "InvalidArgumentError",
    # Type aliases
    "JsonDict", "JsonMapping", "JsonPrimitive", "JsonValue",
]
