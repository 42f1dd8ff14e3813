"""Standardized error handling for stream pipelines.

Provides error codes and structured error payloads for pipeline failures.
Uses Pydantic for validation and serialization.

Only failures originating in the engine itself are expressed here. Errors
raised by user callbacks or by merged sources propagate unchanged.
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class ErrorCode(StrEnum):
    """Standard error codes for pipeline failures."""
    USE_AFTER_MOVE = "USE_AFTER_MOVE"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    SOURCE_FAILED = "SOURCE_FAILED"
    RELEASE_FAILED = "RELEASE_FAILED"
    UNKNOWN = "UNKNOWN"


class StreamError(BaseModel):
    """Structured description of a pipeline failure.
    
    Attributes:
        operation: Engine operation that failed (e.g. "pipe.collect", "merge.release")
        message: Human-readable error message
        code: Machine-readable error code
        details: Optional detailed information (e.g., stack trace)
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Stream Error",
            "description": "Structured error from pipeline execution",
            "examples": [{
                "operation": "pipe.collect",
                "message": "use after move",
                "code": "USE_AFTER_MOVE",
            }],
        },
    )

    operation: Annotated[str, Field(min_length=1, description="Operation that produced the error")]
    message: Annotated[str, Field(min_length=1, description="Human-readable error message")]
    code: ErrorCode = Field(default=ErrorCode.UNKNOWN, description="Machine-readable error classification")
    details: str | None = Field(default=None, description="Optional detailed error info (e.g., stack trace)")

    @field_validator("message", mode="before")
    @classmethod
    def _ensure_message(cls, v: str | BaseException) -> str:
        """Accept exception objects and extract message."""
        if isinstance(v, BaseException):
            return str(v) or type(v).__name__
        return v

    @computed_field
    @property
    def is_ownership_error(self) -> bool:
        """Whether the failure comes from using a moved pipeline."""
        return self.code is ErrorCode.USE_AFTER_MOVE

    @classmethod
    def create(
        cls,
        operation: str,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        details: str | None = None,
    ) -> Self:
        """Factory method for construction."""
        return cls(operation=operation, message=message, code=code, details=details)

    @classmethod
    def from_exception(
        cls,
        operation: str,
        exc: BaseException,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        include_trace: bool = False,
    ) -> Self:
        """Create from an exception, optionally keeping its formatted traceback."""
        details = "".join(traceback.format_exception(exc)) if include_trace else None
        return cls(operation=operation, message=exc, code=code, details=details)  # type: ignore[arg-type]

    def render(self) -> str:
        """Format error as a single line plus optional details."""
        head = f"[{self.code}] {self.operation}: {self.message}"
        return f"{head}\n{self.details}" if self.details else head

    __str__ = render


class StreamException(Exception):
    """Exception wrapping a StreamError for raising."""

    __slots__ = ("error",)

    def __init__(self, error: StreamError) -> None:
        self.error = error
        super().__init__(error.message)

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @classmethod
    def create(cls, operation: str, message: str, code: ErrorCode = ErrorCode.UNKNOWN) -> Self:
        """Create stream exception."""
        return cls(StreamError.create(operation, message, code))


class UseAfterMoveError(StreamException, RuntimeError):
    """Raised when a pipeline's source is pulled after it was moved away."""

    MESSAGE = "use after move"

    @classmethod
    def for_operation(cls, operation: str) -> Self:
        return cls.create(operation, cls.MESSAGE, ErrorCode.USE_AFTER_MOVE)


class InvalidArgumentError(StreamException, ValueError):
    """Raised when a combinator is called with an unusable argument."""

    @classmethod
    def for_operation(cls, operation: str, message: str) -> Self:
        return cls.create(operation, message, ErrorCode.INVALID_ARGUMENT)
