"""Structured logging for stream engines.

Events are short verbs ("merge started", "source exhausted", "release
failed") with key/value context attached: the logger name, the operation, a
source index. Context accumulates three ways, later layers winning:

    1. log_context() scopes (ContextVar, follows tasks spawned inside)
    2. bind() on a logger
    3. keyword arguments at the call site

Rendering and the level threshold are chosen by configure_logging(), or on
first use from LoggingSettings (LAZYPIPE_LOG_FORMAT, LAZYPIPE_LOG_LEVEL).

Example:
    >>> configure_logging(format="console", level="DEBUG")
    >>> log = get_logger("lazypipe.merge").bind(sources=3)
    >>> log.debug("source exhausted", index=1)
    # => 10:30:45.120 [debug] source exhausted index=1 logger="lazypipe.merge" sources=3
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

from lazypipe.foundation.config import get_settings
from lazypipe.foundation.errors import JsonDict, JsonMapping, JsonValue

if TYPE_CHECKING:
    from types import TracebackType

_scoped: ContextVar[JsonMapping] = ContextVar("lazypipe_log_scope", default={})
_active_renderer: ContextVar[LogRenderer | None] = ContextVar("lazypipe_log_renderer", default=None)
_active_level: ContextVar[int | None] = ContextVar("lazypipe_log_level", default=None)


@dataclass(slots=True)
class LogEntry:
    """One rendered event."""

    timestamp: float
    level: str
    event: str
    context: JsonDict

    @property
    def when(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)


@dataclass(slots=True)
class BoundLogger:
    """Logger carrying fixed context; bind() and unbind() return new loggers.

    ``_renderer`` and ``_level`` pin output and threshold for this logger;
    left as None they follow configure_logging() at the time of each call.
    """

    context: JsonDict = field(default_factory=dict)
    _renderer: LogRenderer | None = None
    _level: int | None = None

    def bind(self, **kw: JsonValue) -> BoundLogger:
        return replace(self, context={**self.context, **kw})

    def unbind(self, *keys: str) -> BoundLogger:
        return replace(self, context={k: v for k, v in self.context.items() if k not in keys})

    def is_enabled_for(self, level: int) -> bool:
        threshold = self._level if self._level is not None else _threshold()
        return level >= threshold

    def _emit(self, level: int, event: str, kw: JsonDict) -> None:
        if not self.is_enabled_for(level):
            return
        entry = LogEntry(time.time(), logging.getLevelName(level).lower(), event,
                         {**_scoped.get(), **self.context, **kw})
        (self._renderer or _current_renderer()).render(entry)

    def debug(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.DEBUG, event, kw)

    def info(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.INFO, event, kw)

    def warning(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.WARNING, event, kw)

    def error(self, event: str, **kw: JsonValue) -> None:
        self._emit(logging.ERROR, event, kw)


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


_ANSI = {"reset": "\033[0m", "dim": "\033[2m", "bold": "\033[1m", "key": "\033[36m",
         "debug": "\033[2m", "info": "\033[32m", "warning": "\033[33m", "error": "\033[31m"}


@dataclass(slots=True)
class ConsoleRenderer:
    """One line per event: ``HH:MM:SS.mmm [level] event key=value ...``, keys sorted."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None  # None: color when output is a terminal
    show_timestamp: bool = True

    def __post_init__(self) -> None:
        if self.colors is None:
            isatty = getattr(self.output, "isatty", None)
            self.colors = bool(isatty and isatty())

    def _paint(self, style: str, text: str) -> str:
        return f"{_ANSI[style]}{text}{_ANSI['reset']}" if self.colors and style in _ANSI else text

    def render(self, entry: LogEntry) -> None:
        parts = []
        if self.show_timestamp:
            parts.append(self._paint("dim", entry.when.strftime("%H:%M:%S.%f")[:-3]))
        parts.append(self._paint(entry.level, f"[{entry.level}]"))
        parts.append(self._paint("bold", entry.event))
        parts.extend(f"{self._paint('key', k)}={_console_value(v)}" for k, v in sorted(entry.context.items()))
        print(" ".join(parts), file=self.output)


@dataclass(slots=True)
class JsonRenderer:
    """JSON Lines; values orjson cannot encode are written as their repr."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        import orjson
        record = {"timestamp": entry.when.isoformat(), "level": entry.level, "event": entry.event, **entry.context}
        print(orjson.dumps(record, option=orjson.OPT_NON_STR_KEYS, default=repr).decode(), file=self.output)


@dataclass(slots=True)
class NoOpRenderer:
    """Discards everything."""

    def render(self, entry: LogEntry) -> None:
        pass


def _console_value(v: object) -> str:
    match v:
        case str():
            return f'"{v}"'
        case bool():
            return "true" if v else "false"
        case dict() | list() | tuple():
            return f"<{len(v)} items>"
        case int() | float() | None:
            return str(v)
        case _:
            return repr(v)


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure_logging(
    format: str | None = None,  # noqa: A002 - matches LAZYPIPE_LOG_FORMAT
    level: str | None = None,
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Select the renderer ("console", "json" or "none") and level threshold.

    Arguments left unset fall back to LoggingSettings. The choice applies to the
    current context and to tasks started from it.
    """
    settings = get_settings().logging
    format = format or settings.format
    renderer: LogRenderer
    if format == "console":
        renderer = ConsoleRenderer(output=output or sys.stderr, colors=colors)
    elif format == "json":
        renderer = JsonRenderer(output=output or sys.stdout)
    elif format == "none":
        renderer = NoOpRenderer()
    else:
        raise ValueError(f"Unknown format: {format!r}. Use 'console', 'json' or 'none'")
    _active_level.set(logging.getLevelNamesMapping().get((level or settings.level).upper(), logging.INFO))
    _active_renderer.set(renderer)
    return renderer


def get_logger(name: str | None = None, **initial_context: JsonValue) -> BoundLogger:
    """Logger whose context carries ``logger=name`` plus initial_context.

    Safe to call at import time: output and level are resolved per event.
    """
    if name:
        initial_context["logger"] = name
    return BoundLogger(context=initial_context)


def _current_renderer() -> LogRenderer:
    renderer = _active_renderer.get()
    return renderer if renderer is not None else configure_logging()


def _threshold() -> int:
    level = _active_level.get()
    if level is None:
        level = logging.getLevelNamesMapping().get(get_settings().logging.level, logging.INFO)
    return level


class log_context:
    """Add context to every event logged inside the ``with`` block.

    Example:
        >>> with log_context(pipeline="ingest"):
        ...     await pipe(source).collect()  # merge events carry pipeline="ingest"
    """

    __slots__ = ("_extra", "_token")

    def __init__(self, **kw: JsonValue) -> None:
        self._extra: JsonDict = dict(kw)
        self._token = None

    def __enter__(self) -> log_context:
        self._token = _scoped.set({**_scoped.get(), **self._extra})
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None,
                 exc_tb: TracebackType | None) -> None:
        if self._token is not None:
            _scoped.reset(self._token)
            self._token = None


def current_context() -> JsonMapping:
    """Context contributed by the enclosing log_context scopes."""
    return _scoped.get()
