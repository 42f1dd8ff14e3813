"""Instrumented sources for pipeline testing.

Provides TrackedAsyncSource and TrackedSyncSource for:
- Recording every pull and every release call
- Simulating slow producers with per-item delays
- Injecting failures at a given position
- Detecting overlapping pulls (more than one request in flight)
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class _Tracking(Generic[T]):
    """Shared bookkeeping for tracked sources."""
    items: Sequence[T]
    fail_at: int | None = None
    error: BaseException | None = None
    pulls: int = 0
    release_calls: int = 0
    closed: bool = False
    yielded: list[T] = field(default_factory=list)
    
    @property
    def released(self) -> bool:
        return self.release_calls > 0
    
    @property
    def exhausted(self) -> bool:
        return len(self.yielded) >= len(self.items)
    
    def assert_released_once(self) -> None:
        if self.release_calls != 1:
            raise AssertionError(f"Expected one release, got {self.release_calls}")
    
    def assert_not_released(self) -> None:
        if self.release_calls:
            raise AssertionError(f"Source released {self.release_calls} times")
    
    def _advance(self) -> tuple[bool, T | None]:
        """Next (done, item); raises the injected error at fail_at."""
        index = len(self.yielded)
        if self.fail_at is not None and index == self.fail_at:
            self.closed = True
            raise self.error or RuntimeError(f"source failed at {index}")
        if self.closed or index >= len(self.items):
            return True, None
        item = self.items[index]
        self.yielded.append(item)
        return False, item


@dataclass
class TrackedAsyncSource(_Tracking[T]):
    """Async iterator over items with optional per-item delays.
    
    Example:
        >>> source = TrackedAsyncSource([1, 2], delays=[0.01, 0.05])
        >>> await collect(source)
        [1, 2]
        >>> source.pulls
        3
    """
    delays: Sequence[float] | float = 0.0
    in_flight: int = 0
    max_in_flight: int = 0
    
    def __aiter__(self) -> TrackedAsyncSource[T]:
        return self
    
    async def __anext__(self) -> T:
        self.pulls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if delay := self._delay_for(len(self.yielded)):
                await asyncio.sleep(delay)
            done, item = self._advance()
        finally:
            self.in_flight -= 1
        if done:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]
    
    async def aclose(self) -> None:
        self.release_calls += 1
        self.closed = True
    
    def _delay_for(self, index: int) -> float:
        if isinstance(self.delays, (int, float)):
            return float(self.delays)
        return self.delays[index] if index < len(self.delays) else 0.0


@dataclass
class TrackedSyncSource(_Tracking[T]):
    """Sync iterator over items; returns ``final`` as its completion value."""
    final: object = None
    
    def __iter__(self) -> TrackedSyncSource[T]:
        return self
    
    def __next__(self) -> T:
        self.pulls += 1
        done, item = self._advance()
        if done:
            raise StopIteration(self.final)
        return item  # type: ignore[return-value]
    
    def close(self) -> None:
        self.release_calls += 1
        self.closed = True


def tracked(
    items: Sequence[T],
    *,
    sync: bool = False,
    delays: Sequence[float] | float = 0.0,
    fail_at: int | None = None,
    error: BaseException | None = None,
) -> TrackedAsyncSource[T] | TrackedSyncSource[T]:
    """Create a tracked source; async unless sync=True (delays apply to async only)."""
    if sync:
        return TrackedSyncSource(items, fail_at=fail_at, error=error)
    return TrackedAsyncSource(items, fail_at=fail_at, error=error, delays=delays)
