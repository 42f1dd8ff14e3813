"""Testing utilities: instrumented sources recording pulls and releases."""

from .tracked import TrackedAsyncSource, TrackedSyncSource, tracked

__all__ = ["TrackedAsyncSource", "TrackedSyncSource", "tracked"]
