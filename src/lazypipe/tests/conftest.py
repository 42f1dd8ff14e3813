"""Shared fixtures: isolate every test from LAZYPIPE_* environment and cached settings."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from lazypipe import clear_settings_cache


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("LAZYPIPE_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def await_release(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make merged pipelines wait for source releases during teardown."""
    monkeypatch.setenv("LAZYPIPE_MERGE_RELEASE", "await")
    clear_settings_cache()
