"""
Shared pytest fixtures:
- `store`: one fresh store per test, parametrized over every backend so the
  same suite checks the memory and SQLite implementations
- `registry`: an AssetRegistry over that store (JSON codec)
- log context reset between tests
"""
from __future__ import annotations

from pathlib import Path

import pytest

from worldstate import logging as wlog
from worldstate.db import open_store
from worldstate.registry import AssetRegistry

BACKENDS = ("memory", "sqlite")


@pytest.fixture(params=BACKENDS)
def store(request: pytest.FixtureRequest, tmp_path: Path):
    if request.param == "memory":
        s = open_store("memory://")
    else:
        s = open_store(f"sqlite:///{tmp_path / 'state.db'}")
    yield s
    s.close()


@pytest.fixture
def registry(store) -> AssetRegistry:
    return AssetRegistry(store)


@pytest.fixture(autouse=True)
def _clean_log_context():
    wlog.clear_context()
    yield
    wlog.clear_context()
