from __future__ import annotations

"""
worldstate.db
=============

Thin facade for the store backends used by the registry.

Backends
--------
- Memory (volatile; tests and simulations)
- SQLite (durable, always available)

URIs
----
- "memory://"                      → MemoryStore
- "sqlite:///path/to/state.db"     → SQLite file
- "sqlite:///:memory:"             → in-memory SQLite (tests)
- Bare path ending in ".db"        → SQLite file

API
---
- open_store(uri: str, create: bool = True) -> Store

The store contract itself is defined in worldstate.db.kv.

Example
-------
>>> from worldstate.db import open_store
>>> store = open_store("memory://")
>>> store.put("D001", b"{}")
>>> store.get("D001")
b'{}'
"""

from typing import Tuple

from ..errors import ConfigError
from . import memory as _memory_backend
from . import sqlite as _sqlite_backend
from .kv import (Cursor, HistoryEntry, HistoryIterator, ReadOnlyStore,
                 ScanIterator, Store, TxInfo)


def _parse_uri(uri: str) -> Tuple[str, str]:
    """
    Parse a store URI into (backend, path_or_spec).

    Returns:
        ("sqlite", path) or ("memory", "")
    """
    u = uri.strip()
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///") :])
    if u.startswith("memory://"):
        return ("memory", "")
    if u.endswith(".db"):
        return ("sqlite", u)
    raise ConfigError("unsupported store URI", uri=uri)


def open_store(uri: str, create: bool = True) -> Store:
    """
    Open a store by URI. See module docstring for supported forms.

    Raises:
        ConfigError for unsupported URIs.
        StoreFailure if the backend cannot be opened.
    """
    backend, spec = _parse_uri(uri)

    if backend == "memory":
        return _memory_backend.open_memory_store()

    return _sqlite_backend.open_sqlite_store(spec or ":memory:", create=create)


__all__ = [
    # interfaces
    "Store",
    "ReadOnlyStore",
    "Cursor",
    "ScanIterator",
    "HistoryIterator",
    "HistoryEntry",
    "TxInfo",
    # helpers
    "open_store",
]
