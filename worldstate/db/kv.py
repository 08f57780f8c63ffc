from __future__ import annotations

"""
Versioned store & history log interface
=======================================

This module defines the backend-agnostic store contract used by the registry:
a byte-oriented key→value "world state" with an implicit, append-only history
log per key. Backends (memory, sqlite) implement this interface.
This file is *pure interface + helpers* and contains no I/O.

World state
-----------
- `put(key, value)`      unconditional upsert
- `get(key)`             value or None (absence is a normal result)
- `delete(key)`          unconditional, idempotent removal
- `scan_range(lo, hi)`   ordered (key, value) cursor over [lo, hi);
                         an empty bound is open-ended, so ("", "") scans all

History log
-----------
Every `put` and every delete of a present key appends a `HistoryEntry`
(tx_id, timestamp, is_delete, value) for that key. `history(key)` replays
the entries **oldest first**. There is no separate write path.

Keys
----
Keys may be `str` (UTF-8 encoded) or bytes. Ordering is lexicographic over the
encoded bytes (memcmp), which equals code-point order for text keys.

Cursors
-------
`scan_range` and `history` return a `Cursor`: lazy, finite, single-pass and a
context manager. Release is guaranteed on every exit path:

>>> with store.scan_range("", "") as it:
...     for key, value in it:
...         ...

Transactions
------------
`Store.transaction(tx_id=None)` groups the writes of one invocation. Exiting
without exception commits; an escaping exception rolls back the writes *and*
the history entries they appended. Nested `transaction()` calls join the
outer one. Writes outside an explicit transaction run in their own.

Typing
------
We expose Protocols (PEP 544) so backends can be duck-typed.
"""

import datetime as _dt
import uuid
from dataclasses import dataclass
from typing import (Callable, ContextManager, Generic, Iterable, Iterator,
                    Optional, Protocol, Tuple, TypeVar, Union,
                    runtime_checkable)

from ..errors import StoreFailure, WorldStateError, wrap

Key = Union[str, bytes, bytearray, memoryview]

# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def to_key(key: Key) -> bytes:
    """Normalize a key to bytes. Text keys are UTF-8 encoded."""
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, (bytes, bytearray, memoryview)):
        return bytes(key)
    raise TypeError(f"unsupported key type: {type(key)!r}")


def to_write_key(key: Key) -> bytes:
    """Like `to_key`, but rejects the empty key (reserved for open scan bounds)."""
    b = to_key(key)
    if not b:
        raise StoreFailure("key must not be empty")
    return b


def to_bound(key: Optional[Key]) -> Optional[bytes]:
    """Normalize a scan bound; empty or None means open-ended."""
    if key is None:
        return None
    b = to_key(key)
    return b or None


def in_range(key: bytes, lo: Optional[bytes], hi: Optional[bytes]) -> bool:
    """True if `key` lies in the half-open interval [lo, hi)."""
    if lo is not None and key < lo:
        return False
    if hi is not None and key >= hi:
        return False
    return True


# ---------------------------------------------------------------------------
# Transaction identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TxInfo:
    """Identity stamped onto every history entry written inside a transaction."""

    tx_id: str
    timestamp: _dt.datetime


def new_tx_info(
    tx_id: Optional[str] = None, timestamp: Optional[_dt.datetime] = None
) -> TxInfo:
    ts = timestamp or _dt.datetime.now(_dt.timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=_dt.timezone.utc)
    else:
        ts = ts.astimezone(_dt.timezone.utc)
    return TxInfo(tx_id=tx_id or uuid.uuid4().hex, timestamp=ts)


@dataclass(frozen=True)
class HistoryEntry:
    """One modification of a key. `value` is None for a deletion."""

    key: bytes
    tx_id: str
    timestamp: _dt.datetime
    is_delete: bool
    value: Optional[bytes]


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------

T = TypeVar("T")


class Cursor(Generic[T]):
    """
    Single-pass, closeable iterator over backend rows.

    - Closes itself when exhausted or when iteration raises.
    - Iterating a closed cursor again raises StoreFailure (not restartable).
    - Backend exceptions are wrapped into StoreFailure.
    """

    __slots__ = ("_it", "_release", "_closed", "_what")

    def __init__(
        self,
        it: Iterator[T],
        release: Optional[Callable[[], None]] = None,
        *,
        what: str = "cursor",
    ) -> None:
        self._it = it
        self._release = release
        self._closed = False
        self._what = what

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "Cursor[T]":
        if self._closed:
            raise StoreFailure(f"{self._what} is single-pass and already closed")
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        try:
            return next(self._it)
        except StopIteration:
            self.close()
            raise
        except WorldStateError:
            self.close()
            raise
        except Exception as e:
            self.close()
            raise wrap(e, message=f"{self._what} failed") from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Cursor[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


ScanIterator = Cursor[Tuple[bytes, bytes]]
HistoryIterator = Cursor[HistoryEntry]


# ---------------------------------------------------------------------------
# Store protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ReadOnlyStore(Protocol):
    """Point lookups, ordered range scans and per-key history replay."""

    def get(self, key: Key) -> Optional[bytes]:
        """Fetch value or None if absent."""
        ...

    def has(self, key: Key) -> bool:
        """Return True if key is present in the world state."""
        ...

    def scan_range(self, start_key: Key = "", end_key: Key = "") -> ScanIterator:
        """Ordered (key, value) cursor over [start_key, end_key)."""
        ...

    def history(self, key: Key) -> HistoryIterator:
        """History entries for `key`, oldest first."""
        ...

    def close(self) -> None:
        """Close resources (no-op for in-memory)."""
        ...


@runtime_checkable
class Store(ReadOnlyStore, Protocol):
    """Full read/write surface."""

    def put(self, key: Key, value: bytes) -> None:
        """Persist (key, value); overwrites if present; appends history."""
        ...

    def delete(self, key: Key) -> None:
        """Remove key if present (idempotent); appends a tombstone if it was."""
        ...

    def transaction(
        self, tx_id: Optional[str] = None, timestamp: Optional[_dt.datetime] = None
    ) -> ContextManager[TxInfo]:
        """Group writes atomically; joins an already open transaction."""
        ...


# ---------------------------------------------------------------------------
# Portable helpers built atop the interface
# ---------------------------------------------------------------------------


def get_or_raise(store: ReadOnlyStore, key: Key, err: Exception) -> bytes:
    v = store.get(key)
    if v is None:
        raise err
    return v


def put_many(store: Store, items: Iterable[Tuple[Key, bytes]]) -> None:
    """Write many keys inside a single transaction."""
    with store.transaction():
        for k, v in items:
            store.put(k, v)


__all__ = [
    # Protocols
    "ReadOnlyStore",
    "Store",
    # Cursor & entries
    "Cursor",
    "ScanIterator",
    "HistoryIterator",
    "HistoryEntry",
    "TxInfo",
    "new_tx_info",
    # Helpers
    "Key",
    "to_key",
    "to_write_key",
    "to_bound",
    "in_range",
    "get_or_raise",
    "put_many",
]
