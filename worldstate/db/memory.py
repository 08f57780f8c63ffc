from __future__ import annotations

"""
In-memory store
===============

Dict-backed implementation of the `Store` protocol from `worldstate.db.kv`,
intended for unit tests and simulations. No I/O.

- World state: dict key→value; scans sort the live keys on demand.
- History: per-key list of `HistoryEntry`, appended in write order.
- Transactions: writes apply immediately; the open transaction keeps a
  first-write undo log (key → previous value) plus the history length per key
  at first touch, so `rollback` restores both exactly.

Scans snapshot the matching rows when the cursor is created, so writes made
while a cursor is open do not affect it.
"""

import datetime as _dt
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .kv import (HistoryEntry, HistoryIterator, Key, ScanIterator, Store,
                 TxInfo, Cursor, in_range, new_tx_info, to_bound, to_key,
                 to_write_key)

_MISSING = object()


@dataclass
class _Undo:
    info: TxInfo
    # first-write log: key -> previous value (or _MISSING)
    prev: Dict[bytes, object] = field(default_factory=dict)
    # key -> history length at first touch
    hist_len: Dict[bytes, int] = field(default_factory=dict)


class MemoryStore(Store):
    """Volatile store. Not thread-safe; the caller serializes invocations."""

    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}
        self._history: Dict[bytes, List[HistoryEntry]] = {}
        self._tx: Optional[_Undo] = None

    # --- ReadOnlyStore ---

    def get(self, key: Key) -> Optional[bytes]:
        return self._data.get(to_key(key))

    def has(self, key: Key) -> bool:
        return to_key(key) in self._data

    def scan_range(self, start_key: Key = "", end_key: Key = "") -> ScanIterator:
        lo, hi = to_bound(start_key), to_bound(end_key)
        rows: List[Tuple[bytes, bytes]] = [
            (k, self._data[k]) for k in sorted(self._data) if in_range(k, lo, hi)
        ]
        return Cursor(iter(rows), what="range scan")

    def history(self, key: Key) -> HistoryIterator:
        entries = list(self._history.get(to_key(key), ()))
        return Cursor(iter(entries), what="history replay")

    def close(self) -> None:
        pass

    # --- Store ---

    def put(self, key: Key, value: bytes) -> None:
        k = to_write_key(key)
        v = bytes(value)
        with self.transaction() as info:
            self._touch(k)
            self._data[k] = v
            self._append(k, info, value=v)

    def delete(self, key: Key) -> None:
        k = to_write_key(key)
        if k not in self._data:
            return
        with self.transaction() as info:
            self._touch(k)
            del self._data[k]
            self._append(k, info, value=None)

    @contextmanager
    def transaction(
        self, tx_id: Optional[str] = None, timestamp: Optional[_dt.datetime] = None
    ) -> Iterator[TxInfo]:
        if self._tx is not None:
            yield self._tx.info
            return
        undo = _Undo(info=new_tx_info(tx_id, timestamp))
        self._tx = undo
        try:
            yield undo.info
        except BaseException:
            self._rollback(undo)
            raise
        finally:
            self._tx = None

    # --- internals ---

    def _touch(self, k: bytes) -> None:
        undo = self._tx
        assert undo is not None, "write outside transaction"
        if k not in undo.prev:
            undo.prev[k] = self._data.get(k, _MISSING)
            undo.hist_len[k] = len(self._history.get(k, ()))

    def _append(self, k: bytes, info: TxInfo, *, value: Optional[bytes]) -> None:
        self._history.setdefault(k, []).append(
            HistoryEntry(
                key=k,
                tx_id=info.tx_id,
                timestamp=info.timestamp,
                is_delete=value is None,
                value=value,
            )
        )

    def _rollback(self, undo: _Undo) -> None:
        for k, prev in undo.prev.items():
            if prev is _MISSING:
                self._data.pop(k, None)
            else:
                self._data[k] = prev  # type: ignore[assignment]
        for k, n in undo.hist_len.items():
            entries = self._history.get(k)
            if entries is None:
                continue
            del entries[n:]
            if not entries:
                del self._history[k]


def open_memory_store() -> MemoryStore:
    return MemoryStore()


__all__ = ["MemoryStore", "open_memory_store"]
