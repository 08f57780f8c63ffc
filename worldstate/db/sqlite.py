from __future__ import annotations

"""
SQLite-backed store
===================

A small embedded store using SQLite (BLOB keys & values), implementing the
`Store` protocol from `worldstate.db.kv`.

- World state: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- History:     history(seq INTEGER PRIMARY KEY AUTOINCREMENT, k BLOB,
               tx_id TEXT, ts TEXT, is_delete INTEGER, v BLOB NULL)
               indexed on (k, seq); replay is ORDER BY seq (oldest first).
- Keys/values are raw bytes; ordering is lexicographic (memcmp).
- Range scans use [lo, hi) bounds; either bound may be open.

Pragmas tuned for a single-writer contract host:
- WAL journal, NORMAL sync, in-memory temp store.

Transactions:
- Each transaction is `BEGIN IMMEDIATE … COMMIT`, rolled back if an exception
  escapes. The world-state write and its history row commit together.
- Every `sqlite3.Error` is surfaced as `StoreFailure` (fatal for the core).
"""

import datetime as _dt
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple, Union
from urllib.parse import urlparse

from ..errors import StoreFailure, wrap
from .kv import (Cursor, HistoryEntry, HistoryIterator, Key, ScanIterator,
                 Store, TxInfo, new_tx_info, to_bound, to_key, to_write_key)

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
    "foreign_keys": "OFF",
}


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    cur = conn.cursor()
    cur.execute("PRAGMA journal_mode=%s" % p["journal_mode"])
    cur.execute("PRAGMA synchronous=%s" % p["synchronous"])
    cur.execute("PRAGMA temp_store=%s" % p["temp_store"])
    cur.execute("PRAGMA foreign_keys=%s" % p["foreign_keys"])
    cur.close()


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            k BLOB PRIMARY KEY,
            v BLOB NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS history (
            seq       INTEGER PRIMARY KEY AUTOINCREMENT,
            k         BLOB NOT NULL,
            tx_id     TEXT NOT NULL,
            ts        TEXT NOT NULL,
            is_delete INTEGER NOT NULL,
            v         BLOB
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS history_k_seq ON history(k, seq)")


def _open_connection(
    path: Union[str, "os.PathLike[str]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
) -> sqlite3.Connection:
    path_str = str(path)
    if path_str.startswith("sqlite://"):
        parsed = urlparse(path_str)
        path_str = parsed.path or ""
        if path_str.startswith("///"):
            path_str = "/" + path_str.lstrip("/")
    if path_str != ":memory:" and not create and not os.path.exists(path_str):
        raise StoreFailure("SQLite store not found", path=path_str)

    try:
        conn = sqlite3.connect(
            path_str,
            detect_types=0,
            isolation_level=None,      # autocommit; we explicitly BEGIN
            check_same_thread=False,   # caller serializes invocations
        )
        _apply_pragmas(conn, pragmas)
        _migrate(conn)
    except sqlite3.Error as e:
        raise wrap(e, message="cannot open SQLite store", path=path_str) from e
    return conn


class SQLiteStore(Store):
    """
    SQLite-backed store. One connection per store object; the caller provides
    external serialization of invocations.

    Use `open_sqlite_store(path)` to construct.
    """

    __slots__ = ("_conn", "_tx")

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._tx: Optional[TxInfo] = None

    # --- ReadOnlyStore ---

    def get(self, key: Key) -> Optional[bytes]:
        try:
            cur = self._conn.execute(
                "SELECT v FROM kv WHERE k = ?", (memoryview(to_key(key)),)
            )
            row = cur.fetchone()
            cur.close()
        except sqlite3.Error as e:
            raise wrap(e, message="failed to read from world state") from e
        return bytes(row[0]) if row is not None else None

    def has(self, key: Key) -> bool:
        try:
            cur = self._conn.execute(
                "SELECT 1 FROM kv WHERE k = ? LIMIT 1", (memoryview(to_key(key)),)
            )
            row = cur.fetchone()
            cur.close()
        except sqlite3.Error as e:
            raise wrap(e, message="failed to read from world state") from e
        return row is not None

    def scan_range(self, start_key: Key = "", end_key: Key = "") -> ScanIterator:
        lo, hi = to_bound(start_key), to_bound(end_key)
        where: List[str] = []
        args: List[memoryview] = []
        if lo is not None:
            where.append("k >= ?")
            args.append(memoryview(lo))
        if hi is not None:
            where.append("k < ?")
            args.append(memoryview(hi))
        sql = "SELECT k, v FROM kv"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY k"
        try:
            cur = self._conn.execute(sql, args)
        except sqlite3.Error as e:
            raise wrap(e, message="failed to open range scan") from e

        rows: Iterator[Tuple[bytes, bytes]] = (
            (bytes(k), bytes(v)) for k, v in cur
        )
        return Cursor(rows, cur.close, what="range scan")

    def history(self, key: Key) -> HistoryIterator:
        k = to_key(key)
        try:
            cur = self._conn.execute(
                "SELECT tx_id, ts, is_delete, v FROM history WHERE k = ? ORDER BY seq",
                (memoryview(k),),
            )
        except sqlite3.Error as e:
            raise wrap(e, message="failed to open history replay") from e

        entries: Iterator[HistoryEntry] = (
            HistoryEntry(
                key=k,
                tx_id=tx_id,
                timestamp=_dt.datetime.fromisoformat(ts),
                is_delete=bool(is_delete),
                value=None if v is None else bytes(v),
            )
            for tx_id, ts, is_delete, v in cur
        )
        return Cursor(entries, cur.close, what="history replay")

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error:
            pass

    # --- Store ---

    def put(self, key: Key, value: bytes) -> None:
        k = to_write_key(key)
        with self.transaction() as info:
            try:
                self._conn.execute(
                    "INSERT INTO kv(k, v) VALUES(?, ?) "
                    "ON CONFLICT(k) DO UPDATE SET v=excluded.v",
                    (memoryview(k), memoryview(value)),
                )
                self._append(k, info, value)
            except sqlite3.Error as e:
                raise wrap(e, message="failed to put to world state") from e

    def delete(self, key: Key) -> None:
        k = to_write_key(key)
        with self.transaction() as info:
            try:
                cur = self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(k),))
                if cur.rowcount > 0:
                    self._append(k, info, None)
            except sqlite3.Error as e:
                raise wrap(e, message="failed to delete from world state") from e

    @contextmanager
    def transaction(
        self, tx_id: Optional[str] = None, timestamp: Optional[_dt.datetime] = None
    ) -> Iterator[TxInfo]:
        if self._tx is not None:
            yield self._tx
            return
        info = new_tx_info(tx_id, timestamp)
        try:
            # BEGIN IMMEDIATE takes the write lock up front
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise wrap(e, message="cannot begin transaction") from e
        self._tx = info
        try:
            yield info
        except BaseException:
            self._tx = None
            self._rollback()
            raise
        self._tx = None
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback()
            raise wrap(e, message="commit failed") from e

    # --- internals ---

    def _rollback(self) -> None:
        # SQLite may already have rolled back on its own after an error
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")

    def _append(self, k: bytes, info: TxInfo, value: Optional[bytes]) -> None:
        self._conn.execute(
            "INSERT INTO history(k, tx_id, ts, is_delete, v) VALUES(?, ?, ?, ?, ?)",
            (
                memoryview(k),
                info.tx_id,
                info.timestamp.isoformat(),
                1 if value is None else 0,
                None if value is None else memoryview(value),
            ),
        )


def open_sqlite_store(
    path: Union[str, "os.PathLike[str]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
) -> SQLiteStore:
    """
    Open (or create) a SQLite store at `path` (":memory:" for tests).

    - `create=False` raises StoreFailure if the DB file does not exist.
    """
    conn = _open_connection(path, pragmas=pragmas, create=create)
    return SQLiteStore(conn)


__all__ = [
    "SQLiteStore",
    "open_sqlite_store",
]
