import datetime as dt

import pytest

from worldstate.db import open_store
from worldstate.db.kv import Store, put_many
from worldstate.errors import ConfigError, StoreFailure


def _scan(store, lo="", hi=""):
    with store.scan_range(lo, hi) as it:
        return [(k, v) for k, v in it]


def _history(store, key):
    with store.history(key) as it:
        return list(it)


# ===================================================
# Point operations
# ===================================================

def test_backend_satisfies_protocol(store):
    assert isinstance(store, Store)


def test_put_get_has(store):
    assert store.get("D001") is None
    assert not store.has("D001")
    store.put("D001", b"v1")
    assert store.get("D001") == b"v1"
    assert store.has("D001")
    # text and bytes keys address the same entry
    assert store.get(b"D001") == b"v1"


def test_put_overwrites(store):
    store.put("k", b"a")
    store.put("k", b"b")
    assert store.get("k") == b"b"


def test_delete_is_idempotent(store):
    store.put("k", b"a")
    store.delete("k")
    assert store.get("k") is None
    store.delete("k")
    store.delete("never-written")
    assert _history(store, "never-written") == []


def test_empty_key_rejected_on_write(store):
    with pytest.raises(StoreFailure):
        store.put("", b"x")
    with pytest.raises(StoreFailure):
        store.delete(b"")


# ===================================================
# Range scans
# ===================================================

def test_scan_is_ordered_and_complete(store):
    for k in ("b", "a", "c", "ab"):
        store.put(k, k.encode())
    assert [k for k, _ in _scan(store)] == [b"a", b"ab", b"b", b"c"]


def test_scan_bounds_are_half_open(store):
    for k in ("a", "ab", "b", "c"):
        store.put(k, b"x")
    assert [k for k, _ in _scan(store, "a", "b")] == [b"a", b"ab"]
    assert [k for k, _ in _scan(store, "", "b")] == [b"a", b"ab"]
    assert [k for k, _ in _scan(store, "b", "")] == [b"b", b"c"]
    assert _scan(store, "x", "") == []


def test_scan_orders_by_encoded_bytes(store):
    store.put("z", b"1")
    store.put("é", b"2")  # UTF-8 0xC3 0xA9 sorts after 'z'
    store.put(b"\x00", b"3")
    assert [k for k, _ in _scan(store)] == [b"\x00", b"z", "é".encode("utf-8")]


def test_scan_empty_store(store):
    assert _scan(store) == []


def test_cursor_is_single_pass(store):
    store.put("a", b"1")
    store.put("b", b"2")
    it = store.scan_range("", "")
    assert len(list(it)) == 2
    assert it.closed
    with pytest.raises(StoreFailure):
        iter(it)


def test_cursor_close_is_idempotent_and_releases(store):
    store.put("a", b"1")
    store.put("b", b"2")
    with store.scan_range("", "") as it:
        first = next(it)
        assert first == (b"a", b"1")
    assert it.closed
    it.close()
    with pytest.raises(StopIteration):
        next(it)


# ===================================================
# History log
# ===================================================

def test_history_oldest_first_with_tombstone(store):
    store.put("k", b"v1")
    store.put("k", b"v2")
    store.delete("k")
    store.put("k", b"v3")
    entries = _history(store, "k")
    assert [(e.is_delete, e.value) for e in entries] == [
        (False, b"v1"),
        (False, b"v2"),
        (True, None),
        (False, b"v3"),
    ]
    assert all(e.key == b"k" for e in entries)


def test_history_of_unknown_key_is_empty(store):
    assert _history(store, "nothing") == []


def test_history_carries_transaction_identity(store):
    ts = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)
    with store.transaction("tx-1", ts):
        store.put("a", b"1")
        store.put("b", b"2")
    (ea,) = _history(store, "a")
    (eb,) = _history(store, "b")
    assert ea.tx_id == eb.tx_id == "tx-1"
    assert ea.timestamp == ts


def test_transaction_timestamp_is_stored_in_utc(store):
    plus2 = dt.timezone(dt.timedelta(hours=2))
    with store.transaction("tx-2", dt.datetime(2024, 5, 1, 14, 0, tzinfo=plus2)):
        store.put("a", b"1")
    (e,) = _history(store, "a")
    assert e.timestamp.utcoffset() == dt.timedelta(0)
    assert e.timestamp == dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)


def test_writes_outside_transaction_get_fresh_ids(store):
    store.put("a", b"1")
    store.put("a", b"2")
    e1, e2 = _history(store, "a")
    assert e1.tx_id and e2.tx_id and e1.tx_id != e2.tx_id
    assert e1.timestamp.tzinfo is not None


# ===================================================
# Transactions
# ===================================================

def test_rollback_discards_writes_and_history(store):
    store.put("keep", b"old")

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.put("keep", b"new")
            store.put("fresh", b"x")
            store.delete("keep")
            raise RuntimeError("boom")

    assert store.get("keep") == b"old"
    assert store.get("fresh") is None
    assert [e.value for e in _history(store, "keep")] == [b"old"]
    assert _history(store, "fresh") == []


def test_nested_transaction_joins_outer(store):
    with pytest.raises(ValueError):
        with store.transaction("outer") as outer:
            with store.transaction("inner") as inner:
                assert inner.tx_id == outer.tx_id == "outer"
                store.put("a", b"1")
            raise ValueError("abort outer")
    assert store.get("a") is None


def test_put_many_is_atomic_on_bad_key(store):
    with pytest.raises(StoreFailure):
        put_many(store, [("a", b"1"), ("", b"2")])
    assert store.get("a") is None


# ===================================================
# Facade
# ===================================================

def test_open_store_rejects_unknown_scheme():
    with pytest.raises(ConfigError):
        open_store("rocksdb:///tmp/x")


def test_sqlite_store_persists_across_reopen(tmp_path):
    uri = f"sqlite:///{tmp_path / 'persist.db'}"
    s = open_store(uri)
    s.put("D001", b"v1")
    s.close()

    s2 = open_store(uri)
    try:
        assert s2.get("D001") == b"v1"
        assert [e.value for e in _history(s2, "D001")] == [b"v1"]
    finally:
        s2.close()


def test_sqlite_create_false_requires_existing_file(tmp_path):
    with pytest.raises(StoreFailure):
        open_store(f"sqlite:///{tmp_path / 'missing.db'}", create=False)
