import logging

import pytest

from worldstate.encoding import RecordCodec
from worldstate.errors import (AlreadyExists, DecodeError, EncodeError,
                               ErrorCode, InvalidArgument, NotFound)
from worldstate.registry import DEFAULT_RECORDS, AssetRegistry
from worldstate.types import Record


def _snapshot(store):
    with store.scan_range("", "") as it:
        return list(it)


def _history_len(store, key):
    with store.history(key) as it:
        return sum(1 for _ in it)


@pytest.fixture
def d001(registry):
    return registry.create("D001", "1234567890", "1111", 1000, "Active")


# ===================================================
# Create / read / exists
# ===================================================

def test_create_then_read(registry, d001):
    rec = registry.read("D001")
    assert rec == d001
    assert rec.balance == 1000
    assert rec.last_transaction_amount == 0
    assert rec.last_transaction_type == ""
    assert rec.remarks == ""


def test_create_twice_fails_and_keeps_first(registry, d001):
    with pytest.raises(AlreadyExists) as ei:
        registry.create("D001", "x", "y", 1, "Inactive")
    assert ei.value.code == ErrorCode.ALREADY_EXISTS
    assert registry.read("D001") == d001
    assert _history_len(registry.store, "D001") == 1


def test_exists(registry, d001):
    assert registry.exists("D001")
    assert not registry.exists("D404")


def test_read_missing(registry):
    with pytest.raises(NotFound) as ei:
        registry.read("D404")
    assert ei.value.message == "the asset D404 does not exist"


@pytest.mark.parametrize("bad_id", ["", None, 7])
def test_ids_must_be_non_empty_strings(registry, bad_id):
    with pytest.raises(InvalidArgument):
        registry.create(bad_id, "o", "s", 1, "Active")


def test_create_with_bad_balance_writes_nothing(registry):
    with pytest.raises(EncodeError):
        registry.create("D005", "o", "s", "lots", "Active")
    assert not registry.exists("D005")
    assert registry.history_of("D005") == []


# ===================================================
# Mutations
# ===================================================

def test_update_replaces_and_resets_metadata(registry, d001):
    registry.adjust_balance("D001", 1100, 100, "credit", "deposit")
    registry.update("D001", "555", "9999", 7, "Inactive")
    assert registry.read("D001") == Record(
        id="D001", owner_ref="555", secret="9999", balance=7, status="Inactive"
    )


def test_adjust_balance_scenario(registry, d001):
    registry.adjust_balance("D001", 1100, 100, "credit", "deposit")
    rec = registry.read("D001")
    assert rec.balance == 1100
    assert rec.last_transaction_amount == 100
    assert rec.last_transaction_type == "credit"
    assert rec.remarks == "deposit"
    assert rec.status == "Active"
    assert rec.owner_ref == "1234567890"


def test_transfer_changes_only_owner(registry, d001):
    registry.transfer_owner("D001", "D002")
    rec = registry.read("D001")
    assert rec == d001.replace(owner_ref="D002")
    assert rec.id == "D001"
    assert not registry.exists("D002")


def test_delete_then_read_and_history(registry, d001):
    registry.adjust_balance("D001", 900, -100, "debit", "withdrawal")
    registry.delete("D001")
    with pytest.raises(NotFound):
        registry.read("D001")
    hist = registry.history_of("D001")
    assert [r.balance for r in hist] == [1000, 900]
    assert hist[-1].last_transaction_type == "debit"


@pytest.mark.parametrize(
    "op,args",
    [
        ("update", ("D404", "o", "s", 1, "Active")),
        ("delete", ("D404",)),
        ("transfer_owner", ("D404", "x")),
        ("adjust_balance", ("D404", 1, 1, "credit", "")),
    ],
)
def test_mutations_on_absent_id_leave_store_unchanged(registry, d001, op, args):
    before = _snapshot(registry.store)
    with pytest.raises(NotFound):
        getattr(registry, op)(*args)
    assert _snapshot(registry.store) == before
    assert registry.history_of("D404") == []


# ===================================================
# Listing & history
# ===================================================

def test_list_all_returns_last_writes_in_key_order(registry):
    registry.create("D003", "3", "s", 3, "Active")
    registry.create("D001", "1", "s", 1, "Active")
    registry.create("D002", "2", "s", 2, "Active")
    registry.adjust_balance("D002", 20, 18, "credit", "")
    listed = registry.list_all()
    assert [r.id for r in listed] == ["D001", "D002", "D003"]
    assert listed[1].balance == 20


def test_list_all_empty(registry):
    assert registry.list_all() == []


def test_list_all_aborts_on_undecodable_entry(registry, d001):
    registry.store.put("D999", b"not a record")
    with pytest.raises(DecodeError):
        registry.list_all()


def test_history_aborts_on_undecodable_entry(registry, d001):
    store = registry.store
    store.put("D001", b"garbage")
    store.put("D001", registry.codec.encode(d001.replace(balance=5)))
    assert registry.read("D001").balance == 5
    with pytest.raises(DecodeError):
        registry.history_of("D001")
    with pytest.raises(DecodeError):
        registry.history_entries("D001")


def test_history_is_oldest_first(registry, d001):
    registry.adjust_balance("D001", 1, 1, "a", "")
    registry.adjust_balance("D001", 2, 2, "b", "")
    assert [r.balance for r in registry.history_of("D001")] == [1000, 1, 2]


def test_history_entries_include_tombstones(registry, d001):
    registry.delete("D001")
    registry.create("D001", "new", "s", 5, "Active")
    entries = registry.history_entries("D001")
    assert [e.is_delete for e in entries] == [False, True, False]
    assert entries[1].record is None
    assert entries[2].record.owner_ref == "new"
    wire = entries[1].to_wire()
    assert wire["isDelete"] is True and wire["value"] is None
    # history_of skips the tombstone
    assert [r.owner_ref for r in registry.history_of("D001")] == ["1234567890", "new"]


# ===================================================
# Seeding
# ===================================================

def test_seed_defaults_twice_overwrites(registry):
    registry.seed_defaults()
    registry.adjust_balance("D001", 1, 1, "debit", "")
    registry.seed_defaults()
    assert registry.list_all() == list(DEFAULT_RECORDS)
    assert registry.read("D001").balance == 1000
    assert registry.read("D002").status == "Inactive"


def test_seed_is_one_transaction(registry):
    registry.seed_defaults()
    e1 = registry.history_entries("D001")[0]
    e2 = registry.history_entries("D002")[0]
    assert e1.tx_id == e2.tx_id


# ===================================================
# Codec selection & logging
# ===================================================

def test_cbor_registry(store):
    reg = AssetRegistry(store, RecordCodec("cbor"))
    reg.create("D001", "1", "s", 10, "Active")
    assert reg.read("D001").balance == 10
    assert not store.get("D001").startswith(b"{")


def test_precondition_failure_logged_with_key(registry, d001, caplog):
    caplog.set_level(logging.INFO, logger="worldstate")
    with pytest.raises(AlreadyExists):
        registry.create("D001", "x", "y", 1, "Active")
    assert any("already exists" in r.getMessage() for r in caplog.records)
