"""
Asset registry
==============

The domain layer over a `Store`: existence checks, create/read/update/delete,
balance mutation, ownership transfer, listing and history replay, each as a
precondition-guarded operation.

Rules
-----
- `create` requires absence; `read`, `update`, `delete`, `transfer_owner`
  and `adjust_balance` require presence. The check happens before any write.
- Every write stores the *complete* record. `create` and `update` reset the
  transaction metadata (amount 0, type "", remarks "").
- Each mutating call runs in one store transaction; an error anywhere leaves
  the store untouched (no partial write, no history entry).
- `seed_defaults` is not guarded and overwrites the starter ids.

Usage
-----
    from worldstate.db import open_store
    from worldstate.registry import AssetRegistry

    reg = AssetRegistry(open_store("memory://"))
    reg.create("D001", "1234567890", "1111", 1000, "Active")
    reg.adjust_balance("D001", 1100, 100, "credit", "deposit")
    reg.history_of("D001")  # oldest first
"""

from __future__ import annotations

from typing import List, Optional

from .. import logging as wlog
from ..db.kv import Store, get_or_raise, put_many
from ..encoding.record import RecordCodec
from ..errors import AlreadyExists, InvalidArgument, NotFound
from ..types import HistoryRecord, Record
from .seed import DEFAULT_RECORDS

log = wlog.get_logger(__name__)


def _require_id(record_id: str) -> str:
    if not isinstance(record_id, str) or not record_id:
        raise InvalidArgument("record id must be a non-empty string", got=repr(record_id))
    return record_id


class AssetRegistry:
    """
    Precondition-guarded CRUD + history over an injected store.

    Parameters
    ----------
    store : Store
        Any backend implementing `worldstate.db.kv.Store`.
    codec : RecordCodec | None
        Value format; defaults to the JSON wire format, non-strict.
    """

    def __init__(self, store: Store, codec: Optional[RecordCodec] = None) -> None:
        self._store = store
        self._codec = codec or RecordCodec()

    @property
    def store(self) -> Store:
        return self._store

    @property
    def codec(self) -> RecordCodec:
        return self._codec

    # --- queries ---

    def exists(self, record_id: str) -> bool:
        return self._store.has(_require_id(record_id))

    def read(self, record_id: str) -> Record:
        rid = _require_id(record_id)
        raw = get_or_raise(self._store, rid, NotFound(rid))
        return self._codec.decode(raw)

    def list_all(self) -> List[Record]:
        """Every present record in key order. One bad entry aborts the listing."""
        with self._store.scan_range("", "") as it:
            return [self._codec.decode(value) for _, value in it]

    def history_of(self, record_id: str) -> List[Record]:
        """Past values of `record_id`, oldest first, deletion tombstones skipped."""
        return [
            h.record for h in self.history_entries(record_id) if h.record is not None
        ]

    def history_entries(self, record_id: str) -> List[HistoryRecord]:
        """Full history of `record_id` (oldest first), tombstones included."""
        rid = _require_id(record_id)
        out: List[HistoryRecord] = []
        with self._store.history(rid) as it:
            for e in it:
                rec = None if e.is_delete or e.value is None else self._codec.decode(e.value)
                out.append(
                    HistoryRecord(
                        tx_id=e.tx_id,
                        timestamp=e.timestamp,
                        is_delete=e.is_delete,
                        record=rec,
                    )
                )
        return out

    # --- writes ---

    def create(
        self,
        record_id: str,
        owner_ref: str,
        secret: str,
        balance: int,
        status: str,
        *,
        amount: int = 0,
        transaction_type: str = "",
        remarks: str = "",
    ) -> Record:
        """
        Store a new record. Transaction metadata starts zeroed unless the
        keyword arguments supply an opening entry (account-style creation).
        """
        rid = _require_id(record_id)
        rec = Record(
            id=rid,
            owner_ref=owner_ref,
            secret=secret,
            balance=balance,
            status=status,
            last_transaction_amount=amount,
            last_transaction_type=transaction_type,
            remarks=remarks,
        )
        with self._store.transaction(), wlog.bound(key=rid):
            self._require_absent(rid)
            self._put(rec)
            log.debug("asset created")
        return rec

    def update(
        self, record_id: str, owner_ref: str, secret: str, balance: int, status: str
    ) -> Record:
        rid = _require_id(record_id)
        # full replacement; transaction metadata resets exactly as on create
        rec = Record(
            id=rid,
            owner_ref=owner_ref,
            secret=secret,
            balance=balance,
            status=status,
        )
        with self._store.transaction(), wlog.bound(key=rid):
            self._require_present(rid)
            self._put(rec)
            log.debug("asset updated")
        return rec

    def delete(self, record_id: str) -> None:
        rid = _require_id(record_id)
        with self._store.transaction(), wlog.bound(key=rid):
            self._require_present(rid)
            self._store.delete(rid)
            log.debug("asset deleted")

    def transfer_owner(self, record_id: str, new_owner_ref: str) -> Record:
        rid = _require_id(record_id)
        with self._store.transaction(), wlog.bound(key=rid):
            current = self._read_present(rid)
            rec = current.replace(owner_ref=new_owner_ref)
            self._put(rec)
            log.debug("asset transferred")
        return rec

    def adjust_balance(
        self,
        record_id: str,
        new_balance: int,
        amount: int,
        transaction_type: str,
        remarks: str,
    ) -> Record:
        rid = _require_id(record_id)
        with self._store.transaction(), wlog.bound(key=rid):
            current = self._read_present(rid)
            rec = current.replace(
                balance=new_balance,
                last_transaction_amount=amount,
                last_transaction_type=transaction_type,
                remarks=remarks,
            )
            self._put(rec)
            log.debug("balance adjusted", extra={"amount": amount})
        return rec

    def seed_defaults(self) -> List[Record]:
        """Unconditionally write the starter records, overwriting same ids."""
        records = list(DEFAULT_RECORDS)
        put_many(self._store, ((r.id, self._codec.encode(r)) for r in records))
        log.info("ledger seeded", extra={"count": len(records)})
        return records

    # --- internals ---

    def _put(self, rec: Record) -> None:
        self._store.put(rec.id, self._codec.encode(rec))

    def _require_absent(self, rid: str) -> None:
        if self._store.has(rid):
            log.info("create rejected: asset already exists")
            raise AlreadyExists(rid)

    def _require_present(self, rid: str) -> None:
        if not self._store.has(rid):
            log.info("precondition failed: asset does not exist")
            raise NotFound(rid)

    def _read_present(self, rid: str) -> Record:
        raw = self._store.get(rid)
        if raw is None:
            log.info("precondition failed: asset does not exist")
            raise NotFound(rid)
        return self._codec.decode(raw)


__all__ = ["AssetRegistry"]
