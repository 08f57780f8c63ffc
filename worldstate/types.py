"""
worldstate.types
================

Domain types shared by the codec, the registry and the dispatcher.

Record
------
The asset/account entity kept in the world state. Python attribute names are
descriptive; the wire names (`WIRE_FIELDS`) are the ones ledger clients and
previously written documents use:

    id                       dealerId     str   primary key, immutable
    owner_ref                msisdn       str   changed by transfer
    secret                   mpin         str   stored verbatim (plaintext)
    balance                  balance      int
    status                   status       str   "Active" / "Inactive" / ...
    last_transaction_amount  transAmount  int
    last_transaction_type    transType    str
    remarks                  remarks      str

The secret is excluded from `repr()` so records can be logged; it is still
part of equality and of the stored value.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

# (attribute, wire name, python type)
WIRE_FIELDS: Tuple[Tuple[str, str, type], ...] = (
    ("id", "dealerId", str),
    ("owner_ref", "msisdn", str),
    ("secret", "mpin", str),
    ("balance", "balance", int),
    ("status", "status", str),
    ("last_transaction_amount", "transAmount", int),
    ("last_transaction_type", "transType", str),
    ("remarks", "remarks", str),
)

KEY_WIRE_NAME = "dealerId"
# accepted on decode only; the string-balance account contract spells the key this way
KEY_WIRE_ALIASES: Tuple[str, ...] = ("dealerID",)


@dataclass(frozen=True)
class Record:
    id: str
    owner_ref: str = ""
    secret: str = field(default="", repr=False)
    balance: int = 0
    status: str = ""
    last_transaction_amount: int = 0
    last_transaction_type: str = ""
    remarks: str = ""

    def replace(self, **changes: Any) -> "Record":
        """Return a copy with `changes` applied (full value, never a patch on disk)."""
        return dataclasses.replace(self, **changes)

    def to_wire(self) -> Dict[str, Any]:
        """Plain mapping keyed by wire names (JSON/CBOR-ready)."""
        return {wire: getattr(self, attr) for attr, wire, _ in WIRE_FIELDS}


@dataclass(frozen=True)
class HistoryRecord:
    """A decoded history entry. `record` is None for a deletion tombstone."""

    tx_id: str
    timestamp: _dt.datetime
    is_delete: bool
    record: Optional[Record]

    def to_wire(self) -> Dict[str, Any]:
        return {
            "txId": self.tx_id,
            "timestamp": self.timestamp.isoformat(),
            "isDelete": self.is_delete,
            "value": None if self.record is None else self.record.to_wire(),
        }


__all__ = ["Record", "HistoryRecord", "WIRE_FIELDS", "KEY_WIRE_NAME", "KEY_WIRE_ALIASES"]
