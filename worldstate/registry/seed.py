"""
Starter records written by `AssetRegistry.seed_defaults()` (ledger bootstrap).

Seeding is unconditional: calling it again overwrites these ids.
"""

from __future__ import annotations

from typing import Tuple

from ..types import Record

DEFAULT_RECORDS: Tuple[Record, ...] = (
    Record(
        id="D001",
        owner_ref="1234567890",
        secret="1111",
        balance=1000,
        status="Active",
    ),
    Record(
        id="D002",
        owner_ref="9876543210",
        secret="2222",
        balance=500,
        status="Inactive",
    ),
)

__all__ = ["DEFAULT_RECORDS"]
