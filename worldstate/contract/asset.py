"""
Asset contract methods: the ledger's function names bound to registry calls.

Write methods return None (empty reply); queries return records, lists of
records or booleans, which the dispatcher serializes to JSON.
"""

from __future__ import annotations

from typing import List

from ..registry import AssetRegistry
from ..types import Record
from .methods import method


@method("InitLedger", desc="Write the starter records (overwrites)")
def init_ledger(reg: AssetRegistry) -> None:
    reg.seed_defaults()


@method("CreateAsset")
def create_asset(
    reg: AssetRegistry, record_id: str, owner_ref: str, secret: str, balance: int, status: str
) -> None:
    reg.create(record_id, owner_ref, secret, balance, status)


@method("CreateAccount", desc="Create a record with an opening transaction entry")
def create_account(
    reg: AssetRegistry,
    record_id: str,
    owner_ref: str,
    secret: str,
    balance: int,
    status: str,
    amount: int,
    transaction_type: str,
    remarks: str,
) -> None:
    reg.create(
        record_id,
        owner_ref,
        secret,
        balance,
        status,
        amount=amount,
        transaction_type=transaction_type,
        remarks=remarks,
    )


@method("ReadAsset")
def read_asset(reg: AssetRegistry, record_id: str) -> Record:
    return reg.read(record_id)


@method("UpdateAsset")
def update_asset(
    reg: AssetRegistry, record_id: str, owner_ref: str, secret: str, balance: int, status: str
) -> None:
    reg.update(record_id, owner_ref, secret, balance, status)


@method("DeleteAsset")
def delete_asset(reg: AssetRegistry, record_id: str) -> None:
    reg.delete(record_id)


@method("AssetExists")
def asset_exists(reg: AssetRegistry, record_id: str) -> bool:
    return reg.exists(record_id)


@method("TransferAsset", desc="Change the owner reference of a record")
def transfer_asset(reg: AssetRegistry, record_id: str, new_owner_ref: str) -> None:
    reg.transfer_owner(record_id, new_owner_ref)


@method("UpdateBalance")
def update_balance(
    reg: AssetRegistry,
    record_id: str,
    new_balance: int,
    amount: int,
    transaction_type: str,
    remarks: str,
) -> None:
    reg.adjust_balance(record_id, new_balance, amount, transaction_type, remarks)


@method("GetAllAssets")
def get_all_assets(reg: AssetRegistry) -> List[Record]:
    return reg.list_all()


@method("GetAssetHistory", desc="Past values of a record, oldest first")
def get_asset_history(reg: AssetRegistry, record_id: str) -> List[Record]:
    return reg.history_of(record_id)
