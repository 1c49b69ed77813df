"""Instruction builders — system, compute budget, SPL token, ATA, lookup table.

SPL Token, Associated Token and lookup table instructions are encoded by hand
(tag, then little-endian fields) so the only chain dependency is solders.
"""

from __future__ import annotations

import struct

from solders.address_lookup_table_account import derive_lookup_table_address  # type: ignore[import-untyped]
from solders.compute_budget import (  # type: ignore[import-untyped]
    set_compute_unit_limit,
    set_compute_unit_price,
)
from solders.instruction import AccountMeta, Instruction  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.system_program import TransferParams, transfer  # type: ignore[import-untyped]

from src.chain.constants import (
    ADDRESS_LOOKUP_TABLE_PROGRAM_ID,
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)

# SPL Token instruction tags
_TOKEN_IX_TRANSFER_CHECKED = 12
_TOKEN_IX_CLOSE_ACCOUNT = 9
_TOKEN_IX_SYNC_NATIVE = 17

# Associated Token Account instruction tags
_ATA_IX_CREATE_IDEMPOTENT = 1

# Address Lookup Table instruction tags (u32)
_LUT_IX_CREATE = 0
_LUT_IX_EXTEND = 2


def get_associated_token_address(
    owner: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Pubkey:
    """Derive the Associated Token Account address for (owner, mint)."""
    ata, _bump = Pubkey.find_program_address(
        [bytes(owner), bytes(token_program_id), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return ata


def compute_budget_instructions(units: int, micro_lamports: int) -> list[Instruction]:
    return [set_compute_unit_limit(units), set_compute_unit_price(micro_lamports)]


def transfer_sol(from_pubkey: Pubkey, to_pubkey: Pubkey, lamports: int) -> Instruction:
    return transfer(
        TransferParams(from_pubkey=from_pubkey, to_pubkey=to_pubkey, lamports=lamports)
    )


def create_associated_token_account_idempotent(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    token_program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    """Create owner's ATA for mint; no-op if it already exists."""
    ata = get_associated_token_address(owner, mint, token_program_id)
    accounts = [
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=ata, is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner, is_signer=False, is_writable=False),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=token_program_id, is_signer=False, is_writable=False),
    ]
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID, bytes([_ATA_IX_CREATE_IDEMPOTENT]), accounts
    )


def sync_native(account: Pubkey) -> Instruction:
    """Refresh a wrapped-SOL account's token amount from its lamports."""
    accounts = [AccountMeta(pubkey=account, is_signer=False, is_writable=True)]
    return Instruction(TOKEN_PROGRAM_ID, bytes([_TOKEN_IX_SYNC_NATIVE]), accounts)


def close_account(account: Pubkey, destination: Pubkey, owner: Pubkey) -> Instruction:
    """Close a token account; its rent lamports go to destination."""
    accounts = [
        AccountMeta(pubkey=account, is_signer=False, is_writable=True),
        AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner, is_signer=True, is_writable=False),
    ]
    return Instruction(TOKEN_PROGRAM_ID, bytes([_TOKEN_IX_CLOSE_ACCOUNT]), accounts)


def transfer_checked(
    source: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    owner: Pubkey,
    amount: int,
    decimals: int,
) -> Instruction:
    data = struct.pack("<BQB", _TOKEN_IX_TRANSFER_CHECKED, amount, decimals)
    accounts = [
        AccountMeta(pubkey=source, is_signer=False, is_writable=True),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=destination, is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner, is_signer=True, is_writable=False),
    ]
    return Instruction(TOKEN_PROGRAM_ID, data, accounts)


def _lookup_table_accounts(
    lookup_table: Pubkey, authority: Pubkey, payer: Pubkey
) -> list[AccountMeta]:
    return [
        AccountMeta(pubkey=lookup_table, is_signer=False, is_writable=True),
        AccountMeta(pubkey=authority, is_signer=True, is_writable=False),
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]


def create_lookup_table_instruction(
    authority: Pubkey, payer: Pubkey, recent_slot: int
) -> tuple[Instruction, Pubkey]:
    """Create-LUT instruction bound to a recent slot. Returns (ix, table address)."""
    table, bump = derive_lookup_table_address(authority, recent_slot)
    data = struct.pack("<IQB", _LUT_IX_CREATE, recent_slot, bump)
    ix = Instruction(
        ADDRESS_LOOKUP_TABLE_PROGRAM_ID, data, _lookup_table_accounts(table, authority, payer)
    )
    return ix, table


def extend_lookup_table_instruction(
    lookup_table: Pubkey,
    authority: Pubkey,
    payer: Pubkey,
    addresses: list[Pubkey],
) -> Instruction:
    data = struct.pack("<IQ", _LUT_IX_EXTEND, len(addresses)) + b"".join(
        bytes(a) for a in addresses
    )
    return Instruction(
        ADDRESS_LOOKUP_TABLE_PROGRAM_ID,
        data,
        _lookup_table_accounts(lookup_table, authority, payer),
    )
