"""Raydium LaunchLab (bonk.fun) — PDA derivation and instruction encoding.

Only the two instructions the launcher sends are encoded here:
  - initialize   — creates mint, pool, vaults and metadata for a new token
  - buy_exact_in — spends an exact amount of WSOL for at least N tokens

Anchor discriminators are sha256("global:<name>")[:8].
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass

from solders.instruction import AccountMeta, Instruction  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.chain.constants import (
    BONK_PLATFORM_ID,
    LAUNCHPAD_PROGRAM_ID,
    METADATA_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    SYSVAR_RENT_PUBKEY,
    TOKEN_PROGRAM_ID,
    WSOL_MINT,
)
from src.chain.instructions import get_associated_token_address

# PDA seeds
AUTH_SEED = b"vault_auth_seed"
CONFIG_SEED = b"global_config"
POOL_SEED = b"pool"
POOL_VAULT_SEED = b"pool_vault"
EVENT_AUTHORITY_SEED = b"__event_authority"
METADATA_SEED = b"metadata"

CURVE_TYPE_CONSTANT_PRODUCT = 0
MIGRATE_TYPE_AMM = 0

# Bonk.fun defaults for a constant-product launch (6 decimals)
DEFAULT_SUPPLY = 1_000_000_000_000_000
DEFAULT_TOTAL_BASE_SELL = 793_100_000_000_000
DEFAULT_TOTAL_QUOTE_FUND_RAISING = 85_000_000_000

# share_fee_rate is in 1e-6 units
DEFAULT_SHARE_FEE_RATE = 10_000


def _discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


DISCRIMINATOR_INITIALIZE = _discriminator("initialize")
DISCRIMINATOR_BUY_EXACT_IN = _discriminator("buy_exact_in")


def _borsh_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def get_auth_pda(program_id: Pubkey = LAUNCHPAD_PROGRAM_ID) -> Pubkey:
    return Pubkey.find_program_address([AUTH_SEED], program_id)[0]


def get_config_pda(
    mint_b: Pubkey = WSOL_MINT,
    curve_type: int = CURVE_TYPE_CONSTANT_PRODUCT,
    index: int = 0,
    program_id: Pubkey = LAUNCHPAD_PROGRAM_ID,
) -> Pubkey:
    seeds = [CONFIG_SEED, bytes(mint_b), struct.pack("<B", curve_type), struct.pack(">H", index)]
    return Pubkey.find_program_address(seeds, program_id)[0]


def get_pool_pda(
    mint_a: Pubkey,
    mint_b: Pubkey = WSOL_MINT,
    program_id: Pubkey = LAUNCHPAD_PROGRAM_ID,
) -> Pubkey:
    return Pubkey.find_program_address([POOL_SEED, bytes(mint_a), bytes(mint_b)], program_id)[0]


def get_vault_pda(
    pool: Pubkey,
    mint: Pubkey,
    program_id: Pubkey = LAUNCHPAD_PROGRAM_ID,
) -> Pubkey:
    return Pubkey.find_program_address([POOL_VAULT_SEED, bytes(pool), bytes(mint)], program_id)[0]


def get_event_authority_pda(program_id: Pubkey = LAUNCHPAD_PROGRAM_ID) -> Pubkey:
    return Pubkey.find_program_address([EVENT_AUTHORITY_SEED], program_id)[0]


def get_metadata_pda(mint: Pubkey) -> Pubkey:
    return Pubkey.find_program_address(
        [METADATA_SEED, bytes(METADATA_PROGRAM_ID), bytes(mint)], METADATA_PROGRAM_ID
    )[0]


@dataclass(frozen=True)
class LaunchpadAccounts:
    """All launchpad addresses derived from a token mint.

    Deterministic in (mint, program id), so every wallet's buy references
    the same pool, vaults and authority.
    """

    mint: Pubkey
    program_id: Pubkey
    platform_id: Pubkey
    auth: Pubkey
    config: Pubkey
    pool: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    event_authority: Pubkey

    @classmethod
    def derive(
        cls,
        mint: Pubkey,
        *,
        program_id: Pubkey = LAUNCHPAD_PROGRAM_ID,
        platform_id: Pubkey = BONK_PLATFORM_ID,
    ) -> LaunchpadAccounts:
        pool = get_pool_pda(mint, WSOL_MINT, program_id)
        return cls(
            mint=mint,
            program_id=program_id,
            platform_id=platform_id,
            auth=get_auth_pda(program_id),
            config=get_config_pda(WSOL_MINT, CURVE_TYPE_CONSTANT_PRODUCT, 0, program_id),
            pool=pool,
            vault_a=get_vault_pda(pool, mint, program_id),
            vault_b=get_vault_pda(pool, WSOL_MINT, program_id),
            event_authority=get_event_authority_pda(program_id),
        )

    def static_addresses(self) -> list[Pubkey]:
        """Program-side addresses every buy references (lookup-table class d)."""
        return [
            self.mint,
            self.program_id,
            self.config,
            self.platform_id,
            self.pool,
            self.vault_a,
            self.vault_b,
            self.auth,
            self.event_authority,
        ]


def build_buy_exact_in_instruction(
    accounts: LaunchpadAccounts,
    buyer: Pubkey,
    amount_in: int,
    *,
    minimum_amount_out: int = 1,
    share_fee_rate: int = DEFAULT_SHARE_FEE_RATE,
    share_fee_receiver: Pubkey | None = None,
) -> Instruction:
    """buy_exact_in: spend exactly ``amount_in`` lamports of WSOL."""
    user_token_a = get_associated_token_address(buyer, accounts.mint)
    user_token_b = get_associated_token_address(buyer, WSOL_MINT)

    metas = [
        AccountMeta(pubkey=buyer, is_signer=True, is_writable=False),
        AccountMeta(pubkey=accounts.auth, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.config, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.platform_id, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.pool, is_signer=False, is_writable=True),
        AccountMeta(pubkey=user_token_a, is_signer=False, is_writable=True),
        AccountMeta(pubkey=user_token_b, is_signer=False, is_writable=True),
        AccountMeta(pubkey=accounts.vault_a, is_signer=False, is_writable=True),
        AccountMeta(pubkey=accounts.vault_b, is_signer=False, is_writable=True),
        AccountMeta(pubkey=accounts.mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=WSOL_MINT, is_signer=False, is_writable=False),
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.event_authority, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.program_id, is_signer=False, is_writable=False),
    ]
    if share_fee_receiver is not None:
        metas.append(AccountMeta(pubkey=share_fee_receiver, is_signer=False, is_writable=True))

    data = DISCRIMINATOR_BUY_EXACT_IN + struct.pack(
        "<QQQ", amount_in, minimum_amount_out, share_fee_rate
    )
    return Instruction(accounts.program_id, data, metas)


def build_initialize_instruction(
    accounts: LaunchpadAccounts,
    payer: Pubkey,
    creator: Pubkey,
    *,
    name: str,
    symbol: str,
    uri: str,
    decimals: int = 6,
    supply: int = DEFAULT_SUPPLY,
    total_base_sell: int = DEFAULT_TOTAL_BASE_SELL,
    total_quote_fund_raising: int = DEFAULT_TOTAL_QUOTE_FUND_RAISING,
    migrate_type: int = MIGRATE_TYPE_AMM,
) -> Instruction:
    """initialize: create the mint (must co-sign), pool, vaults and metadata.

    Args layout: MintParams{decimals, name, symbol, uri},
    CurveParams::Constant{supply, total_base_sell, total_quote_fund_raising,
    migrate_type}, VestingParams{total_locked_amount, cliff_period, unlock_period}.
    """
    metas = [
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=creator, is_signer=True, is_writable=False),
        AccountMeta(pubkey=accounts.config, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.platform_id, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.auth, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.pool, is_signer=False, is_writable=True),
        AccountMeta(pubkey=accounts.mint, is_signer=True, is_writable=True),
        AccountMeta(pubkey=WSOL_MINT, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.vault_a, is_signer=False, is_writable=True),
        AccountMeta(pubkey=accounts.vault_b, is_signer=False, is_writable=True),
        AccountMeta(pubkey=get_metadata_pda(accounts.mint), is_signer=False, is_writable=True),
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=METADATA_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSVAR_RENT_PUBKEY, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.event_authority, is_signer=False, is_writable=False),
        AccountMeta(pubkey=accounts.program_id, is_signer=False, is_writable=False),
    ]

    mint_params = (
        struct.pack("<B", decimals)
        + _borsh_string(name)
        + _borsh_string(symbol)
        + _borsh_string(uri)
    )
    curve_params = struct.pack("<B", CURVE_TYPE_CONSTANT_PRODUCT) + struct.pack(
        "<QQQB", supply, total_base_sell, total_quote_fund_raising, migrate_type
    )
    vesting_params = struct.pack("<QQQ", 0, 0, 0)

    data = DISCRIMINATOR_INITIALIZE + mint_params + curve_params + vesting_params
    return Instruction(accounts.program_id, data, metas)
