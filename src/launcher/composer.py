"""Launch transaction composer — creation TX, buy batches, creator buy.

Per buyer wallet (5 instructions, always in this order):
  1. create token ATA (idempotent)
  2. create WSOL ATA (idempotent)
  3. transfer swap amount into the WSOL ATA
  4. sync native
  5. launchpad buy_exact_in

Wallets are grouped in ascending index order into batches of 5. Each batch
is one v0 transaction compiled against the launch's lookup table, paid by the
batch's first contributing wallet and signed by every contributing wallet.
A wallet that cannot cover two rent exemptions + its trade is dropped from
its batch; the rest of the batch is unaffected. The composer never submits.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from solders.address_lookup_table_account import AddressLookupTableAccount  # type: ignore[import-untyped]
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.instruction import Instruction  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.transaction import VersionedTransaction  # type: ignore[import-untyped]

from src.chain.constants import LAMPORTS_PER_SOL, PACKET_DATA_SIZE, TOKEN_ACCOUNT_SIZE, WSOL_MINT
from src.chain.instructions import (
    compute_budget_instructions,
    create_associated_token_account_idempotent,
    get_associated_token_address,
    sync_native,
    transfer_sol,
)
from src.chain.launchpad import LaunchpadAccounts, build_buy_exact_in_instruction, build_initialize_instruction
from src.chain.rpc import SolanaRpcClient
from src.launcher.context import LaunchContext
from src.launcher.errors import InsufficientWalletFunds
from src.launcher.executor import build_v0_transaction

WALLETS_PER_BATCH = 5
INSTRUCTIONS_PER_WALLET = 5

BATCH_CU_LIMIT = 1_000_000
BATCH_CU_PRICE = 200_000  # micro-lamports
BATCH_OVERHEAD_INSTRUCTIONS = 2  # compute unit limit + price

CREATOR_CU_LIMIT = 1_000_000
CREATOR_CU_PRICE = 300_000  # outbids the batches

CREATION_CU_LIMIT = 1_200_000
CREATION_CU_PRICE = 100_000


@dataclass
class BuyBatch:
    """One signed buy transaction covering up to 5 wallets."""

    index: int
    wallets: list[Keypair]
    instructions: list[Instruction]
    transaction: VersionedTransaction

    @property
    def payer(self) -> Pubkey:
        return self.wallets[0].pubkey()

    @property
    def instruction_count(self) -> int:
        return len(self.instructions)

    @property
    def size(self) -> int:
        return len(bytes(self.transaction))


def make_buy_instructions(
    launchpad: LaunchpadAccounts,
    buyer: Pubkey,
    lamports: int,
) -> list[Instruction]:
    wsol_ata = get_associated_token_address(buyer, WSOL_MINT)
    return [
        create_associated_token_account_idempotent(buyer, buyer, launchpad.mint),
        create_associated_token_account_idempotent(buyer, buyer, WSOL_MINT),
        transfer_sol(buyer, wsol_ata, lamports),
        sync_native(wsol_ata),
        build_buy_exact_in_instruction(
            launchpad, buyer, lamports, share_fee_receiver=wsol_ata
        ),
    ]


def batch_wallets(wallets: list[Keypair], size: int = WALLETS_PER_BATCH) -> list[list[Keypair]]:
    if size < 1:
        raise ValueError("Batch size must be >= 1")
    return [wallets[i : i + size] for i in range(0, len(wallets), size)]


async def check_wallet_funds(
    rpc: SolanaRpcClient,
    wallet: Pubkey,
    lamports: int,
    rent_exemption: int,
) -> int:
    """Balance must cover rent for two token accounts + the trade."""
    required = rent_exemption * 2 + lamports
    balance = await rpc.get_balance(wallet)
    if balance < required:
        raise InsufficientWalletFunds(str(wallet), required=required, available=balance)
    return balance


async def compose_buy_batches(
    ctx: LaunchContext,
    wallets: list[Keypair],
    launchpad: LaunchpadAccounts,
    blockhash: Hash,
    lookup_tables: list[AddressLookupTableAccount],
) -> list[BuyBatch]:
    """Build one signed transaction per group of 5 wallets (ascending index)."""
    lamports = ctx.config.swap_amount_lamports
    rent = await ctx.rpc.get_minimum_balance_for_rent_exemption(TOKEN_ACCOUNT_SIZE)

    batches: list[BuyBatch] = []
    for batch_no, group in enumerate(batch_wallets(wallets)):
        contributing: list[Keypair] = []
        instructions = compute_budget_instructions(BATCH_CU_LIMIT, BATCH_CU_PRICE)

        for kp in group:
            try:
                await check_wallet_funds(ctx.rpc, kp.pubkey(), lamports, rent)
            except InsufficientWalletFunds as e:
                logger.warning(f"[COMPOSE] Batch {batch_no}: skipping wallet — {e}")
                continue
            instructions.extend(make_buy_instructions(launchpad, kp.pubkey(), lamports))
            contributing.append(kp)

        if not contributing:
            logger.warning(f"[COMPOSE] Batch {batch_no}: no funded wallets, skipped")
            continue

        tx = build_v0_transaction(
            instructions,
            contributing[0],
            blockhash,
            signers=contributing[1:],
            lookup_tables=lookup_tables,
        )
        batch = BuyBatch(index=batch_no, wallets=contributing, instructions=instructions, transaction=tx)
        if batch.size > PACKET_DATA_SIZE:
            logger.warning(
                f"[COMPOSE] Batch {batch_no} is {batch.size} bytes (limit {PACKET_DATA_SIZE})"
            )
        logger.info(
            f"[COMPOSE] Batch {batch_no}: {len(contributing)} wallets, "
            f"{batch.instruction_count} ixs, {batch.size} bytes, payer={str(batch.payer)[:12]}"
        )
        batches.append(batch)

    return batches


async def build_creator_buy_transaction(
    ctx: LaunchContext,
    launchpad: LaunchpadAccounts,
    blockhash: Hash,
    lookup_tables: list[AddressLookupTableAccount] | None = None,
) -> VersionedTransaction:
    """Creator's own buy, signed only by the creator. Raises InsufficientWalletFunds."""
    creator = ctx.creator
    lamports = ctx.config.creator_buy_lamports
    rent = await ctx.rpc.get_minimum_balance_for_rent_exemption(TOKEN_ACCOUNT_SIZE)
    await check_wallet_funds(ctx.rpc, creator.pubkey(), lamports, rent)

    instructions = [
        *compute_budget_instructions(CREATOR_CU_LIMIT, CREATOR_CU_PRICE),
        *make_buy_instructions(launchpad, creator.pubkey(), lamports),
    ]
    tx = build_v0_transaction(instructions, creator, blockhash, lookup_tables=lookup_tables)
    logger.info(
        f"[COMPOSE] Creator buy: {lamports / LAMPORTS_PER_SOL:.4f} SOL, {len(bytes(tx))} bytes"
    )
    return tx


def build_creation_transaction(
    ctx: LaunchContext,
    mint: Keypair,
    launchpad: LaunchpadAccounts,
    uri: str,
    blockhash: Hash,
    *,
    tip_instruction: Instruction | None = None,
) -> VersionedTransaction:
    """Token creation TX signed by creator + mint; the bundle tip goes last."""
    cfg = ctx.config
    creator = ctx.creator
    instructions = [
        *compute_budget_instructions(CREATION_CU_LIMIT, CREATION_CU_PRICE),
        build_initialize_instruction(
            launchpad,
            creator.pubkey(),
            creator.pubkey(),
            name=cfg.token_name,
            symbol=cfg.token_symbol,
            uri=uri,
            decimals=cfg.token_decimals,
        ),
    ]
    if tip_instruction is not None:
        instructions.append(tip_instruction)

    tx = build_v0_transaction(instructions, creator, blockhash, signers=[mint])
    logger.info(f"[COMPOSE] Token creation TX: {len(bytes(tx))} bytes, mint={mint.pubkey()}")
    return tx
