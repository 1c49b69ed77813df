"""Capital distribution — treasury → intermediary → buyer, one atomic transaction.

Every buyer gets ``swap_amount + margin`` lamports where the margin is drawn
per buyer from [margin_min, margin_max). Funds pass through a fresh
intermediary so the treasury never pays a buyer directly. All 2×N transfers
sit in a single transaction signed by the treasury and every intermediary:
either all land or none do.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from loguru import logger
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.transaction import VersionedTransaction  # type: ignore[import-untyped]

from src.chain.constants import LAMPORTS_PER_SOL, PACKET_DATA_SIZE
from src.chain.instructions import compute_budget_instructions, transfer_sol
from src.chain.rpc import RpcError
from src.launcher.accounts import WalletPair, generate_wallet_pairs
from src.launcher.context import LaunchContext
from src.launcher.errors import DistributionFailed, InsufficientFunds
from src.launcher.executor import build_v0_transaction, execute

DISTRIBUTION_CU_LIMIT = 1_000_000
DISTRIBUTION_CU_PRICE = 250_000  # micro-lamports


def draw_margin(rng: random.Random, margin_min: int, margin_max: int) -> int:
    """Random margin in [margin_min, margin_max) lamports."""
    if margin_max <= margin_min:
        return margin_min
    return rng.randrange(margin_min, margin_max)


@dataclass(frozen=True)
class DistributionEntry:
    pair: WalletPair
    lamports: int


@dataclass(frozen=True)
class DistributionPlan:
    entries: tuple[DistributionEntry, ...]
    overhead_lamports: int

    @property
    def total_lamports(self) -> int:
        """Sum sent to buyers (excludes overhead)."""
        return sum(e.lamports for e in self.entries)

    @property
    def required_lamports(self) -> int:
        return self.total_lamports + self.overhead_lamports

    @property
    def buyers(self) -> list[Keypair]:
        return [e.pair.buyer for e in self.entries]

    @property
    def intermediaries(self) -> list[Keypair]:
        return [e.pair.intermediary for e in self.entries]


def plan_distribution(
    pairs: list[WalletPair],
    *,
    swap_amount_lamports: int,
    margin_min_lamports: int,
    margin_max_lamports: int,
    overhead_lamports: int,
    rng: random.Random,
) -> DistributionPlan:
    entries = tuple(
        DistributionEntry(
            pair=pair,
            lamports=swap_amount_lamports
            + draw_margin(rng, margin_min_lamports, margin_max_lamports),
        )
        for pair in pairs
    )
    return DistributionPlan(entries=entries, overhead_lamports=overhead_lamports)


def minimum_treasury_lamports(
    wallet_count: int,
    swap_amount_lamports: int,
    margin_max_lamports: int,
    overhead_lamports: int,
) -> int:
    """Worst-case requirement before any margin is drawn."""
    return wallet_count * (swap_amount_lamports + margin_max_lamports) + overhead_lamports


def build_distribution_transaction(
    treasury: Keypair, plan: DistributionPlan, blockhash: Hash
) -> VersionedTransaction:
    """Treasury → intermediary → buyer for every entry, all in one v0 TX."""
    instructions = compute_budget_instructions(DISTRIBUTION_CU_LIMIT, DISTRIBUTION_CU_PRICE)
    for entry in plan.entries:
        intermediary = entry.pair.intermediary.pubkey()
        instructions.append(transfer_sol(treasury.pubkey(), intermediary, entry.lamports))
        instructions.append(transfer_sol(intermediary, entry.pair.buyer.pubkey(), entry.lamports))
    return build_v0_transaction(instructions, treasury, blockhash, signers=plan.intermediaries)


def distribution_transaction_size(wallet_count: int) -> int:
    """Serialized size of a distribution TX for ``wallet_count`` buyers."""
    plan = DistributionPlan(
        entries=tuple(
            DistributionEntry(pair=pair, lamports=1)
            for pair in generate_wallet_pairs(wallet_count)
        ),
        overhead_lamports=0,
    )
    return len(bytes(build_distribution_transaction(Keypair(), plan, Hash.default())))


async def distribute_sol(ctx: LaunchContext) -> list[Keypair] | None:
    """Generate and fund ``ctx.config.wallet_count`` buyers.

    Raises InsufficientFunds before anything is built if the treasury cannot
    cover the plan, and DistributionFailed if the TX would not fit one packet
    (no keys are written in either case). Returns the funded buyer keypairs, or None if the
    distribution transaction did not land (the launch must abort).
    """
    cfg = ctx.config
    treasury = ctx.treasury

    balance = await ctx.rpc.get_balance(treasury.pubkey())
    logger.info(f"[DISTRIBUTE] Treasury {treasury.pubkey()} has {balance / LAMPORTS_PER_SOL:.4f} SOL")

    pairs = generate_wallet_pairs(cfg.wallet_count)
    plan = plan_distribution(
        pairs,
        swap_amount_lamports=cfg.swap_amount_lamports,
        margin_min_lamports=cfg.margin_min_lamports,
        margin_max_lamports=cfg.margin_max_lamports,
        overhead_lamports=cfg.distribution_overhead_lamports,
        rng=ctx.rng,
    )
    if balance < plan.required_lamports:
        raise InsufficientFunds(
            f"Treasury needs {plan.required_lamports / LAMPORTS_PER_SOL:.4f} SOL, "
            f"has {balance / LAMPORTS_PER_SOL:.4f} SOL",
            required=plan.required_lamports,
            available=balance,
        )

    try:
        latest = await ctx.rpc.get_latest_blockhash()
    except RpcError as e:
        logger.error(f"[DISTRIBUTE] Blockhash fetch failed: {e}")
        return None

    tx = build_distribution_transaction(treasury, plan, latest.blockhash)
    size = len(bytes(tx))
    if size > PACKET_DATA_SIZE:
        raise DistributionFailed(
            f"Distribution TX for {cfg.wallet_count} wallets is {size} bytes "
            f"(limit {PACKET_DATA_SIZE})"
        )

    # Persist before sending: a half-landed state must stay recoverable
    ctx.keystore.save_wallets(plan.intermediaries + plan.buyers)

    logger.info(
        f"[DISTRIBUTE] Sending {plan.total_lamports / LAMPORTS_PER_SOL:.4f} SOL to "
        f"{len(plan.entries)} buyers via intermediaries"
    )
    signature = await execute(ctx.rpc, tx, label="distribution")
    if signature is None:
        logger.error("[DISTRIBUTE] Distribution transaction failed — launch aborted")
        return None

    return plan.buyers
