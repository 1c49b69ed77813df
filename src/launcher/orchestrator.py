"""Launch orchestrator — the full bundled launch, start to finish.

Flow:
  metadata → mint keypair → treasury pre-check → SOL distribution
  → lookup table → buy batches + creator buy → Jito bundle
  → creator sell → volume-bot handoff

Distribution, lookup table and bundle are launch-critical: their failures
raise and end the run. Everything after the bundle lands is best-effort.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.transaction import VersionedTransaction  # type: ignore[import-untyped]

from src.chain.constants import LAMPORTS_PER_SOL, MAX_BUNDLE_TRANSACTIONS, PACKET_DATA_SIZE
from src.chain.launchpad import LaunchpadAccounts
from src.chain.rpc import RpcError
from src.launcher.accounts import generate_vanity_keypair
from src.launcher.composer import (
    WALLETS_PER_BATCH,
    BuyBatch,
    build_creation_transaction,
    build_creator_buy_transaction,
    compose_buy_batches,
)
from src.launcher.context import LaunchContext
from src.launcher.distribution import (
    distribute_sol,
    distribution_transaction_size,
    minimum_treasury_lamports,
)
from src.launcher.errors import BundleRejected, DistributionFailed, InsufficientFunds, LaunchError
from src.launcher.jito import BundleResult, make_tip_instruction
from src.launcher.lookup_table import build_lookup_table
from src.launcher.sweep import WalletSweepResult, sweep_wallets
from src.launcher.volume_bot import ProcessConfig, ProcessHandle


@dataclass
class LaunchResult:
    mint: str
    lookup_table: str | None = None
    buyers: list[str] = field(default_factory=list)
    batches: int = 0
    bundle: BundleResult | None = None
    creator_sweep: list[WalletSweepResult] = field(default_factory=list)
    volume_bot: ProcessHandle | None = None


@dataclass(frozen=True)
class VolumeBotSettings:
    workdir: Path
    command: str
    gather_command: str
    env_key: str = "TOKEN_MINT"


def order_bundle(
    creation_tx: VersionedTransaction,
    batches: list[BuyBatch],
    creator_tx: VersionedTransaction,
) -> list[VersionedTransaction]:
    """Creation first (the mint must exist), batches by index, creator buy last."""
    return [creation_tx, *(b.transaction for b in sorted(batches, key=lambda b: b.index)), creator_tx]


async def submit_launch_bundle(
    ctx: LaunchContext,
    mint: Pubkey,
    transactions: list[VersionedTransaction],
) -> BundleResult:
    """Submit once; raise BundleRejected with enough context to retry by hand.

    The creation signature of the previous attempt for this mint is checked
    first, so an operator re-run never double-submits a landed bundle.
    """
    if ctx.jito is None:
        raise RuntimeError("Bundle submission needs a Jito client in the launch context")

    previous = ctx.keystore.last_bundle_signature(str(mint))
    if previous and await ctx.jito.has_landed(previous):
        logger.warning(f"[LAUNCH] Bundle for {mint} already landed ({previous}) — skipping")
        return BundleResult(success=True, creation_signature=previous, already_landed=True)

    creation_sig = str(transactions[0].signatures[0])
    ctx.keystore.save_bundle_signature(str(mint), creation_sig)

    if ctx.config.simulate_bundle:
        for i, tx in enumerate(transactions):
            try:
                sim = await ctx.rpc.simulate_transaction(tx)
                logger.info(
                    f"[LAUNCH] Simulate #{i}: {len(bytes(tx))} bytes, err={sim.get('err')}, "
                    f"units={sim.get('unitsConsumed')}"
                )
            except RpcError as e:
                logger.debug(f"[LAUNCH] Simulate #{i} failed: {e}")

    result = await ctx.jito.send_bundle(transactions, timeout=ctx.config.bundle_timeout_sec)
    if not result.success:
        raise BundleRejected(
            f"Bundle for {mint} not landed: {result.error}. Re-run with a fresh "
            f"blockhash and a higher tip (creation sig {creation_sig})",
            bundle_id=result.bundle_ids[0] if result.bundle_ids else None,
            creation_signature=creation_sig,
        )
    return result


async def run_launch(
    ctx: LaunchContext,
    *,
    volume_bot: VolumeBotSettings | None = None,
) -> LaunchResult:
    cfg = ctx.config
    if ctx.metadata is None:
        raise RuntimeError("Launch needs a metadata client in the launch context")

    batches_needed = -(-cfg.wallet_count // WALLETS_PER_BATCH)
    if batches_needed + 2 > MAX_BUNDLE_TRANSACTIONS:
        raise LaunchError(
            f"{cfg.wallet_count} wallets need {batches_needed} buy batches; a bundle fits "
            f"{MAX_BUNDLE_TRANSACTIONS - 2} next to the creation and creator-buy TXs"
        )
    distribution_size = distribution_transaction_size(cfg.wallet_count)
    if distribution_size > PACKET_DATA_SIZE:
        raise LaunchError(
            f"{cfg.wallet_count} wallets make a {distribution_size}-byte distribution TX; "
            f"the limit is {PACKET_DATA_SIZE}"
        )

    logger.info(f"[LAUNCH] Treasury {ctx.treasury.pubkey()}, creator {ctx.creator.pubkey()}")

    uri = await ctx.metadata.create_token_metadata(
        name=cfg.token_name,
        symbol=cfg.token_symbol,
        description=cfg.token_description,
        image_path=cfg.token_image_path,
        created_on=cfg.token_create_on,
        twitter=cfg.twitter,
        telegram=cfg.telegram,
        website=cfg.website,
    )

    mint_kp = (
        generate_vanity_keypair(cfg.vanity_suffix, max_attempts=cfg.vanity_max_attempts)
        if cfg.vanity_suffix
        else Keypair()
    )
    mint = mint_kp.pubkey()
    ctx.keystore.save_mint(mint_kp)
    logger.info(f"[LAUNCH] Mint address: {mint}")
    result = LaunchResult(mint=str(mint))

    required = minimum_treasury_lamports(
        cfg.wallet_count,
        cfg.swap_amount_lamports,
        cfg.margin_max_lamports,
        cfg.distribution_overhead_lamports,
    )
    balance = await ctx.rpc.get_balance(ctx.treasury.pubkey())
    if balance < required:
        raise InsufficientFunds(
            f"Charge the treasury with more than {required / LAMPORTS_PER_SOL:.4f} SOL "
            f"(has {balance / LAMPORTS_PER_SOL:.4f})",
            required=required,
            available=balance,
        )

    buyers = await distribute_sol(ctx)
    if not buyers:
        raise DistributionFailed("SOL distribution did not land — launch aborted")
    result.buyers = [str(kp.pubkey()) for kp in buyers]

    launchpad = LaunchpadAccounts.derive(mint)
    table = await build_lookup_table(ctx, buyers, launchpad)
    result.lookup_table = str(table)

    lookup = await ctx.rpc.get_lookup_table(table)
    if lookup is None:
        raise LaunchError(f"Lookup table {table} not readable after extension")
    logger.info(f"[LAUNCH] Lookup table ready with {len(lookup.addresses)} addresses")

    latest = await ctx.rpc.get_latest_blockhash()
    batches = await compose_buy_batches(ctx, buyers, launchpad, latest.blockhash, [lookup])
    result.batches = len(batches)
    creator_tx = await build_creator_buy_transaction(ctx, launchpad, latest.blockhash, [lookup])

    tip = make_tip_instruction(ctx.creator.pubkey(), cfg.tip_lamports, ctx.rng)
    creation_tx = build_creation_transaction(
        ctx, mint_kp, launchpad, uri, latest.blockhash, tip_instruction=tip
    )

    bundle = order_bundle(creation_tx, batches, creator_tx)
    logger.info(
        f"[LAUNCH] Submitting bundle: {len(bundle)} TXs, "
        f"{sum(len(bytes(tx)) for tx in bundle)} bytes"
    )
    result.bundle = await submit_launch_bundle(ctx, mint, bundle)

    await ctx.sleep(cfg.creator_sell_delay_sec)
    logger.info("[LAUNCH] Selling creator position...")
    result.creator_sweep = await sweep_wallets(ctx, [ctx.creator], destination=None)

    if volume_bot is not None and cfg.volume_bot_enabled:
        result.volume_bot = await start_volume_bot(ctx, volume_bot, str(mint))

    return result


async def start_volume_bot(
    ctx: LaunchContext,
    bot: VolumeBotSettings,
    mint: str,
) -> ProcessHandle | None:
    if ctx.volume_bot is None:
        logger.warning("[LAUNCH] No process launcher configured — volume bot skipped")
        return None
    logger.info("[LAUNCH] Volume trading in progress...")
    return await ctx.volume_bot.launch(
        ProcessConfig(
            workdir=bot.workdir,
            command=bot.command,
            env_key=bot.env_key,
            mint=mint,
            lifetime_sec=ctx.config.vol_bot_timeout_sec,
        )
    )


async def run_gather(
    ctx: LaunchContext,
    *,
    extra_wallets: list[Keypair] | None = None,
    volume_bot: VolumeBotSettings | None = None,
) -> tuple[list[WalletSweepResult], ProcessHandle | None]:
    """Sweep every persisted wallet (plus extras) into the treasury."""
    wallets = ctx.keystore.load_wallets() + list(extra_wallets or [])
    logger.info(f"[LAUNCH] Gathering from {len(wallets)} wallets into {ctx.treasury.pubkey()}")
    results = await sweep_wallets(ctx, wallets, destination=ctx.treasury)

    handle = None
    if volume_bot is not None and ctx.volume_bot is not None:
        logger.info("[LAUNCH] Gathering volume bot funds...")
        handle = await ctx.volume_bot.launch(
            ProcessConfig(workdir=volume_bot.workdir, command=volume_bot.gather_command)
        )
    return results, handle