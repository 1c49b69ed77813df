"""Liquidation & recovery sweep.

For each wallet, one at a time with a stagger between wallets:
  1. enumerate its SPL token accounts
  2. for each non-zero, non-WSOL account: quote + swap to SOL via Jupiter,
     up to 10 attempts (exhaustion is logged, the sweep moves on)
  3. settle, re-read the balance; a vanished account is skipped
  4. close the account (residual tokens first go to the destination's ATA)
  5. forward the wallet's remaining SOL to the destination, in the same TX

Balances are re-read before every mutating step: a snapshot taken during
enumeration can be stale by the time we act on it. One wallet's failure
never stops the sweep.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from solders.instruction import Instruction  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.chain.constants import LAMPORTS_PER_SOL, WSOL_MINT
from src.chain.instructions import (
    close_account,
    compute_budget_instructions,
    create_associated_token_account_idempotent,
    get_associated_token_address,
    transfer_checked,
    transfer_sol,
)
from src.chain.rpc import AccountNotFoundError, RpcError, TokenAccountInfo, TokenBalance
from src.launcher.context import LaunchContext
from src.launcher.errors import AccountVanished
from src.launcher.executor import create_and_send_v0_tx, execute
from src.utils.retry import RetryPolicy, attempt

MAX_SELL_ATTEMPTS = 10
SELL_RETRY_POLICY = RetryPolicy(max_attempts=MAX_SELL_ATTEMPTS, delays=(1.0,))

SWEEP_CU_LIMIT = 350_000
SWEEP_CU_PRICE = 220_000


@dataclass
class WalletSweepResult:
    wallet: str
    accounts_seen: int = 0
    accounts_sold: int = 0
    accounts_closed: int = 0
    swaps_requested: int = 0
    lamports_forwarded: int = 0
    signature: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def _read_balance(ctx: LaunchContext, account: Pubkey) -> TokenBalance:
    """Token balance; raises AccountVanished if the account is gone."""
    try:
        return await ctx.rpc.get_token_account_balance(account)
    except AccountNotFoundError as e:
        raise AccountVanished(str(account)) from e


async def sell_token_account(
    ctx: LaunchContext,
    wallet: Keypair,
    account: TokenAccountInfo,
    result: WalletSweepResult,
) -> bool:
    """Swap the account's whole balance to SOL. True once it reads zero."""
    if ctx.jupiter is None:
        raise RuntimeError("Sweep needs a Jupiter client in the launch context")

    balance = await _read_balance(ctx, account.pubkey)
    if balance.is_zero:
        return True

    label = f"sell {str(account.mint)[:8]} from {str(wallet.pubkey())[:8]}"

    async def _sell() -> str | None:
        current = await _read_balance(ctx, account.pubkey)
        if current.is_zero:
            return "already-empty"
        result.swaps_requested += 1
        tx = await ctx.jupiter.get_sell_transaction(wallet, account.mint, current.amount)
        if tx is None:
            return None
        return await execute(ctx.rpc, tx, label=label)

    async def _is_empty() -> bool:
        try:
            return (await _read_balance(ctx, account.pubkey)).is_zero
        except AccountVanished:
            return True

    outcome = await attempt(
        _sell, SELL_RETRY_POLICY, label=label, should_stop=_is_empty, sleep=ctx.sleep
    )
    if outcome.success:
        result.accounts_sold += 1
        return True

    logger.warning(
        f"[SWEEP] Sell limit reached for {account.mint} in {wallet.pubkey()} "
        f"after {outcome.attempts} attempts: {outcome.error}"
    )
    return False


async def _close_instructions(
    ctx: LaunchContext,
    wallet: Keypair,
    account: TokenAccountInfo,
    destination: Keypair | None,
) -> list[Instruction]:
    """Close (and drain residual tokens) for one account that still exists."""
    balance = await _read_balance(ctx, account.pubkey)
    owner = wallet.pubkey()
    rent_to = destination.pubkey() if destination is not None else owner
    ixs: list[Instruction] = []

    if balance.amount > 0 and account.mint != WSOL_MINT:
        if destination is None:
            logger.warning(
                f"[SWEEP] {account.pubkey} still holds {balance.amount} — cannot close"
            )
            return []
        dest_ata = get_associated_token_address(destination.pubkey(), account.mint)
        ixs.append(
            create_associated_token_account_idempotent(
                destination.pubkey(), destination.pubkey(), account.mint
            )
        )
        ixs.append(
            transfer_checked(
                account.pubkey, account.mint, dest_ata, owner, balance.amount, balance.decimals
            )
        )

    ixs.append(close_account(account.pubkey, rent_to, owner))
    return ixs


async def sweep_wallet(
    ctx: LaunchContext,
    wallet: Keypair,
    *,
    destination: Keypair | None,
) -> WalletSweepResult:
    """Liquidate + close one wallet. ``destination=None`` keeps rent in the wallet."""
    result = WalletSweepResult(wallet=str(wallet.pubkey()))
    accounts = await ctx.rpc.get_token_accounts_by_owner(wallet.pubkey())
    result.accounts_seen = len(accounts)
    ixs: list[Instruction] = []

    for account in accounts:
        try:
            if account.mint != WSOL_MINT:
                await sell_token_account(ctx, wallet, account, result)
                await ctx.sleep(ctx.config.sell_settle_sec)
            close_ixs = await _close_instructions(ctx, wallet, account, destination)
        except AccountVanished:
            logger.info(f"[SWEEP] Token account {account.pubkey} vanished — skipping")
            continue
        except RpcError as e:
            logger.warning(f"[SWEEP] {account.pubkey} of {wallet.pubkey()} skipped: {e}")
            continue
        if close_ixs:
            ixs.extend(close_ixs)
            result.accounts_closed += 1

    if destination is not None and destination.pubkey() != wallet.pubkey():
        lamports = await ctx.rpc.get_balance(wallet.pubkey())
        if lamports > 0:
            ixs.append(transfer_sol(wallet.pubkey(), destination.pubkey(), lamports))
            result.lamports_forwarded = lamports

    if not ixs:
        logger.debug(f"[SWEEP] Nothing to do for {wallet.pubkey()}")
        return result

    payer = destination if destination is not None else wallet
    signature = await create_and_send_v0_tx(
        ctx.rpc,
        [*compute_budget_instructions(SWEEP_CU_LIMIT, SWEEP_CU_PRICE), *ixs],
        payer,
        signers=[wallet],
        label=f"close {str(wallet.pubkey())[:8]}",
    )
    if signature is None:
        result.error = "close transaction failed"
        result.lamports_forwarded = 0
        result.accounts_closed = 0
    else:
        result.signature = signature
        logger.info(
            f"[SWEEP] Closed {result.accounts_closed} accounts, gathered "
            f"{result.lamports_forwarded / LAMPORTS_PER_SOL:.6f} SOL from {wallet.pubkey()}"
        )
    return result


async def sweep_wallets(
    ctx: LaunchContext,
    wallets: list[Keypair],
    *,
    destination: Keypair | None,
) -> list[WalletSweepResult]:
    """Sweep every wallet in order; per-wallet errors are logged, never raised."""
    results: list[WalletSweepResult] = []
    for i, wallet in enumerate(wallets):
        if i:
            await ctx.sleep(ctx.config.wallet_stagger_sec)
        try:
            results.append(await sweep_wallet(ctx, wallet, destination=destination))
        except Exception as e:
            logger.error(f"[SWEEP] Wallet #{i} {wallet.pubkey()} failed: {type(e).__name__}: {e}")
            results.append(WalletSweepResult(wallet=str(wallet.pubkey()), error=str(e)))

    failed = sum(1 for r in results if not r.ok)
    total = sum(r.lamports_forwarded for r in results)
    logger.info(
        f"[SWEEP] Done: {len(results)} wallets, {failed} failed, "
        f"{total / LAMPORTS_PER_SOL:.6f} SOL forwarded"
    )
    return results
