"""Legacy single-transaction executor (no bundle atomicity).

Used for steps that stand on their own: SOL distribution, lookup-table
creation/extension, swept-wallet close transactions and aggregator sells.
"""

from __future__ import annotations

from loguru import logger
from solders.address_lookup_table_account import AddressLookupTableAccount  # type: ignore[import-untyped]
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.instruction import Instruction  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.message import MessageV0  # type: ignore[import-untyped]
from solders.transaction import VersionedTransaction  # type: ignore[import-untyped]

from src.chain.rpc import RpcError, SolanaRpcClient


def build_v0_transaction(
    instructions: list[Instruction],
    payer: Keypair,
    blockhash: Hash,
    *,
    signers: list[Keypair] | None = None,
    lookup_tables: list[AddressLookupTableAccount] | None = None,
) -> VersionedTransaction:
    """Compile a MessageV0 and sign it with payer + every extra signer.

    Signers are de-duplicated by pubkey; the set must match the message's
    required signers exactly.
    """
    all_signers: list[Keypair] = [payer]
    seen = {payer.pubkey()}
    for kp in signers or []:
        if kp.pubkey() not in seen:
            seen.add(kp.pubkey())
            all_signers.append(kp)

    msg = MessageV0.try_compile(
        payer=payer.pubkey(),
        instructions=instructions,
        address_lookup_table_accounts=lookup_tables or [],
        recent_blockhash=blockhash,
    )
    return VersionedTransaction(msg, all_signers)


async def execute(
    rpc: SolanaRpcClient,
    tx: VersionedTransaction,
    *,
    label: str = "tx",
) -> str | None:
    """Send + confirm. Returns the signature, or None on any failure."""
    try:
        signature = await rpc.send_transaction(tx)
    except RpcError as e:
        logger.warning(f"[EXEC] {label} send failed: {e}")
        return None

    confirmed = await rpc.confirm_transaction(signature, resend=tx)
    if not confirmed:
        logger.warning(f"[EXEC] {label} not confirmed: {signature}")
        return None

    logger.info(f"[EXEC] {label} confirmed: https://solscan.io/tx/{signature}")
    return signature


async def create_and_send_v0_tx(
    rpc: SolanaRpcClient,
    instructions: list[Instruction],
    payer: Keypair,
    *,
    signers: list[Keypair] | None = None,
    label: str = "tx",
) -> str | None:
    """Fetch a fresh blockhash, build, sign and execute one transaction."""
    try:
        latest = await rpc.get_latest_blockhash()
        tx = build_v0_transaction(instructions, payer, latest.blockhash, signers=signers)
    except RpcError as e:
        logger.warning(f"[EXEC] {label} blockhash fetch failed: {e}")
        return None
    return await execute(rpc, tx, label=label)
