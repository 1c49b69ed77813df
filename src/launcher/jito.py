"""Jito block-engine bundle submission.

A bundle is an ordered list of at most 5 fully-signed transactions that the
block engine lands in one block or not at all. Launch bundles are always
ordered creation TX → buy batches → creator buy, with the tip transfer inside
the creation TX.

Landing is judged by the creation TX signature: bundles are atomic, so if
the first transaction is confirmed every other one is too. The same check
guards resubmission — a bundle whose creation signature already landed is
never sent again (duplicate buys, duplicate tips).
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx
from loguru import logger
from solders.instruction import Instruction  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.transaction import VersionedTransaction  # type: ignore[import-untyped]

from src.chain.constants import JITO_TIP_ACCOUNTS, MAX_BUNDLE_TRANSACTIONS
from src.chain.instructions import transfer_sol
from src.chain.rpc import RpcError, SolanaRpcClient, encode_transaction

BUNDLES_PATH = "/api/v1/bundles"
STATUS_POLL_INTERVAL = 2.0  # seconds


def select_tip_account(rng: random.Random) -> Pubkey:
    """Uniform pick from the static tip accounts."""
    return Pubkey.from_string(rng.choice(JITO_TIP_ACCOUNTS))


def make_tip_instruction(payer: Pubkey, lamports: int, rng: random.Random) -> Instruction:
    tip_account = select_tip_account(rng)
    logger.info(f"[JITO] Tip {lamports} lamports → {tip_account}")
    return transfer_sol(payer, tip_account, lamports)


@dataclass
class BundleResult:
    """Result of a bundle submission attempt."""

    success: bool
    bundle_ids: list[str] = field(default_factory=list)
    creation_signature: str | None = None
    error: str | None = None
    already_landed: bool = False


class JitoBundleClient:
    """Submits bundles to one or more block-engine regions."""

    def __init__(
        self,
        block_engine_urls: list[str],
        rpc: SolanaRpcClient,
        *,
        timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not block_engine_urls:
            raise ValueError("No block engine URLs configured")
        self._urls = block_engine_urls
        self._rpc = rpc
        self._http = httpx.AsyncClient(timeout=timeout, headers={"Content-Type": "application/json"})
        self._sleep = sleep

    async def _send_to(self, url: str, encoded: list[str]) -> str | None:
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendBundle",
            "params": [encoded, {"encoding": "base64"}],
        }
        try:
            resp = await self._http.post(f"{url.rstrip('/')}{BUNDLES_PATH}", json=payload)
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            logger.warning(f"[JITO] {url} {type(e).__name__}: {e}")
            return None

        if resp.status_code != 200:
            logger.warning(f"[JITO] {url} HTTP {resp.status_code}")
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.warning(f"[JITO] {url} returned a non-JSON body")
            return None
        if not isinstance(data, dict):
            logger.warning(f"[JITO] {url} returned unexpected payload: {data!r:.120}")
            return None
        if "error" in data:
            logger.warning(f"[JITO] {url} rejected bundle: {data['error']}")
            return None
        result = data.get("result")
        return str(result) if result else None

    async def has_landed(self, signature: str) -> bool:
        try:
            status = await self._rpc.get_signature_status(signature)
        except RpcError as e:
            logger.debug(f"[JITO] Status lookup failed for {signature[:16]}: {e}")
            return False
        if status is None or status.get("err"):
            return False
        return status.get("confirmationStatus") in ("confirmed", "finalized")

    async def send_bundle(
        self,
        transactions: list[VersionedTransaction],
        *,
        timeout: float = 60.0,
    ) -> BundleResult:
        """Send to every region, then wait for the first TX to confirm.

        Never retries on its own; the caller decides after checking
        ``has_landed`` on the returned creation signature.
        """
        if not transactions:
            raise ValueError("Bundle must contain at least one transaction")
        if len(transactions) > MAX_BUNDLE_TRANSACTIONS:
            raise ValueError(
                f"Bundle has {len(transactions)} transactions (max {MAX_BUNDLE_TRANSACTIONS})"
            )

        creation_sig = str(transactions[0].signatures[0])
        if await self.has_landed(creation_sig):
            logger.warning(f"[JITO] Bundle head {creation_sig[:16]} already landed — not resending")
            return BundleResult(success=True, creation_signature=creation_sig, already_landed=True)

        encoded = [encode_transaction(tx) for tx in transactions]
        bundle_ids: list[str] = []
        for url in self._urls:
            bundle_id = await self._send_to(url, encoded)
            if bundle_id:
                logger.info(f"[JITO] Bundle accepted by {url}: {bundle_id}")
                bundle_ids.append(bundle_id)

        if not bundle_ids:
            return BundleResult(
                success=False,
                creation_signature=creation_sig,
                error="No block engine accepted the bundle",
            )

        elapsed = 0.0
        while elapsed < timeout:
            if await self.has_landed(creation_sig):
                logger.info(f"[JITO] Bundle landed: https://solscan.io/tx/{creation_sig}")
                return BundleResult(success=True, bundle_ids=bundle_ids, creation_signature=creation_sig)
            await self._sleep(STATUS_POLL_INTERVAL)
            elapsed += STATUS_POLL_INTERVAL

        return BundleResult(
            success=False,
            bundle_ids=bundle_ids,
            creation_signature=creation_sig,
            error=f"Bundle not landed within {timeout:.0f}s",
        )

    async def close(self) -> None:
        await self._http.aclose()
