"""Jupiter aggregator client — quote + swap for the recovery sweep.

Pipeline per sell:
  1. GET  /quote — token → WSOL route for the whole balance
  2. POST /swap  — serialized, unsigned VersionedTransaction (base64)
  3. sign locally with the selling wallet

Submission is left to the caller (legacy executor) so the sweep controls
retries. A missing or error-flagged quote means "no route" and raises
QuoteUnavailable; the sweep's retry loop treats it like any other failure.
"""

from __future__ import annotations

import asyncio
import base64

import httpx
from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.transaction import VersionedTransaction  # type: ignore[import-untyped]

from src.chain.constants import WSOL_MINT
from src.launcher.errors import QuoteUnavailable
from src.utils.rate_limiter import RateLimiter

DEFAULT_API_URL = "https://quote-api.jup.ag/v6"

MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]


class JupiterSwapClient:
    """Builds signed Jupiter sell transactions for arbitrary wallets."""

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        api_key: str = "",
        max_rps: float = 1.0,
        default_slippage_bps: int = 1000,
        priority_fee_lamports: int | str = 600_000,
    ) -> None:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key

        self._api_url = api_url.rstrip("/")
        self._http = httpx.AsyncClient(timeout=15.0, headers=headers)
        self._rate_limiter = RateLimiter(max_rps)
        self._slippage_bps = default_slippage_bps
        self._priority_fee = priority_fee_lamports

    async def _request(self, method: str, path: str, **kwargs) -> dict | None:
        """Rate-limited request with retry on 429/5xx/transport errors."""
        url = f"{self._api_url}{path}"
        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._http.request(method, url, **kwargs)

                if resp.status_code == 429 or resp.status_code >= 500:
                    if attempt < MAX_RETRIES:
                        delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                        logger.debug(f"[SWAP] {path} HTTP {resp.status_code}, retry in {delay}s")
                        await asyncio.sleep(delay)
                        continue
                    logger.warning(f"[SWAP] {path} failed: HTTP {resp.status_code}")
                    return None

                if resp.status_code == 400:
                    data = resp.json()
                    error_msg = data.get("error", data.get("message", "Bad request"))
                    logger.warning(f"[SWAP] {path} 400: {error_msg}")
                    return None

                if resp.status_code != 200:
                    logger.warning(f"[SWAP] {path} unexpected HTTP {resp.status_code}")
                    return None

                return resp.json()

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[SWAP] {path} {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                else:
                    logger.warning(f"[SWAP] {path} failed after retries: {e}")
                    return None

        return None

    async def get_quote(
        self,
        input_mint: Pubkey,
        output_mint: Pubkey,
        amount: int,
        *,
        slippage_bps: int | None = None,
    ) -> dict | None:
        """Quote dict, or None when Jupiter has no route."""
        params = {
            "inputMint": str(input_mint),
            "outputMint": str(output_mint),
            "amount": str(amount),
            "slippageBps": str(slippage_bps or self._slippage_bps),
        }
        quote = await self._request("GET", "/quote", params=params)
        if not quote or quote.get("error"):
            return None
        return quote

    async def get_swap_transaction(self, quote: dict, wallet: Keypair) -> VersionedTransaction | None:
        """POST /swap and sign the returned transaction with ``wallet``."""
        payload = {
            "quoteResponse": quote,
            "userPublicKey": str(wallet.pubkey()),
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": self._priority_fee,
        }
        data = await self._request("POST", "/swap", json=payload)
        if not data or not data.get("swapTransaction"):
            logger.warning(f"[SWAP] No swapTransaction for {str(wallet.pubkey())[:12]}")
            return None

        raw = base64.b64decode(data["swapTransaction"])
        unsigned = VersionedTransaction.from_bytes(raw)
        return VersionedTransaction(unsigned.message, [wallet])

    async def get_sell_transaction(
        self,
        wallet: Keypair,
        mint: Pubkey,
        amount: int,
    ) -> VersionedTransaction | None:
        """Signed token → SOL swap for ``amount`` raw units.

        Raises QuoteUnavailable when there is no route.
        """
        quote = await self.get_quote(mint, WSOL_MINT, amount)
        if quote is None:
            raise QuoteUnavailable(f"No route for {str(mint)[:12]} amount={amount}")
        return await self.get_swap_transaction(quote, wallet)

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http.aclose()
