"""Async Solana JSON-RPC client.

Thin wrapper over httpx: every method is one RPC round-trip (or a poll loop
for confirmation). Errors collapse into three outcomes, which is all the
launcher distinguishes:
  - value returned               — success
  - RpcError raised / None        — failed, caller may retry
  - AccountNotFoundError raised   — the account does not exist (any more)
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger
from solders.address_lookup_table_account import AddressLookupTableAccount  # type: ignore[import-untyped]
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.transaction import VersionedTransaction  # type: ignore[import-untyped]

from src.chain.constants import LOOKUP_TABLE_META_SIZE, TOKEN_PROGRAM_ID

MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]

# Confirmation polling
CONFIRM_POLL_INTERVAL = 2.0  # seconds
CONFIRM_TIMEOUT = 60  # seconds
RESEND_INTERVAL = 4.0  # seconds

_NOT_FOUND_MARKERS = ("could not find account", "account not found", "invalid param: could not find")


class RpcError(Exception):
    pass


class AccountNotFoundError(RpcError):
    pass


@dataclass
class TokenAccountInfo:
    """One SPL token account owned by a wallet (snapshot, may go stale)."""

    pubkey: Pubkey
    mint: Pubkey
    amount: int
    decimals: int


@dataclass
class TokenBalance:
    amount: int
    decimals: int

    @property
    def is_zero(self) -> bool:
        return self.amount == 0


@dataclass
class Blockhash:
    blockhash: Hash
    last_valid_block_height: int


def encode_transaction(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


def parse_lookup_table(key: Pubkey, raw: bytes) -> AddressLookupTableAccount | None:
    """Decode LUT account data: 56-byte header, then 32-byte addresses."""
    if len(raw) < LOOKUP_TABLE_META_SIZE:
        return None
    addresses = [
        Pubkey.from_bytes(raw[i : i + 32])
        for i in range(LOOKUP_TABLE_META_SIZE, len(raw) - 31, 32)
    ]
    return AddressLookupTableAccount(key=key, addresses=addresses)


class SolanaRpcClient:
    """Async JSON-RPC client for one Solana endpoint."""

    def __init__(
        self,
        rpc_url: str,
        *,
        commitment: str = "confirmed",
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not rpc_url:
            raise ValueError("RPC URL is empty")
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._http = httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep

    def __repr__(self) -> str:
        return f"SolanaRpcClient(url={self._rpc_url})"

    # ─── Transport ───────────────────────────────────────────────────

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        """POST one JSON-RPC request, retrying transport failures and 5xx."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []}
        last_exc: Exception | None = None

        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await self._http.post(self._rpc_url, json=payload)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_exc = e
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[RPC] {method} {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                raise RpcError(f"{method} failed after {MAX_RETRIES + 1} attempts: {e}") from e

            if resp.status_code == 429 or resp.status_code >= 500:
                if attempt < MAX_RETRIES:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.debug(f"[RPC] {method} HTTP {resp.status_code}, retry in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                raise RpcError(f"{method} HTTP {resp.status_code}")

            if resp.status_code != 200:
                raise RpcError(f"{method} HTTP {resp.status_code}")

            try:
                data = resp.json()
            except ValueError as e:
                raise RpcError(f"{method} returned a non-JSON body") from e
            if "error" in data:
                error = data["error"]
                msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                if any(marker in msg.lower() for marker in _NOT_FOUND_MARKERS):
                    raise AccountNotFoundError(f"{method}: {msg}")
                raise RpcError(f"{method} RPC error: {msg}")
            return data.get("result")

        raise RpcError(f"{method} failed after retries") from last_exc

    # ─── Reads ───────────────────────────────────────────────────────

    async def get_balance(self, pubkey: Pubkey) -> int:
        """Native balance in lamports."""
        result = await self._call("getBalance", [str(pubkey), {"commitment": self._commitment}])
        return int(result["value"])

    async def get_slot(self) -> int:
        result = await self._call("getSlot", [{"commitment": self._commitment}])
        return int(result)

    async def get_latest_blockhash(self) -> Blockhash:
        result = await self._call("getLatestBlockhash", [{"commitment": self._commitment}])
        value = result["value"]
        return Blockhash(
            blockhash=Hash.from_string(value["blockhash"]),
            last_valid_block_height=int(value["lastValidBlockHeight"]),
        )

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        result = await self._call("getMinimumBalanceForRentExemption", [size])
        return int(result)

    async def get_account_data(self, pubkey: Pubkey) -> bytes | None:
        """Raw account data, or None if the account does not exist."""
        result = await self._call(
            "getAccountInfo",
            [str(pubkey), {"encoding": "base64", "commitment": self._commitment}],
        )
        value = result.get("value") if result else None
        if not value:
            return None
        return base64.b64decode(value["data"][0])

    async def get_token_accounts_by_owner(self, owner: Pubkey) -> list[TokenAccountInfo]:
        """All SPL Token program accounts owned by ``owner``."""
        result = await self._call(
            "getTokenAccountsByOwner",
            [
                str(owner),
                {"programId": str(TOKEN_PROGRAM_ID)},
                {"encoding": "jsonParsed", "commitment": self._commitment},
            ],
        )
        accounts: list[TokenAccountInfo] = []
        for item in result.get("value", []):
            try:
                info = item["account"]["data"]["parsed"]["info"]
                token_amount = info["tokenAmount"]
                accounts.append(
                    TokenAccountInfo(
                        pubkey=Pubkey.from_string(item["pubkey"]),
                        mint=Pubkey.from_string(info["mint"]),
                        amount=int(token_amount.get("amount", "0")),
                        decimals=int(token_amount.get("decimals", 0)),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[RPC] Skipping unparsable token account for {str(owner)[:12]}: {e}")
        return accounts

    async def get_token_account_balance(self, account: Pubkey) -> TokenBalance:
        """Raises AccountNotFoundError when the token account is closed."""
        result = await self._call(
            "getTokenAccountBalance", [str(account), {"commitment": self._commitment}]
        )
        if not result or not result.get("value"):
            raise AccountNotFoundError(f"getTokenAccountBalance: no value for {account}")
        value = result["value"]
        return TokenBalance(amount=int(value.get("amount", "0")), decimals=int(value.get("decimals", 0)))

    async def get_lookup_table(self, key: Pubkey) -> AddressLookupTableAccount | None:
        raw = await self.get_account_data(key)
        if raw is None:
            return None
        return parse_lookup_table(key, raw)

    async def get_signature_status(self, signature: str) -> dict | None:
        """Status dict ({confirmationStatus, err, ...}) or None if unknown."""
        result = await self._call(
            "getSignatureStatuses", [[signature], {"searchTransactionHistory": True}]
        )
        statuses = result.get("value", []) if result else []
        return statuses[0] if statuses else None

    # ─── Writes ──────────────────────────────────────────────────────

    async def simulate_transaction(self, tx: VersionedTransaction) -> dict:
        result = await self._call(
            "simulateTransaction",
            [
                encode_transaction(tx),
                {"encoding": "base64", "sigVerify": True, "commitment": self._commitment},
            ],
        )
        return result.get("value", {}) if result else {}

    async def send_transaction(self, tx: VersionedTransaction, *, skip_preflight: bool = True) -> str:
        result = await self._call(
            "sendTransaction",
            [
                encode_transaction(tx),
                {"encoding": "base64", "skipPreflight": skip_preflight, "maxRetries": 5},
            ],
        )
        if not result:
            raise RpcError("sendTransaction returned no signature")
        return str(result)

    async def confirm_transaction(
        self,
        signature: str,
        *,
        resend: VersionedTransaction | None = None,
        timeout: float = CONFIRM_TIMEOUT,
    ) -> bool:
        """Poll getSignatureStatuses until confirmed, failed on-chain or timeout.

        When ``resend`` is given the same signed TX is re-sent every few
        seconds; the signature is unchanged so duplicate sends are idempotent.
        """
        elapsed = 0.0
        last_resend = 0.0
        while elapsed < timeout:
            try:
                status = await self.get_signature_status(signature)
            except RpcError as e:
                logger.debug(f"[RPC] Status poll failed for {signature[:16]}: {e}")
                status = None

            if status is not None:
                if status.get("err"):
                    logger.warning(f"[RPC] TX {signature[:16]} error on-chain: {status['err']}")
                    return False
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    logger.debug(f"[RPC] TX {signature[:16]} confirmed in {elapsed:.1f}s")
                    return True

            if resend is not None and elapsed - last_resend >= RESEND_INTERVAL:
                try:
                    await self.send_transaction(resend)
                    last_resend = elapsed
                except RpcError as e:
                    logger.debug(f"[RPC] Resend failed for {signature[:16]}: {e}")

            await self._sleep(CONFIRM_POLL_INTERVAL)
            elapsed += CONFIRM_POLL_INTERVAL

        logger.warning(f"[RPC] TX {signature[:16]} confirmation timeout after {timeout}s")
        return False

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http.aclose()
