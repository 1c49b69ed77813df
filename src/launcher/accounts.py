"""Disposable signer generation and secret-key loading.

Keypairs come from solders' OS-backed CSPRNG. Only public keys are ever
logged; secret material leaves the process only through KeyStore.
"""

from __future__ import annotations

from dataclasses import dataclass

import base58
from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]


@dataclass(frozen=True)
class WalletPair:
    """Treasury → intermediary → buyer hop for one buyer."""

    intermediary: Keypair
    buyer: Keypair

    def __repr__(self) -> str:
        return f"WalletPair(intermediary={self.intermediary.pubkey()}, buyer={self.buyer.pubkey()})"


def generate_wallet_pairs(count: int) -> list[WalletPair]:
    if count < 1:
        raise ValueError("Wallet count must be >= 1")
    return [WalletPair(intermediary=Keypair(), buyer=Keypair()) for _ in range(count)]


def generate_vanity_keypair(suffix: str, *, max_attempts: int = 5_000_000) -> Keypair:
    """Grind keypairs until the base58 address ends with ``suffix``.

    Raises RuntimeError when ``max_attempts`` is exhausted.
    """
    if not suffix:
        return Keypair()
    for n in range(1, max_attempts + 1):
        kp = Keypair()
        if str(kp.pubkey()).endswith(suffix):
            logger.info(f"[KEYS] Vanity address found after {n} attempts: {kp.pubkey()}")
            return kp
    raise RuntimeError(f"No address ending with '{suffix}' in {max_attempts} attempts")


def load_keypair(encoded: str) -> Keypair:
    """Load a base58 secret: 64-byte secret key or 32-byte seed."""
    if not encoded:
        raise ValueError("Private key is empty")
    decoded = base58.b58decode(encoded.strip())
    if len(decoded) == 64:
        return Keypair.from_bytes(decoded)
    if len(decoded) == 32:
        return Keypair.from_seed(decoded)
    raise ValueError(f"Invalid secret key length: {len(decoded)} bytes")


def encode_keypair(kp: Keypair) -> str:
    return base58.b58encode(bytes(kp)).decode("ascii")
