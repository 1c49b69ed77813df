"""Explicit launch context — built once at process start, passed everywhere.

Components never reach for module-level clients or ``config.settings``; tests
hand in doubles for any collaborator and a seeded ``random.Random``.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from solders.keypair import Keypair  # type: ignore[import-untyped]

from src.chain.constants import LAMPORTS_PER_SOL

if TYPE_CHECKING:
    from config.settings import Settings
    from src.chain.rpc import SolanaRpcClient
    from src.launcher.jito import JitoBundleClient
    from src.launcher.jupiter import JupiterSwapClient
    from src.launcher.metadata import MetadataClient
    from src.launcher.storage import KeyStore
    from src.launcher.volume_bot import ProcessLauncher


def sol_to_lamports(sol: float) -> int:
    return int(round(sol * LAMPORTS_PER_SOL))


@dataclass(frozen=True)
class LaunchConfig:
    """Amounts in lamports, delays in seconds."""

    wallet_count: int = 6
    swap_amount_lamports: int = 10_000_000
    margin_min_lamports: int = 10_000_000
    margin_max_lamports: int = 14_000_000
    distribution_overhead_lamports: int = 50_000_000
    creator_buy_lamports: int = 10_000_000
    tip_lamports: int = 1_000_000
    bundle_timeout_sec: float = 60.0
    simulate_bundle: bool = True
    token_name: str = ""
    token_symbol: str = ""
    token_description: str = ""
    token_decimals: int = 6
    token_image_path: str = ""
    token_create_on: str = "https://bonk.fun"
    twitter: str = ""
    telegram: str = ""
    website: str = ""
    vanity_suffix: str | None = None
    vanity_max_attempts: int = 5_000_000
    wallet_stagger_sec: float = 0.05
    sell_settle_sec: float = 1.0
    creator_sell_delay_sec: float = 10.0
    volume_bot_enabled: bool = True
    vol_bot_timeout_sec: float = 600.0

    @classmethod
    def from_settings(cls, s: Settings) -> LaunchConfig:
        return cls(
            wallet_count=s.distribution_wallet_num,
            swap_amount_lamports=sol_to_lamports(s.swap_amount),
            margin_min_lamports=sol_to_lamports(s.margin_min),
            margin_max_lamports=sol_to_lamports(s.margin_max),
            distribution_overhead_lamports=sol_to_lamports(s.distribution_overhead_sol),
            creator_buy_lamports=sol_to_lamports(s.buyer_amount),
            tip_lamports=sol_to_lamports(s.jito_fee),
            bundle_timeout_sec=float(s.bundle_timeout_sec),
            simulate_bundle=s.simulate_bundle,
            token_name=s.token_name,
            token_symbol=s.token_symbol,
            token_description=s.description,
            token_decimals=s.token_decimals,
            token_image_path=s.token_image_path,
            token_create_on=s.token_create_on,
            twitter=s.twitter,
            telegram=s.telegram,
            website=s.website,
            vanity_suffix=s.vanity_suffix if s.vanity_mode else None,
            vanity_max_attempts=s.vanity_max_attempts,
            wallet_stagger_sec=s.wallet_stagger_ms / 1000,
            sell_settle_sec=s.sell_settle_sec,
            creator_sell_delay_sec=s.creator_sell_delay_sec,
            volume_bot_enabled=s.volume_bot_enabled,
            vol_bot_timeout_sec=float(s.vol_bot_timeout_sec),
        )


@dataclass
class LaunchContext:
    rpc: SolanaRpcClient
    treasury: Keypair
    creator: Keypair
    keystore: KeyStore
    config: LaunchConfig = field(default_factory=LaunchConfig)
    jito: JitoBundleClient | None = None
    jupiter: JupiterSwapClient | None = None
    metadata: MetadataClient | None = None
    volume_bot: ProcessLauncher | None = None
    rng: random.Random = field(default_factory=random.Random)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __repr__(self) -> str:
        return (
            f"LaunchContext(treasury={self.treasury.pubkey()}, "
            f"creator={self.creator.pubkey()}, wallets={self.config.wallet_count})"
        )
