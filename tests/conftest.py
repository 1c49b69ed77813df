"""Shared test fixtures.

No test touches the network: the RPC client is an AsyncMock with the real
client's spec, sleeps are recorded instead of awaited, and the RNG is seeded.
"""

from __future__ import annotations

import random
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]

from src.chain.rpc import Blockhash, SolanaRpcClient
from src.launcher.context import LaunchConfig, LaunchContext
from src.launcher.storage import KeyStore


@pytest.fixture
def rpc() -> AsyncMock:
    """RPC double: 100 SOL everywhere, fresh blockhash, every TX confirms."""
    mock = AsyncMock(spec=SolanaRpcClient)
    mock.get_balance.return_value = 100_000_000_000
    mock.get_slot.return_value = 250_000_000
    mock.get_latest_blockhash.return_value = Blockhash(
        blockhash=Hash.default(), last_valid_block_height=1_000
    )
    mock.get_minimum_balance_for_rent_exemption.return_value = 2_039_280
    mock.send_transaction.return_value = "sig"
    mock.confirm_transaction.return_value = True
    mock.get_token_accounts_by_owner.return_value = []
    return mock


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def keystore(tmp_path: Path) -> KeyStore:
    return KeyStore(tmp_path / "data")


@pytest.fixture
def ctx(rpc: AsyncMock, sleep: AsyncMock, keystore: KeyStore) -> LaunchContext:
    return LaunchContext(
        rpc=rpc,
        treasury=Keypair(),
        creator=Keypair(),
        keystore=keystore,
        config=LaunchConfig(token_name="Bonk Cat", token_symbol="BCAT"),
        rng=random.Random(42),
        sleep=sleep,
    )
