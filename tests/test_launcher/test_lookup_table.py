"""Tests for the lookup table builder — class order, dedup, chunking, retries."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from solders.keypair import Keypair  # type: ignore[import-untyped]

from src.chain.constants import WSOL_MINT
from src.chain.instructions import get_associated_token_address
from src.chain.launchpad import LaunchpadAccounts
from src.launcher.context import LaunchContext
from src.launcher.errors import RegistryExtensionFailed
from src.launcher.lookup_table import (
    LUT_RETRY_POLICY,
    AddressClass,
    build_lookup_table,
    chunk_addresses,
    collect_address_classes,
    create_lookup_table,
    extend_lookup_table,
)
from src.launcher.storage import LUT_FILE


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def launchpad() -> LaunchpadAccounts:
    return LaunchpadAccounts.derive(Keypair().pubkey())


# ── Address classes ────────────────────────────────────────────────────


class TestAddressClasses:
    """Address classes in extension order, without duplicates."""

    def test_four_classes_in_order(self, launchpad: LaunchpadAccounts):
        wallets = [Keypair().pubkey() for _ in range(10)]
        classes = collect_address_classes(wallets, launchpad, payers=[Keypair().pubkey()])

        assert [c.name for c in classes] == ["wallets", "token ATAs", "WSOL ATAs", "static"]
        assert classes[0].addresses == wallets
        assert classes[1].addresses[0] == get_associated_token_address(wallets[0], launchpad.mint)
        assert classes[2].addresses[0] == get_associated_token_address(wallets[0], WSOL_MINT)
        assert launchpad.pool in classes[3].addresses

    def test_no_address_registered_twice(self, launchpad: LaunchpadAccounts):
        wallets = [Keypair().pubkey() for _ in range(5)]
        # payer doubles as a buyer, duplicate wallet in the input too
        classes = collect_address_classes(
            wallets + [wallets[0]], launchpad, payers=[wallets[1]]
        )
        flat = [pk for c in classes for pk in c.addresses]

        assert len(flat) == len(set(flat))
        assert wallets[1] not in classes[3].addresses

    def test_chunking(self):
        addrs = [Keypair().pubkey() for _ in range(65)]
        chunks = chunk_addresses(addrs)
        assert [len(c) for c in chunks] == [30, 30, 5]
        assert [pk for c in chunks for pk in c] == addrs

    def test_chunk_size_validated(self):
        with pytest.raises(ValueError):
            chunk_addresses([], size=0)


# ── Create / extend ────────────────────────────────────────────────────


class TestCreate:
    """Table creation under the bounded retry policy."""

    async def test_create_waits_for_activation(self, ctx: LaunchContext, sleep: AsyncMock):
        table = await create_lookup_table(ctx)

        assert table is not None
        sleep.assert_awaited_with(15.0)

    async def test_create_gives_up_after_policy(self, ctx: LaunchContext, rpc: AsyncMock):
        rpc.confirm_transaction.return_value = False

        with pytest.raises(RegistryExtensionFailed) as exc:
            await create_lookup_table(ctx)

        assert exc.value.step == "create"
        assert exc.value.attempts == LUT_RETRY_POLICY.max_attempts == 6


class TestExtend:
    """Chunked extends and retry exhaustion."""

    async def test_six_failures_abort(self, ctx: LaunchContext, rpc: AsyncMock):
        rpc.confirm_transaction.return_value = False

        classes = [AddressClass("wallets", [Keypair().pubkey() for _ in range(3)])]
        with pytest.raises(RegistryExtensionFailed) as exc:
            await extend_lookup_table(ctx, Keypair().pubkey(), classes)

        assert exc.value.attempts == 6
        assert rpc.send_transaction.await_count == 6

    async def test_one_extend_per_chunk(self, ctx: LaunchContext, rpc: AsyncMock):
        classes = [
            AddressClass("wallets", [Keypair().pubkey() for _ in range(31)]),
            AddressClass("empty", []),
            AddressClass("static", [Keypair().pubkey() for _ in range(4)]),
        ]
        added = await extend_lookup_table(ctx, Keypair().pubkey(), classes)

        assert added == 35
        assert rpc.send_transaction.await_count == 3

    async def test_transient_failure_recovers(self, ctx: LaunchContext, rpc: AsyncMock):
        rpc.confirm_transaction.side_effect = [False, True]
        classes = [AddressClass("wallets", [Keypair().pubkey()])]

        assert await extend_lookup_table(ctx, Keypair().pubkey(), classes) == 1
        assert rpc.send_transaction.await_count == 2


class TestBuild:
    """Create, persist and extend in one pass."""

    async def test_build_persists_table(
        self, ctx: LaunchContext, launchpad: LaunchpadAccounts
    ):
        wallets = [Keypair() for _ in range(10)]
        table = await build_lookup_table(ctx, wallets, launchpad)

        assert ctx.keystore.read(LUT_FILE) == [str(table)]
