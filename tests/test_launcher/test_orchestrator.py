"""Tests for the launch orchestrator — bundle order, resubmission guard, abort paths."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from solders.address_lookup_table_account import AddressLookupTableAccount  # type: ignore[import-untyped]
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]

from src.chain.instructions import transfer_sol
from src.launcher.composer import BuyBatch
from src.launcher.context import LaunchConfig, LaunchContext
from src.launcher.errors import BundleRejected, DistributionFailed, InsufficientFunds, LaunchError
from src.launcher.executor import build_v0_transaction
from src.launcher.jito import BundleResult, JitoBundleClient
from src.launcher.metadata import MetadataClient
from src.launcher.orchestrator import (
    VolumeBotSettings,
    order_bundle,
    run_gather,
    run_launch,
    submit_launch_bundle,
)
from src.launcher.sweep import WalletSweepResult
from src.launcher.volume_bot import ProcessLauncher


# ── Fixtures ───────────────────────────────────────────────────────────


def _tx():
    payer = Keypair()
    return build_v0_transaction(
        [transfer_sol(payer.pubkey(), Keypair().pubkey(), 1)], payer, Hash.default()
    )


def _batch(index: int) -> BuyBatch:
    return BuyBatch(index=index, wallets=[Keypair()], instructions=[], transaction=_tx())


@pytest.fixture
def jito(ctx: LaunchContext) -> AsyncMock:
    mock = AsyncMock(spec=JitoBundleClient)
    mock.has_landed.return_value = False
    mock.send_bundle.return_value = BundleResult(success=True, bundle_ids=["b1"])
    ctx.jito = mock
    return mock


@pytest.fixture
def metadata(ctx: LaunchContext) -> AsyncMock:
    mock = AsyncMock(spec=MetadataClient)
    mock.create_token_metadata.return_value = "https://ipfs.io/ipfs/meta"
    ctx.metadata = mock
    return mock


@pytest.fixture
def bot_settings(tmp_path: Path) -> VolumeBotSettings:
    return VolumeBotSettings(
        workdir=tmp_path, command="npx ts-node index.ts", gather_command="npx ts-node gather.ts"
    )


# ── Bundle order ───────────────────────────────────────────────────────


class TestOrderBundle:
    """Bundle ordering: creation, batches, creator buy."""

    def test_creation_first_creator_last(self):
        creation, creator = _tx(), _tx()
        b0, b1 = _batch(0), _batch(1)

        bundle = order_bundle(creation, [b1, b0], creator)

        assert bundle == [creation, b0.transaction, b1.transaction, creator]


# ── Submission guard ───────────────────────────────────────────────────


class TestSubmitLaunchBundle:
    """Resubmission guard, simulation and rejection context."""

    async def test_landed_bundle_not_resubmitted(self, ctx: LaunchContext, jito: AsyncMock):
        mint = Keypair().pubkey()
        ctx.keystore.save_bundle_signature(str(mint), "prev-sig")
        jito.has_landed.return_value = True

        result = await submit_launch_bundle(ctx, mint, [_tx()])

        assert result.already_landed
        jito.send_bundle.assert_not_awaited()

    async def test_signature_recorded_before_send(
        self, ctx: LaunchContext, jito: AsyncMock, rpc: AsyncMock
    ):
        mint = Keypair().pubkey()
        txs = [_tx(), _tx()]
        rpc.simulate_transaction.return_value = {"err": None, "unitsConsumed": 1000}

        await submit_launch_bundle(ctx, mint, txs)

        assert ctx.keystore.last_bundle_signature(str(mint)) == str(txs[0].signatures[0])
        assert rpc.simulate_transaction.await_count == 2
        jito.send_bundle.assert_awaited_once()

    async def test_rejected_bundle_raises_with_context(
        self, ctx: LaunchContext, jito: AsyncMock
    ):
        jito.send_bundle.return_value = BundleResult(
            success=False, bundle_ids=["b9"], error="not landed"
        )
        txs = [_tx()]

        with pytest.raises(BundleRejected) as exc:
            await submit_launch_bundle(ctx, Keypair().pubkey(), txs)

        assert exc.value.bundle_id == "b9"
        assert exc.value.creation_signature == str(txs[0].signatures[0])


# ── run_launch ─────────────────────────────────────────────────────────


class TestRunLaunch:
    """Full launch flow and its up-front aborts."""

    async def test_too_many_wallets_rejected_up_front(
        self, ctx: LaunchContext, metadata: AsyncMock, rpc: AsyncMock
    ):
        ctx.config = LaunchConfig(wallet_count=20)

        with pytest.raises(LaunchError, match="buy batches"):
            await run_launch(ctx)

        metadata.create_token_metadata.assert_not_awaited()
        rpc.send_transaction.assert_not_awaited()

    async def test_oversize_distribution_rejected_up_front(
        self, ctx: LaunchContext, metadata: AsyncMock, rpc: AsyncMock
    ):
        ctx.config = LaunchConfig(wallet_count=8)

        with pytest.raises(LaunchError, match="distribution TX"):
            await run_launch(ctx)

        metadata.create_token_metadata.assert_not_awaited()
        assert ctx.keystore.load_wallets() == []

    async def test_underfunded_treasury_aborts(
        self, ctx: LaunchContext, metadata: AsyncMock, rpc: AsyncMock
    ):
        rpc.get_balance.return_value = 1_000

        with pytest.raises(InsufficientFunds):
            await run_launch(ctx)

        rpc.send_transaction.assert_not_awaited()

    async def test_failed_distribution_aborts(
        self, ctx: LaunchContext, metadata: AsyncMock, jito: AsyncMock
    ):
        with patch("src.launcher.orchestrator.distribute_sol", new=AsyncMock(return_value=None)):
            with pytest.raises(DistributionFailed):
                await run_launch(ctx)

        jito.send_bundle.assert_not_awaited()

    async def test_happy_path(
        self,
        ctx: LaunchContext,
        metadata: AsyncMock,
        jito: AsyncMock,
        rpc: AsyncMock,
        bot_settings: VolumeBotSettings,
    ):
        buyers = [Keypair() for _ in range(10)]
        table = Keypair().pubkey()
        rpc.get_lookup_table.return_value = AddressLookupTableAccount(key=table, addresses=[])
        rpc.simulate_transaction.return_value = {"err": None}
        batches = [_batch(1), _batch(0)]
        creation, creator = _tx(), _tx()
        launcher = AsyncMock(spec=ProcessLauncher)
        launcher.launch.return_value = MagicMock(name="handle")
        ctx.volume_bot = launcher
        sweep = AsyncMock(return_value=[WalletSweepResult(wallet="creator")])

        with (
            patch("src.launcher.orchestrator.distribute_sol", new=AsyncMock(return_value=buyers)),
            patch("src.launcher.orchestrator.build_lookup_table", new=AsyncMock(return_value=table)),
            patch("src.launcher.orchestrator.compose_buy_batches", new=AsyncMock(return_value=batches)),
            patch(
                "src.launcher.orchestrator.build_creator_buy_transaction",
                new=AsyncMock(return_value=creator),
            ),
            patch("src.launcher.orchestrator.build_creation_transaction", return_value=creation),
            patch("src.launcher.orchestrator.sweep_wallets", new=sweep),
        ):
            result = await run_launch(ctx, volume_bot=bot_settings)

        sent = jito.send_bundle.await_args.args[0]
        assert sent == [creation, batches[1].transaction, batches[0].transaction, creator]
        assert result.lookup_table == str(table)
        assert result.batches == 2
        assert len(result.buyers) == 10
        assert ctx.keystore.latest_mint_address() == result.mint

        # creator sells in place after the delay
        sweep.assert_awaited_once_with(ctx, [ctx.creator], destination=None)
        ctx.sleep.assert_any_await(ctx.config.creator_sell_delay_sec)

        config = launcher.launch.await_args.args[0]
        assert config.mint == result.mint
        assert config.lifetime_sec == ctx.config.vol_bot_timeout_sec


# ── run_gather ─────────────────────────────────────────────────────────


class TestRunGather:
    """Gather sweep of persisted and extra wallets."""

    async def test_sweeps_persisted_and_extra_wallets(
        self, ctx: LaunchContext, bot_settings: VolumeBotSettings
    ):
        saved = [Keypair(), Keypair()]
        extra = Keypair()
        ctx.keystore.save_wallets(saved)
        launcher = AsyncMock(spec=ProcessLauncher)
        ctx.volume_bot = launcher
        sweep = AsyncMock(return_value=[])

        with patch("src.launcher.orchestrator.sweep_wallets", new=sweep):
            await run_gather(ctx, extra_wallets=[extra], volume_bot=bot_settings)

        wallets = sweep.await_args.args[1]
        assert [w.pubkey() for w in wallets] == [kp.pubkey() for kp in saved + [extra]]
        assert sweep.await_args.kwargs["destination"] is ctx.treasury
        assert launcher.launch.await_args.args[0].command == "npx ts-node gather.ts"
