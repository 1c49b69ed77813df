"""Tests for LaunchConfig built from settings."""

from __future__ import annotations

from config.settings import Settings
from src.launcher.context import LaunchConfig, sol_to_lamports


class TestLaunchConfig:
    """LaunchConfig built from settings, SOL converted to lamports."""

    def test_sol_to_lamports_rounds(self):
        assert sol_to_lamports(0.01) == 10_000_000
        assert sol_to_lamports(0.001) == 1_000_000

    def test_from_settings(self):
        s = Settings(
            _env_file=None,
            distribution_wallet_num=7,
            swap_amount=0.02,
            margin_min=0.001,
            margin_max=0.005,
            jito_fee=0.002,
            wallet_stagger_ms=100,
            vanity_mode=True,
            vanity_suffix="bonk",
        )
        cfg = LaunchConfig.from_settings(s)

        assert cfg.wallet_count == 7
        assert cfg.swap_amount_lamports == 20_000_000
        assert cfg.margin_max_lamports == 5_000_000
        assert cfg.tip_lamports == 2_000_000
        assert cfg.wallet_stagger_sec == 0.1
        assert cfg.vanity_suffix == "bonk"

    def test_default_margin_covers_two_token_account_rents(self):
        cfg = LaunchConfig.from_settings(Settings(_env_file=None))
        assert cfg.margin_min_lamports > 2 * 2_039_280
        assert cfg.wallet_count == 6

    def test_vanity_off_means_no_suffix(self):
        cfg = LaunchConfig.from_settings(Settings(_env_file=None, vanity_mode=False))
        assert cfg.vanity_suffix is None

    def test_block_engine_urls_split(self):
        s = Settings(_env_file=None, jito_block_engine_urls="https://a, https://b,")
        assert s.block_engine_urls == ["https://a", "https://b"]
