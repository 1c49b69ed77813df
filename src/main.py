"""Entry point for the bonk.fun launch bundler.

Commands:
  launch       — full bundled launch, then creator sell + volume bot
  gather       — sweep every persisted wallet back into the treasury
  sell-creator — liquidate the creator wallet in place
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from loguru import logger

from config.settings import Settings, settings
from src.chain.rpc import SolanaRpcClient
from src.launcher.accounts import load_keypair
from src.launcher.context import LaunchConfig, LaunchContext
from src.launcher.errors import LaunchError
from src.launcher.jito import JitoBundleClient
from src.launcher.jupiter import JupiterSwapClient
from src.launcher.metadata import MetadataClient
from src.launcher.orchestrator import VolumeBotSettings, run_gather, run_launch
from src.launcher.storage import KeyStore
from src.launcher.sweep import sweep_wallets
from src.launcher.volume_bot import ProcessLauncher
from src.utils.logger import setup_logger


def build_context(s: Settings) -> LaunchContext:
    """Wire every client from settings. Keys are loaded once, here."""
    rpc = SolanaRpcClient(s.rpc_endpoint, timeout=s.rpc_timeout_sec)
    return LaunchContext(
        rpc=rpc,
        treasury=load_keypair(s.private_key),
        creator=load_keypair(s.creation_key),
        keystore=KeyStore(s.data_dir),
        config=LaunchConfig.from_settings(s),
        jito=JitoBundleClient(s.block_engine_urls, rpc),
        jupiter=JupiterSwapClient(
            api_url=s.jupiter_api_url,
            api_key=s.jupiter_api_key,
            max_rps=s.jupiter_max_rps,
            default_slippage_bps=s.slippage_bps,
            priority_fee_lamports=s.priority_fee_lamports,
        ),
        metadata=MetadataClient(),
        volume_bot=ProcessLauncher(),
    )


def volume_bot_settings(s: Settings) -> VolumeBotSettings:
    return VolumeBotSettings(
        workdir=Path(s.volume_bot_dir),
        command=s.volume_bot_command,
        gather_command=s.volume_bot_gather_command,
        env_key=s.volume_bot_env_key,
    )


async def close_context(ctx: LaunchContext) -> None:
    for client in (ctx.jito, ctx.jupiter, ctx.metadata):
        if client is not None:
            await client.close()
    await ctx.rpc.close()


async def run_command(command: str, ctx: LaunchContext, s: Settings) -> None:
    bot = volume_bot_settings(s)

    if command == "launch":
        result = await run_launch(ctx, volume_bot=bot)
        logger.info(
            f"Launch done: mint={result.mint}, {len(result.buyers)} buyers, "
            f"{result.batches} batches, lut={result.lookup_table}"
        )
        if result.volume_bot is not None and ctx.volume_bot is not None:
            await ctx.volume_bot.wait(result.volume_bot)

    elif command == "gather":
        extra = [load_keypair(s.buyer_wallet)] if s.buyer_wallet else []
        results, handle = await run_gather(ctx, extra_wallets=extra, volume_bot=bot)
        failed = [r.wallet for r in results if not r.ok]
        if failed:
            logger.warning(f"Gather finished with {len(failed)} failed wallets: {failed}")
        if handle is not None and ctx.volume_bot is not None:
            await ctx.volume_bot.wait(handle)

    elif command == "sell-creator":
        await sweep_wallets(ctx, [ctx.creator], destination=None)


async def main(command: str) -> int:
    setup_logger(
        level=settings.log_level,
        json_logs=settings.log_json,
        log_dir=settings.log_dir,
        secrets=(settings.private_key, settings.creation_key, settings.buyer_wallet),
    )
    logger.info(f"Starting bonk launch bundler: {command}")

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    ctx = build_context(settings)
    logger.info(f"Context: {ctx!r}")
    exit_code = 0
    command_task = asyncio.create_task(run_command(command, ctx, settings))

    try:
        done, pending = await asyncio.wait(
            [command_task, asyncio.create_task(shutdown_event.wait())],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if command_task in done:
            command_task.result()
        else:
            exit_code = 130
    except LaunchError as e:
        logger.error(f"{type(e).__name__}: {e}")
        exit_code = 1
    finally:
        await close_context(ctx)

    logger.info("Shutdown complete")
    return exit_code


def cli() -> None:
    parser = argparse.ArgumentParser(description="bonk.fun multi-wallet launch bundler")
    parser.add_argument(
        "command",
        choices=["launch", "gather", "sell-creator"],
        nargs="?",
        default="launch",
        help="What to run (default: launch)",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.command)))


if __name__ == "__main__":
    cli()
