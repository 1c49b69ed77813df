"""Address lookup table builder — one fresh table per launch.

Extension order is fixed:
  1. buyer wallet addresses
  2. each wallet's ATA for the new mint
  3. each wallet's WSOL ATA
  4. static program / pool / vault / payer addresses

Each class is split into extends of at most 30 addresses. Every extend is
retried under the same bounded policy; when the policy is exhausted the whole
build aborts with RegistryExtensionFailed (the launch cannot continue without
the table). Between classes we sleep so each extension is confirmed before
the table is referenced. Addresses already registered in an earlier class are
never sent again.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.chain.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    COMPUTE_BUDGET_PROGRAM_ID,
    LOOKUP_TABLE_MAX_ADDRESSES_PER_EXTEND,
    SYSTEM_PROGRAM_ID,
    SYSVAR_RENT_PUBKEY,
    TOKEN_PROGRAM_ID,
    WSOL_MINT,
)
from src.chain.instructions import (
    compute_budget_instructions,
    create_lookup_table_instruction,
    extend_lookup_table_instruction,
    get_associated_token_address,
)
from src.chain.launchpad import LaunchpadAccounts
from src.launcher.context import LaunchContext
from src.launcher.errors import RegistryExtensionFailed
from src.launcher.executor import create_and_send_v0_tx
from src.utils.retry import RetryPolicy, attempt

LUT_CU_LIMIT = 50_000
LUT_CU_PRICE = 500_000  # micro-lamports

# 1 attempt + 5 retries
MAX_LUT_RETRIES = 5
LUT_RETRY_POLICY = RetryPolicy(max_attempts=MAX_LUT_RETRIES + 1, delays=(2.0,))

LUT_CREATE_WAIT_SEC = 15.0  # activation: table usable one slot after creation
LUT_EXTEND_WAIT_SEC = 10.0  # per-class confirmation window


@dataclass
class AddressClass:
    name: str
    addresses: list[Pubkey] = field(default_factory=list)


def chunk_addresses(
    addresses: list[Pubkey], size: int = LOOKUP_TABLE_MAX_ADDRESSES_PER_EXTEND
) -> list[list[Pubkey]]:
    if size < 1:
        raise ValueError("Chunk size must be >= 1")
    return [addresses[i : i + size] for i in range(0, len(addresses), size)]


def collect_address_classes(
    wallets: list[Pubkey],
    launchpad: LaunchpadAccounts,
    payers: list[Pubkey],
) -> list[AddressClass]:
    """Build the four ordered classes with cross-class de-duplication."""
    seen: set[Pubkey] = set()

    def unique(candidates: list[Pubkey]) -> list[Pubkey]:
        out: list[Pubkey] = []
        for pk in candidates:
            if pk not in seen:
                seen.add(pk)
                out.append(pk)
        return out

    static = [
        *payers,
        *(get_associated_token_address(p, WSOL_MINT) for p in payers),
        TOKEN_PROGRAM_ID,
        SYSTEM_PROGRAM_ID,
        SYSVAR_RENT_PUBKEY,
        ASSOCIATED_TOKEN_PROGRAM_ID,
        COMPUTE_BUDGET_PROGRAM_ID,
        WSOL_MINT,
        *launchpad.static_addresses(),
    ]

    return [
        AddressClass("wallets", unique(wallets)),
        AddressClass(
            "token ATAs",
            unique([get_associated_token_address(w, launchpad.mint) for w in wallets]),
        ),
        AddressClass(
            "WSOL ATAs",
            unique([get_associated_token_address(w, WSOL_MINT) for w in wallets]),
        ),
        AddressClass("static", unique(static)),
    ]


async def create_lookup_table(ctx: LaunchContext) -> Pubkey:
    """Create the table bound to a fresh slot. Raises RegistryExtensionFailed."""
    authority = ctx.treasury

    async def _create() -> Pubkey | None:
        slot = await ctx.rpc.get_slot()
        ix, table = create_lookup_table_instruction(authority.pubkey(), authority.pubkey(), slot)
        logger.info(f"[LUT] Creating lookup table {table} at slot {slot}")
        sig = await create_and_send_v0_tx(
            ctx.rpc,
            [*compute_budget_instructions(LUT_CU_LIMIT, LUT_CU_PRICE), ix],
            authority,
            label="LUT create",
        )
        return table if sig else None

    result = await attempt(_create, LUT_RETRY_POLICY, label="LUT create", sleep=ctx.sleep)
    if not result.success or result.value is None:
        raise RegistryExtensionFailed("create", result.attempts, result.error)

    logger.info(f"[LUT] Lookup table created: {result.value} — waiting {LUT_CREATE_WAIT_SEC:.0f}s")
    await ctx.sleep(LUT_CREATE_WAIT_SEC)
    return result.value


async def extend_lookup_table(
    ctx: LaunchContext,
    table: Pubkey,
    classes: list[AddressClass],
) -> int:
    """Register every class in order. Returns the number of addresses added."""
    authority = ctx.treasury
    total = 0

    for cls in classes:
        if not cls.addresses:
            logger.debug(f"[LUT] Nothing to add for class '{cls.name}'")
            continue

        for n, chunk in enumerate(chunk_addresses(cls.addresses), start=1):
            step = f"extend {cls.name} #{n}"

            async def _extend(chunk: list[Pubkey] = chunk, step: str = step) -> str | None:
                ix = extend_lookup_table_instruction(
                    table, authority.pubkey(), authority.pubkey(), chunk
                )
                return await create_and_send_v0_tx(
                    ctx.rpc,
                    [*compute_budget_instructions(LUT_CU_LIMIT, LUT_CU_PRICE), ix],
                    authority,
                    label=f"LUT {step}",
                )

            result = await attempt(_extend, LUT_RETRY_POLICY, label=f"LUT {step}", sleep=ctx.sleep)
            if not result.success:
                logger.error(f"[LUT] {step} failed after {result.attempts} attempts — aborting")
                raise RegistryExtensionFailed(step, result.attempts, result.error)
            total += len(chunk)

        logger.info(f"[LUT] Added {len(cls.addresses)} {cls.name} addresses")
        await ctx.sleep(LUT_EXTEND_WAIT_SEC)

    logger.info(f"[LUT] Lookup table extended: https://explorer.solana.com/address/{table}/entries")
    return total


async def build_lookup_table(
    ctx: LaunchContext,
    wallets: list[Keypair],
    launchpad: LaunchpadAccounts,
) -> Pubkey:
    """Create + extend the launch's table, persist its address, return it."""
    table = await create_lookup_table(ctx)
    ctx.keystore.save_lookup_table(str(table))

    classes = collect_address_classes(
        [w.pubkey() for w in wallets],
        launchpad,
        payers=[ctx.treasury.pubkey(), ctx.creator.pubkey()],
    )
    await extend_lookup_table(ctx, table, classes)
    return table
