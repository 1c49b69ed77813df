"""Program ids, sysvars and network limits used across the launcher."""

from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.system_program import ID as SYSTEM_PROGRAM_ID  # type: ignore[import-untyped]
from solders.sysvar import RENT as SYSVAR_RENT_PUBKEY  # type: ignore[import-untyped]

LAMPORTS_PER_SOL = 1_000_000_000

# SPL Token
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)
WSOL_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")
TOKEN_ACCOUNT_SIZE = 165  # bytes, for rent exemption

COMPUTE_BUDGET_PROGRAM_ID = Pubkey.from_string("ComputeBudget111111111111111111111111111111")
ADDRESS_LOOKUP_TABLE_PROGRAM_ID = Pubkey.from_string("AddressLookupTab1e1111111111111111111111111")
METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

# Raydium LaunchLab (bonk.fun launchpad)
LAUNCHPAD_PROGRAM_ID = Pubkey.from_string("LanMV9sAd7wArD4vJFi2qDdfnVhFxYSUg6eADduJ3uj")
BONK_PLATFORM_ID = Pubkey.from_string("4Bu96XjU84XjPDSpveTVf6LYGCkfW5FK7SNkREWcEfV4")

# Network limits
PACKET_DATA_SIZE = 1232  # max serialized transaction bytes
LOOKUP_TABLE_MAX_ADDRESSES_PER_EXTEND = 30  # fits one extend in a single packet
LOOKUP_TABLE_META_SIZE = 56  # header before the 32-byte address list
MAX_BUNDLE_TRANSACTIONS = 5

# 8 static Jito tip accounts — these never change
JITO_TIP_ACCOUNTS: tuple[str, ...] = (
    "Cw8CFyM9FkoMi7K7Crf6HNQqf4uEMzpKw6QNghXLvLkY",
    "DttWaMuVvTiduZRnguLF7jNxTgiMBZ1hyAumKUiL2KRL",
    "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5",
    "3AVi9Tg9Uo68tJfuvoKvqKNWKkC5wPdSSdeBnizKZ6jT",
    "HFqU5x63VTqvQss8hp11i4wVV8bD44PvwucfZ2bU7gRe",
    "ADaUMid9yfUytqMBgopwjb2DTLSokTSzL1zt6iGPaS49",
    "ADuUkR4vqLUMWXxW9gh6D6L8pMSawimctcNZ5pGwDcEt",
    "DfXygSm4jCyNCybVYYK6DwvWqjKee8pbDmJGcLWNDXjh",
)

