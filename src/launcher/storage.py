"""JSON-file persistence for generated keys, mint and lookup table.

Layout under ``data_dir`` (every file is a flat JSON list of strings):
  data.json      — intermediary + buyer secret keys (base58), appended per launch
  mint.json      — mint secret key
  pub_mint.json  — mint addresses, appended; last entry is the current launch
  lut.json       — lookup table address
  bundle.json    — [mint, creation-tx signature] of the last submitted bundle

These files are the only record that lets `gather` recover funds later.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]

from src.launcher.accounts import encode_keypair, load_keypair

WALLETS_FILE = "data.json"
MINT_FILE = "mint.json"
PUB_MINT_FILE = "pub_mint.json"
LUT_FILE = "lut.json"
BUNDLE_FILE = "bundle.json"


class KeyStore:
    def __init__(self, data_dir: str | Path) -> None:
        self._dir = Path(data_dir)

    def __repr__(self) -> str:
        return f"KeyStore(dir={self._dir})"

    def _path(self, name: str) -> Path:
        return self._dir / name

    def read(self, name: str) -> list[str]:
        path = self._path(name)
        if not path.exists():
            return []
        data = json.loads(path.read_text(encoding="utf-8") or "[]")
        if not isinstance(data, list):
            raise ValueError(f"{path} does not hold a JSON list")
        return [str(item) for item in data]

    def write(self, name: str, values: list[str]) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        self._path(name).write_text(json.dumps(values, indent=2), encoding="utf-8")

    def append(self, name: str, values: list[str]) -> None:
        self.write(name, self.read(name) + values)

    # ─── Typed helpers ───────────────────────────────────────────────

    def save_wallets(self, keypairs: list[Keypair]) -> None:
        self.append(WALLETS_FILE, [encode_keypair(kp) for kp in keypairs])
        logger.info(f"[KEYS] Saved {len(keypairs)} wallet keys to {self._path(WALLETS_FILE)}")

    def load_wallets(self) -> list[Keypair]:
        wallets: list[Keypair] = []
        for i, encoded in enumerate(self.read(WALLETS_FILE)):
            try:
                wallets.append(load_keypair(encoded))
            except ValueError as e:
                logger.warning(f"[KEYS] Skipping invalid key #{i} in {WALLETS_FILE}: {e}")
        return wallets

    def save_mint(self, mint: Keypair) -> None:
        self.write(MINT_FILE, [encode_keypair(mint)])
        self.append(PUB_MINT_FILE, [str(mint.pubkey())])

    def latest_mint_address(self) -> str | None:
        addresses = self.read(PUB_MINT_FILE)
        return addresses[-1] if addresses else None

    def save_lookup_table(self, address: str) -> None:
        self.write(LUT_FILE, [address])

    def save_bundle_signature(self, mint: str, signature: str) -> None:
        self.write(BUNDLE_FILE, [mint, signature])

    def last_bundle_signature(self, mint: str) -> str | None:
        """Creation signature of the last bundle submitted for ``mint``."""
        values = self.read(BUNDLE_FILE)
        if len(values) == 2 and values[0] == mint:
            return values[1]
        return None
