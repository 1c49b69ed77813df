"""Tests for SolanaRpcClient — JSON-RPC transport, parsing, error mapping.

All HTTP calls are mocked via httpx.AsyncClient patching.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from solders.keypair import Keypair  # type: ignore[import-untyped]

from src.chain.constants import LOOKUP_TABLE_META_SIZE, WSOL_MINT
from src.chain.rpc import (
    AccountNotFoundError,
    RpcError,
    SolanaRpcClient,
    parse_lookup_table,
)


# ── Fixtures ───────────────────────────────────────────────────────────


RPC_URL = "https://api.mainnet-beta.solana.com"


@pytest.fixture
def client() -> SolanaRpcClient:
    return SolanaRpcClient(RPC_URL, sleep=AsyncMock())


def _response(payload: dict | None = None, status: int = 200) -> MagicMock:
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status
    resp.json.return_value = payload or {}
    return resp


def _result(value) -> MagicMock:
    return _response({"jsonrpc": "2.0", "id": 1, "result": value})


def _error(message: str) -> MagicMock:
    return _response({"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": message}})


def _mock_post(client: SolanaRpcClient, *responses) -> AsyncMock:
    client._http = AsyncMock(spec=httpx.AsyncClient)
    client._http.post = AsyncMock(side_effect=list(responses))
    return client._http.post


# ── Init ───────────────────────────────────────────────────────────────


class TestInit:
    """Client construction."""

    def test_empty_url_raises(self):
        with pytest.raises(ValueError, match="RPC URL is empty"):
            SolanaRpcClient("")

    def test_repr_shows_url(self, client: SolanaRpcClient):
        assert RPC_URL in repr(client)


# ── Transport ──────────────────────────────────────────────────────────


class TestTransport:
    """Retries, error mapping and body parsing."""

    async def test_balance_in_lamports(self, client: SolanaRpcClient):
        post = _mock_post(client, _result({"value": 5_000_000_000}))
        assert await client.get_balance(Keypair().pubkey()) == 5_000_000_000
        assert post.await_args.kwargs["json"]["method"] == "getBalance"

    async def test_5xx_is_retried(self, client: SolanaRpcClient):
        post = _mock_post(client, _response(status=503), _result(42))
        with patch("src.chain.rpc.asyncio.sleep", new=AsyncMock()):
            assert await client.get_slot() == 42
        assert post.await_count == 2

    async def test_timeout_exhausts_into_rpc_error(self, client: SolanaRpcClient):
        _mock_post(client, *[httpx.TimeoutException("timeout")] * 3)
        with patch("src.chain.rpc.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(RpcError, match="failed after 3 attempts"):
                await client.get_slot()

    async def test_rpc_error_raised(self, client: SolanaRpcClient):
        _mock_post(client, _error("Blockhash not found"))
        with pytest.raises(RpcError) as exc:
            await client.get_slot()
        assert not isinstance(exc.value, AccountNotFoundError)

    async def test_not_found_mapped(self, client: SolanaRpcClient):
        _mock_post(client, _error("Invalid param: could not find account"))
        with pytest.raises(AccountNotFoundError):
            await client.get_token_account_balance(Keypair().pubkey())

    async def test_non_json_body_is_rpc_error(self, client: SolanaRpcClient):
        resp = _response()
        resp.json.side_effect = ValueError("Expecting value")
        _mock_post(client, resp)
        with pytest.raises(RpcError, match="non-JSON"):
            await client.get_slot()


# ── Token accounts ─────────────────────────────────────────────────────


class TestTokenAccounts:
    """Token account enumeration and balance parsing."""

    async def test_parses_jsonparsed_accounts(self, client: SolanaRpcClient):
        account = Keypair().pubkey()
        _mock_post(
            client,
            _result(
                {
                    "value": [
                        {
                            "pubkey": str(account),
                            "account": {
                                "data": {
                                    "parsed": {
                                        "info": {
                                            "mint": str(WSOL_MINT),
                                            "tokenAmount": {"amount": "1500", "decimals": 9},
                                        }
                                    }
                                }
                            },
                        },
                        {"pubkey": "garbage", "account": {}},
                    ]
                }
            ),
        )
        accounts = await client.get_token_accounts_by_owner(Keypair().pubkey())

        assert len(accounts) == 1
        assert accounts[0].pubkey == account
        assert accounts[0].mint == WSOL_MINT
        assert accounts[0].amount == 1500

    async def test_balance_zero(self, client: SolanaRpcClient):
        _mock_post(client, _result({"value": {"amount": "0", "decimals": 6}}))
        balance = await client.get_token_account_balance(Keypair().pubkey())
        assert balance.is_zero
        assert balance.decimals == 6

    async def test_balance_missing_value_is_not_found(self, client: SolanaRpcClient):
        _mock_post(client, _result({"value": None}))
        with pytest.raises(AccountNotFoundError):
            await client.get_token_account_balance(Keypair().pubkey())


# ── Lookup tables ──────────────────────────────────────────────────────


class TestLookupTable:
    """Lookup table fetch and decode."""

    def test_parse_header_and_addresses(self):
        addrs = [Keypair().pubkey() for _ in range(3)]
        raw = bytes(LOOKUP_TABLE_META_SIZE) + b"".join(bytes(a) for a in addrs)
        key = Keypair().pubkey()

        table = parse_lookup_table(key, raw)

        assert table.key == key
        assert list(table.addresses) == addrs

    def test_short_data_is_none(self):
        assert parse_lookup_table(Keypair().pubkey(), b"\x00" * 10) is None

    async def test_missing_account_is_none(self, client: SolanaRpcClient):
        _mock_post(client, _result({"value": None}))
        assert await client.get_lookup_table(Keypair().pubkey()) is None


# ── Confirmation ───────────────────────────────────────────────────────


class TestConfirm:
    """Status polling through the injected sleep."""

    async def test_confirmed(self, client: SolanaRpcClient):
        _mock_post(client, _result({"value": [{"confirmationStatus": "confirmed", "err": None}]}))
        assert await client.confirm_transaction("sig") is True
        client._sleep.assert_not_awaited()

    async def test_onchain_error(self, client: SolanaRpcClient):
        _mock_post(
            client,
            _result({"value": [{"confirmationStatus": "confirmed", "err": {"InstructionError": []}}]}),
        )
        assert await client.confirm_transaction("sig") is False

    async def test_timeout(self, client: SolanaRpcClient):
        client._http = AsyncMock(spec=httpx.AsyncClient)
        client._http.post = AsyncMock(return_value=_result({"value": [None]}))
        assert await client.confirm_transaction("sig", timeout=6) is False
        assert client._http.post.await_count == 3
        assert client._sleep.await_count == 3

    async def test_signature_status_none_when_unknown(self, client: SolanaRpcClient):
        _mock_post(client, _result({"value": [None]}))
        assert await client.get_signature_status("sig") is None
