"""Tests for MetadataClient — image + metadata upload, failure mapping."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.launcher.errors import MetadataUploadError
from src.launcher.metadata import MetadataClient


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def client() -> MetadataClient:
    c = MetadataClient()
    c._http = AsyncMock(spec=httpx.AsyncClient)
    return c


@pytest.fixture
def image(tmp_path: Path) -> Path:
    path = tmp_path / "token.png"
    path.write_bytes(b"\x89PNG fake")
    return path


def _text(body: str, status: int = 200) -> MagicMock:
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = status
    resp.text = body
    return resp


# ── Upload ─────────────────────────────────────────────────────────────


class TestMetadataUpload:
    """Image and metadata upload, failure mapping."""

    async def test_full_flow_returns_metadata_uri(self, client: MetadataClient, image: Path):
        client._http.post = AsyncMock(
            side_effect=[_text("https://ipfs.io/ipfs/img\n"), _text("https://ipfs.io/ipfs/meta")]
        )

        uri = await client.create_token_metadata(
            name="Bonk Cat",
            symbol="BCAT",
            description="cat",
            image_path=image,
            twitter="https://x.com/bonkcat",
        )

        assert uri == "https://ipfs.io/ipfs/meta"
        meta = client._http.post.await_args_list[1].kwargs["json"]
        assert meta["image"] == "https://ipfs.io/ipfs/img"
        assert meta["twitter"] == "https://x.com/bonkcat"
        assert "telegram" not in meta

    async def test_missing_image(self, client: MetadataClient, tmp_path: Path):
        with pytest.raises(MetadataUploadError, match="Cannot read token image"):
            await client.upload_image(tmp_path / "nope.png")

    async def test_http_error_status(self, client: MetadataClient, image: Path):
        client._http.post = AsyncMock(return_value=_text("", status=502))
        with pytest.raises(MetadataUploadError, match="HTTP 502"):
            await client.upload_image(image)

    async def test_empty_uri(self, client: MetadataClient):
        client._http.post = AsyncMock(return_value=_text("   "))
        with pytest.raises(MetadataUploadError, match="empty URI"):
            await client.upload_metadata({"name": "x"})

    async def test_transport_error(self, client: MetadataClient):
        client._http.post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(MetadataUploadError):
            await client.upload_metadata({"name": "x"})
