"""bonk.fun metadata upload — image, then JSON metadata.

Both endpoints answer with a plain-text IPFS URI. Any failure raises
MetadataUploadError, which aborts token creation.
"""

from __future__ import annotations

from pathlib import Path

import httpx
from loguru import logger

from src.launcher.errors import MetadataUploadError

IMAGE_UPLOAD_URL = "https://storage.letsbonk.fun/upload/img"
METADATA_UPLOAD_URL = "https://storage.letsbonk.fun/upload/meta"
BONK_PLATFORM_LABEL = "platformId"


class MetadataClient:
    def __init__(
        self,
        *,
        image_url: str = IMAGE_UPLOAD_URL,
        metadata_url: str = METADATA_UPLOAD_URL,
        timeout: float = 30.0,
    ) -> None:
        self._image_url = image_url
        self._metadata_url = metadata_url
        self._http = httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def _uri_from(resp: httpx.Response, what: str) -> str:
        if resp.status_code != 200:
            raise MetadataUploadError(f"{what} upload HTTP {resp.status_code}")
        uri = resp.text.strip()
        if not uri:
            raise MetadataUploadError(f"{what} upload returned an empty URI")
        return uri

    async def upload_image(self, image_path: str | Path) -> str:
        path = Path(image_path)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise MetadataUploadError(f"Cannot read token image {path}: {e}") from e

        try:
            resp = await self._http.post(
                self._image_url, files={"image": (path.name, content, "image/png")}
            )
        except httpx.HTTPError as e:
            raise MetadataUploadError(f"Image upload failed: {e}") from e

        uri = self._uri_from(resp, "Image")
        logger.info(f"[META] Image uploaded: {uri}")
        return uri

    async def upload_metadata(self, metadata: dict[str, str]) -> str:
        try:
            resp = await self._http.post(self._metadata_url, json=metadata)
        except httpx.HTTPError as e:
            raise MetadataUploadError(f"Metadata upload failed: {e}") from e

        uri = self._uri_from(resp, "Metadata")
        logger.info(f"[META] Metadata uploaded: {uri}")
        return uri

    async def create_token_metadata(
        self,
        *,
        name: str,
        symbol: str,
        description: str,
        image_path: str | Path,
        created_on: str = "https://bonk.fun",
        twitter: str = "",
        telegram: str = "",
        website: str = "",
    ) -> str:
        """Upload image + metadata, return the metadata URI."""
        image_uri = await self.upload_image(image_path)
        metadata = {
            "name": name,
            "symbol": symbol,
            "description": description,
            "createdOn": created_on,
            "platformId": BONK_PLATFORM_LABEL,
            "image": image_uri,
        }
        for key, value in (("twitter", twitter), ("telegram", telegram), ("website", website)):
            if value:
                metadata[key] = value
        return await self.upload_metadata(metadata)

    async def close(self) -> None:
        await self._http.aclose()
