"""
neuralhash.storage — Content-addressed storage backends for credential payloads.

Backends: MemoryContentStore, PinataContentStore (IPFS pinning + gateways)

Fetching is a byte-faithful replay of what was pinned; integrity checks rely
on it. A failed or unparsable fetch raises FetchFailed, never a tamper
verdict.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import httpx

from neuralhash.errors import ConfigError, FetchFailed, StorageError

logger = logging.getLogger(__name__)

PINATA_API_URL = "https://api.pinata.cloud"
DEFAULT_GATEWAYS = (
    "https://gateway.pinata.cloud",
    "https://ipfs.io",
)


# ─── Abstract store ────────────────────────────────────────────────

class ContentStore(ABC):
    """Pin payloads, get content addresses back, fetch by address."""

    @abstractmethod
    async def pin_json(self, payload: dict) -> str: ...

    @abstractmethod
    async def pin_file(self, name: str, content: bytes,
                       content_type: str = "application/octet-stream") -> str: ...

    @abstractmethod
    async def fetch_bytes(self, cid: str, fallback: bool = False) -> bytes: ...

    async def fetch_json(self, cid: str, fallback: bool = False) -> Any:
        """Fetch and parse a JSON payload. Raises FetchFailed."""
        raw = await self.fetch_bytes(cid, fallback=fallback)
        try:
            return json.loads(raw)
        except ValueError as e:
            raise FetchFailed(cid, f"payload is not valid JSON: {e}") from e


# ─── Memory store ──────────────────────────────────────────────────

class MemoryContentStore(ContentStore):
    """In-memory blob store keyed by a sha256 content address (testing)."""

    def __init__(self):
        self._blobs: dict[str, bytes] = {}
        self.fetch_count = 0

    @staticmethod
    def _address(content: bytes) -> str:
        return "mem-" + hashlib.sha256(content).hexdigest()

    async def pin_json(self, payload: dict) -> str:
        content = json.dumps(payload).encode("utf-8")
        cid = self._address(content)
        self._blobs[cid] = content
        return cid

    async def pin_file(self, name: str, content: bytes,
                       content_type: str = "application/octet-stream") -> str:
        cid = self._address(content)
        self._blobs[cid] = bytes(content)
        return cid

    async def fetch_bytes(self, cid: str, fallback: bool = False) -> bytes:
        self.fetch_count += 1
        try:
            return self._blobs[cid]
        except KeyError:
            raise FetchFailed(cid, "content not found", status=404) from None

    def overwrite(self, cid: str, content: bytes) -> None:
        """Serve different bytes under an existing address (simulates a bad gateway)."""
        self._blobs[cid] = content

    def __contains__(self, cid: str) -> bool:
        return cid in self._blobs

    def __len__(self):
        return len(self._blobs)


# ─── Pinata / IPFS ─────────────────────────────────────────────────

class PinataContentStore(ContentStore):
    """Pins through the Pinata API and reads back through IPFS gateways."""

    def __init__(self, jwt: str = "", api_key: str = "", api_secret: str = "",
                 gateways: Sequence[str] = DEFAULT_GATEWAYS,
                 api_url: str = PINATA_API_URL, timeout: float = 30.0):
        self.jwt = jwt
        self.api_key = api_key
        self.api_secret = api_secret
        self.gateways = [g.rstrip("/") for g in gateways] or list(DEFAULT_GATEWAYS)
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "PinataContentStore":
        return cls(
            jwt=settings.pinata_jwt,
            api_key=settings.pinata_api_key,
            api_secret=settings.pinata_secret_api_key,
            gateways=settings.ipfs_gateways,
            api_url=settings.pinata_api_url,
        )

    def _auth_headers(self) -> dict[str, str]:
        if self.jwt:
            return {"Authorization": f"Bearer {self.jwt}"}
        if self.api_key and self.api_secret:
            return {
                "pinata_api_key": self.api_key,
                "pinata_secret_api_key": self.api_secret,
            }
        raise ConfigError(
            "Pinata auth is missing. Set PINATA_JWT or PINATA_API_KEY + PINATA_SECRET_API_KEY."
        )

    async def _pin(self, path: str, what: str, **kwargs) -> str:
        headers = self._auth_headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{self.api_url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Pinata %s upload failed: %s", what, e)
            raise StorageError(502, f"Failed to upload {what} to IPFS: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {}

        if resp.status_code >= 400:
            if resp.status_code == 401:
                message = "Pinata unauthorized (401). Verify your PINATA credentials."
            else:
                message = f"Failed to upload {what} to IPFS."
            raise StorageError(resp.status_code, message, payload if isinstance(payload, dict) else {})

        cid = payload.get("IpfsHash") if isinstance(payload, dict) else None
        if not cid:
            raise StorageError(502, "Pinata response did not include IpfsHash", payload)
        logger.info("Pinned %s to IPFS: %s", what, cid)
        return cid

    async def pin_json(self, payload: dict) -> str:
        return await self._pin("/pinning/pinJSONToIPFS", "JSON", json=payload)

    async def pin_file(self, name: str, content: bytes,
                       content_type: str = "application/octet-stream") -> str:
        files = {"file": (name, content, content_type)}
        return await self._pin("/pinning/pinFileToIPFS", "file", files=files)

    def gateway_url(self, cid: str, gateway: Optional[str] = None) -> str:
        return f"{gateway or self.gateways[0]}/ipfs/{cid}"

    async def fetch_bytes(self, cid: str, fallback: bool = False) -> bytes:
        gateways = self.gateways if fallback else self.gateways[:1]
        last_error = "no gateway configured"
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            for gateway in gateways:
                url = self.gateway_url(cid, gateway)
                try:
                    resp = await client.get(url, headers={"Cache-Control": "no-store"})
                except httpx.HTTPError as e:
                    logger.warning("IPFS fetch failed for %s: %s", url, e)
                    last_error = str(e)
                    continue
                if resp.status_code != 200:
                    logger.warning("IPFS gateway %s returned %d", url, resp.status_code)
                    last_error = f"gateway returned {resp.status_code}"
                    continue
                return resp.content
        raise FetchFailed(cid, f"Failed to fetch IPFS document: {last_error}")
