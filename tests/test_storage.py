"""Tests for content-addressed storage backends (Pinata mocked with respx)."""

import json

import httpx
import pytest
import respx

from neuralhash.config import Settings
from neuralhash.errors import ConfigError, FetchFailed, StorageError
from neuralhash.storage import DEFAULT_GATEWAYS, PINATA_API_URL, PinataContentStore

CID = "bafkreiexamplecid"


# ── Memory store ──

class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_pin_and_fetch_json(self, store):
        cid = await store.pin_json({"name": "Alice"})
        assert cid.startswith("mem-")
        assert cid in store
        assert await store.fetch_json(cid) == {"name": "Alice"}

    @pytest.mark.asyncio
    async def test_same_content_same_address(self, store):
        assert await store.pin_json({"a": 1}) == await store.pin_json({"a": 1})
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_pin_file(self, store):
        cid = await store.pin_file("doc.pdf", b"%PDF-1.4", "application/pdf")
        assert await store.fetch_bytes(cid) == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_missing(self, store):
        with pytest.raises(FetchFailed) as exc:
            await store.fetch_bytes("mem-nope")
        assert exc.value.status == 404

    @pytest.mark.asyncio
    async def test_fetch_json_rejects_non_json(self, store):
        cid = await store.pin_file("x.txt", b"hello")
        with pytest.raises(FetchFailed):
            await store.fetch_json(cid)


# ── Pinata store ──

@pytest.fixture
def pinata():
    return PinataContentStore(jwt="test-jwt")


class TestPinataAuth:
    def test_jwt_header(self, pinata):
        assert pinata._auth_headers() == {"Authorization": "Bearer test-jwt"}

    def test_key_pair_headers(self):
        store = PinataContentStore(api_key="k", api_secret="s")
        assert store._auth_headers() == {"pinata_api_key": "k", "pinata_secret_api_key": "s"}

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(ConfigError):
            await PinataContentStore().pin_json({"a": 1})

    def test_from_settings(self):
        store = PinataContentStore.from_settings(Settings(pinata_jwt="abc", ipfs_gateways=("https://gw.example/",)))
        assert store.jwt == "abc"
        assert store.gateways == ["https://gw.example"]


class TestPinataPinning:
    @pytest.mark.asyncio
    async def test_pin_json(self, pinata):
        with respx.mock:
            route = respx.post(f"{PINATA_API_URL}/pinning/pinJSONToIPFS").mock(
                return_value=httpx.Response(200, json={"IpfsHash": CID})
            )
            cid = await pinata.pin_json({"name": "Alice"})

        assert cid == CID
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer test-jwt"
        assert json.loads(request.content) == {"name": "Alice"}

    @pytest.mark.asyncio
    async def test_pin_file(self, pinata):
        with respx.mock:
            route = respx.post(f"{PINATA_API_URL}/pinning/pinFileToIPFS").mock(
                return_value=httpx.Response(200, json={"IpfsHash": CID})
            )
            cid = await pinata.pin_file("doc.pdf", b"%PDF", "application/pdf")

        assert cid == CID
        assert route.called

    @pytest.mark.asyncio
    async def test_unauthorized(self, pinata):
        with respx.mock:
            respx.post(f"{PINATA_API_URL}/pinning/pinJSONToIPFS").mock(
                return_value=httpx.Response(401, json={"error": "Invalid authentication"})
            )
            with pytest.raises(StorageError) as exc:
                await pinata.pin_json({"a": 1})

        assert exc.value.status == 401
        assert "PINATA credentials" in exc.value.detail
        assert exc.value.details == {"error": "Invalid authentication"}

    @pytest.mark.asyncio
    async def test_upstream_error_keeps_status(self, pinata):
        with respx.mock:
            respx.post(f"{PINATA_API_URL}/pinning/pinJSONToIPFS").mock(
                return_value=httpx.Response(503, text="unavailable")
            )
            with pytest.raises(StorageError) as exc:
                await pinata.pin_json({"a": 1})
        assert exc.value.status == 503

    @pytest.mark.asyncio
    async def test_missing_ipfs_hash(self, pinata):
        with respx.mock:
            respx.post(f"{PINATA_API_URL}/pinning/pinJSONToIPFS").mock(
                return_value=httpx.Response(200, json={})
            )
            with pytest.raises(StorageError):
                await pinata.pin_json({"a": 1})

    @pytest.mark.asyncio
    async def test_network_error(self, pinata):
        with respx.mock:
            respx.post(f"{PINATA_API_URL}/pinning/pinJSONToIPFS").mock(
                side_effect=httpx.ConnectError("boom")
            )
            with pytest.raises(StorageError) as exc:
                await pinata.pin_json({"a": 1})
        assert exc.value.status == 502


class TestPinataFetch:
    @pytest.mark.asyncio
    async def test_fetch_from_primary_gateway(self, pinata):
        with respx.mock:
            respx.get(f"{DEFAULT_GATEWAYS[0]}/ipfs/{CID}").mock(
                return_value=httpx.Response(200, json={"name": "Alice"})
            )
            assert await pinata.fetch_json(CID) == {"name": "Alice"}

    @pytest.mark.asyncio
    async def test_no_fallback_by_default(self, pinata):
        with respx.mock(assert_all_called=False) as router:
            router.get(f"{DEFAULT_GATEWAYS[0]}/ipfs/{CID}").mock(return_value=httpx.Response(504))
            secondary = router.get(f"{DEFAULT_GATEWAYS[1]}/ipfs/{CID}").mock(
                return_value=httpx.Response(200, json={"name": "Alice"})
            )
            with pytest.raises(FetchFailed):
                await pinata.fetch_bytes(CID)
        assert not secondary.called

    @pytest.mark.asyncio
    async def test_fallback_tries_next_gateway(self, pinata):
        with respx.mock:
            respx.get(f"{DEFAULT_GATEWAYS[0]}/ipfs/{CID}").mock(side_effect=httpx.ReadTimeout("slow"))
            respx.get(f"{DEFAULT_GATEWAYS[1]}/ipfs/{CID}").mock(
                return_value=httpx.Response(200, json={"name": "Alice"})
            )
            assert await pinata.fetch_json(CID, fallback=True) == {"name": "Alice"}

    @pytest.mark.asyncio
    async def test_all_gateways_fail(self, pinata):
        with respx.mock:
            respx.get(f"{DEFAULT_GATEWAYS[0]}/ipfs/{CID}").mock(return_value=httpx.Response(404))
            respx.get(f"{DEFAULT_GATEWAYS[1]}/ipfs/{CID}").mock(return_value=httpx.Response(500))
            with pytest.raises(FetchFailed) as exc:
                await pinata.fetch_bytes(CID, fallback=True)
        assert exc.value.cid == CID

    def test_gateway_url(self, pinata):
        assert pinata.gateway_url(CID) == f"https://gateway.pinata.cloud/ipfs/{CID}"
