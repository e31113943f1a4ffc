"""
Tests for the FHE encryption providers.

Tests cover:
1. Mock provider on local chains
2. Relayer provider over HTTP (httpx.MockTransport)
3. Provider selection from configuration
"""

import json

import httpx
import pytest

from dutchbid.core.config import ClientConfig
from dutchbid.fhe.provider import (
    UINT32_MAX,
    EncryptionProvider,
    MockEncryptionProvider,
    ProviderError,
    ProviderStatus,
    RelayerEncryptionProvider,
    create_provider,
)

AUCTION = "0x" + "22" * 20
BIDDER = "0x" + "11" * 20
MOCK_CHAINS = {31337: "http://localhost:8545"}


# =============================================================================
# Mock provider
# =============================================================================


class TestMockProvider:
    """Tests for MockEncryptionProvider."""

    @pytest.mark.asyncio
    async def test_ready_on_mock_chain(self):
        provider = MockEncryptionProvider()

        status = await provider.initialize("http://localhost:8545", 31337, MOCK_CHAINS)

        assert status == ProviderStatus.READY
        assert provider.is_ready

    @pytest.mark.asyncio
    async def test_error_off_mock_chain(self):
        provider = MockEncryptionProvider()

        status = await provider.initialize("https://rpc", 11155111, MOCK_CHAINS)

        assert status == ProviderStatus.ERROR
        assert "not a mock chain" in provider.error

    def test_input_requires_ready(self):
        with pytest.raises(ProviderError, match="not ready"):
            MockEncryptionProvider().create_encrypted_input(AUCTION, BIDDER)

    @pytest.mark.asyncio
    async def test_encrypt(self, provider):
        payload = await provider.create_encrypted_input(AUCTION, BIDDER).add32(100).encrypt()

        assert payload.complete
        assert len(payload.handles) == 1
        assert len(payload.handles[0]) == 32
        # header (2) + handle (32) + digest (32)
        assert len(payload.input_proof) == 66

    @pytest.mark.asyncio
    async def test_fresh_ciphertext_each_time(self, provider):
        a = await provider.create_encrypted_input(AUCTION, BIDDER).add32(100).encrypt()
        b = await provider.create_encrypted_input(AUCTION, BIDDER).add32(100).encrypt()

        assert a.handles[0] != b.handles[0]

    @pytest.mark.asyncio
    async def test_encrypt_nothing(self, provider):
        with pytest.raises(ValueError):
            await provider.create_encrypted_input(AUCTION, BIDDER).encrypt()

    @pytest.mark.parametrize("value", [-1, UINT32_MAX + 1, 1.5, True, "5"])
    def test_add32_rejects(self, provider, value):
        with pytest.raises(ValueError):
            provider.create_encrypted_input(AUCTION, BIDDER).add32(value)

    def test_add32_bounds(self, provider):
        encrypted_input = provider.create_encrypted_input(AUCTION, BIDDER)
        encrypted_input.add32(0).add32(UINT32_MAX)

        assert encrypted_input.values == [0, UINT32_MAX]


# =============================================================================
# Relayer provider
# =============================================================================


def _relayer(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RelayerEncryptionProvider("https://relayer.test/", client=client)


def _healthy(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/v1/keyurl":
        return httpx.Response(200, json={"publicKey": {"dataId": "pk-1"}})
    if request.url.path == "/v1/encrypt":
        body = json.loads(request.content)
        assert body["contractChainId"] == 11155111
        assert body["values"] == [{"type": "euint32", "value": 100}]
        return httpx.Response(
            200, json={"handles": ["0x" + "ab" * 32], "inputProof": "0x" + "cd" * 100}
        )
    return httpx.Response(404)


class TestRelayerProvider:
    """Tests for RelayerEncryptionProvider."""

    @pytest.mark.asyncio
    async def test_initialize_and_encrypt(self):
        provider = _relayer(_healthy)

        assert await provider.initialize("https://rpc", 11155111) == ProviderStatus.READY

        payload = await provider.create_encrypted_input(AUCTION, BIDDER).add32(100).encrypt()
        assert payload.handles == [b"\xab" * 32]
        assert payload.input_proof == b"\xcd" * 100
        await provider.close()

    @pytest.mark.asyncio
    async def test_unavailable_service(self):
        provider = _relayer(lambda request: httpx.Response(503))

        assert await provider.initialize("https://rpc", 11155111) == ProviderStatus.ERROR
        assert not provider.is_ready
        await provider.close()

    @pytest.mark.asyncio
    async def test_encrypt_http_error(self):
        def handler(request):
            if request.url.path == "/v1/keyurl":
                return httpx.Response(200, json={})
            return httpx.Response(500)

        provider = _relayer(handler)
        await provider.initialize("https://rpc", 11155111)

        with pytest.raises(ProviderError, match="Encryption request failed"):
            await provider.create_encrypted_input(AUCTION, BIDDER).add32(1).encrypt()
        await provider.close()

    @pytest.mark.asyncio
    async def test_incomplete_response(self):
        def handler(request):
            if request.url.path == "/v1/keyurl":
                return httpx.Response(200, json={})
            return httpx.Response(200, json={"handles": ["0x" + "ab" * 32]})

        provider = _relayer(handler)
        await provider.initialize("https://rpc", 11155111)

        payload = await provider.create_encrypted_input(AUCTION, BIDDER).add32(1).encrypt()

        assert not payload.complete
        await provider.close()


# =============================================================================
# Selection
# =============================================================================


class TestCreateProvider:
    """Tests for create_provider."""

    def _config(self, **kwargs):
        return ClientConfig(auction_address=AUCTION, token_address=BIDDER, **kwargs)

    def test_mock_chain(self):
        assert isinstance(create_provider(self._config(chain_id=31337)), MockEncryptionProvider)

    @pytest.mark.asyncio
    async def test_relayer(self):
        provider = create_provider(self._config(relayer_url="https://relayer.test"))

        assert isinstance(provider, RelayerEncryptionProvider)
        assert provider.base_url == "https://relayer.test"
        await provider.close()

    @pytest.mark.asyncio
    async def test_no_service_configured(self):
        provider = create_provider(self._config())

        assert type(provider) is EncryptionProvider
        assert await provider.initialize("https://rpc", 11155111) == ProviderStatus.ERROR
