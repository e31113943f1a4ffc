"""
FHE encryption provider - turns a plaintext quantity into a ciphertext
handle plus a validity proof the settlement contract will accept.

Inputs are scoped to (contract address, account address): the proof binds
the ciphertext to both, so it cannot be replayed against another contract
or by another account.

Two implementations:
- RelayerEncryptionProvider: talks to the external encryption service
  over HTTP
- MockEncryptionProvider: deterministic stand-in used on local development
  chains (listed in ClientConfig.mock_chains), where the contract runs in
  mock mode and accepts any well-formed payload
"""

import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import httpx
from web3 import Web3

from dutchbid.core.config import ClientConfig
from dutchbid.crypto import bytes_to_hex, keccak256, to_payload
from dutchbid.utils.logger import get_logger

logger = get_logger("fhe")

UINT32_MAX = 2**32 - 1


class ProviderStatus(Enum):
    """Initialization state of an encryption provider."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class ProviderError(Exception):
    """The encryption provider could not initialize or encrypt."""


@dataclass
class EncryptedPayload:
    """Ciphertext handles (one per added value) and the shared input proof."""
    handles: List[bytes]
    input_proof: bytes

    @property
    def complete(self) -> bool:
        return bool(self.handles) and bool(self.handles[0]) and bool(self.input_proof)


@dataclass
class EncryptedInput:
    """
    Builder for one encrypted input.

    Values are added with add32() and encrypted together by encrypt().
    """
    provider: "EncryptionProvider"
    contract_address: str
    account_address: str
    values: List[int] = field(default_factory=list)

    def add32(self, value: int) -> "EncryptedInput":
        """Add an unsigned 32-bit value."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"euint32 value must be int, got {type(value).__name__}")
        if not 0 <= value <= UINT32_MAX:
            raise ValueError(f"euint32 value out of range: {value}")
        self.values.append(value)
        return self

    async def encrypt(self) -> EncryptedPayload:
        if not self.values:
            raise ValueError("Nothing to encrypt")
        return await self.provider.encrypt_values(
            self.contract_address, self.account_address, list(self.values)
        )


class EncryptionProvider:
    """Base class holding readiness state."""

    def __init__(self):
        self.status = ProviderStatus.IDLE
        self.error: Optional[str] = None
        self.chain_id: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        return self.status == ProviderStatus.READY

    async def initialize(
        self,
        rpc_url: str,
        chain_id: int,
        mock_chains: Optional[Dict[int, str]] = None,
    ) -> ProviderStatus:
        """
        Prepare the provider for a network; returns the resulting status.

        The base provider has no encryption backend and always ends in ERROR.
        """
        self.chain_id = chain_id
        self.status = ProviderStatus.ERROR
        self.error = "No encryption service configured"
        logger.error(f"{self.error} for chain {chain_id}")
        return self.status

    def create_encrypted_input(self, contract_address: str, account_address: str) -> EncryptedInput:
        if not self.is_ready:
            raise ProviderError(f"Encryption provider not ready (status: {self.status.value})")
        return EncryptedInput(
            provider=self,
            contract_address=Web3.to_checksum_address(contract_address),
            account_address=Web3.to_checksum_address(account_address),
        )

    async def encrypt_values(
        self, contract_address: str, account_address: str, values: List[int]
    ) -> EncryptedPayload:
        raise NotImplementedError

    async def close(self) -> None:
        pass


# =============================================================================
# Relayer (encryption service over HTTP)
# =============================================================================


class RelayerEncryptionProvider(EncryptionProvider):
    """
    Encryption through the external encryption service.

    Endpoints:
        GET  {base_url}/v1/keyurl   - service public key material; used as
                                      the readiness check
        POST {base_url}/v1/encrypt  - {contractChainId, contractAddress,
                                      userAddress, values} ->
                                      {handles, inputProof}
    """

    def __init__(self, base_url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def initialize(
        self,
        rpc_url: str,
        chain_id: int,
        mock_chains: Optional[Dict[int, str]] = None,
    ) -> ProviderStatus:
        self.status = ProviderStatus.LOADING
        self.chain_id = chain_id
        try:
            response = await self._client.get(f"{self.base_url}/v1/keyurl")
            response.raise_for_status()
            response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.status = ProviderStatus.ERROR
            self.error = str(e)
            logger.error(f"Encryption service unavailable at {self.base_url}: {e}")
            return self.status

        self.status = ProviderStatus.READY
        self.error = None
        logger.info(f"Encryption service ready for chain {chain_id}")
        return self.status

    async def encrypt_values(
        self, contract_address: str, account_address: str, values: List[int]
    ) -> EncryptedPayload:
        body = {
            "contractChainId": self.chain_id,
            "contractAddress": contract_address,
            "userAddress": account_address,
            "values": [{"type": "euint32", "value": v} for v in values],
        }
        try:
            response = await self._client.post(f"{self.base_url}/v1/encrypt", json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Encryption request failed: {e}") from e

        try:
            handles = [to_payload(h) for h in data.get("handles") or []]
            proof = to_payload(data["inputProof"]) if data.get("inputProof") else b""
        except ValueError as e:
            raise ProviderError(f"Malformed encryption response: {e}") from e

        return EncryptedPayload(handles=handles, input_proof=proof)

    async def close(self) -> None:
        await self._client.aclose()


# =============================================================================
# Mock (local development chains)
# =============================================================================


class MockEncryptionProvider(EncryptionProvider):
    """
    Deterministic stand-in for local chains.

    Handles are keccak(contract || account || value || index || nonce); the
    proof is a header byte, the handle count and the handles, followed by a
    keccak digest over them.
    """

    async def initialize(
        self,
        rpc_url: str,
        chain_id: int,
        mock_chains: Optional[Dict[int, str]] = None,
    ) -> ProviderStatus:
        self.chain_id = chain_id
        if mock_chains is not None and chain_id not in mock_chains:
            self.status = ProviderStatus.ERROR
            self.error = f"Chain {chain_id} is not a mock chain"
            logger.error(self.error)
            return self.status

        self.status = ProviderStatus.READY
        logger.info(f"Mock encryption ready for local chain {chain_id} ({rpc_url})")
        return self.status

    async def encrypt_values(
        self, contract_address: str, account_address: str, values: List[int]
    ) -> EncryptedPayload:
        nonce = secrets.token_bytes(16)
        contract = bytes.fromhex(contract_address[2:])
        account = bytes.fromhex(account_address[2:])

        handles = [
            keccak256(contract + account + v.to_bytes(32, "big") + i.to_bytes(1, "big") + nonce)
            for i, v in enumerate(values)
        ]
        body = bytes([0x00, len(handles)]) + b"".join(handles)
        proof = body + keccak256(body + contract + account)

        logger.debug(f"Mock-encrypted {len(values)} value(s): {bytes_to_hex(handles[0])[:18]}...")
        return EncryptedPayload(handles=handles, input_proof=proof)


def create_provider(config: ClientConfig) -> EncryptionProvider:
    """Pick the provider for the configured network."""
    if config.is_mock_chain:
        return MockEncryptionProvider()
    if config.relayer_url:
        return RelayerEncryptionProvider(config.relayer_url)
    # Read-only use; bids are rejected until a service is configured
    return EncryptionProvider()
