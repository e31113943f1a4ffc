"""
Client configuration for dutchbid.

Network selection, contract addresses, signer key and polling intervals.
Values come from DUTCHBID_* environment variables, optionally loaded from a
.env file.
"""

import json
import os
from decimal import Decimal
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator

from dutchbid.utils.validation import validate_address

ENV_PREFIX = "DUTCHBID_"

# Sepolia, as used by the hosted deployment
DEFAULT_RPC_URL = "https://ethereum-sepolia-rpc.publicnode.com"
DEFAULT_CHAIN_ID = 11155111

# Local development chains served without an encryption service
DEFAULT_MOCK_CHAINS = {31337: "http://localhost:8545"}


class PollIntervals(BaseModel):
    """Refresh interval per polling family, in seconds"""

    snapshot: float = 5.0
    clearing_price: float = 3.0
    balance: float = 5.0
    bids: float = 5.0
    allocation: float = 5.0
    countdown: float = 1.0

    @field_validator("*")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("poll interval must be > 0")
        return value


class ClientConfig(BaseModel):
    """Auction client configuration"""

    # Network
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = DEFAULT_CHAIN_ID
    mock_chains: Dict[int, str] = Field(default_factory=lambda: dict(DEFAULT_MOCK_CHAINS))

    # Contracts
    auction_address: str
    token_address: str

    # Encryption service
    relayer_url: Optional[str] = None

    # Signer (absent for read-only use)
    private_key: Optional[SecretStr] = None

    # Bidding
    approval_ceiling: Decimal = Decimal("1000000")  # Approve once per session
    gas_limit: int = 3_000_000
    default_clearing_price: Decimal = Decimal("55")  # Shown before any bids land

    # Polling
    intervals: PollIntervals = Field(default_factory=PollIntervals)

    @field_validator("auction_address", "token_address")
    @classmethod
    def _check_address(cls, value: str, info: ValidationInfo) -> str:
        valid, err = validate_address(value, info.field_name)
        if not valid:
            raise ValueError(err)
        return value

    @field_validator("approval_ceiling")
    @classmethod
    def _check_ceiling(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("approval ceiling must be > 0")
        return value

    @property
    def is_mock_chain(self) -> bool:
        return self.chain_id in self.mock_chains

    @property
    def effective_rpc_url(self) -> str:
        """RPC endpoint, redirected to the local node on mock chains."""
        return self.mock_chains.get(self.chain_id, self.rpc_url)


def _env(name: str) -> Optional[str]:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_config(env_file: Optional[str] = None, **overrides) -> ClientConfig:
    """
    Load configuration from the environment.

    Args:
        env_file: Optional .env file to load first (existing variables win)
        **overrides: Explicit values, e.g. from CLI options; None is ignored

    Returns:
        Validated ClientConfig

    Raises:
        pydantic.ValidationError: on missing or malformed values
    """
    load_dotenv(env_file, override=False)

    data = {
        "rpc_url": _env("RPC_URL"),
        "chain_id": _env("CHAIN_ID"),
        "auction_address": _env("AUCTION_ADDRESS"),
        "token_address": _env("TOKEN_ADDRESS"),
        "relayer_url": _env("RELAYER_URL"),
        "private_key": _env("PRIVATE_KEY"),
        "approval_ceiling": _env("APPROVAL_CEILING"),
        "gas_limit": _env("GAS_LIMIT"),
        "default_clearing_price": _env("DEFAULT_CLEARING_PRICE"),
    }

    mock_chains = _env("MOCK_CHAINS")
    if mock_chains:
        data["mock_chains"] = json.loads(mock_chains)

    data.update(overrides)
    return ClientConfig(**{k: v for k, v in data.items() if v is not None})
