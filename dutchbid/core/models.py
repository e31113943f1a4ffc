"""
Data model for the auction client.

Values fetched from the chain (snapshot, bid records, allocation) are
immutable and replaced wholesale on each poll. Only the pending bid intent
is mutable, and it lives for one submission at most.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union


class _Unknown:
    """Sentinel for a bid quantity this client cannot know."""

    _instance: Optional["_Unknown"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __str__(self) -> str:
        return "unknown"

    def __bool__(self) -> bool:
        return False


# Quantity of a bid placed by another session (or before a restart);
# the chain only holds its ciphertext.
UNKNOWN = _Unknown()

Quantity = Union[Decimal, _Unknown]


# =============================================================================
# Chain-derived values
# =============================================================================


@dataclass(frozen=True)
class AuctionSnapshot:
    """Auction-wide state read from the settlement contract in one poll."""
    auction_end_time: int             # Unix seconds
    claim_start_time: int             # Unix seconds
    price_finalized: bool
    clearing_price_indicative: Decimal
    clearing_price_final: Decimal
    token_supply: Decimal
    floor_price: Decimal


@dataclass(frozen=True)
class ClearingQuote:
    """Clearing price as refreshed by the fast clearing-price family."""
    price: Decimal
    final: bool

    @classmethod
    def resolve(
        cls,
        finalized: bool,
        final: Decimal,
        indicative: Decimal,
        floor: Decimal,
        fallback: Decimal,
    ) -> "ClearingQuote":
        """
        Best clearing price to show.

        Final price once finalized, else the indicative price, else the
        floor price, else the configured fallback.
        """
        if finalized and final > 0:
            return cls(price=final, final=True)
        if indicative > 0:
            return cls(price=indicative, final=False)
        if floor > 0:
            return cls(price=floor, final=False)
        return cls(price=fallback, final=False)


@dataclass(frozen=True)
class BidRecord:
    """
    One of the caller's bids.

    The price is plaintext on-chain and authoritative. The quantity is only
    known to the session that submitted it.
    """
    index: int
    price: Decimal
    quantity: Quantity = UNKNOWN

    @property
    def quantity_known(self) -> bool:
        return self.quantity is not UNKNOWN


@dataclass(frozen=True)
class AllocationRecord:
    """Tokens won and refund owed, valid once the auction is claiming."""
    allocated_tokens: Decimal
    refund_due: Decimal
    claimed: bool


@dataclass(frozen=True)
class TxReceipt:
    """Confirmed transaction."""
    tx_hash: str
    block_number: int
    status: int
    gas_used: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == 1


# =============================================================================
# Client-side intent
# =============================================================================


@dataclass
class PendingBidIntent:
    """Bid being composed by the user; cleared on success or explicitly."""
    price: Decimal
    quantity: Decimal

    @property
    def total_cost(self) -> Decimal:
        return self.price * self.quantity
