"""
Chain Reader - read-only queries against the settlement and token contracts.

Stateless: every call goes to the RPC node. Amounts come back as 18-decimal
integers and are converted to Decimal token units here, so nothing above
this layer handles wei.
"""

import asyncio
from decimal import Decimal
from typing import List, Tuple

from web3 import AsyncWeb3, Web3

from dutchbid.chain.abi import AUCTION_ABI, ERC20_ABI
from dutchbid.core.config import ClientConfig
from dutchbid.core.models import AllocationRecord, AuctionSnapshot, ClearingQuote
from dutchbid.utils.logger import get_logger

logger = get_logger("chain")


def from_wei(value: int) -> Decimal:
    """Convert an 18-decimal on-chain integer to token units."""
    return Decimal(Web3.from_wei(int(value), "ether"))


def to_wei(value: Decimal) -> int:
    """Convert token units to an 18-decimal on-chain integer."""
    return int(Web3.to_wei(value, "ether"))


class ChainReader:
    """
    Read access to the auction and its payment token.

    Attributes:
        w3: AsyncWeb3 connection
        auction: settlement contract
        token: ERC-20 payment token contract
    """

    def __init__(self, w3: AsyncWeb3, auction_address: str, token_address: str):
        self.w3 = w3
        self.auction_address = Web3.to_checksum_address(auction_address)
        self.token_address = Web3.to_checksum_address(token_address)
        self.auction = w3.eth.contract(address=self.auction_address, abi=AUCTION_ABI)
        self.token = w3.eth.contract(address=self.token_address, abi=ERC20_ABI)

    @classmethod
    def from_config(cls, config: ClientConfig) -> "ChainReader":
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.effective_rpc_url))
        logger.debug(f"Chain {config.chain_id} via {config.effective_rpc_url}")
        return cls(w3, config.auction_address, config.token_address)

    # =========================================================================
    # Settlement contract
    # =========================================================================

    async def auction_end(self) -> int:
        return int(await self.auction.functions.auctionEnd().call())

    async def claim_start(self) -> int:
        return int(await self.auction.functions.claimStart().call())

    async def price_finalized(self) -> bool:
        return bool(await self.auction.functions.priceFinalized().call())

    async def indicative_clearing_price(self) -> Decimal:
        return from_wei(await self.auction.functions.indicativeClearingPrice().call())

    async def clearing_price(self) -> Decimal:
        return from_wei(await self.auction.functions.clearingPrice().call())

    async def token_supply(self) -> Decimal:
        return from_wei(await self.auction.functions.tokenSupply().call())

    async def floor_price(self) -> Decimal:
        return from_wei(await self.auction.functions.floorPrice().call())

    async def snapshot(self) -> AuctionSnapshot:
        """Read every auction-wide field concurrently."""
        (
            auction_end,
            claim_start,
            finalized,
            indicative,
            final,
            supply,
            floor,
        ) = await asyncio.gather(
            self.auction_end(),
            self.claim_start(),
            self.price_finalized(),
            self.indicative_clearing_price(),
            self.clearing_price(),
            self.token_supply(),
            self.floor_price(),
        )
        return AuctionSnapshot(
            auction_end_time=auction_end,
            claim_start_time=claim_start,
            price_finalized=finalized,
            clearing_price_indicative=indicative,
            clearing_price_final=final,
            token_supply=supply,
            floor_price=floor,
        )

    async def clearing_quote(self, fallback: Decimal) -> ClearingQuote:
        """Clearing price to display; see ClearingQuote.resolve for the order."""
        indicative, finalized, final, floor = await asyncio.gather(
            self.indicative_clearing_price(),
            self.price_finalized(),
            self.clearing_price(),
            self.floor_price(),
        )
        return ClearingQuote.resolve(
            finalized=finalized,
            final=final,
            indicative=indicative,
            floor=floor,
            fallback=fallback,
        )

    async def user_bids(self, user: str) -> Tuple[List[Decimal], int]:
        """Prices of the user's bids (in index order) and the bid count."""
        prices, count = await self.auction.functions.getUserBids(
            Web3.to_checksum_address(user)
        ).call()
        return [from_wei(p) for p in prices], int(count)

    async def bid_count(self, user: str) -> int:
        """Authoritative number of bids the user holds."""
        _, count = await self.user_bids(user)
        return count

    async def user_allocation(self, user: str) -> AllocationRecord:
        allocation, refund, claimed = await self.auction.functions.getUserAllocation(
            Web3.to_checksum_address(user)
        ).call()
        return AllocationRecord(
            allocated_tokens=from_wei(allocation),
            refund_due=from_wei(refund),
            claimed=bool(claimed),
        )

    # =========================================================================
    # Payment token
    # =========================================================================

    async def balance_of(self, user: str) -> Decimal:
        return from_wei(
            await self.token.functions.balanceOf(Web3.to_checksum_address(user)).call()
        )

    async def allowance(self, owner: str) -> Decimal:
        """Amount the settlement contract may transfer on the owner's behalf."""
        return from_wei(
            await self.token.functions.allowance(
                Web3.to_checksum_address(owner), self.auction_address
            ).call()
        )

    # =========================================================================
    # Write calls (bound, unsent; handed to the Wallet)
    # =========================================================================

    def approve_call(self, amount: Decimal):
        return self.token.functions.approve(self.auction_address, to_wei(amount))

    def place_bid_call(self, handle: bytes, proof: bytes, total_cost: Decimal, quantity: Decimal):
        return self.auction.functions.placeBid(handle, proof, to_wei(total_cost), to_wei(quantity))

    def cancel_bid_call(self, index: int):
        return self.auction.functions.cancelBid(index)

    def claim_call(self):
        return self.auction.functions.claimTokensAndRefund()

    def finalize_call(self):
        return self.auction.functions.finalizePrices()
