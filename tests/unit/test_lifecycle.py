"""
Tests for cancellation, claiming and price finalization.
"""

import asyncio
from decimal import Decimal

import pytest

from dutchbid.core.errors import PreconditionError, SubmissionError, UserDeclinedError
from dutchbid.core.ledger_cache import BidLedgerCache
from dutchbid.core.lifecycle import BidLifecycleController
from dutchbid.core.models import UNKNOWN, AllocationRecord
from dutchbid.core.phase import Phase


@pytest.fixture
def cache():
    return BidLedgerCache()


@pytest.fixture
def refreshed():
    return []


@pytest.fixture
def controller(chain, wallet, cache, refreshed):
    return BidLifecycleController(chain, wallet, cache, refresh=refreshed.append)


def _allocation(claimed=False):
    return AllocationRecord(
        allocated_tokens=Decimal("100"),
        refund_due=Decimal("250"),
        claimed=claimed,
    )


# =============================================================================
# Cancel
# =============================================================================


class TestCancel:
    """Tests for cancel_bid."""

    @pytest.mark.asyncio
    async def test_cancel_invalidates_every_cached_quantity(self, controller, chain, cache, refreshed, bidder):
        chain.bids[bidder] = [(Decimal("55"), Decimal("10")), (Decimal("60"), Decimal("20"))]
        cache.record(0, Decimal("10"))
        cache.record(1, Decimal("20"))

        await controller.cancel_bid(0)

        assert len(cache) == 0
        assert refreshed == ["bids"]

        # The chain still reports a bid at position 0, now with another price
        prices, _ = await chain.user_bids(bidder)
        records = cache.reconcile(prices)
        assert [r.price for r in records] == [Decimal("60")]
        assert records[0].quantity is UNKNOWN

    @pytest.mark.asyncio
    async def test_cancel_sends_index(self, controller, chain, wallet, bidder):
        chain.bids[bidder] = [(Decimal("55"), Decimal("10"))]

        receipt = await controller.cancel_bid(0)

        assert receipt.succeeded
        assert wallet.sent == [("cancelBid", 0)]
        assert wallet.prompts == ["cancel bid"]

    @pytest.mark.asyncio
    async def test_negative_index_rejected(self, controller, wallet):
        with pytest.raises(PreconditionError):
            await controller.cancel_bid(-1)

        assert wallet.prompts == []

    @pytest.mark.asyncio
    async def test_revert_keeps_cache(self, controller, wallet, cache, refreshed):
        wallet.reverts["cancel bid"] = "Not bid owner"
        cache.record(0, Decimal("10"))

        with pytest.raises(SubmissionError) as exc_info:
            await controller.cancel_bid(0)

        assert exc_info.value.reason == "Not bid owner"
        assert cache.quantities[0] == Decimal("10")
        assert refreshed == []

    @pytest.mark.asyncio
    async def test_decline_keeps_cache(self, controller, wallet, cache, chain, bidder):
        chain.bids[bidder] = [(Decimal("55"), Decimal("10"))]
        wallet.decline.add("cancel bid")
        cache.record(0, Decimal("10"))

        with pytest.raises(UserDeclinedError):
            await controller.cancel_bid(0)

        assert len(cache) == 1
        assert not controller.in_flight

    @pytest.mark.asyncio
    async def test_wallet_not_connected(self, controller, wallet):
        wallet.connected = False

        with pytest.raises(PreconditionError):
            await controller.cancel_bid(0)


# =============================================================================
# Claim
# =============================================================================


class TestClaim:
    """Tests for claim."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("phase", [Phase.BIDDING, Phase.FINALIZATION, None])
    async def test_claim_requires_claiming_phase(self, controller, wallet, phase):
        with pytest.raises(PreconditionError, match="not open"):
            await controller.claim(phase, _allocation())

        assert wallet.prompts == []

    @pytest.mark.asyncio
    async def test_already_claimed(self, controller, wallet):
        with pytest.raises(PreconditionError, match="already claimed"):
            await controller.claim(Phase.CLAIMING, _allocation(claimed=True))

        assert wallet.prompts == []

    @pytest.mark.asyncio
    async def test_claim_refetches_instead_of_marking(self, controller, chain, wallet, refreshed, bidder):
        chain.allocations[bidder] = _allocation()
        allocation = _allocation()

        await controller.claim(Phase.CLAIMING, allocation)

        assert wallet.sent == [("claimTokensAndRefund",)]
        assert allocation.claimed is False
        assert refreshed == ["allocation", "balance"]
        assert (await chain.user_allocation(bidder)).claimed

    @pytest.mark.asyncio
    async def test_claim_without_fetched_allocation(self, controller, chain, bidder):
        """The contract decides; the client only blocks what it can see."""
        chain.allocations[bidder] = _allocation()

        receipt = await controller.claim(Phase.CLAIMING, None)

        assert receipt.succeeded

    @pytest.mark.asyncio
    async def test_claim_revert(self, controller, wallet):
        wallet.reverts["claim"] = "Nothing to claim"

        with pytest.raises(SubmissionError, match="Nothing to claim"):
            await controller.claim(Phase.CLAIMING, _allocation())


# =============================================================================
# Finalize
# =============================================================================


class TestFinalize:
    """Tests for finalize_prices."""

    @pytest.mark.asyncio
    async def test_finalize(self, controller, chain, wallet, refreshed):
        await controller.finalize_prices()

        assert chain.finalized
        assert wallet.sent == [("finalizePrices",)]
        assert refreshed == ["snapshot", "clearing_price"]

    @pytest.mark.asyncio
    async def test_already_finalized(self, controller, chain, wallet):
        chain.finalized = True

        with pytest.raises(PreconditionError, match="already finalized"):
            await controller.finalize_prices()

        assert wallet.prompts == []

    @pytest.mark.asyncio
    async def test_state_read_failure(self, controller, chain):
        chain.failing.add("price_finalized")

        with pytest.raises(PreconditionError):
            await controller.finalize_prices()


class TestInFlight:
    """One lifecycle action at a time."""

    @pytest.mark.asyncio
    async def test_second_action_rejected(self, controller, chain, wallet, bidder):
        chain.bids[bidder] = [(Decimal("55"), Decimal("10"))]
        wallet.gate = asyncio.Event()

        first = asyncio.create_task(controller.cancel_bid(0))
        while not wallet.prompts:
            await asyncio.sleep(0)

        with pytest.raises(PreconditionError, match="already in progress"):
            await controller.finalize_prices()

        wallet.gate.set()
        await first

        assert wallet.prompts == ["cancel bid"]
        assert not controller.in_flight
