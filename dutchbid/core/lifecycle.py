"""
Bid Lifecycle Controller - cancellation, claiming and the administrative
price finalization.

The settlement contract is the only enforcer of ownership and the
claim-once rule; the client checks what it can see and then refetches
instead of assuming the outcome.
"""

from typing import Any, Callable, Optional

from dutchbid.core.errors import PreconditionError, SubmissionError, TransactionError
from dutchbid.core.ledger_cache import BidLedgerCache
from dutchbid.core.models import AllocationRecord, TxReceipt
from dutchbid.core.phase import Phase
from dutchbid.utils.logger import get_logger
from dutchbid.utils.validation import validate_bid_index

logger = get_logger("lifecycle")

RefreshCallback = Callable[[str], None]


class BidLifecycleController:
    """
    Post-placement actions on the settlement contract.

    Attributes:
        reader: ChainReader (unsent write calls, fresh reads)
        wallet: Wallet that prompts, signs and waits
        cache: session BidLedgerCache
        refresh: called with a polling family name after a confirmed action
    """

    def __init__(
        self,
        reader: Any,
        wallet: Any,
        cache: BidLedgerCache,
        refresh: Optional[RefreshCallback] = None,
    ):
        self.reader = reader
        self.wallet = wallet
        self.cache = cache
        self.refresh = refresh
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def _run(self, label: str, call_factory) -> TxReceipt:
        if self._in_flight:
            raise PreconditionError("Another action is already in progress")
        if not self.wallet.is_connected:
            raise PreconditionError("Wallet not connected")

        self._in_flight = True
        try:
            return await self.wallet.send(call_factory(), label)
        except TransactionError as e:
            raise SubmissionError(f"{label.capitalize()} failed: {e.reason}", reason=e.reason) from e
        finally:
            self._in_flight = False

    def _trigger(self, family: str) -> None:
        if self.refresh is not None:
            self.refresh(family)

    async def cancel_bid(self, index: int) -> TxReceipt:
        """
        Cancel the caller's bid at `index`.

        After confirmation every cached quantity is dropped: cancellation
        may compact indices, so a later bid could land on this index.
        """
        valid, err = validate_bid_index(index)
        if not valid:
            raise PreconditionError(err)

        receipt = await self._run("cancel bid", lambda: self.reader.cancel_bid_call(index))

        self.cache.invalidate_all()
        logger.info(f"Bid #{index} cancelled in block {receipt.block_number}")
        self._trigger("bids")
        return receipt

    async def claim(
        self,
        phase: Optional[Phase],
        allocation: Optional[AllocationRecord],
    ) -> TxReceipt:
        """
        Claim allocated tokens and refund.

        Args:
            phase: phase resolved from the latest snapshot
            allocation: latest fetched allocation, None if not yet fetched

        The allocation is refetched afterwards; `claimed` is never set here.
        """
        if phase != Phase.CLAIMING:
            current = phase.value if phase else "unknown"
            raise PreconditionError(f"Claiming is not open (phase: {current})")
        if allocation is not None and allocation.claimed:
            raise PreconditionError("Tokens and refund already claimed")

        receipt = await self._run("claim", self.reader.claim_call)

        logger.info(f"Claim confirmed in block {receipt.block_number}")
        self._trigger("allocation")
        self._trigger("balance")
        return receipt

    async def finalize_prices(self) -> TxReceipt:
        """Administrative: finalize the clearing price."""
        try:
            finalized = await self.reader.price_finalized()
        except Exception as e:
            raise PreconditionError(f"Could not verify auction state: {e}") from e
        if finalized:
            raise PreconditionError("Price already finalized")

        receipt = await self._run("finalize prices", self.reader.finalize_call)

        logger.info(f"Prices finalized in block {receipt.block_number}")
        self._trigger("snapshot")
        self._trigger("clearing_price")
        return receipt
