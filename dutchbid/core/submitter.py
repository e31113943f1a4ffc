"""
Encrypted Bid Submitter - drives a new bid from plaintext inputs to a
confirmed on-chain placement.

Protocol (strictly sequential, each failure aborts the rest):
1. total cost = price * quantity; read the allowance granted to the
   settlement contract
2. if short, approve a fixed ceiling and wait for confirmation
   (AllowanceError)
3. encrypt the quantity, scoped to (settlement, bidder)
   (EncryptionError)
4. encode handle and proof as binary payloads
5. read the bidder's bid count (the index the new bid will take), place the
   bid and wait for confirmation (SubmissionError, revert reason verbatim)
6. remember the quantity under that index, unless a cancellation
   confirmed meanwhile (indices may have shifted), and notify the session

Only one submission may be in flight: the allowance is read in step 1 and
acted on in step 2, so two overlapping submissions could under-approve.
"""

from decimal import Decimal
from typing import Any, Callable, Optional, Tuple

from dutchbid.core.errors import (
    AllowanceError,
    EncryptionError,
    PreconditionError,
    SubmissionError,
    TransactionError,
)
from dutchbid.core.ledger_cache import BidLedgerCache
from dutchbid.core.models import TxReceipt
from dutchbid.crypto import bytes_to_hex, to_payload
from dutchbid.fhe.provider import EncryptedPayload, ProviderError
from dutchbid.utils.logger import get_logger
from dutchbid.utils.validation import validate_price, validate_quantity

logger = get_logger("submitter")

# Approve this much once rather than the exact cost of every bid
DEFAULT_APPROVAL_CEILING = Decimal("1000000")

SuccessCallback = Callable[[TxReceipt, int, Decimal], None]


def compute_total_cost(price: Decimal, quantity: Decimal) -> Decimal:
    """Payment tokens transferred for a bid."""
    return price * quantity


class EncryptedBidSubmitter:
    """
    Places encrypted bids.

    Attributes:
        reader: ChainReader (reads and unsent write calls)
        wallet: Wallet that prompts, signs and waits
        provider: EncryptionProvider
        cache: session BidLedgerCache
        approval_ceiling: allowance requested when the current one is short
        on_success: called with (receipt, index, quantity) after step 6
    """

    def __init__(
        self,
        reader: Any,
        wallet: Any,
        provider: Any,
        cache: BidLedgerCache,
        approval_ceiling: Decimal = DEFAULT_APPROVAL_CEILING,
        on_success: Optional[SuccessCallback] = None,
    ):
        self.reader = reader
        self.wallet = wallet
        self.provider = provider
        self.cache = cache
        self.approval_ceiling = approval_ceiling
        self.on_success = on_success
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def submit_bid(self, price_input: Any, quantity_input: Any) -> TxReceipt:
        """
        Submit a bid.

        Returns:
            Receipt of the confirmed placement transaction

        Raises:
            PreconditionError, AllowanceError, EncryptionError,
            SubmissionError, UserDeclinedError
        """
        # Checked and set before the first await
        if self._in_flight:
            raise PreconditionError("A bid submission is already in progress")

        self._in_flight = True
        try:
            return await self._submit(price_input, quantity_input)
        finally:
            self._in_flight = False

    async def _submit(self, price_input: Any, quantity_input: Any) -> TxReceipt:
        price, quantity = self._check_preconditions(price_input, quantity_input)
        bidder = self.wallet.address

        try:
            finalized = await self.reader.price_finalized()
        except Exception as e:
            raise PreconditionError(f"Could not verify auction state: {e}") from e
        if finalized:
            raise PreconditionError("Auction closed: price already finalized")

        total_cost = compute_total_cost(price, quantity)
        logger.info(f"Submitting bid: {quantity} tokens @ {price} (total {total_cost})")

        await self._ensure_allowance(bidder, total_cost)

        encrypted = await self._encrypt(bidder, quantity)
        handle, proof = self._encode(encrypted)

        receipt, index, generation = await self._place(
            bidder, handle, proof, total_cost, quantity
        )

        self.cache.record(index, quantity, generation=generation)
        logger.info(f"Bid #{index} placed in block {receipt.block_number}")

        if self.on_success is not None:
            self.on_success(receipt, index, quantity)

        return receipt

    def _check_preconditions(self, price_input: Any, quantity_input: Any) -> Tuple[Decimal, Decimal]:
        if not self.provider.is_ready:
            raise PreconditionError("Encryption provider not initialized")

        if not self.wallet.is_connected:
            raise PreconditionError("Wallet not connected")

        price, err = validate_price(price_input)
        if price is None:
            raise PreconditionError(err)

        quantity, err = validate_quantity(quantity_input)
        if quantity is None:
            raise PreconditionError(err)

        return price, quantity

    async def _ensure_allowance(self, bidder: str, total_cost: Decimal) -> None:
        try:
            allowance = await self.reader.allowance(bidder)
        except Exception as e:
            raise AllowanceError(f"Could not read allowance: {e}") from e

        if allowance >= total_cost:
            logger.debug(f"Allowance {allowance} covers {total_cost}")
            return

        amount = max(self.approval_ceiling, total_cost)
        logger.info(f"Allowance {allowance} < {total_cost}, approving {amount}")

        try:
            await self.wallet.send(self.reader.approve_call(amount), "approve")
        except TransactionError as e:
            raise AllowanceError(f"Approval failed: {e.reason}") from e

    async def _encrypt(self, bidder: str, quantity: Decimal) -> EncryptedPayload:
        if not self.provider.is_ready:
            raise EncryptionError("Encryption provider not ready")

        try:
            encrypted_input = self.provider.create_encrypted_input(
                self.reader.auction_address, bidder
            )
            encrypted_input.add32(int(quantity))
            encrypted = await encrypted_input.encrypt()
        except (ProviderError, ValueError) as e:
            raise EncryptionError(f"Encryption failed: {e}") from e

        if encrypted is None or not encrypted.handles or not encrypted.handles[0]:
            raise EncryptionError("Encryption failed - no handle returned")
        if not encrypted.input_proof:
            raise EncryptionError("Encryption failed - no input proof returned")

        return encrypted

    def _encode(self, encrypted: EncryptedPayload) -> Tuple[bytes, bytes]:
        try:
            handle = to_payload(encrypted.handles[0])
            proof = to_payload(encrypted.input_proof)
        except ValueError as e:
            raise EncryptionError(f"Could not encode ciphertext: {e}") from e

        logger.debug(f"Encrypted: {bytes_to_hex(handle)[:20]}...")
        return handle, proof

    async def _place(
        self,
        bidder: str,
        handle: bytes,
        proof: bytes,
        total_cost: Decimal,
        quantity: Decimal,
    ) -> Tuple[TxReceipt, int, int]:
        # A cancellation confirmed after this point invalidates `index`
        generation = self.cache.generation

        # Read immediately before use; other sessions may have bid meanwhile
        try:
            index = await self.reader.bid_count(bidder)
        except Exception as e:
            raise SubmissionError(f"Could not read bid count: {e}") from e

        call = self.reader.place_bid_call(handle, proof, total_cost, quantity)
        try:
            receipt = await self.wallet.send(call, "place bid")
        except TransactionError as e:
            raise SubmissionError(f"Bid submission failed: {e.reason}", reason=e.reason) from e

        return receipt, index, generation
