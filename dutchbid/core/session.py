"""
Auction Session - wires the reader, wallet, encryption provider, caches and
polling families into one client, and holds the rendered state.

The session is the operation boundary: every user action returns an
ActionResult, and any BidError is turned into a Notification instead of
propagating. Polling failures never reach the user as errors; the previous
values simply stay on screen.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional

from dutchbid.core.config import ClientConfig
from dutchbid.core.errors import BidError, StaleReadError, UserDeclinedError
from dutchbid.core.ledger_cache import BidLedgerCache
from dutchbid.core.lifecycle import BidLifecycleController
from dutchbid.core.models import (
    AllocationRecord,
    AuctionSnapshot,
    BidRecord,
    ClearingQuote,
    PendingBidIntent,
    TxReceipt,
)
from dutchbid.core.phase import Phase, format_countdown, phase_of, time_remaining
from dutchbid.core.scheduler import PollingScheduler
from dutchbid.core.submitter import EncryptedBidSubmitter
from dutchbid.utils.logger import get_logger
from dutchbid.utils.validation import validate_price, validate_quantity

logger = get_logger("session")


@dataclass
class Notification:
    """User-visible message produced at the operation boundary."""
    level: str        # info | success | warning | error
    message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class ActionResult:
    """Outcome of a user action."""
    ok: bool
    receipt: Optional[TxReceipt] = None
    error: Optional[BidError] = None

    @property
    def declined(self) -> bool:
        return isinstance(self.error, UserDeclinedError)


@dataclass
class AuctionView:
    """Everything the client displays. Each field is owned by one polling family."""
    snapshot: Optional[AuctionSnapshot] = None
    phase: Optional[Phase] = None
    clearing_price: Optional[ClearingQuote] = None
    balance: Optional[Decimal] = None
    bids: List[BidRecord] = field(default_factory=list)
    allocation: Optional[AllocationRecord] = None
    time_remaining: str = ""


class AuctionSession:
    """
    One bidder's client session.

    Attributes:
        config: client configuration
        reader: ChainReader
        wallet: Wallet (may hold no account for read-only use)
        provider: EncryptionProvider
        view: rendered state
        pending: bid being composed, if any
        notifications: messages for the user, oldest first
    """

    def __init__(
        self,
        config: ClientConfig,
        reader: Any,
        wallet: Any,
        provider: Any,
        clock: Callable[[], float] = time.time,
        scheduler: Optional[PollingScheduler] = None,
        cache: Optional[BidLedgerCache] = None,
    ):
        self.config = config
        self.reader = reader
        self.wallet = wallet
        self.provider = provider
        self.clock = clock
        self.scheduler = scheduler or PollingScheduler()
        self.cache = cache or BidLedgerCache()

        self.view = AuctionView()
        self.pending: Optional[PendingBidIntent] = None
        self.notifications: List[Notification] = []

        self.submitter = EncryptedBidSubmitter(
            reader,
            wallet,
            provider,
            self.cache,
            approval_ceiling=config.approval_ceiling,
            on_success=self._on_bid_placed,
        )
        self.lifecycle = BidLifecycleController(
            reader,
            wallet,
            self.cache,
            refresh=self.scheduler.trigger,
        )

        self._register_families()

    @classmethod
    def from_config(cls, config: ClientConfig, confirm=None) -> "AuctionSession":
        """Build a session against the configured network."""
        from dutchbid.chain.reader import ChainReader
        from dutchbid.chain.wallet import Wallet
        from dutchbid.fhe.provider import create_provider

        reader = ChainReader.from_config(config)
        wallet = Wallet.from_config(config, reader.w3, confirm=confirm)
        provider = create_provider(config)
        return cls(config, reader, wallet, provider)

    def now(self) -> int:
        return int(self.clock())

    # =========================================================================
    # Setup / teardown
    # =========================================================================

    async def initialize_provider(self):
        """Initialize the encryption provider for the configured network."""
        status = await self.provider.initialize(
            self.config.effective_rpc_url,
            self.config.chain_id,
            self.config.mock_chains,
        )
        if not self.provider.is_ready:
            self.notify("warning", f"Encryption provider not ready: {status.value}")
        return status

    def start(self) -> None:
        """Start polling. Requires a running event loop."""
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.provider.close()

    async def refresh_all(self) -> None:
        """Run one cycle of every family, in registration order."""
        for name in self.scheduler.families:
            await self.scheduler.run_cycle(name)

    # =========================================================================
    # Polling families
    # =========================================================================

    def _register_families(self) -> None:
        intervals = self.config.intervals
        wallet_ready = lambda: self.wallet.is_connected

        self.scheduler.register(
            "snapshot", intervals.snapshot, self.reader.snapshot, self._apply_snapshot
        )
        self.scheduler.register(
            "clearing_price",
            intervals.clearing_price,
            lambda: self.reader.clearing_quote(self.config.default_clearing_price),
            self._apply_clearing_price,
        )
        self.scheduler.register(
            "balance",
            intervals.balance,
            lambda: self.reader.balance_of(self.wallet.address),
            self._apply_balance,
            enabled=wallet_ready,
        )
        self.scheduler.register(
            "bids",
            intervals.bids,
            self._fetch_bid_prices,
            self._apply_bids,
            enabled=wallet_ready,
        )
        self.scheduler.register(
            "allocation",
            intervals.allocation,
            lambda: self.reader.user_allocation(self.wallet.address),
            self._apply_allocation,
            enabled=lambda: self.wallet.is_connected and self.view.phase == Phase.CLAIMING,
        )
        self.scheduler.register(
            "countdown",
            intervals.countdown,
            self._tick,
            self._apply_countdown,
            enabled=lambda: self.view.snapshot is not None,
        )

    def _apply_snapshot(self, snapshot: AuctionSnapshot) -> None:
        stale = self._check_monotonic(self.view.snapshot, snapshot)

        self.view.snapshot = snapshot
        self.view.phase = phase_of(snapshot, self.now())

        if stale is not None:
            logger.warning(f"Stale read: {stale}")
            self.scheduler.trigger_all(exclude="snapshot")

    @staticmethod
    def _check_monotonic(
        previous: Optional[AuctionSnapshot],
        current: AuctionSnapshot,
    ) -> Optional[StaleReadError]:
        if previous is None:
            return None
        if previous.auction_end_time != current.auction_end_time:
            return StaleReadError(
                f"auction end time changed from {previous.auction_end_time} "
                f"to {current.auction_end_time}"
            )
        if previous.price_finalized and not current.price_finalized:
            return StaleReadError("price finalized flag went back to false")
        return None

    def _apply_clearing_price(self, quote: ClearingQuote) -> None:
        self.view.clearing_price = quote

    def _apply_balance(self, balance: Decimal) -> None:
        self.view.balance = balance

    async def _fetch_bid_prices(self) -> List[Decimal]:
        prices, _ = await self.reader.user_bids(self.wallet.address)
        return prices

    def _apply_bids(self, prices: List[Decimal]) -> None:
        # Merged at apply time so a cancellation during the fetch is honored
        self.view.bids = self.cache.reconcile(prices)

    def _apply_allocation(self, allocation: AllocationRecord) -> None:
        self.view.allocation = allocation

    async def _tick(self) -> int:
        return self.now()

    def _apply_countdown(self, now: int) -> None:
        snapshot = self.view.snapshot
        self.view.time_remaining = format_countdown(time_remaining(now, snapshot.auction_end_time))
        self.view.phase = phase_of(snapshot, now)

    # =========================================================================
    # User actions
    # =========================================================================

    def set_pending(self, price: Any, quantity: Any) -> PendingBidIntent:
        """
        Record the bid being composed.

        Raises:
            ValueError: on a non-numeric or out-of-range input
        """
        parsed_price, err = validate_price(price)
        if parsed_price is None:
            raise ValueError(err)
        parsed_quantity, err = validate_quantity(quantity)
        if parsed_quantity is None:
            raise ValueError(err)

        self.pending = PendingBidIntent(price=parsed_price, quantity=parsed_quantity)
        return self.pending

    def clear_pending(self) -> None:
        self.pending = None

    async def place_bid(self, price: Any = None, quantity: Any = None) -> ActionResult:
        """Submit a bid from explicit inputs or the pending intent."""
        if price is None and quantity is None and self.pending is not None:
            price, quantity = self.pending.price, self.pending.quantity
        return await self._guard("place bid", lambda: self.submitter.submit_bid(price, quantity))

    async def cancel_bid(self, index: int) -> ActionResult:
        return await self._guard("cancel bid", lambda: self.lifecycle.cancel_bid(index))

    async def claim(self) -> ActionResult:
        return await self._guard(
            "claim", lambda: self.lifecycle.claim(self.view.phase, self.view.allocation)
        )

    async def finalize_prices(self) -> ActionResult:
        return await self._guard("finalize prices", self.lifecycle.finalize_prices)

    async def _guard(self, label: str, action: Callable[[], Awaitable[TxReceipt]]) -> ActionResult:
        try:
            receipt = await action()
        except UserDeclinedError as e:
            self.notify("info", f"{label.capitalize()} cancelled: wallet prompt declined")
            return ActionResult(ok=False, error=e)
        except BidError as e:
            self.notify("error", f"{label.capitalize()} failed: {e}")
            return ActionResult(ok=False, error=e)

        self.notify("success", f"{label.capitalize()} confirmed (tx {receipt.tx_hash})")
        return ActionResult(ok=True, receipt=receipt)

    def _on_bid_placed(self, receipt: TxReceipt, index: int, quantity: Decimal) -> None:
        self.pending = None
        self.scheduler.trigger("clearing_price")
        self.scheduler.trigger("bids")

    # =========================================================================
    # Notifications
    # =========================================================================

    def notify(self, level: str, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)

        if level == "error":
            logger.error(message)
        elif level == "warning":
            logger.warning(message)
        else:
            logger.info(message)
        return notification

    def drain_notifications(self) -> List[Notification]:
        """Return and clear pending notifications."""
        drained, self.notifications = self.notifications, []
        return drained
