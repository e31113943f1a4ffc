"""
Shared fakes for the dutchbid test suite.

FakeAuction stands in for ChainReader: it keeps the settlement and token
state in plain attributes and hands out write calls as tuples. FakeWallet
"mines" those tuples against the FakeAuction, so a test can drive a whole
bid flow without a node.
"""

import asyncio
from decimal import Decimal

import pytest

from dutchbid.core.config import ClientConfig, PollIntervals
from dutchbid.core.errors import PreconditionError, TransactionError, UserDeclinedError
from dutchbid.core.models import AllocationRecord, AuctionSnapshot, ClearingQuote, TxReceipt
from dutchbid.fhe.provider import MockEncryptionProvider, ProviderStatus

BIDDER = "0x" + "11" * 20
AUCTION = "0x" + "22" * 20
TOKEN = "0x" + "33" * 20

START = 1_700_000_000


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Settable wall clock."""

    def __init__(self, now: int = START):
        self.now = now

    def __call__(self) -> float:
        return float(self.now)


class FakeAuction:
    """In-memory settlement contract plus payment token."""

    def __init__(self):
        self.auction_address = AUCTION
        self.token_address = TOKEN

        self.auction_end_time = START + 3600
        self.claim_start_time = START + 7200
        self.finalized = False
        self.indicative = Decimal("0")
        self.final = Decimal("0")
        self.token_supply = Decimal("1000000")
        self.floor = Decimal("0")

        self.allowances = {}
        self.balances = {BIDDER: Decimal("1000000")}
        self.bids = {}          # owner -> [(price, quantity), ...]
        self.allocations = {}   # owner -> AllocationRecord

        self.failing = set()    # read names that raise
        self.reads = []

    def _read(self, name):
        self.reads.append(name)
        if name in self.failing:
            raise ConnectionError(f"{name}: RPC unavailable")

    # Reads

    async def snapshot(self):
        self._read("snapshot")
        return AuctionSnapshot(
            auction_end_time=self.auction_end_time,
            claim_start_time=self.claim_start_time,
            price_finalized=self.finalized,
            clearing_price_indicative=self.indicative,
            clearing_price_final=self.final,
            token_supply=self.token_supply,
            floor_price=self.floor,
        )

    async def clearing_quote(self, fallback):
        self._read("clearing_quote")
        return ClearingQuote.resolve(
            finalized=self.finalized,
            final=self.final,
            indicative=self.indicative,
            floor=self.floor,
            fallback=fallback,
        )

    async def price_finalized(self):
        self._read("price_finalized")
        return self.finalized

    async def user_bids(self, user):
        self._read("user_bids")
        bids = self.bids.get(user, [])
        return [price for price, _ in bids], len(bids)

    async def bid_count(self, user):
        self._read("bid_count")
        return len(self.bids.get(user, []))

    async def user_allocation(self, user):
        self._read("user_allocation")
        return self.allocations.get(
            user, AllocationRecord(allocated_tokens=Decimal("0"), refund_due=Decimal("0"), claimed=False)
        )

    async def balance_of(self, user):
        self._read("balance_of")
        return self.balances.get(user, Decimal("0"))

    async def allowance(self, owner):
        self._read("allowance")
        return self.allowances.get(owner, Decimal("0"))

    # Unsent write calls

    def approve_call(self, amount):
        return ("approve", amount)

    def place_bid_call(self, handle, proof, total_cost, quantity):
        return ("placeBid", handle, proof, total_cost, quantity)

    def cancel_bid_call(self, index):
        return ("cancelBid", index)

    def claim_call(self):
        return ("claimTokensAndRefund",)

    def finalize_call(self):
        return ("finalizePrices",)

    # Mining

    def execute(self, sender, call):
        name, args = call[0], call[1:]

        if name == "approve":
            self.allowances[sender] = args[0]

        elif name == "placeBid":
            _, _, total_cost, quantity = args
            if self.allowances.get(sender, Decimal("0")) < total_cost:
                raise TransactionError("ERC20: insufficient allowance")
            price = total_cost / quantity
            self.allowances[sender] -= total_cost
            self.balances[sender] = self.balances.get(sender, Decimal("0")) - total_cost
            self.bids.setdefault(sender, []).append((price, quantity))
            self.indicative = max(self.indicative, price)

        elif name == "cancelBid":
            bids = self.bids.get(sender, [])
            index = args[0]
            if index >= len(bids):
                raise TransactionError("Invalid bid index")
            # The contract compacts by moving later bids down
            bids.pop(index)

        elif name == "claimTokensAndRefund":
            current = self.allocations.get(sender)
            if current is None or current.claimed:
                raise TransactionError("Nothing to claim")
            self.allocations[sender] = AllocationRecord(
                allocated_tokens=current.allocated_tokens,
                refund_due=current.refund_due,
                claimed=True,
            )

        elif name == "finalizePrices":
            self.finalized = True
            self.final = self.indicative or self.floor


class FakeWallet:
    """
    Wallet double: reverts are raised before the prompt (as simulation
    would), declines after it, and everything else is mined on `chain`.
    """

    def __init__(self, chain: FakeAuction, address: str = BIDDER, connected: bool = True):
        self.chain = chain
        self._address = address
        self.connected = connected

        self.prompts = []       # labels, in prompt order
        self.sent = []          # calls that were mined
        self.decline = set()    # labels the user rejects
        self.reverts = {}       # label -> revert reason
        self.gate = None        # asyncio.Event that holds send() open
        self.holds = {}         # label -> asyncio.Event holding that send open

        self._block = 100

    @property
    def is_connected(self) -> bool:
        return self.connected

    @property
    def address(self):
        return self._address if self.connected else None

    @property
    def sent_names(self):
        return [call[0] for call in self.sent]

    async def send(self, call, label):
        if not self.connected:
            raise PreconditionError("Wallet not connected")
        if label in self.reverts:
            raise TransactionError(self.reverts[label])

        self.prompts.append(label)
        if label in self.decline:
            raise UserDeclinedError(label)

        if self.gate is not None:
            await self.gate.wait()
        if label in self.holds:
            await self.holds[label].wait()

        self.chain.execute(self.address, call)
        self.sent.append(call)
        self._block += 1
        return TxReceipt(tx_hash=f"0x{self._block:064x}", block_number=self._block, status=1)


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def bidder():
    return BIDDER


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chain():
    return FakeAuction()


@pytest.fixture
def wallet(chain):
    return FakeWallet(chain)


@pytest.fixture
def provider():
    """Mock encryption provider already initialized for the local chain."""
    p = MockEncryptionProvider()
    p.chain_id = 31337
    p.status = ProviderStatus.READY
    return p


@pytest.fixture
def config():
    return ClientConfig(
        chain_id=31337,
        auction_address=AUCTION,
        token_address=TOKEN,
        intervals=PollIntervals(
            snapshot=60, clearing_price=60, balance=60, bids=60, allocation=60, countdown=60
        ),
    )


@pytest.fixture
def settled():
    return settle
