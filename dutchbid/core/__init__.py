"""
dutchbid core: phase resolution, bid ledger cache, submission pipeline,
lifecycle actions and polling.
"""
from dutchbid.core.errors import (
    AllowanceError,
    BidError,
    EncryptionError,
    PreconditionError,
    StaleReadError,
    SubmissionError,
    TransactionError,
    UserDeclinedError,
)
from dutchbid.core.models import (
    UNKNOWN,
    AllocationRecord,
    AuctionSnapshot,
    BidRecord,
    ClearingQuote,
    PendingBidIntent,
    TxReceipt,
)
from dutchbid.core.phase import Phase, format_countdown, resolve_phase, time_remaining
from dutchbid.core.ledger_cache import BidLedgerCache, reconcile

__all__ = [
    # Errors
    "AllowanceError",
    "BidError",
    "EncryptionError",
    "PreconditionError",
    "StaleReadError",
    "SubmissionError",
    "TransactionError",
    "UserDeclinedError",
    # Models
    "UNKNOWN",
    "AllocationRecord",
    "AuctionSnapshot",
    "BidRecord",
    "ClearingQuote",
    "PendingBidIntent",
    "TxReceipt",
    # Phase
    "Phase",
    "format_countdown",
    "resolve_phase",
    "time_remaining",
    # Ledger cache
    "BidLedgerCache",
    "reconcile",
]
