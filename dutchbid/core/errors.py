"""
Error taxonomy for bidder actions and polling.

Every action failure is a BidError subclass so the session can turn it into
a user notification at a single boundary. UserDeclinedError is not a fault:
the user rejected a wallet prompt and may simply retry.
"""

from typing import Optional


class BidError(Exception):
    """Base class for all client-side bid action failures."""


class PreconditionError(BidError):
    """Missing wallet/provider/inputs, wrong phase, or action already in flight."""


class AllowanceError(BidError):
    """Token approval transaction failed."""


class EncryptionError(BidError):
    """Encryption provider not ready or returned an incomplete ciphertext/proof."""


class SubmissionError(BidError):
    """On-chain revert or transaction failure."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class UserDeclinedError(BidError):
    """The wallet prompt was rejected by the user."""

    def __init__(self, stage: str):
        super().__init__(f"Wallet prompt declined during {stage}")
        self.stage = stage


class StaleReadError(BidError):
    """A poll returned data inconsistent with fields expected to be monotonic."""


class TransactionError(Exception):
    """
    Wallet-level transaction failure.

    Raised by the wallet; callers translate it into AllowanceError or
    SubmissionError depending on the protocol step.
    """

    def __init__(self, reason: str, tx_hash: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.tx_hash = tx_hash
