"""
Phase Resolver - derives the auction phase from time and on-chain flags.

The phase is never stored as a state machine: the settlement contract can
change state without any client action (an admin finalizing prices while a
bidder is watching), so it is recomputed from the latest snapshot on every
poll.

Resolution order (first match wins):
1. price finalized          -> CLAIMING
2. now < auction end        -> BIDDING
3. now < claim start        -> FINALIZATION
4. otherwise                -> CLAIMING

When auction end equals claim start, FINALIZATION is unreachable.
"""

from enum import Enum

from dutchbid.core.models import AuctionSnapshot


class Phase(Enum):
    """Client-derived stage of the auction lifecycle."""
    BIDDING = "bidding"
    FINALIZATION = "finalization"
    CLAIMING = "claiming"


AUCTION_ENDED = "Auction Ended"


def resolve_phase(
    now: int,
    auction_end: int,
    claim_start: int,
    price_finalized: bool,
) -> Phase:
    """Return the single phase for the given time and contract state."""
    if price_finalized:
        return Phase.CLAIMING
    if now < auction_end:
        return Phase.BIDDING
    if now < claim_start:
        return Phase.FINALIZATION
    return Phase.CLAIMING


def phase_of(snapshot: AuctionSnapshot, now: int) -> Phase:
    """Resolve the phase for a snapshot at wall-clock time `now`."""
    return resolve_phase(
        now,
        snapshot.auction_end_time,
        snapshot.claim_start_time,
        snapshot.price_finalized,
    )


def time_remaining(now: int, auction_end: int) -> int:
    """Seconds until the auction end, floored at zero."""
    return max(0, auction_end - now)


def format_countdown(seconds: int) -> str:
    """Render a countdown as '1d 2h 3m 4s'."""
    if seconds <= 0:
        return AUCTION_ENDED

    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{days}d {hours}h {minutes}m {secs}s"
