"""
Bid Ledger Cache - joins on-chain bid prices with locally known quantities.

The settlement contract exposes only the price of each bid; the quantity is
an FHE ciphertext. A session remembers the quantities it submitted, keyed by
the bid's index, and merges them back in when the price list is refreshed.

Quantities for bids placed by other sessions (or before a restart) stay
UNKNOWN. The client cannot decrypt them, so it never guesses.
"""

from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from dutchbid.core.models import UNKNOWN, BidRecord
from dutchbid.utils.logger import get_logger

logger = get_logger("ledger_cache")


def reconcile(
    prices: Sequence[Decimal],
    local_quantities: Mapping[int, Decimal],
) -> List[BidRecord]:
    """
    Merge on-chain prices with local quantities.

    Position in `prices` is the bid index. The result always has exactly
    len(prices) records; indices are never dropped or invented.
    """
    return [
        BidRecord(
            index=index,
            price=price,
            quantity=local_quantities.get(index, UNKNOWN),
        )
        for index, price in enumerate(prices)
    ]


class BidLedgerCache:
    """
    Session-owned index -> quantity mapping.

    Survives snapshot replacement: polls replace the price list, this cache
    is merged in on top of it.

    `generation` counts invalidations. A writer that read a bid index before
    awaiting a transaction passes the generation it saw; if a cancellation
    invalidated the cache in between, that index may name a different bid
    and the write is dropped.
    """

    def __init__(self):
        self._quantities: Dict[int, Decimal] = {}
        self.generation = 0

    def record(self, index: int, quantity: Decimal, generation: Optional[int] = None) -> bool:
        """
        Remember the quantity submitted for the bid at `index`.

        Returns:
            False when `generation` is given and no longer current
        """
        if generation is not None and generation != self.generation:
            logger.warning(
                f"Not caching quantity for bid #{index}: indices changed while it was placed"
            )
            return False

        self._quantities[index] = quantity
        logger.debug(f"Recorded quantity {quantity} for bid #{index}")
        return True

    def invalidate_all(self) -> None:
        """
        Drop every cached quantity.

        Used after any cancellation: the contract may compact indices, so
        no cached index can be trusted to still name the same bid.
        """
        if self._quantities:
            logger.info(f"Invalidating {len(self._quantities)} cached bid quantities")
        self._quantities.clear()
        self.generation += 1

    def reconcile(self, prices: Sequence[Decimal]) -> List[BidRecord]:
        """Merge a fresh price list with the cached quantities."""
        return reconcile(prices, self._quantities)

    @property
    def quantities(self) -> Dict[int, Decimal]:
        """Copy of the cached mapping."""
        return dict(self._quantities)

    def __len__(self) -> int:
        return len(self._quantities)
