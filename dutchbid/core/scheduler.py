"""
Polling Scheduler - periodic refresh of every read-derived value.

Each data family (snapshot, clearing price, balance, bids, allocation,
countdown) has its own asyncio task and interval. Families are independent:
one failing or slow family never delays another.

Per family:
- cycles never overlap; a triggered cycle waits for the running one
- a successful cycle's result replaces the previous value in full
- a failed cycle is logged and leaves the previous value in place
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from dutchbid.utils.logger import get_logger

logger = get_logger("scheduler")


@dataclass
class PollingFamily:
    """
    One independently refreshed data family.

    Attributes:
        name: family name, used by trigger()
        interval: seconds between cycles
        fetch: coroutine producing the new value
        apply: callback receiving the new value
        enabled: optional predicate; disabled families skip their cycles
    """
    name: str
    interval: float
    fetch: Callable[[], Awaitable[Any]]
    apply: Callable[[Any], None]
    enabled: Optional[Callable[[], bool]] = None

    # Stats
    cycles: int = 0
    failures: int = 0
    last_success: Optional[float] = None
    last_error: Optional[str] = None

    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    _wake: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_enabled(self) -> bool:
        return self.enabled is None or self.enabled()


class PollingScheduler:
    """Runs one refresh loop per registered family."""

    def __init__(self):
        self.families: Dict[str, PollingFamily] = {}
        self._running = False
        self._oneoff: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    def register(
        self,
        name: str,
        interval: float,
        fetch: Callable[[], Awaitable[Any]],
        apply: Callable[[Any], None],
        enabled: Optional[Callable[[], bool]] = None,
    ) -> PollingFamily:
        """Register a family. Names are unique."""
        if name in self.families:
            raise ValueError(f"Polling family already registered: {name}")
        if interval <= 0:
            raise ValueError(f"Interval must be > 0, got {interval}")

        family = PollingFamily(name=name, interval=interval, fetch=fetch, apply=apply, enabled=enabled)
        self.families[name] = family
        return family

    async def run_cycle(self, name: str) -> bool:
        """
        Run a single refresh cycle for a family.

        Returns:
            True if a new value was applied
        """
        family = self.families[name]
        if not family.is_enabled:
            return False

        async with family._lock:
            family.cycles += 1
            try:
                result = await family.fetch()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                family.failures += 1
                family.last_error = str(e)
                logger.warning(f"[{name}] refresh failed, keeping previous value: {e}")
                return False

            try:
                family.apply(result)
            except Exception as e:
                family.failures += 1
                family.last_error = str(e)
                logger.error(f"[{name}] could not apply refreshed value: {e}")
                return False

            family.last_success = time.time()
            family.last_error = None
            return True

    async def _loop(self, family: PollingFamily) -> None:
        while self._running:
            await self.run_cycle(family.name)
            try:
                await asyncio.wait_for(family._wake.wait(), timeout=family.interval)
            except asyncio.TimeoutError:
                pass
            family._wake.clear()

    def start(self) -> None:
        """Start every family's loop. Must be called inside a running event loop."""
        if self._running:
            return
        self._running = True
        for family in self.families.values():
            family._task = asyncio.create_task(self._loop(family), name=f"poll-{family.name}")
        logger.info(f"Polling started: {', '.join(self.families)}")

    def trigger(self, name: str) -> None:
        """Request an out-of-cycle refresh of one family."""
        family = self.families.get(name)
        if family is None:
            logger.debug(f"Ignoring trigger for unknown family {name}")
            return

        if self._running and family._task is not None:
            family._wake.set()
            return

        # Not polling: run one cycle in the background
        task = asyncio.get_running_loop().create_task(self.run_cycle(name))
        self._oneoff.add(task)
        task.add_done_callback(self._oneoff.discard)

    def trigger_all(self, exclude: Optional[str] = None) -> None:
        for name in self.families:
            if name != exclude:
                self.trigger(name)

    async def drain(self) -> None:
        """Wait for any one-off cycles started by trigger()."""
        if self._oneoff:
            await asyncio.gather(*list(self._oneoff), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel every loop and wait for them to finish."""
        self._running = False
        tasks = [f._task for f in self.families.values() if f._task is not None]
        tasks.extend(self._oneoff)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for family in self.families.values():
            family._task = None
        self._oneoff.clear()
        logger.info("Polling stopped")
