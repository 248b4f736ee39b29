# src/tradewatch/infrastructure/sched/clock.py
"""
Time source and cancellable timer for the poll loop.

The loop never calls `asyncio.sleep` or `time.time` directly; it goes through a
`Clock`, so tests can substitute a clock whose time only moves when told to.
"""

import asyncio
import time


class StopToken:
    """Cooperative cancellation flag. Setting it wakes any pending `Clock.sleep`."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class Clock:
    """Wall-clock time in unix seconds plus an interruptible delay."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float, token: StopToken = None) -> None:
        """Wait `seconds`, returning early if `token` is set."""
        if token is None:
            await asyncio.sleep(seconds)
            return
        if token.is_set:
            return
        try:
            await asyncio.wait_for(token.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
