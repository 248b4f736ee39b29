# src/tradewatch/application/services/fast_cycle_feed.py
"""
In-memory stream of fresh events from fast-cycle accounts.

Fast-cycle events never reach the ledger, so there is no row to claim. The
feed is the consumer-side short-lived dedup instead: a transaction hash is
published at most once while it is still fresh, and forgotten after that.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from tradewatch.domain.entities import AccountRecord
from tradewatch.infrastructure.market.schemas import TradeEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FastCycleSignal:
    account: AccountRecord
    event: TradeEvent
    detected_at: float


class FastCycleFeed:

    def __init__(self, ttl_seconds: int, maxsize: int = 10000):
        self.ttl_seconds = ttl_seconds
        self.queue: "asyncio.Queue[FastCycleSignal]" = asyncio.Queue(maxsize=maxsize)
        self._published: Dict[str, float] = {}

    def _evict(self, now: float) -> None:
        expired = [k for k, t in self._published.items() if now - t >= self.ttl_seconds]
        for k in expired:
            del self._published[k]

    def publish(self, account: AccountRecord, event: TradeEvent, now: float) -> bool:
        """Queue `event` unless it was already published within the TTL. Returns True if queued."""
        self._evict(now)
        key = f"{account.account_id}:{event.transaction_hash}"
        if key in self._published:
            return False
        if self.queue.full():
            log.warning("Fast-cycle feed full; dropping signal for %s", account.label)
            return False
        self._published[key] = now
        self.queue.put_nowait(FastCycleSignal(account=account, event=event, detected_at=now))
        return True

    async def get(self, timeout: Optional[float] = None) -> Optional[FastCycleSignal]:
        if timeout is None:
            return await self.queue.get()
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def qsize(self) -> int:
        return self.queue.qsize()
