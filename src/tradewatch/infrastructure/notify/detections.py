# src/tradewatch/infrastructure/notify/detections.py
"""
"New trade detected" notifications.

The monitor emits one notification per newly observed event, whether or not
the ledger could record it. The default notifier writes a log line; anything
with the same `notify` coroutine can be plugged in instead.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from tradewatch.domain.entities import AccountRecord
from tradewatch.infrastructure.market.schemas import TradeEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    account: AccountRecord
    event: TradeEvent
    latency_seconds: float
    persisted: bool


class LogNotifier:
    async def notify(self, detection: Detection) -> None:
        suffix = "" if detection.persisted else " [not persisted: ledger unavailable]"
        log.info(
            "New trade detected for %s: %s %s (Latency: %.1fs)%s",
            detection.account.label,
            detection.event.side or "?",
            detection.event.title or detection.event.slug or detection.event.condition_id,
            detection.latency_seconds,
            suffix,
        )


class FanoutNotifier:
    """Forwards each detection to several notifiers; one failing sink does not stop the rest."""

    def __init__(self, sinks: Optional[List] = None):
        self.sinks = list(sinks or [])

    def add(self, sink) -> None:
        self.sinks.append(sink)

    async def notify(self, detection: Detection) -> None:
        for sink in self.sinks:
            try:
                await sink.notify(detection)
            except Exception:
                log.exception("Detection sink %s failed.", type(sink).__name__)
