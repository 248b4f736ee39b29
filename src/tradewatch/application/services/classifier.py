# File: src/tradewatch/application/services/classifier.py
"""
Per-event decision pipeline.

Rules are evaluated in a fixed order and the first match wins:
  1. too old (or malformed)            -> DROP_STALE, silent
  2. disabled sub-kind (micro-interval) -> DROP_SUBKIND, logged once per hash
  3. fast-cycle account                 -> DROP_FAST_CYCLE_STALE (logged once per logical trade)
                                           or FAST_CYCLE_FRESH (never persisted)
  4. ledger unavailable                 -> DETECTED_UNPERSISTED
  5. otherwise                          -> PERSIST (caller does the existence check)

Cheap timestamp/pattern checks come before anything that needs the ledger.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Type

from tradewatch.domain.entities import AccountRecord, FastCycle, Standard
from tradewatch.infrastructure.market.schemas import TradeEvent

log = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class Verdict(Enum):
    DROP_STALE = "stale"
    DROP_SUBKIND = "subkind"
    DROP_FAST_CYCLE_STALE = "fast_cycle_stale"
    FAST_CYCLE_FRESH = "fast_cycle_fresh"
    DETECTED_UNPERSISTED = "ledger_unavailable"
    PERSIST = "persist"


@dataclass(frozen=True)
class Decision:
    verdict: Verdict
    reason: Optional[str] = None

    @property
    def is_drop(self) -> bool:
        return self.verdict in (Verdict.DROP_STALE, Verdict.DROP_SUBKIND, Verdict.DROP_FAST_CYCLE_STALE)


# ---------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------
def stale_cutoff(now: float, stale_window_hours: int) -> int:
    return int(now) - stale_window_hours * SECONDS_PER_HOUR


def is_malformed(event: TradeEvent) -> bool:
    return event.timestamp is None or not event.transaction_hash


def is_too_old(event: TradeEvent, now: float, stale_window_hours: int) -> bool:
    """Malformed events fail safe and count as too old."""
    if is_malformed(event):
        return True
    return event.timestamp < stale_cutoff(now, stale_window_hours)


def event_age_seconds(event: TradeEvent, now: float) -> int:
    return int(now) - int(event.timestamp)


def is_fast_cycle_stale(event: TradeEvent, now: float, category: FastCycle) -> bool:
    """Exclusive upper bound: an event exactly at the threshold is stale."""
    return event_age_seconds(event, now) >= category.staleness_threshold_seconds


def logical_trade_key(account_id: str, event: TradeEvent) -> str:
    """
    Coarser than the transaction hash: the same logical position change can
    arrive under several hashes within the same hour.
    """
    hour_bucket = int(event.timestamp) // SECONDS_PER_HOUR
    return f"{account_id}:{event.condition_id}:{event.type}:{hour_bucket}"


# ---------------------------------------------------------------------
# Sub-kind filters
# ---------------------------------------------------------------------
_UPDOWN_TITLE_RE = re.compile(
    r"up or down\b.*?(\d{1,2}):(\d{2})\s*([AP]M)\s*-\s*(\d{1,2}):(\d{2})\s*([AP]M)",
    re.IGNORECASE,
)


def _minutes_of_day(hour: str, minute: str, meridiem: str) -> int:
    h = int(hour) % 12
    if meridiem.upper() == "PM":
        h += 12
    return h * 60 + int(minute)


def title_interval_minutes(title: Optional[str]) -> Optional[int]:
    """'Bitcoin Up or Down - November 5, 3:15PM-3:30PM ET' -> 15. Daily/hourly titles -> None."""
    if not title:
        return None
    m = _UPDOWN_TITLE_RE.search(title)
    if not m:
        return None
    start = _minutes_of_day(m.group(1), m.group(2), m.group(3))
    end = _minutes_of_day(m.group(4), m.group(5), m.group(6))
    return (end - start) % (24 * 60)


@dataclass(frozen=True)
class SubKindFilter:
    """
    Drops events of one micro-interval market kind unless `enabled`.
    Accounts whose category is in `exempt_categories` are never filtered.
    """
    name: str
    interval_minutes: int
    slug_pattern: "re.Pattern[str]"
    enabled: bool = False
    exempt_categories: Tuple[Type, ...] = (FastCycle,)

    def applies_to(self, account: AccountRecord) -> bool:
        return not isinstance(account.category, self.exempt_categories)

    def matches(self, event: TradeEvent) -> bool:
        for slug in (event.slug, event.event_slug):
            if slug and self.slug_pattern.search(slug):
                return True
        return title_interval_minutes(event.title) == self.interval_minutes


def default_subkind_filters(enable_15m: bool = False, enable_5m: bool = False) -> List[SubKindFilter]:
    return [
        SubKindFilter(
            name="updown_15m",
            interval_minutes=15,
            slug_pattern=re.compile(r"-updown-15m-", re.IGNORECASE),
            enabled=enable_15m,
        ),
        SubKindFilter(
            name="updown_5m",
            interval_minutes=5,
            slug_pattern=re.compile(r"-updown-5m-", re.IGNORECASE),
            enabled=enable_5m,
        ),
    ]


# ---------------------------------------------------------------------
# Log suppression
# ---------------------------------------------------------------------
class SuppressionSet:
    """
    Remembers keys that were already logged. With `ttl_seconds == 0` entries
    live for the process lifetime; otherwise they expire and may be logged again.
    """

    def __init__(self, ttl_seconds: int = 0, sweep_every: int = 1024):
        self.ttl_seconds = ttl_seconds
        self._seen: Dict[str, float] = {}
        self._sweep_every = sweep_every
        self._adds_since_sweep = 0

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def first_time(self, key: str, now: float) -> bool:
        """Record `key`; True if it was not already (validly) recorded."""
        seen_at = self._seen.get(key)
        if seen_at is not None and (not self.ttl_seconds or now - seen_at < self.ttl_seconds):
            return False
        self._seen[key] = now
        self._adds_since_sweep += 1
        if self.ttl_seconds and self._adds_since_sweep >= self._sweep_every:
            self._sweep(now)
        return True

    def _sweep(self, now: float) -> None:
        self._adds_since_sweep = 0
        expired = [k for k, t in self._seen.items() if now - t >= self.ttl_seconds]
        for k in expired:
            del self._seen[k]


# ---------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------
class EventClassifier:

    def __init__(
        self,
        stale_window_hours: int,
        subkind_filters: Optional[Iterable[SubKindFilter]] = None,
        suppression_ttl_seconds: int = 0,
    ):
        self.stale_window_hours = stale_window_hours
        self.subkind_filters = list(subkind_filters if subkind_filters is not None else default_subkind_filters())
        self._subkind_logged: Dict[str, SuppressionSet] = {
            f.name: SuppressionSet(suppression_ttl_seconds) for f in self.subkind_filters
        }
        self._fast_cycle_logged = SuppressionSet(suppression_ttl_seconds)

    def classify(self, account: AccountRecord, event: TradeEvent, now: float, ledger_available: bool) -> Decision:
        # 1. Too old / malformed
        if is_too_old(event, now, self.stale_window_hours):
            return Decision(Verdict.DROP_STALE)

        # 2. Sub-kind filters
        for subkind in self.subkind_filters:
            if subkind.enabled or not subkind.applies_to(account):
                continue
            if subkind.matches(event):
                if self._subkind_logged[subkind.name].first_time(event.transaction_hash, now):
                    log.info(
                        "Skipping %s trade for %s (disabled): %s",
                        subkind.name, account.label, event.title or event.slug,
                    )
                return Decision(Verdict.DROP_SUBKIND, reason=subkind.name)

        # 3. Category handling
        category = account.category
        if isinstance(category, FastCycle):
            if is_fast_cycle_stale(event, now, category):
                key = logical_trade_key(account.account_id, event)
                if self._fast_cycle_logged.first_time(key, now):
                    log.info(
                        "Skipping stale fast-cycle trade for %s: age %ds >= %ds (%s)",
                        account.label, event_age_seconds(event, now),
                        category.staleness_threshold_seconds, event.title or event.condition_id,
                    )
                return Decision(Verdict.DROP_FAST_CYCLE_STALE)
            return Decision(Verdict.FAST_CYCLE_FRESH)
        if not isinstance(category, Standard):
            raise TypeError(f"Unknown account category: {category!r}")

        # 4. Ledger unavailable
        if not ledger_available:
            return Decision(Verdict.DETECTED_UNPERSISTED)

        # 5. Default path
        return Decision(Verdict.PERSIST)
