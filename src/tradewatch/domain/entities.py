# src/tradewatch/domain/entities.py
"""
Core domain types: monitored accounts, their categories, ledger control values
and the process-wide bootstrap state.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from tradewatch.errors import BootstrapStateError

FAST_CYCLE_DEFAULT_THRESHOLD_SECONDS = 15 * 60

# --- ENUMERATIONS ---

class DeliveryTier(Enum):
    """Marks how a ledger entry came to be delivered."""
    HISTORICAL = "HISTORICAL"  # Marked delivered by bootstrap sync; never acted on.
    LIVE = "LIVE"  # Claimed by the execution consumer.

class BootstrapPhase(Enum):
    UNINITIALIZED = "UNINITIALIZED"
    SYNCING = "SYNCING"
    READY = "READY"

# --- ACCOUNT CATEGORIES ---

@dataclass(frozen=True)
class Standard:
    """Regular account: events are persisted and deduplicated through the ledger."""

@dataclass(frozen=True)
class FastCycle:
    """Time-critical account: events bypass the ledger and go stale quickly."""
    staleness_threshold_seconds: int = FAST_CYCLE_DEFAULT_THRESHOLD_SECONDS

AccountCategory = Union[Standard, FastCycle]

def is_fast_cycle(category: AccountCategory) -> bool:
    if isinstance(category, FastCycle):
        return True
    if isinstance(category, Standard):
        return False
    raise TypeError(f"Unknown account category: {category!r}")

def category_name(category: AccountCategory) -> str:
    return "fast-cycle" if is_fast_cycle(category) else "standard"

# --- ENTITIES ---

@dataclass(frozen=True)
class AccountRecord:
    """A monitored account. Loaded once at startup and never mutated."""
    account_id: str
    display_name: Optional[str] = None
    category: AccountCategory = field(default_factory=Standard)

    @property
    def label(self) -> str:
        short = f"{self.account_id[:6]}...{self.account_id[-4:]}"
        return f"{self.display_name} ({short})" if self.display_name else short

@dataclass
class LedgerEntry:
    """Read-side view of a persisted trade event."""
    account_id: str
    transaction_hash: str
    timestamp: int
    condition_id: Optional[str] = None
    type: Optional[str] = None
    side: Optional[str] = None
    size: Optional[float] = None
    usdc_size: Optional[float] = None
    price: Optional[float] = None
    asset: Optional[str] = None
    outcome_index: Optional[int] = None
    title: Optional[str] = None
    slug: Optional[str] = None
    delivered: bool = False
    delivered_tier: Optional[DeliveryTier] = None
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

# --- BOOTSTRAP STATE ---

class BootstrapState:
    """
    One-way lifecycle UNINITIALIZED -> SYNCING -> READY, owned by the monitor
    instance. The execution consumer awaits `wait_ready()` before claiming
    anything from the ledger.
    """

    def __init__(self) -> None:
        self._phase = BootstrapPhase.UNINITIALIZED
        self._ready = asyncio.Event()
        self.ready_at: Optional[datetime] = None

    @property
    def phase(self) -> BootstrapPhase:
        return self._phase

    @property
    def is_ready(self) -> bool:
        return self._phase is BootstrapPhase.READY

    def begin(self) -> None:
        if self._phase is not BootstrapPhase.UNINITIALIZED:
            raise BootstrapStateError(f"Cannot begin bootstrap from {self._phase.value}")
        self._phase = BootstrapPhase.SYNCING

    def mark_ready(self) -> None:
        if self._phase is not BootstrapPhase.SYNCING:
            raise BootstrapStateError(f"Cannot mark ready from {self._phase.value}")
        self._phase = BootstrapPhase.READY
        self.ready_at = datetime.now(timezone.utc)
        self._ready.set()

    async def wait_ready(self) -> None:
        await self._ready.wait()
