# tests/conftest.py
"""
Fixtures and test setup for the Pytest suite.
"""

import asyncio
import os
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment variables BEFORE any application code is imported.
os.environ["ENV"] = "test"
os.environ.setdefault("TRACKED_ACCOUNTS", "")

from tradewatch.domain.entities import AccountRecord, FastCycle, Standard
from tradewatch.infrastructure.db.base import make_engine
from tradewatch.infrastructure.db.ledger_repository import LedgerStore
from tradewatch.infrastructure.db.uow import create_tables
from tradewatch.infrastructure.market.schemas import TradeEvent
from tradewatch.infrastructure.sched.clock import Clock, StopToken

NOW = 1_700_000_000.0

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40
ADDR_FAST = "0x" + "f" * 40


def make_address(i: int) -> str:
    return "0x" + f"{i:040x}"


def make_event(tx: str = "0xtx1", age_seconds: int = 300, now: float = NOW, **kwargs) -> TradeEvent:
    """A TRADE event `age_seconds` old relative to `now`."""
    fields = {
        "proxy_wallet": ADDR_A,
        "timestamp": int(now) - age_seconds,
        "condition_id": "0xcond1",
        "type": "TRADE",
        "size": 10.0,
        "usdc_size": 5.0,
        "transaction_hash": tx,
        "price": 0.5,
        "asset": "123456",
        "side": "BUY",
        "outcome_index": 0,
        "title": "Will it rain in Paris tomorrow?",
        "slug": "will-it-rain-in-paris-tomorrow",
    }
    fields.update(kwargs)
    return TradeEvent(**fields)


class FakeClock(Clock):
    """Time only moves when `advance` (or `sleep`) is called."""

    def __init__(self, now: float = NOW):
        self.t = now
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds

    async def sleep(self, seconds: float, token: Optional[StopToken] = None) -> None:
        self.sleeps.append(seconds)
        self.t += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger_store(tmp_path):
    """A real SQLite-backed ledger in a temporary directory."""
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_tables(engine)
    store = LedgerStore(engine)
    yield store
    store.dispose()


@pytest.fixture
def standard_account() -> AccountRecord:
    return AccountRecord(account_id=ADDR_A, display_name="alice", category=Standard())


@pytest.fixture
def fast_account() -> AccountRecord:
    return AccountRecord(account_id=ADDR_FAST, display_name="speedy", category=FastCycle())


@pytest.fixture
def mock_client() -> MagicMock:
    """A DataApiClient stand-in; every account returns no events/positions by default."""
    client = MagicMock()
    client.fetch_trade_events = AsyncMock(return_value=[])
    client.fetch_positions = AsyncMock(return_value=[])
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def mock_notifier() -> MagicMock:
    notifier = MagicMock()
    notifier.notify = AsyncMock()
    return notifier
