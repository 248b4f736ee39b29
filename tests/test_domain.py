import asyncio

import pytest

from tradewatch.domain.entities import (
    AccountRecord,
    BootstrapPhase,
    BootstrapState,
    FastCycle,
    Standard,
    category_name,
    is_fast_cycle,
)
from tradewatch.errors import (
    BootstrapStateError,
    ConfigurationError,
    LedgerError,
    NetworkError,
    is_operational_error,
)

ADDR = "0x1234567890abcdef1234567890abcdef12345678"


def test_bootstrap_state_initial_phase():
    state = BootstrapState()
    assert state.phase == BootstrapPhase.UNINITIALIZED
    assert not state.is_ready
    assert state.ready_at is None

def test_bootstrap_state_walks_forward_once():
    state = BootstrapState()
    state.begin()
    assert state.phase == BootstrapPhase.SYNCING
    assert not state.is_ready
    state.mark_ready()
    assert state.phase == BootstrapPhase.READY
    assert state.is_ready
    assert state.ready_at is not None

def test_bootstrap_state_rejects_skipping_syncing():
    state = BootstrapState()
    with pytest.raises(BootstrapStateError):
        state.mark_ready()
    assert state.phase == BootstrapPhase.UNINITIALIZED

def test_bootstrap_state_cannot_go_backwards():
    state = BootstrapState()
    state.begin()
    state.mark_ready()
    with pytest.raises(BootstrapStateError):
        state.begin()
    with pytest.raises(BootstrapStateError):
        state.mark_ready()
    assert state.is_ready

@pytest.mark.asyncio
async def test_wait_ready_releases_waiters():
    state = BootstrapState()
    waiter = asyncio.create_task(state.wait_ready())
    await asyncio.sleep(0)
    assert not waiter.done()
    state.begin()
    state.mark_ready()
    await asyncio.wait_for(waiter, timeout=1)

def test_category_matching_is_exhaustive():
    assert is_fast_cycle(FastCycle()) is True
    assert is_fast_cycle(Standard()) is False
    assert category_name(FastCycle()) == "fast-cycle"
    assert category_name(Standard()) == "standard"
    with pytest.raises(TypeError):
        is_fast_cycle("standard")

def test_fast_cycle_default_threshold_is_fifteen_minutes():
    assert FastCycle().staleness_threshold_seconds == 900

def test_account_record_label_shortens_address():
    assert AccountRecord(account_id=ADDR).label == "0x1234...5678"
    assert AccountRecord(account_id=ADDR, display_name="whale").label == "whale (0x1234...5678)"

def test_account_record_defaults_to_standard_and_is_frozen():
    record = AccountRecord(account_id=ADDR)
    assert record.category == Standard()
    with pytest.raises(Exception):
        record.account_id = "0x0"

def test_error_operational_flags():
    assert is_operational_error(NetworkError("boom", url="http://x"))
    assert is_operational_error(LedgerError("down"))
    assert is_operational_error(ConfigurationError("bad"))
    assert not is_operational_error(BootstrapStateError("illegal"))
    assert not is_operational_error(ValueError("plain"))
    assert NetworkError("boom").code == "NETWORK_ERROR"
    assert LedgerError("down").code == "DATABASE_ERROR"
