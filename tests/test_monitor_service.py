# tests/test_monitor_service.py
"""
Poll scheduler behaviour: batching, per-event pipeline and stop semantics.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from tradewatch.application.services.account_registry import AccountRegistry
from tradewatch.application.services.bootstrap_service import BootstrapService
from tradewatch.application.services.classifier import EventClassifier
from tradewatch.application.services.fast_cycle_feed import FastCycleFeed
from tradewatch.application.services.monitor_service import CycleReport, MonitorService
from tradewatch.application.services.position_service import PositionService
from tradewatch.domain.entities import AccountRecord
from tradewatch.errors import LedgerError, NetworkError
from tradewatch.infrastructure.market.schemas import PositionSnapshot

from conftest import ADDR_A, NOW, make_address, make_event

pytestmark = pytest.mark.asyncio


def build_monitor(records, client, ledger, clock, notifier, **kwargs) -> MonitorService:
    registry = AccountRegistry(records, ledger)
    return MonitorService(
        registry=registry,
        client=client,
        ledger=ledger,
        classifier=EventClassifier(stale_window_hours=24),
        bootstrap=BootstrapService(registry, client, ledger, lookback_minutes=60, clock=clock),
        positions=PositionService(client, ledger),
        clock=clock,
        notifier=notifier,
        **kwargs,
    )


# --- Per-event pipeline ---

async def test_standard_account_new_event_is_stored_pending(ledger_store, mock_client, clock, mock_notifier, standard_account):
    mock_client.fetch_trade_events.return_value = [make_event(tx="0xnew", age_seconds=300)]
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)

    report = await monitor.run_cycle()

    events = ledger_store.events_for(ADDR_A)
    assert await events.count() == 1
    entry = await events.find_one_by_hash("0xnew")
    assert entry.delivered is False
    assert report.detected == 1
    mock_notifier.notify.assert_awaited_once()
    detection = mock_notifier.notify.await_args.args[0]
    assert detection.persisted is True
    assert detection.latency_seconds == 300
    mock_client.fetch_trade_events.assert_awaited_with(ADDR_A, since=int(NOW) - 24 * 3600)

async def test_repeated_polls_do_not_duplicate(ledger_store, mock_client, clock, mock_notifier, standard_account):
    mock_client.fetch_trade_events.return_value = [make_event(tx="0xsame")]
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)

    await monitor.run_cycle()
    second = await monitor.run_cycle()

    assert await ledger_store.events_for(ADDR_A).count() == 1
    assert second.outcomes[0].duplicates == 1
    assert mock_notifier.notify.await_count == 1

async def test_stale_events_are_never_persisted(ledger_store, mock_client, clock, mock_notifier, standard_account):
    mock_client.fetch_trade_events.return_value = [
        make_event(tx="0xancient", age_seconds=30 * 3600),
        make_event(tx="0xbroken", timestamp=None),
    ]
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)

    report = await monitor.run_cycle()

    assert await ledger_store.events_for(ADDR_A).count() == 0
    assert report.outcomes[0].dropped == 2
    mock_notifier.notify.assert_not_awaited()

async def test_ledger_unavailable_notifies_without_writing(ledger_store, mock_client, clock, mock_notifier, standard_account, monkeypatch):
    mock_client.fetch_trade_events.return_value = [make_event(tx=f"0x{i}") for i in range(3)]
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)
    monkeypatch.setattr(ledger_store, "is_available", AsyncMock(return_value=False))

    report = await monitor.run_cycle()

    assert await ledger_store.events_for(ADDR_A).count() == 0
    assert mock_notifier.notify.await_count == 3
    assert all(not call.args[0].persisted for call in mock_notifier.notify.await_args_list)
    assert report.outcomes[0].unpersisted == 3

async def test_ledger_error_mid_account_degrades_remaining_events(ledger_store, mock_client, clock, mock_notifier, standard_account, monkeypatch):
    mock_client.fetch_trade_events.return_value = [make_event(tx=f"0x{i}") for i in range(3)]
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)
    handle = monitor.registry.get(ADDR_A)
    insert_one = AsyncMock(side_effect=LedgerError("disk full"))
    monkeypatch.setattr(handle.events, "insert_one", insert_one)

    report = await monitor.run_cycle()

    assert report.failed_accounts == []
    assert report.outcomes[0].unpersisted == 3
    insert_one.assert_awaited_once()
    assert mock_notifier.notify.await_count == 3

async def test_fast_cycle_account_never_persists(ledger_store, mock_client, clock, mock_notifier, fast_account):
    mock_client.fetch_trade_events.return_value = [
        make_event(tx="0xfresh", age_seconds=60),
        make_event(tx="0xstale", age_seconds=900),
    ]
    feed = FastCycleFeed(ttl_seconds=900)
    monitor = build_monitor([fast_account], mock_client, ledger_store, clock, mock_notifier, fast_cycle_feed=feed)

    await monitor.run_cycle()
    await monitor.run_cycle()

    assert await ledger_store.events_for(fast_account.account_id).count() == 0
    assert feed.qsize() == 1
    signal = await feed.get(timeout=1)
    assert signal.event.transaction_hash == "0xfresh"
    assert mock_notifier.notify.await_count == 1


# --- Batching ---

async def test_batch_isolation_one_failure_does_not_cancel_siblings(mock_client, clock, mock_notifier):
    addresses = [make_address(i + 1) for i in range(12)]
    failing = addresses[2]
    in_flight = 0
    peak = 0
    completed = []

    async def fetch(account_id, since=None):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        if account_id == failing:
            raise NetworkError("upstream 503")
        completed.append(account_id)
        return []

    mock_client.fetch_trade_events.side_effect = fetch
    records = [AccountRecord(account_id=a) for a in addresses]
    monitor = build_monitor(records, mock_client, None, clock, mock_notifier, batch_size=10)

    report = await monitor.run_cycle()

    assert report.failed_accounts == [failing]
    assert len(report.outcomes) == 11
    assert sorted(completed) == sorted(a for a in addresses if a != failing)
    assert peak == 10

async def test_batch_size_must_be_positive(mock_client, clock, mock_notifier, standard_account):
    with pytest.raises(ValueError):
        build_monitor([standard_account], mock_client, None, clock, mock_notifier, batch_size=0)


# --- Position refresh ---

async def test_positions_refreshed_in_detached_task(ledger_store, mock_client, clock, mock_notifier, standard_account):
    mock_client.fetch_positions.return_value = [PositionSnapshot(asset="1", condition_id="0xc", size=3.0)]
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)

    await monitor.run_cycle()
    await monitor.supervisor.join(timeout=5)

    assert await ledger_store.positions_for(ADDR_A).count() == 1

async def test_concurrent_position_refreshes_do_not_conflict(ledger_store, mock_client, standard_account):
    mock_client.fetch_positions.return_value = [
        PositionSnapshot(asset=str(i), condition_id="0xc", size=float(i)) for i in range(50)
    ]
    handle = AccountRegistry([standard_account], ledger_store).get(ADDR_A)
    service = PositionService(mock_client, ledger_store)

    results = await asyncio.gather(*(service.refresh(handle) for _ in range(4)))

    assert results == [50, 50, 50, 50]
    assert await ledger_store.positions_for(ADDR_A).count() == 50

async def test_slow_position_refresh_is_not_stacked(ledger_store, mock_client, clock, mock_notifier, standard_account):
    release = asyncio.Event()

    async def slow_positions(account_id):
        await release.wait()
        return [PositionSnapshot(asset="1", condition_id="0xc", size=3.0)]

    mock_client.fetch_positions = AsyncMock(side_effect=slow_positions)
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)

    await monitor.run_cycle()
    await monitor.run_cycle()
    await asyncio.sleep(0)
    assert mock_client.fetch_positions.await_count == 1

    release.set()
    await monitor.supervisor.join(timeout=5)
    await monitor.run_cycle()
    await monitor.supervisor.join(timeout=5)
    assert mock_client.fetch_positions.await_count == 2

async def test_position_failure_is_recorded_not_raised(ledger_store, mock_client, clock, mock_notifier, standard_account):
    mock_client.fetch_positions.side_effect = NetworkError("timeout")
    monitor = build_monitor([standard_account], mock_client, ledger_store, clock, mock_notifier)

    report = await monitor.run_cycle()
    await monitor.supervisor.join(timeout=5)

    assert report.failed_accounts == []
    failures = monitor.supervisor.drain_errors()
    assert len(failures) == 1
    assert isinstance(failures[0].error, NetworkError)


# --- Loop lifecycle ---

async def test_run_forever_survives_unexpected_cycle_error(mock_client, clock, mock_notifier, standard_account, monkeypatch, caplog):
    monitor = build_monitor([standard_account], mock_client, None, clock, mock_notifier, interval_seconds=5)
    calls = 0

    async def flaky_cycle():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        if calls == 3:
            monitor.stop()
        return CycleReport()

    monkeypatch.setattr(monitor, "run_cycle", flaky_cycle)

    await asyncio.wait_for(monitor.run_forever(), timeout=5)

    assert calls == 3
    assert clock.sleeps == [5, 5]
    assert monitor.state.is_ready
    assert any("Unexpected error in poll cycle" in r.getMessage() for r in caplog.records)

async def test_stop_lets_in_flight_cycle_finish(mock_client, clock, mock_notifier, standard_account):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def slow_fetch(account_id, since=None):
        entered.set()
        await release.wait()
        return [make_event(tx="0xlate")]

    mock_client.fetch_trade_events.side_effect = slow_fetch
    monitor = build_monitor([standard_account], mock_client, None, clock, mock_notifier)

    await monitor.start()
    await asyncio.wait_for(entered.wait(), timeout=5)
    monitor.stop()
    assert monitor.is_running

    release.set()
    assert await monitor.wait_stopped(5) is True
    assert not monitor.is_running
    assert monitor.cycles == 1
    mock_notifier.notify.assert_awaited_once()

async def test_wait_stopped_reports_timeout(mock_client, clock, mock_notifier, standard_account):
    entered = asyncio.Event()
    release = asyncio.Event()

    async def stuck_fetch(account_id, since=None):
        entered.set()
        await release.wait()
        return []

    mock_client.fetch_trade_events.side_effect = stuck_fetch
    monitor = build_monitor([standard_account], mock_client, None, clock, mock_notifier)
    await monitor.start()
    await asyncio.wait_for(entered.wait(), timeout=5)
    monitor.stop()

    assert await monitor.wait_stopped(0.05) is False
    release.set()
    assert await monitor.wait_stopped(5) is True
