# File: src/tradewatch/application/services/monitor_service.py
"""
MonitorService - the poll scheduler.

- Runs bootstrap once, then polls every account on a fixed interval.
- Accounts are processed in batches; concurrency exists only inside a batch and
  one failing account never cancels its siblings.
- Standard accounts: fresh, unseen events are stored with `delivered=False`
  (the execution consumer picks them up via `EventLedger.claim`).
- Fast-cycle accounts: fresh events go to the in-memory FastCycleFeed, never
  to the ledger.
- Position snapshots are refreshed by detached, supervised tasks.
- `stop()` lets an in-flight cycle finish; the loop exits at its next check.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tradewatch.application.services.account_registry import AccountHandle, AccountRegistry
from tradewatch.application.services.bootstrap_service import BootstrapReport, BootstrapService
from tradewatch.application.services.classifier import EventClassifier, Verdict
from tradewatch.application.services.fast_cycle_feed import FastCycleFeed
from tradewatch.application.services.position_service import PositionService
from tradewatch.domain.entities import BootstrapState, category_name
from tradewatch.errors import LedgerError
from tradewatch.infrastructure import metrics
from tradewatch.infrastructure.db.ledger_repository import LedgerStore
from tradewatch.infrastructure.market.data_api_client import DataApiClient
from tradewatch.infrastructure.market.schemas import TradeEvent
from tradewatch.infrastructure.notify.detections import Detection, LogNotifier
from tradewatch.infrastructure.sched.clock import Clock, StopToken
from tradewatch.infrastructure.sched.supervisor import TaskSupervisor

log = logging.getLogger(__name__)


@dataclass
class AccountOutcome:
    account_id: str
    fetched: int = 0
    persisted: int = 0
    unpersisted: int = 0
    fast_cycle: int = 0
    duplicates: int = 0
    dropped: int = 0


@dataclass
class CycleReport:
    outcomes: List[AccountOutcome] = field(default_factory=list)
    failed_accounts: List[str] = field(default_factory=list)

    @property
    def detected(self) -> int:
        return sum(o.persisted + o.unpersisted + o.fast_cycle for o in self.outcomes)


class MonitorService:

    def __init__(
        self,
        registry: AccountRegistry,
        client: DataApiClient,
        ledger: Optional[LedgerStore],
        classifier: EventClassifier,
        bootstrap: BootstrapService,
        positions: PositionService,
        *,
        interval_seconds: float = 1.0,
        batch_size: int = 10,
        clock: Optional[Clock] = None,
        notifier=None,
        fast_cycle_feed: Optional[FastCycleFeed] = None,
        supervisor: Optional[TaskSupervisor] = None,
        state: Optional[BootstrapState] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.registry = registry
        self.client = client
        self.ledger = ledger
        self.classifier = classifier
        self.bootstrap = bootstrap
        self.positions = positions
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.clock = clock or Clock()
        self.notifier = notifier or LogNotifier()
        self.fast_cycle_feed = fast_cycle_feed
        self.supervisor = supervisor or TaskSupervisor()
        self.state = state or BootstrapState()

        self._stop = StopToken()
        self._loop_task: Optional[asyncio.Task] = None
        self._position_tasks: Dict[str, asyncio.Task] = {}
        self.cycles = 0

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------
    async def start(self) -> BootstrapReport:
        """Run bootstrap to completion, then start the poll loop in the background."""
        if self._loop_task and not self._loop_task.done():
            log.warning("MonitorService already running.")
            return self.bootstrap.last_report or BootstrapReport()
        report = await self.bootstrap.run(self.state)
        self._loop_task = asyncio.create_task(self._loop(), name="tradewatch-poll-loop")
        log.info(
            "Trade monitor started: %d account(s), interval %ss, batch size %d",
            len(self.registry), self.interval_seconds, self.batch_size,
        )
        return report

    async def run_forever(self) -> None:
        await self.bootstrap.run(self.state)
        await self._loop()

    def stop(self) -> None:
        if not self._stop.is_set:
            log.info("Trade monitor shutdown requested...")
        self._stop.set()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def wait_stopped(self, grace_seconds: Optional[float] = None) -> bool:
        """Wait for the loop to exit. Returns False if it is still running after `grace_seconds`."""
        if self._loop_task is None:
            return True
        try:
            await asyncio.wait_for(asyncio.shield(self._loop_task), timeout=grace_seconds)
        except asyncio.TimeoutError:
            log.warning("Poll loop still running after %ss grace period.", grace_seconds)
            return False
        return True

    async def _loop(self) -> None:
        while not self._stop.is_set:
            try:
                await self.run_cycle()
            except Exception:
                log.exception("Unexpected error in poll cycle; continuing.")
            if self._stop.is_set:
                break
            await self.clock.sleep(self.interval_seconds, self._stop)
        log.info("Trade monitor stopped after %d cycle(s).", self.cycles)

    # ---------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------
    async def run_cycle(self) -> CycleReport:
        report = CycleReport()
        handles = self.registry.handles
        with metrics.CYCLE_LATENCY.time():
            for i in range(0, len(handles), self.batch_size):
                batch = handles[i:i + self.batch_size]
                results = await asyncio.gather(
                    *(self.process_account(h) for h in batch), return_exceptions=True
                )
                for handle, result in zip(batch, results):
                    if isinstance(result, BaseException):
                        log.error("Error fetching data for %s: %s", handle.record.label, result)
                        metrics.ACCOUNT_FAILURES.labels(stage="poll").inc()
                        report.failed_accounts.append(handle.account_id)
                    else:
                        report.outcomes.append(result)
        self.cycles += 1
        return report

    async def process_account(self, handle: AccountHandle) -> AccountOutcome:
        outcome = AccountOutcome(account_id=handle.account_id)
        now = self.clock.now()
        since = int(now) - self.classifier.stale_window_hours * 3600
        events = await self.client.fetch_trade_events(handle.account_id, since=since)
        outcome.fetched = len(events)

        ledger_available = await self._ledger_available(handle)
        for event in events:
            ledger_available = await self._handle_event(handle, event, now, ledger_available, outcome)

        if handle.positions is not None:
            self._spawn_position_refresh(handle)
        return outcome

    def _spawn_position_refresh(self, handle: AccountHandle) -> None:
        # At most one refresh per account; a slow one is not stacked behind.
        pending = self._position_tasks.get(handle.account_id)
        if pending is not None and not pending.done():
            log.debug("Position refresh for %s still running; skipping this cycle.", handle.record.label)
            return
        self._position_tasks[handle.account_id] = self.supervisor.spawn(
            self.positions.refresh(handle), name=f"positions:{handle.account_id}"
        )

    async def _ledger_available(self, handle: AccountHandle) -> bool:
        if self.ledger is None or handle.events is None:
            return False
        return await self.ledger.is_available()

    async def _handle_event(
        self, handle: AccountHandle, event: TradeEvent, now: float, ledger_available: bool, outcome: AccountOutcome
    ) -> bool:
        """Apply the classifier's decision to one event. Returns the (possibly downgraded) ledger availability."""
        account = handle.record
        decision = self.classifier.classify(account, event, now, ledger_available)

        if decision.is_drop:
            outcome.dropped += 1
            metrics.EVENTS_DROPPED.labels(reason=decision.reason or decision.verdict.value).inc()
            return ledger_available

        if decision.verdict is Verdict.FAST_CYCLE_FRESH:
            if self.fast_cycle_feed is not None and not self.fast_cycle_feed.publish(account, event, now):
                # Already surfaced while still fresh.
                outcome.duplicates += 1
                return ledger_available
            outcome.fast_cycle += 1
            await self._detected(handle, event, now, persisted=False)
            return ledger_available

        if decision.verdict is Verdict.DETECTED_UNPERSISTED:
            outcome.unpersisted += 1
            await self._detected(handle, event, now, persisted=False)
            return ledger_available

        # Verdict.PERSIST
        try:
            if await handle.events.find_one_by_hash(event.transaction_hash) is not None:
                outcome.duplicates += 1
                metrics.EVENTS_DROPPED.labels(reason="duplicate").inc()
                return ledger_available
            inserted = await handle.events.insert_one(event, delivered=False)
        except LedgerError as e:
            log.warning("Ledger write failed for %s; continuing without persistence: %s", account.label, e)
            metrics.ACCOUNT_FAILURES.labels(stage="ledger").inc()
            outcome.unpersisted += 1
            await self._detected(handle, event, now, persisted=False)
            return False

        if not inserted:
            # Lost a race with another writer for the same key.
            outcome.duplicates += 1
            metrics.EVENTS_DROPPED.labels(reason="duplicate").inc()
            return ledger_available
        outcome.persisted += 1
        await self._detected(handle, event, now, persisted=True)
        return ledger_available

    async def _detected(self, handle: AccountHandle, event: TradeEvent, now: float, persisted: bool) -> None:
        metrics.EVENTS_DETECTED.labels(
            category=category_name(handle.record.category), persisted=str(persisted).lower()
        ).inc()
        latency = max(0.0, now - (event.timestamp or now))
        await self.notifier.notify(Detection(
            account=handle.record, event=event, latency_seconds=latency, persisted=persisted
        ))
