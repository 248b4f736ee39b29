# File: src/tradewatch/application/services/bootstrap_service.py
"""
BootstrapService - one-time reconciliation before live monitoring.

Runs once per BootstrapState (UNINITIALIZED -> SYNCING -> READY):
  - Standard accounts: every event inside the look-back window that is not yet
    in the ledger is inserted already delivered (HISTORICAL tier), using one
    batched existence query per account.
  - Standard accounts: leftover `delivered=False` rows from a crashed run are
    repaired to delivered (HISTORICAL tier).
  - Fast-cycle accounts: leftover `delivered=False` rows are purged; those
    accounts never keep live events in the ledger.
If the ledger is unreachable the whole phase is skipped and the state still
becomes READY. A failure for one account never aborts the others.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from tradewatch.application.services.account_registry import AccountHandle, AccountRegistry
from tradewatch.domain.entities import BootstrapPhase, BootstrapState, DeliveryTier, is_fast_cycle
from tradewatch.infrastructure import metrics
from tradewatch.infrastructure.db.ledger_repository import LedgerStore
from tradewatch.infrastructure.market.data_api_client import DataApiClient
from tradewatch.infrastructure.sched.clock import Clock

log = logging.getLogger(__name__)

HISTORICAL_PATCH = {"delivered": True, "delivered_tier": DeliveryTier.HISTORICAL}
PENDING = {"delivered": False}


@dataclass
class BootstrapReport:
    synced: int = 0
    repaired: int = 0
    purged: int = 0
    failed_accounts: List[str] = field(default_factory=list)
    skipped: bool = False


class BootstrapService:

    def __init__(
        self,
        registry: AccountRegistry,
        client: DataApiClient,
        ledger: Optional[LedgerStore],
        lookback_minutes: int,
        clock: Optional[Clock] = None,
    ):
        self.registry = registry
        self.client = client
        self.ledger = ledger
        self.lookback_minutes = lookback_minutes
        self.clock = clock or Clock()
        self.last_report: Optional[BootstrapReport] = None

    async def run(self, state: BootstrapState) -> BootstrapReport:
        if state.phase is not BootstrapPhase.UNINITIALIZED:
            log.debug("Bootstrap already ran (phase=%s); skipping.", state.phase.value)
            return self.last_report or BootstrapReport(skipped=True)

        state.begin()
        report = BootstrapReport()
        try:
            if self.ledger is None or not await self.ledger.is_available():
                log.warning("Ledger unavailable; skipping historical sync. Monitoring will start without it.")
                report.skipped = True
                return report

            log.info("Syncing historical trades (this prevents old trades from being executed)...")
            for handle in self.registry:
                if is_fast_cycle(handle.record.category):
                    continue
                try:
                    report.synced += await self._sync_account(handle)
                except Exception as e:
                    log.warning("Failed to sync historical trades for %s: %s", handle.record.label, e)
                    report.failed_accounts.append(handle.account_id)

            for handle in self.registry:
                try:
                    if is_fast_cycle(handle.record.category):
                        report.purged += await handle.events.delete_where(PENDING)
                    else:
                        report.repaired += await handle.events.update_many_where(PENDING, HISTORICAL_PATCH)
                except Exception as e:
                    log.warning("Failed to reconcile pending trades for %s: %s", handle.record.label, e)
                    if handle.account_id not in report.failed_accounts:
                        report.failed_accounts.append(handle.account_id)

            metrics.BOOTSTRAP_SYNCED.inc(report.synced)
            log.info(
                "Historical trades synced: %d new, %d repaired, %d purged. Trade executor can now safely start.",
                report.synced, report.repaired, report.purged,
            )
            return report
        finally:
            self.last_report = report
            state.mark_ready()

    async def _sync_account(self, handle: AccountHandle) -> int:
        since = int(self.clock.now()) - self.lookback_minutes * 60
        events = await self.client.fetch_trade_events(handle.account_id, since=since)
        candidates = [
            e for e in events
            if e.transaction_hash and e.timestamp is not None and e.timestamp >= since
        ]
        if not candidates:
            return 0

        existing = await handle.events.find_many_by_hash(e.transaction_hash for e in candidates)
        missing = [e for e in candidates if e.transaction_hash not in existing]
        if not missing:
            return 0

        saved = await handle.events.insert_many(missing, delivered=True, tier=DeliveryTier.HISTORICAL)
        if saved:
            log.info("Synced %d historical trades for %s", saved, handle.record.label)
        return saved
