# File: src/tradewatch/application/services/account_registry.py
"""
Static registry of monitored accounts.

Built once at startup from settings; records are frozen and the registry is
never mutated afterwards. Each account is paired with its two ledger
partitions (events, positions) when a ledger is configured.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence

from tradewatch.config import Settings
from tradewatch.domain.entities import AccountRecord, FastCycle, Standard, is_fast_cycle
from tradewatch.errors import ConfigurationError
from tradewatch.infrastructure.db.ledger_repository import EventLedger, LedgerStore, PositionLedger

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountHandle:
    record: AccountRecord
    events: Optional[EventLedger] = None
    positions: Optional[PositionLedger] = None

    @property
    def account_id(self) -> str:
        return self.record.account_id


class AccountRegistry:

    def __init__(self, records: Sequence[AccountRecord], ledger: Optional[LedgerStore] = None):
        if not records:
            raise ConfigurationError("No accounts configured to monitor (TRACKED_ACCOUNTS is empty)")
        self._by_id: Dict[str, AccountHandle] = {}
        for record in records:
            if record.account_id in self._by_id:
                raise ConfigurationError(f"Account registered twice: {record.account_id}")
            self._by_id[record.account_id] = AccountHandle(
                record=record,
                events=ledger.events_for(record.account_id) if ledger else None,
                positions=ledger.positions_for(record.account_id) if ledger else None,
            )
        self.ledger = ledger

    @classmethod
    def from_settings(cls, settings: Settings, ledger: Optional[LedgerStore] = None) -> "AccountRegistry":
        """
        Every tracked account is Standard unless it also appears in
        FAST_CYCLE_ACCOUNTS. Fast-cycle accounts missing from the tracked list
        are monitored as well.
        """
        fast_ids = settings.fast_cycle_accounts
        fast_category = FastCycle(staleness_threshold_seconds=settings.FAST_CYCLE_STALENESS_SECONDS)

        records: List[AccountRecord] = []
        for address, name in settings.tracked_accounts:
            category = fast_category if address in fast_ids else Standard()
            records.append(AccountRecord(account_id=address, display_name=name, category=category))

        tracked = {r.account_id for r in records}
        for address in fast_ids:
            if address not in tracked:
                records.append(AccountRecord(account_id=address, category=fast_category))

        registry = cls(records, ledger)
        log.info(
            "Account registry loaded: %d account(s), %d fast-cycle",
            len(registry), len(registry.fast_cycle()),
        )
        return registry

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[AccountHandle]:
        return iter(self._by_id.values())

    def __contains__(self, account_id: str) -> bool:
        return account_id.lower() in self._by_id

    def get(self, account_id: str) -> Optional[AccountHandle]:
        return self._by_id.get(account_id.lower())

    @property
    def handles(self) -> List[AccountHandle]:
        return list(self._by_id.values())

    @property
    def records(self) -> List[AccountRecord]:
        return [h.record for h in self._by_id.values()]

    def fast_cycle(self) -> List[AccountHandle]:
        return [h for h in self._by_id.values() if is_fast_cycle(h.record.category)]

    def standard(self) -> List[AccountHandle]:
        return [h for h in self._by_id.values() if not is_fast_cycle(h.record.category)]
