# src/tradewatch/application/services/position_service.py
"""
Position snapshot refresh. Best effort: runs detached from the classify/persist
path and never blocks it.
"""

import logging
from typing import Optional

from tradewatch.application.services.account_registry import AccountHandle
from tradewatch.infrastructure.db.ledger_repository import LedgerStore
from tradewatch.infrastructure.market.data_api_client import DataApiClient

log = logging.getLogger(__name__)


class PositionService:

    def __init__(self, client: DataApiClient, ledger: Optional[LedgerStore]):
        self.client = client
        self.ledger = ledger

    async def refresh(self, handle: AccountHandle) -> int:
        """Fetch the account's positions and upsert each by (asset, conditionId). Returns the count written."""
        if self.ledger is None or handle.positions is None:
            return 0
        positions = await self.client.fetch_positions(handle.account_id)
        if not positions:
            return 0
        # Availability may have changed while the fetch was in flight.
        if not await self.ledger.is_available():
            log.debug("Ledger unavailable; dropping %d position(s) for %s", len(positions), handle.record.label)
            return 0
        for position in positions:
            await handle.positions.upsert_one(position)
        return len(positions)
