#--- START OF FILE: src/tradewatch/infrastructure/market/data_api_client.py ---
# src/tradewatch/infrastructure/market/data_api_client.py
# Read-only client for the Polymarket data API.
# Failures surface as NetworkError and are never retried here: the next poll tick is the retry.

import logging
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from tradewatch.errors import NetworkError
from tradewatch.infrastructure.market.schemas import PositionSnapshot, TradeEvent

log = logging.getLogger(__name__)

ACTIVITY_ENDPOINT = "/activity"
POSITIONS_ENDPOINT = "/positions"
TRADE_TYPE = "TRADE"


class DataApiClient:
    """
    Thin async client around the activity and positions endpoints.
    One pooled `httpx.AsyncClient` is shared by every account in a batch.
    """
    BASE_URL = "https://data-api.polymarket.com"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=20),
        )

    async def _get_json(self, path: str, params: dict) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"HTTP {e.response.status_code} from {path}", original_error=e, url=url) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {path} failed: {e}", original_error=e, url=url) from e
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {path}", original_error=e, url=url) from e

    async def fetch_trade_events(self, account_id: str, since: Optional[int] = None) -> List[TradeEvent]:
        """Fetch TRADE activity for an account, optionally bounded by a unix-seconds cursor."""
        params = {"user": account_id, "type": TRADE_TYPE}
        if since is not None:
            params["start"] = int(since)
        payload = await self._get_json(ACTIVITY_ENDPOINT, params)
        if not isinstance(payload, list):
            return []
        events: List[TradeEvent] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            try:
                events.append(TradeEvent.model_validate(item))
            except ValidationError as e:
                log.debug("Skipping malformed activity row for %s: %s", account_id, e.error_count())
        return events

    async def fetch_positions(self, account_id: str) -> List[PositionSnapshot]:
        """Fetch current open positions for an account. Malformed rows are skipped."""
        payload = await self._get_json(POSITIONS_ENDPOINT, {"user": account_id})
        if not isinstance(payload, list):
            return []
        positions: List[PositionSnapshot] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            try:
                positions.append(PositionSnapshot.model_validate(item))
            except ValidationError as e:
                log.debug("Skipping malformed position for %s: %s", account_id, e.error_count())
        return positions

    async def aclose(self) -> None:
        await self._client.aclose()
#--- END OF FILE ---
