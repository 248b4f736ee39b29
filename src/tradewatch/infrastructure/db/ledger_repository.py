# File: src/tradewatch/infrastructure/db/ledger_repository.py
"""
Ledger store: per-account event and position partitions on top of SQLAlchemy.

Every public call is a coroutine. The SQLAlchemy work itself is synchronous and
runs in a worker thread (`asyncio.to_thread`) so a slow database never stalls
the poll loop. Partitions are disjoint by `account_id`, so concurrent writers
for different accounts never touch the same key.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, TypeVar

import sqlalchemy as sa
from sqlalchemy import func, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tradewatch.domain.entities import DeliveryTier, LedgerEntry
from tradewatch.errors import LedgerError
from tradewatch.infrastructure.market.schemas import PositionSnapshot, TradeEvent
from .models import TradeActivity, TradePosition
from .uow import make_session_factory, session_scope

log = logging.getLogger(__name__)
T = TypeVar("T")

# Chunk sizes for IN (...) lookups and multi-row inserts (kept under SQLite's 999 bound-parameter limit)
_CHUNK = 500
_INSERT_CHUNK = 40

_EVENT_COLUMNS = (
    "timestamp", "condition_id", "type", "size", "usdc_size", "price", "asset", "side",
    "outcome_index", "title", "slug", "icon", "event_slug", "outcome", "name", "pseudonym",
    "bio", "profile_image", "profile_image_optimized",
)

POSITION_KEY = ("account_id", "asset", "condition_id")

_POSITION_COLUMNS = (
    "size", "avg_price", "initial_value", "current_value", "cash_pnl", "percent_pnl",
    "total_bought", "realized_pnl", "percent_realized_pnl", "cur_price", "redeemable",
    "mergeable", "title", "slug", "icon", "event_slug", "outcome", "outcome_index",
    "opposite_outcome", "opposite_asset", "end_date", "negative_risk",
)


def _chunks(items: List[Any], size: int = _CHUNK) -> Iterable[List[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _to_entry(row: TradeActivity) -> LedgerEntry:
    return LedgerEntry(
        account_id=row.account_id,
        transaction_hash=row.transaction_hash,
        timestamp=row.timestamp,
        condition_id=row.condition_id,
        type=row.type,
        side=row.side,
        size=row.size,
        usdc_size=row.usdc_size,
        price=row.price,
        asset=row.asset,
        outcome_index=row.outcome_index,
        title=row.title,
        slug=row.slug,
        delivered=row.delivered,
        delivered_tier=row.delivered_tier,
        delivered_at=row.delivered_at,
        created_at=row.created_at,
    )


def _activity_row(account_id: str, event: TradeEvent, delivered: bool, tier: Optional[DeliveryTier]) -> Dict[str, Any]:
    if not event.transaction_hash or event.timestamp is None:
        raise LedgerError("Cannot persist an event without transaction hash and timestamp")
    row = {col: getattr(event, col) for col in _EVENT_COLUMNS}
    row.update(
        account_id=account_id,
        transaction_hash=event.transaction_hash,
        delivered=delivered,
        delivered_tier=tier,
        delivered_at=datetime.now(timezone.utc) if delivered else None,
    )
    return row


def _where(model, account_id: str, predicate: Optional[Mapping[str, Any]]) -> List[Any]:
    clauses = [model.account_id == account_id]
    for key, value in (predicate or {}).items():
        column = getattr(model, key, None)
        if column is None:
            raise LedgerError(f"Unknown ledger field in predicate: {key}")
        clauses.append(column.is_(None) if value is None else column == value)
    return clauses


class LedgerStore:
    """Entry point to the ledger. Hands out per-account partitions."""

    def __init__(self, engine: Engine, session_factory: Optional[sessionmaker] = None):
        self.engine = engine
        self.session_factory = session_factory or make_session_factory(engine)

    # -----------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------
    def _run_sync(self, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope(self.session_factory) as session:
                return fn(session)
        except LedgerError:
            raise
        except SQLAlchemyError as e:
            raise LedgerError(f"Ledger operation failed: {e}", original_error=e) from e

    async def run(self, fn: Callable[[Session], T]) -> T:
        return await asyncio.to_thread(self._run_sync, fn)

    def _probe(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            log.debug("Ledger availability probe failed: %s", e)
            return False

    async def is_available(self) -> bool:
        """Soft connectivity probe. Never raises."""
        try:
            return await asyncio.to_thread(self._probe)
        except Exception:
            log.exception("Ledger availability probe crashed.")
            return False

    def insert_ignore(self, model, rows: List[Dict[str, Any]]):
        """Multi-row INSERT that skips rows violating a unique constraint."""
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            return sqlite.insert(model).values(rows).on_conflict_do_nothing()
        if dialect == "postgresql":
            return postgresql.insert(model).values(rows).on_conflict_do_nothing()
        return None

    def upsert(self, model, row: Dict[str, Any], key: Sequence[str], patch: Dict[str, Any]):
        """Single-statement INSERT .. ON CONFLICT (key) DO UPDATE; None where the dialect has no such form."""
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            stmt = sqlite.insert(model).values(row)
        elif dialect == "postgresql":
            stmt = postgresql.insert(model).values(row)
        else:
            return None
        return stmt.on_conflict_do_update(index_elements=list(key), set_=patch)

    # -----------------------------------------------------------------
    # Partitions
    # -----------------------------------------------------------------
    def events_for(self, account_id: str) -> "EventLedger":
        return EventLedger(self, account_id)

    def positions_for(self, account_id: str) -> "PositionLedger":
        return PositionLedger(self, account_id)

    def dispose(self) -> None:
        self.engine.dispose()


class EventLedger:
    """The events partition of one account."""

    def __init__(self, store: LedgerStore, account_id: str):
        self.store = store
        self.account_id = account_id

    async def find_one_by_hash(self, transaction_hash: str) -> Optional[LedgerEntry]:
        def _op(session: Session) -> Optional[LedgerEntry]:
            row = session.execute(
                select(TradeActivity).where(
                    TradeActivity.account_id == self.account_id,
                    TradeActivity.transaction_hash == transaction_hash,
                )
            ).scalar_one_or_none()
            return _to_entry(row) if row else None
        return await self.store.run(_op)

    async def find_many_by_hash(self, hashes: Iterable[str]) -> Set[str]:
        """Batched existence check. Returns the subset of `hashes` already stored."""
        wanted = sorted({h for h in hashes if h})
        if not wanted:
            return set()

        def _op(session: Session) -> Set[str]:
            found: Set[str] = set()
            for chunk in _chunks(wanted):
                found.update(session.execute(
                    select(TradeActivity.transaction_hash).where(
                        TradeActivity.account_id == self.account_id,
                        TradeActivity.transaction_hash.in_(chunk),
                    )
                ).scalars())
            return found
        return await self.store.run(_op)

    async def insert_one(
        self, event: TradeEvent, delivered: bool = False, tier: Optional[DeliveryTier] = None
    ) -> bool:
        """Insert-if-absent. Returns False when the hash is already in this partition."""
        row = _activity_row(self.account_id, event, delivered, tier)

        def _op(session: Session) -> bool:
            stmt = self.store.insert_ignore(TradeActivity, [row])
            if stmt is not None:
                return (session.execute(stmt).rowcount or 0) == 1
            try:
                with session.begin_nested():
                    session.add(TradeActivity(**row))
                    session.flush()
                return True
            except IntegrityError:
                return False
        return await self.store.run(_op)

    async def insert_many(
        self, events: Iterable[TradeEvent], delivered: bool = False, tier: Optional[DeliveryTier] = None
    ) -> int:
        """Unordered bulk insert; duplicates are skipped rather than aborting the batch."""
        rows: Dict[str, Dict[str, Any]] = {}
        for event in events:
            row = _activity_row(self.account_id, event, delivered, tier)
            rows.setdefault(row["transaction_hash"], row)
        if not rows:
            return 0

        def _op(session: Session) -> int:
            inserted = 0
            for chunk in _chunks(list(rows.values()), _INSERT_CHUNK):
                stmt = self.store.insert_ignore(TradeActivity, chunk)
                if stmt is not None:
                    inserted += session.execute(stmt).rowcount or 0
                    continue
                for row in chunk:
                    try:
                        with session.begin_nested():
                            session.add(TradeActivity(**row))
                            session.flush()
                        inserted += 1
                    except IntegrityError:
                        continue
            return inserted
        return await self.store.run(_op)

    async def update_many_where(self, predicate: Mapping[str, Any], patch: Mapping[str, Any]) -> int:
        def _op(session: Session) -> int:
            result = session.execute(
                sa.update(TradeActivity)
                .where(*_where(TradeActivity, self.account_id, predicate))
                .values(**patch)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        return await self.store.run(_op)

    async def delete_where(self, predicate: Mapping[str, Any]) -> int:
        def _op(session: Session) -> int:
            result = session.execute(
                sa.delete(TradeActivity)
                .where(*_where(TradeActivity, self.account_id, predicate))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        return await self.store.run(_op)

    async def count(self, predicate: Optional[Mapping[str, Any]] = None) -> int:
        def _op(session: Session) -> int:
            return session.execute(
                select(func.count(TradeActivity.id)).where(*_where(TradeActivity, self.account_id, predicate))
            ).scalar_one()
        return await self.store.run(_op)

    async def list_pending(self, limit: Optional[int] = None) -> List[LedgerEntry]:
        """Entries awaiting the execution consumer, oldest first."""
        def _op(session: Session) -> List[LedgerEntry]:
            stmt = (
                select(TradeActivity)
                .where(TradeActivity.account_id == self.account_id, TradeActivity.delivered.is_(False))
                .order_by(TradeActivity.timestamp.asc(), TradeActivity.id.asc())
            )
            if limit:
                stmt = stmt.limit(limit)
            return [_to_entry(row) for row in session.execute(stmt).scalars()]
        return await self.store.run(_op)

    async def claim(self, transaction_hash: str) -> bool:
        """
        Atomically flip one pending entry to delivered (LIVE tier).
        Returns True only for the caller whose UPDATE actually changed the row.
        """
        def _op(session: Session) -> bool:
            result = session.execute(
                sa.update(TradeActivity)
                .where(
                    TradeActivity.account_id == self.account_id,
                    TradeActivity.transaction_hash == transaction_hash,
                    TradeActivity.delivered.is_(False),
                )
                .values(
                    delivered=True,
                    delivered_tier=DeliveryTier.LIVE,
                    delivered_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            return (result.rowcount or 0) == 1
        return await self.store.run(_op)


class PositionLedger:
    """The positions partition of one account."""

    def __init__(self, store: LedgerStore, account_id: str):
        self.store = store
        self.account_id = account_id

    async def upsert_one(self, snapshot: PositionSnapshot) -> None:
        values = {col: getattr(snapshot, col) for col in _POSITION_COLUMNS}

        row = dict(
            account_id=self.account_id,
            asset=snapshot.asset,
            condition_id=snapshot.condition_id,
            **values,
        )

        def _op(session: Session) -> None:
            stmt = self.store.upsert(TradePosition, row, POSITION_KEY, {**values, "updated_at": func.now()})
            if stmt is not None:
                session.execute(stmt)
                return
            existing = session.execute(
                select(TradePosition).where(
                    TradePosition.account_id == self.account_id,
                    TradePosition.asset == snapshot.asset,
                    TradePosition.condition_id == snapshot.condition_id,
                )
            ).scalar_one_or_none()
            if existing is None:
                session.add(TradePosition(**row))
                return
            for key, value in values.items():
                setattr(existing, key, value)
        await self.store.run(_op)

    async def find(self, asset: str, condition_id: str) -> Optional[TradePosition]:
        def _op(session: Session) -> Optional[TradePosition]:
            return session.execute(
                select(TradePosition).where(
                    TradePosition.account_id == self.account_id,
                    TradePosition.asset == asset,
                    TradePosition.condition_id == condition_id,
                )
            ).scalar_one_or_none()
        return await self.store.run(_op)

    async def count(self) -> int:
        def _op(session: Session) -> int:
            return session.execute(
                select(func.count(TradePosition.id)).where(TradePosition.account_id == self.account_id)
            ).scalar_one()
        return await self.store.run(_op)
