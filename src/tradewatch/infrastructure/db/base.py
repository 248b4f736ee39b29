# src/tradewatch/infrastructure/db/base.py
"""
Database engine creation.

The engine is built from an explicit URL rather than at import time so that
tests and the entry point can each own their engine.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine


def normalize_url(url: str) -> str:
    url = (url or "").strip()
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


def make_engine(database_url: str, **kwargs) -> Engine:
    url = normalize_url(database_url)
    is_sqlite = url.startswith("sqlite")
    return create_engine(
        url,
        # Ledger calls run in worker threads via asyncio.to_thread.
        connect_args={"check_same_thread": False, "timeout": 30} if is_sqlite else {},
        pool_pre_ping=not is_sqlite,
        pool_recycle=3600,
        **kwargs,
    )
