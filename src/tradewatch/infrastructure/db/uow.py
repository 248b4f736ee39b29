# src/tradewatch/infrastructure/db/uow.py
"""
Unit of Work: session factory and the transactional `session_scope`.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

log = logging.getLogger(__name__)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """Creates all ledger tables if they do not exist."""
    log.info("Creating ledger tables if they do not exist...")
    try:
        Base.metadata.create_all(engine)
        log.info("Ledger tables checked/created successfully.")
    except Exception as e:
        log.critical(f"Failed to create ledger tables: {e}", exc_info=True)
        raise


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.
    This handles session creation, commit, rollback, and closing.
    """
    session = factory()
    log.debug(f"Session {id(session)} opened.")
    try:
        yield session
        session.commit()
        log.debug(f"Session {id(session)} committed.")
    except Exception as e:
        log.debug(f"Session {id(session)} rollback due to exception: {e}")
        session.rollback()
        raise
    finally:
        session.close()
