# --- START OF FILE: src/tradewatch/infrastructure/db/models/base.py ---
from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Index names must match alembic/versions/0001_create_ledger_tables.py.
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
}


class Base(DeclarativeBase):
    """Declarative base shared by the ledger tables."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
# --- END OF FILE ---
