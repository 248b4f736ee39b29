# alembic/env.py
"""
Migrations for the trade ledger (trade_activities, trade_positions).

DATABASE_URL, when set, overrides sqlalchemy.url from alembic.ini and goes
through the same normalisation the service applies at startup. SQLite runs in
batch mode because it cannot ALTER most constraints in place.
"""

import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

from tradewatch.infrastructure.db import models  # noqa: F401  (registers tables)
from tradewatch.infrastructure.db.base import normalize_url
from tradewatch.infrastructure.db.models.base import Base

config = context.config
target_metadata = Base.metadata

if config.config_file_name is not None:
    # Keep the service's own loggers when migrations run in-process.
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def ledger_url() -> str:
    override = normalize_url(os.getenv("DATABASE_URL") or "")
    return override or config.get_main_option("sqlalchemy.url")


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    url = ledger_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = ledger_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
