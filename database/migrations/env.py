"""Alembic environment для bagsscan.

Alembic работает синхронно, поэтому async-драйвер в DSN заменяется на sync
(aiosqlite → pysqlite, asyncpg → psycopg).
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

from bagsscan import models  # noqa: F401
from config.settings import get_settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def sync_dsn(dsn: str) -> str:
    return dsn.replace("+aiosqlite", "").replace("+asyncpg", "+psycopg")


config.set_main_option("sqlalchemy.url", sync_dsn(get_settings().database.dsn))
target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        # SQLite не умеет ALTER COLUMN, batch-режим пересоздаёт таблицу.
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
