"""Движок SQLModel/aiosqlite и фабрика сессий."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan import models  # noqa: F401  импортируем модели для регистрации метаданных
from config.settings import DatabaseSettings


def create_engine_from_settings(settings: DatabaseSettings) -> AsyncEngine:
    _ensure_sqlite_dir(settings.dsn)
    return create_async_engine(
        settings.dsn,
        echo=settings.echo,
        poolclass=NullPool,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Создаёт таблицы (для схемных изменений используйте Alembic)."""

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def _ensure_sqlite_dir(dsn: str) -> None:
    url = make_url(dsn)
    if not url.drivername.startswith("sqlite") or not url.database or url.database == ":memory:":
        return
    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


__all__ = ["build_session_maker", "create_engine_from_settings", "init_db"]
