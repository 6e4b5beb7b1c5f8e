"""Работа с кладбищем токенов (archived_assets)."""

from __future__ import annotations

from typing import Sequence

from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan.models import ArchivedAsset


async def insert_archived(
    session: AsyncSession,
    archived: ArchivedAsset,
    *,
    commit: bool = True,
) -> ArchivedAsset:
    session.add(archived)
    if commit:
        await session.commit()
        await session.refresh(archived)
    return archived


async def is_archived(session: AsyncSession, address: str) -> bool:
    stmt = select(ArchivedAsset.id).where(ArchivedAsset.address == address)
    return (await session.exec(stmt)).first() is not None


async def get_archived(session: AsyncSession, address: str) -> ArchivedAsset | None:
    stmt = select(ArchivedAsset).where(ArchivedAsset.address == address)
    return (await session.exec(stmt)).one_or_none()


async def list_archived(session: AsyncSession, limit: int = 100) -> Sequence[ArchivedAsset]:
    stmt = (
        select(ArchivedAsset)
        .order_by(col(ArchivedAsset.archived_at).desc(), col(ArchivedAsset.id).desc())
        .limit(limit)
    )
    return (await session.exec(stmt)).all()


__all__ = ["get_archived", "insert_archived", "is_archived", "list_archived"]
