"""Хранилище снапшотов: append-only ряд метрик по каждому токену.

Запрос «значение N минут назад» решается без отдельной time-series БД:
берём снапшот с минимальным |timestamp - target| среди уже наступивших.
Погрешность ограничена интервалом цикла обновления.
"""

from __future__ import annotations

from sqlalchemy import delete, func
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan.models import Snapshot


async def record_snapshot(
    session: AsyncSession,
    snapshot: Snapshot,
    *,
    commit: bool = True,
) -> Snapshot:
    session.add(snapshot)
    if commit:
        await session.commit()
        await session.refresh(snapshot)
    return snapshot


async def latest_snapshot(session: AsyncSession, address: str) -> Snapshot | None:
    stmt = (
        select(Snapshot)
        .where(Snapshot.asset_address == address)
        .order_by(col(Snapshot.timestamp).desc(), col(Snapshot.id).desc())
        .limit(1)
    )
    return (await session.exec(stmt)).first()


async def first_snapshot(session: AsyncSession, address: str) -> Snapshot | None:
    stmt = (
        select(Snapshot)
        .where(Snapshot.asset_address == address)
        .order_by(col(Snapshot.timestamp), col(Snapshot.id))
        .limit(1)
    )
    return (await session.exec(stmt)).first()


async def closest_snapshot(
    session: AsyncSession,
    address: str,
    target_ms: int,
    now_ms: int,
) -> Snapshot | None:
    """Снапшот, ближайший к target_ms, среди снапшотов с timestamp <= now_ms."""

    stmt = (
        select(Snapshot)
        .where(Snapshot.asset_address == address, Snapshot.timestamp <= now_ms)
        .order_by(func.abs(Snapshot.timestamp - target_ms), col(Snapshot.id))
        .limit(1)
    )
    return (await session.exec(stmt)).first()


async def count_snapshots(session: AsyncSession, address: str) -> int:
    stmt = select(func.count()).select_from(Snapshot).where(Snapshot.asset_address == address)
    return int((await session.exec(stmt)).one())


async def delete_snapshots(session: AsyncSession, address: str, *, commit: bool = True) -> None:
    await session.exec(delete(Snapshot).where(Snapshot.asset_address == address))  # type: ignore[call-overload]
    if commit:
        await session.commit()


__all__ = [
    "closest_snapshot",
    "count_snapshots",
    "delete_snapshots",
    "first_snapshot",
    "latest_snapshot",
    "record_snapshot",
]
