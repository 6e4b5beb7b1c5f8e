"""Работа с каталогом отслеживаемых токенов."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import delete
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan.models import UNKNOWN_NAME, UNKNOWN_SYMBOL, Asset


async def get_asset(session: AsyncSession, address: str) -> Asset | None:
    stmt = select(Asset).where(Asset.address == address)
    return (await session.exec(stmt)).one_or_none()


async def asset_exists(session: AsyncSession, address: str) -> bool:
    stmt = select(Asset.id).where(Asset.address == address)
    return (await session.exec(stmt)).first() is not None


async def insert_asset(session: AsyncSession, asset: Asset) -> Asset:
    """Вставляет токен; IntegrityError при дубле пробрасывается вызывающему."""

    session.add(asset)
    await session.commit()
    await session.refresh(asset)
    return asset


async def list_assets(session: AsyncSession) -> Sequence[Asset]:
    stmt = select(Asset).order_by(col(Asset.id))
    return (await session.exec(stmt)).all()


async def list_addresses(session: AsyncSession) -> list[str]:
    stmt = select(Asset.address).order_by(col(Asset.id))
    return list((await session.exec(stmt)).all())


async def list_unresolved_assets(session: AsyncSession) -> Sequence[Asset]:
    stmt = (
        select(Asset)
        .where((Asset.name == UNKNOWN_NAME) | (Asset.symbol == UNKNOWN_SYMBOL))
        .order_by(col(Asset.id))
    )
    return (await session.exec(stmt)).all()


async def list_seen_between(session: AsyncSession, start_ms: int, end_ms: int) -> Sequence[Asset]:
    """Токены, впервые замеченные в интервале [start_ms, end_ms]."""

    stmt = (
        select(Asset)
        .where(Asset.first_seen_at >= start_ms, Asset.first_seen_at <= end_ms)
        .order_by(col(Asset.id))
    )
    return (await session.exec(stmt)).all()


async def update_asset_metadata(
    session: AsyncSession,
    *,
    address: str,
    name: str,
    symbol: str,
    image_url: str | None,
    updated_at: int,
) -> Asset | None:
    asset = await get_asset(session, address)
    if asset is None:
        return None
    asset.name = name
    asset.symbol = symbol
    if image_url:
        asset.image_url = image_url
    asset.last_updated_at = updated_at
    session.add(asset)
    await session.commit()
    await session.refresh(asset)
    return asset


async def touch_asset(
    session: AsyncSession,
    address: str,
    updated_at: int,
    *,
    commit: bool = True,
) -> None:
    asset = await get_asset(session, address)
    if asset is None:
        return
    asset.last_updated_at = updated_at
    session.add(asset)
    if commit:
        await session.commit()


async def delete_asset(session: AsyncSession, address: str, *, commit: bool = True) -> None:
    await session.exec(delete(Asset).where(Asset.address == address))  # type: ignore[call-overload]
    if commit:
        await session.commit()


__all__ = [
    "asset_exists",
    "delete_asset",
    "get_asset",
    "insert_asset",
    "list_addresses",
    "list_assets",
    "list_seen_between",
    "list_unresolved_assets",
    "touch_asset",
    "update_asset_metadata",
]
