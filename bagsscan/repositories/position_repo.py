"""Работа с торговыми позициями агента."""

from __future__ import annotations

from typing import Sequence

from loguru import logger
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan.models import PositionStatus, TradingPosition


async def get_position(session: AsyncSession, position_id: int) -> TradingPosition | None:
    return await session.get(TradingPosition, position_id)


async def get_active_position(session: AsyncSession, address: str) -> TradingPosition | None:
    stmt = select(TradingPosition).where(
        TradingPosition.asset_address == address,
        col(TradingPosition.status).in_(PositionStatus.ACTIVE),
    )
    return (await session.exec(stmt)).first()


async def count_active_positions(session: AsyncSession) -> int:
    stmt = (
        select(func.count())
        .select_from(TradingPosition)
        .where(col(TradingPosition.status).in_(PositionStatus.ACTIVE))
    )
    return int((await session.exec(stmt)).one())


async def open_position_if_absent(
    session: AsyncSession,
    position: TradingPosition,
) -> TradingPosition | None:
    """Атомарно создаёт позицию, если по токену нет open/partial.

    Проверка и вставка выполняются в одной транзакции, а уникальный
    active_key закрывает гонку на уровне БД. None означает отказ.
    """

    if await get_active_position(session, position.asset_address) is not None:
        return None
    position.status = PositionStatus.OPEN
    position.active_key = position.asset_address
    session.add(position)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.debug(
            "Активная позиция по {addr} уже существует, вставка отклонена",
            addr=position.asset_address,
        )
        return None
    await session.refresh(position)
    return position


async def list_positions(
    session: AsyncSession,
    status: str | None = None,
) -> Sequence[TradingPosition]:
    stmt = select(TradingPosition)
    if status:
        stmt = stmt.where(TradingPosition.status == status)
    stmt = stmt.order_by(col(TradingPosition.entry_timestamp).desc(), col(TradingPosition.id).desc())
    return (await session.exec(stmt)).all()


async def list_active_positions(session: AsyncSession) -> Sequence[TradingPosition]:
    stmt = (
        select(TradingPosition)
        .where(col(TradingPosition.status).in_(PositionStatus.ACTIVE))
        .order_by(col(TradingPosition.id))
    )
    return (await session.exec(stmt)).all()


async def update_position_price(
    session: AsyncSession,
    position: TradingPosition,
    *,
    price: float,
    profit: float,
) -> TradingPosition:
    position.current_price = price
    position.profit_percent = profit
    session.add(position)
    await session.commit()
    await session.refresh(position)
    return position


async def mark_partial(
    session: AsyncSession,
    position: TradingPosition,
    *,
    sold_tokens: int,
    price: float,
    profit: float,
    timestamp: int,
    signature: str | None,
) -> TradingPosition:
    if position.status != PositionStatus.OPEN:
        raise ValueError(f"Частичная продажа возможна только из open, текущий статус {position.status}")
    position.status = PositionStatus.PARTIAL
    position.remaining_tokens = position.entry_amount_tokens - sold_tokens
    position.first_sell_price = price
    position.first_sell_timestamp = timestamp
    position.first_sell_signature = signature
    position.current_price = price
    position.profit_percent = profit
    session.add(position)
    await session.commit()
    await session.refresh(position)
    return position


async def close_position(
    session: AsyncSession,
    position: TradingPosition,
    *,
    status: str,
    price: float,
    profit: float,
    timestamp: int,
    signature: str | None,
) -> TradingPosition:
    if status not in PositionStatus.TERMINAL:
        raise ValueError(f"Недопустимый финальный статус {status}")
    if not position.is_active:
        raise ValueError(f"Позиция {position.id} уже закрыта ({position.status})")
    position.status = status
    position.active_key = None
    position.remaining_tokens = 0
    position.sell_price = price
    position.sell_timestamp = timestamp
    position.sell_signature = signature
    position.current_price = price
    position.profit_percent = profit
    session.add(position)
    await session.commit()
    await session.refresh(position)
    return position


async def delete_closed_positions(
    session: AsyncSession,
    address: str,
    *,
    commit: bool = True,
) -> None:
    """Удаляет закрытые позиции токена (активные остаются, на них ещё есть токены)."""

    stmt = delete(TradingPosition).where(
        TradingPosition.asset_address == address,
        col(TradingPosition.status).in_(PositionStatus.TERMINAL),
    )
    await session.exec(stmt)  # type: ignore[call-overload]
    if commit:
        await session.commit()


__all__ = [
    "close_position",
    "count_active_positions",
    "delete_closed_positions",
    "get_active_position",
    "get_position",
    "list_active_positions",
    "list_positions",
    "mark_partial",
    "open_position_if_absent",
    "update_position_price",
]
