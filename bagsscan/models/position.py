"""Торговые позиции агента (аудит-трейл, строки никогда не удаляются)."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


class PositionStatus(str):
    OPEN = "open"
    PARTIAL = "partial"
    SOLD = "sold"
    STOPPED = "stopped"

    ACTIVE = (OPEN, PARTIAL)
    TERMINAL = (SOLD, STOPPED)
    ALL = (OPEN, PARTIAL, SOLD, STOPPED)


class TradingPosition(SQLModel, table=True):
    __tablename__ = "trading_positions"

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_address: str = Field(max_length=64, index=True)
    # Равен адресу токена, пока позиция open/partial, и NULL после закрытия:
    # уникальный индекс не даёт вставить вторую активную позицию.
    active_key: Optional[str] = Field(default=None, max_length=64, unique=True)
    token_name: str = Field(default="", max_length=128)
    token_symbol: str = Field(default="", max_length=32)
    entry_price: float = Field(default=0.0)
    entry_quote_rate: float = Field(default=0.0)
    entry_amount_sol: float
    entry_amount_tokens: int
    entry_timestamp: int = Field(index=True)
    entry_signature: Optional[str] = Field(default=None, max_length=128)
    current_price: Optional[float] = Field(default=None)
    profit_percent: Optional[float] = Field(default=None)
    status: str = Field(default=PositionStatus.OPEN, index=True)
    remaining_tokens: Optional[int] = Field(default=None)
    first_sell_price: Optional[float] = Field(default=None)
    first_sell_timestamp: Optional[int] = Field(default=None)
    first_sell_signature: Optional[str] = Field(default=None, max_length=128)
    sell_price: Optional[float] = Field(default=None)
    sell_timestamp: Optional[int] = Field(default=None)
    sell_signature: Optional[str] = Field(default=None, max_length=128)

    @property
    def held_tokens(self) -> int:
        """Текущий объём на руках (остаток после частичной продажи)."""

        if self.status == PositionStatus.PARTIAL and self.remaining_tokens is not None:
            return self.remaining_tokens
        return self.entry_amount_tokens

    @property
    def is_active(self) -> bool:
        return self.status in PositionStatus.ACTIVE


__all__ = ["PositionStatus", "TradingPosition"]
