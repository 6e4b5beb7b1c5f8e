"""Временной ряд рыночных метрик токена (append-only)."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


class Snapshot(SQLModel, table=True):
    __tablename__ = "snapshots"

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_address: str = Field(max_length=64, index=True)
    timestamp: int = Field(index=True, description="Unix epoch, миллисекунды")
    market_cap: float = Field(default=0.0)
    holder_count: int = Field(default=0)
    price_usd: float = Field(default=0.0)
    volume_24h: Optional[float] = Field(default=None)


__all__ = ["Snapshot"]
