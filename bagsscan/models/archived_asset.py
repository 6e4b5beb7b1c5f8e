"""Кладбище токенов: финальные метрики тех, кто не набрал интереса."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel


class ArchiveReason(str):
    NO_VOLUME = "no volume after 5 minutes"
    NO_MOVEMENT = "no movement in first 5 minutes"


class ArchivedAsset(SQLModel, table=True):
    __tablename__ = "archived_assets"

    id: Optional[int] = Field(default=None, primary_key=True)
    address: str = Field(max_length=64, unique=True, index=True)
    name: str = Field(max_length=128)
    symbol: str = Field(max_length=32)
    image_url: Optional[str] = Field(default=None)
    creator_address: str = Field(max_length=64)
    created_at: int
    first_seen_at: int
    archived_at: int = Field(index=True)
    reason: str
    final_market_cap: Optional[float] = Field(default=None)
    final_holders: Optional[int] = Field(default=None)
    final_price: Optional[float] = Field(default=None)
    final_volume: Optional[float] = Field(default=None)


__all__ = ["ArchiveReason", "ArchivedAsset"]
